"""
Clan moderation: warnings, kicks, mutes, promotions and clan chat.

Who may do what is decided by `PERMISSIONS` (action -> lowest role allowed).
On top of that an actor can only act on members ranked strictly below them,
which keeps the single leader out of reach of every moderation action.
"""
import logging
from datetime import datetime

import config
from errors import Forbidden, InvalidArgument, NotFound
from ledger import clean_text, detach_member, get_account, get_clan, positive, utcnow
from models import Clan, ClanMember, MemberWarning, Role, Snapshot

log = logging.getLogger(__name__)

PERMISSIONS = {
    "warn": Role.VICE,
    "kick": Role.VICE,
    "mute": Role.VICE,
    "promote": Role.LEADER,
    "transfer": Role.MEMBER,
    "message": Role.MEMBER,
}
MAX_MESSAGE_LENGTH = 500


def authorize(db: Snapshot, clan: Clan, actor_id, action: str):
    """Return the acting account and its membership, or raise Forbidden."""
    actor = get_account(db, actor_id)
    member = clan.member(actor.id)
    if not member: raise Forbidden("not_in_clan")
    if not member.role.at_least(PERMISSIONS[action]):
        raise Forbidden("only_leader_can_promote" if action == "promote" else "insufficient_rights")
    return actor, member

def _target(clan: Clan, actor_member: ClanMember, target_id) -> ClanMember:
    target = clan.member(target_id)
    if not target: raise NotFound("target_not_in_clan")
    if target.role.rank >= actor_member.role.rank:
        raise Forbidden("target_outranks_actor")
    return target


def issue_warning(store, clan_id, actor_id, target_id, reason: str, now: datetime = None) -> dict:
    """Warn a member; the warning that brings them to the limit also kicks them."""
    reason = clean_text(reason, "reason")
    if not reason: raise InvalidArgument("missing_reason")
    now = now or utcnow()
    with store.exclusive() as db:
        clan = get_clan(db, clan_id)
        actor, actor_member = authorize(db, clan, actor_id, "warn")
        target = _target(clan, actor_member, target_id)
        target.warnings.append(MemberWarning(issued_by=actor.id, reason=reason, issued_at=now))
        db.announce(clan.id, f"{target.nickname} received a warning. Reason: {reason}. Issued by: {actor.nickname}", now)
        active = target.active_warnings()
        kicked = active >= config.WARNINGS_BEFORE_KICK
        if kicked:
            detach_member(db, clan, target.account_id)
            db.announce(clan.id, f"{target.nickname} was kicked ({active} warnings). Issued by: {actor.nickname}", now)
    log.info("warning clan=%s target=%s active=%s kicked=%s", clan_id, target_id, active, kicked)
    return {"ok": True, "active_warnings": active, "kicked": kicked}

def kick(store, clan_id, actor_id, target_id, reason: str = "", now: datetime = None) -> dict:
    now = now or utcnow()
    with store.exclusive() as db:
        clan = get_clan(db, clan_id)
        actor, actor_member = authorize(db, clan, actor_id, "kick")
        target = _target(clan, actor_member, target_id)
        detach_member(db, clan, target.account_id)
        db.announce(clan.id, f"{target.nickname} was kicked. Reason: {reason or 'not specified'}. Issued by: {actor.nickname}", now)
    log.info("kick clan=%s target=%s by=%s", clan_id, target_id, actor_id)
    return {"ok": True}

def mute(store, clan_id, actor_id, target_id, minutes, reason: str = "", now: datetime = None) -> dict:
    # Announcement only; chat delivery does not suppress muted members.
    positive(minutes, "minutes")
    now = now or utcnow()
    with store.exclusive() as db:
        clan = get_clan(db, clan_id)
        actor, actor_member = authorize(db, clan, actor_id, "mute")
        target = _target(clan, actor_member, target_id)
        db.announce(clan.id, f"{target.nickname} was muted for {minutes} minutes. Reason: {reason or 'not specified'}. Issued by: {actor.nickname}", now)
    return {"ok": True}

def promote(store, clan_id, actor_id, target_id, now: datetime = None) -> dict:
    now = now or utcnow()
    with store.exclusive() as db:
        clan = get_clan(db, clan_id)
        actor, actor_member = authorize(db, clan, actor_id, "promote")
        target = clan.member(target_id)
        if not target: raise NotFound("target_not_in_clan")
        if target.role != Role.MEMBER: raise InvalidArgument("already_promoted")
        target.role = Role.VICE
        db.announce(clan.id, f"{target.nickname} was promoted to vice. Issued by: {actor.nickname}", now)
    log.info("promote clan=%s target=%s", clan_id, target_id)
    return {"ok": True, "role": Role.VICE.value}


# ---------------------- CHAT ------------------------------
def post_message(store, clan_id, account_id, text: str, now: datetime = None) -> dict:
    text = clean_text(text, "text")
    if not text: raise InvalidArgument("empty_message")
    if len(text) > MAX_MESSAGE_LENGTH: raise InvalidArgument("message_too_long")
    now = now or utcnow()
    with store.exclusive() as db:
        clan = get_clan(db, clan_id)
        author, _ = authorize(db, clan, account_id, "message")
        msg = db.announce(clan.id, text, now, author=author)
        return {"message": msg.to_dict()}

def list_messages(db: Snapshot, clan_id, limit=200) -> list:
    get_clan(db, clan_id)
    msgs = [m for m in db.messages if m.clan_id == clan_id]
    return [m.to_dict() for m in msgs[-limit:]]
