"""
Balance-affecting operations.

Every operation runs inside the store's mutation gate and follows the same
shape: look up the entities it needs, validate, then mutate and append its
transaction record(s). Validation always happens before the first mutation.
"""
import logging, random
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

import config
from errors import AlreadyExists, AlreadyInClan, Forbidden, InsufficientFunds, InvalidArgument, NotFound, TooEarly
from models import Account, Clan, ClanMember, Role, Snapshot, TxKind, new_id

log = logging.getLogger(__name__)

OutcomeFn = Callable[[int], Tuple[int, dict]]

# Status shop. `vip_days` extends the VIP window on purchase.
STATUS_CATALOG = [
    {"id": "s1", "name": "Newbie",   "desc": "Default status",              "price": 0,      "achievement": False},
    {"id": "s2", "name": "Oldtimer", "desc": "Registered more than a year", "price": 0,      "achievement": True},
    {"id": "s3", "name": "Pro",      "desc": "Paid status",                 "price": 50000,  "achievement": False},
    {"id": "s5", "name": "Premium",  "desc": "Special perks",               "price": 100000, "achievement": False},
    {"id": "s4", "name": "Legend",   "desc": "Paid status, special badge",  "price": 250000, "achievement": False},
    {"id": "s6", "name": "Elite",    "desc": "VIP perks for 30 days",       "price": 500000, "achievement": False, "vip_days": 30},
]
OLDTIMER_AFTER = timedelta(days=365)


# ---------------------- HELPERS ---------------------------
def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def positive(value, field="amount") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"invalid_{field}")
    if value <= 0:
        raise InvalidArgument(f"{field}_must_be_positive")
    return value

def clean_text(value, field) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidArgument(f"invalid_{field}")
    return value.strip()

def get_account(db: Snapshot, account_id) -> Account:
    acc = db.accounts.get(account_id) if account_id else None
    if not acc: raise NotFound("user_not_found")
    return acc

def get_clan(db: Snapshot, clan_id) -> Clan:
    clan = db.clans.get(clan_id) if clan_id else None
    if not clan: raise NotFound("clan_not_found")
    return clan

def find_by_login(db: Snapshot, ident: str) -> Optional[Account]:
    ident = ident.strip().lower()
    return next((a for a in db.accounts.values()
                 if a.nickname.lower() == ident or a.email == ident), None)

def require_funds(available: int, amount: int, code="insufficient_funds"):
    if available < amount: raise InsufficientFunds(code)

def attach_member(db: Snapshot, clan: Clan, acc: Account, role: Role = Role.MEMBER) -> ClanMember:
    """Add `acc` to `clan`, keeping `acc.clan_id` and `clan.members` in step."""
    if acc.clan_id: raise AlreadyInClan("already_in_clan")
    member = ClanMember(account_id=acc.id, nickname=acc.nickname, role=role)
    clan.members.append(member)
    acc.clan_id = clan.id
    return member

def detach_member(db: Snapshot, clan: Clan, account_id: str) -> None:
    clan.members = [m for m in clan.members if m.account_id != account_id]
    acc = db.accounts.get(account_id)
    if acc and acc.clan_id == clan.id:
        acc.clan_id = None

def _new_bank_account(db: Snapshot, rng) -> str:
    """Ten-digit number drawn from `rng`; a taken number steps to the next free one."""
    lo, hi = 10 ** 9, 10 ** 10 - 1
    taken = {a.bank_account for a in db.accounts.values()}
    number = rng.randint(lo, hi)
    while str(number) in taken:
        number = number + 1 if number < hi else lo
    return str(number)

def _balances(acc: Account) -> dict:
    return {"balance": acc.balance, "bank_balance": acc.bank_balance}


# ---------------------- ACCOUNTS --------------------------
def register_account(store, nickname: str, email: str, password_hash: str, is_admin=False, rng=None, now=None) -> Account:
    nickname = clean_text(nickname, "nickname")
    email = clean_text(email, "email").lower()
    if not nickname or not email or not password_hash:
        raise InvalidArgument("missing_fields")
    rng = rng or random
    now = now or utcnow()

    with store.exclusive() as db:
        for a in db.accounts.values():
            if a.nickname.lower() == nickname.lower(): raise AlreadyExists("nickname_taken")
            if a.email == email: raise AlreadyExists("email_taken")
        acc = Account(
            id=new_id(), nickname=nickname, email=email, password_hash=password_hash,
            bank_account=_new_bank_account(db, rng), registered_at=now,
            balance=config.STARTING_BALANCE,
            status="Admin" if is_admin else "Newbie", is_admin=bool(is_admin),
        )
        db.accounts[acc.id] = acc
        db.record(acc.id, TxKind.REGISTRATION, 0, now, "Registered")
    log.info("registered account=%s nickname=%s admin=%s", acc.id, acc.nickname, acc.is_admin)
    return acc


# ---------------------- BANK ------------------------------
def deposit(store, account_id, amount, now=None) -> dict:
    """Move `amount` from the spendable balance into the bank."""
    positive(amount)
    now = now or utcnow()
    with store.exclusive() as db:
        acc = get_account(db, account_id)
        require_funds(acc.balance, amount)
        acc.balance -= amount
        acc.bank_balance += amount
        db.record(acc.id, TxKind.DEPOSIT, amount, now, "Deposit to bank")
        res = _balances(acc)
    log.info("deposit account=%s amount=%s", account_id, amount)
    return res

def withdraw(store, account_id, amount, now=None) -> dict:
    """Move `amount` from the bank back to the spendable balance."""
    positive(amount)
    now = now or utcnow()
    with store.exclusive() as db:
        acc = get_account(db, account_id)
        require_funds(acc.bank_balance, amount, "insufficient_bank_funds")
        acc.bank_balance -= amount
        acc.balance += amount
        db.record(acc.id, TxKind.WITHDRAW, amount, now, "Withdraw from bank")
        res = _balances(acc)
    log.info("withdraw account=%s amount=%s", account_id, amount)
    return res

def bank_transfer(store, account_id, to_bank_account, amount, now=None) -> dict:
    """Pay `amount` of the sender's balance into another account's bank."""
    positive(amount)
    if not to_bank_account: raise InvalidArgument("missing_bank_account")
    now = now or utcnow()
    with store.exclusive() as db:
        sender = get_account(db, account_id)
        recipient = next((a for a in db.accounts.values() if a.bank_account == str(to_bank_account)), None)
        if not recipient: raise NotFound("recipient_not_found")
        require_funds(sender.balance, amount)
        sender.balance -= amount
        recipient.bank_balance += amount
        db.record(sender.id, TxKind.TRANSFER_OUT, -amount, now, f"To account {recipient.bank_account}")
        db.record(recipient.id, TxKind.TRANSFER_IN, amount, now, f"From {sender.nickname}")
        res = _balances(sender)
    log.info("bank transfer from=%s to=%s amount=%s", account_id, recipient.id, amount)
    return res


# ---------------------- BONUS -----------------------------
def bonus_range(acc: Account, now: datetime) -> Tuple[int, int]:
    lo, hi = config.BONUS_MIN, config.BONUS_MAX
    if acc.is_vip(now):
        lo, hi = lo * config.BONUS_VIP_MULTIPLIER, hi * config.BONUS_VIP_MULTIPLIER
    return lo, hi

def claim_bonus(store, account_id, rng=None, now=None) -> dict:
    rng = rng or random
    now = now or utcnow()
    cooldown = timedelta(hours=config.BONUS_COOLDOWN_HOURS)
    with store.exclusive() as db:
        acc = get_account(db, account_id)
        last = acc.last_bonus_claim
        if last and now < last + cooldown:
            raise TooEarly(last + cooldown)
        amount = rng.randint(*bonus_range(acc, now))
        acc.balance += amount
        acc.total_earned += amount
        acc.last_bonus_claim = now
        db.record(acc.id, TxKind.BONUS, amount, now, "Daily bonus")
        res = {"amount": amount, "balance": acc.balance,
               "next_available": (now + cooldown).isoformat()}
    log.info("bonus account=%s amount=%s", account_id, amount)
    return res


# ---------------------- GAMES -----------------------------
def settle_game(store, account_id, game: TxKind, bet, outcome_fn: OutcomeFn, max_bet=None, now=None) -> dict:
    """Take the bet, let `outcome_fn(bet)` decide the win, pay it out.

    `outcome_fn` returns `(win, details)`; a win of 0 is a loss. The
    transaction records the net result `win - bet`.
    """
    positive(bet, "bet")
    if max_bet is not None and bet > max_bet:
        raise InvalidArgument(f"max_bet_{game.value}_{int(max_bet)}")
    now = now or utcnow()
    with store.exclusive() as db:
        acc = get_account(db, account_id)
        require_funds(acc.balance, bet)
        win, details = outcome_fn(bet)
        win = int(win)
        if win < 0: raise ValueError("negative_win")
        acc.balance -= bet
        acc.games_played += 1
        if win > 0:
            acc.balance += win
            acc.total_earned += win
            acc.max_win = max(acc.max_win, win)
        db.record(acc.id, game, win - bet, now, details.pop("info", ""))
        res = dict(details, outcome="win" if win > 0 else "lose", bet=bet, win=win, balance=acc.balance)
    log.info("%s account=%s bet=%s win=%s", game.value, account_id, bet, win)
    return res


# ---------------------- CLANS -----------------------------
def create_clan(store, account_id, name: str, description: str = "", now=None) -> dict:
    name = clean_text(name, "name")
    description = clean_text(description, "description")
    if not name: raise InvalidArgument("missing_clan_name")
    cost = config.CLAN_CREATION_COST
    now = now or utcnow()
    with store.exclusive() as db:
        acc = get_account(db, account_id)
        if acc.clan_id: raise AlreadyInClan("already_in_clan")
        require_funds(acc.balance, cost)
        acc.balance -= cost
        clan = Clan(id=new_id(), name=name, description=description, created_at=now)
        db.clans[clan.id] = clan
        attach_member(db, clan, acc, Role.LEADER)
        db.record(acc.id, TxKind.CLAN_CREATION, -cost, now, f"Created clan {name}")
        res = {"clan": clan.to_dict(), "balance": acc.balance}
    log.info("clan created clan=%s leader=%s", clan.id, account_id)
    return res

def join_clan(store, account_id, clan_id) -> dict:
    with store.exclusive() as db:
        clan = get_clan(db, clan_id)
        acc = get_account(db, account_id)
        attach_member(db, clan, acc)
        res = {"ok": True, "clan": clan.summary()}
    log.info("clan join clan=%s account=%s", clan_id, account_id)
    return res

def clan_transfer(store, clan_id, actor_id, target_id, amount, now=None) -> dict:
    """Member-to-member payment announced in the clan chat."""
    positive(amount)
    now = now or utcnow()
    with store.exclusive() as db:
        clan = get_clan(db, clan_id)
        sender = get_account(db, actor_id)
        if not clan.member(sender.id): raise Forbidden("not_in_clan")
        target = get_account(db, target_id)
        require_funds(sender.balance, amount)
        sender.balance -= amount
        target.balance += amount
        db.record(sender.id, TxKind.CLAN_TRANSFER, -amount, now, f"Transfer to {target.nickname}")
        db.record(target.id, TxKind.CLAN_TRANSFER, amount, now, f"Transfer from {sender.nickname}")
        db.announce(clan.id, f"{sender.nickname} transferred {amount} to {target.nickname}.", now)
        res = {"ok": True, "balance": sender.balance}
    log.info("clan transfer clan=%s from=%s to=%s amount=%s", clan_id, actor_id, target_id, amount)
    return res


# ---------------------- ADMIN / STATUSES ------------------
def admin_grant(store, actor_id, amount, target_id=None, now=None) -> dict:
    positive(amount)
    now = now or utcnow()
    with store.exclusive() as db:
        actor = get_account(db, actor_id)
        if not actor.is_admin: raise Forbidden("not_an_admin")
        target = get_account(db, target_id) if target_id else actor
        target.balance += amount
        target.total_earned += amount
        db.record(target.id, TxKind.ADMIN_GRANT, amount, now, f"Granted by admin {actor.nickname}")
        res = {"ok": True, "target_id": target.id, "balance": target.balance}
    log.info("admin grant actor=%s target=%s amount=%s", actor_id, target.id, amount)
    return res

def get_status(status_id) -> dict:
    st = next((s for s in STATUS_CATALOG if s["id"] == status_id), None)
    if not st: raise NotFound("status_not_found")
    return st

def buy_status(store, account_id, status_id, now=None) -> dict:
    st = get_status(status_id)
    if st["achievement"]: raise InvalidArgument("status_not_for_sale")
    now = now or utcnow()
    with store.exclusive() as db:
        acc = get_account(db, account_id)
        if status_id in acc.purchased_statuses: raise InvalidArgument("status_already_owned")
        require_funds(acc.balance, st["price"])
        acc.balance -= st["price"]
        acc.purchased_statuses.append(status_id)
        if st.get("vip_days"):
            start = acc.vip_expiry if acc.is_vip(now) else now
            acc.vip_expiry = start + timedelta(days=st["vip_days"])
        db.record(acc.id, TxKind.STATUS_PURCHASE, -st["price"], now, f"Bought status {st['name']}")
        res = {"ok": True, "balance": acc.balance, "purchased_statuses": list(acc.purchased_statuses)}
    log.info("status purchase account=%s status=%s", account_id, status_id)
    return res

def can_use_status(acc: Account, st: dict, now: datetime) -> bool:
    if st["achievement"]:
        return st["id"] == "s2" and now - acc.registered_at >= OLDTIMER_AFTER
    return st["price"] == 0 or st["id"] in acc.purchased_statuses

def set_status(store, account_id, status_id, now=None) -> dict:
    st = get_status(status_id)
    now = now or utcnow()
    with store.exclusive() as db:
        acc = get_account(db, account_id)
        if not can_use_status(acc, st, now): raise Forbidden("status_not_owned")
        acc.status = st["name"]
        return {"ok": True, "status": acc.status}


# ---------------------- QUERIES (no gate) -----------------
def get_profile(db: Snapshot, account_id, now=None) -> dict:
    return get_account(db, account_id).public(now or utcnow())

def leaderboard(db: Snapshot, now=None, limit=100) -> dict:
    now = now or utcnow()
    players = sorted(db.accounts.values(), key=lambda a: a.balance, reverse=True)[:limit]
    clans = sorted(db.clans.values(), key=lambda c: c.treasury, reverse=True)[:limit]
    return {
        "players": [{"rank": i, "id": a.id, "nickname": a.nickname, "vip": a.is_vip(now),
                     "status": a.status, "balance": a.balance} for i, a in enumerate(players, 1)],
        "clans": [dict(c.summary(), rank=i) for i, c in enumerate(clans, 1)],
    }

def search_accounts(db: Snapshot, q: str, limit=50) -> list:
    q = (q or "").strip().lower()
    if not q: return []
    hits = [a for a in db.accounts.values() if q in a.nickname.lower()][:limit]
    return [{"id": a.id, "nickname": a.nickname, "balance": a.balance, "clan_id": a.clan_id} for a in hits]

def list_clans(db: Snapshot) -> list:
    return [c.summary() for c in db.clans.values()]

def history(db: Snapshot, account_id, limit=25, offset=0) -> list:
    rows = [t for t in db.transactions if t.account_id == account_id]
    rows.sort(key=lambda t: t.created_at, reverse=True)
    return [t.to_dict() for t in rows[offset:offset + limit]]
