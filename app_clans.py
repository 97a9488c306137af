from flask import Blueprint
from flask_jwt_extended import jwt_required, get_jwt_identity

import ledger, moderation
from app_common import body, current_now, current_store, get_or_400, text_field
from errors import InvalidArgument

clans = Blueprint("clans", __name__, url_prefix="/api/clans")

@clans.get("")
def clan_list():
    return {"clans": ledger.list_clans(current_store().read())}

@clans.post("")
@jwt_required()
def clan_create():
    d = body()
    res = ledger.create_clan(current_store(), get_jwt_identity(), text_field(d, "name"), text_field(d, "description"),
                             now=current_now())
    return res, 201

@clans.get("/<clan_id>")
def clan_detail(clan_id):
    return {"clan": ledger.get_clan(current_store().read(), clan_id).to_dict()}

@clans.post("/<clan_id>/join")
@jwt_required()
def clan_join(clan_id):
    return ledger.join_clan(current_store(), get_jwt_identity(), clan_id)

# ---------- Chat ----------
@clans.get("/<clan_id>/messages")
@jwt_required()
def clan_messages(clan_id):
    return {"messages": moderation.list_messages(current_store().read(), clan_id)}

@clans.post("/<clan_id>/messages")
@jwt_required()
def clan_post_message(clan_id):
    return moderation.post_message(current_store(), clan_id, get_jwt_identity(), text_field(body(), "text"),
                                   now=current_now())

# ---------- Moderation / transfers ----------
@clans.post("/<clan_id>/action")
@jwt_required()
def clan_action(clan_id):
    """
    JSON: { "action": "warn|kick|mute|promote|transfer", "target_id": "...",
            "reason": "...", "minutes": 10, "amount": 500 }
    """
    d = body()
    action = text_field(d, "action").lower()
    target_id = get_or_400(d, "target_id", str)
    reason = text_field(d, "reason")
    store, uid, now = current_store(), get_jwt_identity(), current_now()

    if action == "warn":
        return moderation.issue_warning(store, clan_id, uid, target_id, reason, now=now)
    if action == "kick":
        return moderation.kick(store, clan_id, uid, target_id, reason, now=now)
    if action == "mute":
        minutes = get_or_400(d, "minutes", int)
        return moderation.mute(store, clan_id, uid, target_id, minutes, reason, now=now)
    if action == "promote":
        return moderation.promote(store, clan_id, uid, target_id, now=now)
    if action == "transfer":
        amount = get_or_400(d, "amount", int)
        return ledger.clan_transfer(store, clan_id, uid, target_id, amount, now=now)
    raise InvalidArgument("unknown_action")
