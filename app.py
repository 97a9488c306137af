import logging, random
from datetime import timedelta
from flask import Flask, Blueprint, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager, create_access_token, jwt_required, get_jwt_identity
from werkzeug.exceptions import HTTPException
from werkzeug.security import generate_password_hash, check_password_hash

import config, ledger
from app_clans import clans
from app_common import body, current_now, current_rng, current_store, get_or_400, pagination, text_field
from app_games import games
from errors import InvalidArgument, LedgerError
from models import password_valid
from store import open_store

log = logging.getLogger(__name__)

TOKEN_TTL = timedelta(days=7)

api = Blueprint("api", __name__, url_prefix="/api")

# ---------------------- AUTH ------------------------------
@api.post("/auth/register")
def register():
    d = body()
    nickname = text_field(d, "nickname")
    email = text_field(d, "email").lower()
    password = text_field(d, "password", strip=False)
    if not nickname or not email or not password: raise InvalidArgument("missing_fields")
    if not password_valid(password): raise InvalidArgument("weak_password")

    now = current_now()
    acc = ledger.register_account(
        current_store(), nickname, email, generate_password_hash(password),
        is_admin=email in config.ADMIN_EMAILS, rng=current_rng(), now=now,
    )
    token = create_access_token(identity=acc.id, expires_delta=TOKEN_TTL)
    return {"access_token": token, "user": acc.public(now)}, 201

@api.post("/auth/login")
def login():
    d = body()
    ident = text_field(d, "identifier")
    pw = text_field(d, "password", strip=False)
    if not ident or not pw: raise InvalidArgument("missing_fields")
    acc = ledger.find_by_login(current_store().read(), ident)
    if not acc or not check_password_hash(acc.password_hash, pw):
        return {"error": "invalid_credentials"}, 401
    token = create_access_token(identity=acc.id, expires_delta=TOKEN_TTL)
    return {"access_token": token, "user": acc.public(current_now())}

# ---------------------- PROFILE / COMMUNITY ---------------
@api.get("/users/me")
@jwt_required()
def me():
    return {"user": ledger.get_profile(current_store().read(), get_jwt_identity(), current_now())}

@api.get("/profile/<account_id>")
def profile(account_id):
    return {"profile": ledger.get_profile(current_store().read(), account_id, current_now())}

@api.get("/search-user")
def search_user():
    return {"results": ledger.search_accounts(current_store().read(), request.args.get("q", ""))}

@api.get("/leaderboard")
def leaderboard():
    return ledger.leaderboard(current_store().read(), current_now())

@api.get("/transactions")
@jwt_required()
def history_transactions():
    """Return the caller's ledger entries, newest first."""
    limit, offset = pagination()
    return {"transactions": ledger.history(current_store().read(), get_jwt_identity(), limit, offset)}

# ---------------------- BONUS & BANK ----------------------
@api.post("/bonus")
@jwt_required()
def claim_daily_bonus():
    return ledger.claim_bonus(current_store(), get_jwt_identity(), rng=current_rng(), now=current_now())

@api.post("/bank/deposit")
@jwt_required()
def bank_deposit():
    amount = get_or_400(body(), "amount", int)
    return ledger.deposit(current_store(), get_jwt_identity(), amount, now=current_now())

@api.post("/bank/withdraw")
@jwt_required()
def bank_withdraw():
    amount = get_or_400(body(), "amount", int)
    return ledger.withdraw(current_store(), get_jwt_identity(), amount, now=current_now())

@api.post("/bank/transfer")
@jwt_required()
def bank_transfer():
    d = body()
    to_account = get_or_400(d, "to_account", str)
    amount = get_or_400(d, "amount", int)
    return ledger.bank_transfer(current_store(), get_jwt_identity(), to_account, amount, now=current_now())

# ---------------------- STATUSES / ADMIN ------------------
@api.get("/statuses")
def statuses():
    return jsonify({"statuses": ledger.STATUS_CATALOG})

@api.post("/buy-status")
@jwt_required()
def buy_status():
    status_id = get_or_400(body(), "status_id", str)
    return ledger.buy_status(current_store(), get_jwt_identity(), status_id, now=current_now())

@api.post("/set-status")
@jwt_required()
def set_status():
    status_id = get_or_400(body(), "status_id", str)
    return ledger.set_status(current_store(), get_jwt_identity(), status_id, now=current_now())

@api.post("/admin/grant")
@jwt_required()
def admin_grant():
    d = body()
    amount = get_or_400(d, "amount", int)
    return ledger.admin_grant(current_store(), get_jwt_identity(), amount, text_field(d, "target_id") or None,
                              now=current_now())


# ---------------------- APP -------------------------------
def create_app(store=None, rng=None, clock=None, secret_key=None):
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = Flask(__name__)
    app.config["JWT_SECRET_KEY"] = secret_key or config.SECRET_KEY
    app.config["STORE"] = store or open_store(config.DATABASE_URL, config.DATA_PATH)
    app.config["RNG"] = rng or random.Random()
    app.config["CLOCK"] = clock or ledger.utcnow
    app.json.sort_keys = False

    CORS(app, supports_credentials=True)
    JWTManager(app)

    app.register_blueprint(api)
    app.register_blueprint(games)
    app.register_blueprint(clans)

    @app.errorhandler(LedgerError)
    def ledger_error(e):
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(Exception)
    def server_error(e):
        if isinstance(e, HTTPException):
            return e
        log.exception("Unhandled error: %s", e)
        return {"error": "server_error"}, 500

    @app.get("/healthz")
    def health():
        return {"ok": True, "store": app.config["STORE"].backend.describe()}

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=config.PORT, debug=True)
