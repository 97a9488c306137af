import math
from flask import Blueprint
from flask_jwt_extended import jwt_required, get_jwt_identity

import config
from app_common import body, current_now, current_rng, current_store, get_or_400
from ledger import settle_game
from models import TxKind

# Every game is `play_<game>(bet, rng) -> (win, details)`. A win of 0 is a
# loss; otherwise the win never exceeds bet * the game's top multiplier.

# ---------- Slots Core ----------
SLOTS_REEL = ["777", "BAR", "Grape", "Lemon", "Cherry"]
PAYTABLE = {
    "777": 10,
    "BAR": 5,
    "Grape": 3,
    "Lemon": 2,
    "Cherry": 2,
}

def spin_reels(rng):
    return [rng.choice(SLOTS_REEL) for _ in range(3)]

def slots_multiplier(symbols):
    # only three of a kind pays
    if len(set(symbols)) == 1:
        return PAYTABLE[symbols[0]]
    return 0

def play_slots(bet, rng):
    symbols = spin_reels(rng)
    mult = slots_multiplier(symbols)
    return bet * mult, {"symbols": symbols, "multiplier": mult,
                        "info": f"Slots result {'|'.join(symbols)}"}

# ---------- Rocket Core ----------
def crash_point(rng, cap=None):
    cap = cap or config.ROCKET_MAX_MULTIPLIER
    return round(rng.random() ** 1.3 * (cap - 1) + 1, 2)

def play_rocket(bet, rng, cap=None):
    """Player picks a cash-out point; it pays only if the rocket gets there."""
    cap = cap or config.ROCKET_MAX_MULTIPLIER
    crash = crash_point(rng, cap)
    target = round(1 + rng.random() * (cap - 1), 2)
    cashed = target <= crash
    win = math.floor(bet * target) if cashed else 0
    return win, {"crash": crash, "cash_out": target, "cashed": cashed,
                 "info": f"Rocket crashed at {crash}, cash-out {target}"}

# ---------- Basketball Core ----------
BASKET_ODDS = [(0.25, 3), (0.6, 2)]  # (cumulative probability, multiplier)

def play_basketball(bet, rng):
    r = rng.random()
    mult = next((m for p, m in BASKET_ODDS if r < p), 0)
    return bet * mult, {"multiplier": mult, "scored": mult > 0,
                        "info": f"Basket result x{mult}"}

GAMES = {
    "slots": (TxKind.SLOTS, play_slots, lambda: config.MAX_BET_SLOTS),
    "rocket": (TxKind.ROCKET, play_rocket, lambda: config.MAX_BET_ROCKET),
    "basketball": (TxKind.BASKETBALL, play_basketball, lambda: config.MAX_BET_BASKETBALL),
}

# ---------- Blueprint ----------
games = Blueprint("games", __name__, url_prefix="/api/games")

def _play(name):
    kind, play, max_bet = GAMES[name]
    bet = get_or_400(body(), "bet", int)
    rng = current_rng()
    return settle_game(current_store(), get_jwt_identity(), kind, bet,
                       lambda b: play(b, rng), max_bet=max_bet(), now=current_now())

@games.post("/slots")
@jwt_required()
def slots_spin():
    """
    JSON: { "bet": 100 }
    3-reel slot; three of a kind pays bet x paytable.
    """
    return _play("slots")

@games.post("/rocket")
@jwt_required()
def rocket_launch():
    """
    JSON: { "bet": 100 }
    Returns crash point, cash-out target and win.
    """
    return _play("rocket")

@games.post("/basketball")
@jwt_required()
def basketball_shot():
    return _play("basketball")
