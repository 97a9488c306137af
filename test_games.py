import random

import pytest

from app_games import PAYTABLE, play_basketball, play_rocket, play_slots, slots_multiplier
from conftest import FixedRng, SeqRng


def test_slots_pays_three_of_a_kind_only():
    assert slots_multiplier(["777", "777", "777"]) == 10
    assert slots_multiplier(["Cherry", "Cherry", "Cherry"]) == 2
    assert slots_multiplier(["777", "BAR", "777"]) == 0

def test_play_slots_jackpot():
    win, details = play_slots(50, FixedRng())
    assert details["symbols"] == ["777", "777", "777"]
    assert win == 500
    assert details["info"] == "Slots result 777|777|777"

def test_rocket_loses_when_target_beyond_crash():
    win, details = play_rocket(100, SeqRng([0.5, 0.9]), cap=5.0)
    assert details["crash"] == 2.62
    assert details["cash_out"] == 4.6
    assert not details["cashed"] and win == 0

def test_rocket_pays_cash_out_below_crash():
    win, details = play_rocket(100, SeqRng([0.99, 0.25]), cap=5.0)
    assert details["crash"] > 2.0
    assert details["cashed"] and win == 200

@pytest.mark.parametrize("roll,mult", [(0.1, 3), (0.3, 2), (0.7, 0)])
def test_basketball_odds(roll, mult):
    win, details = play_basketball(10, SeqRng([roll]))
    assert details["multiplier"] == mult
    assert win == 10 * mult

def test_wins_stay_under_game_caps():
    caps = {play_slots: max(PAYTABLE.values()), play_rocket: 5.0, play_basketball: 3}
    for play, cap in caps.items():
        outcomes = set()
        for seed in range(300):
            win, _ = play(100, random.Random(seed))
            assert 0 <= win <= 100 * cap
            outcomes.add(win > 0)
        assert outcomes == {True, False}
