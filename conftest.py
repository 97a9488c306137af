import random
from datetime import datetime, timedelta, timezone

import pytest

import ledger
from store import JsonFileBackend, Store


class Clock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kw):
        self.now += timedelta(**kw)


class FixedRng:
    """Always picks the top of a range; `random()` returns `value`."""

    def __init__(self, value=0.5):
        self.value = value

    def randint(self, a, b):
        return b

    def random(self):
        return self.value

    def choice(self, seq):
        return seq[0]


class SeqRng(random.Random):
    """Replays the given `random()` values, then falls back to a seeded Random."""

    def __init__(self, values, seed=7):
        super().__init__(seed)
        self._values = list(values)

    def random(self):
        if self._values:
            return self._values.pop(0)
        return super().random()


@pytest.fixture
def clock():
    return Clock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))

@pytest.fixture
def rng():
    return random.Random(1234)

@pytest.fixture
def store(tmp_path):
    return Store(JsonFileBackend(tmp_path / "casino.json"))

@pytest.fixture
def make_account(store, clock, rng):
    def _make(nickname, balance=None, **fields):
        acc = ledger.register_account(store, nickname, f"{nickname}@example.com", "hash", rng=rng, now=clock())
        if balance is not None:
            fields["balance"] = balance
        if fields:
            set_fields(store, acc.id, **fields)
        return acc.id
    return _make

def set_fields(store, account_id, **fields):
    with store.exclusive() as db:
        for k, v in fields.items():
            setattr(db.accounts[account_id], k, v)

def account(store, account_id):
    return store.read().accounts[account_id]
