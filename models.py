import re, uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


def new_id() -> str:
    return uuid.uuid4().hex

def _ts(d: Optional[datetime]):
    return d.isoformat() if d else None

def _dt(s) -> Optional[datetime]:
    return datetime.fromisoformat(s) if s else None

def password_valid(pw: str) -> bool:
    if len(pw) < 6: return False
    if not re.search(r"\S", pw): return False
    return True


class Role(str, Enum):
    LEADER = "leader"
    VICE = "vice"
    MEMBER = "member"

    @property
    def rank(self) -> int:
        return {"member": 0, "vice": 1, "leader": 2}[self.value]

    def at_least(self, other: "Role") -> bool:
        return self.rank >= other.rank


class TxKind(str, Enum):
    REGISTRATION = "registration"
    BONUS = "bonus"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    SLOTS = "slots"
    ROCKET = "rocket"
    BASKETBALL = "basketball"
    ADMIN_GRANT = "admin_grant"
    CLAN_CREATION = "clan_creation"
    CLAN_TRANSFER = "clan_transfer"
    STATUS_PURCHASE = "status_purchase"


# ---------------------- RECORDS ---------------------------
@dataclass
class Account:
    id: str
    nickname: str
    email: str
    password_hash: str
    bank_account: str
    registered_at: datetime
    balance: int = 0
    bank_balance: int = 0
    total_earned: int = 0
    games_played: int = 0
    max_win: int = 0
    clan_id: Optional[str] = None
    status: str = "Newbie"
    is_admin: bool = False
    last_bonus_claim: Optional[datetime] = None
    vip_expiry: Optional[datetime] = None
    purchased_statuses: List[str] = field(default_factory=list)

    def is_vip(self, now: datetime) -> bool:
        return bool(self.vip_expiry and self.vip_expiry > now)

    def public(self, now: datetime) -> dict:
        """Profile view; never carries the password hash."""
        d = self.to_dict()
        d.pop("password_hash")
        d["vip"] = self.is_vip(now)
        return d

    def to_dict(self) -> dict:
        d = asdict(self)
        for k in ("registered_at", "last_bonus_claim", "vip_expiry"):
            d[k] = _ts(d[k])
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Account":
        d = dict(d)
        for k in ("registered_at", "last_bonus_claim", "vip_expiry"):
            d[k] = _dt(d.get(k))
        d["purchased_statuses"] = list(d.get("purchased_statuses") or [])
        return cls(**d)


@dataclass
class MemberWarning:
    issued_by: str
    reason: str
    issued_at: datetime
    active: bool = True

    def to_dict(self) -> dict:
        return {"issued_by": self.issued_by, "reason": self.reason,
                "issued_at": _ts(self.issued_at), "active": self.active}

    @classmethod
    def from_dict(cls, d: dict) -> "MemberWarning":
        return cls(issued_by=d["issued_by"], reason=d.get("reason", ""),
                   issued_at=_dt(d["issued_at"]), active=bool(d.get("active", True)))


@dataclass
class ClanMember:
    account_id: str
    nickname: str
    role: Role = Role.MEMBER
    warnings: List[MemberWarning] = field(default_factory=list)

    def active_warnings(self) -> int:
        return sum(1 for w in self.warnings if w.active)

    def to_dict(self) -> dict:
        return {"account_id": self.account_id, "nickname": self.nickname, "role": self.role.value,
                "warnings": [w.to_dict() for w in self.warnings]}

    @classmethod
    def from_dict(cls, d: dict) -> "ClanMember":
        return cls(account_id=d["account_id"], nickname=d["nickname"], role=Role(d["role"]),
                   warnings=[MemberWarning.from_dict(w) for w in d.get("warnings", [])])


@dataclass
class Clan:
    id: str
    name: str
    created_at: datetime
    description: str = ""
    treasury: int = 0
    members: List[ClanMember] = field(default_factory=list)

    def member(self, account_id: str) -> Optional[ClanMember]:
        return next((m for m in self.members if m.account_id == account_id), None)

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description,
                "treasury": self.treasury, "members": len(self.members)}

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description,
                "treasury": self.treasury, "created_at": _ts(self.created_at),
                "members": [m.to_dict() for m in self.members]}

    @classmethod
    def from_dict(cls, d: dict) -> "Clan":
        return cls(id=d["id"], name=d["name"], description=d.get("description", ""),
                   treasury=int(d.get("treasury", 0)), created_at=_dt(d["created_at"]),
                   members=[ClanMember.from_dict(m) for m in d.get("members", [])])


@dataclass
class Transaction:
    id: str
    account_id: str
    kind: TxKind
    amount: int
    created_at: datetime
    info: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "account_id": self.account_id, "kind": self.kind.value,
                "amount": self.amount, "created_at": _ts(self.created_at), "info": self.info}

    @classmethod
    def from_dict(cls, d: dict) -> "Transaction":
        return cls(id=d["id"], account_id=d["account_id"], kind=TxKind(d["kind"]),
                   amount=int(d["amount"]), created_at=_dt(d["created_at"]), info=d.get("info", ""))


@dataclass
class ClanMessage:
    id: str
    clan_id: str
    author_id: Optional[str]
    nickname: str
    text: str
    created_at: datetime
    system: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "clan_id": self.clan_id, "author_id": self.author_id,
                "nickname": self.nickname, "text": self.text,
                "created_at": _ts(self.created_at), "system": self.system}

    @classmethod
    def from_dict(cls, d: dict) -> "ClanMessage":
        return cls(id=d["id"], clan_id=d["clan_id"], author_id=d.get("author_id"),
                   nickname=d["nickname"], text=d.get("text", ""),
                   created_at=_dt(d["created_at"]), system=bool(d.get("system", False)))


# ---------------------- SNAPSHOT --------------------------
@dataclass
class Snapshot:
    """The whole record graph: accounts, clans, transactions and clan chat.

    Accounts and clans are keyed by id; transactions and messages are
    append-only lists in insertion order.
    """

    accounts: Dict[str, Account] = field(default_factory=dict)
    clans: Dict[str, Clan] = field(default_factory=dict)
    transactions: List[Transaction] = field(default_factory=list)
    messages: List[ClanMessage] = field(default_factory=list)

    def record(self, account_id: str, kind: TxKind, amount: int, now: datetime, info: str = "") -> Transaction:
        tx = Transaction(id=new_id(), account_id=account_id, kind=kind, amount=int(amount),
                         created_at=now, info=info)
        self.transactions.append(tx)
        return tx

    def announce(self, clan_id: str, text: str, now: datetime, author: Optional[Account] = None) -> ClanMessage:
        msg = ClanMessage(id=new_id(), clan_id=clan_id,
                          author_id=author.id if author else None,
                          nickname=author.nickname if author else "SYSTEM",
                          text=text, created_at=now, system=author is None)
        self.messages.append(msg)
        return msg

    def to_dict(self) -> dict:
        return {
            "accounts": [a.to_dict() for a in self.accounts.values()],
            "clans": [c.to_dict() for c in self.clans.values()],
            "transactions": [t.to_dict() for t in self.transactions],
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "Snapshot":
        d = d or {}
        accounts = [Account.from_dict(a) for a in d.get("accounts", [])]
        clans = [Clan.from_dict(c) for c in d.get("clans", [])]
        return cls(
            accounts={a.id: a for a in accounts},
            clans={c.id: c for c in clans},
            transactions=[Transaction.from_dict(t) for t in d.get("transactions", [])],
            messages=[ClanMessage.from_dict(m) for m in d.get("messages", [])],
        )
