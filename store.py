"""
Snapshot persistence and the mutation gate.

The whole record graph is loaded, mutated and written back as one document.
Every write goes through `Store.exclusive()` (or `Store.with_store(fn)`),
which holds a single process-wide lock for the full read-modify-write cycle.
A mutator that raises never gets its snapshot saved: the next load starts
from the last committed document, so failed operations leave no trace.

Cost is a full load plus a full save per operation. That is fine for the
data volumes this service is built for and is the ceiling to revisit before
it grows.

Read-only queries call `Store.read()` without the lock. The JSON backend
writes a temp file and renames it over the old one, so a reader sees either
the previous or the next snapshot, never a torn file.
"""
import json, logging, os, tempfile, threading, time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, Column, Integer, JSON, TIMESTAMP
from sqlalchemy.orm import declarative_base, sessionmaker

from models import Snapshot

log = logging.getLogger(__name__)


# ---------------------- BACKENDS --------------------------
class JsonFileBackend:
    def __init__(self, path):
        self.path = Path(path)

    def load(self):
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def describe(self):
        return {"backend": "json", "path": str(self.path)}


Base = declarative_base()

class SnapshotRow(Base):
    __tablename__ = "snapshots"
    id = Column(Integer, primary_key=True)
    body = Column(JSON, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), default=lambda: datetime.now(timezone.utc))

class SqlBackend:
    """Keeps the snapshot document in a single row of the `snapshots` table."""

    ROW_ID = 1

    def __init__(self, url: str):
        self.engine = create_engine(url, pool_pre_ping=True)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(bind=self.engine)

    def load(self):
        s = self.SessionLocal()
        try:
            row = s.get(SnapshotRow, self.ROW_ID)
            return row.body if row else None
        finally:
            s.close()

    def save(self, data: dict) -> None:
        s = self.SessionLocal()
        try:
            row = s.get(SnapshotRow, self.ROW_ID)
            if not row:
                s.add(SnapshotRow(id=self.ROW_ID, body=data))
            else:
                row.body = data
                row.updated_at = datetime.now(timezone.utc)
            s.commit()
        except Exception:
            s.rollback(); raise
        finally:
            s.close()

    def describe(self):
        return {"backend": "sql", "dialect": self.engine.dialect.name}


class MemoryBackend:
    def __init__(self):
        self._raw = None

    def load(self):
        return json.loads(self._raw) if self._raw else None

    def save(self, data: dict) -> None:
        self._raw = json.dumps(data)

    def describe(self):
        return {"backend": "memory"}


# ---------------------- GATE ------------------------------
class Store:
    def __init__(self, backend):
        self.backend = backend
        self._lock = threading.Lock()

    def read(self) -> Snapshot:
        return Snapshot.from_dict(self.backend.load())

    @contextmanager
    def exclusive(self):
        with self._lock:
            started = time.monotonic()
            snap = self.read()
            yield snap
            self.backend.save(snap.to_dict())
            log.debug("snapshot committed in %.1fms", (time.monotonic() - started) * 1000)

    def with_store(self, mutator):
        """Run `mutator(snapshot)` inside the gate and return its result."""
        with self.exclusive() as snap:
            return mutator(snap)


def open_store(database_url=None, data_path=None) -> Store:
    if database_url:
        backend = SqlBackend(database_url)
    else:
        backend = JsonFileBackend(data_path)
    log.info("Snapshot store: %s", backend.describe())
    return Store(backend)
