"""
Draft storage for unsaved stock-entry edits.

A draft is the whole editing state of one entry: the entry context, its
line items and the persisted stock ids marked for deletion. The session
writes drafts on a debounce timer; nothing in the engine depends on a
store being present.

Keys
----
  edit-stock-entry-draft-<entry id>   editing a saved entry
  edit-stock-entry-draft-new          creating a new entry
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field

from models.entry import EntryContext
from models.line_item import LineItem

logger = logging.getLogger(__name__)

KEY_PREFIX = "edit-stock-entry-draft-"
NEW_ENTRY = "new"


def draft_key(entry_id: Optional[Union[int, str]]) -> str:
    return f"{KEY_PREFIX}{entry_id if entry_id is not None else NEW_ENTRY}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DraftSnapshot(BaseModel):
    context: EntryContext
    items: List[LineItem] = Field(default_factory=list)
    deleted_stock_ids: List[int] = Field(default_factory=list)
    timestamp: str = Field(default_factory=_now)


class DraftStore(Protocol):

    def get(self, key: str) -> Optional[DraftSnapshot]: ...

    def set(self, key: str, snapshot: DraftSnapshot) -> None: ...

    def clear(self, key: str) -> None: ...


class InMemoryDraftStore:

    def __init__(self) -> None:
        self._drafts: Dict[str, str] = {}

    def get(self, key: str) -> Optional[DraftSnapshot]:
        raw = self._drafts.get(key)
        return DraftSnapshot.model_validate_json(raw) if raw is not None else None

    def set(self, key: str, snapshot: DraftSnapshot) -> None:
        self._drafts[key] = snapshot.model_dump_json()

    def clear(self, key: str) -> None:
        self._drafts.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._drafts)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS drafts (
    key       TEXT PRIMARY KEY,
    payload   TEXT NOT NULL,      -- DraftSnapshot serialised as JSON
    saved_at  TEXT NOT NULL       -- ISO-8601 UTC
);
"""


class SqliteDraftStore:
    """Thin wrapper around an SQLite database file holding one row per draft."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Draft store ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # DraftStore
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[DraftSnapshot]:
        with self._conn() as conn:
            row = conn.execute("SELECT payload FROM drafts WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return DraftSnapshot.model_validate(json.loads(row["payload"]))
        except ValueError as exc:
            logger.warning("Discarding unreadable draft %s: %s", key, exc)
            return None

    def set(self, key: str, snapshot: DraftSnapshot) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO drafts (key, payload, saved_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload  = excluded.payload,
                    saved_at = excluded.saved_at
                """,
                (key, snapshot.model_dump_json(), _now()),
            )
        logger.debug("Draft saved: %s (%d items)", key, len(snapshot.items))

    def clear(self, key: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM drafts WHERE key = ?", (key,))
        logger.debug("Draft cleared: %s", key)

    def list_drafts(self) -> List[dict]:
        with self._conn() as conn:
            rows = conn.execute("SELECT key, saved_at FROM drafts ORDER BY saved_at DESC").fetchall()
        return [dict(r) for r in rows]
