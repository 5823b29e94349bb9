"""
Suppression Store — durable operator decisions keyed by suggestion identity.

Behavioral Contract:
- One outstanding record per (operator, suggestion_type, entity_id).
  A newer write replaces the older one (latest write wins).
- A record suppresses its suggestion while ACCEPTED or DISMISSED, or while
  SNOOZED and ``now < snoozed_until``. Expiry is evaluated at read time,
  never by deleting rows.
- Writes are idempotent: repeating the same record leaves the same state.
"""

import asyncio
import sqlite3
import threading
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Set

from focus_triage.models.interaction import InteractionAction, InteractionRecord
from focus_triage.models.suggestion import EntityType, SuggestionKey, SuggestionType


def active_suppressions(
    records: Iterable[InteractionRecord], now: datetime
) -> Set[SuggestionKey]:
    """Keys of the suggestions hidden at ``now`` by the given records."""
    return {r.key for r in records if r.suppresses(now)}


class SuppressionStore(Protocol):
    """Protocol for the external suppression store."""

    async def get_active_suppressions(self, now: datetime) -> Set[SuggestionKey]: ...

    async def list_interactions(self) -> List[InteractionRecord]: ...

    async def record_interaction(self, record: InteractionRecord) -> InteractionRecord: ...


class SqliteSuppressionStore:
    """
    Interaction record store for one operator.
    Prototype: SQLite. Production: the CRM's interaction table.

    The async methods run the blocking sqlite calls in a worker thread;
    the connection is shared, so every statement holds ``_lock``.
    """

    def __init__(self, db_path: str = ":memory:", operator_id: str = "default"):
        self.db_path = db_path
        self.operator_id = operator_id
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the interactions table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS suggestion_interactions (
                operator_id TEXT NOT NULL,
                suggestion_type TEXT NOT NULL,
                entity_type TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                action TEXT NOT NULL,
                snoozed_until TEXT,
                recorded_at TEXT NOT NULL,
                UNIQUE (operator_id, suggestion_type, entity_id)
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_interactions_entity
            ON suggestion_interactions(entity_type, entity_id)
        """)
        self._conn.commit()

    async def record_interaction(self, record: InteractionRecord) -> InteractionRecord:
        """Upsert the operator's decision for the record's (type, entity) pair."""
        return await asyncio.to_thread(self.upsert, record)

    async def list_interactions(self) -> List[InteractionRecord]:
        return await asyncio.to_thread(self.all_records)

    async def get_active_suppressions(self, now: datetime) -> Set[SuggestionKey]:
        records = await asyncio.to_thread(self.all_records)
        return active_suppressions(records, now)

    def upsert(self, record: InteractionRecord) -> InteractionRecord:
        """Records are always stamped with this store's operator."""
        record = record.model_copy(update={"operator_id": self.operator_id})
        operator_id = record.operator_id
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO suggestion_interactions (
                    operator_id, suggestion_type, entity_type, entity_id,
                    action, snoozed_until, recorded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (operator_id, suggestion_type, entity_id) DO UPDATE SET
                    entity_type = excluded.entity_type,
                    action = excluded.action,
                    snoozed_until = excluded.snoozed_until,
                    recorded_at = excluded.recorded_at
                """,
                (
                    operator_id,
                    record.suggestion_type.value,
                    record.entity_type.value,
                    record.entity_id,
                    record.action.value,
                    record.snoozed_until.isoformat() if record.snoozed_until else None,
                    record.recorded_at.isoformat(),
                ),
            )
            self._conn.commit()
        return record

    def get(self, key: SuggestionKey) -> Optional[InteractionRecord]:
        """The outstanding record for a (type, entity) pair, if any."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM suggestion_interactions "
                "WHERE operator_id = ? AND suggestion_type = ? AND entity_id = ?",
                (self.operator_id, key.type.value, key.entity_id),
            ).fetchone()
        return self._deserialize(row) if row else None

    def all_records(self) -> List[InteractionRecord]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM suggestion_interactions WHERE operator_id = ? ORDER BY rowid",
                (self.operator_id,),
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    def _deserialize(self, row: sqlite3.Row) -> InteractionRecord:
        """Deserialize a row back into an InteractionRecord."""
        return InteractionRecord(
            operator_id=row["operator_id"],
            suggestion_type=SuggestionType(row["suggestion_type"]),
            entity_type=EntityType(row["entity_type"]),
            entity_id=row["entity_id"],
            action=InteractionAction(row["action"]),
            snoozed_until=(
                datetime.fromisoformat(row["snoozed_until"])
                if row["snoozed_until"]
                else None
            ),
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) as cnt FROM suggestion_interactions WHERE operator_id = ?",
                (self.operator_id,),
            ).fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
