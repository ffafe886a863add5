"""
Persisted verification state and audit trail for ProviderTrust.

Stores the accumulating per-record workflow state and the progress events
emitted by each stage, so an interrupted run leaves an inspectable trail.
"""

import json
import sqlite3
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..models import ProgressEvent, ProviderState, WorkflowStatus, utc_now

logger = logging.getLogger(__name__)

STATE_FIELDS = set(ProviderState.model_fields) - {"provider_id", "last_updated"}


def _to_json_value(value: Any) -> Any:
    """Convert models, enums and datetimes into JSON-compatible values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, WorkflowStatus):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_to_json_value(v) for v in value]
    return value


class ProviderStateStore:
    """
    SQLite-backed store for provider workflow state and progress events.

    Each update merges into the stored document; concurrent writers to the
    same provider resolve as last-writer-wins.
    """

    def __init__(self, db_path: str = "data/provider_trust.db"):
        """
        Initialize state store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

        logger.info(f"Initialized ProviderStateStore at {db_path}")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=30)

    def _init_database(self):
        """Initialize database with required tables."""
        conn = self._connect()
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS provider_state (
                provider_id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                state_json TEXT NOT NULL,
                last_updated TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS progress_events (
                event_id INTEGER PRIMARY KEY AUTOINCREMENT,
                provider_id TEXT NOT NULL,
                agent TEXT NOT NULL,
                level TEXT NOT NULL,
                message TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_progress_events_provider
            ON progress_events (provider_id, event_id)
        ''')

        conn.commit()
        conn.close()

        logger.info("Initialized state database")

    def update_state(self, provider_id: str, **updates) -> ProviderState:
        """
        Merge stage output into a provider's stored state.

        Args:
            provider_id: Provider identifier
            **updates: ProviderState fields to set

        Returns:
            The merged ProviderState

        Raises:
            ValueError: If an unknown state field is given
            sqlite3.Error: If the write fails
        """
        unknown = set(updates) - STATE_FIELDS
        if unknown:
            raise ValueError(f"Unknown state fields: {', '.join(sorted(unknown))}")

        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT state_json FROM provider_state WHERE provider_id = ?", [provider_id]
            ).fetchone()
            document = json.loads(row[0]) if row else {"provider_id": provider_id}

            for key, value in updates.items():
                document[key] = _to_json_value(value)
            document["last_updated"] = utc_now().isoformat()

            state = ProviderState.model_validate(document)

            conn.execute('''
                INSERT OR REPLACE INTO provider_state (provider_id, status, state_json, last_updated)
                VALUES (?, ?, ?, ?)
            ''', [provider_id, state.status.value, json.dumps(document), document["last_updated"]])
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.debug(f"Updated state for provider {provider_id}: {', '.join(updates)}")
        return state

    def get_state(self, provider_id: str) -> Optional[ProviderState]:
        """
        Get a provider's stored state.

        Args:
            provider_id: Provider identifier

        Returns:
            ProviderState, or None if the provider is unknown
        """
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT state_json FROM provider_state WHERE provider_id = ?", [provider_id]
            ).fetchone()
        finally:
            conn.close()

        return ProviderState.model_validate(json.loads(row[0])) if row else None

    def list_states(self, status: Optional[WorkflowStatus] = None) -> List[ProviderState]:
        """
        List stored states, optionally filtered by status.

        Args:
            status: Status filter

        Returns:
            States ordered by provider identifier
        """
        query = "SELECT state_json FROM provider_state"
        params = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(WorkflowStatus(status).value)
        query += " ORDER BY provider_id"

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        return [ProviderState.model_validate(json.loads(row[0])) for row in rows]

    def delete_state(self, provider_id: str) -> bool:
        """Delete a provider's state and events. Returns True if state existed."""
        conn = self._connect()
        try:
            cursor = conn.execute("DELETE FROM provider_state WHERE provider_id = ?", [provider_id])
            conn.execute("DELETE FROM progress_events WHERE provider_id = ?", [provider_id])
            conn.commit()
            deleted = cursor.rowcount > 0
        finally:
            conn.close()

        if deleted:
            logger.info(f"Deleted state for provider {provider_id}")
        return deleted

    def log_event(self, event: ProgressEvent):
        """
        Append a progress event to the audit trail.

        Args:
            event: Progress event
        """
        conn = self._connect()
        try:
            conn.execute('''
                INSERT INTO progress_events (provider_id, agent, level, message, timestamp)
                VALUES (?, ?, ?, ?, ?)
            ''', [
                event.provider_id,
                event.agent.value,
                event.level.value,
                event.message,
                event.timestamp.isoformat()
            ])
            conn.commit()
        finally:
            conn.close()

    def get_events(self, provider_id: str) -> List[ProgressEvent]:
        """
        Get the progress events recorded for a provider, oldest first.

        Args:
            provider_id: Provider identifier

        Returns:
            List of ProgressEvent
        """
        conn = self._connect()
        try:
            rows = conn.execute('''
                SELECT provider_id, agent, level, message, timestamp
                FROM progress_events WHERE provider_id = ?
                ORDER BY event_id
            ''', [provider_id]).fetchall()
        finally:
            conn.close()

        return [
            ProgressEvent(provider_id=row[0], agent=row[1], level=row[2], message=row[3], timestamp=row[4])
            for row in rows
        ]

    def get_status_counts(self) -> Dict[str, int]:
        """Count stored providers per workflow status."""
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT status, COUNT(*) FROM provider_state GROUP BY status"
            ).fetchall()
        finally:
            conn.close()
        return {status: count for status, count in rows}


def create_state_store(config: Dict) -> ProviderStateStore:
    """
    Convenience function to create the state store.

    Args:
        config: Audit configuration section

    Returns:
        Initialized ProviderStateStore
    """
    return ProviderStateStore(config.get("db_path", "data/provider_trust.db"))
