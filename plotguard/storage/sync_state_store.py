"""Per-form delta-sync watermark storage."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import sessionmaker

from plotguard.core.entities import FormSyncState
from plotguard.storage.tables import FormSyncStateRow


class SyncStateStore:
    """Watermarks only ever move forward."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get(self, form_id: str) -> FormSyncState | None:
        with self._session_factory() as session:
            row = session.get(FormSyncStateRow, form_id)
            if row is None:
                return None
            return FormSyncState(row.form_id, row.last_sync_timestamp)

    def advance(self, form_id: str, timestamp: datetime) -> FormSyncState:
        """Move the watermark to ``timestamp`` unless it is already later.

        Returns
        -------
        FormSyncState
            Watermark after the update.
        """
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        with self._session_factory.begin() as session:
            row = session.get(FormSyncStateRow, form_id)
            if row is None:
                row = FormSyncStateRow(form_id=form_id, last_sync_timestamp=timestamp)
                session.add(row)
            elif timestamp > row.last_sync_timestamp:
                row.last_sync_timestamp = timestamp
            return FormSyncState(row.form_id, row.last_sync_timestamp)
