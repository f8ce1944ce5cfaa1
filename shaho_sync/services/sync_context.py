"""
Shaho Sync - Sync Audit Context

Timestamp and actor captured once per ingestion call and passed explicitly
to every writer, so all rows touched by one call carry the same audit stamp.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from shaho_sync.config import settings


@dataclass(frozen=True)
class SyncContext:
    now: datetime
    today: date
    actor: str

    @classmethod
    def create(
        cls,
        actor: Optional[str] = None,
        tz_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "SyncContext":
        """
        Build the context for one call.

        "today" is the calendar date in the configured business timezone and
        is what future-date checks compare against.
        """
        now = now or datetime.now(timezone.utc)
        today = now.astimezone(ZoneInfo(tz_name or settings.sync_timezone)).date()
        return cls(now=now, today=today, actor=actor or settings.sync_actor)

    def stamp_created(self, row) -> None:
        row.created_at = self.now
        row.created_by = self.actor
        self.stamp_updated(row)

    def stamp_updated(self, row) -> None:
        # Writes from the payroll system bypass the approval workflow
        row.updated_at = self.now
        row.updated_by = self.actor
        row.approved_by = self.actor
