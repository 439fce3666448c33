"""
Activity Service — best-effort, append-only audit sink.

Entries are written in their own commit *after* the triggering mutation
has committed. A failed write is rolled back, logged and dropped; it
never fails or undoes the operation that triggered it.
"""

import logging
from datetime import timedelta

from sqlalchemy import func, select

from chatshare.middleware.logging_config import log_context
from chatshare.models import utcnow
from chatshare.models.audit import ActivityLog

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class ActivityRecorder:
    """Append ActivityLog rows through an explicitly supplied DB session."""

    def __init__(self, session):
        self.session = session

    def record(
        self,
        action: str,
        resource_type: str,
        resource_id,
        user_id: int | None = None,
        metadata: dict | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ActivityLog | None:
        """Append one entry. Returns the row, or None if the write failed."""
        try:
            return self._write(
                action, resource_type, str(resource_id), user_id,
                metadata or {}, ip_address, user_agent,
            )
        except Exception:
            self.session.rollback()
            logger.warning(
                "Activity write failed: action=%s %s/%s user=%s",
                action, resource_type, resource_id, user_id, exc_info=True,
                extra=log_context(resource_type, resource_id, user_id, event="activity_dropped"),
            )
            return None

    def _write(self, action, resource_type, resource_id, user_id, metadata, ip_address, user_agent):
        created_at = self._next_timestamp(resource_type, resource_id)
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            meta=metadata,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
            created_at=created_at,
        )
        self.session.add(entry)
        self.session.commit()
        return entry

    def _next_timestamp(self, resource_type, resource_id):
        """Now, or one tick past the latest entry for this resource if the clock lags."""
        now = utcnow()
        latest = self.session.execute(
            select(func.max(ActivityLog.created_at)).where(
                ActivityLog.resource_type == resource_type,
                ActivityLog.resource_id == resource_id,
            )
        ).scalar()
        if latest is not None and now <= latest:
            return latest + _TICK
        return now

    def list_for_resource(self, resource_type, resource_id, limit=100):
        """Entries for one resource, oldest first."""
        rows = self.session.execute(
            select(ActivityLog)
            .where(
                ActivityLog.resource_type == resource_type,
                ActivityLog.resource_id == str(resource_id),
            )
            .order_by(ActivityLog.created_at.asc(), ActivityLog.id.asc())
            .limit(limit)
        ).scalars().all()
        return [row.to_dict() for row in rows]
