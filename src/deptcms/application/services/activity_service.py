from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from deptcms.application.errors import DataAccessError
from deptcms.domain.activity import (
    SYSTEM_ACTIONS,
    USER_ACTIONS,
    ActivityLog,
    ActivityLogFilters,
    ActivityLogPage,
    ActivityStats,
)
from deptcms.infrastructure.stores.models import AdminActivityLogModel, AdminUserModel, Base
from deptcms.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from deptcms.infrastructure.stores.transforms import activity_from_row
from deptcms.utils.actor_context import get_current_actor
from deptcms.utils.logging_config import LogFiles, Logger

DEFAULT_PAGE_SIZE = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActivityService:
    """
    Append-only admin audit log.

    ``filtered_counts`` controls whether ``get_activity_logs`` applies its
    action/resource_type filters to the total count as well as to the page.
    With ``False`` the count covers the whole table.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        auto_create_schema: bool = True,
        session_provider: Optional[SessionProvider] = None,
        filtered_counts: bool = True,
    ):
        self._provider = session_provider or SessionProvider(db_url or get_db_url())
        self.db_url = self._provider.db_url
        self.filtered_counts = filtered_counts
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    def log_activity(
        self,
        action: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ActivityLog:
        """Record one audit entry for the current actor and return it with actor info."""
        if not action:
            raise ValueError("action is required")

        try:
            with self._provider.session() as session:
                row = AdminActivityLogModel(
                    admin_id=get_current_actor(),
                    action=action,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    details=details,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    created_at=_utcnow(),
                )
                session.add(row)
                session.commit()
                log_id = row.id

            with self._provider.session() as session:
                result = session.execute(
                    self._joined_query().where(AdminActivityLogModel.id == log_id)
                ).first()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to log activity '{action}': {exc}") from exc

        if result is None:
            raise DataAccessError(f"Activity log {log_id} vanished after insert")
        log, admin = result
        Logger.debug(
            f"activity action={action} resource={resource_type}:{resource_id}",
            file=LogFiles.ACTIVITY,
        )
        return self._to_model(log, admin)

    def get_activity_logs(self, filters: Optional[ActivityLogFilters] = None) -> ActivityLogPage:
        filters = filters or ActivityLogFilters()

        predicates = []
        if filters.action:
            predicates.append(AdminActivityLogModel.action == filters.action)
        if filters.resource_type:
            predicates.append(AdminActivityLogModel.resource_type == filters.resource_type)

        query = self._joined_query().where(*predicates).order_by(
            AdminActivityLogModel.created_at.desc()
        )
        if filters.offset:
            query = query.offset(filters.offset).limit(filters.limit or DEFAULT_PAGE_SIZE)
        elif filters.limit:
            query = query.limit(filters.limit)

        count_query = select(func.count()).select_from(AdminActivityLogModel)
        if self.filtered_counts:
            count_query = count_query.where(*predicates)

        try:
            with self._provider.session() as session:
                rows = session.execute(query).all()
                count = session.execute(count_query).scalar_one()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch activity logs: {exc}") from exc

        return ActivityLogPage(
            data=[self._to_model(log, admin) for log, admin in rows],
            count=int(count or 0),
        )

    def get_activity_stats(self) -> ActivityStats:
        since = _utcnow() - timedelta(hours=24)
        table = AdminActivityLogModel

        def _count(session, *predicates) -> int:
            query = select(func.count()).select_from(table).where(*predicates)
            return int(session.execute(query).scalar_one() or 0)

        try:
            with self._provider.session() as session:
                return ActivityStats(
                    total_activities=_count(session),
                    event_activities=_count(session, table.resource_type == "event"),
                    achievement_activities=_count(session, table.resource_type == "achievement"),
                    system_activities=_count(session, table.action.in_(SYSTEM_ACTIONS)),
                    user_activities=_count(session, table.action.in_(USER_ACTIONS)),
                    recent_activities=_count(session, table.created_at >= since),
                )
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to compute activity stats: {exc}") from exc

    def get_activities_by_type(self, resource_type: str, limit: int = 10) -> List[ActivityLog]:
        query = (
            self._joined_query()
            .where(AdminActivityLogModel.resource_type == resource_type)
            .order_by(AdminActivityLogModel.created_at.desc())
            .limit(max(1, int(limit)))
        )
        try:
            with self._provider.session() as session:
                rows = session.execute(query).all()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch {resource_type} activities: {exc}") from exc
        return [self._to_model(log, admin) for log, admin in rows]

    def cleanup_old_logs(self, older_than_days: int = 90) -> int:
        """Delete entries created before the cutoff; returns how many were removed."""
        cutoff = _utcnow() - timedelta(days=older_than_days)
        try:
            with self._provider.session() as session:
                result = session.execute(
                    delete(AdminActivityLogModel).where(AdminActivityLogModel.created_at < cutoff)
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to clean up activity logs: {exc}") from exc

        removed = int(result.rowcount or 0)
        Logger.info(
            f"removed {removed} activity logs older than {older_than_days} days",
            file=LogFiles.ACTIVITY,
        )
        return removed

    @staticmethod
    def _to_model(log: AdminActivityLogModel, admin: Optional[AdminUserModel]) -> ActivityLog:
        return activity_from_row(log.to_row(), admin.to_row() if admin else None)

    @staticmethod
    def _joined_query():
        return select(AdminActivityLogModel, AdminUserModel).outerjoin(
            AdminUserModel, AdminUserModel.id == AdminActivityLogModel.admin_id
        )


def log_activity_safely(
    activity: ActivityService,
    action: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Optional[ActivityLog]:
    """Best-effort audit write: failures are logged and never raised."""
    try:
        return activity.log_activity(action, resource_type, resource_id, details)
    except Exception as exc:
        Logger.warning(
            f"Failed to log activity action={action} resource={resource_type}:{resource_id}: {exc}",
            file=LogFiles.ACTIVITY,
        )
        return None
