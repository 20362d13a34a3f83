# src/deptcms/application/services/event_service.py
"""
Event CRUD, filtered listings and the live-update feed.

Reads raise ``DataAccessError`` (``RecordNotFoundError`` for a missing id).
Writes record a best-effort audit entry and publish a change on the
``events`` table feed after commit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from deptcms.application.errors import DataAccessError, RecordNotFoundError
from deptcms.application.services.activity_service import ActivityService, log_activity_safely
from deptcms.application.services.category_service import CategoryService
from deptcms.domain.event import AUDITED_FIELDS, Event, EventFilters, EventStatus, EventType
from deptcms.infrastructure.realtime import (
    Subscription,
    TableChange,
    TableChangeFeed,
    get_default_feed,
)
from deptcms.infrastructure.stores.models import Base, EventModel
from deptcms.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from deptcms.infrastructure.stores.transforms import (
    event_from_row,
    event_patch_to_row,
    event_to_row,
)
from deptcms.utils.actor_context import get_current_actor
from deptcms.utils.logging_config import LogFiles, Logger

EVENTS_TABLE = "events"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _start_of_today() -> datetime:
    """Local midnight of the current day, as a UTC instant."""
    local_now = datetime.now().astimezone()
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


class EventService:
    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        auto_create_schema: bool = True,
        session_provider: Optional[SessionProvider] = None,
        category_service: Optional[CategoryService] = None,
        activity_service: Optional[ActivityService] = None,
        change_feed: Optional[TableChangeFeed] = None,
    ):
        self._provider = session_provider or SessionProvider(db_url or get_db_url())
        self.db_url = self._provider.db_url
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

        self.categories = category_service or CategoryService(
            session_provider=self._provider, auto_create_schema=False
        )
        self.activity = activity_service or ActivityService(
            session_provider=self._provider, auto_create_schema=False
        )
        self.feed = change_feed or get_default_feed()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_events(self, filters: Optional[EventFilters] = None) -> List[Event]:
        filters = filters or EventFilters()
        query = select(EventModel)

        if filters.status:
            query = query.where(EventModel.status == filters.status)
        if filters.type:
            query = query.where(EventModel.type == filters.type)
        if filters.category_id:
            query = query.where(EventModel.category_id == filters.category_id)
        if filters.featured is not None:
            query = query.where(EventModel.featured == bool(filters.featured))
        if filters.upcoming:
            query = query.where(EventModel.date >= _start_of_today())

        query = query.order_by(EventModel.date.asc())
        if filters.limit:
            query = query.limit(int(filters.limit))

        try:
            with self._provider.session() as session:
                rows = [row.to_row() for row in session.execute(query).scalars()]
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch events: {exc}") from exc
        return self._hydrate(rows)

    def get_event(self, event_id: str) -> Event:
        try:
            with self._provider.session() as session:
                row = session.get(EventModel, event_id)
                data = row.to_row() if row else None
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch event: {exc}") from exc
        if data is None:
            raise RecordNotFoundError("event", event_id)
        return self._hydrate([data])[0]

    def get_upcoming_events(self, limit: int = 10) -> List[Event]:
        return self.get_events(
            EventFilters(status=EventStatus.PUBLISHED.value, upcoming=True, limit=limit)
        )

    def get_featured_events(self, limit: int = 3) -> List[Event]:
        return self.get_events(
            EventFilters(status=EventStatus.PUBLISHED.value, featured=True, limit=limit)
        )

    def get_events_by_type(self, event_type: str, limit: Optional[int] = None) -> List[Event]:
        return self.get_events(
            EventFilters(
                status=EventStatus.PUBLISHED.value, type=EventType(event_type).value, limit=limit
            )
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_event(self, event: Any, *, created_by: Optional[str] = None) -> Event:
        """
        Insert an event from an ``Event`` or a mapping of its attributes.

        ``created_by`` defaults to the current actor. Missing required fields
        raise ``KeyError`` before anything is written.
        """
        values = event_to_row(event, created_by=created_by or get_current_actor())
        now = _utcnow()
        try:
            with self._provider.session() as session:
                row = EventModel(**EventModel.row_values(values), created_at=now, updated_at=now)
                session.add(row)
                session.commit()
                data = row.to_row()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to create event: {exc}") from exc

        Logger.info(f"Created event {data['id']} title={data['title']!r}", file=LogFiles.EVENTS)
        log_activity_safely(
            self.activity,
            "create",
            "event",
            data["id"],
            {"title": data["title"], "status": data["status"]},
        )
        self._publish("INSERT", data)
        return self._hydrate([data])[0]

    def update_event(self, event_id: str, updates: Mapping[str, Any]) -> Event:
        """
        Apply a sparse patch.

        Text, date, ``type`` and ``status`` fields are taken only when truthy;
        the remaining fields are taken whenever their key is present, which
        lets callers clear them with ``None``.
        """
        payload = event_patch_to_row(updates)
        try:
            with self._provider.session() as session:
                row = session.get(EventModel, event_id)
                if row is None:
                    raise RecordNotFoundError("event", event_id)
                previous = row.to_row()
                for key, value in EventModel.row_values(payload).items():
                    setattr(row, key, value)
                row.updated_at = _utcnow()
                session.commit()
                data = row.to_row()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to update event: {exc}") from exc

        changes = self._diff(previous, data)
        Logger.info(
            f"Updated event {event_id} fields={sorted(payload)} changes={sorted(changes)}",
            file=LogFiles.EVENTS,
        )
        log_activity_safely(
            self.activity,
            "update",
            "event",
            event_id,
            {"title": data["title"], "changes": changes},
        )
        self._publish("UPDATE", data)
        return self._hydrate([data])[0]

    def delete_event(self, event_id: str) -> bool:
        try:
            with self._provider.session() as session:
                row = session.get(EventModel, event_id)
                previous = row.to_row() if row else None
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to delete event: {exc}") from exc

        if previous is not None:
            Logger.info(f"Deleted event {event_id}", file=LogFiles.EVENTS)
            log_activity_safely(
                self.activity, "delete", "event", event_id, {"title": previous["title"]}
            )
            self._publish("DELETE", previous)
        return True

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    def subscribe_to_events(self, callback: Callable[[List[Event]], None]) -> Subscription:
        """
        Call ``callback`` with the full published-events list after every
        change to the events table.
        """

        def _on_change(change: TableChange) -> None:
            try:
                events = self.get_events(EventFilters(status=EventStatus.PUBLISHED.value))
            except DataAccessError as exc:
                Logger.error(
                    f"Refetch after {change.change_type} on events failed: {exc}",
                    file=LogFiles.EVENTS,
                )
                return
            callback(events)

        return self.feed.subscribe(EVENTS_TABLE, _on_change)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _hydrate(self, rows: List[Dict[str, Any]]) -> List[Event]:
        categories = self.categories.get_categories_by_ids(row.get("category_id") for row in rows)
        return [event_from_row(row, categories.get(row.get("category_id"))) for row in rows]

    def _publish(self, change_type: str, row: Dict[str, Any]) -> None:
        self.feed.publish(TableChange(EVENTS_TABLE, change_type, row.get("id"), dict(row)))

    @staticmethod
    def _diff(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        return {
            name: {"from": before.get(name), "to": after.get(name)}
            for name in AUDITED_FIELDS
            if before.get(name) != after.get(name)
        }
