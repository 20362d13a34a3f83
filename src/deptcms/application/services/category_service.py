# src/deptcms/application/services/category_service.py
"""
Event category lookups and admin maintenance.

Every method is fail-soft: errors are logged to the categories log and
turned into ``[]``, ``{}``, ``None`` or ``False``. Callers cannot tell
"nothing there" from "the query failed".
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import delete, func, select, update

from deptcms.domain.category import (
    COLOR_CLASSES,
    Category,
    CategoryWithCount,
    generate_slug,
)
from deptcms.infrastructure.stores.models import Base, CategoryModel, EventModel
from deptcms.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from deptcms.infrastructure.stores.transforms import (
    category_from_row,
    category_patch_to_row,
    category_to_row,
)
from deptcms.utils.actor_context import get_current_actor
from deptcms.utils.logging_config import LogFiles, Logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CategoryService:
    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        auto_create_schema: bool = True,
        session_provider: Optional[SessionProvider] = None,
    ):
        self._provider = session_provider or SessionProvider(db_url or get_db_url())
        self.db_url = self._provider.db_url
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    generate_slug = staticmethod(generate_slug)

    @staticmethod
    def get_available_color_classes() -> List[Dict[str, str]]:
        return [dict(item) for item in COLOR_CLASSES]

    def get_active_categories(self) -> List[Category]:
        try:
            return self._list(CategoryModel.is_active.is_(True))
        except Exception as exc:
            Logger.error(f"Error fetching active categories: {exc}", file=LogFiles.CATEGORIES)
            return []

    def get_all_categories(self) -> List[Category]:
        try:
            return self._list()
        except Exception as exc:
            Logger.error(f"Error fetching all categories: {exc}", file=LogFiles.CATEGORIES)
            return []

    def get_category_by_id(self, category_id: str) -> Optional[Category]:
        try:
            return self._get_one(CategoryModel.id == category_id)
        except Exception as exc:
            Logger.error(f"Error fetching category by ID: {exc}", file=LogFiles.CATEGORIES)
            return None

    def get_category_by_slug(self, slug: str) -> Optional[Category]:
        try:
            return self._get_one(CategoryModel.slug == slug)
        except Exception as exc:
            Logger.error(f"Error fetching category by slug: {exc}", file=LogFiles.CATEGORIES)
            return None

    def get_categories_by_ids(self, category_ids: Iterable[str]) -> Dict[str, Category]:
        """Fetch several categories with one ``IN`` query, keyed by id."""
        ids = sorted({cid for cid in category_ids if cid})
        if not ids:
            return {}
        try:
            with self._provider.session() as session:
                rows = session.execute(
                    select(CategoryModel).where(CategoryModel.id.in_(ids))
                ).scalars()
                return {row.id: category_from_row(row.to_row()) for row in rows}
        except Exception as exc:
            Logger.error(f"Error fetching categories by IDs: {exc}", file=LogFiles.CATEGORIES)
            return {}

    def create_category(self, data: Mapping[str, Any]) -> Optional[Category]:
        try:
            values = category_to_row(data)
            values.setdefault("created_by", get_current_actor())
            now = _utcnow()
            with self._provider.session() as session:
                row = CategoryModel(
                    **CategoryModel.row_values(values), created_at=now, updated_at=now
                )
                session.add(row)
                session.commit()
                Logger.info(f"Created category {row.slug} ({row.id})", file=LogFiles.CATEGORIES)
                return category_from_row(row.to_row())
        except Exception as exc:
            Logger.error(f"Error creating category: {exc}", file=LogFiles.CATEGORIES)
            return None

    def update_category(self, category_id: str, updates: Mapping[str, Any]) -> Optional[Category]:
        """
        Apply a sparse patch and return the stored category.

        An empty patch writes nothing; the current row is returned unchanged.
        """
        try:
            payload = category_patch_to_row(updates)
            with self._provider.session() as session:
                row = session.get(CategoryModel, category_id)
                if row is None:
                    Logger.warning(
                        f"Category not found for update: {category_id}", file=LogFiles.CATEGORIES
                    )
                    return None
                if payload:
                    for key, value in payload.items():
                        setattr(row, key, value)
                    row.updated_at = _utcnow()
                    session.commit()
                return category_from_row(row.to_row())
        except Exception as exc:
            Logger.error(f"Error updating category: {exc}", file=LogFiles.CATEGORIES)
            return None

    def delete_category(self, category_id: str) -> bool:
        try:
            with self._provider.session() as session:
                session.execute(delete(CategoryModel).where(CategoryModel.id == category_id))
                session.commit()
            return True
        except Exception as exc:
            Logger.error(f"Error deleting category: {exc}", file=LogFiles.CATEGORIES)
            return False

    def is_slug_available(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        """True when no category other than ``exclude_id`` uses ``slug``."""
        try:
            query = select(CategoryModel.id).where(CategoryModel.slug == slug)
            if exclude_id:
                query = query.where(CategoryModel.id != exclude_id)
            with self._provider.session() as session:
                return session.execute(query.limit(1)).first() is None
        except Exception as exc:
            Logger.error(f"Error checking slug availability: {exc}", file=LogFiles.CATEGORIES)
            return False

    def get_categories_with_event_counts(self) -> List[CategoryWithCount]:
        event_count = func.count(EventModel.id).label("event_count")
        query = (
            select(CategoryModel, event_count)
            .outerjoin(EventModel, EventModel.category_id == CategoryModel.id)
            .where(CategoryModel.is_active.is_(True))
            .group_by(CategoryModel.id)
            .order_by(CategoryModel.sort_order.asc())
        )
        try:
            with self._provider.session() as session:
                results = []
                for row, count in session.execute(query).all():
                    category = category_from_row(row.to_row())
                    results.append(CategoryWithCount(**vars(category), event_count=int(count or 0)))
                return results
        except Exception as exc:
            Logger.error(
                f"Error fetching categories with event counts: {exc}", file=LogFiles.CATEGORIES
            )
            return []

    def reorder_categories(self, category_ids: List[str]) -> bool:
        """Set ``sort_order`` to each id's position; all-or-nothing."""
        try:
            with self._provider.session() as session:
                for index, category_id in enumerate(category_ids):
                    result = session.execute(
                        update(CategoryModel)
                        .where(CategoryModel.id == category_id)
                        .values(sort_order=index, updated_at=_utcnow())
                    )
                    if not result.rowcount:
                        session.rollback()
                        Logger.error(
                            f"Error reordering categories: unknown id {category_id}",
                            file=LogFiles.CATEGORIES,
                        )
                        return False
                session.commit()
            return True
        except Exception as exc:
            Logger.error(f"Error reordering categories: {exc}", file=LogFiles.CATEGORIES)
            return False

    def _list(self, *predicates) -> List[Category]:
        with self._provider.session() as session:
            rows = session.execute(
                select(CategoryModel)
                .where(*predicates)
                .order_by(CategoryModel.sort_order.asc(), CategoryModel.name.asc())
            ).scalars()
            return [category_from_row(row.to_row()) for row in rows]

    def _get_one(self, predicate) -> Optional[Category]:
        with self._provider.session() as session:
            row = session.execute(select(CategoryModel).where(predicate).limit(1)).scalars().first()
            return category_from_row(row.to_row()) if row else None
