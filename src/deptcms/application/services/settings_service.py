# src/deptcms/application/services/settings_service.py
"""
Site settings backed by the sparse ``admin_settings`` key/value table.

``get_formatted_settings`` always returns a complete ``SettingsData``: every
key missing from the table (or holding an unusable value) falls back to
``DEFAULT_SETTINGS``. ``save_formatted_settings`` is its inverse and upserts
every key in one transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from deptcms.application.errors import DataAccessError, RecordNotFoundError
from deptcms.application.services.activity_service import ActivityService, log_activity_safely
from deptcms.domain.settings import (
    DEFAULT_SETTINGS,
    NULLISH_FALLBACK_KEYS,
    AdminSetting,
    SettingsData,
    validate_setting_value,
)
from deptcms.infrastructure.stores.models import AdminSettingModel, Base
from deptcms.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from deptcms.infrastructure.stores.transforms import setting_from_row
from deptcms.utils.actor_context import get_current_actor
from deptcms.utils.logging_config import LogFiles, Logger

_FIELD_ADAPTERS: Dict[str, TypeAdapter] = {
    name: TypeAdapter(info.annotation) for name, info in SettingsData.model_fields.items()
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_unset(value: Any) -> bool:
    """None, False, "" or a zero number. Empty lists and maps count as set."""
    if value is None or value is False or value == "":
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0


class SettingsService:
    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        auto_create_schema: bool = True,
        session_provider: Optional[SessionProvider] = None,
        activity_service: Optional[ActivityService] = None,
    ):
        self._provider = session_provider or SessionProvider(db_url or get_db_url())
        self.db_url = self._provider.db_url
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)
        self.activity = activity_service or ActivityService(
            session_provider=self._provider, auto_create_schema=False
        )

    # ------------------------------------------------------------------
    # Raw rows
    # ------------------------------------------------------------------

    def get_all_settings(self) -> List[AdminSetting]:
        return self._select(
            select(AdminSettingModel).order_by(AdminSettingModel.category, AdminSettingModel.key)
        )

    def get_settings_by_category(self, category: str) -> List[AdminSetting]:
        return self._select(
            select(AdminSettingModel)
            .where(AdminSettingModel.category == category)
            .order_by(AdminSettingModel.key)
        )

    def get_setting(self, key: str) -> Optional[AdminSetting]:
        rows = self._select(select(AdminSettingModel).where(AdminSettingModel.key == key).limit(1))
        return rows[0] if rows else None

    def get_public_settings(self) -> Dict[str, Any]:
        """Bare key -> value map of public rows, without defaults."""
        rows = self._select(select(AdminSettingModel).where(AdminSettingModel.is_public.is_(True)))
        return {row.key: row.value for row in rows}

    def create_setting(
        self,
        key: str,
        value: Any,
        description: Optional[str] = None,
        category: str = "general",
        is_public: bool = False,
    ) -> AdminSetting:
        value = validate_setting_value(value)
        now = _utcnow()
        try:
            with self._provider.session() as session:
                row = AdminSettingModel(
                    key=key,
                    value=value,
                    description=description,
                    category=category,
                    is_public=is_public,
                    created_at=now,
                    updated_at=now,
                    updated_by=get_current_actor(),
                )
                session.add(row)
                session.commit()
                return setting_from_row(row.to_row())
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to create setting {key!r}: {exc}") from exc

    def update_setting(self, key: str, value: Any) -> AdminSetting:
        value = validate_setting_value(value)
        try:
            with self._provider.session() as session:
                row = self._find(session, key)
                if row is None:
                    raise RecordNotFoundError("setting", key)
                row.value = value
                row.updated_at = _utcnow()
                row.updated_by = get_current_actor()
                session.commit()
                return setting_from_row(row.to_row())
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to update setting {key!r}: {exc}") from exc

    def update_settings(self, settings: Mapping[str, Any]) -> None:
        """
        Upsert every key, then record one audit entry per key whose value
        changed. Values are validated before anything is written.
        """
        values = {key: validate_setting_value(value) for key, value in settings.items()}
        if not values:
            return

        now = _utcnow()
        actor = get_current_actor()
        changed: List[str] = []
        try:
            with self._provider.session() as session:
                existing = {
                    row.key: row
                    for row in session.execute(
                        select(AdminSettingModel).where(AdminSettingModel.key.in_(list(values)))
                    ).scalars()
                }
                for key, value in values.items():
                    row = existing.get(key)
                    if row is None:
                        row = AdminSettingModel(key=key, created_at=now)
                        session.add(row)
                        changed.append(key)
                    elif row.value != value:
                        changed.append(key)
                    row.value = value
                    row.description = f"Setting for {key}"
                    row.category = "general"
                    row.is_public = True
                    row.updated_at = now
                    row.updated_by = actor
                session.commit()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to save settings: {exc}") from exc

        Logger.info(
            f"Saved {len(values)} settings ({len(changed)} changed)", file=LogFiles.SETTINGS
        )
        for key in changed:
            log_activity_safely(
                self.activity,
                "updated",
                "setting",
                None,
                {"key": key, "new_value": values[key], "timestamp": now.isoformat()},
            )

    def delete_setting(self, key: str) -> None:
        try:
            with self._provider.session() as session:
                session.execute(delete(AdminSettingModel).where(AdminSettingModel.key == key))
                session.commit()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to delete setting {key!r}: {exc}") from exc

    # ------------------------------------------------------------------
    # Structured view
    # ------------------------------------------------------------------

    def get_formatted_settings(self) -> SettingsData:
        stored = {row.key: row.value for row in self.get_all_settings()}
        merged: Dict[str, Any] = {}
        for key, default in DEFAULT_SETTINGS.items():
            value = stored.get(key)
            if key in NULLISH_FALLBACK_KEYS:
                use_default = value is None
            else:
                use_default = _is_unset(value)
            merged[key] = default if use_default else self._coerce(key, value, default)
        return SettingsData.model_validate(merged)

    def save_formatted_settings(self, data: Union[SettingsData, Mapping[str, Any]]) -> None:
        if not isinstance(data, SettingsData):
            data = SettingsData.model_validate(data)
        dumped = data.model_dump(by_alias=True)
        flat = {
            name: dumped[info.alias or name] for name, info in SettingsData.model_fields.items()
        }
        self.update_settings(flat)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce(key: str, value: Any, default: Any) -> Any:
        try:
            _FIELD_ADAPTERS[key].validate_python(value)
        except ValidationError as exc:
            Logger.warning(
                f"Stored setting {key!r} has an unusable value, using default: {exc}",
                file=LogFiles.SETTINGS,
            )
            return default
        return value

    @staticmethod
    def _find(session, key: str) -> Optional[AdminSettingModel]:
        return session.execute(
            select(AdminSettingModel).where(AdminSettingModel.key == key)
        ).scalar_one_or_none()

    def _select(self, query) -> List[AdminSetting]:
        try:
            with self._provider.session() as session:
                return [setting_from_row(row.to_row()) for row in session.execute(query).scalars()]
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch settings: {exc}") from exc
