"""
SettingsService integration tests: raw rows, the structured settings view
and change auditing.
"""

import pytest
from pydantic import ValidationError

from deptcms.application.errors import RecordNotFoundError
from deptcms.application.services.activity_service import ActivityService
from deptcms.application.services.settings_service import SettingsService
from deptcms.domain.activity import ActivityLogFilters
from deptcms.domain.settings import DEFAULT_SETTINGS, SettingsData
from deptcms.utils.actor_context import acting_as


@pytest.fixture
def settings(db_url):
    return SettingsService(db_url=db_url)


def test_formatted_settings_on_empty_table_are_defaults(settings):
    data = settings.get_formatted_settings()

    assert data.model_dump() == SettingsData.model_validate(dict(DEFAULT_SETTINGS)).model_dump()
    assert data.hero_texts[0] == "Where Words Come Alive"
    assert data.contact_address.city == "Patna"


def test_formatted_settings_fallback_rules(settings):
    settings.create_setting("site_name", "")
    settings.create_setting("max_events_per_page", 0)
    settings.create_setting("maintenance_mode", True)
    settings.create_setting("email_notifications", False)
    settings.create_setting("contact_email", "hello@aiesr.edu")
    settings.create_setting("hero_texts", "not a list")

    data = settings.get_formatted_settings()

    assert data.site_name == DEFAULT_SETTINGS["site_name"]
    assert data.max_events_per_page == 10
    assert data.maintenance_mode is True
    assert data.email_notifications is False
    assert data.contact_email == "hello@aiesr.edu"
    assert data.hero_texts == DEFAULT_SETTINGS["hero_texts"]


def test_formatted_settings_keep_empty_lists(settings):
    settings.create_setting("hero_texts", [])
    settings.create_setting("contact_phones", [])

    data = settings.get_formatted_settings()

    assert data.hero_texts == []
    assert data.contact_phones == []

    settings.save_formatted_settings(data.model_copy(update={"hero_texts": ["Welcome"]}))
    cleared = settings.get_formatted_settings().model_copy(update={"hero_texts": []})
    settings.save_formatted_settings(cleared)
    assert settings.get_formatted_settings().hero_texts == []


def test_save_then_read_formatted_settings(settings):
    data = settings.get_formatted_settings().model_copy(
        update={"site_name": "AIESR Patna", "max_events_per_page": 25, "maintenance_mode": True}
    )

    settings.save_formatted_settings(data)

    assert settings.get_formatted_settings().model_dump() == data.model_dump()
    stored = settings.get_setting("contact_address")
    assert stored.value["zipCode"] == "800014"
    assert stored.description == "Setting for contact_address"
    assert stored.category == "general"
    assert stored.is_public is True
    assert settings.get_public_settings()["max_events_per_page"] == 25


def test_save_accepts_camel_case_mapping(settings):
    payload = SettingsData.model_validate(dict(DEFAULT_SETTINGS)).model_dump(by_alias=True)
    payload["siteName"] = "Department of English"

    settings.save_formatted_settings(payload)

    assert settings.get_formatted_settings().site_name == "Department of English"


def test_raw_setting_crud(settings):
    created = settings.create_setting(
        "footer_note", "Est. 1999", description="Footer", category="layout"
    )
    assert created.is_public is False
    assert [s.key for s in settings.get_settings_by_category("layout")] == ["footer_note"]
    assert settings.get_public_settings() == {}

    assert settings.update_setting("footer_note", "Est. 2000").value == "Est. 2000"
    settings.delete_setting("footer_note")
    assert settings.get_setting("footer_note") is None

    with pytest.raises(RecordNotFoundError):
        settings.update_setting("footer_note", "x")


def test_invalid_values_are_rejected(settings):
    with pytest.raises(ValidationError):
        settings.create_setting("bad", {"nested": {"deep": "x"}})
    with pytest.raises(ValidationError):
        settings.update_settings({"site_name": "ok", "phones": [1, 2]})

    assert settings.get_all_settings() == []


def test_update_settings_audits_changed_keys_only(db_url, settings, admin_user):
    admin_id = admin_user()
    activity = ActivityService(db_url=db_url)

    with acting_as(admin_id):
        settings.update_settings({"site_name": "AIESR", "support_hours": "9-5"})
        settings.update_settings({"site_name": "AIESR", "support_hours": "10-6"})

    logs = activity.get_activity_logs(ActivityLogFilters(resource_type="setting")).data
    keys = sorted(log.details["key"] for log in logs)

    assert keys == ["site_name", "support_hours", "support_hours"]
    assert all(log.action == "updated" for log in logs)
    assert settings.get_setting("support_hours").updated_by == admin_id
