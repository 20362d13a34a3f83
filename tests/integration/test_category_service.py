"""
CategoryService integration tests against a temporary SQLite database.
"""

import pytest

from deptcms.application.services.category_service import CategoryService
from deptcms.application.services.event_service import EventService
from deptcms.infrastructure.realtime import TableChangeFeed


@pytest.fixture
def categories(db_url):
    return CategoryService(db_url=db_url)


def _seed(categories: CategoryService):
    workshops = categories.create_category(
        {"name": "Workshops", "color_class": "bg-green-100 text-green-800", "sort_order": 2}
    )
    seminars = categories.create_category({"name": "Seminars", "sort_order": 1})
    archive = categories.create_category({"name": "Archive", "sort_order": 0, "is_active": False})
    return workshops, seminars, archive


class TestCategoryReads:
    def test_active_and_all_are_ordered_by_sort_order(self, categories):
        workshops, seminars, archive = _seed(categories)

        assert [c.slug for c in categories.get_active_categories()] == ["seminars", "workshops"]
        assert [c.id for c in categories.get_all_categories()] == [
            archive.id,
            seminars.id,
            workshops.id,
        ]

    def test_lookup_by_id_and_slug(self, categories):
        workshops, _, _ = _seed(categories)

        assert categories.get_category_by_id(workshops.id).name == "Workshops"
        assert categories.get_category_by_slug("workshops").id == workshops.id
        assert categories.get_category_by_slug("missing") is None
        assert categories.get_category_by_id("00000000-0000-0000-0000-000000000000") is None

    def test_get_categories_by_ids_skips_blanks(self, categories):
        workshops, seminars, _ = _seed(categories)

        found = categories.get_categories_by_ids([workshops.id, None, seminars.id, workshops.id])

        assert set(found) == {workshops.id, seminars.id}
        assert categories.get_categories_by_ids([]) == {}


class TestCategoryWrites:
    def test_create_applies_defaults(self, categories):
        created = categories.create_category({"name": "Guest Lectures"})

        assert created.slug == "guest-lectures"
        assert created.color_class == "bg-gray-100 text-gray-800"
        assert created.icon_emoji == "📅"
        assert created.is_active is True
        assert created.sort_order == 0
        assert created.description is None

    def test_duplicate_slug_fails_soft(self, categories):
        categories.create_category({"name": "Seminars"})

        assert categories.create_category({"name": "Seminars"}) is None

    def test_empty_update_returns_current_row(self, categories):
        workshops, _, _ = _seed(categories)

        unchanged = categories.update_category(workshops.id, {})

        assert unchanged.name == "Workshops"
        assert unchanged.updated_at == workshops.updated_at

    def test_update_writes_description_none_and_skips_empty_name(self, categories):
        created = categories.create_category({"name": "Readings", "description": "Weekly"})

        updated = categories.update_category(
            created.id, {"name": "", "description": None, "icon_emoji": "📚"}
        )

        assert updated.name == "Readings"
        assert updated.description is None
        assert updated.icon_emoji == "📚"
        assert updated.updated_at >= created.updated_at

    def test_update_unknown_id_returns_none(self, categories):
        assert categories.update_category("nope", {"name": "X"}) is None

    def test_slug_availability_follows_delete(self, categories):
        workshops, _, _ = _seed(categories)

        assert categories.is_slug_available("workshops") is False
        assert categories.is_slug_available("workshops", exclude_id=workshops.id) is True
        assert categories.delete_category(workshops.id) is True
        assert categories.is_slug_available("workshops") is True

    def test_reorder_sets_positions(self, categories):
        workshops, seminars, archive = _seed(categories)

        assert categories.reorder_categories([workshops.id, archive.id, seminars.id]) is True

        ordered = categories.get_all_categories()
        assert [c.id for c in ordered] == [workshops.id, archive.id, seminars.id]
        assert [c.sort_order for c in ordered] == [0, 1, 2]

    def test_reorder_with_unknown_id_changes_nothing(self, categories):
        workshops, seminars, _ = _seed(categories)

        assert categories.reorder_categories([workshops.id, "missing", seminars.id]) is False

        assert categories.get_category_by_id(workshops.id).sort_order == 2
        assert categories.get_category_by_id(seminars.id).sort_order == 1


def test_event_counts_include_empty_active_categories(db_url, categories):
    workshops, seminars, archive = _seed(categories)
    events = EventService(db_url=db_url, category_service=categories, change_feed=TableChangeFeed())
    for title in ("Close Reading", "Translation Lab"):
        events.create_event(
            {
                "title": title,
                "description": "d",
                "short_description": "s",
                "date": "2030-01-10T10:00:00+00:00",
                "location": "Room 2",
                "category_id": workshops.id,
            },
            created_by="admin-1",
        )

    counts = {c.id: c.event_count for c in categories.get_categories_with_event_counts()}

    assert counts == {seminars.id: 0, workshops.id: 2}
    assert archive.id not in counts


def test_helpers_need_no_database():
    assert CategoryService.generate_slug("Book Club & Readings") == "book-club-readings"
    colors = CategoryService.get_available_color_classes()
    assert len(colors) == 10
    assert colors[0] == {
        "value": "bg-blue-100 text-blue-800",
        "label": "Blue",
        "preview": "bg-blue-100",
    }
