"""
Row <-> model translation.

Rows are the wire shape of the hosted database (snake_case columns,
nullable values, ISO-8601 timestamps, JSON blobs). Models are the
application-facing dataclasses in ``deptcms.domain``. Every function here is
pure; hydration of related records is done by the services in batches.
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from deptcms.domain.activity import ActivityLog
from deptcms.domain.category import Category, generate_slug
from deptcms.domain.event import (
    EVENT_FIELDS,
    PRESENT_PATCH_FIELDS,
    TRUTHY_PATCH_FIELDS,
    Event,
    EventStatus,
    EventType,
    ScheduleItem,
)
from deptcms.domain.research import (
    Author,
    Journal,
    PaperAuthor,
    PaperCategory,
    ResearchCategory,
    ResearchPaper,
)
from deptcms.domain.settings import AdminSetting

# Model attribute -> column name, where they differ
_EVENT_COLUMN_NAMES = {
    "image": "image_url",
    "poster_image": "poster_image_url",
    "pdf_brochure": "pdf_brochure_url",
}
_EVENT_INSTANT_FIELDS = frozenset({"date", "end_date", "registration_deadline"})


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, keeping whatever offset it carries."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    return datetime.fromisoformat(text)


def format_instant(value: Any) -> Optional[str]:
    """ISO-8601 text for a datetime or an already-formatted timestamp."""
    parsed = parse_instant(value)
    return parsed.isoformat() if parsed is not None else None


def _model_fields(value: Any) -> Dict[str, Any]:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in fields(value)}
    return dict(value)


def _pick(cls, row: Mapping[str, Any], **extra: Any):
    names = {f.name for f in fields(cls)}
    values = {key: row.get(key) for key in names if key in row}
    values.update(extra)
    return cls(**values)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def category_from_row(row: Mapping[str, Any]) -> Category:
    return Category(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        description=row.get("description") or None,
        color_class=row["color_class"],
        icon_emoji=row["icon_emoji"],
        is_active=bool(row["is_active"]),
        sort_order=int(row["sort_order"] or 0),
        created_at=parse_instant(row["created_at"]),
        updated_at=parse_instant(row["updated_at"]),
        created_by=row.get("created_by") or None,
    )


def category_to_row(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Insert row for a new category; omitted values fall back to column defaults."""
    row: Dict[str, Any] = {
        "name": data["name"],
        "slug": data.get("slug") or generate_slug(data["name"]),
    }
    optional = ("description", "color_class", "icon_emoji", "is_active", "sort_order", "created_by")
    for key in optional:
        if data.get(key) is not None:
            row[key] = data[key]
    return row


def category_patch_to_row(updates: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Sparse update payload.

    ``name``, ``slug``, ``color_class`` and ``icon_emoji`` are copied only when
    truthy. ``description``, ``is_active`` and ``sort_order`` are copied
    whenever the key is present, so an explicit ``None`` is written through.
    """
    payload: Dict[str, Any] = {}
    for key in ("name", "slug", "color_class", "icon_emoji"):
        if updates.get(key):
            payload[key] = updates[key]
    for key in ("description", "is_active", "sort_order"):
        if key in updates:
            payload[key] = updates[key]
    return payload


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def _schedule_to_row(items: Optional[Iterable[Any]]) -> Optional[List[Dict[str, Any]]]:
    if items is None:
        return None
    normalized = []
    for item in items:
        if not isinstance(item, ScheduleItem):
            item = ScheduleItem.from_dict(item)
        normalized.append(item.to_dict())
    return normalized


def _event_column_value(name: str, value: Any) -> Any:
    if name in _EVENT_INSTANT_FIELDS:
        return format_instant(value)
    if name == "type":
        return EventType(value).value if value else None
    if name == "status":
        return EventStatus(value).value
    if name == "schedule":
        return _schedule_to_row(value)
    if name in ("speakers", "tags"):
        return list(value) if value is not None else None
    if name in ("registration_required", "featured"):
        return bool(value) if value is not None else None
    return value


def event_from_row(row: Mapping[str, Any], category: Optional[Category] = None) -> Event:
    """
    Build an Event from its row.

    ``category`` is the already-fetched Category for ``row["category_id"]``;
    it is attached only when the ids match.
    """
    category_id = row.get("category_id") or None
    schedule = row.get("schedule")
    speakers = row.get("speakers")
    tags = row.get("tags")
    registration_required = row.get("registration_required")
    featured = row.get("featured")

    return Event(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        short_description=row["short_description"],
        date=parse_instant(row["date"]),
        end_date=parse_instant(row.get("end_date")),
        location=row["location"],
        type=EventType(row["type"]) if row.get("type") else None,
        category_id=category_id,
        category=category if category is not None and category.id == category_id else None,
        image=row.get("image_url") or None,
        poster_image=row.get("poster_image_url") or None,
        pdf_brochure=row.get("pdf_brochure_url") or None,
        registration_required=(
            True if registration_required is None else bool(registration_required)
        ),
        registration_link=row.get("registration_link") or None,
        custom_registration_link=row.get("custom_registration_link") or None,
        registration_deadline=parse_instant(row.get("registration_deadline")),
        featured=False if featured is None else bool(featured),
        capacity=row.get("capacity"),
        registered_count=0,
        speakers=list(speakers) if speakers is not None else None,
        schedule=(
            [ScheduleItem.from_dict(item) for item in schedule] if schedule is not None else None
        ),
        tags=list(tags) if tags is not None else None,
        status=EventStatus(row.get("status") or EventStatus.DRAFT.value),
        created_at=parse_instant(row.get("created_at")),
        updated_at=parse_instant(row.get("updated_at")),
        created_by=row.get("created_by"),
    )


def event_to_row(event: Any, *, created_by: Optional[str] = None) -> Dict[str, Any]:
    """
    Insert row for an Event or a mapping of Event attribute names.

    ``title``, ``description``, ``short_description``, ``date`` and
    ``location`` must be present; a missing one raises ``KeyError``.
    """
    data = _model_fields(event)
    creator = created_by or data.get("created_by")
    if not creator:
        raise ValueError("created_by is required to create an event")

    registration_required = data.get("registration_required")
    featured = data.get("featured")
    capacity = data.get("capacity")

    return {
        "title": data["title"],
        "description": data["description"],
        "short_description": data["short_description"],
        "date": format_instant(data["date"]),
        "end_date": format_instant(data.get("end_date")),
        "location": data["location"],
        "type": _event_column_value("type", data.get("type")),
        "category_id": data.get("category_id") or None,
        "image_url": data.get("image") or None,
        "poster_image_url": data.get("poster_image") or None,
        "pdf_brochure_url": data.get("pdf_brochure") or None,
        "registration_required": (
            True if registration_required is None else bool(registration_required)
        ),
        "registration_link": data.get("registration_link") or None,
        "custom_registration_link": data.get("custom_registration_link") or None,
        "registration_deadline": format_instant(data.get("registration_deadline")),
        "featured": False if featured is None else bool(featured),
        "capacity": int(capacity) if capacity is not None else None,
        "speakers": _event_column_value("speakers", data.get("speakers")),
        "schedule": _schedule_to_row(data.get("schedule")),
        "tags": _event_column_value("tags", data.get("tags")),
        "status": _event_column_value("status", data.get("status") or EventStatus.DRAFT),
        "created_by": creator,
    }


def event_patch_to_row(updates: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Sparse update payload for an event.

    Fields in ``TRUTHY_PATCH_FIELDS`` are copied only when truthy, so they
    cannot be cleared through an update. Fields in ``PRESENT_PATCH_FIELDS``
    are copied whenever the key is present; ``None`` clears them.
    """
    unknown = set(updates) - EVENT_FIELDS
    if unknown:
        raise ValueError(f"unknown event field(s): {', '.join(sorted(unknown))}")

    payload: Dict[str, Any] = {}
    for name in TRUTHY_PATCH_FIELDS:
        if updates.get(name):
            payload[_EVENT_COLUMN_NAMES.get(name, name)] = _event_column_value(name, updates[name])
    for name in PRESENT_PATCH_FIELDS:
        if name in updates:
            payload[_EVENT_COLUMN_NAMES.get(name, name)] = _event_column_value(name, updates[name])
    return payload


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------


def author_from_row(row: Mapping[str, Any]) -> Author:
    return _pick(Author, row)


def journal_from_row(row: Mapping[str, Any]) -> Journal:
    return _pick(Journal, row)


def research_category_from_row(row: Mapping[str, Any]) -> ResearchCategory:
    return _pick(ResearchCategory, row)


def paper_author_from_row(
    row: Mapping[str, Any], author_row: Optional[Mapping[str, Any]]
) -> PaperAuthor:
    return PaperAuthor(
        id=row["id"],
        paper_id=row["paper_id"],
        author_id=row["author_id"],
        author=author_from_row(author_row) if author_row else None,
        author_order=int(row.get("author_order") or 0),
        is_corresponding=bool(row.get("is_corresponding")),
        created_at=row["created_at"],
    )


def paper_category_from_row(
    row: Mapping[str, Any], category_row: Optional[Mapping[str, Any]]
) -> PaperCategory:
    return PaperCategory(
        id=row["id"],
        paper_id=row["paper_id"],
        category_id=row["category_id"],
        category=research_category_from_row(category_row) if category_row else None,
        created_at=row["created_at"],
    )


def paper_from_row(
    row: Mapping[str, Any],
    *,
    journal_row: Optional[Mapping[str, Any]] = None,
    authors: Sequence[PaperAuthor] = (),
    categories: Sequence[PaperCategory] = (),
) -> ResearchPaper:
    return _pick(
        ResearchPaper,
        row,
        journal=journal_from_row(journal_row) if journal_row else None,
        authors=list(authors),
        categories=list(categories),
    )


# ---------------------------------------------------------------------------
# Settings and activity
# ---------------------------------------------------------------------------


def setting_from_row(row: Mapping[str, Any]) -> AdminSetting:
    return _pick(AdminSetting, row)


def activity_from_row(
    row: Mapping[str, Any], admin_row: Optional[Mapping[str, Any]] = None
) -> ActivityLog:
    admin_user = None
    if admin_row:
        admin_user = {"email": admin_row.get("email"), "name": admin_row.get("name")}
    return _pick(ActivityLog, row, admin_user=admin_user)
