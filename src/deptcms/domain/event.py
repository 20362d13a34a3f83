# src/deptcms/domain/event.py
"""
Event domain models.

- Event: application-facing event with its category hydrated
- ScheduleItem: one entry of an event's ordered programme
- EventStatus / EventType: closed value sets for status and the legacy type
- EventFilters: listing filters for EventService.get_events
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from deptcms.domain.category import Category


class EventStatus(str, Enum):
    """Publication status. Any status may follow any other."""

    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class EventType(str, Enum):
    """Legacy event type, superseded by categories but still readable and writable."""

    ACADEMIC = "academic"
    CULTURAL = "cultural"
    RESEARCH = "research"
    WORKSHOP = "workshop"


@dataclass
class ScheduleItem:
    time: str
    title: str
    description: str = ""
    speaker: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleItem":
        return cls(
            time=str(data.get("time") or ""),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            speaker=data.get("speaker") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"time": self.time, "title": self.title}
        if self.speaker is not None:
            payload["speaker"] = self.speaker
        payload["description"] = self.description
        return payload


@dataclass
class Event:
    """
    Application-facing event.

    Unset optional values are ``None``. ``registered_count`` is always 0 here;
    registrations live in an external system.
    """

    id: str
    title: str
    description: str
    short_description: str
    date: datetime
    location: str
    status: EventStatus
    end_date: Optional[datetime] = None
    type: Optional[EventType] = None
    category_id: Optional[str] = None
    category: Optional[Category] = None
    image: Optional[str] = None
    poster_image: Optional[str] = None
    pdf_brochure: Optional[str] = None
    registration_required: bool = True
    registration_link: Optional[str] = None
    custom_registration_link: Optional[str] = None
    registration_deadline: Optional[datetime] = None
    featured: bool = False
    capacity: Optional[int] = None
    registered_count: int = 0
    speakers: Optional[List[str]] = None
    schedule: Optional[List[ScheduleItem]] = None
    tags: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """camelCase payload for page and admin consumers."""

        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "shortDescription": self.short_description,
            "date": _iso(self.date),
            "endDate": _iso(self.end_date),
            "location": self.location,
            "type": self.type.value if self.type else None,
            "category_id": self.category_id,
            "category": self.category.to_dict() if self.category else None,
            "image": self.image,
            "posterImage": self.poster_image,
            "pdfBrochure": self.pdf_brochure,
            "registrationRequired": self.registration_required,
            "registrationLink": self.registration_link,
            "customRegistrationLink": self.custom_registration_link,
            "registrationDeadline": _iso(self.registration_deadline),
            "featured": self.featured,
            "capacity": self.capacity,
            "registeredCount": self.registered_count,
            "speakers": self.speakers,
            "schedule": (
                [item.to_dict() for item in self.schedule] if self.schedule is not None else None
            ),
            "tags": self.tags,
            "status": self.status.value,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


# Fields copied into an update only when truthy; the rest are copied whenever
# the caller supplies the key, so they can be cleared with None.
TRUTHY_PATCH_FIELDS = (
    "title",
    "description",
    "short_description",
    "date",
    "end_date",
    "location",
    "type",
    "registration_deadline",
    "status",
)
PRESENT_PATCH_FIELDS = (
    "category_id",
    "image",
    "poster_image",
    "pdf_brochure",
    "registration_required",
    "registration_link",
    "custom_registration_link",
    "featured",
    "capacity",
    "speakers",
    "schedule",
    "tags",
)
EVENT_FIELDS = frozenset(TRUTHY_PATCH_FIELDS + PRESENT_PATCH_FIELDS)

# Fields compared for the audit entry written on update
AUDITED_FIELDS = ("title", "status", "featured", "date", "location")


@dataclass
class EventFilters:
    """Conjunctive listing filters; ``None`` means "do not filter"."""

    status: Optional[str] = None
    type: Optional[str] = None
    category_id: Optional[str] = None
    featured: Optional[bool] = None
    # date on or after the start of today (local time)
    upcoming: bool = False
    limit: Optional[int] = None
