from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHEN_RUNS = re.compile(r"-+")

COLOR_CLASSES: List[Dict[str, str]] = [
    {"value": "bg-blue-100 text-blue-800", "label": "Blue", "preview": "bg-blue-100"},
    {"value": "bg-purple-100 text-purple-800", "label": "Purple", "preview": "bg-purple-100"},
    {"value": "bg-green-100 text-green-800", "label": "Green", "preview": "bg-green-100"},
    {"value": "bg-orange-100 text-orange-800", "label": "Orange", "preview": "bg-orange-100"},
    {"value": "bg-red-100 text-red-800", "label": "Red", "preview": "bg-red-100"},
    {"value": "bg-yellow-100 text-yellow-800", "label": "Yellow", "preview": "bg-yellow-100"},
    {"value": "bg-pink-100 text-pink-800", "label": "Pink", "preview": "bg-pink-100"},
    {"value": "bg-indigo-100 text-indigo-800", "label": "Indigo", "preview": "bg-indigo-100"},
    {"value": "bg-teal-100 text-teal-800", "label": "Teal", "preview": "bg-teal-100"},
    {"value": "bg-gray-100 text-gray-800", "label": "Gray", "preview": "bg-gray-100"},
]


def generate_slug(name: str) -> str:
    """
    Normalize a display name into a URL-safe slug.

    Only ``[a-z0-9-]`` survives; whitespace becomes a single hyphen and the
    result never starts or ends with one, so the function is idempotent.
    """
    text = _NON_SLUG_CHARS.sub("", (name or "").lower())
    text = _WHITESPACE.sub("-", text.strip())
    return _HYPHEN_RUNS.sub("-", text).strip("-")


@dataclass
class Category:
    id: str
    name: str
    slug: str
    color_class: str
    icon_emoji: str
    is_active: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    created_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "color_class": self.color_class,
            "icon_emoji": self.icon_emoji,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "created_by": self.created_by,
        }


@dataclass
class CategoryWithCount(Category):
    event_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["eventCount"] = self.event_count
        return payload
