from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
)
from pydantic.alias_generators import to_camel

# Closed set of shapes a stored setting may take; strict, so "1" is not a bool
SettingValue = Union[
    StrictBool, StrictInt, StrictFloat, StrictStr, List[StrictStr], Dict[str, StrictStr]
]

_setting_value_adapter: TypeAdapter[Any] = TypeAdapter(SettingValue)


def validate_setting_value(value: Any) -> Any:
    """Reject values outside the closed setting union (raises pydantic.ValidationError)."""
    return _setting_value_adapter.validate_python(value)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactAddress(_CamelModel):
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class SocialMedia(_CamelModel):
    facebook: str = ""
    twitter: str = ""
    instagram: str = ""
    linkedin: str = ""


class SettingsData(_CamelModel):
    """Fixed-shape site settings assembled from the sparse admin_settings table."""

    site_name: str
    site_url: str
    default_registration_url: str
    email_notifications: bool
    auto_publish_events: bool
    allow_guest_registration: bool
    maintenance_mode: bool
    max_events_per_page: int
    hero_texts: List[str]
    contact_email: str
    admissions_email: str
    contact_phones: List[str]
    contact_address: ContactAddress
    support_hours: str
    social_media: SocialMedia


# Keys whose stored value is ignored only when absent or null. Every other key
# also falls back to its default on False, an empty string or zero; lists and
# maps, empty or not, are always taken as stored.
NULLISH_FALLBACK_KEYS = frozenset(
    {"email_notifications", "auto_publish_events", "allow_guest_registration", "maintenance_mode"}
)

DEFAULT_SETTINGS: Mapping[str, Any] = {
    "site_name": "AIESR - Amity Institute of English Studies & Research",
    "site_url": "https://aiesr-website.vercel.app",
    "default_registration_url": "",
    "email_notifications": True,
    "auto_publish_events": False,
    "allow_guest_registration": True,
    "maintenance_mode": False,
    "max_events_per_page": 10,
    "hero_texts": [
        "Where Words Come Alive",
        "Craft Your Literary Legacy",
        "Discover the Power of Language",
        "Shape Your Future in Literature",
    ],
    "contact_email": "info@aiesr.edu",
    "admissions_email": "admissions@aiesr.amity.edu",
    "contact_phones": ["+91 612 2346789", "+91 612 2346790"],
    "contact_address": {
        "line1": "Amity University Campus",
        "line2": "Patna, Bihar",
        "city": "Patna",
        "state": "Bihar",
        "zipCode": "800014",
    },
    "support_hours": "9 AM - 6 PM, Monday to Saturday",
    "social_media": {"facebook": "", "twitter": "", "instagram": "", "linkedin": ""},
}


@dataclass
class AdminSetting:
    id: str
    key: str
    value: Any
    category: str
    is_public: bool
    created_at: str
    updated_at: str
    description: Optional[str] = None
    updated_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "description": self.description,
            "category": self.category,
            "is_public": self.is_public,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "updated_by": self.updated_by,
        }

