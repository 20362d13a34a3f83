from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

# Action groups counted by ActivityService.get_activity_stats
SYSTEM_ACTIONS = ("login", "logout", "backup", "update", "system_action")
USER_ACTIONS = ("login", "logout", "profile_update")


@dataclass
class ActivityLog:
    id: str
    action: str
    created_at: str
    admin_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    # {"email": ..., "name": ...} of the acting admin, when known
    admin_user: Optional[Dict[str, Optional[str]]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["admin_users"] = payload.pop("admin_user")
        return payload


@dataclass
class ActivityLogFilters:
    action: Optional[str] = None
    resource_type: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


@dataclass
class ActivityLogPage:
    data: List[ActivityLog] = field(default_factory=list)
    count: int = 0


@dataclass
class ActivityStats:
    total_activities: int = 0
    event_activities: int = 0
    achievement_activities: int = 0
    system_activities: int = 0
    user_activities: int = 0
    recent_activities: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalActivities": self.total_activities,
            "eventActivities": self.event_activities,
            "achievementActivities": self.achievement_activities,
            "systemActivities": self.system_activities,
            "userActivities": self.user_activities,
            "recentActivities": self.recent_activities,
        }
