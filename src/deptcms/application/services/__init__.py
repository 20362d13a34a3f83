from deptcms.application.services.activity_service import ActivityService
from deptcms.application.services.category_service import CategoryService
from deptcms.application.services.event_service import EventService
from deptcms.application.services.research_service import ResearchService
from deptcms.application.services.settings_service import SettingsService

__all__ = [
    "ActivityService",
    "CategoryService",
    "EventService",
    "ResearchService",
    "SettingsService",
]
