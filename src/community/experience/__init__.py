"""Community experience signals.

This package implements:
- Trending topics, suggested connections and member listings
- Events with RSVPs and iCalendar export
- Devotion practice logging with streak, level and meter
- Daily readings
- Live/fallback data sources behind a single service
"""

from src.community.experience.fallback import FallbackStore
from src.community.experience.models import (
    CommunityMemberDto,
    DailyReadingDto,
    DevotionLogDto,
    DevotionPracticeDto,
    DevotionSummaryDto,
    EventDraft,
    EventDto,
    EventFilters,
    Page,
    PostRecord,
    PracticeIntensity,
    PracticeTotals,
    RsvpStatus,
    SuggestedConnectionDto,
    TrendingTopicDto,
    UserProfile,
)
from src.community.experience.pagination import PaginationCodec
from src.community.experience.repository import (
    CommunityRepository,
    PostgresCommunityRepository,
)
from src.community.experience.service import ExperienceService
from src.community.experience.sources import (
    DataSource,
    FallbackDataSource,
    LiveDataSource,
)

__all__ = [
    "CommunityMemberDto",
    "CommunityRepository",
    "DailyReadingDto",
    "DataSource",
    "DevotionLogDto",
    "DevotionPracticeDto",
    "DevotionSummaryDto",
    "EventDraft",
    "EventDto",
    "EventFilters",
    "ExperienceService",
    "FallbackDataSource",
    "FallbackStore",
    "LiveDataSource",
    "Page",
    "PaginationCodec",
    "PostRecord",
    "PostgresCommunityRepository",
    "PracticeIntensity",
    "PracticeTotals",
    "RsvpStatus",
    "SuggestedConnectionDto",
    "TrendingTopicDto",
    "UserProfile",
]
