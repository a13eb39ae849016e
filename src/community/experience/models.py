"""Community experience models.

DTOs returned to callers (TrendingTopicDto, SuggestedConnectionDto,
CommunityMemberDto, EventDto, DevotionSummaryDto, ...) and the records
exchanged with data sources (PostRecord, UserProfile, EventRecord,
AttendeeRecord, FollowEdge). DTOs are rebuilt on every call; none of the
derived figures are persisted as entities of their own.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


T = TypeVar("T")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RsvpStatus(str, Enum):
    """Attendance intent for an event."""

    GOING = "going"
    INTERESTED = "interested"
    NOT_GOING = "not_going"


class PracticeIntensity(str, Enum):
    LIGHT = "light"
    MEDIUM = "medium"
    INTENSE = "intense"


# =============================================================================
# Store records
# =============================================================================


class PostRecord(BaseModel):
    """A community post as far as trending and ingestion need it."""

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    content: str = ""
    spiritual_topic: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    likes_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class UserProfile(BaseModel):
    """Public profile fields of a community member."""

    id: str = Field(..., min_length=1)
    full_name: str
    spiritual_path: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    avatar_url: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    vedic_qualifications: List[str] = Field(default_factory=list)
    spiritual_qualifications: List[str] = Field(default_factory=list)
    years_of_experience: Optional[int] = None
    areas_of_guidance: List[str] = Field(default_factory=list)
    languages_spoken: List[str] = Field(default_factory=list)
    introduction: Optional[str] = None


class FollowEdge(BaseModel):
    """follower_id follows followee_id."""

    follower_id: str
    followee_id: str


class EventRecord(BaseModel):
    """A stored event without per-viewer attendance figures."""

    id: str = Field(..., min_length=1)
    creator_id: str
    title: str
    description: Optional[str] = None
    start_at: datetime
    end_at: Optional[datetime] = None
    location: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    capacity: Optional[int] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None


class AttendeeRecord(BaseModel):
    event_id: str
    user_id: str
    status: RsvpStatus


# =============================================================================
# Inputs
# =============================================================================


class EventDraft(BaseModel):
    """Validated input for creating an event."""

    model_config = ConfigDict(str_strip_whitespace=True)

    creator_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=3)
    description: Optional[str] = None
    start_at: datetime
    end_at: Optional[datetime] = None
    location: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    capacity: Optional[int] = Field(default=None, gt=0)

    @field_validator("start_at", "end_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_time_order(self) -> "EventDraft":
        if self.end_at is not None and self.end_at < self.start_at:
            raise ValueError("end_at must not be before start_at")
        return self


class EventFilters(BaseModel):
    """Filters for listing upcoming events."""

    interest: Optional[str] = None
    start_after: Optional[datetime] = None
    attending: bool = False
    user_id: Optional[str] = None

    @field_validator("start_after")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None


# =============================================================================
# DTOs
# =============================================================================


class TrendingTopicDto(BaseModel):
    """A topic's activity over the trending window.

    Attributes:
        topic: Case-folded topic key.
        post_count: Posts in the window mentioning the topic.
        like_count: Likes on those posts.
        velocity_score: Recency-weighted activity score, 2 decimals.
        sentiment: Optional editorial label (sample data only).
    """

    topic: str
    post_count: int = 0
    like_count: int = 0
    velocity_score: float = 0.0
    sentiment: Optional[str] = None


class SuggestedConnectionDto(BaseModel):
    id: str
    full_name: str
    spiritual_path: Optional[str] = None
    location: Optional[str] = None
    shared_interests: List[str] = Field(default_factory=list)
    mutual_followers: int = 0
    avatar_url: Optional[str] = None
    is_following: bool = False
    vedic_qualifications: List[str] = Field(default_factory=list)
    spiritual_qualifications: List[str] = Field(default_factory=list)
    years_of_experience: Optional[int] = None
    areas_of_guidance: List[str] = Field(default_factory=list)
    languages_spoken: List[str] = Field(default_factory=list)
    introduction: Optional[str] = None


class CommunityMemberDto(BaseModel):
    id: str
    full_name: str
    spiritual_path: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    avatar_url: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    vedic_qualifications: List[str] = Field(default_factory=list)
    spiritual_qualifications: List[str] = Field(default_factory=list)
    years_of_experience: Optional[int] = None
    areas_of_guidance: List[str] = Field(default_factory=list)
    languages_spoken: List[str] = Field(default_factory=list)
    introduction: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "CommunityMemberDto":
        return cls.model_validate(profile.model_dump())


class EventDto(BaseModel):
    """An event as seen by a particular viewer."""

    id: str
    creator_id: str
    title: str
    description: Optional[str] = None
    start_at: datetime
    end_at: Optional[datetime] = None
    location: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    capacity: Optional[int] = None
    attendees_count: int = 0
    is_attending: bool = False


class DevotionPracticeDto(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    base_points: int
    icon: Optional[str] = None


class DevotionLogDto(BaseModel):
    """One logged practice. Logs are append-only per user."""

    id: str
    practice_id: str
    performed_at: datetime
    points_awarded: int
    notes: Optional[str] = None

    @field_validator("performed_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class PracticeTotals(BaseModel):
    """Aggregates over every log a user has, read from the durable store.

    Attributes:
        log_count: Number of logs.
        total_points: Sum of points_awarded.
        practice_days: Distinct UTC days with at least one log, newest first.
    """

    log_count: int = 0
    total_points: int = 0
    practice_days: List[date] = Field(default_factory=list)


class DevotionSummaryDto(BaseModel):
    """Fold over a user's devotion logs.

    Attributes:
        total_points: Sum of points_awarded.
        streak: Consecutive practice days ending today or yesterday.
        level: total_points // 100 + 1.
        meter: total_points % 100.
        last_practiced_at: Most recent log time, if any.
        recent_logs: Up to ten most recent logs, newest first.
    """

    total_points: int = 0
    streak: int = 0
    level: int = 1
    meter: int = 0
    last_practiced_at: Optional[datetime] = None
    recent_logs: List[DevotionLogDto] = Field(default_factory=list)


class DailyReadingDto(BaseModel):
    id: str
    title: str
    body: str
    source_url: Optional[str] = None
    path: str = "general"
    difficulty: Optional[str] = None
    recommended_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    summary: Optional[str] = None


class Page(BaseModel, Generic[T]):
    """A page of items with an opaque cursor for the next page."""

    items: List[T] = Field(default_factory=list)
    next_cursor: Optional[str] = None
