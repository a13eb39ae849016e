"""Community experience service.

Every read goes through one helper, _read, which asks the live source
first under the configured timeout. A live failure of any kind, or an
empty answer, is logged and served by the fallback source instead, so
readers always get a well-formed DTO. Writes go to the source chosen at
construction (live when a durable store is configured) and surface their
errors to the caller.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, TypeVar, Union

import pydantic
import structlog

from src.community.errors import StoreUnavailable, ValidationError
from src.community.experience import scoring
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
    RsvpStatus,
    SuggestedConnectionDto,
    TrendingTopicDto,
)
from src.community.experience.samples import find_practice, practice_catalog
from src.community.experience.sources import DataSource, FallbackDataSource
from src.community.metrics import EngineMetrics


logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_STORE_TIMEOUT = 5.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_empty(result: object) -> bool:
    if result is None:
        return True
    if isinstance(result, Page):
        return not result.items
    if isinstance(result, (list, tuple, set, dict)):
        return not result
    return False


def _require_id(value: Optional[str], field: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


class ExperienceService:
    """Derived community signals over a live or fallback backend.

    Attributes:
        live: Durable-store source, or None in in-memory mode.
        fallback: Source backed by sample data and the fallback store.
        store_timeout: Seconds allowed for each live store call.
    """

    def __init__(
        self,
        fallback_store: FallbackStore,
        live: Optional[DataSource] = None,
        store_timeout: float = DEFAULT_STORE_TIMEOUT,
        metrics: Optional[EngineMetrics] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.live = live
        self.fallback = FallbackDataSource(fallback_store)
        self.store_timeout = store_timeout
        self.metrics = metrics
        self.clock = clock

    @property
    def writer(self) -> DataSource:
        """Source that receives writes."""
        return self.live if self.live is not None else self.fallback

    # -------------------------------------------------------------------------
    # Live / fallback selection
    # -------------------------------------------------------------------------

    async def _read(
        self,
        operation: str,
        call: Callable[[DataSource], Awaitable[T]],
    ) -> T:
        if self.live is not None:
            try:
                result = await asyncio.wait_for(call(self.live), timeout=self.store_timeout)
            except Exception as e:
                logger.warning(
                    "Live read failed, serving fallback",
                    operation=operation,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self._record_fallback(operation, "error")
            else:
                if not _is_empty(result):
                    return result
                logger.warning("Live read was empty, serving fallback", operation=operation)
                self._record_fallback(operation, "empty")

        return await call(self.fallback)

    async def _write(
        self,
        operation: str,
        call: Callable[[DataSource], Awaitable[T]],
    ) -> T:
        source = self.writer
        if source is self.fallback:
            return await call(source)

        try:
            return await asyncio.wait_for(call(source), timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Live write timed out", operation=operation)
            raise StoreUnavailable(
                f"{operation} timed out after {self.store_timeout}s",
                original_error=e,
            ) from e

    def _record_fallback(self, operation: str, reason: str) -> None:
        if self.metrics is not None:
            self.metrics.record_fallback(operation, reason)

    # -------------------------------------------------------------------------
    # Posts and trending
    # -------------------------------------------------------------------------

    async def create_post(self, post: PostRecord) -> PostRecord:
        """Persist a post so it counts toward trending topics."""
        await self._write("create_post", lambda source: source.add_post(post))
        return post

    async def list_trending_topics(
        self, limit: int = 10, window: Optional[str] = None
    ) -> List[TrendingTopicDto]:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        now = self.clock()
        return await self._read(
            "trending_topics",
            lambda source: source.trending_topics(limit, window, now),
        )

    # -------------------------------------------------------------------------
    # Connections and members
    # -------------------------------------------------------------------------

    async def list_suggested_connections(
        self, limit: int = 5, user_id: Optional[str] = None
    ) -> List[SuggestedConnectionDto]:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        return await self._read(
            "suggested_connections",
            lambda source: source.suggested_connections(limit, user_id),
        )

    async def list_community_members(
        self,
        interest: Optional[str] = None,
        limit: int = 10,
        cursor: Optional[str] = None,
    ) -> Page[CommunityMemberDto]:
        """List member profiles, optionally filtered by interest.

        The page size is clamped to 1..50. An unreadable cursor restarts
        from the first page.
        """
        return await self._read(
            "community_members",
            lambda source: source.community_members(interest, limit, cursor),
        )

    async def follow_user(self, follower_id: str, followee_id: str) -> None:
        """Follow a user. Following someone twice has no further effect.

        Raises:
            ValidationError: If either id is blank or the ids are equal.
        """
        follower_id = _require_id(follower_id, "follower_id")
        followee_id = _require_id(followee_id, "followee_id")
        if follower_id == followee_id:
            raise ValidationError("users cannot follow themselves")

        await self._write("follow_user", lambda source: source.follow(follower_id, followee_id))
        logger.info("User followed", follower_id=follower_id, followee_id=followee_id)

    async def unfollow_user(self, follower_id: str, followee_id: str) -> None:
        follower_id = _require_id(follower_id, "follower_id")
        followee_id = _require_id(followee_id, "followee_id")
        await self._write(
            "unfollow_user", lambda source: source.unfollow(follower_id, followee_id)
        )

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def create_event(self, draft: Union[EventDraft, dict]) -> EventDto:
        """Create an event from a draft or a mapping of draft fields.

        Raises:
            ValidationError: If the draft is malformed.
        """
        if not isinstance(draft, EventDraft):
            try:
                draft = EventDraft.model_validate(draft)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid event: {e}", original_error=e) from e

        return await self._write("create_event", lambda source: source.create_event(draft))

    async def list_events(
        self, filters: Optional[EventFilters] = None
    ) -> List[EventDto]:
        """Upcoming events in start order, at most 50."""
        filters = filters or EventFilters()
        now = self.clock()
        return await self._read("list_events", lambda source: source.list_events(filters, now))

    async def rsvp_event(
        self,
        event_id: str,
        user_id: str,
        status: Union[RsvpStatus, str],
    ) -> Optional[EventDto]:
        """Record the user's RSVP and return the event as they now see it.

        Returns:
            Optional[EventDto]: None if the event does not exist.

        Raises:
            ValidationError: If an id is blank or the status is unknown.
        """
        event_id = _require_id(event_id, "event_id")
        user_id = _require_id(user_id, "user_id")
        try:
            status = RsvpStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown RSVP status: {status}", original_error=e) from e

        event = await self._write(
            "rsvp_event", lambda source: source.rsvp_event(event_id, user_id, status)
        )
        if event is None:
            logger.info("RSVP for unknown event", event_id=event_id)
        return event

    async def generate_event_ics(self, event_id: str) -> Optional[str]:
        """Render an event as an iCalendar document, or None if unknown."""
        event = await self._read("event_ics", lambda source: source.get_event(event_id))
        if event is None:
            return None
        return scoring.build_event_ics(event, self.clock())

    # -------------------------------------------------------------------------
    # Devotion
    # -------------------------------------------------------------------------

    def list_devotion_practices(self) -> List[DevotionPracticeDto]:
        return practice_catalog()

    async def log_devotion_practice(
        self,
        user_id: str,
        practice_id: str,
        intensity: Optional[Union[PracticeIntensity, str]] = None,
        notes: Optional[str] = None,
    ) -> DevotionSummaryDto:
        """Append a practice log and return the refreshed summary.

        Points are the practice's base points scaled by intensity. A
        practice missing from the catalog is worth 10 base points.
        """
        user_id = _require_id(user_id, "user_id")
        practice_id = _require_id(practice_id, "practice_id")
        if intensity is not None:
            try:
                intensity = PracticeIntensity(intensity)
            except ValueError as e:
                raise ValidationError(
                    f"Unknown practice intensity: {intensity}", original_error=e
                ) from e

        practice = find_practice(practice_id)
        base_points = practice.base_points if practice else scoring.DEFAULT_PRACTICE_POINTS
        log = DevotionLogDto(
            id=str(uuid.uuid4()),
            practice_id=practice_id,
            performed_at=self.clock(),
            points_awarded=scoring.award_points(base_points, intensity),
            notes=notes,
        )

        await self._write(
            "log_devotion_practice",
            lambda source: source.log_practice(user_id, log, intensity),
        )
        logger.info(
            "Logged devotion practice",
            user_id=user_id,
            practice_id=practice_id,
            points=log.points_awarded,
        )
        return await self.get_devotion_summary(user_id)

    async def get_devotion_summary(self, user_id: str) -> DevotionSummaryDto:
        """Points, level, meter and streak over all of the user's logs."""
        now = self.clock()
        return await self._read(
            "devotion_summary", lambda source: source.devotion_summary(user_id, now)
        )

    # -------------------------------------------------------------------------
    # Readings
    # -------------------------------------------------------------------------

    async def get_daily_reading(self, path: Optional[str] = None) -> DailyReadingDto:
        """Latest reading for a spiritual path, falling back to a sample."""
        now = self.clock()
        return await self._read(
            "daily_reading", lambda source: source.daily_reading(path, now)
        )

    async def mark_reading_complete(self, reading_id: str, user_id: str) -> None:
        reading_id = _require_id(reading_id, "reading_id")
        user_id = _require_id(user_id, "user_id")
        await self._write(
            "mark_reading_complete",
            lambda source: source.mark_reading_complete(reading_id, user_id),
        )
