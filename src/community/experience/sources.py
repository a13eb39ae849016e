"""Data sources behind the experience service.

DataSource is the capability both backends implement. LiveDataSource reads
and writes the durable store through a CommunityRepository;
FallbackDataSource serves deterministic sample data and the in-process
FallbackStore. The experience service picks between them per call.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import structlog

from src.community.errors import NotFound
from src.community.experience import scoring
from src.community.experience.fallback import FallbackStore
from src.community.experience.models import (
    AttendeeRecord,
    CommunityMemberDto,
    DailyReadingDto,
    DevotionLogDto,
    DevotionSummaryDto,
    EventDraft,
    EventDto,
    EventFilters,
    EventRecord,
    Page,
    PostRecord,
    PracticeIntensity,
    RsvpStatus,
    SuggestedConnectionDto,
    TrendingTopicDto,
)
from src.community.experience.pagination import (
    PaginationCodec,
    clamp_page_size,
    paginate,
)
from src.community.experience.repository import CommunityRepository
from src.community.experience.samples import (
    SAMPLE_SUGGESTED_CONNECTIONS,
    SAMPLE_TRENDING_TOPICS,
    sample_reading,
)


logger = structlog.get_logger(__name__)

DEFAULT_TRENDING_SCAN_LIMIT = 1000
EVENT_LIST_LIMIT = 50


class DataSource(ABC):
    """Operations the experience service needs from a backend."""

    name: str = "abstract"

    @abstractmethod
    async def trending_topics(
        self, limit: int, window: Optional[str], now: datetime
    ) -> List[TrendingTopicDto]:
        pass

    @abstractmethod
    async def suggested_connections(
        self, limit: int, user_id: Optional[str]
    ) -> List[SuggestedConnectionDto]:
        pass

    @abstractmethod
    async def community_members(
        self, interest: Optional[str], limit: int, cursor: Optional[str]
    ) -> Page[CommunityMemberDto]:
        pass

    @abstractmethod
    async def add_post(self, post: PostRecord) -> None:
        pass

    @abstractmethod
    async def create_event(self, draft: EventDraft) -> EventDto:
        pass

    @abstractmethod
    async def list_events(self, filters: EventFilters, now: datetime) -> List[EventDto]:
        pass

    @abstractmethod
    async def get_event(self, event_id: str) -> Optional[EventRecord]:
        pass

    @abstractmethod
    async def rsvp_event(
        self, event_id: str, user_id: str, status: RsvpStatus
    ) -> Optional[EventDto]:
        """Upsert an RSVP; None when the event does not exist."""

    @abstractmethod
    async def log_practice(
        self,
        user_id: str,
        log: DevotionLogDto,
        intensity: Optional[PracticeIntensity],
    ) -> None:
        pass

    @abstractmethod
    async def devotion_summary(
        self, user_id: str, now: datetime
    ) -> Optional[DevotionSummaryDto]:
        """Summary over all of the user's logs; None when there are none."""

    @abstractmethod
    async def follow(self, follower_id: str, followee_id: str) -> None:
        pass

    @abstractmethod
    async def unfollow(self, follower_id: str, followee_id: str) -> None:
        pass

    @abstractmethod
    async def daily_reading(
        self, path: Optional[str], now: datetime
    ) -> Optional[DailyReadingDto]:
        pass

    @abstractmethod
    async def mark_reading_complete(self, reading_id: str, user_id: str) -> None:
        pass


def _shared_interests(candidate: List[str], interests: List[str]) -> List[str]:
    wanted = set(interests)
    return [interest for interest in candidate if interest in wanted]


def _event_dtos(
    events: List[EventRecord],
    attendees: List[AttendeeRecord],
    filters: EventFilters,
) -> List[EventDto]:
    by_event: Dict[str, List[AttendeeRecord]] = {}
    for attendee in attendees:
        by_event.setdefault(attendee.event_id, []).append(attendee)

    dtos = [
        scoring.build_event_dto(event, by_event.get(event.id, []), filters.user_id)
        for event in events
    ]
    if filters.attending and filters.user_id:
        dtos = [dto for dto in dtos if dto.is_attending]
    return dtos


# =============================================================================
# Live
# =============================================================================


class LiveDataSource(DataSource):
    """Durable-store backend.

    Attributes:
        repository: Row-level access to the community tables.
        trending_scan_limit: Maximum posts read per trending computation.
    """

    name = "live"

    def __init__(
        self,
        repository: CommunityRepository,
        trending_scan_limit: int = DEFAULT_TRENDING_SCAN_LIMIT,
    ):
        self.repository = repository
        self.trending_scan_limit = trending_scan_limit

    async def trending_topics(
        self, limit: int, window: Optional[str], now: datetime
    ) -> List[TrendingTopicDto]:
        hours = scoring.resolve_window_to_hours(window)
        posts = await self.repository.posts_since(
            now - timedelta(hours=hours), self.trending_scan_limit
        )
        return scoring.compute_trending_topics(posts, now, limit)

    async def suggested_connections(
        self, limit: int, user_id: Optional[str]
    ) -> List[SuggestedConnectionDto]:
        interests: List[str] = []
        following: List[str] = []
        if user_id:
            profile = await self.repository.get_user(user_id)
            if profile is not None:
                interests = profile.interests
            following = await self.repository.following_ids(user_id)

        candidates = await self.repository.recent_users(
            max(limit * 3, limit), exclude_id=user_id
        )

        mutual_counts: Dict[str, int] = {}
        if user_id and candidates:
            edges = await self.repository.follow_edges_to([c.id for c in candidates])
            mutual_counts = scoring.count_mutual_followers(edges, following)

        suggestions = [
            SuggestedConnectionDto(
                id=candidate.id,
                full_name=candidate.full_name,
                spiritual_path=candidate.spiritual_path,
                location=candidate.location,
                shared_interests=_shared_interests(candidate.interests, interests),
                mutual_followers=mutual_counts.get(candidate.id, 0),
                avatar_url=candidate.avatar_url,
                is_following=candidate.id in following,
                vedic_qualifications=candidate.vedic_qualifications,
                spiritual_qualifications=candidate.spiritual_qualifications,
                years_of_experience=candidate.years_of_experience,
                areas_of_guidance=candidate.areas_of_guidance,
                languages_spoken=candidate.languages_spoken,
                introduction=candidate.introduction,
            )
            for candidate in candidates
        ]
        return scoring.rank_suggestions(suggestions, limit, user_id)

    async def community_members(
        self, interest: Optional[str], limit: int, cursor: Optional[str]
    ) -> Page[CommunityMemberDto]:
        offset = PaginationCodec.decode(cursor)
        page_size = clamp_page_size(limit)
        profiles = await self.repository.list_members(interest or None, offset, page_size)
        items = [CommunityMemberDto.from_profile(p) for p in profiles]
        return Page(
            items=items,
            next_cursor=PaginationCodec.next_cursor(offset, len(items), page_size),
        )

    async def add_post(self, post: PostRecord) -> None:
        await self.repository.insert_post(post)

    async def create_event(self, draft: EventDraft) -> EventDto:
        event = await self.repository.insert_event(draft)
        return scoring.build_event_dto(event, [], draft.creator_id)

    async def list_events(self, filters: EventFilters, now: datetime) -> List[EventDto]:
        events = await self.repository.upcoming_events(
            filters.start_after or now, filters.interest or None, EVENT_LIST_LIMIT
        )
        attendees = await self.repository.attendees_for([e.id for e in events])
        return _event_dtos(events, attendees, filters)

    async def get_event(self, event_id: str) -> Optional[EventRecord]:
        return await self.repository.get_event(event_id)

    async def rsvp_event(
        self, event_id: str, user_id: str, status: RsvpStatus
    ) -> Optional[EventDto]:
        event = await self.repository.get_event(event_id)
        if event is None:
            return None
        await self.repository.upsert_attendee(event_id, user_id, status)
        attendees = await self.repository.attendees_for([event_id])
        return scoring.build_event_dto(event, attendees, user_id)

    async def log_practice(
        self,
        user_id: str,
        log: DevotionLogDto,
        intensity: Optional[PracticeIntensity],
    ) -> None:
        await self.repository.insert_practice_log(user_id, log, intensity)

    async def devotion_summary(
        self, user_id: str, now: datetime
    ) -> Optional[DevotionSummaryDto]:
        totals = await self.repository.practice_totals(user_id)
        if totals.log_count == 0:
            return None
        recent = await self.repository.practice_logs(user_id, scoring.RECENT_LOG_COUNT)
        return scoring.build_devotion_summary(totals, recent, now)

    async def follow(self, follower_id: str, followee_id: str) -> None:
        await self.repository.follow(follower_id, followee_id)

    async def unfollow(self, follower_id: str, followee_id: str) -> None:
        await self.repository.unfollow(follower_id, followee_id)

    async def daily_reading(
        self, path: Optional[str], now: datetime
    ) -> Optional[DailyReadingDto]:
        reading = await self.repository.latest_reading(path, now.date())
        if reading is None:
            return None
        return reading.model_copy(update={"recommended_at": now})

    async def mark_reading_complete(self, reading_id: str, user_id: str) -> None:
        await self.repository.record_reading_completion(user_id, reading_id)


# =============================================================================
# Fallback
# =============================================================================


class FallbackDataSource(DataSource):
    """In-process backend serving sample data and the fallback store.

    Attributes:
        store: Process-wide maps shared with every service instance.
    """

    name = "fallback"

    def __init__(self, store: FallbackStore):
        self.store = store

    async def trending_topics(
        self, limit: int, window: Optional[str], now: datetime
    ) -> List[TrendingTopicDto]:
        hours = scoring.resolve_window_to_hours(window)
        posts = await self.store.posts_since(
            now - timedelta(hours=hours), DEFAULT_TRENDING_SCAN_LIMIT
        )
        topics = scoring.compute_trending_topics(posts, now, limit)
        if topics:
            return topics
        return scoring.weight_sample_topics(SAMPLE_TRENDING_TOPICS, window, limit)

    async def suggested_connections(
        self, limit: int, user_id: Optional[str]
    ) -> List[SuggestedConnectionDto]:
        following = await self.store.following_ids(user_id) if user_id else set()
        suggestions = [
            s.model_copy(update={"is_following": s.id in following}, deep=True)
            for s in SAMPLE_SUGGESTED_CONNECTIONS
        ]
        return scoring.rank_suggestions(suggestions, limit, user_id)

    async def community_members(
        self, interest: Optional[str], limit: int, cursor: Optional[str]
    ) -> Page[CommunityMemberDto]:
        members = await self.store.list_users()
        if interest:
            needle = interest.lower()
            members = [
                m for m in members
                if any(needle in item.lower() for item in m.interests)
            ]
        page = paginate(members, cursor, limit)
        return Page(
            items=[CommunityMemberDto.from_profile(m) for m in page.items],
            next_cursor=page.next_cursor,
        )

    async def add_post(self, post: PostRecord) -> None:
        await self.store.add_post(post)

    async def create_event(self, draft: EventDraft) -> EventDto:
        event = EventRecord(id=str(uuid.uuid4()), **draft.model_dump())
        await self.store.add_event(event)
        return scoring.build_event_dto(event, [], draft.creator_id)

    async def list_events(self, filters: EventFilters, now: datetime) -> List[EventDto]:
        start_after = filters.start_after or now
        events = [e for e in await self.store.list_events() if e.start_at >= start_after]
        if filters.interest:
            wanted = filters.interest.lower()
            events = [e for e in events if any(t.lower() == wanted for t in e.tags)]
        events.sort(key=lambda e: e.start_at)
        events = events[:EVENT_LIST_LIMIT]

        attendees: List[AttendeeRecord] = []
        for event in events:
            attendees.extend(await self.store.attendees_for(event.id))
        return _event_dtos(events, attendees, filters)

    async def get_event(self, event_id: str) -> Optional[EventRecord]:
        return await self.store.get_event(event_id)

    async def rsvp_event(
        self, event_id: str, user_id: str, status: RsvpStatus
    ) -> Optional[EventDto]:
        try:
            await self.store.set_rsvp(event_id, user_id, status)
        except NotFound:
            return None
        event = await self.store.get_event(event_id)
        attendees = await self.store.attendees_for(event_id)
        return scoring.build_event_dto(event, attendees, user_id)

    async def log_practice(
        self,
        user_id: str,
        log: DevotionLogDto,
        intensity: Optional[PracticeIntensity],
    ) -> None:
        await self.store.append_log(user_id, log)

    async def devotion_summary(
        self, user_id: str, now: datetime
    ) -> Optional[DevotionSummaryDto]:
        return scoring.summarize_devotion(await self.store.logs_for(user_id), now)

    async def follow(self, follower_id: str, followee_id: str) -> None:
        await self.store.follow(follower_id, followee_id)

    async def unfollow(self, follower_id: str, followee_id: str) -> None:
        await self.store.unfollow(follower_id, followee_id)

    async def daily_reading(
        self, path: Optional[str], now: datetime
    ) -> Optional[DailyReadingDto]:
        return sample_reading(path, now)

    async def mark_reading_complete(self, reading_id: str, user_id: str) -> None:
        await self.store.mark_reading_complete(user_id, reading_id)
