"""In-process store backing the fallback data source.

The store is created once per process and injected into the experience
service. Each map has its own asyncio.Lock. Every mutation is computed
and applied while holding the lock with no await in between, so a
cancelled caller can never leave a half-applied update behind.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

import structlog

from src.community.errors import NotFound
from src.community.experience.models import (
    AttendeeRecord,
    DevotionLogDto,
    EventRecord,
    PostRecord,
    RsvpStatus,
    UserProfile,
)
from src.community.experience.samples import SAMPLE_COMMUNITY_MEMBERS, sample_events


logger = structlog.get_logger(__name__)


class FallbackStore:
    """Process-lifetime maps for posts, users, events and activity.

    Attributes:
        posts: Posts by id, in insertion order.
        users: Profiles by id, seeded with the sample members.
        events: Events by id, seeded with the sample event.
        rsvps: event id -> user id -> status.
        follows: follower id -> followee ids.
        devotion_logs: user id -> logs, newest first.
        reading_completions: user id -> completed reading ids.
    """

    def __init__(self, now: Optional[datetime] = None, seed: bool = True):
        now = now or datetime.now(timezone.utc)

        self.posts: Dict[str, PostRecord] = {}
        self.users: Dict[str, UserProfile] = {}
        self.events: Dict[str, EventRecord] = {}
        self.rsvps: Dict[str, Dict[str, RsvpStatus]] = {}
        self.follows: Dict[str, Set[str]] = {}
        self.devotion_logs: Dict[str, List[DevotionLogDto]] = {}
        self.reading_completions: Dict[str, Set[str]] = {}

        self._posts_lock = asyncio.Lock()
        self._users_lock = asyncio.Lock()
        self._events_lock = asyncio.Lock()
        self._rsvps_lock = asyncio.Lock()
        self._follows_lock = asyncio.Lock()
        self._logs_lock = asyncio.Lock()
        self._readings_lock = asyncio.Lock()

        if seed:
            for member in SAMPLE_COMMUNITY_MEMBERS:
                self.users[member.id] = member.model_copy(deep=True)
            for event in sample_events(now):
                self.events[event.id] = event

    # -------------------------------------------------------------------------
    # Posts
    # -------------------------------------------------------------------------

    async def add_post(self, post: PostRecord) -> None:
        async with self._posts_lock:
            self.posts[post.id] = post

    async def posts_since(self, since: datetime, limit: int) -> List[PostRecord]:
        async with self._posts_lock:
            recent = [p for p in self.posts.values() if p.created_at >= since]
        recent.sort(key=lambda p: p.created_at, reverse=True)
        return recent[:limit]

    # -------------------------------------------------------------------------
    # Users and follows
    # -------------------------------------------------------------------------

    async def list_users(self) -> List[UserProfile]:
        async with self._users_lock:
            return list(self.users.values())

    async def follow(self, follower_id: str, followee_id: str) -> None:
        async with self._follows_lock:
            self.follows.setdefault(follower_id, set()).add(followee_id)

    async def unfollow(self, follower_id: str, followee_id: str) -> None:
        async with self._follows_lock:
            followees = self.follows.get(follower_id)
            if followees is not None:
                followees.discard(followee_id)

    async def following_ids(self, user_id: str) -> Set[str]:
        async with self._follows_lock:
            return set(self.follows.get(user_id, ()))

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def add_event(self, event: EventRecord) -> None:
        async with self._events_lock:
            self.events[event.id] = event
        logger.debug("Stored fallback event", event_id=event.id)

    async def get_event(self, event_id: str) -> Optional[EventRecord]:
        async with self._events_lock:
            return self.events.get(event_id)

    async def list_events(self) -> List[EventRecord]:
        async with self._events_lock:
            return list(self.events.values())

    async def set_rsvp(self, event_id: str, user_id: str, status: RsvpStatus) -> None:
        """Record a user's RSVP, replacing any earlier one.

        Raises:
            NotFound: If the event does not exist.
        """
        # Events are never removed, so the existence check stays valid
        # once the events lock is released.
        async with self._events_lock:
            if event_id not in self.events:
                raise NotFound("event", event_id)
        async with self._rsvps_lock:
            self.rsvps.setdefault(event_id, {})[user_id] = status

    async def attendees_for(self, event_id: str) -> List[AttendeeRecord]:
        async with self._rsvps_lock:
            entries = dict(self.rsvps.get(event_id, {}))
        return [
            AttendeeRecord(event_id=event_id, user_id=user_id, status=status)
            for user_id, status in entries.items()
        ]

    # -------------------------------------------------------------------------
    # Devotion and readings
    # -------------------------------------------------------------------------

    async def append_log(self, user_id: str, log: DevotionLogDto) -> None:
        async with self._logs_lock:
            self.devotion_logs.setdefault(user_id, []).insert(0, log)

    async def logs_for(self, user_id: str) -> List[DevotionLogDto]:
        async with self._logs_lock:
            return list(self.devotion_logs.get(user_id, ()))

    async def mark_reading_complete(self, user_id: str, reading_id: str) -> None:
        async with self._readings_lock:
            self.reading_completions.setdefault(user_id, set()).add(reading_id)

    async def completed_readings(self, user_id: str) -> Set[str]:
        async with self._readings_lock:
            return set(self.reading_completions.get(user_id, ()))
