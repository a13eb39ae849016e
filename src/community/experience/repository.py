"""Durable store adapter for community data.

CommunityRepository is the protocol the live data source depends on;
PostgresCommunityRepository implements it with asyncpg through the shared
Database wrapper, so every driver or connection failure surfaces as
StoreUnavailable.

Expected schema (abridged):

    posts (id, user_id, content, spiritual_topic, tags TEXT[],
           likes_count, created_at)
    users (id, full_name, spiritual_path, interests TEXT[], avatar_url,
           location, bio, vedic_qualifications TEXT[],
           spiritual_qualifications TEXT[], years_of_experience,
           areas_of_guidance TEXT[], languages_spoken TEXT[],
           introduction, created_at, updated_at)
    follows (follower_id, followee_id, PRIMARY KEY both)
    events (id, organizer_id, title, description, start_time, end_time,
            location, tags TEXT[], capacity)
    event_attendees (event_id, user_id, status, PRIMARY KEY (event_id, user_id))
    practice_logs (id, user_id, practice_id, performed_at, intensity,
                   notes, points_awarded)
    daily_readings (id, title, reference, content, reading_date, path, summary)
    user_reading_history (user_id, reading_id, source, PRIMARY KEY both)
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, List, Mapping, Optional, Protocol, Sequence

import structlog

from src.community.experience.models import (
    AttendeeRecord,
    DailyReadingDto,
    DevotionLogDto,
    EventDraft,
    EventRecord,
    FollowEdge,
    PostRecord,
    PracticeIntensity,
    PracticeTotals,
    RsvpStatus,
    UserProfile,
)
from src.community.storage.database import Database


logger = structlog.get_logger(__name__)

READING_SUMMARY_LENGTH = 160

_PROFILE_COLUMNS = """
    id, full_name, spiritual_path, interests, avatar_url, location, bio,
    vedic_qualifications, spiritual_qualifications, years_of_experience,
    areas_of_guidance, languages_spoken, introduction
"""

_EVENT_COLUMNS = """
    id, organizer_id, title, description, start_time, end_time, location,
    tags, capacity
"""


class CommunityRepository(Protocol):
    """Row-level access to the durable community store."""

    async def posts_since(self, since: datetime, limit: int) -> List[PostRecord]:
        ...

    async def insert_post(self, post: PostRecord) -> None:
        ...

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        ...

    async def recent_users(
        self, limit: int, exclude_id: Optional[str] = None
    ) -> List[UserProfile]:
        ...

    async def list_members(
        self, interest: Optional[str], offset: int, limit: int
    ) -> List[UserProfile]:
        ...

    async def following_ids(self, user_id: str) -> List[str]:
        ...

    async def follow_edges_to(self, followee_ids: Sequence[str]) -> List[FollowEdge]:
        ...

    async def follow(self, follower_id: str, followee_id: str) -> None:
        ...

    async def unfollow(self, follower_id: str, followee_id: str) -> None:
        ...

    async def insert_event(self, draft: EventDraft) -> EventRecord:
        ...

    async def get_event(self, event_id: str) -> Optional[EventRecord]:
        ...

    async def upcoming_events(
        self, start_after: datetime, tag: Optional[str], limit: int
    ) -> List[EventRecord]:
        ...

    async def attendees_for(self, event_ids: Sequence[str]) -> List[AttendeeRecord]:
        ...

    async def upsert_attendee(
        self, event_id: str, user_id: str, status: RsvpStatus
    ) -> None:
        ...

    async def insert_practice_log(
        self,
        user_id: str,
        log: DevotionLogDto,
        intensity: Optional[PracticeIntensity],
    ) -> None:
        ...

    async def practice_logs(self, user_id: str, limit: int) -> List[DevotionLogDto]:
        ...

    async def practice_totals(self, user_id: str) -> PracticeTotals:
        ...

    async def latest_reading(
        self, path: Optional[str], today: date
    ) -> Optional[DailyReadingDto]:
        ...

    async def record_reading_completion(self, user_id: str, reading_id: str) -> None:
        ...


# =============================================================================
# Row mapping
# =============================================================================


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _text_list(value: Any) -> List[str]:
    return list(value) if isinstance(value, (list, tuple)) else []


def row_to_profile(row: Mapping[str, Any]) -> UserProfile:
    return UserProfile(
        id=str(row["id"]),
        full_name=row["full_name"] or "",
        spiritual_path=row["spiritual_path"],
        interests=_text_list(row["interests"]),
        avatar_url=row["avatar_url"],
        location=row["location"],
        bio=row["bio"],
        vedic_qualifications=_text_list(row["vedic_qualifications"]),
        spiritual_qualifications=_text_list(row["spiritual_qualifications"]),
        years_of_experience=row["years_of_experience"],
        areas_of_guidance=_text_list(row["areas_of_guidance"]),
        languages_spoken=_text_list(row["languages_spoken"]),
        introduction=row["introduction"],
    )


def row_to_event(row: Mapping[str, Any]) -> EventRecord:
    return EventRecord(
        id=str(row["id"]),
        creator_id=str(row["organizer_id"]),
        title=row["title"],
        description=row["description"],
        start_at=_aware(row["start_time"]),
        end_at=_aware(row["end_time"]),
        location=row["location"],
        tags=_text_list(row["tags"]),
        capacity=row["capacity"],
    )


def row_to_reading(row: Mapping[str, Any], path: Optional[str], now: datetime) -> DailyReadingDto:
    """Map a daily_readings row, deriving a summary from the content if absent."""
    body = row["content"] if isinstance(row["content"], str) else ""
    summary = row["summary"]
    if not summary and body:
        summary = body[:READING_SUMMARY_LENGTH]
        if len(body) > READING_SUMMARY_LENGTH:
            summary += "…"

    title = row["title"]
    if row["reference"]:
        title = f"{title} {row['reference']}"

    return DailyReadingDto(
        id=str(row["id"]),
        title=title,
        body=body,
        source_url=None,
        path=row["path"] or path or "general",
        recommended_at=now,
        summary=summary or None,
    )


# =============================================================================
# PostgreSQL implementation
# =============================================================================


class PostgresCommunityRepository:
    """CommunityRepository over an asyncpg pool.

    Attributes:
        database: Shared connection pool wrapper.
    """

    def __init__(self, database: Database):
        self.database = database

    async def posts_since(self, since: datetime, limit: int) -> List[PostRecord]:
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, user_id, content, spiritual_topic, tags,
                       likes_count, created_at
                FROM posts
                WHERE created_at >= $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                since,
                limit,
            )
        return [
            PostRecord(
                id=str(row["id"]),
                user_id=str(row["user_id"]),
                content=row["content"] or "",
                spiritual_topic=row["spiritual_topic"],
                tags=[t for t in _text_list(row["tags"]) if t],
                likes_count=row["likes_count"] or 0,
                created_at=_aware(row["created_at"]),
            )
            for row in rows
        ]

    async def insert_post(self, post: PostRecord) -> None:
        async with self.database.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO posts (
                    id, user_id, content, spiritual_topic, tags,
                    likes_count, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                post.id,
                post.user_id,
                post.content,
                post.spiritual_topic,
                post.tags,
                post.likes_count,
                post.created_at,
            )
        logger.info("Inserted post", post_id=post.id, user_id=post.user_id)

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PROFILE_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )
        return row_to_profile(row) if row is not None else None

    async def recent_users(
        self, limit: int, exclude_id: Optional[str] = None
    ) -> List[UserProfile]:
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_PROFILE_COLUMNS}
                FROM users
                WHERE $1::text IS NULL OR id::text <> $1::text
                ORDER BY updated_at DESC
                LIMIT $2
                """,
                exclude_id,
                limit,
            )
        return [row_to_profile(row) for row in rows]

    async def list_members(
        self, interest: Optional[str], offset: int, limit: int
    ) -> List[UserProfile]:
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_PROFILE_COLUMNS}
                FROM users
                WHERE $1::text IS NULL OR interests @> ARRAY[$1::text]
                ORDER BY created_at DESC
                OFFSET $2
                LIMIT $3
                """,
                interest,
                offset,
                limit,
            )
        return [row_to_profile(row) for row in rows]

    async def following_ids(self, user_id: str) -> List[str]:
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                "SELECT followee_id FROM follows WHERE follower_id = $1",
                user_id,
            )
        return [str(row["followee_id"]) for row in rows]

    async def follow_edges_to(self, followee_ids: Sequence[str]) -> List[FollowEdge]:
        if not followee_ids:
            return []
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT follower_id, followee_id
                FROM follows
                WHERE followee_id::text = ANY($1::text[])
                """,
                list(followee_ids),
            )
        return [
            FollowEdge(
                follower_id=str(row["follower_id"]),
                followee_id=str(row["followee_id"]),
            )
            for row in rows
        ]

    async def follow(self, follower_id: str, followee_id: str) -> None:
        async with self.database.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO follows (follower_id, followee_id)
                VALUES ($1, $2)
                ON CONFLICT DO NOTHING
                """,
                follower_id,
                followee_id,
            )

    async def unfollow(self, follower_id: str, followee_id: str) -> None:
        async with self.database.acquire() as conn:
            await conn.execute(
                "DELETE FROM follows WHERE follower_id = $1 AND followee_id = $2",
                follower_id,
                followee_id,
            )

    async def insert_event(self, draft: EventDraft) -> EventRecord:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO events (
                    id, organizer_id, title, description, start_time,
                    end_time, location, tags, capacity
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {_EVENT_COLUMNS}
                """,
                str(uuid.uuid4()),
                draft.creator_id,
                draft.title,
                draft.description,
                draft.start_at,
                draft.end_at,
                draft.location,
                draft.tags,
                draft.capacity,
            )
        event = row_to_event(row)
        logger.info("Created event", event_id=event.id, creator_id=event.creator_id)
        return event

    async def get_event(self, event_id: str) -> Optional[EventRecord]:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE id::text = $1",
                event_id,
            )
        return row_to_event(row) if row is not None else None

    async def upcoming_events(
        self, start_after: datetime, tag: Optional[str], limit: int
    ) -> List[EventRecord]:
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_EVENT_COLUMNS}
                FROM events
                WHERE start_time >= $1
                  AND ($2::text IS NULL OR tags @> ARRAY[$2::text])
                ORDER BY start_time ASC
                LIMIT $3
                """,
                start_after,
                tag,
                limit,
            )
        return [row_to_event(row) for row in rows]

    async def attendees_for(self, event_ids: Sequence[str]) -> List[AttendeeRecord]:
        if not event_ids:
            return []
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT event_id, user_id, status
                FROM event_attendees
                WHERE event_id::text = ANY($1::text[])
                """,
                list(event_ids),
            )
        return [
            AttendeeRecord(
                event_id=str(row["event_id"]),
                user_id=str(row["user_id"]),
                status=RsvpStatus(row["status"]),
            )
            for row in rows
        ]

    async def upsert_attendee(
        self, event_id: str, user_id: str, status: RsvpStatus
    ) -> None:
        async with self.database.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO event_attendees (event_id, user_id, status)
                VALUES ($1, $2, $3)
                ON CONFLICT (event_id, user_id) DO UPDATE SET
                    status = EXCLUDED.status
                """,
                event_id,
                user_id,
                status.value,
            )

    async def insert_practice_log(
        self,
        user_id: str,
        log: DevotionLogDto,
        intensity: Optional[PracticeIntensity],
    ) -> None:
        async with self.database.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO practice_logs (
                    id, user_id, practice_id, performed_at, intensity,
                    notes, points_awarded
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                log.id,
                user_id,
                log.practice_id,
                log.performed_at,
                intensity.value if intensity is not None else None,
                log.notes,
                log.points_awarded,
            )

    async def practice_logs(self, user_id: str, limit: int) -> List[DevotionLogDto]:
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, practice_id, performed_at, points_awarded, notes
                FROM practice_logs
                WHERE user_id = $1
                ORDER BY performed_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [
            DevotionLogDto(
                id=str(row["id"]),
                practice_id=row["practice_id"],
                performed_at=_aware(row["performed_at"]),
                points_awarded=row["points_awarded"] or 0,
                notes=row["notes"],
            )
            for row in rows
        ]

    async def practice_totals(self, user_id: str) -> PracticeTotals:
        """Point total and distinct UTC practice days over all logs.

        Both queries run in one repeatable-read transaction so the total
        and the days describe the same set of logs.
        """
        async with self.database.transaction(isolation="repeatable_read") as conn:
            totals = await conn.fetchrow(
                """
                SELECT COUNT(*) AS log_count,
                       COALESCE(SUM(points_awarded), 0) AS total_points
                FROM practice_logs
                WHERE user_id = $1
                """,
                user_id,
            )
            day_rows = await conn.fetch(
                """
                SELECT DISTINCT (performed_at AT TIME ZONE 'UTC')::date AS day
                FROM practice_logs
                WHERE user_id = $1
                ORDER BY day DESC
                """,
                user_id,
            )
        return PracticeTotals(
            log_count=totals["log_count"],
            total_points=totals["total_points"],
            practice_days=[row["day"] for row in day_rows],
        )

    async def latest_reading(
        self, path: Optional[str], today: date
    ) -> Optional[DailyReadingDto]:
        normalized = path.lower() if path else None
        async with self.database.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, title, reference, content, reading_date, path, summary
                FROM daily_readings
                WHERE reading_date <= $1
                  AND ($2::text IS NULL OR path = $2::text)
                ORDER BY reading_date DESC
                LIMIT 1
                """,
                today,
                normalized,
            )
        if row is None:
            return None
        return row_to_reading(row, normalized, datetime.now(timezone.utc))

    async def record_reading_completion(self, user_id: str, reading_id: str) -> None:
        async with self.database.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO user_reading_history (user_id, reading_id, source)
                VALUES ($1, $2, 'daily_reading')
                ON CONFLICT DO NOTHING
                """,
                user_id,
                reading_id,
            )
