"""Scoring and derivation algorithms for community signals.

Every function here is pure: the current time is passed in, so results
are deterministic for a given input. Both the live and the fallback data
sources use these functions, which keeps the two paths consistent.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from src.community.experience.models import (
    AttendeeRecord,
    DevotionLogDto,
    DevotionSummaryDto,
    EventDto,
    EventRecord,
    FollowEdge,
    PostRecord,
    PracticeIntensity,
    PracticeTotals,
    RsvpStatus,
    SuggestedConnectionDto,
    TrendingTopicDto,
)


DEFAULT_WINDOW_HOURS = 24.0

POST_COUNT_WEIGHT = 0.5
LIKE_COUNT_WEIGHT = 0.1

POINTS_PER_LEVEL = 100
RECENT_LOG_COUNT = 10
DEFAULT_PRACTICE_POINTS = 10

INTENSITY_MULTIPLIERS = {
    PracticeIntensity.LIGHT: 1.0,
    PracticeIntensity.MEDIUM: 1.2,
    PracticeIntensity.INTENSE: 1.5,
}


# =============================================================================
# Trending topics
# =============================================================================


def _positive_number(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def resolve_window_to_hours(window: Optional[str]) -> float:
    """Parse a trending window such as "6h", "3d" or "12".

    Unrecognized or non-positive windows resolve to 24 hours.
    """
    if not window:
        return DEFAULT_WINDOW_HOURS

    normalized = window.strip().lower()
    if normalized.endswith("h"):
        hours = _positive_number(normalized[:-1])
        return hours if hours is not None else DEFAULT_WINDOW_HOURS
    if normalized.endswith("d"):
        days = _positive_number(normalized[:-1])
        return days * 24 if days is not None else DEFAULT_WINDOW_HOURS

    hours = _positive_number(normalized)
    return hours if hours is not None else DEFAULT_WINDOW_HOURS


def window_weight(window: Optional[str]) -> float:
    """Multiplier applied to pre-baked trending scores for a window."""
    hours = resolve_window_to_hours(window)
    if hours <= 6:
        return 1.2
    if hours <= 24:
        return 1.0
    if hours <= 72:
        return 0.85
    return 0.7


def _post_topics(post: PostRecord) -> List[str]:
    # One entry per occurrence: a tag repeating the primary topic counts again
    topics: List[str] = []
    for value in [post.spiritual_topic, *post.tags]:
        if not value:
            continue
        key = value.strip().lower()
        if key:
            topics.append(key)
    return topics


@dataclass
class _TopicTally:
    post_count: int = 0
    like_count: int = 0
    velocity: float = 0.0


def compute_trending_topics(
    posts: Iterable[PostRecord],
    now: datetime,
    limit: int,
) -> List[TrendingTopicDto]:
    """Rank topics by recency-weighted activity.

    Each post contributes 1/max(1, age_hours) to every topic it carries
    (primary topic plus tags, case-folded), once per occurrence. The
    final score adds 0.5 per post and 0.1 per like and is rounded to two
    decimals.
    """
    tallies: Dict[str, _TopicTally] = {}

    for post in posts:
        topics = _post_topics(post)
        if not topics:
            continue

        age_hours = max(1.0, (now - post.created_at).total_seconds() / 3600)
        for topic in topics:
            tally = tallies.setdefault(topic, _TopicTally())
            tally.post_count += 1
            tally.like_count += post.likes_count
            tally.velocity += 1 / age_hours

    ranked = [
        TrendingTopicDto(
            topic=topic,
            post_count=tally.post_count,
            like_count=tally.like_count,
            velocity_score=round(
                tally.velocity
                + tally.post_count * POST_COUNT_WEIGHT
                + tally.like_count * LIKE_COUNT_WEIGHT,
                2,
            ),
        )
        for topic, tally in tallies.items()
    ]
    ranked.sort(key=lambda dto: dto.velocity_score, reverse=True)
    return ranked[:limit]


def weight_sample_topics(
    topics: Sequence[TrendingTopicDto],
    window: Optional[str],
    limit: int,
) -> List[TrendingTopicDto]:
    """Scale pre-baked trending topics so they react to the window."""
    weight = window_weight(window)
    return [
        topic.model_copy(
            update={"velocity_score": round(topic.velocity_score * weight, 2)}
        )
        for topic in topics[:limit]
    ]


# =============================================================================
# Suggested connections
# =============================================================================


def rank_suggestions(
    suggestions: Iterable[SuggestedConnectionDto],
    limit: int,
    user_id: Optional[str] = None,
) -> List[SuggestedConnectionDto]:
    """Order by shared interests, then mutual followers, both descending.

    The sort is stable, so ties keep their input order. The requesting
    user is never suggested to themselves.
    """
    candidates = [s for s in suggestions if user_id is None or s.id != user_id]
    candidates.sort(key=lambda s: (-len(s.shared_interests), -s.mutual_followers))
    return candidates[:limit]


def count_mutual_followers(
    edges: Iterable[FollowEdge],
    following_ids: Iterable[str],
) -> Dict[str, int]:
    """Count, per followee, followers that the requesting user follows."""
    following = set(following_ids)
    counts: Dict[str, int] = {}
    for edge in edges:
        if edge.follower_id in following:
            counts[edge.followee_id] = counts.get(edge.followee_id, 0) + 1
    return counts


# =============================================================================
# Events
# =============================================================================


def build_event_dto(
    event: EventRecord,
    attendees: Iterable[AttendeeRecord],
    user_id: Optional[str] = None,
) -> EventDto:
    """Derive viewer-specific attendance figures for an event.

    attendees_count counts every attendee whose status is not not_going;
    is_attending is true only when the viewer's own status is not
    not_going.
    """
    active = [a for a in attendees if a.status != RsvpStatus.NOT_GOING]
    is_attending = bool(user_id) and any(a.user_id == user_id for a in active)
    return EventDto(
        **event.model_dump(),
        attendees_count=len(active),
        is_attending=is_attending,
    )


def format_ics_datetime(value: datetime) -> str:
    """Format a timestamp in iCalendar UTC basic format (YYYYMMDDTHHMMSSZ)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def escape_ics_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


ICS_PRODUCT_ID = "-//Sanaathan//Community Events//EN"
ICS_UID_DOMAIN = "sanaathan.community"


def build_event_ics(event: EventRecord, now: datetime) -> str:
    """Render an event as a CRLF-separated VCALENDAR document."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{ICS_PRODUCT_ID}",
        "BEGIN:VEVENT",
        f"UID:{event.id}@{ICS_UID_DOMAIN}",
        f"DTSTAMP:{format_ics_datetime(now)}",
        f"DTSTART:{format_ics_datetime(event.start_at)}",
    ]
    if event.end_at is not None:
        lines.append(f"DTEND:{format_ics_datetime(event.end_at)}")
    lines.append(f"SUMMARY:{escape_ics_text(event.title)}")
    if event.description:
        lines.append(f"DESCRIPTION:{escape_ics_text(event.description)}")
    if event.location:
        lines.append(f"LOCATION:{escape_ics_text(event.location)}")
    lines.extend(["END:VEVENT", "END:VCALENDAR"])
    return "\r\n".join(lines)


# =============================================================================
# Devotion
# =============================================================================


def award_points(base_points: int, intensity: Optional[PracticeIntensity]) -> int:
    """Points for one practice, rounded half up."""
    multiplier = INTENSITY_MULTIPLIERS.get(intensity, 1.0) if intensity else 1.0
    return math.floor(base_points * multiplier + 0.5)


def calculate_streak(timestamps: Iterable[datetime], today: date) -> int:
    """Count consecutive practice days ending today.

    Timestamps are bucketed to UTC calendar days. A missing today is
    forgiven once: the count may start from yesterday instead. The first
    gap after that ends the streak.
    """
    days = set()
    for ts in timestamps:
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        days.add(ts.astimezone(timezone.utc).date())
    return streak_from_days(days, today)


def streak_from_days(days: Iterable[date], today: date) -> int:
    """Streak over UTC calendar days; duplicates are ignored."""
    days = set(days)
    cursor = today
    if cursor not in days:
        cursor -= timedelta(days=1)

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def build_devotion_summary(
    totals: PracticeTotals,
    recent_logs: Sequence[DevotionLogDto],
    now: datetime,
) -> DevotionSummaryDto:
    """Summary from aggregates over all logs plus the newest logs.

    Args:
        totals: Point total and practice days over every log.
        recent_logs: The user's most recent logs, in any order.
        now: Current instant; its UTC date is "today" for the streak.
    """
    ordered = sorted(recent_logs, key=lambda log: log.performed_at, reverse=True)
    today = now.astimezone(timezone.utc).date()

    return DevotionSummaryDto(
        total_points=totals.total_points,
        streak=streak_from_days(totals.practice_days, today),
        level=totals.total_points // POINTS_PER_LEVEL + 1,
        meter=totals.total_points % POINTS_PER_LEVEL,
        last_practiced_at=ordered[0].performed_at if ordered else None,
        recent_logs=list(ordered[:RECENT_LOG_COUNT]),
    )


def summarize_devotion(logs: Sequence[DevotionLogDto], now: datetime) -> DevotionSummaryDto:
    """Fold a user's complete log history into a summary."""
    totals = PracticeTotals(
        log_count=len(logs),
        total_points=sum(log.points_awarded for log in logs),
        practice_days=sorted(
            {log.performed_at.astimezone(timezone.utc).date() for log in logs},
            reverse=True,
        ),
    )
    return build_devotion_summary(totals, logs, now)
