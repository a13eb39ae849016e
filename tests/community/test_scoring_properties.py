"""Property-based tests for community scoring algorithms.

Covers trending-topic velocity, window parsing, suggestion ordering,
devotion streaks and levels, point awards, event attendance figures and
iCalendar rendering.

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import given, settings, strategies as st

from src.community.experience.models import (
    AttendeeRecord,
    DevotionLogDto,
    EventRecord,
    FollowEdge,
    PostRecord,
    PracticeIntensity,
    RsvpStatus,
    SuggestedConnectionDto,
)
from src.community.experience.samples import SAMPLE_TRENDING_TOPICS
from src.community.experience.scoring import (
    award_points,
    build_event_dto,
    build_event_ics,
    calculate_streak,
    compute_trending_topics,
    count_mutual_followers,
    rank_suggestions,
    resolve_window_to_hours,
    summarize_devotion,
    weight_sample_topics,
    window_weight,
)


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


# =============================================================================
# Hypothesis Strategies
# =============================================================================


@st.composite
def post_records(draw: st.DrawFn) -> PostRecord:
    """Generate a post within the last few days."""
    topic_pool = ["Gita", "gita", "Kirtan", "Seva", "Meditation", "Navaratri"]
    return PostRecord(
        id=draw(st.uuids()).hex,
        user_id="user-1",
        spiritual_topic=draw(st.one_of(st.none(), st.sampled_from(topic_pool))),
        tags=draw(st.lists(st.sampled_from(topic_pool), max_size=4)),
        likes_count=draw(st.integers(min_value=0, max_value=500)),
        created_at=NOW - timedelta(minutes=draw(st.integers(min_value=0, max_value=72 * 60))),
    )


@st.composite
def suggestions(draw: st.DrawFn) -> SuggestedConnectionDto:
    return SuggestedConnectionDto(
        id=draw(st.sampled_from(["a", "b", "c", "d", "e", "me"])),
        full_name="Someone",
        shared_interests=draw(st.lists(st.sampled_from(["x", "y", "z"]), max_size=3)),
        mutual_followers=draw(st.integers(min_value=0, max_value=10)),
    )


def _day(offset: int, hour: int = 9) -> datetime:
    return datetime.combine(TODAY - timedelta(days=offset), datetime.min.time(), timezone.utc).replace(hour=hour)


# =============================================================================
# Trending topics
# =============================================================================


class TestWindowParsing:

    @pytest.mark.parametrize(
        "window,hours",
        [
            (None, 24.0),
            ("", 24.0),
            ("6h", 6.0),
            ("3d", 72.0),
            ("12", 12.0),
            (" 2D ", 48.0),
            ("0h", 24.0),
            ("-3d", 24.0),
            ("abc", 24.0),
            ("nanh", 24.0),
            ("infd", 24.0),
        ],
    )
    def test_resolve_window(self, window, hours):
        assert resolve_window_to_hours(window) == hours

    @pytest.mark.parametrize(
        "window,weight",
        [("6h", 1.2), ("1h", 1.2), ("24h", 1.0), (None, 1.0), ("3d", 0.85), ("7d", 0.7)],
    )
    def test_window_weight(self, window, weight):
        assert window_weight(window) == weight


class TestTrendingTopics:

    def test_single_recent_post_score(self):
        post = PostRecord(
            id="p1", user_id="u1", spiritual_topic="Gita", tags=["Kirtan"],
            likes_count=10, created_at=NOW - timedelta(minutes=30),
        )

        topics = compute_trending_topics([post], NOW, limit=10)

        by_topic = {t.topic: t for t in topics}
        assert set(by_topic) == {"gita", "kirtan"}
        # age is clamped to one hour: 1/1 + 1*0.5 + 10*0.1
        assert by_topic["gita"].velocity_score == 2.5
        assert by_topic["gita"].post_count == 1
        assert by_topic["gita"].like_count == 10

    def test_topic_repeated_as_tag_counts_per_occurrence(self):
        post = PostRecord(id="p1", user_id="u1", spiritual_topic="Bhakti",
                          tags=["bhakti"], likes_count=10, created_at=NOW)

        topics = compute_trending_topics([post], NOW, limit=10)

        assert len(topics) == 1
        assert topics[0].topic == "bhakti"
        assert topics[0].post_count == 2
        assert topics[0].like_count == 20
        # 2 * (1/1) + 2*0.5 + 20*0.1
        assert topics[0].velocity_score == 5.0

    def test_two_posts_on_one_topic(self):
        recent = PostRecord(id="p1", user_id="u1", spiritual_topic="Gita", likes_count=10,
                            created_at=NOW - timedelta(hours=1))
        older = PostRecord(id="p2", user_id="u2", spiritual_topic="Gita", likes_count=0,
                           created_at=NOW - timedelta(hours=23))

        topics = compute_trending_topics([recent, older], NOW, limit=10)

        assert len(topics) == 1
        assert topics[0].post_count == 2
        assert topics[0].like_count == 10
        assert topics[0].velocity_score == round((1 / 1 + 1 / 23) + 2 * 0.5 + 10 * 0.1, 2)

    def test_older_posts_contribute_less(self):
        fresh = PostRecord(id="p1", user_id="u1", spiritual_topic="a", created_at=NOW)
        stale = PostRecord(id="p2", user_id="u1", spiritual_topic="b",
                           created_at=NOW - timedelta(hours=10))

        topics = compute_trending_topics([stale, fresh], NOW, limit=10)

        assert [t.topic for t in topics] == ["a", "b"]
        assert topics[1].velocity_score == round(0.1 + 0.5, 2)

    def test_posts_without_topics_are_ignored(self):
        post = PostRecord(id="p1", user_id="u1", tags=["", "  "], created_at=NOW)

        assert compute_trending_topics([post], NOW, limit=10) == []

    @settings(max_examples=100)
    @given(posts=st.lists(post_records(), max_size=30), limit=st.integers(min_value=1, max_value=10))
    def test_scores_sorted_descending_and_truncated(self, posts, limit):
        topics = compute_trending_topics(posts, NOW, limit)

        scores = [t.velocity_score for t in topics]
        assert scores == sorted(scores, reverse=True)
        assert len(topics) <= limit
        assert all(t.topic == t.topic.lower() for t in topics)

    @settings(max_examples=100)
    @given(posts=st.lists(post_records(), min_size=1, max_size=30))
    def test_post_counts_sum_to_topic_occurrences(self, posts):
        topics = compute_trending_topics(posts, NOW, limit=50)

        occurrences = sum(
            1 for p in posts for value in [p.spiritual_topic, *p.tags] if value
        )
        assert sum(t.post_count for t in topics) == occurrences
        assert all(t.post_count >= 1 for t in topics)

    def test_sample_topics_weighted_by_window(self):
        weighted = weight_sample_topics(SAMPLE_TRENDING_TOPICS, "6h", limit=2)

        assert [t.topic for t in weighted] == ["Bhagavad Gita", "Navaratri"]
        assert weighted[0].velocity_score == round(0.92 * 1.2, 2)
        assert SAMPLE_TRENDING_TOPICS[0].velocity_score == 0.92


# =============================================================================
# Suggestions
# =============================================================================


class TestSuggestionRanking:

    @settings(max_examples=100)
    @given(items=st.lists(suggestions(), max_size=12), limit=st.integers(min_value=1, max_value=12))
    def test_ordered_by_shared_then_mutual(self, items, limit):
        ranked = rank_suggestions(items, limit, user_id="me")

        keys = [(len(s.shared_interests), s.mutual_followers) for s in ranked]
        assert keys == sorted(keys, reverse=True)
        assert all(s.id != "me" for s in ranked)
        assert len(ranked) <= limit

    def test_ties_keep_input_order(self):
        first = SuggestedConnectionDto(id="a", full_name="A", shared_interests=["x"], mutual_followers=1)
        second = SuggestedConnectionDto(id="b", full_name="B", shared_interests=["y"], mutual_followers=1)

        assert [s.id for s in rank_suggestions([first, second], 5)] == ["a", "b"]

    def test_mutual_followers_only_count_people_the_user_follows(self):
        edges = [
            FollowEdge(follower_id="f1", followee_id="c1"),
            FollowEdge(follower_id="f2", followee_id="c1"),
            FollowEdge(follower_id="stranger", followee_id="c1"),
            FollowEdge(follower_id="f1", followee_id="c2"),
        ]

        counts = count_mutual_followers(edges, ["f1", "f2"])

        assert counts == {"c1": 2, "c2": 1}


# =============================================================================
# Devotion
# =============================================================================


class TestStreak:

    def test_no_logs(self):
        assert calculate_streak([], TODAY) == 0

    def test_consecutive_days_ending_today(self):
        assert calculate_streak([_day(0), _day(1), _day(2)], TODAY) == 3

    def test_missing_today_starts_from_yesterday(self):
        assert calculate_streak([_day(1), _day(2)], TODAY) == 2

    def test_gap_after_grace_day_ends_streak(self):
        assert calculate_streak([_day(1), _day(3)], TODAY) == 1

    def test_nothing_today_or_yesterday(self):
        assert calculate_streak([_day(2), _day(3)], TODAY) == 0

    def test_same_day_logs_count_once(self):
        assert calculate_streak([_day(0, 6), _day(0, 20), _day(1)], TODAY) == 2

    def test_days_are_utc(self):
        # 23:30 at UTC-5 on the previous day is 04:30 UTC today
        local = datetime.combine(TODAY - timedelta(days=1), datetime.min.time()).replace(
            hour=23, minute=30, tzinfo=timezone(timedelta(hours=-5))
        )

        assert calculate_streak([local], TODAY) == 1

    @settings(max_examples=100)
    @given(offsets=st.sets(st.integers(min_value=0, max_value=40), max_size=30))
    def test_streak_never_exceeds_distinct_days(self, offsets):
        streak = calculate_streak([_day(o) for o in offsets], TODAY)

        assert 0 <= streak <= len(offsets)


class TestDevotionSummary:

    @settings(max_examples=100)
    @given(points=st.lists(st.integers(min_value=0, max_value=200), max_size=25))
    def test_level_and_meter(self, points):
        logs = [
            DevotionLogDto(id=str(i), practice_id="practice-1",
                           performed_at=NOW - timedelta(hours=i), points_awarded=p)
            for i, p in enumerate(points)
        ]

        summary = summarize_devotion(logs, NOW)

        total = sum(points)
        assert summary.total_points == total
        assert summary.level == total // 100 + 1
        assert summary.meter == total % 100
        assert len(summary.recent_logs) == min(10, len(points))

    def test_recent_logs_newest_first(self):
        older = DevotionLogDto(id="1", practice_id="p", performed_at=NOW - timedelta(days=1), points_awarded=5)
        newer = DevotionLogDto(id="2", practice_id="p", performed_at=NOW, points_awarded=5)

        summary = summarize_devotion([older, newer], NOW)

        assert [log.id for log in summary.recent_logs] == ["2", "1"]
        assert summary.last_practiced_at == NOW
        assert summary.streak == 2

    def test_empty_summary(self):
        summary = summarize_devotion([], NOW)

        assert summary.total_points == 0
        assert summary.level == 1
        assert summary.last_practiced_at is None


class TestAwardPoints:

    @pytest.mark.parametrize(
        "base,intensity,expected",
        [
            (20, None, 20),
            (20, PracticeIntensity.LIGHT, 20),
            (20, PracticeIntensity.MEDIUM, 24),
            (15, PracticeIntensity.INTENSE, 23),
            (25, PracticeIntensity.INTENSE, 38),
            (10, PracticeIntensity.MEDIUM, 12),
        ],
    )
    def test_intensity_multipliers_round_half_up(self, base, intensity, expected):
        assert award_points(base, intensity) == expected


# =============================================================================
# Events
# =============================================================================


def _event(**overrides) -> EventRecord:
    fields = dict(
        id="evt-1",
        creator_id="u1",
        title="Full Moon Kirtan",
        description="Chanting, then satsang.\nBring a mat; all welcome",
        start_at=datetime(2024, 7, 1, 18, 30, tzinfo=timezone.utc),
        end_at=datetime(2024, 7, 1, 21, 0, tzinfo=timezone.utc),
        location="Hall 2, Bengaluru",
        tags=["kirtan"],
        capacity=50,
    )
    fields.update(overrides)
    return EventRecord(**fields)


class TestEventDto:

    def test_attendance_excludes_not_going(self):
        attendees = [
            AttendeeRecord(event_id="evt-1", user_id="a", status=RsvpStatus.GOING),
            AttendeeRecord(event_id="evt-1", user_id="b", status=RsvpStatus.INTERESTED),
            AttendeeRecord(event_id="evt-1", user_id="c", status=RsvpStatus.NOT_GOING),
        ]

        assert build_event_dto(_event(), attendees, "b").attendees_count == 2
        assert build_event_dto(_event(), attendees, "b").is_attending is True
        assert build_event_dto(_event(), attendees, "c").is_attending is False
        assert build_event_dto(_event(), attendees, None).is_attending is False


class TestEventIcs:

    def test_document_layout(self):
        ics = build_event_ics(_event(), NOW)
        lines = ics.split("\r\n")

        assert lines[0] == "BEGIN:VCALENDAR"
        assert lines[-1] == "END:VCALENDAR"
        assert "PRODID:-//Sanaathan//Community Events//EN" in lines
        assert "UID:evt-1@sanaathan.community" in lines
        assert "DTSTAMP:20240615T120000Z" in lines
        assert "DTSTART:20240701T183000Z" in lines
        assert "DTEND:20240701T210000Z" in lines
        assert "SUMMARY:Full Moon Kirtan" in lines
        assert "LOCATION:Hall 2\\, Bengaluru" in lines
        assert "DESCRIPTION:Chanting\\, then satsang.\\nBring a mat\\; all welcome" in lines

    def test_optional_lines_omitted(self):
        ics = build_event_ics(_event(end_at=None, description=None, location=None), NOW)

        assert "DTEND" not in ics
        assert "DESCRIPTION" not in ics
        assert "LOCATION" not in ics

    def test_times_converted_to_utc(self):
        start = datetime(2024, 7, 1, 20, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))

        ics = build_event_ics(_event(start_at=start, end_at=None), NOW)

        assert "DTSTART:20240701T143000Z" in ics.split("\r\n")

    def test_no_bare_newlines(self):
        ics = build_event_ics(_event(), NOW)

        assert "\n" not in ics.replace("\r\n", "")
