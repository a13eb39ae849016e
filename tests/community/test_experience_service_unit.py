"""Unit tests for the ExperienceService.

In-memory mode is exercised against the seeded fallback store. Live mode
uses a LiveDataSource over a mocked repository to verify the live-first
read policy: failures, timeouts and empty answers are served from the
fallback source, while writes surface their errors.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.community.errors import StoreUnavailable, ValidationError
from src.community.experience.fallback import FallbackStore
from src.community.experience.models import (
    DevotionLogDto,
    EventFilters,
    PostRecord,
    PracticeTotals,
    RsvpStatus,
    UserProfile,
)
from src.community.experience.pagination import PaginationCodec
from src.community.experience.samples import SAMPLE_EVENT_ID
from src.community.experience.service import ExperienceService
from src.community.experience.sources import LiveDataSource


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def run_async(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def _make_service(live=None, metrics=None, store_timeout=5.0, now=NOW):
    return ExperienceService(
        FallbackStore(now=now),
        live=live,
        store_timeout=store_timeout,
        metrics=metrics,
        clock=lambda: now,
    )


def _make_live(**repository_returns):
    repository = AsyncMock()
    for name, value in repository_returns.items():
        getattr(repository, name).return_value = value
    return LiveDataSource(repository), repository


def _fallback_count(metrics, operation, reason):
    return metrics.registry.get_sample_value(
        "community_fallback_reads_total", {"operation": operation, "reason": reason}
    )


# ---------------------------------------------------------------------------
# Trending topics and suggestions (in-memory)
# ---------------------------------------------------------------------------


class TestTrendingInMemory:

    def test_sample_topics_with_default_window(self):
        topics = run_async(_make_service().list_trending_topics())

        assert [t.topic for t in topics][:2] == ["Bhagavad Gita", "Navaratri"]
        assert topics[0].velocity_score == 0.92
        assert len(topics) == 5

    def test_window_weight_and_limit(self):
        topics = run_async(_make_service().list_trending_topics(limit=1, window="7d"))

        assert len(topics) == 1
        assert topics[0].velocity_score == round(0.92 * 0.7, 2)

    def test_stored_posts_are_scored(self):
        service = _make_service()
        post = PostRecord(id="p1", user_id="u1", spiritual_topic="Seva", tags=["Kirtan"],
                          likes_count=5, created_at=NOW - timedelta(hours=2))

        async def scenario():
            await service.create_post(post)
            return await service.list_trending_topics(window="6h")

        topics = run_async(scenario())

        assert sorted(t.topic for t in topics) == ["kirtan", "seva"]
        assert topics[0].velocity_score == round(0.5 + 0.5 + 0.5, 2)

    def test_posts_outside_window_use_samples(self):
        service = _make_service()
        post = PostRecord(id="p1", user_id="u1", spiritual_topic="Seva",
                          created_at=NOW - timedelta(hours=10))

        async def scenario():
            await service.create_post(post)
            return await service.list_trending_topics(window="6h")

        topics = run_async(scenario())

        assert topics[0].topic == "Bhagavad Gita"

    def test_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            run_async(_make_service().list_trending_topics(limit=0))


class TestSuggestionsInMemory:

    def test_ranked_by_mutual_followers_when_shared_ties(self):
        suggestions = run_async(_make_service().list_suggested_connections(limit=4))

        assert [s.full_name for s in suggestions] == [
            "Meenakshi Devi", "Priya Sharma", "Swami Aniruddha", "Guru Prakash",
        ]

    def test_is_following_reflects_follow_graph(self):
        service = _make_service()
        target = "97a54f0b-aa08-4f5f-b6e7-5444f8a6adcd"

        async def scenario():
            await service.follow_user("me", target)
            return await service.list_suggested_connections(limit=5, user_id="me")

        suggestions = run_async(scenario())

        following = {s.id: s.is_following for s in suggestions}
        assert following[target] is True
        assert sum(following.values()) == 1

    def test_user_is_not_suggested_to_themselves(self):
        me = "61f26f41-45e9-4541-9358-7d6e8fec8591"

        suggestions = run_async(_make_service().list_suggested_connections(limit=5, user_id=me))

        assert me not in {s.id for s in suggestions}


# ---------------------------------------------------------------------------
# Follow graph
# ---------------------------------------------------------------------------


class TestFollowInMemory:

    def test_follow_is_idempotent(self):
        service = _make_service()

        async def scenario():
            await service.follow_user("a", "b")
            await service.follow_user("a", "b")
            return await service.fallback.store.following_ids("a")

        assert run_async(scenario()) == {"b"}

    def test_unfollow_without_follow_is_noop(self):
        service = _make_service()

        run_async(service.unfollow_user("a", "b"))

        assert run_async(service.fallback.store.following_ids("a")) == set()

    def test_unfollow_removes_edge(self):
        service = _make_service()

        async def scenario():
            await service.follow_user("a", "b")
            await service.unfollow_user("a", "b")
            return await service.fallback.store.following_ids("a")

        assert run_async(scenario()) == set()

    @pytest.mark.parametrize("follower,followee", [("a", "a"), ("", "b"), ("a", "  ")])
    def test_invalid_follow_rejected(self, follower, followee):
        with pytest.raises(ValidationError):
            run_async(_make_service().follow_user(follower, followee))


# ---------------------------------------------------------------------------
# Community members
# ---------------------------------------------------------------------------


class TestCommunityMembersInMemory:

    def test_pages_through_all_members(self):
        service = _make_service()

        async def scenario():
            ids, cursor = [], None
            while True:
                page = await service.list_community_members(limit=2, cursor=cursor)
                ids.extend(m.id for m in page.items)
                cursor = page.next_cursor
                if cursor is None:
                    return ids

        assert run_async(scenario()) == [f"community-{i}" for i in range(1, 6)]

    def test_interest_filter_is_case_insensitive_substring(self):
        page = run_async(_make_service().list_community_members(interest="YOGA"))

        assert [m.id for m in page.items] == ["community-1", "community-4"]
        assert page.next_cursor is None

    def test_invalid_cursor_restarts(self):
        page = run_async(_make_service().list_community_members(limit=10, cursor="%%%"))

        assert len(page.items) == 5

    def test_limit_clamped_to_at_least_one(self):
        page = run_async(_make_service().list_community_members(limit=0))

        assert len(page.items) == 1
        assert PaginationCodec.decode(page.next_cursor) == 1


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def _draft(**overrides):
    fields = {
        "creator_id": "u1",
        "title": "Evening Satsang",
        "start_at": NOW + timedelta(days=2),
        "tags": ["Satsang"],
        "capacity": 30,
    }
    fields.update(overrides)
    return fields


class TestEventsInMemory:

    def test_create_and_list(self):
        service = _make_service()

        async def scenario():
            created = await service.create_event(_draft())
            return created, await service.list_events()

        created, events = run_async(scenario())

        assert created.attendees_count == 0
        assert created.is_attending is False
        # the sample event starts one day out, the new one two days out
        assert [e.id for e in events] == [SAMPLE_EVENT_ID, created.id]

    def test_invalid_draft_rejected(self):
        with pytest.raises(ValidationError):
            run_async(_make_service().create_event(_draft(title="ab")))

    def test_past_events_not_listed(self):
        service = _make_service()

        async def scenario():
            await service.create_event(_draft(start_at=NOW - timedelta(days=1)))
            return await service.list_events()

        assert [e.id for e in run_async(scenario())] == [SAMPLE_EVENT_ID]

    def test_tag_filter_case_insensitive(self):
        events = run_async(_make_service().list_events(EventFilters(interest="KIRTAN")))

        assert [e.id for e in events] == [SAMPLE_EVENT_ID]

    def test_rsvp_unknown_event(self):
        assert run_async(_make_service().rsvp_event("missing", "u1", "going")) is None

    def test_rsvp_invalid_status(self):
        with pytest.raises(ValidationError):
            run_async(_make_service().rsvp_event(SAMPLE_EVENT_ID, "u1", "maybe"))

    def test_rsvp_updates_counts(self):
        service = _make_service()

        async def scenario():
            first = await service.rsvp_event(SAMPLE_EVENT_ID, "u1", RsvpStatus.GOING)
            second = await service.rsvp_event(SAMPLE_EVENT_ID, "u2", "interested")
            changed = await service.rsvp_event(SAMPLE_EVENT_ID, "u1", "not_going")
            return first, second, changed

        first, second, changed = run_async(scenario())

        assert (first.attendees_count, first.is_attending) == (1, True)
        assert (second.attendees_count, second.is_attending) == (2, True)
        assert (changed.attendees_count, changed.is_attending) == (1, False)

    def test_attending_filter(self):
        service = _make_service()

        async def scenario():
            other = await service.create_event(_draft())
            await service.rsvp_event(other.id, "u1", "going")
            return other, await service.list_events(EventFilters(attending=True, user_id="u1"))

        other, events = run_async(scenario())

        assert [e.id for e in events] == [other.id]
        assert events[0].is_attending is True

    def test_ics_for_sample_event(self):
        ics = run_async(_make_service().generate_event_ics(SAMPLE_EVENT_ID))

        assert ics.startswith("BEGIN:VCALENDAR\r\n")
        assert "SUMMARY:Full Moon Kirtan Gathering" in ics
        assert "DTSTART:20240616T120000Z" in ics

    def test_ics_unknown_event(self):
        assert run_async(_make_service().generate_event_ics("missing")) is None


# ---------------------------------------------------------------------------
# Devotion and readings
# ---------------------------------------------------------------------------


class TestDevotionInMemory:

    def test_catalog(self):
        practices = _make_service().list_devotion_practices()

        assert [p.base_points for p in practices] == [20, 15, 25, 30]

    def test_log_returns_refreshed_summary(self):
        service = _make_service()

        async def scenario():
            await service.log_devotion_practice("u1", "practice-1", "medium")
            return await service.log_devotion_practice("u1", "practice-4", "intense", notes="evening")

        summary = run_async(scenario())

        assert summary.total_points == 24 + 45
        assert summary.level == 1
        assert summary.meter == 69
        assert summary.streak == 1
        assert summary.last_practiced_at == NOW
        assert len(summary.recent_logs) == 2

    def test_unknown_practice_worth_ten(self):
        summary = run_async(_make_service().log_devotion_practice("u1", "custom-practice"))

        assert summary.total_points == 10

    def test_level_up(self):
        service = _make_service()

        async def scenario():
            for _ in range(4):
                await service.log_devotion_practice("u1", "practice-4")
            return await service.get_devotion_summary("u1")

        summary = run_async(scenario())

        assert (summary.total_points, summary.level, summary.meter) == (120, 2, 20)

    def test_summary_for_new_user(self):
        summary = run_async(_make_service().get_devotion_summary("nobody"))

        assert (summary.total_points, summary.streak, summary.level) == (0, 0, 1)

    def test_invalid_intensity(self):
        with pytest.raises(ValidationError):
            run_async(_make_service().log_devotion_practice("u1", "practice-1", "extreme"))


class TestReadingsInMemory:

    def test_path_reading(self):
        reading = run_async(_make_service().get_daily_reading("Shakta"))

        assert reading.id == "reading-shakta-1"
        assert reading.recommended_at == NOW

    def test_unknown_path_uses_general(self):
        reading = run_async(_make_service().get_daily_reading("unknown"))

        assert reading.id == "reading-general-1"
        assert reading.path == "general"

    def test_mark_complete(self):
        service = _make_service()

        run_async(service.mark_reading_complete("reading-general-1", "u1"))

        assert run_async(service.fallback.store.completed_readings("u1")) == {"reading-general-1"}


# ---------------------------------------------------------------------------
# Live mode
# ---------------------------------------------------------------------------


class TestLiveReads:

    def test_live_result_returned(self, metrics):
        post = PostRecord(id="p1", user_id="u1", spiritual_topic="Seva",
                          likes_count=5, created_at=NOW - timedelta(hours=2))
        live, repository = _make_live(posts_since=[post])
        service = _make_service(live=live, metrics=metrics)

        topics = run_async(service.list_trending_topics(window="6h"))

        assert [t.topic for t in topics] == ["seva"]
        assert topics[0].velocity_score == round(0.5 + 0.5 + 0.5, 2)
        since, limit = repository.posts_since.call_args.args
        assert since == NOW - timedelta(hours=6)
        assert limit == 1000
        assert _fallback_count(metrics, "trending_topics", "error") is None

    def test_live_error_served_from_fallback(self, metrics):
        live, repository = _make_live()
        repository.posts_since.side_effect = StoreUnavailable("down")
        service = _make_service(live=live, metrics=metrics)

        topics = run_async(service.list_trending_topics())

        assert topics[0].topic == "Bhagavad Gita"
        assert _fallback_count(metrics, "trending_topics", "error") == 1.0

    def test_unexpected_live_error_served_from_fallback(self, metrics):
        live, repository = _make_live()
        repository.get_event.side_effect = KeyError("organizer_id")
        service = _make_service(live=live, metrics=metrics)

        ics = run_async(service.generate_event_ics(SAMPLE_EVENT_ID))

        assert "UID:event-1@sanaathan.community" in ics
        assert _fallback_count(metrics, "event_ics", "error") == 1.0

    def test_live_empty_served_from_fallback(self, metrics):
        live, _ = _make_live(posts_since=[])
        service = _make_service(live=live, metrics=metrics)

        topics = run_async(service.list_trending_topics())

        assert len(topics) == 5
        assert _fallback_count(metrics, "trending_topics", "empty") == 1.0

    def test_live_timeout_served_from_fallback(self, metrics):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return []

        live, repository = _make_live()
        repository.list_members.side_effect = slow
        service = _make_service(live=live, metrics=metrics, store_timeout=0.01)

        page = run_async(service.list_community_members(limit=3))

        assert [m.id for m in page.items] == ["community-1", "community-2", "community-3"]
        assert _fallback_count(metrics, "community_members", "error") == 1.0

    def test_live_members_page(self):
        profiles = [UserProfile(id=f"u{i}", full_name=f"User {i}") for i in range(3)]
        live, repository = _make_live(list_members=profiles)
        service = _make_service(live=live)

        page = run_async(service.list_community_members(interest="Seva", limit=3))

        assert [m.id for m in page.items] == ["u0", "u1", "u2"]
        assert PaginationCodec.decode(page.next_cursor) == 3
        assert repository.list_members.call_args.args == ("Seva", 0, 3)

    def test_live_suggestions(self):
        me = UserProfile(id="me", full_name="Me", interests=["Seva", "Kirtan"])
        candidates = [
            UserProfile(id="a", full_name="A", interests=["Seva"]),
            UserProfile(id="b", full_name="B", interests=["Seva", "Kirtan"]),
            UserProfile(id="c", full_name="C", interests=[]),
        ]
        live, repository = _make_live(
            get_user=me,
            following_ids=["c", "f1"],
            recent_users=candidates,
        )
        from src.community.experience.models import FollowEdge
        repository.follow_edges_to.return_value = [
            FollowEdge(follower_id="f1", followee_id="a"),
            FollowEdge(follower_id="stranger", followee_id="b"),
        ]
        service = _make_service(live=live)

        suggestions = run_async(service.list_suggested_connections(limit=2, user_id="me"))

        assert [s.id for s in suggestions] == ["b", "a"]
        assert suggestions[0].shared_interests == ["Seva", "Kirtan"]
        assert suggestions[1].mutual_followers == 1
        assert repository.recent_users.call_args.args == (6,)
        assert repository.recent_users.call_args.kwargs == {"exclude_id": "me"}

    def test_live_devotion_summary(self):
        recent = [
            DevotionLogDto(id="l1", practice_id="practice-1", performed_at=NOW - timedelta(days=1), points_awarded=20),
            DevotionLogDto(id="l2", practice_id="practice-2", performed_at=NOW - timedelta(days=2), points_awarded=15),
        ]
        totals = PracticeTotals(
            log_count=2,
            total_points=35,
            practice_days=[(NOW - timedelta(days=d)).date() for d in (1, 2)],
        )
        live, repository = _make_live(practice_totals=totals, practice_logs=recent)
        service = _make_service(live=live)

        summary = run_async(service.get_devotion_summary("u1"))

        assert summary.total_points == 35
        assert summary.streak == 2
        assert [log.id for log in summary.recent_logs] == ["l1", "l2"]
        assert repository.practice_logs.call_args.args == ("u1", 10)

    def test_live_totals_cover_every_log(self):
        # 70 daily logs of 10 points; only the newest 10 are fetched as rows
        days = [(NOW - timedelta(days=d)).date() for d in range(70)]
        recent = [
            DevotionLogDto(id=f"l{d}", practice_id="practice-1",
                           performed_at=NOW - timedelta(days=d), points_awarded=10)
            for d in range(10)
        ]
        totals = PracticeTotals(log_count=70, total_points=700, practice_days=days)
        live, _ = _make_live(practice_totals=totals, practice_logs=recent)
        service = _make_service(live=live)

        summary = run_async(service.get_devotion_summary("u1"))

        assert summary.total_points == 700
        assert summary.level == 8
        assert summary.meter == 0
        assert summary.streak == 70
        assert len(summary.recent_logs) == 10
        assert summary.last_practiced_at == NOW

    def test_live_user_without_logs_served_from_fallback(self, metrics):
        live, repository = _make_live(practice_totals=PracticeTotals())
        service = _make_service(live=live, metrics=metrics)

        summary = run_async(service.get_devotion_summary("u1"))

        assert summary.total_points == 0
        assert summary.level == 1
        repository.practice_logs.assert_not_called()
        assert _fallback_count(metrics, "devotion_summary", "empty") == 1.0


class TestLiveWrites:

    def test_writes_go_to_live_only(self):
        live, repository = _make_live()
        service = _make_service(live=live)

        run_async(service.follow_user("a", "b"))

        repository.follow.assert_awaited_once_with("a", "b")
        assert run_async(service.fallback.store.following_ids("a")) == set()

    def test_write_errors_surface(self):
        live, repository = _make_live()
        repository.follow.side_effect = StoreUnavailable("down")
        service = _make_service(live=live)

        with pytest.raises(StoreUnavailable):
            run_async(service.follow_user("a", "b"))

    def test_write_timeout_is_store_unavailable(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        live, repository = _make_live()
        repository.record_reading_completion.side_effect = slow
        service = _make_service(live=live, store_timeout=0.01)

        with pytest.raises(StoreUnavailable):
            run_async(service.mark_reading_complete("r1", "u1"))

    def test_live_rsvp_unknown_event(self):
        live, repository = _make_live(get_event=None)
        service = _make_service(live=live)

        assert run_async(service.rsvp_event("missing", "u1", "going")) is None
        repository.upsert_attendee.assert_not_called()

    def test_validation_happens_before_store_call(self):
        live, repository = _make_live()
        service = _make_service(live=live)

        with pytest.raises(ValidationError):
            run_async(service.create_event(_draft(capacity=0)))

        repository.insert_event.assert_not_called()
