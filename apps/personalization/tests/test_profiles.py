"""Tests for learning profile inference and the cached profile service."""

from datetime import date, datetime, timedelta
from datetime import timezone as dt_timezone
from unittest.mock import AsyncMock

from django.core.cache import caches
from django.test import SimpleTestCase

from apps.personalization.collaborators import ActivityEvent, DailyRollup, SubjectScore
from apps.personalization.models import ActivityType, LearningStyle, Pace, TimeSlot
from apps.personalization.profiles import (
    DEFAULT_SESSION_SECONDS,
    LearningProfile,
    LearningProfileEngine,
    LearningProfileService,
    time_slot_for_hour,
)
from apps.personalization.stores import InMemoryActivityStore, InMemoryPerformanceStore

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=dt_timezone.utc)


def event(activity_type, hours_ago=1, duration=None, content_id=None):
    return ActivityEvent(
        activity_type=activity_type,
        timestamp=NOW - timedelta(hours=hours_ago),
        duration_seconds=duration,
        content_id=content_id,
    )


class TimeSlotTests(SimpleTestCase):
    """Tests for time_slot_for_hour()."""

    def test_bucket_boundaries(self):
        self.assertEqual(time_slot_for_hour(6), TimeSlot.MORNING)
        self.assertEqual(time_slot_for_hour(11), TimeSlot.MORNING)
        self.assertEqual(time_slot_for_hour(12), TimeSlot.AFTERNOON)
        self.assertEqual(time_slot_for_hour(18), TimeSlot.EVENING)
        self.assertEqual(time_slot_for_hour(22), TimeSlot.NIGHT)
        self.assertEqual(time_slot_for_hour(3), TimeSlot.NIGHT)


class LearningProfileEngineTests(SimpleTestCase):
    """Tests for LearningProfileEngine heuristics."""

    def setUp(self):
        self.engine = LearningProfileEngine()

    def test_empty_history_gives_defaults(self):
        """No data at all degrades to documented defaults."""
        profile = self.engine.analyze("u1", [], [], [], NOW)

        self.assertEqual(profile.preferred_time_slots, ())
        self.assertEqual(profile.avg_session_duration_seconds, DEFAULT_SESSION_SECONDS)
        self.assertEqual(profile.learning_style, LearningStyle.MIXED)
        self.assertEqual(profile.pace, Pace.NORMAL)
        self.assertEqual(profile.engagement_score, 0.0)
        self.assertEqual(profile.completion_rate, 0.0)
        self.assertEqual(profile.retention_rate, 0.0)

    def test_mostly_video_is_visual(self):
        events = [event(ActivityType.VIDEO_PLAY, hours_ago=i) for i in range(1, 7)]
        events += [event(ActivityType.QUIZ_COMPLETE, hours_ago=10)]

        self.assertEqual(self.engine.learning_style(events), LearningStyle.VISUAL)

    def test_spread_out_activity_is_mixed(self):
        """No style reaches a 40% share."""
        events = [
            event(ActivityType.VIDEO_PLAY, 1),
            event(ActivityType.CHAT_MESSAGE, 2),
            event(ActivityType.LESSON_START, 3),
            event(ActivityType.QUIZ_START, 4),
        ]

        self.assertEqual(self.engine.learning_style(events), LearningStyle.MIXED)

    def test_style_tie_prefers_visual(self):
        events = [event(ActivityType.QUIZ_START, 1), event(ActivityType.VIDEO_PLAY, 2)]

        self.assertEqual(self.engine.learning_style(events), LearningStyle.VISUAL)

    def test_preferred_time_slots_top_two(self):
        events = [
            ActivityEvent(ActivityType.VIDEO_PLAY, datetime(2026, 3, 1, 8, tzinfo=dt_timezone.utc)),
            ActivityEvent(ActivityType.VIDEO_PLAY, datetime(2026, 3, 1, 9, tzinfo=dt_timezone.utc)),
            ActivityEvent(ActivityType.VIDEO_PLAY, datetime(2026, 3, 1, 19, tzinfo=dt_timezone.utc)),
            ActivityEvent(ActivityType.VIDEO_PLAY, datetime(2026, 3, 1, 14, tzinfo=dt_timezone.utc)),
            ActivityEvent(ActivityType.VIDEO_PLAY, datetime(2026, 3, 1, 15, tzinfo=dt_timezone.utc)),
            ActivityEvent(ActivityType.VIDEO_PLAY, datetime(2026, 3, 1, 16, tzinfo=dt_timezone.utc)),
        ]

        self.assertEqual(
            self.engine.preferred_time_slots(events), (TimeSlot.AFTERNOON, TimeSlot.MORNING)
        )

    def test_average_session_ignores_invalid_durations(self):
        events = [
            event(ActivityType.LESSON_COMPLETE, 1, duration=600),
            event(ActivityType.LESSON_COMPLETE, 2, duration=1200),
            event(ActivityType.LESSON_COMPLETE, 3, duration=-5),
            event(ActivityType.LESSON_COMPLETE, 4, duration=None),
        ]

        self.assertEqual(self.engine.average_session_duration(events), 900)

    def test_pace_thresholds(self):
        fast = [event(ActivityType.LESSON_COMPLETE, 1, duration=10 * 60)]
        slow = [event(ActivityType.LESSON_COMPLETE, 1, duration=50 * 60)]
        normal = [event(ActivityType.LESSON_COMPLETE, 1, duration=30 * 60)]

        self.assertEqual(self.engine.pace(fast), Pace.FAST)
        self.assertEqual(self.engine.pace(slow), Pace.SLOW)
        self.assertEqual(self.engine.pace(normal), Pace.NORMAL)

    def test_subject_performance_requires_three_attempts(self):
        scores = [
            SubjectScore("algebra", 92, 5),
            SubjectScore("geometry", 40, 4),
            SubjectScore("physics", 95, 2),
            SubjectScore("history", 70, 6),
        ]

        strong, weak = self.engine.subject_performance(scores)

        self.assertEqual(strong, ("algebra",))
        self.assertEqual(weak, ("geometry",))

    def test_engagement_score_is_bounded(self):
        events = [
            event(activity_type, hours_ago=24 * day)
            for day in range(30)
            for activity_type in ActivityType.values
        ]
        rollups = [
            DailyRollup(day=date(2026, 2, 1) + timedelta(days=i), lessons_completed=3, time_spent_seconds=7200)
            for i in range(30)
        ]

        score = self.engine.engagement_score(events, rollups)

        self.assertGreaterEqual(score, 0.0)
        self.assertLessEqual(score, 1.0)
        self.assertEqual(score, 0.96)

    def test_retention_rate_is_not_clamped(self):
        """Two calendar days of activity within a day and a half of history."""
        events = [event(ActivityType.VIDEO_PLAY, hours_ago=36), event(ActivityType.VIDEO_PLAY, hours_ago=1)]

        self.assertEqual(self.engine.retention_rate(events, NOW), 2.0)

    def test_completion_rate_clamped(self):
        rollups = [DailyRollup(day=date(2026, 3, 1), progress_percentage=150)]

        self.assertEqual(self.engine.completion_rate(rollups), 1.0)

    def test_analysis_is_deterministic(self):
        events = [event(ActivityType.VIDEO_PLAY, h, duration=900) for h in (2, 5, 30, 50)]
        rollups = [DailyRollup(day=date(2026, 3, 1), lessons_completed=0.5, progress_percentage=40)]

        first = self.engine.analyze("u1", events, rollups, [], NOW)
        second = self.engine.analyze("u1", list(reversed(events)), rollups, [], NOW)

        self.assertEqual(first, second)


class LearningProfileSerializationTests(SimpleTestCase):
    def test_dict_round_trip(self):
        profile = LearningProfile(
            user_id="u1",
            preferred_time_slots=("morning",),
            weak_subjects=("geometry",),
            engagement_score=0.4,
            generated_at=NOW,
        )

        restored = LearningProfile.from_dict(profile.to_dict())

        self.assertEqual(restored, profile)
        self.assertEqual(restored.generated_at, NOW)


class LearningProfileServiceTests(SimpleTestCase):
    """Tests for LearningProfileService caching."""

    def setUp(self):
        self.cache = caches["default"]
        self.cache.clear()
        self.activity_store = InMemoryActivityStore(
            events={"u1": [event(ActivityType.VIDEO_PLAY, 2, duration=600)]}
        )
        self.performance_store = InMemoryPerformanceStore()
        self.service = LearningProfileService(
            activity_store=self.activity_store,
            performance_store=self.performance_store,
            cache=self.cache,
            clock=lambda: NOW,
        )

    async def test_profile_is_cached(self):
        """Second lookup is served from the cache without touching the stores."""
        first = await self.service.get_profile("u1")

        self.activity_store.find_recent = AsyncMock(side_effect=AssertionError("store hit"))
        second = await self.service.get_profile("u1")

        self.assertEqual(first, second)
        self.assertEqual(second.avg_session_duration_seconds, 600)

    async def test_invalidate_forces_recompute(self):
        await self.service.get_profile("u1")
        self.activity_store.add_event("u1", event(ActivityType.VIDEO_PLAY, 1, duration=1200))

        await self.service.invalidate("u1")
        profile = await self.service.get_profile("u1")

        self.assertEqual(profile.avg_session_duration_seconds, 900)

    async def test_cache_key_is_per_learner(self):
        self.assertEqual(self.service.cache_key("u1"), "learning_profile:u1")
        await self.service.get_profile("u1")

        self.assertIsNotNone(await self.cache.aget("learning_profile:u1"))
        self.assertIsNone(await self.cache.aget("learning_profile:u2"))
