"""
Learning profile inference.

Aggregates a learner's recent activity events, daily analytics rollups and
per-subject assessment scores into a ``LearningProfile``. All computations are
deterministic heuristics: identical inputs (including ``now``) always produce an
identical profile, and every sub-computation degrades to a documented default
on empty input instead of raising.
"""

import logging
import math
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

from django.utils import timezone

from .collaborators import ActivityEvent, ActivityStore, DailyRollup, PerformanceStore, SubjectScore
from .conf import get_setting
from .models import ActivityType, LearningStyle, Pace, TimeSlot

logger = logging.getLogger(__name__)


DEFAULT_SESSION_SECONDS = 1800.0
FAST_PACE_SECONDS = 15 * 60
SLOW_PACE_SECONDS = 45 * 60
MIXED_STYLE_SHARE = 0.4
MIN_SUBJECT_ATTEMPTS = 3
STRONG_SUBJECT_SCORE = 80
WEAK_SUBJECT_SCORE = 60
MAX_LISTED_SUBJECTS = 3
WINDOW_DAYS = 30

ENGAGEMENT_WEIGHTS = {
    "session_frequency": 0.3,
    "completion": 0.3,
    "interaction_diversity": 0.2,
    "time_spent": 0.2,
}

STYLE_BY_ACTIVITY = {
    ActivityType.VIDEO_PLAY.value: LearningStyle.VISUAL,
    ActivityType.VIDEO_COMPLETE.value: LearningStyle.VISUAL,
    ActivityType.LESSON_START.value: LearningStyle.READING_WRITING,
    ActivityType.LESSON_COMPLETE.value: LearningStyle.READING_WRITING,
    ActivityType.QUIZ_START.value: LearningStyle.KINESTHETIC,
    ActivityType.QUIZ_COMPLETE.value: LearningStyle.KINESTHETIC,
    ActivityType.DISCUSSION_POST.value: LearningStyle.AUDITORY,
    ActivityType.CHAT_MESSAGE.value: LearningStyle.AUDITORY,
}

# Tie-break order when two styles have the same count
STYLE_ORDER = (
    LearningStyle.VISUAL,
    LearningStyle.AUDITORY,
    LearningStyle.READING_WRITING,
    LearningStyle.KINESTHETIC,
)


@dataclass(frozen=True)
class LearningProfile:
    """Behavioral snapshot of one learner over the analysis window."""

    user_id: str
    preferred_time_slots: tuple[str, ...] = ()
    avg_session_duration_seconds: float = DEFAULT_SESSION_SECONDS
    learning_style: str = LearningStyle.MIXED.value
    pace: str = Pace.NORMAL.value
    strong_subjects: tuple[str, ...] = ()
    weak_subjects: tuple[str, ...] = ()
    engagement_score: float = 0.0
    completion_rate: float = 0.0
    retention_rate: float = 0.0  # raw ratio, exceeds 1 for short dense histories
    difficulty_preference: str = "adaptive"
    generated_at: datetime | None = field(default=None, compare=False)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["preferred_time_slots"] = list(self.preferred_time_slots)
        data["strong_subjects"] = list(self.strong_subjects)
        data["weak_subjects"] = list(self.weak_subjects)
        data["generated_at"] = self.generated_at.isoformat() if self.generated_at else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LearningProfile":
        generated_at = data.get("generated_at")
        return cls(
            user_id=data["user_id"],
            preferred_time_slots=tuple(data.get("preferred_time_slots", ())),
            avg_session_duration_seconds=data.get(
                "avg_session_duration_seconds", DEFAULT_SESSION_SECONDS
            ),
            learning_style=data.get("learning_style", LearningStyle.MIXED.value),
            pace=data.get("pace", Pace.NORMAL.value),
            strong_subjects=tuple(data.get("strong_subjects", ())),
            weak_subjects=tuple(data.get("weak_subjects", ())),
            engagement_score=data.get("engagement_score", 0.0),
            completion_rate=data.get("completion_rate", 0.0),
            retention_rate=data.get("retention_rate", 0.0),
            difficulty_preference=data.get("difficulty_preference", "adaptive"),
            generated_at=datetime.fromisoformat(generated_at) if generated_at else None,
        )


def time_slot_for_hour(hour: int) -> str:
    if 6 <= hour < 12:
        return TimeSlot.MORNING.value
    if 12 <= hour < 18:
        return TimeSlot.AFTERNOON.value
    if 18 <= hour < 22:
        return TimeSlot.EVENING.value
    return TimeSlot.NIGHT.value


def _positive_duration(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or value <= 0:
        return None
    return float(value)


class LearningProfileEngine:
    """Pure profile computation; performs no I/O."""

    def __init__(self, window_days: int = WINDOW_DAYS, logger: logging.Logger | None = None):
        self.window_days = window_days
        self.logger = logger or logging.getLogger(__name__)

    def analyze(
        self,
        user_id: str,
        events: list[ActivityEvent],
        rollups: list[DailyRollup],
        subject_scores: list[SubjectScore],
        now: datetime,
    ) -> LearningProfile:
        """
        Build a profile from one learner's activity window.

        Args:
            user_id: The learner the data belongs to.
            events: Activity events inside the window, any order.
            rollups: Daily analytics rollups inside the window.
            subject_scores: Per-subject assessment aggregates.
            now: Reference time used for the retention window.

        Returns:
            A new LearningProfile.
        """
        events = sorted(events, key=lambda e: e.timestamp)
        strong, weak = self.subject_performance(subject_scores)

        profile = LearningProfile(
            user_id=user_id,
            preferred_time_slots=self.preferred_time_slots(events),
            avg_session_duration_seconds=self.average_session_duration(events),
            learning_style=self.learning_style(events),
            pace=self.pace(events),
            strong_subjects=strong,
            weak_subjects=weak,
            engagement_score=self.engagement_score(events, rollups),
            completion_rate=self.completion_rate(rollups),
            retention_rate=self.retention_rate(events, now),
            generated_at=now,
        )
        self.logger.debug(
            f"Profile for {user_id}: style={profile.learning_style}, pace={profile.pace}, "
            f"engagement={profile.engagement_score} from {len(events)} events"
        )
        return profile

    def preferred_time_slots(self, events: list[ActivityEvent]) -> tuple[str, ...]:
        # Counter.most_common is stable, so ties keep first-seen bucket order
        counts = Counter(time_slot_for_hour(e.timestamp.hour) for e in events)
        return tuple(slot for slot, _ in counts.most_common(2))

    def average_session_duration(self, events: list[ActivityEvent]) -> float:
        durations = [d for d in (_positive_duration(e.duration_seconds) for e in events) if d]
        if not durations:
            return DEFAULT_SESSION_SECONDS
        return sum(durations) / len(durations)

    def learning_style(self, events: list[ActivityEvent]) -> str:
        counts = Counter(
            STYLE_BY_ACTIVITY[e.activity_type]
            for e in events
            if e.activity_type in STYLE_BY_ACTIVITY
        )
        total = sum(counts.values())
        if total == 0:
            return LearningStyle.MIXED.value

        dominant = max(STYLE_ORDER, key=lambda style: counts.get(style, 0))
        if counts[dominant] / total < MIXED_STYLE_SHARE:
            return LearningStyle.MIXED.value
        return dominant.value

    def engagement_score(self, events: list[ActivityEvent], rollups: list[DailyRollup]) -> float:
        active_days = len({e.timestamp.date() for e in events})
        session_frequency = min(active_days / 30, 1.0)

        if rollups:
            completion = sum(r.lessons_completed or 0 for r in rollups) / len(rollups)
        else:
            completion = 0.0
        completion = max(0.0, min(completion, 1.0))

        distinct_types = len({e.activity_type for e in events})
        interaction_diversity = min(distinct_types / 10, 1.0)

        total_seconds = sum(r.time_spent_seconds or 0 for r in rollups)
        time_spent = min(total_seconds / (30 * 3600), 1.0)

        score = (
            session_frequency * ENGAGEMENT_WEIGHTS["session_frequency"]
            + completion * ENGAGEMENT_WEIGHTS["completion"]
            + interaction_diversity * ENGAGEMENT_WEIGHTS["interaction_diversity"]
            + time_spent * ENGAGEMENT_WEIGHTS["time_spent"]
        )
        return max(0.0, min(round(score, 2), 1.0))

    def pace(self, events: list[ActivityEvent]) -> str:
        durations = [
            d
            for d in (
                _positive_duration(e.duration_seconds)
                for e in events
                if e.activity_type == ActivityType.LESSON_COMPLETE
            )
            if d
        ]
        if not durations:
            return Pace.NORMAL.value

        avg_lesson_time = sum(durations) / len(durations)
        if avg_lesson_time < FAST_PACE_SECONDS:
            return Pace.FAST.value
        if avg_lesson_time > SLOW_PACE_SECONDS:
            return Pace.SLOW.value
        return Pace.NORMAL.value

    def subject_performance(
        self, subject_scores: list[SubjectScore]
    ) -> tuple[tuple[str, ...], tuple[str, ...]]:
        qualified = [s for s in subject_scores if s.attempts >= MIN_SUBJECT_ATTEMPTS]
        qualified.sort(key=lambda s: s.avg_score, reverse=True)

        strong = [s.subject for s in qualified if s.avg_score >= STRONG_SUBJECT_SCORE]
        weak = [s.subject for s in qualified if s.avg_score < WEAK_SUBJECT_SCORE]
        return tuple(strong[:MAX_LISTED_SUBJECTS]), tuple(weak[-MAX_LISTED_SUBJECTS:])

    def completion_rate(self, rollups: list[DailyRollup]) -> float:
        if not rollups:
            return 0.0
        total_progress = sum(r.progress_percentage or 0 for r in rollups)
        return max(0.0, min(total_progress / (len(rollups) * 100), 1.0))

    def retention_rate(self, events: list[ActivityEvent], now: datetime) -> float:
        if not events:
            return 0.0
        distinct_days = len({e.timestamp.date() for e in events})
        first_seen = min(e.timestamp for e in events)
        expected_days = min(int((now - first_seen).total_seconds() // 86400), self.window_days)
        if expected_days <= 0:
            return 0.0
        return distinct_days / expected_days


class LearningProfileService:
    """Cached access to learning profiles.

    The cache is any object exposing Django's cache API (``aget``/``aset``/
    ``adelete``). Concurrent misses for the same learner may each recompute the
    profile; the result is idempotent so the last write wins.
    """

    CACHE_KEY = "learning_profile:{user_id}"

    def __init__(
        self,
        activity_store: ActivityStore,
        performance_store: PerformanceStore,
        cache,
        engine: LearningProfileEngine | None = None,
        ttl: int | None = None,
        window_days: int | None = None,
        clock=None,
        logger: logging.Logger | None = None,
    ):
        self.activity_store = activity_store
        self.performance_store = performance_store
        self.cache = cache
        self.window_days = window_days or get_setting("PROFILE_WINDOW_DAYS")
        self.engine = engine or LearningProfileEngine(window_days=self.window_days)
        self.ttl = ttl or get_setting("PROFILE_CACHE_TTL")
        self.clock = clock or timezone.now
        self.logger = logger or logging.getLogger(__name__)

    def cache_key(self, user_id: str) -> str:
        return self.CACHE_KEY.format(user_id=user_id)

    async def get_profile(self, user_id: str) -> LearningProfile:
        cached = await self.cache.aget(self.cache_key(user_id))
        if cached is not None:
            return LearningProfile.from_dict(cached)

        now = self.clock()
        since = now - timedelta(days=self.window_days)
        events = await self.activity_store.find_recent(user_id, since)
        rollups = await self.activity_store.find_daily_rollups(user_id, since)
        scores = await self.performance_store.aggregate_scores_by_subject(user_id)

        profile = self.engine.analyze(user_id, events, rollups, scores, now)
        await self.cache.aset(self.cache_key(user_id), profile.to_dict(), self.ttl)
        self.logger.info(f"Computed learning profile for user {user_id}")
        return profile

    async def invalidate(self, user_id: str) -> None:
        await self.cache.adelete(self.cache_key(user_id))
