"""
Record types and collaborator contracts consumed by the personalization engine.

Stores are abstract and asynchronous: every call into a collaborator is a
suspension point for the calling coroutine. Concrete implementations live in
``stores.py`` (in-memory), ``repositories.py`` and ``collaborative.py``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from .exceptions import ValidationFailure


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActivityEvent:
    """A single learner activity (video play, quiz completion, chat message...)."""

    activity_type: str
    timestamp: datetime
    duration_seconds: float | None = None
    content_id: str | None = None
    content_type: str | None = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DailyRollup:
    """Per-day analytics for one learner."""

    day: date
    lessons_completed: float = 0.0  # per-day completion metric, 1.0 = met the daily target
    time_spent_seconds: float = 0.0
    progress_percentage: float = 0.0


@dataclass(frozen=True)
class SubjectScore:
    subject: str
    avg_score: float
    attempts: int


@dataclass
class ContentItem:
    """Catalog entry for a course, lesson or assessment."""

    content_id: str
    content_type: str
    title: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    category: str = ""
    difficulty: Any = "intermediate"  # label (beginner..expert) or level 1-5
    duration_seconds: float = 0.0
    topics: tuple[str, ...] = ()
    prerequisites: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    course_id: str | None = None
    rating: float = 0.0
    metadata: dict = field(default_factory=dict)

    @property
    def duration_minutes(self) -> int:
        return int(round(self.duration_seconds / 60)) if self.duration_seconds else 0


@dataclass(frozen=True)
class Enrollment:
    course_id: str
    course_title: str = ""
    category: str = ""
    status: str = "active"
    progress_percentage: float = 0.0


@dataclass(frozen=True)
class CoursePerformance:
    """Assessment performance of one learner in one course."""

    course_id: str
    course_name: str
    current_level: str
    avg_score: float
    attempts: int
    avg_time_spent_seconds: float = 0.0
    failed_attempts: int = 0
    last_attempt_at: datetime | None = None


@dataclass(frozen=True)
class StrugglingContent:
    content_id: str
    content_type: str
    title: str
    subject: str
    score: float
    difficulty: str = "intermediate"
    reason: str = "Low performance on recent assessment"
    attempted_at: datetime | None = None


@dataclass(frozen=True)
class CollaborativeCandidate:
    content_id: str
    content_type: str
    title: str = ""
    score: float = 0.0
    similar_user_count: int = 0


@dataclass(frozen=True)
class GenerationResult:
    text: str
    confidence: float
    metadata: dict = field(default_factory=dict)


@dataclass
class RecommendationFilter:
    """Filter and page for listing a learner's stored recommendations."""

    recommendation_type: str | None = None
    status: str | None = None
    priority: str | None = None
    limit: int = 20
    offset: int = 0

    def __post_init__(self):
        if self.limit is None or self.limit < 1:
            raise ValidationFailure(f"limit must be a positive integer, got {self.limit!r}")
        if self.offset is None or self.offset < 0:
            raise ValidationFailure(f"offset must be non-negative, got {self.offset!r}")


@dataclass
class RecommendationPage:
    items: list
    total: int

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
        }


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------


class ActivityStore(ABC):
    @abstractmethod
    async def find_recent(self, user_id: str, since: datetime) -> list[ActivityEvent]:
        """Activity events at or after `since`, oldest first."""
        pass

    @abstractmethod
    async def find_daily_rollups(self, user_id: str, since: datetime) -> list[DailyRollup]:
        pass

    @abstractmethod
    async def find_active_user_ids(self, since: datetime) -> list[str]:
        """Learners with any activity at or after `since`."""
        pass


class ContentCatalog(ABC):
    @abstractmethod
    async def get(self, content_id: str, content_type: str | None = None) -> ContentItem | None:
        pass

    @abstractmethod
    async def find_candidates(
        self,
        content_type: str | None = None,
        categories: list[str] | None = None,
        exclude_ids: set[str] | None = None,
    ) -> list[ContentItem]:
        """Published catalog items, optionally narrowed by type and category."""
        pass

    @abstractmethod
    async def find_next_lesson(self, user_id: str, course_id: str) -> ContentItem | None:
        """The first lesson of `course_id` the learner has not completed yet."""
        pass


class EnrollmentStore(ABC):
    @abstractmethod
    async def find_active(self, user_id: str) -> list[Enrollment]:
        pass


class PerformanceStore(ABC):
    @abstractmethod
    async def aggregate_scores_by_subject(self, user_id: str) -> list[SubjectScore]:
        pass

    @abstractmethod
    async def course_performance(self, user_id: str) -> list[CoursePerformance]:
        """Per-course assessment aggregates for the learner's active enrollments."""
        pass

    @abstractmethod
    async def find_struggling_content(
        self, user_id: str, since: datetime
    ) -> list[StrugglingContent]:
        """Low-scoring attempts since `since`, worst first."""
        pass


class RecommendationRepository(ABC):
    @abstractmethod
    async def save(self, recommendations: list) -> list:
        pass

    @abstractmethod
    async def update(self, recommendation) -> None:
        pass

    @abstractmethod
    async def find_by_student(
        self, student_id: str, filters: RecommendationFilter, now: datetime
    ) -> RecommendationPage:
        pass

    @abstractmethod
    async def find_one(self, recommendation_id, student_id: str):
        """The recommendation if it exists and belongs to `student_id`, else None."""
        pass

    @abstractmethod
    async def delete_expired(self, before: datetime) -> int:
        pass


class CollaborativeFilteringProvider(ABC):
    """
    Pluggable collaborative-filtering signal.

    Implementations return at most `limit` candidates with scores in [0, 1]
    (out-of-range scores are clamped by the caller) and raise
    ``UpstreamUnavailable`` when the backing service cannot answer.
    """

    @abstractmethod
    async def recommend(
        self, user_id: str, content_type: str | None = None, limit: int = 5
    ) -> list[CollaborativeCandidate]:
        pass


class TextGenerationService(ABC):
    @abstractmethod
    async def generate(self, prompt: str, params: dict | None = None, fallback: str = ""):
        """Return ``(GenerationResult, used_fallback)``; never raises upstream errors."""
        pass
