"""In-memory collaborator implementations used for local wiring and tests."""

import logging
from collections import defaultdict
from datetime import datetime

from .collaborators import (
    ActivityEvent,
    ActivityStore,
    ContentCatalog,
    ContentItem,
    CoursePerformance,
    DailyRollup,
    Enrollment,
    EnrollmentStore,
    PerformanceStore,
    StrugglingContent,
    SubjectScore,
)
from .models import ContentType

logger = logging.getLogger(__name__)


class InMemoryActivityStore(ActivityStore):
    def __init__(self, events: dict | None = None, rollups: dict | None = None):
        self._events = defaultdict(list)
        self._rollups = defaultdict(list)
        for user_id, user_events in (events or {}).items():
            self._events[user_id].extend(user_events)
        for user_id, user_rollups in (rollups or {}).items():
            self._rollups[user_id].extend(user_rollups)

    def add_event(self, user_id: str, event: ActivityEvent) -> None:
        self._events[user_id].append(event)

    def add_rollup(self, user_id: str, rollup: DailyRollup) -> None:
        self._rollups[user_id].append(rollup)

    async def find_recent(self, user_id, since):
        events = [e for e in self._events.get(user_id, []) if e.timestamp >= since]
        return sorted(events, key=lambda e: e.timestamp)

    async def find_daily_rollups(self, user_id, since):
        since_day = since.date() if isinstance(since, datetime) else since
        rollups = [r for r in self._rollups.get(user_id, []) if r.day >= since_day]
        return sorted(rollups, key=lambda r: r.day)

    async def find_active_user_ids(self, since):
        return sorted(
            user_id
            for user_id, events in self._events.items()
            if any(e.timestamp >= since for e in events)
        )


class InMemoryContentCatalog(ContentCatalog):
    def __init__(self, items: list[ContentItem] | None = None, completed: dict | None = None):
        self._items: dict[str, ContentItem] = {}
        self._completed = defaultdict(set)
        for item in items or []:
            self.add(item)
        for user_id, content_ids in (completed or {}).items():
            self._completed[user_id].update(content_ids)

    def add(self, item: ContentItem) -> None:
        self._items[item.content_id] = item

    def mark_completed(self, user_id: str, content_id: str) -> None:
        self._completed[user_id].add(content_id)

    async def get(self, content_id, content_type=None):
        item = self._items.get(content_id)
        if item is None or (content_type and item.content_type != content_type):
            return None
        return item

    async def find_candidates(self, content_type=None, categories=None, exclude_ids=None):
        wanted_categories = {c.lower() for c in categories} if categories else None
        exclude_ids = exclude_ids or set()

        candidates = []
        for item in self._items.values():
            if item.content_id in exclude_ids:
                continue
            if content_type and item.content_type != content_type:
                continue
            if wanted_categories is not None and item.category.lower() not in wanted_categories:
                continue
            candidates.append(item)

        # Highest rated first, catalog order otherwise
        return sorted(candidates, key=lambda item: -item.rating)

    async def find_next_lesson(self, user_id, course_id):
        completed = self._completed.get(user_id, set())
        lessons = [
            item
            for item in self._items.values()
            if item.content_type == ContentType.LESSON and item.course_id == course_id
        ]
        lessons.sort(key=lambda item: item.metadata.get("order_index", 0))
        for lesson in lessons:
            if lesson.content_id not in completed:
                return lesson
        return None


class InMemoryEnrollmentStore(EnrollmentStore):
    def __init__(self, enrollments: dict | None = None):
        self._enrollments = defaultdict(list)
        for user_id, user_enrollments in (enrollments or {}).items():
            self._enrollments[user_id].extend(user_enrollments)

    def add(self, user_id: str, enrollment: Enrollment) -> None:
        self._enrollments[user_id].append(enrollment)

    async def find_active(self, user_id):
        return [e for e in self._enrollments.get(user_id, []) if e.status == "active"]


class InMemoryPerformanceStore(PerformanceStore):
    def __init__(
        self,
        subject_scores: dict | None = None,
        course_performance: dict | None = None,
        struggling: dict | None = None,
    ):
        self._subject_scores: dict[str, list[SubjectScore]] = dict(subject_scores or {})
        self._course_performance: dict[str, list[CoursePerformance]] = dict(course_performance or {})
        self._struggling: dict[str, list[StrugglingContent]] = dict(struggling or {})

    async def aggregate_scores_by_subject(self, user_id):
        return list(self._subject_scores.get(user_id, []))

    async def course_performance(self, user_id):
        return list(self._course_performance.get(user_id, []))

    async def find_struggling_content(self, user_id, since):
        items = [
            s
            for s in self._struggling.get(user_id, [])
            if s.attempted_at is None or s.attempted_at >= since
        ]
        # Worst score first, most recent first on ties
        return sorted(
            items,
            key=lambda s: (s.score, -(s.attempted_at.timestamp() if s.attempted_at else 0)),
        )
