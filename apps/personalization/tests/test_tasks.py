"""Tests for batch generation and the Celery tasks."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from apps.personalization.models import Recommendation, RecommendationType
from apps.personalization.services import RecommendationBatch, RecommendationBundle
from apps.personalization.tasks import (
    BatchReport,
    cleanup_expired_recommendations_task,
    generate_for_learners,
    generate_recommendations_task,
)


class FakeAggregator:
    def __init__(self, failing=(), partial=()):
        self.failing = set(failing)
        self.partial = set(partial)
        self.running = 0
        self.max_running = 0

    async def generate_all(self, user_id):
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        await asyncio.sleep(0.01)
        self.running -= 1
        if user_id in self.failing:
            raise RuntimeError(f"store down for {user_id}")
        bundle = RecommendationBundle(content=RecommendationBatch(items=[object(), object()]))
        if user_id in self.partial:
            bundle.failed_categories.append("schedule")
        return bundle


class GenerateForLearnersTests(SimpleTestCase):
    """Tests for generate_for_learners()."""

    async def test_failures_are_isolated(self):
        aggregator = FakeAggregator(failing={"u2"}, partial={"u3"})

        with self.assertLogs("apps.personalization", level="ERROR"):
            report = await generate_for_learners(aggregator, ["u1", "u2", "u3"])

        self.assertEqual(sorted(report.succeeded), ["u1", "u3"])
        self.assertEqual(list(report.failed), ["u2"])
        self.assertEqual(report.partial, {"u3": ["schedule"]})
        self.assertEqual(report.recommendations, 4)
        self.assertEqual(report.processed, 3)

    async def test_concurrency_is_bounded(self):
        aggregator = FakeAggregator()

        await generate_for_learners(aggregator, [f"u{i}" for i in range(10)], concurrency=3)

        self.assertLessEqual(aggregator.max_running, 3)

    async def test_progress_callback_and_duplicates(self):
        progress = []

        report = await generate_for_learners(
            FakeAggregator(), ["u1", "u1", "u2"], on_progress=lambda done, total: progress.append((done, total))
        )

        self.assertEqual(report.total, 2)
        self.assertEqual(progress, [(1, 2), (2, 2)])


class GenerateRecommendationsTaskTests(SimpleTestCase):
    @patch("apps.personalization.tasks._generate_for_active_learners", new_callable=AsyncMock)
    def test_task_returns_report(self, mock_generate):
        mock_generate.return_value = BatchReport(total=2, succeeded=["u1"], failed={"u2": "boom"}, recommendations=5)

        result = generate_recommendations_task.apply(args=[["u1", "u2"]]).get()

        self.assertEqual(result["processed"], 2)
        self.assertEqual(result["failed"], {"u2": "boom"})
        self.assertEqual(result["recommendations"], 5)
        self.assertEqual(mock_generate.call_args.args[0], ["u1", "u2"])


class CleanupExpiredRecommendationsTaskTests(TestCase):
    def test_deletes_only_expired(self):
        now = timezone.now()
        Recommendation.objects.bulk_create(
            [
                Recommendation(
                    student_id="u1",
                    recommendation_type=RecommendationType.BREAK_SUGGESTION,
                    title="Study Break Recommendation",
                    expires_at=now - timedelta(hours=1),
                ),
                Recommendation(
                    student_id="u1",
                    recommendation_type=RecommendationType.STUDY_SCHEDULE,
                    title="Optimized Study Schedule",
                    expires_at=now + timedelta(days=1),
                ),
            ]
        )

        deleted = cleanup_expired_recommendations_task()

        self.assertEqual(deleted, 1)
        self.assertEqual(Recommendation.objects.count(), 1)
