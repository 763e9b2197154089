"""Tests for the Django and in-memory recommendation repositories."""

import uuid
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

from django.test import SimpleTestCase, TestCase

from apps.personalization.collaborators import RecommendationFilter
from apps.personalization.exceptions import ValidationFailure
from apps.personalization.models import Priority, Recommendation, RecommendationStatus, RecommendationType
from apps.personalization.repositories import (
    DjangoRecommendationRepository,
    InMemoryRecommendationRepository,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=dt_timezone.utc)


def recommendations():
    def make(title, priority, confidence, **kwargs):
        kwargs.setdefault("student_id", "u1")
        kwargs.setdefault("recommendation_type", RecommendationType.NEXT_LESSON)
        kwargs.setdefault("expires_at", NOW + timedelta(days=7))
        return Recommendation(title=title, priority=priority, confidence_score=confidence, **kwargs)

    return [
        make("medium-high-confidence", Priority.MEDIUM, 0.95),
        make("high-low-confidence", Priority.HIGH, 0.6),
        make("high-high-confidence", Priority.HIGH, 0.9),
        make("urgent", Priority.URGENT, 0.1),
        make("expired", Priority.URGENT, 1.0, expires_at=NOW - timedelta(minutes=1)),
        make("other-learner", Priority.URGENT, 1.0, student_id="u2"),
        make(
            "schedule",
            Priority.LOW,
            0.8,
            recommendation_type=RecommendationType.STUDY_SCHEDULE,
            expires_at=None,
        ),
    ]


EXPECTED_ORDER = [
    "urgent",
    "high-high-confidence",
    "high-low-confidence",
    "medium-high-confidence",
    "schedule",
]


class RecommendationRepositoryContract:
    """Behaviour shared by every repository implementation."""

    def make_repository(self):
        raise NotImplementedError

    async def populate(self):
        self.repository = self.make_repository()
        await self.repository.save(recommendations())

    async def test_orders_by_priority_then_confidence(self):
        await self.populate()

        page = await self.repository.find_by_student("u1", RecommendationFilter(), NOW)

        self.assertEqual([r.title for r in page.items], EXPECTED_ORDER)
        self.assertEqual(page.total, 5)

    async def test_filters_and_pagination(self):
        await self.populate()

        by_type = await self.repository.find_by_student(
            "u1", RecommendationFilter(recommendation_type=RecommendationType.STUDY_SCHEDULE), NOW
        )
        by_priority = await self.repository.find_by_student(
            "u1", RecommendationFilter(priority=Priority.HIGH, limit=1, offset=1), NOW
        )

        self.assertEqual([r.title for r in by_type.items], ["schedule"])
        self.assertEqual([r.title for r in by_priority.items], ["high-low-confidence"])
        self.assertEqual(by_priority.total, 2)

    async def test_find_one_checks_ownership(self):
        await self.populate()
        page = await self.repository.find_by_student("u1", RecommendationFilter(limit=1), NOW)
        recommendation_id = page.items[0].id

        self.assertIsNotNone(await self.repository.find_one(recommendation_id, "u1"))
        self.assertIsNone(await self.repository.find_one(recommendation_id, "u2"))
        self.assertIsNone(await self.repository.find_one(uuid.uuid4(), "u1"))

    async def test_update_persists_status(self):
        await self.populate()
        page = await self.repository.find_by_student("u1", RecommendationFilter(limit=1), NOW)
        recommendation = page.items[0]

        recommendation.apply_interaction("accepted", now=NOW)
        await self.repository.update(recommendation)

        accepted = await self.repository.find_by_student(
            "u1", RecommendationFilter(status=RecommendationStatus.ACCEPTED), NOW
        )
        self.assertEqual([r.id for r in accepted.items], [recommendation.id])
        self.assertEqual(accepted.items[0].interaction_type, "accepted")

    async def test_delete_expired(self):
        await self.populate()

        deleted = await self.repository.delete_expired(NOW)

        self.assertEqual(deleted, 1)
        self.assertEqual(await self.repository.delete_expired(NOW), 0)


class DjangoRecommendationRepositoryTests(RecommendationRepositoryContract, TestCase):
    """DjangoRecommendationRepository against the test database."""

    def make_repository(self):
        return DjangoRecommendationRepository()

    async def test_malformed_id_is_not_found(self):
        self.assertIsNone(await DjangoRecommendationRepository().find_one("not-a-uuid", "u1"))


class InMemoryRecommendationRepositoryTests(RecommendationRepositoryContract, SimpleTestCase):
    """InMemoryRecommendationRepository with a fixed clock."""

    def make_repository(self):
        return InMemoryRecommendationRepository(clock=lambda: NOW)


class RecommendationFilterTests(SimpleTestCase):
    def test_rejects_bad_paging(self):
        with self.assertRaises(ValidationFailure):
            RecommendationFilter(limit=0)
        with self.assertRaises(ValidationFailure):
            RecommendationFilter(offset=-1)
