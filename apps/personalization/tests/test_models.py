"""Tests for the Recommendation model and its status lifecycle."""

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

from django.test import SimpleTestCase, TestCase

from apps.personalization.models import (
    Priority,
    Recommendation,
    RecommendationStatus,
    RecommendationType,
    clamp_confidence,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=dt_timezone.utc)


def make_recommendation(**kwargs):
    kwargs.setdefault("student_id", "u1")
    kwargs.setdefault("recommendation_type", RecommendationType.NEXT_LESSON)
    kwargs.setdefault("title", "Continue with: Loops")
    return Recommendation(**kwargs)


class ClampConfidenceTests(SimpleTestCase):
    def test_clamps_and_sanitizes(self):
        self.assertEqual(clamp_confidence(1.7), 1.0)
        self.assertEqual(clamp_confidence(-0.2), 0.0)
        self.assertEqual(clamp_confidence(float("nan")), 0.0)
        self.assertEqual(clamp_confidence("abc"), 0.0)
        self.assertEqual(clamp_confidence(0.42), 0.42)


class RecommendationLifecycleTests(SimpleTestCase):
    """Tests for Recommendation.apply_interaction()."""

    def test_new_recommendation_is_pending(self):
        recommendation = make_recommendation(confidence_score=1.5)

        self.assertEqual(recommendation.status, RecommendationStatus.PENDING)
        self.assertEqual(recommendation.confidence_score, 1.0)
        self.assertEqual(recommendation.priority, Priority.MEDIUM)

    def test_viewed_activates_pending(self):
        recommendation = make_recommendation()

        changed = recommendation.apply_interaction("viewed", now=NOW)

        self.assertTrue(changed)
        self.assertEqual(recommendation.status, RecommendationStatus.ACTIVE)
        self.assertEqual(recommendation.interacted_at, NOW)
        self.assertEqual(recommendation.interaction_type, "viewed")

    def test_accept_and_dismiss_are_terminal(self):
        accepted = make_recommendation()
        accepted.apply_interaction("accepted", now=NOW)
        accepted.apply_interaction("dismissed", now=NOW + timedelta(minutes=1))

        self.assertEqual(accepted.status, RecommendationStatus.ACCEPTED)
        self.assertTrue(accepted.is_terminal)
        self.assertEqual(accepted.interaction_type, "dismissed")
        self.assertEqual(len(accepted.metadata["interactions"]), 2)

    def test_other_interactions_are_recorded_only(self):
        recommendation = make_recommendation(status=RecommendationStatus.ACTIVE)

        changed = recommendation.apply_interaction("shared", now=NOW)

        self.assertFalse(changed)
        self.assertEqual(recommendation.status, RecommendationStatus.ACTIVE)
        self.assertEqual(recommendation.metadata["interactions"], [{"type": "shared", "at": NOW.isoformat()}])

    def test_expiry(self):
        recommendation = make_recommendation(expires_at=NOW)

        self.assertTrue(recommendation.is_expired(NOW))
        self.assertFalse(recommendation.is_expired(NOW - timedelta(seconds=1)))
        self.assertFalse(make_recommendation().is_expired(NOW))


class RecommendationPersistenceTests(TestCase):
    def test_save_and_to_dict(self):
        recommendation = make_recommendation(expires_at=NOW, metadata={"course_id": "c1"})
        recommendation.save()

        stored = Recommendation.objects.get(id=recommendation.id)
        data = stored.to_dict()

        self.assertEqual(data["student_id"], "u1")
        self.assertEqual(data["recommendation_type"], "next_lesson")
        self.assertEqual(data["metadata"], {"course_id": "c1"})
        self.assertEqual(data["expires_at"], NOW.isoformat())
        self.assertIsNotNone(data["created_at"])
        self.assertEqual(str(stored), "Next Lesson for u1: Continue with: Loops")

    def test_expiring_queryset(self):
        live = make_recommendation(expires_at=NOW + timedelta(days=1))
        stale = make_recommendation(expires_at=NOW - timedelta(days=1))
        forever = make_recommendation()
        Recommendation.objects.bulk_create([live, stale, forever])

        unexpired = set(Recommendation.objects.unexpired(NOW).values_list("id", flat=True))
        expired = set(Recommendation.objects.expired(NOW).values_list("id", flat=True))

        self.assertEqual(unexpired, {live.id, forever.id})
        self.assertEqual(expired, {stale.id})
