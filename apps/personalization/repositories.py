"""Recommendation persistence."""

import logging

from django.core.exceptions import ValidationError
from django.db.models import Case, IntegerField, Value, When
from django.utils import timezone

from .collaborators import RecommendationFilter, RecommendationPage, RecommendationRepository
from .models import PRIORITY_RANK, Recommendation

logger = logging.getLogger(__name__)


PRIORITY_ORDER = Case(
    *[When(priority=priority, then=Value(rank)) for priority, rank in PRIORITY_RANK.items()],
    default=Value(0),
    output_field=IntegerField(),
)


class DjangoRecommendationRepository(RecommendationRepository):
    """Stores recommendations through the Django ORM's async API."""

    UPDATE_FIELDS = ["status", "interacted_at", "interaction_type", "metadata", "updated_at"]

    async def save(self, recommendations):
        if not recommendations:
            return []
        saved = await Recommendation.objects.abulk_create(recommendations)
        logger.info(f"Saved {len(saved)} recommendations")
        return saved

    async def update(self, recommendation):
        await recommendation.asave(update_fields=self.UPDATE_FIELDS)

    async def find_by_student(self, student_id, filters: RecommendationFilter, now):
        queryset = Recommendation.objects.filter(student_id=student_id).unexpired(now)

        if filters.recommendation_type:
            queryset = queryset.filter(recommendation_type=filters.recommendation_type)
        if filters.status:
            queryset = queryset.filter(status=filters.status)
        if filters.priority:
            queryset = queryset.filter(priority=filters.priority)

        total = await queryset.acount()
        ordered = queryset.annotate(priority_rank_value=PRIORITY_ORDER).order_by(
            "-priority_rank_value", "-confidence_score", "-created_at"
        )
        page = ordered[filters.offset : filters.offset + filters.limit]
        items = [recommendation async for recommendation in page]
        return RecommendationPage(items=items, total=total)

    async def find_one(self, recommendation_id, student_id):
        try:
            return await Recommendation.objects.filter(
                id=recommendation_id, student_id=student_id
            ).afirst()
        except (ValidationError, ValueError):
            # Malformed ids cannot match any stored recommendation
            return None

    async def delete_expired(self, before):
        deleted, _ = await Recommendation.objects.expired(before).adelete()
        logger.info(f"Deleted {deleted} expired recommendations")
        return deleted


class InMemoryRecommendationRepository(RecommendationRepository):
    """Dict-backed repository with the same filtering and ordering rules."""

    def __init__(self, clock=None):
        self._items: dict[str, Recommendation] = {}
        self._sequence: dict[str, int] = {}
        self.clock = clock or timezone.now

    def all(self) -> list[Recommendation]:
        return list(self._items.values())

    async def save(self, recommendations):
        now = self.clock()
        for recommendation in recommendations:
            key = str(recommendation.id)
            if recommendation.created_at is None:
                recommendation.created_at = now
            recommendation.updated_at = now
            self._sequence.setdefault(key, len(self._sequence))
            self._items[key] = recommendation
        return list(recommendations)

    async def update(self, recommendation):
        recommendation.updated_at = self.clock()
        self._items[str(recommendation.id)] = recommendation

    async def find_by_student(self, student_id, filters: RecommendationFilter, now):
        matches = [
            r
            for r in self._items.values()
            if r.student_id == student_id
            and not r.is_expired(now)
            and (not filters.recommendation_type or r.recommendation_type == filters.recommendation_type)
            and (not filters.status or r.status == filters.status)
            and (not filters.priority or r.priority == filters.priority)
        ]
        matches.sort(
            key=lambda r: (
                r.priority_rank,
                r.confidence_score,
                r.created_at,
                self._sequence[str(r.id)],
            ),
            reverse=True,
        )
        return RecommendationPage(
            items=matches[filters.offset : filters.offset + filters.limit],
            total=len(matches),
        )

    async def find_one(self, recommendation_id, student_id):
        recommendation = self._items.get(str(recommendation_id))
        if recommendation is None or recommendation.student_id != student_id:
            return None
        return recommendation

    async def delete_expired(self, before):
        expired = [key for key, r in self._items.items() if r.is_expired(before)]
        for key in expired:
            del self._items[key]
        return len(expired)
