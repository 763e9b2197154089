"""
Recommendation aggregation and ranking.

``RecommendationAggregator`` is the single entry point callers use. Every
``generate`` operation builds unsaved ``Recommendation`` instances, persists
them as one batch through the injected repository and returns them together
with a flag telling whether any branch fell back to a deterministic default.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from django.utils import timezone

from .collaborators import (
    ActivityStore,
    CollaborativeFilteringProvider,
    ContentCatalog,
    EnrollmentStore,
    PerformanceStore,
    RecommendationFilter,
    RecommendationPage,
    RecommendationRepository,
    TextGenerationService,
)
from .conf import get_setting
from .difficulty import (
    COURSE_LEVELS,
    DEFAULT_LEVELS,
    DifficultyEvaluator,
    next_skill_level,
    score_to_level,
    weeks_to_improve,
)
from .exceptions import (
    InsufficientData,
    RecommendationNotFound,
    UpstreamUnavailable,
    ValidationFailure,
)
from .models import (
    AdjustmentType,
    ContentType,
    Priority,
    Recommendation,
    RecommendationType,
    clamp_confidence,
)
from .profiles import LearningProfileService
from .scheduling import (
    analyze_study_patterns,
    break_suggestions,
    optimal_session_minutes,
    recommended_frequency,
    schedule_reason,
    study_tips,
)
from .sequencing import LearningPathBuilder, PerformanceDelta
from .similarity import SimilarityEngine

logger = logging.getLogger(__name__)


REVIEW_WINDOW_DAYS = 14
SCHEDULE_WINDOW_DAYS = 7
MIN_DIFFICULTY_ATTEMPTS = 3
MIN_WEAK_AREA_ATTEMPTS = 2
WEAK_AREA_SCORE = 70
MAX_WEAK_AREAS = 5
MAX_REVIEW_ITEMS = 3
MAX_NEW_COURSES = 2
MAX_SKILL_GAPS = 2
MAX_CANDIDATES_PER_SOURCE = 5
DEFAULT_COURSE_CONFIDENCE = 0.7
COLD_START_CONFIDENCE = 0.5

DEFAULT_SCHEDULE_REASON = (
    "There is not enough recent activity to personalize your schedule yet. "
    "Start with short, regular sessions and the schedule will adapt as you study."
)

TYPE_FOR_CONTENT = {
    ContentType.COURSE.value: RecommendationType.COURSE_RECOMMENDATION,
    ContentType.LESSON.value: RecommendationType.NEXT_LESSON,
    ContentType.ASSESSMENT.value: RecommendationType.PRACTICE_QUIZ,
}


def recommendation_type_for_content(content_type: str | None) -> str:
    return TYPE_FOR_CONTENT.get(content_type, RecommendationType.SUPPLEMENTARY_MATERIAL).value


def difficulty_label(normalized: float) -> str:
    if normalized < 0.3:
        return "easy"
    if normalized < 0.7:
        return "medium"
    return "hard"


def levels_for(level: str):
    if level in COURSE_LEVELS:
        return COURSE_LEVELS
    if level in DEFAULT_LEVELS:
        return DEFAULT_LEVELS
    return None


def improvement_strategy(avg_score: float, failed_attempts: int) -> str:
    if avg_score < 50:
        return (
            "Focus on fundamental concepts and complete review materials before attempting "
            "advanced topics."
        )
    if failed_attempts > 2:
        return "Practice more examples and seek additional explanations for challenging concepts."
    return "Review specific areas where you lost points and practice similar problems."


def improvement_actions(avg_score: float) -> list[str]:
    if avg_score < 60:
        actions = [
            "Review fundamental concepts",
            "Complete prerequisite materials",
            "Seek help from instructor or tutor",
        ]
    else:
        actions = ["Practice more exercises", "Review incorrect answers", "Study similar problems"]
    actions.append("Take practice quizzes regularly")
    return actions


def improvement_resources(skill_name: str, level: str) -> list[str]:
    return [
        f"{level}-level practice exercises for {skill_name}",
        f"Video tutorials on {skill_name} fundamentals",
        f"Interactive simulations for {skill_name}",
        f"Study group discussions on {skill_name}",
    ]


@dataclass
class RecommendationBatch:
    items: list
    used_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "used_fallback": self.used_fallback,
        }


@dataclass
class RecommendationBundle:
    """Result of fanning out every category; failed categories are None."""

    learning_path: RecommendationBatch | None = None
    content: RecommendationBatch | None = None
    difficulty: RecommendationBatch | None = None
    schedule: RecommendationBatch | None = None
    performance: RecommendationBatch | None = None
    failed_categories: list[str] = field(default_factory=list)

    CATEGORIES = ("learning_path", "content", "difficulty", "schedule", "performance")

    @property
    def used_fallback(self) -> bool:
        return any(
            batch.used_fallback
            for batch in (getattr(self, name) for name in self.CATEGORIES)
            if batch is not None
        )

    @property
    def total(self) -> int:
        return sum(
            len(batch.items)
            for batch in (getattr(self, name) for name in self.CATEGORIES)
            if batch is not None
        )

    def to_dict(self) -> dict:
        data = {
            name: (batch.to_dict() if batch is not None else None)
            for name, batch in ((n, getattr(self, n)) for n in self.CATEGORIES)
        }
        data["failed_categories"] = list(self.failed_categories)
        data["used_fallback"] = self.used_fallback
        return data


class RecommendationAggregator:
    """
    Combines profile, similarity, collaborative, sequencing and difficulty
    signals into ranked, persisted recommendations for one learner at a time.
    """

    def __init__(
        self,
        profile_service: LearningProfileService,
        activity_store: ActivityStore,
        content_catalog: ContentCatalog,
        enrollment_store: EnrollmentStore,
        performance_store: PerformanceStore,
        repository: RecommendationRepository,
        collaborative_provider: CollaborativeFilteringProvider,
        similarity_engine: SimilarityEngine | None = None,
        path_builder: LearningPathBuilder | None = None,
        difficulty_evaluator: DifficultyEvaluator | None = None,
        text_generator: TextGenerationService | None = None,
        logger: logging.Logger | None = None,
        clock=None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.profile_service = profile_service
        self.activity_store = activity_store
        self.content_catalog = content_catalog
        self.enrollment_store = enrollment_store
        self.performance_store = performance_store
        self.repository = repository
        self.collaborative_provider = collaborative_provider
        self.similarity_engine = similarity_engine or SimilarityEngine(logger=self.logger)
        self.path_builder = path_builder or LearningPathBuilder(logger=self.logger)
        self.difficulty_evaluator = difficulty_evaluator or DifficultyEvaluator(logger=self.logger)
        self.text_generator = text_generator
        self.clock = clock or timezone.now

        self.recommendation_ttl = timedelta(days=get_setting("RECOMMENDATION_TTL_DAYS"))
        self.break_ttl = timedelta(hours=get_setting("BREAK_SUGGESTION_TTL_HOURS"))
        self.profile_window_days = get_setting("PROFILE_WINDOW_DAYS")
        self.min_pattern_events = get_setting("MIN_PATTERN_EVENTS")
        self.min_content_history = get_setting("MIN_CONTENT_HISTORY")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _build(self, student_id: str, recommendation_type, title: str, now, **fields) -> Recommendation:
        fields.setdefault("expires_at", now + self.recommendation_ttl)
        fields["confidence_score"] = clamp_confidence(fields.get("confidence_score", 0.0))
        return Recommendation(
            student_id=student_id,
            recommendation_type=getattr(recommendation_type, "value", recommendation_type),
            title=title[:255],
            **fields,
        )

    async def _persist(self, items: list) -> None:
        if items:
            await self.repository.save(items)

    # ------------------------------------------------------------------
    # personalized learning path
    # ------------------------------------------------------------------

    async def personalized_learning_path(self, student_id: str) -> RecommendationBatch:
        """Next lessons, reviews, new courses and skill gaps for one learner."""
        self.logger.info(f"Generating personalized learning path for user {student_id}")
        now = self.clock()
        profile = await self.profile_service.get_profile(student_id)
        enrollments = await self.enrollment_store.find_active(student_id)

        items = []
        items.extend(await self._next_lesson_recommendations(student_id, profile, enrollments, now))
        items.extend(await self._review_recommendations(student_id, now))
        items.extend(await self._course_recommendations(student_id, enrollments, now))
        items.extend(self._skill_gap_recommendations(student_id, profile, now))

        await self._persist(items)
        self.logger.info(f"Generated {len(items)} learning path recommendations for user {student_id}")
        return RecommendationBatch(items=items)

    async def _next_lesson_recommendations(self, student_id, profile, enrollments, now):
        items = []
        for enrollment in enrollments:
            lesson = await self.content_catalog.find_next_lesson(student_id, enrollment.course_id)
            if lesson is None:
                continue
            items.append(
                self._build(
                    student_id,
                    RecommendationType.NEXT_LESSON,
                    f"Continue with: {lesson.title}",
                    now,
                    content_id=lesson.content_id,
                    content_type=ContentType.LESSON.value,
                    description=f"Next lesson in {enrollment.course_title}",
                    reason=(
                        "You're making good progress in this course. This lesson builds on "
                        "what you've already learned."
                    ),
                    confidence_score=0.9,
                    priority=Priority.HIGH.value,
                    metadata={
                        "course_id": enrollment.course_id,
                        "course_title": enrollment.course_title,
                        "estimated_duration": lesson.duration_minutes
                        or round(profile.avg_session_duration_seconds / 60),
                        "prerequisites": list(lesson.prerequisites),
                    },
                )
            )
        return items

    async def _review_recommendations(self, student_id, now):
        struggling = await self.performance_store.find_struggling_content(
            student_id, now - timedelta(days=REVIEW_WINDOW_DAYS)
        )
        return [
            self._build(
                student_id,
                RecommendationType.REVIEW_CONTENT,
                f"Review: {content.title}",
                now,
                content_id=content.content_id,
                content_type=content.content_type,
                description=f"Strengthen understanding of {content.subject}",
                reason=content.reason,
                confidence_score=0.8,
                priority=Priority.MEDIUM.value,
                metadata={
                    "original_score": content.score,
                    "difficulty_level": content.difficulty,
                    "review_type": "reinforcement",
                },
            )
            for content in struggling[:MAX_REVIEW_ITEMS]
        ]

    async def _course_recommendations(self, student_id, enrollments, now):
        categories = sorted({e.category for e in enrollments if e.category})
        if not categories:
            return []

        enrolled_ids = {e.course_id for e in enrollments}
        candidates = await self.content_catalog.find_candidates(
            content_type=ContentType.COURSE.value,
            categories=categories,
            exclude_ids=enrolled_ids,
        )
        if not candidates:
            return []

        enrolled_courses = []
        for course_id in sorted(enrolled_ids):
            course = await self.content_catalog.get(course_id, ContentType.COURSE.value)
            if course is not None:
                enrolled_courses.append(course)

        vectorizer = self.similarity_engine.vectorizer
        scored = {
            result.content_id: result
            for result in self.similarity_engine.rank_against_history(
                vectorizer.vectorize_many(enrolled_courses),
                vectorizer.vectorize_many(candidates),
                limit=len(candidates),
            )
        }

        # Prerequisite-respecting order of the candidate set
        sequence = self.path_builder.sequencer.sequence_items(candidates)
        position = {item.content_id: index for index, item in enumerate(sequence)}

        def confidence(item):
            result = scored.get(item.content_id)
            return result.similarity if result else DEFAULT_COURSE_CONFIDENCE

        chosen = sorted(candidates, key=confidence, reverse=True)[:MAX_NEW_COURSES]
        chosen.sort(key=lambda item: position[item.content_id])

        items = []
        for course in chosen:
            result = scored.get(course.content_id)
            reason = (
                "; ".join(result.reasons) if result else "Based on your interest in similar topics"
            )
            items.append(
                self._build(
                    student_id,
                    RecommendationType.COURSE_RECOMMENDATION,
                    f"New Course: {course.title}",
                    now,
                    content_id=course.content_id,
                    content_type=ContentType.COURSE.value,
                    description=course.description,
                    reason=reason,
                    confidence_score=confidence(course),
                    priority=Priority.MEDIUM.value,
                    metadata={
                        "category": course.category,
                        "difficulty_level": course.difficulty,
                        "estimated_duration": course.duration_minutes,
                        "rating": course.rating,
                        "path_position": position[course.content_id],
                        "prerequisites": [p for p in course.prerequisites if p in position],
                    },
                )
            )
        return items

    def _skill_gap_recommendations(self, student_id, profile, now):
        return [
            self._build(
                student_id,
                RecommendationType.SKILL_IMPROVEMENT,
                f"Improve {subject}",
                now,
                description=f"Targeted practice for {subject}",
                reason=f"Your recent assessment average in {subject} is below 60%.",
                confidence_score=0.75,
                priority=Priority.MEDIUM.value,
                metadata={
                    "subject": subject,
                    "improvement_path": "Practice exercises and review materials",
                },
            )
            for subject in profile.weak_subjects[:MAX_SKILL_GAPS]
        ]

    # ------------------------------------------------------------------
    # content recommendations
    # ------------------------------------------------------------------

    async def content_recommendations(
        self, student_id: str, content_type: str | None = None, limit: int = 10
    ) -> RecommendationBatch:
        """
        Merge content-based and collaborative candidates.

        Duplicates keep the higher-confidence entry; the result is ranked by
        confidence and capped at `limit`.
        """
        if limit is None or limit < 1:
            raise ValidationFailure(f"limit must be a positive integer, got {limit!r}")
        if content_type is not None and content_type not in ContentType.values:
            raise ValidationFailure(f"Unknown content type: {content_type!r}")

        self.logger.info(f"Generating content recommendations for user {student_id}")
        now = self.clock()

        content_based, content_fallback = await self._content_based(student_id, content_type, now)
        collaborative, collaborative_fallback = await self._collaborative(student_id, content_type, now)

        merged: dict[str, Recommendation] = {}
        for recommendation in content_based + collaborative:
            key = recommendation.content_id
            existing = merged.get(key)
            if existing is None or recommendation.confidence_score > existing.confidence_score:
                merged[key] = recommendation

        items = sorted(merged.values(), key=lambda r: r.confidence_score, reverse=True)[:limit]
        await self._persist(items)
        return RecommendationBatch(
            items=items, used_fallback=content_fallback or collaborative_fallback
        )

    async def _content_based(self, student_id, content_type, now):
        events = await self.activity_store.find_recent(
            student_id, now - timedelta(days=self.profile_window_days)
        )
        engaged_ids = list(dict.fromkeys(e.content_id for e in events if e.content_id))

        try:
            if len(engaged_ids) < self.min_content_history:
                raise InsufficientData(
                    "No content history for content-based ranking",
                    available=len(engaged_ids),
                    required=self.min_content_history,
                )
            history = []
            for content_id in engaged_ids:
                item = await self.content_catalog.get(content_id)
                if item is not None:
                    history.append(item)
            if not history:
                raise InsufficientData("Engaged content is missing from the catalog")
        except InsufficientData as e:
            self.logger.info(f"Cold start for user {student_id}: {e}")
            return await self._cold_start(student_id, content_type, set(engaged_ids), now), True

        candidates = await self.content_catalog.find_candidates(
            content_type=content_type, exclude_ids=set(engaged_ids)
        )
        vectorizer = self.similarity_engine.vectorizer
        results = self.similarity_engine.rank_against_history(
            vectorizer.vectorize_many(history),
            vectorizer.vectorize_many(candidates),
            limit=MAX_CANDIDATES_PER_SOURCE,
        )
        titles = {item.content_id: item.title for item in candidates}

        items = []
        for result in results:
            features = result.features
            items.append(
                self._build(
                    student_id,
                    recommendation_type_for_content(result.content_type),
                    f"Recommended {result.content_type}: {titles.get(result.content_id, result.content_id)}",
                    now,
                    content_id=result.content_id,
                    content_type=result.content_type,
                    description="Based on your learning patterns and interests",
                    reason=(
                        "Similar to content you've engaged with. "
                        f"Similarity score: {result.similarity * 100:.1f}%"
                    ),
                    confidence_score=result.similarity,
                    priority=(Priority.HIGH if result.similarity > 0.8 else Priority.MEDIUM).value,
                    metadata={
                        "algorithm_used": "content_based",
                        "similarity_reasons": result.reasons,
                        "matched_content_id": result.matched_content_id,
                        "tags": features.get("tags", []),
                        "difficulty_level": difficulty_label(features.get("difficulty", 0.0)),
                        "estimated_duration": round(features.get("duration_seconds", 0) / 60),
                    },
                )
            )
        return items, False

    async def _cold_start(self, student_id, content_type, exclude_ids, now):
        """One top-rated item per category, for learners without usable history."""
        candidates = await self.content_catalog.find_candidates(
            content_type=content_type, exclude_ids=exclude_ids
        )
        picked, seen_categories = [], set()
        for item in candidates:
            category = (item.category or "").lower()
            if category in seen_categories:
                continue
            seen_categories.add(category)
            picked.append(item)
            if len(picked) >= MAX_CANDIDATES_PER_SOURCE:
                break

        return [
            self._build(
                student_id,
                recommendation_type_for_content(item.content_type),
                f"Recommended {item.content_type}: {item.title}",
                now,
                content_id=item.content_id,
                content_type=item.content_type,
                description="A popular starting point while we learn your preferences",
                reason=f"Highly rated {item.category or 'general'} content",
                confidence_score=COLD_START_CONFIDENCE,
                priority=Priority.MEDIUM.value,
                metadata={"algorithm_used": "cold_start", "category": item.category},
            )
            for item in picked
        ]

    async def _collaborative(self, student_id, content_type, now):
        try:
            candidates = await self.collaborative_provider.recommend(
                student_id, content_type=content_type, limit=MAX_CANDIDATES_PER_SOURCE
            )
        except UpstreamUnavailable as e:
            self.logger.warning(f"Collaborative filtering unavailable for user {student_id}: {e}")
            return [], True

        items = []
        for candidate in candidates[:MAX_CANDIDATES_PER_SOURCE]:
            if content_type and candidate.content_type != content_type:
                continue
            items.append(
                self._build(
                    student_id,
                    recommendation_type_for_content(candidate.content_type),
                    f"Popular {candidate.content_type}: {candidate.title or candidate.content_id}",
                    now,
                    content_id=candidate.content_id,
                    content_type=candidate.content_type,
                    description="Recommended based on learners with similar interests",
                    reason=f"{candidate.similar_user_count} similar learners found this helpful",
                    confidence_score=min(candidate.score, 1.0),
                    priority=(Priority.HIGH if candidate.score > 0.7 else Priority.MEDIUM).value,
                    metadata={
                        "algorithm_used": "collaborative_filtering",
                        "similar_users_count": candidate.similar_user_count,
                        "engagement_score": candidate.score,
                    },
                )
            )
        return items, False

    # ------------------------------------------------------------------
    # difficulty adjustments
    # ------------------------------------------------------------------

    async def difficulty_adjustments(self, student_id: str) -> RecommendationBatch:
        """One recommendation per course whose difficulty should move up or down."""
        self.logger.info(f"Evaluating difficulty adjustments for user {student_id}")
        now = self.clock()
        performances = await self.performance_store.course_performance(student_id)

        items = []
        for performance in performances:
            if performance.attempts < MIN_DIFFICULTY_ATTEMPTS:
                continue
            levels = levels_for(performance.current_level)
            if levels is None:
                self.logger.warning(
                    f"Skipping course {performance.course_id}: unknown difficulty level "
                    f"{performance.current_level!r}"
                )
                continue

            adjustment = self.difficulty_evaluator.evaluate(
                performance.avg_score,
                performance.avg_time_spent_seconds,
                performance.current_level,
                levels=levels,
                course_id=performance.course_id,
            )
            if not adjustment.needs_adjustment:
                continue

            decrease = adjustment.adjustment_type == AdjustmentType.DECREASE
            items.append(
                self._build(
                    student_id,
                    RecommendationType.DIFFICULTY_ADJUSTMENT,
                    f"Difficulty Adjustment for {performance.course_name}",
                    now,
                    content_id=performance.course_id,
                    content_type=ContentType.COURSE.value,
                    description=(
                        "Suggested review of fundamentals"
                        if decrease
                        else "Ready for more challenging content"
                    ),
                    reason=adjustment.reason,
                    confidence_score=adjustment.confidence,
                    priority=(Priority.HIGH if decrease else Priority.MEDIUM).value,
                    metadata={
                        "current_difficulty": adjustment.current_level,
                        "suggested_difficulty": adjustment.suggested_level,
                        "adjustment_type": adjustment.adjustment_type,
                        "magnitude": adjustment.magnitude,
                        "performance_score": adjustment.performance_score,
                    },
                )
            )

        items.sort(key=lambda r: r.confidence_score, reverse=True)
        await self._persist(items)
        return RecommendationBatch(items=items)

    # ------------------------------------------------------------------
    # study schedule
    # ------------------------------------------------------------------

    async def study_schedule_optimization(self, student_id: str) -> RecommendationBatch:
        """A schedule recommendation, plus a break suggestion for overly long sessions."""
        self.logger.info(f"Optimizing study schedule for user {student_id}")
        now = self.clock()
        profile = await self.profile_service.get_profile(student_id)
        events = await self.activity_store.find_recent(
            student_id, now - timedelta(days=SCHEDULE_WINDOW_DAYS)
        )

        used_fallback = False
        try:
            patterns = analyze_study_patterns(events, min_events=self.min_pattern_events)
        except InsufficientData as e:
            self.logger.info(f"Using default schedule for user {student_id}: {e}")
            patterns = None
            used_fallback = True

        reason = schedule_reason(profile) if patterns else DEFAULT_SCHEDULE_REASON
        if patterns and self.text_generator is not None:
            result, generation_fallback = await self.text_generator.generate(
                self._schedule_prompt(profile, patterns),
                fallback=reason,
            )
            reason = result.text or reason
            used_fallback = used_fallback or generation_fallback

        items = [
            self._build(
                student_id,
                RecommendationType.STUDY_SCHEDULE,
                "Optimized Study Schedule",
                now,
                description="Personalized study schedule based on your learning patterns",
                reason=reason,
                confidence_score=0.8 if patterns else COLD_START_CONFIDENCE,
                priority=Priority.MEDIUM.value,
                metadata={
                    "preferred_times": list(profile.preferred_time_slots),
                    "optimal_session_duration": optimal_session_minutes(profile),
                    "recommended_frequency": recommended_frequency(profile),
                    "break_suggestions": break_suggestions(profile),
                    "study_tips": study_tips(profile),
                    "default_schedule": patterns is None,
                },
            )
        ]

        if patterns and patterns.needs_breaks:
            items.append(
                self._build(
                    student_id,
                    RecommendationType.BREAK_SUGGESTION,
                    "Study Break Recommendation",
                    now,
                    description="Take a break to optimize learning retention",
                    reason=patterns.break_reason,
                    confidence_score=0.7,
                    priority=Priority.MEDIUM.value,
                    expires_at=now + self.break_ttl,
                    metadata={
                        "break_duration": patterns.suggested_break_minutes,
                        "break_type": patterns.suggested_break_type,
                        "average_session_minutes": round(patterns.average_session_seconds / 60),
                        "longest_session_minutes": round(patterns.longest_session_seconds / 60),
                    },
                )
            )

        await self._persist(items)
        return RecommendationBatch(items=items, used_fallback=used_fallback)

    @staticmethod
    def _schedule_prompt(profile, patterns) -> str:
        return (
            "Write two encouraging sentences explaining a study schedule to a learner. "
            f"Preferred study times: {', '.join(profile.preferred_time_slots) or 'not yet known'}. "
            f"Learning pace: {profile.pace}. Learning style: {profile.learning_style}. "
            f"Average session: {round(patterns.average_session_seconds / 60)} minutes over "
            f"{patterns.session_count} recent sessions."
        )

    # ------------------------------------------------------------------
    # performance improvements
    # ------------------------------------------------------------------

    async def performance_improvements(self, student_id: str) -> RecommendationBatch:
        """One improvement plan per weak course, worst first."""
        self.logger.info(f"Generating performance improvements for user {student_id}")
        now = self.clock()
        performances = await self.performance_store.course_performance(student_id)

        weak_areas = [
            p
            for p in performances
            if p.attempts >= MIN_WEAK_AREA_ATTEMPTS and p.avg_score < WEAK_AREA_SCORE
        ]
        weak_areas.sort(key=lambda p: (p.avg_score, -p.failed_attempts))

        items = []
        for area in weak_areas[:MAX_WEAK_AREAS]:
            current_level = score_to_level(area.avg_score)
            target_level = next_skill_level(current_level)
            items.append(
                self._build(
                    student_id,
                    RecommendationType.SKILL_IMPROVEMENT,
                    f"Improve {area.course_name}",
                    now,
                    content_id=area.course_id,
                    content_type=ContentType.COURSE.value,
                    description=improvement_strategy(area.avg_score, area.failed_attempts),
                    reason=(
                        f"Your average score in {area.course_name} is {area.avg_score:.1f}% "
                        f"with {area.failed_attempts} failed attempts out of {area.attempts} "
                        f"total attempts."
                    ),
                    confidence_score=0.85,
                    priority=(Priority.HIGH if area.avg_score < 50 else Priority.MEDIUM).value,
                    metadata={
                        "current_level": current_level,
                        "target_level": target_level,
                        "estimated_weeks_to_improve": weeks_to_improve(area.avg_score, target_level),
                        "recommended_actions": improvement_actions(area.avg_score),
                        "resources": improvement_resources(area.course_name, current_level),
                    },
                )
            )

        await self._persist(items)
        return RecommendationBatch(items=items)

    # ------------------------------------------------------------------
    # stored recommendations
    # ------------------------------------------------------------------

    async def get_recommendations(
        self, student_id: str, filters: RecommendationFilter | None = None
    ) -> RecommendationPage:
        """Non-expired recommendations, priority then confidence then recency."""
        filters = filters or RecommendationFilter()
        now = self.clock()
        page = await self.repository.find_by_student(student_id, filters, now)
        items = [item for item in page.items if not item.is_expired(now)]
        return RecommendationPage(items=items, total=page.total)

    async def interact_with_recommendation(
        self, recommendation_id, interaction_type: str, student_id: str
    ) -> Recommendation:
        """
        Record an interaction and apply the status transition.

        Raises:
            RecommendationNotFound: no recommendation with that id belongs to the learner.
            ValidationFailure: the interaction type is empty.
        """
        if not interaction_type:
            raise ValidationFailure("interaction_type must not be empty")

        recommendation = await self.repository.find_one(recommendation_id, student_id)
        if recommendation is None:
            raise RecommendationNotFound(recommendation_id, student_id)

        previous_status = recommendation.status
        recommendation.apply_interaction(interaction_type, now=self.clock())
        await self.repository.update(recommendation)
        self.logger.info(
            f"Recommendation {recommendation_id} {interaction_type} by user {student_id} "
            f"({previous_status} -> {recommendation.status})"
        )
        return recommendation

    # ------------------------------------------------------------------
    # learning paths
    # ------------------------------------------------------------------

    async def build_learning_path(
        self, student_id: str, goals: list[str] | None = None, daily_budget_minutes: int | None = None
    ):
        """Sequence catalog courses matching `goals` into a study path (not persisted)."""
        profile = await self.profile_service.get_profile(student_id)
        candidates = await self.content_catalog.find_candidates(content_type=ContentType.COURSE.value)
        return self.path_builder.build(
            student_id,
            candidates,
            today=self.clock().date(),
            goals=goals,
            daily_budget_minutes=daily_budget_minutes,
            profile=profile,
        )

    def adapt_learning_path(self, path, performance: PerformanceDelta, daily_budget_minutes: int | None = None):
        actions = self.path_builder.analyze_performance(performance)
        return self.path_builder.adapt(
            path, actions, today=self.clock().date(), daily_budget_minutes=daily_budget_minutes
        )

    # ------------------------------------------------------------------
    # fan-out
    # ------------------------------------------------------------------

    async def generate_all(self, student_id: str) -> RecommendationBundle:
        """
        Generate every category concurrently.

        A failing category is logged and reported as None; it never cancels
        its siblings or raises to the caller.
        """
        branches = {
            "learning_path": self.personalized_learning_path(student_id),
            "content": self.content_recommendations(student_id),
            "difficulty": self.difficulty_adjustments(student_id),
            "schedule": self.study_schedule_optimization(student_id),
            "performance": self.performance_improvements(student_id),
        }
        results = await asyncio.gather(*branches.values(), return_exceptions=True)

        bundle = RecommendationBundle()
        for name, result in zip(branches, results):
            if isinstance(result, BaseException):
                self.logger.error(
                    f"Recommendation category '{name}' failed for user {student_id}: {result}",
                    exc_info=result,
                )
                bundle.failed_categories.append(name)
                continue
            setattr(bundle, name, result)

        self.logger.info(
            f"Generated {bundle.total} recommendations for user {student_id} "
            f"(failed: {bundle.failed_categories or 'none'})"
        )
        return bundle
