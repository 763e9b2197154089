from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.common.models import ExpiringModel


class RecommendationType(models.TextChoices):
    NEXT_LESSON = "next_lesson", _("Next Lesson")
    REVIEW_CONTENT = "review_content", _("Review Content")
    COURSE_RECOMMENDATION = "course_recommendation", _("Course Recommendation")
    DIFFICULTY_ADJUSTMENT = "difficulty_adjustment", _("Difficulty Adjustment")
    STUDY_SCHEDULE = "study_schedule", _("Study Schedule")
    SKILL_IMPROVEMENT = "skill_improvement", _("Skill Improvement")
    BREAK_SUGGESTION = "break_suggestion", _("Break Suggestion")
    PRACTICE_QUIZ = "practice_quiz", _("Practice Quiz")
    SUPPLEMENTARY_MATERIAL = "supplementary_material", _("Supplementary Material")


class RecommendationStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    ACTIVE = "active", _("Active")
    ACCEPTED = "accepted", _("Accepted")
    DISMISSED = "dismissed", _("Dismissed")


class Priority(models.TextChoices):
    LOW = "low", _("Low")
    MEDIUM = "medium", _("Medium")
    HIGH = "high", _("High")
    URGENT = "urgent", _("Urgent")


# Higher rank sorts first
PRIORITY_RANK = {
    Priority.URGENT.value: 3,
    Priority.HIGH.value: 2,
    Priority.MEDIUM.value: 1,
    Priority.LOW.value: 0,
}


class ContentType(models.TextChoices):
    COURSE = "course", _("Course")
    LESSON = "lesson", _("Lesson")
    ASSESSMENT = "assessment", _("Assessment")


class LearningStyle(models.TextChoices):
    VISUAL = "visual", _("Visual")
    AUDITORY = "auditory", _("Auditory")
    READING_WRITING = "reading_writing", _("Reading / Writing")
    KINESTHETIC = "kinesthetic", _("Kinesthetic")
    MIXED = "mixed", _("Mixed")


class Pace(models.TextChoices):
    SLOW = "slow", _("Slow")
    NORMAL = "normal", _("Normal")
    FAST = "fast", _("Fast")


class TimeSlot(models.TextChoices):
    MORNING = "morning", _("Morning")
    AFTERNOON = "afternoon", _("Afternoon")
    EVENING = "evening", _("Evening")
    NIGHT = "night", _("Night")


class ActivityType(models.TextChoices):
    VIDEO_PLAY = "video_play", _("Video Play")
    VIDEO_COMPLETE = "video_complete", _("Video Complete")
    LESSON_START = "lesson_start", _("Lesson Start")
    LESSON_COMPLETE = "lesson_complete", _("Lesson Complete")
    QUIZ_START = "quiz_start", _("Quiz Start")
    QUIZ_COMPLETE = "quiz_complete", _("Quiz Complete")
    DISCUSSION_POST = "discussion_post", _("Discussion Post")
    CHAT_MESSAGE = "chat_message", _("Chat Message")


class AdjustmentType(models.TextChoices):
    INCREASE = "increase", _("Increase")
    DECREASE = "decrease", _("Decrease")
    MAINTAIN = "maintain", _("Maintain")


class InteractionType(models.TextChoices):
    VIEWED = "viewed", _("Viewed")
    ACCEPTED = "accepted", _("Accepted")
    DISMISSED = "dismissed", _("Dismissed")


def clamp_confidence(value) -> float:
    """Clamp a confidence score into [0, 1]; non-numeric values become 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, value))


class Recommendation(ExpiringModel):
    """A ranked, status-tracked suggestion generated for one learner."""

    TERMINAL_STATUSES = (RecommendationStatus.ACCEPTED, RecommendationStatus.DISMISSED)

    student_id = models.CharField(max_length=64, db_index=True)
    recommendation_type = models.CharField(
        max_length=32, choices=RecommendationType.choices
    )
    content_id = models.CharField(max_length=64, null=True, blank=True)
    content_type = models.CharField(max_length=32, null=True, blank=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    reason = models.TextField(blank=True, default="")
    confidence_score = models.FloatField(
        default=0.0,
        validators=[MinValueValidator(0.0), MaxValueValidator(1.0)],
    )
    priority = models.CharField(
        max_length=16, choices=Priority.choices, default=Priority.MEDIUM
    )
    status = models.CharField(
        max_length=16,
        choices=RecommendationStatus.choices,
        default=RecommendationStatus.PENDING,
    )
    metadata = models.JSONField(default=dict, blank=True)
    interacted_at = models.DateTimeField(null=True, blank=True)
    interaction_type = models.CharField(max_length=32, blank=True, default="")

    class Meta(ExpiringModel.Meta):
        indexes = [
            models.Index(
                fields=["student_id", "status"], name="personaliz_student_status_idx"
            ),
            models.Index(
                fields=["student_id", "recommendation_type"],
                name="personaliz_student_type_idx",
            ),
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.confidence_score = clamp_confidence(self.confidence_score)

    def __str__(self):
        return f"{self.get_recommendation_type_display()} for {self.student_id}: {self.title}"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK.get(self.priority, 0)

    def apply_interaction(self, interaction_type: str, now=None) -> bool:
        """
        Record an interaction and apply the matching status transition.

        ``viewed`` moves pending to active, ``accepted``/``dismissed`` move to the
        terminal state of the same name. Terminal recommendations keep their
        status; anything else is recorded without a transition.

        Returns:
            True if the status changed.
        """
        now = now or timezone.now()
        previous_status = self.status

        if not self.is_terminal:
            if interaction_type == InteractionType.VIEWED:
                if self.status == RecommendationStatus.PENDING:
                    self.status = RecommendationStatus.ACTIVE
            elif interaction_type == InteractionType.ACCEPTED:
                self.status = RecommendationStatus.ACCEPTED
            elif interaction_type == InteractionType.DISMISSED:
                self.status = RecommendationStatus.DISMISSED

        self.interacted_at = now
        self.interaction_type = interaction_type
        history = list((self.metadata or {}).get("interactions", []))
        history.append({"type": interaction_type, "at": now.isoformat()})
        self.metadata = {**(self.metadata or {}), "interactions": history}

        return self.status != previous_status

    def to_dict(self) -> dict:
        """Plain-data representation for callers outside Django."""
        return {
            "id": str(self.id),
            "student_id": self.student_id,
            "recommendation_type": self.recommendation_type,
            "content_id": self.content_id,
            "content_type": self.content_type,
            "title": self.title,
            "description": self.description,
            "reason": self.reason,
            "confidence_score": round(self.confidence_score, 4),
            "priority": self.priority,
            "status": self.status,
            "metadata": self.metadata,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "interacted_at": self.interacted_at.isoformat() if self.interacted_at else None,
            "interaction_type": self.interaction_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
