"""Adaptive difficulty decisions from recent performance."""

import logging
import math
from dataclasses import asdict, dataclass

from .exceptions import ValidationFailure
from .models import AdjustmentType

logger = logging.getLogger(__name__)


COURSE_LEVELS = ("beginner", "intermediate", "advanced", "expert")
DEFAULT_LEVELS = ("very_easy", "easy", "medium", "hard", "very_hard")

QUICK_TASK_SECONDS = 30 * 60

CONFIDENCE = {
    AdjustmentType.INCREASE.value: 0.8,
    AdjustmentType.DECREASE.value: 0.9,
    AdjustmentType.MAINTAIN.value: 0.7,
}
BORDERLINE_CONFIDENCE = 0.6


@dataclass(frozen=True)
class DifficultyAdjustment:
    course_id: str | None
    current_level: str
    suggested_level: str
    adjustment_type: str
    magnitude: int
    confidence: float
    reason: str
    performance_score: float
    borderline: bool = False

    @property
    def needs_adjustment(self) -> bool:
        return self.adjustment_type != AdjustmentType.MAINTAIN

    def to_dict(self) -> dict:
        return asdict(self)


class DifficultyEvaluator:
    """
    Maps a performance score and time-on-task to a difficulty move.

    | score    | avg time on task | decision             | magnitude          |
    |----------|------------------|----------------------|--------------------|
    | >= 85    | < 30 min         | increase             | 2                  |
    | >= 85    | >= 30 min        | increase             | 1                  |
    | [70, 85) |                  | maintain             | 0                  |
    | [60, 70) |                  | maintain, borderline | 0                  |
    | < 60     |                  | decrease             | 2 if < 50, else 1  |
    """

    def __init__(self, levels=DEFAULT_LEVELS, logger: logging.Logger | None = None):
        self.levels = tuple(levels)
        self.logger = logger or logging.getLogger(__name__)

    def evaluate(
        self,
        performance_score: float,
        avg_time_on_task_seconds: float | None,
        current_level: str,
        levels=None,
        course_id: str | None = None,
    ) -> DifficultyAdjustment:
        levels = tuple(levels) if levels is not None else self.levels
        if not levels:
            raise ValidationFailure("Difficulty level scale must not be empty")
        if current_level not in levels:
            raise ValidationFailure(
                f"Unknown difficulty level {current_level!r}; expected one of {list(levels)}"
            )

        score = float(performance_score or 0)
        time_on_task = float(avg_time_on_task_seconds or 0)
        borderline = False

        if score >= 85:
            adjustment_type = AdjustmentType.INCREASE.value
            magnitude = 2 if time_on_task < QUICK_TASK_SECONDS else 1
            reason = (
                f"Consistently high performance ({score:.1f}%) "
                + (
                    "with quick completion times suggests readiness for more challenging content."
                    if magnitude == 2
                    else "suggests readiness for somewhat more challenging content."
                )
            )
        elif score >= 70:
            adjustment_type = AdjustmentType.MAINTAIN.value
            magnitude = 0
            reason = f"Good performance ({score:.1f}%). Current difficulty level is appropriate."
        elif score >= 60:
            adjustment_type = AdjustmentType.MAINTAIN.value
            magnitude = 0
            borderline = True
            reason = (
                f"Borderline performance ({score:.1f}%). Keeping the current difficulty "
                f"level but watching closely."
            )
        else:
            adjustment_type = AdjustmentType.DECREASE.value
            magnitude = 2 if score < 50 else 1
            reason = (
                f"Low performance score ({score:.1f}%) indicates difficulty with current level. "
                f"Review of fundamentals recommended."
            )

        sign = {
            AdjustmentType.INCREASE.value: 1,
            AdjustmentType.DECREASE.value: -1,
        }.get(adjustment_type, 0)
        current_index = levels.index(current_level)
        new_index = max(0, min(current_index + sign * magnitude, len(levels) - 1))

        adjustment = DifficultyAdjustment(
            course_id=course_id,
            current_level=current_level,
            suggested_level=levels[new_index],
            adjustment_type=adjustment_type,
            magnitude=magnitude,
            confidence=BORDERLINE_CONFIDENCE if borderline else CONFIDENCE[adjustment_type],
            reason=reason,
            performance_score=score,
            borderline=borderline,
        )
        self.logger.debug(
            f"Difficulty decision for course {course_id}: {adjustment_type} "
            f"{current_level} -> {adjustment.suggested_level}"
        )
        return adjustment


# Mastery levels derived from an average assessment score
SKILL_LEVELS = ("novice", "beginner", "intermediate", "advanced", "expert")
SKILL_LEVEL_MIN_SCORE = {
    "novice": 0,
    "beginner": 60,
    "intermediate": 70,
    "advanced": 80,
    "expert": 90,
}


def score_to_level(score: float) -> str:
    if score >= 90:
        return "expert"
    if score >= 80:
        return "advanced"
    if score >= 70:
        return "intermediate"
    if score >= 60:
        return "beginner"
    return "novice"


def next_skill_level(level: str) -> str:
    index = SKILL_LEVELS.index(level)
    return SKILL_LEVELS[min(index + 1, len(SKILL_LEVELS) - 1)]


def weeks_to_improve(score: float, target_level: str) -> int:
    """Whole weeks to reach `target_level`, one week per 10 points, at least one."""
    gap = SKILL_LEVEL_MIN_SCORE.get(target_level, 0) - score
    return max(math.ceil(gap / 10), 1)
