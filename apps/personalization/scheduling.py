"""Study-session grouping and schedule heuristics."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .collaborators import ActivityEvent
from .exceptions import InsufficientData
from .models import LearningStyle, Pace

logger = logging.getLogger(__name__)


SESSION_GAP = timedelta(minutes=30)
LONG_AVERAGE_SESSION_SECONDS = 120 * 60
LONG_SINGLE_SESSION_SECONDS = 180 * 60
BREAK_MINUTES = 15
BREAK_TYPE = "active"
FAST_PACE_MAX_MINUTES = 45
SLOW_PACE_MIN_MINUTES = 60


@dataclass
class StudySession:
    start: datetime
    end: datetime
    activities: list[ActivityEvent] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class StudyPatterns:
    session_count: int
    average_session_seconds: float
    longest_session_seconds: float
    needs_breaks: bool
    break_reason: str = ""
    suggested_break_minutes: int = BREAK_MINUTES
    suggested_break_type: str = BREAK_TYPE


def group_sessions(events: list[ActivityEvent], gap: timedelta = SESSION_GAP) -> list[StudySession]:
    """Split time-ordered events into sessions wherever the gap exceeds `gap`."""
    sessions: list[StudySession] = []
    current = None
    for event in sorted(events, key=lambda e: e.timestamp):
        if current is None or event.timestamp - current.end > gap:
            current = StudySession(start=event.timestamp, end=event.timestamp, activities=[event])
            sessions.append(current)
        else:
            current.end = event.timestamp
            current.activities.append(event)
    return sessions


def analyze_study_patterns(events: list[ActivityEvent], min_events: int = 3) -> StudyPatterns:
    """
    Summarize recent study sessions and decide whether breaks are needed.

    Raises:
        InsufficientData: fewer than `min_events` events were supplied.
    """
    if len(events) < min_events:
        raise InsufficientData(
            f"Study pattern analysis needs at least {min_events} events, got {len(events)}",
            available=len(events),
            required=min_events,
        )

    sessions = group_sessions(events)
    durations = [s.duration_seconds for s in sessions]
    average = sum(durations) / len(durations)
    longest = max(durations)
    needs_breaks = average > LONG_AVERAGE_SESSION_SECONDS or longest > LONG_SINGLE_SESSION_SECONDS

    reason = ""
    if needs_breaks:
        reason = (
            f"Your average study session is {round(average / 60)} minutes. Studies show that "
            f"taking breaks every 90-120 minutes improves retention."
        )

    return StudyPatterns(
        session_count=len(sessions),
        average_session_seconds=average,
        longest_session_seconds=longest,
        needs_breaks=needs_breaks,
        break_reason=reason,
    )


def schedule_reason(profile) -> str:
    slots = " and ".join(profile.preferred_time_slots) or "your usual"
    if profile.pace == Pace.FAST:
        pace_text = "shorter, focused"
    elif profile.pace == Pace.SLOW:
        pace_text = "longer, detailed"
    else:
        pace_text = "moderate"
    return (
        f"Based on your learning patterns, you're most productive during {slots} sessions. "
        f"Your learning pace suggests {pace_text} study sessions work best for you."
    )


def optimal_session_minutes(profile) -> int:
    optimal = profile.avg_session_duration_seconds
    if profile.pace == Pace.FAST:
        optimal = min(optimal, FAST_PACE_MAX_MINUTES * 60)
    elif profile.pace == Pace.SLOW:
        optimal = max(optimal, SLOW_PACE_MIN_MINUTES * 60)
    return round(optimal / 60)


def recommended_frequency(profile) -> str:
    if profile.engagement_score > 0.8:
        return "daily"
    if profile.engagement_score > 0.6:
        return "5-6 times per week"
    if profile.engagement_score > 0.4:
        return "3-4 times per week"
    return "2-3 times per week"


def break_suggestions(profile) -> list[str]:
    suggestions = [
        "Take a 5-10 minute walk",
        "Do some light stretching",
        "Practice deep breathing exercises",
    ]
    if profile.learning_style == LearningStyle.VISUAL:
        suggestions.append("Look away from screen and focus on distant objects")
    if profile.engagement_score < 0.5:
        suggestions.append("Try the Pomodoro Technique (25 min study, 5 min break)")
    return suggestions


STUDY_TIPS_BY_STYLE = {
    LearningStyle.VISUAL.value: [
        "Use diagrams, charts, and visual aids",
        "Create mind maps for complex topics",
    ],
    LearningStyle.AUDITORY.value: [
        "Read content aloud",
        "Use text-to-speech features",
        "Discuss topics with peers",
    ],
    LearningStyle.READING_WRITING.value: [
        "Take detailed notes",
        "Summarize content in your own words",
    ],
    LearningStyle.KINESTHETIC.value: [
        "Use interactive quizzes frequently",
        "Apply concepts through practice exercises",
    ],
    LearningStyle.MIXED.value: [
        "Combine multiple learning methods",
        "Vary your study techniques",
    ],
}


def study_tips(profile) -> list[str]:
    tips = list(STUDY_TIPS_BY_STYLE.get(profile.learning_style, []))
    if profile.pace == Pace.FAST:
        tips.append("Review material multiple times for better retention")
    if profile.completion_rate < 0.7:
        tips.extend(["Set small, achievable daily goals", "Use progress tracking tools"])
    return tips
