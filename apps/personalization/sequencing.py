"""
Prerequisite graphs, topological sequencing and learning-path assembly.

The sequencer guarantees a *valid* order (every prerequisite before its
dependents) for acyclic graphs, not an optimal one. When a cycle exists the
offending edge is skipped with a warning and both endpoints still appear exactly
once in the output.
"""

import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from .collaborators import ContentItem
from .conf import get_setting
from .difficulty import COURSE_LEVELS
from .exceptions import CycleDetected, ValidationFailure
from .models import ContentType, LearningStyle, Pace

logger = logging.getLogger(__name__)


UNVISITED, VISITING, VISITED = 0, 1, 2

DEFAULT_NODE_MINUTES = 60
REVIEW_NODE_MINUTES = 30
PRACTICE_NODE_MINUTES = 45
MAX_FOCUS_AREAS = 5

ADD_REVIEW = "add_review"
INCREASE_DIFFICULTY = "increase_difficulty"
DECREASE_DIFFICULTY = "decrease_difficulty"
ADD_PRACTICE = "add_practice"
SKIP_REDUNDANT = "skip_redundant"

BASE_ADAPTATION_RULES = (
    "Adjust difficulty based on assessment performance",
    "Add review content for scores below 70%",
    "Skip basic content if user demonstrates mastery",
)


def level_label(difficulty) -> str:
    """Normalize a catalog difficulty (label or 1-5 level) onto COURSE_LEVELS."""
    if isinstance(difficulty, str) and difficulty.lower() in COURSE_LEVELS:
        return difficulty.lower()
    if isinstance(difficulty, (int, float)) and not isinstance(difficulty, bool):
        if difficulty <= 1:
            return "beginner"
        if difficulty <= 3:
            return "intermediate"
        if difficulty < 5:
            return "advanced"
        return "expert"
    return "intermediate"


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "general"


# ---------------------------------------------------------------------------
# Graph and sequencer
# ---------------------------------------------------------------------------


class DependencyGraph:
    """Directed graph over a fixed candidate set; edges point dependent -> prerequisite."""

    def __init__(self, prerequisites: dict[str, list[str]]):
        self._prerequisites = prerequisites
        self.ignored_edges: list[tuple[str, str]] = []

    @classmethod
    def build(cls, items: list[ContentItem]) -> "DependencyGraph":
        ids = [item.content_id for item in items]
        known = set(ids)
        prerequisites: dict[str, list[str]] = {}
        ignored = []

        for item in items:
            edges = prerequisites.setdefault(item.content_id, [])
            for prereq in item.prerequisites:
                if prereq not in known:
                    ignored.append((item.content_id, prereq))
                    continue
                if prereq not in edges:
                    edges.append(prereq)

        graph = cls(prerequisites)
        graph.ignored_edges = ignored
        if ignored:
            logger.debug(f"Ignored {len(ignored)} prerequisite edges outside the candidate set")
        return graph

    @property
    def nodes(self) -> list[str]:
        return list(self._prerequisites)

    def prerequisites(self, node_id: str) -> list[str]:
        return list(self._prerequisites.get(node_id, []))

    def __contains__(self, node_id) -> bool:
        return node_id in self._prerequisites

    def __len__(self) -> int:
        return len(self._prerequisites)


@dataclass
class SequencingResult:
    order: list[str]
    broken_edges: list[tuple[str, str]] = field(default_factory=list)

    @property
    def has_cycles(self) -> bool:
        return bool(self.broken_edges)


class DependencySequencer:
    """Depth-first topological sequencing with non-fatal cycle handling."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)

    def sequence(self, graph: DependencyGraph, strict: bool = False) -> SequencingResult:
        """
        Order every node so that prerequisites come before their dependents.

        Prerequisites are visited first, then the node is appended. Revisiting a
        node that is still being visited means a cycle: the edge is skipped,
        recorded in ``broken_edges`` and the dependent is placed anyway. With
        ``strict=True`` a ``CycleDetected`` is raised instead.
        """
        state = {node_id: UNVISITED for node_id in graph.nodes}
        order: list[str] = []
        broken_edges: list[tuple[str, str]] = []

        for root in graph.nodes:
            if state[root] != UNVISITED:
                continue

            # Iterative DFS keeps deep chains clear of the recursion limit
            state[root] = VISITING
            stack = [(root, iter(graph.prerequisites(root)))]
            while stack:
                node_id, pending = stack[-1]
                descended = False
                for prereq in pending:
                    if prereq not in state:
                        continue
                    if state[prereq] == VISITING:
                        if strict:
                            raise CycleDetected(prereq, [n for n, _ in stack])
                        self.logger.warning(
                            f"Circular dependency detected involving: {prereq} "
                            f"(skipping edge {node_id} -> {prereq})"
                        )
                        broken_edges.append((node_id, prereq))
                        continue
                    if state[prereq] == UNVISITED:
                        state[prereq] = VISITING
                        stack.append((prereq, iter(graph.prerequisites(prereq))))
                        descended = True
                        break
                if descended:
                    continue

                stack.pop()
                state[node_id] = VISITED
                order.append(node_id)

        return SequencingResult(order=order, broken_edges=broken_edges)

    def sequence_items(self, items: list[ContentItem], strict: bool = False) -> list[ContentItem]:
        """Convenience wrapper returning the items themselves in study order."""
        by_id = {item.content_id: item for item in items}
        result = self.sequence(DependencyGraph.build(items), strict=strict)
        return [by_id[node_id] for node_id in result.order]


# ---------------------------------------------------------------------------
# Learning paths
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PathNode:
    id: str
    type: str
    title: str
    prerequisites: tuple[str, ...] = ()
    estimated_duration: int = DEFAULT_NODE_MINUTES  # minutes
    difficulty_level: str = "intermediate"
    skills: tuple[str, ...] = ()
    order: int = 0
    is_optional: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "prerequisites": list(self.prerequisites),
            "estimated_duration": self.estimated_duration,
            "difficulty_level": self.difficulty_level,
            "skills": list(self.skills),
            "order": self.order,
            "is_optional": self.is_optional,
        }


@dataclass
class LearningPath:
    user_id: str
    nodes: list[PathNode]
    total_duration: int
    total_nodes: int
    estimated_completion_date: date
    goals: list[str] = field(default_factory=list)
    focus_areas: list[str] = field(default_factory=list)
    adaptation_rules: list[str] = field(default_factory=list)
    broken_edges: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "nodes": [node.to_dict() for node in self.nodes],
            "total_duration": self.total_duration,
            "total_nodes": self.total_nodes,
            "estimated_completion_date": self.estimated_completion_date.isoformat(),
            "path_metadata": {
                "goals": list(self.goals),
                "focus_areas": list(self.focus_areas),
                "adaptation_rules": list(self.adaptation_rules),
            },
            "broken_edges": [list(edge) for edge in self.broken_edges],
        }


@dataclass(frozen=True)
class AdaptationAction:
    type: str
    subject: str | None = None
    mastered_skills: tuple[str, ...] = ()


@dataclass(frozen=True)
class PerformanceDelta:
    """Recent performance summary used to adapt an existing path."""

    average_score: float
    completion_time_ratio: float = 1.0  # actual / expected time
    weakest_subject: str | None = None
    strongest_subject: str | None = None
    mastered_skills: tuple[str, ...] = ()


def completion_date(total_minutes: int, daily_budget_minutes: int, today: date) -> date:
    if daily_budget_minutes is None or daily_budget_minutes <= 0:
        raise ValidationFailure(
            f"daily budget must be a positive number of minutes, got {daily_budget_minutes!r}"
        )
    return today + timedelta(days=math.ceil(total_minutes / daily_budget_minutes))


class LearningPathBuilder:
    """Builds and adapts learner study paths on top of the sequencer."""

    def __init__(
        self,
        sequencer: DependencySequencer | None = None,
        daily_budget_minutes: int | None = None,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.sequencer = sequencer or DependencySequencer(logger=self.logger)
        self.daily_budget_minutes = daily_budget_minutes or get_setting("DAILY_BUDGET_MINUTES")

    @staticmethod
    def select_for_goals(items: list[ContentItem], goals: list[str]) -> list[ContentItem]:
        """Items whose title, description or tags mention any goal; all items without goals."""
        if not goals:
            return list(items)
        wanted = [g.lower() for g in goals if g]
        selected = []
        for item in items:
            haystack = [item.title.lower(), (item.description or "").lower()]
            haystack.extend(t.lower() for t in item.tags)
            if any(goal in text for goal in wanted for text in haystack):
                selected.append(item)
        return selected

    def build(
        self,
        user_id: str,
        items: list[ContentItem],
        today: date,
        goals: list[str] | None = None,
        daily_budget_minutes: int | None = None,
        profile=None,
    ) -> LearningPath:
        """
        Sequence candidate content into a learning path.

        Args:
            user_id: The learner the path is for.
            items: Candidate catalog items, prerequisites drawn from the same set.
            today: Start date for the completion estimate.
            goals: Optional goal keywords narrowing the candidates.
            daily_budget_minutes: Study minutes per day, defaults to 60.
            profile: Optional LearningProfile used for adaptation rules.

        Returns:
            A LearningPath with nodes in dependency order.
        """
        goals = list(goals or [])
        budget = daily_budget_minutes or self.daily_budget_minutes
        candidates = self.select_for_goals(items, goals)
        by_id = {item.content_id: item for item in candidates}

        result = self.sequencer.sequence(DependencyGraph.build(candidates))
        nodes = [
            PathNode(
                id=item.content_id,
                type=item.content_type,
                title=item.title,
                prerequisites=tuple(item.prerequisites),
                estimated_duration=item.duration_minutes or DEFAULT_NODE_MINUTES,
                difficulty_level=level_label(item.difficulty),
                skills=tuple(item.skills),
                order=position,
            )
            for position, item in enumerate(by_id[node_id] for node_id in result.order)
        ]

        total = sum(node.estimated_duration for node in nodes)
        path = LearningPath(
            user_id=user_id,
            nodes=nodes,
            total_duration=total,
            total_nodes=len(nodes),
            estimated_completion_date=completion_date(total, budget, today),
            goals=goals,
            focus_areas=self.focus_areas(nodes),
            adaptation_rules=self.adaptation_rules(profile),
            broken_edges=result.broken_edges,
        )
        self.logger.info(
            f"Built learning path for user {user_id}: {path.total_nodes} nodes, "
            f"{path.total_duration} minutes"
        )
        return path

    @staticmethod
    def focus_areas(nodes: list[PathNode]) -> list[str]:
        seen = []
        for node in nodes:
            for skill in node.skills:
                if skill not in seen:
                    seen.append(skill)
        return seen[:MAX_FOCUS_AREAS]

    @staticmethod
    def adaptation_rules(profile=None) -> list[str]:
        rules = list(BASE_ADAPTATION_RULES)
        if profile is not None:
            if profile.learning_style == LearningStyle.VISUAL:
                rules.append("Prioritize video content and visual materials")
            if profile.pace == Pace.FAST:
                rules.append("Reduce content repetition and increase challenge level")
        return rules

    @staticmethod
    def analyze_performance(performance: PerformanceDelta) -> list[AdaptationAction]:
        """Derive the ordered adaptation actions for a performance summary."""
        actions = []
        if performance.average_score < 60 and performance.weakest_subject:
            actions.append(AdaptationAction(ADD_REVIEW, performance.weakest_subject))
        if (
            performance.average_score > 85
            and performance.completion_time_ratio < 0.7
            and performance.strongest_subject
        ):
            actions.append(AdaptationAction(INCREASE_DIFFICULTY, performance.strongest_subject))
        if performance.mastered_skills:
            actions.append(
                AdaptationAction(SKIP_REDUNDANT, mastered_skills=tuple(performance.mastered_skills))
            )
        return actions

    def adapt(
        self,
        path: LearningPath,
        actions: list[AdaptationAction],
        today: date,
        daily_budget_minutes: int | None = None,
    ) -> LearningPath:
        """Apply adaptation actions in order; the input path is left untouched."""
        nodes = list(path.nodes)
        for action in actions:
            if action.type == ADD_REVIEW:
                nodes = self.add_review_node(nodes, action.subject)
            elif action.type == INCREASE_DIFFICULTY:
                nodes = self.shift_difficulty(nodes, action.subject, 1)
            elif action.type == DECREASE_DIFFICULTY:
                nodes = self.shift_difficulty(nodes, action.subject, -1)
            elif action.type == ADD_PRACTICE:
                nodes = self.add_practice_node(nodes, action.subject)
            elif action.type == SKIP_REDUNDANT:
                nodes = self.remove_redundant_nodes(nodes, action.mastered_skills)
            else:
                raise ValidationFailure(f"Unknown adaptation action: {action.type!r}")

        nodes = [replace(node, order=position) for position, node in enumerate(nodes)]
        total = sum(node.estimated_duration for node in nodes)
        rules = list(path.adaptation_rules)
        if actions:
            rules.append(
                f"Adapted based on performance: {', '.join(a.type for a in actions)}"
            )

        return replace(
            path,
            nodes=nodes,
            total_duration=total,
            total_nodes=len(nodes),
            estimated_completion_date=completion_date(
                total, daily_budget_minutes or self.daily_budget_minutes, today
            ),
            focus_areas=self.focus_areas(nodes),
            adaptation_rules=rules,
        )

    @staticmethod
    def _next_generated_id(nodes: list[PathNode], prefix: str, subject: str) -> str:
        base = f"{prefix}-{_slug(subject)}"
        taken = {node.id for node in nodes}
        counter = 1
        while f"{base}-{counter}" in taken:
            counter += 1
        return f"{base}-{counter}"

    def add_review_node(self, nodes: list[PathNode], subject: str | None) -> list[PathNode]:
        if not subject:
            return list(nodes)
        review = PathNode(
            id=self._next_generated_id(nodes, "review", subject),
            type=ContentType.LESSON.value,
            title=f"Review: {subject} Fundamentals",
            estimated_duration=REVIEW_NODE_MINUTES,
            difficulty_level="beginner",
            skills=(f"{subject} review",),
            order=len(nodes),
        )
        return [*nodes, review]

    def add_practice_node(self, nodes: list[PathNode], subject: str | None) -> list[PathNode]:
        if not subject:
            return list(nodes)
        practice = PathNode(
            id=self._next_generated_id(nodes, "practice", subject),
            type=ContentType.ASSESSMENT.value,
            title=f"{subject} Practice Exercises",
            estimated_duration=PRACTICE_NODE_MINUTES,
            difficulty_level="intermediate",
            skills=(f"{subject} practice",),
            order=len(nodes),
            is_optional=True,
        )
        return [*nodes, practice]

    @staticmethod
    def shift_difficulty(nodes: list[PathNode], subject: str | None, step: int) -> list[PathNode]:
        if not subject:
            return list(nodes)
        needle = subject.lower()
        shifted = []
        for node in nodes:
            if any(needle in skill.lower() for skill in node.skills):
                index = COURSE_LEVELS.index(level_label(node.difficulty_level))
                index = max(0, min(index + step, len(COURSE_LEVELS) - 1))
                node = replace(node, difficulty_level=COURSE_LEVELS[index])
            shifted.append(node)
        return shifted

    @staticmethod
    def remove_redundant_nodes(nodes: list[PathNode], mastered_skills) -> list[PathNode]:
        mastered = [m.lower() for m in mastered_skills or () if m]
        if not mastered:
            return list(nodes)

        def covered(node: PathNode) -> bool:
            # A node without skills has nothing to be redundant with
            return bool(node.skills) and all(
                any(m in skill.lower() for m in mastered) for skill in node.skills
            )

        return [node for node in nodes if not covered(node)]
