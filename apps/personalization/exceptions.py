"""Error taxonomy for the personalization engine.

``RecommendationNotFound`` and ``ValidationFailure`` are surfaced to callers.
``InsufficientData`` and ``UpstreamUnavailable`` are always recovered inside the
aggregator by deterministic fallbacks. ``CycleDetected`` is only raised when a
caller asks the sequencer for strict ordering.
"""


class PersonalizationError(Exception):
    """Base class for every error raised by the personalization engine."""
    pass


class RecommendationNotFound(PersonalizationError):
    """Recommendation does not exist or is not owned by the requesting learner."""

    def __init__(self, recommendation_id, student_id=None):
        self.recommendation_id = recommendation_id
        self.student_id = student_id
        super().__init__(f"Recommendation {recommendation_id} not found")


class InsufficientData(PersonalizationError):
    """Analysis was requested below its minimum interaction threshold."""

    def __init__(self, message: str, available: int = 0, required: int = 0):
        self.available = available
        self.required = required
        super().__init__(message)


class UpstreamUnavailable(PersonalizationError):
    """An external service (text generation, collaborative filtering) failed or timed out."""
    pass


class CycleDetected(PersonalizationError):
    """The prerequisite graph contains a cycle through ``node_id``."""

    def __init__(self, node_id: str, path: list[str] | None = None):
        self.node_id = node_id
        self.path = path or []
        super().__init__(f"Prerequisite cycle detected at node {node_id}")


class ValidationFailure(PersonalizationError, ValueError):
    """Malformed input, e.g. an unknown difficulty level or a bad page size."""
    pass
