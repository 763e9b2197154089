"""
Content vectorization and similarity scoring.

Content items are encoded into fixed-length feature vectors over configured
vocabularies (tags, categories, topics) plus normalized difficulty and duration
scalars. Vectors built with the same ``FeatureSchema`` always share their
dimensionality and can be compared with cosine similarity.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as sk_cosine_similarity

from .collaborators import ContentItem
from .conf import get_setting
from .exceptions import ValidationFailure

logger = logging.getLogger(__name__)


DIFFICULTY_LEVELS = {
    "beginner": 1,
    "intermediate": 3,
    "advanced": 5,
    "expert": 5,
}
DEFAULT_DIFFICULTY_LEVEL = 3

GENERIC_REASON = "Content-based similarity"
DURATION_RATIO_THRESHOLD = 0.7
DIFFICULTY_LEVEL_TOLERANCE = 1


def difficulty_level(value: Any, max_difficulty: int = 5) -> int:
    """Map a difficulty label or number onto the 1..max_difficulty level scale."""
    if isinstance(value, bool):
        return DEFAULT_DIFFICULTY_LEVEL
    if isinstance(value, (int, float)):
        return int(max(0, min(round(value), max_difficulty)))
    if isinstance(value, str):
        return DIFFICULTY_LEVELS.get(value.strip().lower(), DEFAULT_DIFFICULTY_LEVEL)
    return DEFAULT_DIFFICULTY_LEVEL


@dataclass(frozen=True)
class FeatureSchema:
    """Vocabularies and scales that define a vector layout."""

    tags: tuple[str, ...]
    categories: tuple[str, ...]
    topics: tuple[str, ...]
    max_duration_seconds: float = 3600
    max_difficulty: int = 5

    @classmethod
    def from_settings(cls) -> "FeatureSchema":
        return cls(
            tags=tuple(t.lower() for t in get_setting("FEATURE_TAGS")),
            categories=tuple(c.lower() for c in get_setting("FEATURE_CATEGORIES")),
            topics=tuple(t.lower() for t in get_setting("FEATURE_TOPICS")),
            max_duration_seconds=get_setting("MAX_DURATION_SECONDS"),
            max_difficulty=get_setting("MAX_DIFFICULTY"),
        )

    @property
    def dimension(self) -> int:
        # tags + categories + difficulty + duration + topics
        return len(self.tags) + len(self.categories) + 2 + len(self.topics)

    @property
    def feature_names(self) -> list[str]:
        return (
            [f"tag_{t}" for t in self.tags]
            + [f"cat_{c}" for c in self.categories]
            + ["difficulty_normalized", "duration_normalized"]
            + [f"topic_{t}" for t in self.topics]
        )


@dataclass
class ContentVector:
    content_id: str
    content_type: str
    features: dict
    vector: np.ndarray = field(repr=False)

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[0])


@dataclass
class SimilarityResult:
    """A candidate scored against a target (or the learner's history)."""

    content_id: str
    content_type: str
    similarity: float
    reasons: list[str]
    features: dict = field(default_factory=dict)
    matched_content_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "content_id": self.content_id,
            "content_type": self.content_type,
            "similarity": round(self.similarity, 4),
            "reasons": list(self.reasons),
            "matched_content_id": self.matched_content_id,
        }


class ContentVectorizer:
    """Encodes catalog items into feature vectors for one schema."""

    def __init__(self, schema: FeatureSchema | None = None):
        self.schema = schema or FeatureSchema.from_settings()

    def vectorize(self, content: ContentItem) -> ContentVector:
        schema = self.schema
        tags = [t.lower() for t in content.tags if isinstance(t, str)]
        category = (content.category or "").lower()
        topics = [t.lower() for t in content.topics if isinstance(t, str)]
        level = difficulty_level(content.difficulty, schema.max_difficulty)
        duration_seconds = float(content.duration_seconds or 0)

        tag_part = [1.0 if term in tags else 0.0 for term in schema.tags]
        category_part = [1.0 if term in category else 0.0 for term in schema.categories]
        difficulty_part = level / schema.max_difficulty if schema.max_difficulty else 0.0
        duration_part = (
            min(duration_seconds / schema.max_duration_seconds, 1.0)
            if schema.max_duration_seconds
            else 0.0
        )
        topic_part = [
            1.0 if any(term in topic for topic in topics) else 0.0 for term in schema.topics
        ]

        vector = np.array(
            tag_part + category_part + [difficulty_part, duration_part] + topic_part,
            dtype=float,
        )
        features = {
            "tags": tags,
            "category": content.category or "",
            "difficulty": difficulty_part,
            "difficulty_level": level,
            "duration": duration_part,
            "duration_seconds": duration_seconds,
            "topics": topics,
        }
        return ContentVector(
            content_id=content.content_id,
            content_type=content.content_type,
            features=features,
            vector=vector,
        )

    def vectorize_many(self, items: list[ContentItem]) -> list[ContentVector]:
        return [self.vectorize(item) for item in items]


def _as_array(value) -> np.ndarray:
    if isinstance(value, ContentVector):
        return value.vector
    return np.asarray(value, dtype=float)


def cosine_similarity(a, b, logger: logging.Logger | None = None) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0 when either vector has zero magnitude or when their dimensions
    differ; the latter is logged as a warning.
    """
    log = logger or logging.getLogger(__name__)
    left, right = _as_array(a), _as_array(b)

    if left.shape != right.shape:
        log.warning(
            f"Cannot compare vectors of different dimensions: {left.shape} vs {right.shape}"
        )
        return 0.0
    if not np.any(left) or not np.any(right):
        return 0.0

    score = sk_cosine_similarity(left.reshape(1, -1), right.reshape(1, -1))[0, 0]
    return float(np.clip(score, -1.0, 1.0))


class SimilarityEngine:
    """Ranks candidate content by similarity to a target or to a learner's history."""

    def __init__(self, vectorizer: ContentVectorizer | None = None, logger: logging.Logger | None = None):
        self.vectorizer = vectorizer or ContentVectorizer()
        self.logger = logger or logging.getLogger(__name__)

    def similarity(self, a: ContentVector, b: ContentVector) -> float:
        return cosine_similarity(a, b, logger=self.logger)

    def find_similar(
        self,
        target: ContentVector,
        candidates: list[ContentVector],
        limit: int = 5,
        exclude_ids: set[str] | None = None,
    ) -> list[SimilarityResult]:
        """
        Score every candidate against `target` and return the best matches.

        Args:
            target: The reference vector.
            candidates: Vectors to rank; the target itself is skipped.
            limit: Maximum number of results.
            exclude_ids: Content the learner already consumed.

        Returns:
            Up to `limit` results, highest similarity first.
        """
        if limit is None or limit < 1:
            raise ValidationFailure(f"limit must be a positive integer, got {limit!r}")

        excluded = set(exclude_ids or ()) | {target.content_id}
        results = []
        for candidate in candidates:
            if candidate.content_id in excluded:
                continue
            score = self.similarity(target, candidate)
            results.append(
                SimilarityResult(
                    content_id=candidate.content_id,
                    content_type=candidate.content_type,
                    similarity=score,
                    reasons=self.explain(target, candidate),
                    features=candidate.features,
                    matched_content_id=target.content_id,
                )
            )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    def rank_against_history(
        self,
        history: list[ContentVector],
        candidates: list[ContentVector],
        limit: int = 5,
        exclude_ids: set[str] | None = None,
    ) -> list[SimilarityResult]:
        """Score each candidate by its best match among several engaged items."""
        if limit is None or limit < 1:
            raise ValidationFailure(f"limit must be a positive integer, got {limit!r}")

        excluded = set(exclude_ids or ()) | {h.content_id for h in history}
        pool = [c for c in candidates if c.content_id not in excluded]
        if not history or not pool:
            return []

        dimensions = {v.dimension for v in history} | {v.dimension for v in pool}
        if len(dimensions) > 1:
            self.logger.warning(
                f"Mixed vector dimensions {sorted(dimensions)}; history ranking skipped"
            )
            return []

        # One matrix product instead of len(pool) * len(history) pairwise calls
        scores = sk_cosine_similarity(
            np.vstack([c.vector for c in pool]),
            np.vstack([h.vector for h in history]),
        )

        results = []
        for row, candidate in enumerate(pool):
            best = int(np.argmax(scores[row]))
            matched = history[best]
            results.append(
                SimilarityResult(
                    content_id=candidate.content_id,
                    content_type=candidate.content_type,
                    similarity=float(np.clip(scores[row, best], 0.0, 1.0)),
                    reasons=self.explain(matched, candidate),
                    features=candidate.features,
                    matched_content_id=matched.content_id,
                )
            )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    def explain(self, target: ContentVector, candidate: ContentVector) -> list[str]:
        """Human-readable reasons why two items are similar."""
        reasons = []
        target_features, candidate_features = target.features, candidate.features

        shared_tags = [t for t in candidate_features.get("tags", []) if t in target_features.get("tags", [])]
        if shared_tags:
            reasons.append(f"Similar topics: {', '.join(shared_tags)}")

        category = candidate_features.get("category")
        if category and category.lower() == (target_features.get("category") or "").lower():
            reasons.append(f"Same category: {category}")

        level_gap = abs(
            target_features.get("difficulty_level", DEFAULT_DIFFICULTY_LEVEL)
            - candidate_features.get("difficulty_level", DEFAULT_DIFFICULTY_LEVEL)
        )
        if level_gap <= DIFFICULTY_LEVEL_TOLERANCE:
            reasons.append("Similar difficulty level")

        if duration_ratio(
            target_features.get("duration_seconds", 0),
            candidate_features.get("duration_seconds", 0),
        ) > DURATION_RATIO_THRESHOLD:
            reasons.append("Similar duration")

        return reasons or [GENERIC_REASON]


def duration_ratio(first: float, second: float) -> float:
    """Shorter over longer duration; 0 if either is missing."""
    if not first or not second or first <= 0 or second <= 0:
        return 0.0
    return min(first, second) / max(first, second)
