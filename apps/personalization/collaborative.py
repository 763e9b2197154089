"""
Collaborative-filtering providers.

The aggregator depends only on ``CollaborativeFilteringProvider``. The null
provider is the default wiring; ``MatrixFactorizationProvider`` is a batch
fitted SVD model suitable for small and medium catalogs.
"""

import logging
from dataclasses import dataclass

import numpy as np
from django.utils import timezone
from scipy.sparse import csr_matrix
from sklearn.decomposition import TruncatedSVD
from sklearn.preprocessing import MinMaxScaler

from .collaborators import CollaborativeCandidate, CollaborativeFilteringProvider
from .exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Interaction:
    """An implicit-feedback signal: learner engaged with content at some strength (0-5)."""

    user_id: str
    content_id: str
    score: float
    content_type: str = "course"
    title: str = ""


class NullCollaborativeProvider(CollaborativeFilteringProvider):
    """Returns no candidates; content-based ranking carries the recommendation."""

    async def recommend(self, user_id, content_type=None, limit=5):
        return []


class MatrixFactorizationProvider(CollaborativeFilteringProvider):
    """
    Collaborative filtering using truncated SVD over a user/content matrix.

    Users that were not part of the fitted data get the most popular items.
    Predicted scores are min-max normalized to [0, 1] per request.
    """

    def __init__(
        self,
        n_factors: int = 50,
        min_interactions: int = 5,
        logger: logging.Logger | None = None,
    ):
        """
        Args:
            n_factors: Number of latent factors for the factorization.
            min_interactions: Interactions required before the model is usable.
        """
        self.n_factors = n_factors
        self.min_interactions = min_interactions
        self.logger = logger or logging.getLogger(__name__)

        self._fitted = False
        self._last_fit_time = None
        self._user_index: dict[str, int] = {}
        self._item_index: dict[str, int] = {}
        self._items: list[str] = []
        self._item_meta: dict[str, tuple[str, str]] = {}
        self._matrix = None
        self._user_factors = None
        self._item_factors = None
        self._global_mean = 0.0
        self._popularity = None

    @property
    def is_fitted(self) -> bool:
        return self._fitted

    def fit(self, interactions: list[Interaction]) -> None:
        self.logger.info(f"Fitting collaborative filtering model on {len(interactions)} interactions")

        if len(interactions) < self.min_interactions:
            self.logger.warning(
                f"Insufficient data for collaborative filtering: "
                f"{len(interactions)} < {self.min_interactions}"
            )
            self._fitted = False
            return

        users = sorted({i.user_id for i in interactions})
        items = sorted({i.content_id for i in interactions})
        self._user_index = {uid: idx for idx, uid in enumerate(users)}
        self._item_index = {cid: idx for idx, cid in enumerate(items)}
        self._items = items
        self._item_meta = {i.content_id: (i.content_type, i.title) for i in interactions}

        rows = [self._user_index[i.user_id] for i in interactions]
        cols = [self._item_index[i.content_id] for i in interactions]
        values = [min(max(float(i.score), 0.0), 5.0) for i in interactions]

        self._matrix = csr_matrix((values, (rows, cols)), shape=(len(users), len(items)))
        self._global_mean = float(np.mean(values))
        self._popularity = np.asarray((self._matrix > 0).sum(axis=0)).ravel().astype(float)

        n_components = min(self.n_factors, min(len(users), len(items)) - 1)
        if n_components < 1:
            self.logger.warning("Insufficient dimensions for SVD, serving popularity only")
            self._user_factors = None
            self._item_factors = None
        else:
            centered = self._matrix.copy().astype(float)
            centered.data -= self._global_mean
            svd = TruncatedSVD(n_components=n_components, random_state=42)
            self._user_factors = svd.fit_transform(centered)
            self._item_factors = svd.components_.T

        self._fitted = True
        self._last_fit_time = timezone.now()
        self.logger.info(
            f"Collaborative filtering model fitted: {len(users)} users, {len(items)} items"
        )

    async def recommend(self, user_id, content_type=None, limit=5):
        if not self._fitted:
            raise UpstreamUnavailable("Collaborative filtering model is not fitted")
        return self.predict(user_id, content_type=content_type, limit=limit)

    def predict(self, user_id: str, content_type: str | None = None, limit: int = 5):
        user_idx = self._user_index.get(user_id)

        if user_idx is None or self._user_factors is None:
            raw_scores = self._popularity.copy()
            similar_users = 0
        else:
            raw_scores = self._user_factors[user_idx] @ self._item_factors.T + self._global_mean
            similar_users = int(np.count_nonzero(self._user_factors @ self._user_factors[user_idx] > 0)) - 1

        consumed = set()
        if user_idx is not None:
            consumed = {self._items[i] for i in self._matrix[user_idx].indices}

        candidates = []
        for item_idx, content_id in enumerate(self._items):
            if content_id in consumed:
                continue
            item_type, title = self._item_meta.get(content_id, ("course", ""))
            if content_type and item_type != content_type:
                continue
            candidates.append((content_id, item_type, title, float(raw_scores[item_idx])))

        if not candidates:
            return []

        raw = np.array([[c[3]] for c in candidates])
        if np.ptp(raw) == 0:
            normalized = np.full(len(candidates), 0.5)
        else:
            normalized = MinMaxScaler().fit_transform(raw).ravel()

        ranked = sorted(
            zip(candidates, normalized), key=lambda pair: pair[1], reverse=True
        )[:limit]
        return [
            CollaborativeCandidate(
                content_id=content_id,
                content_type=item_type,
                title=title,
                score=float(score),
                similar_user_count=max(similar_users, 0),
            )
            for (content_id, item_type, title, _), score in ranked
        ]
