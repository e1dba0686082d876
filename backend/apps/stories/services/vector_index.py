"""
Vector index over story embeddings.

Backends controlled by settings.VECTOR_INDEX_BACKEND:
    - "pgvector" - vectors stored in ``stories.embedding`` with an HNSW
      cosine index (production)
    - "memory"   - process-local numpy index (development and tests)

Scores are cosine similarity: higher is closer. They are a ranking signal,
not a probability, and no minimum threshold is applied here.
"""

import abc
import logging
import math
import threading
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from django.conf import settings
from django.db import DatabaseError, connections, transaction

from apps.stories.exceptions import DimensionMismatch, PersistenceError

logger = logging.getLogger(__name__)

# pgvector default for hnsw.ef_search
HNSW_EF_SEARCH_DEFAULT = 40


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float


def validate_vector(vector: Sequence[float], dimensions: int | None) -> None:
    """Validate that a vector is non-empty, numeric, finite and correctly sized."""
    if vector is None or len(vector) == 0:
        raise ValueError("Empty embedding vector")

    if dimensions and len(vector) != dimensions:
        raise DimensionMismatch(
            f"Embedding dimension mismatch: expected {dimensions}, got {len(vector)}"
        )

    for i, val in enumerate(vector):
        if isinstance(val, bool) or not isinstance(val, (int, float, np.floating, np.integer)):
            raise ValueError(f"Non-numeric value at embedding index {i}")
        if not math.isfinite(float(val)):
            raise ValueError(f"Non-finite value at embedding index {i}")


def _validate_k(k) -> int:
    if isinstance(k, bool) or not isinstance(k, int) or k < 1:
        raise ValueError(f"k must be a positive integer, got {k!r}")
    return k


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class BaseVectorIndex(abc.ABC):
    """Associates story ids with vectors and answers k-nearest-neighbour queries."""

    def __init__(self, dimensions: int | None = None):
        self.dimensions = dimensions

    @abc.abstractmethod
    def upsert(self, story_id: str, vector: Sequence[float]) -> None:
        """Associate ``story_id`` with ``vector``, replacing any prior vector."""

    @abc.abstractmethod
    def remove(self, story_id: str) -> None:
        """Delete the association. Removing an unknown id is a no-op."""

    @abc.abstractmethod
    def knn(self, query_vector: Sequence[float], k: int) -> list[VectorMatch]:
        """Return up to ``k`` matches ordered by descending score."""

    @abc.abstractmethod
    def backend_name(self) -> str:
        """Human-readable name for logging."""


# ---------------------------------------------------------------------------
# pgvector backend
# ---------------------------------------------------------------------------

class PgVectorIndex(BaseVectorIndex):
    """Vector index backed by the ``stories.embedding`` pgvector column.

    Nearest candidates are selected through the HNSW index, then ordered
    by score with the id as tie-breaker so equal scores come back in a
    stable order.
    """

    def __init__(self, dimensions: int | None = None, using: str = "default"):
        super().__init__(dimensions or getattr(settings, "EMBEDDING_DIMENSIONS", 1536))
        self.using = using

    def backend_name(self) -> str:
        return f"pgvector (stories.embedding, dim={self.dimensions})"

    @staticmethod
    def _to_literal(vector: Sequence[float]) -> str:
        return "[" + ",".join(str(float(v)) for v in vector) + "]"

    def upsert(self, story_id: str, vector: Sequence[float]) -> None:
        validate_vector(vector, self.dimensions)

        sql = "UPDATE stories SET embedding = %s::vector WHERE id = %s;"
        try:
            with connections[self.using].cursor() as cursor:
                cursor.execute(sql, [self._to_literal(vector), str(story_id)])
                updated = cursor.rowcount
        except DatabaseError as exc:
            raise PersistenceError(f"Vector upsert failed for story {story_id}: {exc}") from exc

        if not updated:
            raise PersistenceError(f"Cannot index vector: story {story_id} does not exist")

    def remove(self, story_id: str) -> None:
        sql = "UPDATE stories SET embedding = NULL WHERE id = %s;"
        try:
            with connections[self.using].cursor() as cursor:
                cursor.execute(sql, [str(story_id)])
        except DatabaseError as exc:
            raise PersistenceError(f"Vector removal failed for story {story_id}: {exc}") from exc

    def knn(self, query_vector: Sequence[float], k: int) -> list[VectorMatch]:
        k = _validate_k(k)
        validate_vector(query_vector, self.dimensions)
        if not any(float(v) for v in query_vector):
            # Cosine distance to a zero vector is NaN in pgvector.
            raise ValueError("Zero-norm query vector")

        embedding_str = self._to_literal(query_vector)
        sql = """
        SELECT nearest.id, nearest.score
        FROM (
            SELECT
                s.id,
                (1 - (s.embedding <=> %s::vector)) AS score
            FROM stories s
            WHERE s.embedding IS NOT NULL
            ORDER BY s.embedding <=> %s::vector
            LIMIT %s
        ) AS nearest
        ORDER BY nearest.score DESC, nearest.id ASC;
        """

        try:
            with transaction.atomic(using=self.using):
                with connections[self.using].cursor() as cursor:
                    # An HNSW scan yields at most ef_search rows.
                    cursor.execute(
                        "SET LOCAL hnsw.ef_search = %s",
                        [max(k, HNSW_EF_SEARCH_DEFAULT)],
                    )
                    cursor.execute(sql, [embedding_str, embedding_str, k])
                    rows = cursor.fetchall()
        except DatabaseError as exc:
            raise PersistenceError(f"Vector search failed: {exc}") from exc

        matches = []
        for row_id, score in rows:
            score = float(score)
            # Stored zero vectors score NaN; rank them as unrelated.
            matches.append(VectorMatch(id=str(row_id), score=0.0 if math.isnan(score) else score))
        matches.sort(key=lambda m: -m.score)
        return matches


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class InMemoryVectorIndex(BaseVectorIndex):
    """Process-local cosine index.

    Vectors are stored unit-normalised so a query is a single matrix
    product. The dimensionality is taken from configuration, or fixed by
    the first upsert when none is configured.
    """

    def __init__(self, dimensions: int | None = None):
        super().__init__(dimensions)
        self._vectors: dict[str, np.ndarray] = {}
        self._lock = threading.Lock()

    def backend_name(self) -> str:
        return f"memory (dim={self.dimensions}, size={len(self)})"

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, story_id) -> bool:
        return str(story_id) in self._vectors

    @staticmethod
    def _normalise(vector: Sequence[float]) -> np.ndarray:
        arr = np.asarray(vector, dtype=np.float64)
        norm = np.linalg.norm(arr)
        if norm == 0:
            return arr
        return arr / norm

    def upsert(self, story_id: str, vector: Sequence[float]) -> None:
        with self._lock:
            validate_vector(vector, self.dimensions)
            if self.dimensions is None:
                self.dimensions = len(vector)
            self._vectors[str(story_id)] = self._normalise(vector)

    def remove(self, story_id: str) -> None:
        with self._lock:
            self._vectors.pop(str(story_id), None)

    def knn(self, query_vector: Sequence[float], k: int) -> list[VectorMatch]:
        k = _validate_k(k)

        with self._lock:
            validate_vector(query_vector, self.dimensions)
            if not self._vectors:
                return []
            ids = list(self._vectors)
            matrix = np.vstack([self._vectors[i] for i in ids])

        scores = matrix @ self._normalise(query_vector)
        # Stable sort keeps insertion order among equal scores.
        order = np.argsort(-scores, kind="stable")[:k]
        return [VectorMatch(id=ids[i], score=float(scores[i])) for i in order]


# ---------------------------------------------------------------------------
# Backend registry & factory
# ---------------------------------------------------------------------------

INDEX_BACKENDS = {
    "pgvector": PgVectorIndex,
    "memory": InMemoryVectorIndex,
}


def build_vector_index(name: str | None = None) -> BaseVectorIndex:
    """Construct the configured vector index backend."""
    name = name or getattr(settings, "VECTOR_INDEX_BACKEND", "pgvector")

    index_cls = INDEX_BACKENDS.get(name)
    if index_cls is None:
        raise ValueError(
            f"Unknown VECTOR_INDEX_BACKEND '{name}'. "
            f"Choose from: {', '.join(INDEX_BACKENDS)}"
        )

    index = index_cls(dimensions=getattr(settings, "EMBEDDING_DIMENSIONS", None))
    logger.info("Initialized vector index: %s", index.backend_name())
    return index
