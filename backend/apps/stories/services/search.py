"""
Semantic search over stories.

Pipeline: query text -> embedding -> kNN over the vector index -> fetch
stories -> drop the raw vector -> attach the score. Results keep the
index's rank order and are never re-sorted or filtered by score.
"""

import logging
import uuid
from typing import Any, Dict, List

from django.conf import settings
from django.db import DatabaseError

from apps.stories.exceptions import InvalidQuery, PersistenceError
from apps.stories.models import Story
from apps.stories.services.embeddings import BaseEmbeddingProvider
from apps.stories.services.vector_index import BaseVectorIndex

logger = logging.getLogger(__name__)

DEFAULT_K = 5
MAX_K = 50
MAX_QUERY_LENGTH = 2000


class StorySearchService:
    """Stateless search pipeline; safe to share between concurrent requests."""

    def __init__(self, embedder: BaseEmbeddingProvider, index: BaseVectorIndex):
        self.embedder = embedder
        self.index = index

    @property
    def max_k(self) -> int:
        return int(getattr(settings, "SEARCH_MAX_K", MAX_K))

    @property
    def max_query_length(self) -> int:
        return int(getattr(settings, "SEARCH_MAX_QUERY_LENGTH", MAX_QUERY_LENGTH))

    def search(self, query: str, k: int | None = None) -> List[Dict[str, Any]]:
        """
        Return up to ``k`` stories most similar to ``query``.

        Args:
            query: Free-text search query
            k: Number of results (defaults to SEARCH_DEFAULT_K)

        Returns:
            List of story dicts (id, title, body, created_on, score), highest
            score first.

        Raises:
            InvalidQuery: Empty, over-long query or out-of-range k. No
                embedding call is made.
            EmbeddingUnavailable: The embedding model failed.
            PersistenceError: The index or store failed.
        """
        query = self._clean_query(query)
        k = self._clean_k(k)

        query_embedding = self.embedder.embed(query)

        logger.info(
            "Story search: query_length=%d, embedding_dims=%d, k=%d",
            len(query), len(query_embedding), k,
        )

        matches = self.index.knn(query_embedding, k)
        results = self._hydrate(matches)

        logger.info(
            "Story search completed: candidates=%d, results=%d",
            len(matches), len(results),
        )
        return results

    def _clean_query(self, query) -> str:
        if not isinstance(query, str) or not query.strip():
            raise InvalidQuery("Search query cannot be empty")
        query = query.strip()
        if len(query) > self.max_query_length:
            raise InvalidQuery(
                f"Query exceeds maximum length of {self.max_query_length} characters"
            )
        return query

    def _clean_k(self, k) -> int:
        if k is None:
            return int(getattr(settings, "SEARCH_DEFAULT_K", DEFAULT_K))
        if isinstance(k, bool) or not isinstance(k, int) or not 1 <= k <= self.max_k:
            raise InvalidQuery(f"k must be an integer between 1 and {self.max_k}")
        return k

    def _hydrate(self, matches) -> List[Dict[str, Any]]:
        """Join index matches to stored stories, preserving rank order."""
        if not matches:
            return []

        ids = []
        for match in matches:
            try:
                ids.append(uuid.UUID(match.id))
            except ValueError:
                logger.warning("Vector index returned malformed id %r, skipping", match.id)

        try:
            stories = Story.objects.without_embedding().in_bulk(ids)
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to load stories for search results: {exc}") from exc

        results = []
        for match in matches:
            try:
                story = stories.get(uuid.UUID(match.id))
            except ValueError:
                continue
            if story is None:
                # Deleted story whose index entry has not been cleaned up yet.
                logger.warning("Skipping orphaned index entry %s", match.id)
                continue
            results.append({
                "id": story.pk,
                "title": story.title,
                "body": story.body,
                "created_on": story.created_on,
                "score": match.score,
            })
        return results
