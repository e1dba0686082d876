"""
Process-wide collaborators for the stories app.

One StoryServices instance is built by StoriesConfig.ready() and closed at
interpreter exit. Components are constructed on first use so management
commands that never touch search do not need embedding credentials.
"""

import logging
import threading

from django.apps import apps
from django.db import DatabaseError

from apps.stories.exceptions import StoryError
from apps.stories.models import Story
from apps.stories.services.embeddings import BaseEmbeddingProvider, build_embedding_provider
from apps.stories.services.search import StorySearchService
from apps.stories.services.stories import StoryService
from apps.stories.services.vector_index import (
    BaseVectorIndex,
    InMemoryVectorIndex,
    build_vector_index,
)

logger = logging.getLogger(__name__)


class StoryServices:
    """Holds the embedding provider and vector index for the process lifetime."""

    def __init__(
        self,
        embedder: BaseEmbeddingProvider | None = None,
        index: BaseVectorIndex | None = None,
    ):
        self._embedder = embedder
        self._index = index
        self._lock = threading.Lock()
        self._index_lock = threading.Lock()

    @property
    def embedder(self) -> BaseEmbeddingProvider:
        if self._embedder is None:
            with self._lock:
                if self._embedder is None:
                    self._embedder = build_embedding_provider()
        return self._embedder

    @property
    def index(self) -> BaseVectorIndex:
        if self._index is None:
            # Separate lock: warming goes through the embedder property.
            with self._index_lock:
                if self._index is None:
                    index = build_vector_index()
                    if isinstance(index, InMemoryVectorIndex):
                        self._warm(index)
                    self._index = index
        return self._index

    def _warm(self, index: InMemoryVectorIndex) -> None:
        """Fill a freshly built in-memory index from the stored stories."""
        try:
            story_ids = list(Story.objects.values_list("pk", flat=True))
            if not story_ids:
                return
            summary = StoryService(self.embedder, index).reembed_stories(story_ids)
        except (StoryError, DatabaseError):
            logger.warning(
                "Could not warm in-memory vector index; run reindex_stories",
                exc_info=True,
            )
            return
        logger.info("Warmed in-memory vector index: %s", summary)

    def search_service(self) -> StorySearchService:
        return StorySearchService(self.embedder, self.index)

    def story_service(self) -> StoryService:
        return StoryService(self.embedder, self.index)

    def close(self) -> None:
        with self._lock:
            if self._embedder is not None:
                try:
                    self._embedder.close()
                except Exception:
                    logger.warning("Failed to close embedding provider", exc_info=True)
                self._embedder = None


def get_story_services() -> StoryServices:
    """Return the container owned by the stories app config."""
    return apps.get_app_config("stories").services
