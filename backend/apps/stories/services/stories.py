"""
Story persistence with index consistency.

Write ordering across the document store and the vector index:
    - create/update: embed first (a failed embedding writes nothing), then
      store write + index upsert inside one transaction. An upsert failure
      rolls the store write back.
    - delete: index entry removed first, then the record. A failure between
      the two leaves a story that is merely invisible to search, and the
      whole delete is safe to retry.
Orphaned index entries (index written, store commit lost) are skipped by
the search pipeline.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from django.db import DatabaseError, transaction

from apps.stories.exceptions import (
    InvalidIdentifier,
    InvalidStoryContent,
    PersistenceError,
    StoryNotFound,
)
from apps.stories.models import Story, build_embedding_text
from apps.stories.services.embeddings import BaseEmbeddingProvider
from apps.stories.services.vector_index import BaseVectorIndex

logger = logging.getLogger(__name__)


def parse_story_id(value) -> uuid.UUID:
    """Validate a story id before it reaches storage."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise InvalidIdentifier(f"Incorrect story id: {str(value)[:64]!r}")


class StoryService:
    """Create, read, update and delete stories, keeping the vector index in step."""

    def __init__(self, embedder: BaseEmbeddingProvider, index: BaseVectorIndex):
        self.embedder = embedder
        self.index = index

    # -- Reads -------------------------------------------------------------

    def list_stories(self) -> List[Story]:
        """All stories, most recently created first, without embeddings."""
        try:
            return list(Story.objects.without_embedding().newest_first())
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to list stories: {exc}") from exc

    def get_story(self, story_id) -> Story:
        pk = parse_story_id(story_id)
        try:
            return Story.objects.without_embedding().get(pk=pk)
        except Story.DoesNotExist:
            raise StoryNotFound(f"Story {pk} not found")
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to load story {pk}: {exc}") from exc

    # -- Writes ------------------------------------------------------------

    def create_story(self, title: Optional[str] = None, body: Optional[str] = None) -> Story:
        """
        Persist a new story and index its embedding.

        Embedding is required: if the model is unavailable the story is not
        created and EmbeddingUnavailable propagates.
        """
        title = title or ""
        body = body or ""
        text = build_embedding_text(title, body)
        if not text:
            raise InvalidStoryContent("A story needs a title or a body.")

        vector = self.embedder.embed(text)

        try:
            with transaction.atomic():
                story = Story.objects.create(
                    title=title,
                    body=body,
                    embedding_status=Story.EmbeddingStatus.INDEXED,
                )
                self.index.upsert(str(story.pk), vector)
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to create story: {exc}") from exc

        logger.info("Created story %s (%d chars embedded)", story.pk, len(text))
        return story

    def update_story(
        self,
        story_id,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Story:
        """
        Apply the provided non-empty fields and re-embed if the text changed.

        Fields left out (or empty) are untouched.
        """
        pk = parse_story_id(story_id)
        story = self.get_story(pk)

        changes = {
            field: value
            for field, value in (("title", title), ("body", body))
            if value and getattr(story, field) != value
        }
        if not changes:
            logger.info("Story %s update had no changes", pk)
            return story

        for field, value in changes.items():
            setattr(story, field, value)

        vector = self.embedder.embed(story.embedding_text)

        try:
            with transaction.atomic():
                story.embedding_status = Story.EmbeddingStatus.INDEXED
                story.save(update_fields=[*changes, "embedding_status", "updated_at"])
                self.index.upsert(str(story.pk), vector)
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to update story {pk}: {exc}") from exc

        logger.info("Updated story %s fields=%s", pk, sorted(changes))
        return story

    def delete_story(self, story_id) -> bool:
        """
        Remove the index entry, then the record.

        Returns False when no record existed; deleting twice is not an error.
        """
        pk = parse_story_id(story_id)

        self.index.remove(str(pk))

        try:
            deleted, _ = Story.objects.filter(pk=pk).delete()
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to delete story {pk}: {exc}") from exc

        logger.info("Deleted story %s (existed=%s)", pk, bool(deleted))
        return bool(deleted)

    # -- Re-embedding ------------------------------------------------------

    def reembed_stories(self, story_ids: Iterable) -> Dict[str, Any]:
        """
        Recompute and re-index embeddings for the given stories in one batch.

        Stories with no text are marked FAILED. Missing ids are reported and
        skipped. EmbeddingUnavailable propagates so the caller can retry.
        """
        pks = [parse_story_id(sid) for sid in story_ids]
        summary = {"requested": len(pks), "embedded": 0, "missing": 0, "failed": 0}
        if not pks:
            return summary

        try:
            stories = Story.objects.without_embedding().in_bulk(pks)
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to load stories for re-embedding: {exc}") from exc

        summary["missing"] = len(pks) - len(stories)

        embeddable = []
        for story in stories.values():
            if story.embedding_text:
                embeddable.append(story)
            else:
                logger.warning("Story %s has no text to embed", story.pk)
                Story.objects.filter(pk=story.pk).update(
                    embedding_status=Story.EmbeddingStatus.FAILED,
                )
                summary["failed"] += 1

        vectors = self.embedder.embed_many([s.embedding_text for s in embeddable])

        for story, vector in zip(embeddable, vectors):
            try:
                with transaction.atomic():
                    self.index.upsert(str(story.pk), vector)
                    Story.objects.filter(pk=story.pk).update(
                        embedding_status=Story.EmbeddingStatus.INDEXED,
                    )
            except DatabaseError as exc:
                raise PersistenceError(f"Failed to re-index story {story.pk}: {exc}") from exc
            summary["embedded"] += 1

        logger.info("Re-embedded stories: %s", summary)
        return summary

    def mark_pending(self, story_ids: Iterable) -> int:
        """Flag stories whose text changed outside this service."""
        pks = [parse_story_id(sid) for sid in story_ids]
        return Story.objects.filter(pk__in=pks).update(
            embedding_status=Story.EmbeddingStatus.PENDING,
        )
