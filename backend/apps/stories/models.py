"""
Story model.

The embedding is stored alongside the record (used by the pgvector index
backend) and is deferred from every client-facing query.
"""

import uuid

from django.conf import settings
from django.db import models
from pgvector.django import VectorField


class StoryQuerySet(models.QuerySet):
    def without_embedding(self):
        """Project out the raw vector column."""
        return self.defer("embedding")

    def newest_first(self):
        return self.order_by("-created_on", "-id")

    def needs_embedding(self):
        """Stories whose vector is missing or out of date."""
        return self.exclude(embedding_status=Story.EmbeddingStatus.INDEXED)


class Story(models.Model):
    class EmbeddingStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        INDEXED = "indexed", "Indexed"
        FAILED = "failed", "Failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=500, blank=True, default="")
    body = models.TextField(blank=True, default="")
    created_on = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    embedding = VectorField(
        dimensions=getattr(settings, "EMBEDDING_DIMENSIONS", 1536),
        null=True,
        blank=True,
    )
    embedding_status = models.CharField(
        max_length=20,
        choices=EmbeddingStatus.choices,
        default=EmbeddingStatus.PENDING,
        db_index=True,
    )

    objects = StoryQuerySet.as_manager()

    class Meta:
        db_table = "stories"
        ordering = ["-created_on"]
        verbose_name_plural = "stories"

    def __str__(self):
        return self.title or f"Story {self.pk}"

    @property
    def embedding_text(self) -> str:
        return build_embedding_text(self.title, self.body)

    @property
    def is_indexed(self) -> bool:
        return self.embedding_status == self.EmbeddingStatus.INDEXED


def build_embedding_text(title: str | None, body: str | None) -> str:
    """Text a story is embedded from: title and body separated by a blank line."""
    parts = [part.strip() for part in (title, body) if part and part.strip()]
    return "\n\n".join(parts)
