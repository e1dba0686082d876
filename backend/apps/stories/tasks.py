"""
Celery tasks for re-embedding stories out of band.

Used by the reindex_stories management command and by admin edits, which
change story text without going through the API's embed-on-write path.
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def reembed_stories(self, story_ids: list[str]) -> dict:
    """
    Recompute embeddings for a batch of stories and re-index them.

    Retries on EmbeddingUnavailable; once retries are exhausted the stories
    are marked FAILED so the next reindex run picks them up again.

    Args:
        story_ids: UUID strings of the stories to re-embed.

    Returns:
        dict with re-embedding summary.
    """
    from apps.stories.exceptions import EmbeddingUnavailable, StoryError
    from apps.stories.models import Story
    from apps.stories.services.container import get_story_services

    service = get_story_services().story_service()

    try:
        summary = service.reembed_stories(story_ids)
    except EmbeddingUnavailable as exc:
        logger.error("Re-embedding failed for %d stories: %s", len(story_ids), exc)
        if self.request.retries < self.max_retries:
            logger.info(
                "Retrying re-embedding (attempt %d/%d)",
                self.request.retries + 1, self.max_retries,
            )
            raise self.retry(countdown=self.default_retry_delay, exc=exc)

        Story.objects.filter(pk__in=story_ids).update(
            embedding_status=Story.EmbeddingStatus.FAILED,
        )
        return {
            "status": "failed",
            "story_ids": list(story_ids),
            "error": str(exc),
            "retries_exhausted": True,
        }
    except StoryError as exc:
        logger.exception("Error re-embedding stories")
        return {"status": "error", "story_ids": list(story_ids), "error": str(exc)}

    return {"status": "completed", **summary}
