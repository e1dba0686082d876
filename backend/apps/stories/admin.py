"""
Admin configuration for the Story model.

Edits made here bypass the API's embed-on-write path, so changed stories
are flagged pending and re-embedded by a Celery task once the admin
transaction commits. Deletes go through StoryService so the index entry is
removed first.
"""

import logging

from django.contrib import admin, messages
from django.db import transaction

from apps.stories.models import Story
from apps.stories.services.container import get_story_services
from apps.stories.tasks import reembed_stories

logger = logging.getLogger(__name__)


@admin.register(Story)
class StoryAdmin(admin.ModelAdmin):
    list_display = ("title", "created_on", "updated_at", "embedding_status")
    list_filter = ("embedding_status", "created_on")
    search_fields = ("title", "body")
    readonly_fields = ("id", "created_on", "updated_at", "embedding_status")
    exclude = ("embedding",)
    fieldsets = (
        (
            "Story",
            {"fields": ("id", "title", "body")},
        ),
        (
            "Search Index",
            {"fields": ("embedding_status",)},
        ),
        (
            "Timestamps",
            {"fields": ("created_on", "updated_at")},
        ),
    )
    actions = ["reembed_selected"]

    def get_queryset(self, request):
        return super().get_queryset(request).without_embedding()

    def save_model(self, request, obj, form, change):
        text_changed = not change or {"title", "body"} & set(form.changed_data)
        if text_changed:
            obj.embedding_status = Story.EmbeddingStatus.PENDING
        super().save_model(request, obj, form, change)

        if text_changed:
            self._schedule([obj.pk])

    def delete_model(self, request, obj):
        get_story_services().story_service().delete_story(obj.pk)

    def delete_queryset(self, request, queryset):
        service = get_story_services().story_service()
        for story_id in queryset.values_list("pk", flat=True):
            service.delete_story(story_id)

    @admin.action(description="Re-embed selected stories")
    def reembed_selected(self, request, queryset):
        story_ids = list(queryset.values_list("pk", flat=True))
        get_story_services().story_service().mark_pending(story_ids)
        self._schedule(story_ids)
        self.message_user(
            request,
            f"Scheduled re-embedding for {len(story_ids)} stories.",
            messages.SUCCESS,
        )

    @staticmethod
    def _schedule(story_ids) -> None:
        # Workers must see the committed rows.
        ids = [str(pk) for pk in story_ids]
        transaction.on_commit(lambda: StoryAdmin._enqueue(ids))

    @staticmethod
    def _enqueue(story_ids) -> None:
        try:
            reembed_stories.delay(story_ids)
        except Exception:
            logger.exception(
                "Failed to schedule re-embedding for %d stories; run reindex_stories",
                len(story_ids),
            )
