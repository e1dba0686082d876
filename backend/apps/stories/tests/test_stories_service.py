import uuid
from datetime import datetime, timezone

import pytest

from apps.stories.exceptions import (
    EmbeddingUnavailable,
    InvalidIdentifier,
    InvalidStoryContent,
    PersistenceError,
    StoryNotFound,
)
from apps.stories.models import Story, build_embedding_text
from apps.stories.services.stories import parse_story_id

from .factories import StoryFactory


class TestParseStoryId:

    def test_accepts_uuid_strings(self):
        value = uuid.uuid4()

        assert parse_story_id(str(value)) == value
        assert parse_story_id(value) is value

    @pytest.mark.parametrize("value", ["", "123", "not-a-uuid", None])
    def test_rejects_malformed_ids(self, value):
        with pytest.raises(InvalidIdentifier):
            parse_story_id(value)


class TestBuildEmbeddingText:

    def test_joins_title_and_body(self):
        assert build_embedding_text(" Title ", "Body") == "Title\n\nBody"

    def test_skips_blank_parts(self):
        assert build_embedding_text("", "Body") == "Body"
        assert build_embedding_text("Title", None) == "Title"
        assert build_embedding_text("  ", "") == ""


@pytest.mark.django_db
class TestCreateStory:
    """Embed first, then store write and index upsert together"""

    def test_create_indexes_the_story(self, story_service, index, embedder):
        story = story_service.create_story(title="Park day", body="Kids at play")

        assert Story.objects.get(pk=story.pk).is_indexed
        assert str(story.pk) in index
        assert embedder.calls == [["Park day\n\nKids at play"]]

    def test_title_only_story(self, story_service, index):
        story = story_service.create_story(title="Park day")

        assert story.body == ""
        assert str(story.pk) in index

    def test_embedding_failure_writes_nothing(self, story_service, embedder, index):
        embedder.fail = True

        with pytest.raises(EmbeddingUnavailable):
            story_service.create_story(title="Park day", body="Kids at play")

        assert Story.objects.count() == 0
        assert len(index) == 0

    def test_index_failure_rolls_back_the_record(self, story_service, index):
        index.fail_upsert = True

        with pytest.raises(PersistenceError):
            story_service.create_story(title="Park day", body="Kids at play")

        assert Story.objects.count() == 0

    def test_story_without_text(self, story_service, embedder):
        with pytest.raises(InvalidStoryContent):
            story_service.create_story(title="  ", body=None)

        assert embedder.calls == []
        assert Story.objects.count() == 0


@pytest.mark.django_db
class TestReadStories:

    def test_list_is_newest_first(self, story_service):
        first = StoryFactory()
        second = StoryFactory()
        Story.objects.filter(pk=first.pk).update(created_on=datetime(2024, 1, 1, tzinfo=timezone.utc))
        Story.objects.filter(pk=second.pk).update(created_on=datetime(2024, 2, 1, tzinfo=timezone.utc))

        assert [s.pk for s in story_service.list_stories()] == [second.pk, first.pk]

    def test_get_unknown_story(self, story_service):
        with pytest.raises(StoryNotFound):
            story_service.get_story(uuid.uuid4())

    def test_malformed_id_never_reaches_storage(self, story_service, django_assert_num_queries):
        with django_assert_num_queries(0):
            with pytest.raises(InvalidIdentifier):
                story_service.get_story("1; DROP TABLE stories")


@pytest.mark.django_db
class TestUpdateStory:
    """Partial updates with re-embedding on text change"""

    def test_partial_update_keeps_other_fields(self, story_service, park_story):
        story_service.update_story(park_story.pk, body="Quarterly report on the park budget")

        story = Story.objects.get(pk=park_story.pk)
        assert story.title == "Children playing in the park"
        assert story.body == "Quarterly report on the park budget"

    def test_changed_text_is_reembedded(self, story_service, search_service, park_story, finance_story):
        story_service.update_story(park_story.pk, title="Quarterly report", body="Quarterly figures")

        results = search_service.search("quarterly", k=2)
        assert results[0]["id"] == park_story.pk

    def test_unchanged_text_skips_embedding(self, story_service, embedder, park_story):
        embedder.calls.clear()

        story_service.update_story(park_story.pk, title=park_story.title, body="")

        assert embedder.calls == []

    def test_unknown_story(self, story_service, embedder):
        with pytest.raises(StoryNotFound):
            story_service.update_story(uuid.uuid4(), title="Anything")

        assert embedder.calls == []

    def test_embedding_failure_leaves_story_unchanged(self, story_service, embedder, park_story):
        embedder.fail = True

        with pytest.raises(EmbeddingUnavailable):
            story_service.update_story(park_story.pk, title="New title")

        assert Story.objects.get(pk=park_story.pk).title == "Children playing in the park"

    def test_index_failure_rolls_back_the_update(self, story_service, index, park_story):
        index.fail_upsert = True

        with pytest.raises(PersistenceError):
            story_service.update_story(park_story.pk, title="New title")

        assert Story.objects.get(pk=park_story.pk).title == "Children playing in the park"


@pytest.mark.django_db
class TestDeleteStory:
    """Index entry first, then the record"""

    def test_deleted_story_leaves_list_and_search(self, story_service, search_service, index, park_story):
        assert story_service.delete_story(str(park_story.pk)) is True

        assert story_service.list_stories() == []
        assert str(park_story.pk) not in index
        assert search_service.search("park") == []

    def test_delete_is_idempotent(self, story_service, park_story):
        story_service.delete_story(park_story.pk)

        assert story_service.delete_story(park_story.pk) is False

    def test_index_failure_keeps_the_record(self, story_service, index, park_story):
        index.fail_remove = True

        with pytest.raises(PersistenceError):
            story_service.delete_story(park_story.pk)

        assert Story.objects.filter(pk=park_story.pk).exists()


@pytest.mark.django_db
class TestReembedStories:

    def test_summary(self, story_service, index):
        pending = StoryFactory(title="Park", body="Kids")
        empty = StoryFactory(title="", body="")
        missing = uuid.uuid4()

        summary = story_service.reembed_stories([pending.pk, empty.pk, missing])

        assert summary == {"requested": 3, "embedded": 1, "missing": 1, "failed": 1}
        assert str(pending.pk) in index
        assert Story.objects.get(pk=pending.pk).is_indexed
        assert Story.objects.get(pk=empty.pk).embedding_status == Story.EmbeddingStatus.FAILED

    def test_mark_pending(self, story_service, park_story):
        assert story_service.mark_pending([park_story.pk]) == 1

        assert Story.objects.get(pk=park_story.pk).embedding_status == Story.EmbeddingStatus.PENDING


@pytest.mark.django_db
def test_delete_with_malformed_id_issues_no_store_call(story_service, django_assert_num_queries):
    with django_assert_num_queries(0):
        with pytest.raises(InvalidIdentifier):
            story_service.delete_story("not-a-valid-id")
