import uuid
from datetime import datetime, timezone

import pytest

from apps.stories.models import Story


@pytest.mark.django_db
class TestStoryListAPI:

    def test_list_newest_first_without_embeddings(self, api_client, park_story, finance_story):
        Story.objects.filter(pk=park_story.pk).update(created_on=datetime(2024, 1, 1, tzinfo=timezone.utc))

        response = api_client.get("/api/v1/stories")

        assert response.status_code == 200
        data = response.json()
        assert [item["id"] for item in data] == [str(finance_story.pk), str(park_story.pk)]
        assert set(data[0]) == {"id", "title", "body", "createdOn"}

    def test_empty_list(self, api_client):
        response = api_client.get("/api/v1/stories")

        assert response.status_code == 200
        assert response.json() == []


@pytest.mark.django_db
class TestSearchAPI:

    def test_search_returns_ranked_results(self, api_client, park_story, finance_story):
        response = api_client.get("/api/v1/search", {"q": "kids in the park", "k": 1})

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["id"] == str(park_story.pk)
        assert set(data[0]) == {"id", "title", "body", "createdOn", "score"}

    @pytest.mark.parametrize("params", [
        {},
        {"q": "   "},
        {"q": "park", "k": 0},
        {"q": "park", "k": "many"},
        {"q": "park", "k": 51},
    ])
    def test_bad_requests(self, api_client, embedder, params):
        response = api_client.get("/api/v1/search", params)

        assert response.status_code == 400
        assert "message" in response.json()
        assert embedder.calls == []

    def test_embedding_failure(self, api_client, embedder, park_story):
        embedder.fail = True

        response = api_client.get("/api/v1/search", {"q": "park"})

        assert response.status_code == 500
        assert response.json() == {"message": "Failed to search stories, please try later"}


@pytest.mark.django_db
class TestCreateStoryAPI:

    def test_create(self, api_client, index):
        response = api_client.post(
            "/api/v1/story", {"title": "Park day", "body": "Kids at play"}, format="json",
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Story created successfully"
        assert str(Story.objects.get().pk) == data["id"]
        assert data["id"] in index

    def test_story_needs_text(self, api_client):
        response = api_client.post("/api/v1/story", {}, format="json")

        assert response.status_code == 400
        assert Story.objects.count() == 0

    def test_title_too_long(self, api_client):
        response = api_client.post("/api/v1/story", {"title": "x" * 501}, format="json")

        assert response.status_code == 400

    def test_embedding_failure_creates_nothing(self, api_client, embedder):
        embedder.fail = True

        response = api_client.post("/api/v1/story", {"title": "Park day"}, format="json")

        assert response.status_code == 500
        assert response.json() == {"message": "Failed to add, please try later"}
        assert Story.objects.count() == 0


@pytest.mark.django_db
class TestStoryDetailAPI:

    def test_get(self, api_client, park_story):
        response = api_client.get(f"/api/v1/story/{park_story.pk}")

        assert response.status_code == 200
        assert response.json()["title"] == park_story.title

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_malformed_id_is_forbidden(self, api_client, method):
        response = getattr(api_client, method)("/api/v1/story/12345", format="json")

        assert response.status_code == 403
        assert response.json() == {"message": "Incorrect story id"}

    @pytest.mark.parametrize("method", ["get", "put"])
    def test_unknown_story(self, api_client, method):
        response = getattr(api_client, method)(
            f"/api/v1/story/{uuid.uuid4()}", {"title": "New"}, format="json",
        )

        assert response.status_code == 404
        assert response.json() == {"message": "Story not found"}

    def test_update(self, api_client, park_story):
        response = api_client.put(
            f"/api/v1/story/{park_story.pk}", {"body": "Kids at the outdoor pool"}, format="json",
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Story updated successfully"}
        story = Story.objects.get(pk=park_story.pk)
        assert story.title == park_story.title
        assert story.body == "Kids at the outdoor pool"

    def test_update_embedding_failure(self, api_client, embedder, park_story):
        embedder.fail = True

        response = api_client.put(f"/api/v1/story/{park_story.pk}", {"title": "New"}, format="json")

        assert response.status_code == 500
        assert response.json() == {"message": "Failed to update story, please try later"}

    def test_delete_twice(self, api_client, index, park_story):
        url = f"/api/v1/story/{park_story.pk}"

        first = api_client.delete(url)
        second = api_client.delete(url)

        assert first.status_code == second.status_code == 200
        assert first.json() == {"message": "Story deleted successfully"}
        assert not Story.objects.exists()
        assert str(park_story.pk) not in index


class TestFallbacks:

    def test_unknown_path(self, client):
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.content == b"Not found"

    def test_health(self, api_client):
        response = api_client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
