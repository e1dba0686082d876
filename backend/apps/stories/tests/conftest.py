import pytest
from django.apps import apps
from rest_framework.test import APIClient

from apps.stories.services.container import StoryServices

from .fakes import VOCABULARY, FlakyVectorIndex, KeywordEmbedder


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def index():
    return FlakyVectorIndex(dimensions=len(VOCABULARY))


@pytest.fixture(autouse=True)
def services(embedder, index):
    """Swap the app's service container for one built on offline fakes."""
    config = apps.get_app_config("stories")
    original = config.services
    config.services = StoryServices(embedder=embedder, index=index)
    yield config.services
    config.services = original


@pytest.fixture
def story_service(services):
    return services.story_service()


@pytest.fixture
def search_service(services):
    return services.search_service()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def park_story(story_service):
    return story_service.create_story(
        title="Children playing in the park",
        body="A group of kids played tag in the park, enjoying the outdoor sunshine.",
    )


@pytest.fixture
def finance_story(story_service):
    return story_service.create_story(
        title="Quarterly financial report",
        body="Revenue grew this quarter according to the finance report.",
    )
