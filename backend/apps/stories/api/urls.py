"""
URL patterns for the stories API (mounted at api/v1/).

Story ids are matched as plain strings so a malformed id reaches the view
and is rejected with 403 instead of falling through to a 404.
"""

from django.urls import path

from .views import (
    StoryDetailView,
    create_story,
    health_check,
    list_stories,
    search_stories,
)

app_name = "stories"

urlpatterns = [
    path("stories", list_stories, name="story-list"),
    path("search", search_stories, name="story-search"),
    path("story", create_story, name="story-create"),
    path("story/<str:story_id>", StoryDetailView.as_view(), name="story-detail"),
    path("health", health_check, name="health"),
]
