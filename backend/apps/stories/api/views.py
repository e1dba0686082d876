"""
API views for stories - CRUD and semantic search endpoints.
"""

import logging

from django.http import HttpResponseNotFound
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.stories.api.serializers import (
    SearchRequestSerializer,
    StorySearchResultSerializer,
    StorySerializer,
    StoryWriteSerializer,
)
from apps.stories.exceptions import (
    InvalidIdentifier,
    InvalidInput,
    StoryNotFound,
)
from apps.stories.services.container import get_story_services

logger = logging.getLogger(__name__)

INCORRECT_ID_MESSAGE = "Incorrect story id"
NOT_FOUND_MESSAGE = "Story not found"


def _message(text: str, status_code: int = status.HTTP_200_OK) -> Response:
    return Response({"message": text}, status=status_code)


def _first_error(errors) -> str:
    """Flatten serializer errors into a single readable message."""
    for field, messages in errors.items():
        if isinstance(messages, (list, tuple)) and messages:
            return f"{field}: {messages[0]}"
        return f"{field}: {messages}"
    return "Invalid request."


@api_view(["GET"])
@permission_classes([AllowAny])
def list_stories(request):
    """
    List every story, most recently created first.

    GET /api/v1/stories
    """
    try:
        stories = get_story_services().story_service().list_stories()
    except Exception:
        logger.exception("Error getting stories")
        return _message(
            "Failed to get stories, please try later",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return Response(StorySerializer(stories, many=True).data)


@api_view(["GET"])
@permission_classes([AllowAny])
def search_stories(request):
    """
    Semantic search over stories.

    GET /api/v1/search?q=<text>&k=<n>
    Returns the top-k stories (default 5) with their similarity score.
    """
    serializer = SearchRequestSerializer(data=request.query_params)
    if not serializer.is_valid():
        return _message(_first_error(serializer.errors), status.HTTP_400_BAD_REQUEST)

    query = serializer.validated_data["q"]
    k = serializer.validated_data.get("k")

    try:
        results = get_story_services().search_service().search(query, k=k)
    except InvalidInput as exc:
        return _message(str(exc), status.HTTP_400_BAD_REQUEST)
    except Exception:
        logger.exception("Story search failed")
        return _message(
            "Failed to search stories, please try later",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return Response(StorySearchResultSerializer(results, many=True).data)


@api_view(["POST"])
@permission_classes([AllowAny])
def create_story(request):
    """
    Create a story and index its embedding.

    POST /api/v1/story  {"title": "...", "body": "..."}
    """
    serializer = StoryWriteSerializer(data=request.data)
    if not serializer.is_valid():
        return _message(_first_error(serializer.errors), status.HTTP_400_BAD_REQUEST)

    try:
        story = get_story_services().story_service().create_story(
            title=serializer.validated_data.get("title"),
            body=serializer.validated_data.get("body"),
        )
    except InvalidInput as exc:
        return _message(str(exc), status.HTTP_400_BAD_REQUEST)
    except Exception:
        logger.exception("Error creating story")
        return _message(
            "Failed to add, please try later",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return Response({"message": "Story created successfully", "id": str(story.pk)})


class StoryDetailView(APIView):
    """GET / PUT / DELETE a single story.

    The id is validated before any storage call; a malformed id is a 403.
    """

    permission_classes = [AllowAny]

    def get(self, request, story_id):
        try:
            story = get_story_services().story_service().get_story(story_id)
        except InvalidIdentifier:
            return _message(INCORRECT_ID_MESSAGE, status.HTTP_403_FORBIDDEN)
        except StoryNotFound:
            return _message(NOT_FOUND_MESSAGE, status.HTTP_404_NOT_FOUND)
        except Exception:
            logger.exception("Error getting story %s", story_id)
            return _message(
                "Failed to get story, please try later",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return Response(StorySerializer(story).data)

    def put(self, request, story_id):
        serializer = StoryWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return _message(_first_error(serializer.errors), status.HTTP_400_BAD_REQUEST)

        try:
            get_story_services().story_service().update_story(
                story_id,
                title=serializer.validated_data.get("title"),
                body=serializer.validated_data.get("body"),
            )
        except InvalidIdentifier:
            return _message(INCORRECT_ID_MESSAGE, status.HTTP_403_FORBIDDEN)
        except StoryNotFound:
            return _message(NOT_FOUND_MESSAGE, status.HTTP_404_NOT_FOUND)
        except InvalidInput as exc:
            return _message(str(exc), status.HTTP_400_BAD_REQUEST)
        except Exception:
            logger.exception("Error updating story %s", story_id)
            return _message(
                "Failed to update story, please try later",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return _message("Story updated successfully")

    def delete(self, request, story_id):
        try:
            get_story_services().story_service().delete_story(story_id)
        except InvalidIdentifier:
            return _message(INCORRECT_ID_MESSAGE, status.HTTP_403_FORBIDDEN)
        except Exception:
            logger.exception("Error deleting story %s", story_id)
            return _message(
                "Failed to delete story, please try later",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return _message("Story deleted successfully")


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Simple health check endpoint for the story service."""
    return Response({"status": "healthy", "service": "stories", "version": "1.0"})


def not_found(request, exception=None):
    """Plain-text 404 for any unknown path."""
    return HttpResponseNotFound("Not found")
