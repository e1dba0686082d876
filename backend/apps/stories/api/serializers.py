"""
DRF serializers for the stories API.
"""

from rest_framework import serializers

from apps.stories.models import Story


class StorySerializer(serializers.ModelSerializer):
    """Read-only story representation. The embedding is never exposed."""

    createdOn = serializers.DateTimeField(source="created_on", read_only=True)

    class Meta:
        model = Story
        fields = ["id", "title", "body", "createdOn"]
        read_only_fields = fields


class StorySearchResultSerializer(serializers.Serializer):
    """A search hit: story fields plus the similarity score."""

    id = serializers.UUIDField(read_only=True)
    title = serializers.CharField(read_only=True)
    body = serializers.CharField(read_only=True)
    createdOn = serializers.DateTimeField(source="created_on", read_only=True)
    score = serializers.FloatField(read_only=True)


class StoryWriteSerializer(serializers.Serializer):
    """Create/update payload. Both fields are optional."""

    title = serializers.CharField(
        max_length=500, required=False, allow_blank=True, allow_null=True,
    )
    body = serializers.CharField(
        required=False, allow_blank=True, allow_null=True,
    )


class SearchRequestSerializer(serializers.Serializer):
    """Query-string parameters for GET /api/v1/search."""

    q = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        trim_whitespace=False,
        help_text="Search query text",
    )
    k = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Number of results to return",
    )
