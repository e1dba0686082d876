"""
Exception hierarchy for the stories app.

Input errors are reported to the caller as client errors and never reach
storage. Downstream errors cover the embedding provider, the vector index
and the document store; the API reports them as a generic failure.
"""


class StoryError(Exception):
    """Base class for every error raised by the stories services."""


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------

class InvalidInput(StoryError):
    """Caller input is malformed. No retry, no partial effect."""


class InvalidQuery(InvalidInput):
    """Search query (or text to embed) is empty or otherwise unusable."""


class InvalidIdentifier(InvalidInput):
    """Story id is not a well-formed identifier."""


class InvalidStoryContent(InvalidInput):
    """Story has neither a title nor a body to embed."""


class StoryNotFound(StoryError):
    """No story exists with the given id."""


# ---------------------------------------------------------------------------
# Downstream failures
# ---------------------------------------------------------------------------

class DownstreamError(StoryError):
    """An external collaborator (embedding model, index, store) failed."""


class EmbeddingUnavailable(DownstreamError):
    """The embedding model call failed or timed out."""


class PersistenceError(DownstreamError):
    """A document store or vector index write/read failed."""


class DimensionMismatch(DownstreamError):
    """A vector's length differs from the index dimensionality.

    Always a bug signal (wrong model or misconfigured EMBEDDING_DIMENSIONS).
    """
