"""
Embedding providers for story text and search queries.

Backends controlled by settings.EMBEDDING_PROVIDER:
    - "openai"      - OpenAI embedding API (production)
    - "ollama"      - local Ollama server (OpenAI-compatible /v1 endpoint)
    - "huggingface" - local sentence-transformers (no server needed)

Every call is a fresh request: no caching, no internal retries. Retry
policy belongs to the caller (see tasks.reembed_stories).
"""

import abc
import logging
from typing import Sequence

from django.conf import settings

from apps.stories.exceptions import EmbeddingUnavailable, InvalidQuery

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 2048


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class BaseEmbeddingProvider(abc.ABC):
    """Interface that every embedding provider must implement."""

    @abc.abstractmethod
    def _embed(self, texts: list[str]) -> list[list[float]]:
        """Return one embedding vector per input text, in input order."""

    @abc.abstractmethod
    def provider_name(self) -> str:
        """Human-readable name for logging."""

    def close(self) -> None:
        """Release network resources held by the provider."""

    def embed(self, text: str) -> list[float]:
        """Embed a single non-empty text string."""
        if not text or not text.strip():
            raise InvalidQuery("Cannot embed empty text.")
        return self.embed_many([text])[0]

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Embed a batch of texts.

        Raises:
            InvalidQuery: If any text is empty or whitespace-only.
            EmbeddingUnavailable: If the provider fails or returns a
                malformed response.
        """
        if not texts:
            return []
        if any(not t or not t.strip() for t in texts):
            raise InvalidQuery("Cannot embed empty text.")

        logger.debug(
            "Generating embeddings with %s for %d texts",
            self.provider_name(), len(texts),
        )

        try:
            embeddings = self._embed(list(texts))
        except EmbeddingUnavailable:
            raise
        except Exception as exc:
            raise EmbeddingUnavailable(f"Embedding generation failed: {exc}") from exc

        if len(embeddings) != len(texts) or any(v is None for v in embeddings):
            raise EmbeddingUnavailable(
                f"Expected {len(texts)} embeddings from {self.provider_name()}, "
                f"got {sum(v is not None for v in embeddings)}"
            )

        return [[float(v) for v in vec] for vec in embeddings]


# ---------------------------------------------------------------------------
# OpenAI provider
# ---------------------------------------------------------------------------

class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """Generate embeddings via the OpenAI API."""

    def __init__(self, client=None):
        import openai

        self.model = getattr(settings, "EMBEDDING_MODEL", "text-embedding-3-small")
        self.dimensions = getattr(settings, "EMBEDDING_DIMENSIONS", 1536)

        if client is None:
            api_key = getattr(settings, "OPENAI_API_KEY", "")
            if not api_key:
                raise EmbeddingUnavailable(
                    "OPENAI_API_KEY is not configured. "
                    "Set the OPENAI_API_KEY environment variable."
                )
            client = openai.OpenAI(
                api_key=api_key,
                timeout=getattr(settings, "EMBEDDING_TIMEOUT_SECONDS", 10.0),
                max_retries=0,
            )
        self.client = client

    def provider_name(self) -> str:
        return f"openai ({self.model}, dim={self.dimensions})"

    def close(self) -> None:
        self.client.close()

    def _request_options(self) -> dict:
        # Only the text-embedding-3 family accepts a dimensions override.
        if self.model.startswith("text-embedding-3"):
            return {"dimensions": self.dimensions}
        return {}

    def _embed(self, texts: list[str]) -> list[list[float]]:
        import openai

        all_embeddings: list[list[float] | None] = [None] * len(texts)

        for batch_start in range(0, len(texts), MAX_BATCH_SIZE):
            batch = texts[batch_start: batch_start + MAX_BATCH_SIZE]

            try:
                response = self.client.embeddings.create(
                    input=batch,
                    model=self.model,
                    **self._request_options(),
                )
                for item in response.data:
                    all_embeddings[batch_start + item.index] = item.embedding
            except openai.APITimeoutError as exc:
                raise EmbeddingUnavailable(
                    f"OpenAI embedding request timed out: {exc}"
                ) from exc
            except openai.APIConnectionError as exc:
                raise EmbeddingUnavailable(
                    f"Cannot connect to OpenAI API: {exc}"
                ) from exc
            except openai.RateLimitError as exc:
                raise EmbeddingUnavailable(
                    f"OpenAI rate limit exceeded: {exc}"
                ) from exc
            except openai.APIError as exc:
                raise EmbeddingUnavailable(f"OpenAI API error: {exc}") from exc

        return all_embeddings


# ---------------------------------------------------------------------------
# Ollama provider (OpenAI-compatible endpoint)
# ---------------------------------------------------------------------------

class OllamaEmbeddingProvider(BaseEmbeddingProvider):
    """Generate embeddings via a local Ollama server.

    Ollama exposes an OpenAI-compatible API at ``/v1/``, so we reuse
    the ``openai`` Python client with a custom ``base_url``.
    """

    def __init__(self, client=None):
        import openai

        base_url = getattr(settings, "OLLAMA_BASE_URL", "http://localhost:11434")
        self._base_url = base_url.rstrip("/")
        self.model = getattr(settings, "OLLAMA_EMBEDDING_MODEL", "nomic-embed-text")

        if client is None:
            client = openai.OpenAI(
                base_url=f"{self._base_url}/v1",
                api_key="ollama",  # Ollama ignores the key but the client requires one
                timeout=getattr(settings, "EMBEDDING_TIMEOUT_SECONDS", 10.0),
                max_retries=0,
            )
        self.client = client

    def provider_name(self) -> str:
        return f"ollama ({self.model} @ {self._base_url})"

    def close(self) -> None:
        self.client.close()

    def _embed(self, texts: list[str]) -> list[list[float]]:
        import openai

        all_embeddings: list[list[float] | None] = [None] * len(texts)

        for batch_start in range(0, len(texts), MAX_BATCH_SIZE):
            batch = texts[batch_start: batch_start + MAX_BATCH_SIZE]

            try:
                response = self.client.embeddings.create(
                    input=batch,
                    model=self.model,
                )
                for item in response.data:
                    all_embeddings[batch_start + item.index] = item.embedding
            except openai.APIConnectionError as exc:
                raise EmbeddingUnavailable(
                    f"Cannot connect to Ollama at {self._base_url}. "
                    f"Is Ollama running? ('ollama serve'). Error: {exc}"
                ) from exc
            except openai.APIError as exc:
                raise EmbeddingUnavailable(f"Ollama API error: {exc}") from exc

        return all_embeddings


# ---------------------------------------------------------------------------
# Hugging Face provider (local, no server required)
# ---------------------------------------------------------------------------

class HuggingFaceEmbeddingProvider(BaseEmbeddingProvider):
    """Generate embeddings using sentence-transformers locally.

    Runs completely offline. The model is loaded once when the provider is
    built at startup and reused for every request.
    """

    def __init__(self):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise EmbeddingUnavailable(
                "sentence-transformers is required for the 'huggingface' provider. "
                "Install with: pip install 'story-search[huggingface]'"
            ) from exc

        self.model_name = getattr(
            settings,
            "HUGGINGFACE_EMBEDDING_MODEL",
            "sentence-transformers/all-MiniLM-L6-v2",
        )

        try:
            logger.info("Loading Hugging Face model: %s", self.model_name)
            self._model = SentenceTransformer(self.model_name)
        except Exception as exc:
            raise EmbeddingUnavailable(
                f"Failed to load model '{self.model_name}': {exc}"
            ) from exc

    def provider_name(self) -> str:
        return f"huggingface ({self.model_name})"

    def _embed(self, texts: list[str]) -> list[list[float]]:
        try:
            vectors = self._model.encode(
                texts,
                convert_to_tensor=False,
                show_progress_bar=len(texts) > 50,
                batch_size=32,
            )
            return [v.tolist() for v in vectors]
        except Exception as exc:
            raise EmbeddingUnavailable(
                f"HuggingFace embedding failed: {exc}"
            ) from exc


# ---------------------------------------------------------------------------
# Provider registry & factory
# ---------------------------------------------------------------------------

PROVIDERS = {
    "openai": OpenAIEmbeddingProvider,
    "ollama": OllamaEmbeddingProvider,
    "huggingface": HuggingFaceEmbeddingProvider,
}


def build_embedding_provider(name: str | None = None) -> BaseEmbeddingProvider:
    """Construct the configured embedding provider.

    Called once per process by StoryServices; callers hold the instance
    rather than looking it up globally.
    """
    name = name or getattr(settings, "EMBEDDING_PROVIDER", "openai")

    provider_cls = PROVIDERS.get(name)
    if provider_cls is None:
        raise EmbeddingUnavailable(
            f"Unknown EMBEDDING_PROVIDER '{name}'. "
            f"Choose from: {', '.join(PROVIDERS)}"
        )

    provider = provider_cls()
    logger.info("Initialized embedding provider: %s", provider.provider_name())
    return provider
