from types import SimpleNamespace

import httpx
import openai
import pytest

from apps.stories.exceptions import EmbeddingUnavailable, InvalidQuery
from apps.stories.services.embeddings import (
    OllamaEmbeddingProvider,
    OpenAIEmbeddingProvider,
    build_embedding_provider,
)

from .fakes import KeywordEmbedder

OPENAI_URL = "https://api.openai.com/v1/embeddings"


def _response(*vectors, order=None):
    order = order if order is not None else range(len(vectors))
    return SimpleNamespace(
        data=[SimpleNamespace(index=i, embedding=vectors[i]) for i in order]
    )


@pytest.fixture
def client(mocker):
    return mocker.Mock()


class TestBaseEmbeddingProvider:
    """Validation shared by every provider"""

    def test_empty_text_is_rejected_before_the_model_is_called(self):
        embedder = KeywordEmbedder()

        with pytest.raises(InvalidQuery):
            embedder.embed("   ")

        assert embedder.calls == []

    def test_embed_returns_floats(self):
        vector = KeywordEmbedder().embed("kids in the park")

        assert len(vector) == 8
        assert all(isinstance(v, float) for v in vector)

    def test_embed_many_of_nothing_makes_no_call(self):
        embedder = KeywordEmbedder()

        assert embedder.embed_many([]) == []
        assert embedder.calls == []

    def test_unexpected_provider_errors_become_embedding_unavailable(self, mocker):
        embedder = KeywordEmbedder()
        mocker.patch.object(embedder, "_embed", side_effect=RuntimeError("boom"))

        with pytest.raises(EmbeddingUnavailable, match="boom"):
            embedder.embed("park")

    def test_short_response_is_an_error(self, mocker):
        embedder = KeywordEmbedder()
        mocker.patch.object(embedder, "_embed", return_value=[[1.0] * 8])

        with pytest.raises(EmbeddingUnavailable):
            embedder.embed_many(["park", "report"])


class TestOpenAIEmbeddingProvider:
    """OpenAI client wiring and error mapping"""

    def test_missing_api_key(self, settings):
        settings.OPENAI_API_KEY = ""

        with pytest.raises(EmbeddingUnavailable, match="OPENAI_API_KEY"):
            OpenAIEmbeddingProvider()

    def test_client_is_built_with_timeout_and_no_retries(self, settings, mocker):
        settings.OPENAI_API_KEY = "sk-test"
        settings.EMBEDDING_TIMEOUT_SECONDS = 3.5
        client_cls = mocker.patch("openai.OpenAI")

        OpenAIEmbeddingProvider()

        client_cls.assert_called_once_with(api_key="sk-test", timeout=3.5, max_retries=0)

    def test_vectors_follow_input_order(self, settings, client):
        settings.EMBEDDING_MODEL = "text-embedding-3-small"
        settings.EMBEDDING_DIMENSIONS = 2
        client.embeddings.create.return_value = _response(
            [0.1, 0.2], [0.3, 0.4], order=[1, 0]
        )

        vectors = OpenAIEmbeddingProvider(client=client).embed_many(["first", "second"])

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        client.embeddings.create.assert_called_once_with(
            input=["first", "second"], model="text-embedding-3-small", dimensions=2,
        )

    def test_dimensions_not_sent_to_older_models(self, settings, client):
        settings.EMBEDDING_MODEL = "text-embedding-ada-002"
        client.embeddings.create.return_value = _response([0.5, 0.5])

        OpenAIEmbeddingProvider(client=client).embed("story")

        client.embeddings.create.assert_called_once_with(
            input=["story"], model="text-embedding-ada-002",
        )

    @pytest.mark.parametrize("error", [
        openai.APIConnectionError(request=httpx.Request("POST", OPENAI_URL)),
        openai.APITimeoutError(request=httpx.Request("POST", OPENAI_URL)),
    ])
    def test_transport_errors(self, client, error):
        client.embeddings.create.side_effect = error

        with pytest.raises(EmbeddingUnavailable):
            OpenAIEmbeddingProvider(client=client).embed("story")

    def test_close_closes_the_client(self, client):
        OpenAIEmbeddingProvider(client=client).close()

        client.close.assert_called_once_with()


class TestOllamaEmbeddingProvider:
    """Ollama through the OpenAI-compatible endpoint"""

    def test_no_dimensions_override(self, settings, client):
        settings.OLLAMA_EMBEDDING_MODEL = "nomic-embed-text"
        client.embeddings.create.return_value = _response([1.0, 0.0])

        vector = OllamaEmbeddingProvider(client=client).embed("story")

        assert vector == [1.0, 0.0]
        client.embeddings.create.assert_called_once_with(
            input=["story"], model="nomic-embed-text",
        )

    def test_connection_error_mentions_the_server(self, settings, client):
        settings.OLLAMA_BASE_URL = "http://ollama:11434/"
        client.embeddings.create.side_effect = openai.APIConnectionError(
            request=httpx.Request("POST", "http://ollama:11434/v1/embeddings"),
        )

        with pytest.raises(EmbeddingUnavailable, match="http://ollama:11434"):
            OllamaEmbeddingProvider(client=client).embed("story")


class TestBuildEmbeddingProvider:

    def test_unknown_provider(self):
        with pytest.raises(EmbeddingUnavailable, match="Unknown EMBEDDING_PROVIDER"):
            build_embedding_provider("word2vec")

    def test_ollama_from_settings(self, settings):
        settings.EMBEDDING_PROVIDER = "ollama"

        provider = build_embedding_provider()

        assert isinstance(provider, OllamaEmbeddingProvider)
        provider.close()
