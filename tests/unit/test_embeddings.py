"""
Tests for the embedding generators.

The SDK clients are replaced with mocks; no network or model download.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import numpy as np
import openai
import pytest

from retrieval.embeddings import OpenAIEmbeddingGenerator, SentenceTransformerEmbeddingGenerator
from retrieval.errors import EmbeddingServiceError


def _openai_response(vector):
    return SimpleNamespace(data=[SimpleNamespace(embedding=vector)])


@pytest.fixture
def openai_generator():
    generator = OpenAIEmbeddingGenerator(api_key="test-key", dimension=4)
    generator._client = MagicMock()
    generator._client.embeddings.create = AsyncMock(return_value=_openai_response([0.1, 0.2, 0.3, 0.4]))
    return generator


class TestOpenAIEmbeddingGenerator:
    """Tests for OpenAIEmbeddingGenerator."""

    async def test_embed(self, openai_generator):
        vector = await openai_generator.embed("Product: Linen Midi Dress")

        assert vector == [0.1, 0.2, 0.3, 0.4]
        openai_generator.client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-ada-002",
            input="Product: Linen Midi Dress",
        )

    async def test_empty_text_rejected(self, openai_generator):
        with pytest.raises(EmbeddingServiceError):
            await openai_generator.embed("   ")
        openai_generator.client.embeddings.create.assert_not_awaited()

    async def test_timeout_wrapped(self, openai_generator):
        """Test that SDK timeouts surface as EmbeddingServiceError."""
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        openai_generator.client.embeddings.create.side_effect = openai.APITimeoutError(request=request)

        with pytest.raises(EmbeddingServiceError) as exc_info:
            await openai_generator.embed("some text")

        assert isinstance(exc_info.value.__cause__, openai.APITimeoutError)

    async def test_api_error_wrapped(self, openai_generator):
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        openai_generator.client.embeddings.create.side_effect = openai.APIConnectionError(request=request)

        with pytest.raises(EmbeddingServiceError):
            await openai_generator.embed("some text")

    async def test_wrong_dimension_rejected(self, openai_generator):
        openai_generator.client.embeddings.create.return_value = _openai_response([0.1, 0.2])

        with pytest.raises(EmbeddingServiceError):
            await openai_generator.embed("some text")

    async def test_empty_response_rejected(self, openai_generator):
        openai_generator.client.embeddings.create.return_value = SimpleNamespace(data=[])

        with pytest.raises(EmbeddingServiceError):
            await openai_generator.embed("some text")


class TestSentenceTransformerEmbeddingGenerator:
    """Tests for SentenceTransformerEmbeddingGenerator."""

    def _generator(self, output):
        generator = SentenceTransformerEmbeddingGenerator(dimension=3)
        generator._model = MagicMock()
        generator._model.encode.return_value = output
        return generator

    async def test_embed_returns_python_floats(self):
        generator = self._generator(np.array([0.5, 0.25, 0.125], dtype=np.float32))

        vector = await generator.embed("Product: Tee")

        assert vector == [0.5, 0.25, 0.125]
        assert all(type(x) is float for x in vector)
        generator.model.encode.assert_called_once_with("Product: Tee", convert_to_numpy=True)

    async def test_model_failure_wrapped(self):
        generator = self._generator(None)
        generator.model.encode.side_effect = RuntimeError("CUDA out of memory")

        with pytest.raises(EmbeddingServiceError):
            await generator.embed("Product: Tee")

    async def test_wrong_dimension_rejected(self):
        generator = self._generator(np.zeros(5))

        with pytest.raises(EmbeddingServiceError):
            await generator.embed("Product: Tee")

    def test_model_is_lazy(self):
        """Test that constructing the generator does not load the model."""
        generator = SentenceTransformerEmbeddingGenerator()

        assert generator._model is None
        assert generator.dimension == 384
