"""Tests for EmbeddingService class."""

import os
from unittest.mock import Mock, patch

import numpy as np
import pytest

from lingorag.config import config
from lingorag.embeddings import EmbeddingService

from conftest import TestConstants


def create_mock_embeddings_response(embeddings: list[list[float]]) -> Mock:
    mock_response = Mock()
    mock_response.data = [
        Mock(embedding=emb, index=position) for position, emb in enumerate(embeddings)
    ]
    return mock_response


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch the OpenAI embeddings endpoint."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def embedding_service():
    return EmbeddingService(api_key=TestConstants.TEST_API_KEY, batch_size=2)


def test_init_with_api_key(embedding_service) -> None:
    assert embedding_service.client.api_key == "test-key"
    assert embedding_service.model == config.EMBEDDING_MODEL


def test_init_with_env_api_key() -> None:
    with patch.dict(os.environ, {"OPENAI_API_KEY": "env-key"}):
        service = EmbeddingService(model="text-embedding-3-small")

    assert service.model == "text-embedding-3-small"
    assert service.client.api_key == "env-key"


def test_encode_success(openai_embeddings_api_mock, embedding_service) -> None:
    openai_embeddings_api_mock.return_value = create_mock_embeddings_response(
        [[0.1, 0.2, 0.3]]
    )

    result = embedding_service.encode("test text")

    openai_embeddings_api_mock.assert_called_once_with(
        model=config.EMBEDDING_MODEL,
        input="test text",
    )
    assert result.dtype == np.float32
    np.testing.assert_allclose(result, [0.1, 0.2, 0.3], rtol=1e-6)


def test_encode_api_error(openai_embeddings_api_mock, embedding_service) -> None:
    openai_embeddings_api_mock.side_effect = Exception("API Error")

    with pytest.raises(Exception, match="API Error"):
        embedding_service.encode("test text")


def test_encode_batch_splits_requests(
    openai_embeddings_api_mock, embedding_service
) -> None:
    openai_embeddings_api_mock.side_effect = [
        create_mock_embeddings_response([[0.1, 0.2], [0.3, 0.4]]),
        create_mock_embeddings_response([[0.5, 0.6]]),
    ]

    results = embedding_service.encode_batch(["text1", "text2", "text3"])

    assert openai_embeddings_api_mock.call_count == 2
    openai_embeddings_api_mock.assert_any_call(
        model=config.EMBEDDING_MODEL, input=["text1", "text2"]
    )
    openai_embeddings_api_mock.assert_any_call(
        model=config.EMBEDDING_MODEL, input=["text3"]
    )
    assert len(results) == 3
    np.testing.assert_allclose(results[2], [0.5, 0.6], rtol=1e-6)


def test_encode_batch_propagates_partial_failure(
    openai_embeddings_api_mock, embedding_service
) -> None:
    openai_embeddings_api_mock.side_effect = [
        create_mock_embeddings_response([[0.1, 0.2], [0.3, 0.4]]),
        Exception("Second batch failed"),
    ]

    with pytest.raises(Exception, match="Second batch failed"):
        embedding_service.encode_batch(["a", "b", "c"])


def test_encode_batch_empty_input(openai_embeddings_api_mock, embedding_service):
    assert embedding_service.encode_batch([]) == []
    openai_embeddings_api_mock.assert_not_called()


def test_invalid_batch_size() -> None:
    with pytest.raises(ValueError, match="batch_size must be positive"):
        EmbeddingService(api_key=TestConstants.TEST_API_KEY, batch_size=0)


def test_blank_text_is_rejected_before_request(
    openai_embeddings_api_mock, embedding_service
) -> None:
    with pytest.raises(ValueError, match="position 1"):
        embedding_service.encode_batch(["text", "   "])

    openai_embeddings_api_mock.assert_not_called()


def test_encode_batch_restores_response_order(
    openai_embeddings_api_mock, embedding_service
) -> None:
    response = Mock()
    response.data = [
        Mock(embedding=[0.3, 0.4], index=1),
        Mock(embedding=[0.1, 0.2], index=0),
    ]
    openai_embeddings_api_mock.return_value = response

    first, second = embedding_service.encode_batch(["first", "second"])

    np.testing.assert_allclose(first, [0.1, 0.2], rtol=1e-6)
    np.testing.assert_allclose(second, [0.3, 0.4], rtol=1e-6)


def test_dimension_is_fixed_by_first_response(
    openai_embeddings_api_mock, embedding_service
) -> None:
    openai_embeddings_api_mock.side_effect = [
        create_mock_embeddings_response([[0.1, 0.2, 0.3]]),
        create_mock_embeddings_response([[0.1, 0.2]]),
    ]

    embedding_service.encode("first")
    assert embedding_service.dimension == 3

    with pytest.raises(ValueError, match="does not match"):
        embedding_service.encode("second")


def test_short_response_is_rejected(
    openai_embeddings_api_mock, embedding_service
) -> None:
    openai_embeddings_api_mock.return_value = create_mock_embeddings_response(
        [[0.1, 0.2]]
    )

    with pytest.raises(ValueError, match="1 vectors for 2 texts"):
        embedding_service.encode_batch(["a", "b"])
