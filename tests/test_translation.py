"""Tests for the best-effort OpenAI translator."""

import httpx
import openai
import pytest

from lingorag.models import Language
from lingorag.translation import OpenAITranslator

from conftest import create_mock_async_client, create_mock_chat_response


@pytest.fixture
def translator_client():
    return create_mock_async_client()


@pytest.fixture
def translator(translator_client):
    return OpenAITranslator(
        api_key="test-key", model="translate-model", client=translator_client
    )


@pytest.mark.asyncio
async def test_initialize_marks_ready(translator, translator_client):
    assert await translator.initialize() is True
    assert translator.is_ready
    translator_client.models.retrieve.assert_awaited_once_with("translate-model")


@pytest.mark.asyncio
async def test_initialize_failure_is_reported_not_raised(translator, translator_client):
    translator_client.models.retrieve.side_effect = openai.APIConnectionError(
        request=httpx.Request("GET", "http://test.local")
    )

    assert await translator.initialize() is False
    assert not translator.is_ready


@pytest.mark.asyncio
async def test_translate_from_english(translator, translator_client):
    await translator.initialize()
    translator_client.chat.completions.create.return_value = create_mock_chat_response(
        "  Нажмите «Регистрация».  "
    )

    result = await translator.translate_from_english("Tap Sign Up.", Language.RUSSIAN)

    assert result == "Нажмите «Регистрация»."
    kwargs = translator_client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "translate-model"
    assert "from English to Russian" in kwargs["messages"][0]["content"]
    assert kwargs["messages"][1] == {"role": "user", "content": "Tap Sign Up."}


@pytest.mark.asyncio
async def test_translate_to_english(translator, translator_client):
    await translator.initialize()
    translator_client.chat.completions.create.return_value = create_mock_chat_response(
        "How do I sign up?"
    )

    result = await translator.translate_to_english(
        "Как зарегистрироваться?", Language.RUSSIAN
    )

    assert result == "How do I sign up?"
    kwargs = translator_client.chat.completions.create.await_args.kwargs
    assert "from Russian to English" in kwargs["messages"][0]["content"]


@pytest.mark.asyncio
async def test_translate_returns_input_when_not_ready(translator, translator_client):
    result = await translator.translate_from_english("Hello", Language.RUSSIAN)

    assert result == "Hello"
    translator_client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_same_language_and_blank_text_skip_the_model(translator, translator_client):
    await translator.initialize()

    assert await translator.translate_to_english("Hello", Language.ENGLISH) == "Hello"
    assert await translator.translate_from_english("   ", Language.RUSSIAN) == "   "
    translator_client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("outcome", [RuntimeError("timeout"), None, ""])
async def test_translate_falls_back_to_input(translator, translator_client, outcome):
    await translator.initialize()
    if isinstance(outcome, Exception):
        translator_client.chat.completions.create.side_effect = outcome
    else:
        translator_client.chat.completions.create.return_value = (
            create_mock_chat_response(outcome)
        )

    result = await translator.translate_from_english("Hello", Language.RUSSIAN)

    assert result == "Hello"
