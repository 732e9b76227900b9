"""Tests for streaming orchestration and answer translation."""

import pytest

from lingorag.models import Language
from lingorag.orchestrator import (
    TRANSLATING_SUFFIX,
    GenerationOrchestrator,
    StreamCompleted,
    StreamFailed,
    StreamProgress,
)

from conftest import FakeGenerator, FakeTranslator


async def collect(orchestrator, language=Language.ENGLISH, **kwargs):
    return [
        event
        async for event in orchestrator.stream_answer("prompt", language, **kwargs)
    ]


def terminal_events(events):
    return [e for e in events if isinstance(e, (StreamCompleted, StreamFailed))]


@pytest.mark.asyncio
async def test_english_answer_streams_growing_buffer():
    orchestrator = GenerationOrchestrator(FakeGenerator(("Sign", " up", ".")))

    events = await collect(orchestrator)

    assert events == [
        StreamProgress("Sign"),
        StreamProgress("Sign up"),
        StreamProgress("Sign up."),
        StreamCompleted(text="Sign up.", english_text="Sign up."),
    ]


@pytest.mark.asyncio
async def test_russian_answer_is_translated_after_generation():
    translator = FakeTranslator()
    orchestrator = GenerationOrchestrator(FakeGenerator(("Hi", " there")), translator)

    events = await collect(orchestrator, Language.RUSSIAN)

    assert events[-2] == StreamProgress(f"Hi there{TRANSLATING_SUFFIX}")
    assert events[-1] == StreamCompleted(
        text="[ru] Hi there", english_text="Hi there", translated=True
    )
    assert translator.from_english == ["Hi there"]


@pytest.mark.asyncio
async def test_progress_is_monotonic_until_terminal():
    orchestrator = GenerationOrchestrator(
        FakeGenerator(("a", "b", "c", "d")), FakeTranslator()
    )

    events = await collect(orchestrator, Language.RUSSIAN)
    progress = [e.text for e in events if isinstance(e, StreamProgress)]

    for earlier, later in zip(progress, progress[1:], strict=False):
        assert later.startswith(earlier)


@pytest.mark.asyncio
async def test_translation_failure_falls_back_to_english():
    orchestrator = GenerationOrchestrator(
        FakeGenerator(("Answer",)), FakeTranslator(fail_from_english=True)
    )

    events = await collect(orchestrator, Language.RUSSIAN)

    assert events[-1] == StreamCompleted(
        text="Answer", english_text="Answer", translated=False
    )


@pytest.mark.asyncio
async def test_translation_disabled_keeps_english():
    translator = FakeTranslator()
    orchestrator = GenerationOrchestrator(FakeGenerator(("Answer",)), translator)

    events = await collect(orchestrator, Language.RUSSIAN, translate=False)

    assert events[-1] == StreamCompleted(text="Answer", english_text="Answer")
    assert translator.from_english == []


@pytest.mark.asyncio
async def test_mid_stream_failure_emits_one_failure_and_stops():
    orchestrator = GenerationOrchestrator(
        FakeGenerator(("one", "two", "three"), fail_at=2, error_message="model crashed"),
        FakeTranslator(),
    )

    events = await collect(orchestrator, Language.RUSSIAN)

    assert events == [
        StreamProgress("one"),
        StreamProgress("onetwo"),
        StreamFailed("model crashed"),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("language", list(Language))
async def test_exactly_one_terminal_event(language):
    for generator in (FakeGenerator(), FakeGenerator(fail_at=0)):
        events = await collect(
            GenerationOrchestrator(generator, FakeTranslator()), language
        )

        assert len(terminal_events(events)) == 1
        assert events[-1] is terminal_events(events)[0]


@pytest.mark.asyncio
async def test_empty_answer_still_completes():
    events = await collect(GenerationOrchestrator(FakeGenerator(())))

    assert events == [StreamCompleted(text="", english_text="")]
