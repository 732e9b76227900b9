"""Streaming answer orchestration with post-generation translation."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import config
from .models import Language

if TYPE_CHECKING:
    from .interfaces import Generator, Translator

logger = config.get_logger(__name__)

TRANSLATING_SUFFIX = "\n\n(translating...)"
UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


@dataclass(frozen=True)
class StreamProgress:
    """The full answer so far; each progress event extends the previous one."""

    text: str


@dataclass(frozen=True)
class StreamCompleted:
    text: str
    english_text: str
    translated: bool = False


@dataclass(frozen=True)
class StreamFailed:
    message: str


StreamEvent = StreamProgress | StreamCompleted | StreamFailed


class GenerationOrchestrator:
    """Drives one streaming generation and its optional translation.

    Every call to ``stream_answer`` ends with exactly one terminal event,
    ``StreamCompleted`` or ``StreamFailed``, and nothing follows it.
    """

    def __init__(
        self, generator: Generator, translator: Translator | None = None
    ) -> None:
        self.generator = generator
        self.translator = translator

    async def stream_answer(
        self,
        prompt: str,
        language: Language = Language.ENGLISH,
        *,
        translate: bool = True,
    ) -> AsyncIterator[StreamEvent]:
        buffer = ""
        try:
            async for chunk in self.generator.stream_generate(prompt):
                if chunk.text:
                    buffer += chunk.text
                    yield StreamProgress(buffer)
                if chunk.is_final:
                    break
            else:
                logger.warning("Generator stream ended without a final chunk")
        except Exception as exc:
            logger.exception("Error generating response")
            yield StreamFailed(str(exc) or UNKNOWN_ERROR_MESSAGE)
            return

        if not (
            translate and language.requires_translation and self.translator is not None
        ):
            yield StreamCompleted(text=buffer, english_text=buffer)
            return

        yield StreamProgress(f"{buffer}{TRANSLATING_SUFFIX}")
        try:
            translated = await self.translator.translate_from_english(buffer, language)
        except Exception:
            logger.exception(
                "Translation to %s failed, returning untranslated answer",
                language.english_name,
            )
            translated = buffer

        yield StreamCompleted(
            text=translated, english_text=buffer, translated=translated != buffer
        )
