"""Best-effort translation through an OpenAI-compatible chat model."""

from __future__ import annotations

from openai import AsyncOpenAI

from .config import config
from .interfaces import Translator
from .models import Language

logger = config.get_logger(__name__)


class OpenAITranslator(Translator):
    """Translates between English and the other supported languages.

    Every failure is logged and answered with the untranslated input, so the
    caller never has to handle translation errors.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        default_headers = config.get_api_headers()
        self.client = client or AsyncOpenAI(
            api_key=api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
        )
        self.model = model or config.TRANSLATION_MODEL
        self.is_ready = False

    async def initialize(self) -> bool:
        try:
            await self.client.models.retrieve(self.model)
        except Exception:
            logger.exception("Failed to initialize translator")
            self.is_ready = False
        else:
            self.is_ready = True
        logger.info("Translation model ready: %s", self.is_ready)
        return self.is_ready

    async def translate(self, text: str, source: Language, target: Language) -> str:
        """Translate ``text``; returns it unchanged when translation is unavailable."""
        if source is target or not text.strip():
            return text
        if not self.is_ready:
            logger.warning(
                "%s to %s translator not ready", source.english_name, target.english_name
            )
            return text

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": (
                            f"Translate the user's message from {source.english_name} "
                            f"to {target.english_name}. Keep URLs, numbers and line "
                            "breaks unchanged. Reply with the translation only."
                        ),
                    },
                    {"role": "user", "content": text},
                ],
                max_tokens=config.TRANSLATION_MAX_TOKENS,
                temperature=0.0,
            )
            translated = response.choices[0].message.content
        except Exception:
            logger.exception("Translation to %s failed", target.english_name)
            return text

        if not translated or not translated.strip():
            return text
        logger.debug("Translated to %s: %s...", target.english_name, translated[:50])
        return translated.strip()

    async def translate_to_english(self, text: str, language: Language) -> str:
        return await self.translate(text, language, Language.ENGLISH)

    async def translate_from_english(self, text: str, language: Language) -> str:
        return await self.translate(text, Language.ENGLISH, language)
