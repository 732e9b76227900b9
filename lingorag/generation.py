"""Streaming answer generation over OpenAI-compatible chat endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from .config import config
from .exceptions import GenerationError
from .interfaces import Generator, ProgressCallback
from .models import GenerationChunk, ModelErrorType, ModelInitResult

logger = config.get_logger(__name__)

WARMUP_PROMPT = "Hi"


@dataclass(frozen=True)
class ModelBackend:
    """One place the chat model can be served from."""

    name: str
    model: str
    base_url: str | None = None


def default_backends() -> list[ModelBackend]:
    """Primary backend from config, plus a fallback when one is configured.

    Returns:
        Backends in the order they should be tried.
    """
    backends = [
        ModelBackend(
            name="primary", model=config.CHAT_MODEL, base_url=config.OPENAI_BASE_URL
        )
    ]
    if config.CHAT_FALLBACK_MODEL or config.CHAT_FALLBACK_BASE_URL:
        backends.append(
            ModelBackend(
                name="fallback",
                model=config.CHAT_FALLBACK_MODEL or config.CHAT_MODEL,
                base_url=config.CHAT_FALLBACK_BASE_URL or config.OPENAI_BASE_URL,
            )
        )
    return backends


def _noop_progress(stage: str, percent: int) -> None:  # noqa: ARG001
    return None


class OpenAIGenerator(Generator):
    """Generator that picks the first working backend and streams chat completions."""

    def __init__(
        self,
        backends: list[ModelBackend] | None = None,
        api_key: str | None = None,
        client_factory: Callable[[ModelBackend], AsyncOpenAI] | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            backends: Backends to try in order. Defaults to ``default_backends()``.
            api_key: API key; falls back to OPENAI_API_KEY.
            client_factory: Builds a client for a backend (overridable in tests).
        """
        self.backends = backends or default_backends()
        self.api_key = api_key or config.get_openai_api_key()
        self._client_factory = client_factory or self._create_client
        self._client: AsyncOpenAI | None = None
        self._backend: ModelBackend | None = None

    def _create_client(self, backend: ModelBackend) -> AsyncOpenAI:
        default_headers = config.get_api_headers()
        return AsyncOpenAI(
            api_key=self.api_key,
            base_url=backend.base_url,
            default_headers=default_headers or None,
        )

    @property
    def is_ready(self) -> bool:
        return self._client is not None

    @property
    def backend(self) -> ModelBackend | None:
        return self._backend

    async def initialize(
        self, progress: ProgressCallback | None = None
    ) -> ModelInitResult:
        """Select a backend and warm the model up.

        Returns:
            Success with the backend name, or a classified failure.
        """
        if self._backend is not None:
            return ModelInitResult.ok(self._backend.name)

        report = progress or _noop_progress
        logger.info("Starting model initialization")

        try:
            selected = await self._select_backend(report)
            if isinstance(selected, ModelInitResult):
                return selected
            backend, client = selected

            report("warmup", 90)
            try:
                await client.chat.completions.create(
                    model=backend.model,
                    messages=[{"role": "user", "content": WARMUP_PROMPT}],
                    max_tokens=1,
                )
            except openai.OpenAIError as exc:
                logger.exception("Warm-up request failed on %s backend", backend.name)
                return ModelInitResult.failure(
                    f"Model warm-up failed: {exc}", ModelErrorType.WARMUP_FAILED
                )

            self._client = client
            self._backend = backend
            report("ready", 100)
            logger.info("Model %s initialized on %s backend", backend.model, backend.name)
            return ModelInitResult.ok(backend.name)
        except Exception as exc:
            logger.exception("Model initialization failed")
            return ModelInitResult.failure(
                f"Critical model initialization error: {exc}",
                ModelErrorType.UNKNOWN_ERROR,
            )

    async def _select_backend(
        self, report: ProgressCallback
    ) -> tuple[ModelBackend, AsyncOpenAI] | ModelInitResult:
        failures: list[tuple[ModelBackend, openai.OpenAIError]] = []

        for position, backend in enumerate(self.backends):
            report(f"connecting:{backend.name}", position * 80 // len(self.backends))
            client = self._client_factory(backend)
            try:
                await client.models.retrieve(backend.model)
            except openai.OpenAIError as exc:
                logger.warning(
                    "%s backend failed for model %s: %s", backend.name, backend.model, exc
                )
                failures.append((backend, exc))
                continue
            logger.info("Using %s backend (%s)", backend.name, backend.model)
            return backend, client

        first_error = failures[0][1] if failures else None
        if failures and all(
            isinstance(exc, openai.NotFoundError) for _, exc in failures
        ):
            return ModelInitResult.failure(
                f"Model download failed: {first_error}", ModelErrorType.DOWNLOAD_FAILED
            )
        if len(failures) > 1:
            return ModelInitResult.failure(
                f"Both backends failed: {first_error}",
                ModelErrorType.BOTH_BACKENDS_FAILED,
            )
        return ModelInitResult.failure(
            f"Model backend failed: {first_error}",
            ModelErrorType.PRIMARY_BACKEND_FAILED,
        )

    async def stream_generate(self, prompt: str) -> AsyncIterator[GenerationChunk]:
        """Stream the completion for ``prompt`` as text deltas.

        Raises:
            GenerationError: If the model is not initialized or the request fails.
        """
        if self._client is None or self._backend is None:
            msg = "Model not initialized"
            raise GenerationError(msg)

        logger.debug("Prompt length: %d, preview: %s...", len(prompt), prompt[:200])
        try:
            stream = await self._client.chat.completions.create(
                model=self._backend.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=config.CHAT_MAX_TOKENS,
                temperature=config.CHAT_TEMPERATURE,
                top_p=config.CHAT_TOP_P,
                stream=True,
            )
            async for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    yield GenerationChunk(text=delta)
        except openai.OpenAIError as exc:
            logger.exception("Error in streaming response")
            raise GenerationError(str(exc)) from exc

        yield GenerationChunk(text="", is_final=True)
