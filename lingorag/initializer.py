"""Start-up sequencing: knowledge base, then model, then translator."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .config import config
from .models import (
    ErrorCategory,
    ErrorNotice,
    InitPhase,
    ModelErrorType,
    ModelInitResult,
)

if TYPE_CHECKING:
    from .ingestion import KnowledgeBaseIngestor
    from .interfaces import Generator, ProgressCallback, Translator

logger = config.get_logger(__name__)

PhaseCallback = Callable[[InitPhase], None]

MODEL_ERROR_TITLES: dict[ModelErrorType, str] = {
    ModelErrorType.DOWNLOAD_FAILED: "AI model unavailable",
    ModelErrorType.PRIMARY_BACKEND_FAILED: "AI model backend failed",
    ModelErrorType.BOTH_BACKENDS_FAILED: "No AI model backend could start",
    ModelErrorType.WARMUP_FAILED: "AI model failed to warm up",
    ModelErrorType.UNKNOWN_ERROR: "AI model initialization error",
}

TRANSLATOR_UNAVAILABLE = (
    "Translation is unavailable. Answers will be shown in English only."
)


@dataclass(frozen=True)
class InitReport:
    """Where initialization ended and what became ready."""

    phase: InitPhase
    knowledge_base_ready: bool = False
    model_ready: bool = False
    translator_ready: bool = False
    model_backend: str | None = None
    error: ErrorNotice | None = None
    notice: str | None = None

    @property
    def ready(self) -> bool:
        return self.knowledge_base_ready and self.model_ready


def knowledge_base_error(message: str) -> ErrorNotice:
    return ErrorNotice(
        title="Knowledge base failed to load",
        message=message,
        category=ErrorCategory.KNOWLEDGE_BASE,
    )


def model_error(result: ModelInitResult) -> ErrorNotice:
    error_type = result.error_type or ModelErrorType.UNKNOWN_ERROR
    return ErrorNotice(
        title=MODEL_ERROR_TITLES[error_type],
        message=result.error_message or "Failed to load AI model",
        category=ErrorCategory.MODEL,
        error_type=error_type,
    )


def _noop_phase(phase: InitPhase) -> None:  # noqa: ARG001
    return None


class SystemInitializer:
    """Runs the start-up phases once; KB and model failures are fatal."""

    def __init__(
        self,
        ingestor: KnowledgeBaseIngestor,
        generator: Generator,
        translator: Translator | None = None,
        knowledge_base_path: Path | None = None,
        *,
        reingest: bool = True,
    ) -> None:
        """Initialize the sequencer.

        Args:
            ingestor: Loads the knowledge base into the document store and index.
            generator: Generative model to bring up.
            translator: Optional translator; failures only disable translation.
            knowledge_base_path: File to ingest. Defaults to config.KNOWLEDGE_BASE_PATH.
            reingest: Replace a stored copy of the knowledge base on every run.
                When false an existing copy is kept.
        """
        self.ingestor = ingestor
        self.generator = generator
        self.translator = translator
        self.knowledge_base_path = Path(
            knowledge_base_path or config.KNOWLEDGE_BASE_PATH
        )
        self.reingest = reingest
        self._ingest_task: asyncio.Task[int | None] | None = None

    async def run(
        self,
        on_phase: PhaseCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> InitReport:
        """Run every phase in order and report where it stopped.

        Never raises: failures are classified into the returned report.
        """
        notify = on_phase or _noop_phase

        notify(InitPhase.LOADING_KB)
        logger.info("Starting knowledge base initialization...")
        try:
            await self._load_knowledge_base()
        except Exception as exc:
            logger.exception("Knowledge base initialization failed")
            notify(InitPhase.KB_FAILED)
            return InitReport(
                phase=InitPhase.KB_FAILED, error=knowledge_base_error(str(exc))
            )

        notify(InitPhase.LOADING_MODEL)
        logger.info("Starting model initialization...")
        result = await self.generator.initialize(on_progress)
        if not result.success:
            logger.error(
                "Model initialization failed (%s): %s",
                result.error_type,
                result.error_message,
            )
            notify(InitPhase.MODEL_FAILED)
            return InitReport(
                phase=InitPhase.MODEL_FAILED,
                knowledge_base_ready=True,
                error=model_error(result),
            )

        notify(InitPhase.LOADING_TRANSLATOR)
        translator_ready = await self._initialize_translator()

        notify(InitPhase.READY)
        logger.info(
            "Final state - KB: True, model: True (%s), translator: %s",
            result.backend,
            translator_ready,
        )
        return InitReport(
            phase=InitPhase.READY,
            knowledge_base_ready=True,
            model_ready=True,
            translator_ready=translator_ready,
            model_backend=result.backend,
            notice=None if translator_ready else TRANSLATOR_UNAVAILABLE,
        )

    async def _load_knowledge_base(self) -> int | None:
        """Ingest the knowledge base, one load at a time.

        Cancelling a run does not stop the worker thread, so a later run waits
        for a still-running load before writing to the same stores.

        Returns:
            The new document id, or None when the stored copy was kept.
        """
        await self.wait_idle()
        task = asyncio.create_task(
            asyncio.to_thread(
                self.ingestor.ingest_if_needed,
                self.knowledge_base_path,
                force=self.reingest,
            ),
            name="knowledge-base-load",
        )
        self._ingest_task = task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done():
                self._ingest_task = None

    async def wait_idle(self) -> None:
        """Wait for a knowledge base load left running by a cancelled run."""
        task = self._ingest_task
        if task is None:
            return
        if not task.done():
            logger.info("Waiting for the previous knowledge base load to finish")
            await asyncio.wait([task])
        if not task.cancelled() and task.exception() is not None:
            logger.warning(
                "Abandoned knowledge base load failed: %s", task.exception()
            )
        self._ingest_task = None

    async def _initialize_translator(self) -> bool:
        if self.translator is None:
            return False
        try:
            return bool(await self.translator.initialize())
        except Exception:
            logger.exception("Translator initialization failed; English only")
            return False
