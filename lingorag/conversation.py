"""The conversation engine: a single-writer actor over ``ChatState``."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, assert_never

from .config import config
from .events import (
    ChangeLanguage,
    ClearHistory,
    DismissError,
    Event,
    GenerationFailed,
    GenerationProgress,
    GenerationSucceeded,
    InitFinished,
    InitPhaseChanged,
    InitProgress,
    RetryInit,
    StartQuery,
)
from .initializer import InitReport
from .models import (
    ConversationMessage,
    ErrorCategory,
    ErrorNotice,
    InitPhase,
    Language,
    ModelErrorType,
)
from .orchestrator import StreamCompleted, StreamFailed, StreamProgress
from .state import ChatState, empty_histories

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .initializer import SystemInitializer
    from .interfaces import HistoryStore, Translator
    from .orchestrator import GenerationOrchestrator
    from .prompts import PromptBuilder
    from .retriever import Retriever

logger = config.get_logger(__name__)

NOT_READY_NOTICE = "Please wait for system initialization to complete"
EMPTY_QUERY_NOTICE = "Enter a query to execute"
BUSY_NOTICE = "Please wait for the current answer to finish"


@dataclass(frozen=True)
class _ActiveRequest:
    request_id: int
    language: Language


class ConversationEngine:
    """Owns the conversation state and serializes every change to it.

    Front ends call ``submit`` with one of the user events and watch the
    snapshots published to ``subscribe`` queues. Initialization and answer
    generation run as background tasks that only post events back; the
    state itself is only ever replaced from ``_handle``.
    """

    def __init__(
        self,
        retriever: Retriever,
        prompt_builder: PromptBuilder,
        orchestrator: GenerationOrchestrator,
        initializer: SystemInitializer,
        history_store: HistoryStore,
        *,
        translator: Translator | None = None,
        top_n: int | None = None,
        default_language: Language | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            retriever: Finds knowledge base context for each query.
            prompt_builder: Renders the generator prompt.
            orchestrator: Streams the answer and translates it back.
            initializer: Brings up the knowledge base, model and translator.
            history_store: Where per-language histories are persisted.
            translator: Used to translate non-English queries before retrieval.
                Defaults to the orchestrator's translator.
            top_n: Contexts requested per query. Defaults to config.RETRIEVAL_TOP_K.
            default_language: Language used when none was saved. Defaults to
                config.DEFAULT_LANGUAGE.
        """
        self.retriever = retriever
        self.prompt_builder = prompt_builder
        self.orchestrator = orchestrator
        self.initializer = initializer
        self.history_store = history_store
        self.translator = translator or orchestrator.translator
        self.top_n = config.RETRIEVAL_TOP_K if top_n is None else top_n
        self.default_language = default_language or Language.from_code(
            config.DEFAULT_LANGUAGE
        )

        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._subscribers: list[asyncio.Queue[ChatState]] = []
        self._state = ChatState(language=self.default_language)
        self._runner: asyncio.Task[None] | None = None
        self._init_task: asyncio.Task[None] | None = None
        self._generation_task: asyncio.Task[None] | None = None
        self._init_run = 0
        self._request_counter = 0
        self._active_request: _ActiveRequest | None = None

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def subscribe(self) -> asyncio.Queue[ChatState]:
        """Return a queue that receives the current snapshot and every later one."""
        queue: asyncio.Queue[ChatState] = asyncio.Queue()
        queue.put_nowait(self._state)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[ChatState]) -> None:
        with contextlib.suppress(ValueError):
            self._subscribers.remove(queue)

    def submit(self, event: Event) -> None:
        self._queue.put_nowait(event)

    async def start(self, *, initialize: bool = True) -> None:
        """Restore saved histories, start processing events and begin init."""
        if self.is_running:
            return
        self._restore_histories()
        self._runner = asyncio.create_task(self._run(), name="conversation-engine")
        if initialize:
            self.submit(RetryInit())

    async def stop(self) -> None:
        for task in (self._generation_task, self._init_task, self._runner):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        await self.initializer.wait_idle()
        self._runner = None
        logger.info("Conversation engine stopped")

    async def wait_for(
        self,
        predicate: Callable[[ChatState], bool],
        timeout: float | None = None,
    ) -> ChatState:
        """Wait until a published snapshot satisfies ``predicate`` and return it.

        Raises:
            TimeoutError: If ``timeout`` elapses first.
        """
        queue = self.subscribe()
        try:
            async with asyncio.timeout(timeout):
                while True:
                    snapshot = await queue.get()
                    if predicate(snapshot):
                        return snapshot
        finally:
            self.unsubscribe(queue)

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._handle(event)
            except Exception:
                logger.exception("Failed to handle %s", type(event).__name__)
            finally:
                self._queue.task_done()

    def _handle(self, event: Event) -> None:
        if isinstance(event, StartQuery):
            self._on_start_query(event)
        elif isinstance(event, ChangeLanguage):
            self._on_change_language(event)
        elif isinstance(event, ClearHistory):
            self._on_clear_history()
        elif isinstance(event, RetryInit):
            self._on_retry_init()
        elif isinstance(event, DismissError):
            self._publish(replace(self._state, error=None, notice=None))
        elif isinstance(event, InitPhaseChanged):
            if event.run_id == self._init_run:
                self._publish(replace(self._state, init_phase=event.phase))
        elif isinstance(event, InitProgress):
            if event.run_id == self._init_run:
                self._publish(
                    replace(
                        self._state,
                        init_stage=event.stage,
                        init_percent=event.percent,
                    )
                )
        elif isinstance(event, InitFinished):
            self._on_init_finished(event)
        elif isinstance(event, GenerationProgress):
            if self._is_current(event.request_id):
                self._publish(replace(self._state, response=event.text))
        elif isinstance(event, GenerationSucceeded):
            self._on_generation_succeeded(event)
        elif isinstance(event, GenerationFailed):
            self._on_generation_failed(event)
        else:
            assert_never(event)

    def _publish(self, state: ChatState) -> None:
        self._state = state
        for queue in self._subscribers:
            queue.put_nowait(state)

    def _is_current(self, request_id: int) -> bool:
        if self._active_request is None or self._active_request.request_id != request_id:
            logger.debug("Ignoring event from stale request %d", request_id)
            return False
        return True

    def _restore_histories(self) -> None:
        language = self.history_store.load_last_language() or self.default_language
        histories = empty_histories()
        state = replace(self._state, language=language, histories=histories)
        for lang in Language:
            state = replace(
                state,
                histories=state.with_history(lang, tuple(self.history_store.load(lang))),
            )
        self._publish(state)
        logger.info(
            "Restored %d messages, active language %s",
            len(state.messages),
            language.display_name,
        )

    def _on_start_query(self, event: StartQuery) -> None:
        state = self._state
        if not state.is_ready:
            self._publish(replace(state, notice=NOT_READY_NOTICE))
            return
        query = event.text.strip()
        if not query:
            self._publish(replace(state, notice=EMPTY_QUERY_NOTICE))
            return
        if state.is_generating:
            self._publish(replace(state, notice=BUSY_NOTICE))
            return

        language = state.language
        prior_history = state.messages
        user_message = ConversationMessage(content=query, is_from_user=True)
        histories = state.with_history(language, (*prior_history, user_message))
        self.history_store.save(language, list(histories[language]))

        self._request_counter += 1
        request = _ActiveRequest(self._request_counter, language)
        self._active_request = request
        self._publish(
            replace(
                state,
                histories=histories,
                question=query,
                response="",
                is_generating=True,
                retrieved_contexts=(),
                notice=None,
                last_error=None,
            )
        )
        logger.info("Processing query %d: %s", request.request_id, query)

        self._generation_task = asyncio.create_task(
            self._generate(request, query, prior_history, state.translator_ready),
            name=f"generation-{request.request_id}",
        )

    async def _generate(
        self,
        request: _ActiveRequest,
        query: str,
        history: Sequence[ConversationMessage],
        translate: bool,
    ) -> None:
        request_id = request.request_id
        try:
            english_query = query
            if (
                translate
                and request.language.requires_translation
                and self.translator is not None
            ):
                english_query = await self.translator.translate_to_english(
                    query, request.language
                )
                logger.info("Translated query: %s", english_query)

            joined_context, contexts = await self.retriever.retrieve(
                english_query, self.top_n
            )
            prompt = self.prompt_builder.build_prompt(
                english_query, joined_context, history
            )

            async for update in self.orchestrator.stream_answer(
                prompt, request.language, translate=translate
            ):
                if isinstance(update, StreamProgress):
                    self.submit(GenerationProgress(request_id, update.text))
                elif isinstance(update, StreamCompleted):
                    self.submit(
                        GenerationSucceeded(request_id, update.text, tuple(contexts))
                    )
                elif isinstance(update, StreamFailed):
                    self.submit(GenerationFailed(request_id, update.message))
                else:
                    assert_never(update)
        except Exception as exc:
            logger.exception("Error preparing response for query %d", request_id)
            self.submit(GenerationFailed(request_id, str(exc) or type(exc).__name__))

    def _on_generation_succeeded(self, event: GenerationSucceeded) -> None:
        if not self._is_current(event.request_id):
            return
        request = self._active_request
        self._active_request = None
        state = self._state
        answer = ConversationMessage(content=event.text, is_from_user=False)
        messages = (*state.histories[request.language], answer)
        self.history_store.save(request.language, list(messages))
        self._publish(
            replace(
                state,
                histories=state.with_history(request.language, messages),
                response=event.text,
                is_generating=False,
                retrieved_contexts=event.contexts,
            )
        )
        logger.info("Completed query %d (%d chars)", event.request_id, len(event.text))

    def _on_generation_failed(self, event: GenerationFailed) -> None:
        if not self._is_current(event.request_id):
            return
        self._active_request = None
        logger.error("Query %d failed: %s", event.request_id, event.message)
        self._publish(
            replace(
                self._state,
                question="",
                response="",
                is_generating=False,
                notice=f"Error generating response: {event.message}",
                last_error=event.message,
            )
        )

    def _cancel_generation(self) -> None:
        self._active_request = None
        if self._generation_task is not None and not self._generation_task.done():
            self._generation_task.cancel()
        self._generation_task = None

    def _on_change_language(self, event: ChangeLanguage) -> None:
        state = self._state
        target = event.language
        if target is state.language:
            return

        self._cancel_generation()
        self.history_store.save(state.language, list(state.messages))
        histories = state.with_history(target, tuple(self.history_store.load(target)))
        self.history_store.save_last_language(target)
        self._publish(
            replace(
                state,
                language=target,
                histories=histories,
                question="",
                response="",
                is_generating=False,
                retrieved_contexts=(),
                notice=None,
            )
        )
        logger.info(
            "Language changed from %s to %s",
            state.language.display_name,
            target.display_name,
        )

    def _on_clear_history(self) -> None:
        self._cancel_generation()
        self.history_store.clear()
        self._publish(
            replace(
                self._state,
                histories=empty_histories(),
                question="",
                response="",
                is_generating=False,
                retrieved_contexts=(),
                notice=None,
            )
        )
        logger.info("Conversation history cleared.")

    def _on_retry_init(self) -> None:
        self._cancel_generation()
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        self._init_run += 1
        run_id = self._init_run
        self._publish(
            replace(
                self._state,
                init_phase=InitPhase.NOT_STARTED,
                init_stage=None,
                init_percent=0,
                knowledge_base_ready=False,
                model_ready=False,
                translator_ready=False,
                model_backend=None,
                error=None,
                notice=None,
            )
        )
        self._init_task = asyncio.create_task(
            self._initialize(run_id), name=f"initialization-{run_id}"
        )

    async def _initialize(self, run_id: int) -> None:
        def on_phase(phase: InitPhase) -> None:
            self.submit(InitPhaseChanged(run_id, phase))

        def on_progress(stage: str, percent: int) -> None:
            self.submit(InitProgress(run_id, stage, percent))

        try:
            report = await self.initializer.run(on_phase, on_progress)
        except Exception as exc:
            logger.exception("Unexpected initialization failure")
            report = InitReport(
                phase=InitPhase.MODEL_FAILED,
                error=ErrorNotice(
                    title="Initialization failed",
                    message=str(exc) or type(exc).__name__,
                    category=ErrorCategory.MODEL,
                    error_type=ModelErrorType.UNKNOWN_ERROR,
                ),
            )
        self.submit(InitFinished(run_id, report))

    def _on_init_finished(self, event: InitFinished) -> None:
        if event.run_id != self._init_run:
            logger.debug("Ignoring result of superseded initialization %d", event.run_id)
            return
        report = event.report
        self._publish(
            replace(
                self._state,
                init_phase=report.phase,
                knowledge_base_ready=report.knowledge_base_ready,
                model_ready=report.model_ready,
                translator_ready=report.translator_ready,
                model_backend=report.model_backend,
                error=report.error,
                notice=report.notice,
            )
        )
