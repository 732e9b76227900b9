"""Command-line entry point for chatting with the LingoRAG knowledge base."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from lingorag.config import config
from lingorag.conversation import ConversationEngine
from lingorag.embeddings import EmbeddingService
from lingorag.events import ChangeLanguage, ClearHistory, RetryInit, StartQuery
from lingorag.generation import OpenAIGenerator
from lingorag.history import InMemoryHistoryStore
from lingorag.ingestion import KnowledgeBaseIngestor
from lingorag.initializer import SystemInitializer
from lingorag.models import InitPhase, Language
from lingorag.orchestrator import GenerationOrchestrator
from lingorag.prompts import PromptBuilder
from lingorag.retriever import Retriever
from lingorag.translation import OpenAITranslator
from lingorag.vector_store import BACKENDS, get_vector_store

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

    from lingorag.state import ChatState

HELP_TEXT = "Commands: /lang <en|ru>, /clear, /retry, /quit"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Chat with a local knowledge base in English or Russian.",
    )
    parser.add_argument(
        "--knowledge-base",
        type=Path,
        default=config.KNOWLEDGE_BASE_PATH,
        help="Knowledge base file to ingest (default: %(default)s).",
    )
    parser.add_argument(
        "--store",
        choices=BACKENDS,
        default=config.VECTOR_BACKEND,
        help="Vector store backend (default: %(default)s).",
    )
    parser.add_argument(
        "--language",
        choices=[language.code for language in Language],
        default=None,
        help="Start in this language instead of the last one used.",
    )
    parser.add_argument(
        "--keep-index",
        dest="reingest",
        action="store_false",
        help="Reuse a previously ingested knowledge base instead of re-ingesting.",
    )
    parser.set_defaults(reingest=True)
    return parser.parse_args(argv)


def build_engine(args: argparse.Namespace) -> ConversationEngine:
    """Wire the production collaborators into a conversation engine."""  # noqa: DOC201
    store = get_vector_store(args.store)
    embedder = EmbeddingService()
    translator = OpenAITranslator()
    generator = OpenAIGenerator()

    ingestor = KnowledgeBaseIngestor(documents=store, index=store, embedder=embedder)
    initializer = SystemInitializer(
        ingestor,
        generator,
        translator,
        knowledge_base_path=args.knowledge_base,
        reingest=args.reingest,
    )
    return ConversationEngine(
        retriever=Retriever(embedder, store),
        prompt_builder=PromptBuilder(),
        orchestrator=GenerationOrchestrator(generator, translator),
        initializer=initializer,
        history_store=InMemoryHistoryStore(),
    )


def print_stream(previous: str, current: str) -> None:
    if current.startswith(previous):
        print(current[len(previous) :], end="", flush=True)
    else:
        print(f"\n{current}", end="", flush=True)


async def wait_for_answer(queue: asyncio.Queue) -> ChatState:
    printed = ""
    while True:
        state: ChatState = await queue.get()
        if state.is_generating:
            print_stream(printed, state.response)
            printed = state.response
            continue
        if state.response and state.notice is None:
            print_stream(printed, state.response)
        print()
        return state


async def wait_for_init(engine: ConversationEngine, logger: Logger) -> ChatState:
    state = await engine.wait_for(lambda s: s.init_phase.is_terminal)
    if state.error is not None:
        logger.error("%s: %s", state.error.title, state.error.message)
    if state.notice:
        print(state.notice)
    return state


async def chat_loop(engine: ConversationEngine, logger: Logger) -> int:
    await wait_for_init(engine, logger)
    print(HELP_TEXT)

    while True:
        prompt = f"[{engine.state.language.code}] > "
        try:
            line = await asyncio.to_thread(input, prompt)
        except EOFError:
            return 0
        line = line.strip()
        if not line:
            continue

        if line == "/quit":
            return 0
        if line == "/clear":
            engine.submit(ClearHistory())
            continue
        if line == "/retry":
            engine.submit(RetryInit())
            await engine.wait_for(lambda s: s.init_phase is InitPhase.NOT_STARTED)
            await wait_for_init(engine, logger)
            continue
        if line.startswith("/lang"):
            _, _, code = line.partition(" ")
            try:
                engine.submit(ChangeLanguage(Language.from_code(code)))
            except ValueError as exc:
                print(exc)
            continue

        if not engine.state.is_ready:
            print("System is not ready. Use /retry or /quit.")
            continue

        queue = engine.subscribe()
        try:
            engine.submit(StartQuery(line))
            # Skip the snapshot taken before the query was accepted.
            await queue.get()
            result = await wait_for_answer(queue)
        finally:
            engine.unsubscribe(queue)
        if result.notice:
            print(result.notice)
        for context in result.retrieved_contexts:
            logger.debug("Context from %s: %s...", context.source, context.context[:80])


async def run(args: argparse.Namespace, logger: Logger) -> int:
    engine = build_engine(args)
    await engine.start()
    if args.language:
        engine.submit(ChangeLanguage(Language.from_code(args.language)))
    try:
        return await chat_loop(engine, logger)
    finally:
        await engine.stop()


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and start the interactive chat."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    if not args.knowledge_base.exists():
        logger.error("Knowledge base not found: %s", args.knowledge_base)
        return 1

    logger.info("Starting LingoRAG with %s store", args.store)
    try:
        return asyncio.run(run(args, logger))
    except KeyboardInterrupt:
        logger.info("LingoRAG stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
