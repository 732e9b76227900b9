"""Events accepted by the conversation engine.

The first group is what a front end sends. The second group is posted by the
engine's own background tasks; each carries the run or request id it was
started with so results from a superseded task can be recognized and dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .initializer import InitReport
    from .models import InitPhase, Language, RetrievedContext


@dataclass(frozen=True)
class StartQuery:
    text: str


@dataclass(frozen=True)
class ChangeLanguage:
    language: Language


@dataclass(frozen=True)
class ClearHistory:
    pass


@dataclass(frozen=True)
class RetryInit:
    pass


@dataclass(frozen=True)
class DismissError:
    pass


@dataclass(frozen=True)
class InitPhaseChanged:
    run_id: int
    phase: InitPhase


@dataclass(frozen=True)
class InitProgress:
    run_id: int
    stage: str
    percent: int


@dataclass(frozen=True)
class InitFinished:
    run_id: int
    report: InitReport


@dataclass(frozen=True)
class GenerationProgress:
    request_id: int
    text: str


@dataclass(frozen=True)
class GenerationSucceeded:
    request_id: int
    text: str
    contexts: tuple[RetrievedContext, ...] = ()


@dataclass(frozen=True)
class GenerationFailed:
    request_id: int
    message: str


UserEvent = StartQuery | ChangeLanguage | ClearHistory | RetryInit | DismissError

Event = (
    UserEvent
    | InitPhaseChanged
    | InitProgress
    | InitFinished
    | GenerationProgress
    | GenerationSucceeded
    | GenerationFailed
)
