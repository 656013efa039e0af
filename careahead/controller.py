"""Progressive reveal controller: the generation state machine behind a view.

Each chart or card owns one controller. A controller runs at most one
generation at a time and pushes every state change to its listeners:

    idle -> busy -> done | error
    idle -> busy -> revealing -> done      (when reveal_steps > 0)

Requests made while busy or revealing are ignored. `restart` cancels a running
reveal first; the model call itself is never cancelled by a new request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Generic, TypeVar

from careahead.exceptions import GenerationError
from careahead.models import InsightSections
from careahead.parsing import parse_insight, parse_paragraph

T = TypeVar("T")

TextGenerator = Callable[[str], Awaitable[str]]


class GenerationStatus(str, Enum):
    IDLE = "idle"
    BUSY = "busy"
    REVEALING = "revealing"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class GenerationState(Generic[T]):
    status: GenerationStatus = GenerationStatus.IDLE
    result: T | None = None
    message: str = ""
    progress: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.status in (GenerationStatus.BUSY, GenerationStatus.REVEALING)


Listener = Callable[[GenerationState], None]


def describe_error(exc: Exception) -> str:
    """Short, user-presentable description of a generation failure."""
    if isinstance(exc, GenerationError):
        return str(exc)
    detail = str(exc).strip()
    return f"Could not generate insight: {detail}" if detail else "Could not generate insight."


class RevealController(Generic[T]):
    """Single-flight generation runner with an observable state."""

    def __init__(
        self,
        generate: TextGenerator,
        transform: Callable[[str], T],
        *,
        reveal_steps: int = 0,
        step_delay: float = 0.05,
    ) -> None:
        self._generate = generate
        self._transform = transform
        self.reveal_steps = max(0, reveal_steps)
        self.step_delay = step_delay
        self._state: GenerationState[T] = GenerationState()
        self._listeners: list[Listener] = []
        self._task: asyncio.Task | None = None
        self._dropped_task: asyncio.Task | None = None
        self._did_start = False
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> GenerationState[T]:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; it receives the current state immediately."""
        self._listeners.append(listener)
        listener(self._state)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: GenerationState[T]) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def start(self, prompt: str) -> bool:
        """Schedule a generation; returns False if one is already in flight."""
        if self._state.is_active:
            self.logger.debug("Ignoring generation request: controller is %s", self._state.status.value)
            return False
        self._did_start = True
        self._set_state(GenerationState(status=GenerationStatus.BUSY))
        self._task = asyncio.get_running_loop().create_task(self._run(prompt))
        return True

    def restart(self, prompt: str) -> bool:
        """Like `start`, but cancels a reveal in progress instead of ignoring."""
        if self._state.status is GenerationStatus.REVEALING:
            self._cancel_task()
            self._set_state(GenerationState())
        return self.start(prompt)

    def start_once(self, prompt: str) -> bool:
        """Start only if this controller has never started before."""
        if self._did_start:
            return False
        return self.start(prompt)

    def cancel(self) -> None:
        """Drop any in-flight work and return to idle."""
        if self._state.is_active:
            self._cancel_task()
            self._set_state(GenerationState())

    async def generate(self, prompt: str) -> GenerationState[T]:
        """Start a generation and wait for it to settle."""
        self.start(prompt)
        await self.wait()
        return self._state

    async def generate_once(self, prompt: str) -> GenerationState[T]:
        self.start_once(prompt)
        await self.wait()
        return self._state

    async def wait(self) -> None:
        """Wait for the current task, if any.

        A task dropped by `cancel` or `restart` is not an error; cancelling the
        caller still propagates.
        """
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if task is not self._dropped_task or not task.cancelled():
                raise

    def _cancel_task(self) -> None:
        # The cancelled task stays referenced so `wait` can reap it
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self._dropped_task = self._task

    # ------------------------------------------------------------------
    # Task body
    # ------------------------------------------------------------------

    async def _run(self, prompt: str) -> None:
        try:
            await self._generate_and_reveal(prompt)
        except asyncio.CancelledError:
            # Cancelled from outside (e.g. a timeout around `generate`)
            if self._task is asyncio.current_task() and self._state.is_active:
                self.logger.info("Generation cancelled")
                self._set_state(GenerationState())
            raise

    async def _generate_and_reveal(self, prompt: str) -> None:
        try:
            text = await self._generate(prompt)
        except Exception as e:  # noqa: BLE001 - any client failure is terminal
            self.logger.error("Generation failed: %s", e)
            self._set_state(GenerationState(status=GenerationStatus.ERROR, message=describe_error(e)))
            return

        result = self._transform(text)
        if self.reveal_steps:
            state = GenerationState(status=GenerationStatus.REVEALING, result=result)
            self._set_state(state)
            for step in range(1, self.reveal_steps + 1):
                await asyncio.sleep(self.step_delay)
                state = replace(state, progress=step / self.reveal_steps)
                self._set_state(state)

        self._set_state(GenerationState(status=GenerationStatus.DONE, result=result, progress=1.0))


def insight_controller(generate: TextGenerator, **kwargs) -> RevealController[InsightSections]:
    """Controller for the structured insight cards."""
    return RevealController(generate, parse_insight, **kwargs)


def paragraph_controller(generate: TextGenerator, **kwargs) -> RevealController[str]:
    """Controller for a free-form trend paragraph."""
    return RevealController(generate, parse_paragraph, **kwargs)
