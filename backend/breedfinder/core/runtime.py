"""Runtime — dispatch/update loop with composable deferred effects.

Invariants:
    - One transition at a time: dispatches issued while a transition runs
      (from an effect, a subscriber or another thread) are queued FIFO and
      drained by the dispatcher already in progress
    - update returning the SAME state object (`is`) is a no-op transition:
      state kept, effects still run once each in order, subscribers NOT notified
    - Otherwise: state replaced, effects run in order, then subscribers
      registered at the start of the round are notified once, in order
    - The Program never fails: exceptions from effects, subscribers and
      spawned tasks are logged and swallowed at this boundary
    - Async effect work always runs on the context's event loop: coroutines
      spawned from another thread (or before any loop runs) are handed over
      to the loop and started there, never dropped

Design Decisions:
    - Effect is a plain callable (dispatch, context) -> None: composable with
      map_effect, trivially faked in tests
    - Capabilities (notifier, task spawning, feature env) are passed in an
      explicit EffectContext instead of module-level singletons
    - Async work runs as asyncio tasks tracked by the context; wait_idle()
      gives hosts and tests a structured join point
"""

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Callable, Coroutine, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

A = TypeVar("A")
B = TypeVar("B")
S = TypeVar("S")
F = TypeVar("F")

Dispatch = Callable[[A], None]


class Notifier(Protocol):
    """Fire-and-forget notification capability."""

    def notify(self, severity: str, message: str) -> None: ...


class _SilentNotifier:
    def notify(self, severity: str, message: str) -> None:
        logger.info("Notification dropped (no notifier)",
            extra={"severity": severity})


@dataclass
class EffectContext:
    """Capabilities available to every effect run by a Program."""

    notifier: Notifier = field(default_factory=_SilentNotifier)
    env: Any = None
    loop: asyncio.AbstractEventLoop | None = field(default=None, repr=False)
    _tasks: set[asyncio.Task] = field(default_factory=set, repr=False)
    _handoff: list[Coroutine] = field(default_factory=list, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.loop is None:
            self.loop = _running_loop()

    def spawn(self, coro: Coroutine) -> None:
        """Run `coro` as a tracked task on the context's loop.

        Off the loop thread, or before any loop runs, the coroutine is queued
        and the loop starts it (immediately if it is running, otherwise on the
        next wait_idle()).
        """
        running = _running_loop()
        if running is not None and (self.loop is None or self.loop.is_closed()):
            self.loop = running
        if running is not None and running is self.loop:
            self._start(coro)
            return
        with self._lock:
            self._handoff.append(coro)
        if self.loop is not None and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._start_handoff)

    def cancel(self) -> None:
        """Cancel every tracked task (hosts call this on shutdown)."""
        for task in list(self._tasks):
            task.cancel()

    def _start(self, coro: Coroutine) -> None:
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _start_handoff(self) -> None:
        with self._lock:
            coros, self._handoff = self._handoff, []
        for coro in coros:
            self._start(coro)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Effect task failed: %s", exc, exc_info=exc)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._tasks) + len(self._handoff)

    async def wait_idle(self) -> None:
        """Wait for every spawned task, including tasks spawned meanwhile."""
        running = asyncio.get_running_loop()
        if self.loop is None or self.loop.is_closed():
            self.loop = running
        while True:
            self._start_handoff()
            if not self._tasks:
                return
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


Effect = Callable[[Dispatch[A], EffectContext], None]
Update = Callable[[A, S], tuple[S, Sequence[Effect[A]]]]


def map_effect(transform: Callable[[A], B], effect: Effect[A]) -> Effect[B]:
    """Embed an inner-action effect into an outer action space.

    The wrapped effect does exactly the same work; only the actions it
    dispatches are passed through `transform` first.
    """
    def mapped(dispatch: Dispatch[B], context: EffectContext) -> None:
        effect(lambda action: dispatch(transform(action)), context)

    return mapped


def map_effects(transform: Callable[[A], B], effects: Sequence[Effect[A]]) -> list[Effect[B]]:
    return [map_effect(transform, effect) for effect in effects]


class Program(Generic[A, S]):
    """Owns the current state and runs update + effects per dispatched action."""

    def __init__(
        self,
        init: tuple[S, Sequence[Effect[A]]],
        update: Update,
        context: EffectContext | None = None,
    ):
        initial_state, initial_effects = init
        self._state = initial_state
        self._update = update
        self.context = context or EffectContext()
        self._subscribers: list[Callable[[], None]] = []
        self._queue: deque = deque()
        self._lock = threading.Lock()
        self._draining = False
        self._run_effects(initial_effects)

    @property
    def state(self) -> S:
        return self._state

    def get_state(self) -> S:
        return self._state

    def dispatch(self, action: A) -> None:
        """Queue `action`; drain the queue unless a transition is already running."""
        with self._lock:
            self._queue.append(action)
            if self._draining:
                return
            self._draining = True
        try:
            while True:
                with self._lock:
                    if not self._queue:
                        self._draining = False
                        return
                    next_action = self._queue.popleft()
                self._transition(next_action)
        except BaseException:
            with self._lock:
                self._draining = False
            raise

    def subscribe(self, subscriber: Callable[[], None]) -> Callable[[], None]:
        """Register a zero-arg listener; returns its unsubscribe callable."""
        self._subscribers.append(subscriber)
        removed = False

        def unsubscribe() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            for i, existing in enumerate(self._subscribers):
                if existing is subscriber:
                    del self._subscribers[i]
                    return

        return unsubscribe

    async def wait_idle(self) -> None:
        await self.context.wait_idle()

    def _transition(self, action: A) -> None:
        logger.debug("Dispatch", extra={"action": type(action).__name__})
        next_state, effects = self._update(action, self._state)
        if next_state is self._state:
            self._run_effects(effects)
            return
        self._state = next_state
        self._run_effects(effects)
        for subscriber in list(self._subscribers):
            try:
                subscriber()
            except Exception as e:
                logger.error("Subscriber failed: %s", e, exc_info=True)

    def _run_effects(self, effects: Sequence[Effect[A]]) -> None:
        for effect in effects:
            try:
                effect(self.dispatch, self.context)
            except Exception as e:
                logger.error("Effect failed: %s", e, exc_info=True)


def run_program(
    *,
    flags: F,
    init: Callable[[F], tuple[S, Sequence[Effect[A]]]],
    update: Update,
    context: EffectContext | None = None,
) -> Program[A, S]:
    """Build a Program from an init(flags) function and an update function."""
    return Program(init(flags), update, context)
