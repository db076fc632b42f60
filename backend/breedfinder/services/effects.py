"""Generic Effects — building blocks shared by every feature.

Invariants:
    - notify() never dispatches
    - after() dispatches exactly once, after the delay
    - perform() dispatches exactly once per run: on_success(result) or
      on_failure(message, severity) for typed errors, unexpected exceptions and
      cancellation alike

Design Decisions:
    - perform() is the single place where exceptions become failure actions,
      so feature effects only describe the happy path
    - notify() goes through context.notifier (explicit capability, no toast singleton)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from breedfinder.core.domain_types import Severity
from breedfinder.core.errors import BreedFinderError
from breedfinder.core.runtime import Dispatch, Effect, EffectContext

logger = logging.getLogger(__name__)

A = TypeVar("A")
T = TypeVar("T")


def notify(severity: Severity, message: str) -> Effect:
    """Show a transient notification. Never dispatches."""
    def effect(dispatch: Dispatch, context: EffectContext) -> None:
        context.notifier.notify(severity.value, message)
    return effect


def after(seconds: float, action: A) -> Effect[A]:
    """Dispatch `action` once, `seconds` from now."""
    async def wait_then_dispatch(dispatch: Dispatch[A]) -> None:
        await asyncio.sleep(seconds)
        dispatch(action)

    def effect(dispatch: Dispatch[A], context: EffectContext) -> None:
        context.spawn(wait_then_dispatch(dispatch))
    return effect


def perform(
    job: Callable[[EffectContext], Awaitable[T]],
    on_success: Callable[[T], A],
    on_failure: Callable[[str, Severity], A],
    *,
    cancelled_message: str = "Cancelled",
) -> Effect[A]:
    """Run an async job; turn its outcome into exactly one action.

    on_failure receives the message and the severity it should be shown with:
    the error's own severity for BreedFinderError, ERROR otherwise. A cancelled
    job still dispatches (with `cancelled_message`) before the cancellation
    propagates.
    """
    async def run(dispatch: Dispatch[A], context: EffectContext) -> None:
        try:
            result = await job(context)
        except BreedFinderError as e:
            logger.warning(f"Effect job failed: {e.message}",
                extra={"error_code": e.code})
            severity, message = e.to_notification()
            dispatch(on_failure(message, severity))
            return
        except asyncio.CancelledError:
            dispatch(on_failure(cancelled_message, Severity.ERROR))
            raise
        except Exception as e:
            logger.error(f"Unexpected error in effect job: {e}", exc_info=True)
            dispatch(on_failure(describe_unexpected(e), Severity.ERROR))
            return
        dispatch(on_success(result))

    def effect(dispatch: Dispatch[A], context: EffectContext) -> None:
        context.spawn(run(dispatch, context))
    return effect


def describe_unexpected(error: Exception) -> str:
    return f"Unexpected error: {error}" if str(error) else type(error).__name__
