"""Counter — minimal feature exercising timer effects.

Invariants:
    - init() schedules one Increment after TICK_SECONDS
    - every Decrement re-arms another Decrement after TICK_SECONDS
"""

from dataclasses import dataclass, replace
from typing import Union

from breedfinder.core.runtime import Effect
from breedfinder.services.effects import after

TICK_SECONDS = 1.0


@dataclass(frozen=True)
class Increment:
    pass


@dataclass(frozen=True)
class Decrement:
    pass


Action = Union[Increment, Decrement]


@dataclass(frozen=True)
class State:
    count: int = 0


def init(flags: None = None) -> tuple[State, list[Effect[Action]]]:
    return State(), [after(TICK_SECONDS, Increment())]


def update(action: Action, state: State) -> tuple[State, list[Effect[Action]]]:
    match action:
        case Increment():
            return replace(state, count=state.count + 1), []
        case Decrement():
            return replace(state, count=state.count - 1), [after(TICK_SECONDS, Decrement())]
    return state, []
