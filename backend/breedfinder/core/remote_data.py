"""RemoteData — four-state lifecycle tag for asynchronously obtained values.

Invariants:
    - Exactly one of NotAsked | Loading | Failure | Succeed
    - NOT_ASKED and LOADING are singletons, so unchanged fields keep identity
      and no-op transitions stay reference-equal

Design Decisions:
    - Frozen dataclasses + Union alias: matched with `match` in update functions
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

E = TypeVar("E")
A = TypeVar("A")


@dataclass(frozen=True)
class NotAsked:
    pass


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Failure(Generic[E]):
    error: E


@dataclass(frozen=True)
class Succeed(Generic[A]):
    value: A


RemoteData = Union[NotAsked, Loading, Failure[E], Succeed[A]]

NOT_ASKED = NotAsked()
LOADING = Loading()


def value_or_none(data: RemoteData):
    """Succeed value, or None for every other state."""
    if isinstance(data, Succeed):
        return data.value
    return None
