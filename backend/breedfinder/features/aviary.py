"""Aviary — the breed catalog as a feature: loaded once at startup, read-only afterwards.

Invariants:
    - init() starts in Loading with exactly one load effect
    - A loaded catalog is never replaced (late duplicates are no-ops)
    - A failed load keeps Failure(message) and notifies; nothing retries automatically
"""

from dataclasses import dataclass
from typing import Union

from breedfinder.core.breed_index import BreedIndex
from breedfinder.core.domain_types import Severity
from breedfinder.core.remote_data import LOADING, Failure, RemoteData, Succeed
from breedfinder.core.runtime import Effect
from breedfinder.services.breed_catalog import load_catalog
from breedfinder.services.effects import notify

# ─── Actions ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class CatalogLoaded:
    index: BreedIndex


@dataclass(frozen=True)
class CatalogFailed:
    message: str
    severity: Severity = Severity.ERROR


Action = Union[CatalogLoaded, CatalogFailed]

# ─── State ───────────────────────────────────────────────────────

State = RemoteData[str, BreedIndex]


def init() -> tuple[State, list[Effect[Action]]]:
    return LOADING, [load_catalog(CatalogLoaded, CatalogFailed)]


def update(action: Action, state: State) -> tuple[State, list[Effect[Action]]]:
    if isinstance(state, Succeed):
        return state, []
    match action:
        case CatalogLoaded(index=index):
            return Succeed(index), []
        case CatalogFailed(message=message, severity=severity):
            return Failure(message), [
                notify(severity, f"Breed catalog unavailable: {message}"),
            ]
    return state, []
