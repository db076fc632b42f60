"""Identify — picture in, breed + example images out. Top-level feature of the CLI.

Invariants:
    - Stages: IDLE → PICTURE_LOADING → PICTURE_READY → CLASSIFYING →
      RESULTS_READY | CLASSIFICATION_FAILED (PICTURE_FAILED when the file can't be read)
    - Submitting a picture at any stage restarts from PICTURE_LOADING and bumps
      `generation`; completions tagged with an older generation are ignored
      (same state object returned, no effects)
    - Classification starts only once BOTH the picture and the catalog are ready,
      whichever arrives last triggers it
    - A failed catalog stalls the pipeline at PICTURE_READY
    - Every failure sets the matching RemoteData field to Failure(message) AND notifies
      with the severity of the error behind it (no match is a warning)

Design Decisions:
    - Generation counter over cancellation: in-flight tasks run to completion,
      their results are simply discarded when stale
    - The aviary feature is embedded via AviaryMsg + map_effect
"""

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Union

from breedfinder.core.breed_index import BreedIndex
from breedfinder.core.domain_types import SearchResults, Severity
from breedfinder.core.remote_data import (
    LOADING, NOT_ASKED, Failure, RemoteData, Succeed, value_or_none,
)
from breedfinder.core.runtime import Effect, map_effects
from breedfinder.features import aviary
from breedfinder.services.effects import notify
from breedfinder.services.identify_pipeline import classify_and_search, read_picture


class Stage(str, Enum):
    IDLE = "idle"
    PICTURE_LOADING = "picture_loading"
    PICTURE_READY = "picture_ready"
    PICTURE_FAILED = "picture_failed"
    CLASSIFYING = "classifying"
    RESULTS_READY = "results_ready"
    CLASSIFICATION_FAILED = "classification_failed"


TERMINAL_STAGES = frozenset({
    Stage.PICTURE_FAILED, Stage.RESULTS_READY, Stage.CLASSIFICATION_FAILED,
})

NOT_A_PICTURE = "It waits for pictures only"

# ─── Actions ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class PictureSubmitted:
    path: Path | None


@dataclass(frozen=True)
class PictureRead:
    generation: int
    data_url: str


@dataclass(frozen=True)
class PictureFailed:
    generation: int
    message: str
    severity: Severity = Severity.ERROR


@dataclass(frozen=True)
class ResultsFound:
    generation: int
    results: SearchResults


@dataclass(frozen=True)
class ClassificationFailed:
    generation: int
    message: str
    severity: Severity = Severity.ERROR


@dataclass(frozen=True)
class AviaryMsg:
    inner: aviary.Action


@dataclass(frozen=True)
class Reset:
    pass


Action = Union[
    PictureSubmitted, PictureRead, PictureFailed, ResultsFound,
    ClassificationFailed, AviaryMsg, Reset,
]

# ─── State ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class State:
    stage: Stage = Stage.IDLE
    generation: int = 0
    catalog: RemoteData[str, BreedIndex] = NOT_ASKED
    picture: RemoteData[str, str] = NOT_ASKED
    results: RemoteData[str, SearchResults] = NOT_ASKED

    @property
    def finished(self) -> bool:
        return self.stage in TERMINAL_STAGES


Effects = list[Effect[Action]]


def init(flags: None = None) -> tuple[State, Effects]:
    catalog, catalog_effects = aviary.init()
    return State(catalog=catalog), map_effects(AviaryMsg, catalog_effects)


def update(action: Action, state: State) -> tuple[State, Effects]:
    match action:
        case PictureSubmitted(path=None):
            return state, [notify(Severity.WARNING, NOT_A_PICTURE)]

        case PictureSubmitted(path=path):
            generation = state.generation + 1
            return (
                replace(
                    state,
                    stage=Stage.PICTURE_LOADING,
                    generation=generation,
                    picture=LOADING,
                    results=NOT_ASKED,
                ),
                [read_picture(
                    path,
                    lambda data_url: PictureRead(generation, data_url),
                    lambda message, severity: PictureFailed(generation, message, severity),
                )],
            )

        case PictureRead(generation=generation) if generation != state.generation:
            return state, []

        case PictureRead(data_url=data_url):
            ready = replace(state, stage=Stage.PICTURE_READY, picture=Succeed(data_url))
            return _start_classification(ready)

        case PictureFailed(generation=generation) if generation != state.generation:
            return state, []

        case PictureFailed(message=message, severity=severity):
            return (
                replace(state, stage=Stage.PICTURE_FAILED, picture=Failure(message)),
                [notify(severity, message)],
            )

        case ResultsFound(generation=generation) if generation != state.generation:
            return state, []

        case ResultsFound(results=results):
            return (
                replace(state, stage=Stage.RESULTS_READY, results=Succeed(results)),
                [notify(
                    Severity.SUCCESS,
                    f"Looks like a {results.probe.display_name} "
                    f"({results.probe.confidence:.0%})",
                )],
            )

        case ClassificationFailed(generation=generation) if generation != state.generation:
            return state, []

        case ClassificationFailed(message=message, severity=severity):
            return (
                replace(
                    state, stage=Stage.CLASSIFICATION_FAILED, results=Failure(message),
                ),
                [notify(severity, message)],
            )

        case AviaryMsg(inner=inner):
            catalog, catalog_effects = aviary.update(inner, state.catalog)
            effects = map_effects(AviaryMsg, catalog_effects)
            if catalog is state.catalog:
                return state, effects
            next_state, pipeline_effects = _start_classification(
                replace(state, catalog=catalog),
            )
            return next_state, effects + pipeline_effects

        case Reset():
            if state.stage is Stage.IDLE and state.picture is NOT_ASKED:
                return state, []
            return (
                replace(
                    state,
                    stage=Stage.IDLE,
                    generation=state.generation + 1,
                    picture=NOT_ASKED,
                    results=NOT_ASKED,
                ),
                [],
            )

    return state, []


def _start_classification(state: State) -> tuple[State, Effects]:
    """Move PICTURE_READY to CLASSIFYING when the catalog is available."""
    index = value_or_none(state.catalog)
    data_url = value_or_none(state.picture)
    if state.stage is not Stage.PICTURE_READY or index is None or data_url is None:
        return state, []
    generation = state.generation
    return (
        replace(state, stage=Stage.CLASSIFYING, results=LOADING),
        [classify_and_search(
            index,
            data_url,
            lambda results: ResultsFound(generation, results),
            lambda message, severity: ClassificationFailed(generation, message, severity),
        )],
    )
