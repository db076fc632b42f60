"""Identify Pipeline — picture file → data URL → labels → breed match → images.

Invariants:
    - Two effects, each ending in exactly one dispatch:
        read_picture:        PictureRead | PictureFailed
        classify_and_search: ResultsFound | ClassificationFailed
    - Stages short-circuit: the first failing stage raises, later stages never run
    - Zero labels → EmptyResultError; no resolvable label → NoMatchError

Design Decisions:
    - One coroutine per multi-stage effect: failures propagate as exceptions
      and perform() turns the first one into the failure action
    - Taggers passed in by the feature: this module knows nothing about action types
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from breedfinder.core.breed_index import BreedIndex
from breedfinder.core.classify import classify
from breedfinder.core.domain_types import SearchResults, Severity
from breedfinder.core.errors import EmptyResultError, NoMatchError, ReadError
from breedfinder.core.runtime import Effect, EffectContext
from breedfinder.services.breed_catalog import search_images
from breedfinder.services.environment import Environment
from breedfinder.services.effects import perform

logger = logging.getLogger(__name__)

A = TypeVar("A")


async def identify(env: Environment, index: BreedIndex, data_url: str) -> SearchResults:
    """Classify the picture, match it against the index, fetch images."""
    classifications = await env.vision.classify(data_url)
    if not classifications:
        raise EmptyResultError()
    probe = classify(index, classifications)
    if probe is None:
        raise NoMatchError([c.label for c in classifications])
    logger.info(f"Matched {probe.display_name} ({probe.confidence:.0%})",
        extra={"breed": probe.display_name})
    images = await search_images(env.dog_api, probe)
    return SearchResults(probe=probe, images=tuple(images))


def read_picture(
    path: Path,
    on_read: Callable[[str], A],
    on_failed: Callable[[str, Severity], A],
) -> Effect[A]:
    async def job(context: EffectContext) -> str:
        return await context.env.files.read_data_url(path)

    return perform(
        job, on_read, on_failed,
        cancelled_message=ReadError(ReadError.ABORTED).message,
    )


def classify_and_search(
    index: BreedIndex,
    data_url: str,
    on_found: Callable[[SearchResults], A],
    on_failed: Callable[[str, Severity], A],
) -> Effect[A]:
    async def job(context: EffectContext) -> SearchResults:
        return await identify(context.env, index, data_url)

    return perform(job, on_found, on_failed)
