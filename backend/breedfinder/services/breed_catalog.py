"""Breed Catalog — remote breed listing → BreedIndex, and breed → image search.

Invariants:
    - load_breed_index publishes an index only after the whole envelope decoded
    - search_images returns the complete image list or raises; never a partial list
    - Request paths: breed/{name}/images, or breed/{name}/{sub}/images with a sub-breed

Design Decisions:
    - Plain async functions taking the client: usable from effects, the CLI and tests
    - load_catalog() is the effect form; the tagger functions decide the action shape
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from breedfinder.core.breed_index import BreedIndex
from breedfinder.core.domain_types import Probe, Severity
from breedfinder.core.envelope import decode_envelope
from breedfinder.core.runtime import Effect, EffectContext
from breedfinder.infrastructure.dog_api_client import DogApiClient
from breedfinder.services.effects import perform

logger = logging.getLogger(__name__)

A = TypeVar("A")

LIST_ALL_PATH = "breeds/list/all"


async def load_breed_index(client: DogApiClient) -> BreedIndex:
    text = await client.get_text(LIST_ALL_PATH)
    listing = decode_envelope(text, dict[str, list[str]])
    index = BreedIndex.from_listing(listing)
    logger.info(f"Breed catalog loaded: {len(index)} breeds")
    return index


def image_search_path(probe: Probe) -> str:
    if probe.sub_breed:
        return f"breed/{probe.breed}/{probe.sub_breed}/images"
    return f"breed/{probe.breed}/images"


async def search_images(client: DogApiClient, probe: Probe) -> list[str]:
    text = await client.get_text(image_search_path(probe))
    images = decode_envelope(text, list[str])
    logger.info(f"Found {len(images)} images", extra={"breed": probe.display_name})
    return images


def load_catalog(
    on_loaded: Callable[[BreedIndex], A],
    on_failed: Callable[[str, Severity], A],
) -> Effect[A]:
    """Effect: fetch + decode the catalog, then dispatch exactly one of the two taggers."""
    async def job(context: EffectContext) -> BreedIndex:
        return await load_breed_index(context.env.dog_api)

    return perform(job, on_loaded, on_failed)
