"""Effect Environment — the external collaborators effects are allowed to use.

Invariants:
    - Effects reach the network, the vision model and the filesystem ONLY through
      the Environment stored in EffectContext.env
    - build_environment() is the single place where settings become clients

Design Decisions:
    - Protocols for the vision and file capabilities: tests swap in fakes without
      patching modules
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from breedfinder.config import Settings
from breedfinder.core.domain_types import Classification
from breedfinder.infrastructure.dog_api_client import DogApiClient
from breedfinder.infrastructure.file_reader import FileReader
from breedfinder.infrastructure.vision_client import VisionClassifier


class ImageClassifier(Protocol):
    async def classify(self, data_url: str) -> list[Classification]: ...

    async def aclose(self) -> None: ...


class PictureReader(Protocol):
    async def read_data_url(self, path: Path) -> str: ...


@dataclass
class Environment:
    dog_api: DogApiClient
    vision: ImageClassifier
    files: PictureReader

    async def aclose(self) -> None:
        """Close every network client, even when one of them fails to close."""
        try:
            await self.dog_api.aclose()
        finally:
            await self.vision.aclose()


def build_dog_api(settings: Settings) -> DogApiClient:
    return DogApiClient(
        settings.dog_api_base_url,
        timeout_seconds=settings.http_timeout_seconds,
        max_retries=settings.http_max_retries,
        base_delay_ms=settings.http_base_delay_ms,
        max_delay_ms=settings.http_max_delay_ms,
    )


def build_environment(settings: Settings) -> Environment:
    """Production wiring from settings."""
    return Environment(
        dog_api=build_dog_api(settings),
        vision=VisionClassifier(
            settings.anthropic_api_key,
            settings.vision_model,
            max_labels=settings.vision_max_labels,
            max_tokens=settings.vision_max_tokens,
            timeout_seconds=settings.vision_timeout_seconds,
        ),
        files=FileReader(),
    )
