"""Domain Types — value objects shared by the matcher, the catalog and the features.

Invariants:
    - All value objects are frozen dataclasses (hashable, safe to share between states)
    - Classification.probability is expected in 0.0–1.0 (clamped by adapters, not here)
    - Breed/Probe names are lower-case (they come from BreedIndex keys)
    - All valid notification levels encoded as an Enum — no raw string matching

Design Decisions:
    - Dataclasses over pydantic models: core values never cross a validation boundary
      themselves; pydantic lives at the wire edge (envelope, vision adapter)
    - str Enums: serialize to JSON log fields without custom encoders
"""

from dataclasses import dataclass
from enum import Enum


# ─── Enums ───────────────────────────────────────────────────────

class Severity(str, Enum):
    """Notification levels accepted by the notifier capability."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# ─── Value Types ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Classification:
    """One label from the vision classifier, with its probability."""
    label: str
    probability: float


@dataclass(frozen=True)
class Breed:
    """A breed, optionally narrowed to a sub-breed."""
    name: str
    sub_name: str | None = None


@dataclass(frozen=True)
class Probe:
    """Classifier match: the breed found and the confidence of the label it came from."""
    confidence: float
    breed: str
    sub_breed: str | None = None

    def to_breed(self) -> Breed:
        return Breed(self.breed, self.sub_breed)

    @property
    def display_name(self) -> str:
        if self.sub_breed:
            return f"{self.sub_breed} {self.breed}"
        return self.breed


@dataclass(frozen=True)
class SearchResults:
    """Final output of the identification pipeline."""
    probe: Probe
    images: tuple[str, ...]
