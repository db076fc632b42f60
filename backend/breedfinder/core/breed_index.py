"""Breed Index — immutable lexical index of breed name → known sub-breed names.

Invariants:
    - Keys and sub-breed names are case-folded (lower-case)
    - Built once from a fully decoded listing; never mutated afterwards
    - No partial index: construction either returns a complete index or raises

Design Decisions:
    - MappingProxyType over a frozen dict subclass: stdlib, read-only view,
      no copying on lookup
    - frozenset values: membership checks are O(1) and values are shareable
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType


class BreedIndex:
    """Read-only breed → sub-breeds lookup."""

    __slots__ = ("_breeds",)

    def __init__(self, breeds: Mapping[str, frozenset[str]]):
        self._breeds = MappingProxyType(dict(breeds))

    @classmethod
    def from_listing(cls, listing: Mapping[str, list[str]]) -> "BreedIndex":
        """Build from a decoded `breeds/list/all` payload."""
        folded: dict[str, set[str]] = {}
        for name, sub_breeds in listing.items():
            folded.setdefault(name.lower(), set()).update(
                sub.lower() for sub in sub_breeds
            )
        return cls({name: frozenset(subs) for name, subs in folded.items()})

    def get(self, name: str) -> frozenset[str] | None:
        """Sub-breeds of `name`, or None when the breed is unknown."""
        return self._breeds.get(name.lower())

    def sub_breeds(self, name: str) -> list[str]:
        """Sorted sub-breeds of `name` (empty for unknown breeds)."""
        return sorted(self._breeds.get(name.lower(), ()))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._breeds

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._breeds))

    def __len__(self) -> int:
        return len(self._breeds)

    def __repr__(self) -> str:
        return f"BreedIndex({len(self)} breeds)"
