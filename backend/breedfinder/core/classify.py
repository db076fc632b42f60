"""Classification Matching — ranked classifier labels → best-effort breed match.

Invariants:
    - classify is PURE: same index + same input → same Probe (or None)
    - Ranking is a stable sort, descending probability (ties keep input order)
    - First resolvable label wins; a lower-probability label that resolves beats
      a higher-probability one that does not
    - Sub-breed is only ever taken from names present in the matched label

Design Decisions:
    - Short-circuiting iteration over ordered candidates (next() over generators)
      instead of nested optional chaining
    - Labels list synonyms separated by commas ("Chihuahua, Mexican dog"): each
      alternate is tried in order, tokens split on whitespace and hyphens
"""

import re
from collections.abc import Iterable, Iterator

from breedfinder.core.breed_index import BreedIndex
from breedfinder.core.domain_types import Breed, Classification, Probe

_ALTERNATES = re.compile(r",\s*")
_TOKENS = re.compile(r"\s|-")


def rank(classifications: Iterable[Classification]) -> list[Classification]:
    """Highest probability first. sorted() is stable, including with reverse=True."""
    return sorted(classifications, key=lambda c: c.probability, reverse=True)


def classify(
    index: BreedIndex, classifications: Iterable[Classification],
) -> Probe | None:
    """Best match among all labels, walking the ranking highest first."""
    probes = (
        _probe(breed, c.probability)
        for c in rank(classifications)
        for breed in [bait(index, c.label)]
        if breed is not None
    )
    return next(probes, None)


def bait(index: BreedIndex, label: str) -> Breed | None:
    """Resolve one free-text label to a Breed, trying each alternate name in order."""
    alternates = split_alternates(label)
    matches = (_match_fragment(index, fragment, alternates) for fragment in alternates)
    return next((breed for breed in matches if breed is not None), None)


def split_alternates(label: str) -> list[str]:
    return _ALTERNATES.split(label.lower().strip())


def split_tokens(fragment: str) -> list[str]:
    return [token for token in _TOKENS.split(fragment) if token]


def _match_fragment(
    index: BreedIndex, fragment: str, alternates: list[str],
) -> Breed | None:
    tokens = split_tokens(fragment)
    name = next((token for token in tokens if token in index), None)
    if name is None:
        return None
    known = index.get(name) or frozenset()
    sub_name = next(
        (candidate for candidate in _sub_breed_candidates(tokens, alternates)
         if candidate in known),
        None,
    )
    return Breed(name, sub_name)


def _sub_breed_candidates(tokens: list[str], alternates: list[str]) -> Iterator[str]:
    # Tokens of the matched fragment first, then multi-word alternates only:
    # a sub-breed name like "mexican dog" never appears as a single token.
    yield from tokens
    yield from (fragment for fragment in alternates if len(split_tokens(fragment)) > 1)


def _probe(breed: Breed, confidence: float) -> Probe:
    return Probe(confidence=confidence, breed=breed.name, sub_breed=breed.sub_name)
