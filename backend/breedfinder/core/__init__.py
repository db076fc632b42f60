"""Core Layer — pure domain logic and the dispatch runtime, no network or file IO.

Invariants:
    - No module in core/ imports from services/, features/, infrastructure/
    - Matching, decoding and index construction are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell: effects that touch the
      network or the filesystem live in services/
"""
