"""Services Layer — effect constructors: the imperative shell around the pure core.

Invariants:
    - Every asynchronous branch of an effect ends in exactly one dispatch
    - Errors are converted into failure actions here; they never reach update()

Design Decisions:
    - Effects read their dependencies from EffectContext.env, never from globals
"""
