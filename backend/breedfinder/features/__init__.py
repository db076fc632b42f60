"""Features — closed action sets with one pure update function each.

Invariants:
    - Each feature exposes: State, Action (Union alias), init(), update(action, state)
    - update is total and never raises; unchanged state is returned as the SAME object
    - Actions are frozen dataclasses matched exhaustively with `match`

Design Decisions:
    - Features embed each other through wrapper actions + map_effect, never by
      sharing action classes
"""
