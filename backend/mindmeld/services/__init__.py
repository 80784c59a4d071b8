"""Services Layer: the impure shell around core: DB sessions, oracle calls, broadcasts.

Invariants:
    - Services take an AsyncSession per request; they commit, then broadcast
    - Core rules and errors come from mindmeld.core; services never re-derive them

Design Decisions:
    - Plain classes constructed per request by GameContext, no module-level state
"""
