"""API Layer: FastAPI routes, dependencies and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - All endpoints return structured JSON (or text/event-stream for events)

Design Decisions:
    - Thin routes delegate to services built from the GameContext
"""
