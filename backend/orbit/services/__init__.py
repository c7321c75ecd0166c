"""Services Layer — chat pipeline, action executor, routine analysis, fact extraction.

Invariants:
    - Services orchestrate IO around pure core functions
    - Action dispatch uses an explicit dict mapping (no auto-discovery)

Design Decisions:
    - One service per pipeline stage for locality (ADR: no god objects)
"""
