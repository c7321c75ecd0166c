"""Infrastructure Layer — provider client, database, repositories, logging.

Invariants:
    - Every external failure is mapped onto the OrbitError hierarchy (core/errors.py)

Design Decisions:
    - Adapters implement the Protocols in core/repository_protocols.py
"""
