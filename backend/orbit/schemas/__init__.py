"""Schemas — Pydantic models for provider payloads and the HTTP boundary.

Invariants:
    - Provider payloads accept any property-name casing
    - API schemas never expose ORM objects directly
"""
