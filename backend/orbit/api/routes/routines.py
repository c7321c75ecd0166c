"""Routine Routes — pattern listing, conflict checks and slot suggestions.

Invariants:
    - All endpoints are scoped to the caller's owner id
    - Insufficient history is not an error: patterns [] / no conflict / fallbacks
    - Provider failures surface as typed errors (503/502), never as "no conflict"
"""

import logging

from fastapi import APIRouter, Depends

from orbit.api.dependencies import get_owner_id, get_routine_analyzer
from orbit.core.domain_types import OwnerId
from orbit.schemas.routines import (
    ConflictResponse, ProposedScheduleRequest, RoutinePatternResponse,
    SlotSuggestionRequest, TimeSlotSuggestionResponse,
)
from orbit.services.routine_analyzer import RoutineAnalyzer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/routines", tags=["routines"])


@router.get("/patterns", response_model=list[RoutinePatternResponse])
async def list_patterns(
    owner_id: OwnerId = Depends(get_owner_id),
    analyzer: RoutineAnalyzer = Depends(get_routine_analyzer),
):
    patterns = await analyzer.analyze_routines(owner_id)
    return [
        RoutinePatternResponse.model_validate(p, from_attributes=True)
        for p in patterns
    ]


@router.post("/conflicts", response_model=ConflictResponse)
async def check_conflict(
    body: ProposedScheduleRequest,
    owner_id: OwnerId = Depends(get_owner_id),
    analyzer: RoutineAnalyzer = Depends(get_routine_analyzer),
):
    assessment = await analyzer.assess_conflict(owner_id, body.to_domain())
    if assessment is None:
        return ConflictResponse(has_conflict=False)
    return ConflictResponse.model_validate(assessment, from_attributes=True)


@router.post("/suggestions", response_model=list[TimeSlotSuggestionResponse])
async def suggest_slots(
    body: SlotSuggestionRequest,
    owner_id: OwnerId = Depends(get_owner_id),
    analyzer: RoutineAnalyzer = Depends(get_routine_analyzer),
):
    suggestions = await analyzer.suggest_slots(
        owner_id, body.habit_title, body.to_domain(),
    )
    return [
        TimeSlotSuggestionResponse.model_validate(s, from_attributes=True)
        for s in suggestions
    ]
