"""Chat Schemas — HTTP response shapes for submitted utterances.

Invariants:
    - actions has one entry per planned action, in plan order
    - status is "succeeded" or "failed"; error set only when failed
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from orbit.core.domain_types import ActionStatus, ActionType


class ActionOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    index: int
    action_type: ActionType
    status: ActionStatus
    entity_id: UUID | None = None
    error: str | None = None
    warning: str | None = None


class ChatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    summary_message: str
    actions: list[ActionOutcomeResponse]
