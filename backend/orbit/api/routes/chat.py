"""Chat Route — submit a natural-language message (optionally with an image).

Invariants:
    - multipart/form-data: `message` (required, non-blank) and optional `image`
    - Response lists one outcome per planned action, in order
    - Typed errors (plan rejected, provider down, bad image) reach the global handler
"""

import logging

from fastapi import (
    APIRouter, Depends, File, Form, HTTPException, UploadFile, status,
)

from orbit.api.dependencies import get_chat_pipeline, get_owner_id
from orbit.core.domain_types import OwnerId
from orbit.schemas.chat import ChatResponse
from orbit.services.chat_pipeline import ChatPipeline, ImageUpload

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def submit_message(
    message: str = Form(..., max_length=4000),
    image: UploadFile | None = File(None),
    owner_id: OwnerId = Depends(get_owner_id),
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
):
    text = message.strip()
    if not text:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty",
        )
    upload = None
    if image is not None:
        upload = ImageUpload(filename=image.filename, data=await image.read())
    result = await pipeline.submit_utterance(owner_id, text, upload)
    return ChatResponse.model_validate(result, from_attributes=True)
