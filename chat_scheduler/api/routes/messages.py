"""
Messages API Endpoint.

Thin adapter between a chat transport and the scheduling engine: one POST
per inbound message, answered with the structured response intent.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from chat_scheduler.core.scheduling.engine import SchedulingEngine, get_scheduling_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


def get_engine() -> SchedulingEngine:
    """Engine used by the routes."""
    return get_scheduling_engine()


class MessageRequest(BaseModel):
    """Inbound chat message."""

    conversation_key: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Key the conversation state is stored under (usually the sender)",
        examples=["5511999999999"],
    )
    owner_identity: Optional[str] = Field(
        default=None,
        description="Sender identity used to resolve the owner; defaults to conversation_key",
        examples=["5511999999999@s.whatsapp.net"],
    )
    text: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Message text",
        examples=["agendar Ana quinta 14h"],
    )


class MessageResponse(BaseModel):
    """Outcome of one message."""

    success: bool = Field(..., description="False when processing hit an internal error")
    response: dict = Field(..., description="Response intent: kind plus data")
    next_state: Optional[dict] = Field(
        default=None,
        description="Conversation state after the message, null when cleared",
    )
    error: Optional[str] = Field(default=None, description="Internal error message")


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: Optional[str] = None


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Handle an inbound message",
    responses={
        200: {"description": "Message processed"},
        422: {"model": ErrorResponse, "description": "Invalid request"},
    },
)
async def handle_message(request: MessageRequest) -> MessageResponse:
    """
    Process one chat message.

    Business failures (conflicts, unknown patients, bad dates) come back
    as response intents with status 200.
    """
    engine = get_engine()
    result = await engine.handle(
        request.conversation_key,
        request.owner_identity or request.conversation_key,
        request.text,
    )
    return MessageResponse(**result.to_dict())


@router.get(
    "/conversations/{conversation_key}",
    response_model=dict,
    summary="Get conversation state",
    responses={
        200: {"description": "Conversation state"},
        404: {"model": ErrorResponse, "description": "No active conversation"},
    },
)
async def get_conversation(conversation_key: str) -> dict:
    """Current state of a conversation."""
    state = await get_engine().get_state(conversation_key)

    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )

    return state.to_dict()


@router.delete(
    "/conversations/{conversation_key}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Reset a conversation",
)
async def reset_conversation(conversation_key: str) -> None:
    """Drop a conversation's pending state."""
    deleted = await get_engine().reset_state(conversation_key)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
