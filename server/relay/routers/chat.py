"""Completion endpoint backed by the assistant orchestrator."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..config import get_settings
from ..models import schemas
from ..services.completion import CompletionOrchestrator, InvalidInputError, ProcessingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

FAILURE_DETAIL = "Failed to process message"


def get_orchestrator() -> CompletionOrchestrator:
    """Build an orchestrator from the current settings; overridden in tests."""

    return CompletionOrchestrator.from_settings(get_settings())


@router.post("", response_model=schemas.ChatResponse)
async def chat_with_assistant(
    payload: schemas.ChatRequest,
    orchestrator: CompletionOrchestrator = Depends(get_orchestrator),
) -> schemas.ChatResponse:
    """Answer one user message through a fresh assistant thread.

    Errors are reduced to a single client-facing message; the failing step and
    the original error only reach the logs.
    """

    try:
        result = await orchestrator.complete(
            payload.user_message,
            browsing_data=payload.browsing_data,
            system_context=payload.system_context,
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProcessingError as exc:
        logger.error("Chat request failed at step %s: %s", exc.step, exc)
        raise HTTPException(status_code=500, detail=FAILURE_DETAIL) from exc

    return schemas.ChatResponse(output_text=result.output_text)
