"""
Team assistant chat endpoint.

The assistant answers from team data using read-only tools that run with the
caller's own identity. Errors come back as a normal reply, never a 5xx.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from models import Principal
from schemas import ChatRequest, ChatResponse
from services.assistant import get_team_assistant

router = APIRouter(prefix="/v1", tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    assistant = get_team_assistant(db)
    result = assistant.chat(
        current_user.id,
        request.message,
        history=[turn.model_dump() for turn in request.history],
    )
    return ChatResponse(reply=result["response"], error=bool(result.get("error")))
