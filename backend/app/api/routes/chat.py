from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_chat_assistant, get_current_user, get_db, get_today
from app.models.user import User
from app.schemas.ai import ChatClearRequest, ChatMessageRequest, ChatReplyOut
from app.schemas.common import Envelope, MessageResponse
from app.services.ai_gateway import AIServiceBusyError, AIServiceError
from app.services.assistant import ChatAssistant
from app.services.insights import summarize_transactions
from app.services.ledger_queries import fetch_transactions
from app.utils.dates import trailing_window_start


router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/message", response_model=Envelope[ChatReplyOut])
def send_message(
    payload: ChatMessageRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    assistant: ChatAssistant = Depends(get_chat_assistant),
) -> Envelope[ChatReplyOut]:
    if not payload.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    rows = fetch_transactions(db, current_user.id, start=trailing_window_start(today, 3))
    snapshot = summarize_transactions(rows).as_context() if rows else None
    try:
        reply = assistant.send(
            user_id=current_user.id,
            message=payload.message,
            conversation_id=payload.conversation_id,
            snapshot=snapshot,
        )
    except AIServiceBusyError as exc:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(exc)) from exc
    except AIServiceError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to process message") from exc

    return Envelope(
        data=ChatReplyOut(message=reply.message, conversation_id=reply.conversation_id, model=reply.model)
    )


@router.post("/clear", response_model=MessageResponse)
def clear_history(
    payload: ChatClearRequest,
    current_user: User = Depends(get_current_user),
    assistant: ChatAssistant = Depends(get_chat_assistant),
) -> MessageResponse:
    assistant.clear(current_user.id, payload.conversation_id)
    return MessageResponse(message="Conversation history cleared")
