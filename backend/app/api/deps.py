from collections.abc import Generator
from datetime import date
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.models.user import User
from app.services.ai_gateway import GeminiClient, RequestThrottle, ResponseCache
from app.services.assistant import ChatAssistant, ConversationStore
from app.services.insights import Narrator, gemini_narrator
from app.services.receipt_scanner import ReceiptScanner
from app.services.seed import DEMO_USER_EMAIL


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    x_user_id: int | None = Header(default=None),
) -> User:
    if x_user_id is None:
        # Safe default for local development.
        user = db.scalar(select(User).where(User.email == DEMO_USER_EMAIL))
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required.",
            )
        return user

    user = db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user.",
        )
    return user


def get_today() -> date:
    return date.today()


@lru_cache
def get_ai_throttle() -> RequestThrottle:
    settings = get_settings()
    return RequestThrottle(
        max_concurrent=settings.ai_max_concurrent,
        requests_per_minute=settings.ai_requests_per_minute,
    )


@lru_cache
def get_gemini_client() -> GeminiClient:
    settings = get_settings()
    return GeminiClient(
        api_key=settings.gemini_api_key,
        base_url=settings.gemini_base_url,
        throttle=get_ai_throttle(),
        max_retries=settings.ai_max_retries,
        base_delay=settings.ai_base_delay_seconds,
        max_delay=settings.ai_max_delay_seconds,
    )


@lru_cache
def get_receipt_cache() -> ResponseCache:
    settings = get_settings()
    return ResponseCache(
        ttl_seconds=settings.ai_cache_ttl_seconds,
        max_entries=settings.ai_cache_max_entries,
    )


@lru_cache
def get_conversation_store() -> ConversationStore:
    settings = get_settings()
    return ConversationStore(
        ttl_seconds=settings.chat_conversation_ttl_seconds,
        history_limit=settings.chat_history_limit,
    )


def get_receipt_scanner(
    client: GeminiClient = Depends(get_gemini_client),
    cache: ResponseCache = Depends(get_receipt_cache),
) -> ReceiptScanner:
    return ReceiptScanner(client=client, cache=cache, model=get_settings().gemini_vision_model)


def get_chat_assistant(
    client: GeminiClient = Depends(get_gemini_client),
    store: ConversationStore = Depends(get_conversation_store),
) -> ChatAssistant:
    settings = get_settings()
    return ChatAssistant(
        client=client,
        store=store,
        model=settings.gemini_chat_model,
        temperature=settings.chat_temperature,
        max_output_tokens=settings.chat_max_output_tokens,
    )


def get_narrator(client: GeminiClient = Depends(get_gemini_client)) -> Narrator | None:
    return gemini_narrator(client, model=get_settings().gemini_chat_model)
