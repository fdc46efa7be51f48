from pydantic import Field

from app.schemas.common import CamelModel


class ChatMessageRequest(CamelModel):
    message: str = Field(min_length=1, max_length=4000)
    conversation_id: str | None = None


class ChatClearRequest(CamelModel):
    conversation_id: str | None = None


class ChatReplyOut(CamelModel):
    message: str
    conversation_id: str
    model: str


class ReceiptImageRequest(CamelModel):
    image: str = Field(min_length=1)
    mime_type: str = "image/jpeg"


class GatewayStatusOut(CamelModel):
    configured: bool
    active_requests: int
    queue_length: int
    requests_last_minute: int
    cache_size: int
