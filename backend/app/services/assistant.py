from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import threading
import time
import uuid
from typing import Any

from app.services.ai_gateway import AIServiceError, GeminiClient


logger = logging.getLogger("fintrack.ai")

FALLBACK_REPLY = "Sorry, I can't answer right now."

SYSTEM_PROMPT = """
You are FinBot, a smart personal finance assistant.

Your job:
1. Help the user track and manage daily income and spending.
2. Give saving advice based on their spending habits.
3. Answer personal finance questions.
4. Help plan budgets.

Rules:
- Be short, clear and friendly.
- When the user asks about specific spending, ask for details if needed.
- Give practical advice that is easy to act on.
- Use the financial snapshot below when it is provided; never invent figures.

Example:
User: "How much should I spend on food this month?"
FinBot: "Under the 50/30/20 rule about half of your income goes to essentials, food included.
With an income of 10 million, 1.5 to 2 million a month for food is reasonable."
""".strip()


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass(frozen=True)
class ChatReply:
    message: str
    conversation_id: str
    model: str


class ConversationStore:
    """Per-conversation message history, capped and expired after a TTL."""

    def __init__(
        self,
        *,
        ttl_seconds: float,
        history_limit: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.history_limit = history_limit
        self._clock = clock
        self._conversations: dict[str, tuple[float, list[ChatMessage]]] = {}
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        expired = [
            key for key, (touched, _) in self._conversations.items() if now - touched >= self.ttl_seconds
        ]
        for key in expired:
            del self._conversations[key]

    def history(self, conversation_id: str) -> list[ChatMessage]:
        with self._lock:
            self._purge(self._clock())
            entry = self._conversations.get(conversation_id)
            return list(entry[1]) if entry else []

    def append(self, conversation_id: str, *messages: ChatMessage) -> list[ChatMessage]:
        with self._lock:
            now = self._clock()
            self._purge(now)
            entry = self._conversations.get(conversation_id)
            history = (entry[1] if entry else []) + list(messages)
            history = history[-self.history_limit:]
            self._conversations[conversation_id] = (now, history)
            return list(history)

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            self._conversations.pop(conversation_id, None)

    def __len__(self) -> int:
        return len(self._conversations)


def new_conversation_id() -> str:
    return uuid.uuid4().hex


def conversation_key(user_id: int | str, conversation_id: str) -> str:
    """Store key; histories are only reachable by the user that created them."""
    return f"{user_id}:{conversation_id}"


def _format_snapshot(snapshot: dict[str, Any] | None) -> str:
    if not snapshot:
        return ""
    lines = ["Financial snapshot for the last 3 months:"]
    for key, value in snapshot.items():
        if key == "top_categories":
            listed = ", ".join(f"{row['name']} {row['amount']}" for row in value)
            lines.append(f"- top expense categories: {listed or 'none'}")
        else:
            lines.append(f"- {key.replace('_', ' ')}: {value}")
    return "\n".join(lines)


def answer_rule_based(message: str, snapshot: dict[str, Any] | None) -> str:
    text = message.lower()
    snapshot = snapshot or {}
    if any(word in text for word in ("save", "saving", "savings")):
        rate = snapshot.get("savings_rate")
        if rate is not None:
            return (
                f"Your savings rate over the last 3 months is {rate}%. "
                "Aim for at least 20% by trimming your largest discretionary categories first."
            )
        return "Aim to save at least 20% of your income. Start by setting a budget for your largest category."
    if any(word in text for word in ("budget", "spend", "spending")):
        top = snapshot.get("top_categories") or []
        if top:
            return (
                f"Your largest expense category is {top[0]['name']} at {top[0]['amount']}. "
                "Try the 50/30/20 rule: 50% essentials, 30% wants, 20% savings."
            )
        return "Try the 50/30/20 rule: 50% of income for essentials, 30% for wants and 20% for savings."
    return (
        "The AI assistant is not configured right now. "
        "I can still help with budgets and savings: ask me how much you spend or how to save more."
    )


class ChatAssistant:
    def __init__(
        self,
        *,
        client: GeminiClient,
        store: ConversationStore,
        model: str,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
    ) -> None:
        self.client = client
        self.store = store
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def send(
        self,
        *,
        user_id: int | str,
        message: str,
        conversation_id: str | None = None,
        snapshot: dict[str, Any] | None = None,
    ) -> ChatReply:
        text = message.strip()
        if not text:
            raise ValueError("Message is required")

        conversation_id = conversation_id or new_conversation_id()
        key = conversation_key(user_id, conversation_id)
        history = self.store.append(key, ChatMessage(role="user", content=text))

        if not self.client.configured:
            reply = answer_rule_based(text, snapshot)
            self.store.append(key, ChatMessage(role="assistant", content=reply))
            return ChatReply(message=reply, conversation_id=conversation_id, model="rule-based")

        system_instruction = SYSTEM_PROMPT
        context = _format_snapshot(snapshot)
        if context:
            system_instruction = f"{SYSTEM_PROMPT}\n\n{context}"

        contents = [
            {
                "role": "model" if item.role == "assistant" else "user",
                "parts": [{"text": item.content}],
            }
            for item in history
        ]
        try:
            reply = self.client.generate(
                model=self.model,
                contents=contents,
                system_instruction=system_instruction,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
                top_p=1.0,
            )
        except AIServiceError:
            logger.exception("Chat completion failed for conversation %s", conversation_id)
            raise

        reply = reply or FALLBACK_REPLY
        self.store.append(key, ChatMessage(role="assistant", content=reply))
        return ChatReply(message=reply, conversation_id=conversation_id, model=self.model)

    def history(self, user_id: int | str, conversation_id: str) -> list[ChatMessage]:
        return self.store.history(conversation_key(user_id, conversation_id))

    def clear(self, user_id: int | str, conversation_id: str | None) -> None:
        if conversation_id:
            self.store.clear(conversation_key(user_id, conversation_id))
