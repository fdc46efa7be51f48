import json

import httpx
import pytest

from app.services.ai_gateway import AIServiceError, GeminiClient, RequestThrottle
from app.services.assistant import (
    ChatAssistant,
    ChatMessage,
    ConversationStore,
    answer_rule_based,
)


def _noop_sleep(seconds: float) -> None:
    return None


def _assistant(handler, *, api_key: str = "test-key", store: ConversationStore | None = None) -> ChatAssistant:
    client = GeminiClient(
        api_key=api_key,
        base_url="https://gemini.test/v1beta",
        throttle=RequestThrottle(max_concurrent=1, requests_per_minute=15, sleep=_noop_sleep),
        max_retries=0,
        transport=httpx.MockTransport(handler),
        sleep=_noop_sleep,
    )
    return ChatAssistant(
        client=client,
        store=store or ConversationStore(ttl_seconds=3600, history_limit=20),
        model="gemini-chat",
    )


def _reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def test_store_keeps_only_the_latest_messages() -> None:
    store = ConversationStore(ttl_seconds=60, history_limit=3)
    for index in range(5):
        store.append("c1", ChatMessage(role="user", content=str(index)))

    assert [item.content for item in store.history("c1")] == ["2", "3", "4"]


def test_store_forgets_idle_conversations() -> None:
    now = [0.0]
    store = ConversationStore(ttl_seconds=60, history_limit=10, clock=lambda: now[0])
    store.append("c1", ChatMessage(role="user", content="hi"))

    now[0] = 59.0
    assert len(store.history("c1")) == 1

    now[0] = 119.0
    assert store.history("c1") == []
    assert len(store) == 0


def test_rule_based_answers_use_the_snapshot() -> None:
    snapshot = {"savings_rate": 12.5, "top_categories": [{"name": "Food", "amount": 900}]}

    assert "12.5%" in answer_rule_based("How can I save more?", snapshot)
    assert "Food" in answer_rule_based("Where does my spending go?", snapshot)
    assert "not configured" in answer_rule_based("hello", None)


def test_blank_message_is_rejected() -> None:
    assistant = _assistant(lambda request: _reply("unused"))

    with pytest.raises(ValueError):
        assistant.send(user_id=1, message="   ")


def test_without_key_replies_from_rules() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assistant = _assistant(handler, api_key="")
    reply = assistant.send(user_id=7, message="Help me budget")

    assert reply.model == "rule-based"
    assert len(reply.conversation_id) == 32
    assert [item.content for item in assistant.history(7, reply.conversation_id)] == ["Help me budget", reply.message]
    assert "50/30/20" in reply.message


def test_conversation_history_is_sent_with_model_roles() -> None:
    bodies: list[dict] = []
    answers = ["First answer", "Second answer"]

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return _reply(answers.pop(0))

    assistant = _assistant(handler)
    first = assistant.send(user_id=1, message="Hi", conversation_id="c1", snapshot={"savings_rate": 20})
    second = assistant.send(user_id=1, message="And then?", conversation_id="c1")

    assert (first.message, second.message) == ("First answer", "Second answer")
    assert second.model == "gemini-chat"
    assert [item["role"] for item in bodies[1]["contents"]] == ["user", "model", "user"]
    assert bodies[1]["contents"][1]["parts"] == [{"text": "First answer"}]
    assert "savings rate: 20" in bodies[0]["systemInstruction"]["parts"][0]["text"]
    assert bodies[0]["generationConfig"]["topP"] == 1.0


def test_clear_drops_history() -> None:
    store = ConversationStore(ttl_seconds=3600, history_limit=20)
    assistant = _assistant(lambda request: _reply("ok"), store=store)
    assistant.send(user_id=1, message="Hi", conversation_id="c1")

    assistant.clear(1, "c1")

    assert assistant.history(1, "c1") == []
    assert len(store) == 0


def test_upstream_failure_propagates() -> None:
    assistant = _assistant(lambda request: httpx.Response(500))

    with pytest.raises(AIServiceError):
        assistant.send(user_id=1, message="Hi", conversation_id="c1")


def test_conversations_are_scoped_to_their_user() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return _reply("noted")

    assistant = _assistant(handler)
    assistant.send(user_id=1, message="my salary is 90M", conversation_id="shared")
    assistant.send(user_id=2, message="hi", conversation_id="shared")

    assert [item["parts"][0]["text"] for item in bodies[1]["contents"]] == ["hi"]
    assert [item.content for item in assistant.history(1, "shared")] == ["my salary is 90M", "noted"]

    assistant.clear(2, "shared")

    assert len(assistant.history(1, "shared")) == 2
    assert assistant.history(2, "shared") == []


def test_generated_conversation_ids_are_unique() -> None:
    assistant = _assistant(lambda request: _reply("ok"))

    first = assistant.send(user_id=1, message="Hi")
    second = assistant.send(user_id=1, message="Hi")

    assert first.conversation_id != second.conversation_id
