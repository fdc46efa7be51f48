from collections.abc import Generator
from datetime import date

from fastapi import HTTPException
from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_conversation_store, get_db, get_gemini_client, get_today
from app.api.responses import unwrap
from app.db.base import Base
from app.main import app
from app.models.user import User
from app.services.ai_gateway import GeminiClient, RequestThrottle
from app.services.assistant import ConversationStore, conversation_key
from app.services.results import Failure
from app.services.seed import DEMO_USER_EMAIL, seed_demo_data


TODAY = date(2026, 3, 20)


def _session_factory(*, create_schema: bool = True) -> sessionmaker:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    if create_schema:
        Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def _override_db(factory: sessionmaker):
    def _get_db() -> Generator[Session, None, None]:
        db = factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


def _offline_client() -> GeminiClient:
    return GeminiClient(
        api_key="",
        base_url="https://gemini.test/v1beta",
        throttle=RequestThrottle(max_concurrent=1, requests_per_minute=10),
    )


def _add_user(factory: sessionmaker, email: str) -> int:
    with factory() as db:
        user = User(email=email, full_name="Another User", is_active=True)
        db.add(user)
        db.commit()
        return user.id


@pytest.fixture()
def factory() -> Generator[sessionmaker, None, None]:
    factory = _session_factory()
    with factory() as db:
        seed_demo_data(db, today=TODAY)
    app.dependency_overrides[get_db] = _override_db(factory)
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_gemini_client] = _offline_client
    yield factory
    app.dependency_overrides.clear()


@pytest.fixture()
def client(factory: sessionmaker) -> TestClient:
    return TestClient(app)


def test_health_endpoints(client: TestClient) -> None:
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/api/health").json()["status"] == "ok"


def test_summary_uses_envelope_and_camel_case(client: TestClient) -> None:
    body = client.get("/api/reports/summary").json()

    assert body["success"] is True
    assert body["data"]["totalIncome"] == 60000000.0
    assert body["data"]["balance"] == pytest.approx(body["data"]["totalIncome"] - body["data"]["totalExpense"])
    assert body["data"]["transactionCount"] > 0


def test_budget_status_for_current_month(client: TestClient) -> None:
    rows = client.get("/api/reports/budget-status").json()["data"]
    food = next(row for row in rows if row["categoryName"] == "Food")

    assert len(rows) == 4
    assert food["spent"] == 432000.0
    assert food["percentage"] == 17


def test_category_totals_and_trend(client: TestClient) -> None:
    by_category = client.get("/api/reports/by-category", params={"type": "expense"}).json()["data"]
    trend = client.get("/api/reports/monthly-trend", params={"months": 6}).json()["data"]

    assert by_category[0]["name"] == "Housing"
    assert [row["total"] for row in by_category] == sorted((row["total"] for row in by_category), reverse=True)
    assert [row["month"] for row in trend] == ["2025-12", "2026-01", "2026-02", "2026-03"]


def test_analytics_endpoints(client: TestClient) -> None:
    anomalies = client.get("/api/analytics/anomalies").json()["data"]
    health = client.get("/api/analytics/health-score").json()["data"]
    savings = client.get("/api/analytics/savings").json()["data"]
    insights = client.get("/api/analytics/insights").json()["data"]

    assert anomalies["statistics"]["totalTransactions"] > 0
    assert 0 <= health["totalScore"] <= 100
    assert health["grade"] in {"A", "B", "C", "D", "F"}
    assert set(health["breakdown"]) == {"savingsRate", "budgetCompliance", "spendingStability", "diversification"}
    assert all(isinstance(row["score"], int) for row in health["breakdown"].values())
    assert savings["recommendations"][0]["category"] == "Housing"
    assert insights["source"] == "rule"
    assert insights["basedOn"]["period"] == "last 3 months"


def test_smart_endpoints(client: TestClient) -> None:
    analysis = client.get("/api/smart/analysis", params={"period": "week"}).json()["data"]
    patterns = client.get("/api/smart/patterns").json()["data"]
    budgets = client.get("/api/smart/budget-suggestions").json()["data"]
    forecast = client.get("/api/smart/forecast", params={"months": 2}).json()["data"]

    assert analysis["period"] == "week"
    assert analysis["aiAnalysis"] is None
    assert patterns["patterns"]["peakSpendingDay"]["day"]
    assert len(patterns["patterns"]["byDayOfWeek"]) == 7
    assert budgets["summary"]["budgetRule"] == "50/30/20"
    assert [point["month"] for point in forecast["forecast"]] == ["2026-04", "2026-05"]
    assert forecast["trends"]["income"] in {"increasing", "decreasing", "stable"}


def test_invalid_period_is_rejected(client: TestClient) -> None:
    assert client.get("/api/smart/analysis", params={"period": "year"}).status_code == 422


def test_predictions(client: TestClient) -> None:
    next_month = client.get("/api/predictions/next-month").json()["data"]
    by_category = client.get("/api/predictions/by-category").json()["data"]

    assert (next_month["month"], next_month["year"]) == (4, 2026)
    assert len(next_month["historicalData"]) == 4
    assert 0 <= next_month["confidence"] <= 100
    assert {row["name"] for row in next_month["categories"]} == {row["name"] for row in by_category}
    assert {row["name"] for row in by_category} >= {"Housing", "Food"}


def test_new_user_gets_insufficient_data_payloads(client: TestClient, factory: sessionmaker) -> None:
    headers = {"X-User-Id": str(_add_user(factory, "new@fintrack.app"))}

    anomalies = client.get("/api/analytics/anomalies", headers=headers).json()
    prediction = client.get("/api/predictions/next-month", headers=headers).json()

    assert anomalies["success"] is True
    assert anomalies["data"]["anomalies"] == []
    assert "message" in anomalies["data"]
    assert prediction["data"]["prediction"] is None
    assert prediction["data"]["confidence"] == 0


def test_unknown_user_is_rejected(client: TestClient) -> None:
    response = client.get("/api/reports/summary", headers={"X-User-Id": "999"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid user."}


def test_chat_falls_back_to_rules_without_key(client: TestClient) -> None:
    response = client.post("/api/chat/message", json={"message": "How can I save more?"})

    data = response.json()["data"]
    assert response.status_code == 200
    assert data["model"] == "rule-based"
    assert "savings rate" in data["message"]

    cleared = client.post("/api/chat/clear", json={"conversationId": data["conversationId"]})
    assert cleared.json() == {"success": True, "message": "Conversation history cleared"}


def test_blank_chat_message_is_rejected(client: TestClient) -> None:
    response = client.post("/api/chat/message", json={"message": "   "})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Message is required"}


def test_ocr_requires_configuration(client: TestClient) -> None:
    response = client.post("/api/ocr/analyze-base64", json={"image": "data:image/png;base64,AAAA"})
    status = client.get("/api/ocr/status").json()["data"]

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert status["configured"] is False
    assert status["requestsLastMinute"] == 0


def test_storage_errors_use_error_envelope() -> None:
    app.dependency_overrides[get_db] = _override_db(_session_factory(create_schema=False))
    try:
        response = TestClient(app).get("/api/reports/summary")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Could not load your financial data. Please try again.",
    }


def test_chat_history_is_private_per_user(client: TestClient, factory: sessionmaker) -> None:
    store = ConversationStore(ttl_seconds=3600, history_limit=20)
    app.dependency_overrides[get_conversation_store] = lambda: store
    with factory() as db:
        demo_id = db.scalar(select(User.id).where(User.email == DEMO_USER_EMAIL))
    other = {"X-User-Id": str(_add_user(factory, "other@fintrack.app"))}

    client.post("/api/chat/message", json={"message": "my salary is 90M", "conversationId": "shared"})
    client.post("/api/chat/message", json={"message": "hi", "conversationId": "shared"}, headers=other)
    cleared = client.post("/api/chat/clear", json={"conversationId": "shared"}, headers=other)

    assert cleared.status_code == 200
    history = store.history(conversation_key(demo_id, "shared"))
    assert [item.content for item in history][0] == "my salary is 90M"
    assert len(history) == 2


def test_unwrap_turns_failure_into_server_error() -> None:
    with pytest.raises(HTTPException) as excinfo:
        unwrap(Failure(cause="Could not load your financial data."), lambda data: data)

    assert excinfo.value.status_code == 500
    assert excinfo.value.detail == "Could not load your financial data."
