import json

import httpx

from app.services.ai_gateway import GeminiClient, RequestThrottle, ResponseCache
from app.services.receipt_scanner import (
    FALLBACK_CATEGORY,
    ReceiptScanner,
    clean_amount,
    parse_receipt_response,
    strip_data_url,
)


def _noop_sleep(seconds: float) -> None:
    return None


def _scanner(handler, *, api_key: str = "test-key") -> ReceiptScanner:
    throttle = RequestThrottle(max_concurrent=1, requests_per_minute=15, sleep=_noop_sleep)
    client = GeminiClient(
        api_key=api_key,
        base_url="https://gemini.test/v1beta",
        throttle=throttle,
        base_delay=0.0,
        max_delay=0.0,
        transport=httpx.MockTransport(handler),
        sleep=_noop_sleep,
    )
    return ReceiptScanner(client=client, cache=ResponseCache(ttl_seconds=300, max_entries=100), model="vision")


def test_clean_amount_understands_thousands_separators() -> None:
    assert clean_amount("14,000") == 14000
    assert clean_amount("14.000") == 14000
    assert clean_amount("1.344.600đ") == 1344600
    assert clean_amount("25 000 VND") == 25000
    assert clean_amount("1,234.56") == 1235
    assert clean_amount("12,5") == 13


def test_clean_amount_passes_numbers_through() -> None:
    assert clean_amount(25000) == 25000
    assert clean_amount(12.5) == 12.5
    assert clean_amount(None) == 0
    assert clean_amount("") == 0
    assert clean_amount("n/a") == 0


def test_parse_fenced_json_with_sloppy_numbers() -> None:
    text = '```json\n{"success": true, "storeName": "Mart", "totalAmount": 14,000, "items": [],}\n```'

    parsed = parse_receipt_response(text)

    assert parsed["storeName"] == "Mart"
    assert parsed["totalAmount"] == 14000
    assert parsed["items"] == []


def test_parse_normalises_item_prices() -> None:
    text = json.dumps(
        {
            "success": True,
            "totalAmount": "45.000",
            "items": [
                {"name": "Coffee", "quantity": "2", "price": "15.000", "total": "30.000"},
                {"name": "Cake", "quantity": None, "unitPrice": 15000, "total": 15000},
            ],
        }
    )

    parsed = parse_receipt_response(text)

    assert parsed["totalAmount"] == 45000
    coffee, cake = parsed["items"]
    assert (coffee["quantity"], coffee["unitPrice"], coffee["total"]) == (2, 15000, 30000)
    assert cake["quantity"] == 1


def test_parse_falls_back_to_field_extraction() -> None:
    text = '{"storeName": "Mart", "totalAmount": "1.344.600đ", "date": "2026-03-01" "items": []}'

    parsed = parse_receipt_response(text)

    assert parsed["success"] is True
    assert parsed["storeName"] == "Mart"
    assert parsed["totalAmount"] == 1344600
    assert parsed["date"] == "2026-03-01"
    assert parsed["suggestedCategory"] == FALLBACK_CATEGORY
    assert parsed["confidence"] == 60


def test_parse_reports_unreadable_responses() -> None:
    missing = parse_receipt_response("Sorry, the image is too blurry.")
    broken = parse_receipt_response('{"storeName": "Mart" "oops"}')

    assert missing["success"] is False
    assert missing["rawResponse"] == "Sorry, the image is too blurry."
    assert broken == {"success": False, "error": "Could not read the receipt. Please take a clearer photo."}


def test_strip_data_url_prefix() -> None:
    assert strip_data_url("data:image/png;base64,AAAA") == "AAAA"
    assert strip_data_url("AAAA") == "AAAA"


def test_scanner_caches_identical_images() -> None:
    calls: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        reply = '{"success": true, "storeName": "Mart", "totalAmount": "14,000"}'
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": reply}]}}]})

    scanner = _scanner(handler)
    first = scanner.analyze("AAAA", "image/png")
    second = scanner.analyze("AAAA", "image/png")

    assert first == second
    assert first["totalAmount"] == 14000
    assert len(calls) == 1
    inline = calls[0]["contents"][0]["parts"][1]["inlineData"]
    assert inline == {"mimeType": "image/png", "data": "AAAA"}
    assert calls[0]["generationConfig"]["temperature"] == 0.1
    assert scanner.status()["cache_size"] == 1


def test_scanner_does_not_cache_failures() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "no receipt here"}]}}]})

    scanner = _scanner(handler)

    assert scanner.analyze("BBBB")["success"] is False
    assert scanner.analyze("BBBB")["success"] is False
    assert len(calls) == 2


def test_upstream_error_becomes_failure_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "bad image"}})

    result = _scanner(handler).analyze("CCCC")

    assert result["success"] is False
    assert "AI request failed" in result["error"]


def test_unconfigured_scanner_reports_it() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    scanner = _scanner(handler, api_key="")

    assert scanner.analyze("AAAA") == {"success": False, "error": "Receipt scanning is not configured"}
    assert scanner.status()["configured"] is False
