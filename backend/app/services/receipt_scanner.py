from __future__ import annotations

from datetime import date
import json
import logging
import re
from typing import Any

from app.services.ai_gateway import AIServiceError, GeminiClient, ResponseCache, content_hash
from app.utils.decimal_math import whole


logger = logging.getLogger("fintrack.ai")

RECEIPT_CATEGORIES = ["Food", "Shopping", "Health", "Entertainment", "Transport", "Bills", "Other"]
FALLBACK_CATEGORY = "Shopping"

RECEIPT_PROMPT = f"""
You are an OCR expert for retail receipts. Read the receipt image and extract its data.

Return ONLY valid JSON, with no explanation before or after it.

Finding the total, highest priority first:
1. "Grand total" / "Total payment" / "TOTAL"
2. "Amount" on the last line of the receipt
3. "Subtotal"
4. "Cash paid" (the amount actually paid)
Always take the FINAL amount after discounts. If change was given, total = cash paid - change.
Amounts often use "." or "," as a thousands separator: "14,000" and "14.000" both mean 14000,
"1.344.600d" means 1344600. Ignore currency markers such as d, VND, or the dong sign.

Output format:
{{
  "success": true,
  "storeName": "store name from the logo or header",
  "storeAddress": "address if present",
  "invoiceNumber": "invoice number if present",
  "date": "YYYY-MM-DD",
  "time": "HH:MM if present",
  "items": [{{"name": "item", "quantity": 1, "unitPrice": 14000, "total": 14000}}],
  "subtotal": 0,
  "discountAmount": 0,
  "taxAmount": 0,
  "totalAmount": 0,
  "paymentMethod": "Cash/Card/Transfer",
  "currency": "VND",
  "suggestedCategory": "one of: {', '.join(RECEIPT_CATEGORIES)}",
  "confidence": 85,
  "rawText": "the key lines you read"
}}

The response must start with {{ and end with }}.
""".strip()

_CURRENCY_CHARS = re.compile(r"[đd₫vn\s]", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)")
_CODE_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CODE_FENCE_CLOSE = re.compile(r"\s*```$")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_GROUPED_NUMBER = re.compile(r":\s*(\d{1,3}(?:,\d{3})+)(?=[,}\]\s])")

MONEY_FIELDS = ("totalAmount", "subtotal", "discountAmount", "taxAmount")


def _is_thousands(parts: list[str]) -> bool:
    return len(parts) > 2 or (len(parts) > 1 and len(parts[1]) == 3)


def clean_amount(value: Any) -> int | float:
    """Normalise a receipt amount such as "14,000" or "1.344.600đ" to a number."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    if not value:
        return 0

    text = _CURRENCY_CHARS.sub("", str(value))
    if "." in text and "," in text:
        if text.count(".") > text.count(","):
            text = text.replace(".", "").replace(",", ".", 1)
        else:
            text = text.replace(",", "")
    elif "." in text:
        if _is_thousands(text.split(".")):
            text = text.replace(".", "")
    elif "," in text:
        if _is_thousands(text.split(",")):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".", 1)

    match = _LEADING_NUMBER.match(text)
    if match is None:
        return 0
    return whole(match.group(0))


def _sanitize_json(text: str) -> str | None:
    candidate = _CODE_FENCE_OPEN.sub("", text.strip())
    candidate = _CODE_FENCE_CLOSE.sub("", candidate)
    match = _JSON_OBJECT.search(candidate)
    if match is None:
        return None
    candidate = _TRAILING_COMMA.sub(r"\1", match.group(0))
    candidate = _CONTROL_CHARS.sub(" ", candidate)
    return _GROUPED_NUMBER.sub(lambda found: ": " + found.group(1).replace(",", ""), candidate)


def _fallback_fields(text: str) -> dict[str, Any] | None:
    total = re.search(r'"totalAmount"\s*:\s*"?(\d[\d,.\s]*)"?', text, re.IGNORECASE)
    if total is None:
        return None
    store = re.search(r'"storeName"\s*:\s*"([^"]+)"', text, re.IGNORECASE)
    found_date = re.search(r'"date"\s*:\s*"([^"]+)"', text, re.IGNORECASE)
    category = re.search(r'"suggestedCategory"\s*:\s*"([^"]+)"', text, re.IGNORECASE)
    return {
        "success": True,
        "storeName": store.group(1) if store else "Unknown",
        "totalAmount": clean_amount(total.group(1)),
        "date": found_date.group(1) if found_date else date.today().isoformat(),
        "suggestedCategory": category.group(1) if category else FALLBACK_CATEGORY,
        "items": [],
        "confidence": 60,
        "note": "Parsed with fallback method",
    }


def _to_quantity(value: Any) -> int:
    try:
        return int(float(value)) or 1
    except (TypeError, ValueError):
        return 1


def normalize_receipt(parsed: dict[str, Any]) -> dict[str, Any]:
    for field in MONEY_FIELDS:
        if parsed.get(field):
            parsed[field] = clean_amount(parsed[field])
    items = parsed.get("items")
    if isinstance(items, list):
        parsed["items"] = [
            {
                **item,
                "unitPrice": clean_amount(item.get("unitPrice") or item.get("price")),
                "total": clean_amount(item.get("total")),
                "quantity": _to_quantity(item.get("quantity")),
            }
            for item in items
            if isinstance(item, dict)
        ]
    return parsed


def parse_receipt_response(text: str) -> dict[str, Any]:
    """Turn the model's reply into a receipt dict, or a failure payload."""
    sanitized = _sanitize_json(text)
    if sanitized is None:
        logger.warning("No JSON object in receipt response: %s", text[:200])
        return {
            "success": False,
            "error": "Could not find JSON in the model response",
            "rawResponse": text[:500],
        }
    try:
        parsed = json.loads(sanitized)
    except json.JSONDecodeError as exc:
        logger.warning("Receipt JSON parse failed (%s), trying fallback", exc)
        parsed = _fallback_fields(text)
        if parsed is None:
            return {
                "success": False,
                "error": "Could not read the receipt. Please take a clearer photo.",
            }
    if not isinstance(parsed, dict):
        return {"success": False, "error": "Unexpected receipt format"}
    return normalize_receipt(parsed)


def strip_data_url(image: str) -> str:
    return re.sub(r"^data:image/\w+;base64,", "", image)


class ReceiptScanner:
    def __init__(self, *, client: GeminiClient, cache: ResponseCache, model: str) -> None:
        self.client = client
        self.cache = cache
        self.model = model

    def analyze(self, image_base64: str, mime_type: str = "image/jpeg") -> dict[str, Any]:
        if not self.client.configured:
            return {"success": False, "error": "Receipt scanning is not configured"}

        key = content_hash(mime_type, image_base64)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Receipt cache hit")
            return cached

        try:
            text = self.client.generate(
                model=self.model,
                contents=[
                    {
                        "role": "user",
                        "parts": [
                            {"text": RECEIPT_PROMPT},
                            {"inlineData": {"mimeType": mime_type, "data": image_base64}},
                        ],
                    }
                ],
                temperature=0.1,
                top_p=0.8,
                max_output_tokens=2048,
            )
        except AIServiceError as exc:
            logger.error("Receipt analysis failed: %s", exc)
            return {"success": False, "error": str(exc)}

        if not text:
            return {"success": False, "error": "The model returned an empty response"}

        result = parse_receipt_response(text)
        if result.get("success", True) is not False:
            self.cache.set(key, result)
        return result

    def status(self) -> dict[str, Any]:
        return {
            **self.client.throttle.status(),
            "cache_size": len(self.cache),
            "configured": self.client.configured,
        }
