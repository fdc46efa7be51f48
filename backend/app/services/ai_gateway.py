"""Shared plumbing for calls to the hosted language model.

The gateway keeps outbound traffic inside the provider's free-tier limits:
``RequestThrottle`` bounds concurrency and requests per minute,
``call_with_retry`` backs off exponentially with jitter on retryable
failures, and ``ResponseCache`` memoises results by content hash for a short
TTL. Instances are created by the API dependency layer and injected into the
services that need them.
"""
from __future__ import annotations

from collections import OrderedDict, deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
import hashlib
import logging
import random
import threading
import time
from typing import Any, TypeVar

import httpx


logger = logging.getLogger("fintrack.ai")

T = TypeVar("T")

RETRYABLE_STATUS = {429, 500, 503}
RATE_LIMIT_WINDOW_SECONDS = 60.0


class AIServiceError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AIServiceBusyError(AIServiceError):
    pass


def content_hash(*parts: str | bytes) -> str:
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part.encode("utf-8") if isinstance(part, str) else part)
        digest.update(b"\x00")
    return digest.hexdigest()


class ResponseCache:
    """TTL cache with a size cap; the oldest entry is evicted first."""

    def __init__(
        self,
        *,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RequestThrottle:
    """Bounds in-flight calls and calls per trailing minute.

    Callers that exceed the per-minute ceiling wait for the oldest request to
    age out of the window instead of failing.
    """

    def __init__(
        self,
        *,
        max_concurrent: int,
        requests_per_minute: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_concurrent = max_concurrent
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._sleep = sleep
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._timestamps: deque[float] = deque()
        self._lock = threading.Lock()
        self._active = 0
        self._waiting = 0

    def _purge(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= RATE_LIMIT_WINDOW_SECONDS:
            self._timestamps.popleft()

    def _reserve(self) -> None:
        while True:
            with self._lock:
                now = self._clock()
                self._purge(now)
                if len(self._timestamps) < self.requests_per_minute:
                    self._timestamps.append(now)
                    return
                wait = RATE_LIMIT_WINDOW_SECONDS - (now - self._timestamps[0])
            logger.info("AI request budget exhausted, waiting %.1fs", wait)
            self._sleep(max(wait, 0.1))

    @contextmanager
    def slot(self) -> Iterator[None]:
        with self._lock:
            self._waiting += 1
        self._slots.acquire()
        try:
            self._reserve()
            with self._lock:
                self._waiting -= 1
                self._active += 1
            try:
                yield
            finally:
                with self._lock:
                    self._active -= 1
        finally:
            self._slots.release()

    def status(self) -> dict[str, int]:
        with self._lock:
            self._purge(self._clock())
            return {
                "active_requests": self._active,
                "queue_length": self._waiting,
                "requests_last_minute": len(self._timestamps),
            }


def backoff_delay(
    attempt: int,
    *,
    base_delay: float,
    max_delay: float,
    rng: random.Random | None = None,
) -> float:
    jitter = (rng or random).uniform(0, 1)
    return min(base_delay * (2 ** attempt), max_delay) + jitter


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return isinstance(exc, httpx.TransportError)


def _is_rate_limited(exc: Exception) -> bool:
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429


def call_with_retry(
    fn: Callable[[], T],
    *,
    max_retries: int,
    base_delay: float,
    max_delay: float,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> T:
    attempt = 0
    while True:
        try:
            return fn()
        except (httpx.HTTPStatusError, httpx.TransportError) as exc:
            if _is_retryable(exc) and attempt < max_retries:
                delay = backoff_delay(attempt, base_delay=base_delay, max_delay=max_delay, rng=rng)
                attempt += 1
                logger.warning("AI call failed (%s), retry %d/%d in %.1fs", exc, attempt, max_retries, delay)
                sleep(delay)
                continue
            if _is_rate_limited(exc):
                raise AIServiceBusyError(
                    "The AI service is overloaded. Please try again in a minute or two.",
                    status_code=429,
                ) from exc
            status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            raise AIServiceError(f"AI request failed: {exc}", status_code=status_code) from exc


def extract_gemini_text(payload: dict[str, Any]) -> str | None:
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    chunks: list[str] = []
    for part in parts:
        if isinstance(part, dict):
            text = part.get("text")
            if isinstance(text, str) and text.strip():
                chunks.append(text.strip())
    if not chunks:
        return None
    return "\n".join(chunks).strip()


class GeminiClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        throttle: RequestThrottle,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        timeout: float = 45.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")
        self.throttle = throttle
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _post(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/models/{model}:generateContent"
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(
                url,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
            )
        if response.status_code >= 400:
            raise httpx.HTTPStatusError(
                message=f"Gemini request failed with status {response.status_code}",
                request=response.request,
                response=response,
            )
        return response.json()

    def generate(
        self,
        *,
        model: str,
        contents: list[dict[str, Any]],
        system_instruction: str | None = None,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
        top_p: float | None = None,
    ) -> str | None:
        if not self.configured:
            raise AIServiceError("AI service is not configured.")
        generation_config: dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        }
        if top_p is not None:
            generation_config["topP"] = top_p
        payload: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        with self.throttle.slot():
            response_json = call_with_retry(
                lambda: self._post(model, payload),
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                max_delay=self.max_delay,
                sleep=self._sleep,
            )
        return extract_gemini_text(response_json)

    def generate_text(self, *, model: str, prompt: str, **options: Any) -> str | None:
        return self.generate(
            model=model,
            contents=[{"role": "user", "parts": [{"text": prompt}]}],
            **options,
        )
