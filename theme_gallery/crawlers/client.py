"""Resilient async HTTP client shared by theme providers."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from theme_gallery.config.settings import settings
from theme_gallery.crawlers.contracts import FetchResult, FetchState

logger = logging.getLogger(__name__)

_REDACTED_VALUE = "***REDACTED***"
_SENSITIVE_KEYS = (
    "authorization",
    "token",
    "api_key",
    "apikey",
    "secret",
    "password",
    "cookie",
)
_PAYLOAD_KEYS = ("body", "raw", "content", "payload", "response", "readme")
_TOKEN_PATTERNS = (
    re.compile(r"(?i)(bearer\s+)[^\s,;]+"),
    re.compile(r"(?i)(token\s*[=:]?\s+)[^\s,;]+"),
    re.compile(r"(?i)(access_token=)[^&\s]+"),
    re.compile(r"(?i)(api[_-]?key\s*[=:]\s*)[^\s,;]+"),
)


def sanitize_for_log(value: Any, *, key: Optional[str] = None) -> Any:
    """Return a recursively sanitized copy of log payloads."""

    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for raw_key, raw_value in value.items():
            field = str(raw_key)
            if _contains_keyword(field, _SENSITIVE_KEYS):
                sanitized[field] = _REDACTED_VALUE
                continue
            if _contains_keyword(field, _PAYLOAD_KEYS) and isinstance(raw_value, str):
                sanitized[field] = _redact_payload(raw_value)
                continue
            sanitized[field] = sanitize_for_log(raw_value, key=field)
        return sanitized

    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_log(item, key=key) for item in value]

    if isinstance(value, str):
        redacted = _redact_text(value)
        if key and _contains_keyword(key, _PAYLOAD_KEYS):
            return _redact_payload(redacted)
        return redacted

    return value


def sanitize_log_extra(**kwargs: Any) -> dict[str, Any]:
    """Helper for `extra=` payloads in structured logging."""

    return {key: sanitize_for_log(value, key=key) for key, value in kwargs.items()}


def _contains_keyword(field_name: str, keywords: tuple[str, ...]) -> bool:
    lowered = field_name.lower()
    return any(keyword in lowered for keyword in keywords)


def _redact_payload(raw: str) -> str:
    trimmed = raw.strip()
    if not trimmed:
        return ""
    return f"<redacted payload ({len(raw)} chars)>"


def _redact_text(raw: str) -> str:
    redacted = raw
    for pattern in _TOKEN_PATTERNS:
        redacted = pattern.sub(rf"\1{_REDACTED_VALUE}", redacted)
    return redacted


class _RateLimitRetryableError(Exception):
    """Retryable rate-limit signal for tenacity."""


class ThemeHttpClient:
    """JSON-over-HTTP client with rate-limit retries and an injectable transport."""

    def __init__(
        self,
        *,
        headers: Optional[dict[str, str]] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
        rate_limit_buffer_seconds: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._headers = dict(headers or {})
        self._timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.HTTP_TIMEOUT_SECONDS
        self._max_retries = max_retries if max_retries is not None else settings.HTTP_MAX_RETRIES
        self._backoff_base_seconds = (
            backoff_base_seconds if backoff_base_seconds is not None else settings.HTTP_BACKOFF_BASE_SECONDS
        )
        self._backoff_max_seconds = (
            backoff_max_seconds if backoff_max_seconds is not None else settings.HTTP_BACKOFF_MAX_SECONDS
        )
        self._rate_limit_buffer_seconds = (
            rate_limit_buffer_seconds
            if rate_limit_buffer_seconds is not None
            else settings.HTTP_RATE_LIMIT_BUFFER_SECONDS
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ThemeHttpClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> FetchResult[Any]:
        return await self._request("GET", url, params=params, headers=headers)

    async def post_json(
        self,
        url: str,
        *,
        content: str,
        headers: Optional[dict[str, str]] = None,
    ) -> FetchResult[Any]:
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        return await self._request("POST", url, content=content, headers=request_headers)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        content: Optional[str] = None,
    ) -> FetchResult[Any]:
        client = self._ensure_client()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(self._max_retries, 1)),
                wait=wait_exponential(multiplier=self._backoff_base_seconds, max=self._backoff_max_seconds),
                retry=retry_if_exception_type(_RateLimitRetryableError),
                reraise=True,
            ):
                with attempt:
                    response = await client.request(method, url, params=params, headers=headers, content=content)
                    return await self._to_result(response, url=url, params=params)
        except _RateLimitRetryableError as exc:
            logger.warning(
                "Upstream request failed after rate-limit retries",
                extra=sanitize_log_extra(url=url, params=params, error=str(exc), status_code=429),
            )
            return FetchResult(state=FetchState.RATE_LIMITED, error=str(exc), status_code=429)
        except httpx.HTTPError as exc:
            logger.warning(
                "Upstream request failed",
                extra=sanitize_log_extra(url=url, params=params, error=str(exc)),
            )
            return FetchResult(state=FetchState.FAILED, error=str(exc))

        return FetchResult(state=FetchState.FAILED, error="Unknown upstream request failure")

    async def _to_result(
        self,
        response: httpx.Response,
        *,
        url: str,
        params: Optional[dict[str, Any]],
    ) -> FetchResult[Any]:
        headers = dict(response.headers)

        if response.status_code in (403, 429):
            wait_seconds = self._compute_rate_limit_wait(response.headers)
            logger.warning(
                "Upstream rate limit encountered",
                extra=sanitize_log_extra(
                    url=url,
                    params=params,
                    status_code=response.status_code,
                    retry_after_seconds=wait_seconds,
                ),
            )
            if wait_seconds > 0:
                await asyncio.sleep(wait_seconds)
            raise _RateLimitRetryableError(f"Upstream rate limit encountered ({response.status_code})")

        if response.status_code == 404:
            return FetchResult(state=FetchState.NOT_FOUND, status_code=404, headers=headers, error="not found")

        if response.status_code != 200:
            logger.warning(
                "Upstream returned unexpected status",
                extra=sanitize_log_extra(url=url, params=params, status_code=response.status_code),
            )
            return FetchResult(
                state=FetchState.FAILED,
                status_code=response.status_code,
                headers=headers,
                error=f"unexpected status {response.status_code}",
            )

        try:
            data = response.json()
        except ValueError as exc:
            return FetchResult(
                state=FetchState.MALFORMED,
                status_code=response.status_code,
                headers=headers,
                error=f"invalid JSON payload: {exc}",
            )

        return FetchResult(state=FetchState.OK, data=data, status_code=response.status_code, headers=headers)

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client

        headers = {
            "Accept": "application/json",
            "User-Agent": settings.USER_AGENT,
        }
        headers.update(self._headers)

        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=self._timeout_seconds,
            transport=self._transport,
            follow_redirects=True,
        )
        return self._client

    def _compute_rate_limit_wait(self, headers: httpx.Headers) -> float:
        retry_after = headers.get("retry-after")
        if retry_after is not None:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                pass

        reset_raw = headers.get("x-ratelimit-reset")
        if reset_raw is not None:
            try:
                reset_epoch = int(reset_raw)
                wait_seconds = reset_epoch - int(time.time()) + self._rate_limit_buffer_seconds
                return float(max(wait_seconds, 0))
            except ValueError:
                pass

        return self._backoff_base_seconds
