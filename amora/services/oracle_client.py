"""
Amora — HTTP client for the Gemini compatibility oracle.

Talks to the ``generateContent`` REST endpoint with ``httpx`` so that every
call can carry its own API key (``x-goog-api-key``); the key is supplied per
attempt by the caller's ``CredentialRotator``.

Failures of any kind (transport error, timeout, non-2xx, non-JSON body) are
raised as ``OracleCallError``.  Inline retries are off by default
(``ORACLE_MAX_ATTEMPTS=1``); when enabled, tenacity retries only rate-limit,
server-side and transport failures, drawing a fresh key for each attempt.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from amora.config import Settings, get_settings

logger = structlog.get_logger("amora.oracle_client")


class OracleCallError(Exception):
    """A single oracle call did not yield a usable HTTP response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _is_retryable_oracle_error(exc: BaseException) -> bool:
    """Retry on HTTP 429, 5xx and transport failures (no status code)."""
    if not isinstance(exc, OracleCallError):
        return False
    if exc.status_code is None:
        return True
    return exc.status_code == 429 or exc.status_code >= 500


class GeminiOracleClient:
    """Minimal async client for Gemini text generation."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        model: str,
        api_base: str,
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
        max_attempts: int = 1,
    ) -> None:
        self._http = http_client
        self.model = model
        self.endpoint = f"{api_base.rstrip('/')}/models/{model}:generateContent"
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.max_attempts = max_attempts

    @classmethod
    def from_settings(
        cls,
        http_client: httpx.AsyncClient,
        settings: Settings | None = None,
    ) -> GeminiOracleClient:
        settings = settings or get_settings()
        return cls(
            http_client=http_client,
            model=settings.GEMINI_MODEL,
            api_base=settings.GEMINI_API_BASE,
            temperature=settings.GEMINI_TEMPERATURE,
            max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
            max_attempts=settings.ORACLE_MAX_ATTEMPTS,
        )

    def _request_body(self, prompt: str) -> dict:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    async def generate(
        self,
        prompt: str,
        key_supplier: Callable[[], str],
        timeout: float,
    ) -> Any:
        """Send ``prompt`` and return the decoded JSON response body.

        Parameters
        ----------
        prompt:
            Fully constructed prompt text.
        key_supplier:
            Called once per attempt to obtain the API key to use.
        timeout:
            Wall-clock limit for one attempt, in seconds.
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable_oracle_error),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(
                        "oracle_call_retry",
                        model=self.model,
                        attempt_number=attempt.retry_state.attempt_number,
                    )
                return await self._post(prompt, key_supplier(), timeout)

    async def _post(self, prompt: str, api_key: str, timeout: float) -> Any:
        try:
            response = await asyncio.wait_for(
                self._http.post(
                    self.endpoint,
                    json=self._request_body(prompt),
                    headers={"x-goog-api-key": api_key},
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise OracleCallError(f"timed out after {timeout}s") from exc
        except httpx.HTTPError as exc:
            raise OracleCallError(f"transport error: {exc!r}") from exc

        if not response.is_success:
            raise OracleCallError(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as exc:
            raise OracleCallError(
                "response body is not JSON", status_code=response.status_code
            ) from exc
