"""Authenticated HTTP calls to the task backend.

`RemoteTransport.request` is the single place where HTTP status codes and
raw response bodies are inspected. Everything above it only sees the
unwrapped `data` member or a `SyncError` subclass.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import requests
from google.oauth2.credentials import Credentials

from tasksync.config import TOKEN_SLOT, USER_SLOT, SyncSettings
from tasksync.domain.errors import (
    AuthenticationError,
    MalformedRecordError,
    NetworkError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from tasksync.infrastructure.cache.json_cache import JsonCache


logger = logging.getLogger(__name__)


class RemoteTransport:
    def __init__(
        self,
        cache: JsonCache,
        settings: SyncSettings | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.cache = cache
        self.settings = settings or SyncSettings()
        self.session = session or requests.Session()
        self._sleep = sleep

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict | None = None,
    ) -> Any:
        """Send one logical request, retrying rate limits and connectivity failures.

        Returns:
            The `data` member of the response envelope (None when absent).

        Raises:
            AuthenticationError: no stored credential, or the server answered 401.
            RateLimitError: still 429 after the retry budget.
            NetworkError: no response after the retry budget.
            ServerError: 5xx.
            ValidationError: any other 4xx.
            MalformedRecordError: 2xx without a usable envelope.
        """
        # The counter belongs to this call only; concurrent calls never share it.
        attempt = 0
        max_retries = self.settings.max_retries

        while True:
            headers = await self._build_headers()
            try:
                response = await asyncio.to_thread(
                    self.session.request,
                    method,
                    self._url(path),
                    headers=headers,
                    json=json,
                    params=params,
                    timeout=self.settings.request_timeout,
                )
            except requests.RequestException as exc:
                if attempt < max_retries:
                    attempt += 1
                    delay = self.settings.network_retry_delay
                    logger.warning(
                        "Network error on %s %s. Retrying in %.1fs... (%d/%d)",
                        method, path, delay, attempt, max_retries,
                    )
                    await self._sleep(delay)
                    continue
                logger.error("Network error on %s %s after %d retries: %s", method, path, attempt, exc)
                raise NetworkError() from exc

            status = response.status_code
            if status == 429:
                if attempt < max_retries:
                    attempt += 1
                    delay = (2 ** attempt) * self.settings.rate_limit_base_delay
                    logger.warning(
                        "Rate limited on %s %s. Retrying in %.1fs... (%d/%d)",
                        method, path, delay, attempt, max_retries,
                    )
                    await self._sleep(delay)
                    continue
                logger.error("Max retries exceeded for rate limiting on %s %s", method, path)
                raise RateLimitError(status=status)

            if status == 401:
                await self._purge_credentials()
                raise AuthenticationError(status=status)
            if status >= 500:
                raise ServerError(self._server_message(response) or None, status=status)
            if status >= 400:
                raise ValidationError(self._server_message(response) or None, status=status)
            return self._unwrap(response)

    async def _build_headers(self) -> dict:
        token = await self.cache.read(TOKEN_SLOT)
        if not isinstance(token, str) or not token:
            raise AuthenticationError("No authentication token found.")
        headers = {
            "Content-Type": "application/json",
            "X-Request-ID": uuid.uuid4().hex,
        }
        Credentials(token=token).apply(headers)
        return headers

    async def _purge_credentials(self) -> None:
        logger.warning("Stored credential was rejected; clearing it.")
        await self.cache.delete(TOKEN_SLOT)
        await self.cache.delete(USER_SLOT)

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    @staticmethod
    def _server_message(response) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if not isinstance(body, dict):
            return ""
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        message = body.get("message")
        return message if isinstance(message, str) else ""

    @staticmethod
    def _unwrap(response) -> Any:
        if response.status_code == 204:
            return None
        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedRecordError("Response body is not JSON.", status=response.status_code) from exc
        if not isinstance(body, dict) or body.get("success") is not True:
            message = body.get("message") if isinstance(body, dict) else None
            raise MalformedRecordError(message or "Request was not successful.", status=response.status_code)
        return body.get("data")
