"""
Discord REST client.

- requests.Session with the bot token in the Authorization header.
- Methods: get_json, post_json, patch_json, put_json, delete_json.
- Retries with exponential backoff on network errors and 5xx.
- No retry on 4xx.
- Errors as TransportError with status, url, and body; 404 raises NotFoundError,
  401/403 raise AuthError so callers can tell a vanished object from a failure.

Usage:
    client = DiscordClient(token, timeout_sec=10, retries=3)
    member = client.get_json("/guilds/1/members/2")
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import requests

JSON = Union[Dict[str, Any], List[Any]]

DEFAULT_BASE_URL = "https://discord.com/api/v10"


@dataclass
class TransportError(Exception):
    """HTTP/transport error with context."""
    status: int
    url: str
    body: str = ""
    message: str = ""

    def __str__(self) -> str:
        base = f"{type(self).__name__}(status={self.status}, url={self.url})"
        if self.message:
            base += f": {self.message}"
        if self.body:
            base += f" body={self.body[:200]}"
        return base


class NotFoundError(TransportError):
    """The addressed object does not exist remotely (HTTP 404)."""


class AuthError(TransportError):
    """The token was rejected or lacks permissions (HTTP 401/403)."""


def _error_for(status: int, url: str, body: str, message: str) -> TransportError:
    if status == 404:
        return NotFoundError(status=status, url=url, body=body, message=message)
    if status in (401, 403):
        return AuthError(status=status, url=url, body=body, message=message)
    return TransportError(status=status, url=url, body=body, message=message)


def _discord_message(body: str) -> str:
    """Pull the human message out of a Discord error body ({"message": ..., "code": ...})."""
    try:
        data = json.loads(body)
    except ValueError:
        return ""
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return ""


class DiscordClient:
    """Minimal JSON HTTP client for the Discord REST API with retries and timeouts."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        token_type: str = "Bot",
        verify_tls: bool = True,
        timeout_sec: float = 30,
        retries: int = 3,
        backoff_base_sec: float = 0.05,
        logger: Optional[logging.LoggerAdapter] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.verify_tls = verify_tls
        self.timeout = float(timeout_sec)
        self.retries = max(0, int(retries))
        self.backoff = float(backoff_base_sec)
        self.log = logger or logging.getLogger(__name__)

        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"{token_type} {token}".strip(),
            "User-Agent": "DiscordBot (discordsync, 1.0)",
        })

    # ------------- Public API -------------

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> JSON:
        return self._request_json("GET", path, params=params)

    def post_json(self, path: str, payload: Dict[str, Any]) -> JSON:
        return self._request_json("POST", path, payload)

    def patch_json(self, path: str, payload: Dict[str, Any]) -> JSON:
        return self._request_json("PATCH", path, payload)

    def put_json(self, path: str, payload: Dict[str, Any]) -> JSON:
        return self._request_json("PUT", path, payload)

    def delete_json(self, path: str) -> JSON:
        return self._request_json("DELETE", path)

    def close(self) -> None:
        self.session.close()

    # ------------- Internal -------------

    def _full_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request_json(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> JSON:
        url = self._full_url(path)

        attempts = self.retries + 1
        for attempt in range(attempts):
            start = time.time()
            try:
                resp = self.session.request(
                    method=method,
                    url=url,
                    json=payload,
                    params=params,
                    timeout=self.timeout,
                    verify=self.verify_tls,
                )
            except requests.RequestException as e:
                # Network/timeout. Treat as retryable if attempts remain.
                err = TransportError(status=0, url=url, message=str(e))
                self._log_err(method, path, 0, err)
                if attempt < attempts - 1:
                    self._sleep_backoff(attempt)
                    continue
                raise err from e

            elapsed = (time.time() - start) * 1000
            status = resp.status_code
            if status >= 400:
                body = resp.text or ""
                err = _error_for(status, url, body, _discord_message(body) or resp.reason or "")
                self._log_err(method, path, status, err)
                # Retry only on 5xx
                if 500 <= status < 600 and attempt < attempts - 1:
                    self._sleep_backoff(attempt)
                    continue
                raise err

            self._log_ok(method, path, status, elapsed)
            if status == 204 or not resp.content:
                return {}
            try:
                return resp.json()
            except ValueError as e:  # pragma: no cover (rare)
                raise TransportError(status=status, url=url, body=resp.text, message=str(e)) from e

        raise TransportError(status=0, url=url, message="no attempt made")  # pragma: no cover

    def _sleep_backoff(self, attempt: int) -> None:
        delay = self.backoff * (2 ** attempt)
        time.sleep(delay)

    def _log_ok(self, method: str, path: str, status: int, elapsed_ms: float) -> None:
        self.log.debug("%s %s -> %s in %.1fms", method, path, status, elapsed_ms)

    def _log_err(self, method: str, path: str, status: int, err: TransportError) -> None:
        self.log.warning("%s %s failed (status=%s): %s", method, path, status, err)
