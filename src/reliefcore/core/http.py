"""
HTTP helpers.

This module centralizes the minimal HTTP client logic used by the agent and backend clients.

Design goals:
- Small surface area (POST JSON, PUT JSON), async so callers never block the event loop.
- Deterministic defaults (timeout + User-Agent + JSON content type).
- Raise on non-2xx so callers can decide how to fail (the agent client turns this into a
  tagged failure, the backend client logs and moves on).
"""

from __future__ import annotations

from typing import Any

import httpx


DEFAULT_USER_AGENT = "reliefcore/0.1.0 (+https://local)"


def _headers(extra: dict[str, str] | None) -> dict[str, str]:
    request_headers = {"User-Agent": DEFAULT_USER_AGENT, "Content-Type": "application/json"}
    if extra:
        request_headers.update(extra)
    return request_headers


async def post_json(
    url: str,
    *,
    json: Any,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 30,
) -> Any:
    """POST `json` to `url` and return the decoded JSON response.

    Raises:
        httpx.HTTPError: On transport errors, timeouts or non-2xx status codes.
        ValueError: If the response body is not valid JSON.
    """
    async with httpx.AsyncClient(timeout=timeout_seconds) as client:
        resp = await client.post(url, json=json, headers=_headers(headers))
        resp.raise_for_status()
        return resp.json()


async def put_json(
    url: str,
    *,
    json: Any,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 10,
) -> Any:
    """PUT `json` to `url` and return the decoded JSON response (None for empty bodies).

    Raises:
        httpx.HTTPError: On transport errors, timeouts or non-2xx status codes.
    """
    async with httpx.AsyncClient(timeout=timeout_seconds) as client:
        resp = await client.put(url, json=json, headers=_headers(headers))
        resp.raise_for_status()
        if not resp.content:
            return None
        return resp.json()
