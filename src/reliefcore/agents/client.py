"""
Remote agent client.

This module is responsible only for:
- POSTing a capability request (validate / match / route / chat) to its configured agent,
- normalizing the agent's envelope into the canonical model (`reliefcore.agents.envelope`),
- reporting the outcome as a tagged `AgentResult`.

It never raises to its caller: transport errors, timeouts, non-2xx responses, bad JSON and
unknown envelopes all become `AgentResult(ok=False, error_kind=...)`. Deciding what to do
about a failure (fall back) is the DecisionService's job. There are no retries.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Literal

import httpx
from pydantic import BaseModel

from reliefcore.agents.envelope import UnrecognizedShapeError, extract_result
from reliefcore.config.settings import Capability, Settings
from reliefcore.core.call_meta import record_agent_call
from reliefcore.core.http import post_json

logger = logging.getLogger(__name__)

FailureKind = Literal[
    "not_configured",
    "timeout",
    "network",
    "http_status",
    "invalid_json",
    "unrecognized_shape",
    "unexpected",
]


@dataclass(frozen=True)
class AgentResult:
    """Outcome of one agent call: either a canonical result or a failure tag."""

    capability: str
    ok: bool
    data: BaseModel | None = None
    shape: str | None = None
    error_kind: FailureKind | None = None
    error: str | None = None
    status_code: int | None = None
    elapsed_ms: float = 0.0

    def as_meta(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "shape": self.shape,
            "error_kind": self.error_kind,
            "status_code": self.status_code,
            "elapsed_ms": self.elapsed_ms,
        }


AgentEventHook = Callable[[AgentResult], None]


class RemoteAgentClient:
    """Calls named agent capabilities and normalizes their responses."""

    def __init__(self, settings: Settings, *, on_event: AgentEventHook | None = None):
        self._settings = settings
        self._on_event = on_event

    def _headers(self) -> dict[str, str]:
        token = self._settings.agents.api_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _finish(self, result: AgentResult) -> AgentResult:
        if result.ok:
            logger.info(
                "Agent %s accepted (shape=%s, %.0f ms)", result.capability, result.shape, result.elapsed_ms
            )
        else:
            logger.warning(
                "Agent %s failed (%s): %s", result.capability, result.error_kind, result.error or "no detail"
            )
        record_agent_call(result)
        if self._on_event is not None:
            try:
                self._on_event(result)
            except Exception:
                logger.exception("Agent event hook raised for %s", result.capability)
        return result

    async def call(
        self,
        capability: Capability,
        payload: dict[str, Any],
        *,
        timeout_seconds: float | None = None,
    ) -> AgentResult:
        url = self._settings.agents.endpoints.get(capability)
        if not url:
            return self._finish(
                AgentResult(capability, ok=False, error_kind="not_configured", error="No endpoint configured")
            )

        timeout = float(timeout_seconds or self._settings.agents.timeout_seconds)
        started = time.perf_counter()

        def failed(kind: FailureKind, error: str, status_code: int | None = None) -> AgentResult:
            return self._finish(
                AgentResult(
                    capability,
                    ok=False,
                    error_kind=kind,
                    error=error,
                    status_code=status_code,
                    elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
                )
            )

        logger.debug("Calling agent %s at %s", capability, url)
        try:
            raw = await asyncio.wait_for(
                post_json(url, json=payload, headers=self._headers(), timeout_seconds=timeout),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return failed("timeout", f"No response within {timeout:g}s")
        except httpx.HTTPStatusError as exc:
            return failed("http_status", str(exc), exc.response.status_code)
        except httpx.HTTPError as exc:
            return failed("network", f"{type(exc).__name__}: {exc}")
        except ValueError as exc:
            return failed("invalid_json", str(exc))
        except Exception as exc:
            logger.exception("Unexpected error calling agent %s", capability)
            return failed("unexpected", f"{type(exc).__name__}: {exc}")

        try:
            data, shape = extract_result(capability, raw, request=payload)
        except UnrecognizedShapeError as exc:
            return failed("unrecognized_shape", str(exc))

        return self._finish(
            AgentResult(
                capability,
                ok=True,
                data=data,
                shape=shape,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        )
