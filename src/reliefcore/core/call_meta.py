"""
Agent call log for the request being served.

`RemoteAgentClient` reports every attempt it makes (accepted or failed) to the log that is
active in the current context. The API opens one log per request with
`capture_agent_calls()` and returns its entries, in call order, as `meta.agentCalls`.
Outside a capture block reports are dropped.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Protocol


class ReportedCall(Protocol):
    capability: str
    ok: bool

    def as_meta(self) -> dict[str, Any]:
        ...


@dataclass
class AgentCallLog:
    entries: list[dict[str, Any]] = field(default_factory=list)

    def append(self, call: ReportedCall) -> None:
        self.entries.append({"capability": call.capability, **call.as_meta()})

    def failed_capabilities(self) -> list[str]:
        return sorted({e["capability"] for e in self.entries if not e.get("ok")})

    def as_meta(self) -> dict[str, Any]:
        return {"agentCalls": list(self.entries), "failedAgents": self.failed_capabilities()}


_active_log: contextvars.ContextVar[AgentCallLog | None] = contextvars.ContextVar(
    "reliefcore_agent_call_log", default=None
)


def record_agent_call(call: ReportedCall) -> None:
    log = _active_log.get()
    if log is not None:
        log.append(call)


@contextmanager
def capture_agent_calls() -> Iterator[AgentCallLog]:
    log = AgentCallLog()
    token = _active_log.set(log)
    try:
        yield log
    finally:
        _active_log.reset(token)
