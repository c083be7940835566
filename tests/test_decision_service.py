import asyncio
import random
import time

from reliefcore.agents.client import AgentResult, RemoteAgentClient
from reliefcore.config.settings import get_settings
from reliefcore.decision.service import DecisionService
from reliefcore.domain.models import (
    AssignmentRequest,
    ChatRequest,
    MatchCandidate,
    MatchingRequest,
    MatchSet,
    ValidationOutcome,
    ValidationRequest,
)
from reliefcore.fallback.engine import FallbackEngine

MATCH_REQUEST = {
    "triggerType": "newDonation",
    "primaryItem": {
        "id": "don-77",
        "type": "donation",
        "itemName": "Rice bags",
        "category": "food",
        "quantity": 50,
        "urgency": "high",
        "location": {"address": "Gulshan 1, Dhaka", "coordinates": {"lat": 23.7806, "lng": 90.4167}},
    },
    "constraints": {"maxDistance": 15, "urgencyWeight": 0.3},
}


class StubAgentClient:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def call(self, capability, payload, *, timeout_seconds=None):
        self.calls.append((capability, payload))
        if self.error is not None:
            raise self.error
        return self.result


class HangingAgentClient:
    async def call(self, capability, payload, *, timeout_seconds=None):
        await asyncio.sleep(0.05)
        return AgentResult(capability, ok=False, error_kind="timeout", error="No response within 0.05s")


def _service(agent_client):
    settings = get_settings()
    return DecisionService(settings, agent_client=agent_client, fallback=FallbackEngine(settings, rng=random.Random(1)))


def test_match_falls_back_when_agent_raises():
    service = _service(StubAgentClient(error=RuntimeError("boom")))

    decision = asyncio.run(service.match(MatchingRequest.model_validate(MATCH_REQUEST)))

    assert decision.success is True
    assert decision.degraded is True
    assert decision.source == "fallback"
    assert decision.degraded_reason == "unexpected: RuntimeError"
    assert isinstance(decision.data, MatchSet)
    assert decision.data.matches


def test_match_falls_back_on_timeout_within_window():
    service = _service(HangingAgentClient())

    started = time.perf_counter()
    decision = asyncio.run(service.match(MatchingRequest.model_validate(MATCH_REQUEST)))

    assert time.perf_counter() - started < get_settings().agents.timeout_seconds
    assert decision.degraded is True
    assert decision.degraded_reason == "timeout"
    assert decision.data is not None


def test_agent_match_set_is_reranked():
    agent_set = MatchSet(
        matches=[
            MatchCandidate(id="a", score=0.4, distance_km=2.0, compatibility=1.0, urgency_match=1.0),
            MatchCandidate(id="b", score=0.9, distance_km=6.0, compatibility=1.0, urgency_match=1.0),
        ],
        total_matches=2,
    )
    client = StubAgentClient(AgentResult("match", ok=True, data=agent_set, shape="direct"))

    decision = asyncio.run(_service(client).match(MatchingRequest.model_validate(MATCH_REQUEST)))

    assert decision.degraded is False
    assert decision.source == "agent"
    assert [m.id for m in decision.data.matches] == ["b", "a"]
    capability, payload = client.calls[0]
    assert capability == "match"
    assert payload["primaryItem"]["itemName"] == "Rice bags"
    assert "candidates" not in payload


def test_agent_validation_is_held_to_risk_bands():
    reported = ValidationOutcome(
        is_valid=True, confidence=0.6, issues=["Phone looks wrong"], risk_level="low", auto_approve=True
    )
    client = StubAgentClient(AgentResult("validate", ok=True, data=reported, shape="direct"))
    request = ValidationRequest.model_validate(
        {"type": "donation", "content": {"itemName": "Rice", "quantity": 10, "location": "Road 5, Dhanmondi"}}
    )

    decision = asyncio.run(_service(client).validate(request))

    assert decision.source == "agent"
    assert decision.data.risk_level == "medium"
    assert decision.data.auto_approve is False


def test_failed_validation_call_uses_offline_rules():
    client = StubAgentClient(AgentResult("validate", ok=False, error_kind="unrecognized_shape"))
    request = ValidationRequest.model_validate(
        {"type": "request", "content": {"itemName": "Ri", "quantity": 5, "location": "Dhanmondi 5"}}
    )

    decision = asyncio.run(_service(client).validate(request))

    assert decision.degraded is True
    assert decision.degraded_reason == "unrecognized_shape"
    assert decision.data.issues == ["Item name too short"]


def test_assignment_and_chat_fall_back():
    client = StubAgentClient(AgentResult("route", ok=False, error_kind="network"))
    service = _service(client)
    assignment = AssignmentRequest.model_validate(
        {
            "matchId": "m-1",
            "donationLocation": {"lat": 23.7806, "lng": 90.4167, "address": "Gulshan 1"},
            "deliveryLocation": {"lat": 23.7561, "lng": 90.3742, "address": "Dhanmondi 27"},
            "itemDetails": {"category": "water", "quantity": 12},
        }
    )

    routed = asyncio.run(service.assign_volunteer(assignment))
    chatted = asyncio.run(service.converse(ChatRequest(message="hello")))

    assert routed.degraded is True and routed.data.match_id == "m-1"
    assert chatted.degraded is True and chatted.data.intent.category == "greeting"
    route_payload = client.calls[0][1]
    assert route_payload["itemDetails"]["weight"] == 18.0
    assert route_payload["constraints"] == {"maxDistance": 15.0, "preferredVehicle": "motorcycle"}
    chat_payload = client.calls[1][1]
    assert chat_payload["userMessage"] == "hello"
    assert chat_payload["sessionId"].startswith("session_")


def test_decision_serializes_with_camel_case_keys():
    client = StubAgentClient(AgentResult("validate", ok=False, error_kind="timeout"))
    request = ValidationRequest.model_validate(
        {"content": {"itemName": "Rice", "quantity": 10, "location": "House 12, Road 5, Dhanmondi"}}
    )

    payload = asyncio.run(_service(client).validate(request)).model_dump(mode="json", by_alias=True)

    assert payload["degradedReason"] == "timeout"
    assert payload["data"]["autoApprove"] is True
    assert payload["data"]["riskLevel"] == "low"


def test_hung_agent_endpoint_degrades_match_within_timeout(monkeypatch):
    base = get_settings()
    settings = base.model_copy(update={"agents": base.agents.model_copy(update={"timeout_seconds": 0.05})})

    async def never_answers(url, *, json, headers=None, timeout_seconds=30):
        await asyncio.sleep(5)

    monkeypatch.setattr("reliefcore.agents.client.post_json", never_answers)
    service = DecisionService(
        settings,
        agent_client=RemoteAgentClient(settings),
        fallback=FallbackEngine(settings, rng=random.Random(1)),
    )

    started = time.perf_counter()
    decision = asyncio.run(service.match(MatchingRequest.model_validate(MATCH_REQUEST)))

    assert time.perf_counter() - started < 1.0
    assert decision.success is True
    assert decision.degraded is True
    assert decision.degraded_reason == "timeout"
    assert isinstance(decision.data, MatchSet)
    assert decision.data.matches
