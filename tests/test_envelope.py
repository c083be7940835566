import json

import pytest

from reliefcore.agents.envelope import (
    ShapeMatcher,
    UnrecognizedShapeError,
    at_path,
    extract_result,
    has_fields,
)

VALIDATION = {
    "isValid": True,
    "confidence": 0.92,
    "issues": [],
    "suggestions": [],
    "riskLevel": "low",
    "autoApprove": True,
}

ASSIGNMENT = {
    "assignedVolunteer": {
        "id": "4a1e49aa-1095-479b-ab8a-009ef00b49da",
        "name": "আহমেদ আলী",
        "phone": "+8801712345001",
        "vehicleType": "motorcycle",
        "distanceToPickup": 3.2,
        "estimatedPickupTime": "8 minutes",
    },
    "simpleRoute": {
        "pickup": {"address": "Gulshan 2", "eta": "1:38 PM"},
        "delivery": {"address": "Dhanmondi 27", "eta": "2:05 PM"},
        "totalDistance": 8.1,
        "totalTime": 35,
    },
    "status": "assigned",
}


def test_validation_nested_and_direct_shapes():
    model, shape = extract_result("validate", {"result": {"Output": {"result": VALIDATION}}})
    assert shape == "result.Output.result"
    assert model.confidence == 0.92

    model, shape = extract_result("validate", VALIDATION)
    assert shape == "direct"
    assert model.is_valid is True


def test_match_results_rename_distance_and_count_matches():
    payload = {
        "result": {
            "Output": {
                "matchResults": {
                    "matches": [
                        {
                            "id": "req-1",
                            "score": 0.8,
                            "distance": 4.2,
                            "compatibility": 1.0,
                            "urgencyMatch": 0.9,
                            "estimatedDeliveryTime": "40 minutes",
                            "reason": "Perfect category match",
                        }
                    ]
                }
            }
        }
    }

    model, shape = extract_result("match", payload)

    assert shape == "result.Output.matchResults"
    assert model.total_matches == 1
    assert model.matches[0].distance_km == 4.2


def test_route_langflow_output_as_json_string():
    payload = {"outputs": [{"outputs": [{"results": json.dumps({"Output": {"assignmentResult": ASSIGNMENT}})}]}]}

    model, shape = extract_result("route", payload, request={"matchId": "match-9"})

    assert shape == "langflow.outputs"
    assert model.match_id == "match-9"
    assert model.assigned_volunteer.distance_to_pickup_km == 3.2
    assert model.simple_route.total_distance_km == 8.1
    assert model.simple_route.total_time == "35 minutes"


def test_route_direct_shape_keeps_agent_match_id():
    model, shape = extract_result("route", {**ASSIGNMENT, "matchId": "agent-id"}, request={"matchId": "ours"})
    assert shape == "direct"
    assert model.match_id == "agent-id"


def test_chat_reply_from_nested_result():
    payload = {
        "result": {
            "Output": {
                "result": {
                    "response": "আপনাকে স্বাগতম!",
                    "suggestions": "খাবার দান করতে চাই",
                    "detected_intent": {"category": "greeting", "confidence": 0.9},
                }
            }
        }
    }

    model, _ = extract_result("chat", payload)

    assert model.message == "আপনাকে স্বাগতম!"
    assert model.suggestions == ["খাবার দান করতে চাই"]
    assert model.intent.category == "greeting"


def test_wrongly_typed_fields_are_not_accepted():
    bad = {**VALIDATION, "confidence": "very high"}
    with pytest.raises(UnrecognizedShapeError) as exc:
        extract_result("validate", {"result": {"Output": {"result": bad}}})
    assert exc.value.tried == ["result.Output.result", "direct"]


def test_unknown_envelope_raises():
    with pytest.raises(UnrecognizedShapeError, match="route"):
        extract_result("route", {"data": {"something": "else"}})


def test_new_shapes_are_added_by_appending_a_matcher():
    payload = {"payload": {"body": VALIDATION}}
    matcher = ShapeMatcher("payload.body", at_path("payload", "body"), has_fields("isValid", "confidence"))

    model, shape = extract_result("validate", payload, matchers=[matcher])

    assert shape == "payload.body"
    assert model.auto_approve is True


def test_non_list_matches_are_an_unknown_shape():
    with pytest.raises(UnrecognizedShapeError):
        extract_result("match", {"matches": 5})
    with pytest.raises(UnrecognizedShapeError):
        extract_result("match", {"result": {"Output": {"matchResults": {"matches": "none"}}}})


def test_non_finite_total_time_is_an_unknown_shape():
    route = {**ASSIGNMENT["simpleRoute"], "totalTime": float("inf")}
    with pytest.raises(UnrecognizedShapeError):
        extract_result("route", {**ASSIGNMENT, "simpleRoute": route}, request={"matchId": "m-1"})


def test_matcher_that_raises_falls_through_to_the_next_one():
    def exploding(_obj, _request):
        raise TypeError("unexpected payload")

    matchers = [
        ShapeMatcher("exploding", at_path(), has_fields("isValid"), exploding),
        ShapeMatcher("direct", at_path(), has_fields("isValid", "confidence")),
    ]

    _, shape = extract_result("validate", VALIDATION, matchers=matchers)

    assert shape == "direct"
