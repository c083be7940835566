"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- inputs from the UI layer (`ValidationRequest`, `MatchingRequest`, `AssignmentRequest`, `ChatRequest`)
- canonical capability results (`ValidationOutcome`, `MatchSet`, `VolunteerAssignment`, `ChatReply`)
- live tracking state (`TrackedPosition`, `DeliveryStatusUpdate`)
- the uniform decision envelope returned to callers (`Decision`)

Python code uses snake_case attributes; JSON (remote agents, UI) uses camelCase aliases.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from reliefcore.core.geo import GeoPoint

Urgency = Literal["low", "medium", "high", "critical"]
RiskLevel = Literal["low", "medium", "high"]
ItemKind = Literal["donation", "request"]
DeliveryStatus = Literal[
    "assigned",
    "en_route_pickup",
    "at_pickup",
    "picked_up",
    "en_route_delivery",
    "at_delivery",
    "delivered",
    "completed",
]
URGENCY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coordinates(CamelModel):
    """A geographic point in decimal degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


# --- Validation ---------------------------------------------------------------------------


class SubmissionContent(CamelModel):
    """A donation/request form as submitted.

    Field values are not range-checked here: bad values become validation issues.
    """

    item_name: str = ""
    category: str = "other"
    quantity: float = 0
    description: str | None = None
    location: str = ""
    urgency: Urgency = "medium"
    contact_info: str = ""


class SubmissionMetadata(CamelModel):
    timestamp: datetime | None = None
    user_type: str | None = None
    previous_submissions: int | None = None


class ValidationRequest(CamelModel):
    type: ItemKind = "donation"
    content: SubmissionContent
    metadata: SubmissionMetadata | None = None


class ValidationOutcome(CamelModel):
    is_valid: bool
    confidence: float = Field(..., ge=0, le=1)
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = "medium"
    auto_approve: bool = False


# --- Matching -----------------------------------------------------------------------------


class ItemLocation(CamelModel):
    address: str = ""
    coordinates: Coordinates
    district: str | None = None
    division: str | None = None


class MatchableItem(CamelModel):
    """A donation or request that can be paired with its counterpart."""

    id: str
    type: ItemKind
    item_name: str
    category: str
    quantity: float = Field(..., gt=0)
    urgency: Urgency = "medium"
    location: ItemLocation


class PrimaryItem(MatchableItem):
    expiry_date: datetime | None = None
    created_at: datetime | None = None


class MatchConstraints(CamelModel):
    max_distance: float = Field(15, gt=0)
    urgency_weight: float = Field(0.3, ge=0, le=1)
    category_strict: bool = False
    quantity_tolerance: float = Field(0.5, ge=0, le=1)


class MatchingRequest(CamelModel):
    trigger_type: Literal["newDonation", "newRequest"] = "newDonation"
    primary_item: PrimaryItem
    constraints: MatchConstraints = Field(default_factory=MatchConstraints)
    # Counterparts to rank offline; the configured reference pool is used when omitted.
    candidates: list[MatchableItem] | None = None


class MatchCandidate(CamelModel):
    id: str
    score: float = Field(..., ge=0, le=1)
    distance_km: float = Field(..., ge=0)
    compatibility: float = Field(..., ge=0, le=1)
    urgency_match: float = Field(..., ge=0, le=1)
    quantity_match: float | None = Field(default=None, ge=0, le=1)
    estimated_delivery_time: str = ""
    reason: str = ""


class MatchSet(CamelModel):
    matches: list[MatchCandidate] = Field(default_factory=list)
    total_matches: int = Field(0, ge=0)
    processing_time: float = Field(0, ge=0)
    status: str = "success"
    timestamp: datetime | None = None


# --- Volunteer assignment -----------------------------------------------------------------


class RoutePoint(CamelModel):
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    address: str = ""

    @property
    def point(self) -> GeoPoint | None:
        if self.lat is None or self.lng is None:
            return None
        return GeoPoint(lat=self.lat, lng=self.lng)


class ItemDetails(CamelModel):
    category: str = "other"
    quantity: float = Field(1, ge=0)
    urgency: Urgency = "medium"
    weight: float | None = Field(default=None, ge=0)


class AssignmentConstraints(CamelModel):
    max_distance: float | None = Field(default=None, gt=0)
    vehicle_type: str | None = None


class AvailableVolunteer(CamelModel):
    id: str
    name: str
    phone: str
    vehicle_type: str = "motorcycle"
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)


class AssignmentRequest(CamelModel):
    match_id: str
    donation_location: RoutePoint
    delivery_location: RoutePoint
    item_details: ItemDetails = Field(default_factory=ItemDetails)
    constraints: AssignmentConstraints = Field(default_factory=AssignmentConstraints)
    # Roster to choose from offline; the configured roster is used when omitted.
    volunteers: list[AvailableVolunteer] | None = None


class AssignedVolunteer(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    phone: str = ""
    vehicle_type: str = "motorcycle"
    distance_to_pickup_km: float | None = Field(default=None, ge=0)
    estimated_pickup_time: str | None = None
    estimated_delivery_time: str | None = None


class RouteStop(CamelModel):
    model_config = ConfigDict(frozen=True)

    address: str
    eta: str


class SimpleRoute(CamelModel):
    model_config = ConfigDict(frozen=True)

    pickup: RouteStop
    delivery: RouteStop
    total_distance_km: float = Field(..., ge=0)
    total_time: str


class VolunteerAssignment(CamelModel):
    """One volunteer assignment per match; re-assignment builds a new instance."""

    model_config = ConfigDict(frozen=True)

    assigned_volunteer: AssignedVolunteer
    simple_route: SimpleRoute
    status: str = "assigned"
    match_id: str


# --- Chat ---------------------------------------------------------------------------------


class ChatTurn(CamelModel):
    text: str
    sender: Literal["user", "bot"]
    timestamp: datetime | None = None
    id: int | str | None = None


class ChatContext(CamelModel):
    user_role: str = "donor"
    language: str = "en"
    conversation_history: list[ChatTurn] = Field(default_factory=list)


class ChatRequest(CamelModel):
    message: str
    context: ChatContext = Field(default_factory=ChatContext)
    session_id: str | None = None
    user_id: str | None = None


class ChatIntent(CamelModel):
    category: str
    confidence: float = Field(..., ge=0, le=1)
    language: str = "en"


class ChatReply(CamelModel):
    message: str
    suggestions: list[str] | None = None
    actions: list[str] | None = None
    intent: ChatIntent | None = None


# --- Tracking -----------------------------------------------------------------------------


class TrackedPosition(CamelModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    timestamp_utc: datetime
    accuracy_meters: float | None = Field(default=None, ge=0)


class DeliveryStatusUpdate(CamelModel):
    model_config = ConfigDict(frozen=True)

    task_id: str
    status: DeliveryStatus
    location: TrackedPosition | None = None
    estimated_arrival: datetime | None = None
    notes: str | None = None


# --- Decision envelope --------------------------------------------------------------------

DataT = TypeVar("DataT")


class Decision(CamelModel, Generic[DataT]):
    """Uniform result of a DecisionService call: always a usable answer."""

    success: bool = True
    data: DataT
    degraded: bool = False
    degraded_reason: str | None = None
    source: Literal["agent", "fallback"] = "agent"
    processing_time: float = Field(0, ge=0)
