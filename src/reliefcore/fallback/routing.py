# src/reliefcore/fallback/routing.py
"""
Offline volunteer assignment.

Stand-in for the remote routing agent. Selection rule:
1) roster = volunteers supplied with the request, else the configured roster
2) if a vehicle type is requested and someone on the roster has it, only they are considered
3) with pickup coordinates: nearest volunteer (Haversine), ties by id; volunteers without a
   known position rank after those with one
4) without pickup coordinates: the first roster entry, with configured default distances

Route distance is pickup -> delivery. Timing uses the volunteer's vehicle speed:
- pickup ETA = now + travel(volunteer -> pickup)
- delivery ETA = pickup ETA + handling time + travel(pickup -> delivery)
"""

from __future__ import annotations

from datetime import datetime, timedelta

from reliefcore.config.settings import RoutingSettings
from reliefcore.core.geo import GeoPoint, distance_km, travel_minutes
from reliefcore.core.time import format_clock, humanize_minutes, utc_now
from reliefcore.domain.models import (
    AssignedVolunteer,
    AssignmentRequest,
    AvailableVolunteer,
    RouteStop,
    SimpleRoute,
    VolunteerAssignment,
)


def estimated_item_weight_kg(category: str, quantity: float, cfg: RoutingSettings) -> float:
    """Rough load estimate used when the caller does not supply a weight."""
    per_unit = cfg.item_weight_per_unit_kg.get(category.strip().lower(), cfg.default_weight_per_unit_kg)
    return round(float(quantity) * per_unit, 2)


def vehicle_speed_kmh(vehicle_type: str, cfg: RoutingSettings) -> float:
    speeds = cfg.vehicle_speeds_kmh
    return float(speeds.get(vehicle_type, speeds.get(cfg.default_vehicle_type, 25.0)))


def _roster(request: AssignmentRequest, cfg: RoutingSettings) -> list[AvailableVolunteer]:
    if request.volunteers:
        return list(request.volunteers)
    return [AvailableVolunteer.model_validate(v.model_dump()) for v in cfg.volunteers]


def select_volunteer(
    roster: list[AvailableVolunteer], pickup: GeoPoint | None, *, vehicle_type: str | None = None
) -> tuple[AvailableVolunteer, float | None]:
    """Pick a volunteer and return it with its distance to pickup (None when unknown)."""
    if vehicle_type:
        preferred = [v for v in roster if v.vehicle_type == vehicle_type]
        roster = preferred or roster

    if pickup is None:
        return roster[0], None

    def key(v: AvailableVolunteer) -> tuple[int, float, str]:
        if v.lat is None or v.lng is None:
            return (1, 0.0, v.id)
        return (0, distance_km(GeoPoint(lat=v.lat, lng=v.lng), pickup), v.id)

    best = min(roster, key=key)
    rank, km, _ = key(best)
    return best, (km if rank == 0 else None)


def assign_volunteer(
    request: AssignmentRequest, cfg: RoutingSettings, *, timezone_name: str, now: datetime | None = None
) -> VolunteerAssignment:
    started_at = now or utc_now()
    roster = _roster(request, cfg)
    pickup = request.donation_location.point
    delivery = request.delivery_location.point

    volunteer, to_pickup_km = select_volunteer(roster, pickup, vehicle_type=request.constraints.vehicle_type)
    if to_pickup_km is None:
        to_pickup_km = cfg.fallback_distance_to_pickup_km
    if pickup is not None and delivery is not None:
        route_km = distance_km(pickup, delivery)
    else:
        route_km = cfg.fallback_route_distance_km

    speed = vehicle_speed_kmh(volunteer.vehicle_type, cfg)
    to_pickup_min = travel_minutes(to_pickup_km, speed)
    route_min = travel_minutes(route_km, speed)
    pickup_eta = started_at + timedelta(minutes=to_pickup_min)
    delivery_eta = pickup_eta + timedelta(minutes=cfg.handling_minutes + route_min)
    total_min = to_pickup_min + cfg.handling_minutes + route_min

    return VolunteerAssignment(
        assigned_volunteer=AssignedVolunteer(
            id=volunteer.id,
            name=volunteer.name,
            phone=volunteer.phone,
            vehicle_type=volunteer.vehicle_type,
            distance_to_pickup_km=round(to_pickup_km, 2),
            estimated_pickup_time=humanize_minutes(to_pickup_min),
            estimated_delivery_time=humanize_minutes(total_min),
        ),
        simple_route=SimpleRoute(
            pickup=RouteStop(
                address=request.donation_location.address or "Pickup location",
                eta=format_clock(pickup_eta, timezone_name),
            ),
            delivery=RouteStop(
                address=request.delivery_location.address or "Delivery location",
                eta=format_clock(delivery_eta, timezone_name),
            ),
            total_distance_km=round(route_km, 2),
            total_time=humanize_minutes(total_min),
        ),
        status="assigned",
        match_id=request.match_id,
    )
