# src/reliefcore/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/reliefcore/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `RELIEFCORE_AGENT_TOKEN`, `RELIEFCORE_BACKEND_URL`)
- an external YAML file via `RELIEFCORE_CONFIG_PATH`

Design rule:
- Tuning knobs (thresholds, weights, speeds, rosters) live in YAML, not in business logic.
- Services receive a `Settings` object in their constructor; nothing reads globals at call time.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from reliefcore.core.env import load_dotenv_if_present

Capability = Literal["validate", "match", "route", "chat"]
CAPABILITIES: tuple[Capability, ...] = ("validate", "match", "route", "chat")


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `reliefcore.config`."""
    text = resources.files("reliefcore.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "reliefcore"
    log_level: str = "INFO"
    language: Literal["en", "bn"] = "en"
    timezone: str = "Asia/Dhaka"
    # Browser origins of the relief frontend allowed to call the API.
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])


class AgentSettings(BaseModel):
    timeout_seconds: float = Field(30, gt=0)
    api_token: str | None = None
    endpoints: dict[Capability, str] = Field(default_factory=dict)


class BackendSettings(BaseModel):
    base_url: str | None = None
    timeout_seconds: float = Field(10, gt=0)
    api_token: str | None = None


class TrackingSettings(BaseModel):
    update_interval_seconds: float = Field(30, gt=0)
    position_timeout_seconds: float = Field(10, gt=0)
    maximum_position_age_seconds: float = Field(60, ge=0)
    average_speed_kmh: float = Field(25, gt=0)


class ValidationThresholds(BaseModel):
    min_item_name_length: int = 3
    min_location_length: int = 5
    valid_confidence: float = Field(0.85, ge=0, le=1)
    invalid_base_confidence: float = Field(0.8, ge=0, le=1)
    per_issue_penalty: float = Field(0.2, ge=0, le=1)
    min_confidence: float = Field(0.3, ge=0, le=1)
    auto_approve_confidence: float = Field(0.8, ge=0, le=1)
    # More issues than this is "high" risk; 1..N is "medium".
    high_risk_issue_count: int = Field(2, ge=1)


class ReferenceLocation(BaseModel):
    address: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ReferenceItem(BaseModel):
    """A counterpart donation/request used by offline matching."""

    id: str
    type: Literal["donation", "request"]
    item_name: str
    category: str
    quantity: float = Field(..., gt=0)
    urgency: Literal["low", "medium", "high", "critical"] = "medium"
    location: ReferenceLocation


class MatchingSettings(BaseModel):
    top_n: int = Field(5, ge=1)
    default_max_distance_km: float = Field(15, gt=0)
    delivery_speed_kmh: float = Field(25, gt=0)
    handling_minutes: float = Field(30, ge=0)
    score_weights: dict[Literal["compatibility", "distance", "urgency", "quantity"], float] = Field(
        default_factory=lambda: {"compatibility": 0.4, "distance": 0.3, "urgency": 0.2, "quantity": 0.1}
    )
    related_categories: dict[str, list[str]] = Field(default_factory=dict)
    related_category_compatibility: float = Field(0.5, ge=0, le=1)
    reference_pool: list[ReferenceItem] = Field(default_factory=list)


class RosterVolunteer(BaseModel):
    id: str
    name: str
    phone: str
    vehicle_type: str = "motorcycle"
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)


class RoutingSettings(BaseModel):
    default_vehicle_type: str = "motorcycle"
    default_max_distance_km: float = Field(15, gt=0)
    handling_minutes: float = Field(10, ge=0)
    fallback_distance_to_pickup_km: float = Field(8.1, ge=0)
    fallback_route_distance_km: float = Field(14.9, ge=0)
    vehicle_speeds_kmh: dict[str, float] = Field(default_factory=lambda: {"motorcycle": 25.0})
    item_weight_per_unit_kg: dict[str, float] = Field(default_factory=dict)
    default_weight_per_unit_kg: float = Field(0.5, ge=0)
    volunteers: list[RosterVolunteer] = Field(..., min_length=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    agents: AgentSettings = Field(default_factory=AgentSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    validation: ValidationThresholds = Field(default_factory=ValidationThresholds)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    routing: RoutingSettings


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("RELIEFCORE_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    language = os.getenv("RELIEFCORE_LANGUAGE")
    if language:
        data.setdefault("app", {})["language"] = language

    frontend_url = os.getenv("RELIEFCORE_FRONTEND_URL")
    if frontend_url:
        app = data.setdefault("app", {})
        origins = [o for o in app.get("cors_origins") or [] if o != frontend_url]
        app["cors_origins"] = [frontend_url, *origins]

    agent_token = os.getenv("RELIEFCORE_AGENT_TOKEN")
    if agent_token:
        data.setdefault("agents", {})["api_token"] = agent_token

    for capability in CAPABILITIES:
        url = os.getenv(f"RELIEFCORE_AGENT_{capability.upper()}_URL")
        if url:
            data.setdefault("agents", {}).setdefault("endpoints", {})[capability] = url

    backend_url = os.getenv("RELIEFCORE_BACKEND_URL")
    if backend_url:
        data.setdefault("backend", {})["base_url"] = backend_url

    backend_token = os.getenv("RELIEFCORE_BACKEND_TOKEN")
    if backend_token:
        data.setdefault("backend", {})["api_token"] = backend_token

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("RELIEFCORE_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")


@lru_cache
def get_conversation_config() -> dict[str, Any]:
    """Load the offline chat vocabulary and templates (cached)."""
    return _read_package_yaml("conversation.yaml")
