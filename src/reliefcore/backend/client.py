"""
Backend REST publisher.

Pushes a volunteer's live location and delivery status changes to the platform backend:

- `PUT {base_url}/volunteers/{volunteer_id}/location` with `{lat, lng, timestamp, accuracy}`
- `PUT {base_url}/deliveries/{task_id}/status` with `{status, location, notes}`

Publishing is best effort. A failed PUT is logged and reported as `False`; tracking
carries on either way.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from reliefcore.config.settings import BackendSettings
from reliefcore.core import http
from reliefcore.domain.models import DeliveryStatusUpdate, TrackedPosition

logger = logging.getLogger(__name__)


def location_body(position: TrackedPosition) -> dict[str, Any]:
    return {
        "lat": position.lat,
        "lng": position.lng,
        "timestamp": position.timestamp_utc.isoformat(),
        "accuracy": position.accuracy_meters,
    }


def status_body(update: DeliveryStatusUpdate) -> dict[str, Any]:
    body: dict[str, Any] = {"status": update.status}
    if update.location is not None:
        body["location"] = {"lat": update.location.lat, "lng": update.location.lng}
    if update.notes:
        body["notes"] = update.notes
    return body


class BackendClient:
    """Implements the tracker's `LocationSink` over the backend REST API."""

    def __init__(self, settings: BackendSettings, volunteer_id: str | None = None):
        self._settings = settings
        self.volunteer_id = volunteer_id

    @property
    def enabled(self) -> bool:
        return bool(self._settings.base_url)

    def _url(self, path: str) -> str:
        return f"{str(self._settings.base_url).rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        token = self._settings.api_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _put(self, path: str, body: dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        url = self._url(path)
        try:
            await http.put_json(url, json=body, headers=self._headers(), timeout_seconds=self._settings.timeout_seconds)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Backend PUT %s failed: %s", url, e)
            return False
        return True

    async def publish_location(self, position: TrackedPosition) -> bool:
        if not self.volunteer_id:
            logger.debug("No volunteer id; skipping location publish")
            return False
        return await self._put(f"volunteers/{self.volunteer_id}/location", location_body(position))

    async def publish_delivery_status(self, update: DeliveryStatusUpdate) -> bool:
        return await self._put(f"deliveries/{update.task_id}/status", status_body(update))
