"""
Live volunteer location tracking.

`LocationTracker` polls a `PositionSource` on a fixed interval and publishes each fix to an
optional `LocationSink` (normally `reliefcore.backend.client.BackendClient`).

State machine:

    Idle --start--> Tracking --stop--> Idle
    Tracking --position error--> Failed --start--> Tracking

Rules:
- At most one interval task exists per tracker; `start()` while tracking is a no-op.
- Every `stop()` (and every failure) bumps a generation counter; a refresh that completes
  for an older generation is discarded, so nothing lands after `stop()`.
- Refreshes spawned by the interval run detached, so overlapping refreshes are possible;
  the last one to complete wins.
- Publishing to the sink runs as background tasks; a slow or hung sink never delays
  `start()`, a refresh or a status update. Sink failures are logged and never change
  tracking state. `aclose()` cancels publishes still pending.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol

from reliefcore.config.settings import TrackingSettings
from reliefcore.core import geo
from reliefcore.core.time import ensure_utc, utc_now
from reliefcore.domain.models import DeliveryStatusUpdate, TrackedPosition

logger = logging.getLogger(__name__)

PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3

POSITION_ERROR_MESSAGES = {
    PERMISSION_DENIED: "Location access denied by user.",
    POSITION_UNAVAILABLE: "Location information is unavailable.",
    TIMEOUT: "Location request timed out.",
}
UNKNOWN_POSITION_ERROR = "Unknown location error"


class PositionError(Exception):
    """Raised by a `PositionSource` when no fix can be produced."""

    def __init__(self, code: int, message: str | None = None):
        self.code = code
        self.message = message or POSITION_ERROR_MESSAGES.get(code, UNKNOWN_POSITION_ERROR)
        super().__init__(self.message)


@dataclass(frozen=True)
class PositionFix:
    lat: float
    lng: float
    accuracy_meters: float | None = None
    timestamp: datetime | None = None


class PositionSource(Protocol):
    async def get_current_position(self, timeout_seconds: float, maximum_age_seconds: float) -> PositionFix:
        ...


class LocationSink(Protocol):
    async def publish_location(self, position: TrackedPosition) -> Any:
        ...

    async def publish_delivery_status(self, update: DeliveryStatusUpdate) -> Any:
        ...


class LocationTracker:
    def __init__(
        self,
        source: PositionSource,
        *,
        sink: LocationSink | None = None,
        settings: TrackingSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._source = source
        self._sink = sink
        self._settings = settings or TrackingSettings()
        self._clock = clock

        self.current_location: TrackedPosition | None = None
        self.is_tracking = False
        self.location_error: str | None = None

        self._interval_task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[Any]] = set()
        self._publishing: set[asyncio.Task[None]] = set()
        self._generation = 0

    @property
    def active_intervals(self) -> int:
        task = self._interval_task
        return 1 if task is not None and not task.done() else 0

    async def start(self) -> None:
        """Begin tracking and wait for the first position request to settle."""
        if self.is_tracking:
            return
        self.is_tracking = True
        self.location_error = None
        self._generation += 1
        generation = self._generation
        self._interval_task = asyncio.create_task(self._run_interval(generation))
        logger.info("Location tracking started (every %ss)", self._settings.update_interval_seconds)
        await self._refresh(generation)

    def stop(self) -> None:
        """Stop tracking. The last known position is kept."""
        self._cancel_interval()
        self._generation += 1
        if self.is_tracking:
            logger.info("Location tracking stopped")
        self.is_tracking = False
        self.location_error = None

    async def aclose(self) -> None:
        pending = list(self._inflight) + list(self._publishing)
        if self._interval_task is not None:
            pending.append(self._interval_task)
        self.stop()
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()
        self._publishing.clear()

    async def __aenter__(self) -> LocationTracker:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _cancel_interval(self) -> None:
        task = self._interval_task
        self._interval_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _run_interval(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self._settings.update_interval_seconds)
            if generation != self._generation:
                return
            task = asyncio.create_task(self._refresh(generation))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    def _fail(self, generation: int, message: str) -> None:
        if generation != self._generation:
            return
        logger.warning("Location tracking failed: %s", message)
        self.location_error = message
        self.is_tracking = False
        self._cancel_interval()
        self._generation += 1

    async def _refresh(self, generation: int) -> TrackedPosition | None:
        timeout = self._settings.position_timeout_seconds
        try:
            fix = await asyncio.wait_for(
                self._source.get_current_position(timeout, self._settings.maximum_position_age_seconds),
                timeout=timeout,
            )
        except PositionError as e:
            self._fail(generation, e.message)
            return None
        except asyncio.TimeoutError:
            self._fail(generation, POSITION_ERROR_MESSAGES[TIMEOUT])
            return None
        except Exception:
            logger.exception("Position source raised")
            self._fail(generation, UNKNOWN_POSITION_ERROR)
            return None

        if generation != self._generation:
            logger.debug("Discarding position fix from a stopped session")
            return None

        position = TrackedPosition(
            lat=fix.lat,
            lng=fix.lng,
            timestamp_utc=ensure_utc(fix.timestamp) if fix.timestamp else self._clock(),
            accuracy_meters=fix.accuracy_meters,
        )
        self.current_location = position
        self._publish_location(position)
        return position

    def _publish_location(self, position: TrackedPosition) -> None:
        if self._sink is not None:
            self._spawn_publish(self._sink.publish_location(position), "location")

    def _spawn_publish(self, coro: Any, what: str) -> None:
        task = asyncio.create_task(coro)
        self._publishing.add(task)

        def _done(t: asyncio.Task[None]) -> None:
            self._publishing.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Failed to publish %s", what, exc_info=t.exception())

        task.add_done_callback(_done)

    def distance_to(self, target: geo.LatLng) -> float | None:
        if self.current_location is None:
            return None
        return geo.distance_km(self.current_location, target)

    def estimate_arrival(self, target: geo.LatLng, average_speed_kmh: float | None = None) -> datetime | None:
        """ETA at `target` from the current position; exactly `now` when already there.

        None without a known position or with a non-positive speed.
        """
        speed = self._settings.average_speed_kmh if average_speed_kmh is None else average_speed_kmh
        return geo.estimate_arrival(self.current_location, target, speed, now=self._clock())

    async def update_delivery_status(
        self,
        update: DeliveryStatusUpdate,
        destination: geo.LatLng | None = None,
    ) -> DeliveryStatusUpdate:
        """Record a delivery status change and return it enriched with location and ETA."""
        if update.location is not None:
            self.current_location = update.location
            self._publish_location(update.location)

        if self._sink is not None:
            self._spawn_publish(self._sink.publish_delivery_status(update), f"delivery status for {update.task_id}")

        eta = update.estimated_arrival
        if destination is not None:
            eta = self.estimate_arrival(destination) or eta
        return update.model_copy(update={"location": self.current_location, "estimated_arrival": eta})
