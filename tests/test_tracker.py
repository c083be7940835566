import asyncio
from datetime import datetime, timezone

from reliefcore.config.settings import TrackingSettings
from reliefcore.core.geo import GeoPoint
from reliefcore.domain.models import DeliveryStatusUpdate, TrackedPosition
from reliefcore.tracking.tracker import (
    PERMISSION_DENIED,
    LocationTracker,
    PositionError,
    PositionFix,
)

NOW = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
DHANMONDI = GeoPoint(lat=23.7461, lng=90.3742)


class StubSource:
    def __init__(self, *fixes, error=None):
        self.fixes = list(fixes) or [PositionFix(lat=23.8103, lng=90.4125, accuracy_meters=12.0)]
        self.error = error
        self.calls = 0

    async def get_current_position(self, timeout_seconds, maximum_age_seconds):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.fixes[min(self.calls - 1, len(self.fixes) - 1)]


class GatedSource:
    def __init__(self):
        self.release = asyncio.Event()

    async def get_current_position(self, timeout_seconds, maximum_age_seconds):
        await self.release.wait()
        return PositionFix(lat=23.8, lng=90.4)


class SlowSource:
    async def get_current_position(self, timeout_seconds, maximum_age_seconds):
        await asyncio.sleep(5)


class HangingSink:
    async def publish_location(self, position):
        await asyncio.sleep(3600)

    async def publish_delivery_status(self, update):
        await asyncio.sleep(3600)


class RecordingSink:
    def __init__(self, fail=False):
        self.fail = fail
        self.locations = []
        self.statuses = []

    async def publish_location(self, position):
        if self.fail:
            raise RuntimeError("backend down")
        self.locations.append(position)

    async def publish_delivery_status(self, update):
        if self.fail:
            raise RuntimeError("backend down")
        self.statuses.append(update)


def _tracker(source, **kwargs):
    settings = kwargs.pop("settings", TrackingSettings(update_interval_seconds=60))
    return LocationTracker(source, settings=settings, clock=lambda: NOW, **kwargs)


def test_start_twice_keeps_one_interval_and_stop_clears_it():
    async def scenario():
        source = StubSource()
        tracker = _tracker(source)

        await tracker.start()
        await tracker.start()
        assert tracker.active_intervals == 1
        assert source.calls == 1
        assert tracker.is_tracking is True
        assert tracker.current_location.lat == 23.8103
        assert tracker.current_location.timestamp_utc == NOW

        tracker.stop()
        assert tracker.active_intervals == 0
        assert tracker.is_tracking is False
        # Last position survives stop.
        assert tracker.current_location is not None

        tracker.stop()
        assert tracker.active_intervals == 0

    asyncio.run(scenario())


def test_stop_before_start_is_harmless():
    tracker = _tracker(StubSource())
    tracker.stop()
    assert tracker.is_tracking is False
    assert tracker.active_intervals == 0


def test_interval_refreshes_and_publishes():
    async def scenario():
        source = StubSource(PositionFix(lat=23.80, lng=90.40), PositionFix(lat=23.81, lng=90.41))
        sink = RecordingSink()
        settings = TrackingSettings(update_interval_seconds=0.01)
        async with _tracker(source, sink=sink, settings=settings) as tracker:
            await tracker.start()
            await asyncio.sleep(0.1)
            assert source.calls > 1
            assert tracker.current_location.lat == 23.81
            assert len(sink.locations) >= 2
        assert tracker.active_intervals == 0

    asyncio.run(scenario())


def test_refresh_completing_after_stop_is_discarded():
    async def scenario():
        source = GatedSource()
        tracker = _tracker(source)

        start = asyncio.create_task(tracker.start())
        await asyncio.sleep(0)
        tracker.stop()
        source.release.set()
        await start

        assert tracker.current_location is None
        assert tracker.active_intervals == 0

    asyncio.run(scenario())


def test_permission_denied_halts_tracking_and_allows_restart():
    async def scenario():
        source = StubSource(error=PositionError(PERMISSION_DENIED))
        tracker = _tracker(source)

        await tracker.start()
        assert tracker.location_error == "Location access denied by user."
        assert tracker.is_tracking is False
        assert tracker.active_intervals == 0

        source.error = None
        await tracker.start()
        assert tracker.is_tracking is True
        assert tracker.location_error is None
        await tracker.aclose()

    asyncio.run(scenario())


def test_slow_position_source_times_out():
    async def scenario():
        settings = TrackingSettings(update_interval_seconds=60, position_timeout_seconds=0.05)
        tracker = _tracker(SlowSource(), settings=settings)
        await tracker.start()
        assert tracker.location_error == "Location request timed out."
        assert tracker.is_tracking is False

    asyncio.run(scenario())


def test_sink_failures_do_not_stop_tracking():
    async def scenario():
        tracker = _tracker(StubSource(), sink=RecordingSink(fail=True))
        await tracker.start()
        assert tracker.is_tracking is True
        assert tracker.location_error is None
        assert tracker.current_location is not None
        await tracker.aclose()

    asyncio.run(scenario())


def test_estimates_need_a_known_position():
    async def scenario():
        tracker = _tracker(StubSource())
        assert tracker.distance_to(DHANMONDI) is None
        assert tracker.estimate_arrival(DHANMONDI) is None

        await tracker.start()
        assert tracker.distance_to(DHANMONDI) > 0
        assert tracker.estimate_arrival(DHANMONDI) > NOW
        assert tracker.estimate_arrival(DHANMONDI, 0) is None
        await tracker.aclose()

    asyncio.run(scenario())


def test_update_delivery_status_enriches_and_publishes():
    async def scenario():
        sink = RecordingSink()
        tracker = _tracker(StubSource(), sink=sink)
        here = TrackedPosition(lat=23.78, lng=90.41, timestamp_utc=NOW)
        update = DeliveryStatusUpdate(task_id="task-1", status="picked_up", location=here)

        out = await tracker.update_delivery_status(update, destination=DHANMONDI)
        await asyncio.sleep(0.01)

        assert out.location == here
        assert out.estimated_arrival > NOW
        assert tracker.current_location == here
        assert sink.locations == [here]
        assert sink.statuses == [update]

    asyncio.run(scenario())


def test_update_delivery_status_survives_sink_failure():
    async def scenario():
        tracker = _tracker(StubSource(), sink=RecordingSink(fail=True))
        update = DeliveryStatusUpdate(task_id="task-2", status="delivered")

        out = await tracker.update_delivery_status(update)
        await asyncio.sleep(0.01)

        assert out.status == "delivered"
        assert out.location is None
        assert out.estimated_arrival is None

    asyncio.run(scenario())


def test_hung_sink_does_not_block_start_or_status_updates():
    async def scenario():
        tracker = _tracker(StubSource(), sink=HangingSink())

        await asyncio.wait_for(tracker.start(), timeout=0.5)
        assert tracker.is_tracking is True
        assert tracker.current_location is not None

        update = DeliveryStatusUpdate(task_id="task-3", status="en_route_delivery")
        out = await asyncio.wait_for(tracker.update_delivery_status(update), timeout=0.5)
        assert out.status == "en_route_delivery"

        await asyncio.wait_for(tracker.aclose(), timeout=0.5)
        assert tracker.active_intervals == 0

    asyncio.run(scenario())


def test_arrival_at_the_current_position_is_now():
    async def scenario():
        tracker = _tracker(StubSource(PositionFix(lat=23.7461, lng=90.3742)))
        await tracker.start()

        assert tracker.distance_to(DHANMONDI) == 0
        assert tracker.estimate_arrival(DHANMONDI) == NOW
        await tracker.aclose()

    asyncio.run(scenario())
