import asyncio
import json

import pytest

from programfactory.progress import EventType, ProgressBroadcaster, ProgressEvent


async def _drain(subscription):
    return [event async for event in subscription]


@pytest.mark.asyncio
async def test_publish_without_subscriber_is_dropped():
    broadcaster = ProgressBroadcaster()
    assert broadcaster.step_started("job-1", "session-1") is False
    assert broadcaster.complete("job-1") is False

    subscription = broadcaster.subscribe("job-1")
    broadcaster.complete("job-1", data={"total_units": 0})
    events = await _drain(subscription)
    # Nothing published before subscribing is replayed.
    assert [e.type for e in events] == [EventType.CONNECTED, EventType.COMPLETE]


@pytest.mark.asyncio
async def test_events_arrive_in_order_and_complete_ends_feed():
    broadcaster = ProgressBroadcaster()
    subscription = broadcaster.subscribe("job-1")

    broadcaster.step_started("job-1", "session-1", "Generating session 1")
    broadcaster.step_completed("job-1", "session-1", data={"qc_score": 82})
    broadcaster.error("job-1", "quiz failed", step="session-2")
    broadcaster.complete("job-1", data={"total_units": 2})

    events = await asyncio.wait_for(_drain(subscription), 1)
    assert [e.type for e in events] == [
        EventType.CONNECTED,
        EventType.STEP_STARTED,
        EventType.STEP_COMPLETED,
        EventType.ERROR,
        EventType.COMPLETE,
    ]
    assert events[2].data == {"qc_score": 82}
    assert subscription.closed
    assert not broadcaster.has_subscriber("job-1")
    assert broadcaster.step_started("job-1", "late") is False


@pytest.mark.asyncio
async def test_fatal_error_ends_feed():
    broadcaster = ProgressBroadcaster()
    subscription = broadcaster.subscribe("job-1")
    broadcaster.error("job-1", "boom")

    events = await asyncio.wait_for(_drain(subscription), 1)
    assert events[-1].type == EventType.ERROR
    assert events[-1].is_terminal


@pytest.mark.asyncio
async def test_events_after_disconnect_are_dropped():
    broadcaster = ProgressBroadcaster()
    async with broadcaster.subscribe("job-1") as subscription:
        assert broadcaster.step_started("job-1", "session-1") is True

    assert subscription.closed
    assert broadcaster.step_completed("job-1", "session-1") is False
    events = await _drain(subscription)
    assert [e.type for e in events] == [EventType.CONNECTED, EventType.STEP_STARTED]


@pytest.mark.asyncio
async def test_last_subscriber_wins():
    broadcaster = ProgressBroadcaster()
    first = broadcaster.subscribe("job-1")
    second = broadcaster.subscribe("job-1")

    assert first.closed
    broadcaster.step_started("job-1", "session-1")
    broadcaster.complete("job-1")

    first_events = await _drain(first)
    second_events = await _drain(second)
    assert [e.type for e in first_events] == [EventType.CONNECTED]
    assert [e.type for e in second_events] == [
        EventType.CONNECTED,
        EventType.STEP_STARTED,
        EventType.COMPLETE,
    ]

    # Closing the displaced subscription must not remove the current one.
    third = broadcaster.subscribe("job-2")
    fourth = broadcaster.subscribe("job-2")
    broadcaster.unsubscribe(third)
    assert broadcaster.has_subscriber("job-2")
    broadcaster.unsubscribe(fourth)
    assert not broadcaster.has_subscriber("job-2")


def test_sse_wire_format():
    event = ProgressEvent(type=EventType.STEP_STARTED, job_id="job-1", step="session-1")
    wire = event.to_sse()
    assert wire.startswith("data: ")
    assert wire.endswith("\n\n")
    payload = json.loads(wire[len("data: "):])
    assert payload["type"] == "step-started"
    assert payload["step"] == "session-1"
    assert "message" not in payload
