"""Tests for the typed event channel."""

from migrator.orchestrator.events import EventChannel, EventKind


def test_subscribers_receive_only_their_kind():
    channel = EventChannel("test")
    seen = []
    channel.subscribe(EventKind.PHASE_START, lambda e: seen.append(e.payload["phase"]))

    channel.publish(EventKind.PHASE_START, phase="analysis")
    channel.publish(EventKind.PHASE_COMPLETE, phase="analysis")

    assert seen == ["analysis"]


def test_string_kinds_are_accepted():
    channel = EventChannel()
    seen = []
    channel.subscribe("tool:executed", lambda e: seen.append(e.kind))

    channel.publish("tool:executed", tool_name="echo")

    assert seen == [EventKind.TOOL_EXECUTED]


def test_unsubscribe_stops_delivery():
    channel = EventChannel()
    seen = []
    unsubscribe = channel.subscribe(EventKind.PROGRESS_UPDATE, lambda e: seen.append(e.payload["progress"]))

    channel.publish(EventKind.PROGRESS_UPDATE, progress=10)
    unsubscribe()
    channel.publish(EventKind.PROGRESS_UPDATE, progress=20)

    assert seen == [10]
    assert channel.subscriber_count() == 0


def test_subscribe_all_sees_every_event_in_order():
    channel = EventChannel()
    kinds = []
    channel.subscribe_all(lambda e: kinds.append(e.kind))

    channel.publish(EventKind.RUN_START)
    channel.publish(EventKind.PHASE_START, phase="x")
    channel.publish(EventKind.RUN_COMPLETE)

    assert kinds == [EventKind.RUN_START, EventKind.PHASE_START, EventKind.RUN_COMPLETE]


def test_failing_handler_does_not_block_others_or_publisher():
    channel = EventChannel()
    seen = []

    def broken(event):
        raise RuntimeError("handler bug")

    channel.subscribe(EventKind.ERROR_ADD, broken)
    channel.subscribe(EventKind.ERROR_ADD, lambda e: seen.append(e.payload["message"]))

    event = channel.publish(EventKind.ERROR_ADD, message="disk full")

    assert seen == ["disk full"]
    assert event.kind == EventKind.ERROR_ADD


def test_subscriber_count_by_kind_includes_wildcards():
    channel = EventChannel()
    channel.subscribe(EventKind.AI_CALL, lambda e: None)
    channel.subscribe_all(lambda e: None)

    assert channel.subscriber_count(EventKind.AI_CALL) == 2
    assert channel.subscriber_count(EventKind.AI_ERROR) == 1

    channel.clear()
    assert channel.subscriber_count() == 0
