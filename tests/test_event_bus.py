import logging

from tourpilot.errors import ListenerError
from tourpilot.services.event_bus import EventBus, StartPayload, TourEvent


def test_subscribe_publish_basic():
    bus = EventBus()
    received = []
    bus.subscribe(TourEvent.START, received.append)
    bus.publish(TourEvent.START, StartPayload(tour_key="t"))
    assert received == [StartPayload(tour_key="t")]


def test_string_and_enum_names_share_a_channel():
    bus = EventBus()
    received = []
    bus.on("stepChange", received.append)
    bus.publish(TourEvent.STEP_CHANGE, 1)
    assert received == [1]
    assert bus.list_events() == ["stepChange"]


def test_once_subscription():
    bus = EventBus()
    count = 0

    def incr(_):
        nonlocal count
        count += 1

    bus.subscribe(TourEvent.STOP, incr, once=True)
    bus.publish(TourEvent.STOP)
    bus.publish(TourEvent.STOP)
    assert count == 1
    assert bus.subscriber_count(TourEvent.STOP) == 0


def test_on_is_deduplicated_and_off_removes():
    bus = EventBus()
    received = []
    bus.on(TourEvent.START, received.append)
    bus.on(TourEvent.START, received.append)
    assert bus.subscriber_count(TourEvent.START) == 1
    bus.off(TourEvent.START, received.append)
    bus.publish(TourEvent.START, "x")
    assert received == []


def test_error_isolation(caplog):
    bus = EventBus()
    order = []

    def bad(_):
        order.append("bad")
        raise RuntimeError("boom")

    def good(_):
        order.append("good")

    bus.subscribe(TourEvent.START, bad)
    bus.subscribe(TourEvent.START, good)
    with caplog.at_level(logging.ERROR, logger="tourpilot"):
        bus.publish(TourEvent.START, None)
    assert order == ["bad", "good"]
    err = bus.last_error()
    assert isinstance(err, ListenerError)
    assert isinstance(err.original, RuntimeError)
    assert len(bus.errors) == 1
    assert any("start listener" in r.getMessage() for r in caplog.records)


def test_listener_removing_itself_during_publish():
    bus = EventBus()
    calls = []

    def self_removing(_):
        calls.append("self")
        bus.off(TourEvent.START, self_removing)

    def other(_):
        calls.append("other")

    bus.on(TourEvent.START, self_removing)
    bus.on(TourEvent.START, other)
    bus.publish(TourEvent.START)
    bus.publish(TourEvent.START)
    assert calls == ["self", "other", "other"]


def test_listener_added_during_publish_waits_for_next_publish():
    bus = EventBus()
    calls = []

    def late(_):
        calls.append("late")

    def adder(_):
        calls.append("adder")
        bus.on(TourEvent.START, late)

    bus.on(TourEvent.START, adder)
    bus.publish(TourEvent.START)
    assert calls == ["adder"]
    bus.publish(TourEvent.START)
    assert calls == ["adder", "adder", "late"]


def test_remove_all_listeners_and_clear():
    bus = EventBus()
    bus.on(TourEvent.START, lambda _: None)
    bus.on(TourEvent.STOP, lambda _: None)
    bus.remove_all_listeners(TourEvent.START)
    assert bus.list_events() == ["stop"]
    bus.remove_all_listeners()
    assert bus.list_events() == []
    bus.clear()
    assert bus.errors == []
