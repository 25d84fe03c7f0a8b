"""TourEngine lifecycle, navigation and placement pipeline (headless host)."""

from __future__ import annotations

import asyncio
import logging

import pytest

from fakes import GatedMeasure, make_harness, manual_step
from tourpilot.design.geometry import MaskShape, Rect
from tourpilot.errors import ConfigurationWarning
from tourpilot.services.event_bus import StopPayload, TourEvent
from tourpilot.services.tour_engine import SCROLL_SETTLE_FRAMES, EnginePhase, EngineState


def _three_steps(h):
    h.add_step("one", 1, Rect(20, 20, 60, 60), content="Hello||First")
    h.add_step("two", 2, Rect(320, 700, 60, 60))
    h.add_step("three", 3, Rect(100, 300, 80, 40))


@pytest.mark.asyncio
async def test_start_places_first_step_then_shows():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    assert h.engine.phase is EnginePhase.ACTIVE
    assert h.engine.active_tour == "t"
    assert h.engine.current_step.name == "one"
    assert h.engine.visible is True
    assert h.renderer.visible is True
    frame = h.renderer.last_frame
    assert frame.target == Rect(18, 18, 64, 64)
    assert frame.placement.vertical == "bottom"
    assert h.recorder.names() == ["start"]
    assert h.recorder.events[0][1].tour_key == "t"


@pytest.mark.asyncio
async def test_start_from_named_step():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t", "two")
    assert h.engine.current_step.name == "two"
    assert h.engine.current_step_number == 2


@pytest.mark.asyncio
async def test_start_then_stop_restores_idle_state():
    h = make_harness()
    _three_steps(h)
    before = h.engine.state
    assert before == EngineState()
    await h.engine.start("t")
    await h.engine.stop()
    assert h.engine.state == before
    assert h.engine.phase is EnginePhase.IDLE
    assert h.renderer.visible is False
    assert h.recorder.names() == ["start", "stop"]
    assert h.recorder.events[-1][1] == StopPayload(tour_key="t", completed=False)


@pytest.mark.asyncio
async def test_start_without_steps_gives_up_after_retry_cap():
    h = make_harness(max_start_tries=3)
    with pytest.warns(ConfigurationWarning, match="no steps found"):
        await h.engine.start("missing")
    assert h.engine.active_tour is None
    assert h.engine.phase is EnginePhase.IDLE
    assert h.engine.start_tries == 0
    assert h.host.frames == 3
    assert h.recorder.events == []


@pytest.mark.asyncio
async def test_start_waits_for_steps_that_mount_late():
    h = make_harness(max_start_tries=10)
    task = asyncio.create_task(h.engine.start("t"))
    await asyncio.sleep(0)
    assert h.engine.phase is EnginePhase.STARTING
    h.add_step("one", 1)
    await task
    assert h.engine.current_step.name == "one"
    assert h.engine.visible


@pytest.mark.asyncio
async def test_stop_while_starting_aborts_quietly():
    h = make_harness(max_start_tries=50)
    task = asyncio.create_task(h.engine.start("missing"))
    await asyncio.sleep(0)
    await h.engine.stop()
    await task
    assert h.engine.phase is EnginePhase.IDLE
    assert h.recorder.events == []


@pytest.mark.asyncio
async def test_stop_when_idle_is_silent_noop():
    h = make_harness()
    await h.engine.stop()
    assert h.recorder.events == []
    assert h.engine.scroll_container is None


@pytest.mark.asyncio
async def test_second_start_while_active_is_ignored(caplog):
    h = make_harness()
    _three_steps(h)
    h.add_step("solo", 1, tour_key="other")
    await h.engine.start("t")
    with caplog.at_level(logging.WARNING, logger="tourpilot"):
        await h.engine.start("other")
    assert h.engine.active_tour == "t"
    assert h.recorder.names() == ["start"]
    assert any("call stop() first" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_go_to_next_emits_step_change_and_places():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    await h.engine.go_to_next()
    name, payload = h.recorder.events[-1]
    assert name == "stepChange"
    assert payload.step.name == "two"
    assert payload.step_number == 2
    assert h.renderer.last_frame.placement.vertical == "top"
    assert h.engine.current_step_number == 2
    assert h.engine.total_steps_number == 3


@pytest.mark.asyncio
async def test_go_to_next_on_last_step_completes_tour():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t", "three")
    assert h.engine.is_last_step
    await h.engine.go_to_next()
    assert h.engine.state == EngineState()
    assert h.recorder.events[-1] == ("stop", StopPayload(tour_key="t", completed=True))


@pytest.mark.asyncio
async def test_go_to_prev_on_first_step_is_noop():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    state, events, frames = h.engine.state, list(h.recorder.events), len(h.renderer.frames)
    assert h.engine.is_first_step
    await h.engine.go_to_prev()
    assert h.engine.state == state
    assert h.recorder.events == events
    assert len(h.renderer.frames) == frames


@pytest.mark.asyncio
async def test_go_to_prev_moves_back():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t", "three")
    await h.engine.go_to_prev()
    assert h.engine.current_step.name == "two"
    assert h.recorder.events[-1][1].step_number == 2


@pytest.mark.asyncio
async def test_go_to_nth_range_checks():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    await h.engine.go_to_nth(0)
    await h.engine.go_to_nth(4)
    assert h.recorder.names() == ["start"]
    await h.engine.go_to_nth(3)
    assert h.engine.current_step.name == "three"
    assert h.recorder.events[-1][1].step_number == 3


@pytest.mark.asyncio
async def test_navigation_without_active_tour_is_noop():
    h = make_harness()
    _three_steps(h)
    await h.engine.go_to_next()
    await h.engine.go_to_prev()
    await h.engine.go_to_nth(1)
    assert h.recorder.events == []
    assert h.renderer.frames == []


@pytest.mark.asyncio
async def test_invisible_steps_are_skipped():
    h = make_harness()
    _three_steps(h)
    h.bindings[1].update(active=False)
    await h.engine.start("t")
    await h.engine.go_to_next()
    assert h.engine.current_step.name == "three"
    assert h.engine.total_steps_number == 2


@pytest.mark.asyncio
async def test_stale_measurement_is_dropped():
    h = make_harness()
    slow = GatedMeasure(Rect(300, 300, 10, 10))
    h.registry.register(manual_step("t", "slow", 1, slow))
    h.add_step("fast", 2, Rect(20, 20, 60, 60))
    task = asyncio.create_task(h.engine.start("t"))
    while slow.calls == 0:
        await asyncio.sleep(0)
    assert h.engine.transitioning
    await h.engine.go_to_next()
    assert h.engine.current_step.name == "fast"
    slow.release()
    await task
    assert [f.target for f in h.renderer.frames] == [Rect(18, 18, 64, 64)]
    assert h.engine.frame.target == Rect(18, 18, 64, 64)
    assert not h.engine.transitioning


@pytest.mark.asyncio
async def test_scroll_container_is_scrolled_and_settled_before_measure():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t", scroll_container="list")
    assert h.host.scrolled == [("list", "t:one")]
    assert h.host.frames >= SCROLL_SETTLE_FRAMES
    assert h.engine.scroll_container == "list"
    await h.engine.stop()
    assert h.engine.scroll_container is None


@pytest.mark.asyncio
async def test_highlight_padding_and_vertical_offset():
    h = make_harness(highlight_padding=10, vertical_offset=5)
    h.add_step("one", 1, Rect(100, 100, 50, 50))
    h.add_step("two", 2, Rect(100, 100, 50, 50), highlight_padding=0)
    await h.engine.start("t")
    assert h.renderer.last_frame.target == Rect(95, 100, 60, 60)
    await h.engine.go_to_next()
    assert h.renderer.last_frame.target == Rect(100, 105, 50, 50)


@pytest.mark.asyncio
async def test_step_mask_shape_and_radius_reach_the_frame():
    h = make_harness(border_radius=8)
    h.add_step("one", 1, Rect(100, 100, 50, 50), mask_shape="circle")
    h.add_step("two", 2, Rect(100, 100, 50, 50), border_radius=100)
    await h.engine.start("t")
    assert h.engine.snapshot().mask_shape is MaskShape.CIRCLE
    await h.engine.go_to_next()
    assert h.renderer.last_frame.mask.radius == 27


@pytest.mark.asyncio
async def test_viewport_change_replaces_without_remeasuring():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    h.host.resize(800, 400)
    assert h.engine.frame.viewport == Rect(0, 0, 800, 400)
    await asyncio.sleep(0)
    assert h.renderer.last_frame.viewport == Rect(0, 0, 800, 400)
    assert h.renderer.last_frame.target == Rect(18, 18, 64, 64)


@pytest.mark.asyncio
async def test_remeasure_picks_up_moved_element():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    h.host.place("t:one", Rect(40, 40, 60, 60))
    await h.engine.remeasure_current_step()
    assert h.engine.frame.target == Rect(38, 38, 64, 64)


@pytest.mark.asyncio
async def test_measurement_stall_keeps_previous_geometry(caplog):
    h = make_harness(max_measure_frames=2)
    h.add_step("one", 1, Rect(20, 20, 60, 60))
    h.add_step("ghost", 2, rect=None)
    await h.engine.start("t")
    with caplog.at_level(logging.WARNING, logger="tourpilot"):
        await h.engine.go_to_next()
    assert h.engine.current_step.name == "ghost"
    assert h.engine.frame.target == Rect(18, 18, 64, 64)
    assert any("stalled" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_element_laid_out_after_a_few_frames():
    h = make_harness()
    h.add_step("one", 1, Rect(0, 0, 0, 0))
    task = asyncio.create_task(h.engine.start("t"))
    for _ in range(3):
        await asyncio.sleep(0)
    h.host.place("t:one", Rect(20, 20, 60, 60))
    await asyncio.wait_for(task, timeout=1)
    assert h.renderer.last_frame.target == Rect(18, 18, 64, 64)


@pytest.mark.asyncio
async def test_backdrop_click_respects_option():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    assert h.engine.handle_backdrop_click() is None
    assert h.engine.visible

    h2 = make_harness(stop_on_outside_click=True)
    _three_steps(h2)
    await h2.engine.start("t")
    await h2.engine.handle_backdrop_click()
    assert h2.engine.active_tour is None
    assert h2.recorder.events[-1] == ("stop", StopPayload(tour_key="t", completed=False))


@pytest.mark.asyncio
async def test_back_and_keyboard_requests():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    await h.engine.handle_next_request()
    assert h.engine.current_step.name == "two"
    await h.engine.handle_prev_request()
    assert h.engine.current_step.name == "one"
    await h.engine.handle_back_request()
    assert h.engine.active_tour is None
    assert h.engine.handle_back_request() is None


def test_ui_callbacks_without_loop_are_dropped():
    h = make_harness()
    assert h.engine.handle_back_request() is None
    h.engine.on_viewport_changed(10, 10)


def test_ui_callbacks_without_loop_go_through_dispatcher():
    h = make_harness()
    _three_steps(h)
    asyncio.run(h.engine.start("t"))
    submitted = []
    h.engine.set_dispatcher(submitted.append)
    h.engine.handle_next_request()
    h.engine.handle_back_request()
    assert len(submitted) == 2
    asyncio.run(submitted[0])
    assert h.engine.current_step.name == "two"
    asyncio.run(submitted[1])
    assert h.engine.active_tour is None
    assert h.recorder.events[-1] == ("stop", StopPayload(tour_key="t", completed=False))


@pytest.mark.asyncio
async def test_step_change_carries_key_of_tour_being_navigated():
    h = make_harness()
    _three_steps(h)
    h.add_step("solo", 1, Rect(10, 10, 20, 20), tour_key="other")
    await h.engine.start("t")
    await h.engine.go_to_nth(3)
    name, payload = h.recorder.events[-1]
    assert name == "stepChange"
    assert payload.tour_key == "t"
    assert payload.step.name == "three"
    await h.engine.stop()
    await h.engine.go_to_nth(1)
    assert h.recorder.names()[-1] == "stop"


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_start():
    h = make_harness()
    _three_steps(h)

    def bad(_):
        raise RuntimeError("listener boom")

    h.engine.on(TourEvent.START, bad)
    await h.engine.start("t")
    assert h.engine.visible
    assert len(h.bus.errors) == 1
    h.engine.off(TourEvent.START, bad)
    assert h.bus.subscriber_count(TourEvent.START) == 1


@pytest.mark.asyncio
async def test_snapshot_exposes_render_state():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    snap = h.engine.snapshot()
    assert snap.visible
    assert snap.current_step.content == "Hello||First"
    assert (snap.current_step_number, snap.total_steps_number) == (1, 3)
    assert snap.is_first_step and not snap.is_last_step
    assert snap.backdrop_color == h.engine.options.backdrop_color


@pytest.mark.asyncio
async def test_close_detaches_viewport_listener():
    h = make_harness()
    _three_steps(h)
    await h.engine.start("t")
    h.engine.close()
    frames = len(h.renderer.frames)
    h.host.resize(100, 100)
    await asyncio.sleep(0)
    assert len(h.renderer.frames) == frames
