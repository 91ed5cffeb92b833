import threading

import pytest

from stacytimelib.events import EventBus
from stacytimelib.models import FollowState
from stacytimelib.timers import Scheduler
from stacytimelib.viewport import ViewportController


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def viewport(clock, timers, bus):
    # 120 s at 60 px/s -> 7200 px track, 800 px container
    return ViewportController(duration=120, container_width=800,
                              event_bus=bus, clock=clock, timer_factory=timers)


def record(bus, event_type):
    seen = []
    bus.subscribe(event_type, lambda **data: seen.append(data))
    return seen


class TestFollowState:

    def test_starts_following(self, viewport):
        assert viewport.follow_state == FollowState.FOLLOWING
        assert viewport.state().is_auto_following

    def test_user_scroll_suspends_follow(self, viewport):
        viewport.on_user_scroll(500)

        assert viewport.follow_state == FollowState.MANUAL_OVERRIDE
        assert viewport.scroll_offset == 500
        # playhead far off-screen: no recenter while overridden
        viewport.on_playhead(100.0, playing=True)
        assert viewport.scroll_offset == 500

    def test_follow_resumes_after_quiet_period(self, viewport, timers):
        viewport.on_user_scroll(500)

        timers.advance(2.0)
        assert viewport.follow_state == FollowState.MANUAL_OVERRIDE

        timers.advance(0.1)
        assert viewport.follow_state == FollowState.FOLLOWING

    def test_each_scroll_replaces_the_timer(self, viewport, timers, clock):
        viewport.on_user_scroll(100)
        timers.advance(1.0)
        viewport.on_user_scroll(200)

        assert len(timers.active()) == 1
        assert timers.created[0].cancelled

        timers.advance(1.5)   # 2.5 s since the first scroll, 1.5 s since the last
        assert viewport.follow_state == FollowState.MANUAL_OVERRIDE

        timers.advance(0.6)
        assert viewport.follow_state == FollowState.FOLLOWING
        assert clock.now == pytest.approx(3.1)

    def test_replaced_check_that_still_fires_is_ignored(self, viewport, timers):
        viewport.on_user_scroll(100)
        stale = timers.created[0]
        viewport.on_user_scroll(200)
        current = timers.active()[0]

        # the replaced check runs anyway (e.g. already queued by the host loop)
        stale.callback()
        assert viewport.follow_state == FollowState.MANUAL_OVERRIDE

        viewport.on_user_scroll(300)
        assert current.cancelled
        assert len(timers.active()) == 1

    def test_seek_resumes_follow_immediately(self, viewport, timers):
        viewport.on_user_scroll(3000)

        assert viewport.seek(30.0) == 30.0
        assert viewport.follow_state == FollowState.FOLLOWING
        assert timers.active() == []

    def test_seek_is_clamped(self, viewport):
        assert viewport.seek(-5) == 0.0
        assert viewport.seek(500) == 120.0

    def test_seek_pixel(self, viewport):
        assert viewport.seek_pixel(3600) == pytest.approx(60.0)

    def test_follow_changed_events(self, viewport, bus, timers):
        seen = record(bus, "viewport.follow_changed")

        viewport.on_user_scroll(10)
        viewport.on_user_scroll(20)
        timers.advance(2.1)

        assert seen == [{"following": False}, {"following": True}]

    def test_recenter_near_right_edge(self, viewport):
        # 13 s -> 780 px, inside the right 10% margin of [0, 800)
        viewport.on_playhead(13.0, playing=True)
        assert viewport.scroll_offset == pytest.approx(380.0)

    def test_recenter_near_left_edge(self, viewport):
        viewport.scroll_to(3000)
        viewport.on_playhead(50.0, playing=True)   # 3000 px, at the left edge
        assert viewport.scroll_offset == pytest.approx(2600.0)

    def test_no_recenter_inside_margin(self, viewport):
        viewport.on_playhead(6.0, playing=True)    # 360 px
        assert viewport.scroll_offset == 0

    def test_no_recenter_when_paused(self, viewport):
        viewport.on_playhead(100.0, playing=False)
        assert viewport.scroll_offset == 0

    def test_scroll_is_clamped(self, viewport):
        assert viewport.on_user_scroll(-50) == 0
        assert viewport.on_user_scroll(99999) == 6400
        assert viewport.max_scroll() == 6400


class TestZoom:

    def test_zoom_clamped(self, viewport):
        assert viewport.set_zoom(10) == 4.0
        assert viewport.set_zoom(0.01) == 0.1

    def test_zoom_steps_and_reset(self, viewport, bus):
        seen = record(bus, "viewport.zoom_changed")

        assert viewport.zoom_in() == pytest.approx(1.5)
        assert viewport.zoom_out() == pytest.approx(1.0)
        viewport.zoom_in()
        assert viewport.reset_zoom() == 1.0
        assert [e["zoom"] for e in seen] == pytest.approx([1.5, 1.0, 1.5, 1.0])

    def test_zoom_keeps_left_edge_time(self, viewport):
        viewport.scroll_to(3600)        # 60 s at the left edge
        viewport.set_zoom(2.0)

        assert viewport.scroll_offset == pytest.approx(7200)
        assert viewport.mapper().pixel_to_time(viewport.scroll_offset) == pytest.approx(60.0)

    def test_zoom_out_clamps_scroll(self, viewport):
        viewport.scroll_to(6400)
        viewport.set_zoom(0.1)          # track collapses to the 800 px minimum
        assert viewport.scroll_offset == 0


class TestDrag:

    @pytest.fixture
    def drag_viewport(self, clock, timers):
        # 100 s at zoom 1/6 -> 1000 px track, 0.1 s per pixel
        vp = ViewportController(duration=100, container_width=800,
                                clock=clock, timer_factory=timers)
        vp.set_zoom(1 / 6)
        return vp

    def test_drag_keeps_grab_offset(self, drag_viewport):
        updates = []
        assert drag_viewport.mapper().seconds_per_pixel == pytest.approx(0.1)

        # command at 10 s (100 px) grabbed 10 px to its right
        assert drag_viewport.begin_drag("c1", 10.0, 110.0,
                                        on_update=lambda cid, t: updates.append((cid, t)))
        assert drag_viewport.drag.offset_px == pytest.approx(10.0)

        assert drag_viewport.drag_to(210.0) == pytest.approx(20.0)
        assert updates[-1][0] == "c1"
        assert updates[-1][1] == pytest.approx(20.0)

    def test_drag_clamped_to_track(self, drag_viewport):
        drag_viewport.begin_drag("c1", 10.0, 100.0)

        assert drag_viewport.drag_to(-500) == 0.0
        assert drag_viewport.drag_to(5000) == 100.0

    def test_single_drag_at_a_time(self, drag_viewport):
        assert drag_viewport.begin_drag("a", 1.0, 10.0)
        assert not drag_viewport.begin_drag("b", 2.0, 20.0)

        assert drag_viewport.end_drag() == "a"
        assert drag_viewport.drag is None
        assert drag_viewport.drag_to(50.0) is None
        assert drag_viewport.end_drag() is None


class TestResize:

    def test_resize_is_debounced(self, viewport, timers, bus):
        seen = record(bus, "viewport.resized")

        viewport.request_resize(1000)
        viewport.request_resize(1200)
        assert viewport.container_width == 800
        assert len(timers.active()) == 1

        timers.advance(0.1)
        assert viewport.container_width == 1200
        assert seen == [{"width": 1200.0}]

    def test_resize_reclamps_scroll(self, viewport):
        viewport.scroll_to(6400)
        viewport.set_container_width(1600)
        assert viewport.scroll_offset == 5600

    def test_set_duration_reclamps_scroll(self, viewport):
        viewport.scroll_to(6400)
        viewport.set_duration(20)       # 1200 px track
        assert viewport.scroll_offset == 400

    def test_dispose_cancels_timers(self, viewport, timers):
        viewport.on_user_scroll(100)
        viewport.request_resize(900)

        viewport.dispose()
        assert timers.active() == []


class TestDefaultScheduler:

    def test_quiet_period_resumes_on_polling_thread(self, clock):
        bus = EventBus()
        seen = []
        bus.subscribe("viewport.follow_changed",
                      lambda **d: seen.append((d["following"], threading.current_thread())))
        viewport = ViewportController(duration=120, event_bus=bus, clock=clock)
        assert isinstance(viewport.timer_factory, Scheduler)

        viewport.on_user_scroll(100)
        clock.now = 5.0
        assert viewport.follow_state == FollowState.MANUAL_OVERRIDE

        viewport.timer_factory.poll()
        me = threading.current_thread()
        assert seen == [(False, me), (True, me)]
