from datetime import datetime, timedelta, timezone

import pytest

from features.timer import TimerFeature, timer_job_name


class SteppingClock:
    def __init__(self):
        self.now = datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def timer(scheduler, responder, clock):
    return TimerFeature(scheduler, responder, default_minutes=25, clock=clock)


def _callbacks(keyboard):
    return [b.callback_data for row in keyboard.buttons for b in row]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_menu_offers_presets(timer, responder, make_query):
    await timer.handle_callback(responder, make_query("timer:menu"), "menu", [], None)

    callbacks = _callbacks(responder.edited_messages[-1]["keyboard"])
    assert ["timer:start:5", "timer:start:10", "timer:start:25", "timer:custom"] == callbacks[:4]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_start_schedules_job_and_completion_notifies(timer, scheduler, responder, make_query, clock):
    await timer.handle_callback(responder, make_query("timer:start:5"), "start", ["5"], None)

    job = scheduler.get_job(timer_job_name(42))
    assert job is not None
    assert job.scheduled_time == clock.now + timedelta(minutes=5)
    assert "5분 타이머를 시작했습니다" in responder.edited_messages[-1]["text"]

    clock.now += timedelta(minutes=2)
    await timer.handle_callback(responder, make_query("timer:status"), "status", [], None)
    assert "3분" in responder.edited_messages[-1]["text"]

    assert await scheduler.run_due(clock.now) == 0
    assert await scheduler.run_due(clock.now + timedelta(minutes=3)) == 1
    assert "타이머 완료" in responder.sent_messages[-1]["text"]
    assert timer.active_timer(42) is None


@pytest.mark.handler
@pytest.mark.asyncio
async def test_only_one_timer_per_user(timer, responder, make_query):
    await timer.handle_callback(responder, make_query("timer:start:5"), "start", ["5"], None)
    await timer.handle_callback(responder, make_query("timer:start:10"), "start", ["10"], None)

    assert "이미 실행 중인 타이머" in responder.edited_messages[-1]["text"]
    assert timer.active_timer(42).minutes == 5


@pytest.mark.handler
@pytest.mark.asyncio
async def test_stop_cancels_job(timer, scheduler, responder, make_query):
    await timer.handle_callback(responder, make_query("timer:start"), "start", [], None)
    assert timer.active_timer(42).minutes == 25

    await timer.handle_callback(responder, make_query("timer:stop"), "stop", [], None)

    assert scheduler.get_all_jobs() == {}
    assert "중지했습니다" in responder.edited_messages[-1]["text"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_out_of_range_start_is_refused(timer, scheduler, responder, make_query):
    await timer.handle_callback(responder, make_query("timer:start:999"), "start", ["999"], None)

    assert scheduler.get_all_jobs() == {}
    assert "1~180분" in responder.edited_messages[-1]["text"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_custom_minutes_via_text(timer, responder, make_query, make_message):
    await timer.handle_callback(responder, make_query("timer:custom"), "custom", [], None)

    assert await timer.handle_message(responder, make_message("abc")) is True
    assert timer.pending_for(42) == "custom_minutes"

    assert await timer.handle_message(responder, make_message("15분")) is True
    assert timer.pending_for(42) is None
    assert timer.active_timer(42).minutes == 15


@pytest.mark.handler
@pytest.mark.asyncio
async def test_cleanup_cancels_all_jobs(timer, scheduler, responder, make_query):
    await timer.handle_callback(responder, make_query("timer:start:5", user_id=1), "start", ["5"], None)
    await timer.handle_callback(responder, make_query("timer:start:5", user_id=2), "start", ["5"], None)

    await timer.cleanup()

    assert scheduler.get_all_jobs() == {}


class NoQueueScheduler:
    def schedule_once(self, name, callback, when, data=None):
        raise RuntimeError("job queue unavailable")

    def cancel_job(self, name):
        return False


@pytest.mark.handler
def test_failed_scheduling_leaves_no_active_timer(responder, clock):
    timer = TimerFeature(NoQueueScheduler(), responder, clock=clock)

    with pytest.raises(RuntimeError):
        timer.start_timer(1, 1, 5)

    assert timer.active_timer(1) is None
