from datetime import datetime, timedelta, timezone

import pytest

from features.reminder import MAX_DELIVERY_ATTEMPTS, RETRY_DELAY, ReminderFeature, quick_label, reminder_job_name
from repositories.reminders_repo import RemindersRepository


class SteppingClock:
    def __init__(self):
        # 2024-03-04 09:00 KST
        self.now = datetime(2024, 3, 4, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def repo(fake_collection):
    return RemindersRepository(fake_collection, max_per_user=3)


@pytest.fixture
def reminder(repo, scheduler, responder, clock):
    return ReminderFeature(repo, scheduler, responder, clock=clock)


def _callbacks(keyboard):
    return [b.callback_data for row in keyboard.buttons for b in row]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_empty_list_offers_quick_and_custom(reminder, responder, make_query):
    await reminder.handle_callback(responder, make_query("reminder:menu"), "menu", [], None)

    reply = responder.edited_messages[-1]
    assert "예약된 리마인더가 없습니다" in reply["text"]
    callbacks = _callbacks(reply["keyboard"])
    assert callbacks[:5] == [
        "reminder:quick:5",
        "reminder:quick:10",
        "reminder:quick:30",
        "reminder:quick:60",
        "reminder:create",
    ]
    assert "reminder:cancel_all" not in callbacks
    assert callbacks[-1] == "system:menu"


@pytest.mark.handler
@pytest.mark.asyncio
async def test_typed_reminder_is_scheduled_and_delivered(reminder, repo, scheduler, responder, make_query, make_message, clock):
    await reminder.handle_callback(responder, make_query("reminder:create"), "create", [], None)
    assert reminder.pending_for(42) == "full"

    assert await reminder.handle_message(responder, make_message("30분 후 회의 준비")) is True
    assert reminder.pending_for(42) is None
    assert "알려드릴게요: 회의 준비" in responder.sent_messages[-1]["text"]

    [saved] = await repo.pending_for(42)
    job = scheduler.get_job(reminder_job_name(saved.id))
    assert job.scheduled_time == clock.now + timedelta(minutes=30)

    clock.now += timedelta(minutes=30)
    assert await scheduler.run_due(clock.now) == 1

    delivered = responder.sent_messages[-1]
    assert "리마인더" in delivered["text"]
    assert "회의 준비" in delivered["text"]
    assert delivered["chat_id"] == 42
    assert await repo.pending_for(42) == []
    assert (await repo.get(saved.id)).delivered is True


@pytest.mark.handler
@pytest.mark.asyncio
async def test_unparseable_text_keeps_waiting(reminder, repo, responder, make_query, make_message):
    await reminder.handle_callback(responder, make_query("reminder:create"), "create", [], None)

    assert await reminder.handle_message(responder, make_message("언젠가 회의")) is True

    assert "이해하지 못했습니다" in responder.sent_messages[-1]["text"]
    assert reminder.pending_for(42) == "full"
    assert await repo.pending_for(42) == []


@pytest.mark.handler
@pytest.mark.asyncio
async def test_quick_reminder_asks_only_for_text(reminder, repo, scheduler, responder, make_query, make_message, clock):
    await reminder.handle_callback(responder, make_query("reminder:quick:10"), "quick", ["10"], None)
    assert "10분 후 리마인더" in responder.edited_messages[-1]["text"]

    assert await reminder.handle_message(responder, make_message("약 먹기")) is True

    [saved] = await repo.pending_for(42)
    assert saved.text == "약 먹기"
    assert scheduler.get_job(reminder_job_name(saved.id)).scheduled_time == clock.now + timedelta(minutes=10)


@pytest.mark.handler
@pytest.mark.asyncio
async def test_quick_with_bad_minutes_is_not_handled(reminder, responder, make_query):
    assert await reminder.handle_callback(responder, make_query("reminder:quick:abc"), "quick", ["abc"], None) is False
    assert await reminder.handle_callback(responder, make_query("reminder:quick:0"), "quick", ["0"], None) is False
    assert reminder.pending_for(42) is None


@pytest.mark.handler
@pytest.mark.asyncio
async def test_cancel_removes_job_and_record(reminder, repo, scheduler, responder, make_query, make_message):
    await reminder.handle_callback(responder, make_query("reminder:create"), "create", [], None)
    await reminder.handle_message(responder, make_message("15:30 보고서 제출"))
    [saved] = await repo.pending_for(42)

    await reminder.handle_callback(
        responder, make_query(f"reminder:cancel:{saved.id}"), "cancel", [saved.id], None
    )

    assert "취소했습니다" in responder.edited_messages[-1]["text"]
    assert scheduler.get_all_jobs() == {}
    assert await repo.pending_for(42) == []


@pytest.mark.handler
@pytest.mark.asyncio
async def test_cancel_all(reminder, repo, scheduler, responder, make_query, make_message):
    for text in ("10분 후 물 마시기", "1시간 후 스트레칭"):
        await reminder.handle_callback(responder, make_query("reminder:create"), "create", [], None)
        await reminder.handle_message(responder, make_message(text))
    assert len(scheduler.get_all_jobs()) == 2

    await reminder.handle_callback(responder, make_query("reminder:cancel_all"), "cancel_all", [], None)

    assert "리마인더 2개를 취소했습니다" in responder.edited_messages[-1]["text"]
    assert scheduler.get_all_jobs() == {}


@pytest.mark.handler
@pytest.mark.asyncio
async def test_limit_blocks_new_reminders(reminder, repo, responder, make_query, clock):
    for n in range(3):
        await repo.add(42, 42, f"할일 {n}", clock.now + timedelta(hours=n + 1))

    await reminder.handle_callback(responder, make_query("reminder:create"), "create", [], None)

    assert "최대 3개" in responder.edited_messages[-1]["text"]
    assert reminder.pending_for(42) is None


@pytest.mark.handler
@pytest.mark.asyncio
async def test_initialize_reschedules_pending_and_fires_overdue_now(reminder, repo, scheduler, clock):
    overdue = await repo.add(1, 1, "놓친 알림", clock.now - timedelta(minutes=5))
    upcoming = await repo.add(2, 2, "다가올 알림", clock.now + timedelta(hours=2))

    await reminder.initialize()

    assert scheduler.get_job(reminder_job_name(overdue.id)).scheduled_time == clock.now
    assert scheduler.get_job(reminder_job_name(upcoming.id)).scheduled_time == clock.now + timedelta(hours=2)

    await reminder.cleanup()
    assert scheduler.get_all_jobs() == {}


class FlakyResponder:
    """Fails the first `failures` sends, then records like a normal responder."""

    def __init__(self, failures):
        self.failures = failures
        self.sent = []

    async def send_text(self, **kwargs):
        if self.failures:
            self.failures -= 1
            return None
        self.sent.append(kwargs)
        return kwargs

    async def edit_message(self, **kwargs):
        return None


@pytest.mark.handler
@pytest.mark.asyncio
async def test_failed_delivery_is_retried_after_a_delay(repo, scheduler, clock):
    notifier = FlakyResponder(failures=1)
    feature = ReminderFeature(repo, scheduler, notifier, clock=clock)
    saved = await repo.add(1, 1, "재시도 알림", clock.now + timedelta(minutes=1))
    await feature.initialize()

    clock.now += timedelta(minutes=1)
    assert await scheduler.run_due(clock.now) == 1

    retry = scheduler.get_job(reminder_job_name(saved.id))
    assert retry.scheduled_time == clock.now + RETRY_DELAY
    assert (await repo.get(saved.id)).delivered is False

    clock.now += RETRY_DELAY
    assert await scheduler.run_due(clock.now) == 1

    assert "재시도 알림" in notifier.sent[-1]["text"]
    assert (await repo.get(saved.id)).delivered is True
    assert scheduler.get_all_jobs() == {}


@pytest.mark.handler
@pytest.mark.asyncio
async def test_undeliverable_reminder_stays_pending_after_last_attempt(repo, scheduler, clock):
    feature = ReminderFeature(repo, scheduler, FlakyResponder(failures=99), clock=clock)
    saved = await repo.add(1, 1, "전달 실패", clock.now + timedelta(minutes=1))
    await feature.initialize()

    for _ in range(MAX_DELIVERY_ATTEMPTS):
        clock.now += timedelta(minutes=1)
        assert await scheduler.run_due(clock.now) == 1

    assert scheduler.get_all_jobs() == {}
    assert (await repo.get(saved.id)).delivered is False
    assert [r.id for r in await repo.pending_for(1)] == [saved.id]


@pytest.mark.unit
def test_quick_label():
    assert quick_label(5) == "5분 후"
    assert quick_label(60) == "1시간 후"
    assert quick_label(90) == "1시간 30분 후"


@pytest.mark.handler
@pytest.mark.asyncio
async def test_hour_button_and_prompt_use_the_same_wording(reminder, responder, make_query):
    await reminder.handle_callback(responder, make_query("reminder:menu"), "menu", [], None)
    labels = [b.text for row in responder.edited_messages[-1]["keyboard"].buttons for b in row]
    assert "⏱️ 1시간 후" in labels

    await reminder.handle_callback(responder, make_query("reminder:quick:60"), "quick", ["60"], None)

    assert "1시간 후 리마인더" in responder.edited_messages[-1]["text"]
    assert "60분" not in responder.edited_messages[-1]["text"]
