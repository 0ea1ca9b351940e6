from datetime import datetime, timedelta, timezone

import pytest

from repositories.reminders_repo import ReminderLimitError, RemindersRepository

NOW = datetime(2024, 3, 4, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def repo(fake_collection):
    return RemindersRepository(fake_collection, max_per_user=2)


@pytest.mark.repo
@pytest.mark.asyncio
async def test_pending_reminders_are_sorted_by_time(repo):
    await repo.add(1, 10, "늦은 일", NOW + timedelta(hours=2))
    await repo.add(1, 10, "이른 일", NOW + timedelta(minutes=5))

    pending = await repo.pending_for(1)

    assert [r.text for r in pending] == ["이른 일", "늦은 일"]
    assert pending[0].chat_id == 10


@pytest.mark.repo
@pytest.mark.asyncio
async def test_limit_counts_only_pending_reminders(repo):
    first = await repo.add(1, 1, "a", NOW)
    await repo.add(1, 1, "b", NOW)

    with pytest.raises(ReminderLimitError):
        await repo.add(1, 1, "c", NOW)

    await repo.mark_delivered(first.id, NOW)
    await repo.add(1, 1, "c", NOW)
    assert await repo.count_pending(1) == 2


@pytest.mark.repo
@pytest.mark.asyncio
async def test_cancel_is_scoped_to_owner(repo):
    reminder = await repo.add(1, 1, "회의", NOW)

    assert await repo.cancel(2, reminder.id) is False
    assert await repo.cancel(1, "not-an-id") is False
    assert await repo.cancel(1, reminder.id) is True
    assert await repo.get(reminder.id) is None


@pytest.mark.repo
@pytest.mark.asyncio
async def test_cancel_all_returns_removed_ids(repo):
    a = await repo.add(1, 1, "a", NOW)
    b = await repo.add(1, 1, "b", NOW)
    other = await repo.add(2, 2, "c", NOW)

    assert sorted(await repo.cancel_all(1)) == sorted([a.id, b.id])
    assert [r.id for r in await repo.all_pending()] == [other.id]
