import pytest

from handlers.middleware import (
    AccessPolicy,
    DispatchContext,
    RateLimiter,
    compose,
    with_auth,
    with_rate_limit,
)
from ui.messages import UNAUTHORIZED_TEXT


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _recording_base(calls):
    async def base(ctx):
        calls.append(ctx.user_id)
        return True
    return base


@pytest.mark.unit
@pytest.mark.asyncio
async def test_compose_runs_first_middleware_first():
    order = []

    def tag(name):
        def middleware(next_dispatch):
            async def dispatch(ctx):
                order.append(name)
                return await next_dispatch(ctx)
            return dispatch
        return middleware

    async def base(ctx):
        order.append("base")
        return True

    dispatch = compose([tag("auth"), tag("rate")], base)
    ctx = DispatchContext(responder=None, user_id=1, chat_id=1)

    assert await dispatch(ctx) is True
    assert order == ["auth", "rate", "base"]


@pytest.mark.unit
def test_empty_allow_list_admits_everyone():
    policy = AccessPolicy()

    assert policy.is_allowed(123)
    assert not policy.is_admin(123)


@pytest.mark.unit
def test_admins_are_always_allowed():
    policy = AccessPolicy(allowed_users=[1], admin_users=[9])

    assert policy.is_allowed(1)
    assert policy.is_allowed(9)
    assert not policy.is_allowed(2)
    assert policy.is_admin(9)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auth_denies_with_a_reply_and_counts_as_handled(responder, make_query):
    calls = []
    dispatch = with_auth(AccessPolicy(allowed_users=[1]))(_recording_base(calls))
    ctx = DispatchContext.for_callback(responder, make_query("todo:list", user_id=2))

    assert await dispatch(ctx) is True
    assert calls == []
    assert responder.edited_messages[-1]["text"] == UNAUTHORIZED_TEXT


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auth_denial_for_messages_sends_instead_of_editing(responder, make_message):
    dispatch = with_auth(AccessPolicy(allowed_users=[1]))(_recording_base([]))
    ctx = DispatchContext.for_message(responder, make_message("hello", user_id=2))

    await dispatch(ctx)

    assert responder.edited_messages == []
    assert responder.sent_messages[-1]["text"] == UNAUTHORIZED_TEXT


@pytest.mark.unit
def test_rate_limiter_fixed_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)

    assert limiter.check(1).allowed
    assert limiter.check(1).allowed
    refused = limiter.check(1)
    assert not refused.allowed
    assert (refused.count, refused.max_requests) == (3, 2)
    assert refused.reset_minutes == 1

    # other users have their own window
    assert limiter.check(2).allowed

    clock.now = 60.0
    assert limiter.check(1).allowed


@pytest.mark.unit
def test_rate_limiter_cleanup_drops_expired_windows():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=10, clock=clock)
    limiter.check(1)
    clock.now = 5.0
    limiter.check(2)
    clock.now = 11.0

    assert limiter.cleanup() == 1


@pytest.mark.unit
def test_rate_limiter_rejects_zero_budget():
    with pytest.raises(ValueError):
        RateLimiter(max_requests=0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rate_limit_middleware_replies_with_counts(responder, make_query):
    calls = []
    limiter = RateLimiter(max_requests=1, window_seconds=120, clock=FakeClock())
    dispatch = with_rate_limit(limiter)(_recording_base(calls))

    assert await dispatch(DispatchContext.for_callback(responder, make_query("todo:list"))) is True
    assert await dispatch(DispatchContext.for_callback(responder, make_query("todo:list"))) is True

    assert calls == [42]
    text = responder.edited_messages[-1]["text"]
    assert "2/1" in text
    assert "2분" in text
