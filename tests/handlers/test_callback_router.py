import pytest

from features.system import SystemFeature
from handlers.base_feature import FeatureHandler
from handlers.callback_router import CallbackRouter
from handlers.middleware import AccessPolicy, RateLimiter, with_auth, with_rate_limit
from services.dedup_store import InMemoryDedupStore
from services.feature_registry import FeatureRegistration, FeatureRegistry
from ui.messages import BUSY_TEXT, FEATURE_UNAVAILABLE_ALERT, UNAUTHORIZED_TEXT, error_text, unhandled_text


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingFeature(FeatureHandler):
    """Records every callback and replies with a marker text."""

    def __init__(self, key, result=True, error=None):
        self.key = key
        self.result = result
        self.error = error
        self.calls = []

    async def handle_message(self, responder, message):
        return False

    async def handle_callback(self, responder, query, sub_action, params, router):
        self.calls.append((sub_action, list(params)))
        if self.error is not None:
            raise self.error
        if self.result:
            await responder.edit_message(
                user_id=query.user_id, chat_id=query.chat_id, message_id=query.message_id,
                text=f"{self.key}:{sub_action}",
            )
        return self.result


async def _router(*features, clock=None, middlewares=(), ttl=1.0):
    registry = FeatureRegistry(
        FeatureRegistration(key=f.key, handler=f, display_name=f.key, priority=i + 1, required=f.key == "system")
        for i, f in enumerate(features)
    )
    await registry.initialize_all()
    store = InMemoryDedupStore(clock=clock or FakeClock())
    return CallbackRouter(registry, dedup_store=store, dedup_ttl_seconds=ttl, middlewares=middlewares)


@pytest.mark.handler
@pytest.mark.asyncio
async def test_routes_to_feature_with_sub_action_and_params(responder, make_query):
    todo = RecordingFeature("todo")
    router = await _router(todo)

    handled = await router.route(responder, make_query("todo:delete:64f1a2b3"))

    assert handled is True
    assert todo.calls == [("delete", ["64f1a2b3"])]
    assert len(responder.callback_answers) == 1
    assert responder.callback_answers[0]["text"] is None
    assert router.stats["dispatched"] == 1


@pytest.mark.handler
@pytest.mark.asyncio
async def test_bare_module_key_defaults_to_menu(responder, make_query):
    weather = RecordingFeature("weather")
    router = await _router(weather)

    await router.route(responder, make_query("weather"))

    assert weather.calls == [("menu", [])]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_unknown_module_gets_alert_and_fallback_reply(responder, make_query):
    todo = RecordingFeature("todo")
    router = await _router(todo)

    handled = await router.route(responder, make_query("nonexistent:foo"))

    assert handled is False
    assert todo.calls == []
    assert responder.callback_answers == [{"query_id": "q1", "text": FEATURE_UNAVAILABLE_ALERT, "show_alert": False}]
    reply = responder.edited_messages[-1]
    assert "nonexistent" in reply["text"]
    assert reply["keyboard"].buttons[0][0].callback_data == "system:menu"
    assert router.stats["unroutable"] == 1


@pytest.mark.handler
@pytest.mark.asyncio
async def test_disabled_feature_is_unroutable(responder, make_query):
    leave = RecordingFeature("leave")
    router = await _router(leave)
    await router.registry.set_enabled("leave", False)

    assert await router.route(responder, make_query("leave:status")) is False
    assert leave.calls == []
    assert responder.callback_answers[0]["text"] == FEATURE_UNAVAILABLE_ALERT


@pytest.mark.handler
@pytest.mark.asyncio
async def test_main_alias_reaches_system(responder, make_query):
    system = RecordingFeature("system")
    router = await _router(system)

    await router.route(responder, make_query("main:menu"))

    assert system.calls == [("menu", [])]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_double_tap_is_dropped_within_window(responder, make_query):
    clock = FakeClock()
    todo = RecordingFeature("todo")
    router = await _router(todo, clock=clock)

    assert await router.route(responder, make_query("todo:list")) is True
    clock.now += 0.3
    assert await router.route(responder, make_query("todo:list")) is False

    assert todo.calls == [("list", [])]
    assert [a["text"] for a in responder.callback_answers] == [None, BUSY_TEXT]
    assert router.stats["duplicates"] == 1

    clock.now += 1.0
    assert await router.route(responder, make_query("todo:list")) is True
    assert len(todo.calls) == 2


@pytest.mark.handler
@pytest.mark.asyncio
async def test_dedup_is_per_user_and_per_data(responder, make_query):
    todo = RecordingFeature("todo")
    router = await _router(todo)

    await router.route(responder, make_query("todo:list", user_id=1))
    await router.route(responder, make_query("todo:list", user_id=2))
    await router.route(responder, make_query("todo:add", user_id=1))

    assert len(todo.calls) == 3


@pytest.mark.handler
@pytest.mark.asyncio
async def test_feature_exception_becomes_error_reply(responder, make_query):
    todo = RecordingFeature("todo", error=RuntimeError("db down"))
    router = await _router(todo)

    assert await router.route(responder, make_query("todo:list")) is False

    assert len(responder.callback_answers) == 1
    assert responder.edited_messages[-1]["text"] == error_text()
    assert router.stats["errors"] == 1


@pytest.mark.handler
@pytest.mark.asyncio
async def test_unhandled_callback_gets_fallback_reply(responder, make_query):
    todo = RecordingFeature("todo", result=False)
    router = await _router(todo)

    assert await router.route(responder, make_query("todo:unknown_action")) is False

    assert responder.edited_messages[-1]["text"] == unhandled_text()
    assert router.stats["unhandled"] == 1


@pytest.mark.handler
@pytest.mark.asyncio
async def test_failed_edit_falls_back_to_send(make_query):
    from platforms.testing import RecordingResponseService

    responder = RecordingResponseService(fail_edits=True)
    router = await _router(RecordingFeature("todo"))

    await router.route(responder, make_query("ghost:menu"))

    assert responder.edited_messages == []
    assert len(responder.sent_messages) == 1


@pytest.mark.handler
@pytest.mark.asyncio
async def test_empty_data_is_acknowledged_only(responder, make_query):
    router = await _router(RecordingFeature("todo"))

    assert await router.route(responder, make_query("")) is False
    assert await router.route(responder, make_query(None)) is False

    assert len(responder.callback_answers) == 2
    assert responder.replies == []
    assert router.stats["ignored"] == 2


@pytest.mark.handler
@pytest.mark.asyncio
async def test_acknowledge_failure_does_not_stop_dispatch(responder, make_query):
    async def broken_answer(query_id, text=None, show_alert=False):
        raise RuntimeError("query too old")

    responder.answer_callback = broken_answer
    todo = RecordingFeature("todo")
    router = await _router(todo)

    assert await router.route(responder, make_query("todo:list")) is True
    assert todo.calls == [("list", [])]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_auth_middleware_blocks_dispatch(responder, make_query):
    todo = RecordingFeature("todo")
    router = await _router(todo, middlewares=[with_auth(AccessPolicy(allowed_users=[1]))])

    await router.route(responder, make_query("todo:list", user_id=99))

    assert todo.calls == []
    assert responder.edited_messages[-1]["text"] == UNAUTHORIZED_TEXT
    assert len(responder.callback_answers) == 1


@pytest.mark.handler
@pytest.mark.asyncio
async def test_rate_limit_middleware_blocks_after_budget(responder, make_query):
    todo = RecordingFeature("todo")
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())
    router = await _router(todo, middlewares=[with_rate_limit(limiter)])

    for data in ("todo:list", "todo:add", "todo:menu"):
        await router.route(responder, make_query(data))

    assert [c[0] for c in todo.calls] == ["list", "add"]
    assert "3/2" in responder.edited_messages[-1]["text"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_system_menu_lists_features_and_status_uses_router_stats(responder, make_query):
    registry = FeatureRegistry()
    system = SystemFeature(registry)
    registry.add(FeatureRegistration(key="system", handler=system, display_name="메인 메뉴", priority=1,
                                     required=True, show_in_menu=False))
    registry.add(FeatureRegistration(key="todo", handler=RecordingFeature("todo"), display_name="할일 관리",
                                     icon="📝", priority=10))
    await registry.initialize_all()
    router = CallbackRouter(registry, dedup_store=InMemoryDedupStore(clock=FakeClock()))

    assert await router.route(responder, make_query("system:menu", first_name="철수")) is True
    menu = responder.edited_messages[-1]
    assert "철수" in menu["text"]
    assert "📝 할일 관리" in menu["text"]
    assert menu["keyboard"].buttons[0][0].callback_data == "todo:menu"
    assert menu["parse_mode"] == "HTML"

    await router.route(responder, make_query("system:status"))
    assert "수신 2" in responder.edited_messages[-1]["text"]
