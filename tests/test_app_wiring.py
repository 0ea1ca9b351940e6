import pytest

pytest.importorskip("telegram")
pytest.importorskip("motor")

import config  # noqa: E402
from config import BotConfig  # noqa: E402
from doomock_app import DoomockTelegramBot  # noqa: E402
from ui.messages import UNAUTHORIZED_TEXT  # noqa: E402


def _bot(**overrides):
    fields = dict(bot_token="123456:TEST-TOKEN", mongo_url="mongodb://localhost:27017")
    fields.update(overrides)
    return DoomockTelegramBot(BotConfig(**fields))


def _mark_ready(bot, *keys):
    for key in keys:
        bot.registry.get(key).initialized = True


@pytest.mark.handler
def test_registry_holds_every_feature_in_priority_order():
    bot = _bot()

    assert [r.key for r in bot.registry.all()] == [
        "system", "todo", "timer", "worktime", "leave", "reminder", "fortune", "weather",
    ]
    assert bot.registry.get("system").required is True


@pytest.mark.handler
def test_disabled_features_are_not_published_as_commands():
    features = {key: key != "weather" for key in config.FEATURE_KEYS}
    bot = _bot(enabled_features=features)
    _mark_ready(bot, "system", "todo", "timer", "leave", "fortune")

    commands = [c.command for c in bot._bot_commands()]

    assert "weather" not in commands
    assert commands[:4] == ["start", "menu", "help", "status"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_start_command_reaches_system_feature(responder, make_message):
    bot = _bot()
    _mark_ready(bot, "system")

    await bot._command_sink("system", "start")(responder, make_message("/start", first_name="두목"), [])

    assert "두목" in responder.sent_messages[-1]["text"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_command_for_unready_feature_gets_unavailable_reply(responder, make_message):
    bot = _bot()

    await bot._command_sink("todo", "todo")(responder, make_message("/todo"), [])

    assert "<code>todo</code>" in responder.sent_messages[-1]["text"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_commands_pass_through_access_policy(responder, make_message):
    bot = _bot(allowed_users=frozenset({1}))
    _mark_ready(bot, "system")

    await bot._command_sink("system", "start")(responder, make_message("/start", user_id=2), [])

    assert responder.sent_messages[-1]["text"] == UNAUTHORIZED_TEXT


@pytest.mark.handler
@pytest.mark.asyncio
async def test_status_callback_sees_router_stats(responder, make_query):
    bot = _bot()
    _mark_ready(bot, "system")

    async def no_db():
        return True

    bot.registry.get("system").handler.db_ping = no_db

    assert await bot.callback_router.route(responder, make_query("system:status")) is True
    assert "수신 1" in responder.edited_messages[-1]["text"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_unclaimed_chatter_is_silent_and_spends_no_rate_budget(responder, make_message, make_query):
    bot = _bot(rate_limit_max=2)
    _mark_ready(bot, "system", "todo", "timer")

    results = [await bot.message_router.route(responder, make_message(f"안녕 {i}")) for i in range(3)]

    assert results == [False, False, False]
    assert responder.replies == []
    assert await bot.callback_router.route(responder, make_query("system:help")) is True
    assert "요청이 너무 많습니다" not in responder.last_reply()["text"]
