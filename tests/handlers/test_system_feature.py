import pytest

from features.system import SystemFeature
from handlers.base_feature import FeatureHandler
from services.feature_registry import FeatureRegistration, FeatureRegistry


class QuietFeature(FeatureHandler):
    async def handle_message(self, responder, message):
        return False

    async def handle_callback(self, responder, query, sub_action, params, router):
        return False


async def _system(db_ok=True, version="2.0.1"):
    registry = FeatureRegistry()

    async def ping():
        return db_ok

    system = SystemFeature(registry, version=version, environment="production", db_ping=ping,
                           stats_provider=lambda: {"received": 7})
    registry.add(FeatureRegistration(key="system", handler=system, display_name="메인 메뉴", priority=1,
                                     required=True, show_in_menu=False, commands=("start", "menu", "help", "status")))
    registry.add(FeatureRegistration(key="todo", handler=QuietFeature(), display_name="할일 관리", icon="📝",
                                     description="할일 추가, 완료, 삭제", priority=10, commands=("todo",)))
    registry.add(FeatureRegistration(key="leave", handler=QuietFeature(), display_name="연차 관리", icon="🏖️",
                                     priority=40, enabled=False))
    await registry.initialize_all()
    return system


@pytest.mark.handler
@pytest.mark.asyncio
async def test_start_command_sends_main_menu(responder, make_message):
    system = await _system()

    assert await system.handle_command(responder, make_message("/start", first_name="민수"), "start", []) is True

    reply = responder.sent_messages[-1]
    assert "민수" in reply["text"]
    assert "할일 관리" in reply["text"]
    assert "연차 관리" not in reply["text"]
    callbacks = [b.callback_data for row in reply["keyboard"].buttons for b in row]
    assert callbacks == ["todo:menu", "system:help", "system:status"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_help_command(responder, make_message):
    system = await _system()

    await system.handle_command(responder, make_message("/help"), "help", [])

    text = responder.sent_messages[-1]["text"]
    assert "/todo" in text
    assert "할일 추가, 완료, 삭제" in text


@pytest.mark.handler
@pytest.mark.asyncio
async def test_status_command_reports_features_and_database(responder, make_message):
    system = await _system(db_ok=False)

    await system.handle_command(responder, make_message("/status"), "status", [])

    text = responder.sent_messages[-1]["text"]
    assert "production" in text
    assert "연결 실패" in text
    assert "todo: ready" in text
    assert "leave: disabled" in text
    assert "수신 7" in text


@pytest.mark.handler
@pytest.mark.asyncio
async def test_about_callback(responder, make_query):
    system = await _system()

    await system.handle_callback(responder, make_query("system:about"), "about", [], None)

    assert "v2.0.1" in responder.edited_messages[-1]["text"]


@pytest.mark.handler
@pytest.mark.asyncio
async def test_system_never_claims_free_text(responder, make_message):
    system = await _system()

    assert await system.handle_message(responder, make_message("hello")) is False
