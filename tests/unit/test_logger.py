import json
import logging

import pytest

from utils.logger import StructuredFormatter, console_handler, get_logger


def _record(msg):
    return logging.LogRecord("handlers.callback_router", logging.WARNING, __file__, 1, msg, None, None)


@pytest.mark.unit
def test_dict_messages_become_json():
    out = json.loads(StructuredFormatter().format(_record({"event": "config_loaded", "BOT_ENV": "production"})))

    assert out["message"] == "config_loaded"
    assert out["BOT_ENV"] == "production"
    assert out["level"] == "WARNING"
    assert out["logger"] == "handlers.callback_router"


@pytest.mark.unit
def test_plain_messages_are_left_alone():
    assert StructuredFormatter("%(message)s").format(_record("두목봇 시작")) == "두목봇 시작"


@pytest.mark.unit
def test_get_logger_returns_named_logger():
    assert get_logger("features.todo").name == "features.todo"


@pytest.mark.unit
def test_console_prints_dict_messages_as_json():
    handler = console_handler()

    out = json.loads(handler.format(_record({"event": "config_loaded", "BOT_ENV": "development"})))

    assert out["message"] == "config_loaded"
    assert out["BOT_ENV"] == "development"
    assert handler.format(_record("두목봇 시작")).endswith("두목봇 시작")
