"""
Current weather lookup for a handful of preset cities or any typed city name.
"""

from html import escape
from typing import List, Optional, Tuple

from cbdata import encode_cb
from handlers.base_feature import BaseFeatureHandler
from models.models import WeatherReport
from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard, UserMessage
from services.weather_service import (
    CityNotFoundError,
    WeatherNotConfiguredError,
    WeatherService,
    WeatherUnavailableError,
)
from ui.keyboards import MenuItem, feature_menu_kb
from utils.logger import get_logger
from utils.time_utils import format_kst

logger = get_logger(__name__)

AWAITING_CITY = "city"
PRESET_CITIES = ("서울", "부산", "인천", "대구", "대전", "광주", "제주")


def report_text(report: WeatherReport) -> str:
    text = f"{report.icon} <b>{escape(report.city)} 날씨</b>\n\n"
    text += f"{escape(report.description)}\n"
    text += f"🌡️ 기온: {report.temperature:.1f}°C (체감 {report.feels_like:.1f}°C)\n"
    text += f"💧 습도: {report.humidity}%\n"
    text += f"💨 바람: {report.wind_speed:.1f}m/s"
    if report.fetched_at:
        text += f"\n\n<i>{format_kst(report.fetched_at, '%H:%M')} 기준</i>"
    return text


class WeatherFeature(BaseFeatureHandler):
    key = "weather"

    def __init__(self, service: WeatherService, default_city: str = "Seoul"):
        super().__init__()
        self.service = service
        self.default_city = default_city
        self.actions = {
            "menu": self.show_menu,
            "current": self._on_current,
            "city": self._on_city,
        }
        self.input_actions = {AWAITING_CITY: self._on_city_text}

    async def cleanup(self) -> None:
        await self.service.close()

    def _keyboard(self) -> Keyboard:
        items = [MenuItem(city, encode_cb(self.key, "current", city)) for city in PRESET_CITIES]
        items.append(MenuItem("다른 도시", encode_cb(self.key, "city"), icon="🔎"))
        return feature_menu_kb(self.key, items, width=3)

    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        if not self.service.configured:
            return self._not_configured_text(), feature_menu_kb(self.key, [])
        text = "🌤️ <b>날씨</b>\n\n날씨를 확인할 도시를 선택하세요."
        return text, self._keyboard()

    def _not_configured_text(self) -> str:
        return "🌤️ <b>날씨</b>\n\n⚠️ 날씨 서비스가 설정되지 않았습니다. 관리자에게 문의해주세요."

    async def lookup_text(self, city: str) -> str:
        """Weather text for `city`, or a user-facing error message."""
        try:
            report = await self.service.current(city)
        except WeatherNotConfiguredError:
            return self._not_configured_text()
        except CityNotFoundError:
            return f"⚠️ '{escape(city)}' 도시를 찾을 수 없습니다."
        except WeatherUnavailableError:
            return "⚠️ 날씨 정보를 가져오지 못했습니다. 잠시 후 다시 시도해주세요."
        return report_text(report)

    async def _on_current(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        city = params[0] if params and params[0] else self.default_city
        text = await self.lookup_text(city)
        return await self.reply(responder, query, text, self._keyboard())

    async def _on_city(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        self.set_pending(query.user_id, AWAITING_CITY)
        text = "🔎 날씨를 확인할 도시 이름을 입력해주세요. (예: 서울, Tokyo)"
        return await self.reply(responder, query, text, feature_menu_kb(self.key, [], back_to="menu"))

    async def _on_city_text(self, responder: IResponseService, message: UserMessage) -> bool:
        self.clear_pending(message.user_id)
        city = (message.text or "").strip()
        text = await self.lookup_text(city)
        return await self.send(responder, message, text, self._keyboard())
