"""
Current weather from OpenWeatherMap, cached per city for a few minutes.
"""

import time
from typing import Callable, Dict, Optional, Tuple

import httpx

from models.models import WeatherReport
from utils.time_utils import now_utc
from utils.logger import get_logger

logger = get_logger(__name__)

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
CACHE_TTL_SECONDS = 600
REQUEST_TIMEOUT_SECONDS = 10.0

# OpenWeatherMap icon code prefix -> emoji
ICON_EMOJI = {
    "01": "☀️",
    "02": "🌤️",
    "03": "⛅",
    "04": "☁️",
    "09": "🌧️",
    "10": "🌦️",
    "11": "⛈️",
    "13": "❄️",
    "50": "🌫️",
}

# Korean city names accepted in addition to the English ones the API expects.
CITY_ALIASES = {
    "서울": "Seoul",
    "부산": "Busan",
    "인천": "Incheon",
    "대구": "Daegu",
    "대전": "Daejeon",
    "광주": "Gwangju",
    "울산": "Ulsan",
    "수원": "Suwon",
    "화성": "Hwaseong",
    "제주": "Jeju City",
}


class WeatherError(Exception):
    """Base class for weather lookup failures shown to the user."""


class WeatherNotConfiguredError(WeatherError):
    pass


class CityNotFoundError(WeatherError):
    def __init__(self, city: str):
        super().__init__(f"city not found: {city}")
        self.city = city


class WeatherUnavailableError(WeatherError):
    pass


def normalize_city(city: str) -> str:
    city = (city or "").strip()
    return CITY_ALIASES.get(city, city)


class WeatherService:
    def __init__(
        self,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        cache_ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api_key = api_key
        self._client = client
        self._owns_client = client is None
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._cache: Dict[str, Tuple[float, WeatherReport]] = {}

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS)
        return self._client

    async def current(self, city: str) -> WeatherReport:
        if not self.configured:
            raise WeatherNotConfiguredError("WEATHER_API_KEY is not set")

        query = normalize_city(city)
        if not query:
            raise CityNotFoundError(city)

        cache_key = query.lower()
        cached = self._cache.get(cache_key)
        if cached and cached[0] > self._clock():
            return cached[1]

        try:
            resp = await self._get_client().get(
                OPENWEATHER_URL,
                params={"q": query, "appid": self.api_key, "lang": "kr", "units": "metric"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Weather request for {query} failed: {e}")
            raise WeatherUnavailableError(str(e)) from e

        if resp.status_code == 404:
            raise CityNotFoundError(city)
        if resp.status_code >= 400:
            logger.error(f"Weather API returned {resp.status_code} for {query}")
            raise WeatherUnavailableError(f"weather API returned {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            logger.error(f"Weather API sent a non-JSON body for {query}: {e}")
            raise WeatherUnavailableError("weather API sent a non-JSON body") from e

        report = self._parse(data, query)
        self._cache[cache_key] = (self._clock() + self.cache_ttl_seconds, report)
        return report

    def _parse(self, data: dict, fallback_city: str) -> WeatherReport:
        try:
            weather = (data.get("weather") or [{}])[0]
            main = data["main"]
            icon = str(weather.get("icon", ""))
            return WeatherReport(
                city=data.get("name") or fallback_city,
                description=weather.get("description", ""),
                temperature=float(main["temp"]),
                feels_like=float(main.get("feels_like", main["temp"])),
                humidity=int(main.get("humidity", 0)),
                wind_speed=float((data.get("wind") or {}).get("speed", 0.0)),
                icon=ICON_EMOJI.get(icon[:2], "🌡️"),
                fetched_at=now_utc(),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected weather payload for {fallback_city}: {e}")
            raise WeatherUnavailableError("unexpected weather payload") from e

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
