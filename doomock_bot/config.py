"""
Environment configuration for the Doomock bot.

Loaded once at startup from the process environment (and a local .env file
when present). Nothing here is reloaded at runtime.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from dotenv import load_dotenv

from utils.logger import get_logger

logger = get_logger(__name__)

FEATURE_KEYS = ("system", "todo", "timer", "worktime", "leave", "reminder", "fortune", "weather")


def _parse_user_ids(raw: Optional[str]) -> FrozenSet[int]:
    """Parse a comma separated list of Telegram user ids, ignoring junk entries."""
    ids = set()
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.add(int(part))
        except ValueError:
            logger.warning(f"Ignoring invalid user id in configuration: {part!r}")
    return frozenset(ids)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using default {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number, using default {default}")
        return default


def mask_secret(value: Optional[str]) -> str:
    """Show the first four characters of a secret and hide the rest."""
    if value and len(value) > 4:
        return f"{value[:4]}****"
    return "****"


@dataclass(frozen=True)
class BotConfig:
    bot_token: str
    mongo_url: str
    mongo_db_name: str = "doomock_bot"
    environment: str = "development"
    webhook_url: Optional[str] = None
    webhook_port: int = 8443
    allowed_users: FrozenSet[int] = frozenset()
    admin_users: FrozenSet[int] = frozenset()
    rate_limit_max: int = 30
    rate_limit_window_seconds: float = 60.0
    callback_dedup_seconds: float = 1.0
    enabled_features: Dict[str, bool] = field(default_factory=lambda: {key: True for key in FEATURE_KEYS})
    weather_api_key: Optional[str] = None
    default_weather_city: str = "Seoul"
    default_annual_leave: int = 15
    todo_page_size: int = 8
    max_todos_per_user: int = 50
    timer_default_minutes: int = 25
    standard_work_hours: float = 8.0
    standard_start_time: str = "09:00"
    max_reminders_per_user: int = 20
    sentry_dsn: Optional[str] = None

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Build the configuration from environment variables (.env supported)."""
        load_dotenv()

        bot_token = os.getenv("BOT_TOKEN")
        if not bot_token:
            logger.error("BOT_TOKEN environment variable is not set")
            raise ValueError("BOT_TOKEN environment variable is required")

        mongo_url = os.getenv("MONGO_URL") or os.getenv("MONGO_URI") or os.getenv("MONGODB_URI")
        if not mongo_url:
            logger.error("MONGO_URL environment variable is not set")
            raise ValueError("MONGO_URL environment variable is required")

        # The system feature is always on; everything else can be switched off with MODULE_<KEY>_ENABLED=false.
        enabled = {
            key: key == "system" or os.getenv(f"MODULE_{key.upper()}_ENABLED", "true").strip().lower() != "false"
            for key in FEATURE_KEYS
        }

        return cls(
            bot_token=bot_token,
            mongo_url=mongo_url,
            mongo_db_name=os.getenv("MONGO_DB_NAME", "doomock_bot"),
            environment=os.getenv("BOT_ENV", "development"),
            webhook_url=os.getenv("WEBHOOK_URL") or None,
            webhook_port=_int_env("WEBHOOK_PORT", 8443),
            allowed_users=_parse_user_ids(os.getenv("ALLOWED_USERS")),
            admin_users=_parse_user_ids(os.getenv("ADMIN_USERS")),
            rate_limit_max=max(1, _int_env("RATE_LIMIT_MAX", 30)),
            rate_limit_window_seconds=max(1.0, _float_env("RATE_LIMIT_WINDOW_SECONDS", 60.0)),
            callback_dedup_seconds=max(0.0, _float_env("CALLBACK_DEDUP_SECONDS", 1.0)),
            enabled_features=enabled,
            weather_api_key=os.getenv("WEATHER_API_KEY") or None,
            default_weather_city=os.getenv("DEFAULT_WEATHER_CITY", "Seoul"),
            default_annual_leave=_int_env("DEFAULT_ANNUAL_LEAVE", 15),
            todo_page_size=max(1, _int_env("TODO_PAGE_SIZE", 8)),
            max_todos_per_user=max(1, _int_env("MAX_TODOS_PER_USER", 50)),
            timer_default_minutes=max(1, _int_env("TIMER_DEFAULT_MINUTES", 25)),
            standard_work_hours=min(24.0, max(1.0, _float_env("STANDARD_WORK_HOURS", 8.0))),
            standard_start_time=os.getenv("STANDARD_START_TIME", "09:00").strip() or "09:00",
            max_reminders_per_user=max(1, _int_env("MAX_REMINDERS_PER_USER", 20)),
            sentry_dsn=os.getenv("SENTRY_DSN") or None,
        )

    def is_enabled(self, feature_key: str) -> bool:
        return self.enabled_features.get(feature_key, False)

    def safe_summary(self) -> Dict[str, str]:
        """Configuration snapshot suitable for logs, with secrets masked."""
        summary = {
            "BOT_TOKEN": mask_secret(self.bot_token),
            "MONGO_URL": mask_secret(self.mongo_url),
            "MONGO_DB_NAME": self.mongo_db_name,
            "BOT_ENV": self.environment,
            "DELIVERY": "webhook" if self.webhook_url else "polling",
            "ENABLED_FEATURES": ",".join(k for k, v in self.enabled_features.items() if v),
            "ALLOWED_USERS": str(len(self.allowed_users)) if self.allowed_users else "all",
        }
        if self.weather_api_key:
            summary["WEATHER_API_KEY"] = mask_secret(self.weather_api_key)
        return summary
