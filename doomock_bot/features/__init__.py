"""
Static list of the bot's features.

Each registration is built here with its dependencies; nothing is looked up by
name at runtime.
"""

from typing import List, Optional

from config import BotConfig
from platforms.interfaces import IJobScheduler, IResponseService
from repositories.fortune_repo import FortuneRepository
from repositories.leave_repo import LeaveRepository
from repositories.mongo import MongoManager
from repositories.reminders_repo import RemindersRepository
from repositories.todos_repo import TodosRepository
from repositories.worktime_repo import WorktimeRepository
from services.feature_registry import FeatureRegistration, FeatureRegistry
from services.weather_service import WeatherService

from .fortune import FortuneFeature
from .leave import LeaveFeature
from .reminder import ReminderFeature
from .system import SystemFeature
from .timer import TimerFeature
from .todo import TodoFeature
from .weather import WeatherFeature
from .worktime import WorktimeFeature

__all__ = [
    "FortuneFeature",
    "LeaveFeature",
    "ReminderFeature",
    "SystemFeature",
    "TimerFeature",
    "TodoFeature",
    "WeatherFeature",
    "WorktimeFeature",
    "build_feature_registrations",
]


def build_feature_registrations(
    config: BotConfig,
    registry: FeatureRegistry,
    mongo: MongoManager,
    scheduler: IJobScheduler,
    notifier: IResponseService,
    version: str = "1.0.0",
    weather_service: Optional[WeatherService] = None,
) -> List[FeatureRegistration]:
    registrations = [
        FeatureRegistration(
            key="system",
            handler=SystemFeature(registry, version=version, environment=config.environment, db_ping=mongo.ping),
            display_name="메인 메뉴",
            icon="🏠",
            description="메뉴, 도움말, 상태",
            priority=1,
            required=True,
            show_in_menu=False,
            commands=("start", "menu", "help", "status"),
        ),
        FeatureRegistration(
            key="todo",
            handler=TodoFeature(
                TodosRepository(mongo.collection("todos"), max_per_user=config.max_todos_per_user),
                page_size=config.todo_page_size,
            ),
            display_name="할일 관리",
            icon="📝",
            description="할일 추가, 완료, 삭제",
            priority=10,
            commands=("todo",),
        ),
        FeatureRegistration(
            key="timer",
            handler=TimerFeature(scheduler, notifier, default_minutes=config.timer_default_minutes),
            display_name="타이머",
            icon="⏱️",
            description="뽀모도로와 카운트다운 타이머",
            priority=20,
            commands=("timer",),
        ),
        FeatureRegistration(
            key="worktime",
            handler=WorktimeFeature(
                WorktimeRepository(mongo.collection("worktime")),
                standard_hours=config.standard_work_hours,
                start_time=config.standard_start_time,
            ),
            display_name="근무시간",
            icon="🏢",
            description="출퇴근, 휴식, 주간/월간 근무 통계",
            priority=30,
            commands=("worktime",),
        ),
        FeatureRegistration(
            key="leave",
            handler=LeaveFeature(
                LeaveRepository(
                    mongo.collection("leaves"),
                    mongo.collection("leave_settings"),
                    default_annual_days=config.default_annual_leave,
                )
            ),
            display_name="연차 관리",
            icon="🏖️",
            description="연차, 반차, 반반차 사용 기록",
            priority=40,
            commands=("leave",),
        ),
        FeatureRegistration(
            key="reminder",
            handler=ReminderFeature(
                RemindersRepository(mongo.collection("reminders"), max_per_user=config.max_reminders_per_user),
                scheduler,
                notifier,
            ),
            display_name="리마인더",
            icon="⏰",
            description="정해진 시간에 메시지로 알림",
            priority=50,
            commands=("remind",),
        ),
        FeatureRegistration(
            key="fortune",
            handler=FortuneFeature(FortuneRepository(mongo.collection("fortunes"))),
            display_name="운세",
            icon="🔮",
            description="하루 세 번 타로 카드 뽑기",
            priority=60,
            commands=("fortune",),
        ),
        FeatureRegistration(
            key="weather",
            handler=WeatherFeature(
                weather_service or WeatherService(config.weather_api_key),
                default_city=config.default_weather_city,
            ),
            display_name="날씨",
            icon="🌤️",
            description="도시별 현재 날씨",
            priority=70,
            commands=("weather",),
        ),
    ]
    for registration in registrations:
        registration.enabled = config.is_enabled(registration.key)
    return registrations
