from datetime import datetime
from html import escape
from typing import Dict, Iterable, Optional

from utils.time_utils import beautify_duration, now_kst

BOT_TITLE = "🤖 <b>두목봇</b>"

# (start hour inclusive, end hour exclusive, emoji, greeting); anything else is night.
TIME_THEMES = (
    (5, 12, "🌅", "좋은 아침입니다"),
    (12, 18, "☀️", "안녕하세요"),
    (18, 22, "🌆", "좋은 저녁입니다"),
)
NIGHT_THEME = ("🌙", "늦은 시간입니다")

BUSY_TEXT = "⏳ 처리 중입니다..."
FEATURE_UNAVAILABLE_ALERT = "⚠️ 사용할 수 없는 기능입니다"
UNAUTHORIZED_TEXT = "🚫 이 봇을 사용할 권한이 없습니다."


def time_greeting(now: Optional[datetime] = None) -> tuple:
    """(emoji, greeting) for the hour of `now` in Korean time."""
    hour = (now or now_kst()).hour
    for start, end, emoji, greeting in TIME_THEMES:
        if start <= hour < end:
            return emoji, greeting
    return NIGHT_THEME


def display_name(first_name: Optional[str]) -> str:
    return escape(first_name) if first_name else "사용자"


def main_menu_text(first_name: Optional[str], entries: Iterable, now: Optional[datetime] = None) -> str:
    now = now or now_kst()
    emoji, greeting = time_greeting(now)
    entries = [e for e in entries if e.key != "system"]

    text = f"{BOT_TITLE}\n\n"
    text += f"{emoji} {greeting}, <b>{display_name(first_name)}</b>님!\n\n"
    text += f"⏰ <b>현재 시간:</b> {now.strftime('%H:%M')}\n"
    if entries:
        text += "\n<b>🎯 사용 가능한 기능</b>\n"
        for entry in entries:
            text += f"{entry.icon} {escape(entry.display_name)}\n"
    else:
        text += "\n⚠️ 사용 가능한 기능이 없습니다.\n"
    text += "\n💡 <i>원하는 기능을 선택해주세요!</i>"
    return text


def help_text(entries: Iterable) -> str:
    text = "❓ <b>도움말</b>\n\n"
    text += "<b>기본 명령어</b>\n"
    text += "/start - 메인 메뉴\n/menu - 메인 메뉴\n/help - 도움말\n/status - 봇 상태\n"
    lines = []
    for entry in entries:
        if entry.key == "system":
            continue
        commands = " ".join(f"/{c}" for c in entry.commands)
        line = f"{entry.icon} <b>{escape(entry.display_name)}</b>"
        if commands:
            line += f" ({commands})"
        if entry.description:
            line += f"\n   {escape(entry.description)}"
        lines.append(line)
    if lines:
        text += "\n<b>기능</b>\n" + "\n".join(lines) + "\n"
    text += "\n버튼이 반응하지 않으면 /menu 로 다시 시작하세요."
    return text


def status_text(
    uptime_seconds: float,
    feature_status: Dict[str, str],
    router_stats: Dict[str, int],
    database_ok: Optional[bool],
    environment: str,
) -> str:
    status_icons = {"ready": "🟢", "disabled": "⚪", "pending": "🟡"}
    text = "📊 <b>봇 상태</b>\n\n"
    text += f"⏱️ <b>가동 시간:</b> {beautify_duration(uptime_seconds)}\n"
    text += f"🌐 <b>환경:</b> {escape(environment)}\n"
    if database_ok is None:
        db = "미확인"
    else:
        db = "연결됨" if database_ok else "연결 실패"
    text += f"🗄️ <b>데이터베이스:</b> {db}\n\n"
    text += "<b>기능</b>\n"
    for key, state in feature_status.items():
        text += f"{status_icons.get(state, '❔')} {key}: {state}\n"
    text += "\n<b>콜백 처리</b>\n"
    text += (
        f"수신 {router_stats.get('received', 0)} · 처리 {router_stats.get('dispatched', 0)} · "
        f"중복 {router_stats.get('duplicates', 0)} · 미지원 {router_stats.get('unroutable', 0)} · "
        f"오류 {router_stats.get('errors', 0)}"
    )
    return text


def about_text(version: str) -> str:
    return (
        f"{BOT_TITLE} <code>v{escape(version)}</code>\n\n"
        "할일, 타이머, 연차, 운세, 날씨를 한 곳에서 관리하는 개인 비서 봇입니다."
    )


def feature_unavailable_text(module_key: str) -> str:
    name = f" (<code>{escape(module_key)}</code>)" if module_key else ""
    return f"⚠️ 요청하신 기능{name}을 지금 사용할 수 없습니다.\n\n메인 메뉴로 돌아가 다른 기능을 선택해주세요."


def error_text() -> str:
    return "❌ 처리 중 오류가 발생했습니다.\n\n잠시 후 다시 시도해주세요."


def unhandled_text() -> str:
    return "⚠️ 요청을 처리하지 못했습니다.\n\n메인 메뉴에서 다시 시도해주세요."


def rate_limited_text(count: int, max_requests: int, reset_minutes: int) -> str:
    return (
        "⏳ 요청이 너무 많습니다.\n\n"
        f"현재 요청: {count}/{max_requests}\n"
        f"{reset_minutes}분 후에 다시 시도해주세요."
    )
