"""
Daily tarot: one major arcana card per draw, three draws per day.
"""

import random
from datetime import date
from typing import Callable, List, Optional, Tuple

from cbdata import encode_cb
from handlers.base_feature import BaseFeatureHandler
from models.models import TarotCard, TarotDraw
from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard
from repositories.fortune_repo import FortuneRepository
from services.tarot_deck import card_by_number, draw_card
from ui.keyboards import MenuItem, feature_menu_kb
from ui.messages import display_name
from utils.logger import get_logger
from utils.time_utils import today_kst

logger = get_logger(__name__)

MAX_DRAWS_PER_DAY = 3


def card_text(card: TarotCard, is_reversed: bool) -> str:
    orientation = "역방향" if is_reversed else "정방향"
    meaning = card.reversed if is_reversed else card.upright
    return (
        f"{card.emoji} <b>{card.number}. {card.name}</b> ({card.english_name})\n"
        f"<i>{orientation}</i>\n\n"
        f"{meaning}"
    )


class FortuneFeature(BaseFeatureHandler):
    key = "fortune"

    def __init__(
        self,
        repo: FortuneRepository,
        rng: Optional[random.Random] = None,
        today: Callable[[], date] = today_kst,
        max_draws_per_day: int = MAX_DRAWS_PER_DAY,
    ):
        super().__init__()
        self.repo = repo
        self.rng = rng or random.Random()
        self._today = today
        self.max_draws_per_day = max_draws_per_day
        self.actions = {
            "menu": self.show_menu,
            "draw": self._on_draw,
            "history": self._on_history,
        }

    async def initialize(self) -> None:
        await self.repo.initialize()

    def _keyboard(self, can_draw: bool) -> Keyboard:
        items = []
        if can_draw:
            items.append(MenuItem("카드 뽑기", encode_cb(self.key, "draw"), icon="🎴"))
        items.append(MenuItem("최근 기록", encode_cb(self.key, "history"), icon="📜"))
        return feature_menu_kb(self.key, items)

    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        used = await self.repo.count_on(user_id, self._today())
        remaining = max(0, self.max_draws_per_day - used)
        text = (
            "🔮 <b>오늘의 타로</b>\n\n"
            f"{display_name(first_name)}님, 마음을 가다듬고 카드를 한 장 뽑아보세요.\n\n"
            f"오늘 남은 횟수: {remaining}/{self.max_draws_per_day}"
        )
        return text, self._keyboard(remaining > 0)

    async def draw(self, user_id: int) -> Optional[Tuple[TarotCard, bool, int]]:
        """Draw for `user_id`. Returns (card, reversed, remaining draws) or None when the daily limit is used up."""
        today = self._today()
        used = await self.repo.count_on(user_id, today)
        if used >= self.max_draws_per_day:
            return None
        card, is_reversed = draw_card(self.rng)
        await self.repo.record(TarotDraw(user_id=user_id, card_number=card.number, is_reversed=is_reversed, drawn_on=today))
        return card, is_reversed, self.max_draws_per_day - used - 1

    async def _on_draw(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        result = await self.draw(query.user_id)
        if result is None:
            text = (
                f"🔮 오늘은 이미 {self.max_draws_per_day}번 뽑으셨습니다.\n"
                "내일 다시 운세를 확인해보세요!"
            )
            return await self.reply(responder, query, text, self._keyboard(False))
        card, is_reversed, remaining = result
        text = f"🔮 <b>오늘의 타로</b>\n\n{card_text(card, is_reversed)}\n\n오늘 남은 횟수: {remaining}/{self.max_draws_per_day}"
        return await self.reply(responder, query, text, self._keyboard(remaining > 0))

    async def _on_history(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        draws = await self.repo.recent(query.user_id)
        text = "📜 <b>최근 타로 기록</b>\n\n"
        if not draws:
            text += "아직 뽑은 카드가 없습니다."
        for d in draws:
            card = card_by_number(d.card_number)
            if card is None:
                continue
            orientation = "역" if d.is_reversed else "정"
            text += f"• {d.drawn_on.isoformat()} {card.emoji} {card.name} ({orientation})\n"
        return await self.reply(responder, query, text, feature_menu_kb(self.key, [], back_to="menu"))
