from datetime import date
from typing import Any, List

from pymongo import ASCENDING, DESCENDING, IndexModel

from models.models import TarotDraw
from repositories.mongo import ensure_indexes, stamp_new

INDEXES = [
    IndexModel([("user_id", ASCENDING), ("drawn_on", ASCENDING)], name="ix_fortunes_user_day"),
]


class FortuneRepository:
    """Tarot draws in the `fortunes` collection, one document per draw."""

    def __init__(self, collection: Any):
        self._coll = collection

    async def initialize(self) -> None:
        await ensure_indexes(self._coll, INDEXES)

    async def count_on(self, user_id: int, day: date) -> int:
        return await self._coll.count_documents({"user_id": user_id, "drawn_on": day.isoformat()})

    async def record(self, draw: TarotDraw) -> None:
        await self._coll.insert_one(stamp_new({
            "user_id": draw.user_id,
            "card_number": draw.card_number,
            "is_reversed": draw.is_reversed,
            "drawn_on": draw.drawn_on.isoformat(),
        }))

    async def recent(self, user_id: int, limit: int = 5) -> List[TarotDraw]:
        cursor = self._coll.find({"user_id": user_id}).sort("created_at", DESCENDING).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [
            TarotDraw(
                user_id=d["user_id"],
                card_number=int(d["card_number"]),
                is_reversed=bool(d.get("is_reversed", False)),
                drawn_on=date.fromisoformat(d["drawn_on"]),
                created_at=d.get("created_at"),
            )
            for d in docs
        ]
