from datetime import datetime
from typing import Any, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, IndexModel

from models.models import Reminder
from repositories.mongo import ensure_indexes, stamp_new

INDEXES = [
    IndexModel([("user_id", ASCENDING), ("remind_at", ASCENDING)], name="ix_reminders_user_time"),
    IndexModel([("delivered", ASCENDING), ("remind_at", ASCENDING)], name="ix_reminders_pending"),
]


class ReminderLimitError(ValueError):
    def __init__(self, limit: int):
        super().__init__(f"reminder limit of {limit} reached")
        self.limit = limit


def _object_id(reminder_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(reminder_id)
    except (InvalidId, TypeError):
        return None


def _to_reminder(doc: dict) -> Reminder:
    return Reminder(
        user_id=doc["user_id"],
        chat_id=doc.get("chat_id", doc["user_id"]),
        text=doc.get("text", ""),
        remind_at=doc["remind_at"],
        id=str(doc["_id"]),
        delivered=bool(doc.get("delivered", False)),
        created_at=doc.get("created_at"),
    )


class RemindersRepository:
    """Scheduled reminders (`reminders` collection); delivered ones are kept with `delivered=True`."""

    def __init__(self, collection: Any, max_per_user: int = 20):
        self._coll = collection
        self.max_per_user = max_per_user

    async def initialize(self) -> None:
        await ensure_indexes(self._coll, INDEXES)

    async def count_pending(self, user_id: int) -> int:
        return await self._coll.count_documents({"user_id": user_id, "delivered": False})

    async def add(self, user_id: int, chat_id: int, text: str, remind_at: datetime) -> Reminder:
        if await self.count_pending(user_id) >= self.max_per_user:
            raise ReminderLimitError(self.max_per_user)
        doc = stamp_new({
            "user_id": user_id,
            "chat_id": chat_id,
            "text": text,
            "remind_at": remind_at,
            "delivered": False,
        })
        result = await self._coll.insert_one(doc)
        return _to_reminder({**doc, "_id": result.inserted_id})

    async def pending_for(self, user_id: int) -> List[Reminder]:
        cursor = self._coll.find({"user_id": user_id, "delivered": False}).sort("remind_at", ASCENDING)
        return [_to_reminder(d) for d in await cursor.to_list(length=None)]

    async def all_pending(self) -> List[Reminder]:
        cursor = self._coll.find({"delivered": False}).sort("remind_at", ASCENDING)
        return [_to_reminder(d) for d in await cursor.to_list(length=None)]

    async def get(self, reminder_id: str) -> Optional[Reminder]:
        oid = _object_id(reminder_id)
        if oid is None:
            return None
        doc = await self._coll.find_one({"_id": oid})
        return _to_reminder(doc) if doc else None

    async def mark_delivered(self, reminder_id: str, now: datetime) -> None:
        oid = _object_id(reminder_id)
        if oid is not None:
            await self._coll.update_one({"_id": oid}, {"$set": {"delivered": True, "updated_at": now}})

    async def cancel(self, user_id: int, reminder_id: str) -> bool:
        oid = _object_id(reminder_id)
        if oid is None:
            return False
        result = await self._coll.delete_one({"_id": oid, "user_id": user_id, "delivered": False})
        return result.deleted_count > 0

    async def cancel_all(self, user_id: int) -> List[str]:
        """Delete every pending reminder of the user. Returns the removed ids."""
        ids = [r.id for r in await self.pending_for(user_id)]
        await self._coll.delete_many({"user_id": user_id, "delivered": False})
        return ids
