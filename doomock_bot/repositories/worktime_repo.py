from datetime import date, datetime
from typing import Any, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, IndexModel

from models.models import WorkSession
from repositories.mongo import ensure_indexes, stamp_new
from utils.time_utils import today_kst

INDEXES = [
    IndexModel([("user_id", ASCENDING), ("work_date", ASCENDING)], name="ux_worktime_user_date", unique=True),
]


class WorktimeStateError(ValueError):
    """Check-in/out or break request that does not fit the current session."""


def _to_session(doc: dict) -> WorkSession:
    return WorkSession(
        user_id=doc["user_id"],
        work_date=date.fromisoformat(doc["work_date"]),
        check_in_at=doc["check_in_at"],
        check_out_at=doc.get("check_out_at"),
        break_minutes=int(doc.get("break_minutes", 0)),
        break_started_at=doc.get("break_started_at"),
        id=str(doc["_id"]) if doc.get("_id") is not None else None,
    )


class WorktimeRepository:
    """
    One work session per user and Korean calendar day (`worktime` collection).
    A session stays open until check-out, even past midnight.
    """

    def __init__(self, collection: Any):
        self._coll = collection

    async def initialize(self) -> None:
        await ensure_indexes(self._coll, INDEXES)

    async def for_day(self, user_id: int, day: date) -> Optional[WorkSession]:
        doc = await self._coll.find_one({"user_id": user_id, "work_date": day.isoformat()})
        return _to_session(doc) if doc else None

    async def open_session(self, user_id: int) -> Optional[WorkSession]:
        docs = await self._coll.find({"user_id": user_id, "check_out_at": None}).sort("work_date", -1).to_list(length=1)
        return _to_session(docs[0]) if docs else None

    async def check_in(self, user_id: int, now: datetime) -> WorkSession:
        if await self.open_session(user_id) is not None:
            raise WorktimeStateError("already checked in")
        day = today_kst(now)
        if await self.for_day(user_id, day) is not None:
            raise WorktimeStateError("already worked today")
        doc = stamp_new({
            "user_id": user_id,
            "work_date": day.isoformat(),
            "check_in_at": now,
            "check_out_at": None,
            "break_minutes": 0,
            "break_started_at": None,
        })
        result = await self._coll.insert_one(doc)
        return _to_session({**doc, "_id": result.inserted_id})

    async def check_out(self, user_id: int, now: datetime) -> WorkSession:
        """Close the open session; a running break ends at check-out."""
        session = await self.open_session(user_id)
        if session is None:
            raise WorktimeStateError("not checked in")
        if session.break_started_at is not None:
            session.break_minutes += int((now - session.break_started_at).total_seconds() // 60)
            session.break_started_at = None
        session.check_out_at = now
        await self._save(session, now)
        return session

    async def start_break(self, user_id: int, now: datetime) -> WorkSession:
        session = await self.open_session(user_id)
        if session is None:
            raise WorktimeStateError("not checked in")
        if session.on_break:
            raise WorktimeStateError("already on a break")
        session.break_started_at = now
        await self._save(session, now)
        return session

    async def end_break(self, user_id: int, now: datetime) -> WorkSession:
        session = await self.open_session(user_id)
        if session is None or not session.on_break:
            raise WorktimeStateError("not on a break")
        session.break_minutes += int((now - session.break_started_at).total_seconds() // 60)
        session.break_started_at = None
        await self._save(session, now)
        return session

    async def between(self, user_id: int, start: date, end: date) -> List[WorkSession]:
        """Sessions with `start <= work_date < end`, oldest first."""
        cursor = self._coll.find({
            "user_id": user_id,
            "work_date": {"$gte": start.isoformat(), "$lt": end.isoformat()},
        }).sort("work_date", ASCENDING)
        return [_to_session(d) for d in await cursor.to_list(length=None)]

    async def _save(self, session: WorkSession, now: datetime) -> None:
        await self._coll.update_one(
            {"_id": ObjectId(session.id), "user_id": session.user_id},
            {"$set": {
                "check_out_at": session.check_out_at,
                "break_minutes": session.break_minutes,
                "break_started_at": session.break_started_at,
                "updated_at": now,
            }},
        )
