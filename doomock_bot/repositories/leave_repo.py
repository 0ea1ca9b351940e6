from datetime import date
from typing import Any, List

from pymongo import ASCENDING, DESCENDING, IndexModel

from models.models import LeaveBalance, LeaveRecord, LeaveSettings
from repositories.mongo import ensure_indexes, stamp_new
from utils.time_utils import now_utc

MIN_ANNUAL_LEAVE = 1
MAX_ANNUAL_LEAVE = 50

# days -> label
LEAVE_UNITS = {
    1.0: "연차",
    0.5: "반차",
    0.25: "반반차",
}

LEAVE_INDEXES = [
    IndexModel([("user_id", ASCENDING), ("year", ASCENDING)], name="ix_leaves_user_year"),
]
SETTINGS_INDEXES = [
    IndexModel([("user_id", ASCENDING)], name="ux_leave_settings_user", unique=True),
]


class LeaveBalanceError(ValueError):
    def __init__(self, requested: float, remaining: float):
        super().__init__(f"requested {requested} day(s) but only {remaining} remain")
        self.requested = requested
        self.remaining = remaining


class LeaveSettingError(ValueError):
    pass


def leave_label(days: float) -> str:
    return LEAVE_UNITS.get(float(days), f"{days}일")


def _to_record(doc: dict) -> LeaveRecord:
    return LeaveRecord(
        user_id=doc["user_id"],
        days=float(doc["days"]),
        used_on=date.fromisoformat(doc["used_on"]),
        reason=doc.get("reason", ""),
        id=str(doc["_id"]) if doc.get("_id") is not None else None,
        created_at=doc.get("created_at"),
    )


class LeaveRepository:
    """
    Annual leave usage (`leaves`) and per-user allowance (`leave_settings`).
    Dates are Korean calendar dates stored as ISO strings with a `year` field.
    """

    def __init__(self, leaves: Any, settings: Any, default_annual_days: int = 15):
        self._leaves = leaves
        self._settings = settings
        self.default_annual_days = default_annual_days

    async def initialize(self) -> None:
        await ensure_indexes(self._leaves, LEAVE_INDEXES)
        await ensure_indexes(self._settings, SETTINGS_INDEXES)

    async def get_settings(self, user_id: int) -> LeaveSettings:
        doc = await self._settings.find_one({"user_id": user_id})
        if not doc:
            return LeaveSettings(user_id=user_id, annual_days=self.default_annual_days)
        return LeaveSettings(user_id=user_id, annual_days=int(doc.get("annual_days", self.default_annual_days)))

    async def set_annual_days(self, user_id: int, annual_days: int) -> LeaveSettings:
        if not MIN_ANNUAL_LEAVE <= annual_days <= MAX_ANNUAL_LEAVE:
            raise LeaveSettingError(
                f"annual leave must be between {MIN_ANNUAL_LEAVE} and {MAX_ANNUAL_LEAVE} days"
            )
        now = now_utc()
        await self._settings.update_one(
            {"user_id": user_id},
            {"$set": {"annual_days": annual_days, "updated_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )
        return LeaveSettings(user_id=user_id, annual_days=annual_days)

    async def used_days(self, user_id: int, year: int) -> float:
        docs = await self._leaves.find({"user_id": user_id, "year": year}).to_list(length=None)
        return sum(float(d["days"]) for d in docs)

    async def balance(self, user_id: int, year: int) -> LeaveBalance:
        settings = await self.get_settings(user_id)
        used = await self.used_days(user_id, year)
        return LeaveBalance(year=year, annual_days=float(settings.annual_days), used_days=used)

    async def use(self, user_id: int, days: float, used_on: date, reason: str = "") -> LeaveBalance:
        """Record leave usage; refuses to go beyond the remaining balance."""
        days = float(days)
        if days not in LEAVE_UNITS:
            raise ValueError(f"unsupported leave unit: {days}")
        current = await self.balance(user_id, used_on.year)
        if days > current.remaining_days:
            raise LeaveBalanceError(days, current.remaining_days)
        await self._leaves.insert_one(stamp_new({
            "user_id": user_id,
            "days": days,
            "used_on": used_on.isoformat(),
            "year": used_on.year,
            "reason": reason,
        }))
        return LeaveBalance(year=current.year, annual_days=current.annual_days, used_days=current.used_days + days)

    async def history(self, user_id: int, year: int, limit: int = 10) -> List[LeaveRecord]:
        cursor = (
            self._leaves.find({"user_id": user_id, "year": year})
            .sort("created_at", DESCENDING)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        return [_to_record(d) for d in docs]
