# python
"""
MongoDB connection for the Doomock bot using Motor (async MongoDB driver).

- One client per process, created at startup from `MONGO_URL`.
- Each feature owns one or more collections and declares its indexes; they are
  created once, skipping any equivalent index that already exists.
- Writes carry `created_at` and `updated_at` (UTC).
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from motor.motor_asyncio import AsyncIOMotorClient  # Motor async driver
from pymongo import IndexModel

from utils.logger import get_logger
from utils.time_utils import now_utc

logger = get_logger(__name__)


def stamp_new(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of `doc` with created_at/updated_at set to now."""
    now = now_utc()
    return {**doc, "created_at": now, "updated_at": now}


def _same_index(existing_ix: Dict[str, Any], m: IndexModel) -> bool:
    # compare keys and uniqueness only
    ex_keys = list(existing_ix["key"].items())
    m_keys = list(m.document["key"].items())
    return ex_keys == m_keys and existing_ix.get("unique", False) == m.document.get("unique", False)


async def ensure_indexes(collection: Any, models: Sequence[IndexModel]) -> int:
    """Create the missing indexes of `models` on `collection`. Returns how many were created."""
    existing = await collection.list_indexes().to_list(length=None)
    missing: List[IndexModel] = [m for m in models if not any(_same_index(ix, m) for ix in existing)]
    if missing:
        await collection.create_indexes(missing)
    return len(missing)


class MongoManager:
    """
    Owns the Motor client and hands out collections.

    Usage:
        mongo = MongoManager(config.mongo_url, config.mongo_db_name)
        if not await mongo.ping(): ...
        todos = mongo.collection("todos")
        await mongo.close()
    """

    def __init__(self, mongo_url: str, db_name: str = "doomock_bot") -> None:
        # Tighter timeouts for faster feedback when the cluster is unreachable
        self._client = AsyncIOMotorClient(
            mongo_url,
            serverSelectionTimeoutMS=7000,
            connectTimeoutMS=7000,
            socketTimeoutMS=7000,
            tz_aware=True,
        )
        self._db = self._client[db_name]
        self.db_name = db_name
        logger.info(f"MongoManager created for database {db_name}")

    @property
    def db(self):
        return self._db

    def collection(self, name: str):
        return self._db[name]

    async def ping(self) -> bool:
        """Check connectivity to MongoDB."""
        try:
            await self._db.command({"ping": 1})
            return True
        except Exception as exc:
            logger.error(f"MongoDB ping failed: {exc}")
            return False

    def close(self) -> None:
        self._client.close()
        logger.info("MongoDB client closed")
