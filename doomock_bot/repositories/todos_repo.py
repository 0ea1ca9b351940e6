from typing import Any, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, IndexModel

from models.models import Todo
from repositories.mongo import ensure_indexes, stamp_new
from utils.time_utils import now_utc

MAX_TODO_LENGTH = 500

INDEXES = [
    IndexModel([("user_id", ASCENDING)], name="ix_todos_user"),
    IndexModel([("user_id", ASCENDING), ("created_at", ASCENDING)], name="ix_todos_user_created"),
]


class TodoValidationError(ValueError):
    pass


class TodoLimitError(ValueError):
    def __init__(self, limit: int):
        super().__init__(f"todo limit of {limit} reached")
        self.limit = limit


def _object_id(todo_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(todo_id)
    except (InvalidId, TypeError):
        return None


def _to_todo(doc: dict) -> Todo:
    return Todo(
        user_id=doc["user_id"],
        id=str(doc["_id"]),
        text=doc.get("text", ""),
        completed=bool(doc.get("completed", False)),
        created_at=doc.get("created_at"),
        completed_at=doc.get("completed_at"),
    )


class TodosRepository:
    """Mongo-backed todo list, one document per item in the `todos` collection."""

    def __init__(self, collection: Any, max_per_user: int = 50):
        self._coll = collection
        self.max_per_user = max_per_user

    async def initialize(self) -> None:
        await ensure_indexes(self._coll, INDEXES)

    async def count(self, user_id: int, completed: Optional[bool] = None) -> int:
        filt = {"user_id": user_id}
        if completed is not None:
            filt["completed"] = completed
        return await self._coll.count_documents(filt)

    async def list_page(self, user_id: int, page: int, page_size: int) -> List[Todo]:
        """Todos in creation order; `page` is zero-based."""
        cursor = (
            self._coll.find({"user_id": user_id})
            .sort("created_at", ASCENDING)
            .skip(max(0, page) * page_size)
            .limit(page_size)
        )
        docs = await cursor.to_list(length=page_size)
        return [_to_todo(d) for d in docs]

    async def add(self, user_id: int, text: str) -> Todo:
        text = (text or "").strip()
        if not text:
            raise TodoValidationError("todo text is empty")
        if len(text) > MAX_TODO_LENGTH:
            raise TodoValidationError(f"todo text exceeds {MAX_TODO_LENGTH} characters")
        if await self.count(user_id) >= self.max_per_user:
            raise TodoLimitError(self.max_per_user)

        doc = stamp_new({"user_id": user_id, "text": text, "completed": False, "completed_at": None})
        result = await self._coll.insert_one(doc)
        return _to_todo({**doc, "_id": result.inserted_id})

    async def get(self, user_id: int, todo_id: str) -> Optional[Todo]:
        oid = _object_id(todo_id)
        if oid is None:
            return None
        doc = await self._coll.find_one({"_id": oid, "user_id": user_id})
        return _to_todo(doc) if doc else None

    async def toggle(self, user_id: int, todo_id: str) -> Optional[Todo]:
        """Flip the completed flag. Returns the updated todo, or None if it does not exist."""
        todo = await self.get(user_id, todo_id)
        if todo is None:
            return None
        now = now_utc()
        todo.completed = not todo.completed
        todo.completed_at = now if todo.completed else None
        await self._coll.update_one(
            {"_id": ObjectId(todo.id), "user_id": user_id},
            {"$set": {"completed": todo.completed, "completed_at": todo.completed_at, "updated_at": now}},
        )
        return todo

    async def delete(self, user_id: int, todo_id: str) -> bool:
        oid = _object_id(todo_id)
        if oid is None:
            return False
        result = await self._coll.delete_one({"_id": oid, "user_id": user_id})
        return result.deleted_count > 0

    async def clear_completed(self, user_id: int) -> int:
        result = await self._coll.delete_many({"user_id": user_id, "completed": True})
        return result.deleted_count
