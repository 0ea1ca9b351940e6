import os
import sys
import types
from typing import Any, Dict, List, Optional

import pytest

# Ensure doomock_bot is importable in tests (e.g., `import handlers...`).
BOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "doomock_bot"))
if BOT_DIR not in sys.path:
    sys.path.insert(0, BOT_DIR)

from bson import ObjectId  # noqa: E402

from platforms.testing import MockJobScheduler, RecordingResponseService  # noqa: E402
from platforms.types import CallbackQuery, UserMessage  # noqa: E402


# ---------- in-memory stand-ins for Motor collections ----------

def _matches(doc: Dict[str, Any], filt: Optional[Dict[str, Any]]) -> bool:
    for key, cond in (filt or {}).items():
        value = doc.get(key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$gte" and not (value is not None and value >= arg):
                    return False
                if op == "$lt" and not (value is not None and value < arg):
                    return False
                if op == "$in" and value not in arg:
                    return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = list(docs)

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def skip(self, n):
        self._docs = self._docs[n:]
        return self

    def limit(self, n):
        if n:
            self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        docs = self._docs if length is None else self._docs[:length]
        return [dict(d) for d in docs]


class FakeCollection:
    def __init__(self, name: str = "fake"):
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.indexes: List[Dict[str, Any]] = []

    # indexes
    def list_indexes(self):
        return FakeCursor(self.indexes)

    async def create_indexes(self, models):
        for m in models:
            self.indexes.append({
                "name": m.document["name"],
                "key": dict(m.document["key"]),
                "unique": m.document.get("unique", False),
            })
        return [m.document["name"] for m in models]

    # reads
    def find(self, filt=None):
        return FakeCursor([d for d in self.docs if _matches(d, filt)])

    async def find_one(self, filt=None):
        for d in self.docs:
            if _matches(d, filt):
                return dict(d)
        return None

    async def count_documents(self, filt):
        return sum(1 for d in self.docs if _matches(d, filt))

    # writes
    async def insert_one(self, doc):
        doc = dict(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return types.SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, filt, update, upsert=False):
        for d in self.docs:
            if _matches(d, filt):
                d.update(update.get("$set", {}))
                return types.SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if not upsert:
            return types.SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        doc = {k: v for k, v in filt.items() if not isinstance(v, dict)}
        doc.update(update.get("$setOnInsert", {}))
        doc.update(update.get("$set", {}))
        result = await self.insert_one(doc)
        return types.SimpleNamespace(matched_count=0, modified_count=0, upserted_id=result.inserted_id)

    async def delete_one(self, filt):
        for i, d in enumerate(self.docs):
            if _matches(d, filt):
                del self.docs[i]
                return types.SimpleNamespace(deleted_count=1)
        return types.SimpleNamespace(deleted_count=0)

    async def delete_many(self, filt):
        keep = [d for d in self.docs if not _matches(d, filt)]
        removed = len(self.docs) - len(keep)
        self.docs = keep
        return types.SimpleNamespace(deleted_count=removed)


class FakeMongo:
    """Quacks like repositories.mongo.MongoManager."""

    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self._collections: Dict[str, FakeCollection] = {}

    def collection(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collection(name)

    async def ping(self) -> bool:
        return self.reachable

    def close(self) -> None:
        pass


# ---------- fixtures ----------

@pytest.fixture
def fake_mongo():
    return FakeMongo()


@pytest.fixture
def fake_collection():
    return FakeCollection()


@pytest.fixture
def responder():
    return RecordingResponseService()


@pytest.fixture
def scheduler():
    return MockJobScheduler()


@pytest.fixture
def make_query():
    counter = {"n": 0}

    def _make(data, user_id=42, chat_id=42, message_id=777, first_name="두목"):
        counter["n"] += 1
        return CallbackQuery(
            user_id=user_id,
            chat_id=chat_id,
            message_id=message_id,
            data=data,
            query_id=f"q{counter['n']}",
            first_name=first_name,
        )

    return _make


@pytest.fixture
def make_message():
    def _make(text, user_id=42, chat_id=42, first_name="두목"):
        return UserMessage(user_id=user_id, chat_id=chat_id, text=text, message_id=5, first_name=first_name)

    return _make
