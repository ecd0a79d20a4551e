import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from .config import Settings, get_settings
from .query import Page, PageRequest
from .schemas import Task, utcnow

logger = logging.getLogger(__name__)

TASK_COLLECTION = "task"
COUNTER_COLLECTION = "counters"

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def get_db(settings: Optional[Settings] = None) -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        settings = settings or get_settings()
        _client = AsyncIOMotorClient(settings.database_url)
        _db = _client[settings.database_name]
        logger.info("Connected to MongoDB database '%s'", settings.database_name)
    return _db


def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None


class TaskStore:
    """
    Task persistence on a Motor database.

    Ids are integers handed out by a per-collection counter document. Every
    read here ignores soft-deleted documents; nothing is ever physically
    removed except the rollback of a failed batch insert.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection: str = TASK_COLLECTION):
        self._name = collection
        self._tasks = db[collection]
        self._counters = db[COUNTER_COLLECTION]

    async def _reserve_ids(self, count: int) -> List[int]:
        counter = await self._counters.find_one_and_update(
            {"_id": self._name},
            {"$inc": {"seq": count}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        last = counter["seq"]
        return list(range(last - count + 1, last + 1))

    async def create(self, data: Dict[str, Any]) -> Task:
        return (await self.create_many([data]))[0]

    async def create_many(self, items: List[Dict[str, Any]]) -> List[Task]:
        """Insert a batch; if any insert fails, the documents already written are removed again."""
        if not items:
            return []
        ids = await self._reserve_ids(len(items))
        now = utcnow()
        tasks = [
            Task(id=task_id, created_at=now, updated_at=now, deleted=False, deleted_at=None, **data)
            for task_id, data in zip(ids, items)
        ]
        try:
            await self._tasks.insert_many([task.to_document() for task in tasks], ordered=True)
        except PyMongoError as exc:
            logger.error("Batch insert of %d task(s) failed, rolling back ids %s", len(ids), ids)
            try:
                await self._tasks.delete_many({"_id": {"$in": ids}})
            except PyMongoError:
                logger.exception("Rollback of ids %s failed; documents may remain", ids)
            raise exc
        return tasks

    async def find_active(self, task_id: int) -> Optional[Task]:
        doc = await self._tasks.find_one({"_id": task_id, "deleted": False})
        return Task(**doc) if doc else None

    async def find_page(self, predicate: Dict[str, Any], request: PageRequest) -> Page[Task]:
        total = await self._tasks.count_documents(predicate)
        cursor = self._tasks.find(
            predicate,
            sort=request.sort.spec(),
            skip=request.offset,
            limit=request.size,
        )
        items: List[Task] = []
        async for doc in cursor:
            items.append(Task(**doc))
        return Page(items=items, page=request.page, size=request.size, total_elements=total)

    async def find_active_ids(self, ids: List[int]) -> List[int]:
        cursor = self._tasks.find({"_id": {"$in": ids}, "deleted": False}, {"_id": 1})
        return [doc["_id"] async for doc in cursor]

    async def update_active(self, task_id: int, updates: Dict[str, Any]) -> Optional[Task]:
        """Apply ``updates`` to a live task in one atomic write; None if absent or deleted."""
        updates = {**updates, "updated_at": utcnow()}
        doc = await self._tasks.find_one_and_update(
            {"_id": task_id, "deleted": False},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        return Task(**doc) if doc else None

    async def update_many_active(self, ids: List[int], updates: Dict[str, Any]) -> int:
        """Apply ``updates`` to every live task among ``ids``; returns how many matched."""
        if not ids:
            return 0
        updates = {**updates, "updated_at": utcnow()}
        result = await self._tasks.update_many(
            {"_id": {"$in": ids}, "deleted": False},
            {"$set": updates},
        )
        return result.matched_count
