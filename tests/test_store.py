from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from pymongo.errors import AutoReconnect, OperationFailure

from task_api.database import TaskStore
from task_api.query import CREATED_DESC, DUE_ASC, PageRequest, Sort, TaskFilter, build_filter
from task_api.schemas import TaskStatus, utcnow

from .helpers import task_fields


@pytest.mark.asyncio
async def test_ids_are_sequential_and_timestamps_set(store: TaskStore) -> None:
    first = await store.create(task_fields("one"))
    batch = await store.create_many([task_fields("two"), task_fields("three")])

    assert first.id == 1
    assert [t.id for t in batch] == [2, 3]
    assert first.created_at == first.updated_at
    assert first.deleted is False and first.deleted_at is None


@pytest.mark.asyncio
async def test_find_active_ignores_soft_deleted(store: TaskStore) -> None:
    task = await store.create(task_fields())
    assert (await store.find_active(task.id)).title == "Write report"

    deleted = await store.update_active(task.id, {"deleted": True, "deleted_at": utcnow()})
    assert deleted.deleted is True
    assert deleted.updated_at >= deleted.created_at

    assert await store.find_active(task.id) is None
    assert await store.update_active(task.id, {"title": "again"}) is None
    assert await store.find_active(999) is None


@pytest.mark.asyncio
async def test_find_page_slices_and_counts(store: TaskStore) -> None:
    await store.create_many([task_fields(f"task {n}") for n in range(5)])

    request = PageRequest(page=1, size=2, sort=Sort("_id", 1))
    page = await store.find_page(build_filter(TaskFilter()), request)

    assert [t.title for t in page.items] == ["task 2", "task 3"]
    assert page.total_elements == 5
    assert page.total_pages == 3


@pytest.mark.asyncio
async def test_default_listing_order_is_newest_first(store: TaskStore) -> None:
    await store.create_many([task_fields("older"), task_fields("newer")])
    page = await store.find_page(build_filter(TaskFilter()), PageRequest(0, 20, CREATED_DESC))
    # same created_at inside a batch, so the id tie-breaker decides
    assert [t.title for t in page.items] == ["newer", "older"]


@pytest.mark.asyncio
async def test_search_is_case_insensitive_substring(store: TaskStore) -> None:
    await store.create_many([task_fields("Searchable Unique Title"), task_fields("Other")])
    page = await store.find_page(build_filter(TaskFilter(search="UNIQUE tit")), PageRequest(0, 20, DUE_ASC))
    assert [t.title for t in page.items] == ["Searchable Unique Title"]


@pytest.mark.asyncio
async def test_update_many_active_counts_only_live_matches(store: TaskStore) -> None:
    tasks = await store.create_many([task_fields("a"), task_fields("b"), task_fields("c")])
    await store.update_active(tasks[2].id, {"deleted": True, "deleted_at": utcnow()})

    found = await store.find_active_ids([t.id for t in tasks] + [99])
    assert sorted(found) == [tasks[0].id, tasks[1].id]

    affected = await store.update_many_active(found, {"status": TaskStatus.COMPLETED.value})
    assert affected == 2
    assert (await store.find_active(tasks[0].id)).status is TaskStatus.COMPLETED
    assert await store.update_many_active([], {"status": "PENDING"}) == 0


@pytest.mark.asyncio
async def test_due_dates_round_trip(store: TaskStore) -> None:
    due = utcnow() + timedelta(days=3)
    task = await store.create(task_fields(due_date_time=due))
    assert (await store.find_active(task.id)).due_date_time == due


class FlakyCollection:
    """Wraps a collection: insert_many writes the first document, then fails."""

    def __init__(self, inner, fail_rollback: bool = False):
        self._inner = inner
        self.fail_rollback = fail_rollback

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def insert_many(self, documents, ordered=True):
        await self._inner.insert_one(documents[0])
        raise OperationFailure("E11000 duplicate key error", code=11000)

    async def delete_many(self, *args, **kwargs):
        if self.fail_rollback:
            raise AutoReconnect("connection closed")
        return await self._inner.delete_many(*args, **kwargs)


@pytest.mark.asyncio
async def test_failed_batch_insert_is_rolled_back(store: TaskStore, database) -> None:
    store._tasks = FlakyCollection(database["task"])

    with pytest.raises(OperationFailure):
        await store.create_many([task_fields("a"), task_fields("b")])
    assert await database["task"].count_documents({}) == 0


@pytest.mark.asyncio
async def test_failed_rollback_still_raises_insert_error(store: TaskStore, database, caplog) -> None:
    store._tasks = FlakyCollection(database["task"], fail_rollback=True)

    with caplog.at_level(logging.ERROR, logger="task_api.database"):
        with pytest.raises(OperationFailure) as excinfo:
            await store.create_many([task_fields("a"), task_fields("b")])

    assert excinfo.value.code == 11000
    assert "Rollback of ids [1, 2] failed" in caplog.text
    # the partial write is left behind for an operator to clean up
    assert await database["task"].count_documents({}) == 1
