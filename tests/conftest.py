"""Shared fixtures: an in-memory stand-in for the events collection and an
HTTPX client bound to the app with the store dependencies overridden."""

from __future__ import annotations

import copy
import datetime as dt
from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any, Optional

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

from calendar_api.main import app, get_database, get_events_service
from calendar_api.services.events import EventsService


def _matches(doc: dict, mongo_filter: dict) -> bool:
    for key, condition in mongo_filter.items():
        value = doc.get(key)
        if isinstance(condition, dict):
            if value is None:
                return False
            for op, operand in condition.items():
                if op == "$gte" and not value >= operand:
                    return False
                if op == "$lte" and not value <= operand:
                    return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs

    async def to_list(self, length: Optional[int] = None) -> list[dict]:
        return list(self._docs if length is None else self._docs[:length])


class FakeCollection:
    """Mimics the slice of motor's collection API the service uses."""

    def __init__(self) -> None:
        self.docs: list[dict] = []
        self.calls: list[str] = []
        self.fail_with: Optional[Exception] = None
        self.return_inserted_id = True

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    def find(self, mongo_filter: dict) -> FakeCursor:
        self._record("find")
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, mongo_filter)])

    async def find_one(self, mongo_filter: dict) -> Optional[dict]:
        self._record("find_one")
        for doc in self.docs:
            if _matches(doc, mongo_filter):
                return copy.deepcopy(doc)
        return None

    async def insert_one(self, doc: dict) -> Any:
        self._record("insert_one")
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"] if self.return_inserted_id else None)

    async def update_one(self, mongo_filter: dict, update: dict) -> Any:
        self._record("update_one")
        for doc in self.docs:
            if _matches(doc, mongo_filter):
                doc.update(copy.deepcopy(update["$set"]))
                return SimpleNamespace(matched_count=1)
        return SimpleNamespace(matched_count=0)

    async def delete_one(self, mongo_filter: dict) -> Any:
        self._record("delete_one")
        for index, doc in enumerate(self.docs):
            if _matches(doc, mongo_filter):
                del self.docs[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    def __init__(self) -> None:
        self.connected = True
        self.error: Optional[Exception] = None

    async def ping(self) -> bool:
        if self.error is not None:
            raise self.error
        return self.connected


class TickingClock:
    """Returns a new instant, one second later, on every call."""

    def __init__(self, start: dt.datetime = dt.datetime(2024, 10, 1, 12, 0, tzinfo=dt.timezone.utc)):
        self.current = start

    def __call__(self) -> dt.datetime:
        now = self.current
        self.current += dt.timedelta(seconds=1)
        return now


@pytest.fixture()
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture()
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture()
def service(collection: FakeCollection, clock: TickingClock) -> EventsService:
    return EventsService(collection, clock=clock)


@pytest.fixture()
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest_asyncio.fixture()
async def async_client(service: EventsService, fake_db: FakeDatabase) -> AsyncIterator[AsyncClient]:
    """Provide an HTTPX async client bound to the app, without a real MongoDB."""

    app.dependency_overrides[get_events_service] = lambda: service
    app.dependency_overrides[get_database] = lambda: fake_db
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
