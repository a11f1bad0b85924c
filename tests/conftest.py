"""Pytest configuration and fixtures."""

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pagestream.database.schema import Base
from pagestream.database.sql_store import SqlDocumentStore
from pagestream.errors import StoreError
from pagestream.store.base import DocumentSnapshot, SortDirection, StoreCursor


@pytest.fixture
def session_factory():
    """Session factory over a temporary in-memory database."""
    # One shared connection so every session sees the same in-memory database
    engine = create_engine(
        "sqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    finally:
        engine.dispose()


@pytest.fixture
def session(session_factory):
    """Create a temporary in-memory database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sql_store(session_factory):
    return SqlDocumentStore(session_factory)


class FakeDocumentStore:
    """In-memory store whose range queries can be held open and released one by one."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.range_calls: List[tuple] = []
        self.hold = False
        self.gates: List[asyncio.Event] = []
        self.error: Optional[Exception] = None
        self.silent_watch = False
        self.write_delay = 0.0
        self._next_id = 0

    def seed(self, path: str, docs: Dict[str, Dict[str, Any]]) -> None:
        self.collections[path].update(docs)

    async def range_query(self, path, sort_field, direction, limit, after=None):
        self.range_calls.append((path, sort_field, direction, limit, after))
        if self.hold:
            gate = asyncio.Event()
            self.gates.append(gate)
            await gate.wait()
        if self.error is not None:
            raise self.error

        docs = sorted(
            self.collections[path].items(),
            key=lambda item: (item[1].get(sort_field), item[0]),
            reverse=direction == SortDirection.DESC,
        )
        if after is not None:
            ids = [doc_id for doc_id, _ in docs]
            docs = docs[ids.index(after.doc_id) + 1:]
        return [
            DocumentSnapshot(
                doc_id=doc_id,
                data=dict(data),
                cursor=StoreCursor(sort_key=data.get(sort_field), doc_id=doc_id),
            )
            for doc_id, data in docs[:limit]
        ]

    def watch_document(self, path, doc_id, listener):
        if self.silent_watch:
            return lambda: None
        data = self.collections[path].get(doc_id)
        listener(DocumentSnapshot(doc_id=doc_id, data=dict(data) if data is not None else None))
        return lambda: None

    async def set_document(self, path, doc_id, value):
        await asyncio.sleep(self.write_delay)
        if self.error is not None:
            raise self.error
        self.collections[path][doc_id] = dict(value)

    async def add_document(self, path, value):
        await asyncio.sleep(self.write_delay)
        if self.error is not None:
            raise self.error
        self._next_id += 1
        doc_id = f"fake-{self._next_id}"
        self.collections[path][doc_id] = dict(value)
        return doc_id

    async def delete_document(self, path, doc_id):
        await asyncio.sleep(self.write_delay)
        if self.error is not None:
            raise self.error
        self.collections[path].pop(doc_id, None)


@pytest.fixture
def fake_store():
    return FakeDocumentStore()


@pytest.fixture
def failing_store():
    store = FakeDocumentStore()
    store.error = StoreError("store unavailable")
    return store


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run up to their next real suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle_loop():
    return settle
