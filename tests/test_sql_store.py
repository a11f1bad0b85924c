"""Tests for the SQLite document store and its repository functions."""

import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest

from pagestream.database import sql_store as sql_store_module
from pagestream.database.document_repo import (
    dump_document_data,
    load_document_data,
    query_document_page,
    upsert_document,
)
from pagestream.errors import FetchTimeoutError, StoreError
from pagestream.query.engine import PaginatedStream
from pagestream.records.models import AddressRecord
from pagestream.services.addresses import AddressHistory
from pagestream.store.base import (
    SortDirection,
    StoreCursor,
    StoreTimestamp,
    first_snapshot,
    owner_scoped_path,
)

PATH = owner_scoped_path("owner-a", "address-history")


def test_owner_scoped_path():
    assert owner_scoped_path("u1", "trips") == "owner/u1/trips"
    assert owner_scoped_path("u1", "/trips/") == "owner/u1/trips"


def test_timestamps_round_trip_as_store_timestamps():
    dt = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    data = load_document_data(dump_document_data({"start": dt, "end": None, "n": 1}))

    assert isinstance(data["start"], StoreTimestamp)
    assert data["start"].to_datetime() == dt
    assert data["end"] is None
    assert data["n"] == 1


def test_invalid_sort_field_rejected(session):
    with pytest.raises(ValueError, match="Invalid sort field"):
        query_document_page(session, PATH, "start') --", SortDirection.ASC, 10)


def test_page_query_orders_and_continues_after_cursor(session):
    for i, value in enumerate([3, 1, 2, 5, 4]):
        upsert_document(session, PATH, f"d{i}", {"n": value})
    session.commit()

    first = query_document_page(session, PATH, "n", SortDirection.DESC, 2)
    assert [key for _, key in first] == [5, 4]

    last_row, last_key = first[-1]
    rest = query_document_page(
        session, PATH, "n", SortDirection.DESC, 10, after=StoreCursor(last_key, last_row.doc_id)
    )
    assert [key for _, key in rest] == [3, 2, 1]


def test_equal_sort_keys_split_across_pages_without_gaps(session):
    for doc_id in ["a", "b", "c", "d"]:
        upsert_document(session, PATH, doc_id, {"n": 1})
    session.commit()

    seen = []
    after = None
    while True:
        page = query_document_page(session, PATH, "n", SortDirection.ASC, 3, after=after)
        if not page:
            break
        seen.extend(row.doc_id for row, _ in page)
        row, key = page[-1]
        after = StoreCursor(key, row.doc_id)

    assert seen == ["a", "b", "c", "d"]


@pytest.mark.asyncio
async def test_range_query_orders_by_timestamp(sql_store):
    base = datetime(2023, 1, 1, tzinfo=timezone.utc)
    # Whole-second and fractional timestamps must still order as instants
    await sql_store.set_document(PATH, "x", {"start": base + timedelta(seconds=1)})
    await sql_store.set_document(PATH, "y", {"start": base + timedelta(microseconds=500000)})
    await sql_store.set_document(PATH, "z", {"start": base})

    asc = await sql_store.range_query(PATH, "start", SortDirection.ASC, 10)
    assert [s.doc_id for s in asc] == ["z", "y", "x"]

    desc = await sql_store.range_query(PATH, "start", SortDirection.DESC, 1)
    assert [s.doc_id for s in desc] == ["x"]
    rest = await sql_store.range_query(PATH, "start", SortDirection.DESC, 10, after=desc[0].cursor)
    assert [s.doc_id for s in rest] == ["y", "z"]


@pytest.mark.asyncio
async def test_missing_sort_values_page_consistently(sql_store):
    await sql_store.set_document(PATH, "a", {"n": 2})
    await sql_store.set_document(PATH, "b", {})
    await sql_store.set_document(PATH, "c", {"n": 1})
    await sql_store.set_document(PATH, "d", {})

    for direction in (SortDirection.ASC, SortDirection.DESC):
        everything = await sql_store.range_query(PATH, "n", direction, 10)
        paged = []
        after = None
        while True:
            page = await sql_store.range_query(PATH, "n", direction, 1, after=after)
            if not page:
                break
            paged.extend(s.doc_id for s in page)
            after = page[-1].cursor
        assert paged == [s.doc_id for s in everything]
        assert sorted(paged) == ["a", "b", "c", "d"]


@pytest.mark.asyncio
async def test_collections_are_isolated_per_owner(sql_store):
    other = owner_scoped_path("owner-b", "address-history")
    await sql_store.set_document(PATH, "mine", {"n": 1})
    await sql_store.set_document(other, "theirs", {"n": 1})

    mine = await sql_store.range_query(PATH, "n", SortDirection.ASC, 10)
    assert [s.doc_id for s in mine] == ["mine"]


@pytest.mark.asyncio
async def test_watch_document_emits_current_then_changes(sql_store):
    snapshots = []
    unsubscribe = sql_store.watch_document(PATH, "doc", snapshots.append)
    assert len(snapshots) == 1 and not snapshots[0].exists

    await sql_store.set_document(PATH, "doc", {"n": 1})
    await sql_store.set_document(PATH, "doc", {"n": 2})
    await sql_store.delete_document(PATH, "doc")
    assert [s.data for s in snapshots] == [None, {"n": 1}, {"n": 2}, None]

    unsubscribe()
    await sql_store.set_document(PATH, "doc", {"n": 3})
    assert len(snapshots) == 4


@pytest.mark.asyncio
async def test_first_snapshot_takes_one_emission(sql_store):
    await sql_store.set_document(PATH, "doc", {"n": 1})
    snapshot = await first_snapshot(sql_store, PATH, "doc")
    assert snapshot.data == {"n": 1}

    # The one-shot listener is gone again
    assert sql_store._listeners == {}


@pytest.mark.asyncio
async def test_add_document_assigns_id(sql_store):
    doc_id = await sql_store.add_document(PATH, {"n": 1})
    assert doc_id.startswith("DOC-")
    snapshot = await first_snapshot(sql_store, PATH, doc_id)
    assert snapshot.exists


@pytest.mark.asyncio
async def test_address_history_end_to_end(sql_store):
    history = AddressHistory(sql_store, "owner-a", query_defaults={"page_size": 2})
    base = datetime(2020, 1, 1, tzinfo=timezone.utc)
    for year in range(3):
        await sql_store.set_document(
            PATH,
            f"addr-{year}",
            {"start": base.replace(year=2020 + year), "location_name": f"Place {year}", "address": ""},
        )

    await history.start()
    assert [r.id for r in history.results] == ["addr-2", "addr-1"]
    assert isinstance(history.results[0], AddressRecord)
    assert history.results[0].start == datetime(2022, 1, 1, tzinfo=timezone.utc)
    assert history.results[0].end is None

    await history.load_more()
    assert [r.id for r in history.results] == ["addr-2", "addr-1", "addr-0"]

    await history.load_more()
    assert history.done.value is True


@pytest.mark.asyncio
async def test_engine_crud_against_sql_store(sql_store):
    stream = PaginatedStream(sql_store, "owner-a", AddressRecord)
    await stream.init("address-history", "start", {"reverse": True, "prepend": False})
    assert stream.done.value is True

    start = datetime(2021, 6, 1, tzinfo=timezone.utc)
    doc_id = await stream.create(AddressRecord(id="", start=start, location_name="Home"))
    record = await stream.get(doc_id)
    assert record.location_name == "Home"
    assert record.start == start

    await stream.update(doc_id, record.model_copy(update={"location_name": "Office"}))
    assert (await stream.get(doc_id)).location_name == "Office"

    await stream.refresh()
    assert [r.id for r in stream.results] == [doc_id]

    await stream.delete(doc_id)
    assert await stream.get(doc_id) is None


@pytest.mark.asyncio
async def test_slow_range_query_hits_fetch_timeout(sql_store, monkeypatch):
    def slow_page(*args, **kwargs):
        time.sleep(0.3)
        return []

    monkeypatch.setattr(sql_store_module, "query_document_page", slow_page)
    stream = PaginatedStream(sql_store, "owner-a", fetch_timeout=0.05)

    await stream.init("address-history", "start")

    assert isinstance(stream.error.value, FetchTimeoutError)
    assert stream.loading.value is False
    # Let the worker thread finish before the database goes away
    await asyncio.sleep(0.3)


@pytest.mark.asyncio
async def test_failing_listener_does_not_fail_committed_write(sql_store):
    received = []

    def broken(snapshot):
        if snapshot.exists:
            raise RuntimeError("listener bug")

    sql_store.watch_document(PATH, "doc", broken)
    sql_store.watch_document(PATH, "doc", received.append)

    await sql_store.set_document(PATH, "doc", {"n": 1})

    assert received[-1].data == {"n": 1}
    assert (await first_snapshot(sql_store, PATH, "doc")).data == {"n": 1}


@pytest.mark.asyncio
async def test_failed_notification_read_does_not_fail_committed_write(sql_store, monkeypatch):
    sql_store.watch_document(PATH, "doc", lambda snapshot: None)

    def failing_read(path, doc_id):
        raise StoreError("read failed")

    monkeypatch.setattr(sql_store, "_read_snapshot", failing_read)
    await sql_store.set_document(PATH, "doc", {"n": 1})

    rows = await sql_store.range_query(PATH, "n", SortDirection.ASC, 10)
    assert [s.doc_id for s in rows] == ["doc"]
