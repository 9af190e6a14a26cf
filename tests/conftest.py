"""Shared fixtures: a memory engine seeded with one building record."""

import pytest
import pytest_asyncio

from typed_records import MemoryEngine, RecordStore, parse_projections
from typed_records.cli import BUILDING_SHAPES

TABLE = "building_tbl"
ADDRESS = "123 Main St"
RID = "1234567890"


@pytest.fixture
def shapes():
    """The four building projections, keyed by name."""
    return parse_projections(BUILDING_SHAPES)


@pytest_asyncio.fixture
async def engine():
    """A fresh engine, closed after the test."""
    async with MemoryEngine() as engine:
        yield engine


@pytest_asyncio.fixture
async def store(engine):
    """A RecordStore over an engine holding one building record."""
    store = RecordStore(engine)
    seeded = await store.query(
        "CREATE building_tbl SET id = $rid, address = $addr;",
        {"rid": RID, "addr": ADDRESS},
    )
    seeded.rows(0)
    return store
