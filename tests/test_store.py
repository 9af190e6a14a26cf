"""Tests for typed retrieval through RecordStore."""

import pytest

from typed_records.errors import EngineFailure, MissingIdentityField, TypeMismatch
from typed_records.record_id import NumericKey, RecordId
from typed_records.store import RecordStore

RID = RecordId("building_tbl", NumericKey(1234567890))
SELECT_ALL = "SELECT * FROM building_tbl"
SELECT_IDENTITY = "SELECT *, meta::id(id) AS rid FROM building_tbl"


class UnreachableEngine:
    """An engine whose every operation fails at the transport level."""

    async def select(self, collection):
        raise ConnectionError("connection refused")

    async def query(self, text, bindings=None):
        raise ConnectionError("connection refused")

    async def create(self, collection, fields):
        raise ConnectionError("connection refused")

    async def close(self):
        pass


class TestRetrievalPaths:
    """The same stored record retrieved through each path."""

    @pytest.mark.asyncio
    async def test_optional_identity_select(self, store, shapes):
        """Test that the whole-collection fetch leaves an optional identity unset."""
        [record] = await store.select("building_tbl", shapes.get("BuildingWithRidOption"))
        assert record.rid is None
        assert record.address == "123 Main St"

    @pytest.mark.asyncio
    async def test_optional_identity_query_without_derivation(self, store, shapes):
        """Test that SELECT * leaves an optional identity unset."""
        [record] = await store.execute_query(SELECT_ALL, shapes.get("BuildingWithRidOption"))
        assert record.rid is None

    @pytest.mark.asyncio
    async def test_optional_identity_query_with_derivation(self, store, shapes):
        """Test that the derivation populates the optional identity."""
        [record] = await store.execute_query(SELECT_IDENTITY, shapes.get("BuildingWithRidOption"))
        assert record.rid == "1234567890"
        assert record.address == "123 Main St"

    @pytest.mark.asyncio
    async def test_required_identity_select_fails(self, store, shapes):
        """Test that the whole-collection fetch cannot satisfy a required identity."""
        with pytest.raises(MissingIdentityField, match="missing field `rid`"):
            await store.select("building_tbl", shapes.get("BuildingWithRid"))

    @pytest.mark.asyncio
    async def test_required_identity_query_without_derivation_fails(self, store, shapes):
        """Test that SELECT * cannot satisfy a required identity."""
        with pytest.raises(MissingIdentityField):
            await store.execute_query(SELECT_ALL, shapes.get("BuildingWithRid"))

    @pytest.mark.asyncio
    async def test_required_identity_query_with_derivation(self, store, shapes):
        """Test that the derivation satisfies a required identity."""
        [record] = await store.execute_query(SELECT_IDENTITY, shapes.get("BuildingWithRid"))
        assert record.values == {"rid": "1234567890", "address": "123 Main St"}

    @pytest.mark.asyncio
    async def test_absent_identity_all_paths(self, store, shapes):
        """Test that a shape without identity succeeds everywhere."""
        shape = shapes.get("Building")
        expected = {"address": "123 Main St"}
        assert [r.values for r in await store.select("building_tbl", shape)] == [expected]
        assert [r.values for r in await store.execute_query(SELECT_ALL, shape)] == [expected]
        assert [r.values for r in await store.execute_query(SELECT_IDENTITY, shape)] == [expected]

    @pytest.mark.asyncio
    async def test_embedded_identity_surface(self, store, shapes):
        """Test the accessor surface of a record embedding its id."""
        [record] = await store.select("building_tbl", shapes.get("BuildingWithThing"))
        assert record.id == RID
        assert record.get_tbl_id() == "building_tbl:⟨1234567890⟩"
        assert record.get_id() == "1234567890"
        assert record.get_tbl() == "building_tbl"

    @pytest.mark.asyncio
    async def test_query_result_sets(self, store, shapes):
        """Test reading several result sets of one query."""
        result = await store.query(f"{SELECT_ALL}; {SELECT_IDENTITY}")
        assert len(result) == 2
        assert result.take(0, shapes.get("BuildingWithRidOption"))[0].rid is None
        assert result.take(1, shapes.get("BuildingWithRidOption"))[0].rid == "1234567890"

    @pytest.mark.asyncio
    async def test_create_through_store(self, store, shapes):
        """Test that records created through the store are retrievable."""
        await store.create("building_tbl", {"id": "main", "address": "9 Elm St"})
        records = await store.select("building_tbl", shapes.get("Building"))
        assert [r.address for r in records] == ["123 Main St", "9 Elm St"]

    @pytest.mark.asyncio
    async def test_stored_null_is_type_mismatch(self, store, shapes):
        """Test that a NULL written by the engine is not reported as a missing field."""
        seeded = await store.query("CREATE building_tbl SET id = 'main', address = NULL")
        seeded.rows(0)
        with pytest.raises(TypeMismatch) as exc_info:
            await store.select("building_tbl", shapes.get("Building"))
        assert exc_info.value.field == "address"

    @pytest.mark.asyncio
    async def test_record_keys(self, store):
        """Test listing the bare keys of a collection."""
        await store.create("building_tbl", {"id": "main", "address": "9 Elm St"})
        assert await store.record_keys("building_tbl") == ["1234567890", "main"]
        assert await store.record_keys("nothing_here") == []


class TestEngineFailure:
    """Tests for re-tagging engine errors."""

    @pytest.mark.asyncio
    async def test_syntax_error(self, store):
        """Test that a parse error keeps the original error."""
        with pytest.raises(EngineFailure) as exc_info:
            await store.query("SELECT FROM")
        assert isinstance(exc_info.value.original, SyntaxError)
        assert exc_info.value.__cause__ is exc_info.value.original

    @pytest.mark.asyncio
    async def test_statement_error(self, store, shapes):
        """Test that a failed statement is re-tagged when read."""
        result = await store.query("SELECT * FROM building_tbl WHERE id = $missing")
        with pytest.raises(EngineFailure) as exc_info:
            result.take(0, shapes.get("Building"))
        assert isinstance(exc_info.value.original, RuntimeError)

    @pytest.mark.asyncio
    async def test_duplicate_create(self, store):
        """Test that a duplicate create surfaces as EngineFailure."""
        with pytest.raises(EngineFailure, match="already exists"):
            await store.create("building_tbl", {"id": 1234567890, "address": "dup"})

    @pytest.mark.asyncio
    async def test_closed_engine(self, engine, shapes):
        """Test operations on a closed engine."""
        store = RecordStore(engine)
        await store.close()
        with pytest.raises(EngineFailure) as exc_info:
            await store.select("building_tbl", shapes.get("Building"))
        assert isinstance(exc_info.value.original, RuntimeError)

    @pytest.mark.asyncio
    async def test_transport_error(self, shapes):
        """Test that any engine's errors are re-tagged."""
        store = RecordStore(UnreachableEngine())
        with pytest.raises(EngineFailure) as exc_info:
            await store.select("building_tbl", shapes.get("Building"))
        assert isinstance(exc_info.value.original, ConnectionError)
        with pytest.raises(EngineFailure):
            await store.execute_query(SELECT_ALL, shapes.get("Building"))

    @pytest.mark.asyncio
    async def test_shape_errors_are_not_engine_failures(self, store, shapes):
        """Test that deserialization errors propagate as they are."""
        await store.create("building_tbl", {"id": "main", "address": 42})
        with pytest.raises(TypeMismatch):
            await store.select("building_tbl", shapes.get("Building"))
