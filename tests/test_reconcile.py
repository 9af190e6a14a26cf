"""Tests for reconciling retrieval paths against projections."""

import pytest

from typed_records.config import ReconcilerConfig
from typed_records.engine import MemoryEngine
from typed_records.errors import MissingIdentityField
from typed_records.parsing import ProjectionParser
from typed_records.reconcile import (
    Expectation,
    Reconciler,
    RetrievalPath,
    expected_outcome,
)
from typed_records.store import RecordStore


class QueryRejectingEngine:
    """Delegates to a real engine but rejects every query."""

    def __init__(self, engine):
        self.engine = engine

    async def select(self, collection):
        return await self.engine.select(collection)

    async def query(self, text, bindings=None):
        raise RuntimeError("query endpoint unavailable")

    async def create(self, collection, fields):
        return await self.engine.create(collection, fields)

    async def close(self):
        await self.engine.close()


class CanonicalAliasEngine:
    """Delegates to a real engine but puts the full identifier in the rid alias."""

    def __init__(self, engine):
        self.engine = engine

    async def select(self, collection):
        return await self.engine.select(collection)

    async def query(self, text, bindings=None):
        response = await self.engine.query(text, bindings)
        return CanonicalAliasResponse(response)

    async def create(self, collection, fields):
        return await self.engine.create(collection, fields)

    async def close(self):
        await self.engine.close()


class CanonicalAliasResponse:
    """Result sets whose rid alias holds the canonical identifier."""

    def __init__(self, response):
        self.response = response

    def __len__(self):
        return len(self.response)

    def take(self, index):
        rows = self.response.take(index)
        for row in rows:
            if "rid" in row:
                row["rid"] = row["id"].get_tbl_id()
        return rows


class TestExpectedOutcome:
    """Tests for the documented reconciliation rule."""

    def test_optional_identity(self, shapes):
        """Test the optional identity row of the contract."""
        shape = shapes.get("BuildingWithRidOption")
        assert expected_outcome(RetrievalPath.WHOLE_COLLECTION, shape) == Expectation.succeeds(values={"rid": None})
        assert expected_outcome(RetrievalPath.QUERY, shape) == Expectation.succeeds(values={"rid": None})
        assert expected_outcome(RetrievalPath.QUERY_WITH_IDENTITY, shape) == Expectation.succeeds(
            present=["rid"], identity_key="rid"
        )

    def test_required_identity(self, shapes):
        """Test the required identity row of the contract."""
        shape = shapes.get("BuildingWithRid")
        assert expected_outcome(RetrievalPath.WHOLE_COLLECTION, shape).fails_with is MissingIdentityField
        assert expected_outcome(RetrievalPath.QUERY, shape).fails_with is MissingIdentityField
        assert expected_outcome(RetrievalPath.QUERY_WITH_IDENTITY, shape).fails_with is None

    def test_absent_and_embedded(self, shapes):
        """Test that shapes without an identity alias always succeed."""
        for name in ("Building", "BuildingWithThing"):
            for path in RetrievalPath:
                assert expected_outcome(path, shapes.get(name)) == Expectation.succeeds()


class TestQueryText:
    """Tests for the queries each path issues."""

    def test_paths(self, shapes):
        """Test the text per path."""
        reconciler = Reconciler(RecordStore(MemoryEngine()))
        shape = shapes.get("BuildingWithRid")
        assert reconciler.query_text(RetrievalPath.WHOLE_COLLECTION, "building_tbl", shape) is None
        assert reconciler.query_text(RetrievalPath.QUERY, "building_tbl", shape) == "SELECT * FROM building_tbl"
        assert (
            reconciler.query_text(RetrievalPath.QUERY_WITH_IDENTITY, "building_tbl", shape)
            == "SELECT *, meta::id(id) AS rid FROM building_tbl"
        )

    def test_alias_follows_identity_field(self):
        """Test that the alias is the shape's identity field name."""
        shape = ProjectionParser().parse_one("Tagged { key: string identity }")
        reconciler = Reconciler(RecordStore(MemoryEngine()))
        assert reconciler.identity_alias(shape) == "key"
        assert "AS key" in reconciler.query_text(RetrievalPath.QUERY_WITH_IDENTITY, "t", shape)

    def test_alias_from_config(self, shapes):
        """Test the configured alias for shapes without an identity field."""
        config = ReconcilerConfig()
        config.set("identity.alias", "record_key")
        reconciler = Reconciler(RecordStore(MemoryEngine()), config)
        assert reconciler.identity_alias(shapes.get("Building")) == "record_key"
        assert reconciler.identity_alias(shapes.get("BuildingWithThing")) == "record_key"
        assert reconciler.identity_alias(shapes.get("BuildingWithRid")) == "rid"

    def test_keywords_are_quoted(self):
        """Test that aliases and collections named like keywords are backtick-quoted."""
        shape = ProjectionParser().parse_one("Ordered { order: string? identity, address: string }")
        reconciler = Reconciler(RecordStore(MemoryEngine()))
        assert (
            reconciler.query_text(RetrievalPath.QUERY_WITH_IDENTITY, "select", shape)
            == "SELECT *, meta::id(id) AS `order` FROM `select`"
        )
        assert reconciler.query_text(RetrievalPath.QUERY, "Limit", shape) == "SELECT * FROM `Limit`"


class TestVerify:
    """Tests for Reconciler.verify."""

    @pytest.mark.asyncio
    async def test_default_matrix_passes(self, store, shapes):
        """Test that the engine follows the documented contract."""
        report = await Reconciler(store).verify("building_tbl", shapes)

        assert report.passed
        assert len(report.entries) == 12
        assert report.failures() == []
        assert [e.shape for e in report.entries[:3]] == ["BuildingWithThing"] * 3
        assert [e.path for e in report.entries[:3]] == list(RetrievalPath)

    @pytest.mark.asyncio
    async def test_entries(self, store, shapes):
        """Test individual entries of the matrix."""
        report = await Reconciler(store).verify("building_tbl", shapes)

        surfaced = report.entry(RetrievalPath.QUERY_WITH_IDENTITY, "BuildingWithRidOption")
        assert surfaced.records[0].rid == "1234567890"

        unset = report.entry(RetrievalPath.WHOLE_COLLECTION, "BuildingWithRidOption")
        assert unset.records[0].rid is None

        missing = report.entry(RetrievalPath.WHOLE_COLLECTION, "BuildingWithRid")
        assert missing.passed
        assert missing.error == "MissingIdentityField"
        assert missing.field == "rid"
        assert missing.records == ()

        with pytest.raises(KeyError):
            report.entry(RetrievalPath.QUERY, "Nope")

    @pytest.mark.asyncio
    async def test_idempotent(self, store, shapes):
        """Test that verifying twice yields the same report."""
        reconciler = Reconciler(store)
        first = await reconciler.verify("building_tbl", shapes)
        second = await reconciler.verify("building_tbl", shapes)
        assert first == second

    @pytest.mark.asyncio
    async def test_override_mismatch(self, store, shapes):
        """Test that a failing expectation is reported with field and reason."""
        expectations = {
            (RetrievalPath.QUERY, "BuildingWithRidOption"): Expectation.succeeds(values={"rid": "1234567890"}),
        }
        report = await Reconciler(store).verify("building_tbl", shapes, expectations)

        assert not report.passed
        [failure] = report.failures()
        assert failure.path is RetrievalPath.QUERY
        assert failure.shape == "BuildingWithRidOption"
        assert failure.field == "rid"
        assert failure.reason == "expected '1234567890', got None"

    @pytest.mark.asyncio
    async def test_unexpected_success(self, store, shapes):
        """Test that an expected failure that does not happen is reported."""
        expectations = {
            (RetrievalPath.QUERY_WITH_IDENTITY, "BuildingWithRid"): Expectation.fails(MissingIdentityField),
        }
        report = await Reconciler(store).verify("building_tbl", [shapes.get("BuildingWithRid")], expectations)
        [failure] = report.failures()
        assert "retrieval succeeded with 1 record(s)" in failure.reason

    @pytest.mark.asyncio
    async def test_count_expectation(self, store, shapes):
        """Test the record count check."""
        expectations = {(RetrievalPath.WHOLE_COLLECTION, "Building"): Expectation.succeeds(count=2)}
        report = await Reconciler(store).verify("building_tbl", [shapes.get("Building")], expectations)
        [failure] = report.failures()
        assert failure.reason == "expected 2 record(s), got 1"

    @pytest.mark.asyncio
    async def test_keyword_alias_passes(self, store):
        """Test that an identity field named like a keyword is still surfaced."""
        shapes = [
            ProjectionParser().parse_one("Ordered { order: string? identity, address: string }"),
            ProjectionParser().parse_one("Limited { limit: string identity, address: string }"),
        ]
        report = await Reconciler(store).verify("building_tbl", shapes)

        assert report.passed, report.format()
        assert report.entry(RetrievalPath.QUERY_WITH_IDENTITY, "Ordered").records[0].order == "1234567890"
        assert report.entry(RetrievalPath.QUERY_WITH_IDENTITY, "Limited").records[0].limit == "1234567890"

    @pytest.mark.asyncio
    async def test_keyword_collection(self, engine, shapes):
        """Test verifying a collection whose name is a keyword."""
        store = RecordStore(engine)
        await store.create("order", {"id": "1234567890", "address": "123 Main St"})
        report = await Reconciler(store).verify("order", shapes)
        assert report.passed, report.format()

    @pytest.mark.asyncio
    async def test_wrong_identity_value_fails(self, engine, shapes):
        """Test that an alias holding something other than the bare key is reported."""
        store = RecordStore(CanonicalAliasEngine(engine))
        await store.create("building_tbl", {"id": "1234567890", "address": "123 Main St"})

        report = await Reconciler(store).verify("building_tbl", shapes)

        failures = report.failures()
        assert [(f.path, f.shape) for f in failures] == [
            (RetrievalPath.QUERY_WITH_IDENTITY, "BuildingWithRid"),
            (RetrievalPath.QUERY_WITH_IDENTITY, "BuildingWithRidOption"),
        ]
        assert failures[0].field == "rid"
        assert failures[0].reason == (
            "`rid` is 'building_tbl:⟨1234567890⟩', not the bare key of a stored record"
        )

    @pytest.mark.asyncio
    async def test_engine_failures_are_isolated(self, engine, shapes):
        """Test that a rejected path fails its own entries only."""
        store = RecordStore(QueryRejectingEngine(engine))
        await store.create("building_tbl", {"id": "1234567890", "address": "123 Main St"})

        report = await Reconciler(store).verify("building_tbl", shapes)

        passed = [e for e in report.entries if e.passed]
        assert len(passed) == 4
        assert all(e.path is RetrievalPath.WHOLE_COLLECTION for e in passed)
        assert len(report.failures()) == 8
        assert all(e.error == "EngineFailure" for e in report.failures())

    @pytest.mark.asyncio
    async def test_duplicate_shapes(self, store, shapes):
        """Test that a shape given twice is verified once."""
        building = shapes.get("Building")
        report = await Reconciler(store).verify("building_tbl", [building, building])
        assert len(report.entries) == 3

    @pytest.mark.asyncio
    async def test_format(self, store, shapes):
        """Test the printable report."""
        report = await Reconciler(store).verify("building_tbl", shapes)
        text = report.format()
        assert text.splitlines()[0] == "Reconciliation of 'building_tbl': all passed"
        assert "[PASS]" in text
        assert "[FAIL]" not in text
        assert "id=building_tbl:⟨1234567890⟩" in text
