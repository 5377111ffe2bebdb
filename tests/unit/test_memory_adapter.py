"""
Tests for the in-memory adapter (ephemeral chroma primary + exact fallback).
"""

from unittest.mock import MagicMock

import pytest
import structlog

from retrieval.adapters.memory import InMemoryAdapter
from retrieval.errors import NotFoundError, StoreError
from retrieval.models import Match


@pytest.fixture
def embedder(make_embedder):
    return make_embedder(dimension=4)


@pytest.fixture
def adapter(embedder, collection_name):
    return InMemoryAdapter(embedder, collection_name=collection_name)


@pytest.fixture
def empty_primary():
    """Primary index that is up but answers every query with nothing."""
    primary = MagicMock()
    primary.query.return_value = []
    primary.get_vector.return_value = None
    return primary


async def _seed_colors(adapter):
    await adapter.upsert("red", [1.0, 0.0, 0.0, 0.0], {"primary_color": "red"})
    await adapter.upsert("blue", [0.9, 0.1, 0.0, 0.0], {"primary_color": "blue"})
    await adapter.upsert("green", [0.8, 0.2, 0.0, 0.0], {"primary_color": "green"})


class TestInitialization:
    """Tests for lazy initialization."""

    async def test_init_is_idempotent(self, adapter):
        await adapter.init()
        primary = adapter.primary
        await adapter.init()

        assert adapter.is_initialized
        assert adapter.primary is primary

    async def test_operations_initialize_lazily(self, adapter):
        assert not adapter.is_initialized

        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])

        assert adapter.is_initialized


class TestUpsert:
    """Tests for writes to both tiers."""

    async def test_idempotent_upsert(self, adapter):
        """Test that storing the same product twice keeps a single record."""
        for _ in range(2):
            await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0], {"brand": "Zara"}, "Product: Tee")

        matches = await adapter.query_by_vector([1.0, 0.0, 0.0, 0.0], top_k=10)

        assert [m.id for m in matches] == ["p1"]
        assert matches[0].metadata == {"brand": "Zara"}
        assert len(adapter.store) == 1

    async def test_overwrite_replaces_metadata(self, adapter):
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0], {"brand": "Zara"})
        await adapter.upsert("p1", [0.0, 1.0, 0.0, 0.0], {"brand": "Mango"})

        matches = await adapter.query_by_vector([0.0, 1.0, 0.0, 0.0], top_k=10)

        assert matches[0].id == "p1"
        assert matches[0].metadata == {"brand": "Mango"}
        assert matches[0].score == pytest.approx(1.0, abs=1e-5)

    async def test_dimension_mismatch_rejected(self, adapter):
        with pytest.raises(StoreError):
            await adapter.upsert("p1", [1.0, 0.0])

    async def test_query_dimension_mismatch_rejected(self, adapter):
        with pytest.raises(StoreError):
            await adapter.query_by_vector([1.0, 0.0], top_k=3)

    async def test_primary_write_failure_does_not_fail_upsert(self, embedder, collection_name, empty_primary):
        empty_primary.upsert.side_effect = RuntimeError("primary down")
        adapter = InMemoryAdapter(embedder, collection_name=collection_name, primary=empty_primary)

        vector_id = await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])

        assert vector_id == "p1"
        assert "p1" in adapter.store

    async def test_failed_overwrite_does_not_serve_stale_record(self, adapter):
        """Test that a rejected primary write leaves the newest version visible."""
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0], {"primary_color": "red"})
        await adapter.upsert("p2", [0.0, 1.0, 0.0, 0.0], {"primary_color": "green"})
        adapter.primary.upsert = MagicMock(side_effect=RuntimeError("primary down"))

        await adapter.upsert("p1", [0.0, 1.0, 0.0, 0.0], {"primary_color": "blue"})
        with structlog.testing.capture_logs() as logs:
            matches = await adapter.query_by_vector([0.0, 1.0, 0.0, 0.0], top_k=5)

        assert [(m.id, m.metadata) for m in matches] == [
            ("p1", {"primary_color": "blue"}),
            ("p2", {"primary_color": "green"}),
        ]
        assert matches[0].score == pytest.approx(1.0, abs=1e-5)
        assert any(log.get("reason") == "primary_stale" for log in logs)

        # query by id resolves the overwritten vector
        similar = await adapter.query_by_id("p1", top_k=1)
        assert similar[0].id == "p2"
        assert similar[0].score == pytest.approx(1.0, abs=1e-5)

    async def test_successful_rewrite_restores_primary(self, adapter):
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])
        original_upsert = adapter.primary.upsert
        adapter.primary.upsert = MagicMock(side_effect=RuntimeError("primary down"))
        await adapter.upsert("p1", [0.0, 1.0, 0.0, 0.0])

        adapter.primary.upsert = original_upsert
        await adapter.upsert("p1", [0.0, 1.0, 0.0, 0.0])
        with structlog.testing.capture_logs() as logs:
            await adapter.query_by_vector([0.0, 1.0, 0.0, 0.0], top_k=1)

        assert adapter.primary.get_vector("p1") == pytest.approx([0.0, 1.0, 0.0, 0.0], abs=1e-5)
        assert not any(log.get("source") == "fallback" for log in logs)

    async def test_array_metadata_round_trips_as_list(self, adapter):
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0], {"occasion": ["party", "work"]})

        matches = await adapter.query_by_vector([1.0, 0.0, 0.0, 0.0], top_k=1)

        assert matches[0].metadata["occasion"] == ["party", "work"]


class TestQuery:
    """Tests for text, vector and id queries."""

    async def test_query_by_text_uses_backend_embedder(self, adapter, embedder):
        embedder.pin("blue top", [0.0, 0.0, 1.0, 0.0])
        await adapter.upsert("p1", [0.0, 0.0, 1.0, 0.0])
        await adapter.upsert("p2", [1.0, 0.0, 0.0, 0.0])

        matches = await adapter.query_by_text("blue top", top_k=1)

        assert [m.id for m in matches] == ["p1"]
        assert embedder.calls == ["blue top"]

    async def test_any_of_degrades_to_first_value(self, adapter):
        """Test that colors [red, blue] only returns red on the embedded primary."""
        await _seed_colors(adapter)

        matches = await adapter.query_by_vector(
            [1.0, 0.0, 0.0, 0.0], filters={"colors": ["red", "blue"]}, top_k=10
        )

        assert [m.id for m in matches] == ["red"]

    async def test_tie_break_by_id(self, adapter):
        for product_id in ("b", "c", "a"):
            await adapter.upsert(product_id, [1.0, 1.0, 0.0, 0.0])

        first = await adapter.query_by_vector([1.0, 1.0, 0.0, 0.0], top_k=3)
        second = await adapter.query_by_vector([1.0, 1.0, 0.0, 0.0], top_k=3)

        assert [m.id for m in first] == [m.id for m in second] == ["a", "b", "c"]

    async def test_ties_beyond_top_k_keep_lowest_ids(self, adapter):
        """Test that equal scores at the cutoff keep the lowest ids, not chroma's pick."""
        for product_id in ["z", "y", "x", "c", "b", "a"]:
            await adapter.upsert(product_id, [1.0, 0.0, 0.0, 0.0])

        matches = await adapter.query_by_vector([1.0, 0.0, 0.0, 0.0], top_k=2)

        assert [m.id for m in matches] == ["a", "b"]

    async def test_query_by_id_excludes_self(self, adapter):
        await _seed_colors(adapter)

        matches = await adapter.query_by_id("red", top_k=2)

        assert [m.id for m in matches] == ["blue", "green"]

    async def test_query_by_missing_id_raises(self, adapter):
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])

        with pytest.raises(NotFoundError) as exc_info:
            await adapter.query_by_id("does-not-exist")

        assert exc_info.value.product_id == "does-not-exist"

    async def test_non_positive_top_k(self, adapter):
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])

        assert await adapter.query_by_vector([1.0, 0.0, 0.0, 0.0], top_k=0) == []
        assert await adapter.query_by_id("p1", top_k=0) == []


class TestFallback:
    """Tests for the exact-store fallback path."""

    async def test_empty_primary_falls_back(self, embedder, collection_name, empty_primary):
        """Test that zero primary results are replaced by the brute-force scan."""
        adapter = InMemoryAdapter(embedder, collection_name=collection_name, primary=empty_primary)
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0], {"gender": "women"})

        with structlog.testing.capture_logs() as logs:
            matches = await adapter.query_by_vector([1.0, 0.0, 0.0, 0.0], {"gender": "women"}, top_k=5)

        assert [m.id for m in matches] == ["p1"]
        assert any(
            log.get("source") == "fallback" and log.get("reason") == "primary_empty"
            for log in logs
        )

    async def test_primary_error_falls_back(self, embedder, collection_name, empty_primary):
        empty_primary.query.side_effect = RuntimeError("index corrupted")
        adapter = InMemoryAdapter(embedder, collection_name=collection_name, primary=empty_primary)
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])

        with structlog.testing.capture_logs() as logs:
            matches = await adapter.query_by_vector([1.0, 0.0, 0.0, 0.0], top_k=5)

        assert [m.id for m in matches] == ["p1"]
        assert any(log.get("reason") == "primary_unavailable" for log in logs)

    async def test_primary_results_are_used_when_present(self, embedder, collection_name, empty_primary):
        empty_primary.query.return_value = [Match(id="from-primary", score=0.5)]
        adapter = InMemoryAdapter(embedder, collection_name=collection_name, primary=empty_primary)
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])

        matches = await adapter.query_by_vector([1.0, 0.0, 0.0, 0.0], top_k=5)

        assert [m.id for m in matches] == ["from-primary"]

    async def test_fallback_applies_full_any_of(self, adapter):
        """Test that the fallback evaluates every any-of value, not just the first."""
        await _seed_colors(adapter)

        # primary filters on "yellow" only and finds nothing
        matches = await adapter.query_by_vector(
            [1.0, 0.0, 0.0, 0.0], filters={"colors": ["yellow", "blue", "green"]}, top_k=10
        )

        assert [m.id for m in matches] == ["blue", "green"]

    async def test_fallback_for_query_by_id(self, embedder, collection_name, empty_primary):
        """Test that the stored vector is resolved from the exact store."""
        adapter = InMemoryAdapter(embedder, collection_name=collection_name, primary=empty_primary)
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])
        await adapter.upsert("p2", [0.9, 0.1, 0.0, 0.0])

        matches = await adapter.query_by_id("p1", top_k=5)

        assert [m.id for m in matches] == ["p2"]


class TestDelete:
    """Tests for deletes across both tiers."""

    async def test_delete_removes_from_both_tiers(self, adapter):
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])
        await adapter.upsert("p2", [0.0, 1.0, 0.0, 0.0])

        await adapter.delete("p1")

        assert "p1" not in adapter.store
        assert adapter.primary.get_vector("p1") is None
        with pytest.raises(NotFoundError):
            await adapter.query_by_id("p1")

    async def test_delete_missing_id_succeeds(self, adapter):
        await adapter.delete("does-not-exist")

    async def test_primary_delete_failure_raises(self, embedder, collection_name, empty_primary):
        empty_primary.delete.side_effect = RuntimeError("primary down")
        adapter = InMemoryAdapter(embedder, collection_name=collection_name, primary=empty_primary)
        await adapter.upsert("p1", [1.0, 0.0, 0.0, 0.0])

        with pytest.raises(StoreError):
            await adapter.delete("p1")
