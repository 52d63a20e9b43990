"""
Unit tests for HNSWVectorIndex.
"""

import json
import math

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_allclose

from memindex.core.exceptions import InvalidDimensionError, ValidationError
from memindex.distance import query_distances
from memindex.index import HNSWVectorIndex, HNSWConfig, Neighbor, SearchResult


class TestHNSWIndexBasics:
    """Construction and insertion tests."""

    def test_create_index(self, dimension):
        """Test creating an index with defaults."""
        index = HNSWVectorIndex(dimension=dimension)

        assert index.dimension == dimension
        assert index.size == 0
        assert index.config.M == 16
        assert index.config.ef_construction == 200
        assert index.config.ef == 50
        assert index.config.ml == pytest.approx(1 / math.log(16))
        assert index.entry_point is None
        assert index.max_layer == 0
        assert index.layer_count == 1

    def test_create_with_options(self):
        """Test creating with custom options."""
        index = HNSWVectorIndex(
            dimension=8, M=4, ef_construction=32, ef=10, ml=0.5, seed=7
        )

        assert index.config.M == 4
        assert index.config.ef_construction == 32
        assert index.config.ef == 10
        assert index.config.ml == 0.5
        assert index.config.seed == 7

    def test_from_config(self):
        config = HNSWConfig(dimension=8, M=4, seed=1)
        index = HNSWVectorIndex.from_config(config)

        assert index.dimension == 8
        assert index.config.M == 4
        assert index.config.ml == pytest.approx(1 / math.log(4))

    @pytest.mark.parametrize("kwargs", [
        {"dimension": 0},
        {"dimension": -3},
        {"dimension": "4"},
        {"dimension": 4.0},
        {"dimension": True},
        {"dimension": 4, "M": 0},
        {"dimension": 4, "ef_construction": 0},
        {"dimension": 4, "ef": -1},
        {"dimension": 4, "ml": 0},
        {"dimension": 4, "ml": float("nan")},
        {"dimension": 4, "seed": "abc"},
    ])
    def test_invalid_config(self, kwargs):
        """Test construction-time validation."""
        with pytest.raises(ValidationError):
            HNSWVectorIndex(**kwargs)

    def test_add_first_vector(self, index, random_vector):
        """Test adding first vector (entry point)."""
        index.add("vec1", random_vector, {"key": "value"})

        assert index.size == 1
        assert "vec1" in index
        assert index.entry_point == "vec1"
        assert index.entry_level == index.max_layer
        assert index.layer_count == index.max_layer + 1

    def test_add_multiple_vectors(self, populated_index):
        """Test adding multiple vectors."""
        assert populated_index.size == 100
        assert len(populated_index) == 100
        assert populated_index.entry_level == populated_index.max_layer
        assert populated_index.layer_count == populated_index.max_layer + 1

    def test_add_accepts_lists(self, index):
        index.add("vec1", [float(i) for i in range(index.dimension)])

        vector, metadata = index.get("vec1")
        assert_array_almost_equal(vector, np.arange(index.dimension))
        assert metadata == {}

    def test_add_wrong_dimension(self, populated_index):
        """Test wrong dimension rejection leaves the index unchanged."""
        before = populated_index.save()

        with pytest.raises(InvalidDimensionError) as excinfo:
            populated_index.add("wrong", np.random.randn(8))

        assert excinfo.value.expected == 16
        assert excinfo.value.actual == 8
        assert "Expected 16, got 8" in str(excinfo.value)
        assert "wrong" not in populated_index
        assert populated_index.save() == before

    def test_add_wrong_dimension_on_empty_index(self, index):
        with pytest.raises(InvalidDimensionError):
            index.add("vec1", [1.0, 2.0])

        assert index.size == 0
        assert index.entry_point is None
        assert index.get_stats()["layerStats"][0]["nodeCount"] == 0

    def test_add_non_finite(self, index, dimension):
        vector = np.zeros(dimension)
        vector[3] = np.nan

        with pytest.raises(ValidationError, match="NaN"):
            index.add("vec1", vector)
        assert index.size == 0

    def test_add_non_numeric(self, index):
        with pytest.raises(ValidationError):
            index.add("vec1", ["a"] * index.dimension)

    def test_add_2d_vector(self, index, dimension):
        with pytest.raises(ValidationError, match="1D"):
            index.add("vec1", np.zeros((2, dimension)))

    @pytest.mark.parametrize("bad_id", ["", None, 42, "x" * 257])
    def test_add_invalid_id(self, index, random_vector, bad_id):
        with pytest.raises(ValidationError):
            index.add(bad_id, random_vector)

    def test_add_invalid_metadata(self, index, random_vector):
        with pytest.raises(ValidationError):
            index.add("vec1", random_vector, {"key": object()})
        with pytest.raises(ValidationError):
            index.add("vec1", random_vector, {1: "value"})
        assert index.size == 0

    def test_add_duplicate_replaces(self, populated_index, dimension):
        """Test re-adding an ID replaces its vector and metadata."""
        neighbors = populated_index.get_neighbors("vec5")
        replacement = np.full(dimension, 3.0)

        populated_index.add("vec5", replacement, {"replaced": True})

        assert populated_index.size == 100
        vector, metadata = populated_index.get("vec5")
        assert_array_almost_equal(vector, replacement)
        assert metadata == {"replaced": True}
        assert populated_index.get_neighbors("vec5") == neighbors

    def test_seed_reproducibility(self, random_vectors):
        """Same seed and inserts produce the same graph."""
        first = HNSWVectorIndex(dimension=16, M=8, seed=3)
        second = HNSWVectorIndex(dimension=16, M=8, seed=3)

        for i, vector in enumerate(random_vectors[:50]):
            first.add(f"vec{i}", vector)
            second.add(f"vec{i}", vector)

        assert first.save() == second.save()

    def test_capacity_growth(self):
        """Inserting past the initial arena capacity keeps every vector."""
        index = HNSWVectorIndex(dimension=4, M=4, ef_construction=16, seed=1)
        vectors = np.random.RandomState(0).randn(200, 4)

        for i, vector in enumerate(vectors):
            index.add(f"vec{i}", vector)

        assert index.size == 200
        assert_array_almost_equal(index.get("vec0")[0], vectors[0])
        assert_array_almost_equal(index.get("vec199")[0], vectors[199])


class TestHNSWIndexSearch:
    """Search tests."""

    def test_concrete_scenario(self):
        """Nearest points come back first, in distance order."""
        index = HNSWVectorIndex(dimension=2)
        index.add("a", [0.0, 0.0])
        index.add("b", [10.0, 10.0])
        index.add("c", [0.1, 0.1])

        results = index.search([0.0, 0.0], top_k=2)

        assert [r.id for r in results] == ["a", "c"]
        assert results[0].distance == 0.0
        assert results[1].distance == pytest.approx(math.sqrt(0.02))

        results = index.search([0.0, 0.0], top_k=3)
        assert [r.id for r in results] == ["a", "c", "b"]
        assert results[2].distance == pytest.approx(math.sqrt(200.0))

    def test_empty_index(self, index, random_vector):
        """Test searching an empty index."""
        assert index.search(random_vector, top_k=5) == []

    def test_empty_index_ignores_query_length(self, index):
        assert index.search([1.0, 2.0]) == []

    def test_basic_search(self, populated_index):
        """Test basic search."""
        query = np.random.randn(16)

        results = populated_index.search(query, top_k=10)

        assert len(results) == 10
        assert all(isinstance(r, SearchResult) for r in results)

        # Results should be sorted by distance
        distances = [r.distance for r in results]
        assert distances == sorted(distances)

    def test_top_k_bounded_by_size(self, index, dimension):
        for i in range(3):
            index.add(f"vec{i}", np.random.randn(dimension))

        results = index.search(np.random.randn(dimension), top_k=10)

        assert len(results) == 3
        assert {r.id for r in results} == {"vec0", "vec1", "vec2"}

    def test_ef_caps_results(self, populated_index):
        """A beam narrower than top_k returns at most ef hits."""
        results = populated_index.search(np.random.randn(16), top_k=20, ef=5)

        assert 0 < len(results) <= 5
        distances = [r.distance for r in results]
        assert distances == sorted(distances)

    def test_default_ef_caps_results(self, populated_index):
        results = populated_index.search(np.random.randn(16), top_k=80)

        assert len(results) <= populated_index.config.ef

    def test_top_k_zero(self, populated_index):
        assert populated_index.search(np.random.randn(16), top_k=0) == []

    def test_search_with_ef_override(self, populated_index):
        results = populated_index.search(np.random.randn(16), top_k=10, ef=100)

        assert len(results) == 10

    def test_search_returns_metadata_copies(self, populated_index, random_vectors):
        results = populated_index.search(random_vectors[7], top_k=1)
        results[0].metadata["category"] = "changed"

        _, metadata = populated_index.get(results[0].id)
        assert metadata["category"] != "changed"

    def test_search_wrong_dimension(self, populated_index):
        with pytest.raises(InvalidDimensionError):
            populated_index.search(np.random.randn(8))

    @pytest.mark.parametrize("kwargs", [
        {"top_k": -1},
        {"top_k": None},
        {"top_k": 2.5},
        {"ef": 0},
    ])
    def test_search_invalid_params(self, populated_index, kwargs):
        with pytest.raises(ValidationError):
            populated_index.search(np.random.randn(16), **kwargs)

    def test_self_retrieval(self, populated_index, random_vectors):
        """Every inserted vector finds itself as the top hit."""
        hits = 0
        for i, vector in enumerate(random_vectors):
            results = populated_index.search(vector, top_k=1)
            if results and results[0].id == f"vec{i}":
                assert results[0].distance == pytest.approx(0.0, abs=1e-9)
                hits += 1

        assert hits >= 95

    def test_search_result_helpers(self, populated_index, random_vectors):
        result = populated_index.search(random_vectors[0], top_k=1)[0]

        assert result.score == pytest.approx(1.0 / (1.0 + result.distance))
        assert result.to_dict()["id"] == result.id
        assert "SearchResult(id=" in repr(result)

    @pytest.mark.slow
    def test_search_recall(self):
        """Test search recall against brute force."""
        np.random.seed(42)
        vectors = np.random.randn(500, 16)
        index = HNSWVectorIndex(dimension=16, M=16, ef_construction=100, seed=42)
        for i, vector in enumerate(vectors):
            index.add(f"vec{i}", vector)

        np.random.seed(123)
        recalls = []

        for _ in range(20):
            query = np.random.randn(16)

            hnsw_ids = {r.id for r in index.search(query, top_k=10, ef=100)}

            distances = query_distances(query, vectors)
            truth_ids = {f"vec{i}" for i in np.argsort(distances)[:10]}

            recalls.append(len(hnsw_ids & truth_ids) / len(truth_ids))

        avg_recall = np.mean(recalls)
        assert avg_recall >= 0.8, f"Recall too low: {avg_recall}"


class TestHNSWIndexSearchLayer:
    """Single-layer beam search tests."""

    def test_search_layer(self, populated_index):
        query = np.random.randn(16)

        neighbors = populated_index.search_layer(
            query, populated_index.entry_point, 0, 5
        )

        assert 0 < len(neighbors) <= 5
        assert all(isinstance(n, Neighbor) for n in neighbors)
        distances = [n.distance for n in neighbors]
        assert distances == sorted(distances)

    def test_search_layer_missing_entry(self, populated_index):
        query = np.random.randn(16)

        assert populated_index.search_layer(query, None, 0, 5) == []
        assert populated_index.search_layer(query, "nonexistent", 0, 5) == []

    def test_search_layer_missing_layer(self, populated_index):
        query = np.random.randn(16)
        layer = populated_index.layer_count

        assert populated_index.search_layer(
            query, populated_index.entry_point, layer, 5
        ) == []

    def test_search_layer_includes_entry(self, populated_index, random_vectors):
        neighbors = populated_index.search_layer(random_vectors[0], "vec0", 0, 1)

        assert neighbors == [Neighbor(0.0, "vec0")]


class TestHNSWIndexGraphStructure:
    """Graph structure tests."""

    def test_level_zero_holds_every_node(self, populated_index):
        stats = populated_index.get_stats()

        assert stats["layerStats"][0]["nodeCount"] == populated_index.size

    def test_layers_shrink_upwards(self, populated_index):
        counts = [s["nodeCount"] for s in populated_index.get_stats()["layerStats"]]

        assert counts == sorted(counts, reverse=True)
        assert counts[-1] >= 1

    def test_links_are_bidirectional(self, populated_index):
        for level in range(populated_index.layer_count):
            for id in populated_index.iter_ids():
                for neighbor in populated_index.get_neighbors(id, level):
                    assert id in populated_index.get_neighbors(neighbor, level)

    def test_connectivity(self, populated_index):
        """Every node is reachable on level 0 from the entry point."""
        seen = {populated_index.entry_point}
        frontier = [populated_index.entry_point]
        while frontier:
            current = frontier.pop()
            for neighbor in populated_index.get_neighbors(current, 0):
                if neighbor not in seen:
                    seen.add(neighbor)
                    frontier.append(neighbor)

        assert seen == set(populated_index.iter_ids())

    def test_get_neighbors_unknown(self, populated_index):
        assert populated_index.get_neighbors("nonexistent") == []
        assert populated_index.get_neighbors("vec0", level=99) == []

    def test_high_level_node_registered_on_new_layers(self):
        """A node drawn above the current top layer appears on every new layer."""
        index = HNSWVectorIndex(dimension=2, M=2, ml=3.0, seed=5)
        for i in range(30):
            index.add(f"vec{i}", [float(i), 0.0])

        entry = index.entry_point
        vector, _ = index.get(entry)
        assert index.entry_level == index.max_layer
        for level in range(index.layer_count):
            assert index.search_layer(vector, entry, level, 1) == [Neighbor(0.0, entry)]

        stats = index.get_stats()["layerStats"]
        assert all(layer["nodeCount"] >= 1 for layer in stats)


class TestHNSWIndexGetContains:
    """Get and contains tests."""

    @pytest.fixture
    def index(self):
        index = HNSWVectorIndex(dimension=10, seed=42)
        for i in range(10):
            vector = np.arange(i, i + 10, dtype=np.float64)
            index.add(f"vec{i}", vector, {"index": i})
        return index

    def test_get(self, index):
        """Test getting a vector."""
        result = index.get("vec5")

        assert result is not None
        vector, metadata = result
        assert_array_almost_equal(vector, np.arange(5, 15))
        assert metadata["index"] == 5

    def test_get_returns_copies(self, index):
        vector, metadata = index.get("vec5")
        vector[:] = 0
        metadata["index"] = -1

        vector, metadata = index.get("vec5")
        assert vector[0] == 5
        assert metadata["index"] == 5

    def test_get_not_found(self, index):
        assert index.get("nonexistent") is None

    def test_contains(self, index):
        assert index.contains("vec0")
        assert "vec0" in index
        assert not index.contains("nonexistent")

    def test_iter_ids(self, index):
        assert list(index.iter_ids()) == [f"vec{i}" for i in range(10)]

    def test_iter_entries(self, index):
        entries = list(index.iter_entries())

        assert len(entries) == 10
        id, vector, metadata = entries[3]
        assert id == "vec3"
        assert_array_almost_equal(vector, np.arange(3, 13))
        assert metadata == {"index": 3}

    def test_clear(self, index):
        assert index.clear() == 10

        assert index.size == 0
        assert index.entry_point is None
        assert index.layer_count == 1
        assert index.search(np.zeros(10)) == []

        index.add("again", np.ones(10))
        assert index.search(np.ones(10), top_k=1)[0].id == "again"

    def test_repr(self, index):
        assert repr(index) == "HNSWVectorIndex(dimension=10, M=16, size=10)"


class TestHNSWIndexStats:
    """Statistics tests."""

    def test_stats_empty(self, index):
        stats = index.get_stats()

        assert stats["dimension"] == 16
        assert stats["totalVectors"] == 0
        assert stats["layerCount"] == 1
        assert stats["maxLayer"] == 0
        assert stats["hasEntryPoint"] is False
        assert stats["layerStats"] == [
            {"level": 0, "nodeCount": 0, "totalConnections": 0}
        ]

    def test_stats(self, populated_index):
        """Test index statistics."""
        stats = populated_index.get_stats()

        assert stats["dimension"] == 16
        assert stats["totalVectors"] == 100
        assert stats["layerCount"] == stats["maxLayer"] + 1
        assert stats["hasEntryPoint"] is True
        assert stats["configuration"] == {
            "M": 8,
            "efConstruction": 64,
            "ef": 50,
            "mL": pytest.approx(1 / math.log(8)),
        }
        assert len(stats["layerStats"]) == stats["layerCount"]
        assert stats["layerStats"][0]["totalConnections"] > 0

        usage = stats["memoryUsage"]
        assert usage["vectors"] == 100 * 16 * 8
        assert usage["metadata"] == 100
        assert usage["connections"] == sum(
            s["totalConnections"] for s in stats["layerStats"]
        )

    def test_stats_has_no_side_effects(self, populated_index):
        before = populated_index.save()
        populated_index.get_stats()
        populated_index.stats()

        assert populated_index.save() == before


class TestHNSWIndexSerialization:
    """Save/load tests."""

    def test_save_structure(self, populated_index):
        state = populated_index.save()

        assert set(state) == {
            "dimension", "maxLayer", "entryPoint", "vectors", "metadata", "layers"
        }
        assert state["dimension"] == 16
        assert state["maxLayer"] == len(state["layers"]) - 1
        assert state["entryPoint"] == {
            "id": populated_index.entry_point,
            "level": populated_index.entry_level,
        }
        assert len(state["vectors"]) == 100
        assert len(state["metadata"]) == 100
        assert len(state["layers"][0]) == 100

        # Plain structure, JSON serializable
        json.dumps(state)

    def test_save_empty(self, index):
        state = index.save()

        assert state["entryPoint"] is None
        assert state["vectors"] == []
        assert state["layers"] == [[]]

    def test_round_trip(self, populated_index):
        """Test load(save()) reproduces search results."""
        state = json.loads(json.dumps(populated_index.save()))

        restored = HNSWVectorIndex(dimension=16)
        restored.load(state)

        assert restored.size == populated_index.size
        assert restored.max_layer == populated_index.max_layer
        assert restored.entry_point == populated_index.entry_point
        assert restored.get_stats()["layerStats"] == populated_index.get_stats()["layerStats"]

        for id in ["vec0", "vec50", "vec99"]:
            orig_vec, orig_meta = populated_index.get(id)
            rest_vec, rest_meta = restored.get(id)

            assert_array_almost_equal(orig_vec, rest_vec)
            assert orig_meta == rest_meta

        np.random.seed(7)
        for _ in range(10):
            query = np.random.randn(16)
            orig_results = populated_index.search(query, top_k=5)
            rest_results = restored.search(query, top_k=5)

            assert [r.id for r in orig_results] == [r.id for r in rest_results]
            assert_allclose(
                [r.distance for r in orig_results],
                [r.distance for r in rest_results],
            )

    def test_load_adopts_snapshot_dimension(self, populated_index):
        restored = HNSWVectorIndex(dimension=3)
        restored.load(populated_index.save())

        assert restored.dimension == 16
        assert restored.size == 100

    def test_load_replaces_existing_entries(self, populated_index):
        other = HNSWVectorIndex(dimension=16)
        other.add("only", np.ones(16))

        populated_index.load(other.save())

        assert populated_index.size == 1
        assert "vec0" not in populated_index
        assert populated_index.search(np.ones(16), top_k=3)[0].id == "only"

    @pytest.mark.parametrize("state", [
        None,
        {},
        {"dimension": 4, "layers": "not an array"},
        [],
        "garbage",
        {"dimension": 0, "layers": []},
        {"dimension": 4.5, "layers": []},
        {"dimension": "4", "layers": []},
        {"dimension": 4, "layers": [], "vectors": [["a", [1, 2]]]},
        {"dimension": 4, "layers": [], "vectors": [["a", [1, 2, 3, "x"]]]},
        {"dimension": 4, "layers": [], "vectors": {"a": [1, 2, 3, 4]}},
        {"dimension": 4, "layers": [], "metadata": [["a", "not a mapping"]]},
        {"dimension": 4, "layers": [[["a"]]]},
    ])
    def test_malformed_load(self, state):
        """Malformed state never raises and leaves an empty index."""
        index = HNSWVectorIndex(dimension=4)
        index.add("existing", [1.0, 2.0, 3.0, 4.0])

        index.load(state)

        assert index.search([0.0, 0.0, 0.0, 0.0]) == []
        assert index.get_stats()["totalVectors"] == 0
        assert index.dimension == 4
        assert index.layer_count == 1

        # Still usable afterwards
        index.add("new", [0.0, 0.0, 0.0, 0.0])
        assert index.search([0.0, 0.0, 0.0, 0.0], top_k=1)[0].id == "new"

    def test_load_drops_dangling_references(self):
        state = {
            "dimension": 2,
            "maxLayer": 0,
            "entryPoint": {"id": "a", "level": 0},
            "vectors": [["a", [0.0, 0.0]], ["b", [1.0, 1.0]]],
            "metadata": [["a", {"n": 1}], ["ghost", {"n": 2}]],
            "layers": [[
                ["a", ["b", "ghost", 5]],
                ["b", ["a"]],
                ["ghost", ["a"]],
            ]],
        }
        index = HNSWVectorIndex(dimension=2)

        index.load(state)

        assert index.size == 2
        assert "ghost" not in index
        assert index.get_neighbors("a") == ["b"]
        assert index.get("a")[1] == {"n": 1}
        assert [r.id for r in index.search([0.0, 0.0], top_k=5)] == ["a", "b"]

    def test_load_registers_unlinked_nodes(self):
        state = {
            "dimension": 2,
            "entryPoint": {"id": "a", "level": 0},
            "vectors": [["a", [0.0, 0.0]], ["b", [1.0, 1.0]]],
            "layers": [[["a", []]]],
        }
        index = HNSWVectorIndex(dimension=2)

        index.load(state)

        assert index.get_stats()["layerStats"][0]["nodeCount"] == 2
        assert index.get_neighbors("b") == []

    def test_load_tolerates_non_list_layer(self):
        state = {
            "dimension": 2,
            "entryPoint": {"id": "a", "level": 0},
            "vectors": [["a", [0.0, 0.0]]],
            "layers": ["junk"],
        }
        index = HNSWVectorIndex(dimension=2)

        index.load(state)

        assert index.size == 1
        assert index.search([0.0, 0.0], top_k=1)[0].id == "a"

    def test_load_without_layers_entries(self):
        state = {"dimension": 2, "layers": []}
        index = HNSWVectorIndex(dimension=2)

        index.load(state)

        assert index.layer_count == 1
        assert index.max_layer == 0
        assert index.size == 0

    @pytest.mark.parametrize("entry_point", [
        {"id": "ghost", "level": 0},
        {"id": "a", "level": -1},
        {"id": "a", "level": "1"},
        {"id": "", "level": 0},
        "a",
    ])
    def test_load_discards_invalid_entry_point(self, entry_point):
        state = {
            "dimension": 2,
            "entryPoint": entry_point,
            "vectors": [["a", [0.0, 0.0]]],
            "layers": [[["a", []]]],
        }
        index = HNSWVectorIndex(dimension=2)

        index.load(state)

        assert index.size == 1
        assert index.entry_point is None
        assert index.get_stats()["hasEntryPoint"] is False

    def test_load_clamps_entry_level(self):
        state = {
            "dimension": 2,
            "maxLayer": 7,
            "entryPoint": {"id": "a", "level": 7},
            "vectors": [["a", [0.0, 0.0]]],
            "layers": [[["a", []]], [["a", []]]],
        }
        index = HNSWVectorIndex(dimension=2)

        index.load(state)

        assert index.max_layer == 1
        assert index.entry_level == 1
        assert index.search([0.0, 0.0], top_k=1)[0].id == "a"

    def test_load_deep_copies_metadata(self, populated_index):
        state = populated_index.save()
        restored = HNSWVectorIndex(dimension=16)
        restored.load(state)

        state["metadata"][0][1]["index"] = -1

        assert restored.get(state["metadata"][0][0])[1]["index"] == 0
