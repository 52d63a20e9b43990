"""
Pytest fixtures for memindex tests.
"""

import pytest
import numpy as np

from memindex import HNSWVectorIndex, MemoryStorage, SemanticMemory


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: recall and larger-graph tests")


@pytest.fixture
def dimension() -> int:
    """Default dimension for test vectors."""
    return 16


@pytest.fixture
def random_vector(dimension: int) -> np.ndarray:
    """Generate a random vector."""
    return np.random.randn(dimension)


@pytest.fixture
def random_vectors(dimension: int) -> np.ndarray:
    """Generate random vectors (100 vectors)."""
    np.random.seed(42)
    return np.random.randn(100, dimension)


@pytest.fixture
def index(dimension: int) -> HNSWVectorIndex:
    """Empty index with a fixed seed."""
    return HNSWVectorIndex(dimension=dimension, M=8, ef_construction=64, seed=42)


@pytest.fixture
def populated_index(index: HNSWVectorIndex, random_vectors: np.ndarray) -> HNSWVectorIndex:
    """Index holding the 100 random vectors as vec0..vec99."""
    for i, vector in enumerate(random_vectors):
        index.add(f"vec{i}", vector, {"index": i, "category": ["A", "B", "C"][i % 3]})
    return index


@pytest.fixture
def memory(dimension: int) -> SemanticMemory:
    """SemanticMemory over an in-memory store."""
    index = HNSWVectorIndex(dimension=dimension, M=8, ef_construction=64, seed=42)
    return SemanticMemory(index, storage=MemoryStorage())
