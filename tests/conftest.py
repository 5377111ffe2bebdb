"""
Pytest configuration and shared fixtures for the retrieval layer tests.
"""
import hashlib
import os
import re
import sys
import uuid
from typing import Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

from retrieval.embeddings import EmbeddingGenerator
from retrieval.errors import EmbeddingServiceError


# ============================================================================
# Fake Embedding Model
# ============================================================================

class FakeEmbeddingGenerator(EmbeddingGenerator):
    """
    Deterministic bag-of-words embedder.

    Each token is hashed into one of `dimension` buckets. Exact texts can be
    pinned to explicit vectors with `pin()` when a test needs exact scores.
    """

    def __init__(self, dimension: int = 16, model_name: str = "fake-embedder"):
        self.dimension = dimension
        self.model_name = model_name
        self.pinned: Dict[str, List[float]] = {}
        self.calls: List[str] = []
        self.fail_on: Optional[str] = None

    def pin(self, text: str, vector: List[float]) -> None:
        self.pinned[text] = list(vector)

    async def embed(self, text: str) -> List[float]:
        self._check(text)
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingServiceError(f"embedding failed for {self.fail_on}")
        if text in self.pinned:
            return self._validate(self.pinned[text])

        vector = [0.0] * self.dimension
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        return self._validate(vector)


def unit_vector(dimension: int, index: int, weight: float = 1.0, tail: float = 0.0) -> List[float]:
    """Vector with `weight` at `index` and `tail` everywhere else."""
    vector = [tail] * dimension
    vector[index] = weight
    return vector


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def sample_product_dict() -> dict:
    """Sample enriched product as handed over by the fit-analysis stage."""
    return {
        "product_id": "p1",
        "title": "Linen Midi Dress",
        "brand": "Reformation",
        "description": "Breezy linen midi dress with a square neckline.",
        "style_type": "casual",
        "aesthetic": "coastal",
        "primary_color": "Blue",
        "fabric": "linen",
        "gender": "Women",
        "fit_type": "relaxed",
        "category": "Dresses",
        "occasion": ["vacation", "brunch"],
        "tags": ["summer", "midi"],
        "price": 148.0,
        "currency": "usd",
    }


@pytest.fixture
def sample_catalog(sample_product_dict: dict) -> list[dict]:
    """Small catalog with distinct colors, genders and prices."""
    catalog = [sample_product_dict]
    for product_id, color, gender, price in (
        ("p2", "red", "women", 89.0),
        ("p3", "blue", "men", 120.0),
        ("p4", "green", "women", 45.0),
    ):
        product = sample_product_dict.copy()
        product.update(
            product_id=product_id,
            title=f"{color.title()} Test Item",
            primary_color=color,
            gender=gender,
            price=price,
        )
        catalog.append(product)
    return catalog


@pytest.fixture
def collection_name() -> str:
    """Unique chroma collection name; ephemeral clients share state per process."""
    return f"test-{uuid.uuid4().hex}"


# ============================================================================
# Fixtures: Fakes and Mock Services
# ============================================================================

@pytest.fixture
def fake_embedder() -> FakeEmbeddingGenerator:
    return FakeEmbeddingGenerator(dimension=16)


@pytest.fixture
def make_embedder():
    """Factory for fake embedders of a given dimension."""
    return FakeEmbeddingGenerator


@pytest.fixture
def vec():
    """Helper building one-hot style test vectors."""
    return unit_vector


@pytest.fixture
def mock_pinecone_client():
    """Mock Pinecone client whose index already exists and is ready."""
    client = MagicMock()
    client.list_indexes.return_value.names.return_value = ["test-index"]
    client.describe_index.return_value = {"status": {"ready": True}}

    index = MagicMock()
    index.query.return_value = {"matches": []}
    index.fetch.return_value = {"vectors": {}}
    client.Index.return_value = index
    return client


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    # Mock table operations
    mock_client.table.return_value.select.return_value.in_.return_value.execute.return_value.data = []
    mock_client.table.return_value.update.return_value.eq.return_value.execute.return_value.data = [{"id": "test"}]

    return mock_client


@pytest.fixture
def mock_supabase(mock_supabase_client):
    """Patch Supabase client creation."""
    with patch("config.database.create_client", return_value=mock_supabase_client):
        yield mock_supabase_client


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "pinecone: marks tests that require Pinecone and OpenAI")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip tests that need external credentials."""
    skip_pinecone = pytest.mark.skip(reason="Pinecone tests require PINECONE_API_KEY and OPENAI_API_KEY")

    has_pinecone = os.getenv("PINECONE_API_KEY") and os.getenv("OPENAI_API_KEY")

    for item in items:
        if "pinecone" in item.keywords and not has_pinecone:
            item.add_marker(skip_pinecone)
