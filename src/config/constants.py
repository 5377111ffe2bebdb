"""
Application constants for the vector retrieval layer.

These are values that don't change based on environment but are
referenced across the codebase (canonical text layout, filter keys,
metadata normalization).
"""

from dataclasses import dataclass
from typing import Dict, Tuple


# =============================================================================
# Canonical Text Layout
# =============================================================================

# (label, product field) in the fixed order used for every product.
# Changing this invalidates every stored vector in every backend.
CANONICAL_TEXT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("Product", "title"),
    ("Brand", "brand"),
    ("Description", "description"),
    ("Style", "style_type"),
    ("Aesthetic", "aesthetic"),
    ("Color", "primary_color"),
    ("Fabric", "fabric"),
    ("Gender", "gender"),
    ("Fit", "fit_type"),
    ("Occasion", "occasion"),
    ("Tags", "tags"),
)

LIST_SEPARATOR = ", "


# =============================================================================
# Metadata
# =============================================================================

# Fields denormalized from the product record into vector metadata
METADATA_FIELDS: Tuple[str, ...] = (
    "title",
    "brand",
    "style_type",
    "aesthetic",
    "primary_color",
    "gender",
    "fit_type",
    "price",
    "currency",
    "category",
    "tags",
    "occasion",
)

# Metadata fields holding a list of strings
ARRAY_METADATA_FIELDS = frozenset({"tags", "occasion"})

# Metadata fields compared as numbers
NUMERIC_METADATA_FIELDS = frozenset({"price"})

# Case normalization applied to both stored metadata and filter values
LOWERCASE_FIELDS = frozenset({"gender", "category", "primary_color"})
UPPERCASE_FIELDS = frozenset({"currency"})


# =============================================================================
# Filter Keys
# =============================================================================

# Singular filter key -> metadata field (equality)
EQUALITY_FILTER_KEYS: Dict[str, str] = {
    "brand": "brand",
    "style_type": "style_type",
    "gender": "gender",
    "fit_type": "fit_type",
    "category": "category",
    "primary_color": "primary_color",
    "occasion": "occasion",
    "currency": "currency",
}

# Plural filter key -> metadata field ("match any of")
ANY_OF_FILTER_KEYS: Dict[str, str] = {
    "styles": "style_type",
    "fits": "fit_type",
    "colors": "primary_color",
    "occasions": "occasion",
}

PRICE_MIN_KEY = "price_min"
PRICE_MAX_KEY = "price_max"
PRICE_FIELD = "price"


# =============================================================================
# Backend Configuration
# =============================================================================

@dataclass(frozen=True)
class RetrievalConfig:
    """Tunables shared by all vector store adapters."""

    # Extra matches requested when the query item itself must be excluded
    SELF_EXCLUSION_PADDING: int = 1

    # Chroma collection distance space; similarity = 1 - distance
    CHROMA_SPACE: str = "cosine"

    # Pinecone index metric
    PINECONE_METRIC: str = "cosine"

    # Metadata key holding the canonical text in backends without documents
    TEXT_METADATA_KEY: str = "text"


DEFAULT_RETRIEVAL_CONFIG = RetrievalConfig()
