"""
Data models for the vector retrieval layer.

- ProductRecord: the product fields the retrieval layer reads (input)
- EmbeddingRecord: the unit stored per product per backend collection
- Match: one ranked query result (id, score, metadata)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.utils import as_string_list


class ProductRecord(BaseModel):
    """
    Product record as handed over by the enrichment / fit-analysis stages.

    Any field may be missing. Extra fields from the relational store are kept
    but ignored by canonicalization and metadata building.
    """

    model_config = ConfigDict(extra="allow")

    product_id: str
    title: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    style_type: Optional[str] = None
    aesthetic: Optional[str] = None
    primary_color: Optional[str] = None
    fabric: Optional[str] = None
    gender: Optional[str] = None
    fit_type: Optional[str] = None
    category: Optional[str] = None
    occasion: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    price: Optional[float] = None
    currency: Optional[str] = None

    @field_validator("product_id", mode="before")
    @classmethod
    def parse_product_id(cls, v):
        if v is None or str(v).strip() == "":
            raise ValueError("product_id is required")
        return str(v)

    @field_validator("occasion", "tags", mode="before")
    @classmethod
    def parse_string_list(cls, v):
        return as_string_list(v)

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, v):
        if v is None or v == "":
            return None
        return float(v)

    @classmethod
    def from_any(cls, product: Union["ProductRecord", Dict[str, Any]]) -> "ProductRecord":
        """Accept either a ProductRecord or a raw dict (e.g. a Supabase row)."""
        if isinstance(product, cls):
            return product
        return cls.model_validate(product)


@dataclass
class EmbeddingRecord:
    """
    One stored vector per product id per backend collection.

    Re-storing the same id overwrites vector, metadata and text.
    """
    id: str
    vector: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)
    text: str = ""


class Match(BaseModel):
    """A single similarity match. Callers hydrate full records by id."""

    id: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
