"""
Product -> canonical text and metadata.

The canonical text is what gets embedded. Every product renders the same
labels in the same order; missing fields become empty segments instead of
being dropped so the textual structure stays stable across products.
"""

from typing import Any, Dict, Union

from config.constants import (
    ARRAY_METADATA_FIELDS,
    CANONICAL_TEXT_FIELDS,
    LIST_SEPARATOR,
    LOWERCASE_FIELDS,
    METADATA_FIELDS,
    NUMERIC_METADATA_FIELDS,
    UPPERCASE_FIELDS,
)
from retrieval.models import ProductRecord


def normalize_value(field: str, value: Any) -> Any:
    """
    Apply the per-field case normalization shared by metadata and filters.

    gender/category/primary_color are lower-cased, currency upper-cased,
    everything else is only stripped.
    """
    if not isinstance(value, str):
        return value
    value = value.strip()
    if field in LOWERCASE_FIELDS:
        return value.lower()
    if field in UPPERCASE_FIELDS:
        return value.upper()
    return value


class TextCanonicalizer:
    """Renders a product into the fixed-layout text used for embeddings."""

    def __init__(self, fields=CANONICAL_TEXT_FIELDS, separator: str = LIST_SEPARATOR):
        self.fields = tuple(fields)
        self.separator = separator

    def _render(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return self.separator.join(str(v) for v in value if v is not None)
        return str(value).strip()

    def canonicalize(self, product: Union[ProductRecord, Dict[str, Any]]) -> str:
        record = ProductRecord.from_any(product)
        lines = [
            f"{label}: {self._render(getattr(record, attr, None))}"
            for label, attr in self.fields
        ]
        return "\n".join(lines)


def build_metadata(product: Union[ProductRecord, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build the flat, denormalized metadata stored next to a vector.

    Missing values are omitted (remote indexes reject nulls). Array fields
    stay lists of strings here; backends that cannot store lists flatten them.
    """
    record = ProductRecord.from_any(product)
    metadata: Dict[str, Any] = {}

    for field in METADATA_FIELDS:
        value = getattr(record, field, None)
        if value is None:
            continue
        if field in ARRAY_METADATA_FIELDS:
            values = [str(normalize_value(field, v)) for v in value if v]
            if values:
                metadata[field] = values
        elif field in NUMERIC_METADATA_FIELDS:
            metadata[field] = float(value)
        else:
            value = normalize_value(field, str(value))
            if value:
                metadata[field] = value

    return metadata
