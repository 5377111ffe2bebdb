"""
Small coercion helpers shared by the adapters and the canonicalizer.
"""

from typing import Any, List, Mapping, Optional, Sequence

import numpy as np


def to_float_list(vector: Optional[Sequence[float]]) -> List[float]:
    """
    Coerce a vector (list, tuple or numpy array) to a list of Python floats.

    Returns an empty list for None.
    """
    if vector is None:
        return []
    return [float(x) for x in np.asarray(vector, dtype=float).ravel()]


def as_string_list(value: Any) -> List[str]:
    """
    Coerce a scalar, list, or comma-joined string into a list of strings.

    Examples:
        >>> as_string_list(["casual", "party"])
        ['casual', 'party']
        >>> as_string_list("casual, party")
        ['casual', 'party']
        >>> as_string_list(None)
        []
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value if v is not None and str(v) != ""]
    return [str(value)]


def read_field(item: Any, name: str, default: Any = None) -> Any:
    """
    Read a field from either a mapping or an object.

    SDK responses (Pinecone in particular) are plain dicts in some client
    versions and typed objects in others.
    """
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)
