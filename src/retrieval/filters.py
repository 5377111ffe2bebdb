"""
Backend-agnostic metadata filters and their per-backend translation.

Callers pass a loose filter mapping (brand, styles, colors, price_min, ...).
It is parsed once into tagged predicates:

    Equals(field, value)      exact match (contains, for array fields)
    AnyOf(field, values)      match any of the values
    Range(field, gte, lte)    numeric range

A capability table says which predicate kinds each backend evaluates
natively. FilterTranslator.plan() decides up front, per backend:

- AnyOf on a backend without any-of support is DEGRADED to Equals on the
  first value only. This reproduces a known limitation of the embedded
  index backends: {"colors": ["red", "blue"]} only returns red items there.
  It is logged as a warning every time it happens; treat it as a gap,
  not as intended semantics.
- Range on a backend without numeric ranges is DEFERRED: it is never sent
  to the index and is left for downstream (relational) filtering.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from config.constants import (
    ANY_OF_FILTER_KEYS,
    ARRAY_METADATA_FIELDS,
    EQUALITY_FILTER_KEYS,
    PRICE_FIELD,
    PRICE_MAX_KEY,
    PRICE_MIN_KEY,
)
from core.logging import get_logger
from core.utils import as_string_list
from retrieval.canonicalizer import normalize_value

logger = get_logger(__name__)


# =============================================================================
# Predicates
# =============================================================================

@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class AnyOf:
    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Range:
    field: str
    gte: Optional[float] = None
    lte: Optional[float] = None


Predicate = Union[Equals, AnyOf, Range]
FilterInput = Union[None, Mapping[str, Any], Sequence[Predicate]]


def _to_number(key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{key} must be numeric, got {value!r}") from e


def parse_filters(filters: Optional[Mapping[str, Any]]) -> List[Predicate]:
    """
    Parse a generic filter mapping into predicates.

    Empty values are ignored, unknown keys are ignored (logged at debug),
    and a plural key wins over its singular counterpart.

    Raises:
        ValueError: If price bounds are not numeric or price_min > price_max
    """
    if not filters:
        return []

    by_field: Dict[str, Predicate] = {}

    for key, value in filters.items():
        if value is None or value == "" or value == []:
            continue
        if key in EQUALITY_FILTER_KEYS:
            target = EQUALITY_FILTER_KEYS[key]
            if isinstance(value, (list, tuple)):
                if target not in by_field:
                    by_field[target] = _any_of(target, value)
            elif not isinstance(by_field.get(target), AnyOf):
                by_field[target] = Equals(target, normalize_value(target, value))
        elif key in ANY_OF_FILTER_KEYS:
            target = ANY_OF_FILTER_KEYS[key]
            predicate = _any_of(target, value)
            if predicate.values:
                by_field[target] = predicate
        elif key in (PRICE_MIN_KEY, PRICE_MAX_KEY):
            continue
        else:
            logger.debug("Ignoring unknown filter key", key=key)

    price_min = _blank_to_none(filters.get(PRICE_MIN_KEY))
    price_max = _blank_to_none(filters.get(PRICE_MAX_KEY))
    if price_min is not None or price_max is not None:
        gte = _to_number(PRICE_MIN_KEY, price_min) if price_min is not None else None
        lte = _to_number(PRICE_MAX_KEY, price_max) if price_max is not None else None
        if gte is not None and lte is not None and gte > lte:
            raise ValueError(f"price_min ({gte}) is greater than price_max ({lte})")
        by_field[PRICE_FIELD] = Range(PRICE_FIELD, gte=gte, lte=lte)

    return [by_field[name] for name in sorted(by_field)]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _any_of(target: str, value: Any) -> AnyOf:
    values: List[Any] = []
    for v in as_string_list(value) if isinstance(value, str) else value:
        if v is None or v == "":
            continue
        v = normalize_value(target, v)
        if v not in values:
            values.append(v)
    return AnyOf(target, tuple(values))


# =============================================================================
# Capability Table
# =============================================================================

class BackendKind(str, Enum):
    """Vector store backend variants."""
    REMOTE = "pinecone"
    LOCAL = "chroma"
    MEMORY = "memory"


@dataclass(frozen=True)
class BackendCapabilities:
    """Predicate kinds a backend's native filter language can express."""
    equality: bool = True
    any_of: bool = False
    numeric_range: bool = False


BACKEND_CAPABILITIES: Dict[BackendKind, BackendCapabilities] = {
    BackendKind.REMOTE: BackendCapabilities(equality=True, any_of=True, numeric_range=True),
    BackendKind.LOCAL: BackendCapabilities(equality=True, any_of=False, numeric_range=False),
    BackendKind.MEMORY: BackendCapabilities(equality=True, any_of=False, numeric_range=False),
}

# The in-memory fallback scan evaluates any-of (and array contains-one-of)
# in process; price ranges stay deferred so both in-memory paths agree on price.
IN_PROCESS_CAPABILITIES = BackendCapabilities(equality=True, any_of=True, numeric_range=False)


# =============================================================================
# Translation
# =============================================================================

@dataclass(frozen=True)
class FilterPlan:
    """
    Result of planning a filter against one backend.

    native: predicates the backend evaluates as given
    degraded: (original AnyOf, replacement Equals) pairs
    deferred: predicates left for downstream filtering
    """
    native: Tuple[Predicate, ...] = ()
    degraded: Tuple[Tuple[AnyOf, Equals], ...] = ()
    deferred: Tuple[Predicate, ...] = ()

    @property
    def effective(self) -> List[Predicate]:
        """Predicates actually applied by the backend, sorted by field."""
        applied = list(self.native) + [replacement for _, replacement in self.degraded]
        return sorted(applied, key=lambda p: p.field)

    @property
    def is_empty(self) -> bool:
        return not self.native and not self.degraded


class FilterTranslator:
    """Plans generic filters against one backend's capabilities."""

    def __init__(self, capabilities: BackendCapabilities, backend: str = ""):
        self.capabilities = capabilities
        self.backend = backend

    @classmethod
    def for_backend(cls, kind: BackendKind) -> "FilterTranslator":
        return cls(BACKEND_CAPABILITIES[kind], backend=kind.value)

    def plan(self, filters: FilterInput) -> FilterPlan:
        if filters is None or isinstance(filters, Mapping):
            predicates = parse_filters(filters)
        else:
            predicates = list(filters)

        native: List[Predicate] = []
        degraded: List[Tuple[AnyOf, Equals]] = []
        deferred: List[Predicate] = []

        for predicate in predicates:
            if isinstance(predicate, AnyOf) and not self.capabilities.any_of:
                if not predicate.values:
                    continue
                replacement = Equals(predicate.field, predicate.values[0])
                degraded.append((predicate, replacement))
                if len(predicate.values) > 1:
                    logger.warning(
                        "Backend cannot express any-of; filtering on first value only",
                        backend=self.backend,
                        field=predicate.field,
                        kept=predicate.values[0],
                        dropped=list(predicate.values[1:]),
                    )
            elif isinstance(predicate, Range) and not self.capabilities.numeric_range:
                deferred.append(predicate)
                logger.debug(
                    "Range filter deferred to downstream filtering",
                    backend=self.backend,
                    field=predicate.field,
                    gte=predicate.gte,
                    lte=predicate.lte,
                )
            else:
                native.append(predicate)

        return FilterPlan(native=tuple(native), degraded=tuple(degraded), deferred=tuple(deferred))


def to_pinecone_filter(plan: FilterPlan) -> Optional[Dict[str, Any]]:
    """
    Render a plan as a Pinecone metadata filter.

    Top-level keys are AND-ed. Equality on an array field is expressed as
    $in with one value, which Pinecone evaluates as "list contains".
    """
    expression: Dict[str, Any] = {}
    for predicate in plan.effective:
        if isinstance(predicate, Equals):
            if predicate.field in ARRAY_METADATA_FIELDS:
                expression[predicate.field] = {"$in": [predicate.value]}
            else:
                expression[predicate.field] = {"$eq": predicate.value}
        elif isinstance(predicate, AnyOf):
            expression[predicate.field] = {"$in": list(predicate.values)}
        elif isinstance(predicate, Range):
            bounds: Dict[str, float] = {}
            if predicate.gte is not None:
                bounds["$gte"] = predicate.gte
            if predicate.lte is not None:
                bounds["$lte"] = predicate.lte
            expression[predicate.field] = bounds
    return expression or None


def to_chroma_where(plan: FilterPlan) -> Optional[Dict[str, Any]]:
    """
    Render a plan as a chroma `where` clause.

    Chroma needs an explicit $and as soon as more than one field is filtered.
    """
    conditions: List[Dict[str, Any]] = []
    for predicate in plan.effective:
        if isinstance(predicate, Equals):
            conditions.append({predicate.field: {"$eq": predicate.value}})
        elif isinstance(predicate, AnyOf):
            conditions.append({predicate.field: {"$in": list(predicate.values)}})
        elif isinstance(predicate, Range):
            if predicate.gte is not None:
                conditions.append({predicate.field: {"$gte": predicate.gte}})
            if predicate.lte is not None:
                conditions.append({predicate.field: {"$lte": predicate.lte}})

    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def matches_metadata(predicates: Sequence[Predicate], metadata: Mapping[str, Any]) -> bool:
    """
    Evaluate predicates against one record's metadata in process.

    Array fields (and comma-joined strings) match when they contain the
    value (Equals) or any of the values (AnyOf). A missing field never
    matches.
    """
    for predicate in predicates:
        value = metadata.get(predicate.field)
        if value is None or value == "":
            return False

        if isinstance(predicate, Range):
            try:
                number = float(value)
            except (TypeError, ValueError):
                return False
            if predicate.gte is not None and number < predicate.gte:
                return False
            if predicate.lte is not None and number > predicate.lte:
                return False
            continue

        wanted = [predicate.value] if isinstance(predicate, Equals) else list(predicate.values)
        if predicate.field in ARRAY_METADATA_FIELDS or isinstance(value, (list, tuple)):
            have = {normalize_value(predicate.field, v) for v in as_string_list(value)}
        else:
            have = {normalize_value(predicate.field, value)}
        if not have.intersection(wanted):
            return False

    return True
