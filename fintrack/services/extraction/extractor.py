"""
Response Shape Extractor

The backend wraps its lists inconsistently. The same listing can arrive as
    {"data": [...]}
    {"data": {"transactions": [...]}}
    {"success": true, "data": {"data": {"transactions": [...]}}}
    [...]

DESIGN DECISION: Shape detection is an ordered list of small strategy
objects, tried in sequence. The first strategy that finds a list wins.
Order encodes the policy:
1. A known field name beats a generic "data" field
2. A generic "data" field beats a root-level list
3. Top-level keys are searched before descending into "data"

IMPORTANT: Extraction never raises. A response with no recognizable list
yields an empty list, exactly like a response with no records.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Sequence

import structlog

from fintrack.models.finance import Pagination


logger = structlog.get_logger(__name__)

DATA_KEY = "data"

# How many "data" envelopes may wrap the records.
# One for the API envelope, one more for backends that double-wrap.
MAX_ENVELOPE_DEPTH = 2


def _descend(payload: Any, path: Sequence[str]) -> Any:
    """Follow a path of keys through nested mappings; None if it breaks."""
    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


class ExtractionStrategy(ABC):
    """One way of locating a list of records inside a payload."""

    def __init__(self, path: Sequence[str] = ()):
        self.path = tuple(path)

    @property
    def name(self) -> str:
        location = ".".join(self.path) or "<root>"
        return f"{type(self).__name__}({location})"

    @abstractmethod
    def extract(self, payload: Any) -> Optional[list]:
        """Return the list if this strategy finds one, else None."""


class KnownFieldStrategy(ExtractionStrategy):
    """A list stored under one of the given field names."""

    def __init__(self, fields: Iterable[str], path: Sequence[str] = ()):
        super().__init__(path)
        self.fields = tuple(fields)

    @property
    def name(self) -> str:
        return f"{super().name}[{','.join(self.fields)}]"

    def extract(self, payload: Any) -> Optional[list]:
        container = _descend(payload, self.path)
        if not isinstance(container, dict):
            return None
        for field in self.fields:
            value = container.get(field)
            if isinstance(value, list):
                return value
        return None


class RootArrayStrategy(ExtractionStrategy):
    """The node itself is the list."""

    def extract(self, payload: Any) -> Optional[list]:
        node = _descend(payload, self.path)
        return node if isinstance(node, list) else None


class FirstArrayStrategy(ExtractionStrategy):
    """Any list-valued key, in the mapping's key order."""

    def extract(self, payload: Any) -> Optional[list]:
        container = _descend(payload, self.path)
        if not isinstance(container, dict):
            return None
        for value in container.values():
            if isinstance(value, list):
                return value
        return None


def build_strategies(known_fields: Iterable[str] = ()) -> list[ExtractionStrategy]:
    """
    Build the ordered strategy list for a resource.

    Args:
        known_fields: Resource-specific field names, e.g. ("transactions",).
    """
    known = tuple(known_fields)
    strategies: list[ExtractionStrategy] = [RootArrayStrategy()]

    path: tuple[str, ...] = ()
    for depth in range(MAX_ENVELOPE_DEPTH + 1):
        if known:
            strategies.append(KnownFieldStrategy(known, path))
        # Generic lookups stop one envelope down; only named fields go deeper
        if depth < MAX_ENVELOPE_DEPTH:
            strategies.append(KnownFieldStrategy((DATA_KEY,), path))
            strategies.append(FirstArrayStrategy(path))
        path = path + (DATA_KEY,)

    return strategies


class ShapeExtractor:
    """
    Locates the list of records inside an arbitrarily wrapped response.

    Usage:
        extractor = ShapeExtractor(known_fields=("transactions",))
        records = extractor.extract(response_json)
    """

    def __init__(
        self,
        known_fields: Iterable[str] = (),
        strategies: Optional[list[ExtractionStrategy]] = None,
    ):
        self.known_fields = tuple(known_fields)
        self._strategies = strategies if strategies is not None else build_strategies(self.known_fields)

    @property
    def strategies(self) -> list[ExtractionStrategy]:
        return list(self._strategies)

    def extract(self, payload: Any) -> list:
        """Return the first list found, or an empty list."""
        for strategy in self._strategies:
            found = strategy.extract(payload)
            if found is not None:
                logger.debug(
                    "shape_extracted",
                    strategy=strategy.name,
                    count=len(found),
                )
                return list(found)

        logger.debug(
            "shape_not_found",
            known_fields=self.known_fields,
            payload_type=type(payload).__name__,
        )
        return []


def extract_records(payload: Any, *known_fields: str) -> list:
    """Shortcut for a one-off extraction."""
    return ShapeExtractor(known_fields).extract(payload)


def extract_object(payload: Any, *known_fields: str) -> dict:
    """
    Locate a single record (e.g. a created account or a login result).

    Looks at known keys at the root, then inside each "data" envelope,
    then the innermost "data" mapping itself, then the root.
    Returns an empty dict when nothing matches.
    """
    if not isinstance(payload, dict):
        return {}

    envelopes = [payload]
    node: Any = payload
    for _ in range(MAX_ENVELOPE_DEPTH):
        node = node.get(DATA_KEY) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            break
        envelopes.append(node)

    for container in envelopes:
        for field in known_fields:
            value = container.get(field)
            if isinstance(value, dict):
                return value

    return envelopes[-1]


def extract_message(payload: Any) -> Optional[str]:
    """The human readable message an error or success envelope carries."""
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def extract_pagination(payload: Any) -> Pagination:
    """Read page metadata from `pagination` at the root or inside `data`."""
    meta = None
    for path in (("pagination",), (DATA_KEY, "pagination")):
        node = _descend(payload, path)
        if isinstance(node, dict):
            meta = node
            break

    if meta is None:
        return Pagination()

    def _int(*keys: str) -> Optional[int]:
        for key in keys:
            value = meta.get(key)
            try:
                if value is not None:
                    return int(value)
            except (TypeError, ValueError):
                continue
        return None

    return Pagination(
        page=max(_int("page", "currentPage", "current_page") or 1, 1),
        limit=_int("limit", "pageSize", "page_size"),
        total=_int("total", "totalItems", "total_items", "count"),
        total_pages=max(_int("totalPages", "total_pages", "pages") or 1, 1),
    )
