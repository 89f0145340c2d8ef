"""Response shape extraction package."""

from fintrack.services.extraction.extractor import (
    ExtractionStrategy,
    FirstArrayStrategy,
    KnownFieldStrategy,
    RootArrayStrategy,
    ShapeExtractor,
    build_strategies,
    extract_message,
    extract_object,
    extract_pagination,
    extract_records,
)

__all__ = [
    "ExtractionStrategy",
    "FirstArrayStrategy",
    "KnownFieldStrategy",
    "RootArrayStrategy",
    "ShapeExtractor",
    "build_strategies",
    "extract_message",
    "extract_object",
    "extract_pagination",
    "extract_records",
]
