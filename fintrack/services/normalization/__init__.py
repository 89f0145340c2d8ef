"""Record normalization package."""

from fintrack.services.normalization.normalizer import (
    RecordNormalizer,
    first_present,
    index_by_id,
    parse_bool,
    parse_date,
    parse_decimal,
)

__all__ = [
    "RecordNormalizer",
    "first_present",
    "index_by_id",
    "parse_bool",
    "parse_date",
    "parse_decimal",
]
