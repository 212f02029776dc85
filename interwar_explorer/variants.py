"""
Variant resolution: the source tables that measured a category
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from .dates import format_long_date, parse_date_value
from .db import DataContext
from .schema import dates_for_source_tables, variants_for_canonical_path

logger = logging.getLogger("explorer.variants")


@dataclass(frozen=True)
class Variant:
    id: str
    value_column: str
    date: Optional[date]
    label: str
    raw_date: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "valueColumn": self.value_column,
            "date": self.date.isoformat() if self.date else None,
            "label": self.label,
        }


def variant_label(table_id: str, parsed: Optional[date], raw: Any, language: str) -> str:
    """Long date when known, else the raw stored value, else the table id."""
    if parsed is not None:
        return format_long_date(parsed, language)
    if raw is not None and str(raw).strip():
        return str(raw)
    return table_id


def variant_sort_key(variant: Variant) -> Tuple[int, int, str, str]:
    """Date ascending with undated variants last, then label, then id."""
    if variant.date is None:
        return (1, 0, variant.label, variant.id)
    return (0, variant.date.toordinal(), variant.label, variant.id)


def resolve_variants(ctx: DataContext, canonical_path: str, language: str = "en") -> List[Variant]:
    """
    List the variants of a dataset in display order

    Args:
        ctx: Data-access context
        canonical_path: English category path
        language: UI language for the date labels

    Returns:
        Variants sorted by date; the first one is the default selection
    """
    columns = variants_for_canonical_path(ctx, canonical_path)
    if not columns:
        logger.info("No variants for %r", canonical_path)
        return []

    table_ids = sorted(columns)
    raw_dates = dates_for_source_tables(ctx, table_ids)

    variants = []
    for table_id in table_ids:
        raw = raw_dates.get(table_id)
        parsed = parse_date_value(raw)
        variants.append(Variant(
            id=table_id,
            value_column=columns[table_id],
            date=parsed,
            label=variant_label(table_id, parsed, raw, language),
            raw_date=raw,
        ))

    return sorted(variants, key=variant_sort_key)


def default_variant(variants: List[Variant]) -> Optional[Variant]:
    return variants[0] if variants else None


def find_variant(variants: List[Variant], variant_id: str) -> Optional[Variant]:
    for variant in variants:
        if variant.id == variant_id:
            return variant
    return None
