"""
Wide export tables and CSV rendering

export_all_variants pivots every variant of a dataset into one table:
one row per area name (union across variants), one column per variant in
variant order. A missing measurement is None, never 0.
"""
import csv
import io
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .areas import fetch_area_values
from .db import DataContext
from .schema import fact_table
from .variants import Variant, resolve_variants

logger = logging.getLogger("explorer.export")

DATASET_COLUMN = "dataset"


def variant_headers(variants: List[Variant], reserved: Iterable[str] = ()) -> List[str]:
    """
    Column header per variant: its label, plus the table id where the label
    collides with another variant's label or with a reserved column name.
    """
    counts: Dict[str, int] = {name: 1 for name in reserved}
    for v in variants:
        counts[v.label] = counts.get(v.label, 0) + 1
    return [v.label if counts[v.label] == 1 else f"{v.label} ({v.id})" for v in variants]


def _wide_frame(area_column: str, dataset_path: str, headers: List[str],
                cells: List[Dict[str, Optional[float]]]) -> pd.DataFrame:
    names = sorted(set().union(*[c.keys() for c in cells])) if cells else []
    data = {
        area_column: names,
        DATASET_COLUMN: [dataset_path] * len(names),
    }
    for header, by_area in zip(headers, cells):
        data[header] = [by_area.get(name) for name in names]
    return pd.DataFrame(data, columns=[area_column, DATASET_COLUMN] + headers, dtype=object)


def _cells(ctx: DataContext, variant: Variant, admin_level: str) -> Dict[str, Optional[float]]:
    return {v.area_name: v.value for v in fetch_area_values(ctx, variant.value_column, variant.id, admin_level)}


def export_all_variants(ctx: DataContext, canonical_path: str, admin_level: str,
                        language: str = "en", variants: Optional[List[Variant]] = None) -> pd.DataFrame:
    """
    One row per area, one column per variant

    Args:
        ctx: Data-access context
        canonical_path: English category path of the dataset
        admin_level: District, Region or City
        language: Language of the variant labels used as headers
        variants: Already-resolved variants; resolved here when omitted

    Returns:
        DataFrame with columns [<admin level>, dataset, <variant>...], rows
        sorted by area name
    """
    _, area_column = fact_table(admin_level)
    if variants is None:
        variants = resolve_variants(ctx, canonical_path, language)

    cells = [_cells(ctx, v, admin_level) for v in variants]
    headers = variant_headers(variants, reserved=(area_column, DATASET_COLUMN))
    frame = _wide_frame(area_column, canonical_path, headers, cells)
    logger.info("Exported %s areas x %s variants for %r", len(frame), len(variants), canonical_path)
    return frame


def variant_table(ctx: DataContext, dataset_path: str, variant: Variant, admin_level: str) -> pd.DataFrame:
    """Single-variant export with the same layout as export_all_variants."""
    _, area_column = fact_table(admin_level)
    headers = variant_headers([variant], reserved=(area_column, DATASET_COLUMN))
    return _wide_frame(area_column, dataset_path, headers, [_cells(ctx, variant, admin_level)])


def csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def to_csv(frame: pd.DataFrame) -> str:
    """Render with minimal quoting: fields with a comma, quote or newline are quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([csv_value(c) for c in frame.columns])
    for row in frame.itertuples(index=False, name=None):
        writer.writerow([csv_value(v) for v in row])
    return buffer.getvalue()
