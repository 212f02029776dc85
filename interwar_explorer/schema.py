"""
Read queries over the fact and metadata tables

Fact tables hold one row per area x variable x source table. columns_metadata
holds one row per (column_name, data_table_id) with bilingual category paths;
data_tables_metadata holds one row per source table.

Every lookup here tolerates a miss: no rows is a valid result and each
function documents its fallback value.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import (
    ADMIN_LEVELS,
    CATEGORY_COLUMNS,
    COLUMNS_METADATA,
    TABLES_METADATA,
    VARIABLE_COLUMN,
)
from .db import DataContext, quote_identifier
from .exceptions import InvalidSelectionError
from .resolution import Resolution

logger = logging.getLogger("explorer.schema")


def category_column(language: str) -> str:
    try:
        return CATEGORY_COLUMNS[language]
    except KeyError:
        raise InvalidSelectionError(f"Unknown language: {language!r}") from None


def fact_table(admin_level: str) -> Tuple[str, str]:
    """(table, area column) for an administrative level."""
    try:
        return ADMIN_LEVELS[admin_level]
    except KeyError:
        raise InvalidSelectionError(f"Unknown administrative level: {admin_level!r}") from None


def distinct_category_paths(ctx: DataContext, language: str, admin_level: str) -> List[str]:
    """
    Localized category paths of variables whose source table is at admin_level

    Returns:
        Distinct, trimmed, non-empty paths sorted ascending
    """
    col = quote_identifier(category_column(language))
    fact_table(admin_level)
    ctx.require_tables(COLUMNS_METADATA, TABLES_METADATA)

    rows = ctx.execute(f"""
        SELECT DISTINCT TRIM(cm.{col}) AS path
        FROM {COLUMNS_METADATA} cm
        JOIN {TABLES_METADATA} dtm
          ON TRIM(cm.data_table_id) = TRIM(dtm.data_table_id)
        WHERE cm.{col} IS NOT NULL AND TRIM(cm.{col}) <> ''
          AND TRIM(COALESCE(dtm.adm_level, '')) = ?
        ORDER BY path
    """, [admin_level]).fetchall()
    return [path for (path,) in rows]


def resolve_canonical_path(ctx: DataContext, localized_path: str, language: str) -> Resolution[str]:
    """
    Map a localized category path to its English path

    English input is returned as is. Otherwise the first columns_metadata row
    whose trimmed localized path equals the trimmed input supplies the English
    path; with no match the input comes back unchanged as a fallback.
    """
    col = quote_identifier(category_column(language))
    if language == "en":
        return Resolution.resolved(localized_path)

    ctx.require_tables(COLUMNS_METADATA)
    english = ctx.scalar(f"""
        SELECT TRIM(category_eng)
        FROM {COLUMNS_METADATA}
        WHERE TRIM({col}) = TRIM(?)
          AND category_eng IS NOT NULL AND TRIM(category_eng) <> ''
        ORDER BY category_eng
        LIMIT 1
    """, [localized_path])

    if english is None:
        return Resolution.defaulted(localized_path, f"no English path for {language} path {localized_path!r}")
    return Resolution.resolved(english)


def canonical_path_for_localized_leaf(ctx: DataContext, localized_path: str, language: str) -> str:
    return resolve_canonical_path(ctx, localized_path, language).value


def variants_for_canonical_path(ctx: DataContext, canonical_path: str) -> Dict[str, str]:
    """
    Source tables providing a category, with their value column

    When a table has several columns for the category, the lexicographically
    first column name is kept.

    Returns:
        Ordered mapping data_table_id -> column_name; empty on a miss
    """
    ctx.require_tables(COLUMNS_METADATA)
    rows = ctx.execute(f"""
        SELECT TRIM(data_table_id) AS data_table_id, TRIM(column_name) AS column_name
        FROM {COLUMNS_METADATA}
        WHERE TRIM(category_eng) = TRIM(?)
          AND data_table_id IS NOT NULL AND TRIM(data_table_id) <> ''
          AND column_name IS NOT NULL AND TRIM(column_name) <> ''
        ORDER BY 1, 2
    """, [canonical_path]).fetchall()

    mapping: Dict[str, str] = {}
    for table_id, column_name in rows:
        mapping.setdefault(table_id, column_name)
    return mapping


def _fact_query(ctx: DataContext, admin_level: str) -> Optional[str]:
    """SELECT clause for area/value rows, or None if the fact table is absent."""
    table, area_column = fact_table(admin_level)
    value_column = ctx.value_column(table, area_column)
    if value_column is None:
        logger.warning("Fact table %s is not loaded", table)
        return None

    area = quote_identifier(area_column)
    return f"""
        SELECT TRIM(CAST({area} AS VARCHAR)) AS area_name,
               TRY_CAST({quote_identifier(value_column)} AS DOUBLE) AS value
        FROM {quote_identifier(table)}
        WHERE {area} IS NOT NULL
    """


def area_values(ctx: DataContext, value_column: str, source_table_id: str,
                admin_level: str) -> List[Dict[str, Any]]:
    """
    Per-area rows for one (variable, source table) pair

    Non-numeric stored values come back as None; the area is kept.

    Returns:
        List of {"area_name", "value"}; empty if the fact table is absent
    """
    select = _fact_query(ctx, admin_level)
    if select is None:
        return []
    return ctx.records(select + f"""
          AND TRIM({VARIABLE_COLUMN}) = TRIM(?)
          AND TRIM(data_table_id) = TRIM(?)
    """, [value_column, source_table_id])


def area_values_for_variable(ctx: DataContext, variable_name: str, admin_level: str,
                             suffix_fallback: bool = False) -> Resolution[List[Dict[str, Any]]]:
    """
    Per-area rows matched by variable name alone, across source tables

    With suffix_fallback, an exact-match miss retries with variable names
    ending in variable_name. Suffix matches can pick up unrelated variables
    that share an ending, so they are reported as a fallback.
    """
    select = _fact_query(ctx, admin_level)
    if select is None:
        return Resolution.defaulted([], f"no fact table for {admin_level}")

    rows = ctx.records(select + f" AND TRIM({VARIABLE_COLUMN}) = TRIM(?)", [variable_name])
    if rows or not suffix_fallback:
        return Resolution.resolved(rows)

    rows = ctx.records(select + f" AND TRIM({VARIABLE_COLUMN}) LIKE '%' || TRIM(?)", [variable_name])
    if rows:
        logger.warning("Suffix match used for variable %r (%s rows); results may include other variables",
                       variable_name, len(rows))
    return Resolution.defaulted(rows, f"suffix match for {variable_name!r}")


def table_metadata(ctx: DataContext, source_table_id: str) -> Dict[str, Any]:
    """Metadata row of a source table; empty dict on a miss."""
    ctx.require_tables(TABLES_METADATA)
    rows = ctx.records(f"""
        SELECT * FROM {TABLES_METADATA}
        WHERE TRIM(data_table_id) = TRIM(?)
        LIMIT 1
    """, [source_table_id])
    return rows[0] if rows else {}


def column_metadata(ctx: DataContext, value_column: str, source_table_id: str) -> Dict[str, Any]:
    """Metadata row of a (column, source table) pair; empty dict on a miss."""
    ctx.require_tables(COLUMNS_METADATA)
    rows = ctx.records(f"""
        SELECT * FROM {COLUMNS_METADATA}
        WHERE TRIM(column_name) = TRIM(?) AND TRIM(data_table_id) = TRIM(?)
        LIMIT 1
    """, [value_column, source_table_id])
    return rows[0] if rows else {}


def dates_for_source_tables(ctx: DataContext, source_table_ids: Iterable[str]) -> Dict[str, Any]:
    """Raw stored date per source table id, in one query."""
    ids = [str(i).strip() for i in source_table_ids]
    if not ids:
        return {}

    ctx.require_tables(TABLES_METADATA)
    placeholders = ", ".join("?" for _ in ids)
    rows = ctx.execute(f"""
        SELECT TRIM(data_table_id) AS id, date
        FROM {TABLES_METADATA}
        WHERE TRIM(data_table_id) IN ({placeholders})
    """, ids).fetchall()

    dates: Dict[str, Any] = {}
    for table_id, raw in rows:
        dates.setdefault(table_id, raw)
    return dates
