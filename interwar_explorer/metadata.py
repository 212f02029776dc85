"""
Info-panel projections of the table and column metadata records

Only a handful of well-known fields are interpreted (sources, dates,
bilingual descriptions, completeness counts); everything else is passed
through untouched in the raw records.
"""
import json
import math
from typing import Any, Dict, List, Optional

from .dates import format_date_value
from .i18n import t


def parse_list_field(value: Any) -> List[str]:
    """
    Read a list-valued metadata field

    Accepts real lists, JSON-style list strings (single quotes allowed) and
    plain scalars. A bracketed string that is not valid JSON is split on
    commas with surrounding quotes stripped.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(x) for x in value]

    text = str(value).strip()
    if not text:
        return []
    if not (text.startswith("[") and text.endswith("]")):
        return [text]

    try:
        parsed = json.loads(text.replace("'", '"'))
        if isinstance(parsed, list):
            return [str(x).strip() for x in parsed]
    except ValueError:
        pass

    parts = [part.strip().strip("\"'") for part in text[1:-1].split(",")]
    return [part for part in parts if part]


def _first_present(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _item(values: List[str], i: int, default: str = "") -> str:
    return str(values[i]).strip() if i < len(values) else default


def source_items(table_meta: Dict[str, Any], language: str) -> List[Dict[str, str]]:
    """
    Citation label and link per entry of the table's source list

    The source, page, PDF page, link and table fields are parallel lists
    indexed by the source list; entries with an empty source are skipped.
    """
    sources = parse_list_field(_first_present(table_meta, "source", "sources"))
    pages = parse_list_field(_first_present(table_meta, "page", "pages"))
    pdf_pages = parse_list_field(_first_present(table_meta, "pdf_page", "pdf_pages"))
    links = parse_list_field(_first_present(table_meta, "links", "link"))
    tables = parse_list_field(_first_present(table_meta, "table", "tables"))

    items = []
    for i in range(len(sources)):
        src = _item(sources, i)
        if not src:
            continue

        head = src
        tbl = _item(tables, i)
        if tbl:
            head = f"{src}, {t('info.tableLabel', language)} {tbl}"

        page_bits = []
        page = _item(pages, i)
        pdf = _item(pdf_pages, i)
        if page:
            page_bits.append(f"{t('info.pagePrefix', language)}{page}")
        if pdf:
            page_bits.append(f"({pdf}{t('info.pdfSuffix', language)})")

        label = f"{head}, {' '.join(page_bits)}" if page_bits else head
        items.append({"label": label, "href": _item(links, i, "#") or "#"})
    return items


def _text_or_none(value: Any, language: str) -> str:
    if value is None or not str(value).strip():
        return t("info.none", language)
    return str(value)


def table_info(table_meta: Dict[str, Any], language: str) -> Dict[str, Any]:
    """Display fields for the source-table section of the info panel."""
    description = table_meta.get("description_pol" if language == "pl" else "description_eng")

    admin_dates = [
        format_date_value(table_meta.get(key), language)
        for key in ("adm_state_date", "orig_adm_state_date")
        if table_meta.get(key) is not None
    ]

    return {
        "sources": source_items(table_meta, language),
        "description": description or None,
        "date": format_date_value(table_meta.get("date"), language) or None,
        "original_admin_dates": [d for d in admin_dates if d],
        "standardization": _text_or_none(table_meta.get("standardization_comments"), language),
        "imputation": _text_or_none(table_meta.get("imputation_method"), language),
    }


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _percent(value: Any, language: str) -> str:
    number = _number(value)
    if number is None:
        return t("info.none", language)
    pct = math.floor(number * 10000 + 0.5) / 100
    return f"{pct:g}%"


def _count(value: Any) -> int:
    number = _number(value)
    return int(number) if number is not None else 0


def dataset_info(column_meta: Dict[str, Any], language: str) -> Dict[str, Any]:
    """Display fields for the dataset section: name, unit, completeness counts."""
    present = _count(column_meta.get("n_not_na"))
    missing = _count(column_meta.get("n_na"))
    total = present + missing

    def after(key):
        number = _number(column_meta.get(key))
        return t("info.none", language) if number is None else f"{int(number)}/{total}"

    return {
        "name": column_meta.get("category_pol" if language == "pl" else "category_eng") or "",
        "unit": _text_or_none(column_meta.get("unit"), language),
        "completeness": _percent(column_meta.get("completeness"), language),
        "present": f"{present}/{total}",
        "missing": f"{missing}/{total}",
        "completeness_after_imputation": _percent(column_meta.get("completeness_after_imputation"), language),
        "present_after_imputation": after("n_not_na_after_imputation"),
        "missing_after_imputation": after("n_na_after_imputation"),
    }
