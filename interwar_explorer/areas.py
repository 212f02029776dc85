"""
Per-area values for one variant at one administrative level
"""
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from .db import DataContext
from .schema import area_values


@dataclass(frozen=True)
class AreaValue:
    area_id: str
    area_name: str
    value: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {"areaId": self.area_id, "areaName": self.area_name, "value": self.value}


def normalize_area_id(name: Any) -> str:
    """Join key shared with boundary features: trimmed and uppercased."""
    return str(name).strip().upper()


def coerce_number(value: Any) -> Optional[float]:
    """Numeric value, or None for absent and non-numeric values (never 0)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_area_values(rows: List[Dict[str, Any]]) -> List[AreaValue]:
    return [
        AreaValue(
            area_id=normalize_area_id(row["area_name"]),
            area_name=str(row["area_name"]).strip(),
            value=coerce_number(row.get("value")),
        )
        for row in rows
    ]


def fetch_area_values(ctx: DataContext, value_column: str, source_table_id: str,
                      admin_level: str) -> List[AreaValue]:
    """Area values in query order; consumers needing an order sort themselves."""
    return to_area_values(area_values(ctx, value_column, source_table_id, admin_level))


def area_value_map(values: List[AreaValue]) -> Dict[str, Optional[float]]:
    """areaId -> value, as consumed by the map layer."""
    return {v.area_id: v.value for v in values}
