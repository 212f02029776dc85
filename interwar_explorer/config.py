"""
Configuration constants for the DuckDB + Parquet explorer
"""
import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Base directories
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("INTERWAR_DATA_DIR", BASE_DIR / "data"))

# Database file; None keeps everything in memory for the session
DB_FILE: Optional[str] = os.getenv("INTERWAR_DB_FILE") or None

# Remote location of the published parquet files (used by `fetch`)
DATA_BASE_URL = os.getenv("INTERWAR_DATA_URL", "")

DEBUG = os.getenv("DEBUG", "0") == "1"

# Table names
COLUMNS_METADATA = "columns_metadata"
TABLES_METADATA = "data_tables_metadata"

# (table, parquet file name, required)
PARQUET_SOURCES: List[Tuple[str, str, bool]] = [
    ("city_datasets", "City_datasets.parquet", False),
    ("district_datasets", "District_datasets.parquet", False),
    ("region_datasets", "Region_datasets.parquet", False),
    (COLUMNS_METADATA, "columns_metadata.parquet", True),
    (TABLES_METADATA, "data_tables_metadata.parquet", True),
]

# Administrative level -> (fact table, area column)
ADMIN_LEVELS: Dict[str, Tuple[str, str]] = {
    "District": ("district_datasets", "District"),
    "Region": ("region_datasets", "Region"),
    "City": ("city_datasets", "City"),
}
DEFAULT_ADMIN_LEVEL = "District"

# UI language -> localized category path column
CATEGORY_COLUMNS: Dict[str, str] = {
    "en": "category_eng",
    "pl": "category_pol",
}
LANGUAGES = tuple(CATEGORY_COLUMNS)
DEFAULT_LANGUAGE = "en"

DATASET_ID_PREFIX = "ds:"
VARIABLE_COLUMN = "variable_name"
VALUE_COLUMN = "value"

# Export settings
MAX_FILENAME_LENGTH = 120

# HTTP settings
HTTP_TIMEOUT = 60
DOWNLOAD_CHUNK_SIZE = 1 << 16

# Server settings
SERVER_HOST = os.getenv("HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("PORT", "5050"))


def export_filename(dataset_path: str, variant_label: Optional[str] = None,
                    max_length: int = MAX_FILENAME_LENGTH) -> str:
    """
    Build a download filename from a dataset path and optional variant label

    Rules:
    1. Join path and label with an underscore
    2. Replace anything but ASCII letters, digits, '_', '-' and space with '_'
    3. Collapse whitespace runs to a single underscore
    4. Limit to max_length characters, then append .csv
    """
    name = dataset_path.strip()
    if variant_label:
        name = f"{name}_{variant_label.strip()}"

    name = re.sub(r"[^A-Za-z0-9_\- ]", "_", name)
    name = re.sub(r"\s+", "_", name)
    name = name[:max_length]

    return f"{name or 'dataset'}.csv"


def source_location(base: Optional[str] = None) -> str:
    """Resolve where parquet sources are read from: explicit base, then DATA_DIR."""
    return str(base) if base else str(DATA_DIR)


def ensure_directories(data_dir: Path = DATA_DIR) -> Path:
    """Create the data directory if it doesn't exist"""
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def validate_inputs(data_dir: Path = DATA_DIR) -> List[str]:
    """
    Check that the parquet sources are present locally

    Returns:
        List of error messages; empty when every required source exists
    """
    data_dir = Path(data_dir)
    errors = []

    if not data_dir.exists():
        return [f"Data directory not found: {data_dir}"]

    for table, filename, required in PARQUET_SOURCES:
        if required and not (data_dir / filename).exists():
            errors.append(f"Required source for {table} not found: {data_dir / filename}")

    return errors
