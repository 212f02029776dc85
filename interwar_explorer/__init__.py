"""
Explorer core for interwar Poland district, region and city statistics

Builds the bilingual category tree, resolves datasets to their source-table
variants and fetches per-area values from an embedded DuckDB database.
"""

__version__ = "0.1.0"
