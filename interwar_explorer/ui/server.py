#!/usr/bin/env python3
"""
Explorer API server

Serves:
- /api/health                 -> loaded tables and row counts
- /api/tree?lang=&level=&q=   -> category tree for a language / admin level
- /api/resolve?dataset_id=&lang= -> canonical English path of a leaf
- /api/variants?path=&lang=   -> variants of a dataset and the default one
- /api/areas?column=&table=&level= -> per-area values for a variant
- /api/metadata?column=&table=&lang= -> info-panel fields + raw records
- /api/export?path=&level=&lang= -> CSV of all variants
- /api/export/variant?path=&table=&level=&lang= -> CSV of one variant

Config (env vars):
- INTERWAR_DATA_DIR: Directory holding the parquet sources (default ./data)
- INTERWAR_DB_FILE: Optional DuckDB file to persist loaded tables
- DEBUG: '1' to enable verbose logging
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import duckdb
import numpy as np
from flask import Flask, Response, abort, jsonify, request

from ..areas import area_value_map, fetch_area_values
from ..config import (
    DB_FILE,
    DEBUG,
    DEFAULT_ADMIN_LEVEL,
    DEFAULT_LANGUAGE,
    PARQUET_SOURCES,
    SERVER_HOST,
    SERVER_PORT,
    export_filename,
    source_location,
)
from ..db import DataContext
from ..exceptions import InvalidSelectionError, MissingTableError, SchemaError
from ..export import export_all_variants, to_csv, variant_table
from ..metadata import dataset_info, table_info
from ..schema import (
    column_metadata,
    distinct_category_paths,
    resolve_canonical_path,
    table_metadata,
)
from ..tree import build_tree, dataset_path, filter_tree
from ..variants import default_variant, find_variant, resolve_variants

logger = logging.getLogger("explorer")


def to_jsonable(obj: Any) -> Any:
    """
    Recursively convert NumPy, date and NaN values to JSON-safe Python values.
    """
    if isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        return None if math.isnan(obj) else float(obj)
    elif isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, (date, datetime)):
        return obj.isoformat()
    elif isinstance(obj, np.ndarray):
        return [to_jsonable(item) for item in obj.tolist()]
    elif isinstance(obj, dict):
        return {str(key): to_jsonable(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [to_jsonable(item) for item in obj]
    else:
        return obj


def _arg(name: str, default: str | None = None) -> str:
    value = (request.args.get(name) or '').strip() or default
    if value is None:
        abort(400, description=f"Missing query parameter: {name}")
    return value


def _csv_response(text: str, filename: str) -> Response:
    return Response(
        text,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


def create_app(ctx: DataContext) -> Flask:
    app = Flask(__name__)

    @app.errorhandler(InvalidSelectionError)
    def invalid_selection(e):
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(duckdb.Error)
    @app.errorhandler(MissingTableError)
    @app.errorhandler(SchemaError)
    def query_failed(e):
        logger.exception("Query failed for %s", request.path)
        return jsonify({'error': str(e)}), 500

    @app.route('/api/health')
    def health():
        tables = {}
        for table, _, _ in PARQUET_SOURCES:
            tables[table] = ctx.row_count(table) if ctx.table_exists(table) else None
        return jsonify({'status': 'ok', 'tables': tables})

    @app.route('/api/tree')
    def tree():
        language = _arg('lang', DEFAULT_LANGUAGE)
        admin_level = _arg('level', DEFAULT_ADMIN_LEVEL)
        nodes = build_tree(distinct_category_paths(ctx, language, admin_level))
        nodes = filter_tree(nodes, request.args.get('q') or '')
        return jsonify({
            'language': language,
            'level': admin_level,
            'items': [node.to_dict() for node in nodes],
        })

    @app.route('/api/resolve')
    def resolve():
        language = _arg('lang', DEFAULT_LANGUAGE)
        resolution = resolve_canonical_path(ctx, dataset_path(_arg('dataset_id')), language)
        return jsonify({
            'canonical_path': resolution.value,
            'resolved': not resolution.fallback,
            'reason': resolution.reason,
        })

    @app.route('/api/variants')
    def variants():
        language = _arg('lang', DEFAULT_LANGUAGE)
        found = resolve_variants(ctx, _arg('path'), language)
        default = default_variant(found)
        return jsonify({
            'items': [v.to_dict() for v in found],
            'default': default.id if default else None,
        })

    @app.route('/api/areas')
    def areas():
        values = fetch_area_values(ctx, _arg('column'), _arg('table'), _arg('level', DEFAULT_ADMIN_LEVEL))
        return jsonify(to_jsonable({
            'items': [v.to_dict() for v in values],
            'map': area_value_map(values),
        }))

    @app.route('/api/metadata')
    def metadata():
        language = _arg('lang', DEFAULT_LANGUAGE)
        column, table = _arg('column'), _arg('table')
        table_meta = table_metadata(ctx, table)
        column_meta = column_metadata(ctx, column, table)
        return jsonify(to_jsonable({
            'table': table_info(table_meta, language),
            'dataset': dataset_info(column_meta, language),
            'raw': {'table': table_meta, 'column': column_meta},
        }))

    @app.route('/api/export')
    def export_all():
        path = _arg('path')
        frame = export_all_variants(ctx, path, _arg('level', DEFAULT_ADMIN_LEVEL), _arg('lang', DEFAULT_LANGUAGE))
        return _csv_response(to_csv(frame), export_filename(path))

    @app.route('/api/export/variant')
    def export_variant():
        path = _arg('path')
        variant = find_variant(resolve_variants(ctx, path, _arg('lang', DEFAULT_LANGUAGE)), _arg('table'))
        if variant is None:
            abort(404, description='Variant not found')
        frame = variant_table(ctx, path, variant, _arg('level', DEFAULT_ADMIN_LEVEL))
        return _csv_response(to_csv(frame), export_filename(path, variant.label))

    return app


def main(data_dir: str | None = None, db_file: str | None = DB_FILE,
         host: str = SERVER_HOST, port: int = SERVER_PORT, debug: bool = DEBUG):
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO)
    location = source_location(data_dir)
    logger.info("Loading sources from: %s", location)

    ctx = DataContext.open(db_file)
    ctx.load_sources(location, progress=True)
    app = create_app(ctx)
    app.run(host=host, port=port, debug=debug, use_reloader=False)


if __name__ == '__main__':
    main()
