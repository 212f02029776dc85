"""
Command line tool for the explorer database

Subcommands:
    fetch     Download the parquet sources
    tables    Load sources and show table counts
    query     Run SQL (one-shot or interactive)
    tree      Print the category tree
    variants  List the variants of a dataset
    areas     Print per-area values for a variant or a variable
    export    Write the all-variants CSV of a dataset
    serve     Run the API server
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import duckdb

from .areas import fetch_area_values, to_area_values
from .config import (
    ADMIN_LEVELS,
    DATA_BASE_URL,
    DATA_DIR,
    DB_FILE,
    DEBUG,
    DEFAULT_ADMIN_LEVEL,
    DEFAULT_LANGUAGE,
    LANGUAGES,
    PARQUET_SOURCES,
    SERVER_HOST,
    SERVER_PORT,
    export_filename,
    source_location,
    validate_inputs,
)
from .db import DataContext, is_remote
from .exceptions import ExplorerError
from .export import export_all_variants, to_csv
from .fetch import fetch_sources
from .schema import area_values_for_variable, distinct_category_paths, resolve_canonical_path
from .tree import CategoryNode, build_tree, filter_tree
from .variants import resolve_variants

logger = logging.getLogger("explorer.cli")


def run_query(ctx: DataContext, sql: str):
    """Execute a query and display results"""
    try:
        result = ctx.frame(sql)
        if len(result) == 0:
            print("No results")
        else:
            print(result.to_string())
            print(f"\n({len(result)} rows)")
    except duckdb.Error as e:
        print(f"❌ Error: {e}")


def print_tree(nodes: List[CategoryNode], indent: int = 0):
    for node in nodes:
        marker = f"  [{node.dataset_id}]" if node.dataset_id else ""
        print(f"{'  ' * indent}{node.name}{marker}")
        print_tree(node.children, indent + 1)


def open_context(args) -> DataContext:
    ctx = DataContext.open(args.db)
    try:
        ctx.load_sources(source_location(args.data_dir), progress=not args.quiet)
    except ExplorerError:
        ctx.close()
        raise
    return ctx


def cmd_fetch(args) -> int:
    results = fetch_sources(args.base_url, Path(args.data_dir or DATA_DIR), force=args.force,
                            progress=not args.quiet)
    failed = [r for r in results if r["status"] == "failed"]
    for r in results:
        print(f"  {r['status']:<10} {r['file']}")
    return 1 if failed else 0


def cmd_tables(args) -> int:
    if not (args.data_dir and is_remote(args.data_dir)):
        for error in validate_inputs(Path(args.data_dir or DATA_DIR)):
            print(f"  - {error}")
    with open_context(args) as ctx:
        print("\n📋 Table Counts:")
        for table, _, _ in PARQUET_SOURCES:
            if ctx.table_exists(table):
                print(f"   {table}: {ctx.row_count(table):,}")
            else:
                print(f"   {table}: not loaded")
    return 0


def cmd_query(args) -> int:
    with open_context(args) as ctx:
        if args.sql:
            run_query(ctx, " ".join(args.sql))
            return 0

        print("Enter SQL queries (or 'quit' to exit)")
        while True:
            try:
                query = input("SQL> ").strip()
            except (KeyboardInterrupt, EOFError):
                print()
                break
            if not query:
                continue
            if query.lower() in ["quit", "exit", "q"]:
                break
            run_query(ctx, query)
            print()
    return 0


def cmd_tree(args) -> int:
    with open_context(args) as ctx:
        nodes = build_tree(distinct_category_paths(ctx, args.lang, args.level))
        print_tree(filter_tree(nodes, args.search or ""))
    return 0


def cmd_variants(args) -> int:
    with open_context(args) as ctx:
        canonical = resolve_canonical_path(ctx, args.path, args.lang)
        if canonical.fallback:
            print(f"⚠️  {canonical.reason}")
        variants = resolve_variants(ctx, canonical.value, args.lang)
        if not variants:
            print("No variants")
        for i, v in enumerate(variants):
            default = " (default)" if i == 0 else ""
            print(f"  {v.id:<20} {v.value_column:<30} {v.label}{default}")
    return 0


def cmd_areas(args) -> int:
    with open_context(args) as ctx:
        if args.variable:
            resolution = area_values_for_variable(ctx, args.variable, args.level,
                                                  suffix_fallback=args.suffix_fallback)
            if resolution.fallback:
                print(f"⚠️  {resolution.reason}")
            values = to_area_values(resolution.value)
        elif args.column and args.table:
            values = fetch_area_values(ctx, args.column, args.table, args.level)
        else:
            print("❌ Give --column and --table, or --variable")
            return 2

        for v in sorted(values, key=lambda v: v.area_name):
            shown = "n/a" if v.value is None else f"{v.value:g}"
            print(f"  {v.area_id:<30} {shown}")
        print(f"\n({len(values)} areas)")
    return 0


def cmd_export(args) -> int:
    with open_context(args) as ctx:
        canonical = resolve_canonical_path(ctx, args.path, args.lang).value
        frame = export_all_variants(ctx, canonical, args.level, args.lang)
        out = Path(args.out) if args.out else Path(export_filename(canonical))
        out.write_text(to_csv(frame), encoding="utf-8")
        print(f"✓ Wrote {len(frame)} rows x {len(frame.columns)} columns -> {out}")
    return 0


def cmd_serve(args) -> int:
    from .ui.server import main as serve
    serve(args.data_dir, args.db, args.host, args.port, args.debug)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="interwar-explorer",
                                     description="Explore interwar Poland statistics stored in DuckDB.")
    parser.add_argument("--data-dir", default=None,
                        help=f"Directory or base URL of the parquet sources (default: {DATA_DIR})")
    parser.add_argument("--db", default=DB_FILE, help="DuckDB file to persist tables (default: in-memory)")
    parser.add_argument("--debug", action="store_true", default=DEBUG, help="Verbose logging")
    parser.add_argument("--quiet", action="store_true", help="Hide progress bars")

    sub = parser.add_subparsers(dest="command", required=True)

    def selection_args(p, level=True):
        p.add_argument("--lang", choices=LANGUAGES, default=DEFAULT_LANGUAGE)
        if level:
            p.add_argument("--level", choices=list(ADMIN_LEVELS), default=DEFAULT_ADMIN_LEVEL)

    p = sub.add_parser("fetch", help="Download the parquet sources")
    p.add_argument("--base-url", default=DATA_BASE_URL, required=not DATA_BASE_URL)
    p.add_argument("--force", action="store_true", help="Force overwrite of existing files.")
    p.set_defaults(func=cmd_fetch)

    p = sub.add_parser("tables", help="Load sources and show table counts")
    p.set_defaults(func=cmd_tables)

    p = sub.add_parser("query", help="Run SQL against the loaded tables")
    p.add_argument("sql", nargs="*", help="Query to run; interactive when omitted")
    p.set_defaults(func=cmd_query)

    p = sub.add_parser("tree", help="Print the category tree")
    selection_args(p)
    p.add_argument("--search", help="Only show branches matching this text")
    p.set_defaults(func=cmd_tree)

    p = sub.add_parser("variants", help="List the variants of a dataset")
    selection_args(p, level=False)
    p.add_argument("path", help="Category path in the chosen language")
    p.set_defaults(func=cmd_variants)

    p = sub.add_parser("areas", help="Print per-area values")
    selection_args(p)
    p.add_argument("--column", help="Value column (variable_name)")
    p.add_argument("--table", help="Source table id")
    p.add_argument("--variable", help="Match by variable name across source tables")
    p.add_argument("--suffix-fallback", action="store_true",
                   help="With --variable, retry as a suffix match when nothing matches exactly")
    p.set_defaults(func=cmd_areas)

    p = sub.add_parser("export", help="Write the all-variants CSV of a dataset")
    selection_args(p)
    p.add_argument("path", help="Category path in the chosen language")
    p.add_argument("--out", help="Output file (default: derived from the path)")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("serve", help="Run the API server")
    p.add_argument("--host", default=SERVER_HOST)
    p.add_argument("--port", type=int, default=SERVER_PORT)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING if args.quiet else logging.INFO)
    try:
        return args.func(args)
    except ExplorerError as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
