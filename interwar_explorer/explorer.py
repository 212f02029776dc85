"""
Explorer session: the selection flow behind the UI

language + admin level -> category tree -> dataset leaf -> canonical path
-> variants -> default variant -> area values + metadata.

Every query runs off the event loop through asyncio.to_thread. Fetches are
tagged with SelectionTracker tickets so a slow response for a superseded
selection is dropped instead of overwriting newer state. A failing fetch is
logged and recorded in `errors` under its slot; state from the previous
selection stays as it was.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import duckdb
import pandas as pd

from .areas import AreaValue, area_value_map, fetch_area_values
from .config import DEFAULT_ADMIN_LEVEL, DEFAULT_LANGUAGE, export_filename
from .db import DataContext
from .exceptions import InvalidSelectionError, MissingTableError, SchemaError
from .export import export_all_variants
from .metadata import dataset_info, table_info
from .resolution import Resolution
from .schema import (
    category_column,
    column_metadata,
    distinct_category_paths,
    fact_table,
    resolve_canonical_path,
    table_metadata,
)
from .selection import SelectionTracker, Ticket
from .tree import CategoryNode, build_tree, dataset_path
from .variants import Variant, default_variant, find_variant, resolve_variants

logger = logging.getLogger("explorer.session")

QUERY_ERRORS = (duckdb.Error, MissingTableError, SchemaError)


class ExplorerSession:
    def __init__(self, ctx: DataContext, language: str = DEFAULT_LANGUAGE,
                 admin_level: str = DEFAULT_ADMIN_LEVEL, tracker: Optional[SelectionTracker] = None):
        category_column(language)
        fact_table(admin_level)
        self.ctx = ctx
        self.language = language
        self.admin_level = admin_level
        self.tracker = tracker or SelectionTracker()

        self.tree: List[CategoryNode] = []
        self.dataset_id: Optional[str] = None
        self.canonical: Optional[Resolution[str]] = None
        self.variants: List[Variant] = []
        self.active_variant: Optional[Variant] = None
        self.areas: List[AreaValue] = []
        self.table_meta: Dict[str, Any] = {}
        self.column_meta: Dict[str, Any] = {}
        self.errors: Dict[str, str] = {}
        self._dataset_ticket: Optional[Ticket] = None

    @property
    def canonical_path(self) -> Optional[str]:
        return self.canonical.value if self.canonical else None

    @property
    def area_map(self) -> Dict[str, Optional[float]]:
        return area_value_map(self.areas)

    def info(self) -> Dict[str, Any]:
        return {
            "table": table_info(self.table_meta, self.language),
            "dataset": dataset_info(self.column_meta, self.language),
        }

    def _fail(self, ticket: Ticket, error: Exception) -> bool:
        logger.error("Fetch for %s %r failed: %s", ticket.slot, ticket.selection, error)
        self.tracker.commit(ticket, lambda: self.errors.__setitem__(ticket.slot, str(error)))
        return False

    def _clear_dataset(self):
        self.dataset_id = None
        self.canonical = None
        self.variants = []
        self._clear_variant()

    def _clear_variant(self):
        self.active_variant = None
        self.areas = []
        self.table_meta = {}
        self.column_meta = {}

    async def set_view(self, language: Optional[str] = None, admin_level: Optional[str] = None) -> bool:
        """
        Rebuild the category tree for a language / admin level pair

        The current dataset selection is dropped and any fetch still running
        for it is superseded.

        Returns:
            True if this call's tree was applied
        """
        language = language or self.language
        admin_level = admin_level or self.admin_level
        category_column(language)
        fact_table(admin_level)

        ticket = self.tracker.issue("tree", (language, admin_level))
        try:
            paths = await asyncio.to_thread(distinct_category_paths, self.ctx, language, admin_level)
        except QUERY_ERRORS as e:
            return self._fail(ticket, e)
        tree = build_tree(paths)

        def apply():
            self.language = language
            self.admin_level = admin_level
            self.tree = tree
            self.errors.pop("tree", None)
            self._dataset_ticket = self.tracker.issue("dataset")
            self.tracker.issue("areas")
            self._clear_dataset()

        return self.tracker.commit(ticket, apply)

    async def select_dataset(self, dataset_id: str) -> bool:
        """
        Resolve a leaf to its variants and load the default variant

        Returns:
            True if this selection was applied
        """
        language = self.language
        ticket = self.tracker.issue("dataset", (dataset_id, language, self.admin_level))
        try:
            canonical = await asyncio.to_thread(resolve_canonical_path, self.ctx, dataset_path(dataset_id), language)
            variants = await asyncio.to_thread(resolve_variants, self.ctx, canonical.value, language)
        except QUERY_ERRORS as e:
            return self._fail(ticket, e)

        def apply():
            self.dataset_id = dataset_id
            self.canonical = canonical
            self.variants = variants
            self.errors.pop("dataset", None)
            self._dataset_ticket = ticket
            self._clear_variant()

        if not self.tracker.commit(ticket, apply):
            logger.debug("Discarded stale dataset result for %r", dataset_id)
            return False

        default = default_variant(variants)
        if default is None:
            return True
        return await self.select_variant(default.id)

    async def select_variant(self, variant_id: str) -> bool:
        """
        Load area values and metadata for one variant of the current dataset

        Raises:
            InvalidSelectionError: If the variant does not belong to the dataset
        """
        variant = find_variant(self.variants, variant_id)
        if variant is None:
            raise InvalidSelectionError(f"Unknown variant {variant_id!r} for {self.dataset_id!r}")

        admin_level = self.admin_level
        depends_on = [self._dataset_ticket] if self._dataset_ticket else []
        ticket = self.tracker.issue("areas", (variant_id, admin_level))
        try:
            areas = await asyncio.to_thread(
                fetch_area_values, self.ctx, variant.value_column, variant.id, admin_level)
            table_meta = await asyncio.to_thread(table_metadata, self.ctx, variant.id)
            column_meta = await asyncio.to_thread(column_metadata, self.ctx, variant.value_column, variant.id)
        except QUERY_ERRORS as e:
            return self._fail(ticket, e)

        def apply():
            self.active_variant = variant
            self.areas = areas
            self.table_meta = table_meta
            self.column_meta = column_meta
            self.errors.pop("areas", None)

        applied = self.tracker.commit(ticket, apply, depends_on=depends_on)
        if not applied:
            logger.debug("Discarded stale area values for %r", variant_id)
        return applied

    async def export_all(self) -> Optional[pd.DataFrame]:
        """Wide table of every variant of the current dataset, or None."""
        if self.canonical is None:
            return None
        ticket = self.tracker.issue("export", self.dataset_id)
        try:
            return await asyncio.to_thread(
                export_all_variants, self.ctx, self.canonical.value, self.admin_level,
                self.language, list(self.variants))
        except QUERY_ERRORS as e:
            self._fail(ticket, e)
            return None

    def export_name(self, variant_label: Optional[str] = None) -> str:
        return export_filename(self.canonical_path or self.dataset_id or "dataset", variant_label)
