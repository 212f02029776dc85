"""Tests for the asynchronous explorer session."""

import asyncio
import threading

import duckdb
import pytest

from interwar_explorer import explorer
from interwar_explorer.exceptions import InvalidSelectionError
from interwar_explorer.explorer import ExplorerSession
from interwar_explorer.tree import dataset_id_for

from conftest import POPULATION_EN, POPULATION_PL, URBAN_EN


def run(coro):
    return asyncio.run(coro)


class TestSelectionFlow:
    """Tests for the tree -> dataset -> variant flow."""

    def test_view_builds_tree(self, ctx):
        session = ExplorerSession(ctx)
        assert run(session.set_view())
        assert [node.name for node in session.tree] == ["Demographics", "Economy"]

    def test_select_dataset_loads_default_variant(self, ctx):
        session = ExplorerSession(ctx)
        assert run(session.select_dataset(dataset_id_for(POPULATION_EN)))
        assert session.canonical_path == POPULATION_EN
        assert [v.id for v in session.variants] == ["T1921", "T1931", "TNODATE"]
        assert session.active_variant.id == "T1921"
        assert session.area_map == {"WARSAW": 100.0, "KRAKÓW": None}
        assert session.info()["dataset"]["completeness"] == "85.23%"
        assert session.errors == {}

    def test_polish_leaf_resolves_to_english(self, ctx):
        session = ExplorerSession(ctx)
        run(session.set_view(language="pl"))
        run(session.select_dataset(dataset_id_for(POPULATION_PL)))
        assert session.canonical_path == POPULATION_EN
        assert not session.canonical.fallback
        assert session.active_variant.label == "30 września 1921"

    def test_select_variant(self, ctx):
        session = ExplorerSession(ctx)
        run(session.select_dataset(dataset_id_for(POPULATION_EN)))
        assert run(session.select_variant("T1931"))
        assert session.area_map == {"WARSAW": 110.0, "LWÓW": 300.0}
        assert session.column_meta["column_name"] == "pop_total_31"

    def test_unknown_variant(self, ctx):
        session = ExplorerSession(ctx)
        run(session.select_dataset(dataset_id_for(POPULATION_EN)))
        with pytest.raises(InvalidSelectionError):
            run(session.select_variant("NOPE"))

    def test_dataset_without_variants(self, ctx):
        session = ExplorerSession(ctx)
        assert run(session.select_dataset(dataset_id_for("No/Such/Path")))
        assert session.variants == []
        assert session.active_variant is None

    def test_view_change_clears_selection(self, ctx):
        session = ExplorerSession(ctx)
        run(session.select_dataset(dataset_id_for(POPULATION_EN)))
        run(session.set_view(admin_level="Region"))
        assert session.dataset_id is None
        assert session.areas == []
        assert [node.name for node in session.tree] == ["Geography"]

    def test_invalid_view(self, ctx):
        with pytest.raises(InvalidSelectionError):
            ExplorerSession(ctx, language="de")
        session = ExplorerSession(ctx)
        with pytest.raises(InvalidSelectionError):
            run(session.set_view(admin_level="Country"))


class TestConcurrency:
    """Tests for stale results and failures."""

    def test_last_dataset_selection_wins(self, ctx):
        session = ExplorerSession(ctx)

        async def scenario():
            return await asyncio.gather(
                session.select_dataset(dataset_id_for(POPULATION_EN)),
                session.select_dataset(dataset_id_for(URBAN_EN)),
            )

        first, second = run(scenario())
        assert not first
        assert second
        assert session.canonical_path == URBAN_EN
        assert session.active_variant.value_column == "pop_urban"

    def test_slow_areas_for_old_dataset_are_dropped(self, ctx, monkeypatch):
        session = ExplorerSession(ctx)
        original = explorer.fetch_area_values
        started, release = threading.Event(), threading.Event()

        def slow_fetch(ctx, value_column, table_id, admin_level):
            if table_id == "T1931":
                started.set()
                release.wait(5)
            return original(ctx, value_column, table_id, admin_level)

        async def scenario():
            await session.select_dataset(dataset_id_for(POPULATION_EN))
            monkeypatch.setattr(explorer, "fetch_area_values", slow_fetch)
            task = asyncio.create_task(session.select_variant("T1931"))
            await asyncio.to_thread(started.wait, 5)
            await session.select_dataset(dataset_id_for(URBAN_EN))
            release.set()
            return await task

        assert run(scenario()) is False
        assert session.canonical_path == URBAN_EN
        assert session.active_variant.value_column == "pop_urban"

    def test_failed_fetch_keeps_previous_state(self, ctx, monkeypatch):
        session = ExplorerSession(ctx)
        run(session.select_dataset(dataset_id_for(POPULATION_EN)))

        def broken(*args):
            raise duckdb.Error("connection lost")

        monkeypatch.setattr(explorer, "fetch_area_values", broken)
        assert not run(session.select_variant("T1931"))
        assert session.active_variant.id == "T1921"
        assert session.area_map == {"WARSAW": 100.0, "KRAKÓW": None}
        assert "connection lost" in session.errors["areas"]

    def test_missing_tables_recorded(self, empty_ctx):
        session = ExplorerSession(empty_ctx)
        assert not run(session.select_dataset(dataset_id_for(POPULATION_EN)))
        assert "dataset" in session.errors
        assert not run(session.set_view())
        assert "tree" in session.errors


class TestExport:
    """Tests for exporting from a session."""

    def test_export_all(self, ctx):
        session = ExplorerSession(ctx)
        assert run(session.export_all()) is None
        run(session.select_dataset(dataset_id_for(POPULATION_EN)))
        frame = run(session.export_all())
        assert list(frame.columns)[2:] == ["30 September 1921", "9 December 1931", "TNODATE"]

    def test_export_name(self, ctx):
        session = ExplorerSession(ctx)
        run(session.select_dataset(dataset_id_for(POPULATION_EN)))
        assert session.export_name() == "Demographics_Population_Total.csv"
        assert session.export_name("9 December 1931") == "Demographics_Population_Total_9_December_1931.csv"
