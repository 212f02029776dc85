"""Shared fixtures: a small in-memory DuckDB database shaped like the real sources."""

import duckdb
import pandas as pd
import pytest

from interwar_explorer.db import DataContext

POPULATION_EN = "Demographics/Population/Total"
POPULATION_PL = "Demografia/Ludność/Ogółem"
URBAN_EN = "Demographics/Population/Urban"
URBAN_PL = "Demografia/Ludność/Miejska"
INCOME_EN = "Economy/Farmers' income"
INCOME_PL = "Gospodarka/Dochód 'rolników'"


def _frame(rows) -> pd.DataFrame:
    """Rows as a DataFrame; missing cells stay None instead of becoming NaN."""
    frame = pd.DataFrame(rows)
    return frame.astype(object).where(frame.notna(), None)


def columns_metadata() -> pd.DataFrame:
    return _frame([
        {"data_table_id": "T1921", "column_name": "pop_total", "category_eng": POPULATION_EN,
         "category_pol": POPULATION_PL, "unit": "persons", "completeness": 0.8523,
         "n_not_na": 250, "n_na": 44, "completeness_after_imputation": 1.0,
         "n_not_na_after_imputation": 294, "n_na_after_imputation": 0},
        {"data_table_id": "T1931", "column_name": "pop_total_31b", "category_eng": POPULATION_EN,
         "category_pol": POPULATION_PL, "unit": "persons", "completeness": None,
         "n_not_na": None, "n_na": None, "completeness_after_imputation": None,
         "n_not_na_after_imputation": None, "n_na_after_imputation": None},
        {"data_table_id": " T1931 ", "column_name": "pop_total_31", "category_eng": POPULATION_EN,
         "category_pol": POPULATION_PL, "unit": "persons", "completeness": 0.9,
         "n_not_na": 270, "n_na": 30, "completeness_after_imputation": None,
         "n_not_na_after_imputation": None, "n_na_after_imputation": None},
        {"data_table_id": "TNODATE", "column_name": "pop_total_x", "category_eng": POPULATION_EN,
         "category_pol": POPULATION_PL, "unit": "", "completeness": None,
         "n_not_na": None, "n_na": None, "completeness_after_imputation": None,
         "n_not_na_after_imputation": None, "n_na_after_imputation": None},
        {"data_table_id": "T1921", "column_name": "pop_urban", "category_eng": URBAN_EN,
         "category_pol": URBAN_PL, "unit": "persons", "completeness": None,
         "n_not_na": None, "n_na": None, "completeness_after_imputation": None,
         "n_not_na_after_imputation": None, "n_na_after_imputation": None},
        {"data_table_id": "T1921", "column_name": "farm_income", "category_eng": INCOME_EN,
         "category_pol": INCOME_PL, "unit": "zł", "completeness": None,
         "n_not_na": None, "n_na": None, "completeness_after_imputation": None,
         "n_not_na_after_imputation": None, "n_na_after_imputation": None},
        {"data_table_id": "TREG", "column_name": "reg_area", "category_eng": "Geography/Area",
         "category_pol": "Geografia/Powierzchnia", "unit": "km2", "completeness": None,
         "n_not_na": None, "n_na": None, "completeness_after_imputation": None,
         "n_not_na_after_imputation": None, "n_na_after_imputation": None},
        {"data_table_id": "T1921", "column_name": "blank", "category_eng": "  ",
         "category_pol": None, "unit": None, "completeness": None,
         "n_not_na": None, "n_na": None, "completeness_after_imputation": None,
         "n_not_na_after_imputation": None, "n_na_after_imputation": None},
    ])


def tables_metadata() -> pd.DataFrame:
    return _frame([
        {"data_table_id": "T1921", "date": "30.09.1921", "adm_level": "District",
         "description_eng": "First general census", "description_pol": "Pierwszy powszechny spis",
         "source": "['Census 1921', 'Yearbook 1922']", "page": "['12', '7']", "pdf_page": "['30']",
         "links": "['https://example.org/c1921']", "table": "['3']",
         "standardization_comments": "Boundaries of 1931", "imputation_method": None,
         "adm_state_date": "01.01.1931"},
        {"data_table_id": "T1931", "date": "09.12.1931", "adm_level": "District",
         "description_eng": "Second general census", "description_pol": "Drugi powszechny spis",
         "source": "Census 1931", "page": None, "pdf_page": None, "links": None, "table": None,
         "standardization_comments": " ", "imputation_method": "Linear",
         "adm_state_date": None},
        {"data_table_id": "TNODATE", "date": None, "adm_level": "District",
         "description_eng": None, "description_pol": None, "source": None, "page": None,
         "pdf_page": None, "links": None, "table": None, "standardization_comments": None,
         "imputation_method": None, "adm_state_date": None},
        {"data_table_id": "TREG", "date": "01.01.1931", "adm_level": "Region",
         "description_eng": None, "description_pol": None, "source": None, "page": None,
         "pdf_page": None, "links": None, "table": None, "standardization_comments": None,
         "imputation_method": None, "adm_state_date": None},
    ])


def district_datasets() -> pd.DataFrame:
    return _frame([
        {"District": "warsaw", "variable_name": "pop_total", "data_table_id": "T1921", "value": 100.0},
        {"District": " Kraków ", "variable_name": "pop_total", "data_table_id": "T1921", "value": None},
        {"District": "warsaw", "variable_name": "pop_total_31", "data_table_id": "T1931", "value": 110.0},
        {"District": "Lwów", "variable_name": "pop_total_31", "data_table_id": "T1931", "value": 300.0},
        {"District": "warsaw", "variable_name": "pop_total_31b", "data_table_id": "T1931", "value": 999.0},
        {"District": "Radom", "variable_name": "district pop_density", "data_table_id": "TLEG", "value": 55.0},
        {"District": "Radom", "variable_name": "farm_income", "data_table_id": "T1921", "value": 0.0},
    ])


def city_datasets() -> pd.DataFrame:
    return _frame([
        {"City": "Łódź", "variable_name": "wages", "data_table_id": "TC", "value": "12.5"},
        {"City": "Lublin", "variable_name": "wages", "data_table_id": "TC", "value": "n/a"},
        {"City": "Wilno", "variable_name": "wages", "data_table_id": "TC", "value": None},
    ])


def make_context(**frames: pd.DataFrame) -> DataContext:
    conn = duckdb.connect()
    for name, frame in frames.items():
        conn.register("_frame", frame)
        conn.execute(f"CREATE TABLE {name} AS SELECT * FROM _frame")
        conn.unregister("_frame")
    return DataContext(conn)


@pytest.fixture
def ctx():
    context = make_context(
        columns_metadata=columns_metadata(),
        data_tables_metadata=tables_metadata(),
        district_datasets=district_datasets(),
        city_datasets=city_datasets(),
    )
    yield context
    context.close()


@pytest.fixture
def empty_ctx():
    context = DataContext.open()
    yield context
    context.close()


@pytest.fixture
def parquet_dir(tmp_path):
    """The fixture tables written out as the parquet sources."""
    conn = duckdb.connect()
    frames = {
        "columns_metadata.parquet": columns_metadata(),
        "data_tables_metadata.parquet": tables_metadata(),
        "District_datasets.parquet": district_datasets(),
    }
    for filename, frame in frames.items():
        conn.register("_frame", frame)
        target = str(tmp_path / filename).replace("'", "''")
        conn.execute(f"COPY (SELECT * FROM _frame) TO '{target}' (FORMAT PARQUET)")
        conn.unregister("_frame")
    conn.close()
    return tmp_path
