"""
Warehouse connection, catalog and demo schema.
"""

import pandas as pd
import pytest

from scorelab.engine.demo_data import DEMO_TABLES, ensure_demo_schema, flight_frame
from scorelab.engine.warehouse import Warehouse, qident, qliteral


class TestQuoting:

    def test_qident_doubles_quotes(self):
        assert qident('we"ird') == '"we""ird"'

    def test_qliteral_doubles_quotes(self):
        assert qliteral("O'Hare") == "'O''Hare'"


class TestLifecycle:

    def test_connect_is_idempotent(self):
        wh = Warehouse(":memory:")
        con = wh.connect()
        assert wh.connect() is con
        wh.close()
        assert not wh.is_open

    def test_con_requires_connection(self):
        wh = Warehouse(":memory:")
        with pytest.raises(RuntimeError):
            wh.con

    def test_context_manager_closes(self):
        with Warehouse(":memory:") as wh:
            assert wh.is_open
        assert not wh.is_open

    def test_file_backed_warehouse_persists(self, tmp_path):
        path = str(tmp_path / "db" / "flights.duckdb")
        with Warehouse(path) as wh:
            ensure_demo_schema(wh, 200, 1)
        with Warehouse(path) as wh:
            assert wh.row_count("flight") == 200
            assert ensure_demo_schema(wh, 200, 1) is False


class TestCatalog:

    def test_demo_tables_present(self, warehouse):
        tables = warehouse.list_tables()
        for t in DEMO_TABLES:
            assert t in tables

    def test_row_counts(self, warehouse):
        assert warehouse.row_count("flight") == 5000
        assert warehouse.row_count("carrier") == 10
        assert warehouse.row_count("airport") == 12

    def test_columns(self, warehouse):
        names = [name for name, _ in warehouse.columns("flight")]
        for col in ("flightid", "month", "dayofmonth", "arrdelay", "depdelay", "distance"):
            assert col in names

    def test_require_columns_names_missing(self, warehouse):
        with pytest.raises(ValueError, match="nope"):
            warehouse.require_columns("flight", ["month", "nope"])

    def test_missing_table(self, warehouse):
        with pytest.raises(ValueError, match="does not exist"):
            warehouse.row_count("no_such_table")

    def test_register_csv(self, warehouse, tmp_path):
        path = tmp_path / "extra.csv"
        pd.DataFrame({"a": [1, 2, 3]}).to_csv(path, index=False)
        warehouse.register_csv("extra", path)
        assert warehouse.row_count("extra") == 3

    def test_register_parquet(self, warehouse, tmp_path):
        path = (tmp_path / "months.parquet").as_posix()
        warehouse.execute(
            f"COPY (SELECT DISTINCT month FROM flight) TO '{path}' (FORMAT PARQUET)"
        )
        warehouse.register_parquet("months", path)
        assert warehouse.row_count("months") == 12


class TestDemoData:

    def test_generation_is_deterministic(self):
        a = flight_frame(300, 11)
        b = flight_frame(300, 11)
        pd.testing.assert_frame_equal(a, b)

    def test_origin_never_equals_destination(self):
        df = flight_frame(2000, 3)
        assert (df["origin"] != df["dest"]).all()
        assert (df["distance"] > 0).all()

    def test_cancelled_flights_have_null_delays(self, warehouse):
        row = warehouse.con.execute(
            "SELECT COUNT(*), COUNT(arrdelay), COUNT(depdelay) FROM flight WHERE cancelled = 1"
        ).fetchone()
        assert row[0] > 0
        assert row[1] == 0
        assert row[2] == 0

    def test_ensure_skips_existing_schema(self, warehouse):
        assert ensure_demo_schema(warehouse, 10, 1) is False
        assert warehouse.row_count("flight") == 5000

    def test_rejects_empty_table(self):
        with pytest.raises(ValueError):
            flight_frame(0, 1)
