from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

import duckdb
import pandas as pd

from scorelab.config import settings

logger = logging.getLogger(__name__)


def qident(name: str) -> str:
    """Safely quote identifiers for DuckDB SQL."""
    return '"' + name.replace('"', '""') + '"'


def qliteral(value: Any) -> str:
    """Render a string literal with embedded quotes doubled."""
    return "'" + str(value).replace("'", "''") + "'"


class Warehouse:
    """One DuckDB connection, opened once and closed once.

    Works as a context manager:

        with Warehouse("flights.duckdb") as wh:
            wh.row_count("flight")
    """

    def __init__(
        self,
        path: Optional[str] = None,
        memory_limit: Optional[str] = None,
        threads: Optional[int] = None,
    ):
        self.path = path or settings.warehouse_path
        self.memory_limit = memory_limit or settings.memory_limit
        self.threads = threads if threads is not None else settings.threads
        self._con: Optional[duckdb.DuckDBPyConnection] = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> duckdb.DuckDBPyConnection:
        if self._con is not None:
            return self._con

        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        con = duckdb.connect(database=self.path, read_only=False)
        con.execute(f"SET memory_limit='{self.memory_limit}'")
        con.execute(f"SET threads={int(self.threads)}")
        self._con = con
        logger.info("Connected to warehouse %s", self.path)
        return con

    def close(self) -> None:
        if self._con is None:
            return
        self._con.close()
        self._con = None
        logger.info("Disconnected from warehouse %s", self.path)

    @property
    def is_open(self) -> bool:
        return self._con is not None

    @property
    def con(self) -> duckdb.DuckDBPyConnection:
        if self._con is None:
            raise RuntimeError("Warehouse is not connected; call connect() first")
        return self._con

    def __enter__(self) -> "Warehouse":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_tables(self) -> List[str]:
        rows = self.con.execute(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'main'
            ORDER BY table_name
            """
        ).fetchall()
        return [r[0] for r in rows]

    def has_table(self, name: str) -> bool:
        return name in self.list_tables()

    def row_count(self, table: str) -> int:
        self._require_table(table)
        return int(self.con.execute(f"SELECT COUNT(*) FROM {qident(table)}").fetchone()[0])

    def columns(self, table: str) -> List[Tuple[str, str]]:
        self._require_table(table)
        schema = self.con.execute(f"DESCRIBE {qident(table)}").fetchall()
        return [(r[0], r[1]) for r in schema]

    def require_columns(self, table: str, columns: Iterable[str]) -> None:
        available = {name for name, _ in self.columns(table)}
        missing = [c for c in columns if c not in available]
        if missing:
            raise ValueError(f"Table '{table}' has no column(s): {', '.join(missing)}")

    def _require_table(self, table: str) -> None:
        if not self.has_table(table):
            raise ValueError(f"Table '{table}' does not exist")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_parquet(self, table: str, path: Path) -> str:
        path_sql = Path(path).as_posix().replace("'", "''")
        self.con.execute(
            f"CREATE OR REPLACE VIEW {qident(table)} AS SELECT * FROM read_parquet('{path_sql}')"
        )
        return table

    def register_csv(self, table: str, path: Path) -> str:
        path_sql = Path(path).as_posix().replace("'", "''")
        self.con.execute(
            f"CREATE OR REPLACE VIEW {qident(table)} AS SELECT * FROM read_csv_auto('{path_sql}')"
        )
        return table

    def register_frame(self, name: str, df: pd.DataFrame) -> str:
        self.con.register(name, df)
        return name

    def unregister(self, name: str) -> None:
        self.con.unregister(name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_df(self, sql: str, params: Optional[List[Any]] = None) -> pd.DataFrame:
        logger.debug("SQL: %s", sql)
        return self.con.execute(sql, params or []).fetchdf()

    def execute(self, sql: str, params: Optional[List[Any]] = None) -> None:
        logger.debug("SQL: %s", sql)
        self.con.execute(sql, params or [])
