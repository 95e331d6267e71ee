"""
Ad-hoc sampling from warehouse tables.

Four ways to pull a random subset without fetching the whole table:

- tablesample: the database-native TABLESAMPLE clause (bernoulli, system
  or reservoir), optionally REPEATABLE with a seed.
- row_number: count the rows, pick row numbers client-side with numpy and
  fetch exactly those rows.
- random_order: ORDER BY random() LIMIT n.
- stratified: up to n rows from every value of a grouping column.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from scorelab.engine.warehouse import Warehouse, qident
from scorelab.models.specs import SampleSpec

logger = logging.getLogger(__name__)

TABLESAMPLE_METHODS = ("bernoulli", "system", "reservoir")

_ROW_NUMBER_COL = "_sample_rn"


def _select_list(columns: Optional[List[str]]) -> str:
    if not columns:
        return "*"
    return ", ".join(qident(c) for c in columns)


def _format_percent(percent: float) -> str:
    return f"{np.format_float_positional(float(percent), trim='-')}%"


def _check_source(warehouse: Warehouse, table: str, columns: Optional[List[str]], *extra: Optional[str]) -> None:
    wanted = list(columns or []) + [c for c in extra if c]
    if wanted:
        warehouse.require_columns(table, wanted)
    else:
        warehouse.columns(table)


# ============================================================================
# TABLESAMPLE
# ============================================================================

def tablesample_sql(
    table: str,
    percent: Optional[float] = None,
    rows: Optional[int] = None,
    method: Optional[str] = None,
    seed: Optional[int] = None,
    columns: Optional[List[str]] = None,
) -> str:
    """
    Build a SELECT using the native TABLESAMPLE clause.

    Exactly one of percent (0 < p <= 100) or rows (> 0) is required.
    Row counts are only supported by reservoir sampling.
    """
    if (percent is None) == (rows is None):
        raise ValueError("Specify exactly one of percent or rows")

    if method is None:
        method = "bernoulli" if percent is not None else "reservoir"
    method = method.lower()
    if method not in TABLESAMPLE_METHODS:
        raise ValueError(
            f"Unknown sampling method '{method}'; expected one of {', '.join(TABLESAMPLE_METHODS)}"
        )

    if percent is not None:
        if not (0.0 < float(percent) <= 100.0):
            raise ValueError("percent must be in (0, 100]")
        size = _format_percent(percent)
    else:
        if int(rows) <= 0:
            raise ValueError("rows must be positive")
        if method != "reservoir":
            raise ValueError("A fixed row count requires reservoir sampling")
        size = f"{int(rows)} ROWS"

    sql = f"SELECT {_select_list(columns)} FROM {qident(table)} TABLESAMPLE {method}({size})"
    if seed is not None:
        sql += f" REPEATABLE ({int(seed)})"
    return sql


def tablesample(
    warehouse: Warehouse,
    table: str,
    percent: Optional[float] = None,
    rows: Optional[int] = None,
    method: Optional[str] = None,
    seed: Optional[int] = None,
    columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    _check_source(warehouse, table, columns)
    sql = tablesample_sql(table, percent=percent, rows=rows, method=method, seed=seed, columns=columns)
    df = warehouse.query_df(sql)
    logger.info("TABLESAMPLE on %s returned %d rows", table, len(df))
    return df


# ============================================================================
# ROW NUMBER SAMPLING
# ============================================================================

def pick_row_numbers(total: int, n: int, seed: Optional[int] = None) -> np.ndarray:
    """Draw n distinct 1-based row numbers out of total, sorted."""
    if n <= 0:
        raise ValueError("Sample size must be positive")
    if n > total:
        raise ValueError(f"Cannot draw {n} rows: only {total} available")
    rng = np.random.default_rng(seed)
    return np.sort(rng.choice(total, size=n, replace=False) + 1)


def row_number_sample(
    warehouse: Warehouse,
    table: str,
    n: int,
    seed: Optional[int] = None,
    order_by: Optional[str] = None,
    columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Number every row, pick n row numbers at random and fetch exactly those.

    With an order_by key the numbering (and therefore the sample for a
    given seed) is stable across runs.
    """
    _check_source(warehouse, table, columns, order_by)

    total = warehouse.row_count(table)
    picked = pick_row_numbers(total, n, seed)

    ids_view = "_sample_row_numbers"
    warehouse.register_frame(ids_view, pd.DataFrame({_ROW_NUMBER_COL: picked}))

    over = f"ORDER BY {qident(order_by)}" if order_by else ""
    rn = qident(_ROW_NUMBER_COL)
    select = _select_list(columns) if columns else f"* EXCLUDE ({rn})"
    sql = f"""
        WITH numbered AS (
            SELECT *, row_number() OVER ({over}) AS {rn}
            FROM {qident(table)}
        )
        SELECT {select}
        FROM numbered
        WHERE {rn} IN (SELECT {rn} FROM {ids_view})
        ORDER BY {rn}
    """
    try:
        df = warehouse.query_df(sql)
    finally:
        warehouse.unregister(ids_view)

    logger.info("Row-number sample on %s: %d of %d rows", table, len(df), total)
    return df


# ============================================================================
# RANDOM ORDER / STRATIFIED
# ============================================================================

def _set_seed(warehouse: Warehouse, seed: Optional[int]) -> None:
    if seed is None:
        return
    # setseed takes a value in [-1, 1]
    value = float(np.random.default_rng(int(seed)).uniform(-1.0, 1.0))
    warehouse.execute("SELECT setseed(?)", [value])


def random_order_sample(
    warehouse: Warehouse,
    table: str,
    n: int,
    seed: Optional[int] = None,
    columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    if n <= 0:
        raise ValueError("Sample size must be positive")
    _check_source(warehouse, table, columns)
    _set_seed(warehouse, seed)
    sql = f"SELECT {_select_list(columns)} FROM {qident(table)} ORDER BY random() LIMIT {int(n)}"
    return warehouse.query_df(sql)


def stratified_sample(
    warehouse: Warehouse,
    table: str,
    by: str,
    n_per_group: int,
    seed: Optional[int] = None,
    columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    if n_per_group <= 0:
        raise ValueError("n_per_group must be positive")
    _check_source(warehouse, table, columns, by)
    _set_seed(warehouse, seed)
    sql = (
        f"SELECT {_select_list(columns)} FROM {qident(table)} "
        f"QUALIFY row_number() OVER (PARTITION BY {qident(by)} ORDER BY random()) <= {int(n_per_group)}"
    )
    return warehouse.query_df(sql)


def draw_sample(warehouse: Warehouse, table: str, spec: SampleSpec) -> pd.DataFrame:
    columns = spec.columns or None
    if spec.method == "tablesample":
        return tablesample(
            warehouse,
            table,
            percent=spec.percent,
            rows=spec.rows,
            method=spec.sampling,
            seed=spec.seed,
            columns=columns,
        )
    if spec.method == "row_number":
        return row_number_sample(
            warehouse, table, spec.n, seed=spec.seed, order_by=spec.order_by, columns=columns
        )
    if spec.method == "random_order":
        return random_order_sample(warehouse, table, spec.n, seed=spec.seed, columns=columns)
    if spec.method == "stratified":
        return stratified_sample(
            warehouse, table, spec.by, spec.n_per_group, seed=spec.seed, columns=columns
        )
    raise ValueError(f"Unsupported sampling method: {spec.method}")
