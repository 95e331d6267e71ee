from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import max_error, mean_absolute_error

from scorelab.engine.warehouse import Warehouse, qident
from scorelab.services.modeling import FittedModel
from scorelab.services.translation import ParsedModel, parse_model, to_sql

logger = logging.getLogger(__name__)

_FITTED = "_fitted"


@dataclass
class AccuracyReport:
    n: int
    accurate: int
    inaccurate: int
    accuracy: float
    mae: float
    rmse: float
    threshold: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TranslationCheck:
    rows: int
    max_abs_diff: float
    mae: float
    tolerance: float
    passed: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _select_list(columns: Optional[List[str]]) -> str:
    if not columns:
        return "*"
    return ", ".join(qident(c) for c in columns)


def _complete_rows(fields: List[str]) -> str:
    if not fields:
        return "TRUE"
    return " AND ".join(f"{qident(f)} IS NOT NULL" for f in fields)


# ============================================================================
# SCORING
# ============================================================================

def score_sql(
    table: str,
    parsed: ParsedModel,
    columns: Optional[List[str]] = None,
    fitted_column: str = "fitted",
    limit: Optional[int] = None,
) -> str:
    sql = f"SELECT {_select_list(columns)}, {to_sql(parsed)} AS {qident(fitted_column)} FROM {qident(table)}"
    if limit is not None:
        sql += f" LIMIT {int(limit)}"
    return sql


def score(
    warehouse: Warehouse,
    table: str,
    parsed: ParsedModel,
    columns: Optional[List[str]] = None,
    fitted_column: str = "fitted",
    limit: Optional[int] = None,
) -> pd.DataFrame:
    """Compute fitted values inside the database and fetch them."""
    warehouse.require_columns(table, list(columns or []) + parsed.fields)
    return warehouse.query_df(score_sql(table, parsed, columns, fitted_column, limit))


def score_into_table(
    warehouse: Warehouse,
    source: str,
    target: str,
    parsed: ParsedModel,
    columns: Optional[List[str]] = None,
    fitted_column: str = "fitted",
) -> int:
    """Persist scored rows into `target` without leaving the database."""
    if source == target:
        raise ValueError("Scoring target must differ from the source table")
    warehouse.require_columns(source, list(columns or []) + parsed.fields)
    warehouse.execute(
        f"CREATE OR REPLACE TABLE {qident(target)} AS "
        + score_sql(source, parsed, columns, fitted_column)
    )
    n = warehouse.row_count(target)
    logger.info("Scored %d rows from %s into %s", n, source, target)
    return n


# ============================================================================
# ACCURACY
# ============================================================================

def accuracy_sql(table: str, parsed: ParsedModel, threshold: float) -> str:
    actual = qident(parsed.response)
    return f"""
        WITH scored AS (
            SELECT {actual} AS actual, {to_sql(parsed)} AS fitted
            FROM {qident(table)}
            WHERE {actual} IS NOT NULL
        )
        SELECT
            COUNT(*) AS n,
            COALESCE(SUM(CASE WHEN abs(fitted - actual) < {float(threshold)!r} THEN 1 ELSE 0 END), 0) AS accurate,
            AVG(abs(fitted - actual)) AS mae,
            sqrt(AVG((fitted - actual) * (fitted - actual))) AS rmse
        FROM scored
        WHERE fitted IS NOT NULL
    """


def accuracy(warehouse: Warehouse, table: str, parsed: ParsedModel, threshold: float) -> AccuracyReport:
    """
    Share of rows whose in-database prediction is within `threshold` of the
    actual response.
    """
    if threshold is None or not np.isfinite(float(threshold)) or float(threshold) <= 0:
        raise ValueError("threshold must be a positive finite number")
    warehouse.require_columns(table, [parsed.response] + parsed.fields)

    row = warehouse.con.execute(accuracy_sql(table, parsed, threshold)).fetchone()
    n = int(row[0])
    if n == 0:
        raise ValueError(f"No scorable rows in '{table}'")

    accurate = int(row[1])
    report = AccuracyReport(
        n=n,
        accurate=accurate,
        inaccurate=n - accurate,
        accuracy=accurate / n,
        mae=float(row[2]),
        rmse=float(row[3]),
        threshold=float(threshold),
    )
    logger.info("Accuracy on %s: %d/%d within %s", table, accurate, n, threshold)
    return report


# ============================================================================
# TRANSLATION CHECK
# ============================================================================

def verify_translation(
    warehouse: Warehouse,
    table: str,
    fitted: FittedModel,
    max_rows: int = 1000,
    tolerance: float = 1e-8,
) -> TranslationCheck:
    """
    Score up to `max_rows` complete rows both in SQL and with statsmodels and
    compare the two sets of predictions.
    """
    parsed = parse_model(fitted)
    fields = fitted.fields
    warehouse.require_columns(table, fields)

    select = ", ".join(qident(f) for f in fields) if fields else "1 AS _one"
    df = warehouse.query_df(
        f"SELECT {select}, {to_sql(parsed)} AS {qident(_FITTED)} "
        f"FROM {qident(table)} WHERE {_complete_rows(fields)} LIMIT {int(max_rows)}"
    )
    if df.empty:
        raise ValueError(f"No complete rows in '{table}' to verify against")

    in_db = df[_FITTED].astype(float).to_numpy()
    local = fitted.predict(df).to_numpy()
    diff = float(max_error(local, in_db))
    check = TranslationCheck(
        rows=len(df),
        max_abs_diff=diff,
        mae=float(mean_absolute_error(local, in_db)),
        tolerance=float(tolerance),
        passed=bool(np.isfinite(diff) and diff <= tolerance),
    )
    if not check.passed:
        logger.warning("SQL translation differs from model by %g on %s", diff, table)
    return check
