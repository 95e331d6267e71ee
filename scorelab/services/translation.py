"""
Fitted model -> SQL.

A fitted linear model is first flattened into a ParsedModel: a small table of
metadata and coefficients that does not depend on statsmodels. That table is
what gets written to parsedmodel.csv, and it is all that is needed to render
the model as a SQL arithmetic expression, so a CSV written on one machine can
score data inside the database on another.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from scorelab.engine.warehouse import qident, qliteral
from scorelab.services.modeling import INTERCEPT_LABEL, FittedModel

MODEL_KIND = "lm"
PARSED_VERSION = 1
PARSED_MODEL_COLUMNS = ["labels", "estimate", "type", "field", "level"]


@dataclass(frozen=True)
class ParsedTerm:
    label: str
    estimate: float
    field: str
    level: Optional[str] = None

    @property
    def kind(self) -> str:
        return "categorical" if self.level is not None else "numeric"


@dataclass
class ParsedModel:
    response: str
    intercept: Optional[float]
    terms: List[ParsedTerm] = field(default_factory=list)
    df_residual: Optional[float] = None
    sigma: Optional[float] = None
    n_obs: Optional[int] = None
    model: str = MODEL_KIND
    version: int = PARSED_VERSION

    @property
    def fields(self) -> List[str]:
        out: List[str] = []
        for t in self.terms:
            if t.field not in out:
                out.append(t.field)
        return out


def parse_model(fitted: FittedModel) -> ParsedModel:
    coefs = fitted.coefficients
    intercept = None
    terms: List[ParsedTerm] = []
    for t in fitted.terms:
        if t.is_intercept:
            intercept = coefs[t.label]
        else:
            terms.append(ParsedTerm(t.label, coefs[t.label], t.field, t.level))

    results = fitted.results
    return ParsedModel(
        response=fitted.response,
        intercept=intercept,
        terms=terms,
        df_residual=float(results.df_resid),
        sigma=float(math.sqrt(results.mse_resid)),
        n_obs=fitted.n_obs,
    )


# ============================================================================
# CSV
# ============================================================================

def parsed_model_frame(parsed: ParsedModel) -> pd.DataFrame:
    rows = [
        {"labels": "model", "estimate": None, "type": "variable", "field": parsed.model, "level": None},
        {"labels": "version", "estimate": parsed.version, "type": "variable", "field": None, "level": None},
        {"labels": "response", "estimate": None, "type": "variable", "field": parsed.response, "level": None},
        {"labels": "residual", "estimate": parsed.df_residual, "type": "variable", "field": None, "level": None},
        {"labels": "sigma", "estimate": parsed.sigma, "type": "variable", "field": None, "level": None},
        {"labels": "nobs", "estimate": parsed.n_obs, "type": "variable", "field": None, "level": None},
    ]
    if parsed.intercept is not None:
        rows.append(
            {"labels": INTERCEPT_LABEL, "estimate": parsed.intercept, "type": "intercept", "field": None, "level": None}
        )
    for t in parsed.terms:
        rows.append(
            {"labels": t.label, "estimate": t.estimate, "type": t.kind, "field": t.field, "level": t.level}
        )
    return pd.DataFrame(rows, columns=PARSED_MODEL_COLUMNS)


def parsed_model_csv(parsed: ParsedModel) -> str:
    return parsed_model_frame(parsed).to_csv(index=False, float_format="%.17g")


def write_parsed_model(parsed: ParsedModel, path: Union[str, Path] = "parsedmodel.csv") -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(parsed_model_csv(parsed), encoding="utf-8")
    return out


def _text(value) -> Optional[str]:
    if value is None or value == "" or (isinstance(value, float) and math.isnan(value)):
        return None
    return str(value)


def _number(value) -> Optional[float]:
    if value is None or value == "":
        return None
    value = float(value)
    return None if math.isnan(value) else value


def parsed_model_from_frame(df: pd.DataFrame) -> ParsedModel:
    missing = [c for c in PARSED_MODEL_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Parsed model is missing column(s): {', '.join(missing)}")

    meta = {}
    intercept = None
    terms: List[ParsedTerm] = []
    for row in df.to_dict(orient="records"):
        kind = _text(row["type"])
        label = _text(row["labels"])
        if kind == "variable":
            meta[label] = row
        elif kind == "intercept":
            intercept = _number(row["estimate"])
        elif kind in ("numeric", "categorical"):
            field_name = _text(row["field"])
            estimate = _number(row["estimate"])
            if field_name is None or estimate is None:
                raise ValueError(f"Term '{label}' needs a field and an estimate")
            level = _text(row["level"]) if kind == "categorical" else None
            if kind == "categorical" and level is None:
                raise ValueError(f"Categorical term '{label}' has no level")
            terms.append(ParsedTerm(label, estimate, field_name, level))
        else:
            raise ValueError(f"Unknown parsed model row type: {row['type']!r}")

    model = _text(meta.get("model", {}).get("field"))
    if model != MODEL_KIND:
        raise ValueError(f"Unsupported model kind: {model!r}")
    response = _text(meta.get("response", {}).get("field"))
    if response is None:
        raise ValueError("Parsed model has no response")

    version = _number(meta.get("version", {}).get("estimate"))
    n_obs = _number(meta.get("nobs", {}).get("estimate"))
    return ParsedModel(
        response=response,
        intercept=intercept,
        terms=terms,
        df_residual=_number(meta.get("residual", {}).get("estimate")),
        sigma=_number(meta.get("sigma", {}).get("estimate")),
        n_obs=int(n_obs) if n_obs is not None else None,
        model=model,
        version=int(version) if version is not None else PARSED_VERSION,
    )


def read_parsed_model(path: Union[str, Path]) -> ParsedModel:
    # levels like "NA" or "" must stay text
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return parsed_model_from_frame(df)


# ============================================================================
# SQL
# ============================================================================

def sql_number(value: float) -> str:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot render non-finite coefficient {value} as SQL")
    return repr(value)


def _column(name: str, table_alias: Optional[str]) -> str:
    if table_alias:
        return f"{qident(table_alias)}.{qident(name)}"
    return qident(name)


def term_sql(term: ParsedTerm, table_alias: Optional[str] = None) -> str:
    col = _column(term.field, table_alias)
    if term.level is not None:
        return (
            f"(CASE WHEN CAST({col} AS VARCHAR) = {qliteral(term.level)} "
            f"THEN {sql_number(term.estimate)} ELSE 0 END)"
        )
    return f"({sql_number(term.estimate)} * {col})"


def to_sql(parsed: ParsedModel, table_alias: Optional[str] = None) -> str:
    """Render the model as a SQL expression over the source columns."""
    parts: List[str] = []
    if parsed.intercept is not None:
        parts.append(sql_number(parsed.intercept))
    parts.extend(term_sql(t, table_alias) for t in parsed.terms)
    if not parts:
        return "0"
    return " + ".join(parts)


def model_to_sql(fitted: FittedModel, table_alias: Optional[str] = None) -> str:
    return to_sql(parse_model(fitted), table_alias)
