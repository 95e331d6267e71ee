"""
Linear regression on warehouse samples.

Fits ordinary least squares with statsmodels on an explicit design matrix so
that every coefficient maps to exactly one column (or one categorical level)
and can be rewritten as SQL later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm

logger = logging.getLogger(__name__)

INTERCEPT_LABEL = "(Intercept)"


@dataclass(frozen=True)
class ModelTerm:
    label: str
    field: Optional[str] = None
    level: Optional[str] = None

    @property
    def is_intercept(self) -> bool:
        return self.field is None

    @property
    def is_categorical(self) -> bool:
        return self.level is not None


@dataclass
class FittedModel:
    response: str
    terms: List[ModelTerm]
    results: Any
    n_obs: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def coefficients(self) -> Dict[str, float]:
        params = self.results.params
        return {t.label: float(params[t.label]) for t in self.terms}

    @property
    def fields(self) -> List[str]:
        """Source columns the model reads, in term order, without duplicates."""
        out: List[str] = []
        for t in self.terms:
            if t.field is not None and t.field not in out:
                out.append(t.field)
        return out

    def design_matrix(self, df: pd.DataFrame) -> pd.DataFrame:
        return _design_from_terms(df, self.terms)

    def predict(self, df: pd.DataFrame) -> pd.Series:
        X = self.design_matrix(df)
        return pd.Series(np.asarray(self.results.predict(X), dtype=float), index=df.index, name="fitted")

    def summary(self) -> Dict[str, Any]:
        model = self.results
        return {
            "n": int(model.nobs),
            "r2": float(model.rsquared),
            "adj_r2": float(model.rsquared_adj),
            "f_stat": _finite_or_none(model.fvalue),
            "f_p_value": _finite_or_none(model.f_pvalue),
            "params": {k: float(v) for k, v in model.params.to_dict().items()},
            "std_errors": {k: float(v) for k, v in model.bse.to_dict().items()},
            "t_values": {k: float(v) for k, v in model.tvalues.to_dict().items()},
            "pvalues": {k: float(v) for k, v in model.pvalues.to_dict().items()},
            "residual_std_error": float(np.sqrt(model.mse_resid)),
        }


def _finite_or_none(value: Any) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    return value if np.isfinite(value) else None


def _design_from_terms(df: pd.DataFrame, terms: List[ModelTerm]) -> pd.DataFrame:
    columns: Dict[str, Any] = {}
    for t in terms:
        if t.is_intercept:
            columns[t.label] = np.ones(len(df))
        elif t.is_categorical:
            columns[t.label] = (level_text(df[t.field]) == t.level).astype(float).to_numpy()
        else:
            columns[t.label] = df[t.field].astype(float).to_numpy()
    return pd.DataFrame(columns, index=df.index)


def _level_value(value: Any) -> str:
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    return str(value)


def level_text(series: pd.Series) -> pd.Series:
    """Categorical values as text, spelled the way CAST(... AS VARCHAR) spells them."""
    return series.map(_level_value)


def categorical_levels(series: pd.Series) -> List[str]:
    """Distinct text values, sorted; the first one is the reference level."""
    return sorted(level_text(series.dropna()).unique().tolist())


def build_terms(
    df: pd.DataFrame,
    predictors: List[str],
    categorical: Optional[List[str]] = None,
    add_intercept: bool = True,
) -> List[ModelTerm]:
    categorical = categorical or []
    terms: List[ModelTerm] = []
    if add_intercept:
        terms.append(ModelTerm(INTERCEPT_LABEL))

    for col in predictors:
        if col in categorical:
            levels = categorical_levels(df[col])
            if len(levels) < 2:
                raise ValueError(f"Categorical predictor '{col}' needs at least 2 levels")
            # first level is absorbed by the intercept
            for level in levels[1:]:
                terms.append(ModelTerm(f"{col}{level}", col, level))
        else:
            terms.append(ModelTerm(col, col))

    labels = [t.label for t in terms]
    dupes = sorted({label for label in labels if labels.count(label) > 1})
    if dupes:
        raise ValueError(f"Duplicate model term(s): {', '.join(dupes)}")
    return terms


def fit_linear_model(
    df: pd.DataFrame,
    response: str,
    predictors: List[str],
    categorical: Optional[List[str]] = None,
    add_intercept: bool = True,
) -> FittedModel:
    """
    Ordinary Least Squares (Linear) Regression.

    Predict `response` from the predictor columns. Columns listed in
    `categorical` are expanded into one indicator per non-reference level.
    Rows with a NULL in any used column are dropped.
    """
    if not predictors:
        raise ValueError("At least one predictor is required")
    if response in predictors:
        raise ValueError(f"Response '{response}' cannot also be a predictor")

    categorical = list(categorical or [])
    stray = [c for c in categorical if c not in predictors]
    if stray:
        raise ValueError(f"Categorical column(s) not among predictors: {', '.join(stray)}")

    used = [response] + list(predictors)
    missing = [c for c in used if c not in df.columns]
    if missing:
        raise ValueError(f"Sample has no column(s): {', '.join(missing)}")

    data = df[used].dropna()
    if data.empty:
        raise ValueError("Sample has no complete observations to fit")
    terms = build_terms(data, predictors, categorical, add_intercept)

    if len(data) < len(terms) + 2:
        raise ValueError(
            f"Need at least {len(terms) + 2} observations for regression with "
            f"{len(terms)} terms; got {len(data)}"
        )

    yv = data[response].astype(float)
    Xv = _design_from_terms(data, terms)
    results = sm.OLS(yv, Xv).fit()

    logger.info(
        "Fitted lm %s ~ %s on %d rows (R2=%.4f)",
        response,
        " + ".join(predictors),
        int(results.nobs),
        float(results.rsquared),
    )
    return FittedModel(response=response, terms=terms, results=results, n_obs=int(results.nobs))
