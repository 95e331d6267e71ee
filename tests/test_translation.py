"""
Fitted model -> parsed model table -> SQL.
"""

import numpy as np
import pandas as pd
import pytest

from scorelab.services.modeling import fit_linear_model
from scorelab.services.translation import (
    PARSED_MODEL_COLUMNS,
    ParsedModel,
    ParsedTerm,
    model_to_sql,
    parse_model,
    parsed_model_frame,
    read_parsed_model,
    sql_number,
    to_sql,
    write_parsed_model,
)


class TestParse:

    def test_parsed_terms_follow_model(self, fitted, parsed):
        assert parsed.response == "arrdelay"
        assert parsed.intercept == fitted.coefficients["(Intercept)"]
        assert [t.label for t in parsed.terms] == ["month", "dayofmonth", "depdelay", "distance"]
        assert parsed.n_obs == fitted.n_obs
        assert parsed.df_residual == fitted.n_obs - 5

    def test_frame_layout(self, parsed):
        df = parsed_model_frame(parsed)
        assert list(df.columns) == PARSED_MODEL_COLUMNS
        assert df["labels"].tolist()[:6] == ["model", "version", "response", "residual", "sigma", "nobs"]
        assert df.loc[df["labels"] == "(Intercept)", "type"].item() == "intercept"
        assert set(df.loc[6:, "type"]) == {"intercept", "numeric"}


class TestSql:

    def test_expression_shape(self):
        parsed = ParsedModel(
            response="y",
            intercept=-1.5,
            terms=[
                ParsedTerm("x", 2.0, "x"),
                ParsedTerm("cityO'Hare", 0.25, "city", "O'Hare"),
            ],
        )
        assert to_sql(parsed) == (
            "-1.5 + (2.0 * \"x\") + "
            "(CASE WHEN CAST(\"city\" AS VARCHAR) = 'O''Hare' THEN 0.25 ELSE 0 END)"
        )

    def test_table_alias(self):
        parsed = ParsedModel(response="y", intercept=None, terms=[ParsedTerm("x", 3.0, "x")])
        assert to_sql(parsed, table_alias="f") == '(3.0 * "f"."x")'

    def test_empty_model(self):
        assert to_sql(ParsedModel(response="y", intercept=None)) == "0"

    def test_non_finite_coefficient(self):
        with pytest.raises(ValueError):
            sql_number(float("nan"))
        with pytest.raises(ValueError):
            sql_number(float("inf"))

    def test_sql_matches_local_predictions(self, warehouse, fitted):
        sql = model_to_sql(fitted)
        df = warehouse.query_df(
            f"SELECT month, dayofmonth, depdelay, distance, {sql} AS fitted "
            "FROM flight WHERE depdelay IS NOT NULL LIMIT 500"
        )
        np.testing.assert_allclose(df["fitted"].to_numpy(), fitted.predict(df).to_numpy(), atol=1e-9)

    def test_categorical_sql_matches_local_predictions(self, warehouse, flight_frame):
        model = fit_linear_model(
            flight_frame,
            "arrdelay",
            ["depdelay", "uniquecarrier", "month"],
            categorical=["uniquecarrier", "month"],
        )
        df = warehouse.query_df(
            f"SELECT depdelay, uniquecarrier, month, {model_to_sql(model)} AS fitted "
            "FROM flight WHERE depdelay IS NOT NULL LIMIT 500"
        )
        np.testing.assert_allclose(df["fitted"].to_numpy(), model.predict(df).to_numpy(), atol=1e-9)


class TestCsv:

    def test_round_trip_keeps_sql(self, tmp_path, parsed):
        path = write_parsed_model(parsed, tmp_path / "out" / "parsedmodel.csv")
        assert path.exists()
        again = read_parsed_model(path)
        assert to_sql(again) == to_sql(parsed)
        assert again.response == parsed.response
        assert again.n_obs == parsed.n_obs
        assert again.sigma == parsed.sigma

    def test_round_trip_categorical_levels(self, tmp_path):
        parsed = ParsedModel(
            response="y",
            intercept=1.0,
            terms=[ParsedTerm("cNA", 0.5, "c", "NA"), ParsedTerm("x", -2.0, "x")],
        )
        again = read_parsed_model(write_parsed_model(parsed, tmp_path / "m.csv"))
        assert again.terms == parsed.terms

    def test_unknown_model_kind(self, tmp_path, parsed):
        df = parsed_model_frame(parsed)
        df.loc[df["labels"] == "model", "field"] = "glm"
        path = tmp_path / "glm.csv"
        df.to_csv(path, index=False)
        with pytest.raises(ValueError, match="Unsupported model kind"):
            read_parsed_model(path)

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"labels": ["model"]}).to_csv(path, index=False)
        with pytest.raises(ValueError, match="missing column"):
            read_parsed_model(path)

    def test_unknown_row_type(self, tmp_path, parsed):
        df = parsed_model_frame(parsed)
        df.loc[df["labels"] == "depdelay", "type"] = "spline"
        path = tmp_path / "spline.csv"
        df.to_csv(path, index=False)
        with pytest.raises(ValueError, match="Unknown parsed model row type"):
            read_parsed_model(path)
