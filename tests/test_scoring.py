"""
In-database scoring, accuracy and translation checks.
"""

import pytest

from scorelab.services import scoring
from scorelab.services.modeling import fit_linear_model
from scorelab.services.translation import ParsedModel, ParsedTerm, parse_model, to_sql


class TestScore:

    def test_score_adds_fitted_column(self, warehouse, parsed):
        df = scoring.score(warehouse, "flight", parsed, columns=["flightid", "arrdelay"], limit=25)
        assert list(df.columns) == ["flightid", "arrdelay", "fitted"]
        assert len(df) == 25

    def test_custom_fitted_column(self, warehouse, parsed):
        df = scoring.score(warehouse, "flight", parsed, columns=["flightid"], fitted_column="pred", limit=5)
        assert "pred" in df.columns

    def test_cancelled_flights_score_null(self, warehouse, parsed):
        df = scoring.score(warehouse, "flight", parsed, columns=["cancelled"])
        assert df.loc[df["cancelled"] == 1, "fitted"].isna().all()
        assert df.loc[df["cancelled"] == 0, "fitted"].notna().all()

    def test_missing_model_column(self, warehouse):
        parsed = ParsedModel(response="arrdelay", intercept=0.0, terms=[ParsedTerm("wind", 1.0, "wind")])
        with pytest.raises(ValueError, match="wind"):
            scoring.score(warehouse, "flight", parsed)

    def test_score_into_table(self, warehouse, parsed):
        n = scoring.score_into_table(warehouse, "flight", "flight_scored", parsed, columns=["flightid", "arrdelay"])
        assert n == 5000
        names = [name for name, _ in warehouse.columns("flight_scored")]
        assert names == ["flightid", "arrdelay", "fitted"]

    def test_score_into_same_table_rejected(self, warehouse, parsed):
        with pytest.raises(ValueError):
            scoring.score_into_table(warehouse, "flight", "flight", parsed)


class TestAccuracy:

    def test_most_predictions_within_threshold(self, warehouse, parsed):
        report = scoring.accuracy(warehouse, "flight", parsed, 15)
        complete = warehouse.con.execute(
            "SELECT COUNT(*) FROM flight WHERE arrdelay IS NOT NULL"
        ).fetchone()[0]
        assert report.n == complete
        assert report.accurate + report.inaccurate == report.n
        assert report.accuracy > 0.8
        assert 0 < report.mae <= report.rmse

    def test_accuracy_grows_with_threshold(self, warehouse, parsed):
        tight = scoring.accuracy(warehouse, "flight", parsed, 2)
        loose = scoring.accuracy(warehouse, "flight", parsed, 30)
        assert tight.accurate < loose.accurate

    def test_matches_local_computation(self, warehouse, fitted, parsed, flight_frame):
        complete = flight_frame.dropna(subset=["arrdelay", "depdelay"])
        residual = (fitted.predict(complete) - complete["arrdelay"]).abs()
        report = scoring.accuracy(warehouse, "flight", parsed, 10)
        assert report.accurate == int((residual < 10).sum())
        assert report.mae == pytest.approx(residual.mean())

    def test_non_positive_threshold(self, warehouse, parsed):
        with pytest.raises(ValueError):
            scoring.accuracy(warehouse, "flight", parsed, 0)

    @pytest.mark.parametrize("threshold", [float("inf"), float("nan")])
    def test_non_finite_threshold(self, warehouse, parsed, threshold):
        with pytest.raises(ValueError, match="finite"):
            scoring.accuracy(warehouse, "flight", parsed, threshold)

    def test_no_scorable_rows(self, warehouse, parsed):
        warehouse.execute("CREATE TABLE empty_flight AS SELECT * FROM flight WHERE FALSE")
        with pytest.raises(ValueError, match="No scorable rows"):
            scoring.accuracy(warehouse, "empty_flight", parsed, 15)


class TestVerifyTranslation:

    def test_sql_agrees_with_model(self, warehouse, fitted):
        check = scoring.verify_translation(warehouse, "flight", fitted, max_rows=300)
        assert check.rows == 300
        assert check.passed
        assert check.max_abs_diff < 1e-8

    def test_boolean_categorical_agrees(self, warehouse):
        warehouse.execute(
            "CREATE TABLE flags AS SELECT i::DOUBLE AS x, (i % 3 = 0) AS b, "
            "i * 0.5 + CASE WHEN i % 3 = 0 THEN 10 ELSE 0 END + (i % 7) AS y "
            "FROM range(300) t(i)"
        )
        model = fit_linear_model(warehouse.query_df("SELECT * FROM flags"), "y", ["x", "b"], categorical=["b"])
        assert "= 'true'" in to_sql(parse_model(model))
        check = scoring.verify_translation(warehouse, "flags", model)
        assert check.rows == 300
        assert check.passed

    def test_no_complete_rows(self, warehouse, fitted):
        warehouse.execute("CREATE TABLE cancelled_only AS SELECT * FROM flight WHERE cancelled = 1")
        with pytest.raises(ValueError, match="No complete rows"):
            scoring.verify_translation(warehouse, "cancelled_only", fitted)
