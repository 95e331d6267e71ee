"""
scorelab test configuration

Provides an in-memory warehouse seeded with the demo flight schema and a
model fitted on it.
"""

import pytest
from fastapi.testclient import TestClient

from scorelab.config import Settings
from scorelab.engine.demo_data import seed_flight_schema
from scorelab.engine.warehouse import Warehouse
from scorelab.main import create_app
from scorelab.services.modeling import fit_linear_model
from scorelab.services.translation import parse_model

N_FLIGHTS = 5000
DEMO_SEED = 7
PREDICTORS = ["month", "dayofmonth", "depdelay", "distance"]


@pytest.fixture
def warehouse():
    """Fresh in-memory warehouse with the demo schema."""
    wh = Warehouse(":memory:", threads=1)
    wh.connect()
    seed_flight_schema(wh, N_FLIGHTS, DEMO_SEED)
    yield wh
    wh.close()


@pytest.fixture
def flight_frame(warehouse):
    return warehouse.query_df("SELECT * FROM flight")


@pytest.fixture
def fitted(flight_frame):
    return fit_linear_model(flight_frame, "arrdelay", PREDICTORS)


@pytest.fixture
def parsed(fitted):
    return parse_model(fitted)


@pytest.fixture
def api_settings(tmp_path):
    return Settings(
        warehouse_path=":memory:",
        threads=1,
        seed_demo_data=True,
        demo_flight_rows=N_FLIGHTS,
        demo_seed=DEMO_SEED,
        parsed_model_path=str(tmp_path / "parsedmodel.csv"),
    )


@pytest.fixture
def client(api_settings):
    app = create_app(settings=api_settings)
    with TestClient(app) as c:
        yield c
