"""
Synthetic copy of the airline warehouse schema.

Three tables are created (or replaced) in the warehouse:

- carrier(code, description)
- airport(iata, airport, city, state, lat, long)
- flight(flightid, year, month, dayofmonth, dayofweek, uniquecarrier,
         origin, dest, crsdeptime, depdelay, arrdelay, distance, cancelled)

Arrival delay is generated as a linear function of departure delay and
distance plus a carrier offset and noise, so a linear model has something
real to recover.
"""

from __future__ import annotations

import logging
from typing import Dict

import numpy as np
import pandas as pd

from scorelab.engine.warehouse import Warehouse, qident

logger = logging.getLogger(__name__)

DEMO_TABLES = ("airport", "carrier", "flight")

CARRIERS: Dict[str, str] = {
    "AA": "American Airlines Inc.",
    "AS": "Alaska Airlines Inc.",
    "B6": "JetBlue Airways",
    "DL": "Delta Air Lines Inc.",
    "F9": "Frontier Airlines Inc.",
    "NW": "Northwest Airlines Inc.",
    "OO": "SkyWest Airlines Inc.",
    "UA": "United Air Lines Inc.",
    "US": "US Airways Inc.",
    "WN": "Southwest Airlines Co.",
}

AIRPORTS = [
    # iata, airport, city, state, lat, long
    ("ATL", "William B Hartsfield-Atlanta Intl", "Atlanta", "GA", 33.6405, -84.4269),
    ("BOS", "Gen Edw L Logan Intl", "Boston", "MA", 42.3643, -71.0052),
    ("DEN", "Denver Intl", "Denver", "CO", 39.8583, -104.6670),
    ("DFW", "Dallas-Fort Worth International", "Dallas-Fort Worth", "TX", 32.8968, -97.0380),
    ("JFK", "John F Kennedy Intl", "New York", "NY", 40.6398, -73.7789),
    ("LAX", "Los Angeles International", "Los Angeles", "CA", 33.9425, -118.4081),
    ("MSP", "Minneapolis-St Paul Intl", "Minneapolis", "MN", 44.8805, -93.2169),
    ("ORD", "Chicago O'Hare International", "Chicago", "IL", 41.9796, -87.9045),
    ("PHX", "Phoenix Sky Harbor International", "Phoenix", "AZ", 33.4343, -112.0080),
    ("SEA", "Seattle-Tacoma Intl", "Seattle", "WA", 47.4490, -122.3093),
    ("SFO", "San Francisco International", "San Francisco", "CA", 37.6190, -122.3748),
    ("SLC", "Salt Lake City Intl", "Salt Lake City", "UT", 40.7884, -111.9778),
]

EARTH_RADIUS_MILES = 3958.8


def _great_circle_miles(lat1, lon1, lat2, lon2) -> np.ndarray:
    lat1, lon1, lat2, lon2 = map(np.radians, (lat1, lon1, lat2, lon2))
    a = (
        np.sin((lat2 - lat1) / 2.0) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_MILES * np.arcsin(np.sqrt(a))


def carrier_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {"code": list(CARRIERS.keys()), "description": list(CARRIERS.values())}
    )


def airport_frame() -> pd.DataFrame:
    return pd.DataFrame(AIRPORTS, columns=["iata", "airport", "city", "state", "lat", "long"])


def flight_frame(n_flights: int, seed: int) -> pd.DataFrame:
    if n_flights <= 0:
        raise ValueError("n_flights must be positive")

    rng = np.random.default_rng(seed)
    airports = airport_frame()
    codes = np.array(list(CARRIERS.keys()))
    carrier_offset = dict(zip(codes, rng.normal(0.0, 3.0, size=len(codes))))

    n_airports = len(airports)
    origin_idx = rng.integers(0, n_airports, size=n_flights)
    # shift by 1..n-1 so origin never equals destination
    dest_idx = (origin_idx + rng.integers(1, n_airports, size=n_flights)) % n_airports

    lat = airports["lat"].to_numpy()
    lon = airports["long"].to_numpy()
    distance = np.round(
        _great_circle_miles(lat[origin_idx], lon[origin_idx], lat[dest_idx], lon[dest_idx])
    )

    carrier = rng.choice(codes, size=n_flights)
    depdelay = np.round(rng.gamma(shape=1.2, scale=12.0, size=n_flights) - 8.0)
    noise = rng.normal(0.0, 8.0, size=n_flights)
    offsets = np.array([carrier_offset[c] for c in carrier])
    arrdelay = np.round(-4.0 + 1.02 * depdelay - 0.002 * distance + offsets + noise)

    month = rng.integers(1, 13, size=n_flights)
    dayofmonth = rng.integers(1, 29, size=n_flights)
    cancelled = (rng.random(n_flights) < 0.02).astype(int)

    return pd.DataFrame(
        {
            "flightid": np.arange(1, n_flights + 1),
            "year": np.full(n_flights, 2008),
            "month": month,
            "dayofmonth": dayofmonth,
            "dayofweek": rng.integers(1, 8, size=n_flights),
            "uniquecarrier": carrier,
            "origin": airports["iata"].to_numpy()[origin_idx],
            "dest": airports["iata"].to_numpy()[dest_idx],
            "crsdeptime": rng.integers(5, 23, size=n_flights) * 100
            + rng.choice([0, 15, 30, 45], size=n_flights),
            "depdelay": depdelay,
            "arrdelay": arrdelay,
            "distance": distance,
            "cancelled": cancelled,
        }
    )


def _create_from_frame(warehouse: Warehouse, table: str, df: pd.DataFrame) -> None:
    view = f"_seed_{table}"
    warehouse.register_frame(view, df)
    try:
        warehouse.execute(f"CREATE OR REPLACE TABLE {qident(table)} AS SELECT * FROM {view}")
    finally:
        warehouse.unregister(view)


def seed_flight_schema(warehouse: Warehouse, n_flights: int, seed: int) -> None:
    """Create (or replace) the airport, carrier and flight tables."""
    _create_from_frame(warehouse, "carrier", carrier_frame())
    _create_from_frame(warehouse, "airport", airport_frame())
    _create_from_frame(warehouse, "flight", flight_frame(n_flights, seed))
    warehouse.execute(
        "UPDATE flight SET depdelay = NULL, arrdelay = NULL WHERE cancelled = 1"
    )
    logger.info("Seeded demo schema with %d flights (seed=%d)", n_flights, seed)


def ensure_demo_schema(warehouse: Warehouse, n_flights: int, seed: int) -> bool:
    """Seed the demo tables unless all of them already exist."""
    existing = set(warehouse.list_tables())
    if all(t in existing for t in DEMO_TABLES):
        return False
    seed_flight_schema(warehouse, n_flights, seed)
    return True
