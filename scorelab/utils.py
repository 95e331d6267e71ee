from __future__ import annotations

import json
from typing import Any, Dict, List

import pandas as pd


def frame_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """JSON-safe rows: NaN becomes None, numpy scalars become Python ones."""
    return json.loads(df.to_json(orient="records", date_format="iso"))


def frame_payload(df: pd.DataFrame) -> Dict[str, Any]:
    return {
        "columns": [str(c) for c in df.columns],
        "data": frame_records(df),
        "row_count": len(df),
    }
