"""
The sampling and in-database scoring workbook, end to end.

Steps, in order:

1. make sure the airport / flight / carrier tables exist
2. draw samples with each sampling method
3. fit arrdelay on the row-number sample
4. translate the model to SQL and write parsedmodel.csv
5. score flights inside the database
6. measure accuracy against a fixed threshold
7. check the SQL against the in-memory model
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from scorelab.config import settings
from scorelab.engine.demo_data import DEMO_TABLES, ensure_demo_schema
from scorelab.engine.warehouse import Warehouse
from scorelab.services import sampling
from scorelab.services.modeling import fit_linear_model
from scorelab.services.scoring import accuracy, score, verify_translation
from scorelab.services.translation import parse_model, to_sql, write_parsed_model
from scorelab.utils import frame_records

logger = logging.getLogger(__name__)


class WorkbookOptions(BaseModel):
    table: str = "flight"
    key: Optional[str] = "flightid"
    response: str = "arrdelay"
    predictors: List[str] = Field(default_factory=lambda: ["month", "dayofmonth", "depdelay", "distance"])
    categorical: List[str] = Field(default_factory=list)
    sample_size: int = Field(1000, gt=0)
    tablesample_percent: float = Field(1.0, gt=0, le=100)
    strata: str = "month"
    seed: int = Field(default_factory=lambda: settings.sample_seed)
    threshold: float = Field(default_factory=lambda: settings.accuracy_threshold, gt=0)
    parsed_model_path: str = Field(default_factory=lambda: settings.parsed_model_path)
    preview_rows: int = Field(10, ge=0)
    seed_demo_data: bool = Field(default_factory=lambda: settings.seed_demo_data)
    demo_flight_rows: int = Field(default_factory=lambda: settings.demo_flight_rows, gt=0)
    demo_seed: int = Field(default_factory=lambda: settings.demo_seed)


class WorkbookReport(BaseModel):
    seeded: bool
    table_rows: Dict[str, int]
    sample_rows: Dict[str, int]
    model: Dict[str, Any]
    sql: str
    parsed_model_path: str
    preview: List[Dict[str, Any]]
    accuracy: Dict[str, Any]
    translation_check: Dict[str, Any]


def run_workbook(warehouse: Warehouse, options: Optional[WorkbookOptions] = None) -> WorkbookReport:
    options = options or WorkbookOptions()
    warehouse.connect()

    # 1. schema
    seeded = False
    if options.seed_demo_data:
        seeded = ensure_demo_schema(warehouse, options.demo_flight_rows, options.demo_seed)
    table_rows = {t: warehouse.row_count(t) for t in warehouse.list_tables() if t in DEMO_TABLES or t == options.table}

    # 2. samples
    model_columns = [options.response] + options.predictors
    samples = {
        "tablesample": sampling.tablesample(
            warehouse, options.table, percent=options.tablesample_percent, seed=options.seed
        ),
        "row_number": sampling.row_number_sample(
            warehouse,
            options.table,
            options.sample_size,
            seed=options.seed,
            order_by=options.key,
            columns=model_columns,
        ),
        "random_order": sampling.random_order_sample(
            warehouse, options.table, options.sample_size, seed=options.seed
        ),
        "stratified": sampling.stratified_sample(
            warehouse, options.table, options.strata, max(1, options.sample_size // 100), seed=options.seed
        ),
    }
    sample_rows = {name: len(df) for name, df in samples.items()}
    logger.info("Sample sizes: %s", sample_rows)

    # 3. model
    fitted = fit_linear_model(
        samples["row_number"], options.response, options.predictors, options.categorical
    )

    # 4. translate
    parsed = parse_model(fitted)
    sql = to_sql(parsed)
    out = write_parsed_model(parsed, options.parsed_model_path)
    logger.info("Wrote parsed model to %s", out)

    # 5. score in database
    preview = None
    if options.preview_rows:
        preview_columns = ([options.key] if options.key else []) + model_columns
        preview = score(
            warehouse, options.table, parsed, columns=preview_columns, limit=options.preview_rows
        )

    # 6. accuracy
    report = accuracy(warehouse, options.table, parsed, options.threshold)

    # 7. translation check
    check = verify_translation(warehouse, options.table, fitted)

    return WorkbookReport(
        seeded=seeded,
        table_rows=table_rows,
        sample_rows=sample_rows,
        model=fitted.summary(),
        sql=sql,
        parsed_model_path=str(Path(out)),
        preview=frame_records(preview) if preview is not None else [],
        accuracy=report.to_dict(),
        translation_check=check.to_dict(),
    )
