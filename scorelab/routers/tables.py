from __future__ import annotations

from typing import List

import duckdb
from fastapi import APIRouter, Depends, HTTPException

from scorelab.api.deps import get_warehouse, require_table
from scorelab.engine.warehouse import Warehouse
from scorelab.models.specs import FrameResponse, SampleSpec, TableInfo
from scorelab.services.sampling import draw_sample
from scorelab.utils import frame_payload

router = APIRouter()


@router.get("", response_model=List[TableInfo])
async def list_tables(wh: Warehouse = Depends(get_warehouse)):
    return [TableInfo(name=t, row_count=wh.row_count(t)) for t in wh.list_tables()]


@router.get("/{table}", response_model=TableInfo)
async def describe_table(table: str, wh: Warehouse = Depends(get_warehouse)):
    require_table(wh, table)
    return TableInfo(
        name=table,
        row_count=wh.row_count(table),
        columns=[{"name": name, "type": dtype} for name, dtype in wh.columns(table)],
    )


@router.post("/{table}/sample", response_model=FrameResponse)
async def sample_table(table: str, spec: SampleSpec, wh: Warehouse = Depends(get_warehouse)):
    require_table(wh, table)
    try:
        df = draw_sample(wh, table, spec)
    except (ValueError, duckdb.Error) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return frame_payload(df)
