from __future__ import annotations

from typing import Optional

import duckdb
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from scorelab.api.deps import get_model_store, get_settings, get_warehouse, require_table
from scorelab.config import Settings
from scorelab.engine.warehouse import Warehouse, qident
from scorelab.models.specs import (
    AccuracyResponse,
    AccuracySpec,
    FrameResponse,
    ModelResponse,
    ModelSpec,
    ScoreSpec,
    SqlResponse,
    VerifyResponse,
    VerifySpec,
)
from scorelab.models.common import OkResponse
from scorelab.services.model_store import ModelStore
from scorelab.services.modeling import fit_linear_model
from scorelab.services.sampling import draw_sample
from scorelab.services.scoring import accuracy, score, score_into_table, verify_translation
from scorelab.services.translation import parsed_model_csv, to_sql
from scorelab.utils import frame_payload

router = APIRouter()

_BAD_INPUT = (ValueError, duckdb.Error)


def _model_response(model_id: str, store: ModelStore) -> ModelResponse:
    fitted = store.get(model_id)
    meta = store.get_metadata(model_id)
    return ModelResponse(
        model_id=model_id,
        table=meta["table"],
        response=fitted.response,
        terms=[t.label for t in fitted.terms],
        summary=fitted.summary(),
        sql=to_sql(store.get_parsed(model_id)),
    )


def _require_model(model_id: str, store: ModelStore) -> None:
    if not store.exists(model_id):
        raise HTTPException(status_code=404, detail="Model not found")


@router.post("", response_model=ModelResponse)
async def create_model(
    spec: ModelSpec,
    wh: Warehouse = Depends(get_warehouse),
    store: ModelStore = Depends(get_model_store),
):
    require_table(wh, spec.table)
    try:
        columns = [spec.response] + spec.predictors
        if spec.sample is not None:
            sample_spec = spec.sample.model_copy(update={"columns": spec.sample.columns or columns})
            df = draw_sample(wh, spec.table, sample_spec)
        else:
            wh.require_columns(spec.table, columns)
            select = ", ".join(qident(c) for c in columns)
            df = wh.query_df(f"SELECT {select} FROM {qident(spec.table)}")

        fitted = fit_linear_model(
            df, spec.response, spec.predictors, spec.categorical, spec.add_intercept
        )
    except _BAD_INPUT as e:
        raise HTTPException(status_code=400, detail=str(e))

    store.cleanup_expired()
    model_id = store.put(fitted, {"table": spec.table, "sample_rows": len(df)})
    return _model_response(model_id, store)


@router.get("/{model_id}", response_model=ModelResponse)
async def get_model(model_id: str, store: ModelStore = Depends(get_model_store)):
    _require_model(model_id, store)
    return _model_response(model_id, store)


@router.delete("/{model_id}", response_model=OkResponse)
async def delete_model(model_id: str, store: ModelStore = Depends(get_model_store)):
    _require_model(model_id, store)
    store.delete(model_id)
    return OkResponse()


@router.get("/{model_id}/sql", response_model=SqlResponse)
async def model_sql(
    model_id: str,
    alias: Optional[str] = Query(None),
    store: ModelStore = Depends(get_model_store),
):
    _require_model(model_id, store)
    return SqlResponse(model_id=model_id, sql=to_sql(store.get_parsed(model_id), table_alias=alias))


@router.get("/{model_id}/parsed", response_class=PlainTextResponse)
async def model_parsed(
    model_id: str,
    store: ModelStore = Depends(get_model_store),
    settings: Settings = Depends(get_settings),
):
    _require_model(model_id, store)
    filename = settings.parsed_model_path.rsplit("/", 1)[-1]
    return PlainTextResponse(
        parsed_model_csv(store.get_parsed(model_id)),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{model_id}/score", response_model=FrameResponse)
async def score_model(
    model_id: str,
    spec: ScoreSpec,
    wh: Warehouse = Depends(get_warehouse),
    store: ModelStore = Depends(get_model_store),
):
    _require_model(model_id, store)
    require_table(wh, spec.table)
    parsed = store.get_parsed(model_id)
    columns = spec.columns or None
    try:
        if spec.into:
            score_into_table(wh, spec.table, spec.into, parsed, columns, spec.fitted_column)
            df = wh.query_df(f"SELECT * FROM {qident(spec.into)} LIMIT {int(spec.limit)}")
        else:
            df = score(wh, spec.table, parsed, columns, spec.fitted_column, spec.limit)
    except _BAD_INPUT as e:
        raise HTTPException(status_code=400, detail=str(e))
    return frame_payload(df)


@router.post("/{model_id}/accuracy", response_model=AccuracyResponse)
async def model_accuracy(
    model_id: str,
    spec: AccuracySpec,
    wh: Warehouse = Depends(get_warehouse),
    store: ModelStore = Depends(get_model_store),
    settings: Settings = Depends(get_settings),
):
    _require_model(model_id, store)
    require_table(wh, spec.table)
    threshold = spec.threshold if spec.threshold is not None else settings.accuracy_threshold
    try:
        report = accuracy(wh, spec.table, store.get_parsed(model_id), threshold)
    except _BAD_INPUT as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AccuracyResponse(**report.to_dict())


@router.post("/{model_id}/verify", response_model=VerifyResponse)
async def model_verify(
    model_id: str,
    spec: VerifySpec,
    wh: Warehouse = Depends(get_warehouse),
    store: ModelStore = Depends(get_model_store),
):
    _require_model(model_id, store)
    require_table(wh, spec.table)
    try:
        check = verify_translation(
            wh, spec.table, store.get(model_id), max_rows=spec.max_rows, tolerance=spec.tolerance
        )
    except _BAD_INPUT as e:
        raise HTTPException(status_code=400, detail=str(e))
    return VerifyResponse(**check.to_dict())
