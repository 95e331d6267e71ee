from fastapi import HTTPException, Request

from scorelab.config import Settings
from scorelab.engine.warehouse import Warehouse
from scorelab.services.model_store import ModelStore


def get_warehouse(request: Request) -> Warehouse:
    wh: Warehouse = request.app.state.warehouse
    if not wh.is_open:
        raise HTTPException(status_code=503, detail="Warehouse is not connected")
    return wh


def get_model_store(request: Request) -> ModelStore:
    return request.app.state.models


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_table(wh: Warehouse, table: str) -> None:
    if not wh.has_table(table):
        raise HTTPException(status_code=404, detail=f"Table '{table}' not found")
