from fastapi import APIRouter

from scorelab.routers import models, tables

api_router = APIRouter()
api_router.include_router(tables.router, prefix="/tables", tags=["tables"])
api_router.include_router(models.router, prefix="/models", tags=["models"])
