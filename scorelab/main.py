from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scorelab import __version__
from scorelab.api.router import api_router
from scorelab.config import Settings, configure_logging, settings as default_settings
from scorelab.engine.demo_data import ensure_demo_schema
from scorelab.engine.warehouse import Warehouse
from scorelab.services.model_store import ModelStore


def create_app(settings: Optional[Settings] = None, warehouse: Optional[Warehouse] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    app = FastAPI(
        title="scorelab",
        version=__version__,
        description="Ad-hoc warehouse sampling, linear models and in-database scoring (DuckDB)",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.warehouse = warehouse or Warehouse(
        settings.warehouse_path, settings.memory_limit, settings.threads
    )
    app.state.models = ModelStore(ttl_hours=settings.model_ttl_hours)

    app.include_router(api_router)

    @app.on_event("startup")
    async def _startup():
        wh = app.state.warehouse
        wh.connect()
        if settings.seed_demo_data:
            ensure_demo_schema(wh, settings.demo_flight_rows, settings.demo_seed)

    @app.on_event("shutdown")
    async def _shutdown():
        # releases the lock on file-backed databases
        app.state.warehouse.close()

    @app.get("/health")
    async def health():
        return {
            "ok": True,
            "version": __version__,
            "connected": app.state.warehouse.is_open,
            **app.state.models.get_stats(),
        }

    return app


app = create_app()
