import logging
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central config loaded from environment variables and optionally .env (local).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------
    # Warehouse (DuckDB)
    # ":memory:" keeps everything in-process; a file path persists the tables.
    # -------------------------
    warehouse_path: str = Field(":memory:", alias="WAREHOUSE_PATH")
    memory_limit: str = Field("1GB", alias="DUCKDB_MEMORY_LIMIT")
    # REPEATABLE samples only repeat on a single thread
    threads: int = Field(1, alias="DUCKDB_THREADS")

    # -------------------------
    # Demo schema (airport / flight / carrier)
    # -------------------------
    seed_demo_data: bool = Field(True, alias="SEED_DEMO_DATA")
    demo_flight_rows: int = Field(20000, alias="DEMO_FLIGHT_ROWS")
    demo_seed: int = Field(2008, alias="DEMO_SEED")

    # -------------------------
    # Sampling / modeling
    # -------------------------
    sample_seed: int = Field(100, alias="SAMPLE_SEED")
    accuracy_threshold: float = Field(15.0, alias="ACCURACY_THRESHOLD")
    parsed_model_path: str = Field("parsedmodel.csv", alias="PARSED_MODEL_PATH")
    model_ttl_hours: int = Field(24, alias="MODEL_TTL_HOURS")

    # -------------------------
    # Service
    # -------------------------
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")


settings = Settings()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("scorelab")
    logger.setLevel((level or settings.log_level).upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
