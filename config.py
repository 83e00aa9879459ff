from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    database_url: str
    port: int
    cors_origins: List[str]
    log_level: str

    dashboard_api_url: str
    dashboard_page_size: int


def get_settings() -> Settings:
    # values already in the environment take precedence over the .env file
    env_file = os.getenv("READINGS_ENV_FILE", ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    origins = os.getenv("CORS_ORIGINS", "*")
    page_size = int(os.getenv("DASHBOARD_PAGE_SIZE", "10"))
    if page_size < 1:
        raise ValueError(f"DASHBOARD_PAGE_SIZE must be at least 1, got {page_size}")

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:////tmp/readings.db"),
        port=int(os.getenv("PORT", "3000")),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        dashboard_api_url=os.getenv("DASHBOARD_API_URL", "http://localhost:3000"),
        dashboard_page_size=page_size,
    )
