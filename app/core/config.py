import os
from typing import List
from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "FoamPro Ops")
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./foampro.db")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: List[str] = _split_origins(os.getenv("CORS_ORIGINS", "http://localhost:3000"))

    # Client sync behaviour
    sync_debounce_seconds: float = float(os.getenv("SYNC_DEBOUNCE_SECONDS", "3.0"))
    sync_max_attempts: int = int(os.getenv("SYNC_MAX_ATTEMPTS", "5"))
    sync_backoff_seconds: float = float(os.getenv("SYNC_BACKOFF_SECONDS", "1.0"))
    sync_request_timeout: float = float(os.getenv("SYNC_REQUEST_TIMEOUT", "30.0"))
    cache_dir: str = os.getenv("CACHE_DIR", ".foampro_cache")

    # Invoice numbering (per-tenant sequence)
    invoice_prefix: str = os.getenv("INVOICE_PREFIX", "INV-")
    invoice_min_width: int = int(os.getenv("INVOICE_MIN_WIDTH", "5"))

settings = Settings()
