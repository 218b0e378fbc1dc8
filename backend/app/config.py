from pydantic_settings import BaseSettings
from typing import List, Optional
import os

from dotenv import load_dotenv

# Pre-load .env into os.environ so pydantic-settings sees the same values
# whether the app is started from backend/ or the repo root
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env"), override=False)


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Supply Chain Autopilot"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Simulation
    DEFAULT_SEED: int = 42
    LIVE_STEP_INTERVAL_SECONDS: float = 2.0

    # State snapshot (plain JSON file; unset = in-memory only)
    STATE_FILE: Optional[str] = None
    STATE_STORAGE_KEY: str = "supply-autopilot-demo-v3"

    # Action policy defaults
    DAILY_ACTION_SPEND_CAP: float = 75_000
    MAX_TRANSFERS_PER_EXEC: int = 6
    REQUIRE_APPROVAL_OVER: float = 50_000
    ALLOW_AUTO_EXECUTE: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None     # dated file handler when set

    # CORS (dev frontends)
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
