"""
Shared service instances for the API.

Routes receive the store and live runner through ``Depends(get_store)`` /
``Depends(get_runner)`` so tests can swap in fresh instances with
``app.dependency_overrides``.
"""
import logging
from typing import Optional

from app.config import settings
from services.demo_store import DemoStore, Policy
from services.live_runner import LiveRunner

logger = logging.getLogger(__name__)

_store: Optional[DemoStore] = None
_runner: Optional[LiveRunner] = None


def init_services() -> None:
    """Create the process-wide store and runner from settings."""
    global _store, _runner
    _store = DemoStore(
        seed=settings.DEFAULT_SEED,
        policy=Policy.from_settings(settings),
        storage_key=settings.STATE_STORAGE_KEY,
    )
    _runner = LiveRunner(_store, interval=settings.LIVE_STEP_INTERVAL_SECONDS)
    logger.info(f"Initialised demo store (seed {settings.DEFAULT_SEED})")


def get_store() -> DemoStore:
    if _store is None:
        init_services()
    return _store


def get_runner() -> LiveRunner:
    if _runner is None:
        init_services()
    return _runner
