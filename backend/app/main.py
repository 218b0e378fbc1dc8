"""
Supply Chain Autopilot — FastAPI Application
Synthetic supply-chain simulation with exception scoring, rebalancing and
carrier re-tender decisions under a spend-cap policy.
"""
import os
import sys
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Add backend directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from routes.health import router as health_router
from routes.simulation import router as simulation_router
from routes.inventory import router as inventory_router
from routes.transport import router as transport_router
from routes.dashboard import router as dashboard_router
from routes.policy import router as policy_router
from routes.data import router as data_router
from routes.events import router as events_router
from app.config import settings
from app.dependencies import get_runner, get_store
from utils.logger import setup_logger

setup_logger(level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR)
logger = logging.getLogger(__name__)


def _persist(store, changed) -> None:
    store.save(settings.STATE_FILE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    store = get_store()
    runner = get_runner()
    unsubscribe = None
    if settings.STATE_FILE:
        if os.path.exists(settings.STATE_FILE):
            store.load(settings.STATE_FILE)
        unsubscribe = store.subscribe(_persist)
        logger.info(f"State snapshots → {settings.STATE_FILE}")
    if store.running:
        runner.start()
    yield
    await runner.stop()
    if unsubscribe is not None:
        unsubscribe()
        store.save(settings.STATE_FILE)
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Decision-support API for a synthetic consumer-goods network: "
        "day-by-day simulation, exception scoring, DC rebalancing and "
        "carrier re-tendering under a daily spend-cap policy."
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# NOTE: allow_credentials=True is incompatible with allow_origins=["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router)
app.include_router(simulation_router)
app.include_router(inventory_router)
app.include_router(transport_router)
app.include_router(dashboard_router)
app.include_router(policy_router)
app.include_router(data_router)
app.include_router(events_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
