"""
Data Explorer API Routes
========================
GET /api/v1/data/snapshot    — full state JSON (download)
GET /api/v1/data/explorer    — per-entity table previews with row counts
GET /api/v1/data/lane-flows  — in-flight cases per lane by flow kind
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.dependencies import get_store
from services.data_export import explorer_tables, lane_flows, state_snapshot
from services.demo_store import DemoStore

router = APIRouter(prefix="/api/v1/data", tags=["Data Explorer"])
logger = logging.getLogger(__name__)


@router.get("/snapshot")
async def get_snapshot(store: DemoStore = Depends(get_store)):
    state = store.state
    filename = f"autopilot_seed{state.seed}_day{state.today}.json"
    return JSONResponse(
        content=state_snapshot(state),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/explorer")
async def get_explorer(store: DemoStore = Depends(get_store)):
    return {
        "generated_at": datetime.utcnow().isoformat(),
        "tables": explorer_tables(store.state),
    }


@router.get("/lane-flows")
async def get_lane_flows(include_dc_to_dc: bool = True, store: DemoStore = Depends(get_store)):
    flows = lane_flows(store.state, include_dc_to_dc=include_dc_to_dc)
    return {"count": len(flows), "flows": flows}
