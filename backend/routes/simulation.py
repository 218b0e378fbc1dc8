"""
Simulation API Routes
GET  /api/v1/simulation/state       — current snapshot summary (+ full state on request)
POST /api/v1/simulation/regenerate  — new world from a seed (random when omitted)
POST /api/v1/simulation/step        — advance N days
POST /api/v1/simulation/scenario    — toggle or set a scenario flag
POST /api/v1/simulation/live/start  — start live stepping
POST /api/v1/simulation/live/stop   — stop live stepping
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.constants import ScenarioFlag, ShipmentStatus
from app.dependencies import get_runner, get_store
from services.demo_store import DemoStore
from services.live_runner import LiveRunner
from simulation.schema import state_to_dict

router = APIRouter(prefix="/api/v1/simulation", tags=["simulation"])
logger = logging.getLogger(__name__)


# ── Request schemas ────────────────────────────────────────────────────────

class RegenerateRequest(BaseModel):
    seed: Optional[int] = Field(None, ge=0, le=0xFFFFFFFF, description="Seed; random 0–9999 when omitted")


class StepRequest(BaseModel):
    days: int = Field(1, ge=1, le=365, description="Days to advance")


class ScenarioRequest(BaseModel):
    flag: ScenarioFlag
    value: Optional[bool] = Field(None, description="Explicit value; toggles when omitted")


class LiveStartRequest(BaseModel):
    interval_seconds: Optional[float] = Field(None, gt=0.05, le=60.0)


# ── Helper ─────────────────────────────────────────────────────────────────

def state_summary(store: DemoStore) -> Dict[str, Any]:
    state = store.state
    by_status = {s.value: 0 for s in ShipmentStatus}
    for sh in state.shipments:
        by_status[sh.status.value] += 1
    return {
        "seed": state.seed,
        "today": state.today,
        "fuel_index": round(state.fuel_index, 4),
        "running": store.running,
        "scenario": {f.value: getattr(state.scenario, f.value) for f in ScenarioFlag},
        "counts": {
            "nodes": len(state.nodes),
            "lanes": len(state.lanes),
            "shipments": len(state.shipments),
            "inventory": len(state.inventory),
            "demand_points": len(state.demand_history),
        },
        "shipments_by_status": by_status,
    }


# ── Routes ─────────────────────────────────────────────────────────────────

@router.get("/state")
async def get_state(full: bool = False, store: DemoStore = Depends(get_store)):
    out = state_summary(store)
    if full:
        out["state"] = state_to_dict(store.state)
    return out


@router.post("/regenerate")
async def regenerate(req: RegenerateRequest, store: DemoStore = Depends(get_store),
                     runner: LiveRunner = Depends(get_runner)):
    try:
        await runner.stop()
        store.regenerate(req.seed)
        return state_summary(store)
    except Exception as exc:
        logger.exception("Regenerate failed")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/step")
async def step(req: StepRequest, store: DemoStore = Depends(get_store)):
    try:
        store.step(req.days)
        return state_summary(store)
    except Exception as exc:
        logger.exception("Simulation step failed")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/scenario")
async def set_scenario(req: ScenarioRequest, store: DemoStore = Depends(get_store)):
    if req.value is None:
        store.toggle_scenario(req.flag)
    else:
        store.set_scenario(req.flag, req.value)
    return state_summary(store)


@router.post("/live/start")
async def live_start(req: Optional[LiveStartRequest] = None, runner: LiveRunner = Depends(get_runner)):
    started = runner.start(req.interval_seconds if req else None)
    return {"running": runner.is_running, "started": started, "interval_seconds": runner.interval}


@router.post("/live/stop")
async def live_stop(runner: LiveRunner = Depends(get_runner)):
    await runner.stop()
    return {"running": runner.is_running}
