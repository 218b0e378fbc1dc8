"""Dashboard and reporting API routes."""
import logging
from typing import Optional

import pandas as pd
from fastapi import APIRouter, Depends, Query

from app.constants import ExceptionType
from app.dependencies import get_store
from services.demo_store import DemoStore
from simulation.brief import build_executive_brief, dc_throughput_risk
from simulation.demand import forecast_table
from simulation.kpi import compute_kpis
from simulation.risk import compute_exceptions

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])
logger = logging.getLogger(__name__)


@router.get("/kpis")
async def get_kpis(store: DemoStore = Depends(get_store)):
    state = store.state
    return {"today": state.today, "kpis": compute_kpis(state)}


@router.get("/exceptions")
async def get_exceptions(
    type: Optional[ExceptionType] = Query(None, description="Only exceptions of this type"),
    store: DemoStore = Depends(get_store),
):
    exceptions = compute_exceptions(store.state)
    if type is not None:
        exceptions = [e for e in exceptions if e.type == type]
    return {
        "count": len(exceptions),
        "total_value_at_risk": sum(e.est_value_at_risk for e in exceptions),
        "exceptions": exceptions,
    }


@router.get("/brief")
async def get_brief(store: DemoStore = Depends(get_store)):
    return {"today": store.state.today, "answers": build_executive_brief(store.state)}


@router.get("/distribution")
async def get_distribution(store: DemoStore = Depends(get_store)):
    """DC utilization proxy, worst first."""
    rows = [
        {
            "dc_id": r.dc.id,
            "dc_name": r.dc.name,
            "region": r.dc.region.value,
            "capacity": r.capacity,
            "outbound": r.outbound,
            "utilization": round(r.utilization, 4),
            "status": r.status,
        }
        for r in dc_throughput_risk(store.state)
    ]
    return {"dc_outage": store.state.scenario.dc_outage, "dcs": rows}


@router.get("/forecast")
async def get_forecast(store: DemoStore = Depends(get_store)):
    """Forecast grid plus a region × SKU pivot of next-7-day cases."""
    table = forecast_table(store.state)
    rows = [
        {"region": region.value, "sku_id": sku_id, "next7d": fc.next7d, "next28d": fc.next28d}
        for (region, sku_id), fc in table.items()
    ]
    pivot = (
        pd.DataFrame(rows).pivot(index="region", columns="sku_id", values="next7d")
        if rows else pd.DataFrame()
    )
    return {
        "forecasts": rows,
        "next7d_by_region": {
            region: {sku: int(v) for sku, v in cols.items()}
            for region, cols in pivot.to_dict(orient="index").items()
        },
    }
