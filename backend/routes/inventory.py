"""
Inventory API Routes
GET  /api/v1/inventory/positions          — DC/SKU positions with days-of-cover
GET  /api/v1/inventory/rebalance          — ranked transfer proposals
POST /api/v1/inventory/rebalance/execute  — execute a transfer batch under policy
"""

import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.constants import NodeType
from app.dependencies import get_store
from services.demo_store import DemoStore
from simulation.demand import forecast_demand
from simulation.inventory import Transfer, days_of_cover
from simulation.risk import stockout_threshold

router = APIRouter(prefix="/api/v1/inventory", tags=["Inventory"])
logger = logging.getLogger(__name__)


# ── Request schemas ────────────────────────────────────────────────────────

class TransferIn(BaseModel):
    from_node_id:      str
    to_node_id:        str
    sku_id:            str
    qty_cases:         int = Field(..., ge=1, le=100_000)
    rationale:         str = ""
    # Advisory only: the store re-prices every move before gating
    est_value:         int = Field(0, description="Gross benefit ($)")
    est_transfer_cost: int = Field(0, ge=0, description="Cost to move ($)")
    est_transit_days:  int = Field(1, ge=1, le=60)
    net_value:         Optional[int] = Field(None, description="Defaults to est_value − est_transfer_cost")

    def to_transfer(self) -> Transfer:
        net = self.net_value if self.net_value is not None else self.est_value - self.est_transfer_cost
        return Transfer(
            from_node_id=self.from_node_id,
            to_node_id=self.to_node_id,
            sku_id=self.sku_id,
            qty_cases=self.qty_cases,
            rationale=self.rationale,
            est_value=self.est_value,
            est_transfer_cost=self.est_transfer_cost,
            est_transit_days=self.est_transit_days,
            net_value=net,
        )


class ExecuteRebalanceRequest(BaseModel):
    transfers: Optional[List[TransferIn]] = Field(
        None, description="Batch to execute; the current top proposals when omitted",
    )
    sku_id: Optional[str] = Field(None, description="Restrict proposals when transfers are omitted")


# ── Routes ─────────────────────────────────────────────────────────────────

@router.get("/positions")
async def get_positions(store: DemoStore = Depends(get_store)):
    state = store.state
    nodes = state.node_by_id()
    rows = []
    for inv in state.inventory:
        node = nodes.get(inv.node_id)
        if node is None or node.type != NodeType.DC:
            continue
        fc = forecast_demand(state.demand_history, node.region, inv.sku_id)
        doc = days_of_cover(inv, fc.daily)
        rows.append({
            **asdict(inv),
            "node_name": node.name,
            "region": node.region.value,
            "forecast_next7d": fc.next7d,
            "days_of_cover": round(doc, 1),
            "below_min_cover": doc < stockout_threshold(inv.target_days_cover),
        })
    return {"today": state.today, "positions": rows}


@router.get("/rebalance")
async def propose_rebalance(sku_id: Optional[str] = None, store: DemoStore = Depends(get_store)):
    transfers = store.propose_rebalance(sku_id)
    total_cost = sum(t.est_transfer_cost for t in transfers)
    return {
        "transfers": transfers,
        "total_cost": total_cost,
        "total_net_value": sum(t.net_value for t in transfers),
        "needs_extra_approval": store.needs_extra_approval(total_cost),
    }


@router.post("/rebalance/execute")
async def execute_rebalance(req: ExecuteRebalanceRequest, store: DemoStore = Depends(get_store)):
    if req.transfers is None:
        batch = store.propose_rebalance(req.sku_id)
    else:
        if any(t.from_node_id == t.to_node_id for t in req.transfers):
            raise HTTPException(status_code=400, detail="Transfer origin and destination must differ")
        batch = [t.to_transfer() for t in req.transfers]
    try:
        result = store.execute_rebalance(batch)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.exception("Rebalance execution failed")
        raise HTTPException(status_code=500, detail=str(exc))
    logs = store.logs
    return {
        "ok": result.ok,
        "reason": result.reason,
        "log": logs[0].to_dict() if logs and result.changed else None,
        "spend_today": store.spend_today(),
    }
