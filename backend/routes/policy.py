"""
Policy & Audit API Routes
GET /api/v1/policy       — current action policy + today's spend
PUT /api/v1/policy       — partial policy update
GET /api/v1/policy/logs  — audit log, newest first
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from app.dependencies import get_store
from services.demo_store import DemoStore

router = APIRouter(prefix="/api/v1/policy", tags=["Policy"])
logger = logging.getLogger(__name__)


class PolicyUpdate(BaseModel):
    daily_action_spend_cap: Optional[float] = Field(None, ge=0, description="Daily action spend cap ($)")
    max_transfers_per_exec: Optional[int]   = Field(None, ge=0, le=50)
    require_approval_over:  Optional[float] = Field(None, ge=0, description="Extra-approval threshold ($)")
    allow_auto_execute:     Optional[bool]  = None


def _policy_view(store: DemoStore):
    spent = store.spend_today()
    policy = store.policy
    return {
        "policy": asdict(policy),
        "spend_today": spent,
        "cap_remaining": policy.daily_action_spend_cap - spent,
    }


@router.get("")
async def get_policy(store: DemoStore = Depends(get_store)):
    return _policy_view(store)


@router.put("")
async def update_policy(req: PolicyUpdate, store: DemoStore = Depends(get_store)):
    changes = {k: v for k, v in req.model_dump().items() if v is not None}
    try:
        store.set_policy(**changes)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _policy_view(store)


@router.get("/logs")
async def get_logs(limit: int = Query(50, ge=1, le=200), store: DemoStore = Depends(get_store)):
    logs = store.logs
    return {"count": len(logs), "logs": [log.to_dict() for log in logs[:limit]]}
