"""
Transportation API Routes
GET  /api/v1/transport/shipments               — shipments (optionally by status)
GET  /api/v1/transport/shipments/{id}/options  — re-tender options for one shipment
POST /api/v1/transport/retender                — execute a re-tender under policy
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.constants import ShipmentStatus
from app.dependencies import get_store
from services.demo_store import DemoStore, UnknownShipmentError

router = APIRouter(prefix="/api/v1/transport", tags=["Transportation"])
logger = logging.getLogger(__name__)


class RetenderRequest(BaseModel):
    shipment_id: str = Field(..., min_length=1)
    carrier_id:  str = Field(..., min_length=1, description="Carrier id or EXPEDITE")


@router.get("/shipments")
async def list_shipments(status: Optional[ShipmentStatus] = None, store: DemoStore = Depends(get_store)):
    shipments = [s for s in store.state.shipments if status is None or s.status == status]
    return {"count": len(shipments), "shipments": shipments}


@router.get("/shipments/{shipment_id}/options")
async def get_retender_options(shipment_id: str, store: DemoStore = Depends(get_store)):
    try:
        quote = store.retender_options(shipment_id)
    except UnknownShipmentError:
        raise HTTPException(status_code=404, detail=f"Unknown shipment: {shipment_id}")
    return {"shipment": quote.shipment, "lane": quote.lane, "options": quote.options}


@router.post("/retender")
async def execute_retender(req: RetenderRequest, store: DemoStore = Depends(get_store)):
    try:
        result = store.execute_retender(req.shipment_id, req.carrier_id)
    except UnknownShipmentError:
        raise HTTPException(status_code=404, detail=f"Unknown shipment: {req.shipment_id}")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.exception("Re-tender failed")
        raise HTTPException(status_code=500, detail=str(exc))
    logs = store.logs
    return {
        "ok": result.ok,
        "reason": result.reason,
        "log": logs[0].to_dict() if logs and result.changed else None,
        "spend_today": store.spend_today(),
    }
