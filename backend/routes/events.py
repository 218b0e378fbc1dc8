"""
Audit event stub.

Accepts and acknowledges audit events without storing them; placeholder for
a governed audit service.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api/v1/events", tags=["Audit"])
logger = logging.getLogger(__name__)

STUB_NOTE = "stub (no persistence)"


@router.get("")
async def list_events():
    return {"ok": True, "note": STUB_NOTE, "events": []}


@router.post("")
async def post_event(request: Request):
    try:
        body: Dict[str, Any] = await request.json()
    except ValueError:
        body = {}
    logger.debug(f"Audit event received (not stored): {body}")
    return {"ok": True, "note": STUB_NOTE, "received": body}
