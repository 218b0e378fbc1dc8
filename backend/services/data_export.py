"""
Data explorer and export views over a DemoState.

  state_snapshot()   — full JSON snapshot (download format)
  explorer_tables()  — per-entity previews with row counts
  lane_flows()       — in-flight quantity per lane, labelled by flow kind
"""
import logging
from typing import Any, Dict, List

import pandas as pd

from app.constants import ShipmentStatus
from simulation.data_generator import flow_kind
from simulation.schema import DemoState, record_to_dict, state_to_dict

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 30
DEMAND_TAIL_ROWS = 40
IN_FLIGHT = (ShipmentStatus.PLANNED, ShipmentStatus.IN_TRANSIT, ShipmentStatus.LATE)


def state_snapshot(state: DemoState) -> Dict[str, Any]:
    return state_to_dict(state)


def _table(records, limit=None, tail=False) -> Dict[str, Any]:
    rows = [record_to_dict(r) for r in records]
    if limit is not None:
        shown = rows[-limit:] if tail else rows[:limit]
    else:
        shown = rows
    return {"rows": shown, "count": len(rows)}


def explorer_tables(state: DemoState) -> Dict[str, Dict[str, Any]]:
    return {
        "Nodes":     _table(state.nodes),
        "SKUs":      _table(state.skus),
        "Carriers":  _table(state.carriers),
        "Lanes":     _table(state.lanes, PREVIEW_ROWS),
        "Shipments": _table(state.shipments, PREVIEW_ROWS),
        "Inventory": _table(state.inventory, PREVIEW_ROWS),
        "Demand":    _table(state.demand_history, DEMAND_TAIL_ROWS, tail=True),
    }


def shipments_frame(state: DemoState) -> pd.DataFrame:
    """Shipments joined to their lane endpoints (one row per shipment)."""
    nodes = state.node_by_id()
    lanes = state.lane_by_id()
    rows = []
    for sh in state.shipments:
        lane = lanes.get(sh.lane_id)
        if lane is None:
            continue
        origin, dest = nodes.get(lane.origin_id), nodes.get(lane.dest_id)
        if origin is None or dest is None:
            continue
        kind = flow_kind(origin, dest)
        rows.append({
            "shipment_id": sh.id,
            "lane_id": lane.id,
            "origin_id": origin.id,
            "dest_id": dest.id,
            "kind": kind.value if kind else None,
            "mode": lane.mode.value,
            "status": sh.status.value,
            "qty_cases": sh.qty_cases,
        })
    return pd.DataFrame(
        rows,
        columns=["shipment_id", "lane_id", "origin_id", "dest_id", "kind", "mode", "status", "qty_cases"],
    )


def lane_flows(state: DemoState, include_dc_to_dc: bool = True) -> List[Dict[str, Any]]:
    """
    In-flight cases per lane (PLANNED / IN_TRANSIT / LATE), largest first.
    Inter-DC pooling lanes can be excluded.
    """
    df = shipments_frame(state)
    df = df[df["status"].isin([s.value for s in IN_FLIGHT]) & df["kind"].notna()]
    if not include_dc_to_dc:
        df = df[df["kind"] != "DC_TO_DC"]
    if df.empty:
        return []

    flows = (
        df.groupby(["lane_id", "origin_id", "dest_id", "kind", "mode"], as_index=False)
        .agg(qty_cases=("qty_cases", "sum"), shipments=("shipment_id", "count"))
        .sort_values(["qty_cases", "lane_id"], ascending=[False, True])
    )
    flows["qty_cases"] = flows["qty_cases"].astype(int)
    flows["shipments"] = flows["shipments"].astype(int)
    return flows.to_dict(orient="records")
