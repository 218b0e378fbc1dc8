"""Headline KPIs for the control tower."""
from dataclasses import dataclass

from app.constants import NodeType, Priority, REGIONS, ShipmentStatus
from utils.format import clamp, round_half_up

from .demand import forecast_demand
from .risk import stockout_threshold
from .schema import DemoState

DEFAULT_OTIF = 0.95
DEFAULT_FILL_RATE = 0.92
DEFAULT_TURNS = 9.0
TURNS_MIN, TURNS_MAX = 3.0, 18.0
EXPEDITE_COST_PER_LATE_PROTECT = 18_000


@dataclass(frozen=True)
class KPIs:
    otif: float
    fill_rate: float
    inventory_turns: float
    expedite_spend: int
    service_risk_index: float   # 0..1


def compute_kpis(state: DemoState) -> KPIs:
    delivered = sum(1 for s in state.shipments if s.status == ShipmentStatus.DELIVERED)
    late = sum(1 for s in state.shipments if s.status == ShipmentStatus.LATE)
    arrived = delivered + late
    otif = delivered / arrived if arrived else DEFAULT_OTIF

    # Fill rate proxy: share of DC/SKU rows above the stockout cover threshold
    nodes = state.node_by_id()
    ok = total = 0
    for inv in state.inventory:
        node = nodes.get(inv.node_id)
        if node is None or node.type != NodeType.DC:
            continue
        daily = forecast_demand(state.demand_history, node.region, inv.sku_id).daily
        doc = (inv.on_hand + inv.in_transit) / daily
        total += 1
        if doc >= stockout_threshold(inv.target_days_cover):
            ok += 1
    fill_rate = ok / total if total else DEFAULT_FILL_RATE

    total_on_hand = sum(i.on_hand for i in state.inventory)
    weekly = sum(
        forecast_demand(state.demand_history, region, sku.id).next7d
        for sku in state.skus
        for region in REGIONS
    )
    turns = (weekly * 52) / total_on_hand if total_on_hand else DEFAULT_TURNS

    late_protect = sum(
        1 for s in state.shipments
        if s.priority == Priority.PROTECT and s.status == ShipmentStatus.LATE
    )

    low_doc = total - ok
    risk = min(100, round_half_up((late * 3 + low_doc * 2) / max(1, total) * 100))

    return KPIs(
        otif=otif,
        fill_rate=fill_rate,
        inventory_turns=clamp(turns, TURNS_MIN, TURNS_MAX),
        expedite_spend=late_protect * EXPEDITE_COST_PER_LATE_PROTECT,
        service_risk_index=risk / 100,
    )
