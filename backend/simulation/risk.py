"""
Exception scan: stockout, excess, late-shipment and lane-cost-outlier risks,
each priced as weekly value-at-risk and scored 0–100.

Ordering (value-at-risk desc, then risk score desc) is what the control
tower shows first; it is deterministic for a given state.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from app.constants import ExceptionType, NodeType, Priority, Region, ShipmentStatus
from utils.format import clamp, round_half_up

from .demand import forecast_demand
from .schema import DemoState
from .transport import PENALTY_PER_DAY

MAX_EXCEPTIONS = 18
LANE_OUTLIERS = 6
STOCKOUT_MIN_DOC = 6
STOCKOUT_TARGET_SHARE = 0.55
EXCESS_BAND_DAYS = 16


@dataclass(frozen=True)
class RecommendedAction:
    label: str
    impact: str
    execute_hint: str


@dataclass(frozen=True)
class SupplyException:
    id: str
    type: ExceptionType
    title: str
    detail: str
    risk_score: int          # 0..100
    est_value_at_risk: int   # $ per week
    recommended_actions: List[RecommendedAction] = field(default_factory=list)
    region: Optional[Region] = None
    node_id: Optional[str] = None
    sku_id: Optional[str] = None
    shipment_id: Optional[str] = None
    lane_id: Optional[str] = None


STOCKOUT_ACTIONS = [
    RecommendedAction("Rebalance from donor DC", "Protect service; reduce lost sales risk", "RUN_REBALANCE"),
    RecommendedAction("Prioritize inbound & wave protect orders", "Reduce stockout probability", "PRIORITIZE_INBOUND"),
]
EXCESS_ACTIONS = [
    RecommendedAction("Rebalance to deficit DC", "Reduce carrying + obsolescence risk", "RUN_REBALANCE"),
    RecommendedAction("Suggest promotion/shift mix", "Pull demand forward; reduce inventory exposure", "PROMO_SUGGEST"),
]
LATE_ACTIONS = [
    RecommendedAction("Re-tender to alternate carrier", "Recover service; cap penalties", "RETENDER"),
    RecommendedAction("Expedite partial (protect orders)", "Reduce OTIF hit", "EXPEDITE_PARTIAL"),
]
LANE_ACTIONS = [
    RecommendedAction("Consolidate loads / pooling", "Reduce cost-per-case", "CONSOLIDATE"),
    RecommendedAction("Shift mode or carrier mix", "Lower expected freight cost", "MODE_SHIFT"),
]


def stockout_threshold(target_days_cover: float) -> float:
    return max(STOCKOUT_MIN_DOC, target_days_cover * STOCKOUT_TARGET_SHARE)


def _inventory_exceptions(state: DemoState) -> List[SupplyException]:
    nodes = state.node_by_id()
    skus = state.sku_by_id()
    out: List[SupplyException] = []

    for inv in state.inventory:
        node = nodes.get(inv.node_id)
        sku = skus.get(inv.sku_id)
        if node is None or sku is None or node.type != NodeType.DC:
            continue
        fc = forecast_demand(state.demand_history, node.region, inv.sku_id)
        daily = fc.daily
        doc = (inv.on_hand + inv.in_transit) / daily
        target = inv.target_days_cover

        if doc < stockout_threshold(target):
            lost_sales_risk = clamp((target - doc) / target, 0, 1) if target else 1.0
            score = clamp(55 + 45 * lost_sales_risk + sku.perish_risk * 10, 0, 100)
            out.append(SupplyException(
                id=f"EX_INV_SO_{inv.node_id}_{inv.sku_id}",
                type=ExceptionType.STOCKOUT_RISK,
                title=f"Stockout risk: {sku.name} @ {node.name}",
                detail=(
                    f"Days-of-cover {doc:.1f} vs target {target}. "
                    f"Forecast next 7d: {fc.next7d} cases."
                ),
                region=node.region, node_id=inv.node_id, sku_id=inv.sku_id,
                risk_score=round_half_up(score),
                est_value_at_risk=round_half_up(fc.next7d * sku.margin_per_case * (0.25 + 0.75 * lost_sales_risk)),
                recommended_actions=list(STOCKOUT_ACTIONS),
            ))
        elif doc > target + EXCESS_BAND_DAYS:
            excess_ratio = clamp((doc - (target + 10)) / (target + 10), 0, 1)
            score = clamp(45 + 55 * excess_ratio, 0, 100)
            carry = round_half_up((doc - target) * daily * (0.7 + sku.perish_risk) * 0.6)
            out.append(SupplyException(
                id=f"EX_INV_EX_{inv.node_id}_{inv.sku_id}",
                type=ExceptionType.EXCESS_RISK,
                title=f"Excess risk: {sku.name} @ {node.name}",
                detail=f"Days-of-cover {doc:.1f} above target {target}.",
                region=node.region, node_id=inv.node_id, sku_id=inv.sku_id,
                risk_score=round_half_up(score),
                est_value_at_risk=carry,
                recommended_actions=list(EXCESS_ACTIONS),
            ))
    return out


def _late_shipment_exceptions(state: DemoState) -> List[SupplyException]:
    nodes = state.node_by_id()
    skus = state.sku_by_id()
    lanes = state.lane_by_id()
    out: List[SupplyException] = []

    for sh in state.shipments:
        if sh.status != ShipmentStatus.LATE:
            continue
        lane = lanes.get(sh.lane_id)
        sku = skus.get(sh.sku_id)
        if lane is None or sku is None:
            continue
        origin, dest = nodes.get(lane.origin_id), nodes.get(lane.dest_id)
        if origin is None or dest is None:
            continue

        protect = sh.priority == Priority.PROTECT
        score = clamp(60 + sh.late_by_days * 12 + (10 if protect else 0), 0, 100)
        var = PENALTY_PER_DAY[sh.priority] * sh.late_by_days + sku.margin_per_case * sh.qty_cases * 0.05
        out.append(SupplyException(
            id=f"EX_LATE_{sh.id}",
            type=ExceptionType.LATE_SHIPMENT_RISK,
            title=f"Late shipment: {sku.name} ({sh.priority.value})",
            detail=(
                f"{origin.name} → {dest.name}. Late by {sh.late_by_days}d. "
                "Carrier action recommended."
            ),
            shipment_id=sh.id, lane_id=sh.lane_id,
            risk_score=round_half_up(score),
            est_value_at_risk=round_half_up(var),
            recommended_actions=list(LATE_ACTIONS),
        ))
    return out


def _lane_cost_exceptions(state: DemoState) -> List[SupplyException]:
    nodes = state.node_by_id()
    priced = sorted(
        ((lane, lane.miles * lane.base_cost_per_mile * state.fuel_index) for lane in state.lanes),
        key=lambda pair: pair[1],
        reverse=True,
    )
    out: List[SupplyException] = []
    for lane, cost in priced[:LANE_OUTLIERS]:
        origin, dest = nodes.get(lane.origin_id), nodes.get(lane.dest_id)
        if origin is None or dest is None:
            continue
        score = clamp(35 + (cost / 6000) * 25, 0, 100)
        out.append(SupplyException(
            id=f"EX_LANE_{lane.id}",
            type=ExceptionType.LANE_COST_OUTLIER,
            title=f"Lane cost outlier: {origin.name} → {dest.name}",
            detail=(
                f"Mode {lane.mode.value}. Estimated cost per move: ~${round_half_up(cost)} "
                f"(fuel index {state.fuel_index:.2f})."
            ),
            lane_id=lane.id,
            risk_score=round_half_up(score),
            est_value_at_risk=round_half_up(cost * 0.12),
            recommended_actions=list(LANE_ACTIONS),
        ))
    return out


def compute_exceptions(state: DemoState) -> List[SupplyException]:
    """Top exceptions by weekly value-at-risk, ties broken by risk score."""
    found = (
        _inventory_exceptions(state)
        + _late_shipment_exceptions(state)
        + _lane_cost_exceptions(state)
    )
    found.sort(key=lambda e: (-e.est_value_at_risk, -e.risk_score))
    return found[:MAX_EXCEPTIONS]
