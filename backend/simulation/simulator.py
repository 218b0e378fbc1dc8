"""
Daily stepping engine.

One simulated day, in order:

  1. Shipments due today are delivered or slip (scenario + priority late risk)
  2. Regional demand is drawn and consumed at the region's DC
  3. Shipments delivered today are received into DC on-hand
  4. Demand history is appended (rolling window)
  5. Six new PLANNED shipments are tendered
  6. Fuel index drifts, clamped to its band

Each day draws from SeededRandom.for_day(seed, day), so a step depends only
on the snapshot it is given.
"""
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from app.constants import FlowKind, NodeType, Priority, REGIONS, Region, ShipmentStatus, SKUFamily
from utils.format import clamp, round_half_up

from .data_generator import shipment_eta_days
from .rng import SeededRandom
from .schema import FUEL_INDEX_MAX, FUEL_INDEX_MIN, DemandPoint, DemoState, Shipment, shipment_id

logger = logging.getLogger(__name__)

# ── Scenario modifiers ───────────────────────────────────────────────────────

DEMAND_SPIKE_MULT = 1.18
DC_OUTAGE_CAPACITY_MULT = 0.65
DISRUPTION_DELAY_SHOCK = 0.10
CYBER_DELAY_SHOCK = 0.06
PROTECT_DELAY_ADJ = 0.02
MAX_LATE_PROB = 0.25

# ── Daily demand ─────────────────────────────────────────────────────────────

DAILY_BASE_DEMAND: Dict[SKUFamily, float] = {
    SKUFamily.CLEANING:   200,
    SKUFamily.BAGS:       150,
    SKUFamily.FILTRATION:  95,
    SKUFamily.CONDIMENTS: 120,
}

DAILY_REGION_ADJ: Dict[Region, float] = {
    Region.NORTHEAST: 1.07,
    Region.WEST:      1.02,
    Region.SOUTHEAST: 1.00,
    Region.MIDWEST:   0.98,
    Region.SOUTHWEST: 0.96,
}

DAILY_NOISE = 0.18
HISTORY_WINDOW = 140
NEW_SHIPMENTS_PER_DAY = 6
SHIPMENT_WINDOW = 90
FUEL_DRIFT = 0.02


def _advance_shipments(state: DemoState, rng: SeededRandom, today: int) -> Tuple[List[Shipment], List[Shipment]]:
    """Return (all shipments, shipments delivered today)."""
    shock = (
        (DISRUPTION_DELAY_SHOCK if state.scenario.carrier_disruption else 0.0)
        + (CYBER_DELAY_SHOCK if state.scenario.cyber_degraded_mode else 0.0)
    )
    shipments: List[Shipment] = []
    delivered: List[Shipment] = []
    for sh in state.shipments:
        if sh.status == ShipmentStatus.DELIVERED:
            shipments.append(sh)
            continue
        if today >= sh.eta_day:
            late_prob = clamp(shock + (PROTECT_DELAY_ADJ if sh.priority == Priority.PROTECT else 0.0), 0, MAX_LATE_PROB)
            if rng.random() < late_prob:
                sh = replace(sh, status=ShipmentStatus.LATE, late_by_days=max(sh.late_by_days, 1 + rng.below(2)))
            else:
                sh = replace(sh, status=ShipmentStatus.DELIVERED, late_by_days=0)
                delivered.append(sh)
        elif sh.status == ShipmentStatus.PLANNED:
            sh = replace(sh, status=ShipmentStatus.IN_TRANSIT)
        shipments.append(sh)
    return shipments, delivered


def _draw_demand(state: DemoState, rng: SeededRandom, today: int) -> List[DemandPoint]:
    mult = DEMAND_SPIKE_MULT if state.scenario.demand_spike else 1.0
    points = []
    for sku in state.skus:
        for region in REGIONS:
            noise = 1 + (rng.random() - 0.5) * DAILY_NOISE
            demand = max(0, round_half_up(DAILY_BASE_DEMAND[sku.family] * DAILY_REGION_ADJ[region] * noise * mult))
            points.append(DemandPoint(day=today, region=region, sku_id=sku.id, demand_cases=demand))
    return points


def _pick_id(rng: SeededRandom, ids: List[str]) -> Optional[str]:
    return ids[rng.below(len(ids))] if ids else None


def _tender_new_shipments(state: DemoState, rng: SeededRandom, today: int, seq: int) -> Tuple[List[Shipment], int]:
    dcs = [n.id for n in state.nodes if n.type == NodeType.DC]
    plants = [n.id for n in state.nodes if n.type == NodeType.PLANT]
    customers = [n.id for n in state.nodes if n.type == NodeType.CUSTOMER]
    lane_by_pair = state.lane_by_pair()
    created: List[Shipment] = []
    if not state.skus or not state.carriers:
        return created, seq

    for _ in range(NEW_SHIPMENTS_PER_DAY):
        r = rng.random()
        if r < 0.60:
            kind = FlowKind.DC_TO_CUST
        elif r < 0.90:
            kind = FlowKind.PLANT_TO_DC
        else:
            kind = FlowKind.DC_TO_DC
        sku = state.skus[rng.below(len(state.skus))]

        if kind == FlowKind.DC_TO_CUST:
            origin, dest = _pick_id(rng, dcs), _pick_id(rng, customers)
        elif kind == FlowKind.PLANT_TO_DC:
            origin, dest = _pick_id(rng, plants), _pick_id(rng, dcs)
        else:
            origin, dest = _pick_id(rng, dcs), _pick_id(rng, dcs)
            if dest is not None and dest == origin:
                dest = dcs[(dcs.index(dest) + 1) % len(dcs)]

        lane = lane_by_pair.get((origin, dest))
        if lane is None:
            continue
        priority = Priority.PROTECT if rng.random() < 0.2 else Priority.STANDARD
        qty = 120 + rng.below(400)
        carrier = state.carriers[rng.below(len(state.carriers))]
        created.append(Shipment(
            id=shipment_id(seq),
            lane_id=lane.id,
            carrier_id=carrier.id,
            sku_id=sku.id,
            qty_cases=qty,
            ship_day=today,
            eta_day=today + shipment_eta_days(lane),
            status=ShipmentStatus.PLANNED,
            late_by_days=0,
            priority=priority,
        ))
        seq += 1
    return created, seq


def step_one_day(state: DemoState) -> DemoState:
    rng = SeededRandom.for_day(state.seed, state.today)
    today = state.today + 1

    shipments, delivered = _advance_shipments(state, rng, today)
    demand_today = _draw_demand(state, rng, today)

    inv_by_key = state.inventory_by_key()
    dc_by_region = {n.region: n for n in state.nodes if n.type == NodeType.DC}
    capacity = DC_OUTAGE_CAPACITY_MULT if state.scenario.dc_outage else 1.0

    for dp in demand_today:
        dc = dc_by_region.get(dp.region)
        inv = inv_by_key.get((dc.id, dp.sku_id)) if dc is not None else None
        if inv is None:
            continue
        fulfilled = round_half_up(dp.demand_cases * capacity)
        inv_by_key[(dc.id, dp.sku_id)] = replace(inv, on_hand=max(0, inv.on_hand - fulfilled))

    lanes = state.lane_by_id()
    nodes = state.node_by_id()
    for sh in delivered:
        lane = lanes.get(sh.lane_id)
        dest = nodes.get(lane.dest_id) if lane is not None else None
        if dest is None or dest.type != NodeType.DC:
            continue
        inv = inv_by_key.get((dest.id, sh.sku_id))
        if inv is None:
            continue
        inv_by_key[(dest.id, sh.sku_id)] = replace(
            inv,
            on_hand=inv.on_hand + sh.qty_cases,
            in_transit=max(0, inv.in_transit - sh.qty_cases),
        )

    history = (state.demand_history + tuple(demand_today))[-HISTORY_WINDOW:]
    new_shipments, seq = _tender_new_shipments(state, rng, today, state.shipment_seq)
    fuel = clamp(state.fuel_index + (rng.random() - 0.5) * FUEL_DRIFT, FUEL_INDEX_MIN, FUEL_INDEX_MAX)

    logger.debug(
        "Day %d: delivered=%d late=%d tendered=%d fuel=%.3f",
        today, len(delivered),
        sum(1 for s in shipments if s.status == ShipmentStatus.LATE),
        len(new_shipments), fuel,
    )
    return replace(
        state,
        today=today,
        shipments=tuple((shipments + new_shipments)[-SHIPMENT_WINDOW:]),
        inventory=tuple(inv_by_key[(i.node_id, i.sku_id)] for i in state.inventory),
        demand_history=history,
        fuel_index=fuel,
        shipment_seq=seq,
    )


def step_simulation(state: DemoState, days: int = 1) -> DemoState:
    """Advance ``days`` single-day iterations (days < 1 returns the state as-is)."""
    for _ in range(max(0, int(days))):
        state = step_one_day(state)
    return state
