"""
Carrier re-tender cost model.

For one shipment, each carrier (plus a synthetic EXPEDITE option) is priced as

    freight   = miles · cpm · fuel · rate_adj
    late_prob = clamp(1 − on_time + 0.08·disruption + 0.03·intermodal + 0.01·protect, 0.03, 0.35)
    penalty   = late_prob · penalty_per_day · days_late_if_late
    total     = freight + penalty

and options are ranked by expected total, cheapest first.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from app.constants import EXPEDITE_CARRIER_ID, LaneMode, PREMIUM_CARRIER_ID, Priority, ShipmentStatus
from utils.format import clamp, round_half_up

from .schema import Carrier, DemoState, Lane, Shipment

logger = logging.getLogger(__name__)

PENALTY_PER_DAY = {Priority.PROTECT: 4200, Priority.STANDARD: 1600}
DAYS_LATE_IF_LATE = {Priority.PROTECT: 1.3, Priority.STANDARD: 1.1}

DISRUPTION_LATE_ADJ = 0.08
INTERMODAL_LATE_ADJ = 0.03
PROTECT_LATE_ADJ = 0.01
LATE_PROB_MIN, LATE_PROB_MAX = 0.03, 0.35

EXPEDITE_FREIGHT_MULT = 1.55
EXPEDITE_LATE_PROB = 0.05
MAX_OPTIONS = 5


@dataclass(frozen=True)
class RetenderOption:
    carrier_id: str
    exp_cost: int
    exp_late_prob: float
    exp_penalty: int
    exp_total: int
    rationale: str


@dataclass(frozen=True)
class RetenderQuote:
    shipment: Optional[Shipment] = None
    lane: Optional[Lane] = None
    options: List[RetenderOption] = field(default_factory=list)


def base_freight(state: DemoState, lane: Lane) -> float:
    return lane.miles * lane.base_cost_per_mile * state.fuel_index


def late_probability(state: DemoState, lane: Lane, shipment: Shipment, carrier: Carrier) -> float:
    p = 1 - carrier.base_on_time
    if state.scenario.carrier_disruption:
        p += DISRUPTION_LATE_ADJ
    if lane.mode == LaneMode.INTERMODAL:
        p += INTERMODAL_LATE_ADJ
    if shipment.priority == Priority.PROTECT:
        p += PROTECT_LATE_ADJ
    return clamp(p, LATE_PROB_MIN, LATE_PROB_MAX)


def retender_quote(state: DemoState, shipment_id: str) -> RetenderQuote:
    """Shipment, lane and ranked options; empty options when either is missing."""
    shipment = next((s for s in state.shipments if s.id == shipment_id), None)
    if shipment is None:
        return RetenderQuote()
    lane = state.lane_by_id().get(shipment.lane_id)
    if lane is None:
        return RetenderQuote(shipment=shipment)

    freight = base_freight(state, lane)
    per_day = PENALTY_PER_DAY[shipment.priority]
    days_late = DAYS_LATE_IF_LATE[shipment.priority]

    options: List[RetenderOption] = []
    for carrier in state.carriers:
        lp = late_probability(state, lane, shipment, carrier)
        cost = freight * carrier.base_rate_adj
        penalty = lp * per_day * days_late
        options.append(RetenderOption(
            carrier_id=carrier.id,
            exp_cost=round_half_up(cost),
            exp_late_prob=lp,
            exp_penalty=round_half_up(penalty),
            exp_total=round_half_up(cost + penalty),
            rationale=(
                f"Expected total = freight ({round_half_up(cost)}) "
                f"+ risk-adjusted penalty ({round_half_up(penalty)})."
            ),
        ))

    expedite_cost = freight * EXPEDITE_FREIGHT_MULT
    expedite_penalty = EXPEDITE_LATE_PROB * per_day
    options.append(RetenderOption(
        carrier_id=EXPEDITE_CARRIER_ID,
        exp_cost=round_half_up(expedite_cost),
        exp_late_prob=EXPEDITE_LATE_PROB,
        exp_penalty=round_half_up(expedite_penalty),
        exp_total=round_half_up(expedite_cost + expedite_penalty),
        rationale="Use premium expedite for a protected subset; caps OTIF risk at higher freight cost.",
    ))

    # Stable sort: ties keep carrier order, EXPEDITE last among equals
    options.sort(key=lambda o: o.exp_total)
    return RetenderQuote(shipment=shipment, lane=lane, options=options[:MAX_OPTIONS])


def retender_options(state: DemoState, shipment_id: str) -> List[RetenderOption]:
    return retender_quote(state, shipment_id).options


def apply_retender(state: DemoState, shipment_id: str, carrier_id: str) -> DemoState:
    """
    Reassign a shipment's carrier, clearing lateness and putting it back in
    transit. EXPEDITE books the premium carrier. DELIVERED shipments and
    unknown carriers leave the state unchanged.
    """
    target = PREMIUM_CARRIER_ID if carrier_id == EXPEDITE_CARRIER_ID else carrier_id
    if target not in state.carrier_by_id():
        logger.debug("Re-tender ignored: unknown carrier %s", carrier_id)
        return state

    changed = False
    shipments = []
    for sh in state.shipments:
        if sh.id == shipment_id and sh.status != ShipmentStatus.DELIVERED:
            sh = replace(sh, carrier_id=target, late_by_days=0, status=ShipmentStatus.IN_TRANSIT)
            changed = True
        shipments.append(sh)

    if not changed:
        return state
    return replace(state, shipments=tuple(shipments))
