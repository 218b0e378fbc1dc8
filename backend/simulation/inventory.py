"""
Days-of-cover rebalancing across DCs.

propose_rebalancing() pairs surplus DCs with deficit DCs per SKU (greedy,
largest first) and ranks the moves by net value. price_batch() re-prices a
requested batch against a snapshot and apply_transfers() executes it,
returning the new snapshot.

  doc     = (on_hand + in_transit) / max(1, next7d / 7)
  surplus = ⌊(doc − target − 8) · daily⌋   donor    if > 60
  deficit = ⌊(target − doc) · daily⌋       receiver if > 60
  cost    = round(miles · cpm · fuel + 180)   (lane)  | round(miles · 2.25 + 180)
  benefit = round(qty · margin · 0.25)
"""
import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple

from app.constants import INTERMODAL_CARRIER_ID, LaneMode, NodeType, Priority, ShipmentStatus
from utils.format import round_half_up

from .demand import forecast_demand
from .schema import DemoState, InventoryPosition, Lane, Node, Shipment, shipment_id

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3958.8
SURPLUS_BUFFER_DAYS = 8
MIN_MOVE_CASES = 60
MAX_MOVE_CASES = 900
HANDLING_FEE = 180
FALLBACK_COST_PER_MILE = 2.25
BENEFIT_MARGIN_SHARE = 0.25
SHIPMENT_WINDOW = 120

# Transfer speeds (miles/day)
TRANSFER_SPEED: Dict[LaneMode, float] = {LaneMode.TRUCK: 520, LaneMode.INTERMODAL: 430}


@dataclass(frozen=True)
class Transfer:
    from_node_id: str
    to_node_id: str
    sku_id: str
    qty_cases: int
    rationale: str
    est_value: int            # gross benefit ($)
    est_transfer_cost: int    # $ to move
    est_transit_days: int
    net_value: int            # est_value − est_transfer_cost


def haversine_miles(a: Node, b: Node) -> float:
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(h))


def transit_days(lane: Lane) -> int:
    return max(1, round_half_up(lane.miles / TRANSFER_SPEED[lane.mode]))


def days_of_cover(inv: InventoryPosition, daily: float) -> float:
    return (inv.on_hand + inv.in_transit) / max(1.0, daily)


def get_or_create_lane(
    lanes: Sequence[Lane],
    nodes: Sequence[Node],
    from_node_id: str,
    to_node_id: str,
) -> Tuple[Optional[Lane], bool]:
    """
    Existing lane for the pair, or a synthetic TRUCK lane at the fallback rate.

    Returns ``(lane, created)``; ``(None, False)`` when either node is unknown.
    """
    for lane in lanes:
        if lane.origin_id == from_node_id and lane.dest_id == to_node_id:
            return lane, False

    node_by_id = {n.id: n for n in nodes}
    a, b = node_by_id.get(from_node_id), node_by_id.get(to_node_id)
    if a is None or b is None:
        return None, False

    taken = {l.id for l in lanes}
    seq = len(lanes) + 1
    while f"L{seq:03d}" in taken:
        seq += 1
    lane = Lane(
        id=f"L{seq:03d}",
        origin_id=from_node_id,
        dest_id=to_node_id,
        miles=round_half_up(haversine_miles(a, b)),
        base_cost_per_mile=FALLBACK_COST_PER_MILE,
        mode=LaneMode.TRUCK,
    )
    return lane, True


def price_transfer(
    state: DemoState,
    from_node_id: str,
    to_node_id: str,
    sku_id: str,
    qty: int,
    rationale: str = "",
) -> Optional[Transfer]:
    """
    Cost, benefit and transit time of moving ``qty`` cases of ``sku_id``,
    priced from ``state``. The existing lane is used when there is one,
    otherwise the great-circle distance at the fallback rate.

    Returns None when either node or the SKU is unknown.
    """
    nodes = state.node_by_id()
    sku = state.sku_by_id().get(sku_id)
    a, b = nodes.get(from_node_id), nodes.get(to_node_id)
    if sku is None or a is None or b is None:
        return None

    lane = state.lane_by_pair().get((from_node_id, to_node_id))
    if lane is not None:
        days = transit_days(lane)
        cost = round_half_up(lane.miles * lane.base_cost_per_mile * state.fuel_index + HANDLING_FEE)
    else:
        miles = haversine_miles(a, b)
        days = max(1, round_half_up(miles / TRANSFER_SPEED[LaneMode.TRUCK]))
        cost = round_half_up(miles * FALLBACK_COST_PER_MILE + HANDLING_FEE)

    value = round_half_up(qty * sku.margin_per_case * BENEFIT_MARGIN_SHARE)
    return Transfer(
        from_node_id=from_node_id,
        to_node_id=to_node_id,
        sku_id=sku_id,
        qty_cases=qty,
        rationale=rationale,
        est_value=value,
        est_transfer_cost=cost,
        est_transit_days=days,
        net_value=value - cost,
    )


def price_batch(state: DemoState, transfers: Sequence[Transfer]) -> List[Transfer]:
    """
    Re-price a requested batch against ``state``, ignoring the estimates it
    carries. Quantities are cut to what each donor still holds after the
    earlier moves in the batch; self-moves, unknown positions and moves with
    nothing left to ship are dropped.
    """
    inv_by_key = state.inventory_by_key()
    left = {key: inv.on_hand for key, inv in inv_by_key.items()}
    priced: List[Transfer] = []
    for t in transfers:
        src_key = (t.from_node_id, t.sku_id)
        if t.from_node_id == t.to_node_id:
            continue
        if src_key not in inv_by_key or (t.to_node_id, t.sku_id) not in inv_by_key:
            continue
        qty = min(left[src_key], t.qty_cases)
        if qty <= 0:
            continue
        move = price_transfer(state, t.from_node_id, t.to_node_id, t.sku_id, qty, t.rationale)
        if move is None:
            continue
        left[src_key] -= qty
        priced.append(move)
    return priced


def propose_rebalancing(
    state: DemoState,
    max_transfers: int = 12,
    only_sku_id: Optional[str] = None,
) -> List[Transfer]:
    """Ranked transfer candidates, best net value first, at most ``max_transfers``."""
    inv_by_key = state.inventory_by_key()
    dcs = state.nodes_of_type(NodeType.DC)
    skus = [s for s in state.skus if only_sku_id is None or s.id == only_sku_id]

    transfers: List[Transfer] = []
    for sku in skus:
        donors, receivers = [], []
        for dc in dcs:
            inv = inv_by_key.get((dc.id, sku.id))
            if inv is None:
                continue
            daily = forecast_demand(state.demand_history, dc.region, sku.id).daily
            doc = days_of_cover(inv, daily)
            target = inv.target_days_cover
            surplus = max(0, math.floor((doc - (target + SURPLUS_BUFFER_DAYS)) * daily))
            deficit = max(0, math.floor((target - doc) * daily))
            if surplus > MIN_MOVE_CASES:
                donors.append({"node": dc, "doc": doc, "left": surplus})
            if deficit > MIN_MOVE_CASES:
                receivers.append({"node": dc, "doc": doc, "left": deficit})

        donors.sort(key=lambda d: d["left"], reverse=True)
        receivers.sort(key=lambda r: r["left"], reverse=True)

        di = ri = 0
        while di < len(donors) and ri < len(receivers) and len(transfers) < max_transfers:
            d, r = donors[di], receivers[ri]
            qty = min(d["left"], r["left"], MAX_MOVE_CASES)
            if qty <= 0:
                break

            transfers.append(price_transfer(
                state, d["node"].id, r["node"].id, sku.id, qty,
                rationale=(
                    f"Move surplus cover (donor DOC {d['doc']:.1f}) "
                    f"to deficit node (receiver DOC {r['doc']:.1f})."
                ),
            ))

            d["left"] -= qty
            r["left"] -= qty
            if d["left"] < MIN_MOVE_CASES:
                di += 1
            if r["left"] < MIN_MOVE_CASES:
                ri += 1

    # sorted() is stable: equal net values keep discovery order
    transfers = sorted(transfers, key=lambda t: t.net_value, reverse=True)
    return transfers[:max_transfers]


def apply_transfers(state: DemoState, transfers: Sequence[Transfer]) -> DemoState:
    """
    Execute ``transfers``: donor on-hand → receiver in-transit, one IN_TRANSIT
    shipment per move. A move never takes more than the donor's on-hand;
    self-moves and moves with unknown positions or nodes are skipped.
    """
    inv_by_key: Dict[Tuple[str, str], InventoryPosition] = state.inventory_by_key()
    lanes: List[Lane] = list(state.lanes)
    shipments: List[Shipment] = list(state.shipments)
    carrier_ids = [c.id for c in state.carriers]
    seq = state.shipment_seq

    for t in transfers:
        if t.from_node_id == t.to_node_id:
            continue
        src = inv_by_key.get((t.from_node_id, t.sku_id))
        dst = inv_by_key.get((t.to_node_id, t.sku_id))
        if src is None or dst is None:
            continue
        qty = min(src.on_hand, t.qty_cases)
        if qty <= 0:
            continue

        lane, created = get_or_create_lane(lanes, state.nodes, t.from_node_id, t.to_node_id)
        if lane is None:
            continue
        if created:
            lanes.append(lane)
            logger.debug("Synthesized lane %s %s→%s (%d mi)", lane.id, lane.origin_id, lane.dest_id, lane.miles)

        inv_by_key[(t.from_node_id, t.sku_id)] = replace(src, on_hand=src.on_hand - qty)
        inv_by_key[(t.to_node_id, t.sku_id)] = replace(dst, in_transit=dst.in_transit + qty)

        if lane.mode == LaneMode.INTERMODAL and INTERMODAL_CARRIER_ID in carrier_ids:
            carrier_id = INTERMODAL_CARRIER_ID
        else:
            carrier_id = carrier_ids[0]

        shipments.append(Shipment(
            id=shipment_id(seq),
            lane_id=lane.id,
            carrier_id=carrier_id,
            sku_id=t.sku_id,
            qty_cases=qty,
            ship_day=state.today,
            eta_day=state.today + t.est_transit_days,
            status=ShipmentStatus.IN_TRANSIT,
            late_by_days=0,
            priority=Priority.STANDARD,
        ))
        seq += 1

    inventory = tuple(inv_by_key[(i.node_id, i.sku_id)] for i in state.inventory)
    return replace(
        state,
        inventory=inventory,
        lanes=tuple(lanes),
        shipments=tuple(shipments[-SHIPMENT_WINDOW:]),
        shipment_seq=seq,
    )
