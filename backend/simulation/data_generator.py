"""
Synthetic consumer-goods network generator.

Builds the initial DemoState from a single seed:

  Topology   : 2 plants, 5 DCs (one per region), 5 customer-region aggregates
  Catalogue  : 5 SKUs across 4 families, 4 carriers
  Lanes      : plant→DC, DC→customer and 6 bidirectional inter-DC pairs
  History    : 28 days of daily demand per (region, SKU)
  Inventory  : one position per (DC, SKU)
  Shipments  : 50 in-flight / recent shipments, back-filled into DC in-transit

Every draw comes from one SeededRandom, in a fixed order, so the same seed
always yields the same world.
"""
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from app.constants import (
    FlowKind, LaneMode, NodeType, Priority, REGIONS, Region, ShipmentStatus, SKUFamily,
)
from utils.format import mean, round_half_up

from .rng import SeededRandom
from .schema import (
    SKU, Carrier, DemandPoint, DemoState, InventoryPosition, Lane, Node, ScenarioToggles,
    Shipment, shipment_id,
)

logger = logging.getLogger(__name__)


# ── Fixed registries ─────────────────────────────────────────────────────────

PLANTS: List[Dict] = [
    {"id": "P1", "region": Region.MIDWEST,   "lat": 41.9, "lon": -87.6},
    {"id": "P2", "region": Region.SOUTHEAST, "lat": 33.7, "lon": -84.4},
]

DCS: List[Dict] = [
    {"id": "D1", "region": Region.NORTHEAST, "lat": 40.7, "lon":  -74.0},
    {"id": "D2", "region": Region.SOUTHEAST, "lat": 33.7, "lon":  -84.4},
    {"id": "D3", "region": Region.MIDWEST,   "lat": 41.9, "lon":  -87.6},
    {"id": "D4", "region": Region.SOUTHWEST, "lat": 32.8, "lon":  -96.8},
    {"id": "D5", "region": Region.WEST,      "lat": 34.0, "lon": -118.2},
]

SKU_CATALOGUE: List[Dict] = [
    {"id": "S1", "name": "Disinfecting Wipes (Case)", "family": SKUFamily.CLEANING,   "margin_per_case": 14, "cube_per_case": 0.6, "perish_risk": 0.05},
    {"id": "S2", "name": "Bleach (Case)",             "family": SKUFamily.CLEANING,   "margin_per_case": 10, "cube_per_case": 0.9, "perish_risk": 0.02},
    {"id": "S3", "name": "Trash Bags (Case)",         "family": SKUFamily.BAGS,       "margin_per_case":  9, "cube_per_case": 1.1, "perish_risk": 0.01},
    {"id": "S4", "name": "Water Filters (Case)",      "family": SKUFamily.FILTRATION, "margin_per_case": 18, "cube_per_case": 0.4, "perish_risk": 0.03},
    {"id": "S5", "name": "Salad Dressing (Case)",     "family": SKUFamily.CONDIMENTS, "margin_per_case":  7, "cube_per_case": 0.7, "perish_risk": 0.12},
]

CARRIER_REGISTRY: List[Dict] = [
    {"id": "K1", "name": "National Trucking Co.", "base_on_time": 0.93, "base_rate_adj": 1.00},
    {"id": "K2", "name": "Value Freight",         "base_on_time": 0.88, "base_rate_adj": 0.92},
    {"id": "K3", "name": "Premium Express",       "base_on_time": 0.96, "base_rate_adj": 1.12},
    {"id": "K4", "name": "Intermodal Partner",    "base_on_time": 0.90, "base_rate_adj": 0.86},
]

# Inter-DC pooling pairs, generated in both directions
DC_PAIRS: List[Tuple[str, str]] = [
    ("D1", "D3"),   # Northeast ↔ Midwest
    ("D2", "D3"),   # Southeast ↔ Midwest
    ("D3", "D4"),   # Midwest ↔ Southwest
    ("D4", "D5"),   # Southwest ↔ West
    ("D2", "D4"),   # Southeast ↔ Southwest
    ("D1", "D2"),   # Northeast ↔ Southeast
]

# ── Demand & inventory parameters ────────────────────────────────────────────

HISTORY_DAYS = 28
INITIAL_SHIPMENTS = 50

FAMILY_BASE_DEMAND: Dict[SKUFamily, float] = {
    SKUFamily.CLEANING:   180,
    SKUFamily.BAGS:       140,
    SKUFamily.FILTRATION:  90,
    SKUFamily.CONDIMENTS: 110,
}

REGION_DEMAND_ADJ: Dict[Region, float] = {
    Region.NORTHEAST: 1.08,
    Region.WEST:      1.02,
    Region.SOUTHEAST: 1.00,
    Region.MIDWEST:   0.98,
    Region.SOUTHWEST: 0.95,
}

# Day-of-week multipliers; weekdays not listed are neutral
DOW_ADJ: Dict[int, float] = {0: 1.18, 5: 0.92}

DEMAND_NOISE = 0.12

TARGET_DAYS_COVER: Dict[SKUFamily, int] = {
    SKUFamily.CLEANING:   16,
    SKUFamily.BAGS:       14,
    SKUFamily.FILTRATION: 18,
    SKUFamily.CONDIMENTS: 12,
}

# Average road speed (miles/day) used for ETAs on generated shipments
SHIPMENT_SPEED: Dict[LaneMode, float] = {LaneMode.TRUCK: 550, LaneMode.INTERMODAL: 450}


def lane_id(seq: int) -> str:
    return f"L{seq:03d}"


def shipment_eta_days(lane: Lane) -> int:
    return max(1, round_half_up(lane.miles / SHIPMENT_SPEED[lane.mode]))


def flow_kind(origin: Node, dest: Node) -> Optional[FlowKind]:
    if origin.type == NodeType.DC and dest.type == NodeType.CUSTOMER:
        return FlowKind.DC_TO_CUST
    if origin.type == NodeType.PLANT and dest.type == NodeType.DC:
        return FlowKind.PLANT_TO_DC
    if origin.type == NodeType.DC and dest.type == NodeType.DC:
        return FlowKind.DC_TO_DC
    return None


class NetworkGenerator:
    """
    Generate the initial DemoState for a seed.

    Parameters
    ----------
    seed : int
        32-bit seed; the whole world is a function of it.
    """

    def __init__(self, seed: int = 42):
        self.seed = int(seed)
        self.rng = SeededRandom(self.seed)

    # ── Public interface ───────────────────────────────────────────────────

    def generate(self) -> DemoState:
        nodes = self._build_nodes()
        skus = tuple(SKU(**s) for s in SKU_CATALOGUE)
        carriers = tuple(Carrier(**c) for c in CARRIER_REGISTRY)
        lanes = self._build_lanes(nodes)
        fuel_index = 0.95 + self.rng.random() * 0.35
        history = self._build_demand_history(skus)
        inventory = self._build_inventory(nodes, skus, history)
        shipments = self._build_shipments(nodes, skus, carriers, lanes)
        inventory = self._backfill_in_transit(nodes, lanes, shipments, inventory)

        state = DemoState(
            seed=self.seed,
            today=0,
            fuel_index=fuel_index,
            nodes=nodes,
            skus=skus,
            carriers=carriers,
            lanes=lanes,
            shipments=shipments,
            inventory=inventory,
            demand_history=history,
            scenario=ScenarioToggles(),
            shipment_seq=len(shipments) + 1,
        )
        logger.debug(
            "Generated network seed=%d: %d nodes, %d lanes, %d shipments, fuel=%.3f",
            self.seed, len(nodes), len(lanes), len(shipments), fuel_index,
        )
        return state

    # ── Private helpers ────────────────────────────────────────────────────

    def _build_nodes(self) -> Tuple[Node, ...]:
        nodes: List[Node] = []
        for p in PLANTS:
            nodes.append(Node(name=f"Plant — {p['region'].value}", type=NodeType.PLANT, **p))
        for d in DCS:
            nodes.append(Node(name=f"DC — {d['region'].value}", type=NodeType.DC, **d))
        # Customer aggregates are jittered around the centre of the map
        for i, region in enumerate(REGIONS):
            lat = 37 + (self.rng.random() - 0.5) * 6
            lon = -95 + (self.rng.random() - 0.5) * 18
            nodes.append(Node(
                id=f"C{i + 1}", name=f"Customers — {region.value}",
                type=NodeType.CUSTOMER, region=region, lat=lat, lon=lon,
            ))
        return tuple(nodes)

    def _make_lane(self, seq: int, origin: str, dest: str, miles: int, mode: LaneMode) -> Lane:
        if mode == LaneMode.TRUCK:
            cpm = 2.4 + self.rng.random() * 0.5
        else:
            cpm = 1.6 + self.rng.random() * 0.4
        return Lane(
            id=lane_id(seq), origin_id=origin, dest_id=dest,
            miles=miles, base_cost_per_mile=cpm, mode=mode,
        )

    def _build_lanes(self, nodes: Tuple[Node, ...]) -> Tuple[Lane, ...]:
        rng = self.rng
        plants = [n.id for n in nodes if n.type == NodeType.PLANT]
        dcs = [n.id for n in nodes if n.type == NodeType.DC]
        customers = [n.id for n in nodes if n.type == NodeType.CUSTOMER]
        lanes: List[Lane] = []

        def add(origin, dest, miles, mode):
            lanes.append(self._make_lane(len(lanes) + 1, origin, dest, miles, mode))

        for p in plants:
            for d in dcs:
                miles = 350 + rng.below(1500)
                add(p, d, miles, LaneMode.INTERMODAL if rng.random() < 0.25 else LaneMode.TRUCK)

        for d in dcs:
            for c in customers:
                miles = 120 + rng.below(1100)
                add(d, c, miles, LaneMode.INTERMODAL if rng.random() < 0.12 else LaneMode.TRUCK)

        for a, b in DC_PAIRS:
            miles = 260 + rng.below(1400)
            mode = LaneMode.INTERMODAL if rng.random() < 0.18 else LaneMode.TRUCK
            add(a, b, miles, mode)
            # Return leg runs slightly longer
            add(b, a, miles + rng.below(90), mode)

        return tuple(lanes)

    def _build_demand_history(self, skus: Tuple[SKU, ...]) -> Tuple[DemandPoint, ...]:
        """
        demand = max(0, round(base_family × region_adj × dow_adj × (1 + 0.12·N(0,1))))
        for days -HISTORY_DAYS .. -1.
        """
        history: List[DemandPoint] = []
        for day in range(-HISTORY_DAYS, 0):
            dow_adj = DOW_ADJ.get(day % 7, 1.0)
            for region in REGIONS:
                for sku in skus:
                    base = FAMILY_BASE_DEMAND[sku.family]
                    noise = DEMAND_NOISE * self.rng.randn()
                    demand = max(0, round_half_up(base * REGION_DEMAND_ADJ[region] * dow_adj * (1 + noise)))
                    history.append(DemandPoint(day=day, region=region, sku_id=sku.id, demand_cases=demand))
        return tuple(history)

    def _build_inventory(self, nodes, skus, history) -> Tuple[InventoryPosition, ...]:
        """On-hand scattered around target cover (60%–170%); on-order 30%–100% of a week."""
        inventory: List[InventoryPosition] = []
        for dc in (n for n in nodes if n.type == NodeType.DC):
            for sku in skus:
                weekly_avg = mean(
                    p.demand_cases for p in history
                    if p.region == dc.region and p.sku_id == sku.id
                ) * 7
                target = TARGET_DAYS_COVER[sku.family]
                on_hand = max(0, round_half_up(weekly_avg * (target / 7) * (0.6 + self.rng.random() * 1.1)))
                on_order = round_half_up(weekly_avg * (0.3 + self.rng.random() * 0.7))
                inventory.append(InventoryPosition(
                    node_id=dc.id, sku_id=sku.id, on_hand=on_hand, on_order=on_order,
                    in_transit=0, target_days_cover=target,
                ))
        return tuple(inventory)

    def _build_shipments(self, nodes, skus, carriers, lanes) -> Tuple[Shipment, ...]:
        rng = self.rng
        node_by_id = {n.id: n for n in nodes}
        pools: Dict[FlowKind, List[Lane]] = {k: [] for k in FlowKind}
        for lane in lanes:
            kind = flow_kind(node_by_id[lane.origin_id], node_by_id[lane.dest_id])
            if kind is not None:
                pools[kind].append(lane)

        today = 0
        shipments: List[Shipment] = []
        for i in range(INITIAL_SHIPMENTS):
            priority = Priority.PROTECT if rng.random() < 0.22 else Priority.STANDARD
            sku = rng.pick(skus)
            r = rng.random()
            if r < 0.55:
                kind = FlowKind.DC_TO_CUST
            elif r < 0.90:
                kind = FlowKind.PLANT_TO_DC
            else:
                kind = FlowKind.DC_TO_DC
            lane = rng.pick(pools[kind] or list(lanes))
            carrier = rng.pick(carriers)
            ship_day = -rng.below(3)
            eta_day = ship_day + shipment_eta_days(lane)

            late_p = 0.08 + (0.03 if priority == Priority.PROTECT else 0.0)
            late_by = 1 + rng.below(2) if rng.random() < late_p else 0

            if eta_day + late_by < today:
                status = ShipmentStatus.DELIVERED
            elif ship_day < today:
                late = late_by > 0 and eta_day < today
                status = ShipmentStatus.LATE if late else ShipmentStatus.IN_TRANSIT
            else:
                status = ShipmentStatus.PLANNED

            shipments.append(Shipment(
                id=shipment_id(i + 1),
                lane_id=lane.id,
                carrier_id=carrier.id,
                sku_id=sku.id,
                qty_cases=120 + rng.below(420),
                ship_day=ship_day,
                eta_day=eta_day,
                status=status,
                late_by_days=late_by,
                priority=priority,
            ))
        return tuple(shipments)

    @staticmethod
    def _backfill_in_transit(nodes, lanes, shipments, inventory) -> Tuple[InventoryPosition, ...]:
        node_by_id = {n.id: n for n in nodes}
        lane_by_id = {l.id: l for l in lanes}
        extra: Dict[Tuple[str, str], int] = {}
        for sh in shipments:
            if sh.status not in (ShipmentStatus.IN_TRANSIT, ShipmentStatus.LATE):
                continue
            lane = lane_by_id.get(sh.lane_id)
            if lane is None:
                continue
            dest = node_by_id.get(lane.dest_id)
            if dest is None or dest.type != NodeType.DC:
                continue
            key = (dest.id, sh.sku_id)
            extra[key] = extra.get(key, 0) + sh.qty_cases
        return tuple(
            replace(inv, in_transit=inv.in_transit + extra[(inv.node_id, inv.sku_id)])
            if (inv.node_id, inv.sku_id) in extra else inv
            for inv in inventory
        )


def generate(seed: int = 42) -> DemoState:
    """Build the initial world for ``seed``."""
    return NetworkGenerator(seed).generate()
