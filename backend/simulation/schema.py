"""
Value records for the synthetic network.

All records are frozen; a change produces a new record via
dataclasses.replace(). DemoState is the aggregate root and is swapped
wholesale on every mutation.
"""
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Tuple

from app.constants import (
    LaneMode, NodeType, Priority, Region, ScenarioFlag, ShipmentStatus, SKUFamily,
)

FUEL_INDEX_MIN = 0.85
FUEL_INDEX_MAX = 1.35


@dataclass(frozen=True)
class Node:
    id: str
    name: str
    type: NodeType
    region: Region
    lat: float
    lon: float


@dataclass(frozen=True)
class SKU:
    id: str
    name: str
    family: SKUFamily
    margin_per_case: float
    cube_per_case: float
    perish_risk: float     # 0..1, scoring only
    unit: str = "case"


@dataclass(frozen=True)
class Carrier:
    id: str
    name: str
    base_on_time: float    # 0..1
    base_rate_adj: float   # freight multiplier


@dataclass(frozen=True)
class Lane:
    id: str
    origin_id: str
    dest_id: str
    miles: int
    base_cost_per_mile: float
    mode: LaneMode


@dataclass(frozen=True)
class Shipment:
    id: str
    lane_id: str
    carrier_id: str
    sku_id: str
    qty_cases: int
    ship_day: int
    eta_day: int
    status: ShipmentStatus
    late_by_days: int
    priority: Priority


@dataclass(frozen=True)
class InventoryPosition:
    node_id: str
    sku_id: str
    on_hand: int
    on_order: int
    in_transit: int
    target_days_cover: int


@dataclass(frozen=True)
class DemandPoint:
    day: int
    region: Region
    sku_id: str
    demand_cases: int


@dataclass(frozen=True)
class ScenarioToggles:
    dc_outage: bool = False
    carrier_disruption: bool = False
    demand_spike: bool = False
    cyber_degraded_mode: bool = False

    def active(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self) if getattr(self, f.name))

    def toggled(self, flag: ScenarioFlag, value: bool = None) -> "ScenarioToggles":
        name = ScenarioFlag(flag).value
        new_value = (not getattr(self, name)) if value is None else bool(value)
        return replace(self, **{name: new_value})


@dataclass(frozen=True)
class DemoState:
    seed: int
    today: int
    fuel_index: float
    nodes: Tuple[Node, ...]
    skus: Tuple[SKU, ...]
    carriers: Tuple[Carrier, ...]
    lanes: Tuple[Lane, ...]
    shipments: Tuple[Shipment, ...]
    inventory: Tuple[InventoryPosition, ...]
    demand_history: Tuple[DemandPoint, ...]
    scenario: ScenarioToggles = field(default_factory=ScenarioToggles)
    shipment_seq: int = 1

    # ── Lookups ───────────────────────────────────────────────────────────

    def node_by_id(self) -> Dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def sku_by_id(self) -> Dict[str, SKU]:
        return {s.id: s for s in self.skus}

    def carrier_by_id(self) -> Dict[str, Carrier]:
        return {c.id: c for c in self.carriers}

    def lane_by_id(self) -> Dict[str, Lane]:
        return {l.id: l for l in self.lanes}

    def lane_by_pair(self) -> Dict[Tuple[str, str], Lane]:
        return {(l.origin_id, l.dest_id): l for l in self.lanes}

    def inventory_by_key(self) -> Dict[Tuple[str, str], InventoryPosition]:
        return {(i.node_id, i.sku_id): i for i in self.inventory}

    def nodes_of_type(self, node_type: NodeType) -> Tuple[Node, ...]:
        return tuple(n for n in self.nodes if n.type == node_type)


def shipment_id(seq: int) -> str:
    return f"SHP-{seq:05d}"


# ── Serialisation ─────────────────────────────────────────────────────────────

def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "value") and isinstance(value.value, str):
        return value.value
    return value


def record_to_dict(record) -> Dict[str, Any]:
    return _jsonable(asdict(record))


def state_to_dict(state: DemoState) -> Dict[str, Any]:
    """JSON-safe dict of the whole state (enums as their string values)."""
    return record_to_dict(state)


def state_from_dict(payload: Dict[str, Any]) -> DemoState:
    return DemoState(
        seed=int(payload["seed"]),
        today=int(payload["today"]),
        fuel_index=float(payload["fuel_index"]),
        nodes=tuple(
            Node(
                id=n["id"], name=n["name"], type=NodeType(n["type"]),
                region=Region(n["region"]), lat=float(n["lat"]), lon=float(n["lon"]),
            )
            for n in payload["nodes"]
        ),
        skus=tuple(
            SKU(
                id=s["id"], name=s["name"], family=SKUFamily(s["family"]),
                margin_per_case=s["margin_per_case"], cube_per_case=s["cube_per_case"],
                perish_risk=s["perish_risk"], unit=s.get("unit", "case"),
            )
            for s in payload["skus"]
        ),
        carriers=tuple(Carrier(**c) for c in payload["carriers"]),
        lanes=tuple(
            Lane(**{**l, "mode": LaneMode(l["mode"])}) for l in payload["lanes"]
        ),
        shipments=tuple(
            Shipment(**{
                **s,
                "status": ShipmentStatus(s["status"]),
                "priority": Priority(s["priority"]),
            })
            for s in payload["shipments"]
        ),
        inventory=tuple(InventoryPosition(**i) for i in payload["inventory"]),
        demand_history=tuple(
            DemandPoint(**{**d, "region": Region(d["region"])})
            for d in payload["demand_history"]
        ),
        scenario=ScenarioToggles(**payload.get("scenario", {})),
        shipment_seq=int(payload.get("shipment_seq", len(payload["shipments"]) + 1)),
    )
