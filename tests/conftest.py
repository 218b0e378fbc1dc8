"""
Shared fixtures.

`world` is the seed-42 network (module scoped, read-only: every engine call
returns a new state). `make_state` builds small hand-made networks where
cover, demand and lanes are chosen so the expected numbers can be worked
out on paper.
"""
import pytest

from app.constants import (
    LaneMode, NodeType, Priority, REGIONS, Region, ShipmentStatus, SKUFamily,
)
from simulation import generate
from simulation.schema import (
    SKU, Carrier, DemandPoint, DemoState, InventoryPosition, Lane, Node, ScenarioToggles,
    Shipment,
)

NODES = (
    Node("P1", "Plant — Midwest", NodeType.PLANT, Region.MIDWEST, 41.9, -87.6),
    Node("D1", "DC — Northeast", NodeType.DC, Region.NORTHEAST, 40.7, -74.0),
    Node("D2", "DC — Southeast", NodeType.DC, Region.SOUTHEAST, 33.7, -84.4),
    Node("D3", "DC — Midwest", NodeType.DC, Region.MIDWEST, 41.9, -87.6),
    Node("C1", "Customers — Northeast", NodeType.CUSTOMER, Region.NORTHEAST, 38.0, -90.0),
)

CARRIERS = (
    Carrier("K1", "National Trucking Co.", 0.93, 1.00),
    Carrier("K4", "Intermodal Partner", 0.90, 0.86),
)


def make_lane(lane_id, origin, dest, miles=800, cpm=2.5, mode=LaneMode.TRUCK):
    return Lane(lane_id, origin, dest, miles, cpm, mode)


def make_shipment(
    shipment_id="SHP-00001", lane_id="L001", carrier_id="K1", sku_id="S1", qty=300,
    ship_day=-1, eta_day=1, status=ShipmentStatus.IN_TRANSIT, late_by=0,
    priority=Priority.STANDARD,
):
    return Shipment(shipment_id, lane_id, carrier_id, sku_id, qty, ship_day, eta_day, status, late_by, priority)


def make_state(
    positions=(),
    daily_demand=20,
    margin=14,
    lanes=(),
    shipments=(),
    fuel=1.0,
    scenario=None,
    perish_risk=0.05,
):
    """
    One SKU (S1, Cleaning) with a flat 7-day history of ``daily_demand`` cases
    in every region, so each DC forecasts next7d = 7 × daily_demand.
    ``positions`` are (node_id, on_hand, in_transit, target_days_cover).
    """
    sku = SKU("S1", "Disinfecting Wipes (Case)", SKUFamily.CLEANING, margin, 0.6, perish_risk)
    history = tuple(
        DemandPoint(day, region, "S1", daily_demand)
        for day in range(-7, 0)
        for region in REGIONS
    )
    inventory = tuple(
        InventoryPosition(
            node_id=node_id, sku_id="S1", on_hand=on_hand, on_order=0,
            in_transit=in_transit, target_days_cover=target,
        )
        for node_id, on_hand, in_transit, target in positions
    )
    return DemoState(
        seed=7,
        today=0,
        fuel_index=fuel,
        nodes=NODES,
        skus=(sku,),
        carriers=CARRIERS,
        lanes=tuple(lanes),
        shipments=tuple(shipments),
        inventory=inventory,
        demand_history=history,
        scenario=scenario or ScenarioToggles(),
        shipment_seq=len(shipments) + 1,
    )


@pytest.fixture(scope="module")
def world():
    """Seed-42 network, generated once per module."""
    return generate(42)


@pytest.fixture
def state_factory():
    return make_state


@pytest.fixture
def lane_factory():
    return make_lane


@pytest.fixture
def shipment_factory():
    return make_shipment


@pytest.fixture
def donor_receiver_state():
    """
    D1 donor / D2 receiver for S1 at 20 cases/day, target 16 days:
      D1: 680 on hand → doc 34.0 → surplus ⌊(34 − 24)·20⌋ = 200
      D2: 170 on hand → doc  8.5 → deficit ⌊(16 − 8.5)·20⌋ = 150
    with an 800 mi TRUCK lane D1→D2 at $2.50/mi.
    """
    return make_state(
        positions=[("D1", 680, 0, 16), ("D2", 170, 0, 16)],
        lanes=[make_lane("L001", "D1", "D2", miles=800, cpm=2.5)],
    )
