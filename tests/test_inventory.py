"""
Rebalancer: surplus/deficit matching between DCs and transfer execution.

The donor/receiver fixture is sized so every number can be checked by hand
(see conftest.donor_receiver_state).

Run: python -m pytest tests/test_inventory.py -v
"""
import pytest

from app.constants import LaneMode, ShipmentStatus
from simulation.inventory import (
    Transfer, apply_transfers, get_or_create_lane, haversine_miles, price_batch, price_transfer,
    propose_rebalancing,
)


def _totals(state, sku_id="S1"):
    return sum(i.on_hand + i.in_transit for i in state.inventory if i.sku_id == sku_id)


# ═══════════════════════════════════════════════════════════════════════════════
# 1. PROPOSALS
# ═══════════════════════════════════════════════════════════════════════════════

class TestProposeRebalancing:
    def test_single_move_by_hand(self, donor_receiver_state):
        [t] = propose_rebalancing(donor_receiver_state)
        assert (t.from_node_id, t.to_node_id, t.sku_id) == ("D1", "D2", "S1")
        assert t.qty_cases == 150
        assert t.est_transfer_cost == 2180      # 800 × 2.5 × 1.0 + 180
        assert t.est_transit_days == 2          # 800 / 520 → 1.54
        assert t.est_value == 525               # 150 × 14 × 0.25
        assert t.net_value == -1655

    def test_rationale_quotes_both_covers(self, donor_receiver_state):
        [t] = propose_rebalancing(donor_receiver_state)
        assert "donor DOC 34.0" in t.rationale
        assert "receiver DOC 8.5" in t.rationale

    def test_fuel_index_scales_lane_cost(self, state_factory, lane_factory):
        state = state_factory(
            positions=[("D1", 680, 0, 16), ("D2", 170, 0, 16)],
            lanes=[lane_factory("L001", "D1", "D2", miles=800, cpm=2.5)],
            fuel=1.2,
        )
        [t] = propose_rebalancing(state)
        assert t.est_transfer_cost == 2580

    def test_no_lane_falls_back_to_distance(self, state_factory):
        state = state_factory(positions=[("D1", 680, 0, 16), ("D2", 170, 0, 16)])
        [t] = propose_rebalancing(state)
        nodes = state.node_by_id()
        miles = haversine_miles(nodes["D1"], nodes["D2"])
        assert t.est_transfer_cost == int(miles * 2.25 + 180 + 0.5)
        assert t.est_transit_days == max(1, int(miles / 520 + 0.5))

    def test_small_gaps_ignored(self, state_factory):
        # D2 doc 15 → deficit 20 cases, below the 60-case minimum
        state = state_factory(positions=[("D1", 680, 0, 16), ("D2", 300, 0, 16)])
        assert propose_rebalancing(state) == []

    def test_in_transit_counts_toward_cover(self, state_factory):
        # D2: 70 on hand + 230 inbound → doc 15.0, deficit 20
        state = state_factory(positions=[("D1", 680, 0, 16), ("D2", 70, 230, 16)])
        assert state.inventory_by_key()[("D2", "S1")].on_order == 0
        assert propose_rebalancing(state) == []

    def test_max_transfers_zero(self, donor_receiver_state):
        assert propose_rebalancing(donor_receiver_state, max_transfers=0) == []

    def test_sku_filter(self, donor_receiver_state):
        assert len(propose_rebalancing(donor_receiver_state, only_sku_id="S1")) == 1
        assert propose_rebalancing(donor_receiver_state, only_sku_id="S9") == []

    def test_world_proposals_ranked_and_bounded(self, world):
        transfers = propose_rebalancing(world, 18)
        assert len(transfers) <= 18
        nets = [t.net_value for t in transfers]
        assert nets == sorted(nets, reverse=True)
        for t in transfers:
            assert t.from_node_id != t.to_node_id
            assert 60 <= t.qty_cases <= 900
            assert t.net_value == t.est_value - t.est_transfer_cost

    def test_proposals_are_deterministic(self, world):
        assert propose_rebalancing(world) == propose_rebalancing(world)


# ═══════════════════════════════════════════════════════════════════════════════
# 2. PRICING
# ═══════════════════════════════════════════════════════════════════════════════

class TestPricing:
    def test_price_matches_proposal(self, donor_receiver_state):
        [t] = propose_rebalancing(donor_receiver_state)
        assert price_transfer(donor_receiver_state, "D1", "D2", "S1", 150, t.rationale) == t

    def test_unknown_sku_or_node(self, donor_receiver_state):
        assert price_transfer(donor_receiver_state, "D1", "D2", "S9", 150) is None
        assert price_transfer(donor_receiver_state, "D1", "D9", "S1", 150) is None

    def test_batch_ignores_client_estimates(self, donor_receiver_state):
        forged = Transfer("D1", "D2", "S1", 150, "", 99_999, 0, 9, 99_999)
        [priced] = price_batch(donor_receiver_state, [forged])
        assert (priced.est_transfer_cost, priced.est_value, priced.net_value) == (2180, 525, -1655)
        assert priced.est_transit_days == 2

    def test_batch_cuts_to_remaining_on_hand(self, donor_receiver_state):
        t = Transfer("D1", "D2", "S1", 500, "", 0, 0, 2, 0)
        first, second = price_batch(donor_receiver_state, [t, t])
        assert (first.qty_cases, second.qty_cases) == (500, 180)
        assert price_batch(donor_receiver_state, [t, t, t]) == [first, second]

    def test_batch_drops_self_moves_and_unknown_positions(self, donor_receiver_state):
        batch = [
            Transfer("D1", "D1", "S1", 100, "", 0, 0, 1, 0),
            Transfer("D1", "D3", "S1", 100, "", 0, 0, 1, 0),
        ]
        assert price_batch(donor_receiver_state, batch) == []


# ═══════════════════════════════════════════════════════════════════════════════
# 3. EXECUTION
# ═══════════════════════════════════════════════════════════════════════════════

class TestApplyTransfers:
    def test_moves_stock_into_transit(self, donor_receiver_state):
        transfers = propose_rebalancing(donor_receiver_state)
        after = apply_transfers(donor_receiver_state, transfers)
        inv = after.inventory_by_key()
        assert inv[("D1", "S1")].on_hand == 530
        assert inv[("D2", "S1")].in_transit == 150
        assert inv[("D2", "S1")].on_hand == 170

    def test_conserves_network_stock(self, donor_receiver_state):
        transfers = propose_rebalancing(donor_receiver_state)
        after = apply_transfers(donor_receiver_state, transfers)
        assert _totals(after) == _totals(donor_receiver_state)

    def test_creates_in_transit_shipment(self, donor_receiver_state):
        transfers = propose_rebalancing(donor_receiver_state)
        after = apply_transfers(donor_receiver_state, transfers)
        [sh] = after.shipments
        assert sh.id == "SHP-00001"
        assert sh.lane_id == "L001"
        assert sh.carrier_id == "K1"
        assert sh.status == ShipmentStatus.IN_TRANSIT
        assert sh.qty_cases == 150
        assert (sh.ship_day, sh.eta_day) == (0, 2)
        assert after.shipment_seq == 2

    def test_input_state_untouched(self, donor_receiver_state):
        before = donor_receiver_state
        apply_transfers(before, propose_rebalancing(before))
        assert before.inventory_by_key()[("D1", "S1")].on_hand == 680
        assert before.shipments == ()

    def test_never_moves_more_than_on_hand(self, donor_receiver_state):
        t = Transfer("D1", "D2", "S1", 5000, "", 0, 100, 2, -100)
        after = apply_transfers(donor_receiver_state, [t])
        inv = after.inventory_by_key()
        assert inv[("D1", "S1")].on_hand == 0
        assert inv[("D2", "S1")].in_transit == 680
        assert after.shipments[0].qty_cases == 680

    def test_unknown_position_skipped(self, donor_receiver_state):
        t = Transfer("D1", "D3", "S1", 100, "", 0, 100, 2, -100)
        after = apply_transfers(donor_receiver_state, [t])
        assert after.inventory == donor_receiver_state.inventory
        assert after.shipments == ()

    def test_self_move_skipped(self, donor_receiver_state):
        t = Transfer("D1", "D1", "S1", 100, "", 0, 100, 1, -100)
        after = apply_transfers(donor_receiver_state, [t])
        assert after.inventory == donor_receiver_state.inventory
        assert after.lanes == donor_receiver_state.lanes
        assert after.shipments == ()

    def test_missing_lane_is_synthesized(self, state_factory):
        state = state_factory(positions=[("D1", 680, 0, 16), ("D2", 170, 0, 16)])
        after = apply_transfers(state, propose_rebalancing(state))
        [lane] = after.lanes
        assert lane.id == "L001"
        assert (lane.origin_id, lane.dest_id) == ("D1", "D2")
        assert lane.mode == LaneMode.TRUCK
        assert lane.base_cost_per_mile == pytest.approx(2.25)
        assert after.shipments[0].lane_id == "L001"

    def test_intermodal_lane_books_intermodal_carrier(self, state_factory, lane_factory):
        state = state_factory(
            positions=[("D1", 680, 0, 16), ("D2", 170, 0, 16)],
            lanes=[lane_factory("L001", "D1", "D2", mode=LaneMode.INTERMODAL, cpm=1.8)],
        )
        after = apply_transfers(state, propose_rebalancing(state))
        assert after.shipments[0].carrier_id == "K4"


class TestGetOrCreateLane:
    def test_existing_lane_returned(self, donor_receiver_state):
        lane, created = get_or_create_lane(
            donor_receiver_state.lanes, donor_receiver_state.nodes, "D1", "D2",
        )
        assert lane.id == "L001"
        assert created is False

    def test_next_free_id(self, donor_receiver_state):
        lane, created = get_or_create_lane(
            donor_receiver_state.lanes, donor_receiver_state.nodes, "D2", "D1",
        )
        assert created is True
        assert lane.id == "L002"

    def test_unknown_node(self, donor_receiver_state):
        assert get_or_create_lane(
            donor_receiver_state.lanes, donor_receiver_state.nodes, "D1", "D9",
        ) == (None, False)
