"""
Re-tender engine: carrier options ranked by expected total cost.

Reference lane: D1→D2, 800 mi TRUCK at $2.50/mi, fuel 1.0 → $2,000 base freight.
Carriers K1 (93% on time, rate 1.00) and K4 (90% on time, rate 0.86).

Run: python -m pytest tests/test_transport.py -v
"""
from dataclasses import replace

import pytest

from app.constants import EXPEDITE_CARRIER_ID, LaneMode, Priority, ShipmentStatus
from simulation.schema import Carrier
from simulation.transport import (
    apply_retender, late_probability, retender_options, retender_quote,
)


@pytest.fixture
def one_shipment(state_factory, lane_factory, shipment_factory):
    def build(**shipment_kwargs):
        return state_factory(
            lanes=[lane_factory("L001", "D1", "D2", miles=800, cpm=2.5)],
            shipments=[shipment_factory(**shipment_kwargs)],
        )
    return build


# ═══════════════════════════════════════════════════════════════════════════════
# 1. OPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class TestRetenderOptions:
    def test_standard_shipment_by_hand(self, one_shipment):
        options = retender_options(one_shipment(), "SHP-00001")
        assert [o.carrier_id for o in options] == ["K4", "K1", EXPEDITE_CARRIER_ID]
        assert [o.exp_cost for o in options] == [1720, 2000, 3100]
        assert [o.exp_penalty for o in options] == [176, 123, 80]
        assert [o.exp_total for o in options] == [1896, 2123, 3180]

    def test_protect_shipment_by_hand(self, one_shipment):
        options = retender_options(one_shipment(priority=Priority.PROTECT), "SHP-00001")
        assert [o.carrier_id for o in options] == ["K4", "K1", EXPEDITE_CARRIER_ID]
        assert options[0].exp_late_prob == pytest.approx(0.11)
        assert options[0].exp_penalty == 601      # 0.11 × 4200 × 1.3
        assert options[-1].exp_penalty == 210     # 0.05 × 4200

    def test_sorted_by_expected_total(self, world):
        for sh in world.shipments[:10]:
            totals = [o.exp_total for o in retender_options(world, sh.id)]
            assert totals == sorted(totals)

    def test_at_most_five_options_with_expedite(self, world):
        options = retender_options(world, world.shipments[0].id)
        assert len(options) == 5
        assert EXPEDITE_CARRIER_ID in [o.carrier_id for o in options]

    def test_unknown_shipment(self, world):
        quote = retender_quote(world, "SHP-99999")
        assert quote.shipment is None
        assert quote.options == []
        assert retender_options(world, "SHP-99999") == []

    def test_quote_carries_shipment_and_lane(self, one_shipment):
        quote = retender_quote(one_shipment(), "SHP-00001")
        assert quote.shipment.id == "SHP-00001"
        assert quote.lane.id == "L001"


class TestLateProbability:
    def test_disruption_raises_risk(self, one_shipment):
        state = one_shipment()
        calm = late_probability(state, state.lanes[0], state.shipments[0], state.carriers[0])
        disrupted_state = replace(state, scenario=replace(state.scenario, carrier_disruption=True))
        disrupted = late_probability(
            disrupted_state, state.lanes[0], state.shipments[0], state.carriers[0],
        )
        assert disrupted == pytest.approx(calm + 0.08)

    def test_intermodal_adds_risk(self, state_factory, lane_factory, shipment_factory):
        state = state_factory(
            lanes=[lane_factory("L001", "D1", "D2", mode=LaneMode.INTERMODAL)],
            shipments=[shipment_factory()],
        )
        p = late_probability(state, state.lanes[0], state.shipments[0], state.carriers[0])
        assert p == pytest.approx(0.10)

    def test_clamped_to_band(self, one_shipment):
        state = one_shipment()
        lane, sh = state.lanes[0], state.shipments[0]
        assert late_probability(state, lane, sh, Carrier("KX", "Perfect", 0.999, 1.0)) == 0.03
        assert late_probability(state, lane, sh, Carrier("KY", "Awful", 0.2, 1.0)) == 0.35


# ═══════════════════════════════════════════════════════════════════════════════
# 2. APPLY
# ═══════════════════════════════════════════════════════════════════════════════

class TestApplyRetender:
    def test_late_shipment_back_in_transit(self, one_shipment):
        state = one_shipment(status=ShipmentStatus.LATE, late_by=2)
        after = apply_retender(state, "SHP-00001", "K4")
        sh = after.shipments[0]
        assert sh.carrier_id == "K4"
        assert sh.status == ShipmentStatus.IN_TRANSIT
        assert sh.late_by_days == 0
        assert state.shipments[0].status == ShipmentStatus.LATE

    def test_expedite_books_premium_carrier(self, world):
        sh = next(s for s in world.shipments if s.status != ShipmentStatus.DELIVERED)
        after = apply_retender(world, sh.id, EXPEDITE_CARRIER_ID)
        assert next(s for s in after.shipments if s.id == sh.id).carrier_id == "K3"

    def test_delivered_shipment_unchanged(self, one_shipment):
        state = one_shipment(status=ShipmentStatus.DELIVERED)
        assert apply_retender(state, "SHP-00001", "K4") is state

    def test_unknown_carrier_unchanged(self, one_shipment):
        state = one_shipment()
        assert apply_retender(state, "SHP-00001", "K9") is state

    def test_unknown_shipment_unchanged(self, one_shipment):
        state = one_shipment()
        assert apply_retender(state, "SHP-77777", "K4") is state
