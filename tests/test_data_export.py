"""
Data explorer views, formatting helpers and logging setup.

Run: python -m pytest tests/test_data_export.py -v
"""
import logging

from app.constants import ShipmentStatus
from services.data_export import explorer_tables, lane_flows, shipments_frame, state_snapshot
from utils.format import clamp, fmt_dollars, fmt_money, fmt_pct, round_half_up
from utils.logger import setup_logger


# ═══════════════════════════════════════════════════════════════════════════════
# 1. EXPLORER & FLOWS
# ═══════════════════════════════════════════════════════════════════════════════

class TestExplorer:
    def test_table_previews(self, world):
        tables = explorer_tables(world)
        assert set(tables) == {"Nodes", "SKUs", "Carriers", "Lanes", "Shipments", "Inventory", "Demand"}
        assert tables["Carriers"]["count"] == 4
        assert len(tables["Shipments"]["rows"]) == 30
        assert tables["Shipments"]["count"] == 50
        assert tables["Demand"]["rows"][-1]["day"] == -1

    def test_snapshot_matches_state(self, world):
        snap = state_snapshot(world)
        assert snap["seed"] == 42
        assert snap["shipment_seq"] == 51
        assert snap["shipments"][0]["status"] in {s.value for s in ShipmentStatus}


class TestLaneFlows:
    def _state(self, state_factory, lane_factory, shipment_factory):
        return state_factory(
            lanes=[
                lane_factory("L001", "D1", "D2"),
                lane_factory("L002", "P1", "D1", miles=900),
            ],
            shipments=[
                shipment_factory("SHP-00001", lane_id="L001", qty=300),
                shipment_factory("SHP-00002", lane_id="L001", qty=100, status=ShipmentStatus.LATE, late_by=1),
                shipment_factory("SHP-00003", lane_id="L001", qty=999, status=ShipmentStatus.DELIVERED),
                shipment_factory("SHP-00004", lane_id="L002", qty=250, status=ShipmentStatus.PLANNED),
            ],
        )

    def test_in_flight_totals(self, state_factory, lane_factory, shipment_factory):
        flows = lane_flows(self._state(state_factory, lane_factory, shipment_factory))
        assert [(f["lane_id"], f["kind"], f["qty_cases"], f["shipments"]) for f in flows] == [
            ("L001", "DC_TO_DC", 400, 2),
            ("L002", "PLANT_TO_DC", 250, 1),
        ]

    def test_exclude_pooling_lanes(self, state_factory, lane_factory, shipment_factory):
        flows = lane_flows(self._state(state_factory, lane_factory, shipment_factory), include_dc_to_dc=False)
        assert [f["lane_id"] for f in flows] == ["L002"]

    def test_no_shipments(self, state_factory):
        assert lane_flows(state_factory()) == []
        assert shipments_frame(state_factory()).empty


# ═══════════════════════════════════════════════════════════════════════════════
# 2. HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

class TestFormatting:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(-0.4) == 0

    def test_clamp(self):
        assert clamp(5, 0, 3) == 3
        assert clamp(-1, 0, 3) == 0

    def test_money(self):
        assert fmt_dollars(12345.4) == "$12,345"
        assert fmt_dollars(-1655) == "-$1,655"
        assert fmt_money(2_500_000) == "$2.50M"
        assert fmt_money(1500) == "$1.5K"
        assert fmt_pct(0.256) == "26%"


class TestLogger:
    def test_handlers_added_once(self, tmp_path):
        name = "autopilot.test_logger"
        logger = setup_logger(name, level="WARNING", log_dir=str(tmp_path))
        assert len(logger.handlers) == 2
        setup_logger(name, level="WARNING", log_dir=str(tmp_path))
        assert len(logger.handlers) == 2
        logger.debug("written to file only")
        for handler in logger.handlers:
            handler.flush()
        [log_file] = list(tmp_path.iterdir())
        assert log_file.name.startswith("autopilot_")
        assert "written to file only" in log_file.read_text()
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        assert logging.getLogger(name).handlers == []
