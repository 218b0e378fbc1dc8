from enum import Enum


class NodeType(str, Enum):
    PLANT = "PLANT"
    DC = "DC"
    CUSTOMER = "CUSTOMER"


class Region(str, Enum):
    NORTHEAST = "Northeast"
    SOUTHEAST = "Southeast"
    MIDWEST = "Midwest"
    SOUTHWEST = "Southwest"
    WEST = "West"


class SKUFamily(str, Enum):
    CLEANING = "Cleaning"
    BAGS = "Bags"
    FILTRATION = "Filtration"
    CONDIMENTS = "Condiments"


class LaneMode(str, Enum):
    TRUCK = "TRUCK"
    INTERMODAL = "INTERMODAL"


class ShipmentStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_TRANSIT = "IN_TRANSIT"
    LATE = "LATE"
    DELIVERED = "DELIVERED"


class Priority(str, Enum):
    STANDARD = "STANDARD"
    PROTECT = "PROTECT"


class FlowKind(str, Enum):
    DC_TO_CUST = "DC_TO_CUST"
    PLANT_TO_DC = "PLANT_TO_DC"
    DC_TO_DC = "DC_TO_DC"


class ExceptionType(str, Enum):
    STOCKOUT_RISK = "STOCKOUT_RISK"
    EXCESS_RISK = "EXCESS_RISK"
    LATE_SHIPMENT_RISK = "LATE_SHIPMENT_RISK"
    LANE_COST_OUTLIER = "LANE_COST_OUTLIER"


class ScenarioFlag(str, Enum):
    DC_OUTAGE = "dc_outage"
    CARRIER_DISRUPTION = "carrier_disruption"
    DEMAND_SPIKE = "demand_spike"
    CYBER_DEGRADED_MODE = "cyber_degraded_mode"


class ActionStatus(str, Enum):
    EXECUTED = "EXECUTED"
    BLOCKED = "BLOCKED"


class BriefActionKind(str, Enum):
    REBALANCE = "REBALANCE"
    RETENDER = "RETENDER"
    PLAYBOOK = "PLAYBOOK"


# Region order used for synthetic demand and customer aggregates
REGIONS = [
    Region.NORTHEAST,
    Region.SOUTHEAST,
    Region.MIDWEST,
    Region.SOUTHWEST,
    Region.WEST,
]

# Carrier that EXPEDITE re-tenders and intermodal transfers map to
EXPEDITE_CARRIER_ID = "EXPEDITE"
PREMIUM_CARRIER_ID = "K3"
INTERMODAL_CARRIER_ID = "K4"
