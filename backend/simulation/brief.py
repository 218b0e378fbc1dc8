"""
Executive brief: five "question → answer → action" narratives composed from
the exception scan, the rebalancer, the re-tender model and a DC throughput
proxy.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.constants import BriefActionKind, ExceptionType, NodeType, Region
from utils.format import fmt_dollars, round_half_up

from .inventory import Transfer, propose_rebalancing
from .risk import compute_exceptions
from .schema import DemoState, Node
from .transport import retender_options

DC_BASE_CAPACITY = 9000
DC_CAPACITY_BONUS = {Region.NORTHEAST: 1200, Region.WEST: 900}
OUTAGE_REGION = Region.NORTHEAST
OUTAGE_CAPACITY_SHARE = 0.55
OUTBOUND_SHARE_OF_ON_HAND = 0.18
MAX_UTILIZATION = 1.25

Q_SERVICE = "Where will we miss service next, and what is the cheapest prevention?"
Q_INVENTORY = "What inventory should sit where to avoid expediting and stockouts?"
Q_DC = "Which DC constraints will break the network next week?"
Q_LANES = "Which lanes/carriers are costing us the most, and what changes pay back fastest?"
Q_DISRUPTION = "In a disruption, what is the degraded-mode plan that keeps product moving?"


@dataclass(frozen=True)
class BriefAction:
    label: str
    kind: BriefActionKind
    payload: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class BriefAnswer:
    question: str
    answer: str
    why: str
    actions: List[BriefAction] = field(default_factory=list)


@dataclass(frozen=True)
class DCThroughput:
    dc: Node
    capacity: int
    outbound: int
    utilization: float

    @property
    def status(self) -> str:
        if self.utilization > 1.05:
            return "over capacity"
        if self.utilization > 0.95:
            return "at risk"
        return "healthy"


def dc_throughput_risk(state: DemoState) -> List[DCThroughput]:
    """DCs ranked by outbound / capacity utilization, worst first."""
    on_hand_by_node: Dict[str, int] = {}
    for inv in state.inventory:
        on_hand_by_node[inv.node_id] = on_hand_by_node.get(inv.node_id, 0) + inv.on_hand

    rows = []
    for dc in state.nodes_of_type(NodeType.DC):
        base = DC_BASE_CAPACITY + DC_CAPACITY_BONUS.get(dc.region, 0)
        hit = OUTAGE_CAPACITY_SHARE if state.scenario.dc_outage and dc.region == OUTAGE_REGION else 1.0
        capacity = round_half_up(base * hit)
        outbound = round_half_up(on_hand_by_node.get(dc.id, 0) * OUTBOUND_SHARE_OF_ON_HAND)
        rows.append(DCThroughput(
            dc=dc, capacity=capacity, outbound=outbound,
            utilization=min(MAX_UTILIZATION, outbound / max(1, capacity)),
        ))
    rows.sort(key=lambda r: r.utilization, reverse=True)
    return rows


def top_rebalance_targets(state: DemoState, sku_id: str, to_node_id: Optional[str] = None) -> List[Transfer]:
    transfers = propose_rebalancing(state, 18, sku_id)
    if to_node_id:
        return [t for t in transfers if t.to_node_id == to_node_id]
    return transfers


def _service_answer(state: DemoState, top) -> Optional[BriefAnswer]:
    at_risk = f"est. {fmt_dollars(top.est_value_at_risk)}/wk at risk"

    if top.type == ExceptionType.STOCKOUT_RISK and top.sku_id and top.node_id:
        transfers = propose_rebalancing(state, 20, top.sku_id)
        targeted = sorted(
            (t for t in transfers if t.to_node_id == top.node_id),
            key=lambda t: t.net_value, reverse=True,
        )
        best = targeted[0] if targeted else (transfers[0] if transfers else None)
        suffix = f" (top move net {fmt_dollars(best.net_value)})" if best else ""
        return BriefAnswer(
            question=Q_SERVICE,
            answer=f"{top.title}: {at_risk}. Recommended: rebalancing{suffix}.",
            why=top.detail,
            actions=[
                BriefAction("Run rebalancing (SKU-specific)", BriefActionKind.REBALANCE,
                            {"sku_id": top.sku_id, "node_id": top.node_id}),
                BriefAction("Open playbook: protect inbound / wave priority", BriefActionKind.PLAYBOOK),
            ],
        )

    if top.type == ExceptionType.LATE_SHIPMENT_RISK and top.shipment_id:
        options = retender_options(state, top.shipment_id)
        best = options[0] if options else None
        fallback = state.carriers[0].id if state.carriers else None
        return BriefAnswer(
            question=Q_SERVICE,
            answer=(
                f"{top.title}: {at_risk}. Recommended: re-tender to "
                f"{best.carrier_id if best else 'alternate carrier'} (min expected total)."
            ),
            why=top.detail,
            actions=[
                BriefAction("Execute re-tender", BriefActionKind.RETENDER,
                            {"shipment_id": top.shipment_id,
                             "carrier_id": best.carrier_id if best else fallback}),
                BriefAction("Open playbook: expedite partial", BriefActionKind.PLAYBOOK),
            ],
        )
    return None


def build_executive_brief(state: DemoState) -> List[BriefAnswer]:
    exceptions = compute_exceptions(state)
    top_service = next(
        (e for e in exceptions if e.type in (ExceptionType.STOCKOUT_RISK, ExceptionType.LATE_SHIPMENT_RISK)),
        None,
    )
    top_lane = next((e for e in exceptions if e.type == ExceptionType.LANE_COST_OUTLIER), None)
    dc_risk = dc_throughput_risk(state)

    answers: List[BriefAnswer] = []

    if top_service is not None:
        service = _service_answer(state, top_service)
        if service is not None:
            answers.append(service)

    answers.append(BriefAnswer(
        question=Q_INVENTORY,
        answer=(
            "Use the Inventory view to prioritize DOC gaps and execute net-positive "
            "transfers (benefit − transfer cost)."
        ),
        why="Transfers are ranked by net value and transit time to mimic real cost-to-serve tradeoffs.",
        actions=[BriefAction("Go to Inventory and execute top transfers", BriefActionKind.PLAYBOOK)],
    ))

    if dc_risk:
        worst = dc_risk[0]
        pct = round_half_up(min(1.5, worst.utilization) * 100)
        answers.append(BriefAnswer(
            question=Q_DC,
            answer=f"{worst.dc.name} is {worst.status} (utilization {pct}%).",
            why=(
                "Utilization is a transparent proxy: outbound volume / capacity. "
                "Toggle 'DC outage' to stress this further."
            ),
            actions=[BriefAction("Open Distribution + see mitigation levers", BriefActionKind.PLAYBOOK)],
        ))

    if top_lane is not None:
        answers.append(BriefAnswer(
            question=Q_LANES,
            answer=f"{top_lane.title}: est. {fmt_dollars(top_lane.est_value_at_risk)}/wk opportunity.",
            why=top_lane.detail,
            actions=[BriefAction("Open Transportation and drill into options", BriefActionKind.PLAYBOOK)],
        ))

    active = state.scenario.active()
    if active:
        posture = (
            f"Active scenarios: {', '.join(active)}. Use Control Tower to reprioritize exceptions "
            "and run playbooks with tighter guardrails."
        )
    else:
        posture = (
            "Turn on a scenario (e.g., DC outage / carrier disruption) and run live simulation "
            "to see cascading impacts and mitigation playbooks."
        )
    answers.append(BriefAnswer(
        question=Q_DISRUPTION,
        answer=posture,
        why=(
            "In degraded mode, decisions move to exception-based handling with explicit "
            "approval gates and spend/service caps."
        ),
        actions=[BriefAction("Open Scenario Simulator", BriefActionKind.PLAYBOOK)],
    ))
    return answers
