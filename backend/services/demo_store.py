"""
Policy / Action Store

Single owner of the live DemoState, the action policy and the audit log.
Every mutation goes through a command method that swaps the state wholesale
and reports which facets changed:

  regenerate · toggle_scenario · set_scenario · step · set_running · set_policy
  execute_rebalance · execute_retender

Actions are gated by the daily spend cap. A blocked action is a business
outcome, not an error: the state is left untouched and a BLOCKED entry is
logged with the would-be cost and the remaining headroom.

Persistence is an explicit boundary (to_dict / from_dict / save / load);
nothing is written implicitly.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from app.constants import ActionStatus, EXPEDITE_CARRIER_ID, ScenarioFlag, ShipmentStatus
from simulation.data_generator import generate
from simulation.inventory import Transfer, apply_transfers, price_batch, propose_rebalancing
from simulation.schema import DemoState, state_from_dict, state_to_dict
from simulation.simulator import step_simulation
from simulation.transport import RetenderQuote, apply_retender, retender_quote
from utils.format import fmt_dollars

logger = logging.getLogger(__name__)

MAX_LOGS = 200
PROPOSAL_CAP = 18
UNLISTED_RETENDER_COST = 12_000

Listener = Callable[["DemoStore", Tuple[str, ...]], None]


class UnknownShipmentError(KeyError):
    """Raised when a command names a shipment that is not in the state."""


# ── Data model ─────────────────────────────────────────────────────────────────

@dataclass
class Policy:
    daily_action_spend_cap: float = 75_000
    max_transfers_per_exec: int = 6
    require_approval_over: float = 50_000
    allow_auto_execute: bool = False

    @classmethod
    def from_settings(cls, settings) -> "Policy":
        return cls(
            daily_action_spend_cap=settings.DAILY_ACTION_SPEND_CAP,
            max_transfers_per_exec=settings.MAX_TRANSFERS_PER_EXEC,
            require_approval_over=settings.REQUIRE_APPROVAL_OVER,
            allow_auto_execute=settings.ALLOW_AUTO_EXECUTE,
        )


@dataclass(frozen=True)
class ActionLog:
    ts: int             # epoch ms
    sim_day: int
    label: str
    detail: str
    benefit: float
    cost: float
    net: float
    status: ActionStatus

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d


@dataclass(frozen=True)
class CommandResult:
    state: DemoState
    changed: Tuple[str, ...] = ()
    ok: bool = True
    reason: Optional[str] = None


# ── Store ──────────────────────────────────────────────────────────────────────

class DemoStore:
    """
    Usage
    -----
    store = DemoStore(seed=42)
    unsubscribe = store.subscribe(lambda s, changed: print(changed))
    store.step(3)
    result = store.execute_rebalance(store.propose_rebalance())
    """

    def __init__(
        self,
        seed: int = 42,
        policy: Optional[Policy] = None,
        storage_key: str = "supply-autopilot-demo-v3",
    ):
        self._state: DemoState = generate(seed)
        self._running = False
        self._logs: List[ActionLog] = []
        self._policy = policy or Policy()
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()
        self.storage_key = storage_key

    # ── Read access ────────────────────────────────────────────────────────────

    @property
    def state(self) -> DemoState:
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def logs(self) -> List[ActionLog]:
        return list(self._logs)

    @property
    def policy(self) -> Policy:
        return replace(self._policy)

    # ── Observers ──────────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(store, changed)``; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changed: Tuple[str, ...]) -> None:
        if not changed:
            return
        for listener in list(self._listeners):
            listener(self, changed)

    # ── Commands ───────────────────────────────────────────────────────────────

    def regenerate(self, seed: Optional[int] = None) -> CommandResult:
        """New world; clears the audit log and stops live mode."""
        if seed is None:
            seed = int(np.random.default_rng().integers(0, 10_000))
        with self._lock:
            self._state = generate(seed)
            self._logs = []
            self._running = False
            result = CommandResult(self._state, ("state", "logs", "running"))
        logger.info(f"Regenerated network with seed {seed}")
        self._notify(result.changed)
        return result

    def toggle_scenario(self, flag) -> CommandResult:
        flag = ScenarioFlag(flag)
        with self._lock:
            self._state = replace(self._state, scenario=self._state.scenario.toggled(flag))
            result = CommandResult(self._state, ("state",))
        logger.info(f"Scenario {flag.value} → {getattr(self._state.scenario, flag.value)}")
        self._notify(result.changed)
        return result

    def set_scenario(self, flag, value: bool) -> CommandResult:
        flag = ScenarioFlag(flag)
        with self._lock:
            if getattr(self._state.scenario, flag.value) == bool(value):
                return CommandResult(self._state)
            self._state = replace(self._state, scenario=self._state.scenario.toggled(flag, value))
            result = CommandResult(self._state, ("state",))
        logger.info(f"Scenario {flag.value} → {bool(value)}")
        self._notify(result.changed)
        return result

    def step(self, days: int = 1) -> CommandResult:
        with self._lock:
            self._state = step_simulation(self._state, days)
            result = CommandResult(self._state, ("state",))
        logger.debug(f"Stepped {days} day(s) → day {self._state.today}")
        self._notify(result.changed)
        return result

    def set_running(self, running: bool) -> CommandResult:
        with self._lock:
            if self._running == bool(running):
                return CommandResult(self._state)
            self._running = bool(running)
            result = CommandResult(self._state, ("running",))
        self._notify(result.changed)
        return result

    def set_policy(self, **changes) -> CommandResult:
        known = {f.name for f in fields(Policy)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown policy field(s): {', '.join(unknown)}")
        if changes.get("max_transfers_per_exec", 1) < 0:
            raise ValueError("max_transfers_per_exec must be >= 0")
        with self._lock:
            self._policy = replace(self._policy, **changes)
            result = CommandResult(self._state, ("policy",))
        logger.info(f"Policy updated: {changes}")
        self._notify(result.changed)
        return result

    # ── Queries ────────────────────────────────────────────────────────────────

    def spend_today(self) -> float:
        """Executed action spend logged on the current simulation day."""
        with self._lock:
            day = self._state.today
            return sum(
                log.cost for log in self._logs
                if log.status == ActionStatus.EXECUTED and log.sim_day == day
            )

    def needs_extra_approval(self, cost: float) -> bool:
        return cost > self._policy.require_approval_over

    def propose_rebalance(self, only_sku_id: Optional[str] = None) -> List[Transfer]:
        return propose_rebalancing(self._state, PROPOSAL_CAP, only_sku_id)

    def retender_options(self, shipment_id: str) -> RetenderQuote:
        quote = retender_quote(self._state, shipment_id)
        if quote.shipment is None:
            raise UnknownShipmentError(shipment_id)
        return quote

    # ── Gated actions ──────────────────────────────────────────────────────────

    def _log(self, entry: ActionLog) -> None:
        self._logs = [entry] + self._logs[: MAX_LOGS - 1]

    def _block(self, label: str, cost: float, spent: float) -> ActionLog:
        entry = ActionLog(
            ts=int(time.time() * 1000),
            sim_day=self._state.today,
            label=label,
            detail=(
                f"Would spend {fmt_dollars(cost)} "
                f"(cap remaining {fmt_dollars(self._policy.daily_action_spend_cap - spent)})"
            ),
            benefit=0, cost=0, net=0,
            status=ActionStatus.BLOCKED,
        )
        self._log(entry)
        logger.warning(f"{label}: {entry.detail}")
        return entry

    def execute_rebalance(self, transfers: Sequence[Transfer]) -> CommandResult:
        """
        Apply up to ``max_transfers_per_exec`` transfers if the batch fits
        under the cap. Cost and benefit are re-priced from the current state;
        the estimates carried by ``transfers`` are ignored.
        """
        with self._lock:
            batch = price_batch(self._state, list(transfers)[: self._policy.max_transfers_per_exec])
            if not batch:
                return CommandResult(self._state, ok=False, reason="No transfers to execute")

            cost = sum(t.est_transfer_cost for t in batch)
            benefit = sum(t.est_value for t in batch)
            net = sum(t.net_value for t in batch)
            spent = self.spend_today()

            if spent + cost > self._policy.daily_action_spend_cap:
                self._block("Blocked: rebalancing (policy cap)", cost, spent)
                result = CommandResult(self._state, ("logs",), ok=False, reason="Daily spend cap exceeded")
            else:
                day = self._state.today
                self._state = apply_transfers(self._state, batch)
                self._log(ActionLog(
                    ts=int(time.time() * 1000),
                    sim_day=day,
                    label="Executed rebalancing transfers",
                    detail=f"{len(batch)} transfers",
                    benefit=benefit, cost=cost, net=net,
                    status=ActionStatus.EXECUTED,
                ))
                logger.info(f"Executed {len(batch)} transfers: cost {fmt_dollars(cost)}, net {fmt_dollars(net)}")
                result = CommandResult(self._state, ("state", "logs"))
        self._notify(result.changed)
        return result

    def execute_retender(self, shipment_id: str, carrier_id: str) -> CommandResult:
        """
        Re-tender one shipment. Cost is the selected option's freight
        (12,000 when the carrier is not among the ranked options); benefit is
        the penalty avoided relative to the best option.
        """
        with self._lock:
            quote = retender_quote(self._state, shipment_id)
            if quote.shipment is None:
                raise UnknownShipmentError(shipment_id)
            if carrier_id != EXPEDITE_CARRIER_ID and carrier_id not in self._state.carrier_by_id():
                raise ValueError(f"Unknown carrier: {carrier_id}")
            if quote.shipment.status == ShipmentStatus.DELIVERED:
                return CommandResult(self._state, ok=False, reason="Shipment already delivered")

            options = quote.options
            selected = next((o for o in options if o.carrier_id == carrier_id), None)
            cost = selected.exp_cost if selected else UNLISTED_RETENDER_COST
            best_penalty = min((o.exp_penalty for o in options), default=0)
            benefit = max(0, (selected.exp_penalty if selected else best_penalty) - best_penalty)
            net = benefit - cost
            spent = self.spend_today()

            if spent + cost > self._policy.daily_action_spend_cap:
                self._block("Blocked: re-tender (policy cap)", cost, spent)
                result = CommandResult(self._state, ("logs",), ok=False, reason="Daily spend cap exceeded")
            else:
                day = self._state.today
                self._state = apply_retender(self._state, shipment_id, carrier_id)
                self._log(ActionLog(
                    ts=int(time.time() * 1000),
                    sim_day=day,
                    label="Executed re-tender",
                    detail=f"Shipment {shipment_id} → {carrier_id}",
                    benefit=benefit, cost=cost, net=net,
                    status=ActionStatus.EXECUTED,
                ))
                logger.info(f"Re-tendered {shipment_id} to {carrier_id} for {fmt_dollars(cost)}")
                result = CommandResult(self._state, ("state", "logs"))
        self._notify(result.changed)
        return result

    # ── Persistence boundary ───────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": state_to_dict(self._state),
                "running": self._running,
                "logs": [log.to_dict() for log in self._logs],
                "policy": asdict(self._policy),
            }

    def from_dict(self, payload: Dict[str, Any]) -> CommandResult:
        with self._lock:
            self._state = state_from_dict(payload["state"])
            self._running = bool(payload.get("running", False))
            self._logs = [
                ActionLog(**{**log, "status": ActionStatus(log["status"])})
                for log in payload.get("logs", [])
            ][:MAX_LOGS]
            if "policy" in payload:
                self._policy = Policy(**payload["policy"])
            result = CommandResult(self._state, ("state", "running", "logs", "policy"))
        self._notify(result.changed)
        return result

    def save(self, path: str) -> None:
        with open(path, "w") as f:
            json.dump({self.storage_key: self.to_dict()}, f)
        logger.debug(f"Saved store snapshot to {path}")

    def load(self, path: str) -> CommandResult:
        with open(path) as f:
            payload = json.load(f)
        if self.storage_key not in payload:
            raise ValueError(f"No '{self.storage_key}' snapshot in {path}")
        logger.info(f"Loaded store snapshot from {path}")
        return self.from_dict(payload[self.storage_key])
