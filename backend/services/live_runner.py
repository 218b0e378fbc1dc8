"""
Live mode: steps the simulation on a fixed interval while the store is
"running". One asyncio task at most; stopping cancels it.
"""
import asyncio
import logging
from typing import List, Optional

from simulation.inventory import Transfer
from services.demo_store import DemoStore

logger = logging.getLogger(__name__)


def auto_execute_batch(store: DemoStore) -> List[Transfer]:
    """
    Top net-positive transfers whose running cost stays within the
    extra-approval threshold, cut to the per-execution batch limit.
    """
    policy = store.policy
    batch: List[Transfer] = []
    cost = 0
    for t in store.propose_rebalance():
        if len(batch) >= policy.max_transfers_per_exec:
            break
        if t.net_value <= 0:
            break
        if store.needs_extra_approval(cost + t.est_transfer_cost):
            break
        batch.append(t)
        cost += t.est_transfer_cost
    return batch


class LiveRunner:
    def __init__(self, store: DemoStore, interval: float = 2.0):
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe = store.subscribe(self._on_change)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval: Optional[float] = None) -> bool:
        """Start ticking; returns False when already running."""
        if interval is not None:
            self.interval = interval
        if self.is_running:
            return False
        self.store.set_running(True)
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Live mode started (every {self.interval:.2f}s)")
        return True

    async def stop(self) -> None:
        task = self._task
        self._task = None
        self.store.set_running(False)
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Live mode stopped")

    def close(self) -> None:
        self._unsubscribe()

    def tick(self) -> None:
        """One live step, plus auto-execution when the policy allows it."""
        self.store.step(1)
        if not self.store.policy.allow_auto_execute:
            return
        batch = auto_execute_batch(self.store)
        if batch:
            result = self.store.execute_rebalance(batch)
            logger.info(f"Auto-executed {len(batch)} transfers (ok={result.ok})")

    def _on_change(self, store: DemoStore, changed) -> None:
        # Regenerate (or any external set_running(False)) ends the loop
        if "running" in changed and not store.running and self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while self.store.running:
            await asyncio.sleep(self.interval)
            if not self.store.running:
                break
            try:
                self.tick()
            except Exception:
                logger.exception("Live step failed; stopping live mode")
                self.store.set_running(False)
                return
