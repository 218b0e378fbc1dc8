"""
Near-term demand forecast per (region, SKU).

Single exponential smoothing seeded by the first observation:

    s_0 = x_0
    s_t = α·x_t + (1 − α)·s_{t−1}

weekly  = mean(last 7 smoothed values) × 7, clamped to [weekly, 1.35·weekly], ≥ 0
next7d  = round(weekly)
next28d = 4 × next7d
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from app.constants import Region
from utils.format import clamp, mean, round_half_up

from .schema import DemandPoint, DemoState

DEFAULT_ALPHA = 0.35
SEASONALITY_CAP = 1.35


@dataclass(frozen=True)
class Forecast:
    region: Region
    sku_id: str
    next7d: int
    next28d: int
    alpha: float

    @property
    def daily(self) -> float:
        """Forecast daily demand, floored at 1 case for cover ratios."""
        return max(1.0, self.next7d / 7)


def smooth(series: List[float], alpha: float = DEFAULT_ALPHA) -> List[float]:
    if not series:
        return []
    level = float(series[0])
    out = [level]
    for x in series[1:]:
        level = alpha * x + (1 - alpha) * level
        out.append(level)
    return out


def forecast_demand(
    history: Iterable[DemandPoint],
    region: Region,
    sku_id: str,
    alpha: float = DEFAULT_ALPHA,
) -> Forecast:
    points = sorted(
        (p for p in history if p.region == region and p.sku_id == sku_id),
        key=lambda p: p.day,
    )
    if not points:
        return Forecast(region=region, sku_id=sku_id, next7d=0, next28d=0, alpha=alpha)

    smoothed = smooth([p.demand_cases for p in points], alpha)
    weekly = max(0.0, mean(smoothed[-7:]) * 7)
    weekly = clamp(weekly, weekly, weekly * SEASONALITY_CAP)
    next7d = round_half_up(weekly)
    return Forecast(region=region, sku_id=sku_id, next7d=next7d, next28d=4 * next7d, alpha=alpha)


def forecast_table(state: DemoState, alpha: float = DEFAULT_ALPHA) -> Dict[Tuple[Region, str], Forecast]:
    """Forecast for every (region, SKU) present in the network."""
    regions = []
    for node in state.nodes:
        if node.region not in regions:
            regions.append(node.region)
    return {
        (region, sku.id): forecast_demand(state.demand_history, region, sku.id, alpha)
        for region in regions
        for sku in state.skus
    }
