"""
Supply Chain Simulation & Decision Engine

Pure functions over an immutable DemoState snapshot:

  generate(seed)                 → initial world
  step_simulation(state, days)   → state advanced day by day
  forecast_demand(history, ...)  → next 7 / 28 day forecast per (region, SKU)
  propose_rebalancing(state)     → ranked DC-to-DC transfers
  apply_transfers(state, ts)     → state with transfers executed
  retender_options(state, id)    → carrier options by expected total cost
  apply_retender(state, id, k)   → state with carrier reassigned
  compute_exceptions(state)      → ranked risk exceptions
  compute_kpis(state)            → headline metrics
  build_executive_brief(state)   → question → answer → action narratives
"""
from .brief import BriefAction, BriefAnswer, build_executive_brief, dc_throughput_risk, top_rebalance_targets
from .data_generator import NetworkGenerator, generate
from .demand import Forecast, forecast_demand, forecast_table
from .inventory import Transfer, apply_transfers, get_or_create_lane, price_batch, price_transfer, propose_rebalancing
from .kpi import KPIs, compute_kpis
from .rng import SeededRandom
from .risk import RecommendedAction, SupplyException, compute_exceptions
from .schema import DemoState, state_from_dict, state_to_dict
from .simulator import step_simulation
from .transport import RetenderOption, RetenderQuote, apply_retender, retender_options, retender_quote

__all__ = [
    "BriefAction",
    "BriefAnswer",
    "DemoState",
    "Forecast",
    "KPIs",
    "NetworkGenerator",
    "RecommendedAction",
    "RetenderOption",
    "RetenderQuote",
    "SeededRandom",
    "SupplyException",
    "Transfer",
    "apply_retender",
    "apply_transfers",
    "build_executive_brief",
    "compute_exceptions",
    "compute_kpis",
    "dc_throughput_risk",
    "forecast_demand",
    "forecast_table",
    "generate",
    "get_or_create_lane",
    "price_batch",
    "price_transfer",
    "propose_rebalancing",
    "retender_options",
    "retender_quote",
    "state_from_dict",
    "state_to_dict",
    "step_simulation",
    "top_rebalance_targets",
]
