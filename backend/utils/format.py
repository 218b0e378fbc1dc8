"""Numeric and display helpers shared by the engine, the store and the API."""
import math


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(x + 0.5))


def mean(values) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def fmt_money(n: float) -> str:
    sign = "-" if n < 0 else ""
    a = abs(n)
    if a >= 1_000_000:
        return f"{sign}${a / 1_000_000:.2f}M"
    if a >= 1_000:
        return f"{sign}${a / 1_000:.1f}K"
    return f"{sign}${a:.0f}"


def fmt_dollars(n: float) -> str:
    """Whole-dollar amount with thousands separators, e.g. $12,345."""
    v = round_half_up(n)
    return f"-${abs(v):,}" if v < 0 else f"${v:,}"


def fmt_pct(n: float) -> str:
    return f"{round_half_up(n * 100)}%"
