"""
sensitivity.py
--------------
Two-way sensitivity tables for enterprise value.

Table 1: Discount Rate (rows) vs Exit Multiple (cols)       → EV
Table 2: Discount Rate (rows) vs Terminal Growth Rate (cols) → EV

Grid points that cannot be valued (e.g. terminal growth ≥ discount rate)
are left as NaN rather than aborting the table.
"""

from __future__ import annotations

from dataclasses import replace

import numpy as np
import pandas as pd

from model.assumptions import CashFlowAssumptions, ExitMultiple, GordonGrowth, default_assumptions
from model.cash_flow_engine import run_model
from model.errors import CashFlowModelError


DEFAULT_DISCOUNT_RATES = [0.10, 0.125, 0.15, 0.175, 0.20, 0.25]
DEFAULT_EXIT_MULTIPLES = [3.0, 4.0, 5.0, 6.0, 8.0, 10.0]
DEFAULT_TERMINAL_GROWTH = [0.01, 0.02, 0.03, 0.04, 0.05]


def _run_point(base: CashFlowAssumptions, **overrides) -> float:
    """Run model with overrides, return enterprise value (NaN if invalid)."""
    try:
        return run_model(replace(base, **overrides)).enterprise_value
    except CashFlowModelError:
        return np.nan


def discount_rate_vs_exit_multiple(
    base: CashFlowAssumptions | None = None,
    discount_rates: list[float] = DEFAULT_DISCOUNT_RATES,
    exit_multiples: list[float] = DEFAULT_EXIT_MULTIPLES,
) -> pd.DataFrame:
    """EV sensitivity: rows = discount rate, cols = exit multiple."""
    base = base or default_assumptions()
    ev_data = {}

    for mult in exit_multiples:
        col = {}
        for rate in discount_rates:
            col[f"{rate:.1%}"] = _run_point(base, discount_rate=rate,
                                            terminal_value=ExitMultiple(mult))
        ev_data[f"Exit {mult:.1f}x"] = col

    df = pd.DataFrame(ev_data)
    df.index.name = "Discount Rate"
    return df


def discount_rate_vs_terminal_growth(
    base: CashFlowAssumptions | None = None,
    discount_rates: list[float] = DEFAULT_DISCOUNT_RATES,
    growth_rates: list[float] = DEFAULT_TERMINAL_GROWTH,
) -> pd.DataFrame:
    """EV sensitivity under Gordon Growth: rows = discount rate, cols = g."""
    base = base or default_assumptions()
    ev_data = {}

    for g in growth_rates:
        col = {}
        for rate in discount_rates:
            col[f"{rate:.1%}"] = _run_point(base, discount_rate=rate,
                                            terminal_value=GordonGrowth(g))
        ev_data[f"g = {g:.1%}"] = col

    df = pd.DataFrame(ev_data)
    df.index.name = "Discount Rate"
    return df
