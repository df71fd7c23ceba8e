"""
scenarios.py
------------
Defines Worst / Base / Best scenarios and runs the cash-flow model for each.
Returns a ScenarioSet plus comparison DataFrames (cumulative FCFF, key
valuation metrics).

Every scenario is built from its own assumptions object and runs
independently; a scenario that fails validation or valuation is recorded in
ScenarioSet.errors and does not stop the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from model.assumptions import CashFlowAssumptions, OpexAssumptions, default_assumptions
from model.cash_flow_engine import CashFlowModelOutput, run_model
from model.errors import CashFlowModelError
from utils.formatting import fmt_currency, fmt_irr, fmt_multiple

logger = logging.getLogger(__name__)


class ScenarioType(str, Enum):
    BASE = "Base Case"
    BEST = "Best Case"
    WORST = "Worst Case"


SCENARIO_ORDER = [ScenarioType.WORST, ScenarioType.BASE, ScenarioType.BEST]


@dataclass(frozen=True)
class ScenarioShifts:
    """How far Best / Worst move away from the base drivers."""
    best_growth_factor: float = 1.25    # growth moves by (factor - 1) x |growth|
    worst_growth_factor: float = 0.60
    best_cogs_shift: float = -0.03      # added to each year's COGS %
    worst_cogs_shift: float = 0.04
    best_opex_factor: float = 0.95      # × each opex line
    worst_opex_factor: float = 1.10


@dataclass(frozen=True)
class FinancialScenario:
    scenario_type: ScenarioType
    cash_flow_model: CashFlowModelOutput
    summary: str = ""

    def to_record(self) -> dict:
        return {
            "scenarioType":         self.scenario_type.value,
            "summaryOfAssumptions": self.summary,
            "cashFlowModel":        self.cash_flow_model.to_record(),
        }


@dataclass
class ScenarioSet:
    scenarios: dict[ScenarioType, FinancialScenario] = field(default_factory=dict)
    errors: dict[ScenarioType, str] = field(default_factory=dict)

    @property
    def base(self) -> Optional[FinancialScenario]:
        return self.scenarios.get(ScenarioType.BASE)

    @property
    def best(self) -> Optional[FinancialScenario]:
        return self.scenarios.get(ScenarioType.BEST)

    @property
    def worst(self) -> Optional[FinancialScenario]:
        return self.scenarios.get(ScenarioType.WORST)

    def ordered(self) -> list[FinancialScenario]:
        return [self.scenarios[t] for t in SCENARIO_ORDER if t in self.scenarios]


# ---------------------------------------------------------------------------
# Scenario assumptions
# ---------------------------------------------------------------------------

def _shift_opex(opex: OpexAssumptions, factor: float) -> OpexAssumptions:
    return OpexAssumptions(**{
        name: [max(0.0, v * factor) for v in values]
        for name, values in opex.lines().items()
    })


def _shift_growth(g: float, factor: float) -> float:
    # factor > 1 is always more optimistic, whatever the sign of g
    return max(-1.0, g + abs(g) * (factor - 1))


def _variant(base: CashFlowAssumptions, growth_factor: float,
             cogs_shift: float, opex_factor: float) -> CashFlowAssumptions:
    return replace(
        base,
        revenue_growth_rate=[_shift_growth(g, growth_factor)
                             for g in base.revenue_growth_rate],
        cogs_percentage=[min(1.0, max(0.0, c + cogs_shift)) for c in base.cogs_percentage],
        opex=_shift_opex(base.opex, opex_factor),
    )


def _describe(growth_factor: float, cogs_shift: float, opex_factor: float) -> str:
    return (f"Revenue growth {growth_factor - 1:+.0%} of base, "
            f"COGS {cogs_shift * 100:+.1f} pts, "
            f"OpEx {opex_factor:.2f}x base")


def make_scenario_assumptions(
    base: CashFlowAssumptions | None = None,
    shifts: ScenarioShifts | None = None,
) -> dict[ScenarioType, tuple[CashFlowAssumptions, str]]:
    """Independent assumption sets (and summaries) for Worst / Base / Best."""
    base = base or default_assumptions()
    s = shifts or ScenarioShifts()

    return {
        ScenarioType.WORST: (
            _variant(base, s.worst_growth_factor, s.worst_cogs_shift, s.worst_opex_factor),
            _describe(s.worst_growth_factor, s.worst_cogs_shift, s.worst_opex_factor),
        ),
        ScenarioType.BASE: (base, "Assumptions as entered"),
        ScenarioType.BEST: (
            _variant(base, s.best_growth_factor, s.best_cogs_shift, s.best_opex_factor),
            _describe(s.best_growth_factor, s.best_cogs_shift, s.best_opex_factor),
        ),
    }


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------

def run_scenarios(
    base_assumptions: CashFlowAssumptions | None = None,
    variants: dict[ScenarioType, CashFlowAssumptions] | None = None,
    summaries: dict[ScenarioType, str] | None = None,
    shifts: ScenarioShifts | None = None,
) -> ScenarioSet:
    """
    Run all three scenarios.

    variants overrides the generated Best / Worst assumptions (for example
    with a set proposed by the AI layer).  A failing run, Base included, is
    logged and recorded in ScenarioSet.errors while the others still run.
    The Base error is raised only when no scenario completed.
    """
    planned = make_scenario_assumptions(base_assumptions, shifts)
    for scenario_type, assumptions in (variants or {}).items():
        planned[ScenarioType(scenario_type)] = (assumptions, "")
    for scenario_type, text in (summaries or {}).items():
        assumptions, _ = planned[ScenarioType(scenario_type)]
        planned[ScenarioType(scenario_type)] = (assumptions, text)

    result = ScenarioSet()
    base_error = None
    for scenario_type in SCENARIO_ORDER:
        assumptions, summary = planned[scenario_type]
        try:
            model = run_model(assumptions)
        except CashFlowModelError as exc:
            if scenario_type is ScenarioType.BASE:
                base_error = exc
            logger.warning("%s dropped: %s", scenario_type.value, exc)
            result.errors[scenario_type] = str(exc)
            continue
        result.scenarios[scenario_type] = FinancialScenario(scenario_type, model, summary)

    if not result.scenarios and base_error is not None:
        raise base_error
    return result


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def _as_list(scenarios) -> list[FinancialScenario]:
    if isinstance(scenarios, ScenarioSet):
        return scenarios.ordered()
    return list(scenarios)


def cumulative_fcff(scenarios: ScenarioSet | Iterable[FinancialScenario]) -> pd.DataFrame:
    """
    Running total of FCFF per scenario (accumulation starts at zero).
    Rows = "Year 1".."Year N", columns = scenario labels.
    """
    data = {}
    for sc in _as_list(scenarios):
        fcff = [cf.fcff for cf in sc.cash_flow_model.cash_flows]
        data[sc.scenario_type.value] = pd.Series(
            np.cumsum(fcff), index=[f"Year {i}" for i in range(1, len(fcff) + 1)])
    return pd.DataFrame(data)


def comparison_df(scenarios: ScenarioSet | Iterable[FinancialScenario]) -> pd.DataFrame:
    """Display-formatted key metrics, one column per scenario."""
    rows = {}
    for sc in _as_list(scenarios):
        m = sc.cash_flow_model
        a = m.assumptions
        final = m.cash_flows[-1]
        rows[sc.scenario_type.value] = {
            "Final-Year Revenue":  fmt_currency(final.revenue),
            "Final-Year EBITDA":   fmt_currency(final.ebitda),
            "Cumulative FCFF":     fmt_currency(sum(cf.fcff for cf in m.cash_flows)),
            "Terminal Value":      fmt_currency(m.terminal_value),
            "TV Method":           a.terminal_value_method,
            "Enterprise Value":    fmt_currency(m.enterprise_value),
            "NPV":                 fmt_currency(m.npv),
            "IRR":                 fmt_irr(m.irr),
            "EV / Final EBITDA":   fmt_multiple(m.enterprise_value / final.ebitda)
                                   if final.ebitda > 0 else "N/A",
        }
    df = pd.DataFrame(rows)
    df.index.name = "Metric"
    return df
