"""
cash_flow_engine.py
-------------------
Master orchestrator: runs the projection and valuation for a given set of
CashFlowAssumptions and returns everything in a single CashFlowModelOutput.

Computes:
  - Year 1..N cash flows (revenue through FCFF)
  - Terminal value, enterprise value, NPV
  - IRR (nan when undefined; see Valuation.irr_error)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import pandas as pd

from model.assumptions import CashFlowAssumptions
from model.projection import CashFlowYear, cash_flow_frame, project
from model.valuation import Valuation, value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CashFlowModelOutput:
    assumptions: CashFlowAssumptions
    cash_flows: tuple[CashFlowYear, ...]
    valuation: Valuation

    @property
    def terminal_value(self) -> float:
        return self.valuation.terminal_value

    @property
    def enterprise_value(self) -> float:
        return self.valuation.enterprise_value

    @property
    def npv(self) -> float:
        return self.valuation.npv

    @property
    def irr(self) -> float:
        return self.valuation.irr

    @property
    def irr_available(self) -> bool:
        return self.valuation.irr_available

    def cash_flow_df(self) -> pd.DataFrame:
        return cash_flow_frame(list(self.cash_flows))

    def to_record(self) -> dict:
        """camelCase record in the shape the UI layer consumes (IRR None if undefined)."""
        return {
            "assumptions":     self.assumptions.to_record(),
            "cashFlows":       [cf.to_record() for cf in self.cash_flows],
            "terminalValue":   self.terminal_value,
            "enterpriseValue": self.enterprise_value,
            "npv":             self.npv,
            "irr":             None if math.isnan(self.irr) else self.irr,
        }


def run_model(assumptions: CashFlowAssumptions) -> CashFlowModelOutput:
    """
    Run the full cash-flow model.

    Raises MalformedAssumptions or InvalidGrowthAssumption; an undefined IRR
    does not raise.
    """
    cash_flows = project(assumptions)
    valuation = value(cash_flows, assumptions)
    logger.debug("Model run: EV %.2f, NPV %.2f, IRR %s",
                 valuation.enterprise_value, valuation.npv, valuation.irr)
    return CashFlowModelOutput(
        assumptions=assumptions,
        cash_flows=tuple(cash_flows),
        valuation=valuation,
    )
