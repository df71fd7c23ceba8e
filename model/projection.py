"""
projection.py
-------------
Projects the unlevered free cash flow for each year of the forecast horizon.

Revenue → COGS → Gross Profit → OpEx → EBITDA → D&A → EBIT → Tax → NOPAT
        → CapEx / ΔNWC → FCFF

Notes:
  - Every cost line is a straight percent of that year's revenue (no fixed
    cost base).  Depreciation multiplies revenue or CapEx depending on
    assumptions.depreciation_basis.
  - ΔNWC is driven by the revenue delta; Year 1 is measured against the
    initial revenue.  A revenue decline releases working capital (negative).
  - Taxes floor at zero.  No loss carry-forward is modeled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

from model.assumptions import CashFlowAssumptions, validate_assumptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpexBreakdown:
    research_and_development: float
    sales_and_marketing: float
    general_and_administrative: float
    total: float


@dataclass(frozen=True)
class CashFlowYear:
    year: int
    revenue: float
    cogs: float
    gross_profit: float
    opex: OpexBreakdown
    ebitda: float
    depreciation: float
    ebit: float
    taxes: float
    nopat: float
    capex: float
    change_in_nwc: float
    fcff: float

    def to_record(self) -> dict:
        return {
            "year":         self.year,
            "revenue":      self.revenue,
            "cogs":         self.cogs,
            "grossProfit":  self.gross_profit,
            "opex": {
                "researchAndDevelopment":   self.opex.research_and_development,
                "salesAndMarketing":        self.opex.sales_and_marketing,
                "generalAndAdministrative": self.opex.general_and_administrative,
                "total":                    self.opex.total,
            },
            "ebitda":       self.ebitda,
            "depreciation": self.depreciation,
            "ebit":         self.ebit,
            "taxes":        self.taxes,
            "nopat":        self.nopat,
            "capex":        self.capex,
            "changeInNwc":  self.change_in_nwc,
            "fcff":         self.fcff,
        }


def project(assumptions: CashFlowAssumptions) -> list[CashFlowYear]:
    """
    Returns one CashFlowYear per forecast year (Year 1..N).
    Raises MalformedAssumptions before computing anything if the input
    sequences do not match the forecast horizon.
    """
    validate_assumptions(assumptions)
    a = assumptions
    opex_rates = a.opex

    years: list[CashFlowYear] = []
    prev_revenue = a.initial_revenue

    for i in range(a.forecast_horizon):
        # --- Revenue ---
        revenue = prev_revenue * (1 + a.revenue_growth_rate[i])

        # --- Gross Profit ---
        cogs = revenue * a.cogs_percentage[i]
        gross_profit = revenue - cogs

        # --- OpEx ---
        rnd = revenue * opex_rates.research_and_development[i]
        snm = revenue * opex_rates.sales_and_marketing[i]
        gna = revenue * opex_rates.general_and_administrative[i]
        opex = OpexBreakdown(rnd, snm, gna, rnd + snm + gna)

        ebitda = gross_profit - opex.total

        # --- CapEx / D&A ---
        capex = revenue * a.capex_percentage[i]
        dep_base = capex if a.depreciation_basis == "capex" else revenue
        depreciation = dep_base * a.depreciation_percentage[i]
        ebit = ebitda - depreciation

        # --- Taxes on operating income ---
        taxes = max(0.0, ebit * a.tax_rate)
        nopat = ebit - taxes

        # --- Working capital ---
        change_in_nwc = (revenue - prev_revenue) * a.change_in_nwc_percentage

        fcff = nopat + depreciation - capex - change_in_nwc

        years.append(CashFlowYear(
            year=i + 1,
            revenue=revenue,
            cogs=cogs,
            gross_profit=gross_profit,
            opex=opex,
            ebitda=ebitda,
            depreciation=depreciation,
            ebit=ebit,
            taxes=taxes,
            nopat=nopat,
            capex=capex,
            change_in_nwc=change_in_nwc,
            fcff=fcff,
        ))
        prev_revenue = revenue

    logger.debug("Projected %d years; final-year FCFF %.2f",
                 len(years), years[-1].fcff)
    return years


# Display order of line items (label, attribute path)
LINE_ITEMS = [
    ("Revenue",             "revenue"),
    ("COGS",                "cogs"),
    ("Gross Profit",        "gross_profit"),
    ("R&D",                 "opex.research_and_development"),
    ("S&M",                 "opex.sales_and_marketing"),
    ("G&A",                 "opex.general_and_administrative"),
    ("Total OPEX",          "opex.total"),
    ("EBITDA",              "ebitda"),
    ("Depreciation",        "depreciation"),
    ("EBIT",                "ebit"),
    ("Taxes",               "taxes"),
    ("NOPAT",               "nopat"),
    ("CAPEX",               "capex"),
    ("Change in NWC",       "change_in_nwc"),
    ("FCFF",                "fcff"),
]


def _get(obj, path: str) -> float:
    for part in path.split("."):
        obj = getattr(obj, part)
    return obj


def cash_flow_frame(cash_flows: list[CashFlowYear]) -> pd.DataFrame:
    """
    Returns a wide DataFrame with one column per projected year.
    Index = line item labels.
    """
    data = {
        f"Year {cf.year}": {label: _get(cf, path) for label, path in LINE_ITEMS}
        for cf in cash_flows
    }
    df = pd.DataFrame(data)
    return df.loc[[label for label, _ in LINE_ITEMS]]
