"""
assumptions.py
--------------
Immutable input record for the venture cash-flow model.

Structured in three logical blocks:
  1. Revenue base and per-year operating drivers (fractions of revenue)
  2. Tax, working capital and discounting (scalar rates)
  3. Terminal value (ExitMultiple | GordonGrowth)

All rates are decimals (e.g., 0.15 = 15%).  The UI layer owns any x100
display conversion; nothing in this package sees percentage-scaled numbers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Optional, Sequence, Tuple, Union

from model.errors import MalformedAssumptions


DEFAULT_FORECAST_HORIZON = 5

DEPRECIATION_BASES = ("revenue", "capex")

EXIT_MULTIPLE_LABEL = "Exit Multiple"
GORDON_GROWTH_LABEL = "Gordon Growth"


# ---------------------------------------------------------------------------
# Terminal value variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExitMultiple:
    """Terminal value = final-year EBITDA x multiple."""
    multiple: float

    label = EXIT_MULTIPLE_LABEL


@dataclass(frozen=True)
class GordonGrowth:
    """Terminal value = final-year FCFF x (1 + g) / (r - g)."""
    growth_rate: float

    label = GORDON_GROWTH_LABEL


TerminalValueSpec = Union[ExitMultiple, GordonGrowth]


def _as_tuple(values) -> Tuple[float, ...]:
    return tuple(float(v) for v in values)


@dataclass(frozen=True)
class OpexAssumptions:
    """Operating expense ratios, one entry per forecast year."""
    research_and_development: Tuple[float, ...]
    sales_and_marketing: Tuple[float, ...]
    general_and_administrative: Tuple[float, ...]

    def __post_init__(self):
        for f in fields(self):
            object.__setattr__(self, f.name, _as_tuple(getattr(self, f.name)))

    def lines(self) -> dict[str, Tuple[float, ...]]:
        return {
            "research_and_development":   self.research_and_development,
            "sales_and_marketing":        self.sales_and_marketing,
            "general_and_administrative": self.general_and_administrative,
        }


# Per-year sequences on CashFlowAssumptions (opex handled separately)
YEARLY_FIELDS = (
    "revenue_growth_rate",
    "cogs_percentage",
    "capex_percentage",
    "depreciation_percentage",
)


@dataclass(frozen=True)
class CashFlowAssumptions:
    """
    Master container for all cash-flow model inputs.

    Sequences index 0 = Year 1, ..., n-1 = Year N.  Lists are accepted and
    stored as tuples so a run can never mutate the caller's record.
    """
    # -----------------------------------------------------------------------
    # 1. REVENUE BASE & OPERATING DRIVERS
    # -----------------------------------------------------------------------
    initial_revenue: float
    revenue_growth_rate: Tuple[float, ...]
    cogs_percentage: Tuple[float, ...]
    opex: OpexAssumptions
    capex_percentage: Tuple[float, ...]
    depreciation_percentage: Tuple[float, ...]

    # -----------------------------------------------------------------------
    # 2. TAX, WORKING CAPITAL, DISCOUNTING
    # -----------------------------------------------------------------------
    tax_rate: float
    change_in_nwc_percentage: float      # x year-over-year revenue delta
    discount_rate: float                 # WACC

    # -----------------------------------------------------------------------
    # 3. TERMINAL VALUE
    # -----------------------------------------------------------------------
    terminal_value: TerminalValueSpec = field(default_factory=lambda: ExitMultiple(5.0))

    forecast_horizon: int = DEFAULT_FORECAST_HORIZON

    # Outlay netted in NPV and seeded (negated) at t=0 of the IRR series.
    # None keeps the legacy behaviour of netting against initial_revenue.
    initial_investment: Optional[float] = None

    # What depreciation_percentage multiplies: "revenue" or "capex"
    depreciation_basis: str = "revenue"

    def __post_init__(self):
        for name in YEARLY_FIELDS:
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))
        if not isinstance(self.opex, OpexAssumptions):
            object.__setattr__(self, "opex", OpexAssumptions(**dict(self.opex)))

    # -----------------------------------------------------------------------
    # COMPUTED PROPERTIES
    # -----------------------------------------------------------------------
    @property
    def investment_basis(self) -> float:
        if self.initial_investment is None:
            return self.initial_revenue
        return self.initial_investment

    @property
    def terminal_value_method(self) -> str:
        return self.terminal_value.label

    def yearly_series(self) -> dict[str, Tuple[float, ...]]:
        """Every per-year sequence keyed by field name (opex lines flattened)."""
        series = {name: getattr(self, name) for name in YEARLY_FIELDS}
        series.update(self.opex.lines())
        return series

    # -----------------------------------------------------------------------
    # RECORD CONVERSION (camelCase shape exchanged with the UI / AI layer)
    # -----------------------------------------------------------------------
    @classmethod
    def from_record(cls, record: dict) -> "CashFlowAssumptions":
        """
        Build assumptions from the camelCase record the generative model
        returns.  Missing keys raise MalformedAssumptions; lengths are not
        checked here (see validate_assumptions).
        """
        try:
            opex = record["opex"]
            method = str(record["terminalValueMethod"]).replace(" ", "").lower()
            if method == "exitmultiple":
                terminal = ExitMultiple(float(record["exitMultiple"]))
            elif method == "gordongrowth":
                terminal = GordonGrowth(float(record["terminalGrowthRate"]))
            else:
                raise MalformedAssumptions(
                    f"Unknown terminal value method: {record['terminalValueMethod']!r}")

            return cls(
                forecast_horizon=int(record.get("forecastHorizon", DEFAULT_FORECAST_HORIZON)),
                initial_revenue=float(record["initialRevenue"]),
                revenue_growth_rate=record["revenueGrowthRate"],
                cogs_percentage=record["cogsPercentage"],
                opex=OpexAssumptions(
                    research_and_development=opex["researchAndDevelopment"],
                    sales_and_marketing=opex["salesAndMarketing"],
                    general_and_administrative=opex["generalAndAdministrative"],
                ),
                tax_rate=float(record["taxRate"]),
                capex_percentage=record["capexPercentage"],
                depreciation_percentage=record["depreciationPercentage"],
                change_in_nwc_percentage=float(record["changeInNwcPercentage"]),
                discount_rate=float(record["discountRate"]),
                terminal_value=terminal,
                initial_investment=(None if record.get("initialInvestment") is None
                                    else float(record["initialInvestment"])),
                depreciation_basis=record.get("depreciationBasis", "revenue"),
            )
        except MalformedAssumptions:
            raise
        except KeyError as exc:
            raise MalformedAssumptions(f"Missing assumption field: {exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise MalformedAssumptions(f"Invalid assumption value: {exc}") from exc

    def to_record(self) -> dict:
        tv = self.terminal_value
        return {
            "forecastHorizon":       self.forecast_horizon,
            "initialRevenue":        self.initial_revenue,
            "revenueGrowthRate":     list(self.revenue_growth_rate),
            "cogsPercentage":        list(self.cogs_percentage),
            "opex": {
                "researchAndDevelopment":   list(self.opex.research_and_development),
                "salesAndMarketing":        list(self.opex.sales_and_marketing),
                "generalAndAdministrative": list(self.opex.general_and_administrative),
            },
            "taxRate":               self.tax_rate,
            "capexPercentage":       list(self.capex_percentage),
            "depreciationPercentage": list(self.depreciation_percentage),
            "changeInNwcPercentage": self.change_in_nwc_percentage,
            "discountRate":          self.discount_rate,
            "terminalValueMethod":   tv.label,
            "terminalGrowthRate":    tv.growth_rate if isinstance(tv, GordonGrowth) else None,
            "exitMultiple":          tv.multiple if isinstance(tv, ExitMultiple) else None,
            "initialInvestment":     self.initial_investment,
            "depreciationBasis":     self.depreciation_basis,
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _check_length(name: str, values: Sequence[float], n: int) -> None:
    if len(values) != n:
        raise MalformedAssumptions(
            f"{name} has {len(values)} entries; forecast horizon is {n}")


def validate_assumptions(a: CashFlowAssumptions) -> None:
    """Reject malformed input before any computation runs."""
    n = a.forecast_horizon
    if not isinstance(n, int) or isinstance(n, bool) or n < 1:
        raise MalformedAssumptions(f"forecast horizon must be a positive integer, got {n!r}")

    for name, values in a.yearly_series().items():
        _check_length(name, values, n)

    if not a.initial_revenue > 0:
        raise MalformedAssumptions("initial revenue must be positive")
    if not isinstance(a.terminal_value, (ExitMultiple, GordonGrowth)):
        raise MalformedAssumptions(f"unsupported terminal value spec: {a.terminal_value!r}")
    if a.depreciation_basis not in DEPRECIATION_BASES:
        raise MalformedAssumptions(
            f"depreciation basis must be one of {DEPRECIATION_BASES}, got {a.depreciation_basis!r}")
    if a.discount_rate <= -1.0:
        raise MalformedAssumptions("discount rate must be greater than -100%")

    scalars = [a.initial_revenue, a.tax_rate, a.change_in_nwc_percentage, a.discount_rate]
    scalars += [v for values in a.yearly_series().values() for v in values]
    tv = a.terminal_value
    scalars.append(tv.multiple if isinstance(tv, ExitMultiple) else tv.growth_rate)
    if a.initial_investment is not None:
        scalars.append(a.initial_investment)
    if any(not math.isfinite(v) for v in scalars):
        raise MalformedAssumptions("assumptions must be finite numbers")


# ---------------------------------------------------------------------------
# Convenience: default inputs shown to a new venture
# ---------------------------------------------------------------------------

def default_assumptions() -> CashFlowAssumptions:
    return CashFlowAssumptions(
        forecast_horizon=5,
        initial_revenue=100_000.0,
        revenue_growth_rate=[1.5, 1.2, 1.0, 0.8, 0.6],
        cogs_percentage=[0.30, 0.28, 0.26, 0.25, 0.25],
        opex=OpexAssumptions(
            research_and_development=[0.20, 0.18, 0.15, 0.12, 0.10],
            sales_and_marketing=[0.40, 0.35, 0.30, 0.25, 0.25],
            general_and_administrative=[0.15, 0.12, 0.10, 0.08, 0.08],
        ),
        tax_rate=0.21,
        capex_percentage=[0.10, 0.08, 0.06, 0.05, 0.05],
        depreciation_percentage=[0.15, 0.15, 0.15, 0.15, 0.15],
        change_in_nwc_percentage=0.05,
        discount_rate=0.15,
        terminal_value=ExitMultiple(5.0),
    )
