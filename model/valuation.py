"""
valuation.py
------------
Terminal value, discounting, enterprise value, NPV and IRR for a projected
cash-flow series.

Terminal value methods:
  Exit Multiple  : TV = final-year EBITDA × multiple
  Gordon Growth  : TV = final-year FCFF × (1 + g) / (r − g),  requires r > g

Enterprise Value = Σ FCFF_t / (1 + r)^t  +  TV / (1 + r)^N
NPV              = EV − investment basis
IRR              = root of Σ CF_t / (1 + r)^t over [−basis, FCFF_1 … FCFF_N]
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np
from scipy.optimize import brentq, newton

from model.assumptions import (CashFlowAssumptions, ExitMultiple, GordonGrowth,
                               TerminalValueSpec)
from model.errors import InvalidGrowthAssumption, NoConvergingRoot
from model.projection import CashFlowYear

logger = logging.getLogger(__name__)


# IRR search range (−99% … +1000%) and solver budget
IRR_LOWER_BOUND = -0.99
IRR_UPPER_BOUND = 10.0
IRR_INITIAL_GUESS = 0.10
IRR_MAX_ITER = 500
IRR_TOLERANCE = 1e-10


@dataclass(frozen=True)
class Valuation:
    terminal_value: float
    pv_terminal_value: float
    pv_fcff: tuple[float, ...]
    enterprise_value: float
    npv: float
    irr: float                       # nan when no root exists
    irr_error: Optional[str] = None

    @property
    def irr_available(self) -> bool:
        return not math.isnan(self.irr)


# ---------------------------------------------------------------------------
# Discounting helpers
# ---------------------------------------------------------------------------

def discount_factors(rate: float, periods: int) -> list[float]:
    """Return [1/(1+r)^1, ..., 1/(1+r)^periods]."""
    return [1.0 / ((1.0 + rate) ** t) for t in range(1, periods + 1)]


def present_value(cashflows: Iterable[float], rate: float) -> float:
    total = 0.0
    for t, cf in enumerate(cashflows, start=1):
        total += float(cf) / ((1.0 + rate) ** t)
    return total


def check_growth_assumption(spec: TerminalValueSpec, discount_rate: float) -> None:
    if isinstance(spec, GordonGrowth) and discount_rate <= spec.growth_rate:
        raise InvalidGrowthAssumption(
            f"Gordon Growth needs discount rate ({discount_rate:.2%}) above "
            f"terminal growth ({spec.growth_rate:.2%})")


def terminal_value(cash_flows: Sequence[CashFlowYear], spec: TerminalValueSpec,
                   discount_rate: float) -> float:
    """Terminal value at the end of the final forecast year (undiscounted)."""
    final = cash_flows[-1]
    if isinstance(spec, ExitMultiple):
        return final.ebitda * spec.multiple
    check_growth_assumption(spec, discount_rate)
    g = spec.growth_rate
    return final.fcff * (1 + g) / (discount_rate - g)


# ---------------------------------------------------------------------------
# IRR
# ---------------------------------------------------------------------------

def npv_at(rate: float, series: Sequence[float]) -> float:
    """NPV of a series whose index 0 is t=0 (undiscounted)."""
    return sum(cf / (1 + rate) ** t for t, cf in enumerate(series))


def _npv_slope(rate: float, series: Sequence[float]) -> float:
    return sum(-t * cf / (1 + rate) ** (t + 1) for t, cf in enumerate(series))


def _is_root(rate, series: Sequence[float]) -> bool:
    if not np.isfinite(rate) or not IRR_LOWER_BOUND <= rate <= IRR_UPPER_BOUND:
        return False
    scale = max(1.0, sum(abs(cf) for cf in series))
    return abs(npv_at(rate, series)) <= 1e-9 * scale


def solve_irr(series: Sequence[float]) -> float:
    """
    Newton-Raphson from a 10% seed, falling back to bracketed bisection
    (brentq) over [−99%, +1000%].  Raises NoConvergingRoot when the series
    has no sign change inside that range.
    """
    series = [float(cf) for cf in series]
    if len(series) < 2 or all(cf >= 0 for cf in series) or all(cf <= 0 for cf in series):
        raise NoConvergingRoot("IRR undefined: cash flows never change sign")

    try:
        # a diverging Newton step overflows numpy scalars; brentq takes over below
        with np.errstate(all="ignore"):
            r = newton(npv_at, IRR_INITIAL_GUESS, fprime=_npv_slope, args=(series,),
                       tol=IRR_TOLERANCE, maxiter=IRR_MAX_ITER)
        if _is_root(r, series):
            return float(r)
    except (RuntimeError, OverflowError, ZeroDivisionError):
        pass

    lo = npv_at(IRR_LOWER_BOUND, series)
    hi = npv_at(IRR_UPPER_BOUND, series)
    if lo * hi > 0:
        raise NoConvergingRoot(
            f"IRR undefined: no sign change between {IRR_LOWER_BOUND:.0%} "
            f"and {IRR_UPPER_BOUND:.0%}")
    try:
        return float(brentq(npv_at, IRR_LOWER_BOUND, IRR_UPPER_BOUND, args=(series,),
                            xtol=IRR_TOLERANCE, maxiter=IRR_MAX_ITER))
    except (RuntimeError, ValueError) as exc:
        raise NoConvergingRoot(f"IRR solver did not converge: {exc}") from exc


def irr_series(cash_flows: Sequence[CashFlowYear], assumptions: CashFlowAssumptions) -> list[float]:
    """[−investment basis at t=0, FCFF Year 1, …, FCFF Year N]"""
    return [-assumptions.investment_basis] + [cf.fcff for cf in cash_flows]


# ---------------------------------------------------------------------------
# Main valuation
# ---------------------------------------------------------------------------

def value(cash_flows: Sequence[CashFlowYear], assumptions: CashFlowAssumptions) -> Valuation:
    """
    Value a projection.  InvalidGrowthAssumption propagates (checked before
    anything is discounted); an undefined IRR is reported as nan with
    irr_error set while EV and NPV are still returned.
    """
    r = assumptions.discount_rate
    n = len(cash_flows)
    check_growth_assumption(assumptions.terminal_value, r)

    tv = terminal_value(cash_flows, assumptions.terminal_value, r)
    pv_fcff = tuple(cf.fcff / (1 + r) ** cf.year for cf in cash_flows)
    pv_tv = tv / (1 + r) ** n
    ev = sum(pv_fcff) + pv_tv
    npv = ev - assumptions.investment_basis

    irr_error = None
    try:
        irr = solve_irr(irr_series(cash_flows, assumptions))
    except NoConvergingRoot as exc:
        logger.warning("IRR unavailable: %s", exc)
        irr, irr_error = float("nan"), str(exc)

    return Valuation(
        terminal_value=tv,
        pv_terminal_value=pv_tv,
        pv_fcff=pv_fcff,
        enterprise_value=ev,
        npv=npv,
        irr=irr,
        irr_error=irr_error,
    )
