import math
from dataclasses import replace

import pytest

from model.assumptions import ExitMultiple, GordonGrowth
from model.cash_flow_engine import run_model
from model.errors import InvalidGrowthAssumption, NoConvergingRoot
from model.projection import project
from model.valuation import (discount_factors, irr_series, npv_at, present_value,
                             solve_irr, terminal_value, value)


def test_discount_helpers():
    assert discount_factors(0.10, 2) == pytest.approx([1 / 1.1, 1 / 1.21])
    assert present_value([110.0, 121.0], 0.10) == pytest.approx(200.0)


def test_exit_multiple_terminal_value(sample_assumptions):
    cash_flows = project(sample_assumptions)
    tv = terminal_value(cash_flows, ExitMultiple(5.0), 0.15)
    assert tv == pytest.approx(cash_flows[-1].ebitda * 5.0)
    assert tv >= 0


def test_gordon_terminal_value(gordon_assumptions):
    cash_flows = project(gordon_assumptions)
    tv = terminal_value(cash_flows, GordonGrowth(0.03), 0.15)
    assert tv == pytest.approx(cash_flows[-1].fcff * 1.03 / 0.12)


@pytest.mark.parametrize("growth", [0.15, 0.20])
def test_gordon_growth_not_below_discount_rate(sample_assumptions, growth):
    bad = replace(sample_assumptions, terminal_value=GordonGrowth(growth))
    with pytest.raises(InvalidGrowthAssumption):
        value(project(bad), bad)


def test_enterprise_value_and_npv(sample_assumptions):
    out = run_model(sample_assumptions)
    r = sample_assumptions.discount_rate
    pv = sum(cf.fcff / (1 + r) ** cf.year for cf in out.cash_flows)
    assert out.valuation.pv_terminal_value == pytest.approx(out.terminal_value / (1 + r) ** 5)
    assert out.enterprise_value == pytest.approx(pv + out.valuation.pv_terminal_value)
    # NPV nets the initial revenue when no investment is given
    assert out.npv == pytest.approx(out.enterprise_value - 100_000.0)


def test_npv_uses_explicit_initial_investment(sample_assumptions):
    out = run_model(replace(sample_assumptions, initial_investment=40_000.0))
    assert out.npv == pytest.approx(out.enterprise_value - 40_000.0)
    assert irr_series(out.cash_flows, out.assumptions)[0] == -40_000.0


def test_solve_irr_known_values():
    assert solve_irr([-100.0, 110.0]) == pytest.approx(0.10)
    assert solve_irr([-100.0, 0.0, 121.0]) == pytest.approx(0.10)


def test_solve_irr_root_makes_npv_zero():
    series = [-1000.0, 100.0, 300.0, 500.0, 700.0]
    r = solve_irr(series)
    assert npv_at(r, series) == pytest.approx(0.0, abs=1e-6)


def test_solve_irr_without_sign_change():
    with pytest.raises(NoConvergingRoot):
        solve_irr([100.0, 50.0, 25.0])
    with pytest.raises(NoConvergingRoot):
        solve_irr([-100.0])


@pytest.mark.filterwarnings("error::RuntimeWarning")
def test_solve_irr_root_outside_search_range():
    # exact root is -99.5%
    with pytest.raises(NoConvergingRoot):
        solve_irr([-100.0, 0.5])


def test_undefined_irr_keeps_ev_and_npv(profitable_assumptions):
    free = replace(profitable_assumptions, initial_investment=0.0)
    out = run_model(free)
    assert math.isnan(out.irr)
    assert not out.irr_available
    assert out.valuation.irr_error
    assert math.isfinite(out.enterprise_value)
    assert out.npv == pytest.approx(out.enterprise_value)
    assert out.to_record()["irr"] is None


def test_model_irr_is_a_root(sample_assumptions):
    out = run_model(sample_assumptions)
    assert out.irr_available
    series = irr_series(out.cash_flows, out.assumptions)
    assert npv_at(out.irr, series) == pytest.approx(0.0, abs=1e-3)


def test_model_output_record(sample_assumptions):
    record = run_model(sample_assumptions).to_record()
    assert len(record["cashFlows"]) == 5
    assert record["cashFlows"][0]["grossProfit"] == pytest.approx(175_000.0)
    assert record["assumptions"]["terminalValueMethod"] == "Exit Multiple"

