from dataclasses import replace

import pytest

from model.assumptions import (CashFlowAssumptions, ExitMultiple, GordonGrowth,
                               OpexAssumptions, default_assumptions)


@pytest.fixture
def sample_assumptions() -> CashFlowAssumptions:
    """Five-year venture: 100k revenue, steep early growth, exit at 5x EBITDA."""
    return default_assumptions()


@pytest.fixture
def gordon_assumptions(sample_assumptions) -> CashFlowAssumptions:
    return replace(sample_assumptions, terminal_value=GordonGrowth(0.03))


@pytest.fixture
def profitable_assumptions() -> CashFlowAssumptions:
    """Every year produces positive FCFF."""
    return CashFlowAssumptions(
        initial_revenue=100.0,
        revenue_growth_rate=[0.20] * 5,
        cogs_percentage=[0.30] * 5,
        opex=OpexAssumptions([0.05] * 5, [0.05] * 5, [0.05] * 5),
        capex_percentage=[0.05] * 5,
        depreciation_percentage=[0.05] * 5,
        tax_rate=0.21,
        change_in_nwc_percentage=0.05,
        discount_rate=0.12,
        terminal_value=ExitMultiple(6.0),
    )


def make_record(**overrides) -> dict:
    record = default_assumptions().to_record()
    record.update(overrides)
    return record
