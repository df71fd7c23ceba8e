from analysis.suggestions import apply_suggested_assumptions
from conftest import make_record
from model.assumptions import CashFlowAssumptions, GordonGrowth


def test_cancelled_suggestion_keeps_previous(sample_assumptions):
    assert apply_suggested_assumptions(sample_assumptions, None) is sample_assumptions


def test_complete_record_replaces_previous(sample_assumptions):
    record = make_record(terminalValueMethod="Gordon Growth", terminalGrowthRate=0.04,
                         discountRate=0.20)
    result = apply_suggested_assumptions(sample_assumptions, record)
    assert result.terminal_value == GordonGrowth(0.04)
    assert result.discount_rate == 0.20


def test_incomplete_record_keeps_previous(sample_assumptions):
    record = make_record()
    del record["opex"]
    assert apply_suggested_assumptions(sample_assumptions, record) is sample_assumptions


def test_wrong_lengths_keep_previous(sample_assumptions):
    record = make_record(revenueGrowthRate=[0.5, 0.5])
    assert apply_suggested_assumptions(sample_assumptions, record) is sample_assumptions


def test_no_previous_and_bad_suggestion():
    assert apply_suggested_assumptions(None, {"initialRevenue": 1}) is None


def test_assumptions_object_is_accepted(sample_assumptions, gordon_assumptions):
    result = apply_suggested_assumptions(sample_assumptions, gordon_assumptions)
    assert isinstance(result, CashFlowAssumptions)
    assert result is gordon_assumptions
