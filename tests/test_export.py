import io
import math
from dataclasses import replace
from datetime import date

import pytest
from openpyxl import load_workbook

from analysis.scenarios import run_scenarios
from export import layout as L
from export.synthesizer import IRR_ERROR_VALUE, synthesize
from export.to_excel import build_excel_workbook, export_filename, save_workbook
from formula_eval import WorkbookEvaluator
from model.cash_flow_engine import run_model
from model.errors import NoModelToExport

PREPARED = date(2024, 3, 1)


def _recalculates_to_cached_values(model):
    synth = synthesize(model, "Acme", prepared_on=PREPARED)
    calc = synth.sheet(L.CALCULATIONS)
    ev = WorkbookEvaluator(synth)
    checked = 0
    for cell in calc.formula_cells():
        if isinstance(cell.value, str):
            continue
        got = ev.value(L.CALCULATIONS, cell.address)
        assert got == pytest.approx(cell.value, rel=1e-9, abs=1e-6), cell.address
        checked += 1
    return checked


# ---------------------------------------------------------------------------
# Sheet contract
# ---------------------------------------------------------------------------

def test_sheet_order(sample_assumptions):
    data = build_excel_workbook(run_model(sample_assumptions), "Acme")
    wb = load_workbook(io.BytesIO(data))
    assert wb.sheetnames == ["Dashboard", "Calculations", "Inputs"]


def test_every_year_cell_carries_value_and_formula(sample_assumptions):
    synth = synthesize(run_model(sample_assumptions), prepared_on=PREPARED)
    calc = synth.sheet(L.CALCULATIONS)
    for key, _ in L.CALC_LINES:
        for yr in range(1, 6):
            cell = calc.at(L.calc_ref(key, yr))
            assert cell.formula.startswith("=")
            assert isinstance(cell.value, float)


def test_inputs_and_dashboard_are_literal(sample_assumptions):
    synth = synthesize(run_model(sample_assumptions), prepared_on=PREPARED)
    assert synth.sheet(L.INPUTS).formula_cells() == []
    assert synth.sheet(L.DASHBOARD).formula_cells() == []


def test_written_file_keeps_formulas_and_cached_values(sample_assumptions):
    data = build_excel_workbook(run_model(sample_assumptions), "Acme", prepared_on=PREPARED)
    formulas = load_workbook(io.BytesIO(data))[L.CALCULATIONS]
    cached = load_workbook(io.BytesIO(data), data_only=True)[L.CALCULATIONS]
    assert formulas["B2"].value == "=Inputs!$B$3*(1+Inputs!B$14)"
    assert cached["B2"].value == pytest.approx(250_000.0)
    assert cached["B4"].value == pytest.approx(175_000.0)
    inputs = load_workbook(io.BytesIO(data))[L.INPUTS]
    assert inputs["B3"].value == 100_000


def test_dashboard_snapshot(sample_assumptions):
    model = run_model(sample_assumptions)
    synth = synthesize(model, "Acme", prepared_on=PREPARED)
    dash = synth.sheet(L.DASHBOARD)
    assert dash.at("A1").value == "Cash Flow Model: Acme"
    assert "March 01, 2024" in dash.at("A2").value
    ev_row = L.DASHBOARD_OUTPUT_ROWS["enterprise_value"]
    assert dash.at(f"B{ev_row}").value == model.enterprise_value


# ---------------------------------------------------------------------------
# Formula round trip
# ---------------------------------------------------------------------------

def test_exit_multiple_formulas_reproduce_engine(sample_assumptions):
    assert _recalculates_to_cached_values(run_model(sample_assumptions)) > 5 * 19


def test_gordon_formulas_reproduce_engine(gordon_assumptions):
    assert _recalculates_to_cached_values(run_model(gordon_assumptions)) > 5 * 19


def test_capex_depreciation_formulas_reproduce_engine(sample_assumptions):
    model = run_model(replace(sample_assumptions, depreciation_basis="capex",
                              initial_investment=60_000.0))
    assert _recalculates_to_cached_values(model) > 5 * 19


def test_editing_an_input_reproduces_a_fresh_run(sample_assumptions):
    synth = synthesize(run_model(sample_assumptions), prepared_on=PREPARED)
    revenue_cell = f"B{L.INPUT_SCALAR_ROWS['initial_revenue']}"
    ev = WorkbookEvaluator(synth, overrides={(L.INPUTS, revenue_cell): 200_000.0})

    fresh = run_model(replace(sample_assumptions, initial_revenue=200_000.0))
    for cf in fresh.cash_flows:
        got = ev.value(L.CALCULATIONS, L.calc_ref("fcff", cf.year))
        assert got == pytest.approx(cf.fcff)
    got_ev = ev.value(L.CALCULATIONS, L.valuation_ref("enterprise_value"))
    assert got_ev == pytest.approx(fresh.enterprise_value)
    # without an explicit investment, NPV and IRR net against the edited revenue
    assert ev.value(L.CALCULATIONS, L.valuation_ref("npv")) == pytest.approx(fresh.npv)
    assert ev.value(L.CALCULATIONS, L.valuation_ref("irr")) == pytest.approx(fresh.irr, abs=1e-6)


def test_explicit_investment_is_the_outlay_cell(sample_assumptions):
    a = replace(sample_assumptions, initial_investment=60_000.0)
    synth = synthesize(run_model(a), prepared_on=PREPARED)
    invest_cell = f"B{L.INPUT_SCALAR_ROWS['initial_investment']}"
    assert synth.sheet(L.INPUTS).at(invest_cell).value == 60_000.0

    revenue_cell = f"B{L.INPUT_SCALAR_ROWS['initial_revenue']}"
    ev = WorkbookEvaluator(synth, overrides={(L.INPUTS, revenue_cell): 200_000.0})
    fresh = run_model(replace(a, initial_revenue=200_000.0))
    assert ev.value(L.CALCULATIONS, L.valuation_ref("npv")) == pytest.approx(fresh.npv)
    assert fresh.npv == pytest.approx(fresh.enterprise_value - 60_000.0)


def test_default_outlay_reads_initial_revenue(sample_assumptions):
    synth = synthesize(run_model(sample_assumptions), prepared_on=PREPARED)
    calc = synth.sheet(L.CALCULATIONS)
    revenue_ref = L.input_ref("initial_revenue")
    assert calc.at(L.valuation_ref("npv")).formula.endswith(f"-{revenue_ref}")
    assert calc.at(L.valuation_ref("irr_cash_flows")).formula == f"=-{revenue_ref}"
    invest_cell = f"B{L.INPUT_SCALAR_ROWS['initial_investment']}"
    assert synth.sheet(L.INPUTS).at(invest_cell).value == "Initial Revenue"


def test_undefined_irr_is_flagged(profitable_assumptions):
    model = run_model(replace(profitable_assumptions, initial_investment=0.0))
    synth = synthesize(model, prepared_on=PREPARED)
    irr_cell = synth.sheet(L.CALCULATIONS).at(L.valuation_ref("irr"))
    assert irr_cell.value == IRR_ERROR_VALUE
    assert irr_cell.formula.startswith("=IRR(")
    dash = synth.sheet(L.DASHBOARD)
    assert dash.at(f"B{L.DASHBOARD_OUTPUT_ROWS['irr']}").value == "N/A"
    assert math.isnan(WorkbookEvaluator(synth).value(L.CALCULATIONS, irr_cell.address))
    # still writes
    assert build_excel_workbook(model, "Free")


# ---------------------------------------------------------------------------
# Scenarios on the dashboard
# ---------------------------------------------------------------------------

def test_scenario_comparison_on_dashboard(sample_assumptions):
    scenarios = run_scenarios(sample_assumptions)
    synth = synthesize(scenarios.base.cash_flow_model, "Acme", scenarios, PREPARED)
    dash = synth.sheet(L.DASHBOARD)
    head = L.DASHBOARD_SCENARIO_HEADER_ROW + 1
    assert [dash.at(f"{c}{head}").value for c in "BCD"] == ["Worst Case", "Base Case", "Best Case"]
    base_ev = dash.at(f"C{L.DASHBOARD_SCENARIO_ROWS['enterprise_value']}").value
    assert base_ev == scenarios.base.cash_flow_model.enterprise_value
    year1 = dash.at(f"C{L.DASHBOARD_CUMULATIVE_HEADER_ROW + 1}").value
    assert year1 == scenarios.base.cash_flow_model.cash_flows[0].fcff


# ---------------------------------------------------------------------------
# Refusal and file naming
# ---------------------------------------------------------------------------

def test_export_without_model_is_refused(tmp_path):
    with pytest.raises(NoModelToExport):
        synthesize(None)
    with pytest.raises(NoModelToExport):
        build_excel_workbook(None, "Acme")
    with pytest.raises(NoModelToExport):
        save_workbook(None, "Acme", tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_save_workbook_writes_named_file(sample_assumptions, tmp_path):
    path = save_workbook(run_model(sample_assumptions), "Acme Robotics", tmp_path)
    assert path.name == "Acme Robotics_Cash_Flow_Model.xlsx"
    assert path.read_bytes()[:2] == b"PK"


def test_export_filename_strips_separators():
    assert export_filename("Acme") == "Acme_Cash_Flow_Model.xlsx"
    assert export_filename("a/b\\c") == "a_b_c_Cash_Flow_Model.xlsx"
    assert export_filename("  ") == "Venture_Cash_Flow_Model.xlsx"


def test_layout_columns():
    assert L.year_column(1) == "B"
    assert L.series_column(0) == "B"
    assert L.series_column(1) == "C"
    assert L.input_ref("initial_revenue") == "Inputs!$B$3"
    rows = list(L.CALC_ROWS.values()) + list(L.VALUATION_ROWS.values())
    assert len(rows) == len(set(rows))
