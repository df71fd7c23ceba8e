"""
synthesizer.py
--------------
Maps a computed CashFlowModelOutput onto the three workbook sheets as a grid
of CellSpec objects.  Pure: no file is touched here (see to_excel.py).

Formula strategy
----------------
  Inputs        : literal values only; every Calculations formula resolves
                  back to these cells
  Calculations  : every year cell carries the engine's value AND a formula
                  re-deriving it from Inputs and/or the preceding column, so
                  editing an input and recalculating reproduces the engine
  Valuation     : terminal value, PV, EV, NPV, IRR as formulas over the
                  Calculations rows
  Dashboard     : literal snapshot, not formula-linked

All addresses come from layout.py.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Union

from openpyxl.utils import get_column_letter

from analysis.scenarios import FinancialScenario, ScenarioSet
from export import layout as L
from model.assumptions import ExitMultiple, GordonGrowth
from model.cash_flow_engine import CashFlowModelOutput
from model.errors import NoModelToExport

logger = logging.getLogger(__name__)

# Cached value written for an IRR formula when the engine found no root
IRR_ERROR_VALUE = "#NUM!"


@dataclass(frozen=True)
class CellSpec:
    row: int
    col: int
    value: object = None
    formula: Optional[str] = None
    style: str = "text"          # text | label | header | title | currency | pct | multiple | number

    @property
    def address(self) -> str:
        return f"{get_column_letter(self.col)}{self.row}"


@dataclass
class SheetGrid:
    name: str
    cells: dict[tuple[int, int], CellSpec] = field(default_factory=dict)
    column_widths: dict[int, float] = field(default_factory=dict)

    def put(self, row: int, col: int, value=None, formula: str | None = None,
            style: str = "text") -> CellSpec:
        cell = CellSpec(row, col, value, formula, style)
        self.cells[(row, col)] = cell
        return cell

    def at(self, address: str) -> CellSpec:
        for cell in self.cells.values():
            if cell.address == address:
                return cell
        raise KeyError(f"{self.name}!{address} is empty")

    def formula_cells(self) -> list[CellSpec]:
        return [c for c in self.cells.values() if c.formula is not None]


@dataclass
class SynthesizedWorkbook:
    sheets: list[SheetGrid]

    @property
    def sheet_names(self) -> list[str]:
        return [s.name for s in self.sheets]

    def sheet(self, name: str) -> SheetGrid:
        for s in self.sheets:
            if s.name == name:
                return s
        raise KeyError(name)


# ===========================================================================
# Inputs
# ===========================================================================

def _build_inputs(model: CashFlowModelOutput) -> SheetGrid:
    a = model.assumptions
    n = a.forecast_horizon
    ws = SheetGrid(L.INPUTS, column_widths={L.LABEL_COL: 38})

    ws.put(L.INPUT_HEADER_ROW, L.LABEL_COL, "Assumption", style="header")
    ws.put(L.INPUT_HEADER_ROW, L.VALUE_COL, "Value", style="header")

    tv = a.terminal_value
    scalars = {
        "forecast_horizon":         (n, "number"),
        "initial_revenue":          (a.initial_revenue, "currency"),
        "tax_rate":                 (a.tax_rate, "pct"),
        "change_in_nwc_percentage": (a.change_in_nwc_percentage, "pct"),
        "discount_rate":            (a.discount_rate, "pct"),
        "terminal_value_method":    (tv.label, "text"),
        "terminal_growth_rate":     (tv.growth_rate, "pct") if isinstance(tv, GordonGrowth)
                                    else ("N/A", "text"),
        "exit_multiple":            (tv.multiple, "multiple") if isinstance(tv, ExitMultiple)
                                    else ("N/A", "text"),
        "initial_investment":       ("Initial Revenue", "text") if a.initial_investment is None
                                    else (a.initial_investment, "currency"),
        "depreciation_basis":       ("CAPEX" if a.depreciation_basis == "capex" else "Revenue",
                                     "text"),
    }
    for key, label in L.INPUT_SCALARS:
        r = L.INPUT_SCALAR_ROWS[key]
        val, style = scalars[key]
        ws.put(r, L.LABEL_COL, label, style="label")
        ws.put(r, L.VALUE_COL, val, style=style)

    ws.put(L.INPUT_YEARLY_HEADER_ROW, L.LABEL_COL, "Yearly Assumptions", style="header")
    for yr in range(1, n + 1):
        ws.put(L.INPUT_YEARLY_HEADER_ROW, L.VALUE_COL + yr - 1, f"Y{yr}", style="header")

    series = a.yearly_series()
    for key, label in L.INPUT_YEARLY:
        r = L.INPUT_YEARLY_ROWS[key]
        ws.put(r, L.LABEL_COL, label, style="label")
        for yr, v in enumerate(series[key], 1):
            ws.put(r, L.VALUE_COL + yr - 1, v, style="pct")
    return ws


# ===========================================================================
# Calculations
# ===========================================================================

def _year_formulas(yr: int, depreciation_basis: str) -> dict[str, str]:
    """Formula text for every Calculations line of one year column."""
    c = lambda key: L.calc_ref(key, yr)
    iy = lambda key: L.input_year_ref(key, yr)
    rate = L.input_ref("discount_rate")
    nwc = L.input_ref("change_in_nwc_percentage")

    if yr == 1:
        revenue = f"={L.input_ref('initial_revenue')}*(1+{iy('revenue_growth_rate')})"
        nwc_f = f"=({c('revenue')}-{L.input_ref('initial_revenue')})*{nwc}"
        cumulative = f"={c('fcff')}"
    else:
        prev = lambda key: L.calc_ref(key, yr - 1)
        revenue = f"={prev('revenue')}*(1+{iy('revenue_growth_rate')})"
        nwc_f = f"=({c('revenue')}-{prev('revenue')})*{nwc}"
        cumulative = f"={prev('cumulative_fcff')}+{c('fcff')}"

    dep_base = c("capex") if depreciation_basis == "capex" else c("revenue")

    return {
        "revenue":                    revenue,
        "cogs":                       f"={c('revenue')}*{iy('cogs_percentage')}",
        "gross_profit":               f"={c('revenue')}-{c('cogs')}",
        "research_and_development":   f"={c('revenue')}*{iy('research_and_development')}",
        "sales_and_marketing":        f"={c('revenue')}*{iy('sales_and_marketing')}",
        "general_and_administrative": f"={c('revenue')}*{iy('general_and_administrative')}",
        "total_opex":                 (f"={c('research_and_development')}"
                                       f"+{c('sales_and_marketing')}"
                                       f"+{c('general_and_administrative')}"),
        "ebitda":                     f"={c('gross_profit')}-{c('total_opex')}",
        "depreciation":               f"={dep_base}*{iy('depreciation_percentage')}",
        "ebit":                       f"={c('ebitda')}-{c('depreciation')}",
        "taxes":                      f"=MAX(0,{c('ebit')}*{L.input_ref('tax_rate')})",
        "nopat":                      f"={c('ebit')}-{c('taxes')}",
        "add_depreciation":           f"={c('depreciation')}",
        "capex":                      f"={c('revenue')}*{iy('capex_percentage')}",
        "change_in_nwc":              nwc_f,
        "fcff":                       (f"={c('nopat')}+{c('add_depreciation')}"
                                       f"-{c('capex')}-{c('change_in_nwc')}"),
        "discount_factor":            f"=1/(1+{rate})^{yr}",
        "pv_fcff":                    f"={c('fcff')}/(1+{rate})^{yr}",
        "cumulative_fcff":            cumulative,
    }


def _basis_ref(a) -> str:
    """Inputs cell the NPV / IRR outlay reads; initial revenue unless an investment is given."""
    if a.initial_investment is None:
        return L.input_ref("initial_revenue")
    return L.input_ref("initial_investment")


def _valuation_formulas(model: CashFlowModelOutput) -> dict[str, str]:
    a = model.assumptions
    n = a.forecast_horizon
    rate = L.input_ref("discount_rate")
    v = L.valuation_ref

    if isinstance(a.terminal_value, ExitMultiple):
        tv = f"={L.calc_ref('ebitda', n)}*{L.input_ref('exit_multiple')}"
    else:
        g = L.input_ref("terminal_growth_rate")
        tv = f"={L.calc_ref('fcff', n)}*(1+{g})/({rate}-{g})"

    pv_row = L.CALC_ROWS["pv_fcff"]
    cf_row = L.VALUATION_ROWS["irr_cash_flows"]
    return {
        "terminal_value":    tv,
        "pv_terminal_value": f"={v('terminal_value')}/(1+{rate})^{L.input_ref('forecast_horizon')}",
        "sum_pv_fcff":       f"=SUM({L.year_column(1)}{pv_row}:{L.year_column(n)}{pv_row})",
        "enterprise_value":  f"={v('sum_pv_fcff')}+{v('pv_terminal_value')}",
        "npv":               f"={v('enterprise_value')}-{_basis_ref(a)}",
        "irr":               f"=IRR({L.series_column(0)}{cf_row}:{L.series_column(n)}{cf_row})",
    }


def _build_calculations(model: CashFlowModelOutput) -> SheetGrid:
    a = model.assumptions
    n = a.forecast_horizon
    val = model.valuation
    ws = SheetGrid(L.CALCULATIONS, column_widths={L.LABEL_COL: 34})

    # ── Header ──────────────────────────────────────────────────────────────
    ws.put(L.CALC_HEADER_ROW, L.LABEL_COL, "Metric", style="header")
    for yr in range(1, n + 1):
        ws.put(L.CALC_HEADER_ROW, L.VALUE_COL + yr - 1, f"Year {yr}", style="header")

    for key, label in L.CALC_LINES:
        ws.put(L.CALC_ROWS[key], L.LABEL_COL, label, style="label")

    # ── Year columns ────────────────────────────────────────────────────────
    cumulative = 0.0
    for i, cf in enumerate(model.cash_flows):
        yr = i + 1
        cumulative += cf.fcff
        values = {
            "revenue":                    cf.revenue,
            "cogs":                       cf.cogs,
            "gross_profit":               cf.gross_profit,
            "research_and_development":   cf.opex.research_and_development,
            "sales_and_marketing":        cf.opex.sales_and_marketing,
            "general_and_administrative": cf.opex.general_and_administrative,
            "total_opex":                 cf.opex.total,
            "ebitda":                     cf.ebitda,
            "depreciation":               cf.depreciation,
            "ebit":                       cf.ebit,
            "taxes":                      cf.taxes,
            "nopat":                      cf.nopat,
            "add_depreciation":           cf.depreciation,
            "capex":                      cf.capex,
            "change_in_nwc":              cf.change_in_nwc,
            "fcff":                       cf.fcff,
            "discount_factor":            1 / (1 + a.discount_rate) ** yr,
            "pv_fcff":                    val.pv_fcff[i],
            "cumulative_fcff":            cumulative,
        }
        formulas = _year_formulas(yr, a.depreciation_basis)
        col = L.VALUE_COL + yr - 1
        for key, _ in L.CALC_LINES:
            style = "number" if key == "discount_factor" else "currency"
            ws.put(L.CALC_ROWS[key], col, values[key], formulas[key], style=style)

    # ── Valuation block ─────────────────────────────────────────────────────
    ws.put(L.VALUATION_HEADER_ROW, L.LABEL_COL, "Valuation Metrics", style="header")
    for key, label in L.VALUATION_LINES:
        ws.put(L.VALUATION_ROWS[key], L.LABEL_COL, label, style="label")

    formulas = _valuation_formulas(model)
    values = {
        "terminal_value":    val.terminal_value,
        "pv_terminal_value": val.pv_terminal_value,
        "sum_pv_fcff":       sum(val.pv_fcff),
        "enterprise_value":  val.enterprise_value,
        "npv":               val.npv,
        "irr":               val.irr if val.irr_available else IRR_ERROR_VALUE,
    }
    for key in ("terminal_value", "pv_terminal_value", "sum_pv_fcff", "enterprise_value", "npv"):
        ws.put(L.VALUATION_ROWS[key], L.VALUE_COL, values[key], formulas[key], style="currency")
    ws.put(L.VALUATION_ROWS["irr"], L.VALUE_COL, values["irr"], formulas["irr"], style="pct")

    # IRR series: t=0 outlay, then each year's FCFF
    cf_row = L.VALUATION_ROWS["irr_cash_flows"]
    ws.put(cf_row, L.VALUE_COL, -a.investment_basis,
           f"=-{_basis_ref(a)}", style="currency")
    for t, cf in enumerate(model.cash_flows, 1):
        ws.put(cf_row, L.VALUE_COL + t, cf.fcff, f"={L.calc_ref('fcff', t)}", style="currency")

    return ws


# ===========================================================================
# Dashboard
# ===========================================================================

def _scenario_list(scenarios) -> list[FinancialScenario]:
    if scenarios is None:
        return []
    if isinstance(scenarios, ScenarioSet):
        return scenarios.ordered()
    return list(scenarios)


def _build_dashboard(model: CashFlowModelOutput, venture_name: str,
                     scenarios: list[FinancialScenario], prepared_on: date) -> SheetGrid:
    ws = SheetGrid(L.DASHBOARD, column_widths={L.LABEL_COL: 34})
    n = model.assumptions.forecast_horizon

    ws.put(L.DASHBOARD_TITLE_ROW, L.LABEL_COL, f"Cash Flow Model: {venture_name}", style="title")
    ws.put(L.DASHBOARD_SUBTITLE_ROW, L.LABEL_COL,
           f"{n}-year DCF  |  Prepared: {prepared_on:%B %d, %Y}", style="label")

    ws.put(L.DASHBOARD_OUTPUTS_HEADER_ROW, L.LABEL_COL, "Key Outputs", style="header")
    outputs = {
        "enterprise_value":      (model.enterprise_value, "currency"),
        "npv":                   (model.npv, "currency"),
        "irr":                   (model.irr, "pct") if model.irr_available else ("N/A", "text"),
        "terminal_value":        (model.terminal_value, "currency"),
        "terminal_value_method": (model.assumptions.terminal_value_method, "text"),
        "cumulative_fcff":       (sum(cf.fcff for cf in model.cash_flows), "currency"),
    }
    for key, label in L.DASHBOARD_OUTPUTS:
        r = L.DASHBOARD_OUTPUT_ROWS[key]
        val, style = outputs[key]
        ws.put(r, L.LABEL_COL, label, style="label")
        ws.put(r, L.VALUE_COL, val, style=style)

    if not scenarios:
        return ws

    # ── Scenario comparison (literal) ───────────────────────────────────────
    ws.put(L.DASHBOARD_SCENARIO_HEADER_ROW, L.LABEL_COL, "Scenario Comparison", style="header")
    head_row = L.DASHBOARD_SCENARIO_HEADER_ROW + 1
    ws.put(head_row, L.LABEL_COL, "Metric", style="header")
    for j, sc in enumerate(scenarios):
        m = sc.cash_flow_model
        col = L.VALUE_COL + j
        ws.column_widths[col] = 18
        ws.put(head_row, col, sc.scenario_type.value, style="header")
        metrics = {
            "enterprise_value": (m.enterprise_value, "currency"),
            "npv":              (m.npv, "currency"),
            "irr":              (m.irr, "pct") if m.irr_available else ("N/A", "text"),
            "terminal_value":   (m.terminal_value, "currency"),
            "final_revenue":    (m.cash_flows[-1].revenue, "currency"),
        }
        for key, label in L.DASHBOARD_SCENARIO_METRICS:
            r = L.DASHBOARD_SCENARIO_ROWS[key]
            val, style = metrics[key]
            ws.put(r, L.LABEL_COL, label, style="label")
            ws.put(r, col, val, style=style)

    # ── Cumulative FCFF by scenario ─────────────────────────────────────────
    r0 = L.DASHBOARD_CUMULATIVE_HEADER_ROW
    ws.put(r0, L.LABEL_COL, "Cumulative FCFF", style="header")
    for j, sc in enumerate(scenarios):
        ws.put(r0, L.VALUE_COL + j, sc.scenario_type.value, style="header")
        running = 0.0
        for cf in sc.cash_flow_model.cash_flows:
            running += cf.fcff
            ws.put(r0 + cf.year, L.LABEL_COL, f"Year {cf.year}", style="label")
            ws.put(r0 + cf.year, L.VALUE_COL + j, running, style="currency")
    return ws


# ===========================================================================
# Master builder
# ===========================================================================

def synthesize(
    model: CashFlowModelOutput | None,
    venture_name: str = "Venture",
    scenarios: Union[ScenarioSet, Iterable[FinancialScenario], None] = None,
    prepared_on: date | None = None,
) -> SynthesizedWorkbook:
    """
    Build the Dashboard / Calculations / Inputs grids for a model run.
    Raises NoModelToExport when there is no model.
    """
    if model is None:
        raise NoModelToExport("Run the cash-flow model before exporting")

    sheets = {
        L.DASHBOARD:    _build_dashboard(model, venture_name, _scenario_list(scenarios),
                                         prepared_on or date.today()),
        L.CALCULATIONS: _build_calculations(model),
        L.INPUTS:       _build_inputs(model),
    }
    wb = SynthesizedWorkbook([sheets[name] for name in L.SHEET_ORDER])
    logger.debug("Synthesized %d formula cells for %s",
                 len(wb.sheet(L.CALCULATIONS).formula_cells()), venture_name)
    return wb
