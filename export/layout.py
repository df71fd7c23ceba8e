"""
layout.py
---------
The one place workbook row numbers and column letters are defined.

Both the literal-value writer and the formula writer in synthesizer.py look
cells up here, so reordering a row list below moves the values and every
formula that references them together.

Sheets (order is part of the export contract):
  Dashboard     literal snapshot of the valuation
  Calculations  one column per forecast year, every cell value + formula
  Inputs        literal assumptions; the only cells Calculations depends on

Column A holds labels.  Year 1 sits in column B on both Inputs and
Calculations; the IRR cash-flow series puts t=0 in column B and Year t in
the column after it.
"""

from openpyxl.utils import get_column_letter


DASHBOARD = "Dashboard"
CALCULATIONS = "Calculations"
INPUTS = "Inputs"
SHEET_ORDER = (DASHBOARD, CALCULATIONS, INPUTS)

LABEL_COL = 1
VALUE_COL = 2


def _rows(keys, start: int) -> dict[str, int]:
    return {key: start + i for i, key in enumerate(keys)}


# ---------------------------------------------------------------------------
# Inputs sheet
# ---------------------------------------------------------------------------
INPUT_HEADER_ROW = 1

INPUT_SCALARS = [
    ("forecast_horizon",         "Forecast Horizon (Years)"),
    ("initial_revenue",          "Initial Revenue"),
    ("tax_rate",                 "Tax Rate"),
    ("change_in_nwc_percentage", "Change in NWC (% of Revenue Growth)"),
    ("discount_rate",            "Discount Rate (WACC)"),
    ("terminal_value_method",    "Terminal Value Method"),
    ("terminal_growth_rate",     "Terminal Growth Rate"),
    ("exit_multiple",            "Exit Multiple (x EBITDA)"),
    ("initial_investment",       "Initial Investment (NPV / IRR basis)"),
    ("depreciation_basis",       "Depreciation Basis"),
]
INPUT_SCALAR_ROWS = _rows([k for k, _ in INPUT_SCALARS], INPUT_HEADER_ROW + 1)

INPUT_YEARLY_HEADER_ROW = max(INPUT_SCALAR_ROWS.values()) + 2

INPUT_YEARLY = [
    ("revenue_growth_rate",        "Revenue Growth Rate"),
    ("cogs_percentage",            "COGS (% of Revenue)"),
    ("research_and_development",   "R&D (% of Revenue)"),
    ("sales_and_marketing",        "S&M (% of Revenue)"),
    ("general_and_administrative", "G&A (% of Revenue)"),
    ("capex_percentage",           "CAPEX (% of Revenue)"),
    ("depreciation_percentage",    "Depreciation (% of Basis)"),
]
INPUT_YEARLY_ROWS = _rows([k for k, _ in INPUT_YEARLY], INPUT_YEARLY_HEADER_ROW + 1)


# ---------------------------------------------------------------------------
# Calculations sheet
# ---------------------------------------------------------------------------
CALC_HEADER_ROW = 1

CALC_LINES = [
    ("revenue",                    "Revenue"),
    ("cogs",                       "COGS"),
    ("gross_profit",               "Gross Profit"),
    ("research_and_development",   "R&D"),
    ("sales_and_marketing",        "S&M"),
    ("general_and_administrative", "G&A"),
    ("total_opex",                 "Total OPEX"),
    ("ebitda",                     "EBITDA"),
    ("depreciation",               "Depreciation"),
    ("ebit",                       "EBIT"),
    ("taxes",                      "Taxes"),
    ("nopat",                      "NOPAT"),
    ("add_depreciation",           "Add: Depreciation"),
    ("capex",                      "Less: CAPEX"),
    ("change_in_nwc",              "Less: Change in NWC"),
    ("fcff",                       "Free Cash Flow to Firm (FCFF)"),
    ("discount_factor",            "Discount Factor"),
    ("pv_fcff",                    "PV of FCFF"),
    ("cumulative_fcff",            "Cumulative FCFF"),
]
CALC_ROWS = _rows([k for k, _ in CALC_LINES], CALC_HEADER_ROW + 1)

VALUATION_HEADER_ROW = max(CALC_ROWS.values()) + 2

VALUATION_LINES = [
    ("terminal_value",    "Terminal Value"),
    ("pv_terminal_value", "PV of Terminal Value"),
    ("sum_pv_fcff",       "Sum of PV of FCFF"),
    ("enterprise_value",  "Enterprise Value"),
    ("npv",               "NPV"),
    ("irr_cash_flows",    "IRR Cash Flows (t = 0 … N)"),
    ("irr",               "IRR"),
]
VALUATION_ROWS = _rows([k for k, _ in VALUATION_LINES], VALUATION_HEADER_ROW + 1)


# ---------------------------------------------------------------------------
# Dashboard sheet
# ---------------------------------------------------------------------------
DASHBOARD_TITLE_ROW = 1
DASHBOARD_SUBTITLE_ROW = 2
DASHBOARD_OUTPUTS_HEADER_ROW = 4

DASHBOARD_OUTPUTS = [
    ("enterprise_value",      "Enterprise Value"),
    ("npv",                   "Net Present Value (NPV)"),
    ("irr",                   "Internal Rate of Return (IRR)"),
    ("terminal_value",        "Terminal Value"),
    ("terminal_value_method", "Terminal Value Method"),
    ("cumulative_fcff",       "Cumulative FCFF"),
]
DASHBOARD_OUTPUT_ROWS = _rows([k for k, _ in DASHBOARD_OUTPUTS], DASHBOARD_OUTPUTS_HEADER_ROW + 1)

DASHBOARD_SCENARIO_HEADER_ROW = max(DASHBOARD_OUTPUT_ROWS.values()) + 2

DASHBOARD_SCENARIO_METRICS = [
    ("enterprise_value", "Enterprise Value"),
    ("npv",              "NPV"),
    ("irr",              "IRR"),
    ("terminal_value",   "Terminal Value"),
    ("final_revenue",    "Final-Year Revenue"),
]
DASHBOARD_SCENARIO_ROWS = _rows([k for k, _ in DASHBOARD_SCENARIO_METRICS],
                                DASHBOARD_SCENARIO_HEADER_ROW + 2)
DASHBOARD_CUMULATIVE_HEADER_ROW = max(DASHBOARD_SCENARIO_ROWS.values()) + 2


# ---------------------------------------------------------------------------
# Column-letter helpers
# ---------------------------------------------------------------------------

def year_column(year: int) -> str:
    """Column letter for year (1-based). Year 1 → 'B', Year 2 → 'C', …"""
    return get_column_letter(VALUE_COL + year - 1)


def series_column(t: int) -> str:
    """Column letter for period t of the IRR series. t=0 → 'B', t=1 → 'C', …"""
    return get_column_letter(VALUE_COL + t)


def scalar_column() -> str:
    return get_column_letter(VALUE_COL)


# ---------------------------------------------------------------------------
# Reference builders
# ---------------------------------------------------------------------------

def input_ref(key: str) -> str:
    """Absolute cross-sheet reference to a scalar input, e.g. Inputs!$B$3."""
    return f"{INPUTS}!${scalar_column()}${INPUT_SCALAR_ROWS[key]}"


def input_year_ref(key: str, year: int) -> str:
    """Cross-sheet reference to a per-year input, e.g. Inputs!C$14."""
    return f"{INPUTS}!{year_column(year)}${INPUT_YEARLY_ROWS[key]}"


def calc_ref(key: str, year: int) -> str:
    return f"{year_column(year)}{CALC_ROWS[key]}"


def valuation_ref(key: str) -> str:
    return f"{scalar_column()}{VALUATION_ROWS[key]}"
