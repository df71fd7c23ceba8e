"""
to_excel.py
-----------
Writes a synthesized cash-flow workbook to .xlsx.

Formula cells are written together with the engine's value as the cached
result, so the file displays correct numbers before Excel recalculates and
recalculation reproduces the same numbers from the Inputs sheet.

Usage
-----
    from export.to_excel import build_excel_workbook, save_workbook
    xl_bytes = build_excel_workbook(model_output, "Acme")      # → bytes
    path     = save_workbook(model_output, "Acme", "out/")     # → out/Acme_Cash_Flow_Model.xlsx
"""

from __future__ import annotations

import io
import logging
from datetime import date
from pathlib import Path

import xlsxwriter

from export.layout import INPUTS
from export.synthesizer import SheetGrid, SynthesizedWorkbook, synthesize
from model.cash_flow_engine import CashFlowModelOutput
from model.errors import NoModelToExport

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Colour palette
# ---------------------------------------------------------------------------
COLOR_NAVY_DARK  = "#1F2D40"
COLOR_NAVY_MID   = "#2E4057"
COLOR_WHITE      = "#FFFFFF"
COLOR_DARK_TEXT  = "#1A1A2E"
COLOR_INPUT_BG   = "#EBF3FF"   # light blue tint for editable input cells
COLOR_BORDER     = "#B0BAC8"

FILENAME_SUFFIX = "_Cash_Flow_Model.xlsx"


# ---------------------------------------------------------------------------
# Style helpers
# ---------------------------------------------------------------------------

_BASE = {"font_name": "Calibri", "font_size": 10, "font_color": COLOR_DARK_TEXT,
         "valign": "vcenter"}

_STYLES = {
    "text":     {"align": "right"},
    "label":    {"align": "left"},
    "header":   {"bold": True, "bg_color": COLOR_NAVY_MID, "font_color": COLOR_WHITE,
                 "align": "center", "border": 1, "border_color": COLOR_BORDER},
    "title":    {"bold": True, "font_size": 14, "font_color": COLOR_NAVY_DARK},
    "currency": {"num_format": "#,##0.00", "align": "right"},
    "pct":      {"num_format": "0.0%", "align": "right"},
    "multiple": {"num_format": '0.0"x"', "align": "right"},
    "number":   {"num_format": "0.0000", "align": "right"},
}


def _formats(wb: xlsxwriter.Workbook) -> dict:
    return {name: wb.add_format({**_BASE, **props}) for name, props in _STYLES.items()}


def _input_format(wb: xlsxwriter.Workbook, style: str):
    return wb.add_format({**_BASE, **_STYLES[style], "bg_color": COLOR_INPUT_BG,
                          "border": 1, "border_color": COLOR_BORDER})


# ---------------------------------------------------------------------------
# Sheet writer
# ---------------------------------------------------------------------------

def _write_sheet(wb: xlsxwriter.Workbook, grid: SheetGrid, formats: dict,
                 input_formats: dict | None = None):
    ws = wb.add_worksheet(grid.name)
    ws.hide_gridlines(2)
    max_col = max((c for _, c in grid.cells), default=1)
    if max_col > 1:
        ws.set_column(1, max_col - 1, 16)
    for col, width in grid.column_widths.items():
        ws.set_column(col - 1, col - 1, width)

    for (row, col), cell in sorted(grid.cells.items()):
        fmt = formats[cell.style]
        if input_formats and cell.style not in ("header", "label", "title"):
            fmt = input_formats[cell.style]
        r, c = row - 1, col - 1
        if cell.formula is not None:
            ws.write_formula(r, c, cell.formula, fmt, cell.value)
        elif cell.value is None:
            ws.write_blank(r, c, None, fmt)
        elif isinstance(cell.value, str):
            ws.write_string(r, c, cell.value, fmt)
        else:
            ws.write_number(r, c, cell.value, fmt)
    return ws


def write_workbook(synth: SynthesizedWorkbook) -> bytes:
    """Serialize the synthesized sheets (in order) and return the .xlsx bytes."""
    buf = io.BytesIO()
    wb = xlsxwriter.Workbook(buf, {"in_memory": True, "nan_inf_to_errors": True})
    formats = _formats(wb)
    input_formats = {name: _input_format(wb, name) for name in _STYLES}

    written = [
        _write_sheet(wb, grid, formats, input_formats if grid.name == INPUTS else None)
        for grid in synth.sheets
    ]
    if written:
        written[0].activate()

    wb.close()
    return buf.getvalue()


# ===========================================================================
# Public entry points
# ===========================================================================

def export_filename(venture_name: str) -> str:
    """{ventureName}_Cash_Flow_Model.xlsx, with path separators replaced."""
    safe = venture_name.strip().replace("/", "_").replace("\\", "_") or "Venture"
    return f"{safe}{FILENAME_SUFFIX}"


def build_excel_workbook(
    model_output: CashFlowModelOutput | None,
    venture_name: str = "Venture",
    scenarios=None,
    prepared_on: date | None = None,
) -> bytes:
    """
    Build the Dashboard / Calculations / Inputs workbook and return it as bytes.
    Raises NoModelToExport when model_output is None.
    """
    synth = synthesize(model_output, venture_name, scenarios, prepared_on)
    data = write_workbook(synth)
    logger.info("Built cash-flow workbook for %s (%d bytes)", venture_name, len(data))
    return data


def save_workbook(
    model_output: CashFlowModelOutput | None,
    venture_name: str = "Venture",
    directory: str | Path = ".",
    scenarios=None,
) -> Path:
    """Write the workbook to `directory`; nothing is written if export is refused."""
    if model_output is None:
        raise NoModelToExport("Run the cash-flow model before exporting")
    data = build_excel_workbook(model_output, venture_name, scenarios)
    path = Path(directory) / export_filename(venture_name)
    path.write_bytes(data)
    return path
