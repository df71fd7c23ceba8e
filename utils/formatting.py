"""
formatting.py
-------------
Number formatting helpers for cash-flow tables and the workbook dashboard.
"""

import numpy as np
import pandas as pd


def fmt_currency(val, decimals: int = 0) -> str:
    if val is None or pd.isna(val):
        return "—"
    sign = "-" if val < 0 else ""
    return f"{sign}${abs(val):,.{decimals}f}"


def fmt_pct(val, decimals: int = 1) -> str:
    if val is None or pd.isna(val):
        return "—"
    return f"{val:.{decimals}%}"


def fmt_multiple(val, decimals: int = 1) -> str:
    if val is None or pd.isna(val):
        return "—"
    return f"{val:.{decimals}f}x"


def fmt_irr(val) -> str:
    if val is None or (isinstance(val, float) and np.isnan(val)):
        return "N/A"
    return f"{val:.1%}"


def format_cash_flow_df(df: pd.DataFrame) -> pd.DataFrame:
    """Format a cash_flow_frame for display: every row is a currency row."""
    out = df.copy().astype(object)
    for row_label in df.index:
        for col in df.columns:
            out.loc[row_label, col] = fmt_currency(df.loc[row_label, col])
    return out
