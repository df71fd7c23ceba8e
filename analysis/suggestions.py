"""
suggestions.py
--------------
Boundary with the AI assumption-suggestion service.

A suggestion replaces the current assumptions wholesale or not at all: a
cancelled request (None), a record with missing fields, or one that fails
validation leaves the caller with its previous assumptions.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from model.assumptions import CashFlowAssumptions, validate_assumptions
from model.errors import MalformedAssumptions

logger = logging.getLogger(__name__)


def apply_suggested_assumptions(
    previous: Optional[CashFlowAssumptions],
    suggested: Union[CashFlowAssumptions, dict, None],
) -> Optional[CashFlowAssumptions]:
    """Return the suggestion if it is complete and valid, else `previous`."""
    if suggested is None:
        return previous

    try:
        if isinstance(suggested, dict):
            suggested = CashFlowAssumptions.from_record(suggested)
        validate_assumptions(suggested)
    except MalformedAssumptions as exc:
        logger.warning("Ignoring suggested assumptions: %s", exc)
        return previous

    return suggested
