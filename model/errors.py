"""
errors.py
---------
Error taxonomy for the cash-flow engine.

Every error is a local, recoverable condition.  They subclass ValueError so
callers that already guard generic input problems catch them too.

  MalformedAssumptions     per-year array length != forecast horizon, bad horizon
  InvalidGrowthAssumption  Gordon Growth with discount rate <= terminal growth
  NoConvergingRoot         IRR solver found no root inside its search range
  NoModelToExport          workbook export requested without a computed model
"""


class CashFlowModelError(ValueError):
    """Base class for all engine errors."""


class MalformedAssumptions(CashFlowModelError):
    pass


class InvalidGrowthAssumption(CashFlowModelError):
    pass


class NoConvergingRoot(CashFlowModelError):
    pass


class NoModelToExport(CashFlowModelError):
    pass
