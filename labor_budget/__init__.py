"""Labor budget forecasting: period ranges, scheduled labor cost, sales ledger and projections."""

__version__ = "0.1.0"
