"""Reporting package."""

from ledger_engine.reports.engine import (
    ReportingEngine,
    month_bounds,
    period_description,
)

__all__ = ["ReportingEngine", "month_bounds", "period_description"]
