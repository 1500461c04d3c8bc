"""
Reporting Engine

DESIGN DECISION: Reports are DETERMINISTIC read-only projections.
Every figure is computed from stored transactions on demand; nothing here
is cached or persisted, and nothing here mutates the ledger.

All totals are in CNY (sums of amount_cny). Sums are exact; only the
percentage column is rounded (2 places) for presentation.

Reference property: monthly_summary must equal a naive scan-and-sum over
the owner's transactions in that month.
"""

import calendar
from datetime import date
from typing import Optional

from ledger_engine.models.money import add, percentage, quantize_amount
from ledger_engine.models.transaction import (
    CategorySummary,
    MonthKey,
    MonthlyReport,
    TransactionSummary,
    TransactionType,
)
from ledger_engine.services.storage import (
    CategoryStorageInterface,
    TransactionStorageInterface,
)


UNKNOWN_CATEGORY = "Unknown"


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month (both inclusive)."""
    key = MonthKey(year=year, month=month)
    last_day = calendar.monthrange(key.year, key.month)[1]
    return date(key.year, key.month, 1), date(key.year, key.month, last_day)


def period_description(
    date_from: Optional[date],
    date_to: Optional[date],
) -> str:
    """Human-readable period, e.g. 'in March 2025'."""
    if date_from and date_to:
        if date_from == date_to:
            return f"on {date_from.strftime('%d %b %Y')}"
        elif date_from.month == date_to.month and date_from.year == date_to.year:
            return f"in {date_from.strftime('%B %Y')}"
        elif date_from.year == date_to.year:
            return f"from {date_from.strftime('%b')} to {date_to.strftime('%b %Y')}"
        else:
            return f"from {date_from.strftime('%b %Y')} to {date_to.strftime('%b %Y')}"
    elif date_from:
        return f"from {date_from.strftime('%d %b %Y')}"
    elif date_to:
        return f"until {date_to.strftime('%d %b %Y')}"
    return "all time"


class ReportingEngine:
    """
    Computes summaries and breakdowns over one owner's transactions.

    GUARANTEES:
    - Only reads real data from storage
    - Never invents or estimates
    - An empty period yields zeros, not an error
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        category_storage: CategoryStorageInterface,
    ):
        self._transactions = transaction_storage
        self._categories = category_storage

    async def _summary(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> TransactionSummary:
        income, income_count = await self._transactions.sum_by_type(
            user_id, TransactionType.INCOME, date_from, date_to
        )
        expense, expense_count = await self._transactions.sum_by_type(
            user_id, TransactionType.EXPENSE, date_from, date_to
        )
        return TransactionSummary(
            total_income=income,
            total_expense=expense,
            transaction_count=income_count + expense_count,
        )

    async def monthly_summary(self, user_id: str, year: int, month: int) -> TransactionSummary:
        """Income, expense, balance and count for one calendar month."""
        first, last = month_bounds(year, month)
        return await self._summary(user_id, first, last)

    async def overall_summary(self, user_id: str) -> TransactionSummary:
        """Same as monthly_summary over the owner's whole history."""
        return await self._summary(user_id)

    async def category_breakdown(
        self,
        user_id: str,
        date_from: Optional[date],
        date_to: Optional[date],
        transaction_type: TransactionType,
    ) -> list[CategorySummary]:
        """
        Per-category totals for one type, largest first.

        percentage = amount / total * 100, or 0 for every row when the
        period total is 0.
        """
        groups = await self._transactions.sum_by_category(
            user_id, transaction_type, date_from, date_to
        )
        if not groups:
            return []

        total = add(*(amount for _, amount, _ in groups))
        categories = {
            c.id: c for c in await self._categories.list_categories(user_id)
        }

        rows = []
        for category_id, amount, count in groups:
            category = categories.get(category_id)
            parent = categories.get(category.parent_id) if category and category.parent_id else None
            rows.append(CategorySummary(
                category_id=category_id,
                category_name=category.name if category else UNKNOWN_CATEGORY,
                parent_name=parent.name if parent else None,
                amount=amount,
                percentage=quantize_amount(percentage(amount, total)),
                count=count,
            ))

        rows.sort(key=lambda r: (-r.amount, r.category_name))
        return rows

    async def available_months(
        self,
        user_id: str,
        today: Optional[date] = None,
    ) -> list[MonthKey]:
        """
        Months that have transactions, newest first.

        The current month is always included so a report can be opened
        before anything is posted.
        """
        today = today or date.today()
        months = {(d.year, d.month) for d in await self._transactions.list_transaction_dates(user_id)}
        months.add((today.year, today.month))
        return [
            MonthKey(year=year, month=month)
            for year, month in sorted(months, reverse=True)
        ]

    async def monthly_report(self, user_id: str, year: int, month: int) -> MonthlyReport:
        """Summary plus expense and income breakdowns for one month."""
        first, last = month_bounds(year, month)
        summary = await self._summary(user_id, first, last)

        return MonthlyReport(
            year=year,
            month=month,
            summary=summary,
            expense_by_category=await self.category_breakdown(
                user_id, first, last, TransactionType.EXPENSE
            ),
            income_by_category=await self.category_breakdown(
                user_id, first, last, TransactionType.INCOME
            ),
            description=period_description(first, last),
        )
