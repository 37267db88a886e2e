"""
Personal Record Queries

Deterministic queries over one owner's shopping records:
- day: every record on a single day
- breakdown: totals per category over a date range
- calendar: totals per day for one month
- list: records in a date range, newest first

execute() never raises; failures come back as an unsuccessful QueryResult.
"""

import calendar
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

from groupledger.models.records import (
    CategoryTotal,
    QueryResult,
    RecordCategory,
    RecordQuery,
    ShoppingRecord,
)
from groupledger.services.storage import RecordStoreInterface


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class RecordQueryExecutor:
    """Executes record queries against a record store."""

    def __init__(self, storage: RecordStoreInterface):
        self._storage = storage

    async def records_for_day(self, owner_id: str, day: date) -> list[ShoppingRecord]:
        return await self._storage.list_records(owner_id, date_from=day, date_to=day)

    async def category_breakdown(
        self,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[CategoryTotal]:
        """Totals per category, largest first."""
        records = await self._storage.list_records(
            owner_id,
            date_from=date_from,
            date_to=date_to,
        )

        totals: dict[RecordCategory, Decimal] = defaultdict(Decimal)
        counts: dict[RecordCategory, int] = defaultdict(int)
        for record in records:
            totals[record.category] += record.amount
            counts[record.category] += 1

        breakdown = [
            CategoryTotal(category=category, total=total, count=counts[category])
            for category, total in totals.items()
        ]
        breakdown.sort(key=lambda c: (-c.total, c.category.value))
        return breakdown

    async def daily_totals(self, owner_id: str, year: int, month: int) -> dict[date, Decimal]:
        """Spend per day for a calendar month; days without records are omitted."""
        last_day = calendar.monthrange(year, month)[1]
        records = await self._storage.list_records(
            owner_id,
            date_from=date(year, month, 1),
            date_to=date(year, month, last_day),
        )

        totals: dict[date, Decimal] = defaultdict(Decimal)
        for record in records:
            totals[record.day] += record.amount
        return dict(sorted(totals.items()))

    async def execute(self, query: RecordQuery) -> QueryResult:
        """Execute a structured query and return results."""
        try:
            if query.query_type == "day":
                return await self._execute_day(query)
            elif query.query_type == "breakdown":
                return await self._execute_breakdown(query)
            elif query.query_type == "calendar":
                return await self._execute_calendar(query)
            else:
                return await self._execute_list(query)
        except Exception as e:
            return QueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                query_description=f"Query failed: {str(e)}",
            )

    async def _execute_day(self, query: RecordQuery) -> QueryResult:
        if query.day is None:
            raise QueryExecutionError("A day query needs a day")

        records = await self.records_for_day(query.owner_id, query.day)
        if query.category_filter:
            records = [r for r in records if r.category == query.category_filter]

        return QueryResult(
            query_id=query.query_id,
            success=True,
            result_count=len(records),
            results=[self._record_to_dict(r) for r in records[:query.limit]],
            total=sum((r.amount for r in records), Decimal("0")),
            query_description=f"Records on {query.day.isoformat()}",
        )

    async def _execute_breakdown(self, query: RecordQuery) -> QueryResult:
        breakdown = await self.category_breakdown(
            query.owner_id,
            date_from=query.date_from,
            date_to=query.date_to,
        )

        desc_parts = ["Spending by category"]
        range_str = self._date_range_str(query.date_from, query.date_to)
        if range_str:
            desc_parts.append(range_str)

        return QueryResult(
            query_id=query.query_id,
            success=True,
            result_count=len(breakdown),
            results=[c.model_dump(mode="json") for c in breakdown],
            total=sum((c.total for c in breakdown), Decimal("0")),
            query_description=" ".join(desc_parts),
        )

    async def _execute_calendar(self, query: RecordQuery) -> QueryResult:
        if query.year is None or query.month is None:
            raise QueryExecutionError("A calendar query needs a year and a month")

        totals = await self.daily_totals(query.owner_id, query.year, query.month)

        return QueryResult(
            query_id=query.query_id,
            success=True,
            result_count=len(totals),
            results=[{"day": d.isoformat(), "total": str(t)} for d, t in totals.items()],
            total=sum(totals.values(), Decimal("0")),
            query_description=f"Daily totals for {query.year}-{query.month:02d}",
        )

    async def _execute_list(self, query: RecordQuery) -> QueryResult:
        records = await self._storage.list_records(
            query.owner_id,
            date_from=query.date_from,
            date_to=query.date_to,
            category=query.category_filter,
        )

        desc_parts = ["Listing records"]
        if query.category_filter:
            desc_parts.append(f"category: {query.category_filter.value}")
        range_str = self._date_range_str(query.date_from, query.date_to)
        if range_str:
            desc_parts.append(range_str)

        return QueryResult(
            query_id=query.query_id,
            success=True,
            result_count=len(records),
            results=[self._record_to_dict(r) for r in records[:query.limit]],
            total=sum((r.amount for r in records), Decimal("0")),
            query_description=" | ".join(desc_parts),
        )

    def _record_to_dict(self, record: ShoppingRecord) -> dict:
        return {
            "id": record.id,
            "name": record.name,
            "category": record.category.value,
            "amount": str(record.amount),
            "date": record.date.isoformat(),
            "location": record.location,
        }

    def _date_range_str(
        self,
        date_from: Optional[date],
        date_to: Optional[date],
    ) -> str:
        """Format date range for description."""
        if date_from and date_to:
            if date_from == date_to:
                return f"on {date_from.strftime('%d %b %Y')}"
            elif date_from.month == date_to.month and date_from.year == date_to.year:
                return f"in {date_from.strftime('%B %Y')}"
            return f"from {date_from.strftime('%d %b %Y')} to {date_to.strftime('%d %b %Y')}"
        elif date_from:
            return f"from {date_from.strftime('%d %b %Y')}"
        elif date_to:
            return f"until {date_to.strftime('%d %b %Y')}"
        return ""
