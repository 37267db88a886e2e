"""
Personal Expense Record Models

A ShoppingRecord is a single personal purchase. It is not shared with a
group and is never part of a settlement. Records feed the calendar view
and the category breakdowns.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecordCategory(str, Enum):
    """Categories offered when recording a purchase."""
    BILLS = "bills"
    SHOPPING = "shopping"
    PHONE = "phone"
    TRANSPORT = "transport"
    FOOD = "food"
    ENTERTAINMENT = "entertainment"
    OTHER = "other"


class ShoppingRecord(BaseModel):
    """A single personal purchase."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4())
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="User the record belongs to"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    date: datetime = Field(
        default_factory=datetime.utcnow
    )
    category: RecordCategory = RecordCategory.OTHER
    amount: Decimal = Field(
        ...,
        ge=0
    )
    location: str = Field(
        default="",
        max_length=300
    )

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v: Any) -> Any:
        """Unknown category strings fall back to OTHER."""
        if isinstance(v, str):
            try:
                return RecordCategory(v.strip().lower())
            except ValueError:
                return RecordCategory.OTHER
        return v

    @property
    def day(self) -> date:
        return self.date.date()


# =============================================================================
# QUERY MODELS
# =============================================================================

class RecordQuery(BaseModel):
    """A structured query over one owner's records."""

    query_id: str = Field(
        default_factory=lambda: str(uuid4())
    )
    owner_id: str
    query_type: str = Field(
        ...,
        pattern="^(day|breakdown|calendar|list)$",
        description="Type of query to execute"
    )
    day: Optional[date] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    year: Optional[int] = Field(
        default=None,
        ge=1900,
        le=9999
    )
    month: Optional[int] = Field(
        default=None,
        ge=1,
        le=12
    )
    category_filter: Optional[RecordCategory] = None
    limit: int = Field(
        default=100,
        ge=1,
        le=1000
    )


class CategoryTotal(BaseModel):
    """Spend in one category."""

    category: RecordCategory
    total: Decimal
    count: int = Field(ge=0)


class QueryResult(BaseModel):
    """Result of executing a RecordQuery."""

    query_id: str
    executed_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    success: bool
    error_message: Optional[str] = None
    result_count: int = Field(
        default=0,
        ge=0
    )
    results: list[dict] = Field(
        default_factory=list
    )
    total: Decimal = Decimal("0")
    query_description: str = ""
