# family_expenses/schemas.py

import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def _coerce_date(value):
    # accept full ISO timestamps ("2024-03-05T10:00:00Z") as well as plain dates
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    if isinstance(value, datetime):
        return value.date()
    return value


def _coerce_amount(value):
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    return value


def _strip_required(value):
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# ---------------- Requests ----------------

class LoginRequest(CamelModel):
    email_or_username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserCreate(CamelModel):
    email: str = Field(..., min_length=3)
    username: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)
    is_admin: bool = False

    @field_validator("email", "username", "full_name")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()


class AdminRightsUpdate(CamelModel):
    is_admin: bool = Field(..., strict=True)


class ExpenseCreate(CamelModel):
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, allow_inf_nan=False)
    description: str = Field(..., min_length=1)
    date: dt.date
    category: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v):
        return _coerce_date(v)

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, v):
        return _coerce_amount(v)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class ExpenseUpdate(CamelModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2, allow_inf_nan=False)
    description: Optional[str] = Field(None, min_length=1)
    date: Optional[dt.date] = None
    category: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v):
        return _coerce_date(v)

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, v):
        return _coerce_amount(v)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _strip_required(v)


class ExpenseBatch(CamelModel):
    # items are validated one by one so a bad row does not sink the batch
    expenses: List[Any] = Field(..., min_length=1)


class BulkDeleteRequest(CamelModel):
    ids: List[int] = Field(..., min_length=1)


class BudgetUpsert(CamelModel):
    month: str
    year: int
    # validated by budget_utils.validate_initial_capital
    initial_capital: Any
    description: Optional[str] = None


# ---------------- Responses ----------------

class UserOut(CamelModel):
    id: int
    email: str
    username: str
    full_name: str
    is_admin: bool
    created_at: datetime
    updated_at: datetime


class ExpenseOut(CamelModel):
    id: int
    amount: float
    description: str
    category: str
    date: dt.date
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExpenseMonthOut(CamelModel):
    month: str
    year: int
    expenses: List[ExpenseOut]
    total: float
    last_modified_at: Optional[datetime] = None
    last_modified_by: Optional[str] = None


class BudgetOut(CamelModel):
    id: int
    month: str
    year: int
    initial_capital: float
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BudgetSummaryOut(CamelModel):
    total_expenses: float
    remaining: float
    percentage_used: float
    is_over_budget: bool


class BulkItemResult(CamelModel):
    key: Any
    status: Literal["succeeded", "failed"]
    reason: Optional[str] = None
