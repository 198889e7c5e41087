"""Pydantic schemas for the groups ledger API."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class SplitLineInput(BaseModel):
    member_id: int = Field(gt=0)
    amount: Decimal = Field(ge=0, max_digits=19, decimal_places=4)


class SplitRequest(BaseModel):
    splits: List[SplitLineInput] = Field(max_length=200)


class SettlementCreate(BaseModel):
    # Defaults to the caller when omitted.
    from_user_id: Optional[int] = Field(default=None, gt=0)
    to_user_id: int = Field(gt=0)
    amount: Decimal = Field(gt=0, max_digits=19, decimal_places=4)
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    notes: Optional[str] = Field(default=None, max_length=1000)


class SettlementListQuery(BaseModel):
    status: Optional[Literal["pending", "paid", "cancelled"]] = None
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=50, ge=1, le=100)
