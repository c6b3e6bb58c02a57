"""
Record Service API schemas.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

VALID_LOAN_STATUSES = ("Approved", "Pending", "Rejected", "Under Review", "Disbursed")


class CustomerInput(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    loan_amount_requested: float = Field(..., gt=0)
    loan_status: str = Field(..., min_length=1)


class Customer(BaseModel):
    id: int
    first_name: str
    last_name: str
    date_of_birth: str
    loan_amount_requested: float
    loan_status: str
    created_at: datetime
