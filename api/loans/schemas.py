"""
Record Service payloads as seen by the gateway.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class LoanQuery:
    first_name: str
    last_name: str

    def as_params(self) -> dict[str, str]:
        return {"first_name": self.first_name, "last_name": self.last_name}


class LoanRecord(BaseModel):
    """
    Body of `GET /api/customer` on 200. Extra keys (id, created_at) are ignored.
    """

    model_config = ConfigDict(strict=True, allow_inf_nan=False, frozen=True)

    first_name: str
    last_name: str
    date_of_birth: str
    loan_amount_requested: float
    loan_status: str
