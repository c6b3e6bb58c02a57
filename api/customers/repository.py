"""
Customer persistence.

Names match case-insensitively. The Postgres schema backs this with a unique
index on (lower(first_name), lower(last_name)); the memory implementation
keys its store the same way.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from core import db
from core.kv import KeyValueStore

from .schemas import Customer, CustomerInput

_COLUMNS = "id, first_name, last_name, date_of_birth, loan_amount_requested, loan_status, created_at"


def _to_customer(row: dict) -> Customer:
    dob = row["date_of_birth"]
    return Customer(
        id=int(row["id"]),
        first_name=str(row["first_name"]),
        last_name=str(row["last_name"]),
        date_of_birth=dob.isoformat() if hasattr(dob, "isoformat") else str(dob),
        loan_amount_requested=float(row["loan_amount_requested"]),
        loan_status=str(row["loan_status"]),
        created_at=row["created_at"],
    )


def name_key(first_name: str, last_name: str) -> str:
    return f"{first_name.lower()}\x00{last_name.lower()}"


class CustomerRepository(ABC):
    @abstractmethod
    async def get_by_name(self, first_name: str, last_name: str) -> Customer | None:
        """Case-insensitive exact match on both names."""

    @abstractmethod
    async def create_if_absent(self, payload: CustomerInput) -> Customer | None:
        """Insert; None when a customer with the same names exists."""

    @abstractmethod
    async def list_all(self) -> list[Customer]:
        """Newest first."""

    @abstractmethod
    async def delete(self, customer_id: int) -> bool:
        """True when a row was removed."""


class PostgresCustomerRepository(CustomerRepository):
    async def get_by_name(self, first_name: str, last_name: str) -> Customer | None:
        row = await db.fetch_one(
            f"""
            SELECT {_COLUMNS}
            FROM customers
            WHERE LOWER(first_name) = LOWER($1) AND LOWER(last_name) = LOWER($2)
            """,
            first_name,
            last_name,
        )
        return _to_customer(row) if row is not None else None

    async def create_if_absent(self, payload: CustomerInput) -> Customer | None:
        row = await db.fetch_one(
            f"""
            INSERT INTO customers (first_name, last_name, date_of_birth, loan_amount_requested, loan_status)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT DO NOTHING
            RETURNING {_COLUMNS}
            """,
            payload.first_name,
            payload.last_name,
            payload.date_of_birth,
            payload.loan_amount_requested,
            payload.loan_status,
        )
        return _to_customer(row) if row is not None else None

    async def list_all(self) -> list[Customer]:
        rows = await db.fetch_all(
            f"""
            SELECT {_COLUMNS}
            FROM customers
            ORDER BY created_at DESC
            """
        )
        return [_to_customer(r) for r in rows]

    async def delete(self, customer_id: int) -> bool:
        status_tag = await db.execute("DELETE FROM customers WHERE id = $1", customer_id)
        return db.affected_rows(status_tag) > 0


class MemoryCustomerRepository(CustomerRepository):
    def __init__(self) -> None:
        self._customers: KeyValueStore[Customer] = KeyValueStore()
        self._ids = itertools.count(1)

    async def get_by_name(self, first_name: str, last_name: str) -> Customer | None:
        return await self._customers.get(name_key(first_name, last_name))

    async def create_if_absent(self, payload: CustomerInput) -> Customer | None:
        customer = Customer(
            id=next(self._ids),
            first_name=payload.first_name,
            last_name=payload.last_name,
            date_of_birth=payload.date_of_birth.isoformat(),
            loan_amount_requested=payload.loan_amount_requested,
            loan_status=payload.loan_status,
            created_at=datetime.now(timezone.utc),
        )
        key = name_key(payload.first_name, payload.last_name)
        if not await self._customers.insert_if_absent(key, customer):
            return None
        return customer

    async def list_all(self) -> list[Customer]:
        customers = await self._customers.values()
        return sorted(customers, key=lambda c: (c.created_at, c.id), reverse=True)

    async def delete(self, customer_id: int) -> bool:
        return await self._customers.delete_where(lambda c: c.id == customer_id) > 0
