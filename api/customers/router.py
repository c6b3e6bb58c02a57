"""
Record Service endpoints (government loan bank).

Errors use the `{"error": "..."}` body shape.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from .repository import CustomerRepository
from .schemas import VALID_LOAN_STATUSES, Customer, CustomerInput

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_customer_repository(request: Request) -> CustomerRepository:
    return request.app.state.customers


@router.get("/customer")
async def get_customer(
    first_name: str = Query(default=""),
    last_name: str = Query(default=""),
    customers: CustomerRepository = Depends(get_customer_repository),
) -> Customer:
    if not first_name.strip() or not last_name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="first_name and last_name query parameters are required",
        )

    customer = await customers.get_by_name(first_name, last_name)
    if customer is None:
        logger.info("customer_not_found first_name=%s last_name=%s", first_name, last_name)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.post("/customer", status_code=status.HTTP_201_CREATED)
async def add_customer(
    payload: CustomerInput,
    customers: CustomerRepository = Depends(get_customer_repository),
) -> dict:
    if payload.loan_status not in VALID_LOAN_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid loan status. Must be one of: " + ", ".join(VALID_LOAN_STATUSES),
        )

    existing = await customers.get_by_name(payload.first_name, payload.last_name)
    created = None if existing is not None else await customers.create_if_absent(payload)
    if created is None:
        existing = existing or await customers.get_by_name(payload.first_name, payload.last_name)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "Customer already exists with this name",
                "existing_id": existing.id if existing is not None else None,
            },
        )

    logger.info("customer_created customer_id=%s", created.id)
    return {"message": "Customer added successfully", "customer_id": created.id}


@router.get("/customers")
async def list_customers(
    customers: CustomerRepository = Depends(get_customer_repository),
) -> dict:
    rows = await customers.list_all()
    return {"count": len(rows), "customers": rows}


@router.delete("/customer/{customer_id}")
async def delete_customer(
    customer_id: int,
    customers: CustomerRepository = Depends(get_customer_repository),
) -> dict:
    if not await customers.delete(customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return {"message": "Customer deleted successfully"}
