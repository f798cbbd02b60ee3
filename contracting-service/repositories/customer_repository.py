"""
Customer repository (persistence).

Looks customers up by email and creates them on first import. Lookup and
creation are two separate statements; concurrent imports for the same new
email can create duplicate customers.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from domain.customer import Customer, CustomerDetails
from domain.time import parse_utc_datetime, utc_now
from repositories.client import StoreClient, execute

_CUSTOMERS_TABLE: str = "customers"


def _row_to_customer(row: Mapping[str, Any]) -> Customer:
    return Customer(
        customer_id=UUID(str(row["customer_id"])),
        email=str(row["email"]),
        first_name=str(row.get("first_name") or ""),
        last_name=str(row.get("last_name") or ""),
        phone=row.get("phone"),
        street=row.get("street"),
        house_number=row.get("house_number"),
        zip_code=row.get("zip_code"),
        city=row.get("city"),
        created_at=parse_utc_datetime(row["created_at"]) if row.get("created_at") else None,
    )


class CustomerRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def get_by_email(self, email: str) -> Optional[Customer]:
        rows = execute(
            self._client.table(_CUSTOMERS_TABLE).select("*").eq("email", email.strip().lower()).limit(1),
            "look up customer",
        )
        return _row_to_customer(rows[0]) if rows else None

    def create(self, details: CustomerDetails) -> Customer:
        """
        Insert a new customer.

        Args:
            details: Contact and address data from the sales funnel

        Returns:
            The created Customer
        """

        customer_id = uuid4()
        now = utc_now()
        payload: dict[str, Any] = {
            "customer_id": str(customer_id),
            "email": details.email.strip().lower(),
            "first_name": details.first_name,
            "last_name": details.last_name,
            "phone": details.phone,
            "street": details.street,
            "house_number": details.house_number,
            "zip_code": details.zip_code,
            "city": details.city,
            "created_at": now.isoformat(),
        }
        execute(self._client.table(_CUSTOMERS_TABLE).insert(payload), "create customer")
        return _row_to_customer(payload)


__all__ = ["CustomerRepository"]
