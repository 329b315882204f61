"""
Customer lifecycle service.

Single authority for reading and mutating customers:
- email is unique among non-deleted customers (checked before writing; the
  partial unique index catches a lost race and is reported the same way)
- delete flips ``deleted`` and stamps ``last_modified``; rows are kept
- ``created_at`` is set once, ``last_modified`` on every mutation

Functions flush but never commit; the caller owns the transaction.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.crm.modules.customers import repository
from app.crm.modules.customers.models import (
    EMAIL_MAX,
    FIRST_NAME_MAX,
    LAST_NAME_MAX,
    PHONE_NUMBER_MAX,
    Customer,
)
from app.crm.modules.customers.repository import SORT_COLUMNS, PageQuery
from app.crm.utils import isoformat, utcnow

logger = logging.getLogger(__name__)

SORT_FIELDS = tuple(SORT_COLUMNS)
SORT_DIRECTIONS = ("asc", "desc")

# Pragmatic address check: local@domain.tld, no whitespace, one "@".
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CustomerNotFoundError(LookupError):
    def __init__(self, customer_id: int):
        self.customer_id = customer_id
        super().__init__(f"Customer not found with id: {customer_id}")


class DuplicateEmailError(ValueError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Customer with email {email} already exists")


class InvalidSortFieldError(ValueError):
    def __init__(self, sort_field: str):
        self.sort_field = sort_field
        super().__init__(f"Invalid sort field: {sort_field}")


@dataclass(frozen=True)
class CustomerPage:
    items: list[Customer]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return math.ceil(self.total_elements / self.size)

    @property
    def has_previous(self) -> bool:
        return self.page > 0

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    @property
    def is_first(self) -> bool:
        return not self.has_previous

    @property
    def is_last(self) -> bool:
        return not self.has_next


@dataclass(frozen=True)
class CustomerFields:
    first_name: str
    last_name: str
    email: str
    phone_number: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CustomerFields":
        return cls(
            first_name=_clean(payload.get("firstName")) or "",
            last_name=_clean(payload.get("lastName")) or "",
            email=_clean(payload.get("email")) or "",
            phone_number=_clean(payload.get("phoneNumber")),
        )


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def validate_customer_payload(payload: dict[str, Any]) -> dict[str, str]:
    """Validate a create/update payload. Returns {field: message}, empty when valid."""
    errors: dict[str, str] = {}

    for key, label, max_len in (
        ("firstName", "First name", FIRST_NAME_MAX),
        ("lastName", "Last name", LAST_NAME_MAX),
    ):
        raw = payload.get(key)
        if raw is not None and not isinstance(raw, str):
            errors[key] = f"{label} must be a string"
            continue
        value = _clean(raw)
        if not value:
            errors[key] = f"{label} is required"
        elif len(value) > max_len:
            errors[key] = f"{label} must not exceed {max_len} characters"

    raw_email = payload.get("email")
    if raw_email is not None and not isinstance(raw_email, str):
        errors["email"] = "Email must be a string"
    else:
        email = _clean(raw_email)
        if not email:
            errors["email"] = "Email is required"
        elif len(email) > EMAIL_MAX:
            errors["email"] = f"Email must not exceed {EMAIL_MAX} characters"
        elif not _EMAIL_RE.match(email):
            errors["email"] = "Email should be valid"

    raw_phone = payload.get("phoneNumber")
    if raw_phone is not None and not isinstance(raw_phone, str):
        errors["phoneNumber"] = "Phone number must be a string"
    else:
        phone = _clean(raw_phone)
        if phone and len(phone) > PHONE_NUMBER_MAX:
            errors["phoneNumber"] = f"Phone number must not exceed {PHONE_NUMBER_MAX} characters"

    return errors


def list_customers(
    s: Session,
    page: int,
    page_size: int,
    sort_field: str = "id",
    sort_direction: str = "asc",
    filters: dict[str, str] | None = None,
) -> CustomerPage:
    """
    One page of non-deleted customers.

    ``page`` is zero-based. ``sort_direction`` is case-insensitive; anything
    other than "desc" sorts ascending.
    """
    logger.info(
        "Fetching active customers - page: %s, size: %s, sortBy: %s, sortDir: %s",
        page,
        page_size,
        sort_field,
        sort_direction,
    )
    if sort_field not in SORT_COLUMNS:
        raise InvalidSortFieldError(sort_field)
    if page < 0:
        raise ValueError("page must be >= 0")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    query = PageQuery(
        page=page,
        size=page_size,
        sort_field=sort_field,
        descending=(sort_direction or "").lower() == "desc",
        filters={k: v for k, v in (filters or {}).items() if v},
    )
    items, total = repository.find_active_page(s, query)
    logger.info("Found %s active customers", total)
    return CustomerPage(items=items, page=page, size=page_size, total_elements=total)


def get_customer_by_id(s: Session, customer_id: int) -> Customer:
    logger.info("Fetching active customer with id: %s", customer_id)
    c = repository.find_active_by_id(s, customer_id)
    if c is None:
        raise CustomerNotFoundError(customer_id)
    return c


def create_customer(s: Session, payload: dict[str, Any]) -> Customer:
    fields = CustomerFields.from_payload(payload)
    logger.info("Creating new customer with email: %s", fields.email)

    if repository.exists_active_by_email(s, fields.email):
        raise DuplicateEmailError(fields.email)

    now = utcnow()
    c = Customer(
        first_name=fields.first_name,
        last_name=fields.last_name,
        email=fields.email,
        phone_number=fields.phone_number,
        created_at=now,
        last_modified=now,
        deleted=False,
    )
    try:
        repository.insert(s, c)
    except IntegrityError as e:
        # Lost a race with a concurrent create using the same email.
        s.rollback()
        raise DuplicateEmailError(fields.email) from e

    logger.info("Successfully created customer with id: %s", c.id)
    return c


def update_customer(s: Session, customer_id: int, payload: dict[str, Any]) -> Customer:
    logger.info("Updating customer with id: %s", customer_id)
    c = get_customer_by_id(s, customer_id)
    fields = CustomerFields.from_payload(payload)

    # Keeping the current email needs no uniqueness check.
    if fields.email != c.email and repository.exists_active_by_email(s, fields.email):
        raise DuplicateEmailError(fields.email)

    c.first_name = fields.first_name
    c.last_name = fields.last_name
    c.email = fields.email
    c.phone_number = fields.phone_number
    c.last_modified = utcnow()
    try:
        repository.save(s, c)
    except IntegrityError as e:
        s.rollback()
        raise DuplicateEmailError(fields.email) from e

    logger.info("Successfully updated customer with id: %s", c.id)
    return c


def delete_customer(s: Session, customer_id: int) -> None:
    logger.info("Soft deleting customer with id: %s", customer_id)
    c = get_customer_by_id(s, customer_id)
    c.deleted = True
    c.last_modified = utcnow()
    repository.save(s, c)
    logger.info("Successfully soft deleted customer with id: %s", customer_id)


def customer_to_dict(c: Customer) -> dict[str, Any]:
    return {
        "id": c.id,
        "firstName": c.first_name,
        "lastName": c.last_name,
        "email": c.email,
        "phoneNumber": c.phone_number,
        "createdAt": isoformat(c.created_at),
        "lastModified": isoformat(c.last_modified),
    }


def page_to_dict(p: CustomerPage) -> dict[str, Any]:
    return {
        "customers": [customer_to_dict(c) for c in p.items],
        "page": p.page,
        "size": p.size,
        "totalElements": p.total_elements,
        "totalPages": p.total_pages,
        "first": p.is_first,
        "last": p.is_last,
        "hasNext": p.has_next,
        "hasPrevious": p.has_previous,
    }
