"""
Store adapter for customers.

Only five query shapes exist and every read goes through ``_active()``, so the
soft-delete predicate cannot be forgotten. No business rules live here.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import Session

from app.crm.modules.customers.models import Customer


# External sort name -> mapped column.
SORT_COLUMNS = {
    "id": Customer.id,
    "firstName": Customer.first_name,
    "lastName": Customer.last_name,
    "email": Customer.email,
    "phoneNumber": Customer.phone_number,
    "createdAt": Customer.created_at,
    "lastModified": Customer.last_modified,
}

FILTER_COLUMNS = {
    "first_name": Customer.first_name,
    "last_name": Customer.last_name,
    "email": Customer.email,
}


@dataclass(frozen=True)
class PageQuery:
    page: int
    size: int
    sort_field: str = "id"
    descending: bool = False
    filters: dict[str, str] = field(default_factory=dict)

    @property
    def offset(self) -> int:
        return self.page * self.size


def _active():
    return select(Customer).where(Customer.deleted.is_(False))


def _like(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _apply_filters(stmt, filters: dict[str, str]):
    for key, value in filters.items():
        value = (value or "").strip()
        if not value:
            continue
        if key == "q":
            like = _like(value)
            stmt = stmt.where(
                or_(
                    Customer.first_name.ilike(like, escape="\\"),
                    Customer.last_name.ilike(like, escape="\\"),
                    Customer.email.ilike(like, escape="\\"),
                )
            )
        elif key in FILTER_COLUMNS:
            stmt = stmt.where(FILTER_COLUMNS[key].ilike(_like(value), escape="\\"))
        else:
            raise ValueError(f"Unsupported customer filter: {key}")
    return stmt


def find_active_by_id(s: Session, customer_id: int) -> Customer | None:
    return s.execute(_active().where(Customer.id == customer_id)).scalar_one_or_none()


def exists_active_by_email(s: Session, email: str) -> bool:
    stmt = select(exists().where(Customer.email == email, Customer.deleted.is_(False)))
    return bool(s.execute(stmt).scalar())


def find_active_page(s: Session, query: PageQuery) -> tuple[list[Customer], int]:
    """Return one page of non-deleted customers and the total match count."""
    base = _apply_filters(_active(), query.filters)

    total = s.execute(select(func.count()).select_from(base.subquery())).scalar_one()

    column = SORT_COLUMNS[query.sort_field]
    order = column.desc() if query.descending else column.asc()
    tie_break = Customer.id.desc() if query.descending else Customer.id.asc()
    rows = (
        s.execute(
            base.order_by(order, tie_break)
            .offset(query.offset)
            .limit(query.size)
        )
        .scalars()
        .all()
    )
    return list(rows), int(total)


def insert(s: Session, customer: Customer) -> Customer:
    s.add(customer)
    s.flush()  # assigns id; surfaces unique-index violations now
    return customer


def save(s: Session, customer: Customer) -> Customer:
    s.add(customer)
    s.flush()
    return customer
