from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, false
from sqlalchemy.orm import Mapped, mapped_column

from app.crm.models import Base
from app.crm.utils import utcnow


FIRST_NAME_MAX = 50
LAST_NAME_MAX = 50
EMAIL_MAX = 255
PHONE_NUMBER_MAX = 15


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customers_last_name", "last_name"),
        Index("idx_customers_deleted", "deleted"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    first_name: Mapped[str] = mapped_column(String(FIRST_NAME_MAX), nullable=False)
    last_name: Mapped[str] = mapped_column(String(LAST_NAME_MAX), nullable=False)
    email: Mapped[str] = mapped_column(String(EMAIL_MAX), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(PHONE_NUMBER_MAX), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    # Soft delete: rows are flagged, never removed.
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    def __repr__(self) -> str:
        return f"<Customer id={self.id} email={self.email!r} deleted={self.deleted}>"


# One live row per email; soft-deleted rows don't block reuse.
Index(
    "uq_customers_email_active",
    Customer.email,
    unique=True,
    sqlite_where=Customer.deleted == false(),
    postgresql_where=Customer.deleted == false(),
)
