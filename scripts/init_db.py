import sys
from pathlib import Path
import os

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm.db import create_db_engine  # noqa: E402
from app.crm.models import Base  # noqa: E402
from app.crm.modules.customers.models import Customer  # noqa: E402
from app.crm.utils import utcnow  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


# (first_name, last_name, email, phone_number, deleted)
SAMPLE_CUSTOMERS = [
    ("John", "Doe", "john.doe@example.com", "555-1234", False),
    ("Jane", "Smith", "jane.smith@example.com", "555-5678", False),
    ("Bob", "Johnson", "bob.johnson@example.com", "555-9012", False),
    ("Alice", "Williams", "alice.williams@example.com", "555-3456", False),
    ("Charlie", "Brown", "charlie.brown@example.com", "555-7890", False),
    ("Test", "Deleted", "deleted.user@example.com", "555-0000", True),
]


def seed_only(*, database_url: str | None = None) -> int:
    """
    Seed sample customers in an idempotent way.
    A sample row is skipped when any row (live or deleted) already has its email.
    Returns the number of rows inserted.
    """
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///crm.db").strip()

    inserted = 0
    with script_session(db_url) as s:
        existing = {email for (email,) in s.query(Customer.email).all()}
        now = utcnow()
        for first_name, last_name, email, phone, deleted in SAMPLE_CUSTOMERS:
            if email in existing:
                continue
            s.add(
                Customer(
                    first_name=first_name,
                    last_name=last_name,
                    email=email,
                    phone_number=phone,
                    created_at=now,
                    last_modified=now,
                    deleted=deleted,
                )
            )
            inserted += 1

    print(f"Seeded sample customers (inserted={inserted}).")
    return inserted


def create_schema(*, database_url: str | None = None) -> None:
    """Create tables straight from the models (local dev without Alembic)."""
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///crm.db").strip()
    engine = create_db_engine(db_url)
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def main() -> None:
    if "--create-schema" in sys.argv[1:]:
        create_schema(database_url=None)
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
