from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, request, url_for

from app.crm.db import db_session
from app.crm.errors import RequestValidationError
from app.crm.modules.customers.service import (
    SORT_DIRECTIONS,
    SORT_FIELDS,
    CustomerNotFoundError,
    create_customer,
    customer_to_dict,
    delete_customer,
    get_customer_by_id,
    list_customers,
    page_to_dict,
    update_customer,
    validate_customer_payload,
)
from app.crm.rbac import (
    PERM_CUSTOMERS_CREATE,
    PERM_CUSTOMERS_DELETE,
    PERM_CUSTOMERS_EDIT,
    PERM_CUSTOMERS_VIEW,
    require_permission,
)

bp = Blueprint("customers", __name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_SORT_BY = "id"
DEFAULT_SORT_DIR = "desc"

# Largest value a BIGINT column or an OFFSET clause accepts.
MAX_DB_INT = 2**63 - 1

# Query param -> filter key understood by the store adapter.
FILTER_PARAMS = {
    "q": "q",
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
}


def _int_arg(name: str, default: int, errors: dict[str, str]) -> int:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        errors[name] = f"{name} must be an integer"
        return default


def _parse_list_args() -> dict[str, Any]:
    errors: dict[str, str] = {}

    page = _int_arg("page", DEFAULT_PAGE, errors)
    page_size = _int_arg("pageSize", DEFAULT_PAGE_SIZE, errors)
    if "pageSize" not in errors:
        if page_size < 1:
            errors["pageSize"] = "Page size must be at least 1"
        elif page_size > MAX_PAGE_SIZE:
            errors["pageSize"] = f"Page size must not exceed {MAX_PAGE_SIZE}"

    if "page" not in errors:
        if page < 1:
            errors["page"] = "Page number must be at least 1"
        elif "pageSize" not in errors and (page - 1) * page_size > MAX_DB_INT:
            errors["page"] = "Page number is too large"

    sort_by = (request.args.get("sortBy") or DEFAULT_SORT_BY).strip()
    if sort_by not in SORT_FIELDS:
        errors["sortBy"] = "Invalid sort field"

    sort_dir = (request.args.get("sortDir") or DEFAULT_SORT_DIR).strip()
    if sort_dir not in SORT_DIRECTIONS:
        errors["sortDir"] = "Sort direction must be 'asc' or 'desc'"

    if errors:
        raise RequestValidationError(errors)

    filters = {
        key: (request.args.get(param) or "").strip()
        for param, key in FILTER_PARAMS.items()
        if (request.args.get(param) or "").strip()
    }
    return {
        # External pages are 1-based; the service is 0-based.
        "page": page - 1,
        "page_size": page_size,
        "sort_field": sort_by,
        "sort_direction": sort_dir,
        "filters": filters,
    }


def _check_id(customer_id: int) -> None:
    if customer_id < 1:
        raise RequestValidationError({"id": "Customer ID must be positive"})
    if customer_id > MAX_DB_INT:
        # No row can carry an id past the column range.
        raise CustomerNotFoundError(customer_id)


def _json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise RequestValidationError({"body": "Request body must be a JSON object"})
    errors = validate_customer_payload(payload)
    if errors:
        raise RequestValidationError(errors)
    return payload


# ---------- List ----------
@bp.get("/customers")
@require_permission(PERM_CUSTOMERS_VIEW)
def customers_list():
    args = _parse_list_args()
    s = db_session()
    page = list_customers(s, **args)
    current_app.logger.info(
        "Returning %s active customers out of %s total", len(page.items), page.total_elements
    )
    return page_to_dict(page)


# ---------- Detail ----------
@bp.get("/customers/<int(signed=True):customer_id>")
@require_permission(PERM_CUSTOMERS_VIEW)
def customer_detail(customer_id: int):
    _check_id(customer_id)
    s = db_session()
    return customer_to_dict(get_customer_by_id(s, customer_id))


# ---------- Create ----------
@bp.post("/customers")
@require_permission(PERM_CUSTOMERS_CREATE)
def customers_create():
    payload = _json_payload()
    s = db_session()
    c = create_customer(s, payload)
    s.commit()
    location = url_for("customers.customer_detail", customer_id=c.id)
    return customer_to_dict(c), 201, {"Location": location}


# ---------- Update ----------
@bp.put("/customers/<int(signed=True):customer_id>")
@require_permission(PERM_CUSTOMERS_EDIT)
def customer_update(customer_id: int):
    _check_id(customer_id)
    payload = _json_payload()
    s = db_session()
    c = update_customer(s, customer_id, payload)
    s.commit()
    return customer_to_dict(c)


# ---------- Delete ----------
@bp.delete("/customers/<int(signed=True):customer_id>")
@require_permission(PERM_CUSTOMERS_DELETE)
def customer_delete(customer_id: int):
    _check_id(customer_id)
    s = db_session()
    delete_customer(s, customer_id)
    s.commit()
    return "", 204
