import base64
from datetime import datetime

import pytest


def _auth(username: str, password: str) -> dict[str, str]:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


ADMIN = _auth("admin", "admin")
USER = _auth("user", "password")
BASE = "/api/v1/customers"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("API_USER_USERNAME", "user")
    monkeypatch.setenv("API_USER_PASSWORD", "password")
    monkeypatch.setenv("API_ADMIN_USERNAME", "admin")
    monkeypatch.setenv("API_ADMIN_PASSWORD", "admin")

    from app.crm import create_app
    from app.crm.models import Base

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _payload(first="John", last="Doe", email="john.doe@x.com", phone="1234567890"):
    return {"firstName": first, "lastName": last, "email": email, "phoneNumber": phone}


def _create(client, **kwargs):
    resp = client.post(BASE, json=_payload(**kwargs), headers=ADMIN)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_customer_lifecycle(client):
    created = _create(client)
    cid = created["id"]
    assert created["firstName"] == "John"
    assert created["createdAt"] == created["lastModified"]
    assert "deleted" not in created

    resp = client.get(f"{BASE}/{cid}", headers=USER)
    assert resp.status_code == 200
    assert resp.get_json()["email"] == "john.doe@x.com"

    resp = client.put(
        f"{BASE}/{cid}",
        json=_payload(first="Jane", last="Smith", email="jane.smith@x.com", phone="9876543210"),
        headers=ADMIN,
    )
    assert resp.status_code == 200
    updated = resp.get_json()
    assert updated["id"] == cid
    assert updated["firstName"] == "Jane"
    assert updated["createdAt"] == created["createdAt"]
    assert datetime.fromisoformat(updated["lastModified"]) >= datetime.fromisoformat(created["lastModified"])

    resp = client.delete(f"{BASE}/{cid}", headers=ADMIN)
    assert resp.status_code == 204
    assert resp.data == b""

    resp = client.get(f"{BASE}/{cid}", headers=USER)
    assert resp.status_code == 404

    resp = client.delete(f"{BASE}/{cid}", headers=ADMIN)
    assert resp.status_code == 404


def test_create_returns_location_header(client):
    resp = client.post(BASE, json=_payload(), headers=ADMIN)
    assert resp.status_code == 201
    cid = resp.get_json()["id"]
    assert resp.headers["Location"].endswith(f"{BASE}/{cid}")


def test_duplicate_email_is_conflict(client):
    _create(client)
    resp = client.post(BASE, json=_payload(first="Other", last="Person"), headers=ADMIN)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["status"] == 409
    assert body["error"] == "Conflict"
    assert "john.doe@x.com" in body["message"]
    assert body["path"] == BASE


def test_update_to_existing_email_is_conflict(client):
    _create(client)
    other = _create(client, first="Jane", email="jane@x.com")
    resp = client.put(f"{BASE}/{other['id']}", json=_payload(email="john.doe@x.com"), headers=ADMIN)
    assert resp.status_code == 409

    resp = client.get(f"{BASE}/{other['id']}", headers=USER)
    assert resp.get_json()["email"] == "jane@x.com"


def test_deleted_email_can_be_reused(client):
    first = _create(client)
    assert client.delete(f"{BASE}/{first['id']}", headers=ADMIN).status_code == 204

    again = _create(client)
    assert again["id"] != first["id"]


def test_pagination_envelope(client):
    for i in range(1, 26):
        _create(client, first=f"Customer{i:02d}", email=f"customer{i}@x.com")

    resp = client.get(f"{BASE}?page=1&pageSize=10&sortBy=id&sortDir=asc", headers=USER)
    assert resp.status_code == 200
    body = resp.get_json()
    assert list(body.keys()) == [
        "customers",
        "page",
        "size",
        "totalElements",
        "totalPages",
        "first",
        "last",
        "hasNext",
        "hasPrevious",
    ]
    assert len(body["customers"]) == 10
    assert body["page"] == 0
    assert body["size"] == 10
    assert body["totalElements"] == 25
    assert body["totalPages"] == 3
    assert body["first"] is True
    assert body["last"] is False
    assert body["hasNext"] is True
    assert body["hasPrevious"] is False

    resp = client.get(f"{BASE}?page=3&pageSize=10&sortBy=id&sortDir=asc", headers=USER)
    body = resp.get_json()
    assert len(body["customers"]) == 5
    assert body["page"] == 2
    assert body["last"] is True
    assert body["hasNext"] is False
    assert body["hasPrevious"] is True


def test_list_defaults_to_newest_first(client):
    ids = [_create(client, email=f"c{i}@x.com")["id"] for i in range(3)]
    body = client.get(BASE, headers=USER).get_json()
    assert [c["id"] for c in body["customers"]] == sorted(ids, reverse=True)
    assert body["size"] == 10


def test_list_sorted_by_first_name(client):
    for first, email in (("Charlie", "c@x.com"), ("Alice", "a@x.com"), ("Bob", "b@x.com")):
        _create(client, first=first, email=email)

    body = client.get(f"{BASE}?sortBy=firstName&sortDir=asc", headers=USER).get_json()
    assert [c["firstName"] for c in body["customers"]] == ["Alice", "Bob", "Charlie"]


def test_list_filters(client):
    _create(client, first="John", last="Doe", email="john@x.com")
    _create(client, first="Jane", last="Smith", email="jane@x.com")

    body = client.get(f"{BASE}?lastName=smi", headers=USER).get_json()
    assert [c["firstName"] for c in body["customers"]] == ["Jane"]

    body = client.get(f"{BASE}?q=JOHN", headers=USER).get_json()
    assert [c["firstName"] for c in body["customers"]] == ["John"]


@pytest.mark.parametrize(
    "query, field",
    [
        ("sortBy=invalidField", "sortBy"),
        ("page=0", "page"),
        ("page=abc", "page"),
        ("pageSize=0", "pageSize"),
        ("pageSize=101", "pageSize"),
        ("sortDir=sideways", "sortDir"),
        ("sortDir=DESC", "sortDir"),
        ("page=99999999999999999999", "page"),
    ],
)
def test_list_rejects_bad_query_params(client, query, field):
    resp = client.get(f"{BASE}?{query}", headers=USER)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "Validation Failed"
    assert body["message"] == "Input validation failed"
    assert field in body["validationErrors"]


def test_not_found_body(client):
    resp = client.get(f"{BASE}/99999", headers=USER)
    assert resp.status_code == 404
    body = resp.get_json()
    assert body["status"] == 404
    assert body["error"] == "Not Found"
    assert body["message"] == "Customer not found with id: 99999"
    assert body["path"] == f"{BASE}/99999"
    assert body["timestamp"]


def test_non_positive_id_is_rejected(client):
    resp = client.get(f"{BASE}/0", headers=USER)
    assert resp.status_code == 400
    assert resp.get_json()["validationErrors"] == {"id": "Customer ID must be positive"}

    resp = client.delete(f"{BASE}/-5", headers=ADMIN)
    assert resp.status_code == 400


def test_non_numeric_id_is_not_found(client):
    resp = client.get(f"{BASE}/abc", headers=USER)
    assert resp.status_code == 404
    assert resp.get_json()["status"] == 404


def test_create_validation_errors(client):
    resp = client.post(
        BASE,
        json={"firstName": "  ", "lastName": "L" * 51, "email": "not-an-email", "phoneNumber": "1" * 16},
        headers=ADMIN,
    )
    assert resp.status_code == 400
    errors = resp.get_json()["validationErrors"]
    assert errors == {
        "firstName": "First name is required",
        "lastName": "Last name must not exceed 50 characters",
        "email": "Email should be valid",
        "phoneNumber": "Phone number must not exceed 15 characters",
    }


def test_create_requires_json_object(client):
    resp = client.post(BASE, data="nope", content_type="application/json", headers=ADMIN)
    assert resp.status_code == 400
    assert "body" in resp.get_json()["validationErrors"]

    resp = client.post(BASE, json=["a", "b"], headers=ADMIN)
    assert resp.status_code == 400


def test_update_validates_before_lookup(client):
    resp = client.put(f"{BASE}/99999", json={"firstName": "x"}, headers=ADMIN)
    assert resp.status_code == 400
    assert "email" in resp.get_json()["validationErrors"]


def test_missing_credentials_is_401(client):
    resp = client.get(BASE)
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == 'Basic realm="customers"'
    body = resp.get_json()
    assert body["error"] == "Unauthorized"
    assert body["message"] == "Authentication is required to access this resource"


def test_wrong_password_is_401(client):
    resp = client.get(BASE, headers=_auth("admin", "wrong"))
    assert resp.status_code == 401

    resp = client.get(BASE, headers=_auth("nobody", "admin"))
    assert resp.status_code == 401


def test_user_role_cannot_write(client):
    cid = _create(client)["id"]

    resp = client.post(BASE, json=_payload(email="other@x.com"), headers=USER)
    assert resp.status_code == 403
    body = resp.get_json()
    assert body["error"] == "Forbidden"
    assert body["message"] == "Access is denied"

    assert client.put(f"{BASE}/{cid}", json=_payload(first="Nope"), headers=USER).status_code == 403
    assert client.delete(f"{BASE}/{cid}", headers=USER).status_code == 403

    # Nothing changed.
    resp = client.get(f"{BASE}/{cid}", headers=USER)
    assert resp.status_code == 200
    assert resp.get_json()["firstName"] == "John"


def test_admin_can_read(client):
    cid = _create(client)["id"]
    assert client.get(BASE, headers=ADMIN).status_code == 200
    assert client.get(f"{BASE}/{cid}", headers=ADMIN).status_code == 200


def test_correlation_id_is_echoed_or_generated(client):
    resp = client.get(BASE, headers={**USER, "X-Correlation-ID": "abc-123"})
    assert resp.headers["X-Correlation-ID"] == "abc-123"

    resp = client.get(BASE, headers=USER)
    assert resp.headers.get("X-Correlation-ID")


def test_unexpected_error_is_generic_500(client, monkeypatch):
    from app.crm.modules.customers import api

    def _boom(*args, **kwargs):
        raise RuntimeError("database exploded with secrets")

    monkeypatch.setattr(api, "list_customers", _boom)
    resp = client.get(BASE, headers=USER)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"] == "Internal Server Error"
    assert body["message"] == "An unexpected error occurred"
    assert "secrets" not in resp.get_data(as_text=True)


def test_health_endpoints_need_no_auth(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}

    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == "ok"


def test_delete_keeps_row_flagged(app, client):
    from sqlalchemy import select

    from app.crm.db import session_scope
    from app.crm.modules.customers.models import Customer

    cid = _create(client)["id"]
    assert client.delete(f"{BASE}/{cid}", headers=ADMIN).status_code == 204

    with session_scope(app) as s:
        row = s.execute(select(Customer).where(Customer.id == cid)).scalar_one()
        assert row.deleted is True
        assert row.last_modified >= row.created_at

    body = client.get(BASE, headers=USER).get_json()
    assert body["totalElements"] == 0


def test_list_reads_rows_written_outside_the_api(app, client):
    from app.crm.db import session_scope
    from app.crm.modules.customers.service import create_customer

    with session_scope(app) as s:
        create_customer(s, _payload(email="seeded@x.com"))

    body = client.get(BASE, headers=USER).get_json()
    assert [c["email"] for c in body["customers"]] == ["seeded@x.com"]


def test_page_offset_past_column_range_is_rejected(client):
    resp = client.get(f"{BASE}?page={2**62}&pageSize=100", headers=USER)
    assert resp.status_code == 400
    assert resp.get_json()["validationErrors"] == {"page": "Page number is too large"}


def test_id_past_column_range_is_not_found(client):
    huge = 99999999999999999999
    resp = client.get(f"{BASE}/{huge}", headers=USER)
    assert resp.status_code == 404
    assert resp.get_json()["message"] == f"Customer not found with id: {huge}"

    assert client.put(f"{BASE}/{huge}", json=_payload(), headers=ADMIN).status_code == 404
    assert client.delete(f"{BASE}/{huge}", headers=ADMIN).status_code == 404


def test_unknown_username_still_checks_a_password_hash(app, monkeypatch):
    from app.crm import auth

    checked = []
    real_check = auth.check_password_hash

    def _recording_check(pwhash, password):
        checked.append(password)
        return real_check(pwhash, password)

    monkeypatch.setattr(auth, "check_password_hash", _recording_check)
    with app.app_context():
        assert auth.authenticate("nobody", "guess") is None
        assert auth.authenticate("admin", "admin") is not None
    assert checked == ["guess", "admin"]
