from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from farmhub import models
from farmhub.db import Base, get_db
from farmhub.deps import get_user_service
from farmhub.main import app
from farmhub.pagination import MAX_LIMIT, MAX_PAGE
from farmhub.security import create_access_token
from farmhub.user_service import UserService


@pytest.fixture
def api_client():
    """FastAPI TestClient wired to an isolated in-memory SQLite DB, authenticated."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    fast_users = UserService(pin_hasher=lambda pin: f"plain${pin}")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_user_service] = lambda: fast_users

    with TestClient(app) as client:
        client.headers["Authorization"] = f"Bearer {create_access_token({'sub': 'tester'})}"
        yield client, TestingSessionLocal

    app.dependency_overrides.clear()


def user_body(**overrides) -> dict:
    body = {
        "firstName": "Mwangi",
        "lastName": "Kariuki",
        "gender": "Male",
        "dob": "1990-04-12",
        "residenceCounty": "Kiambu",
        "residenceLocation": "Kikuyu",
        "email": "mwangi.kamau@example.com",
        "businessNumber": "+254720123456",
        "phoneNumber": "+254712345678",
        "pin": "1234",
    }
    body.update(overrides)
    return body


def farm_body(user_id: str, **overrides) -> dict:
    body = {
        "name": "Kamau Mixed Farm",
        "county": "Kiambu",
        "administrativeLocation": "Kikuyu",
        "size": 7.2,
        "ownership": "Freehold",
        "farmingTypes": ["Dairy cattle", "Poultry", "Crops"],
        "userId": user_id,
    }
    body.update(overrides)
    return body


def create_user(client: TestClient, **overrides) -> dict:
    resp = client.post("/users", json=user_body(**overrides))
    assert resp.status_code == 201, resp.json()
    return resp.json()


def get_user_row(sessionmaker_factory: Callable[[], Session], user_id: str) -> models.User | None:
    with sessionmaker_factory() as session:
        return session.get(models.User, user_id)


# ---------- auth ----------

def test_requests_without_token_are_unauthorized(api_client):
    client, _ = api_client

    for path in ("/users", "/farms", "/users/x", "/farms/x"):
        resp = client.get(path, headers={"Authorization": ""})
        assert resp.status_code == 401, path
        assert resp.headers["www-authenticate"] == "Bearer"


def test_invalid_token_is_unauthorized(api_client):
    client, _ = api_client

    resp = client.get("/users", headers={"Authorization": "Bearer not.a.token"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid or expired token"


def test_expired_token_is_unauthorized(api_client):
    client, _ = api_client
    expired = create_access_token({"sub": "tester"}, expires_in=-1)

    resp = client.get("/farms", headers={"Authorization": f"Bearer {expired}"})

    assert resp.status_code == 401


# ---------- users ----------

def test_list_users_empty(api_client):
    client, _ = api_client

    resp = client.get("/users")

    assert resp.status_code == 200, resp.json()
    assert resp.json() == {
        "data": [],
        "meta": {"total": 0, "page": 1, "pages": 0, "hasNextPage": False, "hasPrevPage": False},
    }


def test_create_user_returns_camel_case_without_pin(api_client):
    client, sessionmaker_factory = api_client

    body = create_user(client)

    assert body["firstName"] == "Mwangi"
    assert body["residenceCounty"] == "Kiambu"
    assert body["farms"] == []
    assert "pin" not in body
    assert get_user_row(sessionmaker_factory, body["id"]).pin == "plain$1234"


def test_create_user_duplicate_phone_is_409(api_client):
    client, _ = api_client
    create_user(client)

    resp = client.post("/users", json=user_body(email="other@example.com"))

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Phone number is already in use by another user."


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"gender": "Other"},
        {"dob": "yesterday-ish"},
        {"dob": "2000"},
        {"dob": "12"},
        {"dob": "01/02/2000"},
        {"firstName": None},
    ],
)
def test_create_user_validation_errors_are_422(api_client, overrides):
    client, _ = api_client

    resp = client.post("/users", json=user_body(**overrides))

    assert resp.status_code == 422


def test_list_users_paginates_and_searches(api_client):
    client, _ = api_client
    for n in range(12):
        create_user(client, firstName=f"Farmer{n}", email=f"f{n}@example.com", phoneNumber=f"+2547000000{n:02d}")
    create_user(client, firstName="Wanjiru", email="wanjiru@example.com", phoneNumber="+254799000000")

    resp = client.get("/users", params={"page": 2, "limit": 5})
    assert resp.status_code == 200
    assert resp.json()["meta"] == {"total": 13, "page": 2, "pages": 3, "hasNextPage": True, "hasPrevPage": True}
    assert len(resp.json()["data"]) == 5
    assert all("pin" not in u for u in resp.json()["data"])

    resp = client.get("/users", params={"search": "wanjiru"})
    assert [u["firstName"] for u in resp.json()["data"]] == ["Wanjiru"]

    resp = client.get("/users", params={"page": 0, "limit": 0})
    assert resp.json()["meta"]["page"] == 1
    assert len(resp.json()["data"]) == 10


@pytest.mark.parametrize(
    "path, params",
    [
        ("/users", {"page": 10**18, "limit": 100}),
        ("/users", {"page": 1, "limit": MAX_LIMIT + 1}),
        ("/farms", {"page": MAX_PAGE + 1}),
        ("/farms", {"limit": 10**18}),
    ],
)
def test_list_oversized_paging_is_422(api_client, path, params):
    client, _ = api_client

    resp = client.get(path, params=params)

    assert resp.status_code == 422


def test_user_timestamps_carry_utc_offset(api_client):
    client, _ = api_client
    created = create_user(client)

    body = client.get(f"/users/{created['id']}").json()

    for key in ("createdAt", "updatedAt"):
        stamp = datetime.fromisoformat(body[key].replace("Z", "+00:00"))
        assert stamp.utcoffset() == timedelta(0)


def test_get_user_includes_farms(api_client):
    client, _ = api_client
    user = create_user(client)
    client.post("/farms", json=farm_body(user["id"]))

    resp = client.get(f"/users/{user['id']}")

    assert resp.status_code == 200
    body = resp.json()
    assert "pin" not in body
    assert [f["name"] for f in body["farms"]] == ["Kamau Mixed Farm"]
    assert body["farms"][0]["administrativeLocation"] == "Kikuyu"


def test_get_user_missing_is_404(api_client):
    client, _ = api_client

    resp = client.get("/users/ghost")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "User with ID ghost not found"


def test_patch_user_partial_update(api_client):
    client, _ = api_client
    user = create_user(client)

    resp = client.patch(f"/users/{user['id']}", json={"residenceLocation": "Limuru"})

    assert resp.status_code == 200, resp.json()
    body = resp.json()
    assert body["residenceLocation"] == "Limuru"
    assert body["firstName"] == "Mwangi"
    assert "pin" not in body


def test_patch_user_email_conflict_is_409(api_client):
    client, _ = api_client
    create_user(client, email="a@x.com", phoneNumber="+254700000001")
    second = create_user(client, email="b@x.com", phoneNumber="+254700000002")

    resp = client.patch(f"/users/{second['id']}", json={"email": "a@x.com"})

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Email is already in use by another user."


def test_patch_user_explicit_null_on_required_field_is_422(api_client):
    client, _ = api_client
    user = create_user(client)

    resp = client.patch(f"/users/{user['id']}", json={"lastName": None})

    assert resp.status_code == 422


def test_delete_user_then_404(api_client):
    client, sessionmaker_factory = api_client
    user = create_user(client)

    resp = client.delete(f"/users/{user['id']}")
    assert resp.status_code == 200
    assert resp.json() == {"message": "User deleted successfully"}
    assert get_user_row(sessionmaker_factory, user["id"]) is None

    resp = client.delete(f"/users/{user['id']}")
    assert resp.status_code == 404


def test_delete_user_owning_farms_is_refused(api_client):
    client, sessionmaker_factory = api_client
    user = create_user(client)
    client.post("/farms", json=farm_body(user["id"]))

    with TestClient(app, raise_server_exceptions=False) as raw_client:
        raw_client.headers.update(client.headers)
        resp = raw_client.delete(f"/users/{user['id']}")

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
    assert get_user_row(sessionmaker_factory, user["id"]) is not None


# ---------- farms ----------

def test_create_farm_embeds_owner_public_fields(api_client):
    client, _ = api_client
    user = create_user(client)

    resp = client.post("/farms", json=farm_body(user["id"]))

    assert resp.status_code == 201, resp.json()
    body = resp.json()
    assert body["farmingTypes"] == ["Dairy cattle", "Poultry", "Crops"]
    assert body["size"] == 7.2
    assert body["user"] == {
        "id": user["id"],
        "firstName": "Mwangi",
        "lastName": "Kariuki",
        "phoneNumber": "+254712345678",
        "email": "mwangi.kamau@example.com",
    }
    assert "createdAt" in body and "updatedAt" in body


def test_create_farm_unknown_user_is_404(api_client):
    client, _ = api_client

    resp = client.post("/farms", json=farm_body("no-such-user"))

    assert resp.status_code == 404
    assert resp.json()["detail"] == "User not found"
    assert client.get("/farms").json()["meta"]["total"] == 0


def test_create_farm_rejects_non_positive_size(api_client):
    client, _ = api_client
    user = create_user(client)

    resp = client.post("/farms", json=farm_body(user["id"], size=0))

    assert resp.status_code == 422


def test_list_farms_search_and_meta(api_client):
    client, _ = api_client
    user = create_user(client)
    client.post("/farms", json=farm_body(user["id"], name="Hilltop", county="Nyeri"))
    client.post("/farms", json=farm_body(user["id"], name="Riverside", county="Meru"))

    resp = client.get("/farms", params={"search": "NYERI"})

    assert resp.status_code == 200
    body = resp.json()
    assert [f["name"] for f in body["data"]] == ["Hilltop"]
    assert body["meta"] == {"total": 1, "page": 1, "pages": 1, "hasNextPage": False, "hasPrevPage": False}
    assert body["data"][0]["user"]["id"] == user["id"]


def test_get_farm_missing_is_404(api_client):
    client, _ = api_client

    resp = client.get("/farms/DOES-NOT-EXIST")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Farm with ID DOES-NOT-EXIST not found"


def test_patch_farm_ignores_user_id(api_client):
    client, _ = api_client
    owner = create_user(client)
    other = create_user(client, email="other@example.com", phoneNumber="+254700000999")
    farm = client.post("/farms", json=farm_body(owner["id"])).json()

    resp = client.patch(f"/farms/{farm['id']}", json={"ownership": "Leasehold", "userId": other["id"]})

    assert resp.status_code == 200, resp.json()
    assert resp.json()["ownership"] == "Leasehold"
    assert resp.json()["userId"] == owner["id"]


def test_delete_farm_then_404(api_client):
    client, _ = api_client
    user = create_user(client)
    farm = client.post("/farms", json=farm_body(user["id"])).json()

    resp = client.delete(f"/farms/{farm['id']}")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Farm deleted successfully"}

    assert client.get(f"/farms/{farm['id']}").status_code == 404
    assert client.delete(f"/farms/{farm['id']}").status_code == 404
