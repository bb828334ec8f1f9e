import pytest
from fastapi.testclient import TestClient

from nearby.core.database import get_db
from nearby.core.geo import offset_point
from nearby.main import app
from tests.helpers import HANOI, bearer


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def _register(client, email="a@x.com", password="Password123!"):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password, "name": "Alice"})


def _login(client, email="a@x.com", password="Password123!"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def test_register_then_login(client):
    registered = _register(client)
    assert registered.status_code == 201
    body = registered.json()
    assert body["access_token"] and body["refresh_token"]
    assert "password_hash" not in body["user"]

    logged_in = _login(client)
    assert logged_in.status_code == 200
    assert logged_in.json()["refresh_token"] != body["refresh_token"]


def test_weak_password_is_rejected(client):
    response = _register(client, password="alllowercase")
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_me_requires_bearer_token(client):
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "Not authenticated"

    token = _register(client).json()["access_token"]
    me = client.get("/api/v1/auth/me", headers=bearer(token))
    assert me.status_code == 200
    assert me.json()["email"] == "a@x.com"


def test_wrong_password_is_401(client):
    _register(client)
    response = _login(client, password="Wrong123!")
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid credentials"


def test_refresh_rotation_rejects_reuse(client):
    old_refresh = _register(client).json()["refresh_token"]

    rotated = client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
    assert rotated.status_code == 200
    assert rotated.json()["refresh_token"] != old_refresh

    reused = client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
    assert reused.status_code == 401


def test_logout_revokes_all_sessions(client):
    body = _register(client).json()
    response = client.post("/api/v1/auth/logout", headers=bearer(body["access_token"]))
    assert response.status_code == 200
    assert response.json()["revoked_sessions"] == 1

    refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": body["refresh_token"]})
    assert refreshed.status_code == 401


def test_password_reset_flow(client, session_factory):
    _register(client)
    forgot = client.post("/api/v1/users/forgot-password", json={"email": "a@x.com"})
    unknown = client.post("/api/v1/users/forgot-password", json={"email": "ghost@x.com"})
    assert forgot.json() == unknown.json()

    from nearby.models.security import PasswordResetToken
    db = session_factory()
    try:
        token = db.query(PasswordResetToken).one().token
    finally:
        db.close()

    payload = {"token": token, "new_password": "Brandnew123!"}
    assert client.post("/api/v1/users/reset-password", json=payload).status_code == 200
    second = client.post("/api/v1/users/reset-password", json=payload)
    assert second.status_code == 400
    assert second.json()["error"] == "Invalid or expired reset token"
    assert _login(client, password="Brandnew123!").status_code == 200


def test_service_writes_are_admin_only(client, make_user, service_type):
    make_user(email="boss@x.com", role="admin")
    user_token = _register(client).json()["access_token"]
    admin_token = _login(client, email="boss@x.com").json()["access_token"]
    payload = {"service_type_id": service_type.id, "name": "Pho Thin", "latitude": HANOI[0], "longitude": HANOI[1]}

    forbidden = client.post("/api/v1/services/", json=payload, headers=bearer(user_token))
    assert forbidden.status_code == 403

    created = client.post("/api/v1/services/", json=payload, headers=bearer(admin_token))
    assert created.status_code == 201
    assert created.json()["location"] == f"POINT({HANOI[1]} {HANOI[0]})"


def test_null_on_required_fields_leaves_them_unchanged(client, make_user, make_service):
    make_user(email="boss@x.com", role="admin")
    service = make_service()
    user_token = _register(client).json()["access_token"]
    admin_token = _login(client, email="boss@x.com").json()["access_token"]

    profile = client.put("/api/v1/users/profile", json={"name": None, "phone": "+84123"}, headers=bearer(user_token))
    assert profile.status_code == 200
    assert profile.json()["name"] == "Alice"
    assert profile.json()["phone"] == "+84123"

    updated = client.put(
        f"/api/v1/services/{service.id}",
        json={"is_verified": None, "is_featured": None, "review_count": None, "city": "Hanoi"},
        headers=bearer(admin_token),
    )
    assert updated.status_code == 200
    assert updated.json()["is_verified"] is False
    assert updated.json()["city"] == "Hanoi"


def test_search_radius_scenario(client, make_service):
    inside_lat, inside_lon = offset_point(*HANOI, 600, 90)
    outside_lat, outside_lon = offset_point(*HANOI, 1500, 0)
    make_service(name="Inside", latitude=inside_lat, longitude=inside_lon)
    make_service(name="Outside", latitude=outside_lat, longitude=outside_lon)

    response = client.get(
        "/api/v1/services/search",
        params={"latitude": HANOI[0], "longitude": HANOI[1], "radius": 1000},
    )

    assert response.status_code == 200
    body = response.json()
    assert [item["name"] for item in body["items"]] == ["Inside"]
    assert body["total_pages"] == 1


def test_search_validates_coordinates(client):
    response = client.get("/api/v1/services/search", params={"latitude": 91, "longitude": 0})
    assert response.status_code == 422


def test_favorite_and_location_routes(client, make_service):
    service = make_service()
    token = _register(client).json()["access_token"]

    first = client.post("/api/v1/favorites/", json={"service_id": service.id}, headers=bearer(token))
    again = client.post("/api/v1/favorites/", json={"service_id": service.id}, headers=bearer(token))
    check = client.get(f"/api/v1/favorites/check/{service.id}", headers=bearer(token))
    assert first.status_code == 201
    assert again.status_code == 409
    assert check.json()["is_favorite"] is True

    tracked = client.post(
        "/api/v1/locations/track",
        json={"name": "Home", "address": "1 Trang Tien", "latitude": HANOI[0], "longitude": HANOI[1], "is_default": True},
        headers=bearer(token),
    )
    assert tracked.status_code == 201
    current = client.get("/api/v1/locations/current", headers=bearer(token))
    assert current.json()["id"] == tracked.json()["id"]


def test_health_and_metrics(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["readiness"]["cache"]["ok"] is True
    assert "X-Request-ID" in health.headers

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "nearby_http_requests_total" in metrics.text
