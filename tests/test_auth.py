from praxis.auth import RateLimiter, authenticate_lawyer, update_lawyer_permissions
from praxis.config import settings

import pytest


def register(client, email="juan@bufete.co", password="ClaveSegura1"):
    return client.post("/api/v1/auth/register", json={
        "email": email, "full_name": "Juan Rincón", "password": password
    })


def login(client, email="juan@bufete.co", password="ClaveSegura1"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def test_register_starts_without_permissions(client):
    response = register(client)

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "juan@bufete.co"
    assert data["is_admin"] is False
    assert not any(data[flag] for flag in ("can_create_agents", "can_create_blogs", "can_use_ai_tools"))
    assert data["subscription_status"] == "free"
    assert "hashed_password" not in data


def test_register_duplicate_email(client):
    register(client)
    assert register(client).status_code == 400


def test_login_and_me(client):
    register(client)

    assert login(client, password="equivocada").status_code == 401

    token = login(client).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/api/v1/auth/me", headers=headers).json()["full_name"] == "Juan Rincón"
    assert client.post("/api/v1/auth/validate-token", headers=headers).json()["valid"] is True
    assert client.post("/api/v1/auth/refresh-token", headers=headers).json()["token_type"] == "bearer"


def test_invalid_token_is_rejected(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_update_profile_and_change_password(client, lawyer, auth_headers):
    headers = auth_headers(lawyer)

    response = client.patch("/api/v1/auth/me", json={"city": "Bogotá", "bio": "Derecho inmobiliario"}, headers=headers)
    assert response.status_code == 200

    response = client.post("/api/v1/auth/change-password", json={
        "current_password": "incorrecta", "new_password": "NuevaClave123"
    }, headers=headers)
    assert response.status_code == 400

    response = client.post("/api/v1/auth/change-password", json={
        "current_password": "s3guraClave", "new_password": "NuevaClave123"
    }, headers=headers)
    assert response.status_code == 200
    assert login(client, "laura@bufete.co", "NuevaClave123").status_code == 200

    public = client.get(f"/api/v1/lawyers/{lawyer.id}/public").json()
    assert public == {
        "id": lawyer.id, "full_name": "Laura Gómez", "bio": "Derecho inmobiliario",
        "specialties": None, "city": "Bogotá"
    }


def test_default_admin_is_seeded(client):
    assert login(client, settings.default_admin_email, settings.default_admin_password).status_code == 200


def test_admin_manages_lawyers(client, admin, lawyer, auth_headers):
    headers = auth_headers(admin)

    assert client.get("/api/v1/lawyers", headers=auth_headers(lawyer)).status_code == 403
    emails = [item["email"] for item in client.get("/api/v1/lawyers", headers=headers).json()]
    assert "laura@bufete.co" in emails

    response = client.post("/api/v1/lawyers", json={
        "email": "socio@bufete.co", "full_name": "Socio Nuevo", "password": "ClaveSocio1", "can_use_ai_tools": True
    }, headers=headers)
    assert response.json()["can_use_ai_tools"] is True

    response = client.put(f"/api/v1/lawyers/{lawyer.id}/permissions", json={
        "can_create_agents": False, "can_create_blogs": True, "can_use_ai_tools": False
    }, headers=headers)
    assert response.json()["can_create_blogs"] is True
    assert response.json()["can_create_agents"] is False

    assert client.put("/api/v1/lawyers/9999/permissions", json={
        "can_create_agents": False, "can_create_blogs": False, "can_use_ai_tools": False
    }, headers=headers).status_code == 404

    assert client.post(f"/api/v1/lawyers/{admin.id}/deactivate", headers=headers).status_code == 400
    assert client.post(f"/api/v1/lawyers/{lawyer.id}/deactivate", headers=headers).status_code == 200
    assert login(client, "laura@bufete.co", "s3guraClave").status_code == 401
    assert client.get(f"/api/v1/lawyers/{lawyer.id}/public").status_code == 404
    assert client.get("/api/v1/auth/me", headers=auth_headers(lawyer)).status_code == 401

    assert client.post(f"/api/v1/lawyers/{lawyer.id}/activate", headers=headers).status_code == 200
    assert login(client, "laura@bufete.co", "s3guraClave").status_code == 200


def test_update_permissions_requires_booleans(db, lawyer):
    with pytest.raises(ValueError):
        update_lawyer_permissions(db, lawyer.id, {"can_create_agents": True})


def test_authenticate_lawyer_is_case_insensitive(db, lawyer):
    assert authenticate_lawyer(db, "LAURA@bufete.co", "s3guraClave").id == lawyer.id
    assert authenticate_lawyer(db, "laura@bufete.co", "otra") is None


def test_rate_limiter_window():
    limiter = RateLimiter(max_attempts=2, window_seconds=60)

    assert limiter.is_allowed("ip")
    assert limiter.is_allowed("ip")
    assert not limiter.is_allowed("ip")
    limiter.reset("ip")
    assert limiter.is_allowed("ip")


def test_login_is_rate_limited(client):
    register(client)
    for _ in range(5):
        assert login(client, password="mala").status_code == 401
    assert login(client).status_code == 429
