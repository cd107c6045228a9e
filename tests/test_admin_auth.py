import pytest
from sqlalchemy import select

from wedding_invitation.config import settings
from wedding_invitation.database import AsyncSessionLocal
from wedding_invitation.models import AdminAccount
from wedding_invitation.utils.auth import is_bcrypt_hash


@pytest.mark.asyncio
async def test_login_seeds_admin_with_default_password(client):
    response = await client.post("/api/admin/login", json={"password": settings.ADMIN_DEFAULT_PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["token"].startswith("admin_")
    assert response.cookies.get(settings.SESSION_COOKIE_NAME) == body["data"]["token"]

    async with AsyncSessionLocal() as session:
        admins = (await session.execute(select(AdminAccount))).scalars().all()
    assert len(admins) == 1
    assert admins[0].username == settings.ADMIN_USERNAME
    assert is_bcrypt_hash(admins[0].password)


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    response = await client.post("/api/admin/login", json={"password": "wrong"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid password"}


@pytest.mark.asyncio
async def test_login_requires_password(client):
    response = await client.post("/api/admin/login", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "Password is required"


@pytest.mark.asyncio
async def test_login_upgrades_plaintext_password(client, db_session):
    db_session.add(AdminAccount(username="admin", password="legacy-pass"))
    await db_session.commit()

    response = await client.post("/api/admin/login", json={"password": "legacy-pass"})
    assert response.status_code == 200

    async with AsyncSessionLocal() as session:
        admin = (await session.execute(select(AdminAccount))).scalar_one()
    assert is_bcrypt_hash(admin.password)

    # The upgraded hash still accepts the same password
    response = await client.post("/api/admin/login", json={"password": "legacy-pass"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_verify_reports_session_state(client, admin_client):
    anonymous = await client.get("/api/admin/verify")
    assert anonymous.status_code == 200
    assert anonymous.json()["data"] == {"authenticated": False}

    signed_in = await admin_client.get("/api/admin/verify")
    assert signed_in.json()["data"] == {"authenticated": True}


@pytest.mark.asyncio
async def test_logout_clears_cookie(admin_client):
    response = await admin_client.post("/api/admin/logout")

    assert response.status_code == 200
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
    assert "Max-Age=0" in set_cookie


@pytest.mark.asyncio
@pytest.mark.parametrize("method,path", [
    ("GET", "/api/admin/gallery"),
    ("PUT", "/api/admin/gallery"),
    ("POST", "/api/admin/upload"),
    ("DELETE", "/api/admin/gallery/1"),
    ("GET", "/api/admin/guestbook"),
    ("DELETE", "/api/admin/guestbook/1"),
    ("GET", "/api/admin/contacts"),
    ("GET", "/api/admin/system-status"),
    ("POST", "/api/admin/cleanup"),
    ("POST", "/api/upload/image"),
    ("PUT", "/api/invitation"),
])
async def test_admin_routes_require_session(client, method, path):
    response = await client.request(method, path)

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized"}


@pytest.mark.asyncio
async def test_forged_cookie_without_prefix_rejected(client):
    response = await client.get(
        "/api/admin/gallery",
        headers={"Cookie": f"{settings.SESSION_COOKIE_NAME}=user_1_123"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_system_status(admin_client):
    response = await admin_client.get("/api/admin/system-status")

    assert response.status_code == 200
    data = response.json()["data"]
    names = [d["name"] for d in data["directories"]]
    assert "uploads_base" in names
    assert data["process"]["pid"] > 0
