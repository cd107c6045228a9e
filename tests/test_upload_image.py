import os

import pytest
from PIL import Image
from sqlalchemy import select

from conftest import make_image_bytes, upload_path
from wedding_invitation.database import AsyncSessionLocal
from wedding_invitation.models import GalleryItem, ImageAsset
from wedding_invitation.routes.upload import image_type_for_target


async def upload_image(admin_client, target_id=None, content=None, content_type="image/png", name="photo.png"):
    data = {"targetId": target_id} if target_id else {}
    return await admin_client.post(
        "/api/upload/image",
        files={"file": (name, content or make_image_bytes(), content_type)},
        data=data,
    )


async def assets():
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(ImageAsset).order_by(ImageAsset.id))
        return result.scalars().all()


@pytest.mark.parametrize("target_id,expected", [
    (None, "other"),
    ("main", "main"),
    ("cover_photo", "main"),
    ("gallery_3", "gallery"),
    ("groom_profile", "profile"),
    ("banner", "other"),
])
def test_image_type_for_target(target_id, expected):
    assert image_type_for_target(target_id) == expected


@pytest.mark.asyncio
async def test_upload_with_target_id(admin_client):
    response = await upload_image(admin_client, target_id="groom_profile")

    assert response.status_code == 200
    assert response.json()["data"] == {
        "fileUrl": "/uploads/images/groom_profile.jpg",
        "fileName": "groom_profile.jpg",
    }
    assert os.path.exists(upload_path("images/groom_profile.jpg"))

    (asset,) = await assets()
    assert asset.target_id == "groom_profile"
    assert asset.image_type == "profile"
    assert asset.original_name == "photo.png"


@pytest.mark.asyncio
async def test_upload_without_target_uses_timestamp(admin_client):
    response = await upload_image(admin_client)

    file_name = response.json()["data"]["fileName"]
    assert file_name[:-4].isdigit()
    assert file_name.endswith(".jpg")


@pytest.mark.asyncio
async def test_upload_replaces_previous_asset_for_target(admin_client):
    await upload_image(admin_client, target_id="bride_profile")
    await upload_image(admin_client, target_id="bride_profile", content=make_image_bytes(color=(0, 0, 255)))

    first, second = await assets()
    assert first.deleted_at is not None
    assert second.deleted_at is None

    with Image.open(upload_path("images/bride_profile.jpg")) as stored:
        red, green, blue = stored.convert("RGB").getpixel((10, 10))
    assert blue > red


@pytest.mark.asyncio
async def test_upload_bounds_both_dimensions(admin_client):
    await upload_image(admin_client, target_id="tall", content=make_image_bytes(size=(1000, 4000)))

    with Image.open(upload_path("images/tall.jpg")) as stored:
        assert stored.size == (480, 1920)


@pytest.mark.asyncio
async def test_main_target_registers_cover_image(admin_client, client):
    response = await upload_image(admin_client, target_id="main_cover")
    assert response.status_code == 200

    async with AsyncSessionLocal() as session:
        mains = (await session.execute(
            select(GalleryItem).where(GalleryItem.image_type == "main", GalleryItem.deleted_at.is_(None))
        )).scalars().all()
    assert [row.filename for row in mains] == ["images/main_cover.jpg"]

    cover = await client.get("/api/cover-image")
    assert cover.json()["data"]["url"] == "/uploads/images/main_cover.jpg"


@pytest.mark.asyncio
async def test_upload_rejects_unsupported_type(admin_client):
    response = await upload_image(admin_client, content=b"GIF89a", content_type="image/gif", name="anim.gif")

    assert response.status_code == 400
    assert "Unsupported file type" in response.json()["error"]


@pytest.mark.asyncio
async def test_upload_rejects_path_like_target(admin_client):
    response = await upload_image(admin_client, target_id="../escape")

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid targetId"


@pytest.mark.asyncio
async def test_upload_requires_file(admin_client):
    response = await admin_client.post("/api/upload/image", data={"targetId": "main"})

    assert response.status_code == 400
    assert response.json()["error"] == "No file provided"
