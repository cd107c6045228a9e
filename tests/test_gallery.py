import os
from datetime import timedelta

import pytest
from PIL import Image
from sqlalchemy import select

from conftest import make_image_bytes, upload_path
from wedding_invitation.database import AsyncSessionLocal
from wedding_invitation.models import GalleryItem, utcnow
from wedding_invitation.services.gallery import apply_sorted_ids, move_item, purge_deleted_gallery


async def upload(admin_client, image_type="gallery", name="photo.png", content=None, content_type="image/png"):
    return await admin_client.post(
        "/api/admin/upload",
        files={"file": (name, content or make_image_bytes(), content_type)},
        data={"image_type": image_type},
    )


async def gallery_rows():
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(GalleryItem).order_by(GalleryItem.id))
        return result.scalars().all()


def test_move_item():
    assert move_item([1, 2, 3, 4], 4, 2) == [1, 4, 2, 3]
    assert move_item([1, 2, 3, 4], 1, 3) == [2, 3, 1, 4]


def test_apply_sorted_ids_keeps_unlisted_order():
    assert apply_sorted_ids([1, 2, 3, 4], [3, 1]) == [3, 1, 2, 4]


@pytest.mark.asyncio
async def test_upload_gallery_photo(admin_client):
    response = await upload(admin_client)

    assert response.status_code == 200
    filename = response.json()["data"]["filename"]
    folder, name = filename.split("/")
    assert len(folder) == 10  # YYYY-MM-DD
    assert name.startswith("gallery01_") and name.endswith(".jpg")

    with Image.open(upload_path(filename)) as stored:
        assert stored.format == "JPEG"


@pytest.mark.asyncio
async def test_upload_shrinks_wide_images(admin_client):
    response = await upload(admin_client, content=make_image_bytes(size=(3000, 1500)))

    with Image.open(upload_path(response.json()["data"]["filename"])) as stored:
        assert stored.size == (1920, 960)


@pytest.mark.asyncio
async def test_upload_order_index_appends(admin_client):
    for _ in range(3):
        await upload(admin_client)

    rows = await gallery_rows()
    assert [row.order_index for row in rows] == [1, 2, 3]


@pytest.mark.asyncio
async def test_upload_rejects_non_image(admin_client):
    response = await upload(admin_client, name="notes.txt", content=b"hello", content_type="text/plain")

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_upload_rejects_undecodable_image(admin_client):
    response = await upload(admin_client, name="broken.png", content=b"not really a png")

    assert response.status_code == 400
    assert response.json()["error"].startswith("Image processing failed")


@pytest.mark.asyncio
async def test_upload_rejects_unknown_image_type(admin_client):
    response = await upload(admin_client, image_type="banner")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_main_upload_replaces_previous_main(admin_client, client):
    first = await upload(admin_client, image_type="main")
    second = await upload(admin_client, image_type="main")

    rows = [row for row in await gallery_rows() if row.image_type == "main"]
    assert len(rows) == 2
    assert rows[0].deleted_at is not None
    assert rows[1].deleted_at is None

    cover = await client.get("/api/cover-image")
    assert cover.status_code == 200
    assert cover.json()["data"]["url"] == f"/uploads/{second.json()['data']['filename']}"

    # The replaced file stays on disk until the purge
    assert os.path.exists(upload_path(first.json()["data"]["filename"]))


@pytest.mark.asyncio
async def test_cover_image_missing(client):
    response = await client.get("/api/cover-image")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "No cover image found"}


@pytest.mark.asyncio
async def test_public_gallery_order_and_cache_headers(admin_client, client):
    await upload(admin_client)
    await upload(admin_client, image_type="main")
    await upload(admin_client)

    response = await client.get("/api/gallery")

    assert response.status_code == 200
    assert "s-maxage=300" in response.headers["cache-control"]
    items = response.json()["data"]
    assert [item["image_type"] for item in items] == ["main", "gallery", "gallery"]
    assert [item["order_index"] for item in items[1:]] == [1, 2]
    assert all(item["url"] == f"/uploads/{item['filename']}" for item in items)


@pytest.mark.asyncio
async def test_soft_delete_hides_from_public_but_not_admin(admin_client, client):
    uploaded = await upload(admin_client)
    item_id = (await gallery_rows())[0].id

    response = await admin_client.delete(f"/api/admin/gallery/{item_id}")
    assert response.status_code == 200

    public = await client.get("/api/gallery")
    assert public.json()["data"] == []

    admin = await admin_client.get("/api/admin/gallery")
    rows = admin.json()["data"]
    assert len(rows) == 1
    assert rows[0]["deleted_at"] is not None
    assert os.path.exists(upload_path(uploaded.json()["data"]["filename"]))

    again = await admin_client.delete(f"/api/admin/gallery/{item_id}")
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_delete_by_query_requires_id(admin_client):
    response = await admin_client.delete("/api/gallery")

    assert response.status_code == 400
    assert response.json()["error"] == "ID is required"


@pytest.mark.asyncio
async def test_register_existing_file(admin_client, client):
    response = await admin_client.post("/api/gallery", json={"filename": "2025-01-01/photo.jpg"})

    assert response.status_code == 200
    new_id = response.json()["data"]["id"]

    items = (await client.get("/api/gallery")).json()["data"]
    assert items[0]["id"] == new_id
    assert items[0]["order_index"] == 1

    deleted = await admin_client.delete(f"/api/gallery?id={new_id}")
    assert deleted.status_code == 200


@pytest.mark.asyncio
async def test_reorder_with_source_and_target(admin_client):
    for _ in range(3):
        await upload(admin_client)
    first, second, third = [row.id for row in await gallery_rows()]

    response = await admin_client.put("/api/admin/gallery", json={"sourceId": third, "targetId": first})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["id"] for item in data] == [third, first, second]
    assert [item["order_index"] for item in data] == [1, 2, 3]

    for item in data:
        name = item["filename"].split("/")[-1]
        assert name == f"gallery{item['order_index']:02d}_{item['id']}.jpg"
        assert os.path.exists(upload_path(item["filename"]))


@pytest.mark.asyncio
async def test_reorder_closes_gaps_after_delete(admin_client):
    for _ in range(3):
        await upload(admin_client)
    first, second, third = [row.id for row in await gallery_rows()]
    await admin_client.delete(f"/api/admin/gallery/{second}")

    response = await admin_client.put("/api/admin/gallery", json={"sortedIds": [third, first]})

    data = response.json()["data"]
    assert [item["id"] for item in data] == [third, first]
    assert [item["order_index"] for item in data] == [1, 2]


@pytest.mark.asyncio
async def test_reorder_unknown_ids(admin_client):
    await upload(admin_client)

    response = await admin_client.put("/api/admin/gallery", json={"sortedIds": [999]})

    assert response.status_code == 404
    assert "999" in response.json()["error"]


@pytest.mark.asyncio
async def test_reorder_requires_ids(admin_client):
    response = await admin_client.put("/api/admin/gallery", json={})

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_reorder_keeps_filename_when_file_missing(admin_client):
    for _ in range(2):
        await upload(admin_client)
    first, second = await gallery_rows()
    os.remove(upload_path(first.filename))

    response = await admin_client.put("/api/admin/gallery", json={"sourceId": second.id, "targetId": first.id})

    assert response.status_code == 200
    data = {item["id"]: item for item in response.json()["data"]}
    assert data[first.id]["filename"] == first.filename
    assert data[first.id]["order_index"] == 2


@pytest.mark.asyncio
async def test_register_rejects_filename_outside_uploads(admin_client):
    response = await admin_client.post("/api/gallery", json={"filename": "../outside.jpg"})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert await gallery_rows() == []


@pytest.mark.asyncio
async def test_reorder_skips_row_with_filename_outside_uploads(admin_client, db_session):
    stray = GalleryItem(filename="../outside.jpg", image_type="gallery", order_index=1)
    db_session.add(stray)
    await db_session.commit()
    await upload(admin_client)
    photo = [row for row in await gallery_rows() if row.id != stray.id][0]

    response = await admin_client.put("/api/admin/gallery", json={"sourceId": photo.id, "targetId": stray.id})

    assert response.status_code == 200
    data = {item["id"]: item for item in response.json()["data"]}
    assert data[stray.id]["filename"] == "../outside.jpg"
    assert data[stray.id]["order_index"] == 2
    assert data[photo.id]["order_index"] == 1
    assert os.path.exists(upload_path(data[photo.id]["filename"]))


@pytest.mark.asyncio
async def test_purge_removes_expired_rows_and_files(admin_client, db_session):
    for _ in range(2):
        await upload(admin_client)
    expired, recent = await gallery_rows()

    now = utcnow()
    async with AsyncSessionLocal() as session:
        rows = {row.id: row for row in (await session.execute(select(GalleryItem))).scalars()}
        rows[expired.id].deleted_at = now - timedelta(hours=25)
        rows[recent.id].deleted_at = now - timedelta(hours=1)
        await session.commit()

    cleaned, errors = await purge_deleted_gallery(db_session)

    assert (cleaned, errors) == (1, [])
    assert not os.path.exists(upload_path(expired.filename))
    assert os.path.exists(upload_path(recent.filename))
    assert [row.id for row in await gallery_rows()] == [recent.id]


@pytest.mark.asyncio
async def test_cleanup_endpoint(admin_client):
    await upload(admin_client)
    (item,) = await gallery_rows()

    async with AsyncSessionLocal() as session:
        row = await session.get(GalleryItem, item.id)
        row.deleted_at = utcnow() - timedelta(hours=48)
        await session.commit()

    response = await admin_client.post("/api/admin/cleanup")

    assert response.status_code == 200
    assert response.json()["data"] == {"cleaned": 1, "errors": []}
    assert await gallery_rows() == []
