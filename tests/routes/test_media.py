# tests/routes/test_media.py
"""Tests for the media endpoints."""

from base64 import b64encode
from pathlib import Path

import pytest
from httpx import AsyncClient

from doubles import MemoryStreamBroker
from klog.managers.file_queue import DeleteTask


async def _upload(
    client: AsyncClient,
    headers: dict[str, str],
    content: bytes,
    name: str = "pic.png",
    mime: str = "image/png",
) -> dict:
    response = await client.post("/media", files={"file": (name, content, mime)}, headers=headers)
    assert response.status_code in {200, 201}, response.text
    return response.json()


@pytest.mark.asyncio
async def test_multipart_upload_and_serve(
    client: AsyncClient,
    admin_headers: dict[str, str],
    png_bytes: bytes,
    media_root: Path,
) -> None:
    media = await _upload(client, admin_headers, png_bytes)

    assert (media_root / media["file_path"]).read_bytes() == png_bytes
    served = await client.get(media["url"])
    assert served.status_code == 200
    assert served.content == png_bytes


@pytest.mark.asyncio
async def test_base64_upload(
    client: AsyncClient,
    admin_headers: dict[str, str],
    png_bytes: bytes,
) -> None:
    response = await client.post(
        "/media",
        json={"file_name": "b.png", "data": b64encode(png_bytes).decode(), "mime_type": "image/png"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["size"] == len(png_bytes)


@pytest.mark.asyncio
async def test_reupload_returns_existing_with_200(
    client: AsyncClient,
    admin_headers: dict[str, str],
    png_bytes: bytes,
) -> None:
    first = await client.post(
        "/media",
        files={"file": ("a.png", png_bytes, "image/png")},
        headers=admin_headers,
    )
    second = await client.post(
        "/media",
        files={"file": ("b.png", png_bytes, "image/png")},
        headers=admin_headers,
    )

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("kwargs", "status"),
    [
        ({"files": {"file": ("a.pdf", b"%PDF", "application/pdf")}}, 415),
        ({"files": {"file": ("a.png", b"garbage", "image/png")}}, 400),
        ({"files": {"other": ("a.png", b"x", "image/png")}}, 400),
        ({"json": {"file_name": "a.png", "data": "***", "mime_type": "image/png"}}, 400),
        ({"content": b"raw", "headers": {"Content-Type": "text/plain"}}, 400),
    ],
)
async def test_bad_uploads(
    client: AsyncClient,
    admin_headers: dict[str, str],
    kwargs: dict,
    status: int,
) -> None:
    request = dict(kwargs)
    headers = {**admin_headers, **request.pop("headers", {})}
    response = await client.post("/media", headers=headers, **request)
    assert response.status_code == status


@pytest.mark.asyncio
async def test_upload_requires_admin(client: AsyncClient, png_bytes: bytes) -> None:
    response = await client.post("/media", files={"file": ("a.png", png_bytes, "image/png")})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_media(client: AsyncClient, admin_headers: dict[str, str], png_bytes: bytes) -> None:
    await _upload(client, admin_headers, png_bytes)

    response = await client.get("/media", params={"limit": 5})

    body = response.json()
    assert response.status_code == 200
    assert body["total"] == 1
    assert body["limit"] == 5
    assert len(body["data"]) == 1


@pytest.mark.asyncio
async def test_delete_queues_file_removal(
    client: AsyncClient,
    admin_headers: dict[str, str],
    png_bytes: bytes,
    broker: MemoryStreamBroker,
    media_root: Path,
) -> None:
    media = await _upload(client, admin_headers, png_bytes)

    response = await client.delete(f"/media/{media['id']}", headers=admin_headers)

    assert response.status_code == 204
    task = DeleteTask.from_fields(broker.entries[-1][1])
    assert Path(task.file_path) == media_root / media["file_path"]
    listing = await client.get("/media")
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_delete_missing_is_404(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    response = await client.delete("/media/999", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(("name", "status"), [("missing.png", 404), ("a%5Cb.png", 400)])
async def test_serve_errors(client: AsyncClient, name: str, status: int) -> None:
    response = await client.get(f"/media/files/{name}")
    assert response.status_code == status


@pytest.mark.asyncio
async def test_serve_rejects_directory(client: AsyncClient, media_root: Path) -> None:
    (media_root / "sub").mkdir()
    response = await client.get("/media/files/sub")
    assert response.status_code == 403
