"""End-to-end tests for the task file endpoints."""

from __future__ import annotations

from urllib.parse import quote
from uuid import uuid4

import pytest

pytest.importorskip("fastapi")

from taskboard.infrastructure.database import SessionLocal  # noqa: E402
from taskboard.infrastructure.repositories import TaskRepository  # noqa: E402

PDF_BYTES = b"%PDF-1.4\n" + bytes(range(256)) * 4


def _post_file(client, headers, task_id, name="note.pdf", data=b"0123456789", content_type="application/pdf"):
    return client.post(
        "/api/task/upload",
        data={"taskId": task_id},
        files={"file": (name, data, content_type)},
        headers=headers,
    )


def _task_assets(task_id: str):
    with SessionLocal() as session:
        return TaskRepository(session).get(task_id).assets


def test_uploaded_pdf_is_listed_on_its_task(client, admin_user, make_task, auth_headers) -> None:
    task = make_task()
    headers = auth_headers(admin_user)

    response = _post_file(client, headers, task.id)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["file"]["originalname"] == "note.pdf"
    assert body["file"]["size"] == 10
    assert body["file"]["contentType"] == "application/pdf"
    assert body["file"]["uploadedBy"] == admin_user.id
    assert "uploadDate" in body["file"]

    listing = client.get(f"/api/task/task-files/{task.id}", headers=headers)

    assert listing.status_code == 200
    files = listing.json()["files"]
    assert [item["originalname"] for item in files] == ["note.pdf"]
    assert files[0]["id"] == body["file"]["id"]


def test_download_round_trip(client, admin_user, member_user, make_task, auth_headers) -> None:
    task = make_task()
    uploaded = _post_file(
        client, auth_headers(admin_user), task.id, name="Quarterly report.pdf", data=PDF_BYTES
    ).json()["file"]

    response = client.get(f"/api/task/files/{uploaded['id']}", headers=auth_headers(member_user))

    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-length"] == str(len(PDF_BYTES))
    assert response.headers["accept-ranges"] == "bytes"
    assert response.headers["cache-control"] == "max-age=31536000"
    assert response.headers["content-disposition"] == (
        f'inline; filename="{quote("Quarterly report.pdf")}"'
    )
    assert "content-range" not in response.headers


@pytest.mark.parametrize(
    ("range_header", "start", "stop"),
    [
        ("bytes=0-99", 0, 100),
        ("bytes=100-", 100, len(PDF_BYTES)),
        ("bytes=-50", len(PDF_BYTES) - 50, len(PDF_BYTES)),
        ("bytes=1000-99999", 1000, len(PDF_BYTES)),
    ],
)
def test_ranged_download(
    client, admin_user, make_task, auth_headers, range_header: str, start: int, stop: int
) -> None:
    task = make_task()
    headers = auth_headers(admin_user)
    file_id = _post_file(client, headers, task.id, data=PDF_BYTES).json()["file"]["id"]

    response = client.get(
        f"/api/task/files/{file_id}", headers={**headers, "Range": range_header}
    )

    assert response.status_code == 206
    assert response.content == PDF_BYTES[start:stop]
    assert response.headers["content-length"] == str(stop - start)
    assert response.headers["content-range"] == f"bytes {start}-{stop - 1}/{len(PDF_BYTES)}"


def test_malformed_range_serves_the_whole_file(client, admin_user, make_task, auth_headers) -> None:
    task = make_task()
    headers = auth_headers(admin_user)
    file_id = _post_file(client, headers, task.id, data=PDF_BYTES).json()["file"]["id"]

    response = client.get(
        f"/api/task/files/{file_id}", headers={**headers, "Range": "bytes=0-10,20-30"}
    )

    assert response.status_code == 200
    assert response.content == PDF_BYTES


def test_unsatisfiable_range(client, admin_user, make_task, auth_headers) -> None:
    task = make_task()
    headers = auth_headers(admin_user)
    file_id = _post_file(client, headers, task.id, data=PDF_BYTES).json()["file"]["id"]

    response = client.get(
        f"/api/task/files/{file_id}",
        headers={**headers, "Range": f"bytes={len(PDF_BYTES)}-"},
    )

    assert response.status_code == 416
    assert response.headers["content-range"] == f"bytes */{len(PDF_BYTES)}"
    assert response.json()["success"] is False


def test_empty_pdf_round_trip(client, admin_user, make_task, auth_headers) -> None:
    task = make_task()
    headers = auth_headers(admin_user)

    uploaded = _post_file(client, headers, task.id, name="blank.pdf", data=b"")

    assert uploaded.status_code == 200
    assert uploaded.json()["file"]["size"] == 0
    file_id = uploaded.json()["file"]["id"]

    for extra in ({}, {"Range": "bytes=0-10"}):
        response = client.get(f"/api/task/files/{file_id}", headers={**headers, **extra})

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["content-length"] == "0"
        assert "content-range" not in response.headers


@pytest.mark.parametrize(
    ("name", "data", "content_type"),
    [
        ("notes.txt", b"plain text", "text/plain"),
        ("notes.txt", b"plain text", "application/pdf"),
    ],
)
def test_invalid_uploads_are_rejected(
    client, admin_user, make_task, auth_headers, name, data, content_type
) -> None:
    task = make_task()

    response = _post_file(
        client, auth_headers(admin_user), task.id, name=name, data=data, content_type=content_type
    )

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert _task_assets(task.id) == []


def test_oversized_upload_is_rejected(client, admin_user, make_task, auth_headers) -> None:
    task = make_task()

    response = _post_file(
        client, auth_headers(admin_user), task.id, data=b"\0" * (20 * 1024 * 1024 + 1)
    )

    assert response.status_code == 400
    assert response.json()["message"].startswith("File too large")
    assert _task_assets(task.id) == []


def test_upload_requires_a_file_and_a_known_task(client, admin_user, make_task, auth_headers) -> None:
    headers = auth_headers(admin_user)

    missing_file = client.post("/api/task/upload", data={"taskId": make_task().id}, headers=headers)
    assert missing_file.status_code == 400
    assert missing_file.json() == {"success": False, "message": "No file uploaded"}

    bad_id = _post_file(client, headers, "T1")
    assert bad_id.status_code == 400

    unknown_task = _post_file(client, headers, uuid4().hex)
    assert unknown_task.status_code == 404
    assert unknown_task.json()["message"] == "Task not found"


def test_authentication_and_roles(client, admin_user, member_user, make_task, auth_headers) -> None:
    task = make_task()
    file_id = _post_file(client, auth_headers(admin_user), task.id).json()["file"]["id"]

    assert client.get(f"/api/task/task-files/{task.id}").status_code == 401
    assert client.get(f"/api/task/files/{file_id}").status_code == 401
    invalid = client.get(
        f"/api/task/files/{file_id}", headers={"Authorization": "Bearer not-a-token"}
    )
    assert invalid.status_code == 401
    assert invalid.json()["success"] is False

    member = auth_headers(member_user)
    assert _post_file(client, member, task.id).status_code == 403
    assert client.delete(f"/api/task/{task.id}/files/{file_id}", headers=member).status_code == 403
    assert client.get(f"/api/task/files/{file_id}", headers=member).status_code == 200


def test_deleted_file_can_no_longer_be_downloaded(
    client, admin_user, make_task, auth_headers
) -> None:
    task = make_task()
    headers = auth_headers(admin_user)
    file_id = _post_file(client, headers, task.id).json()["file"]["id"]

    response = client.delete(f"/api/task/{task.id}/files/{file_id}", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "File deleted successfully"}
    assert _task_assets(task.id) == []
    assert client.get(f"/api/task/files/{file_id}", headers=headers).status_code == 404
    assert client.get(f"/api/task/task-files/{task.id}", headers=headers).json()["files"] == []

    again = client.delete(f"/api/task/{task.id}/files/{file_id}", headers=headers)
    assert again.status_code == 404
    assert again.json()["message"] == "File not found in task assets"


def test_unknown_file_and_task_lookups(client, admin_user, auth_headers) -> None:
    headers = auth_headers(admin_user)

    assert client.get(f"/api/task/files/{uuid4().hex}", headers=headers).status_code == 404
    assert client.get("/api/task/files/not-an-id", headers=headers).status_code == 400
    assert client.get(f"/api/task/task-files/{uuid4().hex}", headers=headers).status_code == 404


def test_batch_upload_statuses(client, admin_user, make_task, auth_headers) -> None:
    task = make_task()
    headers = auth_headers(admin_user)

    def _batch(*files):
        return client.post(
            "/api/task/upload/batch",
            data={"taskId": task.id},
            files=[("file", item) for item in files],
            headers=headers,
        )

    stored = _batch(("a.pdf", b"first", "application/pdf"), ("b.png", b"second", "image/png"))
    assert stored.status_code == 200
    assert stored.json()["success"] is True
    assert all(item["success"] for item in stored.json()["results"])

    partial = _batch(("c.pdf", b"third", "application/pdf"), ("d.txt", b"fourth", "text/plain"))
    assert partial.status_code == 207
    results = {item["originalname"]: item for item in partial.json()["results"]}
    assert results["c.pdf"]["success"] is True
    assert results["c.pdf"]["file"]["contentType"] == "application/pdf"
    assert results["d.txt"]["success"] is False
    assert results["d.txt"]["file"] is None

    rejected = _batch(("e.txt", b"fifth", "text/plain"))
    assert rejected.status_code == 400
    assert rejected.json()["success"] is False

    assert sorted(asset.originalname for asset in _task_assets(task.id)) == [
        "a.pdf",
        "b.png",
        "c.pdf",
    ]
