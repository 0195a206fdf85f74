"""
tests/test_upload.py -- Integration tests for POST /api/v1/upload and the /uploads mount.

Coverage:
  - auth required
  - stored as <epoch-ms>-<basename>, served back at /uploads/
  - path components and unsafe characters stripped from the client filename
  - 1 MB cap -> 413, empty file -> 400
  - same-millisecond uploads of one filename never overwrite each other
"""

from __future__ import annotations

import re

from fastapi.testclient import TestClient

from api.routes.v1.uploads import safe_filename, store_upload


def test_upload_requires_auth(client: TestClient) -> None:
    resp = client.post("/api/v1/upload", files={"file": ("a.txt", b"hello", "text/plain")})
    assert resp.status_code == 401


def test_upload_and_fetch(client: TestClient, new_account) -> None:
    user = new_account()
    resp = client.post(
        "/api/v1/upload", files={"file": ("screen shot.png", b"\x89PNG fake", "image/png")}, headers=user.headers
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert re.fullmatch(r"\d{13}-screen_shot\.png", data["filename"])
    assert data["path"] == f"/uploads/{data['filename']}"

    served = client.get(data["path"])
    assert served.status_code == 200
    assert served.content == b"\x89PNG fake"

    stored = client.app.state.settings.upload_dir / data["filename"]
    assert stored.read_bytes() == b"\x89PNG fake"


def test_uploaded_path_usable_as_attachment(client: TestClient, new_account) -> None:
    user = new_account()
    path = client.post(
        "/api/v1/upload", files={"file": ("log.txt", b"trace", "text/plain")}, headers=user.headers
    ).json()["path"]
    resp = client.post(
        "/api/v1/tickets", json={"title": "Crash", "description": "see log", "attachment": path}, headers=user.headers
    )
    assert resp.status_code == 201
    assert resp.json()["attachment"] == path


def test_traversal_filename_flattened(client: TestClient, new_account) -> None:
    user = new_account()
    resp = client.post(
        "/api/v1/upload", files={"file": ("../../etc/passwd", b"x", "text/plain")}, headers=user.headers
    )
    assert resp.status_code == 201
    name = resp.json()["filename"]
    assert "/" not in name and ".." not in name
    assert name.endswith("-passwd")


def test_oversized_upload_rejected(client: TestClient, new_account) -> None:
    user = new_account()
    too_big = b"0" * (client.app.state.settings.max_upload_bytes + 1)
    resp = client.post("/api/v1/upload", files={"file": ("big.bin", too_big, "application/octet-stream")}, headers=user.headers)
    assert resp.status_code == 413
    assert resp.json()["error"]["code"] == "file_too_large"


def test_upload_at_limit_accepted(client: TestClient, new_account) -> None:
    user = new_account()
    exact = b"0" * client.app.state.settings.max_upload_bytes
    resp = client.post("/api/v1/upload", files={"file": ("max.bin", exact, "application/octet-stream")}, headers=user.headers)
    assert resp.status_code == 201


def test_empty_upload_rejected(client: TestClient, new_account) -> None:
    resp = client.post(
        "/api/v1/upload", files={"file": ("empty.txt", b"", "text/plain")}, headers=new_account().headers
    )
    assert resp.status_code == 400


def test_safe_filename() -> None:
    assert safe_filename("report.pdf") == "report.pdf"
    assert safe_filename("..\\..\\windows\\evil.exe") == "evil.exe"
    assert safe_filename(".hidden") == "hidden"
    assert safe_filename(None) == "upload"
    assert safe_filename("") == "upload"


def test_same_millisecond_uploads_keep_both_files(tmp_path) -> None:
    first = store_upload(tmp_path, "report.pdf", b"first", now_ms=1700000000000)
    second = store_upload(tmp_path, "report.pdf", b"second", now_ms=1700000000000)
    assert first == "1700000000000-report.pdf"
    assert second == "1700000000001-report.pdf"
    assert (tmp_path / first).read_bytes() == b"first"
    assert (tmp_path / second).read_bytes() == b"second"


def test_store_upload_never_overwrites_existing_file(tmp_path) -> None:
    (tmp_path / "1700000000000-a.txt").write_bytes(b"keep me")
    (tmp_path / "1700000000001-a.txt").write_bytes(b"and me")
    name = store_upload(tmp_path, "a.txt", b"new", now_ms=1700000000000)
    assert name == "1700000000002-a.txt"
    assert (tmp_path / "1700000000000-a.txt").read_bytes() == b"keep me"
    assert (tmp_path / "1700000000001-a.txt").read_bytes() == b"and me"


def test_store_upload_creates_missing_dir(tmp_path) -> None:
    target = tmp_path / "nested" / "uploads"
    name = store_upload(target, "../x.bin", b"data", now_ms=1)
    assert name == "1-x.bin"
    assert (target / name).read_bytes() == b"data"


def test_back_to_back_route_uploads_get_distinct_names(client: TestClient, new_account) -> None:
    user = new_account()
    names = [
        client.post(
            "/api/v1/upload", files={"file": ("dup.txt", body, "text/plain")}, headers=user.headers
        ).json()["filename"]
        for body in (b"one", b"two", b"three")
    ]
    assert len(set(names)) == 3
    upload_dir = client.app.state.settings.upload_dir
    assert [(upload_dir / n).read_bytes() for n in names] == [b"one", b"two", b"three"]
