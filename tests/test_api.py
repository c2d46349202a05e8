"""Tests for the HTTP API."""

import base64
import re

from quickdrop.routes.transfer import content_disposition

from conftest import delete_row, stored_keys


def upload(client, file="data:text/plain;base64,SGVsbG8=", file_name="hi.txt", **kwargs):
    return client.post("/upload", json={"file": file, "fileName": file_name}, **kwargs)


def db_keys(client):
    return stored_keys(client.app.state.settings.database_path)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root_reports_limits(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["config"]["expiry_time"] == 120


def test_upload_and_download(client):
    response = upload(client)
    assert response.status_code == 200
    data = response.json()

    assert re.fullmatch(r"[0-9A-F]{6}", data["code"])
    assert data["code"] in data["downloadUrl"]
    assert data["expiresIn"] == 120
    assert data["size"] == "5 Bytes"

    response = client.get("/download", params={"code": data["code"]})
    assert response.status_code == 200
    assert response.content == b"Hello"
    assert response.headers["content-type"] == "application/octet-stream"
    assert response.headers["content-disposition"] == 'attachment; filename="hi.txt"'
    assert response.headers["content-length"] == "5"


def test_download_url_uses_origin(client):
    response = upload(client, headers={"Origin": "https://drop.example"})
    data = response.json()
    assert data["downloadUrl"] == f"https://drop.example/download?code={data['code']}"


def test_raw_base64_upload(client):
    content = bytes(range(20))
    data = upload(client, file=base64.b64encode(content).decode(), file_name="blob.bin").json()

    response = client.get(f"/download?code={data['code']}")
    assert response.content == content


def test_download_is_single_use(client):
    code = upload(client).json()["code"]

    assert client.get(f"/download?code={code}").status_code == 200

    response = client.get(f"/download?code={code}")
    assert response.status_code == 404
    assert response.json() == {"error": "File not found or link expired"}


def test_download_lowercase_code(client):
    code = upload(client).json()["code"]
    assert client.get(f"/download?code={code.lower()}").status_code == 200


def test_download_unknown_code(client):
    response = client.get("/download?code=ZZZZZZ")
    assert response.status_code == 404
    assert response.json() == {"error": "File not found or link expired"}


def test_download_without_code(client):
    response = client.get("/download")
    assert response.status_code == 400
    assert "error" in response.json()


def test_download_after_expiry(client, clock):
    code = upload(client).json()["code"]
    clock.advance(121)

    assert client.get(f"/download?code={code}").status_code == 404


def test_download_missing_chunk(client):
    code = upload(client).json()["code"]
    delete_row(client.app.state.settings.database_path, f"{code}:chunk:1")

    response = client.get(f"/download?code={code}")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to download file"}


def test_upload_missing_file_field(client):
    response = client.post("/upload", json={"fileName": "hi.txt"})

    assert response.status_code == 400
    assert "Invalid request" in response.json()["error"]
    assert db_keys(client) == set()


def test_upload_empty_file_name(client):
    response = upload(client, file_name="")
    assert response.status_code == 400
    assert "Invalid request" in response.json()["error"]


def test_upload_not_json(client):
    response = client.post("/upload", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert "Invalid request" in response.json()["error"]


def test_upload_malformed_base64(client):
    response = upload(client, file="data:text/plain;base64,@@@@")
    assert response.status_code == 400
    assert db_keys(client) == set()


def test_upload_at_size_limit(client):
    payload = base64.b64encode(b"x" * 30).decode()
    assert upload(client, file=payload).status_code == 200


def test_data_url_upload_at_size_limit(client):
    payload = "data:application/octet-stream;base64," + base64.b64encode(b"x" * 30).decode()
    response = upload(client, file=payload, file_name="max.bin")

    assert response.status_code == 200
    assert response.json()["size"] == "30 Bytes"

    response = client.get("/download", params={"code": response.json()["code"]})
    assert response.content == b"x" * 30


def test_upload_too_large(client):
    payload = base64.b64encode(b"x" * 33).decode()
    response = upload(client, file=payload)

    assert response.status_code == 400
    assert "File too large" in response.json()["error"]
    assert db_keys(client) == set()


def test_upload_grossly_too_large(client):
    payload = base64.b64encode(b"x" * 61).decode()
    response = upload(client, file=payload)

    assert response.status_code == 400
    assert response.json()["error"] == "File too large. Maximum size is 30 Bytes"


def test_monitor_stats(client):
    code = upload(client).json()["code"]
    stats = client.get("/monitor/stats").json()

    assert stats["total_items"] == 1
    item = stats["items"][0]
    assert item["code"] == code
    assert item["file_name"] == "hi.txt"
    assert item["chunks"] == 4
    assert item["expires_in"] == 120

    client.get(f"/download?code={code}")
    assert client.get("/monitor/stats").json()["total_items"] == 0


def test_content_disposition_escapes_quotes():
    assert content_disposition('a"b.txt') == "attachment; filename=\"a'b.txt\""


def test_content_disposition_non_ascii():
    value = content_disposition("résumé.pdf")
    assert value.startswith('attachment; filename="r?sum?.pdf"')
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in value
