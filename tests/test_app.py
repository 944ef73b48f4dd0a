def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_temporary_uploads_are_not_served(client, upload_root) -> None:
    (upload_root / "tmp").mkdir(exist_ok=True)
    (upload_root / "tmp" / "pending.upload").write_bytes(b"raw")

    assert client.get("/uploads/tmp/pending.upload").status_code == 404


def test_unknown_user_photo_is_404(client) -> None:
    assert client.get("/uploads/1/missing.webp").status_code == 404
