import io
import os
import shutil
import tempfile

# Must be set before app/utils.cache are imported
IMPORT_UPLOAD_FOLDER = tempfile.mkdtemp(prefix="conexiones-uploads-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["UPLOAD_FOLDER"] = IMPORT_UPLOAD_FOLDER

import pytest
from PIL import Image


@pytest.fixture(scope="session", autouse=True)
def remove_import_upload_folder():
    yield
    shutil.rmtree(IMPORT_UPLOAD_FOLDER, ignore_errors=True)


@pytest.fixture()
def app(tmp_path):
    from app import create_app
    from models import db

    application = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "PUBLIC_BASE_URL": "http://localhost:3000",
    })

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def upload_root(app):
    from pathlib import Path
    return Path(app.config["UPLOAD_FOLDER"]).resolve()


def make_image_bytes(size=(64, 48), fmt="PNG", color=(200, 30, 30), mode="RGB"):
    buffer = io.BytesIO()
    Image.new(mode, size, color=color).save(buffer, format=fmt)
    buffer.seek(0)
    return buffer


@pytest.fixture()
def image_bytes():
    return make_image_bytes


@pytest.fixture()
def create_user(client):
    counter = {"n": 0}

    def _create(name=None, phone=None, password="secret123", **extra):
        counter["n"] += 1
        payload = {
            "phone": phone or f"300000{counter['n']:04d}",
            "password": password,
            "name": name or f"User {counter['n']}",
            "gender": "F",
            "birthdate": "1995-05-17",
        }
        payload.update(extra)
        response = client.post("/auth/register", json=payload)
        assert response.status_code == 201, response.get_json()
        return response.get_json()["data"]

    return _create
