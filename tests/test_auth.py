from models import db, User
from utils.security import legacy_hash, is_legacy_hash


def test_register_and_login_with_formatted_phone(client) -> None:
    register_payload = {
        "phone": "3009998888",
        "password": "SecretPass123",
        "name": "Laura",
        "birthdate": "1996-02-29",
        "gender": "F",
    }
    register_response = client.post("/auth/register", json=register_payload)
    assert register_response.status_code == 201
    created = register_response.get_json()["data"]
    assert created["phone"] == "3009998888"
    assert created["type"] == "USER"
    assert created["photos"] == []
    assert "password_hash" not in created
    assert created["age"] >= 18

    login_response = client.post(
        "/auth/login", json={"phone": "+57 300 999 8888", "password": "SecretPass123"}
    )
    assert login_response.status_code == 200
    logged_in = login_response.get_json()["data"]
    assert logged_in["id"] == created["id"]
    assert "password_hash" not in logged_in


def test_register_duplicate_phone_in_other_format_conflicts(client, create_user) -> None:
    create_user(phone="3101234567")
    response = client.post("/auth/register", json={
        "phone": "+57 310-123-4567",
        "password": "x",
        "name": "Copy",
        "gender": "M",
        "birthdate": "1990-01-01",
    })
    assert response.status_code == 409
    assert response.get_json()["success"] is False


def test_register_requires_fields(client) -> None:
    response = client.post("/auth/register", json={"phone": "3001112222", "password": "x"})
    assert response.status_code == 400
    missing = response.get_json()["error"]["details"]["missing"]
    assert "name" in missing
    assert "birthdate" in missing


def test_register_accepts_age_instead_of_birthdate(client) -> None:
    response = client.post("/auth/register", json={
        "phone": "3001112222",
        "password": "x",
        "name": "Ana",
        "gender": "F",
        "age": 31,
        "type": "admin",
    })
    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["age"] == 31
    assert data["birthdate"] is None
    assert data["type"] == "ADMIN"


def test_register_rejects_bad_birthdate_and_type(client) -> None:
    base = {"phone": "3001112222", "password": "x", "name": "Ana", "gender": "F"}
    assert client.post("/auth/register", json={**base, "birthdate": "17/05/1995"}).status_code == 400
    assert client.post(
        "/auth/register", json={**base, "birthdate": "1995-05-17", "type": "ROOT"}
    ).status_code == 400


def test_login_errors(client, create_user) -> None:
    create_user(phone="3005556666", password="right")

    assert client.post("/auth/login", json={"phone": "3005556666"}).status_code == 400
    assert client.post(
        "/auth/login", json={"phone": "3000000000", "password": "right"}
    ).status_code == 404
    assert client.post(
        "/auth/login", json={"phone": "3005556666", "password": "wrong"}
    ).status_code == 401


def test_login_upgrades_legacy_hash(client) -> None:
    user = User(name="Old", phone="3207778888", password_hash=legacy_hash("vieja"), photos=[])
    db.session.add(user)
    db.session.commit()

    response = client.post("/auth/login", json={"phone": "320 777 8888", "password": "vieja"})
    assert response.status_code == 200

    refreshed = db.session.get(User, user.id)
    assert not is_legacy_hash(refreshed.password_hash)

    again = client.post("/auth/login", json={"phone": "3207778888", "password": "vieja"})
    assert again.status_code == 200


def test_auth_rejects_non_object_bodies(client) -> None:
    for path in ("/auth/register", "/auth/login"):
        for body in (["x"], "phone", 42):
            response = client.post(path, json=body)
            assert response.status_code == 400, (path, body)
            assert response.get_json()["error"]["message"] == "Request body must be a JSON object"


def test_register_rejects_non_text_fields(client) -> None:
    base = {"phone": "3001112222", "password": "x", "name": "Ana", "gender": "F", "birthdate": "1995-05-17"}

    for field, value in (("password", 1234), ("name", ["Ana"]), ("gender", {"g": "F"}), ("type", 7)):
        response = client.post("/auth/register", json={**base, field: value})
        assert response.status_code == 400, field

    assert User.query.count() == 0


def test_login_rejects_non_text_password(client, create_user) -> None:
    create_user(phone="3005556666", password="1234")

    response = client.post("/auth/login", json={"phone": "3005556666", "password": 1234})
    assert response.status_code == 400
    assert response.get_json()["error"]["message"] == "password must be a string"
