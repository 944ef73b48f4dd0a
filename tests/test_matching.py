import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from models import db, Like, Match
from utils import matching
from utils.errors import NotFound, Unavailable, ValidationError
from utils.matching import canonical_pair, pair_lock_query, react


def post_react(client, sender, receiver, reaction_type="LIKE"):
    return client.post("/matches/react", json={
        "senderId": sender,
        "receiverId": receiver,
        "reactionType": reaction_type,
    })


def test_one_sided_like_does_not_match(client, create_user) -> None:
    a = create_user()
    b = create_user()

    response = post_react(client, a["id"], b["id"], "LIKE")
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["match"] is None
    assert data["is_match"] is False
    assert data["reaction"]["sender_id"] == a["id"]
    assert data["reaction"]["receiver_id"] == b["id"]
    assert data["reaction"]["reaction_type"] == "LIKE"
    assert Match.query.count() == 0


@pytest.mark.parametrize("first, second", [("LIKE", "LOVE"), ("LOVE", "LIKE")])
def test_mutual_reaction_creates_one_canonical_match(client, create_user, first, second) -> None:
    a = create_user()
    b = create_user()

    post_react(client, b["id"], a["id"], first)
    response = post_react(client, a["id"], b["id"], second)

    match = response.get_json()["data"]["match"]
    assert match is not None
    assert match["user1_id"] == min(a["id"], b["id"])
    assert match["user2_id"] == max(a["id"], b["id"])
    assert match["view_admin"] is False
    assert Match.query.count() == 1


def test_order_of_reactions_does_not_matter(client, create_user) -> None:
    a = create_user()
    b = create_user()

    post_react(client, a["id"], b["id"], "LIKE")
    first_way = post_react(client, b["id"], a["id"], "LOVE").get_json()["data"]["match"]

    c = create_user()
    d = create_user()
    post_react(client, d["id"], c["id"], "LOVE")
    other_way = post_react(client, c["id"], d["id"], "LIKE").get_json()["data"]["match"]

    assert (first_way["user1_id"], first_way["user2_id"]) == (a["id"], b["id"])
    assert (other_way["user1_id"], other_way["user2_id"]) == (c["id"], d["id"])
    assert Match.query.count() == 2


def test_repeated_reaction_is_upserted(client, create_user) -> None:
    a = create_user()
    b = create_user()

    post_react(client, a["id"], b["id"], "LIKE")
    first = post_react(client, b["id"], a["id"], "LIKE").get_json()["data"]
    second = post_react(client, b["id"], a["id"], "LIKE").get_json()["data"]

    assert first["match"] is not None
    # the pair was already matched, so nothing fresh is reported
    assert second["match"] is None
    assert first["reaction"]["id"] == second["reaction"]["id"]
    assert Like.query.count() == 2
    assert Match.query.count() == 1


def test_reaction_overwrites_type(client, create_user) -> None:
    a = create_user()
    b = create_user()

    post_react(client, a["id"], b["id"], "DISLIKE")
    post_react(client, a["id"], b["id"], "love")

    like = Like.query.filter_by(sender_id=a["id"], receiver_id=b["id"]).one()
    assert like.reaction_type == "LOVE"
    assert Like.query.count() == 1


def test_negative_reactions_never_match(client, create_user) -> None:
    a = create_user()
    b = create_user()

    post_react(client, a["id"], b["id"], "LIKE")
    assert post_react(client, b["id"], a["id"], "DISLIKE").get_json()["data"]["match"] is None

    post_react(client, a["id"], b["id"], "DISLIKE")
    post_react(client, b["id"], a["id"], "LIKE")
    assert Match.query.count() == 0


def test_match_survives_later_dislike(client, create_user) -> None:
    a = create_user()
    b = create_user()

    post_react(client, a["id"], b["id"], "LIKE")
    post_react(client, b["id"], a["id"], "LIKE")
    post_react(client, a["id"], b["id"], "DISLIKE")

    assert Match.query.count() == 1


def test_react_validation(client, create_user) -> None:
    a = create_user()
    b = create_user()

    assert post_react(client, a["id"], a["id"]).status_code == 400
    assert post_react(client, a["id"], b["id"], "WINK").status_code == 400
    assert client.post("/matches/react", json={"senderId": a["id"]}).status_code == 400
    assert post_react(client, "abc", b["id"]).status_code == 400
    assert post_react(client, a["id"], 9999).status_code == 404
    assert Like.query.count() == 0


def test_react_service_errors(app, create_user) -> None:
    a = create_user()

    with pytest.raises(ValidationError):
        react(a["id"], a["id"], "LIKE")
    with pytest.raises(NotFound):
        react(a["id"], 9999, "LIKE")


def test_canonical_pair() -> None:
    assert canonical_pair(7, 3) == (3, 7)
    assert canonical_pair(3, 7) == (3, 7)


def _make_match(client, create_user):
    a = create_user()
    b = create_user()
    post_react(client, a["id"], b["id"], "LIKE")
    post_react(client, b["id"], a["id"], "LOVE")
    return a, b


def test_list_matches_is_denormalized(client, create_user) -> None:
    a, b = _make_match(client, create_user)

    response = client.get("/matches")
    assert response.status_code == 200
    body = response.get_json()
    assert body["pagination"]["total"] == 1
    assert body["pagination"]["page"] == 0
    assert body["pagination"]["limit"] == 4

    item = body["data"][0]
    assert item["user1_id"] == a["id"]
    assert item["user2_id"] == b["id"]
    assert item["user1_reaction"] == "LIKE"
    assert item["user2_reaction"] == "LOVE"
    assert item["user1_phone"] == a["phone"]
    assert item["user2_birthdate"] == "1995-05-17"
    assert item["user1_photos"] == []
    assert item["view_admin"] is False


def test_list_matches_pagination_and_order(client, create_user) -> None:
    created = [_make_match(client, create_user) for _ in range(3)]

    first_page = client.get("/matches?page=0&limit=2").get_json()
    second_page = client.get("/matches?page=1&limit=2").get_json()

    assert first_page["pagination"]["total"] == 3
    assert first_page["pagination"]["pages"] == 2
    assert len(first_page["data"]) == 2
    assert len(second_page["data"]) == 1
    # newest first
    assert first_page["data"][0]["user1_id"] == created[-1][0]["id"]
    assert second_page["data"][0]["user1_id"] == created[0][0]["id"]


def test_list_matches_viewed_filter(client, create_user) -> None:
    _make_match(client, create_user)
    _make_match(client, create_user)
    match_id = client.get("/matches").get_json()["data"][0]["id"]

    response = client.put(f"/matches/{match_id}/viewed", json={})
    assert response.status_code == 200
    assert response.get_json()["data"]["view_admin"] is True

    viewed = client.get("/matches?viewed=true").get_json()
    unviewed = client.get("/matches?viewed=false").get_json()
    assert [m["id"] for m in viewed["data"]] == [match_id]
    assert viewed["pagination"]["total"] == 1
    assert unviewed["pagination"]["total"] == 1
    assert unviewed["data"][0]["id"] != match_id

    assert client.get("/matches?viewed=maybe").status_code == 400
    assert client.put("/matches/9999/viewed", json={}).status_code == 404

    client.put(f"/matches/{match_id}/viewed", json={"viewed": False})
    assert db.session.get(Match, match_id).view_admin is False


def _fail_match_insert(sender_id, receiver_id):
    raise OperationalError("INSERT INTO matches", {}, Exception("database is locked"))


def test_store_failure_rolls_back_reaction_and_match(app, create_user, monkeypatch) -> None:
    a = create_user()
    b = create_user()
    react(a["id"], b["id"], "LIKE")

    monkeypatch.setattr(matching, "_insert_match", _fail_match_insert)

    with pytest.raises(Unavailable):
        react(b["id"], a["id"], "LOVE")

    assert Like.query.count() == 1
    assert Like.query.filter_by(sender_id=b["id"]).count() == 0
    assert Match.query.count() == 0


def test_react_store_failure_returns_generic_500(client, create_user, monkeypatch) -> None:
    a = create_user()
    b = create_user()
    post_react(client, a["id"], b["id"], "LIKE")

    monkeypatch.setattr(matching, "_insert_match", _fail_match_insert)

    response = post_react(client, b["id"], a["id"], "LIKE")
    assert response.status_code == 500
    body = response.get_json()
    assert body["success"] is False
    assert body["error"]["message"] == "Service unavailable"
    assert "database is locked" not in str(body)
    assert Like.query.count() == 1
    assert Match.query.count() == 0


def test_pair_lock_takes_both_rows_in_id_order() -> None:
    sql = str(pair_lock_query(9, 4).compile(dialect=postgresql.dialect()))
    assert "ORDER BY users.id" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


def test_react_rejects_non_object_body(client) -> None:
    response = client.post("/matches/react", json=["LIKE"])
    assert response.status_code == 400
    assert client.put("/matches/1/viewed", json=[True]).status_code == 400
