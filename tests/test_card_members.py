import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from taskboard.models import CardUser
from taskboard.storage import Storage


def _add(client, card_id, user_id):
    return client.post("/boards/lists/cards/members", json={"cardId": card_id, "userId": user_id})


def test_add_member(client, card, bob, count_rows):
    res = _add(client, card["cardId"], bob["id"])
    assert res.status_code == 201
    assert res.json() == {"cardId": card["cardId"], "userId": bob["id"], "isOwner": False}
    assert count_rows(CardUser) == 2


def test_owner_cannot_be_added_as_member(client, card, alice, count_rows):
    res = _add(client, card["cardId"], alice["id"])
    assert res.status_code == 403
    assert res.json() == {"detail": "already_owner"}
    assert count_rows(CardUser) == 1


def test_unknown_card_is_not_found(client, bob, count_rows):
    res = _add(client, str(uuid.uuid4()), bob["id"])
    assert res.status_code == 404
    assert res.json() == {"detail": "card_not_found"}
    assert count_rows(CardUser) == 0


def test_member_cannot_be_added_twice(client, card, bob, count_rows):
    assert _add(client, card["cardId"], bob["id"]).status_code == 201
    res = _add(client, card["cardId"], bob["id"])
    assert res.status_code == 409
    assert res.json() == {"detail": "already_member"}
    assert count_rows(CardUser) == 2


def test_unknown_user_is_rejected(client, card, count_rows):
    res = _add(client, card["cardId"], str(uuid.uuid4()))
    assert res.status_code == 422
    assert count_rows(CardUser) == 1


def test_member_payload_is_validated(client, card):
    res = client.post("/boards/lists/cards/members", json={"cardId": card["cardId"]})
    assert res.status_code == 422
    res = _add(client, "card-1", "user-1")
    assert res.status_code == 422


def _skip_first_check(monkeypatch):
    check = Storage._check_not_member
    calls = []

    def check_after_first_call(self, card_id, user_id):
        calls.append((card_id, user_id))
        if len(calls) > 1:
            check(self, card_id, user_id)

    monkeypatch.setattr(Storage, "_check_not_member", check_after_first_call)


def test_concurrent_duplicate_member_is_conflict(client, card, bob, count_rows, monkeypatch):
    assert _add(client, card["cardId"], bob["id"]).status_code == 201
    _skip_first_check(monkeypatch)

    res = _add(client, card["cardId"], bob["id"])
    assert res.status_code == 409
    assert res.json() == {"detail": "already_member"}
    assert count_rows(CardUser) == 2


def test_concurrent_owner_add_is_forbidden(client, card, alice, count_rows, monkeypatch):
    _skip_first_check(monkeypatch)

    res = _add(client, card["cardId"], alice["id"])
    assert res.status_code == 403
    assert res.json() == {"detail": "already_owner"}
    assert count_rows(CardUser) == 1


def test_card_cannot_have_two_owners(session_factory, card, bob):
    with session_factory() as session:
        session.add(CardUser(card_id=card["cardId"], user_id=bob["id"], is_owner=True))
        with pytest.raises(IntegrityError):
            session.flush()
