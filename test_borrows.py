import pytest

import models
from conftest import bearer
from errors import Conflict, NotFound
from services import borrows as ledger


def _borrow(client, user, book_id):
    return client.post("/borrows", headers=bearer(user), json={"bookId": book_id})


def test_lending_scenario(client):
    client.post("/auth/register", json={"username": "alice", "password": "secret1"})
    client.post("/auth/register", json={"username": "bob", "password": "secret2"})
    client.post("/auth/register", json={"username": "root", "password": "supersecret", "role": "admin"})

    def login(username, password):
        token = client.post("/auth/login", json={"username": username, "password": password}).json()["token"]
        return {"Authorization": f"Bearer {token}"}

    alice, bob, admin = login("alice", "secret1"), login("bob", "secret2"), login("root", "supersecret")
    book = client.post(
        "/books", headers=admin, json={"title": "Dune", "author": "Herbert", "description": "Spice", "stock": 0}
    ).json()

    first = client.post("/borrows", headers=alice, json={"bookId": book["id"]})
    assert first.status_code == 200
    assert first.json()["returnDate"] is None

    blocked = client.post("/borrows", headers=bob, json={"bookId": book["id"]})
    assert blocked.status_code == 400
    assert blocked.json() == {"error": "Book is currently borrowed"}

    returned = client.patch(f"/borrows/{first.json()['id']}", headers=alice)
    assert returned.status_code == 200
    assert returned.json()["returnDate"] is not None

    second = client.post("/borrows", headers=bob, json={"bookId": book["id"]})
    assert second.status_code == 200


def test_borrow_sets_dates(client, alice, book):
    response = _borrow(client, alice, book.id)
    body = response.json()
    assert body["userId"] == alice.id
    assert body["bookId"] == book.id
    assert body["borrowDate"]
    assert body["returnDate"] is None


def test_borrow_missing_book(client, alice):
    response = _borrow(client, alice, 999)
    assert response.status_code == 404


def test_borrow_requires_book_id(client, alice):
    response = client.post("/borrows", headers=bearer(alice), json={})
    assert response.status_code == 400


def test_same_user_cannot_borrow_twice(client, alice, book):
    assert _borrow(client, alice, book.id).status_code == 200
    response = _borrow(client, alice, book.id)
    assert response.status_code == 400


def test_return_twice_conflicts(client, alice, book):
    borrow_id = _borrow(client, alice, book.id).json()["id"]
    assert client.patch(f"/borrows/{borrow_id}", headers=bearer(alice)).status_code == 200

    response = client.patch(f"/borrows/{borrow_id}", headers=bearer(alice))
    assert response.status_code == 400
    assert response.json() == {"error": "Book already returned"}


def test_foreign_borrow_looks_missing(client, alice, bob, admin, book):
    borrow_id = _borrow(client, alice, book.id).json()["id"]
    missing = client.patch("/borrows/999", headers=bearer(bob))
    foreign = client.patch(f"/borrows/{borrow_id}", headers=bearer(bob))

    assert missing.status_code == foreign.status_code == 404
    assert missing.json() == foreign.json()
    # no admin override for returning or deleting
    assert client.patch(f"/borrows/{borrow_id}", headers=bearer(admin)).status_code == 404
    assert client.delete(f"/borrows/{borrow_id}", headers=bearer(bob)).status_code == 404


def test_delete_requires_return(client, alice, book):
    borrow_id = _borrow(client, alice, book.id).json()["id"]

    response = client.delete(f"/borrows/{borrow_id}", headers=bearer(alice))
    assert response.status_code == 400
    assert response.json() == {"error": "Cannot delete active borrow record. Return the book first."}

    client.patch(f"/borrows/{borrow_id}", headers=bearer(alice))
    assert client.delete(f"/borrows/{borrow_id}", headers=bearer(alice)).status_code == 200
    assert client.delete(f"/borrows/{borrow_id}", headers=bearer(alice)).status_code == 404
    assert client.patch(f"/borrows/{borrow_id}", headers=bearer(alice)).status_code == 404


def test_unique_index_backs_single_active_borrow(db_session, alice, bob, book, monkeypatch):
    ledger.create_borrow(db_session, alice.id, book.id)

    # Simulate a concurrent request that read the book as available.
    monkeypatch.setattr(ledger, "_active_for_book", lambda db, book_id: None)
    monkeypatch.setattr(ledger, "_active_for_user_and_book", lambda db, user_id, book_id: None)

    with pytest.raises(Conflict):
        ledger.create_borrow(db_session, bob.id, book.id)

    active = (
        db_session.query(models.Borrow)
        .filter(models.Borrow.book_id == book.id, models.Borrow.return_date.is_(None))
        .count()
    )
    assert active == 1


def test_ledger_checks_user_exists(db_session, book):
    with pytest.raises(NotFound):
        ledger.create_borrow(db_session, 12345, book.id)


def test_my_borrows_paginated_with_book(client, alice, bob, db_session):
    books = [models.Book(title=f"Book {i}", author="A", description="D", stock=1) for i in range(12)]
    db_session.add_all(books)
    db_session.commit()
    for b in books:
        _borrow(client, alice, b.id)
    _borrow(client, bob, books[0].id)  # rejected, alice holds it

    page = client.get("/borrows?page=2&limit=5", headers=bearer(alice)).json()
    assert page["currentPage"] == 2
    assert page["totalPages"] == 3
    assert page["totalCount"] == 12
    assert [item["book"]["title"] for item in page["items"]] == [f"Book {i}" for i in range(5, 10)]

    assert client.get("/borrows", headers=bearer(bob)).json()["totalCount"] == 0


def test_admin_all_search_matches_title_or_username(client, alice, bob, admin, db_session):
    dune = models.Book(title="Dune", author="A", description="D", stock=1)
    emma = models.Book(title="Emma", author="A", description="D", stock=1)
    alchemist = models.Book(title="The Alchemist", author="A", description="D", stock=1)
    db_session.add_all([dune, emma, alchemist])
    db_session.commit()
    _borrow(client, alice, dune.id)
    _borrow(client, bob, emma.id)
    _borrow(client, bob, alchemist.id)

    headers = bearer(admin)
    everything = client.get("/borrows/admin/all", headers=headers).json()
    assert everything["totalCount"] == 3

    # "al" matches username alice and title The Alchemist
    matched = client.get("/borrows/admin/all?search=AL", headers=headers).json()
    assert matched["totalCount"] == 2
    pairs = {(item["user"]["username"], item["book"]["title"]) for item in matched["items"]}
    assert pairs == {("alice", "Dune"), ("bob", "The Alchemist")}


def test_admin_user_borrows(client, alice, bob, admin, book):
    _borrow(client, alice, book.id)
    headers = bearer(admin)

    mine = client.get(f"/borrows/admin/user/{alice.id}", headers=headers).json()
    assert mine["totalCount"] == 1
    assert mine["items"][0]["book"]["title"] == "Dune"

    assert client.get(f"/borrows/admin/user/{bob.id}", headers=headers).json()["totalCount"] == 0


def test_book_status(client, alice, book):
    book_id = book.id
    headers = bearer(alice)
    assert client.get(f"/borrows/book/{book_id}/status", headers=headers).json() == {"status": "available"}

    borrow_id = _borrow(client, alice, book_id).json()["id"]
    assert client.get(f"/borrows/book/{book_id}/status", headers=headers).json() == {"status": "borrowed"}

    client.patch(f"/borrows/{borrow_id}", headers=headers)
    assert client.get(f"/borrows/book/{book_id}/status", headers=headers).json() == {"status": "available"}


def test_book_count_and_history(client, alice, bob, admin, book):
    book_id = book.id
    first = _borrow(client, alice, book_id).json()["id"]
    client.patch(f"/borrows/{first}", headers=bearer(alice))
    _borrow(client, bob, book_id)

    headers = bearer(admin)
    count = client.get(f"/borrows/book/{book_id}/count", headers=headers).json()
    assert count == {"bookId": book_id, "totalBorrowed": 2}

    history = client.get(f"/borrows/book/{book_id}/history?limit=1", headers=headers).json()
    assert history["totalCount"] == 2
    assert history["totalPages"] == 2
    assert history["items"][0]["user"]["username"] == "alice"


def test_admin_search_treats_wildcards_literally(client, alice, admin, db_session):
    percent = models.Book(title="100% Python", author="A", description="D", stock=1)
    plain = models.Book(title="Dune", author="A", description="D", stock=1)
    db_session.add_all([percent, plain])
    db_session.commit()
    _borrow(client, alice, percent.id)
    _borrow(client, alice, plain.id)

    matched = client.get("/borrows/admin/all", headers=bearer(admin), params={"search": "%"}).json()
    assert [item["book"]["title"] for item in matched["items"]] == ["100% Python"]

    nothing = client.get("/borrows/admin/all", headers=bearer(admin), params={"search": "a_i"}).json()
    assert nothing["totalCount"] == 0


def test_oversized_ids_are_400(client, alice, admin):
    huge = 99999999999999999999
    assert client.post("/borrows", headers=bearer(alice), json={"bookId": huge}).status_code == 400
    assert client.patch(f"/borrows/{huge}", headers=bearer(alice)).status_code == 400
    assert client.get(f"/borrows/book/{huge}/status", headers=bearer(alice)).status_code == 400
    assert client.get(f"/borrows/admin/user/{huge}", headers=bearer(admin)).status_code == 400
    assert client.get("/borrows?page=99999999999999999999", headers=bearer(alice)).status_code == 400
