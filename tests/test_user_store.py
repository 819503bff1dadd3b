"""Unit tests for auth/store.py -- UserStore persistence.

Covers:
- create_user returns the stored record with id and timestamps
- emails are normalized on write and on lookup
- duplicate email raises DuplicateEmailError and leaves one row
- the UNIQUE constraint alone rejects duplicates (no prior read)
- update_user, including email collisions and unknown fields
- delete_user, list_users, ping
"""

import threading

import pytest

from auth.errors import DuplicateEmailError
from auth.models import User
from auth.store import UserStore


def _user(email="ann@example.com", name="Ann", role="user") -> User:
    return User(name=name, email=email, role=role, hashed_password="$2b$12$notarealhashbutnotnull")


def test_create_user_returns_stored_record(store):
    created = store.create_user(_user())
    assert created.id is not None
    assert created.email == "ann@example.com"
    assert created.role == "user"
    assert created.created_at
    assert created.updated_at == created.created_at


def test_email_is_normalized_on_write_and_lookup(store):
    created = store.create_user(_user(email="  A@X.com "))
    assert created.email == "a@x.com"
    assert store.get_by_email("A@X.COM").id == created.id


def test_unknown_email_returns_none(store):
    assert store.get_by_email("nobody@example.com") is None
    assert store.get_by_id(999) is None


def test_duplicate_email_raises_and_keeps_one_row(store):
    store.create_user(_user())
    with pytest.raises(DuplicateEmailError):
        store.create_user(_user(email="ANN@example.com", name="Other Ann"))
    assert len(store.list_users()) == 1


def test_concurrent_inserts_only_one_wins(tmp_path):
    """Both threads skip any read; the UNIQUE constraint must pick a single winner."""
    s = UserStore(f"sqlite:///{tmp_path / 'race.db'}")
    outcomes: list[str] = []
    lock = threading.Lock()
    barrier = threading.Barrier(4)

    def attempt() -> None:
        barrier.wait()
        try:
            s.create_user(_user())
            result = "created"
        except DuplicateEmailError:
            result = "duplicate"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    s.close()

    assert outcomes.count("created") == 1
    assert outcomes.count("duplicate") == 3


def test_update_user_changes_fields(store):
    created = store.create_user(_user())
    updated = store.update_user(created.id, name="Ann B", email="ANN.B@example.com", role="admin")
    assert updated.name == "Ann B"
    assert updated.email == "ann.b@example.com"
    assert updated.role == "admin"
    assert updated.created_at == created.created_at


def test_update_user_email_collision(store):
    store.create_user(_user(email="one@example.com"))
    second = store.create_user(_user(email="two@example.com"))
    with pytest.raises(DuplicateEmailError):
        store.update_user(second.id, email="ONE@example.com")


def test_update_missing_user_returns_none(store):
    assert store.update_user(42, name="Ghost") is None


def test_update_rejects_unknown_fields(store):
    created = store.create_user(_user())
    with pytest.raises(ValueError):
        store.update_user(created.id, id=7)


def test_delete_user(store):
    created = store.create_user(_user())
    assert store.delete_user(created.id) is True
    assert store.get_by_id(created.id) is None
    assert store.delete_user(created.id) is False


def test_list_users_in_insertion_order(store):
    assert store.list_users() == []
    store.create_user(_user(email="b@example.com"))
    store.create_user(_user(email="a@example.com"))
    assert [u.email for u in store.list_users()] == ["b@example.com", "a@example.com"]


def test_ping(store):
    assert store.ping() is True


def test_public_projection_has_no_hash(store):
    created = store.create_user(_user())
    public = created.public()
    assert set(public) == {"id", "name", "email", "role", "created_at"}
    assert "hashed_password" not in public
