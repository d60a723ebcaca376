"""Tests for the command-line front end."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

import explorer
from bookshelf.async_client import AsyncOpenLibraryClient
from bookshelf.client import OpenLibraryClient
from bookshelf.database import MemoryStorage
from bookshelf.errors import NotFound, Unavailable
from bookshelf.gateway import BackendGateway
from bookshelf.models import AuthContext, ListStatus
from bookshelf.store import LocalListStore, SessionStore


@pytest.fixture
def logged_in(storage):
    SessionStore(storage).save(AuthContext(token="t0ken", owner_id="user42"))
    return storage


@pytest.fixture
def catalog(monkeypatch, dune):
    search = MagicMock(return_value=[dune])
    monkeypatch.setattr(OpenLibraryClient, "search_books", search)
    return search


def test_search_json_output(catalog, storage, capsys):
    assert explorer.main(["search", "dune", "--format", "json"], storage=storage) == 0

    printed = json.loads(capsys.readouterr().out)
    assert printed[0]["title"] == "Dune"
    catalog.assert_called_once_with("dune")


def test_search_failure_is_notified(monkeypatch, storage, capsys):
    monkeypatch.setattr(OpenLibraryClient, "search_books", MagicMock(side_effect=NotFound()))

    assert explorer.main(["search", "zzzz"], storage=storage) == 1
    assert capsys.readouterr().err.strip() == "Error: No books found."


def test_add_requires_login(catalog, storage, capsys):
    assert explorer.main(["add", "dune", "--status", "tbr"], storage=storage) == 1

    assert "Please log in to add books to your list." in capsys.readouterr().err
    catalog.assert_not_called()
    assert storage.read("books") is None


def test_add_then_move_to_read(catalog, logged_in, capsys):
    explorer.main(["add", "dune", "--status", "reading"], storage=logged_in)
    explorer.main(["add", "dune", "--status", "read"], storage=logged_in)

    entries = LocalListStore(logged_in).list_entries("user42")
    assert len(entries) == 1
    assert entries[0].status is ListStatus.READ
    assert "Book added to read list!" in capsys.readouterr().out


def test_add_with_bad_pick(catalog, logged_in, capsys):
    assert explorer.main(["add", "dune", "--status", "tbr", "--pick", "3"], storage=logged_in) == 1
    assert "between 1 and 1" in capsys.readouterr().err


def test_review_and_list(catalog, logged_in, capsys):
    explorer.main(["add", "dune", "--status", "read"], storage=logged_in)
    explorer.main(["review", "/works/OL1W", "--rating", "4", "--comment", "Spice"], storage=logged_in)
    explorer.main(["review", "/works/OL1W", "--rating", "5", "--comment", "Worms"], storage=logged_in)
    capsys.readouterr()

    assert explorer.main(["list", "--format", "compact"], storage=logged_in) == 0
    assert capsys.readouterr().out.strip() == "[read] Dune - Frank Herbert"

    explorer.main(["list"], storage=logged_in)
    assert "4.5/5" in capsys.readouterr().out

    explorer.main(["reviews", "/works/OL1W"], storage=logged_in)
    out = capsys.readouterr().out
    assert out.index("Spice") < out.index("Worms")


def test_invalid_review_is_not_saved(logged_in, capsys):
    explorer.main(["review", "/works/OL1W", "--rating", "0", "--comment", "Meh"], storage=logged_in)

    assert "Review not saved" in capsys.readouterr().out
    assert logged_in.read("reviews") is None


def test_reviews_without_any(storage, capsys):
    explorer.main(["reviews", "/works/OL1W"], storage=storage)
    assert capsys.readouterr().out.strip() == "No reviews yet."


def test_links(catalog, storage, capsys):
    explorer.main(["links", "dune"], storage=storage)
    assert "Amazon: https://www.amazon.com/s?k=Dune+Frank+Herbert" in capsys.readouterr().out


def test_login_saves_session(monkeypatch, storage):
    monkeypatch.setattr(
        BackendGateway, "authenticate", MagicMock(return_value=AuthContext("abc", "u1"))
    )

    assert explorer.main(["login", "reader", "--password", "secret"], storage=storage) == 0
    assert SessionStore(storage).load() == AuthContext("abc", "u1")

    explorer.main(["logout"], storage=storage)
    assert SessionStore(storage).load() is None


def test_register_saves_session(monkeypatch, storage, capsys):
    register = MagicMock(return_value=AuthContext("new", "u7"))
    monkeypatch.setattr(BackendGateway, "register", register)

    argv = ["register", "reader", "reader@example.com", "--password", "secret"]
    assert explorer.main(argv, storage=storage) == 0

    register.assert_called_once_with(username="reader", email="reader@example.com", password="secret")
    assert SessionStore(storage).load() == AuthContext("new", "u7")
    assert "Registered and logged in as reader." in capsys.readouterr().out


def test_discover_several_subjects_fails_when_one_fails(monkeypatch, storage, capsys):
    monkeypatch.setattr(AsyncOpenLibraryClient, "sample_many", AsyncMock(side_effect=NotFound()))

    argv = ["discover", "--subject", "a", "--subject", "b", "--format", "compact"]
    assert explorer.main(argv, storage=storage) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "No books found." in captured.err


def test_profile_requires_login(storage, capsys):
    assert explorer.main(["profile"], storage=storage) == 1
    assert "Please log in first." in capsys.readouterr().err


def test_delete_account_needs_confirmation(monkeypatch, logged_in):
    delete = MagicMock()
    monkeypatch.setattr(BackendGateway, "delete_account", delete)

    explorer.main(["delete-account"], storage=logged_in)
    delete.assert_not_called()

    assert explorer.main(["delete-account", "--yes"], storage=logged_in) == 0
    delete.assert_called_once_with(AuthContext("t0ken", "user42"), "user42")
    assert SessionStore(logged_in).load() is None


def test_delete_account_unavailable(monkeypatch, logged_in, capsys):
    monkeypatch.setattr(BackendGateway, "delete_account", MagicMock(side_effect=Unavailable()))

    assert explorer.main(["delete-account", "--yes"], storage=logged_in) == 1
    assert "unavailable" in capsys.readouterr().err
    assert SessionStore(logged_in).load() is not None


def test_no_command_prints_help(capsys):
    assert explorer.main([], storage=MemoryStorage()) == 1
