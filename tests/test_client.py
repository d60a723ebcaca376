"""Tests for the sync catalog client."""
from unittest.mock import MagicMock, patch

import pytest
import requests

from bookshelf.client import NO_RETRY, OpenLibraryClient, RetryPolicy, random_offset
from bookshelf.errors import NotFound, Unavailable


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = ""
    return response


def _client(*responses, retry=NO_RETRY):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return OpenLibraryClient(retry=retry, session=session), session


def test_search_request_shape():
    """Test that title search sends the title and a limit of 10."""
    client, session = _client(_response(payload={"docs": [{"title": "Dune"}]}))

    books = client.search_books("Dune Messiah")

    args, kwargs = session.get.call_args
    assert args[0] == "https://openlibrary.org/search.json"
    assert kwargs["params"] == {"title": "Dune Messiah", "limit": 10}
    assert kwargs["timeout"] is None
    assert [b.title for b in books] == ["Dune"]


def test_sample_request_shape():
    client, session = _client(_response(payload={"works": [{"title": "Emma"}]}))

    books = client.sample_books("fiction", 6, offset=42)

    args, kwargs = session.get.call_args
    assert args[0] == "https://openlibrary.org/subjects/fiction.json"
    assert kwargs["params"] == {"limit": 6, "offset": 42}
    assert books[0].title == "Emma"


def test_sample_uses_random_offset():
    client, session = _client(_response(payload={"works": [{}]}))

    with patch("bookshelf.client.random_offset", return_value=123):
        client.sample("fiction", 6)

    assert session.get.call_args.kwargs["params"]["offset"] == 123


def test_random_offset_range():
    offsets = {random_offset() for _ in range(200)}
    assert all(0 <= o < 500 for o in offsets)


def test_empty_results_are_not_found():
    client, _ = _client(_response(payload={"docs": [], "numFound": 0}))

    with pytest.raises(NotFound):
        client.search_books("zzzzzz")


def test_no_retry_by_default():
    """Test that a server error fails after a single attempt."""
    client, session = _client(_response(503), _response(payload={"docs": [{}]}))

    with pytest.raises(Unavailable):
        client.search("Dune")

    assert session.get.call_count == 1


def test_connection_error_is_unavailable():
    client, _ = _client(requests.exceptions.ConnectionError("down"))

    with pytest.raises(Unavailable):
        client.search("Dune")


def test_retry_policy_retries_server_errors():
    retry = RetryPolicy(max_attempts=3, base_backoff=0, timeout=5)
    client, session = _client(
        _response(500),
        requests.exceptions.Timeout("slow"),
        _response(payload={"docs": [{"title": "Dune"}]}),
        retry=retry,
    )

    with patch("bookshelf.client.time.sleep") as sleep:
        response = client.search("Dune")

    assert response == {"docs": [{"title": "Dune"}]}
    assert session.get.call_count == 3
    assert sleep.call_count == 2
    assert session.get.call_args.kwargs["timeout"] == 5


def test_client_errors_are_not_retried():
    client, session = _client(_response(400), retry=RetryPolicy(max_attempts=3, base_backoff=0))

    with pytest.raises(Unavailable):
        client.search("Dune")

    assert session.get.call_count == 1


def test_malformed_json_is_unavailable():
    response = _response()
    response.json.side_effect = ValueError("no json")
    client, _ = _client(response)

    with pytest.raises(Unavailable):
        client.search("Dune")


def test_backoff_grows_exponentially():
    retry = RetryPolicy(base_backoff=1.0)
    with patch("bookshelf.client.random.uniform", return_value=0):
        assert [retry.backoff_delay(n) for n in range(3)] == [1.0, 2.0, 4.0]
