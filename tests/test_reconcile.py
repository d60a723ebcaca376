"""Tests for merging backend and device reviews."""
from dataclasses import replace
from datetime import datetime, timezone

from bookshelf.models import ReviewEntry
from bookshelf.reconcile import average_rating, merge_reviews, reviews_for_display


def _review(comment, rating=4, owner_id="user42", day=1):
    return ReviewEntry(
        book_id="/works/OL1W",
        owner_id=owner_id,
        rating=rating,
        comment=comment,
        date=datetime(2024, 1, day, tzinfo=timezone.utc),
    )


def test_backend_reviews_come_first():
    a, b, c, d = _review("A", day=1), _review("B", day=2), _review("C", day=3), _review("D", day=4)

    assert merge_reviews([a, b], [c, d]) == [a, b, c, d]


def test_merge_is_additive_by_default():
    """Test that a synced review shows up from both sources."""
    synced = _review("Synced")

    assert merge_reviews([synced], [synced]) == [synced, synced]


def test_merge_with_dedupe_drops_synced_copies():
    synced = _review("Synced", day=2)
    local_only = _review("Local", day=3)

    merged = merge_reviews([_review("Server", day=1), synced], [synced, local_only], dedupe=True)

    assert [r.comment for r in merged] == ["Server", "Synced", "Local"]


def test_merge_does_not_modify_inputs():
    server = [_review("A")]
    local = [_review("B", day=2)]

    merge_reviews(server, local)

    assert len(server) == 1 and len(local) == 1


def test_merge_of_empty_sources():
    assert merge_reviews([], []) == []


def test_reviews_for_display_uses_record_and_store(store, dune):
    embedded = _review("From the backend")
    record = replace(dune, reviews=[embedded])
    store.append_review("/works/OL1W", "user42", 5, "From this device")
    store.append_review("/works/OL2W", "user42", 1, "Other book")

    merged = reviews_for_display(record, store)

    assert [r.comment for r in merged] == ["From the backend", "From this device"]


def test_average_rating():
    assert average_rating([]) is None
    assert average_rating([_review("a", 4), _review("b", 5), _review("c", 5)]) == 4.7
