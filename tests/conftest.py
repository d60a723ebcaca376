from datetime import datetime, timedelta, timezone

import pytest

from bookshelf.database import MemoryStorage
from bookshelf.models import BookRecord
from bookshelf.store import LocalListStore


class TickingClock:
    """Returns a later timestamp on every call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return LocalListStore(storage, clock=TickingClock())


@pytest.fixture
def dune():
    return BookRecord(
        title="Dune",
        author="Frank Herbert",
        genre="Science fiction",
        description="No description available.",
        isbn="9780441013593",
        publication_year=1965,
        cover_image="https://covers.openlibrary.org/b/id/11481354-M.jpg",
        external_id="/works/OL1W",
    )
