"""Per-device list and review store with upsert-by-owner semantics."""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional, Union
import logging

from bookshelf.errors import BadRequest, Unauthenticated
from bookshelf.models import AuthContext, BookRecord, ListEntry, ListStatus, ReviewEntry

logger = logging.getLogger(__name__)

BOOKS_KEY = "books"
REVIEWS_KEY = "reviews"
SESSION_KEY = "session"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoadState(str, Enum):
    """Outcome of reading a collection from storage."""
    OK = "ok"
    ABSENT = "absent"
    CORRUPT = "corrupt"


@dataclass
class Collection:
    """Loaded items plus how the load went."""
    items: List[Any] = field(default_factory=list)
    state: LoadState = LoadState.OK


def _read_json(storage, key: str):
    """Return (data, state); data is None unless state is OK."""
    raw = storage.read(key)
    if raw is None:
        return None, LoadState.ABSENT
    try:
        return json.loads(raw.decode("utf-8")), LoadState.OK
    except (UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Stored {key!r} is unreadable, treating as empty: {e}")
        return None, LoadState.CORRUPT


def _check_owner(owner_id: Optional[str], action: str):
    if not owner_id:
        raise Unauthenticated(f"Please log in to {action}.")


class LocalListStore:
    """
    Book lists and reviews kept on the device.

    Both collections are rewritten in full on every mutation. Reads never
    raise on bad stored data: a corrupt collection loads as empty with
    ``LoadState.CORRUPT``.
    """

    def __init__(self, storage, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.clock = clock

    def _load(self, key: str, parse) -> Collection:
        data, state = _read_json(self.storage, key)
        if state is not LoadState.OK:
            return Collection([], state)
        if not isinstance(data, list):
            logger.warning(f"Stored {key!r} is not a list, treating as empty")
            return Collection([], LoadState.CORRUPT)
        try:
            return Collection([parse(item) for item in data], LoadState.OK)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Stored {key!r} has malformed entries, treating as empty: {e}")
            return Collection([], LoadState.CORRUPT)

    def _save(self, key: str, items: List[Any]) -> None:
        payload = json.dumps([item.to_dict() for item in items])
        self.storage.write(key, payload.encode("utf-8"))

    def load_entries(self) -> Collection:
        """All list entries on the device."""
        return self._load(BOOKS_KEY, ListEntry.from_dict)

    def load_reviews(self) -> Collection:
        """All reviews on the device."""
        return self._load(REVIEWS_KEY, ReviewEntry.from_dict)

    def upsert_list_entry(
        self,
        record: BookRecord,
        owner_id: Optional[str],
        status: Union[ListStatus, str]
    ) -> ListEntry:
        """
        Save a book to one of the owner's lists.

        An existing entry for the same (external_id, owner_id) pair is
        replaced in place, so the status and date change while the count
        stays the same.

        Raises:
            Unauthenticated: if no owner is given
            BadRequest: if the status is not a known list
        """
        _check_owner(owner_id, "add books to your list")
        try:
            status = ListStatus(status)
        except ValueError:
            raise BadRequest(f"Unknown list status: {status}")

        entry = ListEntry.from_record(record, owner_id, status, self.clock())
        entries = self.load_entries().items

        for i, existing in enumerate(entries):
            if existing.external_id == record.external_id and existing.owner_id == owner_id:
                entries[i] = entry
                break
        else:
            entries.append(entry)

        self._save(BOOKS_KEY, entries)
        logger.info(f"Saved {record.external_id} to {status.value} for {owner_id}")
        return entry

    def append_review(
        self,
        book_id: Optional[str],
        owner_id: Optional[str],
        rating: int,
        comment: str
    ) -> Optional[ReviewEntry]:
        """
        Add a review for a book.

        Returns:
            The stored review, or None when the rating is outside 1..5 or
            the comment is blank (nothing is stored in that case)

        Raises:
            Unauthenticated: if no owner is given
        """
        _check_owner(owner_id, "add a review")

        valid_rating = isinstance(rating, int) and not isinstance(rating, bool) and 1 <= rating <= 5
        comment = comment.strip() if isinstance(comment, str) else ""
        if not valid_rating or not comment:
            logger.info(f"Declined review for {book_id}: rating={rating!r}, empty comment={not comment}")
            return None

        review = ReviewEntry(
            book_id=book_id,
            owner_id=owner_id,
            rating=rating,
            comment=comment,
            date=self.clock(),
        )
        reviews = self.load_reviews().items
        reviews.append(review)
        self._save(REVIEWS_KEY, reviews)
        return review

    def get_reviews_for(self, book_id: Optional[str]) -> List[ReviewEntry]:
        """Reviews for a book, in the order they were added."""
        return [r for r in self.load_reviews().items if r.book_id == book_id]

    def list_entries(
        self,
        owner_id: Optional[str] = None,
        status: Optional[Union[ListStatus, str]] = None
    ) -> List[ListEntry]:
        """Entries filtered by owner and/or list status."""
        entries = self.load_entries().items
        if owner_id is not None:
            entries = [e for e in entries if e.owner_id == owner_id]
        if status is not None:
            status = ListStatus(status)
            entries = [e for e in entries if e.status is status]
        return entries

    def get_list_entry(self, external_id: Optional[str], owner_id: str) -> Optional[ListEntry]:
        for entry in self.load_entries().items:
            if entry.external_id == external_id and entry.owner_id == owner_id:
                return entry
        return None


class SessionStore:
    """The device's persisted login."""

    def __init__(self, storage):
        self.storage = storage

    def save(self, auth: AuthContext) -> None:
        self.storage.write(SESSION_KEY, json.dumps(auth.to_dict()).encode("utf-8"))

    def load(self) -> Optional[AuthContext]:
        data, state = _read_json(self.storage, SESSION_KEY)
        if state is not LoadState.OK or not isinstance(data, dict):
            return None
        try:
            return AuthContext.from_dict(data)
        except KeyError:
            logger.warning("Stored session is incomplete, ignoring it")
            return None

    def clear(self) -> None:
        self.storage.write(SESSION_KEY, b"null")
