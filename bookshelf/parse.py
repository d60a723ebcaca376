"""Parse and normalize Open Library catalog responses."""
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Union
from urllib.parse import quote_plus

from bookshelf.config import Config
from bookshelf.errors import NotFound
from bookshelf.models import BookRecord, BorrowLink

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"
UNKNOWN_GENRE = "Unknown Genre"
NO_DESCRIPTION = "No description available."

COVER_SIZE = "M"


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str) and v]


def _cover_id(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int) or (isinstance(value, str) and value):
        return str(value)
    return None


@dataclass
class _CatalogFields:
    """Fields common to every known catalog variant."""
    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    subjects: List[str] = field(default_factory=list)
    synopsis: Any = None
    subtitle: Optional[str] = None
    isbns: List[str] = field(default_factory=list)
    first_publish_year: Any = None
    cover_id: Optional[str] = None
    key: Optional[str] = None


class SearchDoc(_CatalogFields):
    """An entry of ``docs`` in a ``search.json`` response."""

    @classmethod
    def from_raw(cls, raw: Any) -> "SearchDoc":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            title=_str_or_none(raw.get("title")),
            authors=_str_list(raw.get("author_name")),
            subjects=_str_list(raw.get("subject")),
            synopsis=raw.get("first_sentence"),
            subtitle=_str_or_none(raw.get("subtitle")),
            isbns=_str_list(raw.get("isbn")),
            first_publish_year=raw.get("first_publish_year"),
            cover_id=_cover_id(raw.get("cover_i")),
            key=_str_or_none(raw.get("key")),
        )


class SubjectWork(_CatalogFields):
    """An entry of ``works`` in a ``subjects/<subject>.json`` response."""

    @classmethod
    def from_raw(cls, raw: Any) -> "SubjectWork":
        raw = raw if isinstance(raw, dict) else {}

        authors = []
        if isinstance(raw.get("authors"), list):
            for author in raw["authors"]:
                if isinstance(author, dict) and _str_or_none(author.get("name")):
                    authors.append(author["name"])

        # Subject works carry no ISBN list; the cover edition key stands in
        isbns = _str_list(raw.get("isbn"))
        if not isbns and _str_or_none(raw.get("cover_edition_key")):
            isbns = [raw["cover_edition_key"]]

        return cls(
            title=_str_or_none(raw.get("title")),
            authors=authors,
            subjects=_str_list(raw.get("subject")),
            synopsis=raw.get("description"),
            subtitle=_str_or_none(raw.get("subtitle")),
            isbns=isbns,
            first_publish_year=raw.get("first_publish_year"),
            cover_id=_cover_id(raw.get("cover_id")),
            key=_str_or_none(raw.get("key")),
        )


CatalogDoc = Union[SearchDoc, SubjectWork]


def derive_description(synopsis: Any, subtitle: Optional[str] = None) -> str:
    """
    Pick the description text from one of the known synopsis shapes.

    Accepts a plain string, a list of sentences (joined with a space) or a
    ``{"value": ...}`` object, then falls back to the subtitle and finally
    to a fixed sentence.
    """
    text = None
    if isinstance(synopsis, str):
        text = synopsis
    elif isinstance(synopsis, list):
        text = " ".join(s for s in synopsis if isinstance(s, str))
    elif isinstance(synopsis, dict) and isinstance(synopsis.get("value"), str):
        text = synopsis["value"]

    if text and text.strip():
        return text
    return subtitle or NO_DESCRIPTION


def derive_year(value: Any) -> Optional[int]:
    """Return the publish year when it is numeric, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def cover_url(cover_id: Optional[str]) -> str:
    """Medium-size cover URL for a cover id, or the placeholder image."""
    if not cover_id:
        return Config.PLACEHOLDER_COVER
    return f"{Config.COVERS_BASE_URL}/{cover_id}-{COVER_SIZE}.jpg"


def build_record(doc: CatalogDoc) -> BookRecord:
    """
    Apply the field derivation rules to a parsed catalog entry.

    Args:
        doc: A known catalog variant

    Returns:
        BookRecord with every display field populated
    """
    return BookRecord(
        title=doc.title or UNKNOWN_TITLE,
        author=", ".join(doc.authors) if doc.authors else UNKNOWN_AUTHOR,
        genre=doc.subjects[0] if doc.subjects else UNKNOWN_GENRE,
        description=derive_description(doc.synopsis, doc.subtitle),
        isbn=doc.isbns[0] if doc.isbns else None,
        publication_year=derive_year(doc.first_publish_year),
        cover_image=cover_url(doc.cover_id),
        external_id=doc.key,
        # The catalog supplies no ratings or shops
        average_rating=None,
        purchase_options=[],
    )


def parse_search_doc(raw: Any) -> BookRecord:
    """Normalize a single ``search.json`` doc."""
    return build_record(SearchDoc.from_raw(raw))


def parse_subject_work(raw: Any) -> BookRecord:
    """Normalize a single subject ``works`` entry."""
    return build_record(SubjectWork.from_raw(raw))


def _result_list(response: Any, list_key: str) -> List[Any]:
    items = response.get(list_key) if isinstance(response, dict) else None
    if not isinstance(items, list) or not items:
        raise NotFound()
    return items


def parse_search_response(response: Dict[str, Any]) -> List[BookRecord]:
    """
    Parse a full title search response.

    Args:
        response: ``search.json`` response JSON

    Returns:
        One BookRecord per doc, in response order

    Raises:
        NotFound: if the response holds no docs
    """
    return [parse_search_doc(doc) for doc in _result_list(response, "docs")]


def parse_subject_response(response: Dict[str, Any]) -> List[BookRecord]:
    """
    Parse a full subject sample response.

    Raises:
        NotFound: if the response holds no works
    """
    return [parse_subject_work(work) for work in _result_list(response, "works")]


def borrow_links(record: BookRecord) -> List[BorrowLink]:
    """Search links for borrowing or buying the book elsewhere."""
    term = quote_plus(f"{record.title} {record.author}")
    return [
        BorrowLink("Google Books", f"https://books.google.com/books?hl=en&q={term}"),
        BorrowLink("Amazon", f"https://www.amazon.com/s?k={term}"),
        BorrowLink("Goodreads", f"https://www.goodreads.com/search?q={term}"),
    ]
