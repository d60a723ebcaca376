"""Data models for books, list entries and reviews."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any


class ListStatus(str, Enum):
    """Reading lists a book can be saved to."""
    TBR = "tbr"
    READING = "reading"
    READ = "read"


def _parse_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class PurchaseOption:
    platform: str
    url: str
    price: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"platform": self.platform, "url": self.url, "price": self.price}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PurchaseOption":
        return cls(data["platform"], data["url"], data.get("price"))


@dataclass
class BorrowLink:
    """Outbound link to look a book up on another platform."""
    platform: str
    url: str


@dataclass
class ReviewEntry:
    """A single rating and comment left by an owner."""
    book_id: Optional[str]
    owner_id: str
    rating: int
    comment: str
    date: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "book_id": self.book_id,
            "owner_id": self.owner_id,
            "rating": self.rating,
            "comment": self.comment,
            "date": self.date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewEntry":
        return cls(
            book_id=data.get("book_id"),
            owner_id=data["owner_id"],
            rating=int(data["rating"]),
            comment=data["comment"],
            date=_parse_date(data["date"]),
        )


@dataclass
class BookRecord:
    """Canonical book shape produced by the catalog normalizer."""
    title: str
    author: str
    genre: str
    description: str
    isbn: Optional[str]
    publication_year: Optional[int]
    cover_image: str
    external_id: Optional[str]
    average_rating: Optional[float] = None
    purchase_options: List[PurchaseOption] = field(default_factory=list)
    # Reviews embedded by the backend; empty for catalog records
    reviews: List[ReviewEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "description": self.description,
            "isbn": self.isbn,
            "publication_year": self.publication_year,
            "cover_image": self.cover_image,
            "external_id": self.external_id,
            "average_rating": self.average_rating,
            "purchase_options": [p.to_dict() for p in self.purchase_options],
            "reviews": [r.to_dict() for r in self.reviews],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookRecord":
        return cls(**_record_fields(data))


def _record_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": data["title"],
        "author": data["author"],
        "genre": data["genre"],
        "description": data["description"],
        "isbn": data.get("isbn"),
        "publication_year": data.get("publication_year"),
        "cover_image": data["cover_image"],
        "external_id": data.get("external_id"),
        "average_rating": data.get("average_rating"),
        "purchase_options": [
            PurchaseOption.from_dict(p) for p in data.get("purchase_options", [])
        ],
        "reviews": [ReviewEntry.from_dict(r) for r in data.get("reviews", [])],
    }


@dataclass
class ListEntry(BookRecord):
    """A book saved to one of an owner's lists."""
    owner_id: str = ""
    status: ListStatus = ListStatus.TBR
    date_added: Optional[datetime] = None

    @property
    def record(self) -> BookRecord:
        """The book part of the entry, without list metadata."""
        return BookRecord.from_dict(BookRecord.to_dict(self))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "owner_id": self.owner_id,
            "status": self.status.value,
            "date_added": self.date_added.isoformat() if self.date_added else None,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListEntry":
        date_added = data.get("date_added")
        return cls(
            **_record_fields(data),
            owner_id=data["owner_id"],
            status=ListStatus(data["status"]),
            date_added=_parse_date(date_added) if date_added else None,
        )

    @classmethod
    def from_record(
        cls,
        record: BookRecord,
        owner_id: str,
        status: ListStatus,
        date_added: datetime
    ) -> "ListEntry":
        return cls(
            **_record_fields(record.to_dict()),
            owner_id=owner_id,
            status=status,
            date_added=date_added,
        )


@dataclass
class AuthContext:
    """Explicit authentication passed into every backend call."""
    token: str
    owner_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token, "owner_id": self.owner_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthContext":
        return cls(token=data["token"], owner_id=data["owner_id"])


@dataclass
class Profile:
    """User profile as returned by the backend."""
    owner_id: str
    username: Optional[str] = None
    email: Optional[str] = None
    profile_pic: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Profile":
        known = {"_id", "id", "username", "email", "profilePic"}
        return cls(
            owner_id=str(data.get("_id") or data.get("id") or ""),
            username=data.get("username"),
            email=data.get("email"),
            profile_pic=data.get("profilePic"),
            extra={k: v for k, v in data.items() if k not in known},
        )
