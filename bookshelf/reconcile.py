"""Merge backend reviews with reviews kept on the device."""
from typing import Iterable, List, Optional

from bookshelf.models import BookRecord, ReviewEntry


def _review_key(review: ReviewEntry):
    return (review.owner_id, review.book_id, review.date)


def merge_reviews(
    server_reviews: Iterable[ReviewEntry],
    local_reviews: Iterable[ReviewEntry],
    dedupe: bool = False
) -> List[ReviewEntry]:
    """
    Build the display order for a book's reviews.

    Backend reviews come first in their given order, followed by local
    reviews in insertion order. The two sources are additive; with
    ``dedupe`` a local review is skipped when a review with the same
    owner, book and date was already emitted.

    Args:
        server_reviews: Reviews embedded by the backend
        local_reviews: Reviews from the device store
        dedupe: Drop local copies of already-synced reviews

    Returns:
        New list; neither input is modified
    """
    merged = list(server_reviews)
    if not dedupe:
        return merged + list(local_reviews)

    seen = {_review_key(r) for r in merged}
    for review in local_reviews:
        key = _review_key(review)
        if key in seen:
            continue
        seen.add(key)
        merged.append(review)
    return merged


def reviews_for_display(record: BookRecord, store, dedupe: bool = False) -> List[ReviewEntry]:
    """Merged reviews for a record, using the store's reviews for its id."""
    return merge_reviews(record.reviews, store.get_reviews_for(record.external_id), dedupe)


def average_rating(reviews: Iterable[ReviewEntry]) -> Optional[float]:
    """Mean rating rounded to one decimal, or None without reviews."""
    ratings = [r.rating for r in reviews]
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 1)
