"""HTTP client for the Open Library catalog with a pluggable retry policy."""
import time
import random
import requests
from dataclasses import dataclass
from typing import Optional, Dict, Any, List
import logging

from bookshelf.errors import Unavailable
from bookshelf.models import BookRecord
from bookshelf.parse import parse_search_response, parse_subject_response

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10
MAX_SAMPLE_OFFSET = 500


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to try a request and how long to wait for it.

    Attributes:
        max_attempts: Total attempts; 1 means no retry
        base_backoff: Base delay for exponential backoff
        timeout: Request timeout in seconds, None to wait indefinitely
    """
    max_attempts: int = 1
    base_backoff: float = 1.0
    timeout: Optional[float] = None

    def backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter for a 0-indexed attempt."""
        delay = self.base_backoff * (2 ** attempt)
        return delay + random.uniform(0, delay)


NO_RETRY = RetryPolicy()


def random_offset() -> int:
    """Random starting offset for subject sampling."""
    return random.randrange(0, MAX_SAMPLE_OFFSET)


class OpenLibraryClient:
    """Client for the Open Library search and subject endpoints."""

    BASE_URL = "https://openlibrary.org"

    def __init__(
        self,
        base_url: Optional[str] = None,
        retry: RetryPolicy = NO_RETRY,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Open Library client.

        Args:
            base_url: Catalog root, defaults to openlibrary.org
            retry: Retry and timeout policy
            session: Optional session to reuse
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.retry = retry

        # Create session for connection pooling
        self.session = session or requests.Session()

    def search(self, title: str, limit: int = SEARCH_LIMIT) -> Dict[str, Any]:
        """
        Search the catalog by title.

        Args:
            title: Title to search for
            limit: Maximum results to return

        Returns:
            Raw ``search.json`` response

        Raises:
            Unavailable: if the catalog could not be reached
        """
        params = {"title": title, "limit": limit}
        return self._make_request_with_retry(f"{self.base_url}/search.json", params)

    def sample(
        self,
        subject: str,
        limit: int,
        offset: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Fetch a page of works for a subject, at a random offset by default.

        Returns:
            Raw subject response
        """
        if offset is None:
            offset = random_offset()
        params = {"limit": limit, "offset": offset}
        return self._make_request_with_retry(
            f"{self.base_url}/subjects/{subject}.json", params
        )

    def search_books(self, title: str) -> List[BookRecord]:
        """Search by title and normalize the results."""
        return parse_search_response(self.search(title))

    def sample_books(
        self,
        subject: str,
        limit: int,
        offset: Optional[int] = None
    ) -> List[BookRecord]:
        """Sample a subject and normalize the results."""
        return parse_subject_response(self.sample(subject, limit, offset))

    def _make_request_with_retry(
        self,
        url: str,
        params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Make HTTP request, retrying as the policy allows.

        Args:
            url: Request URL
            params: Query parameters

        Returns:
            Response JSON

        Raises:
            Unavailable: once all attempts are exhausted or on a client error
        """
        attempts = self.retry.max_attempts
        for attempt in range(attempts):
            try:
                logger.info(f"Request attempt {attempt + 1}/{attempts}: {url}")

                response = self.session.get(
                    url,
                    params=params,
                    timeout=self.retry.timeout
                )

                if response.status_code == 200:
                    logger.info(f"Success: {response.status_code}")
                    return response.json()

                elif response.status_code == 429 or response.status_code >= 500:
                    # Rate limited or server error - retryable
                    logger.warning(f"Status {response.status_code} on attempt {attempt + 1}")
                    if attempt < attempts - 1:
                        self._backoff(attempt)
                        continue

                else:
                    # Client error - don't retry
                    logger.error(f"Client error ({response.status_code}): {response.text}")
                    raise Unavailable()

            except requests.exceptions.Timeout:
                logger.warning(f"Timeout on attempt {attempt + 1}")
                if attempt < attempts - 1:
                    self._backoff(attempt)
                    continue

            except requests.exceptions.ConnectionError as e:
                logger.warning(f"Connection error on attempt {attempt + 1}: {e}")
                if attempt < attempts - 1:
                    self._backoff(attempt)
                    continue

            except ValueError as e:
                logger.error(f"Malformed response from {url}: {e}")
                raise Unavailable() from e

            except requests.exceptions.RequestException as e:
                logger.error(f"Request failed: {e}")
                raise Unavailable() from e

        logger.error(f"All {attempts} attempts failed")
        raise Unavailable()

    def _backoff(self, attempt: int):
        """Sleep before the next attempt."""
        total_delay = self.retry.backoff_delay(attempt)
        logger.info(f"Backing off for {total_delay:.2f} seconds")
        time.sleep(total_delay)

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
