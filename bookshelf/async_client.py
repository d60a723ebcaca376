"""Async HTTP client for catalog requests."""
import asyncio
import httpx
from typing import List, Optional, Dict, Any
import logging

from bookshelf.client import NO_RETRY, RetryPolicy, SEARCH_LIMIT, random_offset
from bookshelf.errors import Unavailable
from bookshelf.models import BookRecord
from bookshelf.parse import parse_search_response, parse_subject_response

logger = logging.getLogger(__name__)


class AsyncOpenLibraryClient:
    """Async client for catalog searches and subject sampling."""

    BASE_URL = "https://openlibrary.org"

    def __init__(
        self,
        base_url: Optional[str] = None,
        retry: RetryPolicy = NO_RETRY,
        max_concurrent: int = 5,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize async client.

        Args:
            base_url: Catalog root
            retry: Retry and timeout policy
            max_concurrent: Maximum concurrent requests
            client: Optional httpx client to reuse
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.retry = retry
        self.semaphore = asyncio.Semaphore(max_concurrent)

        # Create async HTTP client
        self.client = client or httpx.AsyncClient(timeout=retry.timeout)

    async def search(self, title: str, limit: int = SEARCH_LIMIT) -> Dict[str, Any]:
        """Search the catalog by title asynchronously."""
        params = {"title": title, "limit": limit}
        return await self._get(f"{self.base_url}/search.json", params)

    async def sample(
        self,
        subject: str,
        limit: int,
        offset: Optional[int] = None
    ) -> Dict[str, Any]:
        """Fetch a page of works for a subject asynchronously."""
        if offset is None:
            offset = random_offset()
        params = {"limit": limit, "offset": offset}
        return await self._get(f"{self.base_url}/subjects/{subject}.json", params)

    async def search_books(self, title: str) -> List[BookRecord]:
        return parse_search_response(await self.search(title))

    async def sample_books(
        self,
        subject: str,
        limit: int,
        offset: Optional[int] = None
    ) -> List[BookRecord]:
        return parse_subject_response(await self.sample(subject, limit, offset))

    async def sample_many(
        self,
        subjects: List[str],
        limit: int
    ) -> Dict[str, List[BookRecord]]:
        """
        Sample several subjects in parallel.

        Args:
            subjects: Subjects to sample
            limit: Works per subject

        Returns:
            Records per subject, in the order given

        Raises:
            BookshelfError: the first failure among the subjects; no partial
                results are returned
        """
        tasks = [self.sample_books(subject, limit) for subject in subjects]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        sampled = {}
        for subject, result in zip(subjects, results):
            if isinstance(result, BaseException):
                logger.warning(f"Sampling {subject} failed: {result}")
                raise result
            sampled[subject] = result
        return sampled

    async def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        attempts = self.retry.max_attempts

        # Use semaphore to limit concurrency
        async with self.semaphore:
            for attempt in range(attempts):
                try:
                    logger.info(f"Async request attempt {attempt + 1}/{attempts}: {url}")
                    response = await self.client.get(url, params=params)

                    if response.status_code == 200:
                        return response.json()

                    logger.warning(f"Status {response.status_code} for {url}")
                    if response.status_code != 429 and response.status_code < 500:
                        raise Unavailable()

                except (httpx.TimeoutException, httpx.TransportError) as e:
                    logger.warning(f"Async request failed on attempt {attempt + 1}: {e}")

                except ValueError as e:
                    logger.error(f"Malformed response from {url}: {e}")
                    raise Unavailable() from e

                if attempt < attempts - 1:
                    delay = self.retry.backoff_delay(attempt)
                    logger.info(f"Backing off for {delay:.2f} seconds")
                    await asyncio.sleep(delay)

        logger.error(f"All {attempts} attempts failed")
        raise Unavailable()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
