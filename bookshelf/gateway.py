"""REST client for the backend's auth, profile and account endpoints."""
import time
import requests
from typing import Optional, Dict, Any, BinaryIO
import logging

from bookshelf.client import NO_RETRY, RetryPolicy
from bookshelf.errors import (
    BadRequest,
    InvalidCredentials,
    NotFound,
    Unauthenticated,
    Unavailable,
)
from bookshelf.models import AuthContext, Profile

logger = logging.getLogger(__name__)


def _server_message(response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    return data.get("message") if isinstance(data, dict) else None


def _auth_from_response(data: Dict[str, Any]) -> AuthContext:
    token = data.get("token")
    user = data.get("user") if isinstance(data.get("user"), dict) else {}
    owner_id = data.get("userId") or user.get("_id") or user.get("id")
    if not token or not owner_id:
        raise Unavailable("Unexpected login response from the server.")
    return AuthContext(token=token, owner_id=str(owner_id))


class BackendGateway:
    """
    Pass-through to the authoritative backend.

    Every authenticated call takes an explicit AuthContext; the gateway
    never looks up a session on its own.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        retry: RetryPolicy = NO_RETRY
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.retry = retry

    def authenticate(self, username: str, password: str) -> AuthContext:
        """
        Log in and return the session context.

        Raises:
            InvalidCredentials: if the backend rejects the login
        """
        response = self._request(
            "POST", "/auth/login", json={"username": username, "password": password}
        )
        if response.status_code in (400, 401):
            raise InvalidCredentials(_server_message(response))
        self._raise_for_status(response)
        auth = _auth_from_response(response.json())
        logger.info(f"Logged in as {auth.owner_id}")
        return auth

    def register(self, **fields) -> AuthContext:
        """Create an account and return its session context."""
        response = self._request("POST", "/auth/register", json=fields)
        self._raise_for_status(response)
        return _auth_from_response(response.json())

    def get_profile(self, auth: AuthContext, owner_id: str) -> Profile:
        response = self._request("GET", f"/users/{owner_id}/profile", auth=auth)
        self._raise_for_status(response, not_found="User not found.")
        return Profile.from_api(response.json())

    def update_profile(
        self,
        auth: AuthContext,
        owner_id: str,
        fields: Optional[Dict[str, Any]] = None,
        file: Optional[BinaryIO] = None
    ) -> Profile:
        """
        Update profile fields and/or upload a new profile picture.

        Raises:
            BadRequest: if there is nothing to update, or the backend
                rejects the update
        """
        if not fields and file is None:
            raise BadRequest("No file uploaded.")

        files = {"profilePic": file} if file is not None else None
        response = self._request(
            "PUT", f"/users/{owner_id}/profile", auth=auth, data=fields or {}, files=files
        )
        self._raise_for_status(response, not_found="User not found.")
        return Profile.from_api(response.json())

    def delete_account(self, auth: AuthContext, owner_id: str) -> None:
        """Delete the account; the backend removes its lists and uploads."""
        response = self._request("DELETE", f"/users/{owner_id}", auth=auth)
        self._raise_for_status(response, not_found="User not found.")
        logger.info(f"Deleted account {owner_id}")

    def _request(
        self,
        method: str,
        path: str,
        auth: Optional[AuthContext] = None,
        **kwargs
    ) -> requests.Response:
        headers = {}
        if auth is not None:
            headers["Authorization"] = f"Bearer {auth.token}"

        url = f"{self.base_url}{path}"
        attempts = self.retry.max_attempts
        for attempt in range(attempts):
            try:
                logger.info(f"{method} {url} (attempt {attempt + 1}/{attempts})")
                response = self.session.request(
                    method, url, headers=headers, timeout=self.retry.timeout, **kwargs
                )
                if response.status_code < 500 or attempt == attempts - 1:
                    return response
                logger.warning(f"Server error ({response.status_code}) on attempt {attempt + 1}")

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                logger.warning(f"{method} {url} failed on attempt {attempt + 1}: {e}")
                if attempt == attempts - 1:
                    raise Unavailable() from e

            except requests.exceptions.RequestException as e:
                logger.error(f"{method} {url} failed: {e}")
                raise Unavailable() from e

            time.sleep(self.retry.backoff_delay(attempt))

        raise Unavailable()

    @staticmethod
    def _raise_for_status(response, not_found: Optional[str] = None) -> None:
        status = response.status_code
        if status < 400:
            return
        message = _server_message(response)
        logger.error(f"Backend returned {status}: {message}")
        if status == 400:
            raise BadRequest(message)
        if status in (401, 403):
            raise Unauthenticated(message)
        if status == 404:
            raise NotFound(message or not_found)
        raise Unavailable()
