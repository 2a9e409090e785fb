"""Client for the user management endpoints.

User administration is a plain request/response workflow, so this client is
synchronous and built on a requests.Session.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from autoimmune_console.client.schemas import User, UserPage
from autoimmune_console.client.session import SessionContext
from autoimmune_console.config import ServiceConfig, config
from autoimmune_console.config.constants import ROLE_DOCTOR
from autoimmune_console.config.logging_config import get_logger
from autoimmune_console.errors import NetworkFailure
from autoimmune_console.records.validation import validate_new_user

logger = get_logger("users")


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code >= 500
    return False


class UserServiceClient:
    """Client for ``/api/users``."""

    def __init__(
        self,
        session: SessionContext,
        settings: Optional[ServiceConfig] = None,
        http: Optional[requests.Session] = None,
    ):
        """
        Initialize the user client.

        Args:
            session: Authenticated session of the acting administrator.
            settings: Connection settings (defaults to the global config).
            http: Optional requests session, mainly for tests.
        """
        self.session = session
        self.settings = settings or config.service
        self.http = http or requests.Session()

    def close(self) -> None:
        self.http.close()

    def _make_request(
        self,
        method: str,
        path: str = "",
        failure_message: str = "Request failed",
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make a single API request.

        GET requests are retried on connection errors and 5xx responses.

        Returns:
            Decoded JSON body.

        Raises:
            NetworkFailure: On non-2xx status or transport error.
        """
        url = f"{self.settings.users_url}{path}"
        attempts = max(self.settings.max_retries, 1) if method == "GET" else 1
        logger.debug(f"{method} {url} params={params}")

        try:
            for attempt in Retrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(
                    multiplier=self.settings.retry_wait_seconds,
                    max=self.settings.retry_wait_max_seconds,
                ),
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    response = self.http.request(
                        method,
                        url,
                        params=params,
                        json=json,
                        headers=self.session.auth_headers(),
                        timeout=self.settings.timeout_seconds,
                    )
                    response.raise_for_status()
        except requests.HTTPError as e:
            message = failure_message
            try:
                message = e.response.json().get("message") or failure_message
            except ValueError:
                pass
            logger.error(f"{method} {url} failed: {message}")
            raise NetworkFailure(message, status_code=e.response.status_code) from e
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise NetworkFailure(f"{failure_message}: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {url} returned an invalid body")
            raise NetworkFailure("Invalid response from server", status_code=response.status_code) from e

    def create_user(self, payload: Dict[str, Any]) -> User:
        """Validate and create a user; the acting role limits assignable roles."""
        body = validate_new_user(payload, current_role=self.session.role)
        data = self._make_request("POST", "", "Failed to create user", json=body)
        user = User.model_validate(data["data"]["user"])
        logger.info(f"Created {user.role} account {user.username}")
        return user

    def update_user(self, user_id: str, changes: Dict[str, Any]) -> User:
        data = self._make_request("PUT", f"/{user_id}", "Failed to update user", json=changes)
        return User.model_validate(data["data"]["user"])

    def update_role(self, user_id: str, role: str) -> User:
        return self.update_user(user_id, {"role": role})

    def update_password(self, user_id: str, current_password: str, new_password: str) -> str:
        """Change a password and return the server's confirmation message."""
        data = self._make_request(
            "PUT",
            f"/{user_id}/password",
            "Failed to update password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        return data.get("message", "")

    def list_users(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> UserPage:
        """List users with optional pagination, filtering and sorting."""
        params: Dict[str, Any] = {}
        if page:
            params["page"] = page
        if limit:
            params["limit"] = limit
        if role:
            params["role"] = role
        if is_active is not None:
            params["isActive"] = "true" if is_active else "false"
        if search:
            params["search"] = search
        if sort_by:
            params["sortBy"] = sort_by
        if sort_order:
            params["sortOrder"] = sort_order

        data = self._make_request("GET", "", "Failed to fetch users", params=params)
        return UserPage.model_validate(data["data"])

    def search_users(self, query: str) -> UserPage:
        return self.list_users(search=query)

    def get_user(self, user_id: str) -> User:
        data = self._make_request("GET", f"/{user_id}", "Failed to fetch user")
        return User.model_validate(data["data"]["user"])

    def users_by_role(
        self,
        role: str,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> UserPage:
        """List users holding one role."""
        params: Dict[str, Any] = {}
        if page:
            params["page"] = page
        if limit:
            params["limit"] = limit
        if is_active is not None:
            params["isActive"] = "true" if is_active else "false"
        data = self._make_request(
            "GET", f"/role/{quote(role, safe='')}", "Failed to fetch users by role", params=params
        )
        return UserPage.model_validate(data["data"])

    def doctors(self, page: Optional[int] = None, limit: Optional[int] = None) -> UserPage:
        return self.users_by_role(ROLE_DOCTOR, page=page, limit=limit)

    def stats(self) -> Dict[str, Any]:
        """Account counts by role and status."""
        data = self._make_request("GET", "/stats", "Failed to fetch user statistics")
        return data["data"]

    def toggle_status(self, user_id: str) -> User:
        """Flip a user between active and inactive."""
        data = self._make_request("PUT", f"/{user_id}/toggle-status", "Failed to toggle user status")
        user = User.model_validate(data["data"]["user"])
        logger.info(f"User {user.username} is now {'active' if user.isActive else 'inactive'}")
        return user

    def delete_user(self, user_id: str, permanent: bool = False) -> str:
        """Deactivate a user, or remove it entirely when ``permanent``."""
        params = {"permanent": "true"} if permanent else None
        data = self._make_request("DELETE", f"/{user_id}", "Failed to delete user", params=params)
        return data.get("message", "")
