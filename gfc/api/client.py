"""Gravity Forms REST API client implementation."""

import logging
from typing import Any

import backoff
import requests

from gfc.core.constants import API_PATH, APIConstants
from gfc.exceptions import (
    APIError,
    AuthenticationError,
    ConnectionFailedError,
    FormNotFoundError,
    InvalidCredentialsError,
    InvalidResponseError,
    NotFoundError,
    PermissionError,
    RateLimitError,
    TimeoutError,
    ValidationError,
)


def _error_detail(response: requests.Response) -> str | None:
    """Pull the message out of a WordPress REST error body ({"code": ..., "message": ...})."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


class GravityFormsClient:
    """Client for the Gravity Forms REST API (v2).

    ``list_forms`` and ``get_form`` are shaped to be passed directly to the sync
    engine as ``fetch_active_list`` and ``fetch_by_id``.
    """

    def __init__(self, base_url: str | None, consumer_key: str | None, consumer_secret: str | None) -> None:
        """Initialize the API client.

        Args:
            base_url: WordPress site URL
            consumer_key: REST API consumer key
            consumer_secret: REST API consumer secret

        Raises:
            InvalidCredentialsError: If a credential is missing
            ValidationError: If the site URL is missing or malformed

        """
        self.logger = logging.getLogger(__name__)

        if not consumer_key:
            self.logger.error("Consumer key not provided")
            raise InvalidCredentialsError("consumer key")
        if not consumer_secret:
            self.logger.error("Consumer secret not provided")
            raise InvalidCredentialsError("consumer secret")
        if not base_url or not base_url.startswith(("http://", "https://")):
            raise ValidationError(
                "base_url",
                base_url,
                "Site URL must be provided as http(s) URL, either as parameter or via GRAVITY_FORMS_BASE_URL",
            )

        self.base_url = base_url.rstrip("/") + API_PATH
        self.auth = (consumer_key, consumer_secret)
        self.session: requests.Session | None = None
        self.logger.debug(f"GravityFormsClient configured for {self.base_url}")

    def __enter__(self) -> "GravityFormsClient":
        """Enter context."""
        self.logger.debug("Opening client session")
        self.session = requests.Session()
        self.session.auth = self.auth
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context."""
        if self.session:
            self.session.close()
            self.session = None
            self.logger.debug("Client session closed")
        else:
            self.logger.warning("No session to close")

    @backoff.on_exception(
        backoff.expo,
        (requests.exceptions.ConnectionError,),
        max_tries=APIConstants.BACKOFF_MAX_TRIES,
        factor=APIConstants.BACKOFF_FACTOR,
        max_value=APIConstants.BACKOFF_MAX_VALUE,
    )
    def _send(self, method: str, url: str, params: dict[str, Any] | None) -> requests.Response:
        if not self.session:
            raise RuntimeError("Client not initialized. Use context manager.")
        return self.session.request(method, url, params=params, timeout=APIConstants.REQUEST_TIMEOUT)

    def _make_request(self, method: str, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Make an API request and map failures to GFC exceptions.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            params: Query parameters

        Returns:
            Decoded JSON response

        """
        url = f"{self.base_url}{endpoint}"
        method_name = f"{method} {endpoint}"
        self.logger.debug(f"Making request: {method_name}")

        try:
            response = self._send(method, url, params)
        except requests.exceptions.Timeout:
            raise TimeoutError(method_name, APIConstants.REQUEST_TIMEOUT) from None
        except requests.exceptions.ConnectionError as e:
            raise ConnectionFailedError(method_name, str(e)) from e

        status = response.status_code
        if status == 200:
            try:
                return response.json()
            except ValueError:
                raise InvalidResponseError(f"{method_name} did not return JSON", response.text[:200]) from None

        body = response.text
        detail = _error_detail(response)
        suffix = f": {detail}" if detail else ""

        if status == 401:
            raise AuthenticationError(f"Consumer key rejected by {method_name}{suffix}", body)
        if status == 403:
            raise PermissionError(f"Consumer key lacks permission for {method_name}{suffix}", body)
        if status == 404:
            raise NotFoundError(f"Nothing found at {method_name}{suffix}", body)
        if status == 408:
            raise TimeoutError(method_name, APIConstants.REQUEST_TIMEOUT)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"Rate limited on {method_name}{suffix}",
                body,
                int(retry_after) if retry_after and retry_after.isdecimal() else None,
            )
        if status >= 500:
            raise APIError(status, f"Site error {status} on {method_name}{suffix}", body)
        raise APIError(status, f"Unexpected status {status} on {method_name}{suffix}", body)

    def list_forms(self) -> Any:
        """List active forms.

        Returns:
            Raw listing, an object keyed by form ID

        """
        self.logger.info("Fetching active forms list")
        return self._make_request("GET", "/forms")

    def get_form(self, form_id: int) -> dict[str, Any]:
        """Get a single form by ID, whatever its active or trash status.

        Raises:
            FormNotFoundError: If no form exists with this ID

        """
        try:
            return self._make_request("GET", f"/forms/{form_id}")
        except NotFoundError:
            raise FormNotFoundError(form_id) from None
