"""
HTTP API Client - Low-level JSON-over-HTTP client for a domain service.

This handles the raw HTTP communication. The HttpTransportClient uses it
to implement the TransportClientPort.
"""

import logging
import time
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from ...core.domain.entities import ValidationResult
from ...core.domain.enums import OperationErrorStatus
from ...core.exceptions import DomainException, DomainOperationError, TransportError
from .retry import RETRYABLE_STATUS_CODES, calculate_delay, get_retry_after


class HttpApiClient:
    """
    Low-level domain service HTTP client.

    Handles request/response, retries and error mapping.

    Features:
    - Automatic retry with exponential backoff for transient failures
    - Retry-After support for rate limited responses
    - Connection pooling for performance
    - Remote DomainException payloads surfaced as DomainException
    """

    # Default retry configuration
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_INITIAL_DELAY = 1.0
    DEFAULT_MAX_DELAY = 60.0
    DEFAULT_BACKOFF_FACTOR = 2.0
    DEFAULT_JITTER = 0.1

    # Connection pool settings
    DEFAULT_POOL_CONNECTIONS = 10
    DEFAULT_POOL_MAXSIZE = 10
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        jitter: float = DEFAULT_JITTER,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service URL (e.g., https://example.com/Services/Orders)
            headers: Extra headers sent with every request
            max_retries: Maximum retry attempts for transient failures
            initial_delay: Initial retry delay in seconds
            max_delay: Maximum retry delay in seconds
            backoff_factor: Multiplier for exponential backoff
            jitter: Random jitter factor (0.1 = 10%)
            timeout: Request timeout in seconds
            verify_ssl: Verify TLS certificates
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.logger = logging.getLogger("HttpApiClient")

        # Retry configuration
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            **(headers or {}),
        }

        # Configure session with connection pooling
        self._session = requests.Session()
        self._session.headers.update(self.headers)
        self._session.verify = verify_ssl

        adapter = HTTPAdapter(
            pool_connections=self.DEFAULT_POOL_CONNECTIONS,
            pool_maxsize=self.DEFAULT_POOL_MAXSIZE,
        )
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    # -------------------------------------------------------------------------
    # Core Request Methods
    # -------------------------------------------------------------------------

    def request(
        self,
        method: str,
        endpoint: str,
        **kwargs: Any,
    ) -> dict[str, Any] | list[Any]:
        """
        Make a request to the service with retry.

        Args:
            method: HTTP method
            endpoint: Operation endpoint (e.g., 'GetOrders')
            **kwargs: Additional arguments for requests

        Returns:
            JSON response (dict or list)

        Raises:
            DomainException: When the service reports a business error
            DomainOperationError: On client errors (validation, auth, not found, conflict)
            TransportError: On connection failures and server errors
        """
        if endpoint.startswith("http"):
            url = endpoint
        else:
            url = f"{self.base_url}/{endpoint.lstrip('/')}"

        last_exception: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                if "timeout" not in kwargs:
                    kwargs["timeout"] = self.timeout

                response = self._session.request(method, url, **kwargs)

                if response.status_code in RETRYABLE_STATUS_CODES:
                    retry_after = get_retry_after(response)
                    delay = self._calculate_delay(attempt, retry_after=retry_after)

                    if attempt < self.max_retries:
                        self.logger.warning(
                            f"Retryable error {response.status_code} on {method} {endpoint}, "
                            f"attempt {attempt + 1}/{self.max_retries + 1}, "
                            f"retrying in {delay:.2f}s"
                        )
                        time.sleep(delay)
                        continue

                    raise TransportError(
                        f"Service error {response.status_code} for {endpoint}",
                        status_code=response.status_code,
                    )

                return self._handle_response(response, endpoint)

            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                last_exception = e
                timed_out = isinstance(e, requests.exceptions.Timeout)
                kind = "Timeout" if timed_out else "Connection error"
                if attempt < self.max_retries:
                    delay = self._calculate_delay(attempt)
                    self.logger.warning(f"{kind} on {method} {endpoint}, retrying in {delay:.2f}s")
                    time.sleep(delay)
                    continue
                raise TransportError(f"{kind} talking to {url}: {e}", cause=e)

        raise TransportError(
            f"Request failed after {self.max_retries + 1} attempts", cause=last_exception
        )

    def get(self, endpoint: str, **kwargs: Any) -> dict[str, Any] | list[Any]:
        """Perform a GET request."""
        return self.request("GET", endpoint, **kwargs)

    def post(
        self,
        endpoint: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any] | list[Any]:
        """Perform a POST request."""
        return self.request("POST", endpoint, json=json, **kwargs)

    def _calculate_delay(self, attempt: int, retry_after: int | None = None) -> float:
        return calculate_delay(
            attempt,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_factor=self.backoff_factor,
            jitter=self.jitter,
            retry_after=retry_after,
        )

    # -------------------------------------------------------------------------
    # Response Handling
    # -------------------------------------------------------------------------

    def _handle_response(
        self, response: requests.Response, endpoint: str
    ) -> dict[str, Any] | list[Any]:
        """Handle API response and convert errors to typed exceptions."""
        if response.ok:
            if response.text:
                try:
                    json_data = response.json()
                except ValueError as e:
                    raise TransportError(
                        f"Malformed JSON response from {endpoint}",
                        status_code=response.status_code,
                        cause=e,
                    )
                if isinstance(json_data, (dict, list)):
                    return json_data
                return {"return_value": json_data}
            return {}

        code = response.status_code
        error = self._error_payload(response)
        message = error.get("message") or (response.text[:500] if response.text else "")

        if error.get("type") == "DomainException":
            raise DomainException(
                message,
                error_code=int(error.get("error_code", 0) or 0),
                stack_trace=error.get("stack_trace"),
            )

        status = OperationErrorStatus.from_http_status(code)
        if status is OperationErrorStatus.SERVER_ERROR:
            raise TransportError(
                f"Service error {code} for {endpoint}: {message}", status_code=code
            )

        raise DomainOperationError(
            message or f"{status.name} for {endpoint}",
            status=status,
            validation_errors=[
                ValidationResult.from_dict(item) for item in error.get("validation_errors", [])
            ],
            error_code=int(error.get("error_code", 0) or 0),
            stack_trace=error.get("stack_trace"),
        )

    @staticmethod
    def _error_payload(response: requests.Response) -> dict[str, Any]:
        """Extract the ``error`` object of a failed response, if it has one."""
        if not response.text:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            return body["error"]
        return {}

    def close(self) -> None:
        self._session.close()
