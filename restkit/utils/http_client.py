"""Minimal HTTP request dispatcher with a mocking facility for tests.

``RestClient`` builds a request from a method, URL, body and headers and
sends it on a ``requests`` session. A ``MockRegistry`` handed to the client
short-circuits dispatch with canned responses while mocking is enabled:

    mocks = MockRegistry()
    mocks.enable()
    mocks.register(Mock(http_method="GET", url=url, response=make_response(200, {"id": 1})))
    client = RestClient(mocks=mocks)
    client.get(url).json()  # {"id": 1}, no network I/O
"""

import json
import threading
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import ClientConfig
from ..models import DecodeError, RestError
from .logger import get_logger

logger = get_logger(__name__)

# Default body: send no payload at all. An explicit None is sent as JSON null.
NO_BODY: Any = object()


class HTTPError(Exception):
    """Base exception for request dispatch errors."""

    def __init__(self, message: str, method: str | None = None, url: str | None = None):
        self.method = method
        self.url = url
        super().__init__(message)


class SerializationError(HTTPError):
    """The request body could not be encoded as JSON."""

    pass


class TransportError(HTTPError):
    """The underlying transport failed (connection, timeout, bad URL...)."""

    def __init__(
        self,
        message: str,
        method: str | None = None,
        url: str | None = None,
        cause: Exception | None = None,
    ):
        self.cause = cause
        super().__init__(message, method=method, url=url)


class NoMockFoundError(HTTPError):
    """Mocking is enabled but nothing is registered for the request."""

    pass


def mock_key(http_method: str, url: str) -> str:
    """Composite identity of a mock: ``METHOD_url``."""
    return f"{http_method.upper()}_{url}"


class Mock(BaseModel):
    """A canned response (or error) for one method and URL."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    url: str = Field(..., description="Exact request URL to match")
    http_method: str = Field(..., description="HTTP method to match")
    response: requests.Response | None = Field(None, description="Response returned on match")
    error: Exception | None = Field(None, description="Exception raised on match instead")

    @field_validator("http_method")
    @classmethod
    def validate_http_method(cls, v: str) -> str:
        """Uppercase the method so lookups are case-insensitive."""
        return v.strip().upper()

    @model_validator(mode="after")
    def validate_outcome(self) -> "Mock":
        """Require a response or an error to hand back on match."""
        if self.response is None and self.error is None:
            raise ValueError("mock needs a response or an error")
        return self

    @property
    def key(self) -> str:
        return mock_key(self.http_method, self.url)


class MockRegistry:
    """Registry of mocks plus the switch that turns mocking on.

    Owned by the caller (usually a test fixture) and handed to a RestClient.
    Safe to use from several threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._mocks: dict[str, Mock] = {}
        self._enabled = False

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    def enable(self) -> None:
        """Route requests through registered mocks."""
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        """Send requests over the network again. Registered mocks are kept."""
        with self._lock:
            self._enabled = False

    def register(self, mock: Mock) -> None:
        """Store a mock, replacing any previous one for the same method and URL."""
        with self._lock:
            self._mocks[mock.key] = mock

    def clear(self) -> None:
        """Drop all registered mocks. The enabled flag is left as is."""
        with self._lock:
            self._mocks = {}

    def lookup(self, http_method: str, url: str) -> Mock | None:
        with self._lock:
            return self._mocks.get(mock_key(http_method, url))

    def __len__(self) -> int:
        with self._lock:
            return len(self._mocks)


def make_response(
    status_code: int = 200,
    body: Any = None,
    headers: Mapping[str, str] | None = None,
    url: str | None = None,
) -> requests.Response:
    """Build a ``requests.Response`` to use as a mock's canned response.

    Args:
        status_code: HTTP status of the response
        body: str or bytes (verbatim), None (empty) or any other JSON value
        headers: Response headers
        url: URL reported by the response

    Returns:
        A response whose ``content``, ``text`` and ``json()`` work offline
    """
    response = requests.Response()
    response.status_code = status_code
    try:
        response.reason = HTTPStatus(status_code).phrase
    except ValueError:
        response.reason = ""

    if body is None:
        content = b""
    elif isinstance(body, str):
        content = body.encode("utf-8")
    elif isinstance(body, (bytes, bytearray)):
        content = bytes(body)
    else:
        content = json.dumps(body, allow_nan=False).encode("utf-8")
        response.headers["Content-Type"] = "application/json"

    if headers:
        response.headers.update(headers)
    response._content = content
    response.encoding = "utf-8"
    response.url = url or ""
    return response


def parse_rest_error(response: requests.Response) -> RestError | None:
    """Extract a RestError from an error response.

    Returns None for successful (< 400) responses. Bodies that are not a
    RestError payload are reported with the response status and text.
    """
    if response.status_code < 400:
        return None
    try:
        return RestError.from_bytes(response.content)
    except DecodeError:
        logger.debug("rest_error_body_not_decoded", status_code=response.status_code)
        return RestError.new(response.status_code, response.text or response.reason or "")


class RestClient:
    """Sends requests with JSON or string bodies, or serves them from mocks.

    Features:
    - String and bytes bodies are sent verbatim, anything else as JSON
    - Optional retry with exponential backoff on transport errors
    - Canned responses from a MockRegistry while mocking is enabled
    """

    def __init__(
        self,
        timeout: float | None = None,
        max_attempts: int = 1,
        backoff_multiplier: float = 2.0,
        mocks: MockRegistry | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize the client.

        Args:
            timeout: Request timeout in seconds, None to wait indefinitely
            max_attempts: Attempts per request when the transport fails
            backoff_multiplier: Multiplier for exponential backoff
            mocks: Registry consulted while mocking is enabled
            session: Session to send requests on (a new one by default)
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got: {max_attempts}")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier
        self.mocks = mocks
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: ClientConfig, mocks: MockRegistry | None = None) -> "RestClient":
        return cls(
            timeout=config.timeout,
            max_attempts=config.max_attempts,
            backoff_multiplier=config.backoff_multiplier,
            mocks=mocks,
        )

    def _mocking(self) -> bool:
        return self.mocks is not None and self.mocks.enabled

    def _mock_response(self, method: str, url: str) -> requests.Response:
        """Serve a request from the mock registry."""
        assert self.mocks is not None  # Checked by _mocking
        mock = self.mocks.lookup(method, url)
        if mock is None:
            raise NoMockFoundError(
                f"No mock found for {method} {url}", method=method, url=url
            )
        logger.debug("http_mock_hit", method=method, url=url, has_error=mock.error is not None)
        if mock.error is not None:
            raise mock.error
        assert mock.response is not None  # Checked by Mock
        return mock.response

    def _encode_body(self, method: str, url: str, body: Any) -> bytes | None:
        """Encode a request body: str/bytes verbatim, anything else (None included) as JSON."""
        if body is NO_BODY:
            return None
        if isinstance(body, str):
            return body.encode("utf-8")
        if isinstance(body, (bytes, bytearray)):
            return bytes(body)
        try:
            return json.dumps(body, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Cannot encode request body as JSON: {e}", method=method, url=url
            ) from e

    def _send_once(
        self,
        method: str,
        url: str,
        data: Any,
        headers: Mapping[str, str] | None,
    ) -> requests.Response:
        """Make a single HTTP request, wrapping transport failures."""
        try:
            return self.session.request(
                method,
                url,
                data=data,
                headers=dict(headers) if headers else None,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request failed: {e}", method=method, url=url, cause=e) from e

    def _send(
        self,
        method: str,
        url: str,
        data: Any,
        headers: Mapping[str, str] | None,
    ) -> requests.Response:
        logger.debug("http_request", method=method, url=url)
        retrying = Retrying(
            retry=retry_if_exception_type(TransportError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_multiplier, min=0, max=30),
            reraise=True,
        )
        response = retrying(self._send_once, method, url, data, headers)
        logger.debug(
            "http_response",
            method=method,
            url=url,
            status_code=response.status_code,
        )
        return response

    def request(
        self,
        method: str,
        url: str,
        body: Any = NO_BODY,
        headers: Mapping[str, str] | None = None,
    ) -> requests.Response:
        """Send a request and return the raw response.

        Args:
            method: HTTP method (case-insensitive)
            url: Target URL
            body: str or bytes sent verbatim, anything else JSON encoded
                (None becomes null). Omit it to send no payload
            headers: Request headers

        Returns:
            The response, whatever its status code

        Raises:
            NoMockFoundError: Mocking is enabled and no mock matches
            SerializationError: The body cannot be JSON encoded
            TransportError: The request could not be completed
        """
        method = method.upper()
        if self._mocking():
            return self._mock_response(method, url)
        data = self._encode_body(method, url, body)
        return self._send(method, url, data, headers)

    def post_form(
        self,
        url: str,
        form_values: Mapping[str, str | list[str]],
        headers: Mapping[str, str] | None = None,
    ) -> requests.Response:
        """POST ``form_values`` URL-encoded as the request body.

        List values are encoded as repeated keys.
        """
        method = "POST"
        if self._mocking():
            return self._mock_response(method, url)
        return self._send(method, url, dict(form_values), headers)

    def get(self, url: str, headers: Mapping[str, str] | None = None) -> requests.Response:
        return self.request("GET", url, headers=headers)

    def post(self, url: str, body: Any = NO_BODY, headers: Mapping[str, str] | None = None) -> requests.Response:
        return self.request("POST", url, body, headers)

    def put(self, url: str, body: Any = NO_BODY, headers: Mapping[str, str] | None = None) -> requests.Response:
        return self.request("PUT", url, body, headers)

    def patch(self, url: str, body: Any = NO_BODY, headers: Mapping[str, str] | None = None) -> requests.Response:
        return self.request("PATCH", url, body, headers)

    def delete(self, url: str, body: Any = NO_BODY, headers: Mapping[str, str] | None = None) -> requests.Response:
        return self.request("DELETE", url, body, headers)

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()

    def __enter__(self) -> "RestClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
