"""
Network Gateway

The one place every outbound call to the storefront backend goes through.
Attaches the bearer token to internal API calls, defaults JSON payloads,
insists on JSON responses and turns every outcome into a Result instead of
raising. No retries, no backoff, no caching: each call is attempted once.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

import httpx

from storefront.config import settings
from storefront.core.token import TokenHolder

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Why a gateway call failed"""
    TRANSPORT = "transport"      # network unreachable, timeout
    PROTOCOL = "protocol"        # response was not the content type we asked for
    HTTP = "http"                # any other non-2xx status
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"        # 409, e.g. refund details already submitted
    VALIDATION = "validation"    # request payload rejected before sending


class GatewayError(Exception):
    """A failed gateway call; raised only by Result.unwrap()"""

    def __init__(self, kind: ErrorKind, message: str, status_code: Optional[int] = None,
                 body: Any = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message


@dataclass
class Result(Generic[T]):
    """Outcome of a gateway call: either a value or an error, never both"""
    value: Optional[T] = None
    error: Optional[GatewayError] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any, status_code: Optional[int] = None) -> "Result":
        return cls(value=value, status_code=status_code)

    @classmethod
    def failure(cls, error: GatewayError) -> "Result":
        return cls(error=error, status_code=error.status_code)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


def _kind_for_status(status_code: int) -> ErrorKind:
    if status_code == 409:
        return ErrorKind.CONFLICT
    if status_code in (401, 403):
        return ErrorKind.UNAUTHORIZED
    return ErrorKind.HTTP


class NetworkGateway:
    """
    Uniform outbound request handling.

    Usage:
        gateway = NetworkGateway(token_holder)
        result = gateway.post("/auth/login", json={"email": e, "password": p})
        if result.ok:
            token = result.value["token"]
        else:
            show(result.error.message)

    A pre-built httpx.Client may be injected (tests pass a FastAPI TestClient).
    """

    def __init__(
        self,
        token_holder: TokenHolder,
        api_url: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
        internal_markers: Optional[list] = None,
    ):
        self.token_holder = token_holder
        self.api_url = (api_url or settings.API_URL).rstrip("/")
        self.internal_markers = list(internal_markers if internal_markers is not None else settings.internal_markers)
        self._owns_client = client is None
        self._http_client = client or httpx.Client(timeout=timeout or settings.HTTP_TIMEOUT)

    def close(self) -> None:
        """Close the HTTP client if the gateway created it"""
        if self._owns_client:
            self._http_client.close()

    def __enter__(self) -> "NetworkGateway":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def url_for(self, target: str) -> str:
        """Absolute URLs pass through; paths are joined onto the API base URL"""
        if target.startswith("http://") or target.startswith("https://"):
            return target
        return f"{self.api_url}/{target.lstrip('/')}"

    def is_internal(self, url: str) -> bool:
        if url.startswith(self.api_url):
            return True
        return any(marker in url for marker in self.internal_markers)

    def _build_headers(self, url: str, headers: Optional[Dict[str, str]], raw_body: bool) -> httpx.Headers:
        out = httpx.Headers(headers or {})

        token = self.token_holder.get()
        if token and self.is_internal(url):
            out["Authorization"] = f"Bearer {token}"
            logger.debug("Attaching Authorization header for %s (token %s...)", url, token[:10])
        elif not token:
            logger.debug("No auth token available for %s", url)

        # multipart, form and raw bytes keep the content type the transport picks
        if not raw_body and "content-type" not in out:
            out["Content-Type"] = "application/json"
        return out

    def request(
        self,
        target: str,
        method: str = "GET",
        json: Any = None,
        content: Optional[bytes] = None,
        files: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        expect: str = "json",
    ) -> Result:
        """
        Perform one request.

        Args:
            target: absolute URL or a path under the API base URL
            json: JSON-serializable payload
            content: raw bytes payload (content type left to the caller/transport)
            files: multipart upload, passed through to httpx
            expect: "json" (default) or "bytes" for octet-stream downloads

        Returns:
            Result with the parsed JSON body (or bytes), or an error
        """
        url = self.url_for(target)
        raw_body = files is not None or data is not None or isinstance(content, (bytes, bytearray))
        request_headers = self._build_headers(url, headers, raw_body)

        try:
            response = self._http_client.request(
                method.upper(),
                url,
                headers=request_headers,
                json=json,
                content=content,
                files=files,
                data=data,
                params=params,
            )
        except httpx.TransportError as exc:
            logger.error("Request to %s failed: %s", url, exc)
            return Result.failure(GatewayError(ErrorKind.TRANSPORT, f"Network error: {exc}"))

        return self._handle_response(url, response, expect)

    def _handle_response(self, url: str, response: httpx.Response, expect: str) -> Result:
        status_code = response.status_code
        content_type = response.headers.get("content-type") or ""

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = response.text or None
            message = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message")
            elif isinstance(body, str):
                message = body
            message = str(message or f"Request failed: {status_code}")
            logger.error("Request to %s failed: %s - %s", url, status_code, message)
            return Result.failure(GatewayError(_kind_for_status(status_code), message, status_code, body))

        if expect == "bytes":
            if "application/octet-stream" not in content_type:
                return Result.failure(GatewayError(
                    ErrorKind.PROTOCOL,
                    f"Expected octet-stream, received {content_type or 'no content-type'}",
                    status_code,
                    response.text,
                ))
            return Result.success(response.content, status_code)

        if "application/json" not in content_type:
            if not response.content:
                return Result.success(None, status_code)
            logger.warning("Unexpected %s response from %s", content_type or "untyped", url)
            return Result.failure(GatewayError(
                ErrorKind.PROTOCOL,
                f"Expected JSON, received {content_type or 'no content-type'}",
                status_code,
                response.text,
            ))

        try:
            return Result.success(response.json(), status_code)
        except ValueError:
            return Result.failure(GatewayError(
                ErrorKind.PROTOCOL, "Response declared JSON but could not be parsed", status_code, response.text
            ))

    def get(self, target: str, **kwargs) -> Result:
        return self.request(target, method="GET", **kwargs)

    def post(self, target: str, **kwargs) -> Result:
        return self.request(target, method="POST", **kwargs)

    def put(self, target: str, **kwargs) -> Result:
        return self.request(target, method="PUT", **kwargs)

    def delete(self, target: str, **kwargs) -> Result:
        return self.request(target, method="DELETE", **kwargs)
