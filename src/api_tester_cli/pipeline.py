"""Request pipeline for both API surfaces.

A plain async ``send(request) -> response`` callable (``HttpxTransport``)
is wrapped by a chain of middlewares:

1. ``resolve_host`` - pick the identity or domain base URL from the store
2. ``attach_auth`` - add ``Authorization: Bearer <token>`` unless present
3. ``log_exchange`` - structured, transport-redacted request/response logs

Middlewares only read the session store; none of them mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import httpx

from .errors import ApiError, map_http_error, map_transport_error
from .redact import redact_data, redact_headers
from .shared.auth import auth_headers, has_authorization
from .shared.logging import get_logger

if TYPE_CHECKING:
    from .session import SessionStore

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class Surface(str, Enum):
    """The two independent API hosts."""

    AUTH = "auth"  # Identity surface
    API = "api"  # Domain surface


@dataclass
class ApiRequest:
    """Outgoing call, before or after host resolution."""

    method: str
    path: str
    surface: Surface = Surface.API
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    json: Any = None
    form: dict[str, Any] | None = None
    base_url: str | None = None

    @property
    def url(self) -> str:
        """Fully qualified URL without the query string."""
        if self.path.startswith(("http://", "https://")):
            return self.path
        base = (self.base_url or "").rstrip("/")
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"{base}{path}"

    @property
    def body(self) -> Any:
        return self.json if self.json is not None else self.form


@dataclass
class ApiResponse:
    """Decoded response."""

    status: int
    data: Any
    headers: dict[str, str] = field(default_factory=dict)
    request: ApiRequest | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


Send = Callable[[ApiRequest], Awaitable[ApiResponse]]
Middleware = Callable[[ApiRequest, Send], Awaitable[ApiResponse]]


def compose(send: Send, *middlewares: Middleware) -> Send:
    """Wrap ``send`` so the first middleware runs first."""
    handler = send
    for middleware in reversed(middlewares):
        handler = _bind(middleware, handler)
    return handler


def _bind(middleware: Middleware, call_next: Send) -> Send:
    async def handler(request: ApiRequest) -> ApiResponse:
        return await middleware(request, call_next)

    return handler


# =============================================================================
# Middlewares
# =============================================================================


def resolve_host(store: SessionStore) -> Middleware:
    """Set the base URL from the store according to the request surface."""

    async def middleware(request: ApiRequest, call_next: Send) -> ApiResponse:
        state = store.state
        base_url = state.auth_host if request.surface is Surface.AUTH else state.api_host
        return await call_next(replace(request, base_url=base_url))

    return middleware


def attach_auth(store: SessionStore) -> Middleware:
    """Inject the stored bearer token unless the call carries its own."""

    async def middleware(request: ApiRequest, call_next: Send) -> ApiResponse:
        token = store.state.token
        if token and not has_authorization(request.headers):
            request = replace(request, headers={**request.headers, **auth_headers(token)})
        return await call_next(request)

    return middleware


def log_exchange(log: Any = None) -> Middleware:
    """Log every request and its outcome with transport redaction applied."""
    log = log or logger

    async def middleware(request: ApiRequest, call_next: Send) -> ApiResponse:
        method = request.method.upper()
        url = request.url
        log.info(
            "api.request",
            method=method,
            url=url,
            params=redact_data(request.params) or None,
            headers=redact_headers(request.headers),
            data=redact_data(request.body),
        )
        try:
            response = await call_next(request)
        except ApiError as e:
            if e.has_response:
                log.error(
                    "api.error",
                    method=method,
                    url=url,
                    message=e.message,
                    status=e.status_code,
                )
            raise
        log.info(
            "api.response",
            method=method,
            url=url,
            status=response.status,
            data=redact_data(response.data),
        )
        return response

    return middleware


# =============================================================================
# Transport
# =============================================================================


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpxTransport:
    """Plain HTTP call over ``httpx.AsyncClient``.

    Raises ``ApiError`` for HTTP status >= 400 (with status and payload) and
    for connection failures (without a status).
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        insecure: bool = False,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize transport.

        Args:
            timeout: Request timeout in seconds
            insecure: Skip SSL certificate verification (like curl -k)
            client: Pre-built client (tests inject one with a MockTransport)
        """
        self.timeout = timeout
        self.insecure = insecure
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> HttpxTransport:
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                verify=not self.insecure,
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __call__(self, request: ApiRequest) -> ApiResponse:
        client = self._ensure_client()
        url = request.url
        kwargs: dict[str, Any] = {
            "headers": request.headers,
            "params": {k: v for k, v in request.params.items() if v is not None and v != ""},
        }
        if request.json is not None:
            kwargs["json"] = request.json
        elif request.form is not None:
            kwargs["data"] = {key: _form_value(value) for key, value in request.form.items()}

        try:
            response = await client.request(request.method.upper(), url, **kwargs)
        except httpx.TimeoutException as e:
            raise map_transport_error(str(e), url, is_timeout=True) from e
        except httpx.TransportError as e:
            raise map_transport_error(str(e), url) from e

        data = _decode_body(response)
        if response.status_code >= 400:
            raise map_http_error(response.status_code, data, url)

        return ApiResponse(
            status=response.status_code,
            data=data,
            headers=dict(response.headers),
            request=request,
        )


def build_pipeline(store: SessionStore, transport: Send, log: Any = None) -> Send:
    """Standard chain: resolve host, attach auth, log, then send."""
    return compose(transport, resolve_host(store), attach_auth(store), log_exchange(log))
