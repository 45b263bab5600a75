"""HTTP client for the identity and domain APIs.

Thin helpers over the request pipeline. The client never touches the
session store directly; host and token come in through the middlewares.
"""

from typing import Any

from .pipeline import (
    DEFAULT_TIMEOUT,
    ApiRequest,
    ApiResponse,
    HttpxTransport,
    Send,
    Surface,
    build_pipeline,
)
from .session import SessionStore

JSON_HEADERS = {"Content-Type": "application/json"}
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class ApiClient:
    """Client for both API surfaces.

    Use as an async context manager so the underlying HTTP connection pool
    is closed on exit.
    """

    def __init__(
        self,
        store: SessionStore,
        timeout: float = DEFAULT_TIMEOUT,
        insecure: bool = False,
        transport: Send | None = None,
    ):
        """Initialize client.

        Args:
            store: Session store the pipeline reads host and token from
            timeout: Request timeout in seconds
            insecure: Skip SSL certificate verification (like curl -k)
            transport: Custom send callable replacing the httpx transport
        """
        self.store = store
        self.timeout = timeout
        self._transport = transport or HttpxTransport(timeout=timeout, insecure=insecure)
        self._send = build_pipeline(store, self._transport)

    async def __aenter__(self) -> "ApiClient":
        """Enter async context."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context."""
        await self.aclose()

    async def aclose(self) -> None:
        close = getattr(self._transport, "aclose", None)
        if close is not None:
            await close()

    async def send(self, request: ApiRequest) -> ApiResponse:
        """Send a request through the pipeline.

        Raises:
            ApiError: On connection or HTTP errors
        """
        return await self._send(request)

    async def request(
        self,
        method: str,
        path: str,
        surface: Surface = Surface.API,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        form: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """Build and send a request.

        Args:
            method: HTTP method
            path: Path relative to the surface host
            surface: Identity or domain API
            headers: Extra headers
            params: Query parameters
            json: JSON body
            form: Form fields (sent URL-encoded)

        Returns:
            Decoded response
        """
        return await self.send(
            ApiRequest(
                method=method.upper(),
                path=path,
                surface=surface,
                headers=dict(headers or {}),
                params=dict(params or {}),
                json=json,
                form=form,
            )
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def get(
        self,
        path: str,
        surface: Surface = Surface.API,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        return await self.request("GET", path, surface, headers=headers, params=params)

    async def post_json(
        self,
        path: str,
        data: Any,
        surface: Surface = Surface.API,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """POST a JSON body; caller headers override the content type."""
        return await self.request(
            "POST", path, surface, headers={**JSON_HEADERS, **(headers or {})}, params=params, json=data
        )

    async def put_json(
        self,
        path: str,
        data: Any,
        surface: Surface = Surface.API,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """PUT a JSON body; caller headers override the content type."""
        return await self.request(
            "PUT", path, surface, headers={**JSON_HEADERS, **(headers or {})}, params=params, json=data
        )

    async def post_form_urlencoded(
        self,
        path: str,
        data: dict[str, Any],
        surface: Surface = Surface.AUTH,
    ) -> ApiResponse:
        """POST URL-encoded form fields (identity surface by default)."""
        return await self.request("POST", path, surface, headers=dict(FORM_HEADERS), form=data)
