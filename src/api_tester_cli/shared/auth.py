"""Bearer header helpers.

Tokens are opaque strings: no decoding, no signature checks.
"""

from collections.abc import Mapping

AUTHORIZATION_HEADER = "Authorization"


def auth_headers(token: str | None) -> dict[str, str]:
    """Build Authorization header dict.

    Args:
        token: Bearer token string

    Returns:
        Dict with Authorization header, or empty dict if no token
    """
    if token:
        return {AUTHORIZATION_HEADER: f"Bearer {token}"}
    return {}


def has_authorization(headers: Mapping[str, str] | None) -> bool:
    """Whether headers already carry an explicit, non-empty Authorization.

    Header names compare case-insensitively, as HTTP does.
    """
    if not headers:
        return False
    return any(
        key.lower() == AUTHORIZATION_HEADER.lower() and bool(value)
        for key, value in headers.items()
    )
