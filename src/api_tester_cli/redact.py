"""Redaction of sensitive values for logs, display and cURL export.

Two surfaces with different policies:

- Transport redaction (``redact_headers`` / ``redact_data``) runs on every
  outgoing header/body and every incoming body before it reaches a log.
  A key matching ``TRANSPORT_SENSITIVE_KEYS`` (case-insensitive, ``-`` and
  ``_`` stripped) has its value replaced by ``[REDACTED]``.
- Display redaction (``redact_response``) runs on demand on payloads shown
  to the user. A narrower field list is partially revealed or starred, and
  email-shaped text is masked anywhere it appears.

Both recurse through mappings and sequences. A matching key is redacted
whatever its value type; values of unexpected shape pass through unchanged.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

REDACTED = "[REDACTED]"
MASK = "***"
REDACTED_BEARER = "Bearer [REDACTED]"

# Strings longer than this are partially revealed instead of starred
REVEAL_THRESHOLD = 20
REVEAL_HEAD = 6
REVEAL_TAIL = 4

TRANSPORT_SENSITIVE_KEYS = (
    "authorization",
    "password",
    "token",
    "refreshtoken",
    "authtoken",
    "secret",
    "apikey",
    "cookie",
)

DISPLAY_SENSITIVE_FIELDS = (
    "token",
    "refreshToken",
    "authToken",
    "password",
    "senha",
    "email",
    "jti",
    "traceId",
    "cpf",
    "cnpj",
    "telefone",
    "celular",
)

EMAIL_PATTERN = re.compile(r"([a-zA-Z0-9._-]+)@([a-zA-Z0-9._-]+\.[a-zA-Z0-9_-]+)")

# Characters left unescaped by JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


# =============================================================================
# Transport / log redaction
# =============================================================================


def _normalize_key(key: Any) -> str:
    return str(key).lower().replace("-", "").replace("_", "")


def is_sensitive_key(key: Any) -> bool:
    """Whether a header or field name is on the transport deny-list."""
    normalized = _normalize_key(key)
    return any(sensitive in normalized for sensitive in TRANSPORT_SENSITIVE_KEYS)


def redact_headers(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Redact header values whose names are on the deny-list.

    Args:
        headers: Header mapping (may be None)

    Returns:
        New dict; sensitive values replaced by ``[REDACTED]``
    """
    if not headers:
        return {}
    return {
        key: REDACTED if is_sensitive_key(key) else value for key, value in headers.items()
    }


def redact_data(data: Any) -> Any:
    """Redact a request or response body for logging.

    Args:
        data: Arbitrary decoded payload

    Returns:
        Copy with sensitive keys replaced; scalars returned unchanged
    """
    if isinstance(data, Mapping):
        redacted: dict[Any, Any] = {}
        for key, value in data.items():
            if is_sensitive_key(key):
                redacted[key] = REDACTED
            else:
                redacted[key] = redact_data(value)
        return redacted
    if isinstance(data, (list, tuple)):
        return [redact_data(item) for item in data]
    return data


# =============================================================================
# Display redaction
# =============================================================================


def reveal_partially(value: str) -> str:
    """``abcdef...wxyz`` for long strings, ``***`` otherwise."""
    if len(value) > REVEAL_THRESHOLD:
        return f"{value[:REVEAL_HEAD]}...{value[-REVEAL_TAIL:]}"
    return MASK


def is_display_sensitive(key: Any) -> bool:
    """Whether a field name is on the display list (case-insensitive substring)."""
    lowered = str(key).lower()
    return any(field.lower() in lowered for field in DISPLAY_SENSITIVE_FIELDS)


def mask_emails(text: str) -> str:
    """Mask every email in text as ``first-local-char***@domain``."""
    return EMAIL_PATTERN.sub(lambda m: f"{m.group(1)[0]}{MASK}@{m.group(2)}", text)


def _mask_sensitive_value(value: Any) -> str:
    if isinstance(value, str) and value:
        return reveal_partially(value)
    return MASK


def redact_response(data: Any) -> Any:
    """Redact a payload for display.

    Sensitive fields: strings over 20 characters keep their first 6 and
    last 4 characters, anything else becomes ``***``. Emails in any other
    string are masked.

    Args:
        data: Arbitrary decoded payload

    Returns:
        Redacted copy
    """
    if isinstance(data, Mapping):
        redacted: dict[Any, Any] = {}
        for key, value in data.items():
            if is_display_sensitive(key):
                redacted[key] = _mask_sensitive_value(value)
            else:
                redacted[key] = redact_response(value)
        return redacted
    if isinstance(data, (list, tuple)):
        return [redact_response(item) for item in data]
    if isinstance(data, str):
        return mask_emails(data)
    return data


def truncate_token(token: str | None) -> str:
    """Render a standalone token for display."""
    if not token:
        return ""
    return reveal_partially(token)


# =============================================================================
# cURL export
# =============================================================================


def _query_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query_string(query: Mapping[str, Any] | None, encode: bool = True) -> str:
    """Serialize query params the way the console shows and exports them.

    ``None`` and empty-string values are dropped; sequences expand into
    repeated ``key=value`` pairs.

    Args:
        query: Query parameter mapping
        encode: Percent-encode values (cURL) or leave them readable (panels)

    Returns:
        Query string without the leading ``?``
    """
    if not query:
        return ""

    def fmt(key: str, value: Any) -> str:
        text = _query_scalar(value)
        return f"{key}={quote(text, safe=_URI_COMPONENT_SAFE) if encode else text}"

    parts: list[str] = []
    for key, value in query.items():
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple)):
            parts.append("&".join(fmt(key, item) for item in value))
        else:
            parts.append(fmt(key, value))
    return "&".join(parts)


def with_query(url: str, query: Mapping[str, Any] | None, encode: bool = True) -> str:
    """Append a serialized query string to a URL."""
    query_string = build_query_string(query, encode=encode)
    if not query_string:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query_string}"


def display_headers(
    headers: Mapping[str, str] | None, redact_secrets: bool = True
) -> dict[str, str]:
    """Headers as shown in the request panel and the cURL export.

    Only the Authorization header is touched: it becomes
    ``Bearer [REDACTED]`` when redacting.
    """
    processed = dict(headers or {})
    if redact_secrets:
        for key, value in processed.items():
            if key.lower() == "authorization" and value:
                processed[key] = REDACTED_BEARER
    return processed


def _shell_single_quote(text: str) -> str:
    return "'" + text.replace("'", "'\\''") + "'"


def build_curl(
    method: str,
    url: str,
    headers: Mapping[str, str] | None = None,
    query: Mapping[str, Any] | None = None,
    data: Any = None,
    redact_secrets: bool = True,
) -> str:
    """Build a copy-pasteable cURL command.

    The body is exported as-is: callers that opt out of redaction get the
    full payload.

    Args:
        method: HTTP method
        url: Fully qualified URL (without query string)
        headers: Request headers
        query: Query parameters
        data: Body (str sent verbatim, anything else JSON-encoded)
        redact_secrets: Replace the bearer credential with a placeholder

    Returns:
        Multi-line shell command
    """
    lines = [f"curl -X {method.upper()}"]

    for key, value in display_headers(headers, redact_secrets).items():
        lines.append(f'-H "{key}: {value}"')

    if data is not None and data != "":
        body = data if isinstance(data, str) else json.dumps(data, indent=2, ensure_ascii=False)
        lines.append(f"-d {_shell_single_quote(body)}")

    lines.append(f'"{with_query(url, query)}"')
    return " \\\n  ".join(lines)
