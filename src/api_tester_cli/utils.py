"""CLI utility functions."""

import json
from pathlib import Path
from typing import Any

import yaml


def _parse_value(raw: str) -> Any:
    # JSON for numbers, booleans, arrays; plain string otherwise
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_params(param_flags: tuple[str, ...]) -> dict[str, Any]:
    """Parse query/path params from repeated KEY=VALUE flags.

    A key given more than once collects its values into a list, which the
    query serializer expands into repeated ``key=value`` pairs.

    Args:
        param_flags: Tuple of KEY=VALUE strings

    Returns:
        Dictionary of params

    Raises:
        ValueError: A flag without ``=``
    """
    params: dict[str, Any] = {}
    for param_str in param_flags:
        if "=" not in param_str:
            raise ValueError(f"Invalid param format: {param_str}. Expected KEY=VALUE")

        key, value = param_str.split("=", 1)
        parsed = _parse_value(value)
        if key in params:
            existing = params[key]
            params[key] = (existing if isinstance(existing, list) else [existing]) + [parsed]
        else:
            params[key] = parsed
    return params


def parse_headers(header_flags: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``"Name: value"`` header flags.

    Raises:
        ValueError: A flag without ``:`` or with an empty name
    """
    headers: dict[str, str] = {}
    for header_str in header_flags:
        name, sep, value = header_str.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Invalid header format: {header_str}. Expected \"Name: value\"")
        headers[name.strip()] = value.strip()
    return headers


def parse_body(data: str | None, data_file: str | None) -> Any:
    """Parse a request body from an inline JSON string or a JSON/YAML file.

    Args:
        data: Inline JSON
        data_file: Path to JSON/YAML file

    Returns:
        Decoded body, or None when neither is given

    Raises:
        ValueError: Invalid JSON or unsupported file format
    """
    if data_file:
        file_path = Path(data_file)
        with file_path.open() as f:
            if file_path.suffix in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif file_path.suffix == ".json":
                return json.load(f)
            else:
                raise ValueError(f"Unsupported body file format: {file_path.suffix}")

    if data is None:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON body: {e}") from e
