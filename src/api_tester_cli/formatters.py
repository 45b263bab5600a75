"""CLI output formatting helpers.

Request, response and session panels. Display redaction is applied here,
at render time, and only when the session's redact mode is on.
"""

import json
from typing import Any

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from .endpoints import ENDPOINTS
from .errors import ApiError
from .pipeline import ApiResponse
from .redact import build_curl, display_headers, redact_response, truncate_token, with_query
from .session import SessionState, SessionStore

console = Console()

DEV_BANNER = "DEV ONLY - DO NOT EXPOSE IN PRODUCTION - DEVELOPMENT TOOL ONLY"


def _json_text(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def print_dev_banner() -> None:
    console.print(f"[bold white on red] ⚠ {DEV_BANNER} ⚠ [/bold white on red]")


def print_config_yaml(data: dict[str, Any], section: str | None = None) -> None:
    """Print config as YAML.

    Args:
        data: Configuration data
        section: Optional section name for header
    """
    if section:
        click.echo(f"{section}:")
        yaml_str = yaml.dump(data, default_flow_style=False, sort_keys=False)
        for line in yaml_str.splitlines():
            click.echo(f"  {line}")
    else:
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))


def print_env(state: SessionState) -> None:
    """Print the environment half of the session."""
    table = Table(title="Environment", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Auth host", state.auth_host)
    table.add_row("API host", state.api_host)
    table.add_row("EmpresaId", state.empresa_id or "-")
    table.add_row("UnidadeId", state.unidade_id or "-")
    table.add_row("SiteId", state.site_id or "-")
    table.add_row("X-Transaction-Id", state.x_transaction_id or "-")
    table.add_row("Redact mode", "on" if state.redact_mode else "off")
    console.print(table)


def print_session_status(store: SessionStore, show_token: bool = False) -> None:
    """Print token panel: masked token unless show_token, expiry countdown."""
    state = store.state
    if not state.token:
        console.print("[yellow]Not authenticated[/yellow]")
        return

    token = state.token if show_token else truncate_token(state.token)
    lines = [f"[bold]Token:[/bold] {escape(token)}"]
    if store.is_token_expired():
        lines.append("[red]Expired[/red]")
    else:
        lines.append(f"[bold]Expires in:[/bold] {store.seconds_remaining()}s")
    lines.append(f"[bold]Refresh token:[/bold] {'present' if state.refresh_token else 'absent'}")
    console.print(Panel("\n".join(lines), title="Session", expand=False))


def print_request_panel(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    query: dict[str, Any] | None = None,
    data: Any = None,
    include_secrets: bool = False,
    show_curl: bool = False,
) -> None:
    """Print the request summary and, optionally, its cURL export."""
    console.print(
        f"[bold]{method.upper()}[/bold] {escape(with_query(url, query, encode=False))}", soft_wrap=True
    )
    if headers:
        console.print("[bold]Headers[/bold]")
        console.print(
            _json_text(display_headers(headers, redact_secrets=not include_secrets)),
            markup=False,
            soft_wrap=True,
        )
    if data is not None:
        console.print("[bold]Body[/bold]")
        console.print(_json_text(data), markup=False, soft_wrap=True)
    if show_curl:
        if include_secrets:
            console.print("[yellow]⚠ cURL includes secrets[/yellow]")
        curl = build_curl(method, url, headers, query, data, redact_secrets=not include_secrets)
        console.print(Syntax(curl, "bash", word_wrap=True))


def render_payload(data: Any, redact: bool) -> Any:
    return redact_response(data) if redact else data


def print_response_panel(
    response: ApiResponse | None = None,
    error: ApiError | None = None,
    redact: bool = True,
) -> None:
    """Print the response (or error) body, display-redacted when asked."""
    if error is not None:
        status = error.status_code if error.status_code is not None else "Error"
        body = error.message
        if error.response_data is not None:
            body += "\n" + _json_text(render_payload(error.response_data, redact))
        console.print(Panel(Text(body), title=escape(f"Response [{status}]"), border_style="red", expand=False))
        return

    if response is None:
        console.print("[dim]No response yet. Run a request to see the result.[/dim]")
        return

    style = "green" if response.ok else "red"
    console.print(
        Panel(
            Text(_json_text(render_payload(response.data, redact))),
            title=escape(f"Response [{response.status}]"),
            border_style=style,
            expand=False,
        )
    )


def print_endpoints() -> None:
    """Print the endpoint registry."""
    table = Table(title="Endpoints")
    table.add_column("Name", style="bold")
    table.add_column("Method")
    table.add_column("Path")
    table.add_column("Requires")
    table.add_column("Description")
    for spec in ENDPOINTS.values():
        table.add_row(spec.name, spec.method, spec.path, ", ".join(spec.requires) or "-", spec.description)
    console.print(table)
