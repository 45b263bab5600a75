"""CLI main entry point."""

import asyncio
import json
import sys
from dataclasses import replace
from typing import Any, NoReturn

import click
import questionary
from rich.console import Console
from rich.markup import escape

from . import __version__
from .client import ApiClient
from .config import CONFIG_KEYS, load_config, save_config, unset_config
from .endpoints import ENDPOINTS, build_domain_request, get_endpoint
from .errors import ApiError, ConsoleError
from .formatters import (
    console,
    print_config_yaml,
    print_dev_banner,
    print_endpoints,
    print_env,
    print_request_panel,
    print_response_panel,
    print_session_status,
    render_payload,
)
from .lifecycle import (
    DEFAULT_EXPIRY_CHECK_INTERVAL,
    DEFAULT_PLATFORM,
    EXPIRED_NOTICE,
    LOGIN_SUCCESS,
    LOGOUT_NOTICE,
    REFRESH_SUCCESS,
    AuthController,
    ExpiryWatcher,
    LoginCredentials,
    expire_if_needed,
)
from .pipeline import Surface
from .redact import truncate_token
from .session import SessionStore
from .shared.auth import auth_headers, has_authorization
from .shared.logging import configure_logging
from .storage import FileSessionStorage
from .utils import parse_body, parse_headers, parse_params

err_console = Console(stderr=True)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
    sys.exit(1)


def _notice(message: str) -> None:
    err_console.print(f"[yellow]{escape(message)}[/yellow]", highlight=False)


def _store(ctx: click.Context) -> SessionStore:
    return ctx.obj["store"]


def _client(ctx: click.Context) -> ApiClient:
    return ApiClient(
        _store(ctx),
        timeout=ctx.obj["config"].timeout,
        insecure=ctx.obj.get("insecure", False),
        transport=ctx.obj.get("transport"),
    )


@click.group()
@click.option("--session", "session_id", help="Session slot id (default: current terminal)")
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--log-file", type=click.Path(), help="Write logs to a file")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON")
@click.option("-k", "--insecure", is_flag=True, help="Skip TLS certificate verification")
@click.pass_context
def cli(
    ctx: click.Context,
    session_id: str | None,
    verbose: int,
    json_output: bool,
    log_file: str | None,
    log_json: bool,
    insecure: bool,
) -> None:
    """API testing console for the identity and domain APIs."""
    ctx.ensure_object(dict)
    config = load_config()

    if verbose >= 2:
        level = "debug"
    elif verbose == 1:
        level = "info"
    else:
        level = config.log_level
    configure_logging(level, log_file=log_file, json_output=log_json)

    storage = ctx.obj.get("storage") or FileSessionStorage(session_id or config.session_id)
    store = SessionStore(storage, defaults=config.session_defaults())
    store.restore_from_storage()

    ctx.obj["config"] = config
    ctx.obj["store"] = store
    ctx.obj["json_output"] = json_output
    ctx.obj["insecure"] = insecure

    if expire_if_needed(store):
        _notice(EXPIRED_NOTICE)


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"api-tester version {__version__}")


# =============================================================================
# Environment
# =============================================================================


@cli.group()
def env() -> None:
    """Manage hosts and context ids."""
    pass


@env.command("show")
@click.pass_context
def env_show(ctx: click.Context) -> None:
    """Show the environment of the current session."""
    state = _store(ctx).state
    if ctx.obj["json_output"]:
        snapshot = state.to_storage_dict()
        keys = ("authHost", "apiHost", "empresaId", "unidadeId", "siteId", "xTransactionId", "redactMode")
        data = {key: snapshot[key] for key in keys}
        click.echo(json.dumps(data, indent=2))
    else:
        print_env(state)


@env.command("set")
@click.option("--auth-host", help="Identity API base URL")
@click.option("--api-host", help="Domain API base URL")
@click.option("--empresa-id", help="EmpresaId")
@click.option("--unidade-id", help="UnidadeId")
@click.option("--site-id", help="SiteId")
@click.option("--x-transaction-id", help="X-Transaction-Id")
@click.pass_context
def env_set(ctx: click.Context, **values: str | None) -> None:
    """Update environment fields; omitted fields keep their values."""
    updates = {key: value for key, value in values.items() if value is not None}
    if not updates:
        _fail("Nothing to set. Pass at least one option.")
    try:
        _store(ctx).set_env_vars(**updates)
    except ConsoleError as e:
        _fail(e.message)
    click.echo("Environment saved")


# =============================================================================
# Redaction
# =============================================================================


@cli.group()
def redact() -> None:
    """Control display redaction."""
    pass


@redact.command("show")
@click.pass_context
def redact_show(ctx: click.Context) -> None:
    """Show whether responses are redacted for display."""
    click.echo("on" if _store(ctx).state.redact_mode else "off")


@redact.command("toggle")
@click.pass_context
def redact_toggle(ctx: click.Context) -> None:
    """Flip display redaction for this session."""
    store = _store(ctx)
    enabled = store.toggle_redact()
    # The toggle itself is in-memory only; keep it for the next command
    store.persist_to_storage()
    click.echo(f"Redact mode {'on' if enabled else 'off'}")


# =============================================================================
# Auth
# =============================================================================


@cli.group()
def auth() -> None:
    """Log in, refresh and log out."""
    pass


def _ask(prompt: Any) -> str:
    answer = prompt.ask()
    if answer is None:
        raise click.Abort()
    return answer


@auth.command("login")
@click.option("--login", "login_name", help="Login (prompted when omitted)")
@click.option("--password", help="Password (prompted when omitted)")
@click.option("--platform", type=int, default=DEFAULT_PLATFORM, show_default=True, help="Platform id")
@click.option("--authtoken/--no-authtoken", default=True, help="Request an auth token")
@click.option("--stay-connected/--no-stay-connected", default=True, help="Long-lived session")
@click.option("--expire-current-session", is_flag=True, help="Expire other active sessions")
@click.pass_context
def auth_login(
    ctx: click.Context,
    login_name: str | None,
    password: str | None,
    platform: int,
    authtoken: bool,
    stay_connected: bool,
    expire_current_session: bool,
) -> None:
    """Authenticate against the identity API."""
    if not ctx.obj["json_output"]:
        print_dev_banner()
    if not login_name:
        login_name = _ask(questionary.text("Login:"))
    if not password:
        password = _ask(questionary.password("Password:"))
    if not login_name or not password:
        _fail("Login and password are required")

    credentials = LoginCredentials(
        login=login_name,
        password=password,
        platform=platform,
        authtoken=authtoken,
        stay_connected=stay_connected,
        expire_current_session=expire_current_session,
    )

    async def _login() -> None:
        async with _client(ctx) as client:
            await AuthController(_store(ctx), client).login(credentials)

    try:
        asyncio.run(_login())
    except ConsoleError as e:
        _fail(e.message)

    store = _store(ctx)
    if ctx.obj["json_output"]:
        click.echo(json.dumps({"authenticated": True, "expiresIn": store.state.expires_in}, indent=2))
    else:
        console.print(f"[green]{LOGIN_SUCCESS}[/green]")
        print_session_status(store)


@auth.command("refresh")
@click.pass_context
def auth_refresh(ctx: click.Context) -> None:
    """Exchange the refresh token for a new token pair."""

    async def _refresh() -> None:
        async with _client(ctx) as client:
            await AuthController(_store(ctx), client).refresh()

    try:
        asyncio.run(_refresh())
    except ConsoleError as e:
        _fail(e.message)

    if ctx.obj["json_output"]:
        click.echo(json.dumps({"refreshed": True, "expiresIn": _store(ctx).state.expires_in}, indent=2))
    else:
        console.print(f"[green]{REFRESH_SUCCESS}[/green]")


@auth.command("logout")
@click.pass_context
def auth_logout(ctx: click.Context) -> None:
    """Clear the token pair and the persisted session."""
    _store(ctx).logout()
    click.echo(LOGOUT_NOTICE)


@auth.command("status")
@click.option("--show-token", is_flag=True, help="Reveal the full token")
@click.pass_context
def auth_status(ctx: click.Context, show_token: bool) -> None:
    """Show authentication state and time to expiry."""
    store = _store(ctx)
    if ctx.obj["json_output"]:
        state = store.state
        data = {
            "authenticated": bool(state.token) and not store.is_token_expired(),
            "token": (state.token if show_token else truncate_token(state.token)),
            "expiresIn": store.seconds_remaining(),
            "hasRefreshToken": bool(state.refresh_token),
        }
        click.echo(json.dumps(data, indent=2))
    else:
        print_session_status(store, show_token=show_token)


@auth.command("token")
@click.option("--show", is_flag=True, help="Print the raw token")
@click.pass_context
def auth_token(ctx: click.Context, show: bool) -> None:
    """Print the current token (masked unless --show)."""
    token = _store(ctx).state.token
    if not token:
        _fail("Not authenticated")
    click.echo(token if show else truncate_token(token))


# =============================================================================
# Domain calls
# =============================================================================


@cli.command("endpoints")
@click.pass_context
def endpoints_list(ctx: click.Context) -> None:
    """List the domain endpoints available to `call`."""
    if ctx.obj["json_output"]:
        data = [
            {"name": s.name, "method": s.method, "path": s.path, "requires": list(s.requires)}
            for s in ENDPOINTS.values()
        ]
        click.echo(json.dumps(data, indent=2))
    else:
        print_endpoints()


@cli.command()
@click.argument("endpoint")
@click.option("-p", "--param", "params", multiple=True, help="Query/path param KEY=VALUE")
@click.option("-H", "--header", "headers", multiple=True, help="Extra header \"Name: value\"")
@click.option("-d", "--data", help="JSON body")
@click.option("--data-file", type=click.Path(exists=True), help="JSON/YAML body file")
@click.option("--curl", "show_curl", is_flag=True, help="Print the equivalent cURL command")
@click.option("--include-secrets", is_flag=True, help="Do not redact the bearer in cURL/headers")
@click.option("--dry-run", is_flag=True, help="Build and show the request without sending it")
@click.pass_context
def call(
    ctx: click.Context,
    endpoint: str,
    params: tuple[str, ...],
    headers: tuple[str, ...],
    data: str | None,
    data_file: str | None,
    show_curl: bool,
    include_secrets: bool,
    dry_run: bool,
) -> None:
    """Call a domain endpoint (see `endpoints`)."""
    store = _store(ctx)
    try:
        spec = get_endpoint(endpoint)
    except KeyError as e:
        _fail(str(e.args[0]))

    try:
        query = parse_params(params)
        extra_headers = parse_headers(headers)
        body = parse_body(data, data_file)
    except ValueError as e:
        _fail(str(e))

    try:
        request = build_domain_request(spec, store.state, params=query, body=body, headers=extra_headers)
    except ConsoleError as e:
        _fail(e.message)

    state = store.state
    base = state.auth_host if request.surface is Surface.AUTH else state.api_host
    # Mirror resolve_host and attach_auth so the panel shows what is sent
    shown_headers = dict(request.headers)
    if state.token and not has_authorization(shown_headers):
        shown_headers.update(auth_headers(state.token))
    url = replace(request, base_url=base).url

    if not ctx.obj["json_output"]:
        print_dev_banner()
        print_request_panel(
            request.method,
            url,
            headers=shown_headers,
            query=request.params,
            data=request.json,
            include_secrets=include_secrets,
            show_curl=show_curl,
        )
    if dry_run:
        return

    async def _call() -> Any:
        async with _client(ctx) as client:
            return await client.send(request)

    try:
        response = asyncio.run(_call())
    except ApiError as e:
        if ctx.obj["json_output"]:
            payload = {
                "error": e.message,
                "status": e.status_code,
                "data": render_payload(e.response_data, state.redact_mode),
            }
            click.echo(json.dumps(payload, indent=2, default=str))
        else:
            print_response_panel(error=e, redact=state.redact_mode)
        sys.exit(1)

    if ctx.obj["json_output"]:
        payload = {"status": response.status, "data": render_payload(response.data, state.redact_mode)}
        click.echo(json.dumps(payload, indent=2, default=str))
    else:
        print_response_panel(response, redact=state.redact_mode)


# =============================================================================
# Session
# =============================================================================


@cli.command()
@click.option(
    "--interval",
    type=float,
    default=DEFAULT_EXPIRY_CHECK_INTERVAL,
    show_default=True,
    help="Seconds between expiry checks",
)
@click.pass_context
def watch(ctx: click.Context, interval: float) -> None:
    """Poll for token expiry and clear the session when it happens."""
    store = _store(ctx)
    if not store.state.token:
        _fail("Not authenticated")

    async def _watch() -> None:
        expired = asyncio.Event()
        async with _client(ctx) as client:
            controller = AuthController(store, client)
            async with ExpiryWatcher(controller, interval=interval, on_expired=expired.set):
                await expired.wait()

    click.echo(f"Watching token expiry every {interval:g}s (Ctrl+C to stop)")
    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        click.echo("Stopped")
        return
    _notice(EXPIRED_NOTICE)


@cli.group()
def session() -> None:
    """Inspect or clear the session slot."""
    pass


@session.command("show")
@click.pass_context
def session_show(ctx: click.Context) -> None:
    """Show environment and authentication state."""
    store = _store(ctx)
    if ctx.obj["json_output"]:
        snapshot = store.state.to_storage_dict()
        for key in ("token", "refreshToken"):
            snapshot[key] = truncate_token(snapshot[key]) or None
        click.echo(json.dumps(snapshot, indent=2))
        return
    print_env(store.state)
    print_session_status(store)


@session.command("clear")
@click.pass_context
def session_clear(ctx: click.Context) -> None:
    """Delete the persisted session (environment included)."""
    store = _store(ctx)
    store.logout()
    click.echo("Session slot cleared")


# =============================================================================
# Config
# =============================================================================


@cli.group()
def config() -> None:
    """Manage console configuration (~/.api-tester/config.yaml)."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show configuration values and where they came from."""
    cfg = ctx.obj["config"]
    if ctx.obj["json_output"]:
        data = {
            "values": cfg.to_dict(),
            "sources": {key: cfg.get_source(key) for key in CONFIG_KEYS},
        }
        click.echo(json.dumps(data, indent=2))
        return
    click.echo("API Tester Configuration\n")
    print_config_yaml({key: f"{value}  ({cfg.get_source(key)})" for key, value in cfg.to_dict().items()})


@config.command("set")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a configuration value."""
    try:
        save_config(key, value)
    except ValueError as e:
        _fail(str(e))
    click.echo(f"Set {key} = {value}")


@config.command("unset")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
def config_unset(key: str) -> None:
    """Remove a configuration value."""
    if unset_config(key):
        click.echo(f"Unset {key}")
    else:
        click.echo(f"{key} was not set")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
