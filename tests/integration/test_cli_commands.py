"""Integration tests for CLI commands.

Drives the click CLI through CliRunner with an in-memory session slot and a
recording transport injected via ``obj``, so nothing touches the network or
the real ~/.api-tester directory.
"""

import json
import logging

import pytest
import structlog
from click.testing import CliRunner

from api_tester_cli.main import cli
from api_tester_cli.session import SESSION_KEY, now_ms

LOGIN_RESPONSE = {
    "authToken": {"token": "eyJhbGciOiJIUzI1NiJ9.access.token-one"},
    "refreshToken": {"token": "refresh-token-one-abcdefghij"},
    "expiresIn": 3600,
    "refreshExpiresIn": 7200,
}


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def runner():
    """Create CLI runner."""
    return CliRunner()


@pytest.fixture
def invoke(runner, isolated_config, memory_storage):
    """Invoke the CLI against the shared memory slot."""

    def _invoke(args, transport=None):
        obj = {"storage": memory_storage}
        if transport is not None:
            obj["transport"] = transport
        return runner.invoke(cli, args, obj=obj)

    return _invoke


def _snapshot(storage):
    raw = storage.get_item(SESSION_KEY)
    return json.loads(raw) if raw else None


def _seed_session(storage, **fields):
    storage.set_item(SESSION_KEY, json.dumps(fields))


@pytest.mark.integration
class TestBasicCommands:
    """Version and help."""

    def test_version(self, invoke):
        result = invoke(["version"])
        assert result.exit_code == 0
        assert "api-tester version" in result.output

    def test_help_lists_commands(self, invoke):
        result = invoke(["--help"])
        assert result.exit_code == 0
        for command in ("auth", "call", "endpoints", "env", "redact", "session", "watch"):
            assert command in result.output

    def test_endpoints_json(self, invoke):
        result = invoke(["--json", "endpoints"])
        assert result.exit_code == 0
        names = [entry["name"] for entry in json.loads(result.output)]
        assert "ocorrencias.list" in names
        assert "baixa.realizar" in names


@pytest.mark.integration
class TestEnvCommands:
    """env show / env set."""

    def test_set_persists_and_show_reads_back(self, invoke, memory_storage):
        result = invoke(["env", "set", "--empresa-id", "10", "--x-transaction-id", "tx-1"])
        assert result.exit_code == 0
        assert _snapshot(memory_storage)["empresaId"] == "10"

        result = invoke(["--json", "env", "show"])
        data = json.loads(result.output)
        assert data["empresaId"] == "10"
        assert data["xTransactionId"] == "tx-1"
        assert data["unidadeId"] == ""
        assert data["redactMode"] is True

    def test_set_invalid_host(self, invoke, memory_storage):
        result = invoke(["env", "set", "--api-host", "localhost:8080"])
        assert result.exit_code == 1
        assert "Invalid URL" in result.output
        assert _snapshot(memory_storage) is None

    def test_set_nothing(self, invoke):
        result = invoke(["env", "set"])
        assert result.exit_code == 1
        assert "Nothing to set" in result.output


@pytest.mark.integration
class TestRedactCommands:
    """redact show / toggle."""

    def test_toggle_survives_next_command(self, invoke):
        assert invoke(["redact", "show"]).output.strip() == "on"

        result = invoke(["redact", "toggle"])
        assert result.exit_code == 0
        assert "Redact mode off" in result.output

        assert invoke(["redact", "show"]).output.strip() == "off"


@pytest.mark.integration
class TestAuthCommands:
    """auth login / refresh / logout / status / token."""

    def test_login_stores_tokens(self, invoke, memory_storage, make_transport):
        transport = make_transport((200, LOGIN_RESPONSE))

        result = invoke(["auth", "login", "--login", "bob", "--password", "hunter2"], transport)

        assert result.exit_code == 0, result.output
        assert "Authentication successful" in result.output
        assert "hunter2" not in result.output
        request = transport.requests[0]
        assert request.url == "https://auth.lkp.app.br/v1/auth"
        assert request.form["login"] == "bob"
        assert request.form["platform"] == 8
        snapshot = _snapshot(memory_storage)
        assert snapshot["token"] == LOGIN_RESPONSE["authToken"]["token"]
        assert snapshot["expiresIn"] == 3600

    def test_login_failure(self, invoke, memory_storage, make_transport):
        from api_tester_cli.errors import ApiError

        error = ApiError(message="Not authorized", status_code=401, response_data={"message": "Login inválido"})

        result = invoke(["auth", "login", "--login", "bob", "--password", "x"], make_transport(error))

        assert result.exit_code == 1
        assert "Login inválido" in result.output
        assert _snapshot(memory_storage) is None

    def test_refresh_without_token(self, invoke, make_transport):
        transport = make_transport()
        result = invoke(["auth", "refresh"], transport)
        assert result.exit_code == 1
        assert "Refresh token not available" in result.output
        assert transport.requests == []

    def test_refresh(self, invoke, memory_storage, make_transport):
        _seed_session(
            memory_storage, token="old-token", refreshToken="ref-1", expiresIn=3600, tokenSetAt=now_ms()
        )
        transport = make_transport((200, {"authToken": {"token": "new-token"}, "expiresIn": 900}))

        result = invoke(["auth", "refresh"], transport)

        assert result.exit_code == 0, result.output
        assert "Token refreshed" in result.output
        assert transport.requests[0].json == {"refreshToken": "ref-1"}
        assert _snapshot(memory_storage)["token"] == "new-token"

    def test_logout(self, invoke, memory_storage):
        _seed_session(memory_storage, token="tok", expiresIn=3600, tokenSetAt=now_ms())

        result = invoke(["auth", "logout"])

        assert result.exit_code == 0
        assert "Session cleared" in result.output
        assert _snapshot(memory_storage) is None

    def test_status_json(self, invoke, memory_storage):
        token = LOGIN_RESPONSE["authToken"]["token"]
        _seed_session(memory_storage, token=token, expiresIn=3600, tokenSetAt=now_ms())

        result = invoke(["--json", "auth", "status"])

        data = json.loads(result.output)
        assert data["authenticated"] is True
        assert data["token"] == "eyJhbG...-one"
        assert 3590 <= data["expiresIn"] <= 3600
        assert data["hasRefreshToken"] is False

    def test_token_masked_and_shown(self, invoke, memory_storage):
        token = LOGIN_RESPONSE["authToken"]["token"]
        _seed_session(memory_storage, token=token, expiresIn=3600, tokenSetAt=now_ms())

        assert invoke(["auth", "token"]).output.strip() == "eyJhbG...-one"
        assert invoke(["auth", "token", "--show"]).output.strip() == token

    def test_expired_session_cleared_on_startup(self, invoke, memory_storage):
        _seed_session(memory_storage, token="tok", expiresIn=60, tokenSetAt=1_000, empresaId="10")

        result = invoke(["auth", "status"])

        assert "Token expired. Please log in again." in result.output
        assert "Not authenticated" in result.output
        assert _snapshot(memory_storage) is None


@pytest.mark.integration
class TestCallCommand:
    """call <endpoint>."""

    def test_missing_context(self, invoke, make_transport):
        transport = make_transport()
        result = invoke(["call", "ocorrencias.create", "-d", '{"titulo": "x"}'], transport)
        assert result.exit_code == 1
        assert "EmpresaId and UnidadeId are not configured" in result.output
        assert transport.requests == []

    def test_unknown_endpoint(self, invoke):
        result = invoke(["call", "nope"])
        assert result.exit_code == 1
        assert "Unknown endpoint" in result.output

    def test_call_json_redacted(self, invoke, memory_storage, make_transport):
        _seed_session(
            memory_storage, empresaId="10", token="tok", expiresIn=3600, tokenSetAt=now_ms()
        )
        transport = make_transport((200, {"items": [{"id": 1, "email": "bob@example.com"}]}))

        result = invoke(["--json", "call", "ocorrencias.list", "-p", "PageIndex=1"], transport)

        assert result.exit_code == 0, result.output
        request = transport.requests[0]
        assert request.url == "https://api.lkp.app.br/v1/ocorrencias"
        assert request.headers["EmpresaId"] == "10"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.params == {"PageIndex": 1}
        assert json.loads(result.output) == {"status": 200, "data": {"items": [{"id": 1, "email": "***"}]}}

    def test_call_unredacted(self, invoke, memory_storage, make_transport):
        _seed_session(memory_storage, empresaId="10", redactMode=False)
        transport = make_transport((200, {"email": "bob@example.com"}))

        result = invoke(["--json", "call", "ocorrencias.list"], transport)

        assert json.loads(result.output)["data"] == {"email": "bob@example.com"}

    def test_call_http_error(self, invoke, memory_storage, make_transport, monkeypatch):
        from api_tester_cli.errors import map_http_error

        # Keep the api.error log line out of the captured JSON
        monkeypatch.setenv("API_TESTER_LOG_LEVEL", "critical")
        _seed_session(memory_storage, empresaId="10")
        transport = make_transport(map_http_error(500, {"message": "boom"}))

        result = invoke(["--json", "call", "ocorrencias.list"], transport)

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["status"] == 500
        assert data["error"] == "Server error: boom"

    def test_dry_run_curl_redacts_bearer(self, invoke, memory_storage, make_transport):
        _seed_session(
            memory_storage, empresaId="10", token="secret-token", expiresIn=3600, tokenSetAt=now_ms()
        )
        transport = make_transport()

        result = invoke(["call", "ocorrencias.list", "-p", "PageIndex=1", "--curl", "--dry-run"], transport)

        assert result.exit_code == 0, result.output
        assert transport.requests == []
        assert "curl -X GET" in result.output
        assert "Bearer [REDACTED]" in result.output
        assert "secret-token" not in result.output

    def test_dry_run_include_secrets(self, invoke, memory_storage):
        _seed_session(
            memory_storage, empresaId="10", token="secret-token", expiresIn=3600, tokenSetAt=now_ms()
        )

        result = invoke(["call", "ocorrencias.list", "--curl", "--include-secrets", "--dry-run"])

        assert "Bearer secret-token" in result.output

    def test_explicit_authorization_header_wins(self, invoke, memory_storage, make_transport):
        _seed_session(
            memory_storage, empresaId="10", token="stored-token", expiresIn=3600, tokenSetAt=now_ms()
        )
        transport = make_transport((200, {"ok": True}))
        args = ["call", "ocorrencias.list", "-H", "Authorization: Bearer manual", "--curl", "--include-secrets"]

        preview = invoke([*args, "--dry-run"], transport)
        assert preview.exit_code == 0, preview.output
        assert "Bearer manual" in preview.output
        assert "stored-token" not in preview.output
        assert "https://api.lkp.app.br/v1/ocorrencias" in preview.output

        result = invoke(args, transport)
        assert result.exit_code == 0, result.output
        assert transport.requests[0].headers["Authorization"] == "Bearer manual"

    def test_invalid_header_flag(self, invoke, memory_storage):
        _seed_session(memory_storage, empresaId="10")

        result = invoke(["call", "ocorrencias.list", "-H", "no-colon", "--dry-run"])

        assert result.exit_code == 1
        assert "Invalid header format" in result.output


@pytest.mark.integration
class TestSessionAndConfigCommands:
    """session clear, config show/set/unset."""

    def test_session_clear(self, invoke, memory_storage):
        _seed_session(memory_storage, empresaId="10")
        result = invoke(["session", "clear"])
        assert result.exit_code == 0
        assert _snapshot(memory_storage) is None

    def test_config_set_show_unset(self, invoke):
        assert invoke(["config", "set", "api_host", "https://staging.example.com"]).exit_code == 0

        data = json.loads(invoke(["--json", "config", "show"]).output)
        assert data["values"]["api_host"] == "https://staging.example.com"
        assert data["sources"]["api_host"] == "config file"

        assert "Unset api_host" in invoke(["config", "unset", "api_host"]).output

    def test_configured_host_seeds_fresh_session(self, invoke, make_transport):
        invoke(["config", "set", "api_host", "https://staging.example.com"])
        invoke(["env", "set", "--empresa-id", "10"])
        transport = make_transport()

        invoke(["--json", "call", "ocorrencias.list"], transport)

        assert transport.requests[0].url == "https://staging.example.com/v1/ocorrencias"

    def test_watch_requires_token(self, invoke):
        result = invoke(["watch"])
        assert result.exit_code == 1
        assert "Not authenticated" in result.output


@pytest.mark.integration
class TestCorruptSessionSlot:
    """Commands starting from an unreadable or ill-typed session slot."""

    def test_corrupt_file_slot_recovers_on_login(self, runner, isolated_config, tmp_path, make_transport):
        from api_tester_cli.storage import FileSessionStorage

        path = tmp_path / "slot.json"
        path.write_text("{not json")
        storage = FileSessionStorage("slot", path=path)

        status = runner.invoke(cli, ["auth", "status"], obj={"storage": storage})
        assert status.exit_code == 0, status.output
        assert "Not authenticated" in status.output

        transport = make_transport((200, LOGIN_RESPONSE))
        login = runner.invoke(
            cli,
            ["auth", "login", "--login", "bob", "--password", "hunter2"],
            obj={"storage": storage, "transport": transport},
        )
        assert login.exit_code == 0, login.output

        token = runner.invoke(cli, ["auth", "token", "--show"], obj={"storage": storage})
        assert token.output.strip() == LOGIN_RESPONSE["authToken"]["token"]
        assert json.loads(path.read_text())[SESSION_KEY]

    def test_wrong_type_snapshot_treated_as_logged_out(self, invoke, memory_storage):
        _seed_session(memory_storage, token="abc", tokenSetAt="x", expiresIn=3600)

        result = invoke(["auth", "status"])

        assert result.exit_code == 0, result.output
        assert "Not authenticated" in result.output
