"""Unit tests for api_tester_cli.shared.auth module."""

import pytest

from api_tester_cli.shared.auth import AUTHORIZATION_HEADER, auth_headers, has_authorization


@pytest.mark.cli_unit
class TestAuthHeaders:
    """Tests for auth_headers function."""

    def test_auth_headers_with_token(self):
        """Test auth_headers returns Authorization header."""
        assert auth_headers("my-token") == {"Authorization": "Bearer my-token"}

    def test_auth_headers_without_token(self):
        """Test auth_headers returns empty dict when no token."""
        assert auth_headers(None) == {}
        assert auth_headers("") == {}


@pytest.mark.cli_unit
class TestHasAuthorization:
    """Tests for has_authorization function."""

    def test_case_insensitive_name(self):
        assert has_authorization({"authorization": "Bearer x"})
        assert has_authorization({"AUTHORIZATION": "Bearer x"})
        assert has_authorization({AUTHORIZATION_HEADER: "Basic abc"})

    def test_empty_value_does_not_count(self):
        """An empty Authorization value is treated as absent."""
        assert not has_authorization({"Authorization": ""})

    def test_missing(self):
        assert not has_authorization(None)
        assert not has_authorization({})
        assert not has_authorization({"Content-Type": "application/json"})
