"""Unit tests for api_tester_cli.endpoints module."""

import pytest

from api_tester_cli.endpoints import ENDPOINTS, build_domain_request, get_endpoint, missing_context
from api_tester_cli.errors import ConfigurationError
from api_tester_cli.pipeline import Surface
from api_tester_cli.session import SessionState

FULL_CONTEXT = SessionState(empresa_id="10", unidade_id="20", site_id="30", x_transaction_id="tx-1")


@pytest.mark.cli_unit
class TestRegistry:
    """Tests for the endpoint registry."""

    def test_all_domain_endpoints_target_api_surface(self):
        assert all(spec.surface is Surface.API for spec in ENDPOINTS.values())

    def test_get_endpoint_unknown(self):
        with pytest.raises(KeyError, match="Unknown endpoint"):
            get_endpoint("nope")

    def test_body_methods(self):
        assert get_endpoint("ocorrencias.create").has_body
        assert get_endpoint("baixa.realizar").method == "PUT"
        assert not get_endpoint("ocorrencias.list").has_body


@pytest.mark.cli_unit
class TestMissingContext:
    """Tests for context validation."""

    def test_missing_ids_listed(self):
        spec = get_endpoint("ocorrencias.create")
        assert missing_context(spec, SessionState()) == ["EmpresaId", "UnidadeId"]

    def test_missing_raises_before_request(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_domain_request(get_endpoint("ocorrencias.create"), SessionState())

        assert exc_info.value.message == "EmpresaId and UnidadeId are not configured"
        assert exc_info.value.missing == ["EmpresaId", "UnidadeId"]

    def test_single_missing_id_message(self):
        state = SessionState(empresa_id="10")
        with pytest.raises(ConfigurationError) as exc_info:
            build_domain_request(get_endpoint("atividades.list"), state)

        assert exc_info.value.message == "X-Transaction-Id is not configured"


@pytest.mark.cli_unit
class TestBuildDomainRequest:
    """Tests for build_domain_request."""

    def test_header_context(self):
        request = build_domain_request(
            get_endpoint("ocorrencias.list"), FULL_CONTEXT, params={"PageIndex": 1, "PageSize": 10}
        )
        assert request.method == "GET"
        assert request.path == "/v1/ocorrencias"
        assert request.headers == {"EmpresaId": "10"}
        assert request.params == {"PageIndex": 1, "PageSize": 10}
        assert request.json is None

    def test_query_context(self):
        request = build_domain_request(
            get_endpoint("correcoes.list"), FULL_CONTEXT, params={"ocorrenciaId": 5}
        )
        assert request.headers == {}
        assert request.params == {"ocorrenciaId": 5, "EmpresaId": "10"}

    def test_path_params_filled(self):
        request = build_domain_request(
            get_endpoint("correcoes.get"), FULL_CONTEXT, params={"correcaoId": 77}
        )
        assert request.path == "/v1/correcoes/77/toedit"
        assert request.headers == {"EmpresaId": "10"}
        assert request.params == {"EmpresaId": "10"}

    def test_missing_path_param(self):
        with pytest.raises(ConfigurationError, match="tarefaId"):
            build_domain_request(get_endpoint("baixa.medicoes"), FULL_CONTEXT)

    def test_optional_query_context(self):
        spec = get_endpoint("atividades.aplicacao")
        with_site = build_domain_request(spec, FULL_CONTEXT)
        without_site = build_domain_request(
            spec, SessionState(empresa_id="10", x_transaction_id="tx-1")
        )

        assert with_site.params == {"SiteId": "30"}
        assert with_site.headers == {"EmpresaId": "10", "X-Transaction-Id": "tx-1"}
        assert without_site.params == {}

    def test_body_and_content_type(self):
        body = {"titulo": "Vazamento", "descricao": "Sala 3", "prioridade": 1}
        request = build_domain_request(get_endpoint("ocorrencias.create"), FULL_CONTEXT, body=body)

        assert request.json == body
        assert request.headers == {
            "Content-Type": "application/json",
            "EmpresaId": "10",
            "UnidadeId": "20",
        }

    def test_body_ignored_for_get(self):
        request = build_domain_request(get_endpoint("baixa.list"), FULL_CONTEXT, body={"x": 1})
        assert request.json is None

    def test_caller_headers_override(self):
        request = build_domain_request(
            get_endpoint("ocorrencias.list"), FULL_CONTEXT, headers={"EmpresaId": "99"}
        )
        assert request.headers["EmpresaId"] == "99"
