"""Domain endpoints the console can call.

Each endpoint declares which context ids (empresaId, unidadeId, siteId,
xTransactionId) it needs and where they go: request headers or query
params. Missing ids raise ``ConfigurationError`` before any network call.
"""

from dataclasses import dataclass
from typing import Any

from .errors import ConfigurationError
from .pipeline import ApiRequest, Surface
from .session import SessionState

# Context id (SessionState attribute) -> header name
CONTEXT_HEADERS = {
    "empresa_id": "EmpresaId",
    "unidade_id": "UnidadeId",
    "site_id": "SiteId",
    "x_transaction_id": "X-Transaction-Id",
}

# Context id -> query param name
CONTEXT_PARAMS = {
    "empresa_id": "EmpresaId",
    "unidade_id": "UnidadeId",
    "site_id": "SiteId",
}

# Context id -> label shown to the user
CONTEXT_LABELS = {
    "empresa_id": "EmpresaId",
    "unidade_id": "UnidadeId",
    "site_id": "SiteId",
    "x_transaction_id": "X-Transaction-Id",
}


@dataclass(frozen=True)
class EndpointSpec:
    """Declarative description of a domain call."""

    name: str
    method: str
    path: str
    description: str = ""
    surface: Surface = Surface.API
    requires: tuple[str, ...] = ()
    header_context: tuple[str, ...] = ()
    query_context: tuple[str, ...] = ()
    # Context ids added to query params only when set
    optional_query_context: tuple[str, ...] = ()
    # Path placeholders filled from params, e.g. "/v1/correcoes/{correcaoId}"
    path_params: tuple[str, ...] = ()

    @property
    def has_body(self) -> bool:
        return self.method in ("POST", "PUT", "PATCH")


ENDPOINTS: dict[str, EndpointSpec] = {
    spec.name: spec
    for spec in (
        # Ocorrências
        EndpointSpec(
            "ocorrencias.list",
            "GET",
            "/v1/ocorrencias",
            "List occurrences (PageIndex, PageSize)",
            requires=("empresa_id",),
            header_context=("empresa_id",),
        ),
        EndpointSpec(
            "ocorrencias.create",
            "POST",
            "/v1/ocorrencias",
            "Create an occurrence (titulo, descricao, prioridade)",
            requires=("empresa_id", "unidade_id"),
            header_context=("empresa_id", "unidade_id"),
        ),
        # Correções
        EndpointSpec(
            "correcoes.list",
            "GET",
            "/v1/correcoes",
            "List corrections of an occurrence (ocorrenciaId)",
            requires=("empresa_id",),
            query_context=("empresa_id",),
        ),
        EndpointSpec(
            "correcoes.get",
            "GET",
            "/v1/correcoes/{correcaoId}/toedit",
            "Fetch a correction for editing (correcaoId)",
            requires=("empresa_id",),
            header_context=("empresa_id",),
            query_context=("empresa_id",),
            path_params=("correcaoId",),
        ),
        EndpointSpec(
            "correcoes.tipos",
            "GET",
            "/v1/correcoes/tipos",
            "List correction types",
            requires=("empresa_id",),
            header_context=("empresa_id",),
        ),
        EndpointSpec(
            "correcoes.create",
            "POST",
            "/v1/correcoes",
            "Create a correction (ocorrenciaId, descricao, tipoId)",
        ),
        # Atividades
        EndpointSpec(
            "atividades.list",
            "GET",
            "/v1/atividades",
            "List activities (StatusId, SelectedDate)",
            requires=("empresa_id", "x_transaction_id"),
            header_context=("empresa_id", "x_transaction_id"),
        ),
        EndpointSpec(
            "atividades.plano",
            "GET",
            "/v1/atividades/plano",
            "List planned activities (StatusId, SelectedDate)",
            requires=("empresa_id", "x_transaction_id"),
            header_context=("empresa_id", "x_transaction_id"),
        ),
        EndpointSpec(
            "atividades.aplicacao",
            "GET",
            "/v1/atividades/aplicacao",
            "List activities by application (StatusId, SelectedDate)",
            requires=("empresa_id", "x_transaction_id"),
            header_context=("empresa_id", "x_transaction_id"),
            optional_query_context=("site_id",),
        ),
        # Baixa
        EndpointSpec(
            "baixa.list",
            "GET",
            "/v1/atividades/baixa/list",
            "List tasks pending write-off (ids)",
        ),
        EndpointSpec(
            "baixa.medicoes",
            "GET",
            "/v1/atividades/{tarefaId}/medicoes",
            "Fetch measurements of a task (tarefaId)",
            path_params=("tarefaId",),
        ),
        EndpointSpec(
            "baixa.justificativas",
            "GET",
            "/v1/atividades/justificativas",
            "List write-off justifications",
            requires=("empresa_id",),
            header_context=("empresa_id",),
        ),
        EndpointSpec(
            "baixa.realizar",
            "PUT",
            "/v1/atividades/baixa",
            "Settle tasks (tarefasIds, siteId, dataRealizada, tempoTotal, statusId)",
        ),
        EndpointSpec(
            "baixa.medicoes.create",
            "POST",
            "/v1/atividades/medicoes",
            "Submit measurements (tarefasIds, medicoes)",
        ),
    )
}


def get_endpoint(name: str) -> EndpointSpec:
    """Look up an endpoint by name.

    Raises:
        KeyError: Unknown endpoint
    """
    try:
        return ENDPOINTS[name]
    except KeyError:
        raise KeyError(f"Unknown endpoint '{name}'") from None


def missing_context(spec: EndpointSpec, state: SessionState) -> list[str]:
    """Labels of required context ids that are not configured."""
    return [CONTEXT_LABELS[key] for key in spec.requires if not getattr(state, key)]


def build_domain_request(
    spec: EndpointSpec,
    state: SessionState,
    params: dict[str, Any] | None = None,
    body: Any = None,
    headers: dict[str, str] | None = None,
) -> ApiRequest:
    """Build the request for a domain call.

    Args:
        spec: Endpoint description
        state: Session snapshot providing the context ids
        params: Query params (and path placeholders)
        body: JSON body for POST/PUT
        headers: Extra caller headers

    Returns:
        Request ready for the pipeline

    Raises:
        ConfigurationError: A required context id is missing
    """
    missing = missing_context(spec, state)
    if missing:
        verb = "is" if len(missing) == 1 else "are"
        raise ConfigurationError(
            message=f"{' and '.join(missing)} {verb} not configured",
            missing=missing,
        )

    query = dict(params or {})
    path = spec.path
    for placeholder in spec.path_params:
        value = query.pop(placeholder, None)
        if value is None or value == "":
            raise ConfigurationError(
                message=f"Missing path parameter: {placeholder}", missing=[placeholder]
            )
        path = path.replace(f"{{{placeholder}}}", str(value))

    request_headers: dict[str, str] = {}
    if spec.has_body:
        request_headers["Content-Type"] = "application/json"
    for key in spec.header_context:
        request_headers[CONTEXT_HEADERS[key]] = getattr(state, key)
    request_headers.update(headers or {})

    for key in spec.query_context:
        query[CONTEXT_PARAMS[key]] = getattr(state, key)
    for key in spec.optional_query_context:
        value = getattr(state, key)
        if value:
            query[CONTEXT_PARAMS[key]] = value

    return ApiRequest(
        method=spec.method,
        path=path,
        surface=spec.surface,
        headers=request_headers,
        params=query,
        json=body if spec.has_body else None,
    )
