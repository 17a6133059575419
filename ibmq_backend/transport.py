"""HTTP transport that invokes provider operations by name.

Operations are resolved either from the provider's published OpenAPI
document (``operationId`` values, converted to kebab-case) or from the
built-in :data:`DEFAULT_OPERATIONS` route table.
"""

from __future__ import annotations

import logging
import re
import string
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol
from urllib.parse import quote

import httpx

from .config import DEFAULT_TIMEOUT, IBM_API_ENDPOINT, USER_AGENT
from .exceptions import IBMQUnknownOperationError

logger = logging.getLogger(__name__)

_HTTP_METHODS = ("get", "put", "post", "delete", "patch", "head", "options")


@dataclass(frozen=True)
class Route:
    method: str
    path: str

    @property
    def path_params(self) -> list[str]:
        return [name for _, name, _, _ in string.Formatter().parse(self.path) if name]


@dataclass
class TransportResponse:
    """Status code and decoded body of one provider call."""

    status_code: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


class Transport(Protocol):
    def invoke(self, operation: str, params: Mapping[str, Any]) -> TransportResponse:
        ...


DEFAULT_OPERATIONS: dict[str, Route] = {
    "list-backends": Route("GET", "/v1/backends"),
    "get-backend-properties": Route("GET", "/v1/backends/{id}/properties"),
    "get-backend-configuration": Route("GET", "/v1/backends/{id}/configuration"),
    "get-backend-status": Route("GET", "/v1/backends/{id}/status"),
    "create-job": Route("POST", "/v1/jobs"),
    "get-job": Route("GET", "/v1/jobs/{id}"),
    "get-job-details-jid": Route("GET", "/v1/jobs/{id}"),
    "get-job-results": Route("GET", "/v1/jobs/{id}/results"),
    "get-job-results-jid": Route("GET", "/v1/jobs/{id}/results"),
    "cancel-job-jid": Route("POST", "/v1/jobs/{id}/cancel"),
    "delete-job-jid": Route("DELETE", "/v1/jobs/{id}"),
    "get-job-metrics-jid": Route("GET", "/v1/jobs/{id}/metrics"),
    "get-job-logs-jid": Route("GET", "/v1/jobs/{id}/logs"),
    "get-job-transpiled-circuits-jid": Route("GET", "/v1/jobs/{id}/transpiled_circuits"),
    "create-session": Route("POST", "/v1/sessions"),
    "get-session": Route("GET", "/v1/sessions/{id}"),
    "delete-session-close": Route("DELETE", "/v1/sessions/{id}/close"),
    "get-usage-analytics": Route("GET", "/v1/analytics/usage"),
}


def kebab_case(operation_id: str) -> str:
    """Convert an OpenAPI ``operationId`` to a kebab-case operation name."""
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", operation_id)
    s = re.sub(r"[_\s]+", "-", s)
    return s.lower().strip("-")


def routes_from_openapi(document: Mapping[str, Any]) -> dict[str, Route]:
    """Extract ``{operation name: Route}`` from an OpenAPI document."""
    routes: dict[str, Route] = {}
    for path, item in (document.get("paths") or {}).items():
        if not isinstance(item, Mapping):
            continue
        for method in _HTTP_METHODS:
            op = item.get(method)
            if isinstance(op, Mapping) and op.get("operationId"):
                routes[kebab_case(op["operationId"])] = Route(method.upper(), path)
    return routes


class OpenAPIClient:
    """Synchronous HTTP client that invokes provider operations by name.

    Parameters
    ----------
    base_url : str
        Base URL that route paths are appended to.
    routes : Mapping[str, Route] | None
        Operation table; defaults to :data:`DEFAULT_OPERATIONS`.
    timeout : float
        HTTP request timeout in seconds (default: 30).
    http_client : httpx.Client | None
        Pre-configured client, mainly for tests.
    """

    def __init__(
        self,
        base_url: str = IBM_API_ENDPOINT,
        routes: Mapping[str, Route] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._routes = dict(DEFAULT_OPERATIONS if routes is None else routes)
        self._client = http_client or httpx.Client(
            timeout=timeout,
            headers={
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
        )

    @classmethod
    def from_url(
        cls,
        openapi_url: str,
        base_url: str = IBM_API_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "OpenAPIClient":
        """Bootstrap the route table from a published OpenAPI document.

        Operations found in the document override the built-in table;
        built-in routes the document does not mention are kept.
        """
        resp = httpx.get(openapi_url, timeout=timeout)
        resp.raise_for_status()
        routes = dict(DEFAULT_OPERATIONS)
        routes.update(routes_from_openapi(resp.json()))
        logger.info("Loaded %d operations from %s", len(routes), openapi_url)
        return cls(base_url=base_url, routes=routes, timeout=timeout)

    @property
    def operations(self) -> list[str]:
        return sorted(self._routes)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def invoke(self, operation: str, params: Mapping[str, Any]) -> TransportResponse:
        """Invoke *operation* and return its status and decoded body.

        Path parameters are taken from *params* by name; ``body`` is sent as
        JSON, ``query`` as query parameters and ``headers`` as extra headers.

        Raises
        ------
        IBMQUnknownOperationError
            If no route is known for *operation*.
        ValueError
            If a path parameter is missing.
        httpx.HTTPError
            On connection or protocol failures.
        """
        route = self._routes.get(operation)
        if route is None:
            raise IBMQUnknownOperationError(operation)

        path_values = {}
        for name in route.path_params:
            value = params.get(name)
            if value is None:
                raise ValueError(f"Operation {operation} requires path parameter '{name}'")
            path_values[name] = quote(str(value), safe="")

        url = f"{self._base_url}{route.path.format(**path_values)}"
        kwargs: dict[str, Any] = {"headers": dict(params.get("headers") or {})}
        if params.get("body") is not None:
            kwargs["json"] = params["body"]
        if params.get("query"):
            kwargs["params"] = dict(params["query"])

        resp = self._client.request(route.method, url, **kwargs)
        return TransportResponse(
            status_code=resp.status_code,
            body=_decode_body(resp),
            headers=dict(resp.headers),
        )


def _decode_body(resp: httpx.Response) -> Any:
    if resp.status_code == 204 or not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text
