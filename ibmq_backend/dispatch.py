"""Operation dispatch with per-action alias fallback.

Provider operation names drift between API versions, so each logical action
is tried under a short ordered list of candidate names. The first candidate
that yields a response other than 401 wins; transport exceptions and 401s
move on to the next candidate. There is one attempt per candidate and no
delay between attempts.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence, Union

from .config import IBM_API_VERSION
from .transport import Transport, TransportResponse

logger = logging.getLogger(__name__)

API_VERSION_HEADER = "IBM-API-Version"

# Candidate operation names per logical action, tried in order.
LIST_BACKENDS_OPS = ("list-backends",)
GET_BACKEND_PROPERTIES_OPS = ("get-backend-properties",)
GET_BACKEND_CONFIGURATION_OPS = ("get-backend-configuration",)
CREATE_JOB_OPS = ("create-job",)
GET_JOB_OPS = ("get-job-details-jid", "get-job")
GET_JOB_RESULTS_OPS = ("get-job-results-jid", "get-job-results", "get-job-result")
CANCEL_JOB_OPS = ("cancel-job-jid", "cancel-job", "delete-job-jid")
GET_JOB_METRICS_OPS = ("get-job-metrics-jid", "get-job-metrics")
GET_JOB_LOGS_OPS = ("get-job-logs-jid", "get-job-logs")
GET_TRANSPILED_CIRCUITS_OPS = ("get-job-transpiled-circuits-jid", "get-transpiled-circuits")
CREATE_SESSION_OPS = ("create-session",)
CLOSE_SESSION_OPS = ("delete-session-close", "close-session")
GET_SESSION_OPS = ("get-session",)
GET_USAGE_ANALYTICS_OPS = ("get-usage-analytics", "get-usage-analytics-grouped")

Operations = Union[str, Sequence[str]]


class Dispatcher:
    """Invoke provider operations, trying aliases until one is authorized.

    Parameters
    ----------
    transport : Transport
        Collaborator exposing ``invoke(operation, params)``.
    api_version : str
        Value sent in the ``IBM-API-Version`` header.
    service_crn : str | None
        Optional IBM Cloud service CRN, sent as ``Service-CRN``.
    """

    def __init__(
        self,
        transport: Transport,
        api_version: str = IBM_API_VERSION,
        service_crn: str | None = None,
    ) -> None:
        self.transport = transport
        self.api_version = api_version
        self.service_crn = service_crn

    def auth_headers(self, token: str | None) -> dict[str, str]:
        headers = {API_VERSION_HEADER: self.api_version}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if self.service_crn:
            headers["Service-CRN"] = self.service_crn
        return headers

    def dispatch(
        self,
        operations: Operations,
        params: Mapping[str, Any] | None = None,
        token: str | None = None,
    ) -> TransportResponse | None:
        """Return the first non-401 response, or ``None`` if all candidates fail."""
        ops = [operations] if isinstance(operations, str) else list(operations)
        params = dict(params or {})
        headers = self.auth_headers(token)
        headers.update(params.get("headers") or {})
        params["headers"] = headers

        for op in ops:
            try:
                resp = self.transport.invoke(op, params)
            except Exception as exc:
                logger.debug("Operation %s raised %s: %s", op, type(exc).__name__, exc)
                continue
            if resp is None:
                logger.debug("Operation %s returned no response", op)
                continue
            if resp.status_code == 401:
                logger.debug("Operation %s unauthorized", op)
                continue
            logger.debug("Operation %s answered with status %s", op, resp.status_code)
            return resp

        logger.warning("No candidate operation succeeded among %s", ops)
        return None
