"""Environment-driven configuration for the IBM Quantum adapter."""

from __future__ import annotations

import os
from dataclasses import dataclass

# IBM Cloud API constants
IBM_IAM_URL = "https://iam.cloud.ibm.com/identity/token"
IBM_API_ENDPOINT = "https://quantum.cloud.ibm.com/api"
IBM_API_VERSION = "2025-05-01"
USER_AGENT = "ibmq-backend/0.1.0"

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    """Connection settings for one backend instance.

    Use :meth:`from_env` to read them from the process environment:

    ``IBM_QUANTUM_TOKEN`` (or ``IBMQ_API_TOKEN``)
        Initial bearer token.
    ``IBM_QUANTUM_API_URL``
        Base URL of the REST API.
    ``IBM_QUANTUM_OPENAPI_URL``
        Location of the published OpenAPI document.
    ``IBM_API_VERSION``
        Value of the ``IBM-API-Version`` header.
    ``IBM_SERVICE_CRN``
        Optional IBM Cloud service CRN, sent as ``Service-CRN``.
    ``IBM_QUANTUM_TIMEOUT``
        HTTP timeout in seconds.
    ``IBM_QUANTUM_DEVICE``
        Device used for backend-info queries when none is given.
    """

    api_token: str | None = None
    api_url: str = IBM_API_ENDPOINT
    openapi_url: str | None = None
    api_version: str = IBM_API_VERSION
    service_crn: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    default_device: str | None = None

    @property
    def resolved_openapi_url(self) -> str:
        return self.openapi_url or f"{self.api_url.rstrip('/')}/openapi.json"

    @classmethod
    def from_env(cls) -> "Settings":
        timeout_raw = os.environ.get("IBM_QUANTUM_TIMEOUT")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError:
            raise ValueError(
                f"IBM_QUANTUM_TIMEOUT must be a number of seconds, got {timeout_raw!r}"
            ) from None

        return cls(
            api_token=os.environ.get("IBM_QUANTUM_TOKEN") or os.environ.get("IBMQ_API_TOKEN"),
            api_url=os.environ.get("IBM_QUANTUM_API_URL", IBM_API_ENDPOINT),
            openapi_url=os.environ.get("IBM_QUANTUM_OPENAPI_URL"),
            api_version=os.environ.get("IBM_API_VERSION", IBM_API_VERSION),
            service_crn=os.environ.get("IBM_SERVICE_CRN"),
            timeout=timeout,
            default_device=os.environ.get("IBM_QUANTUM_DEVICE"),
        )
