"""IBM Quantum backend adapter.

Implements :class:`QuantumBackend`, :class:`CloudQuantumBackend` and the
IBM-specific :class:`IBMQuantumExtensions` on top of the IBM Quantum REST API.

Job handles returned by :meth:`IBMQuantumBackend.submit_circuit` are
generated locally and mapped to provider job ids in a per-instance registry,
so callers never depend on the provider id format.

Example
-------
>>> from ibmq_backend import Circuit, create_ibm_quantum_backend
>>> backend = create_ibm_quantum_backend(api_token="...")
>>> bell = Circuit(num_qubits=2).add("h", 0).add("cnot", 0, 1)
>>> job_id = backend.submit_circuit(bell, {"backend": "ibm_torino", "program_id": "sampler"})
>>> result = backend.wait_for_job(job_id)
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from . import cost
from .batch import BatchCoordinator
from .circuit import to_qasm3
from .config import Settings
from .contracts import CloudQuantumBackend, IBMQuantumExtensions
from .dispatch import (
    CANCEL_JOB_OPS,
    CREATE_JOB_OPS,
    GET_BACKEND_CONFIGURATION_OPS,
    GET_BACKEND_PROPERTIES_OPS,
    GET_JOB_LOGS_OPS,
    GET_JOB_METRICS_OPS,
    GET_JOB_OPS,
    GET_JOB_RESULTS_OPS,
    GET_TRANSPILED_CIRCUITS_OPS,
    GET_USAGE_ANALYTICS_OPS,
    LIST_BACKENDS_OPS,
    Dispatcher,
)
from .exceptions import (
    IBMQAuthenticationError,
    IBMQDispatchError,
    IBMQJobError,
    IBMQSubmissionError,
    IBMQTimeoutError,
    IBMQValidationError,
)
from .iam import IAMToken, fetch_iam_token
from .normalize import (
    COUPLING_MAP_FIELDS,
    extract_devices,
    extract_gate_names,
    extract_measurements,
    extract_provider_job_id,
    extract_status,
    first_present,
    normalize_device,
    parse_body,
)
from .sessions import SessionManager
from .state import CREDENTIAL_KEYS, AuthState, JobRegistry
from .transport import OpenAPIClient, Transport
from .types import (
    BackendInfo,
    BatchResults,
    BatchStatus,
    BatchSubmission,
    CalibrationData,
    CancelResult,
    CostBreakdown,
    DeviceInfo,
    DeviceTopology,
    JobRecord,
    JobResult,
    JobStatus,
    QueueStatus,
    SessionClosure,
    SessionInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_SHOTS = 128
DEFAULT_JOB_NAME = "ibmq-backend-job"

# Optional create-job fields; omitted from the body entirely when unset.
OPTIONAL_JOB_FIELDS = ("tags", "log_level", "runtime", "cost", "session_id")

UNKNOWN_JOB = "unknown-job"
MISSING_PROVIDER_ID = "missing-provider-id"


def build_job_request(
    qasm: str,
    device_id: str,
    program_id: str,
    shots: int,
    options: Mapping[str, Any],
) -> dict[str, Any]:
    """Assemble the create-job body for one circuit."""
    pubs = options.get("pubs") or [[qasm, {}, shots]]
    body: dict[str, Any] = {
        "program_id": program_id,
        "backend": device_id,
        "name": options.get("name") or DEFAULT_JOB_NAME,
        "params": {"pubs": pubs, "options": {"default_shots": shots}},
    }
    for key in OPTIONAL_JOB_FIELDS:
        if options.get(key) is not None:
            body[key] = options[key]
    return body


def _shots(options: Mapping[str, Any]) -> int:
    shots = options.get("shots", DEFAULT_SHOTS)
    if not isinstance(shots, int) or isinstance(shots, bool) or shots <= 0:
        raise IBMQValidationError(f"shots must be a positive integer, got {shots!r}")
    return shots


def _program_id(options: Mapping[str, Any]) -> str | None:
    return options.get("program_id") or options.get("program-id") or options.get("programId")


class IBMQuantumBackend(CloudQuantumBackend, IBMQuantumExtensions):
    """IBM Quantum cloud backend.

    Parameters
    ----------
    transport : Transport | None
        Operation transport; defaults to an :class:`OpenAPIClient` using the
        built-in route table.
    settings : Settings | None
        Connection settings (default: ``Settings()``).
    api_token : str | None
        Initial bearer token; overrides ``settings.api_token``.
    serializer : Callable | None
        Circuit to OpenQASM 3 serializer (default: :func:`to_qasm3`).
    """

    backend_name = "IBM Quantum"
    provider = "ibm-quantum"

    def __init__(
        self,
        transport: Transport | None = None,
        settings: Settings | None = None,
        api_token: str | None = None,
        serializer: Callable[[Any], str] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._transport = transport or OpenAPIClient(
            base_url=self.settings.api_url,
            timeout=self.settings.timeout,
        )
        self._dispatcher = Dispatcher(
            self._transport,
            api_version=self.settings.api_version,
            service_crn=self.settings.service_crn,
        )
        self._serializer = serializer or to_qasm3
        self._auth = AuthState(api_token or self.settings.api_token, exchange=self._exchange_api_key)
        self._jobs = JobRegistry()
        self._sessions = SessionManager(self._dispatcher, self._auth)
        self._batches = BatchCoordinator(
            submit=self.submit_circuit,
            status=self.get_job_status,
            result=self.get_job_result,
        )

    # ── Lifecycle ──────────────────────────────────────────────────────

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if callable(close):
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"<IBMQuantumBackend(jobs={len(self._jobs)}, authenticated={self._auth.token is not None})>"

    # ── Helpers ────────────────────────────────────────────────────────

    def _dispatch(self, operations: Sequence[str], params: Mapping[str, Any] | None = None, token: str | None = None):
        return self._dispatcher.dispatch(operations, params, token or self._auth.current_token())

    def _dispatch_or_raise(self, operations: Sequence[str], params: Mapping[str, Any] | None = None, token: str | None = None):
        resp = self._dispatch(operations, params, token)
        if resp is None:
            raise IBMQDispatchError(operations)
        return resp

    def _device(self, device_id: str | None) -> str | None:
        return device_id or self.settings.default_device

    # ── QuantumBackend ─────────────────────────────────────────────────

    def get_backend_info(self, device_id: str | None = None) -> BackendInfo:
        device = self._device(device_id)
        params = {"id": device} if device else {}
        resp = self._dispatch(GET_BACKEND_PROPERTIES_OPS, params)
        raw = parse_body(resp.body) if resp is not None else None
        gates = extract_gate_names(raw) if resp is not None and resp.status_code < 400 else frozenset()
        return BackendInfo(
            backend_type="cloud",
            backend_name=self.backend_name,
            provider=self.provider,
            description="IBM Quantum cloud backend",
            supported_gates=gates or self._configuration_gates(params),
            capabilities=frozenset({"cloud-execution", "openqasm3", "sessions", "cost-estimation"}),
            raw_properties=raw,
        )

    def get_supported_gates(self, device_id: str | None = None) -> frozenset[str]:
        """Gate names from backend properties, falling back to configuration."""
        device = self._device(device_id)
        params = {"id": device} if device else {}
        resp = self._dispatch(GET_BACKEND_PROPERTIES_OPS, params)
        if resp is not None and resp.status_code < 400:
            gates = extract_gate_names(resp.body)
            if gates:
                return gates
        return self._configuration_gates(params)

    def _configuration_gates(self, params: Mapping[str, Any]) -> frozenset[str]:
        resp = self._dispatch(GET_BACKEND_CONFIGURATION_OPS, params)
        if resp is None or resp.status_code >= 400:
            return frozenset()
        return extract_gate_names(resp.body)

    def is_available(self) -> bool:
        resp = self._dispatch(LIST_BACKENDS_OPS)
        if resp is None or resp.status_code >= 400:
            return False
        return bool(extract_devices(resp.body))

    def submit_circuit(self, circuit: Any, options: Mapping[str, Any]) -> str:
        """Submit *circuit* and return a locally generated job handle.

        Parameters
        ----------
        circuit : Circuit | str
            Circuit to run; strings are taken as OpenQASM 3 source.
        options : Mapping
            ``backend`` and ``program_id`` are required. ``shots`` defaults
            to 128. ``name``, ``pubs``, ``tags``, ``log_level``, ``runtime``,
            ``cost`` and ``session_id`` are optional.

        Raises
        ------
        IBMQValidationError
            If ``backend`` or ``program_id`` is missing, or shots is invalid.
        IBMQAuthenticationError
            If no token has been set.
        IBMQDispatchError
            If no create-job candidate produced a response.
        IBMQSubmissionError
            If the provider rejected the submission.
        """
        device = options.get("backend")
        program_id = _program_id(options)
        if not device:
            raise IBMQValidationError("Backend required ('backend' option)")
        if not program_id:
            raise IBMQValidationError("Program ID required ('program_id' option)")
        shots = _shots(options)
        if isinstance(circuit, str):
            qasm = circuit
        else:
            try:
                qasm = self._serializer(circuit)
            except ValueError as exc:
                raise IBMQValidationError(f"Circuit cannot be serialized: {exc}") from exc
        token = self._auth.require_token("submit_circuit")

        body = build_job_request(qasm, device, program_id, shots, options)

        resp = self._dispatch_or_raise(CREATE_JOB_OPS, {"body": body}, token)
        if resp.status_code >= 400:
            raise IBMQSubmissionError(resp.status_code, str(resp.body))

        provider_id = extract_provider_job_id(resp.body)
        if provider_id is None:
            logger.warning("Provider response for job on %s carried no job id", device)

        job_id = self._jobs.register(
            JobRecord(
                provider_id=provider_id,
                device_id=device,
                submitted_at=datetime.now(timezone.utc),
                shots=shots,
                program_id=program_id,
                request=body,
            )
        )
        logger.info("Submitted job %s (provider id %s) to %s", job_id, provider_id, device)
        return job_id

    def get_job_record(self, job_id: str) -> JobRecord | None:
        return self._jobs.get(job_id)

    def get_job_status(self, job_id: str) -> JobStatus:
        """Canonical status; ``UNKNOWN`` for handles this backend never issued."""
        record = self._jobs.get(job_id)
        if record is None:
            return JobStatus.UNKNOWN
        if record.provider_id is None:
            logger.warning("Job %s has no provider id; status unknown", job_id)
            return JobStatus.UNKNOWN
        resp = self._dispatch_or_raise(GET_JOB_OPS, {"id": record.provider_id})
        return extract_status(resp.body)

    def get_job_result(self, job_id: str) -> JobResult:
        record = self._jobs.get(job_id)
        if record is None:
            return JobResult(status=JobStatus.FAILED, job_id=job_id, error_message=UNKNOWN_JOB)
        if record.provider_id is None:
            return JobResult(status=JobStatus.FAILED, job_id=job_id, error_message=MISSING_PROVIDER_ID)

        resp = self._dispatch_or_raise(GET_JOB_RESULTS_OPS, {"id": record.provider_id})
        body = parse_body(resp.body)
        result = JobResult(
            status=JobStatus.COMPLETED,
            job_id=job_id,
            provider_id=record.provider_id,
            measurement_results=extract_measurements(resp.body),
            raw=body if body is not None else resp.body,
        )
        if resp.status_code >= 400:
            result.status = JobStatus.FAILED
            result.error_message = f"provider returned HTTP {resp.status_code}"
        return result

    def cancel_job(self, job_id: str) -> CancelResult:
        record = self._jobs.get(job_id)
        if record is None:
            return CancelResult(job_id=job_id, error=UNKNOWN_JOB)
        if record.provider_id is None:
            return CancelResult(job_id=job_id, error=MISSING_PROVIDER_ID)
        token = self._auth.require_token("cancel_job")

        resp = self._dispatch_or_raise(CANCEL_JOB_OPS, {"id": record.provider_id}, token)
        cancelled = resp.status_code < 400
        logger.info("Cancel job %s: %s", job_id, "accepted" if cancelled else f"HTTP {resp.status_code}")
        return CancelResult(
            job_id=job_id,
            provider_id=record.provider_id,
            cancelled=cancelled,
            raw=resp.body,
        )

    def get_queue_status(self) -> QueueStatus:
        return QueueStatus(total_tracked=len(self._jobs), total_batches=len(self._batches.registry))

    def batch_submit(self, circuits: Any, options: Mapping[str, Any]) -> BatchSubmission:
        return self._batches.batch_submit(circuits, options)

    def get_batch_status(self, batch_id: str) -> BatchStatus:
        return self._batches.get_batch_status(batch_id)

    def get_batch_results(self, batch_id: str) -> BatchResults:
        return self._batches.get_batch_results(batch_id)

    def wait_for_job(self, job_id: str, poll_interval: float = 1.0, timeout: float = 300.0) -> JobResult:
        """Poll until the job reaches a terminal state and return its result.

        ``UNKNOWN`` statuses keep polling; only ``FAILED`` and ``CANCELLED``
        are treated as failures.

        Raises
        ------
        IBMQJobError
            If the job failed, was cancelled, or was never issued here.
        IBMQTimeoutError
            If *timeout* seconds elapse first.
        """
        if job_id not in self._jobs:
            raise IBMQJobError(job_id, UNKNOWN_JOB)

        deadline = time.monotonic() + timeout
        while True:
            status = self.get_job_status(job_id)
            if status.is_terminal:
                if status == JobStatus.COMPLETED:
                    return self.get_job_result(job_id)
                if status == JobStatus.CANCELLED:
                    raise IBMQJobError(job_id, "Job was cancelled")
                raise IBMQJobError(job_id, "job failed on the provider")
            if time.monotonic() >= deadline:
                raise IBMQTimeoutError(f"Job {job_id} did not complete within {timeout}s")
            time.sleep(poll_interval)

    # ── CloudQuantumBackend ────────────────────────────────────────────

    def authenticate(self, credentials: Mapping[str, Any]) -> dict[str, Any]:
        token = None
        for key in CREDENTIAL_KEYS:
            value = credentials.get(key)
            if isinstance(value, str) and value.strip():
                token = value.strip()
                break
        if token is None:
            raise IBMQAuthenticationError(
                f"No API token supplied in credentials; expected one of {list(CREDENTIAL_KEYS)}, "
                f"got keys {sorted(credentials)}"
            )
        authenticated_at = self._auth.set_token(token)
        return {"status": "authenticated", "token_set": True, "authenticated_at": authenticated_at}

    def authenticate_with_api_key(self, api_key: str) -> dict[str, Any]:
        """Exchange an IBM Cloud API key for an IAM token and authenticate with it.

        The key is kept so the token can be exchanged again shortly before
        it expires.
        """
        if not isinstance(api_key, str) or not api_key.strip():
            raise IBMQAuthenticationError("No IBM Cloud API key supplied")
        api_key = api_key.strip()
        authenticated_at = self._auth.set_api_key(api_key, self._exchange_api_key(api_key))
        return {"status": "authenticated", "token_set": True, "authenticated_at": authenticated_at}

    def _exchange_api_key(self, api_key: str) -> IAMToken:
        return fetch_iam_token(api_key, timeout=self.settings.timeout)

    def get_session_info(self) -> dict[str, Any]:
        if self._auth.token:
            return {
                "status": "authenticated",
                "has_token": True,
                "authenticated_at": self._auth.authenticated_at,
            }
        return {"status": "unauthenticated", "has_token": False}

    def list_available_devices(self) -> list[DeviceInfo]:
        resp = self._dispatch_or_raise(LIST_BACKENDS_OPS)
        return [normalize_device(d) for d in extract_devices(resp.body)]

    def get_device_topology(self, device_id: str) -> DeviceTopology:
        resp = self._dispatch_or_raise(GET_BACKEND_CONFIGURATION_OPS, {"id": device_id})
        body = parse_body(resp.body)
        coupling = first_present(body, COUPLING_MAP_FIELDS, accept=lambda v: isinstance(v, list))
        return DeviceTopology(device_id=device_id, coupling_map=coupling or [], raw=body)

    def get_calibration_data(self, device_id: str) -> CalibrationData:
        resp = self._dispatch_or_raise(GET_BACKEND_PROPERTIES_OPS, {"id": device_id})
        body = parse_body(resp.body)
        calibration = body.get("calibration") if isinstance(body, dict) else None
        return CalibrationData(device_id=device_id, calibration=calibration if calibration is not None else body)

    def estimate_cost(self, circuit: Any, options: Mapping[str, Any]) -> CostBreakdown:
        """Local cost estimate; no network call is made."""
        device = self._device(options.get("backend"))
        if not device:
            raise IBMQValidationError("Backend required ('backend' option) for cost estimation")
        return cost.estimate_cost(circuit, _shots(options), device)

    # ── IBMQuantumExtensions ───────────────────────────────────────────

    def _job_document(self, job_id: str, operations: Sequence[str], key: str) -> dict[str, Any]:
        record = self._jobs.get(job_id)
        if record is None:
            return {"error": UNKNOWN_JOB, "job_id": job_id}
        if record.provider_id is None:
            return {"error": MISSING_PROVIDER_ID, "job_id": job_id}
        resp = self._dispatch_or_raise(operations, {"id": record.provider_id})
        body = parse_body(resp.body)
        return {
            "job_id": job_id,
            "provider_id": record.provider_id,
            "status_code": resp.status_code,
            key: body if body is not None else resp.body,
        }

    def get_job_metrics(self, job_id: str) -> dict[str, Any]:
        return self._job_document(job_id, GET_JOB_METRICS_OPS, "metrics")

    def get_job_logs(self, job_id: str) -> dict[str, Any]:
        return self._job_document(job_id, GET_JOB_LOGS_OPS, "logs")

    def get_transpiled_circuits(self, job_id: str) -> dict[str, Any]:
        return self._job_document(job_id, GET_TRANSPILED_CIRCUITS_OPS, "transpiled_circuits")

    def create_session(self, options: Mapping[str, Any]) -> SessionInfo:
        return self._sessions.create_session(options)

    def close_session(self, session_id: str) -> SessionClosure:
        return self._sessions.close_session(session_id)

    def session_info(self, session_id: str) -> dict[str, Any]:
        return self._sessions.session_info(session_id)

    def get_usage_analytics(self, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Account usage analytics; *options* are sent as query parameters."""
        token = self._auth.require_token("get_usage_analytics")
        params: dict[str, Any] = {}
        query = {k: v for k, v in (options or {}).items() if v is not None}
        if query:
            params["query"] = query
        resp = self._dispatch_or_raise(GET_USAGE_ANALYTICS_OPS, params, token)
        body = parse_body(resp.body)
        return {"status_code": resp.status_code, "analytics": body if body is not None else resp.body}


def create_ibm_quantum_backend(
    api_token: str | None = None,
    settings: Settings | None = None,
    transport: Transport | None = None,
    load_openapi: bool = False,
) -> IBMQuantumBackend:
    """Factory for the IBM Quantum backend adapter.

    Parameters
    ----------
    api_token : str | None
        Optional initial token (default: ``IBM_QUANTUM_TOKEN`` from the environment).
    settings : Settings | None
        Connection settings (default: :meth:`Settings.from_env`).
    transport : Transport | None
        Custom transport; takes precedence over *load_openapi*.
    load_openapi : bool
        Resolve operation names against the provider's published OpenAPI
        document instead of the built-in route table.
    """
    settings = settings or Settings.from_env()
    if transport is None and load_openapi:
        transport = OpenAPIClient.from_url(
            settings.resolved_openapi_url,
            base_url=settings.api_url,
            timeout=settings.timeout,
        )
    return IBMQuantumBackend(transport=transport, settings=settings, api_token=api_token)
