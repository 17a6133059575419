"""Shared data types for ibmq-backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Canonical job status, independent of provider wording.

    ``UNKNOWN`` is returned both for unrecognized provider text and for
    handles this backend never issued, so it is not a terminal state.
    """

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED)


@dataclass(frozen=True)
class JobRecord:
    """Provider metadata for one locally issued job handle."""

    provider_id: str | None
    device_id: str
    submitted_at: datetime
    shots: int
    program_id: str
    request: dict[str, Any]


@dataclass(frozen=True)
class BatchRecord:
    """Job handles grouped under one batch handle, in submission order."""

    job_ids: tuple[str, ...]
    submitted_at: datetime


@dataclass(frozen=True)
class SessionRecord:
    """Locally mirrored provider compute session."""

    device_id: str
    created_at: datetime
    max_duration: int


@dataclass
class JobResult:
    """Canonical result of a job, total over every handle value."""

    status: JobStatus
    job_id: str
    provider_id: str | None = None
    measurement_results: Any = field(default_factory=dict)
    raw: Any = None
    error_message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == JobStatus.COMPLETED

    @property
    def counts(self) -> dict[str, int]:
        """Measurement counts when the provider returned a flat mapping."""
        if isinstance(self.measurement_results, dict) and all(
            isinstance(v, int) for v in self.measurement_results.values()
        ):
            return dict(self.measurement_results)
        return {}

    def probabilities(self) -> dict[str, float]:
        """Get probabilities for each bitstring."""
        counts = self.counts
        total = sum(counts.values())
        if total == 0:
            return {}
        return {k: v / total for k, v in counts.items()}

    def most_frequent(self) -> tuple[str, float] | None:
        """Get the most frequent measurement result."""
        counts = self.counts
        total = sum(counts.values())
        if total == 0:
            return None
        most = max(counts.items(), key=lambda x: x[1])
        return (most[0], most[1] / total)


@dataclass
class CancelResult:
    job_id: str
    provider_id: str | None = None
    cancelled: bool = False
    raw: Any = None
    error: str | None = None


@dataclass
class QueueStatus:
    """Queue view synthesized from locally tracked jobs."""

    total_tracked: int
    total_batches: int = 0


@dataclass
class BatchSubmission:
    batch_id: str
    job_ids: list[str]


@dataclass
class BatchStatus:
    batch_id: str
    job_ids: list[str] = field(default_factory=list)
    statuses: dict[str, JobStatus] = field(default_factory=dict)
    error: str | None = None


@dataclass
class BatchResults:
    batch_id: str
    results: list[JobResult] = field(default_factory=list)
    error: str | None = None


@dataclass
class BackendInfo:
    """Summary of the IBM Quantum backend and its capabilities."""

    backend_type: str
    backend_name: str
    provider: str
    description: str
    supported_gates: frozenset[str] = frozenset()
    capabilities: frozenset[str] = frozenset()
    raw_properties: Any = None


@dataclass
class DeviceInfo:
    device_id: str
    device_name: str
    device_status: str  # online | offline
    max_qubits: int | None = None
    raw: Any = None


@dataclass
class DeviceTopology:
    device_id: str
    coupling_map: list = field(default_factory=list)
    raw: Any = None


@dataclass
class CalibrationData:
    device_id: str
    calibration: Any = None


@dataclass(frozen=True)
class CostBreakdown:
    """Itemized cost estimate for running a circuit on a device."""

    device_id: str
    tier: str
    shots: int
    num_qubits: int
    gate_count: int
    execution_time_us: float
    execution_time_seconds: float
    processor_time_cost: float
    shot_cost: float
    complexity_fee: float
    priority_fee: float
    total_cost: float
    estimated_credits: float


@dataclass
class SessionInfo:
    session_id: str
    device_id: str
    created_at: datetime
    max_duration: int
    raw: Any = None


@dataclass
class SessionClosure:
    session_id: str
    closed: bool
    had_local_record: bool
    raw: Any = None
