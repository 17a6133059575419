"""Abstract backend contracts.

``QuantumBackend`` and ``CloudQuantumBackend`` describe what any provider
adapter must offer. Provider-specific operations live in a separate
interface (``IBMQuantumExtensions``) that a concrete backend implements
alongside the generic contracts rather than merged into them.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

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
    JobResult,
    JobStatus,
    QueueStatus,
    SessionClosure,
    SessionInfo,
)


class QuantumBackend(ABC):
    """Generic contract for executing circuits on a backend."""

    @abstractmethod
    def get_backend_info(self) -> BackendInfo:
        """Describe the backend and its capabilities."""
        pass

    @abstractmethod
    def get_supported_gates(self) -> FrozenSet[str]:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Probe whether the backend can currently accept work."""
        pass

    @abstractmethod
    def submit_circuit(self, circuit: Any, options: Mapping[str, Any]) -> str:
        """Submit a circuit and return an opaque job handle.

        Raises:
            IBMQValidationError: If required options are missing
        """
        pass

    @abstractmethod
    def get_job_status(self, job_id: str) -> JobStatus:
        pass

    @abstractmethod
    def get_job_result(self, job_id: str) -> JobResult:
        """Return the job result; unknown handles yield a failed-shaped result."""
        pass

    @abstractmethod
    def cancel_job(self, job_id: str) -> CancelResult:
        pass

    @abstractmethod
    def get_queue_status(self) -> QueueStatus:
        pass

    @abstractmethod
    def batch_submit(self, circuits: Any, options: Mapping[str, Any]) -> BatchSubmission:
        pass

    @abstractmethod
    def get_batch_status(self, batch_id: str) -> BatchStatus:
        pass

    @abstractmethod
    def get_batch_results(self, batch_id: str) -> BatchResults:
        pass


class CloudQuantumBackend(QuantumBackend):
    """Contract for remote backends that need credentials and expose devices."""

    @abstractmethod
    def authenticate(self, credentials: Mapping[str, Any]) -> Dict[str, Any]:
        """Store credentials for subsequent calls.

        Raises:
            IBMQAuthenticationError: If no usable token is supplied
        """
        pass

    @abstractmethod
    def get_session_info(self) -> Dict[str, Any]:
        """Report the authentication state of this backend instance."""
        pass

    @abstractmethod
    def list_available_devices(self) -> List[DeviceInfo]:
        pass

    @abstractmethod
    def get_device_topology(self, device_id: str) -> DeviceTopology:
        pass

    @abstractmethod
    def get_calibration_data(self, device_id: str) -> CalibrationData:
        pass

    @abstractmethod
    def estimate_cost(self, circuit: Any, options: Mapping[str, Any]) -> CostBreakdown:
        pass


class IBMQuantumExtensions(ABC):
    """IBM Quantum specific operations."""

    @abstractmethod
    def get_job_metrics(self, job_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_job_logs(self, job_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_transpiled_circuits(self, job_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def create_session(self, options: Mapping[str, Any]) -> SessionInfo:
        pass

    @abstractmethod
    def close_session(self, session_id: str) -> SessionClosure:
        pass

    @abstractmethod
    def session_info(self, session_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_usage_analytics(self, options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        pass
