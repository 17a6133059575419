"""ibmq-backend: IBM Quantum cloud adapter for a generic quantum backend contract.

Submits circuits to the IBM Quantum REST API, tracks jobs under locally
generated handles, normalizes provider responses into a small canonical
vocabulary, and estimates execution cost without touching the network.

Example
-------
>>> import ibmq_backend as iq
>>> backend = iq.create_ibm_quantum_backend(api_token="...")
>>> circuit = iq.Circuit(num_qubits=2).add("h", 0).add("cnot", 0, 1)
>>> backend.estimate_cost(circuit, {"backend": "ibm_torino", "shots": 1024}).total_cost
>>> job_id = backend.submit_circuit(circuit, {"backend": "ibm_torino", "program_id": "sampler"})
>>> backend.get_job_status(job_id)
<JobStatus.QUEUED: 'queued'>
"""

from .backend import IBMQuantumBackend, create_ibm_quantum_backend
from .circuit import Circuit, Operation, to_qasm3
from .config import Settings
from .contracts import CloudQuantumBackend, IBMQuantumExtensions, QuantumBackend
from .cost import estimate_cost
from .dispatch import Dispatcher
from .exceptions import (
    IBMQAuthenticationError,
    IBMQBatchSubmissionError,
    IBMQDispatchError,
    IBMQError,
    IBMQJobError,
    IBMQSubmissionError,
    IBMQTimeoutError,
    IBMQUnknownOperationError,
    IBMQValidationError,
)
from .iam import IAMToken, fetch_iam_token
from .transport import OpenAPIClient, TransportResponse
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

__version__ = "0.1.0"
__all__ = [
    # Backend
    "IBMQuantumBackend",
    "create_ibm_quantum_backend",
    "QuantumBackend",
    "CloudQuantumBackend",
    "IBMQuantumExtensions",
    # Plumbing
    "Settings",
    "Dispatcher",
    "OpenAPIClient",
    "TransportResponse",
    "IAMToken",
    "fetch_iam_token",
    # Circuits and cost
    "Circuit",
    "Operation",
    "to_qasm3",
    "estimate_cost",
    # Types
    "BackendInfo",
    "BatchResults",
    "BatchStatus",
    "BatchSubmission",
    "CalibrationData",
    "CancelResult",
    "CostBreakdown",
    "DeviceInfo",
    "DeviceTopology",
    "JobResult",
    "JobStatus",
    "QueueStatus",
    "SessionClosure",
    "SessionInfo",
    # Exceptions
    "IBMQError",
    "IBMQAuthenticationError",
    "IBMQBatchSubmissionError",
    "IBMQDispatchError",
    "IBMQJobError",
    "IBMQSubmissionError",
    "IBMQTimeoutError",
    "IBMQUnknownOperationError",
    "IBMQValidationError",
]
