"""Error hierarchy for ibmq-backend."""

from __future__ import annotations

from typing import Sequence


class IBMQError(Exception):
    """Base exception for all IBM Quantum adapter errors."""


class IBMQValidationError(IBMQError):
    """Caller supplied options that violate the submission contract."""


class IBMQAuthenticationError(IBMQError):
    """No usable credential is available for the requested operation."""


class IBMQUnknownOperationError(IBMQError):
    """The transport has no route for the named operation."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Unknown provider operation: {operation}")


class IBMQDispatchError(IBMQError):
    """No candidate provider operation produced a usable response."""

    def __init__(self, operations: Sequence[str], detail: str = "") -> None:
        self.operations = tuple(operations)
        self.detail = detail
        message = f"Dispatch failed for operations {list(self.operations)}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class IBMQTimeoutError(IBMQError):
    """Timed out waiting for a job to complete."""


class IBMQJobError(IBMQError):
    """Job execution failed or was cancelled on the provider."""

    def __init__(self, job_id: str, detail: str) -> None:
        self.job_id = job_id
        self.detail = detail
        super().__init__(f"Job {job_id} failed: {detail}")


class IBMQBatchSubmissionError(IBMQError):
    """A batch stopped part way; earlier jobs were already submitted."""

    def __init__(self, submitted_job_ids: Sequence[str], detail: str) -> None:
        self.submitted_job_ids = tuple(submitted_job_ids)
        self.detail = detail
        super().__init__(
            f"Batch submission failed after {len(self.submitted_job_ids)} jobs: {detail}"
        )


class IBMQSubmissionError(IBMQError):
    """The provider answered a job submission with an error status."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"IBM Quantum job submission failed with status {status_code}: {detail}")
