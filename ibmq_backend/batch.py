"""Batch submission built on repeated single-job submission."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from .exceptions import IBMQBatchSubmissionError, IBMQError
from .state import BatchRegistry
from .types import BatchRecord, BatchResults, BatchStatus, BatchSubmission, JobResult, JobStatus

logger = logging.getLogger(__name__)


class BatchCoordinator:
    """Group job handles under a batch handle and aggregate on demand.

    Parameters
    ----------
    submit : Callable
        ``submit(circuit, options) -> job_id``.
    status : Callable
        ``status(job_id) -> JobStatus``.
    result : Callable
        ``result(job_id) -> JobResult``.
    """

    def __init__(
        self,
        submit: Callable[[Any, Mapping[str, Any]], str],
        status: Callable[[str], JobStatus],
        result: Callable[[str], JobResult],
        registry: BatchRegistry | None = None,
    ) -> None:
        self._submit = submit
        self._status = status
        self._result = result
        self.registry = registry or BatchRegistry()

    def batch_submit(self, circuits: Any, options: Mapping[str, Any]) -> BatchSubmission:
        """Submit every circuit with identical *options*, in order.

        *circuits* may be any iterable of circuits; a single circuit, QASM
        string or circuit mapping is treated as a batch of one.

        Raises
        ------
        IBMQBatchSubmissionError
            If a submission fails. Jobs submitted before the failure stay
            tracked and their handles are carried on the error; no batch
            handle is registered.
        """
        if isinstance(circuits, (str, bytes, Mapping)) or not isinstance(circuits, Iterable):
            circuits = [circuits]
        job_ids: list[str] = []
        for circuit in circuits:
            try:
                job_ids.append(self._submit(circuit, options))
            except IBMQError as exc:
                logger.warning("Batch submission stopped after %d jobs: %s", len(job_ids), exc)
                raise IBMQBatchSubmissionError(job_ids, str(exc)) from exc
        batch_id = self.registry.register(
            BatchRecord(job_ids=tuple(job_ids), submitted_at=datetime.now(timezone.utc))
        )
        logger.info("Submitted batch %s with %d jobs", batch_id, len(job_ids))
        return BatchSubmission(batch_id=batch_id, job_ids=job_ids)

    def get_batch_status(self, batch_id: str) -> BatchStatus:
        record = self.registry.get(batch_id)
        if record is None:
            return BatchStatus(batch_id=batch_id, error="unknown-batch")

        statuses = {}
        for job_id in record.job_ids:
            try:
                statuses[job_id] = self._status(job_id)
            except IBMQError as exc:
                logger.warning("Status of job %s in batch %s unavailable: %s", job_id, batch_id, exc)
                statuses[job_id] = JobStatus.UNKNOWN
        return BatchStatus(batch_id=batch_id, job_ids=list(record.job_ids), statuses=statuses)

    def get_batch_results(self, batch_id: str) -> BatchResults:
        """Results for every job in the batch; one failure never aborts the rest."""
        record = self.registry.get(batch_id)
        if record is None:
            return BatchResults(batch_id=batch_id, error="unknown-batch")

        results = []
        for job_id in record.job_ids:
            try:
                results.append(self._result(job_id))
            except IBMQError as exc:
                results.append(
                    JobResult(status=JobStatus.FAILED, job_id=job_id, error_message=str(exc))
                )
        return BatchResults(batch_id=batch_id, results=results)
