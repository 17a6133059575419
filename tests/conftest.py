"""Shared fixtures: a recording in-memory transport and ready-made backends."""

import pytest

from ibmq_backend import Circuit, IBMQuantumBackend, Settings
from ibmq_backend.exceptions import IBMQUnknownOperationError
from ibmq_backend.transport import TransportResponse


class FakeTransport:
    """Transport that answers named operations from a canned table.

    Every invocation is recorded in ``calls`` as ``(operation, params)``.
    Operations without a canned answer raise ``IBMQUnknownOperationError``,
    like a real client asked for a route it does not know.
    """

    def __init__(self):
        self.calls = []
        self._answers = {}

    def respond(self, operation, body=None, status_code=200):
        self._answers[operation] = TransportResponse(status_code=status_code, body=body)
        return self

    def fail(self, operation, exc):
        self._answers[operation] = exc
        return self

    def invoke(self, operation, params):
        self.calls.append((operation, params))
        answer = self._answers.get(operation)
        if answer is None:
            raise IBMQUnknownOperationError(operation)
        if isinstance(answer, Exception):
            raise answer
        return answer

    @property
    def operations(self):
        return [op for op, _ in self.calls]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def backend(transport):
    """Authenticated backend over the fake transport."""
    return IBMQuantumBackend(transport=transport, settings=Settings(), api_token="test-token")


@pytest.fixture
def anonymous_backend(transport):
    return IBMQuantumBackend(transport=transport, settings=Settings())


@pytest.fixture
def bell():
    return Circuit(num_qubits=2, name="bell").add("h", 0).add("cnot", 0, 1)


@pytest.fixture
def job_options():
    return {"backend": "ibm_torino", "program_id": "sampler", "shots": 1024}
