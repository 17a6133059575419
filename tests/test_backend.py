"""Tests for the IBM Quantum backend adapter over an in-memory transport."""

import pytest

from ibmq_backend import (
    Circuit,
    CloudQuantumBackend,
    IBMQAuthenticationError,
    IBMQDispatchError,
    IBMQJobError,
    IBMQSubmissionError,
    IBMQTimeoutError,
    IBMQuantumBackend,
    IBMQValidationError,
    JobStatus,
    QuantumBackend,
    Settings,
)
from ibmq_backend.backend import DEFAULT_SHOTS, OPTIONAL_JOB_FIELDS


def _submit(backend, transport, circuit, options, provider_id="prov-1"):
    transport.respond("create-job", {"id": provider_id})
    return backend.submit_circuit(circuit, options)


def _request_body(transport):
    for op, params in transport.calls:
        if op == "create-job":
            return params["body"]
    raise AssertionError("create-job was never invoked")


class TestContracts:
    def test_implements_contracts(self, backend):
        assert isinstance(backend, QuantumBackend)
        assert isinstance(backend, CloudQuantumBackend)

    def test_repr(self, backend):
        assert "authenticated=True" in repr(backend)


class TestBackendInfo:
    def test_gates_from_properties(self, backend, transport):
        transport.respond("get-backend-properties", {"gates": [{"gate": "ecr"}, {"gate": "rz"}]})

        info = backend.get_backend_info("ibm_brisbane")

        assert info.backend_type == "cloud"
        assert info.supported_gates == frozenset({"ecr", "rz"})
        assert "openqasm3" in info.capabilities

    def test_gates_fall_back_to_configuration(self, backend, transport):
        transport.respond("get-backend-properties", {"qubits": []})
        transport.respond("get-backend-configuration", {"basis_gates": ["cz", "sx"]})

        assert backend.get_supported_gates("ibm_fez") == frozenset({"cz", "sx"})
        assert transport.operations == ["get-backend-properties", "get-backend-configuration"]

    def test_no_gates_anywhere(self, backend, transport):
        assert backend.get_supported_gates("ibm_fez") == frozenset()

    def test_default_device_from_settings(self, transport):
        backend = IBMQuantumBackend(transport=transport, settings=Settings(default_device="ibm_kyiv"))
        transport.respond("get-backend-properties", {"basis_gates": ["x"]})

        backend.get_supported_gates()

        _, params = transport.calls[0]
        assert params["id"] == "ibm_kyiv"

    def test_is_available(self, backend, transport):
        transport.respond("list-backends", {"devices": ["ibm_torino"]})
        assert backend.is_available() is True

    def test_is_available_on_error(self, backend, transport):
        transport.respond("list-backends", {"error": "down"}, status_code=503)
        assert backend.is_available() is False

    def test_is_available_without_response(self, backend):
        assert backend.is_available() is False


class TestSubmit:
    def test_returns_local_handle(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options, provider_id="d1abc")

        assert job_id != "d1abc"
        record = backend.get_job_record(job_id)
        assert record.provider_id == "d1abc"
        assert record.device_id == "ibm_torino"
        assert record.shots == 1024

    def test_request_body(self, backend, transport, bell, job_options):
        _submit(backend, transport, bell, job_options)

        body = _request_body(transport)
        assert body["program_id"] == "sampler"
        assert body["backend"] == "ibm_torino"
        qasm, _, shots = body["params"]["pubs"][0]
        assert qasm.startswith("OPENQASM 3.0;")
        assert shots == 1024
        assert body["params"]["options"]["default_shots"] == 1024

    def test_optional_fields_omitted(self, backend, transport, bell, job_options):
        _submit(backend, transport, bell, job_options)

        body = _request_body(transport)
        for key in OPTIONAL_JOB_FIELDS:
            assert key not in body

    def test_optional_fields_included_when_set(self, backend, transport, bell, job_options):
        options = dict(job_options, tags=["exp-1"], session_id="sess-1", log_level=None)
        _submit(backend, transport, bell, options)

        body = _request_body(transport)
        assert body["tags"] == ["exp-1"]
        assert body["session_id"] == "sess-1"
        assert "log_level" not in body

    def test_default_shots(self, backend, transport, bell):
        job_id = _submit(backend, transport, bell, {"backend": "ibm_fez", "program_id": "sampler"})
        assert backend.get_job_record(job_id).shots == DEFAULT_SHOTS

    def test_qasm_string_passes_through(self, backend, transport, job_options):
        source = "OPENQASM 3.0;\nqubit[1] q;\n"
        _submit(backend, transport, source, job_options)
        assert _request_body(transport)["params"]["pubs"][0][0] == source

    def test_program_id_alias(self, backend, transport, bell):
        _submit(backend, transport, bell, {"backend": "ibm_fez", "programId": "estimator"})
        assert _request_body(transport)["program_id"] == "estimator"

    def test_bearer_token_sent(self, backend, transport, bell, job_options):
        _submit(backend, transport, bell, job_options)
        _, params = transport.calls[0]
        assert params["headers"]["Authorization"] == "Bearer test-token"
        assert params["headers"]["IBM-API-Version"] == "2025-05-01"

    def test_handles_unique(self, backend, transport, bell, job_options):
        transport.respond("create-job", {"id": "same-provider-id"})
        handles = {backend.submit_circuit(bell, job_options) for _ in range(50)}
        assert len(handles) == 50

    @pytest.mark.parametrize(
        "options",
        [
            {"program_id": "sampler"},
            {"backend": "ibm_fez"},
            {"backend": "ibm_fez", "program_id": "sampler", "shots": 0},
            {"backend": "ibm_fez", "program_id": "sampler", "shots": "100"},
            {"backend": "ibm_fez", "program_id": "sampler", "shots": True},
        ],
    )
    def test_validation_before_any_call(self, backend, transport, bell, options):
        with pytest.raises(IBMQValidationError):
            backend.submit_circuit(bell, options)
        assert transport.calls == []

    def test_unserializable_circuit_is_validation_error(self, backend, transport, job_options):
        circuit = Circuit(num_qubits=2).add("ecr", 0, 1)

        with pytest.raises(IBMQValidationError, match="ecr"):
            backend.submit_circuit(circuit, job_options)

        assert transport.calls == []
        assert backend.get_queue_status().total_tracked == 0

    def test_requires_token(self, anonymous_backend, transport, bell, job_options):
        with pytest.raises(IBMQAuthenticationError):
            anonymous_backend.submit_circuit(bell, job_options)
        assert transport.calls == []

    def test_no_response_registers_nothing(self, backend, transport, bell, job_options):
        with pytest.raises(IBMQDispatchError):
            backend.submit_circuit(bell, job_options)
        assert backend.get_queue_status().total_tracked == 0

    def test_provider_rejection(self, backend, transport, bell, job_options):
        transport.respond("create-job", {"errors": [{"message": "bad backend"}]}, status_code=400)

        with pytest.raises(IBMQSubmissionError) as exc_info:
            backend.submit_circuit(bell, job_options)

        assert exc_info.value.status_code == 400
        assert backend.get_queue_status().total_tracked == 0

    def test_missing_provider_id(self, backend, transport, bell, job_options):
        transport.respond("create-job", {"message": "accepted"})

        job_id = backend.submit_circuit(bell, job_options)

        assert backend.get_job_record(job_id).provider_id is None
        calls_before = len(transport.calls)
        assert backend.get_job_status(job_id) == JobStatus.UNKNOWN
        result = backend.get_job_result(job_id)
        assert result.status == JobStatus.FAILED
        assert result.error_message == "missing-provider-id"
        assert backend.cancel_job(job_id).error == "missing-provider-id"
        assert len(transport.calls) == calls_before


class TestStatus:
    def test_status_uses_provider_id(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options, provider_id="prov-7")
        transport.respond("get-job-details-jid", {"status": "Running"})

        assert backend.get_job_status(job_id) == JobStatus.RUNNING
        op, params = transport.calls[-1]
        assert op == "get-job-details-jid"
        assert params["id"] == "prov-7"

    def test_status_alias_fallback(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-details-jid", None, status_code=401)
        transport.respond("get-job", {"state": {"status": "Completed"}})

        assert backend.get_job_status(job_id) == JobStatus.COMPLETED

    def test_unknown_handle_makes_no_call(self, backend, transport):
        assert backend.get_job_status("never-issued") == JobStatus.UNKNOWN
        assert transport.calls == []

    def test_unrecognized_status_text(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-details-jid", {"status": "Validating"})
        assert backend.get_job_status(job_id) == JobStatus.UNKNOWN

    def test_no_response_raises(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        with pytest.raises(IBMQDispatchError):
            backend.get_job_status(job_id)

    def test_queries_work_without_token(self, anonymous_backend, transport):
        transport.respond("list-backends", {"devices": []})
        anonymous_backend.list_available_devices()
        _, params = transport.calls[0]
        assert "Authorization" not in params["headers"]


class TestResult:
    def test_completed_result(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options, provider_id="prov-2")
        transport.respond("get-job-results-jid", {"counts": {"00": 512, "11": 512}})

        result = backend.get_job_result(job_id)

        assert result.status == JobStatus.COMPLETED
        assert result.is_success
        assert result.job_id == job_id
        assert result.provider_id == "prov-2"
        assert result.counts == {"00": 512, "11": 512}
        assert result.probabilities() == {"00": 0.5, "11": 0.5}
        assert result.raw == {"counts": {"00": 512, "11": 512}}

    def test_result_from_string_body(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-results-jid", '{"measurement-results": {"1": 3}}')

        result = backend.get_job_result(job_id)

        assert result.measurement_results == {"1": 3}
        assert result.most_frequent() == ("1", 1.0)

    def test_result_alias_fallback_to_third_name(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-results-jid", None, status_code=401)
        transport.respond("get-job-results", None, status_code=401)
        transport.respond("get-job-result", {"results": [{"data": {}}]})

        assert backend.get_job_result(job_id).measurement_results == [{"data": {}}]

    def test_provider_error_status(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-results-jid", {"error": "not ready"}, status_code=409)

        result = backend.get_job_result(job_id)

        assert result.status == JobStatus.FAILED
        assert "409" in result.error_message

    def test_unknown_handle(self, backend, transport):
        result = backend.get_job_result("never-issued")
        assert result.status == JobStatus.FAILED
        assert result.error_message == "unknown-job"
        assert result.job_id == "never-issued"
        assert transport.calls == []

    def test_malformed_body_gives_empty_measurements(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-results-jid", "<html>gateway</html>")

        result = backend.get_job_result(job_id)

        assert result.measurement_results == {}
        assert result.raw == "<html>gateway</html>"


class TestCancel:
    def test_cancel(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options, provider_id="prov-3")
        transport.respond("cancel-job-jid", None, status_code=204)

        outcome = backend.cancel_job(job_id)

        assert outcome.cancelled is True
        assert outcome.provider_id == "prov-3"

    def test_cancel_falls_back_to_delete(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("cancel-job-jid", None, status_code=401)
        transport.respond("delete-job-jid", None, status_code=204)

        assert backend.cancel_job(job_id).cancelled is True
        assert transport.operations[-3:] == ["cancel-job-jid", "cancel-job", "delete-job-jid"]

    def test_cancel_rejected(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("cancel-job-jid", {"error": "already done"}, status_code=409)

        outcome = backend.cancel_job(job_id)

        assert outcome.cancelled is False
        assert outcome.raw == {"error": "already done"}

    def test_cancel_unknown(self, backend, transport):
        assert backend.cancel_job("nope").error == "unknown-job"
        assert transport.calls == []

    def test_cancel_requires_token(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        anonymous = IBMQuantumBackend(transport=transport, settings=Settings())
        anonymous._jobs.put(job_id, backend.get_job_record(job_id))

        with pytest.raises(IBMQAuthenticationError):
            anonymous.cancel_job(job_id)


class TestAuthenticate:
    @pytest.mark.parametrize("key", ["api_token", "token", "api_key", "bearer_token", "ibm_quantum_api_key"])
    def test_accepted_keys(self, anonymous_backend, key):
        outcome = anonymous_backend.authenticate({key: "secret"})

        assert outcome["status"] == "authenticated"
        assert outcome["token_set"] is True
        assert anonymous_backend.get_session_info()["has_token"] is True

    def test_blank_token_rejected(self, anonymous_backend):
        with pytest.raises(IBMQAuthenticationError):
            anonymous_backend.authenticate({"api_token": "   "})
        assert anonymous_backend.get_session_info()["has_token"] is False

    def test_missing_token_rejected(self, anonymous_backend):
        with pytest.raises(IBMQAuthenticationError, match="api_token"):
            anonymous_backend.authenticate({"username": "alice"})

    def test_token_used_after_authenticate(self, anonymous_backend, transport, bell, job_options):
        anonymous_backend.authenticate({"token": "fresh"})
        _submit(anonymous_backend, transport, bell, job_options)

        _, params = transport.calls[0]
        assert params["headers"]["Authorization"] == "Bearer fresh"

    def test_session_info_timestamp(self, anonymous_backend):
        outcome = anonymous_backend.authenticate({"api_token": "t"})
        assert anonymous_backend.get_session_info()["authenticated_at"] == outcome["authenticated_at"]


class TestDevices:
    def test_list_devices(self, backend, transport):
        transport.respond(
            "list-backends",
            {"devices": ["ibm_torino", {"name": "ibm_brisbane", "status": "paused", "qubits": 127}]},
        )

        devices = backend.list_available_devices()

        assert [d.device_id for d in devices] == ["ibm_torino", "ibm_brisbane"]
        assert devices[0].device_status == "online"
        assert devices[1].device_status == "offline"

    def test_list_devices_no_response(self, backend):
        with pytest.raises(IBMQDispatchError):
            backend.list_available_devices()

    def test_topology(self, backend, transport):
        transport.respond("get-backend-configuration", {"coupling_map": [[0, 1], [1, 2]]})

        topology = backend.get_device_topology("ibm_fez")

        assert topology.device_id == "ibm_fez"
        assert topology.coupling_map == [[0, 1], [1, 2]]

    def test_topology_missing_map(self, backend, transport):
        transport.respond("get-backend-configuration", {"n_qubits": 5})
        assert backend.get_device_topology("ibm_fez").coupling_map == []

    def test_calibration(self, backend, transport):
        transport.respond("get-backend-properties", {"calibration": {"t1": [100.0]}})
        assert backend.get_calibration_data("ibm_fez").calibration == {"t1": [100.0]}

    def test_calibration_whole_body(self, backend, transport):
        transport.respond("get-backend-properties", {"qubits": [[{"name": "T1", "value": 80}]]})
        assert backend.get_calibration_data("ibm_fez").calibration == {
            "qubits": [[{"name": "T1", "value": 80}]]
        }


class TestEstimateCost:
    def test_no_network(self, backend, transport, bell):
        breakdown = backend.estimate_cost(bell, {"backend": "ibm_torino", "shots": 1024})
        assert breakdown.shots == 1024
        assert transport.calls == []

    def test_default_shots(self, backend, bell):
        assert backend.estimate_cost(bell, {"backend": "ibm_torino"}).shots == DEFAULT_SHOTS

    def test_backend_required(self, backend, bell):
        with pytest.raises(IBMQValidationError):
            backend.estimate_cost(bell, {"shots": 10})

    @pytest.mark.parametrize("shots", [0, -5, "1024", 1.5, False])
    def test_invalid_shots_rejected(self, backend, transport, bell, shots):
        with pytest.raises(IBMQValidationError, match="shots"):
            backend.estimate_cost(bell, {"backend": "ibm_torino", "shots": shots})
        assert transport.calls == []

    def test_single_shot_is_priced(self, backend, bell):
        assert backend.estimate_cost(bell, {"backend": "ibm_torino", "shots": 1}).shot_cost > 0


class TestExtensions:
    def test_job_metrics(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options, provider_id="prov-9")
        transport.respond("get-job-metrics-jid", {"usage": {"quantum_seconds": 2}})

        metrics = backend.get_job_metrics(job_id)

        assert metrics["provider_id"] == "prov-9"
        assert metrics["metrics"] == {"usage": {"quantum_seconds": 2}}

    def test_job_logs(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-logs-jid", "line one\nline two")
        assert backend.get_job_logs(job_id)["logs"] == "line one\nline two"

    def test_transpiled_circuits_alias(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-transpiled-circuits", {"circuits": ["OPENQASM 3.0;"]})

        doc = backend.get_transpiled_circuits(job_id)

        assert doc["transpiled_circuits"] == {"circuits": ["OPENQASM 3.0;"]}

    def test_unknown_job(self, backend, transport):
        assert backend.get_job_metrics("nope") == {"error": "unknown-job", "job_id": "nope"}
        assert transport.calls == []

    def test_usage_analytics(self, backend, transport):
        transport.respond("get-usage-analytics", {"usage": 42})

        doc = backend.get_usage_analytics({"interval": "day", "instance": None})

        assert doc == {"status_code": 200, "analytics": {"usage": 42}}
        _, params = transport.calls[0]
        assert params["query"] == {"interval": "day"}

    def test_usage_analytics_requires_token(self, anonymous_backend, transport):
        with pytest.raises(IBMQAuthenticationError):
            anonymous_backend.get_usage_analytics()
        assert transport.calls == []


class TestWaitForJob:
    @pytest.mark.parametrize(
        "status, terminal",
        [
            (JobStatus.COMPLETED, True),
            (JobStatus.FAILED, True),
            (JobStatus.CANCELLED, True),
            (JobStatus.QUEUED, False),
            (JobStatus.RUNNING, False),
            (JobStatus.UNKNOWN, False),
        ],
    )
    def test_terminal_statuses(self, status, terminal):
        assert status.is_terminal is terminal

    def test_unknown_status_keeps_polling(self, backend, transport, bell, job_options, monkeypatch):
        job_id = _submit(backend, transport, bell, job_options)
        statuses = iter([JobStatus.UNKNOWN, JobStatus.UNKNOWN, JobStatus.COMPLETED])
        monkeypatch.setattr(backend, "get_job_status", lambda _: next(statuses))
        transport.respond("get-job-results-jid", {"counts": {"1": 2}})

        assert backend.wait_for_job(job_id, poll_interval=0).counts == {"1": 2}

    def test_completes(self, backend, transport, bell, job_options, monkeypatch):
        job_id = _submit(backend, transport, bell, job_options)
        statuses = iter([JobStatus.QUEUED, JobStatus.RUNNING, JobStatus.COMPLETED])
        monkeypatch.setattr(backend, "get_job_status", lambda _: next(statuses))
        transport.respond("get-job-results-jid", {"counts": {"0": 1}})

        result = backend.wait_for_job(job_id, poll_interval=0)

        assert result.counts == {"0": 1}

    def test_failed(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-details-jid", {"status": "Failed"})

        with pytest.raises(IBMQJobError):
            backend.wait_for_job(job_id, poll_interval=0)

    def test_cancelled(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-details-jid", {"status": "Cancelled"})

        with pytest.raises(IBMQJobError, match="cancelled"):
            backend.wait_for_job(job_id, poll_interval=0)

    def test_timeout(self, backend, transport, bell, job_options):
        job_id = _submit(backend, transport, bell, job_options)
        transport.respond("get-job-details-jid", {"status": "Queued"})

        with pytest.raises(IBMQTimeoutError):
            backend.wait_for_job(job_id, poll_interval=0, timeout=0)

    def test_unknown_handle(self, backend):
        with pytest.raises(IBMQJobError, match="unknown-job"):
            backend.wait_for_job("never-issued")
