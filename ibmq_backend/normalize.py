"""Normalization of loosely-typed provider response bodies.

Every extraction is an ordered list of candidate field paths tried in
sequence; the first present value wins. The chains below are the single
source of truth for fallback order.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Sequence

from .types import DeviceInfo, JobStatus

logger = logging.getLogger(__name__)

FieldPath = Sequence[Any]

JOB_ID_FIELDS: tuple[FieldPath, ...] = (("id",), ("job_id",))
SESSION_ID_FIELDS: tuple[FieldPath, ...] = (("id",), ("session_id",))
STATUS_FIELDS: tuple[FieldPath, ...] = (("status",), ("Status",), ("state", "status"))
MEASUREMENT_FIELDS: tuple[FieldPath, ...] = (
    ("measurement-results",),
    ("counts",),
    ("results",),
    ("pubs", 0, "results"),
)
DEVICE_LIST_FIELDS: tuple[FieldPath, ...] = (("devices",), ("backends",))
DEVICE_ID_FIELDS: tuple[FieldPath, ...] = (
    ("id",),
    ("device_id",),
    ("backend",),
    ("backend_name",),
    ("name",),
)
DEVICE_NAME_FIELDS: tuple[FieldPath, ...] = (("name",), ("backend_name",))
DEVICE_QUBITS_FIELDS: tuple[FieldPath, ...] = (
    ("num_qubits",),
    ("n_qubits",),
    ("qubits",),
    ("max_qubits",),
)
COUPLING_MAP_FIELDS: tuple[FieldPath, ...] = (("coupling_map",), ("topology",))
GATE_LIST_FIELDS: tuple[FieldPath, ...] = (("gates",), ("basis_gates",), ("supported_instructions",))

_STATUS_MAP = {
    "completed": JobStatus.COMPLETED,
    "running": JobStatus.RUNNING,
    "queued": JobStatus.QUEUED,
    "cancelled": JobStatus.CANCELLED,
    "failed": JobStatus.FAILED,
}

_ONLINE_STATES = {"online", "available", "active"}


def parse_body(maybe_body: Any) -> Any | None:
    """Decode a response body, returning ``None`` when it cannot be parsed.

    Strings are parsed as JSON; anything else is returned unchanged.
    """
    if maybe_body is None:
        return None
    if isinstance(maybe_body, (str, bytes)):
        try:
            return json.loads(maybe_body)
        except (ValueError, TypeError):
            return None
    return maybe_body


def get_path(doc: Any, path: FieldPath) -> Any | None:
    """Follow *path* (keys and list indices) into *doc*."""
    current = doc
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, (list, tuple)) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        elif isinstance(current, dict):
            current = current.get(key)
        else:
            return None
        if current is None:
            return None
    return current


def first_present(
    doc: Any,
    paths: Sequence[FieldPath],
    accept: Callable[[Any], bool] | None = None,
) -> Any | None:
    """Return the value at the first of *paths* that is present in *doc*."""
    for path in paths:
        value = get_path(doc, path)
        if value is not None and (accept is None or accept(value)):
            return value
    return None


def normalize_status(raw: Any) -> JobStatus:
    """Map arbitrary provider status text onto :class:`JobStatus`."""
    if not isinstance(raw, str):
        return JobStatus.UNKNOWN
    return _STATUS_MAP.get(raw.strip().lower(), JobStatus.UNKNOWN)


def extract_status(body: Any) -> JobStatus:
    doc = parse_body(body)
    return normalize_status(first_present(doc, STATUS_FIELDS, accept=lambda v: isinstance(v, str)))


def extract_provider_job_id(body: Any) -> str | None:
    """Provider job id from a create-job body: ``id``, ``job_id``, else the raw body."""
    doc = parse_body(body)
    value = first_present(doc, JOB_ID_FIELDS)
    if value is not None:
        return str(value)
    if isinstance(doc, str) and doc.strip():
        return doc.strip()
    # unparseable text bodies are taken as the id itself
    if doc is None and isinstance(body, str) and body.strip():
        return body.strip()
    return None


def extract_session_id(body: Any) -> str | None:
    value = first_present(parse_body(body), SESSION_ID_FIELDS)
    return str(value) if value is not None else None


def extract_measurements(body: Any) -> Any:
    """Measurement structure from a results body, ``{}`` when none is found."""
    doc = parse_body(body)
    if not isinstance(doc, dict):
        return {}
    value = first_present(doc, MEASUREMENT_FIELDS)
    return {} if value is None else value


def extract_gate_names(body: Any) -> frozenset[str]:
    """Gate names from a properties or configuration body.

    Entries may be plain names or objects carrying a ``gate``/``name`` field.
    """
    gates = first_present(parse_body(body), GATE_LIST_FIELDS, accept=lambda v: isinstance(v, list))
    names = set()
    for entry in gates or []:
        if isinstance(entry, str):
            names.add(entry.lower())
        elif isinstance(entry, dict):
            name = entry.get("gate") or entry.get("name")
            if isinstance(name, str):
                names.add(name.lower())
    return frozenset(names)


def extract_devices(body: Any) -> list[Any]:
    devices = first_present(parse_body(body), DEVICE_LIST_FIELDS, accept=lambda v: isinstance(v, list))
    return list(devices or [])


def normalize_device(entry: Any) -> DeviceInfo:
    """Build a :class:`DeviceInfo` from a device name or device object."""
    if not isinstance(entry, dict):
        device_id = str(entry)
        return DeviceInfo(device_id=device_id, device_name=device_id, device_status="online", raw=entry)

    device_id = first_present(entry, DEVICE_ID_FIELDS)
    name = first_present(entry, DEVICE_NAME_FIELDS) or device_id
    status_raw = entry.get("status")
    if isinstance(status_raw, dict):
        status_raw = status_raw.get("name")
    status = str(status_raw or "online").lower()
    qubits = first_present(entry, DEVICE_QUBITS_FIELDS)
    return DeviceInfo(
        device_id=str(device_id),
        device_name=str(name),
        device_status="online" if status in _ONLINE_STATES else "offline",
        max_qubits=qubits if isinstance(qubits, int) else None,
        raw=entry,
    )
