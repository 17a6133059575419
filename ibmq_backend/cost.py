"""Deterministic cost estimation for IBM Quantum devices.

The estimate is a pure function of circuit, shot count and device id:

  1. Gate timing table lookup (named hardware, named simulators, or the
     default hardware table).
  2. Execution time: per-shot gate time plus measurement of every qubit,
     multiplied by shots, plus a fixed inter-shot overhead; at least 1 ms.
  3. Pricing tier lookup (premium / standard / entry / simulator).
  4. Itemized breakdown: processor time, shot fee, complexity fee and a
     reserved priority fee.

No network calls are made.
"""

from __future__ import annotations

from typing import Any, Mapping, Union

from .circuit import Circuit
from .types import CostBreakdown

DEFAULT_GATE_US = 100.0
INTER_SHOT_OVERHEAD_US = 1000.0
MIN_EXECUTION_US = 1000.0

PER_SHOT_FEE = 0.0001
PER_GATE_FEE = 0.001
COMPLEXITY_GATE_THRESHOLD = 100
CREDITS_PER_UNIT = 100.0

MEASURE = "measure"

SINGLE_QUBIT_GATES = (
    "i", "h", "x", "y", "z", "s", "s-dag", "t", "t-dag", "sx", "rx", "ry", "rz", "phase",
)
TWO_QUBIT_GATES = (
    "cnot", "cx", "cy", "cz", "swap", "crx", "cry", "crz", "controlled-phase", "ecr", "rzz",
)
THREE_QUBIT_GATES = ("toffoli", "fredkin")


def _timing_table(single: float, two: float, three: float, measure: float) -> dict[str, float]:
    table = {g: single for g in SINGLE_QUBIT_GATES}
    table.update({g: two for g in TWO_QUBIT_GATES})
    table.update({g: three for g in THREE_QUBIT_GATES})
    table[MEASURE] = measure
    return table


# Gate durations in microseconds.
_HERON_TIMINGS = _timing_table(single=0.032, two=0.068, three=0.5, measure=1.56)
_EAGLE_TIMINGS = _timing_table(single=0.06, two=0.66, three=2.0, measure=4.0)
_SIMULATOR_TIMINGS = _timing_table(single=0.001, two=0.002, three=0.004, measure=0.001)
DEFAULT_HARDWARE_TIMINGS = _timing_table(single=0.05, two=0.5, three=1.5, measure=3.0)

HARDWARE_TIMINGS: dict[str, dict[str, float]] = {
    "ibm_torino": _HERON_TIMINGS,
    "ibm_fez": _HERON_TIMINGS,
    "ibm_marrakesh": _HERON_TIMINGS,
    "ibm_kingston": _HERON_TIMINGS,
    "ibm_aachen": _HERON_TIMINGS,
    "ibm_brisbane": _EAGLE_TIMINGS,
    "ibm_sherbrooke": _EAGLE_TIMINGS,
    "ibm_kyiv": _EAGLE_TIMINGS,
    "ibm_strasbourg": _EAGLE_TIMINGS,
    "ibm_brussels": _EAGLE_TIMINGS,
    "ibm_kyoto": _EAGLE_TIMINGS,
    "ibm_osaka": _EAGLE_TIMINGS,
    "ibm_nazca": _EAGLE_TIMINGS,
}

SIMULATOR_DEVICES = (
    "ibmq_qasm_simulator",
    "simulator_statevector",
    "simulator_mps",
    "simulator_stabilizer",
    "simulator_extended_stabilizer",
)
SIMULATOR_TIMINGS: dict[str, dict[str, float]] = {d: _SIMULATOR_TIMINGS for d in SIMULATOR_DEVICES}

PREMIUM = "premium"
STANDARD = "standard"
ENTRY = "entry"
SIMULATOR = "simulator"

# Cost per second of processor time, by tier.
TIER_COST_PER_SECOND: dict[str, float] = {
    PREMIUM: 1.60,
    STANDARD: 1.20,
    ENTRY: 0.80,
    SIMULATOR: 0.0,
}

DEVICE_TIERS: dict[str, str] = {
    "ibm_torino": PREMIUM,
    "ibm_fez": PREMIUM,
    "ibm_marrakesh": PREMIUM,
    "ibm_kingston": PREMIUM,
    "ibm_aachen": PREMIUM,
    "ibm_brisbane": STANDARD,
    "ibm_sherbrooke": STANDARD,
    "ibm_kyiv": STANDARD,
    "ibm_strasbourg": STANDARD,
    "ibm_brussels": STANDARD,
    "ibm_kyoto": ENTRY,
    "ibm_osaka": ENTRY,
    "ibm_nazca": ENTRY,
}
DEVICE_TIERS.update({d: SIMULATOR for d in SIMULATOR_DEVICES})

CircuitLike = Union[Circuit, Mapping[str, Any]]


def _as_circuit(circuit: CircuitLike) -> Circuit:
    if isinstance(circuit, Circuit):
        return circuit
    if isinstance(circuit, Mapping):
        return Circuit.from_dict(circuit)
    raise TypeError(f"Cannot estimate cost for {type(circuit).__name__}; expected a Circuit")


def gate_timings(device_id: str) -> dict[str, float]:
    """Microsecond cost per gate type for *device_id*."""
    if device_id in HARDWARE_TIMINGS:
        return HARDWARE_TIMINGS[device_id]
    if device_id in SIMULATOR_TIMINGS:
        return SIMULATOR_TIMINGS[device_id]
    return DEFAULT_HARDWARE_TIMINGS


def estimate_execution_time_us(circuit: CircuitLike, shots: int, device_id: str) -> float:
    """Estimated wall-clock execution time in microseconds."""
    if shots < 0:
        raise ValueError(f"shots must be >= 0, got {shots}")
    circ = _as_circuit(circuit)
    timings = gate_timings(device_id)

    per_shot = sum(timings.get(op.operation_type, DEFAULT_GATE_US) for op in circ.operations)
    per_shot += circ.num_qubits * timings[MEASURE]

    total = per_shot * shots + INTER_SHOT_OVERHEAD_US * max(shots - 1, 0)
    return max(total, MIN_EXECUTION_US)


def pricing_tier(device_id: str) -> str:
    """Pricing tier for *device_id*; unknown devices are priced as standard."""
    return DEVICE_TIERS.get(device_id, STANDARD)


def estimate_cost(circuit: CircuitLike, shots: int, device_id: str) -> CostBreakdown:
    """Itemized cost estimate for running *circuit* with *shots* on *device_id*."""
    circ = _as_circuit(circuit)
    execution_us = estimate_execution_time_us(circ, shots, device_id)
    execution_s = execution_us / 1_000_000
    tier = pricing_tier(device_id)

    processor_time_cost = execution_s * TIER_COST_PER_SECOND[tier]
    shot_cost = 0.0 if tier == SIMULATOR else shots * PER_SHOT_FEE
    complexity_fee = max(circ.gate_count - COMPLEXITY_GATE_THRESHOLD, 0) * PER_GATE_FEE
    priority_fee = 0.0
    total = processor_time_cost + shot_cost + complexity_fee + priority_fee

    return CostBreakdown(
        device_id=device_id,
        tier=tier,
        shots=shots,
        num_qubits=circ.num_qubits,
        gate_count=circ.gate_count,
        execution_time_us=execution_us,
        execution_time_seconds=execution_s,
        processor_time_cost=processor_time_cost,
        shot_cost=shot_cost,
        complexity_fee=complexity_fee,
        priority_fee=priority_fee,
        total_cost=total,
        estimated_credits=total * CREDITS_PER_UNIT,
    )
