"""Minimal circuit representation and OpenQASM 3 serialization.

The adapter only needs two things from a circuit: the operation list (for
cost estimation) and an OpenQASM 3 rendering (for job submission).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

# Operation type -> OpenQASM 3 stdgates name
_QASM_GATES: dict[str, str] = {
    "i": "id",
    "h": "h",
    "x": "x",
    "y": "y",
    "z": "z",
    "s": "s",
    "s-dag": "sdg",
    "t": "t",
    "t-dag": "tdg",
    "sx": "sx",
    "rx": "rx",
    "ry": "ry",
    "rz": "rz",
    "phase": "p",
    "cnot": "cx",
    "cx": "cx",
    "cy": "cy",
    "cz": "cz",
    "swap": "swap",
    "crx": "crx",
    "cry": "cry",
    "crz": "crz",
    "controlled-phase": "cp",
    "toffoli": "ccx",
    "fredkin": "cswap",
}


@dataclass(frozen=True)
class Operation:
    """One gate (or measurement) applied to specific qubits."""

    operation_type: str
    qubits: tuple[int, ...]
    params: tuple[float, ...] = ()


@dataclass
class Circuit:
    """A named list of operations over ``num_qubits`` qubits."""

    num_qubits: int
    operations: list[Operation] = field(default_factory=list)
    name: str = "circuit"

    def add(self, operation_type: str, *qubits: int, params: tuple[float, ...] = ()) -> "Circuit":
        """Append an operation and return ``self`` for chaining."""
        for q in qubits:
            if not 0 <= q < self.num_qubits:
                raise ValueError(
                    f"Qubit {q} out of range for {self.num_qubits}-qubit circuit"
                )
        self.operations.append(Operation(operation_type, tuple(qubits), tuple(params)))
        return self

    @property
    def gate_count(self) -> int:
        return len(self.operations)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Circuit":
        """Build a circuit from a ``{"num_qubits", "operations"}`` mapping."""
        operations = [
            Operation(
                operation_type=str(op["operation_type"]),
                qubits=tuple(op.get("qubits", ())),
                params=tuple(op.get("params", ())),
            )
            for op in data.get("operations", [])
        ]
        return cls(
            num_qubits=int(data["num_qubits"]),
            operations=operations,
            name=data.get("name", "circuit"),
        )


def to_qasm3(circuit: Circuit) -> str:
    """Render *circuit* as OpenQASM 3 source.

    Measurements are appended for every qubit unless the circuit already
    contains explicit ``measure`` operations.

    Raises
    ------
    ValueError
        If the circuit contains an operation with no OpenQASM 3 equivalent.
    """
    n = circuit.num_qubits
    lines: list[str] = [
        "OPENQASM 3.0;",
        'include "stdgates.inc";',
        f"qubit[{n}] q;",
        f"bit[{n}] c;",
    ]

    measured = False
    for op in circuit.operations:
        if op.operation_type == "measure":
            measured = True
            for q in op.qubits:
                lines.append(f"c[{q}] = measure q[{q}];")
            continue

        gate = _QASM_GATES.get(op.operation_type)
        if gate is None:
            raise ValueError(f"Unsupported operation for OpenQASM 3: {op.operation_type}")

        args = ", ".join(f"q[{q}]" for q in op.qubits)
        if op.params:
            params = ", ".join(f"{p:.10f}" for p in op.params)
            lines.append(f"{gate}({params}) {args};")
        else:
            lines.append(f"{gate} {args};")

    if not measured:
        lines.append("c = measure q;")

    return "\n".join(lines) + "\n"
