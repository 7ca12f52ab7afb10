# infrastructure/engine/demo_pw_calculation.py
"""
A deterministic stand-in for ``pw.x``.

It does no electronic structure at all: the energy follows a parabola in the
cell volume so that an equation-of-state sweep has a well defined minimum,
and the SCF "converges" only once ``mixing_beta`` is small enough. That is
enough to exercise the restart handlers end to end without a cluster.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Tuple

from application.exceptions import TransportError
from application.handlers.parameters import get_path
from application.ports.calculation import CalculationPort
from domain.termination import ExitCodes, TerminationSignal

DEFAULT_MIXING_BETA = 0.7


@dataclass(frozen=True)
class EquationOfState:
    volume0: float = 40.89       # Å^3, two-atom silicon cell
    energy0: float = -310.18     # eV
    bulk_modulus: float = 0.61   # eV/Å^3

    def energy(self, volume: float) -> float:
        return self.energy0 + 0.5 * self.bulk_modulus * (volume - self.volume0) ** 2 / self.volume0


class DemoPwCalculation(CalculationPort):
    def __init__(
        self,
        max_stable_mixing_beta: float = 0.35,
        transport_failures: int = 0,
        eos: EquationOfState | None = None,
        computer: str = "localhost",
        polls_until_done: int = 1,
    ) -> None:
        self.max_stable_mixing_beta = max_stable_mixing_beta
        self.eos = eos or EquationOfState()
        self.computer = computer
        self.polls_until_done = max(polls_until_done, 1)
        self._transport_failures_left = transport_failures
        self._jobs: Dict[str, Tuple[str, Dict[str, Any]]] = {}
        self._polls_left: Dict[str, int] = {}
        # stash path -> working directory it was copied from
        self.stashed: Dict[str, str] = {}
        self._lock = Lock()

    def upload(self, code: str, inputs: Dict[str, Any], options: Dict[str, Any]) -> str:
        with self._lock:
            if self._transport_failures_left > 0:
                self._transport_failures_left -= 1
                raise TransportError(f"ssh connection to {self.computer} refused")
            workdir = f"/scratch/{self.computer}/{uuid.uuid4().hex}"
            self._jobs[workdir] = (code, inputs)
        return workdir

    def submit(self, workdir: str) -> str:
        job_id = f"job-{workdir.rsplit('/', 1)[-1][:8]}"
        with self._lock:
            if workdir not in self._jobs:
                raise TransportError(f"remote folder vanished: {workdir}")
            self._polls_left[job_id] = self.polls_until_done
        return job_id

    def update(self, job_id: str) -> bool:
        with self._lock:
            if job_id not in self._polls_left:
                raise TransportError(f"scheduler does not know job {job_id}")
            self._polls_left[job_id] -= 1
            return self._polls_left[job_id] <= 0

    def stash(self, workdir: str, target_base: str) -> Dict[str, Any]:
        with self._lock:
            if workdir not in self._jobs:
                raise TransportError(f"remote folder vanished: {workdir}")
            path = f"{target_base.rstrip('/')}/{workdir.rsplit('/', 1)[-1]}"
            self.stashed[path] = workdir
        return {"computer": self.computer, "path": path}

    def retrieve(self, workdir: str, job_id: str) -> TerminationSignal:
        with self._lock:
            code, inputs = self._jobs.pop(workdir)
            self._polls_left.pop(job_id, None)

        remote_folder = {"computer": self.computer, "path": workdir}
        mixing_beta = get_path(inputs, "parameters.ELECTRONS.mixing_beta", DEFAULT_MIXING_BETA)
        if mixing_beta > self.max_stable_mixing_beta:
            return TerminationSignal.from_exit_code(
                ExitCodes.ERROR_ELECTRONIC_CONVERGENCE_NOT_REACHED,
                outputs={"remote_folder": remote_folder},
            )

        scale_factor = float(inputs.get("scale_factor", 1.0))
        volume = self.eos.volume0 * scale_factor ** 3
        return TerminationSignal(
            status=0,
            message=ExitCodes.SUCCESS.message,
            outputs={
                "output_parameters": {
                    "code": code,
                    "scale_factor": scale_factor,
                    "volume": volume,
                    "energy": self.eos.energy(volume),
                    "energy_units": "eV",
                    "mixing_beta": mixing_beta,
                    "restarted_from": (inputs.get("parent_folder") or {}).get("path"),
                },
                "remote_folder": remote_folder,
            },
        )
