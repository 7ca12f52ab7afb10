# domain/termination.py
"""
Termination signals and the exit status taxonomy.

Statuses below 300 are infrastructure level. The controller reports its own
terminal reasons with 301-310 and 401; every other status comes from the
calculation itself.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class ExitCode:
    status: int
    message: str


class ExitCodes:
    SUCCESS = ExitCode(0, "finished successfully")

    # infrastructure
    ERROR_UNEXPECTED_FAILURE = ExitCode(120, "the execution engine failed without a specific status")

    # controller
    ERROR_HANDLER_FAULT = ExitCode(301, "an error handler raised an exception")
    ERROR_CANCELLED = ExitCode(302, "the run was cancelled")
    ERROR_UNRECOVERABLE_FAILURE = ExitCode(310, "an unrecoverable failure was detected")
    ERROR_MAXIMUM_RETRIES_EXCEEDED = ExitCode(401, "the maximum number of retries was exceeded")

    # calculation
    ERROR_INCOMPATIBLE_FFT_GRID = ExitCode(350, "the fft grid is incompatible with the detected symmetries")
    ERROR_READING_PSEUDO_FILE = ExitCode(351, "a pseudopotential file could not be read")
    ERROR_OUT_OF_WALLTIME = ExitCode(400, "the calculation stopped prematurely because it ran out of walltime")
    ERROR_ELECTRONIC_CONVERGENCE_NOT_REACHED = ExitCode(410, "the electronic minimization cycle did not reach self-consistency")
    ERROR_COMPUTING_CHOLESKY = ExitCode(462, "the cholesky decomposition failed")
    ERROR_DIAGONALIZATION_TOO_MANY_BANDS_NOT_CONVERGED = ExitCode(463, "too many bands failed to converge during diagonalization")


@dataclass(frozen=True)
class TerminationSignal:
    status: int
    message: str = ""
    outputs: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == 0

    @classmethod
    def from_exit_code(cls, code: ExitCode, outputs: Dict[str, Any] | None = None) -> "TerminationSignal":
        return cls(status=code.status, message=code.message, outputs=dict(outputs or {}))

    @classmethod
    def unexpected_failure(cls, error: BaseException) -> "TerminationSignal":
        return cls(
            status=ExitCodes.ERROR_UNEXPECTED_FAILURE.status,
            message=f"{ExitCodes.ERROR_UNEXPECTED_FAILURE.message}: {error}",
        )
