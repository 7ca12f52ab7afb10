# application/handlers/pw_handlers.py
"""
Error handlers for ``pw.x`` style calculations.

Priorities follow the Quantum ESPRESSO base restart workflow so that the
specific remedies run before the generic ones.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Type

from application.handlers.base import ErrorHandler, statuses
from application.handlers.parameters import get_path, set_path
from application.outcome import HandlerOutcome
from domain.run import RestartType
from domain.termination import ExitCodes

if TYPE_CHECKING:
    from domain.run import AttemptRecord, RunContext

DEFAULT_MIXING_BETA = 0.7
DELTA_FACTOR_MIXING_BETA = 0.8
DIAGONALIZATION_SEQUENCE = ["david", "ppcg", "paro", "cg"]


class KnownUnrecoverableFailureHandler(ErrorHandler):
    name = "handle_known_unrecoverable_failure"
    priority = 590
    exit_statuses = statuses([
        ExitCodes.ERROR_INCOMPATIBLE_FFT_GRID,
        ExitCodes.ERROR_READING_PSEUDO_FILE,
    ])

    def handle(self, ctx: "RunContext", attempt: "AttemptRecord") -> HandlerOutcome:
        return HandlerOutcome.abort(f"known unrecoverable failure: {attempt.signal.message}")


class OutOfWalltimeHandler(ErrorHandler):
    """Restart in full from the remote folder of the interrupted calculation."""
    name = "handle_out_of_walltime"
    priority = 580
    exit_statuses = statuses([ExitCodes.ERROR_OUT_OF_WALLTIME])

    def handle(self, ctx: "RunContext", attempt: "AttemptRecord") -> HandlerOutcome:
        if "output_structure" in attempt.signal.outputs:
            ctx.inputs["structure"] = attempt.signal.outputs["output_structure"]
        return HandlerOutcome(
            handled=True,
            restart_type=RestartType.FULL,
            restart_from="remote_folder",
            message="simulation ran out of walltime, restarting in full from the last calculation",
        )


class DiagonalizationErrorsHandler(ErrorHandler):
    name = "handle_diagonalization_errors"
    priority = 500
    exit_statuses = statuses([
        ExitCodes.ERROR_COMPUTING_CHOLESKY,
        ExitCodes.ERROR_DIAGONALIZATION_TOO_MANY_BANDS_NOT_CONVERGED,
    ])

    def handle(self, ctx: "RunContext", attempt: "AttemptRecord") -> HandlerOutcome:
        current = get_path(ctx.inputs, "parameters.ELECTRONS.diagonalization", "david")
        tried: List[str] = ctx.state.setdefault("diagonalizations_tried", [])
        if current not in tried:
            tried.append(current)

        for candidate in DIAGONALIZATION_SEQUENCE:
            if candidate not in tried:
                set_path(ctx.inputs, "parameters.ELECTRONS.diagonalization", candidate)
                return HandlerOutcome(
                    handled=True,
                    restart_type=RestartType.RESUBMIT,
                    message=f"found diagonalization issues for {current}, switching to {candidate}",
                )

        return HandlerOutcome.abort("all diagonalization algorithms were tried without success")


class ElectronicConvergenceNotReachedHandler(ErrorHandler):
    """Decrease the mixing beta and fully restart from the previous calculation."""
    name = "handle_electronic_convergence_not_reached"
    priority = 410
    exit_statuses = statuses([ExitCodes.ERROR_ELECTRONIC_CONVERGENCE_NOT_REACHED])

    def __init__(self, factor: float = DELTA_FACTOR_MIXING_BETA) -> None:
        self.factor = factor

    def handle(self, ctx: "RunContext", attempt: "AttemptRecord") -> HandlerOutcome:
        mixing_beta = get_path(ctx.inputs, "parameters.ELECTRONS.mixing_beta", DEFAULT_MIXING_BETA)
        mixing_beta_new = mixing_beta * self.factor
        set_path(ctx.inputs, "parameters.ELECTRONS.mixing_beta", mixing_beta_new)
        return HandlerOutcome(
            handled=True,
            restart_type=RestartType.FULL,
            restart_from="remote_folder",
            message=(
                f"reduced beta mixing from {mixing_beta} to {mixing_beta_new} "
                "and restarting from the last calculation"
            ),
        )


BUILTIN_HANDLERS: Dict[str, Type[ErrorHandler]] = {
    cls.name: cls
    for cls in (
        KnownUnrecoverableFailureHandler,
        OutOfWalltimeHandler,
        DiagonalizationErrorsHandler,
        ElectronicConvergenceNotReachedHandler,
    )
}


def default_pw_handlers() -> List[ErrorHandler]:
    return [cls() for cls in BUILTIN_HANDLERS.values()]
