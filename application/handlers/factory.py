# application/handlers/factory.py
from __future__ import annotations

from typing import Iterable, List

from application.handlers.base import ErrorHandler, statuses
from application.handlers.pw_handlers import BUILTIN_HANDLERS
from application.handlers.scale_parameter import ScaleParameterHandler
from domain.exceptions import ValidationError
from domain.run import RestartType
from domain.work_plan import HandlerSpec


class HandlerFactory:
    def build_all(self, specs: Iterable[HandlerSpec]) -> List[ErrorHandler]:
        return [self.build(spec) for spec in specs]

    def build(self, spec: HandlerSpec) -> ErrorHandler:
        kind = spec.type.lower()
        if kind == "builtin":
            handler = self._build_builtin(spec)
        elif kind == "scale_parameter":
            handler = self._build_scale_parameter(spec)
        else:
            raise ValidationError(f"Unknown handler type: {spec.type} ({spec.name})")

        # Reason: Plans may re-rank or re-target a builtin handler.
        # Impact: The instance attributes shadow the class defaults.
        if spec.priority is not None:
            handler.priority = spec.priority
        if spec.exit_statuses:
            handler.exit_statuses = statuses(spec.exit_statuses)
        return handler

    def _build_builtin(self, spec: HandlerSpec) -> ErrorHandler:
        cls = BUILTIN_HANDLERS.get(spec.name)
        if cls is None:
            known = ", ".join(sorted(BUILTIN_HANDLERS))
            raise ValidationError(f"Unknown builtin handler: {spec.name} (known: {known})")
        try:
            return cls(**spec.params)
        except TypeError as exc:
            raise ValidationError(f"Invalid params for handler {spec.name}: {exc}") from exc

    def _build_scale_parameter(self, spec: HandlerSpec) -> ErrorHandler:
        params = dict(spec.params)
        if "parameter" not in params or "factor" not in params:
            raise ValidationError(f"scale_parameter handler needs 'parameter' and 'factor': {spec.name}")
        if spec.priority is None:
            raise ValidationError(f"scale_parameter handler needs a priority: {spec.name}")
        if not spec.exit_statuses:
            raise ValidationError(f"scale_parameter handler needs exit_statuses: {spec.name}")
        try:
            restart_type = RestartType(str(params.pop("restart_type", "resubmit")).lower())
        except ValueError as exc:
            raise ValidationError(f"Invalid restart_type for handler {spec.name}") from exc
        try:
            return ScaleParameterHandler(
                name=spec.name,
                priority=spec.priority,
                exit_statuses=spec.exit_statuses,
                parameter=params.pop("parameter"),
                factor=float(params.pop("factor")),
                default=params.pop("default", None),
                minimum=params.pop("minimum", None),
                restart_type=restart_type,
                restart_from=params.pop("restart_from", None),
            )
        except ValueError as exc:
            raise ValidationError(f"Invalid handler {spec.name}: {exc}") from exc
