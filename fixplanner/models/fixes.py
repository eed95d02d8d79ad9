from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from fixplanner.models.errors import InvalidArgumentError

NO_FIX_TEXT = "  # NO FIX     : No fix defined for this issue!"
SKIPPED_TEXT = "  # Skipped    : Configured to be skipped!"


def _check_parameters(parameters) -> dict[str, Any]:
    if parameters is None:
        return {}
    if not isinstance(parameters, dict):
        raise InvalidArgumentError(
            f"The parameters of a Fix must be a map, got '{type(parameters).__name__}'"
        )
    return parameters


def _check_text(what: str, value) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError(
            f"The {what} of a Fix must be a non empty string, got '{type(value).__name__}'"
        )
    return value


class _TargetedFix(BaseModel):
    model_config = ConfigDict(frozen=True)

    requires_targets: ClassVar[bool] = True

    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_pp(self, targets_var: str) -> list[str]:
        return render_fix(self, targets_var)


class TaskFix(_TargetedFix):
    name: str

    def __init__(self, name: str, parameters: Optional[dict] = None, **data):
        super().__init__(name=_check_text("name", name), parameters=_check_parameters(parameters), **data)


class PlanFix(_TargetedFix):
    name: str

    def __init__(self, name: str, parameters: Optional[dict] = None, **data):
        super().__init__(name=_check_text("name", name), parameters=_check_parameters(parameters), **data)


class CommandFix(_TargetedFix):
    command: str

    def __init__(self, command: str, parameters: Optional[dict] = None, **data):
        super().__init__(
            command=_check_text("command", command), parameters=_check_parameters(parameters), **data
        )


class _InsteadOfFix(BaseModel):
    """A placeholder rendered as a comment instead of a call."""

    model_config = ConfigDict(frozen=True)

    requires_targets: ClassVar[bool] = False

    def to_pp(self, targets_var: Optional[str] = None) -> list[str]:
        return render_fix(self, targets_var)


class NoFix(_InsteadOfFix):
    pass


class SkippedFix(_InsteadOfFix):
    pass


Fix = Union[TaskFix, PlanFix, CommandFix, NoFix, SkippedFix]

FIX_TYPES = (TaskFix, PlanFix, CommandFix, NoFix, SkippedFix)


def pp_string(text: str) -> str:
    """A single quoted string literal with backslashes and quotes escaped."""
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


def pp_value(value: Any) -> str:
    """Render a parameter value as a literal of the plan language."""
    if isinstance(value, str):
        return pp_string(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "undef"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(pp_value(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{pp_value(k)} => {pp_value(v)}" for k, v in value.items()) + "}"
    return pp_string(str(value))


def _call(function: str, first: str, targets_var: Optional[str], parameters: dict[str, Any]) -> list[str]:
    if not targets_var:
        raise InvalidArgumentError(f"{function}() requires a targets variable")
    parts = [f"  {function}({pp_string(first)}", targets_var]
    parts.extend(f"{pp_string(str(k))} => {pp_value(v)}" for k, v in parameters.items())
    # the dangling comma before ')' is part of the output format
    return [", ".join(parts) + ", )"]


def render_fix(fix: Fix, targets_var: Optional[str] = None) -> list[str]:
    """Return the plan lines for ``fix``; calls reference ``targets_var``."""
    if isinstance(fix, TaskFix):
        return _call("run_task", fix.name, targets_var, fix.parameters)
    if isinstance(fix, PlanFix):
        return _call("run_plan", fix.name, targets_var, fix.parameters)
    if isinstance(fix, CommandFix):
        return _call("run_command", fix.command, targets_var, fix.parameters)
    if isinstance(fix, NoFix):
        return [NO_FIX_TEXT]
    if isinstance(fix, SkippedFix):
        return [SKIPPED_TEXT]
    raise InvalidArgumentError(f"Cannot render '{type(fix).__name__}', it is not a Fix")
