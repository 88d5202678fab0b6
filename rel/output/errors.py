"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rel.core.errors import ErrorCode
from rel.output.console import Style
from rel.services.release.errors import (
    DependencyCycle,
    DependencyValidationFailed,
    DeploymentTimeout,
    InfraActionFailed,
    OrchestrationError,
    StepExecutionFailed,
    StoreFailed,
)

if TYPE_CHECKING:
    from rel.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code"]


def print_release_error(error: OrchestrationError, console: ConsoleProtocol) -> None:
    """Print a release error to console with appropriate formatting."""
    match error:
        case DependencyValidationFailed(violations=violations, unknown=unknown):
            console.error("dependency validation failed")
            for name in unknown:
                console.print(f"  unknown project: {name}", Style.DIM)
            for violation in violations:
                console.print(f"  {violation.describe()}", Style.DIM)
        case StepExecutionFailed(step_type=step_type, reason=reason):
            console.error(f"{step_type} step failed: {reason}")
        case _:
            console.error(error.message)

    hint = error.hint
    if hint:
        console.print(f"hint: {hint}", Style.DIM)


def release_error_exit_code(error: OrchestrationError) -> int:
    """Get exit code for a release error."""
    match error:
        case DependencyCycle():
            return int(ErrorCode.CONFIG_ERROR)
        case StepExecutionFailed() | InfraActionFailed():
            return int(ErrorCode.STEP_ERROR)
        case DeploymentTimeout():
            return int(ErrorCode.TIMEOUT)
        case StoreFailed():
            return int(ErrorCode.IO_ERROR)
        case _:
            return int(ErrorCode.USER_ERROR)
