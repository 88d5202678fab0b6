from __future__ import annotations

from time import monotonic, sleep

from rel.core.result import Err, Ok, Result
from rel.services.release.collaborators import CollaboratorError, Deployer, ExecutionStatus
from rel.services.release.errors import DeploymentTimeout

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 30 * 60.0


def wait_for_completion(
    *,
    deployer: Deployer,
    execution_id: str,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> Result[ExecutionStatus, CollaboratorError | DeploymentTimeout]:
    """Poll a deployment until it succeeds, fails or the timeout elapses.

    There is no separate cancellation channel: a wait ends on success, on a
    remote failure, or with DeploymentTimeout.
    """
    deadline = monotonic() + timeout_seconds
    last_state: str | None = None

    while monotonic() < deadline:
        polled = deployer.execution_status(execution_id)
        if isinstance(polled, Err):
            return polled

        status = polled.value
        if status.state == "succeeded":
            return Ok(status)
        if status.state == "failed":
            reason = f": {status.detail}" if status.detail else ""
            return Err(CollaboratorError(message=f"deployment {execution_id} failed{reason}"))

        last_state = status.state
        sleep(poll_interval_seconds)

    return Err(
        DeploymentTimeout(
            execution_id=execution_id,
            timeout_seconds=timeout_seconds,
            last_state=last_state,
        )
    )
