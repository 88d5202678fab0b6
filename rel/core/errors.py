"""Process exit codes for the ``rel`` command line."""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success
    - 1: User error (unknown environment/project, policy denial, bad input)
    - 2: Config error (unreadable or invalid rel.toml, cyclic catalog)
    - 3: Step error (a release step or project deployment failed)
    - 4: Timeout (a deployment did not reach a terminal state in time)
    - 5: I/O error (release state could not be read or written)
    """

    OK = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    STEP_ERROR = 3
    TIMEOUT = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
