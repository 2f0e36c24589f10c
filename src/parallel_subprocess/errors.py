from typing import List

from .util import Completed


class PoolError(Exception):
    """Base class for errors raised by a process pool."""


class PoolFullError(PoolError):
    """Raised by submit when every slot of the pool is taken."""

    def __init__(self, capacity: int):
        super().__init__(
            f"Process pool is full: {capacity} of {capacity} processes are running"
        )
        self.capacity = capacity


class ChildProcessFailedError(PoolError):
    """
    Raised while polling when a subprocess exits with a non-zero code and the
    pool propagates failures. `completed` holds every record observed by the
    same call up to and including the failed one.
    """

    def __init__(self, record: Completed, completed: List[Completed]):
        message = (
            f"Process {record.id} failed with exit code {record.exit_code}: "
            f"{record.command}"
        )
        if record.error_output:
            message += "\n" + record.error_output
        super().__init__(message)
        self.record = record
        self.completed = completed

    @property
    def proc_id(self) -> str:
        return self.record.id

    @property
    def exit_code(self) -> int:
        return self.record.exit_code

    @property
    def error_output(self) -> str:
        return self.record.error_output
