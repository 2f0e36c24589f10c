import os
import fcntl
import dataclasses
import selectors
from typing import List

MAX_BYTES_PER_READ = 1024
# Reads per stream in one pump.
MAX_READS_PER_PUMP = 64
SLEEP_BETWEEN_READS = 0.1
MAX_ERROR_OUTPUT = 64 * 1024


@dataclasses.dataclass
class Completed:
    """A subprocess that the pool observed finishing."""

    id: str
    command: str
    success: bool
    exit_code: int
    elapsed: float
    elapsed_time: str
    error_output: str = ""
    terminated: bool = False


def set_nonblocking(reader):
    fd = reader.fileno()
    fl = fcntl.fcntl(fd, fcntl.F_GETFL)
    fcntl.fcntl(fd, fcntl.F_SETFL, fl | os.O_NONBLOCK)


def format_elapsed(seconds: float) -> str:
    """
    Formats a duration as H:M:S with unpadded fields, e.g. 0:0:7 or 1:2:5.
    Fractions of a second are dropped. Days are folded into the hours.
    """
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes}:{secs}"


def wait_readable(fds: List[int], timeout: float) -> List[int]:
    """
    Returns the descriptors among fds that are ready to read, waiting at most
    timeout seconds. Unlike select.select, works for descriptors above
    FD_SETSIZE.
    """
    with selectors.DefaultSelector() as selector:
        for fd in fds:
            selector.register(fd, selectors.EVENT_READ)
        return [key.fd for key, _ in selector.select(timeout)]
