"""Bounded-concurrency execution of shell commands."""

from loguru import logger

from .errors import PoolError, PoolFullError, ChildProcessFailedError
from .factory import PoolFactory
from .pool import ProcessPool
from .sink import OutputSink, StreamSink, BufferSink
from .util import Completed

# Library code stays quiet unless the application opts in with
# logger.enable("parallel_subprocess").
logger.disable(__name__)

__all__ = [
    "ProcessPool",
    "PoolFactory",
    "Completed",
    "OutputSink",
    "StreamSink",
    "BufferSink",
    "PoolError",
    "PoolFullError",
    "ChildProcessFailedError",
]

__version__ = "1.0.0"
