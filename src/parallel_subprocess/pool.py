import itertools
import time
import uuid
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from loguru import logger
from typeguard import typechecked

from .child import Child
from .errors import ChildProcessFailedError, PoolFullError
from .sink import OutputSink, StreamSink
from .util import (
    Completed,
    MAX_ERROR_OUTPUT,
    SLEEP_BETWEEN_READS,
    format_elapsed,
    wait_readable,
)

# Waiting lines list the running ids only up to this many processes.
MAX_LISTED_IDS = 5


@typechecked
class ProcessPool:
    """
    Runs shell commands as subprocesses, at most `capacity` at a time.

    All work happens on the calling thread: submit, drain and stop block
    while the pool polls its children. Subprocess output is streamed to
    `output` as it is produced, interleaved with the pool's status lines.
    """

    def __init__(
        self,
        capacity: int = 5,
        output: Optional[OutputSink] = None,
        propagate_failures: bool = False,
        suppress_output: bool = False,
        env=None,
        cwd: Optional[str] = None,
        max_error_output: int = MAX_ERROR_OUTPUT,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.output = output if output is not None else StreamSink()
        self.propagate_failures = propagate_failures
        self.suppress_output = suppress_output
        self.env = env
        self.cwd = cwd
        self.max_error_output = max_error_output
        self._running: Dict[str, Child] = {}
        self._start_times: Dict[str, float] = {}
        self._launches = itertools.count(1)

    def __len__(self) -> int:
        return len(self._running)

    @property
    def running(self) -> List[str]:
        return list(self._running)

    def submit(self, command: str, force: bool = False) -> List[Completed]:
        """
        Launches command. Raises PoolFullError when every slot is taken;
        nothing is queued. Afterwards polls until a slot is free, or until
        every process has finished when force is True, and returns the
        processes that finished meanwhile.
        """
        if not command.strip():
            raise ValueError("command must be a non-empty string")
        if len(self._running) >= self.capacity:
            raise PoolFullError(self.capacity)
        self._spawn(self._new_id(), command)
        return self.drain(force)

    def drain(self, force: bool = True) -> List[Completed]:
        """
        Polls until no process is running (force=True) or until at least one
        slot is free (force=False).
        """
        done: List[Completed] = []
        wait_echoed = False
        last_count = 0
        while True:
            for record in self._reap():
                done.append(record)
                if (
                    not record.success
                    and not record.terminated
                    and self.propagate_failures
                ):
                    raise ChildProcessFailedError(record, done)

            remaining = len(self._running)
            if force:
                should_wait = remaining > 0
            else:
                should_wait = remaining >= self.capacity
            if not should_wait:
                return done

            if not wait_echoed:
                wait_echoed = True
                last_count = remaining
                self._status_waiting(force)
            elif force and remaining < last_count:
                last_count = remaining
                self._status_waiting(force)

            self._wait_for_activity()

    def stop(self) -> List[Completed]:
        """
        Sends SIGTERM to every running process and waits for all of them.
        Processes stopped this way are reported with terminated=True and are
        never raised as ChildProcessFailedError.
        """
        for child in self._running.values():
            child.terminate()
        return self.drain(True)

    def _new_id(self) -> str:
        # The counter keeps ids unique for the lifetime of the pool.
        return f"{uuid.uuid4().hex[:8]}-{next(self._launches)}"

    def _spawn(self, proc_id: str, command: str) -> None:
        started = time.monotonic()
        clock = _clock()
        child = Child(
            command,
            self.output.write,
            env=self.env,
            cwd=self.cwd,
            max_error_output=self.max_error_output,
        )
        self._start_times[proc_id] = started
        self._running[proc_id] = child
        # Output is only forwarded when the pool pumps, so this still comes
        # before anything the child prints.
        if not self.suppress_output:
            self.output.writeln(f"[proc: RUNNING] {proc_id}:({clock}) >> {command}")
        logger.debug("Launched {} as pid {}: {}", proc_id, child.pid, command)

    def _reap(self) -> Iterator[Completed]:
        """
        One poll pass. Yields a record for every child found to have exited,
        removing it from the pool before yielding it. The caller may stop
        consuming at any point; children not yet examined stay running.
        """
        for proc_id, child in list(self._running.items()):
            child.pump()
            if child.poll() is None:
                continue
            child.finish()
            elapsed = time.monotonic() - self._start_times.pop(proc_id)
            del self._running[proc_id]
            record = Completed(
                id=proc_id,
                command=child.command,
                success=child.success,
                exit_code=child.exit_code,
                elapsed=elapsed,
                elapsed_time=format_elapsed(elapsed),
                error_output="" if child.success else child.error_output,
                terminated=child.terminate_requested,
            )
            logger.debug(
                "Process {} exited with code {} after {:.3f}s",
                proc_id,
                record.exit_code,
                elapsed,
            )
            if record.success:
                if not self.suppress_output:
                    self.output.writeln(
                        f"[proc: DONE] {proc_id}:({_clock()}) >> "
                        f"Elapsed Time: {record.elapsed_time}"
                    )
            else:
                self.output.error(record.error_output)
            yield record

    def _status_waiting(self, force: bool) -> None:
        if self.suppress_output:
            return
        count = len(self._running)
        if force:
            message = "Waiting for all processes to finish."
        else:
            message = "Waiting for a process to finish."
        if count > MAX_LISTED_IDS:
            listed = "Too many"
        else:
            listed = ",".join(self._running)
        self.output.writeln(
            f"[proc: WAITING] >> {message} "
            f"Number of running processes: {count} [{listed}]"
        )

    def _wait_for_activity(self) -> None:
        """
        Blocks until some child has output ready or has closed a pipe, which
        is also what happens when it exits. The timeout covers children whose
        pipes outlive them or that exit without closing them.
        """
        owners = {}
        for child in self._running.values():
            for fd in child.fds():
                owners[fd] = child
        if not owners:
            time.sleep(SLEEP_BETWEEN_READS)
            return
        readable = wait_readable(list(owners), SLEEP_BETWEEN_READS)
        for child in {owners[fd] for fd in readable}:
            child.pump()


def _clock() -> str:
    return datetime.now().strftime("%H:%M:%S")
