import codecs
import os
import signal
import subprocess
from typing import Callable, Dict, List, Optional

from loguru import logger

from .util import (
    set_nonblocking,
    MAX_BYTES_PER_READ,
    MAX_READS_PER_PUMP,
    MAX_ERROR_OUTPUT,
)


class _Pipe:
    def __init__(self, reader, capture: bool):
        self.reader = reader
        self.capture = capture
        # Chunks may split a multi-byte character.
        self.decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")


class Child:
    """
    One shell command running in its own session. Output from stdout and
    stderr is forwarded to on_output as it arrives; at most
    max_error_output bytes of stderr are also kept for error reporting.
    """

    def __init__(
        self,
        command: str,
        on_output: Callable[[str], None],
        env=None,
        cwd: Optional[str] = None,
        max_error_output: int = MAX_ERROR_OUTPUT,
    ):
        p = subprocess.Popen(
            command,
            shell=True,
            env=env,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
            bufsize=MAX_BYTES_PER_READ,
        )
        set_nonblocking(p.stdout)
        set_nonblocking(p.stderr)

        self.process_group_id = os.getpgid(p.pid)
        self.p = p
        self.command = command
        self.on_output = on_output
        self.exit_code = None
        self.terminate_requested = False
        self.max_error_output = max_error_output
        self.stderr_saved_bytes = []
        self.stderr_bytes_read = 0
        self._pipes: Dict[int, _Pipe] = {
            p.stdout.fileno(): _Pipe(p.stdout, capture=False),
            p.stderr.fileno(): _Pipe(p.stderr, capture=True),
        }

    @property
    def pid(self) -> int:
        return self.p.pid

    def fds(self) -> List[int]:
        """File descriptors of the pipes that have not reached EOF yet."""
        return list(self._pipes)

    def pump(self) -> None:
        """Forwards whatever output is available without blocking."""
        for fd, pipe in list(self._pipes.items()):
            for _ in range(MAX_READS_PER_PUMP):
                try:
                    data = pipe.reader.read(MAX_BYTES_PER_READ)
                except BlockingIOError:
                    data = None
                if data is None:
                    break
                if len(data) == 0:
                    self._close(fd)
                    break
                self._forward(pipe, data)

    def poll(self) -> Optional[int]:
        self.exit_code = self.p.poll()
        return self.exit_code

    def finish(self) -> None:
        """
        Reads the output that is left after the process exited and closes the
        pipes. A pipe that is still held open by a grandchild is closed without
        waiting for EOF.
        """
        self.pump()
        for fd in list(self._pipes):
            self._close(fd)

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def error_output(self) -> str:
        return b"".join(self.stderr_saved_bytes).decode("utf-8", errors="replace")

    def terminate(self) -> None:
        self.terminate_requested = True
        try:
            os.killpg(self.process_group_id, signal.SIGTERM)
        except ProcessLookupError:
            pass
        logger.debug("Sent SIGTERM to process group {}", self.process_group_id)

    def _forward(self, pipe: _Pipe, data: bytes) -> None:
        if pipe.capture and self.stderr_bytes_read < self.max_error_output:
            kept = data[: self.max_error_output - self.stderr_bytes_read]
            self.stderr_saved_bytes.append(kept)
            self.stderr_bytes_read += len(kept)
        text = pipe.decoder.decode(data)
        if text:
            self.on_output(text)

    def _close(self, fd: int) -> None:
        pipe = self._pipes.pop(fd)
        text = pipe.decoder.decode(b"", final=True)
        if text:
            self.on_output(text)
        pipe.reader.close()
