import abc
import sys
from typing import List, Optional, TextIO


class OutputSink(abc.ABC):
    """
    Append-only destination for pool status lines and subprocess output.

    Raw subprocess output arrives through write() in whatever chunks the
    pipes produce, so it need not end on a line boundary.
    """

    @abc.abstractmethod
    def write(self, text: str) -> None:
        ...

    def writeln(self, line: str) -> None:
        self.write(line + "\n")

    def error(self, line: str) -> None:
        self.writeln(line)


class StreamSink(OutputSink):
    """Writes to text streams; stdout and stderr when none are given."""

    def __init__(self, stream: Optional[TextIO] = None, error_stream: Optional[TextIO] = None):
        self._stream = stream
        self._error_stream = error_stream

    # Looked up on every write; sys.stdout may be replaced after construction.
    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def error_stream(self) -> TextIO:
        return self._error_stream if self._error_stream is not None else sys.stderr

    def write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def error(self, line: str) -> None:
        self.error_stream.write(line + "\n")
        self.error_stream.flush()


class BufferSink(OutputSink):
    """Keeps everything in memory."""

    def __init__(self) -> None:
        self.chunks: List[str] = []
        self.lines: List[str] = []
        self.errors: List[str] = []

    def write(self, text: str) -> None:
        self.chunks.append(text)

    def writeln(self, line: str) -> None:
        self.lines.append(line)
        self.write(line + "\n")

    def error(self, line: str) -> None:
        self.errors.append(line)
        self.write(line + "\n")

    def getvalue(self) -> str:
        return "".join(self.chunks)

    def status_lines(self, state: Optional[str] = None) -> List[str]:
        """Lines written by the pool itself, optionally only those of one state."""
        prefix = "[proc: " if state is None else f"[proc: {state}]"
        return [line for line in self.lines if line.startswith(prefix)]
