"""Lock-serialized console output shared by the operator and callback threads."""

import logging
import sys
import threading
from typing import Optional, TextIO

CLEAR_SEQUENCE = "\033[2J\033[H"


class ConsoleSink:
    """
    Single writer for everything the console prints.

    The command thread, the server's callback threads and the logging
    subsystem all write through one instance, so every write holds the same
    lock and a line is never split by another thread's output.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        # Resolved late so pytest's capsys and redirected stdout are honoured
        return self._stream if self._stream is not None else sys.stdout

    def write(self, line: str = "") -> None:
        """Write one full line."""
        with self._lock:
            self.stream.write(line + "\n")
            self.stream.flush()

    def prompt(self, text: str) -> None:
        """Write prompt text without a trailing newline."""
        with self._lock:
            self.stream.write(text)
            self.stream.flush()

    def clear(self) -> None:
        """Clear the terminal viewport and home the cursor."""
        with self._lock:
            self.stream.write(CLEAR_SEQUENCE)
            self.stream.flush()


class SinkLogHandler(logging.Handler):
    """Logging handler that emits formatted records through a ConsoleSink."""

    def __init__(self, sink: ConsoleSink, level: int = logging.NOTSET):
        super().__init__(level)
        self.sink = sink

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sink.write(self.format(record))
        except Exception:
            self.handleError(record)
