"""
Named-pipe transport for SextetStream lines.

Each translator owns one reader (host → lights) and one writer
(buttons → host).  Pipes are created on first use and reused if they
already exist.  Opening either end blocks until the host opens the other
end, which is how the bridge waits for the game to come up.
"""

from __future__ import annotations

import logging
import os
import stat
from typing import BinaryIO, Optional

from .constants import LINE_TERMINATOR, PIPE_MODE

log = logging.getLogger(__name__)


class PathConflictError(FileExistsError):
    """A non-FIFO file already occupies the pipe path."""


def get_or_create_pipe(path: str, mode: str = "rb", buffering: int = -1) -> BinaryIO:
    """Create a FIFO at *path* if needed and open it.

    An existing FIFO is reused.  Any other file type raises
    ``PathConflictError``; other OS errors propagate unchanged.
    """
    try:
        os.mkfifo(path, PIPE_MODE)
        log.info("Created named pipe at %s", path)
    except FileExistsError:
        if not stat.S_ISFIFO(os.stat(path).st_mode):
            log.error("Couldn't create fifo at %s: a non-fifo file already exists", path)
            raise PathConflictError(f"{path} exists and is not a named pipe")
        log.info("Using existing fifo at %s", path)

    log.debug("Opening %s (%s), waiting for peer...", path, mode)
    return open(path, mode, buffering=buffering)


class SextetStreamReader:
    """Line reader on the lights pipe."""

    def __init__(self, path: str, stream: BinaryIO):
        self.path = path
        self._stream: Optional[BinaryIO] = stream

    @classmethod
    def open(cls, path: str) -> "SextetStreamReader":
        return cls(path, get_or_create_pipe(path, "rb"))

    def read_line(self) -> bytes:
        """Block until a full line arrives.

        Returns the line including its terminator.  A final unterminated
        fragment is returned as is; ``b""`` means the writer hung up.
        """
        if self._stream is None:
            raise ValueError(f"Reader for {self.path} is closed")
        return self._stream.readline()

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class SextetStreamWriter:
    """Line writer on the buttons pipe."""

    def __init__(self, path: str, stream: BinaryIO):
        self.path = path
        self._stream: Optional[BinaryIO] = stream

    @classmethod
    def open(cls, path: str) -> "SextetStreamWriter":
        return cls(path, get_or_create_pipe(path, "wb"))

    def write_line(self, data: bytes) -> None:
        """Write *data* plus a terminator and flush it to the reader."""
        if self._stream is None:
            raise ValueError(f"Writer for {self.path} is closed")
        self._stream.write(bytes(data) + LINE_TERMINATOR)
        self._stream.flush()

    def close(self) -> None:
        if self._stream is not None:
            try:
                self._stream.close()
            except BrokenPipeError:
                # Buffered bytes are lost anyway once the reader is gone
                log.debug("Reader of %s already gone at close", self.path)
            self._stream = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
