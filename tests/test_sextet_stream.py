"""
Tests for sextet_stream — named pipe creation and line framing.

FIFO tests use real os.mkfifo() under tmp_path (Linux).  Opening a FIFO
blocks until the peer end is opened, so the peer is opened from a helper
thread.
"""

import os
import stat
import threading
import time

import pytest

from itgio.sextet_stream import (
    PathConflictError,
    SextetStreamReader,
    SextetStreamWriter,
    get_or_create_pipe,
)

TIMEOUT_S = 5.0


def _open_peer(path, mode):
    """Open *path* from another thread; returns (thread, result dict)."""
    result = {}

    def worker():
        result["stream"] = open(path, mode, buffering=0)

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    return thread, result


def _os_pipe_pair():
    """Reader/writer joined by an anonymous pipe (no blocking open)."""
    r, w = os.pipe()
    reader = SextetStreamReader("anon-read", os.fdopen(r, "rb"))
    writer = SextetStreamWriter("anon-write", os.fdopen(w, "wb"))
    return reader, writer


# =========================================================================
# get_or_create_pipe
# =========================================================================

class TestGetOrCreatePipe:

    def test_creates_fifo(self, tmp_path):
        path = str(tmp_path / "pad-lights")
        result = {}

        def peer():
            while not os.path.exists(path):
                time.sleep(0.01)
            result["stream"] = open(path, "wb", buffering=0)

        peer_thread = threading.Thread(target=peer, daemon=True)
        peer_thread.start()

        stream = get_or_create_pipe(path, "rb")
        peer_thread.join(TIMEOUT_S)
        try:
            mode = os.stat(path).st_mode
            assert stat.S_ISFIFO(mode)
            # Never wider than owner/group read-write
            assert stat.S_IMODE(mode) & ~0o660 == 0
        finally:
            stream.close()
            result["stream"].close()

    def test_reuses_existing_fifo(self, tmp_path):
        path = str(tmp_path / "pad-buttons")
        os.mkfifo(path)
        inode = os.stat(path).st_ino

        thread, result = _open_peer(path, "rb")
        stream = get_or_create_pipe(path, "wb")
        thread.join(TIMEOUT_S)
        try:
            assert os.stat(path).st_ino == inode
            assert stat.S_ISFIFO(os.stat(path).st_mode)
        finally:
            stream.close()
            result["stream"].close()

    def test_regular_file_conflict(self, tmp_path):
        path = tmp_path / "pad-lights"
        path.write_bytes(b"keep me")

        with pytest.raises(PathConflictError):
            get_or_create_pipe(str(path), "rb")

        # Not truncated or replaced
        assert path.read_bytes() == b"keep me"
        assert stat.S_ISREG(os.stat(path).st_mode)

    def test_directory_conflict(self, tmp_path):
        path = tmp_path / "pad-lights"
        path.mkdir()
        with pytest.raises(PathConflictError):
            get_or_create_pipe(str(path), "rb")

    def test_conflict_is_file_exists_error(self):
        assert issubclass(PathConflictError, FileExistsError)

    def test_missing_parent_propagates(self, tmp_path):
        path = tmp_path / "missing" / "pad-lights"
        with pytest.raises(FileNotFoundError):
            get_or_create_pipe(str(path), "rb")


# =========================================================================
# Line framing
# =========================================================================

class TestLineFraming:

    def test_write_then_read(self):
        reader, writer = _os_pipe_pair()
        with reader, writer:
            writer.write_line(b"B")
            assert reader.read_line() == b"B\n"

    def test_empty_line(self):
        reader, writer = _os_pipe_pair()
        with reader, writer:
            writer.write_line(b"")
            assert reader.read_line() == b"\n"

    def test_lines_do_not_accumulate(self):
        reader, writer = _os_pipe_pair()
        with reader, writer:
            writer.write_line(b"\x02")
            writer.write_line(b"\x00\x01")
            assert reader.read_line() == b"\x02\n"
            assert reader.read_line() == b"\x00\x01\n"

    def test_flushed_before_return(self):
        """The reader sees the line while the writer is still open."""
        reader, writer = _os_pipe_pair()
        with reader, writer:
            got = {}

            def read():
                got["line"] = reader.read_line()

            thread = threading.Thread(target=read, daemon=True)
            thread.start()
            writer.write_line(b"abc")
            thread.join(TIMEOUT_S)
            assert got.get("line") == b"abc\n"

    def test_eof_returns_empty(self):
        reader, writer = _os_pipe_pair()
        with reader:
            writer.close()
            assert reader.read_line() == b""

    def test_partial_line_at_eof(self):
        r, w = os.pipe()
        reader = SextetStreamReader("anon", os.fdopen(r, "rb"))
        with reader:
            os.write(w, b"\x01\x02")
            os.close(w)
            assert reader.read_line() == b"\x01\x02"
            assert reader.read_line() == b""

    def test_read_after_close(self):
        reader, writer = _os_pipe_pair()
        writer.close()
        reader.close()
        with pytest.raises(ValueError):
            reader.read_line()

    def test_write_after_close(self):
        reader, writer = _os_pipe_pair()
        reader.close()
        writer.close()
        with pytest.raises(ValueError):
            writer.write_line(b"x")

    def test_write_to_closed_reader(self):
        reader, writer = _os_pipe_pair()
        reader.close()
        with pytest.raises(BrokenPipeError):
            writer.write_line(b"B")
        writer.close()

    def test_close_idempotent(self):
        reader, writer = _os_pipe_pair()
        reader.close()
        reader.close()
        writer.close()
        writer.close()


class TestOpenOnFifo:

    def test_reader_writer_through_fifo(self, tmp_path):
        path = str(tmp_path / "pad-buttons")
        os.mkfifo(path)

        result = {}

        def open_writer():
            result["writer"] = SextetStreamWriter.open(path)

        thread = threading.Thread(target=open_writer, daemon=True)
        thread.start()
        reader = SextetStreamReader.open(path)
        thread.join(TIMEOUT_S)
        writer = result["writer"]

        with reader, writer:
            assert reader.path == path
            assert writer.path == path
            writer.write_line(b"AB")
            assert reader.read_line() == b"AB\n"
