"""
Per-device SextetStream translator.

One ``ItgioTranslator`` serves one ITGIO board through two pipes:

    {base}-lights   host → lights thread → device.write_lights()
    {base}-buttons  buttons thread → host   (device.read_buttons() every 20 ms)

Both threads share the device behind a lock that is held only for a single
control transfer, never across pipe I/O.  When either thread fails it sets
the shared close flag and signals the exit event; ``wait_exit()`` is how the
owner learns the device is no longer being served.  There is no retry and
no reopen.

The close flag is only checked at the top of each loop iteration, so a
thread blocked in a pipe read or a control transfer notices it only after
that call returns.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from .constants import (
    BUTTONS_SUFFIX,
    LIGHTS_SUFFIX,
    POLL_INTERVAL_S,
    THREAD_JOIN_TIMEOUT_S,
)
from .device_itgio import ItgioBackend
from .mapping import decode_lights, describe_buttons, encode_buttons
from .sextet_stream import SextetStreamReader, SextetStreamWriter

log = logging.getLogger(__name__)


class PipeClosedError(ConnectionError):
    """The host closed its end of a pipe."""


class ItgioTranslator:
    """Relay between one ITGIO device and its pair of named pipes."""

    def __init__(self, stream_base_path: str, device: ItgioBackend,
                 poll_interval: float = POLL_INTERVAL_S):
        device.open()
        self.device = device
        self.poll_interval = poll_interval
        self.reader_path = stream_base_path + LIGHTS_SUFFIX
        self.writer_path = stream_base_path + BUTTONS_SUFFIX

        self._device_lock = threading.Lock()
        self._should_close = threading.Event()
        self._exited = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def should_close(self) -> bool:
        return self._should_close.is_set()

    def start(self) -> None:
        """Open both pipes, then launch the lights and buttons threads.

        Opening a FIFO blocks until the host opens the other end, so this
        may block before any thread is started.  A translator can only be
        started once.
        """
        if self._threads:
            raise RuntimeError(f"Translator for {self.device.ident} already started")

        reader = SextetStreamReader.open(self.reader_path)
        try:
            writer = SextetStreamWriter.open(self.writer_path)
        except Exception:
            reader.close()
            raise

        self._spawn("lights", self._monitor_lights, reader)
        self._spawn("buttons", self._monitor_buttons, writer)

    def _spawn(self, name: str, target, stream) -> None:
        def worker():
            try:
                target(stream)
            except Exception as e:
                log.error("%s translator for %s encountered an error %r and had to exit",
                          name.capitalize(), self.device.ident, e)
            finally:
                stream.close()
                self._signal_exit()

        thread = threading.Thread(
            target=worker, name=f"itgio-{name}-{self.device.ident}", daemon=True,
        )
        self._threads.append(thread)
        thread.start()

    def _signal_exit(self) -> None:
        self._should_close.set()
        self._exited.set()

    def wait_exit(self, timeout: Optional[float] = None) -> bool:
        """Block until either thread has stopped.  Returns False on timeout."""
        return self._exited.wait(timeout)

    def close(self, join_timeout: float = THREAD_JOIN_TIMEOUT_S) -> None:
        """Flag both threads to stop, close the device, then join the threads.

        A thread blocked on a pipe stays blocked until the host reads or
        writes, so each join gives up after *join_timeout* seconds and the
        daemon thread is left behind.
        """
        self._signal_exit()
        with self._device_lock:
            self.device.close()

        current = threading.current_thread()
        for thread in self._threads:
            if thread is current:
                continue
            thread.join(join_timeout)
            if thread.is_alive():
                log.debug("%s still blocked on its pipe after close", thread.name)

    @property
    def running_threads(self) -> list[threading.Thread]:
        return [t for t in self._threads if t.is_alive()]

    # -- Loops ---------------------------------------------------------

    def _monitor_lights(self, reader: SextetStreamReader) -> None:
        log.debug("Started monitoring lights on %s", self.reader_path)
        while not self._should_close.is_set():
            line = reader.read_line()
            if not line:
                raise PipeClosedError(f"Host closed {self.reader_path}")

            lights = decode_lights(line.rstrip(b"\n"))
            with self._device_lock:
                self.device.write_lights(lights)

    def _monitor_buttons(self, writer: SextetStreamWriter) -> None:
        log.debug("Started monitoring buttons on %s", self.writer_path)
        last_state = 0

        while not self._should_close.is_set():
            started = time.monotonic()

            with self._device_lock:
                state = self.device.read_buttons()

            if state != last_state:
                log.debug("ITGIO button state changed to %s", describe_buttons(state))
                last_state = state
                writer.write_line(encode_buttons(state))

            # Sleep out the rest of the poll interval; overruns loop immediately
            elapsed = time.monotonic() - started
            log.debug("Device polling took %.3f ms", elapsed * 1000)
            remaining = self.poll_interval - elapsed
            if remaining > 0:
                time.sleep(remaining)
