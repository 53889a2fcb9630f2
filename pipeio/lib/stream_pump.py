"""Stream pump: copy everything from a source stream to a sink stream.

Usage:
    pump = StreamPump(source, sink)
    # ... later, if the copy should stop early
    pump.disconnect()

The copy runs in a background thread owned by the pump. The caller never
gets a result or an exception back from it: a failing source or sink only
stops the copy. When the copy stops, the sink is flushed and closed and the
source is closed, skipping whichever side failed.
"""

import itertools
import sys
import threading
from typing import Optional

from pipeio.lib.errors import (
    AlreadyConnectedError,
    InvalidArgumentError,
    NotConnectedError,
)
from pipeio.lib.streams import Readable, Writable

# Maximum bytes moved per read/write round trip.
CHUNK_SIZE = 1024

DEBUG = 0


class _DataCopier(threading.Thread):

    _ids = itertools.count(1)

    def __init__(self, source, sink, verbose=False):
        super().__init__(name=f"StreamPump-{next(_DataCopier._ids)}")
        self.source = source
        self.sink = sink
        self.verbose = verbose or DEBUG > 0
        self._disconnected = threading.Event()
        self.end_reached = False
        self.source_failed = False
        self.sink_failed = False
        self.bytes_copied = 0

    def _note(self, msg: str):
        if self.verbose:
            print(f"{self.name}: {msg}", file=sys.stderr)

    def _write_all(self, data: bytes):
        # Sinks get bytes; after a short write only the rest is resent.
        if not isinstance(data, bytes):
            data = bytes(data)
        while data:
            n = self.sink.write(data)
            # Buffered streams return None or the full length.
            if n is None:
                return
            if n == 0:
                raise OSError("sink accepted no bytes")
            data = bytes(memoryview(data)[n:])

    def _should_stop(self) -> bool:
        return (self._disconnected.is_set() or self.end_reached
                or self.source_failed or self.sink_failed)

    def run(self):
        while not self._should_stop():
            try:
                data = self.source.read(CHUNK_SIZE)
            except Exception as e:
                self._note(f"read failed: {e}")
                self.source_failed = True
                continue
            if not data:
                self._note("end of input")
                self.end_reached = True
                continue
            if self._disconnected.is_set():
                self._note(f"disconnected, dropping {len(data)} bytes")
                continue
            try:
                self._write_all(data)
            except Exception as e:
                self._note(f"write failed: {e}")
                self.sink_failed = True
                continue
            self.bytes_copied += len(data)
            if DEBUG > 1:
                print(f"{self.name}: copied {len(data)}, total {self.bytes_copied}",
                      file=sys.stderr)
        self._cleanup()

    def _cleanup(self):
        steps = []
        if not self.sink_failed:
            steps.append(("flush sink", self.sink.flush))
        if not self.source_failed:
            steps.append(("close source", self.source.close))
        if not self.sink_failed:
            steps.append(("close sink", self.sink.close))
        for what, step in steps:
            try:
                step()
            except Exception as e:
                print(f"{self.name}: could not {what}: {e}", file=sys.stderr)

    def disconnect(self):
        self._disconnected.set()


class StreamPump(object):
    """Copies all the data from a source stream to a sink stream.

    Any object with read(size) and close() can be the source, and any object
    with write(data), flush() and close() can be the sink (see
    pipeio.lib.streams).
    """

    def __init__(self, source=None, sink=None, verbose: bool = False):
        """Create a pump, connected if source or sink is given.

        Args:
            source: stream to read from.
            sink: stream to write to.
            verbose: print read/write failures to stderr.
        """
        self.verbose = verbose
        self._copier = None
        self._lock = threading.Lock()
        if source is not None or sink is not None:
            self.connect(source, sink)

    def connect(self, source, sink):
        """Start copying source to sink in a new background thread.

        Raises:
            InvalidArgumentError: source or sink is None, or lacks the
                read/close or write/flush/close methods.
            AlreadyConnectedError: this pump was already connected.
        """
        if source is None or sink is None:
            raise InvalidArgumentError("source and sink are required")
        if not isinstance(source, Readable):
            raise InvalidArgumentError(f"source is not readable: {source!r}")
        if not isinstance(sink, Writable):
            raise InvalidArgumentError(f"sink is not writable: {sink!r}")
        with self._lock:
            if self._copier is not None:
                raise AlreadyConnectedError("Already connected")
            copier = _DataCopier(source, sink, verbose=self.verbose)
            copier.start()
            self._copier = copier

    def disconnect(self):
        """Stop copying after the current read/write round trip.

        A read blocked on the source is not interrupted; the pump stops once
        it returns, without writing what it read.
        """
        if self._copier is None:
            raise NotConnectedError("Pump not connected")
        self._copier.disconnect()

    @property
    def connected(self) -> bool:
        return self._copier is not None

    def is_alive(self) -> bool:
        return self._copier is not None and self._copier.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the copy to stop. Returns True if it has stopped."""
        if self._copier is None:
            raise NotConnectedError("Pump not connected")
        self._copier.join(timeout)
        return not self._copier.is_alive()

    def status(self) -> dict:
        """Snapshot of the copy: bytes copied and why it stopped, if it did."""
        copier = self._copier
        if copier is None:
            return {}
        return {
            "running": copier.is_alive(),
            "bytes_copied": copier.bytes_copied,
            "end_reached": copier.end_reached,
            "source_failed": copier.source_failed,
            "sink_failed": copier.sink_failed,
            "disconnected": copier._disconnected.is_set(),
        }
