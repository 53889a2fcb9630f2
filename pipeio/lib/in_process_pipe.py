"""Thread-safe byte pipe connecting a writer thread and a reader thread.

Usage:
    reader, writer = pipe()
    # in the producer thread
    writer.write(b"some bytes")
    writer.end_of_stream()
    # in the consumer thread
    while True:
        data = reader.read(4096)
        if not data:
            break
        # do something with data

Mimics Unix pipe semantics, with a few differences:
- The buffer is unbounded. write() never blocks, the reader does.
- Only one reader and one writer per pipe. A second read blocking at the
  same time as the first is an error.
- Closing the reader breaks the pipe for the writer, but bytes already
  received can still be read.
"""

import threading
from typing import Optional

from pipeio.lib.errors import (
    AlreadyConnectedError,
    InvalidArgumentError,
    NotConnectedError,
    PipeClosedError,
    PipeError,
)

# Returned by read_byte() and readinto() at end of stream.
EOF = -1

BLOCKSIZE = 65536

_connect_lock = threading.Lock()


def _byte_view(data, name: str) -> memoryview:
    if data is None:
        raise InvalidArgumentError(f"{name} is None")
    try:
        return memoryview(data).cast("B")
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"{name} is not a contiguous bytes-like object: {e}")


def _check_range(view: memoryview, offset: int, length: Optional[int]) -> int:
    """Validate offset/length against view and return the effective length."""
    if length is None:
        length = len(view) - offset
    if offset < 0 or length < 0 or length > len(view) - offset:
        raise InvalidArgumentError(
            f"offset {offset} and length {length} out of range for {len(view)} bytes")
    return length


class PipeBuffer:
    """The state shared by a connected PipedReader/PipedWriter pair.

    Everything here is guarded by self._lock. Bytes flow through two stages:
    the writer appends to _pending, and the reader drains _chunk starting at
    _pos. _chunk is replaced by the content of _pending only once it has been
    fully consumed.
    """

    def __init__(self):
        self._lock = threading.Condition()
        self._pending = bytearray()
        self._chunk = b""
        self._pos = 0
        self._received = 0
        self._delivered = 0
        self._waiting = False
        self._interrupted = False
        self.closed_by_reader = False
        self.closed_by_writer = False

    def _has_data(self) -> bool:
        return self._pos < len(self._chunk) or len(self._pending) > 0

    def receive(self, data: memoryview) -> int:
        with self._lock:
            if self.closed_by_writer or self.closed_by_reader:
                raise PipeClosedError("Pipe closed")
            n = len(data)
            self._received += n
            if self._waiting and not self._has_data():
                # Hand the bytes straight to the parked reader.
                self._chunk = bytes(data)
                self._pos = 0
            else:
                self._pending.extend(data)
            self._lock.notify_all()
            return n

    def received_last(self):
        with self._lock:
            self.closed_by_writer = True
            self._lock.notify_all()

    def close_reader(self):
        with self._lock:
            self.closed_by_reader = True
            self._lock.notify_all()

    def interrupt(self):
        with self._lock:
            self._interrupted = True
            self._lock.notify_all()

    def _prepare_reading(self) -> bool:
        """Block until there is something to read.

        Returns False at end of stream. Must be called with the lock held.
        """
        if self.closed_by_reader and not self._has_data():
            raise PipeClosedError("Pipe closed")

        if not self._has_data() and not self.closed_by_writer:
            if self._waiting:
                raise PipeError("Another reader is already waiting on this pipe")
            self._waiting = True
            try:
                # Wake-ups can come from any state change, so re-check all of it.
                while not (self._has_data() or self.closed_by_writer
                           or self.closed_by_reader or self._interrupted):
                    self._lock.wait()
            finally:
                self._waiting = False
            if self._interrupted:
                self._interrupted = False
                raise PipeClosedError("Pipe closed: read interrupted")
            if self.closed_by_reader and not self._has_data():
                raise PipeClosedError("Pipe closed")

        if self._pos >= len(self._chunk):
            self._chunk = bytes(self._pending)
            self._pending = bytearray()
            self._pos = 0
        return self._pos < len(self._chunk)

    def read_byte(self) -> int:
        with self._lock:
            if not self._prepare_reading():
                return EOF
            b = self._chunk[self._pos]
            self._pos += 1
            self._delivered += 1
            return b

    def read_into(self, view: memoryview) -> int:
        with self._lock:
            if not self._prepare_reading():
                return EOF
            n = min(len(view), len(self._chunk) - self._pos)
            view[:n] = self._chunk[self._pos:self._pos + n]
            self._pos += n
            self._delivered += n
            return n

    def received(self) -> int:
        with self._lock:
            return self._received

    def delivered(self) -> int:
        with self._lock:
            return self._delivered


def connect(writer, reader):
    """Connect writer to reader.

    reader.connect(writer) and writer.connect(reader) have the same effect.

    Raises:
        AlreadyConnectedError: if either side is already connected.
    """
    if writer is None or reader is None:
        raise InvalidArgumentError("Cannot connect to None")
    with _connect_lock:
        if writer._buffer is not None or reader._buffer is not None:
            raise AlreadyConnectedError("Already connected")
        buffer = PipeBuffer()
        writer._buffer = buffer
        reader._buffer = buffer


def pipe():
    """Return a new connected (reader, writer) pair."""
    reader = PipedReader()
    writer = PipedWriter(reader)
    return reader, writer


class _Endpoint:

    def __init__(self):
        self._buffer = None

    def _pipe(self) -> PipeBuffer:
        buffer = self._buffer
        if buffer is None:
            raise NotConnectedError("Pipe not connected")
        return buffer

    @property
    def connected(self) -> bool:
        return self._buffer is not None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class PipedReader(_Endpoint):
    """The reading end of an in-process pipe.

    Reads block until the writer sends bytes, signals end of stream, or the
    pipe breaks.
    """

    def __init__(self, writer=None):
        super().__init__()
        if writer is not None:
            connect(writer, self)

    def connect(self, writer):
        connect(writer, self)

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    @property
    def closed(self) -> bool:
        return self._buffer is not None and self._buffer.closed_by_reader

    def read_byte(self) -> int:
        """Return the next byte as an int in 0-255, or EOF at end of stream."""
        return self._pipe().read_byte()

    def readinto(self, buffer, offset: int = 0, length: Optional[int] = None) -> int:
        """Read up to length bytes into buffer[offset:offset + length].

        Blocks until at least one byte is available. Returns the number of
        bytes read, or EOF at end of stream. A length of 0 returns 0.

        Raises:
            InvalidArgumentError: buffer is None or read-only, or offset and
                length do not fit in it. Nothing is read in that case.
        """
        view = _byte_view(buffer, "buffer")
        if view.readonly:
            raise InvalidArgumentError("buffer is read-only")
        length = _check_range(view, offset, length)
        if length == 0:
            return 0
        return self._pipe().read_into(view[offset:offset + length])

    def read(self, size: int = -1) -> bytes:
        """Return up to size bytes, or b"" at end of stream.

        With a negative size, read until end of stream.
        """
        if size is None or size < 0:
            return self.readall()
        # A short read is fine, so never allocate more than one block.
        buf = bytearray(min(size, BLOCKSIZE))
        n = self.readinto(buf)
        if n == EOF:
            return b""
        del buf[n:]
        return bytes(buf)

    def readall(self) -> bytes:
        result = bytearray()
        while True:
            data = self.read(BLOCKSIZE)
            if not data:
                break
            result.extend(data)
        return bytes(result)

    def available(self) -> int:
        """Return the total number of bytes ever received by this pipe.

        This is a running total. It is not decremented by reads; use tell()
        for the number of bytes already read.
        """
        return self._pipe().received()

    def tell(self) -> int:
        """Return the number of bytes read so far."""
        return self._pipe().delivered()

    def interrupt(self):
        """Cancel the blocked read, which raises PipeClosedError.

        If no read is blocked, the next one that would block is cancelled.
        """
        self._pipe().interrupt()

    def close(self):
        if self._buffer is not None:
            self._buffer.close_reader()


class PipedWriter(_Endpoint):
    """The writing end of an in-process pipe. Writes never block."""

    def __init__(self, reader: Optional[PipedReader] = None):
        super().__init__()
        if reader is not None:
            connect(self, reader)

    def connect(self, reader: PipedReader):
        connect(self, reader)

    def readable(self) -> bool:
        return False

    def writable(self) -> bool:
        return True

    @property
    def closed(self) -> bool:
        return self._buffer is not None and self._buffer.closed_by_writer

    def write_byte(self, b: int):
        if not isinstance(b, int) or isinstance(b, bool):
            raise InvalidArgumentError(f"byte value must be an int, got {b!r}")
        if not 0 <= b <= 255:
            raise InvalidArgumentError(f"byte value out of range: {b}")
        self._pipe().receive(memoryview(bytes((b,))))

    def write(self, data, offset: int = 0, length: Optional[int] = None) -> int:
        """Send data[offset:offset + length] to the reader.

        Returns the number of bytes written.

        Raises:
            NotConnectedError: the writer is not connected.
            PipeClosedError: either side has been closed.
        """
        view = _byte_view(data, "data")
        length = _check_range(view, offset, length)
        return self._pipe().receive(view[offset:offset + length])

    def flush(self):
        pass

    def end_of_stream(self):
        """Tell the reader that nothing more will be written."""
        self._pipe().received_last()

    def close(self):
        if self._buffer is not None:
            self._buffer.received_last()
