"""Minimal stream capabilities required of pump sources and sinks."""

from abc import ABC, abstractmethod


def _has_methods(C, names) -> bool:
    mro = C.__mro__
    for name in names:
        for base in mro:
            if name in base.__dict__:
                if base.__dict__[name] is None:
                    return False
                break
        else:
            return False
    return True


# ============================================================================
# Readable / Writable capabilities
# ============================================================================

class Readable(ABC):
    """Something bytes can be read from.

    Any object with read() and close() qualifies (files, io.BytesIO,
    socket.makefile('rb'), a PipedReader), so sources never need to
    inherit from this class.
    """

    @abstractmethod
    def read(self, size: int = -1) -> bytes:
        """
        Return up to size bytes, or b"" at end of stream.
        Raises OSError (or any Exception) on failure.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @classmethod
    def __subclasshook__(cls, C):
        if cls is Readable and _has_methods(C, ("read", "close")):
            return True
        return NotImplemented


class Writable(ABC):
    """Something bytes can be written to, flushed and closed."""

    @abstractmethod
    def write(self, data) -> int:
        pass

    @abstractmethod
    def flush(self) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @classmethod
    def __subclasshook__(cls, C):
        if cls is Writable and _has_methods(C, ("write", "flush", "close")):
            return True
        return NotImplemented
