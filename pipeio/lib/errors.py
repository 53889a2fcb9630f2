"""Errors raised by the in-process pipe and the stream pump."""


class PipeError(OSError):
    """Base class for pipe failures."""


class NotConnectedError(PipeError):
    """The endpoint has not been connected to a peer yet."""


class AlreadyConnectedError(PipeError):
    """The endpoint (or pump) is already bound."""


class PipeClosedError(PipeError, BrokenPipeError):
    """The pipe is broken: one side closed, or a blocked read was interrupted."""


class InvalidArgumentError(ValueError):
    """Missing buffer or stream, or an offset/length outside the buffer."""
