"""
Custom exceptions for the faucet agent.

Only ConfigurationError is fatal; everything else is handled (and logged)
by the processor or the supervisor and never aborts the process.
"""

from typing import Optional, Union


class AgentError(Exception):
    """Base error for the faucet agent."""

    pass


class ConfigurationError(AgentError):
    """Invalid startup configuration (remote write URI, settings values)."""

    pass


class MalformedRecordError(AgentError):
    """An input line could not be parsed as a faucet event."""

    def __init__(self, message: str, line: Union[bytes, str, None] = None):
        super().__init__(message)
        self.line = line


class StreamError(AgentError):
    """Base error for event socket sessions."""

    pass


class StreamConnectError(StreamError, ConnectionError):
    """The event socket could not be reached."""

    pass


class EndOfStream(StreamError):
    """The peer (or a local close) ended the event stream."""

    pass


class StreamReadError(StreamError):
    """Reading from the event socket failed."""

    pass


class DeliveryError(AgentError):
    """A write request was not accepted by the remote endpoint."""

    def __init__(self, message: str, status: Optional[int] = None, recoverable: bool = True):
        super().__init__(message)
        self.status = status
        self.recoverable = recoverable
