"""
Exception types raised by jute.
"""

from typing import Optional


class JuteError(Exception):
    """Base class for all jute errors."""


class FormatError(JuteError):
    """A notebook document is malformed or uses an unrecognized tag."""

    def __init__(self, message: str, location: Optional[str] = None):
        self.location = location
        if location:
            message = f"{location}: {message}"
        super().__init__(message)


class ConfigError(JuteError):
    """The server URL or authorization token cannot be used."""


class RemoteError(JuteError):
    """The Jupyter server returned a failure or an unreadable response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ConnectError(JuteError):
    """The kernel channel could not be opened."""
