"""Exception types shared by the workers, senders and admin API."""

from __future__ import annotations


class RedGardenError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(RedGardenError):
    """A required setting is missing. Fatal when raised during setup."""


class ChannelNotConfigured(ConfigurationError):
    """A delivery channel was requested but its credentials are not set."""


class ChannelError(RedGardenError):
    """A channel provider rejected a message or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PushEndpointGone(ChannelError):
    """The push service reports the subscription endpoint no longer exists."""


class RenderError(RedGardenError):
    """The document renderer failed to produce an output file."""


class StorageError(RedGardenError):
    """Object storage rejected an upload or bucket operation."""


class DatastoreError(RedGardenError):
    """The datastore could not execute a query."""
