"""Client-side exceptions"""


class TollgateClientError(Exception):
    """Base class for errors raised by the Tollgate client."""


class SessionExpiredError(TollgateClientError):
    """The session can no longer be refreshed; the user has to log in again.

    Raised after a refresh was rejected, or when a request still fails
    authentication after one refresh-and-retry. Local session state has
    already been cleared when this is raised.
    """

    def __init__(self, message: str = "Session expired. Please log in again."):
        super().__init__(message)
        self.message = message


class StorageError(TollgateClientError):
    """Secure storage could not be read or decrypted."""
