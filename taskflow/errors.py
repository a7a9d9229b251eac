"""Internal exception hierarchy.

These are raised inside the gateway and the local store and converted to
``Result`` failures before reaching any public caller.
"""


class TaskflowError(Exception):
    """Base class for TaskFlow errors."""


class TransportError(TaskflowError):
    """Network failure or a response body that could not be decoded."""


class RemoteRejectedError(TaskflowError):
    """The remote service answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class LocalStoreCorruptionError(TaskflowError):
    """A stored collection could not be parsed."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Stored data for '{key}' is corrupted: {reason}")
        self.key = key
