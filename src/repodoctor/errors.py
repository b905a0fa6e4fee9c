"""Exception hierarchy shared by the collector, engine and transports."""
from __future__ import annotations


class RepoDoctorError(Exception):
    """Base class for all repodoctor errors."""


class InvalidRepoError(RepoDoctorError, ValueError):
    """Repository identifier is not of the form ``owner/name``."""


class HostingApiError(RepoDoctorError):
    """A call to the repository-hosting API failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AlertConfigurationError(RepoDoctorError):
    """No delivery target resolves for the requested channel."""


class DeliveryError(RepoDoctorError):
    """The notification endpoint rejected the payload or could not be reached."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body
