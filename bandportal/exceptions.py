"""Exception hierarchy for the band portal."""


class BandPortalError(Exception):
    """Base exception for all band portal errors."""


class ConfigError(BandPortalError):
    """Raised when configuration is invalid or missing."""


class InvitationError(BandPortalError):
    """Raised when an invitation cannot be created or claimed."""


class BillingError(BandPortalError):
    """Raised when a call to the payment processor fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmailDeliveryError(BandPortalError):
    """Raised when an outbound email cannot be delivered."""
