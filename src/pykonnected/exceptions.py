"""Exceptions for pykonnected."""


class KonnectedError(Exception):
    """Base exception for pykonnected."""


class KonnectedConnectionError(KonnectedError):
    """Panel could not be reached or the HTTP exchange failed."""


class KonnectedTimeoutError(KonnectedConnectionError):
    """Request to a panel timed out."""


class KonnectedRebootingError(KonnectedConnectionError):
    """Panel dropped the connection, usually while rebooting to apply settings."""


class KonnectedConfigError(KonnectedError):
    """Configuration file is missing, unreadable or malformed."""


class KonnectedInvalidZoneError(KonnectedConfigError):
    """Zone number or zone type is not legal for the panel."""


class KonnectedAuthenticationError(KonnectedError):
    """Callback request carried a missing or unknown bearer token."""
