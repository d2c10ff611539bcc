"""
OTP Errors
==========
Error codes and exception classes for the OTP engine.

Business outcomes (rate limited, expired, wrong code, ...) are returned as
result objects and never raised out of the engine. The exceptions below are
raised by the building blocks and translated by ``OTPVerifier``.
"""

from enum import Enum
from typing import Optional


class OTPErrorCode(str, Enum):
    """Discriminator carried by every failed issue/verify result."""
    INVALID_PHONE_FORMAT = "invalid_phone_format"
    RATE_LIMITED = "rate_limited"
    SEND_FAILURE = "send_failure"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    INVALID_CODE = "invalid_code"
    ALREADY_USED = "already_used"
    INTERNAL_ERROR = "internal_error"


class OTPError(Exception):
    """Base exception for the OTP engine."""

    code: OTPErrorCode = OTPErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[OTPErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidPhoneFormat(OTPError, ValueError):
    """Raised when raw input cannot be reduced to a valid mobile number."""

    code = OTPErrorCode.INVALID_PHONE_FORMAT


class DecryptError(OTPError):
    """Raised when stored code material fails authentication."""


class GatewayError(OTPError):
    """Raised by an SMS gateway when the provider could not be reached."""

    code = OTPErrorCode.SEND_FAILURE

    def __init__(self, message: str, provider: str = "unknown", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class RepositoryError(OTPError):
    """Raised when the persistence layer fails."""


class ConfigurationError(OTPError):
    """Raised for invalid or missing settings."""
