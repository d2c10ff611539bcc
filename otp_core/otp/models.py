"""
OTP Models
==========
Data models and enums for OTP issuance and verification.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from enum import Enum

from ..errors import OTPErrorCode


class VerificationType(str, Enum):
    """Purpose an OTP was issued for."""
    REGISTRATION = "registration"
    PASSWORD_RESET = "password_reset"
    PHONE_VERIFICATION = "phone_verification"


@dataclass
class OTPRecord:
    """A persisted OTP. The plaintext code is never part of the record."""
    id: str
    phone_number: str
    code_ciphertext: bytes
    nonce: bytes
    verification_type: VerificationType
    expires_at: datetime
    created_at: datetime
    max_attempts: int
    attempts: int = 0
    is_used: bool = False
    verified_at: Optional[datetime] = None
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def is_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempts)


@dataclass
class Receipt:
    """Handed back to the caller after a code was issued."""
    id: str
    expires_at: datetime


@dataclass
class IssueResult:
    """Outcome of ``OTPVerifier.issue``."""
    success: bool
    message: str
    receipt: Optional[Receipt] = None
    error: Optional[OTPErrorCode] = None
    wait_seconds: Optional[int] = None

    @property
    def otp_id(self) -> Optional[str]:
        return self.receipt.id if self.receipt else None

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.receipt.expires_at if self.receipt else None


class VerifyStatus(str, Enum):
    """Terminal outcome of a single ``verify`` call."""
    VERIFIED = "verified"
    INVALID_PHONE_FORMAT = "invalid_phone_format"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    INVALID_CODE = "invalid_code"
    ALREADY_USED = "already_used"
    INTERNAL_ERROR = "internal_error"


@dataclass
class VerifyResult:
    """Outcome of ``OTPVerifier.verify``."""
    status: VerifyStatus
    message: str
    remaining_attempts: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.status == VerifyStatus.VERIFIED

    @property
    def is_expired(self) -> bool:
        return self.status == VerifyStatus.EXPIRED

    @property
    def is_used(self) -> bool:
        return self.status == VerifyStatus.ALREADY_USED

    @property
    def error(self) -> Optional[OTPErrorCode]:
        if self.success:
            return None
        return OTPErrorCode(self.status.value)


@dataclass
class OTPStatus:
    """Read-only view of what a phone number can do right now."""
    phone_number: str
    verification_type: VerificationType
    can_request: bool
    wait_seconds: Optional[int] = None
    has_active_code: bool = False
    expires_at: Optional[datetime] = None
    remaining_attempts: Optional[int] = None
