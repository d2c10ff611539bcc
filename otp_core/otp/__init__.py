"""
OTP Engine
==========
Code generation, at-rest encryption, and the issue/verify orchestrator.
"""

from .models import (
    IssueResult,
    OTPRecord,
    OTPStatus,
    Receipt,
    VerificationType,
    VerifyResult,
    VerifyStatus,
)
from .generator import CodeGenerator
from .cipher import CodeCipher, derive_key
from .verifier import OTPVerifier

__all__ = [
    "IssueResult",
    "OTPRecord",
    "OTPStatus",
    "Receipt",
    "VerificationType",
    "VerifyResult",
    "VerifyStatus",
    "CodeGenerator",
    "CodeCipher",
    "derive_key",
    "OTPVerifier",
]
