"""
OTP Storage
===========
SQLAlchemy tables and the repository used by the engine.
"""

from .tables import OTPRateLimitRow, OTPVerificationRow
from .repository import OTPRepository, SQLAlchemyOTPRepository

__all__ = [
    "OTPRateLimitRow",
    "OTPVerificationRow",
    "OTPRepository",
    "SQLAlchemyOTPRepository",
]
