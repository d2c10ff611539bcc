"""
OTP HTTP API
============
FastAPI router and pydantic schemas for the OTP endpoints.
"""

from .router import create_otp_router
from .schemas import (
    OTPStatusResponse,
    SendOTPRequest,
    SendOTPResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
)

__all__ = [
    "create_otp_router",
    "SendOTPRequest",
    "SendOTPResponse",
    "VerifyOTPRequest",
    "VerifyOTPResponse",
    "OTPStatusResponse",
]
