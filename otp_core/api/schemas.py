"""
OTP API Schemas
===============
Request and response bodies for the OTP endpoints. Field names on the wire
are camelCase.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SendOTPRequest(_CamelModel):
    # Optional so the router can answer missing fields with a 400
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    verification_type: Optional[str] = Field(default=None, alias="verificationType")
    user_id: Optional[str] = Field(default=None, alias="userId")
    metadata: Optional[Dict[str, Any]] = None


class VerifyOTPRequest(_CamelModel):
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    otp_code: Optional[str] = Field(default=None, alias="otpCode")
    verification_type: Optional[str] = Field(default=None, alias="verificationType")


class OTPResponse(_CamelModel):
    success: bool
    message: str
    message_am: Optional[str] = Field(default=None, alias="messageAm")


class SendOTPResponse(OTPResponse):
    otp_id: Optional[str] = Field(default=None, alias="otpId")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    wait_time: Optional[int] = Field(default=None, alias="waitTime")


class VerifyOTPResponse(OTPResponse):
    remaining_attempts: Optional[int] = Field(default=None, alias="remainingAttempts")
    is_expired: Optional[bool] = Field(default=None, alias="isExpired")
    is_used: Optional[bool] = Field(default=None, alias="isUsed")


class OTPStatusResponse(OTPResponse):
    can_request: Optional[bool] = Field(default=None, alias="canRequest")
    wait_time: Optional[int] = Field(default=None, alias="waitTime")
    has_active_code: Optional[bool] = Field(default=None, alias="hasActiveCode")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    remaining_attempts: Optional[int] = Field(default=None, alias="remainingAttempts")
