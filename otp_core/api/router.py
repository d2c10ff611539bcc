"""
OTP API Router
==============
FastAPI routes exposing the OTP engine.

Usage:
    app.include_router(create_otp_router(verifier))
"""

import re

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..errors import InvalidPhoneFormat, OTPError, OTPErrorCode
from ..otp.models import VerificationType
from ..otp.verifier import MSG_INVALID_PHONE, OTPVerifier
from .schemas import (
    OTPResponse,
    OTPStatusResponse,
    SendOTPRequest,
    SendOTPResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
)

logger = structlog.get_logger(__name__)

VALID_TYPES = {t.value for t in VerificationType}

# Amharic counterparts of the English messages
AM_SEND_REQUIRED = "ስልክ ቁጥር እና የማረጋገጫ አይነት ያስፈልጋል"
AM_VERIFY_REQUIRED = "ስልክ ቁጥር፣ የማረጋገጫ ኮድ እና የማረጋገጫ አይነት ያስፈልጋል"
AM_INVALID_TYPE = "ልክ ያልሆነ የማረጋገጫ አይነት"
AM_CODE_FORMAT = "የማረጋገጫ ኮድ {length} አሃዝ መሆን አለበት"
AM_SENT = "የማረጋገጫ ኮድ በተሳካ ሁኔታ ተልኳል"
AM_SEND_FAILED = "የማረጋገጫ ኮድ መላክ አልተሳካም"
AM_VERIFIED = "የማረጋገጫ ኮድ በተሳካ ሁኔታ ተረጋግጧል"
AM_VERIFY_FAILED = "የማረጋገጫ ኮድ ማረጋገጥ አልተሳካም"


def _respond(body: OTPResponse, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def _status_for(error: OTPErrorCode) -> int:
    if error == OTPErrorCode.RATE_LIMITED:
        return 429
    if error == OTPErrorCode.INTERNAL_ERROR:
        return 500
    return 400


def create_otp_router(verifier: OTPVerifier, prefix: str = "/otp") -> APIRouter:
    """
    Build the OTP router around an existing verifier.

    Args:
        verifier: Configured OTPVerifier
        prefix: Route prefix

    Returns:
        APIRouter with /send, /verify and /status routes
    """
    router = APIRouter(prefix=prefix, tags=["OTP"])
    code_length = verifier.generator.length
    code_pattern = re.compile(rf"^\d{{{code_length}}}$")

    @router.post("/send")
    async def send_otp(request: SendOTPRequest) -> JSONResponse:
        if not request.phone_number or not request.verification_type:
            return _respond(
                OTPResponse(
                    success=False,
                    message="Phone number and verification type are required",
                    message_am=AM_SEND_REQUIRED,
                ),
                400,
            )
        if request.verification_type not in VALID_TYPES:
            return _respond(
                OTPResponse(success=False, message="Invalid verification type", message_am=AM_INVALID_TYPE),
                400,
            )

        result = await verifier.issue(
            request.phone_number,
            VerificationType(request.verification_type),
            user_id=request.user_id,
            metadata=request.metadata,
        )
        if result.success:
            return _respond(
                SendOTPResponse(
                    success=True,
                    message=result.message,
                    message_am=AM_SENT,
                    otp_id=result.otp_id,
                    expires_at=result.expires_at,
                )
            )
        return _respond(
            SendOTPResponse(
                success=False,
                message=result.message,
                message_am=AM_SEND_FAILED,
                wait_time=result.wait_seconds,
            ),
            _status_for(result.error),
        )

    @router.post("/verify")
    async def verify_otp(request: VerifyOTPRequest) -> JSONResponse:
        if not request.phone_number or not request.otp_code or not request.verification_type:
            return _respond(
                OTPResponse(
                    success=False,
                    message="Phone number, OTP code, and verification type are required",
                    message_am=AM_VERIFY_REQUIRED,
                ),
                400,
            )
        if request.verification_type not in VALID_TYPES:
            return _respond(
                OTPResponse(success=False, message="Invalid verification type", message_am=AM_INVALID_TYPE),
                400,
            )
        # Rejected before the engine so a malformed code costs no attempt
        if not code_pattern.match(request.otp_code):
            return _respond(
                OTPResponse(
                    success=False,
                    message=f"OTP must be a {code_length}-digit number",
                    message_am=AM_CODE_FORMAT.format(length=code_length),
                ),
                400,
            )

        result = await verifier.verify(
            request.phone_number,
            request.otp_code,
            VerificationType(request.verification_type),
        )
        if result.success:
            return _respond(VerifyOTPResponse(success=True, message=result.message, message_am=AM_VERIFIED))
        return _respond(
            VerifyOTPResponse(
                success=False,
                message=result.message,
                message_am=AM_VERIFY_FAILED,
                remaining_attempts=result.remaining_attempts,
                is_expired=result.is_expired,
                is_used=result.is_used,
            ),
            _status_for(result.error),
        )

    @router.get("/status/{phone_number}/{verification_type}")
    async def otp_status(phone_number: str, verification_type: str) -> JSONResponse:
        if verification_type not in VALID_TYPES:
            return _respond(
                OTPResponse(success=False, message="Invalid verification type", message_am=AM_INVALID_TYPE),
                400,
            )
        try:
            status = await verifier.status(phone_number, VerificationType(verification_type))
        except InvalidPhoneFormat:
            return _respond(OTPResponse(success=False, message=MSG_INVALID_PHONE), 400)
        except OTPError as e:
            logger.error("OTP status check failed", error=str(e), exc_info=True)
            return _respond(OTPResponse(success=False, message="Failed to check OTP status"), 500)

        return _respond(
            OTPStatusResponse(
                success=True,
                message="OTP status retrieved",
                can_request=status.can_request,
                wait_time=status.wait_seconds,
                has_active_code=status.has_active_code,
                expires_at=status.expires_at,
                remaining_attempts=status.remaining_attempts,
            )
        )

    return router
