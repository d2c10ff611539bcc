"""
OTP Verifier
============
Issues OTP codes over SMS and verifies submitted codes.

Every dependency is injected at construction; the verifier holds no
module-level state. Business outcomes are returned as ``IssueResult`` /
``VerifyResult`` values and never raised.
"""

import asyncio
import hmac
import time
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog

from ..clock import Clock, utcnow
from ..config import OTPSettings
from ..errors import DecryptError, InvalidPhoneFormat, OTPError, OTPErrorCode, GatewayError
from ..messaging.phone_utils import PhoneNormalizer
from ..metrics import record_dispatch, record_issue, record_verify
from ..providers.base import SMSGateway, SendResult
from ..rate_limit.base import RateLimiter
from .cipher import CodeCipher, record_context
from .generator import CodeGenerator
from .models import (
    IssueResult,
    OTPRecord,
    OTPStatus,
    Receipt,
    VerificationType,
    VerifyResult,
    VerifyStatus,
)

if TYPE_CHECKING:
    from ..storage.repository import OTPRepository

logger = structlog.get_logger(__name__)

SMS_TEMPLATE = (
    "Your {brand} verification code is: {code}. "
    "Valid for {minutes} minutes. Do not share this code."
)

# User-facing messages
MSG_INVALID_PHONE = "Invalid phone number format. Please use Ethiopian format (+251XXXXXXXXX)"
MSG_RATE_LIMITED = "Too many OTP requests. Please wait before requesting again."
MSG_SEND_FAILURE = "Failed to send SMS. Please try again."
MSG_SENT = "OTP sent successfully"
MSG_ISSUE_ERROR = "Failed to generate OTP. Please try again."
MSG_NOT_FOUND = "No valid OTP found. Please request a new one."
MSG_EXPIRED = "OTP has expired. Please request a new one."
MSG_EXHAUSTED = "Maximum verification attempts exceeded. Please request a new OTP."
MSG_INVALID_CODE = "Invalid OTP code. {remaining} attempts remaining."
MSG_ALREADY_USED = "OTP has already been used. Please request a new one."
MSG_VERIFIED = "OTP verified successfully"
MSG_VERIFY_ERROR = "Failed to verify OTP. Please try again."


class OTPVerifier:
    """
    OTP issuance and verification engine.

    Usage:
        verifier = OTPVerifier.create(settings, session_factory)
        result = await verifier.issue("0911223344", VerificationType.REGISTRATION)
        check = await verifier.verify("0911223344", "1234", VerificationType.REGISTRATION)
    """

    def __init__(
        self,
        settings: OTPSettings,
        repository: "OTPRepository",
        rate_limiter: RateLimiter,
        cipher: CodeCipher,
        gateway: SMSGateway,
        generator: Optional[CodeGenerator] = None,
        normalizer: Optional[PhoneNormalizer] = None,
        clock: Clock = utcnow,
    ):
        self.settings = settings
        self.repository = repository
        self.rate_limiter = rate_limiter
        self.cipher = cipher
        self.gateway = gateway
        self.generator = generator or CodeGenerator(settings.code_length)
        self.normalizer = normalizer or PhoneNormalizer(
            country_code=settings.country_code,
            trunk_prefix=settings.trunk_prefix,
        )
        self.clock = clock

    @classmethod
    def create(
        cls,
        settings: OTPSettings,
        session_factory,
        gateway: Optional[SMSGateway] = None,
        redis_client=None,
    ) -> "OTPVerifier":
        """
        Wire a verifier from settings.

        Args:
            settings: Validated settings
            session_factory: async_sessionmaker bound to the OTP database
            gateway: SMS gateway (defaults to ``build_gateway(settings)``)
            redis_client: When given, issuance limits are kept in Redis
                instead of the OTP database
        """
        from ..providers import build_gateway
        from ..rate_limit import RedisRateLimiter, SQLRateLimiter
        from ..storage.repository import SQLAlchemyOTPRepository

        settings.validate()
        repository = SQLAlchemyOTPRepository(session_factory)
        if redis_client is not None:
            rate_limiter = RedisRateLimiter(
                redis_client,
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        else:
            rate_limiter = SQLRateLimiter(
                repository,
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        return cls(
            settings=settings,
            repository=repository,
            rate_limiter=rate_limiter,
            cipher=CodeCipher(settings.secret_key),
            gateway=gateway or build_gateway(settings),
        )

    def format_message(self, code: str) -> str:
        return SMS_TEMPLATE.format(
            brand=self.settings.brand_name,
            code=code,
            minutes=self.settings.ttl_minutes,
        )

    async def issue(
        self,
        phone: str,
        verification_type: VerificationType,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> IssueResult:
        """
        Generate a code, store it sealed and send it by SMS.

        Args:
            phone: Raw phone input
            verification_type: Purpose of the code
            user_id: Optional external user id stored with the record
            metadata: Opaque payload stored with the record

        Returns:
            IssueResult with a Receipt on success
        """
        verification_type = VerificationType(verification_type)
        vtype = verification_type.value

        try:
            normalized = self.normalizer.normalize(phone)
        except InvalidPhoneFormat:
            record_issue(vtype, OTPErrorCode.INVALID_PHONE_FORMAT.value)
            return IssueResult(
                success=False,
                message=MSG_INVALID_PHONE,
                error=OTPErrorCode.INVALID_PHONE_FORMAT,
            )

        log = logger.bind(phone=normalized, verification_type=vtype)
        now = self.clock()

        try:
            limit = await self.rate_limiter.check_and_record(normalized, now=now)
            if not limit.allowed:
                log.info("OTP issuance rate limited", wait_seconds=limit.wait_seconds)
                record_issue(vtype, OTPErrorCode.RATE_LIMITED.value)
                return IssueResult(
                    success=False,
                    message=MSG_RATE_LIMITED,
                    error=OTPErrorCode.RATE_LIMITED,
                    wait_seconds=limit.wait_seconds,
                )

            code = self.generator.generate()
            ciphertext, nonce = self.cipher.seal(code, record_context(normalized, vtype))
            record = OTPRecord(
                id=str(uuid.uuid4()),
                phone_number=normalized,
                code_ciphertext=ciphertext,
                nonce=nonce,
                verification_type=verification_type,
                expires_at=now + timedelta(seconds=self.settings.ttl_seconds),
                created_at=now,
                max_attempts=self.settings.max_attempts,
                user_id=user_id,
                metadata=dict(metadata or {}),
            )
            otp_id = await self.repository.create(record)
        except OTPError as e:
            log.error("OTP issuance failed", error=str(e), exc_info=True)
            record_issue(vtype, OTPErrorCode.INTERNAL_ERROR.value)
            return IssueResult(
                success=False,
                message=MSG_ISSUE_ERROR,
                error=OTPErrorCode.INTERNAL_ERROR,
            )

        log = log.bind(otp_id=otp_id)
        error = await self._dispatch(normalized, self.format_message(code), log)
        if error is not None:
            record_issue(vtype, error.value)
            message = MSG_SEND_FAILURE if error == OTPErrorCode.SEND_FAILURE else MSG_ISSUE_ERROR
            return IssueResult(success=False, message=message, error=error)

        log.info("OTP issued", expires_at=record.expires_at.isoformat())
        record_issue(vtype, "success")
        return IssueResult(
            success=True,
            message=MSG_SENT,
            receipt=Receipt(id=otp_id, expires_at=record.expires_at),
        )

    async def _dispatch(self, phone: str, message: str, log) -> Optional[OTPErrorCode]:
        """Send once, bounded by the gateway timeout. Returns an error code on failure."""
        provider = self.gateway.name
        started = time.monotonic()
        status = "error"
        try:
            result: SendResult = await asyncio.wait_for(
                self.gateway.send(phone, message),
                timeout=self.settings.gateway_timeout_seconds,
            )
        except asyncio.TimeoutError:
            status = "timeout"
            log.warning("SMS dispatch timed out", provider=provider)
            return OTPErrorCode.SEND_FAILURE
        except GatewayError as e:
            log.warning("SMS dispatch failed", provider=provider, error=str(e))
            return OTPErrorCode.SEND_FAILURE
        except Exception:
            log.exception("SMS gateway raised unexpectedly", provider=provider)
            return OTPErrorCode.INTERNAL_ERROR
        else:
            if not result.success:
                status = "failed"
                log.warning(
                    "SMS rejected by provider",
                    provider=provider,
                    error_code=result.error_code,
                    error_message=result.error_message,
                )
                return OTPErrorCode.SEND_FAILURE
            status = "sent"
            return None
        finally:
            record_dispatch(provider, status, time.monotonic() - started)

    async def verify(
        self,
        phone: str,
        code: str,
        verification_type: VerificationType,
    ) -> VerifyResult:
        """
        Check a submitted code against the newest unused record.

        Expiry and exhaustion are checked before the code is compared, so
        neither consumes an attempt.

        Args:
            phone: Raw phone input
            code: Submitted code
            verification_type: Purpose the code was issued for

        Returns:
            VerifyResult
        """
        verification_type = VerificationType(verification_type)
        vtype = verification_type.value

        try:
            normalized = self.normalizer.normalize(phone)
        except InvalidPhoneFormat:
            return self._verify_result(vtype, VerifyStatus.INVALID_PHONE_FORMAT, MSG_INVALID_PHONE)

        log = logger.bind(phone=normalized, verification_type=vtype)
        now = self.clock()

        try:
            record = await self.repository.find_active(normalized, verification_type)
            if record is None:
                return self._verify_result(vtype, VerifyStatus.NOT_FOUND, MSG_NOT_FOUND)

            log = log.bind(otp_id=record.id)

            if record.is_expired(now):
                return self._verify_result(vtype, VerifyStatus.EXPIRED, MSG_EXPIRED)

            if record.is_exhausted:
                return self._verify_result(
                    vtype, VerifyStatus.ATTEMPTS_EXHAUSTED, MSG_EXHAUSTED, remaining_attempts=0
                )

            try:
                expected = self.cipher.open(
                    record.code_ciphertext,
                    record.nonce,
                    record_context(record.phone_number, record.verification_type.value),
                )
            except DecryptError:
                log.error("Stored OTP failed authentication")
                return self._verify_result(vtype, VerifyStatus.INTERNAL_ERROR, MSG_VERIFY_ERROR)

            if not hmac.compare_digest(expected.encode(), str(code).encode()):
                return await self._record_mismatch(record, vtype, log)

            if not await self.repository.mark_used(record.id, now):
                log.info("OTP changed by a concurrent verification")
                return await self._lost_race(record.id, vtype, now)
        except OTPError as e:
            log.error("OTP verification failed", error=str(e), exc_info=True)
            return self._verify_result(vtype, VerifyStatus.INTERNAL_ERROR, MSG_VERIFY_ERROR)

        log.info("OTP verified")
        return self._verify_result(vtype, VerifyStatus.VERIFIED, MSG_VERIFIED)

    async def _record_mismatch(self, record: OTPRecord, vtype: str, log) -> VerifyResult:
        attempts = await self.repository.increment_attempts(record.id)
        if attempts is None:
            return await self._lost_race(record.id, vtype, self.clock())

        remaining = max(0, record.max_attempts - attempts)
        log.info("Invalid OTP code", attempts=attempts, remaining_attempts=remaining)
        return self._verify_result(
            vtype,
            VerifyStatus.INVALID_CODE,
            MSG_INVALID_CODE.format(remaining=remaining),
            remaining_attempts=remaining,
        )

    async def _lost_race(self, record_id: str, vtype: str, now) -> VerifyResult:
        """Outcome for a conditional update that matched nothing, from the record as it is now."""
        current = await self.repository.get(record_id)
        if current is not None and current.is_used:
            return self._verify_result(vtype, VerifyStatus.ALREADY_USED, MSG_ALREADY_USED)
        if current is not None and not current.is_exhausted and current.is_expired(now):
            return self._verify_result(vtype, VerifyStatus.EXPIRED, MSG_EXPIRED)
        return self._verify_result(
            vtype, VerifyStatus.ATTEMPTS_EXHAUSTED, MSG_EXHAUSTED, remaining_attempts=0
        )

    @staticmethod
    def _verify_result(
        vtype: str,
        status: VerifyStatus,
        message: str,
        remaining_attempts: Optional[int] = None,
    ) -> VerifyResult:
        record_verify(vtype, status.value)
        return VerifyResult(status=status, message=message, remaining_attempts=remaining_attempts)

    async def status(self, phone: str, verification_type: VerificationType) -> OTPStatus:
        """
        Report whether a new code may be requested and whether one is pending.

        Read-only: no issuance is recorded.

        Raises:
            InvalidPhoneFormat: If the phone number is invalid
            RepositoryError: If storage is unavailable
        """
        verification_type = VerificationType(verification_type)
        normalized = self.normalizer.normalize(phone)
        now = self.clock()

        limit = await self.rate_limiter.peek(normalized, now=now)
        record = await self.repository.find_active(normalized, verification_type)

        status = OTPStatus(
            phone_number=normalized,
            verification_type=verification_type,
            can_request=limit.allowed,
            wait_seconds=limit.wait_seconds,
        )
        if record is not None and not record.is_expired(now) and not record.is_exhausted:
            status.has_active_code = True
            status.expires_at = record.expires_at
            status.remaining_attempts = record.remaining_attempts
        return status
