"""
OTP Core Library
================
Phone OTP issuance and verification for EthioMarket services.
"""

__version__ = "0.1.0"

# Configuration
from otp_core.config import OTPSettings

# Errors
from otp_core.errors import (
    OTPErrorCode,
    OTPError,
    InvalidPhoneFormat,
    DecryptError,
    GatewayError,
    RepositoryError,
    ConfigurationError,
)

# Logging
from otp_core.logging_config import configure_logging, mask_phone

# Database
from otp_core.database import (
    Base,
    create_async_engine,
    create_session_factory,
    init_models,
    close_engine,
)

# Phone numbers
from otp_core.messaging import (
    PhoneNormalizer,
    normalize_phone,
    is_valid_mobile,
    validate_e164,
)

# OTP
from otp_core.otp import (
    CodeCipher,
    CodeGenerator,
    IssueResult,
    OTPRecord,
    OTPStatus,
    OTPVerifier,
    Receipt,
    VerificationType,
    VerifyResult,
    VerifyStatus,
)

# Rate Limiting
from otp_core.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    SQLRateLimiter,
    RateLimitInfo,
    RateLimitResult,
)

# Storage
from otp_core.storage import OTPRepository, SQLAlchemyOTPRepository

# Providers
from otp_core.providers import (
    SMSGateway,
    SendResult,
    TwilioGateway,
    ConsoleGateway,
    build_gateway,
)

# API
from otp_core.api import create_otp_router

__all__ = [
    "__version__",
    # Configuration
    "OTPSettings",
    # Errors
    "OTPErrorCode",
    "OTPError",
    "InvalidPhoneFormat",
    "DecryptError",
    "GatewayError",
    "RepositoryError",
    "ConfigurationError",
    # Logging
    "configure_logging",
    "mask_phone",
    # Database
    "Base",
    "create_async_engine",
    "create_session_factory",
    "init_models",
    "close_engine",
    # Phone numbers
    "PhoneNormalizer",
    "normalize_phone",
    "is_valid_mobile",
    "validate_e164",
    # OTP
    "CodeCipher",
    "CodeGenerator",
    "IssueResult",
    "OTPRecord",
    "OTPStatus",
    "OTPVerifier",
    "Receipt",
    "VerificationType",
    "VerifyResult",
    "VerifyStatus",
    # Rate Limiting
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "SQLRateLimiter",
    "RateLimitInfo",
    "RateLimitResult",
    # Storage
    "OTPRepository",
    "SQLAlchemyOTPRepository",
    # Providers
    "SMSGateway",
    "SendResult",
    "TwilioGateway",
    "ConsoleGateway",
    "build_gateway",
    # API
    "create_otp_router",
]
