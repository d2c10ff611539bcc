"""
OTP Configuration
=================
Settings for the OTP engine, read from the environment.
"""

import os
from dataclasses import dataclass, field

from .errors import ConfigurationError


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Field name -> (environment variable, parser)
ENV_VARS = {
    "secret_key": ("OTP_SECRET_KEY", str),
    "code_length": ("OTP_CODE_LENGTH", int),
    "ttl_seconds": ("OTP_TTL_SECONDS", int),
    "max_attempts": ("OTP_MAX_ATTEMPTS", int),
    "rate_limit_max_requests": ("OTP_RATE_LIMIT_MAX_REQUESTS", int),
    "rate_limit_window_seconds": ("OTP_RATE_LIMIT_WINDOW_SECONDS", int),
    "gateway_timeout_seconds": ("OTP_GATEWAY_TIMEOUT_SECONDS", float),
    "country_code": ("OTP_COUNTRY_CODE", str),
    "trunk_prefix": ("OTP_TRUNK_PREFIX", str),
    "brand_name": ("OTP_BRAND_NAME", str),
    "database_url": ("DATABASE_URL", str),
    "redis_url": ("REDIS_URL", str),
    "twilio_account_sid": ("TWILIO_ACCOUNT_SID", str),
    "twilio_auth_token": ("TWILIO_AUTH_TOKEN", str),
    "twilio_from_number": ("TWILIO_FROM_NUMBER", str),
    "console_reveal_codes": ("OTP_CONSOLE_REVEAL_CODES", _env_bool),
    "log_level": ("LOG_LEVEL", str),
    "log_json": ("LOG_JSON", _env_bool),
}


@dataclass
class OTPSettings:
    """Configuration for OTP issuance, verification and delivery."""
    secret_key: str = field(default="", repr=False)
    code_length: int = 4
    ttl_seconds: int = 300  # 5 minutes
    max_attempts: int = 3

    # Issuance limit per phone number
    rate_limit_max_requests: int = 5
    rate_limit_window_seconds: int = 3600

    gateway_timeout_seconds: float = 10.0

    # Phone normalization
    country_code: str = "251"
    trunk_prefix: str = "0"

    brand_name: str = "EthioMarket"

    database_url: str = "sqlite+aiosqlite:///./otp.db"
    redis_url: str = ""

    # Twilio
    twilio_account_sid: str = ""
    twilio_auth_token: str = field(default="", repr=False)
    twilio_from_number: str = ""

    # Console fallback writes codes in clear (local development only)
    console_reveal_codes: bool = False

    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> "OTPSettings":
        """Build settings from the current environment. Unset variables keep the defaults."""
        values = {}
        for name, (var, parse) in ENV_VARS.items():
            raw = os.environ.get(var)
            if raw is not None:
                values[name] = parse(raw)
        return cls(**values)

    @property
    def ttl_minutes(self) -> int:
        return max(1, self.ttl_seconds // 60)

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)

    def validate(self) -> "OTPSettings":
        """
        Check value ranges.

        Raises:
            ConfigurationError: If a setting is out of range
        """
        if not 4 <= self.code_length <= 10:
            raise ConfigurationError(f"code_length must be between 4 and 10, got {self.code_length}")
        for name in (
            "ttl_seconds",
            "max_attempts",
            "rate_limit_max_requests",
            "rate_limit_window_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.gateway_timeout_seconds <= 0:
            raise ConfigurationError("gateway_timeout_seconds must be positive")
        if not self.country_code.isdigit():
            raise ConfigurationError("country_code must contain digits only")
        return self
