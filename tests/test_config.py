"""
Tests for settings, logging and metrics.
"""

import logging

import pytest
import structlog


class TestSettings:
    """Tests for OTPSettings."""

    def test_defaults(self):
        """Should default to 4-digit codes valid for 5 minutes."""
        from otp_core.config import OTPSettings

        settings = OTPSettings(secret_key="s")

        assert settings.code_length == 4
        assert settings.ttl_seconds == 300
        assert settings.ttl_minutes == 5
        assert settings.max_attempts == 3
        assert settings.validate() is settings

    def test_from_env(self, monkeypatch):
        """Should read the environment at call time."""
        from otp_core.config import OTPSettings

        monkeypatch.setenv("OTP_SECRET_KEY", "env-secret")
        monkeypatch.setenv("OTP_CODE_LENGTH", "6")
        monkeypatch.setenv("OTP_RATE_LIMIT_MAX_REQUESTS", "3")
        monkeypatch.setenv("LOG_JSON", "false")

        settings = OTPSettings.from_env()

        assert settings.secret_key == "env-secret"
        assert settings.code_length == 6
        assert settings.rate_limit_max_requests == 3
        assert settings.log_json is False

    def test_from_env_unset_keeps_defaults(self, monkeypatch):
        """Should fall back to the field defaults for unset variables."""
        from otp_core.config import ENV_VARS, OTPSettings

        for var, _ in ENV_VARS.values():
            monkeypatch.delenv(var, raising=False)

        assert OTPSettings.from_env() == OTPSettings()

    def test_env_vars_cover_every_field(self):
        """Should map every settings field to an environment variable."""
        from dataclasses import fields

        from otp_core.config import ENV_VARS, OTPSettings

        assert set(ENV_VARS) == {f.name for f in fields(OTPSettings)}

    def test_console_reveal_from_env(self, monkeypatch):
        """Should read the console reveal flag as a boolean."""
        from otp_core.config import OTPSettings

        monkeypatch.setenv("OTP_CONSOLE_REVEAL_CODES", "yes")

        assert OTPSettings.from_env().console_reveal_codes is True
        assert OTPSettings().console_reveal_codes is False

    @pytest.mark.parametrize("field,value", [
        ("code_length", 3),
        ("code_length", 11),
        ("ttl_seconds", 0),
        ("max_attempts", 0),
        ("rate_limit_max_requests", -1),
        ("rate_limit_window_seconds", 0),
        ("gateway_timeout_seconds", 0),
        ("country_code", "+251"),
    ])
    def test_validate_rejects(self, field, value):
        """Should reject out-of-range values."""
        from otp_core.config import OTPSettings
        from otp_core.errors import ConfigurationError

        settings = OTPSettings(secret_key="s", **{field: value})

        with pytest.raises(ConfigurationError):
            settings.validate()

    def test_repr_hides_secrets(self):
        """Should keep secrets out of repr."""
        from otp_core.config import OTPSettings

        settings = OTPSettings(secret_key="very-secret", twilio_auth_token="tw-token")

        assert "very-secret" not in repr(settings)
        assert "tw-token" not in repr(settings)

    def test_twilio_configured(self):
        """Should need both SID and token."""
        from otp_core.config import OTPSettings

        assert OTPSettings(twilio_account_sid="AC1", twilio_auth_token="").twilio_configured is False
        assert OTPSettings(twilio_account_sid="AC1", twilio_auth_token="t").twilio_configured is True


class TestLogging:
    """Tests for structured logging setup."""

    @pytest.fixture(autouse=True)
    def reset_structlog(self):
        yield
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()
        logging.getLogger().handlers.clear()
        logging.getLogger().setLevel(logging.WARNING)

    def test_mask_phone(self):
        """Should keep only the prefix and the last three digits."""
        from otp_core.logging_config import mask_phone

        assert mask_phone("+251911223344") == "+251******344"
        assert mask_phone("") == "***"
        assert mask_phone("12345") == "*****"

    def test_processor_masks_phone_fields(self):
        """Should redact phone fields and leave others alone."""
        from otp_core.logging_config import mask_phone_numbers

        event = mask_phone_numbers(None, "info", {
            "event": "OTP issued",
            "phone": "+251911223344",
            "otp_id": "abc",
        })

        assert event["phone"] == "+251******344"
        assert event["otp_id"] == "abc"

    def test_configure_logging_json(self, capsys):
        """Should emit JSON lines with masked phone numbers."""
        import json
        from otp_core.logging_config import configure_logging

        configure_logging(service_name="otp-test", level="INFO", json_output=True)
        structlog.get_logger("otp-test").info("OTP issued", phone="+251911223344")

        lines = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        issued = [line for line in lines if line["event"] == "OTP issued"][0]
        assert issued["phone"] == "+251******344"
        assert issued["service"] == "otp-test"
        assert issued["level"] == "info"


class TestMetrics:
    """Tests for Prometheus metrics."""

    def sample(self, name, **labels):
        from otp_core.metrics import OTP_REGISTRY

        return OTP_REGISTRY.get_sample_value(name, labels) or 0.0

    async def test_issue_and_verify_counted(self, verifier, gateway):
        """Should count outcomes per verification type."""
        from otp_core.otp import VerificationType

        issued_before = self.sample("otp_issue_total", verification_type="registration", outcome="success")
        verified_before = self.sample("otp_verify_total", verification_type="registration", outcome="verified")
        sent_before = self.sample("otp_sms_dispatch_seconds_count", provider="recording", status="sent")

        await verifier.issue("0911223344", VerificationType.REGISTRATION)
        await verifier.verify("0911223344", gateway.last_code, VerificationType.REGISTRATION)

        assert self.sample("otp_issue_total", verification_type="registration", outcome="success") == issued_before + 1
        assert self.sample("otp_verify_total", verification_type="registration", outcome="verified") == verified_before + 1
        assert self.sample("otp_sms_dispatch_seconds_count", provider="recording", status="sent") == sent_before + 1

    def test_metrics_text(self):
        """Should render the exposition format."""
        from otp_core.metrics import get_metrics_text, record_issue

        record_issue("password_reset", "rate_limited")
        text = get_metrics_text().decode()

        assert "otp_issue_total" in text
        assert 'outcome="rate_limited"' in text
