"""
OTP Metrics
===========
Prometheus metric definitions for OTP issuance and verification.
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so embedding services can expose OTP metrics separately
OTP_REGISTRY = CollectorRegistry()

OTP_ISSUE_TOTAL = Counter(
    name="otp_issue_total",
    documentation="OTP issuance attempts by outcome",
    labelnames=["verification_type", "outcome"],
    registry=OTP_REGISTRY,
)

OTP_VERIFY_TOTAL = Counter(
    name="otp_verify_total",
    documentation="OTP verification attempts by outcome",
    labelnames=["verification_type", "outcome"],
    registry=OTP_REGISTRY,
)

SMS_DISPATCH_SECONDS = Histogram(
    name="otp_sms_dispatch_seconds",
    documentation="Time spent handing an OTP message to the SMS gateway",
    labelnames=["provider", "status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=OTP_REGISTRY,
)


def record_issue(verification_type: str, outcome: str) -> None:
    OTP_ISSUE_TOTAL.labels(verification_type=verification_type, outcome=outcome).inc()


def record_verify(verification_type: str, outcome: str) -> None:
    OTP_VERIFY_TOTAL.labels(verification_type=verification_type, outcome=outcome).inc()


def record_dispatch(provider: str, status: str, duration_seconds: float) -> None:
    SMS_DISPATCH_SECONDS.labels(provider=provider, status=status).observe(duration_seconds)


def get_metrics_text() -> bytes:
    """Render OTP metrics in the Prometheus text exposition format."""
    return generate_latest(OTP_REGISTRY)
