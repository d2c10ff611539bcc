"""
OTP Tables
==========
ORM mappings for OTP records and issuance counters.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    LargeBinary,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..clock import utcnow
from ..database import Base


class OTPVerificationRow(Base):
    __tablename__ = "otp_verifications"
    __table_args__ = (
        Index(
            "ix_otp_verifications_active",
            "phone_number",
            "verification_type",
            "is_used",
            "created_at",
        ),
        CheckConstraint("attempts <= max_attempts", name="ck_otp_attempts_bounded"),
        CheckConstraint(
            "is_used = false OR verified_at IS NOT NULL",
            name="ck_otp_used_has_verified_at",
        ),
    )

    # Insertion order, breaks ties between records created in the same instant
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(
        String(36), unique=True, default=lambda: str(uuid.uuid4())
    )
    phone_number: Mapped[str] = mapped_column(String(20), index=True)
    code_ciphertext: Mapped[bytes] = mapped_column(LargeBinary)
    nonce: Mapped[bytes] = mapped_column(LargeBinary(16))
    verification_type: Mapped[str] = mapped_column(String(32))
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # "metadata" is reserved on declarative classes
    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class OTPRateLimitRow(Base):
    __tablename__ = "otp_rate_limits"

    phone_number: Mapped[str] = mapped_column(String(20), primary_key=True)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    request_count: Mapped[int] = mapped_column(Integer, default=0)
    last_request_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
