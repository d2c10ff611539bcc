"""
OTP Repository
==============
Persistence for OTP records and issuance counters.

Every mutating operation is a single conditional statement (or a short
sequence inside one transaction) so that concurrent callers cannot both
win the same state transition.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional, Tuple

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..clock import ensure_utc
from ..database import session_scope
from ..errors import ConfigurationError, RepositoryError
from ..otp.models import OTPRecord, VerificationType
from ..rate_limit.models import RateLimitCounter
from .tables import OTPRateLimitRow, OTPVerificationRow

logger = structlog.get_logger(__name__)


class OTPRepository(ABC):
    """Storage contract used by the verifier and the SQL rate limiter."""

    @abstractmethod
    async def create(self, record: OTPRecord) -> str:
        """Persist a new record and return its id."""

    @abstractmethod
    async def get(self, record_id: str) -> Optional[OTPRecord]:
        """Fetch a record by id."""

    @abstractmethod
    async def find_active(
        self,
        phone: str,
        verification_type: VerificationType,
    ) -> Optional[OTPRecord]:
        """Newest unused record for the pair. Expiry is not filtered here."""

    @abstractmethod
    async def increment_attempts(self, record_id: str) -> Optional[int]:
        """
        Consume one attempt if the record is unused and not exhausted.

        Returns:
            The new attempt count, or None when nothing was updated
        """

    @abstractmethod
    async def mark_used(self, record_id: str, verified_at: datetime) -> bool:
        """
        Flip ``is_used`` from false to true on a live record.

        Returns:
            False when the record is already used, exhausted or expired at
            ``verified_at``
        """

    @abstractmethod
    async def record_issuance(
        self,
        phone: str,
        now: datetime,
        window_seconds: int,
        limit: int,
    ) -> Tuple[bool, RateLimitCounter]:
        """Atomically apply the fixed window rule and return (allowed, counter)."""

    @abstractmethod
    async def peek_counter(self, phone: str) -> Optional[RateLimitCounter]:
        """Current counter for a phone, if any."""


def _to_record(row: OTPVerificationRow) -> OTPRecord:
    return OTPRecord(
        id=row.id,
        phone_number=row.phone_number,
        code_ciphertext=row.code_ciphertext,
        nonce=row.nonce,
        verification_type=VerificationType(row.verification_type),
        expires_at=ensure_utc(row.expires_at),
        created_at=ensure_utc(row.created_at),
        max_attempts=row.max_attempts,
        attempts=row.attempts,
        is_used=row.is_used,
        verified_at=ensure_utc(row.verified_at),
        user_id=row.user_id,
        metadata=dict(row.extra or {}),
    )


def _to_counter(phone: str, window_start: datetime, request_count: int, last_request_at: datetime) -> RateLimitCounter:
    return RateLimitCounter(
        phone_number=phone,
        window_start=ensure_utc(window_start),
        request_count=request_count,
        last_request_at=ensure_utc(last_request_at),
    )


class SQLAlchemyOTPRepository(OTPRepository):
    """
    SQLAlchemy implementation for PostgreSQL (asyncpg) and SQLite (aiosqlite).

    Conditional updates rely on UPDATE ... RETURNING, available on
    PostgreSQL and on SQLite 3.35+.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, record: OTPRecord) -> str:
        row = OTPVerificationRow(
            id=record.id,
            phone_number=record.phone_number,
            code_ciphertext=record.code_ciphertext,
            nonce=record.nonce,
            verification_type=record.verification_type.value,
            user_id=record.user_id,
            extra=record.metadata or None,
            expires_at=record.expires_at,
            attempts=record.attempts,
            max_attempts=record.max_attempts,
            is_used=record.is_used,
            verified_at=record.verified_at,
            created_at=record.created_at,
        )
        try:
            async with session_scope(self._session_factory) as session:
                session.add(row)
        except SQLAlchemyError as e:
            logger.error("Failed to store OTP record", phone=record.phone_number, error=str(e))
            raise RepositoryError("Failed to store OTP record") from e
        return record.id

    async def get(self, record_id: str) -> Optional[OTPRecord]:
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(OTPVerificationRow).where(OTPVerificationRow.id == record_id)
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to load OTP record", otp_id=record_id, error=str(e))
            raise RepositoryError("Failed to load OTP record") from e
        return _to_record(row) if row is not None else None

    async def find_active(
        self,
        phone: str,
        verification_type: VerificationType,
    ) -> Optional[OTPRecord]:
        stmt = (
            select(OTPVerificationRow)
            .where(
                OTPVerificationRow.phone_number == phone,
                OTPVerificationRow.verification_type == verification_type.value,
                OTPVerificationRow.is_used.is_(False),
            )
            .order_by(OTPVerificationRow.created_at.desc(), OTPVerificationRow.seq.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to look up OTP record", phone=phone, error=str(e))
            raise RepositoryError("Failed to look up OTP record") from e
        return _to_record(row) if row is not None else None

    async def increment_attempts(self, record_id: str) -> Optional[int]:
        stmt = (
            update(OTPVerificationRow)
            .where(
                OTPVerificationRow.id == record_id,
                OTPVerificationRow.is_used.is_(False),
                OTPVerificationRow.attempts < OTPVerificationRow.max_attempts,
            )
            .values(attempts=OTPVerificationRow.attempts + 1)
            .returning(OTPVerificationRow.attempts)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session_scope(self._session_factory) as session:
                attempts = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to record attempt", otp_id=record_id, error=str(e))
            raise RepositoryError("Failed to record attempt") from e
        return attempts

    async def mark_used(self, record_id: str, verified_at: datetime) -> bool:
        stmt = (
            update(OTPVerificationRow)
            .where(
                OTPVerificationRow.id == record_id,
                OTPVerificationRow.is_used.is_(False),
                OTPVerificationRow.attempts < OTPVerificationRow.max_attempts,
                OTPVerificationRow.expires_at >= verified_at,
            )
            .values(is_used=True, verified_at=verified_at)
            .returning(OTPVerificationRow.id)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session_scope(self._session_factory) as session:
                updated = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to mark OTP used", otp_id=record_id, error=str(e))
            raise RepositoryError("Failed to mark OTP used") from e
        return updated is not None

    @staticmethod
    def _insert_for(session: AsyncSession):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise ConfigurationError(f"Unsupported database dialect: {dialect}")

    async def record_issuance(
        self,
        phone: str,
        now: datetime,
        window_seconds: int,
        limit: int,
    ) -> Tuple[bool, RateLimitCounter]:
        table = OTPRateLimitRow
        window_floor = now - timedelta(seconds=window_seconds)
        columns = (table.window_start, table.request_count, table.last_request_at)

        try:
            async with session_scope(self._session_factory) as session:
                insert = self._insert_for(session)
                await session.execute(
                    insert(table)
                    .values(
                        phone_number=phone,
                        window_start=now,
                        request_count=0,
                        last_request_at=now,
                    )
                    .on_conflict_do_nothing(index_elements=[table.phone_number])
                )

                # Window elapsed: start a new one with this request
                row = (
                    await session.execute(
                        update(table)
                        .where(table.phone_number == phone, table.window_start <= window_floor)
                        .values(window_start=now, request_count=1, last_request_at=now)
                        .returning(*columns)
                        .execution_options(synchronize_session=False)
                    )
                ).first()
                if row is not None:
                    return True, _to_counter(phone, *row)

                row = (
                    await session.execute(
                        update(table)
                        .where(
                            table.phone_number == phone,
                            table.window_start > window_floor,
                            table.request_count < limit,
                        )
                        .values(
                            request_count=table.request_count + 1,
                            last_request_at=now,
                        )
                        .returning(*columns)
                        .execution_options(synchronize_session=False)
                    )
                ).first()
                if row is not None:
                    return True, _to_counter(phone, *row)

                row = (
                    await session.execute(select(*columns).where(table.phone_number == phone))
                ).one()
                return False, _to_counter(phone, *row)
        except SQLAlchemyError as e:
            logger.error("Failed to record issuance", phone=phone, error=str(e))
            raise RepositoryError("Failed to record issuance") from e

    async def peek_counter(self, phone: str) -> Optional[RateLimitCounter]:
        try:
            async with self._session_factory() as session:
                row = await session.get(OTPRateLimitRow, phone)
        except SQLAlchemyError as e:
            logger.error("Failed to read issuance counter", phone=phone, error=str(e))
            raise RepositoryError("Failed to read issuance counter") from e
        if row is None:
            return None
        return _to_counter(phone, row.window_start, row.request_count, row.last_request_at)
