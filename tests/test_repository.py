"""
Tests for the SQLAlchemy OTP repository.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

PHONE = "+251911223344"
T0 = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)


def make_record(created_at=T0, verification_type=None, **overrides):
    from otp_core.otp import OTPRecord, VerificationType

    values = dict(
        id=str(uuid.uuid4()),
        phone_number=PHONE,
        code_ciphertext=b"\x00" * 20,
        nonce=b"\x01" * 12,
        verification_type=verification_type or VerificationType.REGISTRATION,
        expires_at=created_at + timedelta(minutes=5),
        created_at=created_at,
        max_attempts=3,
    )
    values.update(overrides)
    return OTPRecord(**values)


class TestOTPRecords:
    """Tests for storing and finding OTP records."""

    async def test_create_and_get(self, repository):
        """Should round-trip every field with UTC timestamps."""
        record = make_record(user_id="user-1", metadata={"source": "signup"})

        otp_id = await repository.create(record)
        stored = await repository.get(otp_id)

        assert otp_id == record.id
        assert stored == record
        assert stored.expires_at.tzinfo is not None

    async def test_get_missing(self, repository):
        """Should return None for an unknown id."""
        assert await repository.get(str(uuid.uuid4())) is None

    async def test_find_active_returns_newest(self, repository):
        """Should pick the most recently created unused record."""
        older = make_record(created_at=T0)
        newer = make_record(created_at=T0 + timedelta(seconds=30))
        await repository.create(older)
        await repository.create(newer)

        active = await repository.find_active(PHONE, newer.verification_type)

        assert active.id == newer.id

    async def test_find_active_same_instant(self, repository):
        """Should prefer the later insert when created_at ties."""
        first = make_record(created_at=T0)
        second = make_record(created_at=T0)
        await repository.create(first)
        await repository.create(second)

        for _ in range(3):
            active = await repository.find_active(PHONE, second.verification_type)
            assert active.id == second.id

    async def test_find_active_skips_used(self, repository):
        """Should ignore used records."""
        older = make_record(created_at=T0)
        newer = make_record(created_at=T0 + timedelta(seconds=30))
        await repository.create(older)
        await repository.create(newer)
        await repository.mark_used(newer.id, T0 + timedelta(minutes=1))

        active = await repository.find_active(PHONE, newer.verification_type)

        assert active.id == older.id

    async def test_find_active_scoped_by_type(self, repository):
        """Should not match a record issued for another purpose."""
        from otp_core.otp import VerificationType

        await repository.create(make_record(verification_type=VerificationType.PASSWORD_RESET))

        assert await repository.find_active(PHONE, VerificationType.REGISTRATION) is None
        assert await repository.find_active(PHONE, VerificationType.PASSWORD_RESET) is not None

    async def test_find_active_includes_expired(self, repository):
        """Should leave expiry decisions to the caller."""
        record = make_record(created_at=T0 - timedelta(days=1))
        await repository.create(record)

        active = await repository.find_active(PHONE, record.verification_type)

        assert active.id == record.id
        assert active.is_expired(T0)


class TestAtomicTransitions:
    """Tests for the conditional updates."""

    async def test_increment_attempts(self, repository):
        """Should count attempts up to the ceiling, then refuse."""
        record = make_record()
        await repository.create(record)

        assert await repository.increment_attempts(record.id) == 1
        assert await repository.increment_attempts(record.id) == 2
        assert await repository.increment_attempts(record.id) == 3
        assert await repository.increment_attempts(record.id) is None

        stored = await repository.get(record.id)
        assert stored.attempts == 3
        assert stored.is_exhausted

    async def test_increment_attempts_on_used_record(self, repository):
        """Should not count attempts against a used record."""
        record = make_record()
        await repository.create(record)
        await repository.mark_used(record.id, T0)

        assert await repository.increment_attempts(record.id) is None
        assert (await repository.get(record.id)).attempts == 0

    async def test_mark_used_once(self, repository):
        """Should succeed for the first caller only."""
        record = make_record()
        await repository.create(record)
        verified_at = T0 + timedelta(minutes=1)

        assert await repository.mark_used(record.id, verified_at) is True
        assert await repository.mark_used(record.id, verified_at + timedelta(seconds=5)) is False

        stored = await repository.get(record.id)
        assert stored.is_used is True
        assert stored.verified_at == verified_at

    async def test_mark_used_refuses_exhausted(self, repository):
        """Should not mark a record used once its attempts are spent."""
        record = make_record()
        await repository.create(record)
        for _ in range(3):
            await repository.increment_attempts(record.id)

        assert await repository.mark_used(record.id, T0 + timedelta(minutes=1)) is False
        assert (await repository.get(record.id)).is_used is False

    async def test_mark_used_refuses_expired(self, repository):
        """Should accept verification up to expires_at and not after."""
        record = make_record()
        await repository.create(record)

        assert await repository.mark_used(record.id, record.expires_at + timedelta(seconds=1)) is False
        assert await repository.mark_used(record.id, record.expires_at) is True

    async def test_concurrent_mark_used(self, repository):
        """Should let exactly one concurrent caller win."""
        import asyncio

        record = make_record()
        await repository.create(record)

        results = await asyncio.gather(*[repository.mark_used(record.id, T0) for _ in range(5)])

        assert results.count(True) == 1

    async def test_concurrent_increments_are_not_lost(self, repository):
        """Should count every concurrent attempt up to the ceiling."""
        import asyncio

        record = make_record(max_attempts=10)
        await repository.create(record)

        results = await asyncio.gather(*[repository.increment_attempts(record.id) for _ in range(6)])

        assert sorted(results) == [1, 2, 3, 4, 5, 6]


class TestIssuanceCounters:
    """Tests for record_issuance and peek_counter."""

    async def test_first_issuance_creates_counter(self, repository):
        """Should create the counter with a count of one."""
        assert await repository.peek_counter(PHONE) is None

        allowed, counter = await repository.record_issuance(PHONE, T0, 3600, 5)

        assert allowed is True
        assert counter.request_count == 1
        assert counter.window_start == T0

    async def test_limit_reached(self, repository):
        """Should report the stored window once the limit is reached."""
        for _ in range(2):
            await repository.record_issuance(PHONE, T0, 3600, 2)

        allowed, counter = await repository.record_issuance(PHONE, T0 + timedelta(minutes=1), 3600, 2)

        assert allowed is False
        assert counter.request_count == 2
        assert counter.window_start == T0

    async def test_window_reset(self, repository):
        """Should reset the counter after the window."""
        for _ in range(2):
            await repository.record_issuance(PHONE, T0, 3600, 2)

        later = T0 + timedelta(hours=2)
        allowed, counter = await repository.record_issuance(PHONE, later, 3600, 2)

        assert allowed is True
        assert counter.request_count == 1
        assert counter.window_start == later


class TestRepositoryErrors:
    """Tests for error wrapping."""

    async def test_wraps_database_errors(self, repository, engine):
        """Should raise RepositoryError when the database fails."""
        from otp_core.errors import RepositoryError
        from otp_core.database import Base

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        with pytest.raises(RepositoryError):
            await repository.create(make_record())
        with pytest.raises(RepositoryError):
            await repository.find_active(PHONE, make_record().verification_type)
