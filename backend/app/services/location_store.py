"""
Storage adapter for the location risk engine.

Every write returns a ``WriteResult`` instead of raising, so a failed audit
write is a visible outcome the caller may choose to ignore.

Merge-on-conflict contract:

* ``user_session_locations`` is keyed by ``(user_id, session_id)``. An upsert
  replaces ``ip_address``, ``country_code``, ``is_vpn``, ``risk_score`` and
  ``last_activity`` wholesale. Concurrent upserts for the same key resolve to
  whichever write the database commits last; no field-level merging happens.
* ``user_devices`` is keyed by ``(user_id, device_fingerprint)``. An upsert
  refreshes ``last_used`` and only ever raises ``is_trusted`` (a trusted
  device is never silently demoted).
* ``location_verification_events`` and ``blocked_access_attempts`` are
  insert-only.

Works with both ``AsyncSession`` (production) and a plain ``Session``.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional
import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AuditWriteFailure
from app.models import BlockedAttempt, DeviceRecord, SessionLocation, User, VerificationEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteResult:
    ok: bool
    error: Optional[AuditWriteFailure] = None

    @classmethod
    def success(cls) -> "WriteResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, message: str) -> "WriteResult":
        return cls(ok=False, error=AuditWriteFailure(message))


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upsert not supported for dialect {dialect_name}")
    return insert


class LocationStore:
    def __init__(self, db):
        self.db = db

    @property
    def configured(self) -> bool:
        return self.db is not None

    # ----------------------
    # Session plumbing
    # ----------------------

    async def _execute(self, stmt):
        if isinstance(self.db, AsyncSession):
            return await self.db.execute(stmt)
        return self.db.execute(stmt)

    async def _commit(self) -> None:
        if isinstance(self.db, AsyncSession):
            await self.db.commit()
        else:
            self.db.commit()

    async def _rollback(self) -> None:
        try:
            if isinstance(self.db, AsyncSession):
                await self.db.rollback()
            else:
                self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"[LocationStore] Rollback failed: {e}")

    async def _refresh(self, obj) -> None:
        if isinstance(self.db, AsyncSession):
            await self.db.refresh(obj)
        else:
            self.db.refresh(obj)

    def _dialect(self) -> str:
        return self.db.get_bind().dialect.name

    async def _write(self, what: str, stmt=None, obj=None) -> WriteResult:
        if not self.configured:
            return WriteResult.failure(f"{what}: storage not configured")
        try:
            if obj is not None:
                self.db.add(obj)
            if stmt is not None:
                await self._execute(stmt)
            await self._commit()
        except (SQLAlchemyError, OSError) as e:
            await self._rollback()
            return WriteResult.failure(f"{what}: {e}")
        return WriteResult.success()

    # ----------------------
    # Append-only audit collections
    # ----------------------

    async def append_verification_event(self, event: VerificationEvent) -> WriteResult:
        return await self._write("verification_event", obj=event)

    async def append_blocked_attempt(self, attempt: BlockedAttempt) -> WriteResult:
        return await self._write("blocked_attempt", obj=attempt)

    # ----------------------
    # Upserts
    # ----------------------

    async def upsert_session_location(
        self,
        user_id: int,
        session_id: str,
        ip_address: Optional[str],
        country_code: Optional[str],
        is_vpn: bool,
        risk_score: int,
        last_activity: Optional[datetime] = None,
    ) -> WriteResult:
        if not self.configured:
            return WriteResult.failure("session_location: storage not configured")
        values = {
            "user_id": user_id,
            "session_id": session_id,
            "ip_address": ip_address,
            "country_code": country_code,
            "is_vpn": is_vpn,
            "risk_score": risk_score,
            "last_activity": last_activity or datetime.now(timezone.utc),
        }
        try:
            insert = _insert_for(self._dialect())
        except NotImplementedError as e:
            return WriteResult.failure(f"session_location: {e}")
        stmt = insert(SessionLocation).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "session_id"],
            set_={k: getattr(stmt.excluded, k) for k in values if k not in ("user_id", "session_id")},
        )
        return await self._write("session_location", stmt=stmt)

    async def upsert_device(self, user_id: int, fingerprint: str, is_trusted: bool = False) -> WriteResult:
        if not self.configured:
            return WriteResult.failure("device: storage not configured")
        try:
            insert = _insert_for(self._dialect())
        except NotImplementedError as e:
            return WriteResult.failure(f"device: {e}")
        now = datetime.now(timezone.utc)
        stmt = insert(DeviceRecord).values(
            user_id=user_id, device_fingerprint=fingerprint, last_used=now, is_trusted=is_trusted
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "device_fingerprint"],
            set_={
                "last_used": stmt.excluded.last_used,
                "is_trusted": or_(DeviceRecord.is_trusted, stmt.excluded.is_trusted),
            },
        )
        return await self._write("device", stmt=stmt)

    # ----------------------
    # Reads
    # ----------------------

    async def get_session_location(self, user_id: int, session_id: str) -> Optional[SessionLocation]:
        if not self.configured:
            return None
        result = await self._execute(
            select(SessionLocation).where(
                SessionLocation.user_id == user_id, SessionLocation.session_id == session_id
            )
        )
        return result.scalar_one_or_none()

    async def count_session_locations(self, user_id: int, session_id: str) -> int:
        result = await self._execute(
            select(func.count(SessionLocation.id)).where(
                SessionLocation.user_id == user_id, SessionLocation.session_id == session_id
            )
        )
        return result.scalar() or 0

    async def has_devices(self, user_id: int) -> bool:
        if not self.configured:
            return False
        result = await self._execute(select(func.count(DeviceRecord.id)).where(DeviceRecord.user_id == user_id))
        return (result.scalar() or 0) > 0

    async def list_verification_events(
        self, user_id: Optional[int] = None, event_type: Optional[str] = None, limit: int = 50
    ) -> List[VerificationEvent]:
        stmt = select(VerificationEvent)
        if user_id is not None:
            stmt = stmt.where(VerificationEvent.user_id == user_id)
        if event_type is not None:
            stmt = stmt.where(VerificationEvent.event_type == event_type)
        stmt = stmt.order_by(VerificationEvent.id.desc()).limit(limit)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def list_blocked_attempts(self, user_id: Optional[int] = None, limit: int = 50) -> List[BlockedAttempt]:
        stmt = select(BlockedAttempt)
        if user_id is not None:
            stmt = stmt.where(BlockedAttempt.user_id == user_id)
        stmt = stmt.order_by(BlockedAttempt.id.desc()).limit(limit)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    # ----------------------
    # Maintenance
    # ----------------------

    async def purge_session_locations(self, older_than: timedelta) -> int:
        """Delete session snapshots idle for longer than ``older_than``."""
        cutoff = datetime.now(timezone.utc) - older_than
        stmt = delete(SessionLocation).where(SessionLocation.last_activity < cutoff)
        result = await self._execute(stmt.execution_options(synchronize_session=False))
        await self._commit()
        return result.rowcount or 0

    # ----------------------
    # Users (registered country lookup for the orchestrators)
    # ----------------------

    async def get_user(self, user_id: Any) -> Optional[User]:
        if not self.configured or user_id is None:
            return None
        result = await self._execute(select(User).where(User.id == int(user_id)))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        if not self.configured:
            return None
        result = await self._execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def create_user(self, user: User) -> User:
        """Insert a user; unlike audit writes, failures propagate to the caller."""
        self.db.add(user)
        try:
            await self._commit()
        except SQLAlchemyError:
            await self._rollback()
            raise
        await self._refresh(user)
        return user
