"""Credential store: every query the auth core runs against the staff table."""

from typing import Any, Dict, Optional

from sqlalchemy import func, insert, select, update

from meditrack.constants import PROFILE_STAFF_FIELDS, Role
from meditrack.db.facade import QueryRunner
from meditrack.models import staff
from meditrack.utils.logger import get_logger

logger = get_logger("db.staff_store")

_profile_columns = [staff.c[name] for name in PROFILE_STAFF_FIELDS]


class StaffStore:
    """Works over a ``Database`` or an open ``TransactionScope``."""

    def __init__(self, runner: QueryRunner):
        self._db = runner

    async def find_active_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Credential row (includes password_hash) for login; internal use only."""
        stmt = select(staff).where(staff.c.email == email, staff.c.is_active.is_(True))
        return await self._db.query_one(stmt)

    async def find_by_id(self, staff_id: Any) -> Optional[Dict[str, Any]]:
        """Profile columns only; the hash never leaves through this path."""
        stmt = select(*_profile_columns).where(staff.c.id == staff_id)
        return await self._db.query_one(stmt)

    async def find_password_hash(self, staff_id: Any) -> Optional[str]:
        row = await self._db.query_one(
            select(staff.c.password_hash).where(staff.c.id == staff_id)
        )
        return row["password_hash"] if row else None

    async def email_exists(self, email: str) -> bool:
        row = await self._db.query_one(select(staff.c.id).where(staff.c.email == email))
        return row is not None

    async def count_by_email(self, email: str) -> int:
        row = await self._db.query_one(
            select(func.count().label("cnt")).select_from(staff).where(staff.c.email == email)
        )
        return row["cnt"] if row else 0

    async def insert(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        role: Role,
    ) -> Any:
        """Insert an active staff member and return the store-assigned id.

        A duplicate email raises ConflictError from the facade.
        """
        stmt = (
            insert(staff)
            .values(
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                role=role.value,
                is_active=True,
            )
            .returning(staff.c.id)
        )
        result = await self._db.insert(stmt)
        logger.info(f"Staff created: id={result.inserted_id}, role={role.value}")
        return result.inserted_id

    async def update_password(
        self, staff_id: Any, password_hash: str, *, expected_hash: Optional[str] = None
    ) -> bool:
        """Store a new hash; with ``expected_hash`` only if the current one still matches."""
        stmt = update(staff).where(staff.c.id == staff_id)
        if expected_hash is not None:
            stmt = stmt.where(staff.c.password_hash == expected_hash)
        stmt = stmt.values(password_hash=password_hash, updated_at=func.now())
        return await self._db.update(stmt) > 0
