from typing import Any

from meditrack.config import Settings
from meditrack.db.facade import Database, QueryRunner
from meditrack.db.staff_store import StaffStore
from meditrack.exceptions import ConflictError, InvalidCredentials, NotFound, Unauthorized, ValidationError
from meditrack.schemas import LoginOut, MessageOut, StaffOut, StaffProfileOut
from meditrack.security import PasswordHasher, TokenService
from meditrack.utils.logger import get_logger
from meditrack.validators import email_issues, password_issues, role_from_label

logger = get_logger("services.auth")

PASSWORD_RULES = "at least 8 characters with uppercase, number, and special character"


def _require_valid_email(email: str) -> None:
    issues = email_issues(email)
    if issues:
        raise ValidationError("Invalid email format", reasons=issues)


class AuthService:
    """Login, registration, profile and password operations for staff.

    Every operation is a single transition; no session state is kept server-side.
    """

    def __init__(self, db: Database, hasher: PasswordHasher, tokens: TokenService, settings: Settings):
        self._db = db
        self._hasher = hasher
        self._tokens = tokens
        self._settings = settings
        self._staff = StaffStore(db)

    # ---------------- Login ----------------

    async def login(self, *, email: str, password: str) -> LoginOut:
        _require_valid_email(email)

        staff = await self._staff.find_active_by_email(email)
        # Same message for unknown account and wrong password
        if not staff:
            logger.info("Login rejected: no active staff for email")
            raise InvalidCredentials()
        if not await self._hasher.verify_async(password, staff["password_hash"]):
            logger.info(f"Login rejected: password mismatch for staff {staff['id']}")
            raise InvalidCredentials()

        token = self._tokens.issue(TokenService.claims_for(staff))
        logger.info(f"Login successful: staff {staff['id']}")
        return LoginOut(token=token, staff=StaffOut.model_validate(staff))

    # ---------------- Register ----------------

    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str,
    ) -> StaffOut:
        _require_valid_email(email)
        issues = password_issues(password)
        if issues:
            raise ValidationError(f"Password must be {PASSWORD_RULES}", reasons=issues)
        staff_role = role_from_label(role)
        if staff_role is None:
            raise ValidationError("Role must be one of Admin, Doctor, Nurse, Receptionist")

        password_hash = await self._hasher.hash_async(password)

        async def create(tx: QueryRunner) -> Any:
            store = StaffStore(tx)
            if await store.email_exists(email):
                raise ConflictError("Email already registered")
            return await store.insert(
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                role=staff_role,
            )

        try:
            staff_id = await self._db.transaction(create)
        except ConflictError as e:
            # a concurrent registration can still lose at the unique constraint
            logger.info(f"Registration conflict (constraint={e.constraint})")
            raise ConflictError("Email already registered", constraint=e.constraint) from e

        return StaffOut(
            id=staff_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=staff_role,
        )

    # ---------------- Profile ----------------

    async def get_profile(self, staff_id: Any) -> StaffProfileOut:
        staff = await self._staff.find_by_id(staff_id)
        if not staff:
            raise NotFound("Staff not found")
        return StaffProfileOut.model_validate(staff)

    # ---------------- Password ----------------

    async def update_password(self, staff_id: Any, *, current_password: str, new_password: str) -> MessageOut:
        """Verify the current password, then swap in the new hash.

        Hashing runs with no connection checked out. The write only lands if the
        stored hash is still the one that was verified; a concurrent change in
        between is reported as an incorrect current password.
        """
        current_hash = await self._staff.find_password_hash(staff_id)
        if current_hash is None:
            raise NotFound("Staff not found")
        if not await self._hasher.verify_async(current_password, current_hash):
            raise Unauthorized("Current password is incorrect")
        issues = password_issues(new_password)
        if issues:
            raise ValidationError(f"New password must be {PASSWORD_RULES}", reasons=issues)
        new_hash = await self._hasher.hash_async(new_password)

        if not await self._staff.update_password(staff_id, new_hash, expected_hash=current_hash):
            if await self._staff.find_password_hash(staff_id) is None:
                raise NotFound("Staff not found")
            logger.info(f"Password update for staff {staff_id} lost to a concurrent change")
            raise Unauthorized("Current password is incorrect")
        logger.info(f"Password updated for staff {staff_id}")
        return MessageOut(message="Password updated successfully")

    # ---------------- Logout ----------------

    async def logout(self, staff_id: Any) -> MessageOut:
        # Tokens are stateless; there is nothing to revoke server-side
        logger.info(f"Logout acknowledged for staff {staff_id}")
        return MessageOut(message="Logged out successfully")
