from enum import Enum

class Role(str, Enum):
    """Staff roles carried in the token; no authorization is derived from them here."""
    ADMIN = "Admin"
    DOCTOR = "Doctor"
    NURSE = "Nurse"
    RECEPTIONIST = "Receptionist"


# Columns that may leave the store in an API-facing payload
PUBLIC_STAFF_FIELDS = ("id", "email", "first_name", "last_name", "role")
PROFILE_STAFF_FIELDS = PUBLIC_STAFF_FIELDS + ("is_active", "created_at", "updated_at")
