from fastapi import APIRouter, Request, status

from meditrack.deps import CurrentAuthService, CurrentIdentity
from meditrack.rate_limit import AUTH_LIMIT, limiter
from meditrack.schemas import (
    LoginIn,
    LoginOut,
    MessageOut,
    RegisterIn,
    StaffOut,
    StaffProfileOut,
    UpdatePasswordIn,
)
from meditrack.security import Identity
from meditrack.services.auth_service import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginOut)
@limiter.limit(AUTH_LIMIT)
async def route_login(request: Request, payload: LoginIn, service: AuthService = CurrentAuthService):
    """Staff login with email + password; returns a bearer token and public profile."""
    return await service.login(email=payload.email, password=payload.password)


@router.post("/register", response_model=StaffOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
async def route_register(request: Request, payload: RegisterIn, service: AuthService = CurrentAuthService):
    """Register a staff member. 409 when the email is already registered."""
    return await service.register(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
    )


@router.get("/profile", response_model=StaffProfileOut)
async def route_profile(identity: Identity = CurrentIdentity, service: AuthService = CurrentAuthService):
    return await service.get_profile(identity.id)


@router.put("/password", response_model=MessageOut)
async def route_update_password(
    payload: UpdatePasswordIn,
    identity: Identity = CurrentIdentity,
    service: AuthService = CurrentAuthService,
):
    return await service.update_password(
        identity.id,
        current_password=payload.currentPassword,
        new_password=payload.newPassword,
    )


@router.post("/logout", response_model=MessageOut)
async def route_logout(identity: Identity = CurrentIdentity, service: AuthService = CurrentAuthService):
    """Acknowledge logout. The client discards its token; nothing is revoked server-side."""
    return await service.logout(identity.id)
