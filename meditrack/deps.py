from fastapi import Depends, Request

from meditrack.security import get_current_identity
from meditrack.services.auth_service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """The AuthService constructed by create_app for this application."""
    return request.app.state.auth_service


# Common dependencies used across routers
CurrentAuthService = Depends(get_auth_service)
CurrentIdentity = Depends(get_current_identity)
