from slowapi import Limiter
from slowapi.util import get_remote_address

from meditrack.config import get_settings

settings = get_settings()

# Global limiter instance reused across the app
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

# Applied to the credential endpoints (login/register)
AUTH_LIMIT = settings.AUTH_RATE_LIMIT
