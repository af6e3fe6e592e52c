from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from meditrack.config import Settings
from meditrack.constants import PUBLIC_STAFF_FIELDS
from meditrack.exceptions import TokenExpired, TokenInvalid, Unauthorized
from meditrack.utils.logger import get_logger
from meditrack.validators import PASSWORD_MAX_BYTES, exceeds_bcrypt_limit

logger = get_logger("security")

# ------------------------ Password hashing helpers ------------------------


class PasswordHasher:
    """bcrypt via passlib. Digests are self-describing ($2b$<cost>$<salt+hash>).

    bcrypt only reads the first 72 bytes of its input, so longer passwords are
    refused by ``hash`` and never match in ``verify``.
    """

    def __init__(self, rounds: int = 10):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        """Salted one-way hash; a fresh salt is drawn on every call.

        Raises ValueError for input bcrypt cannot represent exactly
        (over 72 bytes, or containing NUL).
        """
        if exceeds_bcrypt_limit(password):
            raise ValueError(f"Password exceeds {PASSWORD_MAX_BYTES} bytes")
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str | None) -> bool:
        """Constant-time check; False for empty or over-long input or an unrecognised digest."""
        if not plain_password or not hashed_password:
            return False
        if exceeds_bcrypt_limit(plain_password):
            return False
        try:
            return self._context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            logger.warning("Password could not be checked against the stored digest")
            return False

    # bcrypt is CPU-bound; keep it off the event loop

    async def hash_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash, password)

    async def verify_async(self, plain_password: str, hashed_password: str | None) -> bool:
        return await run_in_threadpool(self.verify, plain_password, hashed_password)


# ------------------------ JWT helpers ------------------------

_SCALAR_TYPES = (str, int, float, bool, type(None))
_SECRET_CLAIMS = frozenset({"password", "password_hash"})
_REGISTERED_CLAIMS = frozenset({"exp", "iat"})


class TokenService:
    """Issues and verifies signed, time-bounded session tokens (HS256 JWT)."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        default_ttl: timedelta = timedelta(hours=24),
        max_ttl: Optional[timedelta] = None,
    ):
        self._secret = secret
        self._algorithm = algorithm
        self.default_ttl = default_ttl
        self.max_ttl = max_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            default_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            max_ttl=timedelta(minutes=settings.ACCESS_TOKEN_MAX_MINUTES),
        )

    def issue(self, claims: Mapping[str, Any], ttl: Optional[timedelta] = None) -> str:
        """Create a signed token carrying ``claims`` plus iat/exp."""
        for key, value in claims.items():
            if key in _SECRET_CLAIMS:
                raise ValueError(f"Claim '{key}' must not be placed in a token")
            if key in _REGISTERED_CLAIMS:
                raise ValueError(f"Claim '{key}' is set by the issuer")
            if not isinstance(value, _SCALAR_TYPES):
                raise ValueError(f"Claim '{key}' must be a scalar value")

        ttl = self.default_ttl if ttl is None else ttl
        if self.max_ttl is not None and ttl > self.max_ttl:
            ttl = self.max_ttl
        now = datetime.now(timezone.utc)
        to_encode = dict(claims)
        to_encode.update({"iat": now, "exp": now + ttl})
        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """Return the issued claims, or raise TokenExpired / TokenInvalid."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpired() from e
        except JWTError as e:
            raise TokenInvalid() from e
        if "exp" not in payload:
            raise TokenInvalid()
        return {k: v for k, v in payload.items() if k not in _REGISTERED_CLAIMS}

    @staticmethod
    def claims_for(staff_row: Mapping[str, Any]) -> Dict[str, Any]:
        """Frozen identity snapshot placed in the token at login time."""
        claims = {field: staff_row[field] for field in PUBLIC_STAFF_FIELDS}
        role = claims["role"]
        claims["role"] = getattr(role, "value", role)
        return claims


# ------------------------ Bearer identity ------------------------

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, decoded from a session token."""

    id: Any
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Identity":
        try:
            return cls(
                id=claims["id"],
                email=claims["email"],
                role=claims["role"],
                first_name=claims.get("first_name"),
                last_name=claims.get("last_name"),
            )
        except KeyError as e:
            raise TokenInvalid() from e


async def get_current_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    """FastAPI dependency: resolve the bearer token into an Identity.
    Raises 401 (Unauthorized / TokenExpired / TokenInvalid) otherwise.
    """
    if credentials is None:
        raise Unauthorized("Not authenticated")
    tokens: TokenService = request.app.state.tokens
    return Identity.from_claims(tokens.verify(credentials.credentials))
