"""Authentication and authorization for the EduConnect API.

Stateless JWT session tokens carrying ``{userId, email, userType, name}``
with a fixed expiry, bcrypt password hashing, and the FastAPI dependencies
that resolve the caller on protected routes.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import bcrypt
import jwt

from educonnect.core.config import Settings
from educonnect.core.errors import Forbidden, Unauthorized
from educonnect.core.logging import get_logger
from educonnect.domain.user import TokenClaims, UserType

logger = get_logger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72

# Missing credentials are reported by the dependencies, not by HTTPBearer
security_optional = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    pwd_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(pwd_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES],
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


class TokenService:
    """Issues and verifies signed session tokens.

    Args:
        secret_key: HMAC signing secret held by the server
        algorithm: JWT algorithm (HS256 by default)
        expire_minutes: Token lifetime (24 hours by default)

    Example:
        >>> tokens = TokenService("secret", expire_minutes=60)
        >>> token = tokens.issue(claims)
        >>> tokens.verify(token).email
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 1440):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            expire_minutes=settings.access_token_expire_minutes,
        )

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds."""
        return self.expire_minutes * 60

    def issue(self, claims: TokenClaims, expires_delta: Optional[timedelta] = None) -> str:
        """Sign a token for the given identity."""
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.expire_minutes)

        now = datetime.now(timezone.utc)
        expire = now + expires_delta

        payload: Dict[str, Any] = {
            "userId": claims.user_id,
            "email": claims.email,
            "userType": claims.user_type.value,
            "name": claims.name,
            "exp": expire,
            "iat": now,
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

        logger.debug(
            f"Access token issued for {claims.email}",
            extra={"user_id": claims.user_id, "user_type": claims.user_type.value},
        )
        return token

    def verify(self, token: Optional[str]) -> TokenClaims:
        """Decode and validate a token.

        Raises:
            Unauthorized: If no token was supplied
            Forbidden: If the signature is invalid, the token expired, or the
                payload is missing a claim
        """
        if not token:
            raise Unauthorized("Access token required")

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return TokenClaims(
                user_id=payload["userId"],
                email=payload["email"],
                user_type=payload["userType"],
                name=payload["name"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if "iat" in payload else None,
            )

        except jwt.ExpiredSignatureError:
            logger.warning("Expired token attempted")
            raise Forbidden("Invalid or expired token")

        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token attempted: {e}")
            raise Forbidden("Invalid or expired token")

        except (KeyError, ValueError) as e:
            logger.warning(f"Token payload rejected: {e}")
            raise Forbidden("Invalid or expired token")


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """FastAPI dependency resolving the caller of a protected route.

    Raises:
        Unauthorized: No bearer token (401)
        Forbidden: Invalid or expired token (403)

    Example:
        >>> @router.get("/api/profile")
        >>> async def profile(user: TokenClaims = Depends(get_current_user)):
        ...     return {"email": user.email}
    """
    token = credentials.credentials if credentials else None
    claims = tokens.verify(token)
    logger.debug(f"User authenticated: {claims.email}", extra={"user_id": claims.user_id})
    return claims


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[TokenClaims]:
    """FastAPI dependency for routes that also serve guests.

    Returns ``None`` when no token is sent. A token that is present but
    invalid is still rejected with 403.
    """
    if credentials is None:
        logger.debug("No bearer token; treating request as guest")
        return None
    return tokens.verify(credentials.credentials)


def require_role(allowed_roles: List[UserType], message: Optional[str] = None):
    """Dependency factory for role-based access control.

    Example:
        >>> @router.get("/api/students")
        >>> def students(user: TokenClaims = Depends(require_role([UserType.PARENT]))):
        ...     ...
    """
    async def role_checker(user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
        if user.user_type not in allowed_roles:
            logger.warning(
                f"Insufficient permissions for {user.email}",
                extra={"user_id": user.user_id, "user_type": user.user_type.value},
            )
            raise Forbidden(
                message or f"Access denied. Required role: {', '.join(r.value for r in allowed_roles)}"
            )
        return user

    return role_checker
