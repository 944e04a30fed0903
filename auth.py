import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from config import Settings, get_settings
from errors import Forbidden, InvalidCredential, Unauthenticated
from models import Role

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# Missing or malformed headers are reported by get_current_user, not by HTTPBearer.
security = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hash: str) -> bool:
    return pwd_context.verify(password, hash)


def create_access_token(user_id: int, role: Role, settings: Settings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"id": user_id, "role": Role(role).value, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, settings: Settings) -> AuthenticatedUser:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.warning("Rejected token: %s", exc)
        raise InvalidCredential() from exc

    user_id = payload.get("id")
    role = payload.get("role")
    if not user_id or not role:
        raise InvalidCredential("Invalid token payload")

    try:
        return AuthenticatedUser(id=int(user_id), role=Role(role))
    except (TypeError, ValueError) as exc:
        raise InvalidCredential("Invalid token payload") from exc


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> AuthenticatedUser:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return decode_token(credentials.credentials, settings)


def require_admin(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    if not user.is_admin:
        raise Forbidden("Forbidden: Admins only")
    return user


def ensure_self_or_admin(user: AuthenticatedUser, owner_id: int, message: str = "Forbidden") -> None:
    if user.is_admin or user.id == owner_id:
        return
    raise Forbidden(message)
