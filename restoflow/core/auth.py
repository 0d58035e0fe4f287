"""
JWT authentication and identity resolution

Tokens are issued by the external authentication service. This module only
verifies them and turns their claims into an Identity.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from jose import JWTError, jwt
from typing import Dict, Optional, Protocol
import structlog

from restoflow.core.config import get_settings
from restoflow.core.permissions import CUSTOMER_ROLES, STAFF_ROLES, Role

logger = structlog.get_logger(__name__)


class IdentityType(str, Enum):
    USER = "user"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, derived only from a verified credential"""
    type: IdentityType
    id: int
    role: str
    restaurant_id: Optional[int] = None

    @property
    def is_customer(self) -> bool:
        return self.type == IdentityType.CUSTOMER

    @property
    def is_staff(self) -> bool:
        return self.type == IdentityType.USER

    @property
    def is_platform_admin(self) -> bool:
        return self.is_staff and self.role == Role.PLATFORM_ADMIN.value


class AuthenticationFailed(Exception):
    """Bearer credential missing, invalid or expired"""


class IdentityResolver(Protocol):
    def resolve_token(self, bearer: Optional[str]) -> Identity:
        ...


def create_access_token(
    subject_id: int,
    identity_type: IdentityType,
    role: str,
    restaurant_id: Optional[int] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token with identity claims"""
    settings = get_settings()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(subject_id),
        "typ": identity_type.value,
        "role": role,
        "restaurant_id": restaurant_id,
        "exp": expire,
        "iat": datetime.utcnow(),
    }

    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict]:
    """Decode and validate JWT token"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


class JWTIdentityResolver:
    """Resolves a bearer credential into a staff or customer Identity"""

    def resolve_token(self, bearer: Optional[str]) -> Identity:
        if not bearer:
            raise AuthenticationFailed("Missing token")

        if bearer.lower().startswith("bearer "):
            bearer = bearer[7:]

        payload = decode_access_token(bearer)
        if payload is None:
            raise AuthenticationFailed("Invalid Bearer Token")

        restaurant_id = payload.get("restaurant_id")
        try:
            identity_type = IdentityType(payload.get("typ"))
            subject_id = int(payload["sub"])
            if restaurant_id is not None:
                restaurant_id = int(restaurant_id)
        except (KeyError, TypeError, ValueError):
            raise AuthenticationFailed("Malformed token claims")

        role = payload.get("role")
        allowed = STAFF_ROLES if identity_type == IdentityType.USER else CUSTOMER_ROLES
        if role not in {r.value for r in allowed}:
            raise AuthenticationFailed("Unauthorized role")

        if (
            identity_type == IdentityType.USER
            and role != Role.PLATFORM_ADMIN.value
            and restaurant_id is None
        ):
            raise AuthenticationFailed("Staff token without restaurant")

        return Identity(
            type=identity_type,
            id=subject_id,
            role=role,
            restaurant_id=restaurant_id,
        )


identity_resolver = JWTIdentityResolver()
