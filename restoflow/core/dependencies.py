"""
Authentication dependencies for FastAPI
"""

from fastapi import Depends, HTTPException, status
from typing import Dict, Optional
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import structlog

from restoflow.core.auth import AuthenticationFailed, Identity, identity_resolver
from restoflow.core.permissions import Permission, has_permission
from restoflow.core.websocket_manager import channel

logger = structlog.get_logger(__name__)
security = HTTPBearer(auto_error=False)


async def get_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Identity:
    """Resolve the caller from the bearer token"""
    try:
        identity = identity_resolver.resolve_token(credentials.credentials if credentials else None)
    except AuthenticationFailed as e:
        logger.info(f"Authentication failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"Authenticated {identity.type.value} {identity.id}")
    return identity


def require_permission(required_permission: Permission):
    """Dependency factory to check permissions"""
    async def check_permission(identity: Identity = Depends(get_identity)) -> Identity:
        if not has_permission(required_permission, identity.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {required_permission.value}",
            )
        return identity
    return check_permission


def get_notifier():
    """Realtime channel used by services to broadcast events"""
    return channel


def order_scope(identity: Identity) -> Dict[str, Optional[int]]:
    """Ownership filter for order-level operations"""
    if identity.is_customer:
        return {"customer_id": identity.id}
    if identity.is_platform_admin:
        return {}
    return {"restaurant_id": identity.restaurant_id}
