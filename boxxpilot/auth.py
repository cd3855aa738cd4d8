import hashlib
import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the calling user from their API bearer token"""

    if not credentials or not credentials.credentials:
        logger.error("❌ No credentials provided")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    user = db.query(User).filter(User.api_token == token).first()
    if not user:
        logger.warning(f"⚠️ Unknown API token (length {len(token)})")
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    logger.debug(f"✅ User authenticated: {user.email} ({user.role})")
    return user


def require_roles(*roles: str):
    """Dependency factory restricting an endpoint to the given roles"""

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(f"⚠️ User {user.id} with role {user.role} denied (needs {roles})")
            raise HTTPException(status_code=403, detail="Insufficient permissions for this action")
        return user

    return checker


def session_key_for(token: str) -> str:
    """Opaque session key derived from an API token; the token itself is never stored"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:32]


def get_session_key(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Key of the caller's session; timer registries are scoped to it"""
    return session_key_for(credentials.credentials)
