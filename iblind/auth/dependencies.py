from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .firebase_auth import firebase_auth
from ..models.user import Actor, UserRole
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """
    Verify Firebase authentication token and return the decoded claims.
    Raises 401 if token is invalid.
    """
    try:
        token = credentials.credentials
        user_data = await firebase_auth.verify_token(token)

        if not user_data:
            logger.warning("[Auth] Token verification failed - invalid token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        logger.info(f"[Auth] ✅ Authenticated user: {user_data.get('email')} with role: {user_data.get('role')}")

        return user_data
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[Auth] ❌ Authentication error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Authentication failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_current_actor(current_user: dict = Depends(get_current_user)) -> Actor:
    """The authenticated user as an Actor; every request must carry a tenant claim."""
    if not current_user.get("tenant_id"):
        logger.warning(f"[Auth] User {current_user.get('uid')} has no tenant_id claim")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not linked to a tenant",
        )
    return Actor.from_claims(current_user)

async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    logger.info(f"[Auth] Admin check: user role is '{actor.role}'")

    if actor.role != UserRole.ADMIN:
        logger.warning(f"[Auth] Admin access denied: user role '{actor.role}' is not admin")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Admin access required. Current role: {actor.role}"
        )
    return actor
