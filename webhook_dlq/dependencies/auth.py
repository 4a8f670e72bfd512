"""
Authentication dependencies for the admin API.

Admin endpoints require `Authorization: Bearer <ADMIN_API_KEY>`.
"""
import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from webhook_dlq.config import settings


# Security scheme
security = HTTPBearer(auto_error=False)


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(security)
) -> str:
    """
    Dependency that requires the admin API key.
    
    Raises 401 without credentials, 403 for a wrong key or when no key is
    configured.
    
    Usage:
        @router.get("/admin")
        async def admin_route(_: str = Depends(require_admin)):
            ...
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    expected = settings.ADMIN_API_KEY
    if not expected or not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    
    return credentials.credentials
