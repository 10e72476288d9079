"""
Authentication dependencies for API routes
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.services.auth import verify_token, caller_from_payload
from app.services.moderation import Caller, ANONYMOUS

# Anonymous callers may submit and vote, so a missing header is not an error here
security = HTTPBearer(auto_error=False)


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Caller:
    """
    Dependency resolving who is making the request

    Args:
        credentials: HTTP Authorization credentials, if any were sent

    Returns:
        The authenticated Caller, or the anonymous caller without a token

    Raises:
        HTTPException: If a token was sent but is invalid
    """
    if not credentials:
        return ANONYMOUS

    payload = verify_token(credentials.credentials)
    return caller_from_payload(payload)

