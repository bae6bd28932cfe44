"""FastAPI dependencies for authentication."""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ensogrow.auth.identity import IdentityVerifier, Principal
from ensogrow.errors import Unauthenticated

bearer_scheme = HTTPBearer(auto_error=False)


def get_identity_verifier(request: Request) -> IdentityVerifier:
    """Verifier created once at startup."""
    return request.app.state.identity_verifier


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Optional[Principal]:
    """
    Get the caller from the bearer token (optional).

    Returns:
        Principal if a valid token was presented, None if no token was sent

    Raises:
        Unauthenticated: If a token was sent but is not valid
    """
    if credentials is None or not credentials.credentials:
        return None
    return await verifier.verify(credentials.credentials)


async def require_principal(
    principal: Optional[Principal] = Depends(get_current_principal),
) -> Principal:
    """
    Require authentication (for API endpoints).

    Raises:
        Unauthenticated: 401 if no principal is attached to the request
    """
    if principal is None:
        raise Unauthenticated()
    return principal
