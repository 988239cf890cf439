"""
FastAPI dependencies: caller identity and chat rate limiting.
"""

import logging
from typing import Optional

from fastapi import Depends, Request

from ..auth import Identity, IdentityProvider, get_identity_provider
from ..errors import AuthenticationError
from ..services.rate_limiter import RateLimiter, get_client_ip, get_rate_limiter

logger = logging.getLogger(__name__)

CHAT_LIMIT = "ai_chat"


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def optional_identity(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Optional[Identity]:
    token = _bearer_token(request)
    if not token:
        return None
    return await provider.get_identity(token)


async def current_identity(
    identity: Optional[Identity] = Depends(optional_identity),
) -> Identity:
    """Require an authenticated organization member."""
    if identity is None:
        raise AuthenticationError()
    return identity


async def limit_chat_requests(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """Per-IP limit on AI chat turns; raises ``RateLimitExceeded``."""
    await limiter.enforce(CHAT_LIMIT, get_client_ip(request))
