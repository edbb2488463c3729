"""
Identity Resolution
===================

Verifies the bearer token issued by the identity service and turns its
claims into an Actor. Token issuance and password handling live elsewhere.

Expected claims:
    sub     user id (UUID)
    role    USER | AGENT | ADMIN | SUPER_ADMIN
    org_id  organization id (UUID), absent/null for SUPER_ADMIN
"""

from typing import Optional
from uuid import UUID

import jwt
from fastapi import Header

from src.access.domain import Actor
from src.config import Role, settings
from src.core import AuthenticationException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def actor_from_token(token: str) -> Actor:
    """
    Decode and verify a bearer token.

    Raises:
        AuthenticationException: If the token is invalid, expired or malformed
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationException("Invalid or expired token")
    except jwt.InvalidTokenError as e:
        logger.info("Rejected bearer token", extra={"reason": str(e)})
        raise AuthenticationException("Invalid or expired token")

    try:
        user_id = UUID(str(claims["sub"]))
        role = Role(claims["role"])
        org_claim = claims.get("org_id")
        organization_id = UUID(str(org_claim)) if org_claim else None
    except (KeyError, ValueError):
        raise AuthenticationException("Invalid token claims")

    if organization_id is None and role != Role.SUPER_ADMIN:
        raise AuthenticationException("Invalid token claims")

    return Actor(id=user_id, role=role, organization_id=organization_id)


async def get_current_actor(
    authorization: Optional[str] = Header(default=None)
) -> Actor:
    """FastAPI dependency: the authenticated caller of this request."""
    if not authorization:
        raise AuthenticationException("No token provided")

    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token:
        raise AuthenticationException("Invalid authorization format")

    return actor_from_token(token.strip())
