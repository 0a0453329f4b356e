"""
Authentication and authorization gate.

Two identities are involved in every request: the auth provider's identity
(resolved from the bearer token) and the application user row (which holds
role and seller_status). They are joined on email and exposed to handlers as
a single AuthenticatedPrincipal.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from storefront.auth_provider import AuthProvider, AuthProviderError, ProviderIdentity, get_auth_provider
from storefront.database import get_db
from storefront.logger import get_logger
from storefront.models import User
from storefront.responses import AuthenticationError, AuthorizationError

logger = get_logger("auth")


@dataclass
class AuthenticatedPrincipal:
    id: str
    email: str
    username: str
    role: str
    seller_status: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "role": self.role,
            "sellerStatus": self.seller_status,
        }


def get_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_authenticated_user(
    request: Request, provider: AuthProvider
) -> Tuple[Optional[ProviderIdentity], Optional[str]]:
    """Resolve the bearer token. Returns (identity, None) or (None, error)."""
    if not request.headers.get("authorization"):
        return None, "No authorization header"
    token = get_bearer_token(request)
    if token is None:
        return None, "Invalid authorization header"
    try:
        return provider.get_user(token), None
    except AuthProviderError as e:
        return None, e.message


def get_user_data(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def require_auth(
    request: Request,
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
) -> AuthenticatedPrincipal:
    """Dependency: any authenticated user with an application row."""
    identity, error = get_authenticated_user(request, provider)
    if identity is None:
        logger.info("auth: path=%s result=unauthenticated reason=%s", request.url.path, error)
        raise AuthenticationError("Unauthorized", error=error or "Authentication required")

    user = get_user_data(db, identity.email)
    if user is None:
        logger.info("auth: path=%s result=unauthenticated reason=no_user_row", request.url.path)
        raise AuthenticationError("Unauthorized", error="User data not found")

    return AuthenticatedPrincipal(
        id=user.id,
        email=user.email,
        username=user.username,
        role=user.role,
        seller_status=user.seller_status,
    )


def require_role(*roles: str) -> Callable[..., AuthenticatedPrincipal]:
    """Dependency factory: authenticated and holding one of `roles`."""

    def dependency(principal: AuthenticatedPrincipal = Depends(require_auth)) -> AuthenticatedPrincipal:
        if principal.role not in roles:
            raise AuthorizationError(
                "Forbidden",
                error=f"Access denied. Required role: {' or '.join(roles)}, your role: {principal.role}",
            )
        return principal

    return dependency


def ensure_owner(principal: AuthenticatedPrincipal, username: Optional[str], message: str = "Forbidden") -> None:
    """Owner or admin passes; anyone else gets 403."""
    if principal.is_admin:
        return
    if not username or username != principal.username:
        raise AuthorizationError(message)
