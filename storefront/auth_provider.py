"""
Authentication providers.

The provider owns credentials and bearer tokens; it knows nothing about
roles. Two implementations share one interface:

- LocalAuthProvider: auth_identities table, passlib hashes, PyJWT tokens.
- SupabaseAuthProvider: Supabase GoTrue REST API using the service-role key.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
import jwt
from fastapi import Depends
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.config import get_config
from storefront.database import get_db
from storefront.logger import get_logger
from storefront.models import AuthIdentity

logger = get_logger("auth_provider")

INVALID_CREDENTIALS = "invalid_credentials"
EMAIL_NOT_CONFIRMED = "email_not_confirmed"
ALREADY_REGISTERED = "already_registered"
INVALID_TOKEN = "invalid_token"
PROVIDER_ERROR = "provider_error"

JWT_ALGO = "HS256"
RECOVERY_PURPOSE = "recovery"
RECOVERY_EXPIRE_MINUTES = 60


class AuthProviderError(Exception):
    def __init__(self, message: str, code: str = PROVIDER_ERROR):
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass
class ProviderIdentity:
    """Identity as the auth provider sees it: subject id + email."""
    id: str
    email: str
    email_confirmed: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email}


@dataclass
class AuthSession:
    identity: ProviderIdentity
    access_token: str
    expires_in: int
    token_type: str = "bearer"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


class AuthProvider(ABC):
    """Interface every provider implements."""

    @abstractmethod
    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> ProviderIdentity:
        ...

    @abstractmethod
    def confirm_email(self, identity_id: str) -> None:
        ...

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    @abstractmethod
    def get_user(self, token: str) -> ProviderIdentity:
        ...

    @abstractmethod
    def delete_user(self, identity_id: str) -> None:
        ...

    @abstractmethod
    def reset_password_for_email(self, email: str, redirect_to: str) -> Optional[str]:
        """Start password recovery; unknown emails are not an error."""

    def close(self) -> None:
        pass


class LocalAuthProvider(AuthProvider):
    """Credentials stored next to the application data."""

    pwd_ctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

    def __init__(self, db: Session, secret: str, expire_minutes: int = 60):
        self.db = db
        self.secret = secret
        self.expire_minutes = expire_minutes

    @staticmethod
    def _identity(row: AuthIdentity) -> ProviderIdentity:
        return ProviderIdentity(
            id=row.id,
            email=row.email,
            email_confirmed=row.email_confirmed_at is not None,
            metadata=dict(row.user_metadata or {}),
        )

    def sign_up(self, email, password, metadata=None):
        if self.db.query(AuthIdentity).filter(AuthIdentity.email == email).first():
            raise AuthProviderError("User already registered", ALREADY_REGISTERED)
        row = AuthIdentity(
            email=email,
            password_hash=self.pwd_ctx.hash(password),
            user_metadata=metadata or {},
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AuthProviderError("User already registered", ALREADY_REGISTERED)
        self.db.refresh(row)
        logger.info("local_auth: method=sign_up identity_id=%s", row.id)
        return self._identity(row)

    def confirm_email(self, identity_id):
        row = self.db.get(AuthIdentity, identity_id)
        if row is None:
            raise AuthProviderError("User not found")
        if row.email_confirmed_at is None:
            row.email_confirmed_at = datetime.now(timezone.utc)
            self.db.commit()

    def sign_in(self, email, password):
        row = self.db.query(AuthIdentity).filter(AuthIdentity.email == email).first()
        if row is None or not self.pwd_ctx.verify(password, row.password_hash):
            raise AuthProviderError("Invalid login credentials", INVALID_CREDENTIALS)
        if row.email_confirmed_at is None:
            raise AuthProviderError("Email not confirmed", EMAIL_NOT_CONFIRMED)
        return AuthSession(
            identity=self._identity(row),
            access_token=self.create_access_token(row.id, row.email),
            expires_in=self.expire_minutes * 60,
        )

    def create_access_token(self, identity_id: str, email: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": identity_id,
            "email": email,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGO)

    def get_user(self, token):
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGO])
        except jwt.ExpiredSignatureError:
            raise AuthProviderError("Token expired", INVALID_TOKEN)
        except jwt.PyJWTError:
            raise AuthProviderError("Invalid token", INVALID_TOKEN)
        # Recovery links are not sessions
        if payload.get("purpose") == RECOVERY_PURPOSE:
            raise AuthProviderError("Invalid token", INVALID_TOKEN)
        row = self.db.get(AuthIdentity, payload.get("sub") or "")
        if row is None:
            raise AuthProviderError("Invalid token", INVALID_TOKEN)
        return self._identity(row)

    def delete_user(self, identity_id):
        row = self.db.get(AuthIdentity, identity_id)
        if row is not None:
            self.db.delete(row)
            self.db.commit()

    def reset_password_for_email(self, email, redirect_to):
        """
        No mailer runs next to the local provider, so the recovery link is
        returned to the caller instead of being sent.
        """
        row = self.db.query(AuthIdentity).filter(AuthIdentity.email == email).first()
        if row is None:
            return None
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": row.id,
                "email": row.email,
                "purpose": RECOVERY_PURPOSE,
                "iat": now,
                "exp": now + timedelta(minutes=RECOVERY_EXPIRE_MINUTES),
            },
            self.secret,
            algorithm=JWT_ALGO,
        )
        logger.info("local_auth: method=reset_password identity_id=%s redirect_to=%s", row.id, redirect_to)
        return f"{redirect_to}?{urlencode({'token': token, 'type': RECOVERY_PURPOSE})}"


class SupabaseAuthProvider(AuthProvider):
    """
    Supabase Auth (GoTrue) over REST. Admin endpoints are called with the
    service-role key; token resolution forwards the caller's bearer token.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        expire_minutes: int = 60,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.service_key = service_key
        self.expire_minutes = expire_minutes
        self._client = httpx.Client(
            base_url=base_url,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
            },
            timeout=30.0,
            transport=transport,
        )

    @staticmethod
    def _identity(user: Dict[str, Any]) -> ProviderIdentity:
        return ProviderIdentity(
            id=str(user.get("id")),
            email=user.get("email") or "",
            email_confirmed=bool(user.get("email_confirmed_at") or user.get("confirmed_at")),
            metadata=user.get("user_metadata") or {},
        )

    @staticmethod
    def _error_text(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        return (
            body.get("msg")
            or body.get("error_description")
            or body.get("message")
            or body.get("error")
            or f"HTTP {resp.status_code}"
        )

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("supabase_auth: method=%s path=%s result=error error=%s", method, path, e)
            raise AuthProviderError("Auth provider unavailable")

    def sign_up(self, email, password, metadata=None):
        resp = self._request(
            "POST",
            "/auth/v1/admin/users",
            json={"email": email, "password": password, "user_metadata": metadata or {}},
        )
        if resp.status_code >= 400:
            message = self._error_text(resp)
            lowered = message.lower()
            if "already registered" in lowered or "already exists" in lowered or resp.status_code == 422:
                raise AuthProviderError("User already registered", ALREADY_REGISTERED)
            raise AuthProviderError(message)
        return self._identity(resp.json())

    def confirm_email(self, identity_id):
        resp = self._request("PUT", f"/auth/v1/admin/users/{identity_id}", json={"email_confirm": True})
        if resp.status_code >= 400:
            raise AuthProviderError(self._error_text(resp))

    def sign_in(self, email, password):
        resp = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if resp.status_code >= 400:
            message = self._error_text(resp)
            lowered = message.lower()
            if "email not confirmed" in lowered:
                raise AuthProviderError(message, EMAIL_NOT_CONFIRMED)
            if "invalid login credentials" in lowered or resp.status_code == 400:
                raise AuthProviderError(message, INVALID_CREDENTIALS)
            raise AuthProviderError(message)
        body = resp.json()
        return AuthSession(
            identity=self._identity(body.get("user") or {}),
            access_token=body.get("access_token", ""),
            token_type=body.get("token_type", "bearer"),
            expires_in=int(body.get("expires_in") or self.expire_minutes * 60),
        )

    def get_user(self, token):
        resp = self._request("GET", "/auth/v1/user", headers={"Authorization": f"Bearer {token}"})
        if resp.status_code >= 400:
            raise AuthProviderError(self._error_text(resp), INVALID_TOKEN)
        return self._identity(resp.json())

    def delete_user(self, identity_id):
        resp = self._request("DELETE", f"/auth/v1/admin/users/{identity_id}")
        if resp.status_code >= 400 and resp.status_code != 404:
            raise AuthProviderError(self._error_text(resp))

    def reset_password_for_email(self, email, redirect_to):
        resp = self._request(
            "POST",
            "/auth/v1/recover",
            params={"redirect_to": redirect_to},
            json={"email": email},
        )
        if resp.status_code >= 400:
            raise AuthProviderError(self._error_text(resp))
        return None

    def close(self):
        self._client.close()


def get_auth_provider(db: Session = Depends(get_db)):
    """FastAPI dependency yielding the configured provider."""
    config = get_config()
    if config.auth_provider == "supabase":
        provider: AuthProvider = SupabaseAuthProvider(
            config.supabase_url, config.supabase_service_role_key, config.jwt_expire_minutes
        )
    else:
        provider = LocalAuthProvider(db, config.jwt_secret, config.jwt_expire_minutes)
    try:
        yield provider
    finally:
        provider.close()
