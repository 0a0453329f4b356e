"""
Auth endpoints: login, registration, password recovery, password-changed marker
and session info.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.auth import AuthenticatedPrincipal, get_user_data, require_auth
from storefront.auth_provider import (
    ALREADY_REGISTERED, EMAIL_NOT_CONFIRMED, INVALID_CREDENTIALS,
    AuthProvider, AuthProviderError, get_auth_provider,
)
from storefront.config import get_config
from storefront.database import get_db
from storefront.event_logger import record_failure
from storefront.logger import get_logger
from storefront.models import User, utcnow
from storefront.responses import (
    ApiError, AuthenticationError, AuthorizationError, ValidationError, create_success_response,
)
from storefront.schemas import LoginRequest, PasswordResetRequest, RegisterRequest
from storefront.validation import (
    is_valid_email, is_valid_image_url, is_valid_phone, sanitize_string,
    validate_length, validate_password_strength,
)

logger = get_logger("auth_api")

router = APIRouter(prefix="/auth", tags=["auth"])

REGISTRABLE_ROLES = ("user", "seller")

PENDING_DETAILS = "Your seller account is pending approval. Please wait for admin approval before logging in."
REJECTED_DETAILS = "Your seller account has been rejected. Please contact support for more information."
RESET_UNKNOWN_MESSAGE = "If an account with that email exists, a password reset email has been sent."
RESET_SENT_MESSAGE = (
    "If an account with that email exists, a password reset email has been sent to your email address."
)
SELLER_SIGNUP_DETAILS = (
    "Your account is pending admin approval. You will be able to login and start "
    "selling once approved (usually within 24-48 hours)."
)


@router.post("/login")
def login(
    body: LoginRequest,
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")

    email = sanitize_string(body.email.lower(), 255)
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")

    user = get_user_data(db, email)
    if user is None:
        raise AuthenticationError("Invalid Email or Password")

    # Seller gate runs before any credential check
    if user.role == "seller":
        if user.seller_status == "pending":
            raise AuthorizationError(
                "Waiting for admin approval", sellerStatus="pending", details=PENDING_DETAILS
            )
        if user.seller_status == "rejected":
            raise AuthorizationError(
                "Seller account rejected", sellerStatus="rejected", details=REJECTED_DETAILS
            )

    try:
        session = provider.sign_in(user.email, body.password)
    except AuthProviderError as e:
        logger.info("auth_api: method=login result=rejected code=%s", e.code)
        if e.code == EMAIL_NOT_CONFIRMED:
            raise AuthenticationError("Please confirm your email before logging in")
        if e.code == INVALID_CREDENTIALS:
            extra = {}
            if user.password_changed_at:
                extra["passwordChangedAt"] = user.password_changed_at
            raise AuthenticationError("Invalid Email or Password", **extra)
        raise AuthenticationError("Login failed")

    logger.info("auth_api: method=login user_id=%s role=%s result=success", user.id, user.role)
    return create_success_response(
        {
            "role": user.role or "user",
            "user": session.identity.to_dict(),
            "session": session.to_dict(),
        },
        message="Login successful",
    )


def create_account(
    db: Session,
    provider: AuthProvider,
    display_name: str,
    email: str,
    password: str,
    role: str,
    contact: Optional[str] = None,
    id_url: Optional[str] = None,
) -> User:
    """
    Create the auth identity, then the application row. If the row insert
    fails the identity is deleted again; a failed delete is recorded.
    """
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("Email already exists")
    if db.query(User).filter(User.username == display_name).first():
        raise ValidationError("Display name already exists")

    try:
        identity = provider.sign_up(email, password, {"display_name": display_name, "role": role})
    except AuthProviderError as e:
        if e.code == ALREADY_REGISTERED:
            raise ValidationError("Email is already registered")
        logger.error("auth_api: method=register step=sign_up result=error error=%s", e.message)
        raise ValidationError("Registration failed")

    if not identity.email_confirmed:
        try:
            provider.confirm_email(identity.id)
        except AuthProviderError as e:
            logger.warning("auth_api: method=register step=confirm_email identity_id=%s error=%s", identity.id, e.message)

    user = User(
        username=display_name,
        email=email,
        role=role,
        seller_status="pending" if role == "seller" else None,
        contact=contact,
        id_url=id_url,
    )
    db.add(user)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("auth_api: method=register step=insert_user result=error error=%s", e)
        _compensate_identity(db, provider, identity.id, email)
        if isinstance(e, IntegrityError):
            if "username" in str(e.orig).lower():
                raise ValidationError("Display name already exists")
            raise ValidationError("Email already exists")
        raise ApiError("Failed to create user", 500)

    db.refresh(user)
    logger.info("auth_api: method=register user_id=%s role=%s result=success", user.id, role)
    return user


def _compensate_identity(db: Session, provider: AuthProvider, identity_id: str, email: str) -> None:
    try:
        provider.delete_user(identity_id)
    except (AuthProviderError, SQLAlchemyError) as e:
        db.rollback()
        record_failure(
            db,
            "register.delete_identity",
            username=None,
            reference_id=identity_id,
            detail={"email": email, "error": str(e)},
        )


@router.post("/register", status_code=201)
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    if not body.display_name or not body.password or not body.email:
        raise ValidationError("Display name, email, and password are required")

    display_name = sanitize_string(body.display_name, 100)
    email = sanitize_string(body.email.lower(), 255)
    contact = sanitize_string(body.contact, 20) or None
    role = (body.role or "user").strip().lower()

    if role not in REGISTRABLE_ROLES:
        raise ValidationError("Invalid role")
    if not validate_length(display_name, 2, 100):
        raise ValidationError("Display name must be between 2 and 100 characters")
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")
    check = validate_password_strength(body.password)
    if not check.valid:
        raise ValidationError("Password validation failed", errors=check.errors)
    if body.id_url and not is_valid_image_url(body.id_url):
        raise ValidationError("Invalid image URL format")

    create_account(db, provider, display_name, email, body.password, role, contact, body.id_url)
    label = "Seller" if role == "seller" else "User"
    return create_success_response(message=f"{label} registered successfully", status=201)


@router.post("/seller-register", status_code=201)
def seller_register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    if not all((body.display_name, body.password, body.email, body.contact, body.id_url)):
        raise ValidationError("Validation failed", errors=["All fields are required"])

    display_name = sanitize_string(body.display_name, 100)
    email = sanitize_string(body.email.lower(), 255)
    contact = sanitize_string(body.contact, 20)

    errors = []
    if not validate_length(display_name, 2, 100):
        errors.append("Display name must be between 2 and 100 characters")
    if not is_valid_email(email):
        errors.append("Invalid email format")
    if not is_valid_phone(contact):
        errors.append("Invalid phone number format")
    if not is_valid_image_url(body.id_url):
        errors.append("Invalid image URL format")
    errors.extend(validate_password_strength(body.password).errors)
    if errors:
        raise ValidationError("Validation failed", errors=errors)

    create_account(db, provider, display_name, email, body.password, "seller", contact, body.id_url)
    return create_success_response(
        {"details": SELLER_SIGNUP_DETAILS},
        message="Seller registration successful!",
        status=201,
    )


@router.post("/reset-password")
def reset_password(
    body: PasswordResetRequest,
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """
    Start password recovery. Unknown addresses get the same success answer
    so the endpoint cannot be used to enumerate accounts.
    """
    if not body.email:
        raise ValidationError("Validation failed", errors=["Email is required"])

    email = sanitize_string(body.email.lower(), 255)
    if not is_valid_email(email):
        raise ValidationError("Validation failed", errors=["Invalid email format"])

    user = get_user_data(db, email)
    if user is None:
        return create_success_response(message=RESET_UNKNOWN_MESSAGE)

    redirect_to = f"{get_config().site_url.rstrip('/')}/auth/reset-password"
    try:
        provider.reset_password_for_email(email, redirect_to)
    except AuthProviderError as e:
        logger.error("auth_api: method=reset_password user_id=%s result=error error=%s", user.id, e.message)
        raise ApiError("Failed to send reset email. Please try again later.", 500)

    logger.info("auth_api: method=reset_password user_id=%s result=sent", user.id)
    return create_success_response(message=RESET_SENT_MESSAGE)


@router.post("/update-password-changed-at")
def update_password_changed_at(
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    user = get_user_data(db, principal.email)
    user.password_changed_at = utcnow()
    db.commit()
    logger.info("auth_api: method=update_password_changed_at user_id=%s", principal.id)
    return create_success_response(message="Password changed timestamp updated successfully")


@router.post("/logout")
def logout():
    # Bearer tokens are stateless; the client discards its copy
    return create_success_response(message="Logged out successfully")


@router.get("/me")
def me(principal: AuthenticatedPrincipal = Depends(require_auth)):
    return create_success_response({"user": principal.to_dict()})
