"""
Input validation and sanitization for untrusted request data.

All checks are pure and never raise: they answer True/False (or a
PasswordCheck) so handlers can choose the user-facing message.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import urlparse


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# NUL and C0 control characters except tab, newline and carriage return, plus DEL
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
PHONE_SEPARATORS_RE = re.compile(r"[\s\-()+]")
PHONE_RE = re.compile(r"^\d{7,15}$")
POSTAL_CODE_RE = re.compile(r"^[A-Z0-9\s\-]{3,10}$", re.IGNORECASE)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".avif")
# Storage hosts whose URLs carry no file extension
IMAGE_HOSTS = ("supabase.co", "supabase.in")

# Canonical product categories and the aliases clients send for them
CATEGORIES = ("Pc", "Mobile", "Watch")
CATEGORY_ALIASES = {
    "Pc": ("pc", "computers", "pc & computers", "computers & laptops"),
    "Mobile": ("mobile", "mobile devices"),
    "Watch": ("watch", "watches"),
}


@dataclass
class PasswordCheck:
    valid: bool
    errors: List[str] = field(default_factory=list)


def is_valid_email(email: Any) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_RE.match(email.strip()))


def validate_password_strength(password: Any) -> PasswordCheck:
    """
    Password policy: at least 8 characters with one uppercase letter,
    one lowercase letter and one digit. Symbols are not required.
    """
    if not password or not isinstance(password, str):
        return PasswordCheck(valid=False, errors=["Password is required"])

    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")

    return PasswordCheck(valid=not errors, errors=errors)


def sanitize_string(value: Any, max_length: Optional[int] = None) -> str:
    """
    Trim, drop control characters and truncate.

    Returns "" for None or non-string input.
    """
    if not value or not isinstance(value, str):
        return ""

    sanitized = CONTROL_CHARS_RE.sub("", value.strip())
    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
    return sanitized


def validate_length(value: Any, min_length: int, max_length: int) -> bool:
    """Inclusive bounds check on the trimmed length."""
    if not value or not isinstance(value, str):
        return False
    return min_length <= len(value.strip()) <= max_length


def is_valid_url(url: Any) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_image_url(url: Any) -> bool:
    """
    Heuristic only: a known image extension anywhere in the URL, or a
    storage host that serves images without one. Content type is not checked.
    """
    if not is_valid_url(url):
        return False
    lower = url.lower()
    return any(ext in lower for ext in IMAGE_EXTENSIONS) or any(host in lower for host in IMAGE_HOSTS)


def parse_price(price: Any) -> Optional[float]:
    """Coerce a price to float; None when it is not a finite number."""
    if price is None or isinstance(price, bool):
        return None
    if isinstance(price, str):
        try:
            value = float(price.strip())
        except ValueError:
            return None
    elif isinstance(price, (int, float)):
        value = float(price)
    else:
        return None
    if not math.isfinite(value):
        return None
    return value


def is_valid_price(price: Any) -> bool:
    # Zero is accepted: free products are allowed.
    value = parse_price(price)
    return value is not None and value >= 0


def parse_quantity(quantity: Any) -> Optional[int]:
    """Coerce a quantity to int; None when it is not a whole number."""
    if quantity is None or isinstance(quantity, bool):
        return None
    if isinstance(quantity, int):
        return quantity
    if isinstance(quantity, float):
        return int(quantity) if quantity.is_integer() else None
    if isinstance(quantity, str):
        try:
            return int(quantity.strip(), 10)
        except ValueError:
            return None
    return None


def is_valid_quantity(quantity: Any) -> bool:
    value = parse_quantity(quantity)
    return value is not None and value > 0


def is_valid_phone(phone: Any) -> bool:
    if not phone or not isinstance(phone, str):
        return False
    return bool(PHONE_RE.match(PHONE_SEPARATORS_RE.sub("", phone)))


def is_valid_postal_code(postal_code: Any) -> bool:
    if not postal_code or not isinstance(postal_code, str):
        return False
    return bool(POSTAL_CODE_RE.match(postal_code.strip()))


def to_canonical_category(value: Any) -> Optional[str]:
    """Map a category label or alias to Pc | Mobile | Watch (None if unknown)."""
    if not value or not isinstance(value, str):
        return None
    s = value.strip().lower()
    for canonical, aliases in CATEGORY_ALIASES.items():
        if s in aliases:
            return canonical
    return None
