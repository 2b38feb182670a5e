"""
utils/validation_utils.py

Purpose: Input validation

- Email, phone and domain format checks
- Knowledge base URL checks
- Widget colour validation
- Input sanitization
"""

import re
from typing import Optional
from urllib.parse import urlparse

from bson import ObjectId


EMAIL_PATTERN = re.compile(r"^\w+([\.-]?\w+)*@\w+([\.-]?\w+)*(\.\w{2,3})+$")
PHONE_PATTERN = re.compile(r"^[0-9]{10}$")
DOMAIN_PATTERN = re.compile(
    r"^(?:https?://)?(?:www\.)?([a-zA-Z0-9-]+(?:\.[a-zA-Z0-9-]+)+)(?:/.*)?$"
)
HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def validate_email(email: str) -> bool:
    """
    Validates an email address.

    Example: owner@shop.com

    Args:
        email: Email string to validate

    Returns:
        True if valid, False otherwise
    """
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def validate_phone(phone: str) -> bool:
    """Phone numbers are stored as exactly 10 digits."""
    if not phone:
        return False
    return bool(PHONE_PATTERN.match(phone.strip()))


def validate_domain(domain: str) -> bool:
    """
    Validates a website domain as entered by a tenant.
    Scheme, ``www.`` prefix and a trailing path are all optional.
    """
    if not domain:
        return False
    return bool(DOMAIN_PATTERN.match(domain.strip()))


def validate_http_url(url: str) -> bool:
    """
    Checks that a knowledge base URL is an absolute http(s) URL.
    """
    if not url:
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_hex_color(color: str) -> bool:
    if not color:
        return False
    return bool(HEX_COLOR_PATTERN.match(color.strip()))


def parse_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """
    Converts a path/body id into an ObjectId.

    Returns:
        ObjectId, or None when the value is missing or malformed
    """
    if not value or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def sanitize_input(text: str, max_length: int = 4000) -> str:
    """
    Sanitizes free text input from chat users.

    - Strips surrounding whitespace
    - Removes control characters (newlines and tabs are kept)
    - Limits length

    Args:
        text: Input text
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    text = text.strip()

    if len(text) > max_length:
        text = text[:max_length]

    return text
