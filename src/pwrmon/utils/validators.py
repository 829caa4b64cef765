"""Input checks shared by the device and user boundaries."""

import re
import secrets
import string

API_KEY_LENGTH = 32
API_KEY_ALPHABET = string.ascii_letters + string.digits

DEVICE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]{8,32}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# At least 8 characters, 1 uppercase, 1 lowercase, 1 number
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[a-zA-Z\d@$!%*?&]{8,}$")


def generate_api_key() -> str:
    """Generate a random 32-character alphanumeric device API key."""
    return "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(API_KEY_LENGTH))


def is_valid_device_id(device_id: str) -> bool:
    """Check that a device identifier is 8-32 alphanumeric characters."""
    return bool(DEVICE_ID_PATTERN.match(device_id))


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def is_valid_password(password: str) -> bool:
    return bool(PASSWORD_PATTERN.match(password))


def sanitize_string(value: str) -> str:
    """Trim whitespace and strip angle brackets from free text."""
    return value.strip().replace("<", "").replace(">", "")
