import hashlib
import re

# E.164: leading +, country code without a leading zero, 8-15 digits in total
PHONE_NUMBER_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$")


# =========================
# Phone number helpers
# =========================
def is_valid_phone_number(phone: str) -> bool:
    """Check that a phone number is in E.164 form (e.g. +15551234567)."""
    return bool(phone) and PHONE_NUMBER_PATTERN.match(phone) is not None


def mask_phone(phone: str) -> str:
    """Mask a phone number for logging, keeping only the last 4 digits."""
    if not phone or len(phone) <= 4:
        return "****"
    return "*" * (len(phone) - 4) + phone[-4:]


def hash_phone_number(phone: str) -> str:
    """Hash phone number for audit records (one-way hash)"""
    return hashlib.sha256(phone.encode()).hexdigest()


def is_numeric_code(code: str, length: int) -> bool:
    """Check that a verification code is exactly ``length`` ASCII digits."""
    return bool(code) and len(code) == length and code.isascii() and code.isdigit()
