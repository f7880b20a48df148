"""
Recipient validation helpers shared by the workflow engine and the SMS adapter.
"""

from typing import Optional

import phonenumbers
from email_validator import EmailNotValidError, validate_email


def to_e164(phone: str, default_region: str = "US") -> Optional[str]:
    """
    Normalize a phone number to E.164, or None when it is not a valid number.

    Numbers without a leading + are read as national numbers of default_region.
    """
    try:
        parsed = phonenumbers.parse(phone, default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def is_e164(phone: str) -> bool:
    """True for a valid number already written in E.164."""
    return phone.startswith("+") and to_e164(phone) == phone


def is_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True
