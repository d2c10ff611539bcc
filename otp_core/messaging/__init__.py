"""
Phone Number Handling
=====================
Normalization and validation of subscriber phone numbers.
"""

from .phone_utils import (
    ETHIOPIA_MOBILE_PATTERN,
    PhoneNormalizer,
    is_valid_mobile,
    normalize_phone,
    validate_e164,
)

__all__ = [
    "ETHIOPIA_MOBILE_PATTERN",
    "PhoneNormalizer",
    "is_valid_mobile",
    "normalize_phone",
    "validate_e164",
]
