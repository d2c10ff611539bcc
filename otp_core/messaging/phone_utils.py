"""
Phone Utilities
===============
Canonicalization and validation of subscriber phone numbers.
"""

import re
from typing import Optional, Pattern, Union

from ..errors import InvalidPhoneFormat

# Ethiopian mobile numbers: +251 followed by 9 digits, subscriber part starting with 9 or 7
ETHIOPIA_COUNTRY_CODE = "251"
ETHIOPIA_MOBILE_PATTERN = re.compile(r"^\+251[79]\d{8}$")

INTERNATIONAL_PREFIX = "00"


def validate_e164(phone: str) -> bool:
    """
    Validate E.164 phone number format.

    Args:
        phone: Phone number

    Returns:
        True if valid E.164 format
    """
    pattern = r'^\+[1-9]\d{1,14}$'
    return bool(re.match(pattern, phone))


class PhoneNormalizer:
    """
    Reduces raw phone input to a canonical ``+<country><subscriber>`` string.

    Pure and side-effect free; one instance can be shared freely.
    """

    def __init__(
        self,
        country_code: str = ETHIOPIA_COUNTRY_CODE,
        trunk_prefix: str = "0",
        mobile_pattern: Union[str, Pattern[str], None] = None,
    ):
        """
        Args:
            country_code: Country calling code without '+'
            trunk_prefix: National trunk prefix replaced by the country code
            mobile_pattern: Regex the canonical form must match. Defaults to
                the Ethiopian mobile pattern for country code 251, otherwise
                to plain E.164.
        """
        self.country_code = country_code
        self.trunk_prefix = trunk_prefix
        if mobile_pattern is None and country_code == ETHIOPIA_COUNTRY_CODE:
            mobile_pattern = ETHIOPIA_MOBILE_PATTERN
        self.mobile_pattern: Optional[Pattern[str]] = (
            re.compile(mobile_pattern) if isinstance(mobile_pattern, str) else mobile_pattern
        )

    def canonicalize(self, raw: str) -> str:
        """
        Apply the digit rewriting rules without validating the result.

        Args:
            raw: Raw phone input

        Returns:
            '+' followed by the rewritten digits
        """
        digits = re.sub(r'\D', '', raw or "")

        # 00<country code>... is the international dialing form
        if digits.startswith(INTERNATIONAL_PREFIX + self.country_code):
            digits = digits[len(INTERNATIONAL_PREFIX):]

        if self.trunk_prefix and digits.startswith(self.trunk_prefix):
            digits = self.country_code + digits[len(self.trunk_prefix):]
        elif not digits.startswith(self.country_code):
            digits = self.country_code + digits

        return f"+{digits}"

    def is_valid(self, raw: str) -> bool:
        """Check whether raw input normalizes to a valid mobile number."""
        try:
            self.normalize(raw)
        except InvalidPhoneFormat:
            return False
        return True

    def normalize(self, raw: str) -> str:
        """
        Normalize raw input to the canonical mobile number.

        Args:
            raw: Raw phone input ("0911 22 33 44", "+251911223344", ...)

        Returns:
            Canonical phone number, e.g. "+251911223344"

        Raises:
            InvalidPhoneFormat: If the input is not a valid mobile number
        """
        if not isinstance(raw, str) or not re.search(r'\d', raw):
            raise InvalidPhoneFormat("Phone number must contain digits")

        canonical = self.canonicalize(raw)

        if not validate_e164(canonical):
            raise InvalidPhoneFormat("Phone number is not a valid E.164 number")
        if self.mobile_pattern is not None and not self.mobile_pattern.match(canonical):
            raise InvalidPhoneFormat("Phone number is not a valid mobile number")

        return canonical


_default_normalizer = PhoneNormalizer()


def normalize_phone(raw: str) -> str:
    """Normalize an Ethiopian mobile number (see ``PhoneNormalizer.normalize``)."""
    return _default_normalizer.normalize(raw)


def is_valid_mobile(raw: str) -> bool:
    """Check an Ethiopian mobile number."""
    return _default_normalizer.is_valid(raw)
