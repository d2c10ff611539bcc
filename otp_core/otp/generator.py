"""
OTP Code Generator
==================
Uniformly random fixed-length numeric codes.
"""

import secrets


class CodeGenerator:
    """Generates numeric codes from the OS CSPRNG."""

    def __init__(self, length: int = 4):
        """
        Args:
            length: Number of digits per code
        """
        if length < 1:
            raise ValueError("Code length must be positive")
        self.length = length

    @property
    def space(self) -> int:
        """Number of distinct codes."""
        return 10 ** self.length

    def generate(self) -> str:
        """
        Generate a code.

        Every value in [0, 10**length) is equally likely; leading zeros are
        kept, so "0042" is a valid 4-digit code.

        Returns:
            Code string of exactly ``length`` digits
        """
        return str(secrets.randbelow(self.space)).zfill(self.length)
