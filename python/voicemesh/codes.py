"""
Room code generation and validation.

Codes are short enough to read aloud: 4 characters drawn from an alphabet
without the look-alike characters I, O, 0 and 1. Input is case-insensitive;
the canonical form is uppercase.
"""

from __future__ import annotations

import secrets
from typing import Any, Optional

# Excluded: I, O, 0, 1
DEFAULT_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_CODE_LENGTH = 4


class RoomCodeGenerator:
    """
    Produces and validates room codes.

    Uniqueness is not checked here; RoomRegistry retries against its live
    rooms.
    """

    def __init__(self, alphabet: str = DEFAULT_ALPHABET, length: int = DEFAULT_CODE_LENGTH):
        if not alphabet or alphabet != alphabet.upper():
            raise ValueError("Alphabet must be non-empty and uppercase")
        if length < 1:
            raise ValueError("Code length must be positive")
        self.alphabet = alphabet
        self.length = length
        self._allowed = frozenset(alphabet)

    @property
    def space(self) -> int:
        """Number of distinct codes this generator can produce."""
        return len(self.alphabet) ** self.length

    def generate(self) -> str:
        """Draw a random code."""
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))

    def validate(self, raw: Any) -> bool:
        """Check that raw is a canonical code."""
        if not isinstance(raw, str) or len(raw) != self.length:
            return False
        return all(ch in self._allowed for ch in raw)

    def normalize(self, raw: Any) -> Optional[str]:
        """
        Trim and uppercase a client-supplied code.

        Returns:
            The canonical code, or None if it does not match the policy.
        """
        if not isinstance(raw, str):
            return None
        code = raw.strip().upper()
        return code if self.validate(code) else None


__all__ = [
    "DEFAULT_ALPHABET",
    "DEFAULT_CODE_LENGTH",
    "RoomCodeGenerator",
]
