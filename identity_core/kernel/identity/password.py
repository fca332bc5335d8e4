"""
Password hashing utilities using bcrypt.
"""

import bcrypt

from identity_core.kernel.identity.errors import InvalidArgumentError

# Number of rounds for bcrypt hashing (12 is secure default)
BCRYPT_ROUNDS = 12


class PasswordHasher:
    """Password hashing service."""

    @staticmethod
    def _encode(value, what: str) -> bytes:
        if not isinstance(value, str) or not value:
            raise InvalidArgumentError(f"expected a non-empty string for {what}")
        return value.encode("utf-8")

    @staticmethod
    def _truncate_password(password: str) -> bytes:
        """
        Encode password and truncate to 72 bytes (bcrypt limit).

        bcrypt only uses the first 72 bytes of a password and
        current releases reject longer input outright.
        """
        return PasswordHasher._encode(password, "password")[:72]

    @staticmethod
    def hash(password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password string

        Raises:
            InvalidArgumentError: If password is empty or not a string
        """
        pwd_bytes = PasswordHasher._truncate_password(password)
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        hashed = bcrypt.hashpw(pwd_bytes, salt)
        return hashed.decode("utf-8")

    @staticmethod
    def compare(plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        A mismatch, including a stored value that is not a bcrypt hash,
        returns False. Only malformed arguments raise.

        Args:
            plain_password: Plain text password to verify
            hashed_password: Stored hashed password

        Returns:
            True if password matches, False otherwise

        Raises:
            InvalidArgumentError: If either argument is empty or not a string
        """
        pwd_bytes = PasswordHasher._truncate_password(plain_password)
        hash_bytes = PasswordHasher._encode(hashed_password, "hash")
        try:
            return bcrypt.checkpw(pwd_bytes, hash_bytes)
        except ValueError:
            # Stored value is not a bcrypt hash ("Invalid salt")
            return False

    @staticmethod
    def needs_rehash(hashed_password: str) -> bool:
        """
        Check if a password hash was produced with a different cost factor.

        Format: $2b$XX$... where XX is the rounds

        Raises:
            InvalidArgumentError: If the hash is empty or not a string
        """
        parts = PasswordHasher._encode(hashed_password, "hash").decode("utf-8").split("$")
        if len(parts) < 4:
            return True
        try:
            return int(parts[2]) != BCRYPT_ROUNDS
        except ValueError:
            return True


# Convenience functions
def hash_password(password: str) -> str:
    """Hash a password."""
    return PasswordHasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password."""
    return PasswordHasher.compare(plain_password, hashed_password)
