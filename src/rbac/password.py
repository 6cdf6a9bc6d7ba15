"""
Password Utilities - Secure password hashing and verification.

Uses bcrypt for password hashing with a configurable work factor. Plaintext
secrets are never stored or compared directly.
"""

import logging

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt work factor (12 is a good balance of security and performance)
BCRYPT_ROUNDS = 12

# bcrypt only considers the first 72 bytes of input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password
        rounds: bcrypt work factor

    Returns:
        Hashed password string

    Raises:
        ValueError: If password is empty or too long
    """
    if not password:
        raise ValueError("Password cannot be empty")

    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password exceeds maximum length of {MAX_PASSWORD_BYTES} bytes")

    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        password: Plain text password to verify
        hashed: Stored password hash

    Returns:
        True if password matches
    """
    if not password or not hashed:
        return False

    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False

    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError as e:
        # Malformed stored hash
        logger.error(f"Password verification error: {e}")
        return False


# Verified against when the email is unknown, so a miss costs the same as a
# wrong password.
DUMMY_HASH = hash_password("dummy-password-for-timing", rounds=BCRYPT_ROUNDS)
