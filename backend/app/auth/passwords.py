"""Password hashing and verification with bcrypt.

bcrypt only looks at the first 72 bytes of its input and recent releases
raise ``ValueError`` for anything longer, so the byte length is checked here
rather than left to the library.
"""

import bcrypt

BCRYPT_MAX_BYTES = 72


def password_fits_bcrypt(password: str) -> bool:
    """Return True if the UTF-8 encoded password is within bcrypt's input limit."""
    return len(password.encode("utf-8")) <= BCRYPT_MAX_BYTES


def hash_password(password: str) -> str:
    """Hash a plain-text password and return the bcrypt hash as text.

    Raises:
        ValueError: If the password is longer than 72 bytes once encoded.
    """
    if not password_fits_bcrypt(password):
        raise ValueError(f"Password exceeds {BCRYPT_MAX_BYTES} bytes")
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain-text password against a stored bcrypt hash."""
    if not password_fits_bcrypt(plain_password):
        return False
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        hashed_password.encode("utf-8"),
    )
