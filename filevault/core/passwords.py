"""Password hashing for account and share link passwords (bcrypt via passlib)."""

from passlib.hash import bcrypt


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True when *password* matches. A malformed stored hash counts as a mismatch."""
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        return False
