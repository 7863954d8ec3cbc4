from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

passwordHasher = PasswordHasher(encoding="utf-8")


def makePassword(password: str) -> str:
    """Hash a plain-text password using Argon2."""
    return passwordHasher.hash(password)


def checkPassword(password: str, actual_password: str | None) -> bool:
    """
    Verify a plain-text password against a stored Argon2 hash.

    Accounts without a local password never match.
    """
    if not actual_password:
        return False
    try:
        passwordHasher.verify(actual_password, password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False


def needsRehash(actual_password: str) -> bool:
    """Whether a stored hash was made with outdated Argon2 parameters."""
    return passwordHasher.check_needs_rehash(actual_password)
