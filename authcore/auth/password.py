"""
Password policy and hashing with Argon2id.

Argon2id is memory-hard and side-channel resistant. The cost parameters
below are fixed constants; changing them makes `needs_rehash` report True
for older hashes, and login transparently upgrades them.

Strength rules are checked in a fixed order (length bounds, uppercase,
lowercase, digit, special character) and the first failing rule is the
reported reason.
"""

import secrets
import string
import unicodedata

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError, VerifyMismatchError
from starlette.concurrency import run_in_threadpool

from authcore.core.errors import InternalError, WeakPasswordError

ARGON2_TIME_COST = 3        # Number of iterations
ARGON2_MEMORY_COST = 65536  # 64 MB memory usage
ARGON2_PARALLELISM = 4      # Number of parallel threads
ARGON2_HASH_LEN = 32        # Length of the hash in bytes
ARGON2_SALT_LEN = 16        # Length of the random salt

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

MSG_TOO_SHORT = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
MSG_TOO_LONG = f"Password must be at most {MAX_PASSWORD_LENGTH} characters long"
MSG_NO_UPPER = "Password must contain at least one uppercase letter"
MSG_NO_LOWER = "Password must contain at least one lowercase letter"
MSG_NO_DIGIT = "Password must contain at least one digit"
MSG_NO_SPECIAL = "Password must contain at least one special character"

ph = PasswordHasher(
    time_cost=ARGON2_TIME_COST,
    memory_cost=ARGON2_MEMORY_COST,
    parallelism=ARGON2_PARALLELISM,
    hash_len=ARGON2_HASH_LEN,
    salt_len=ARGON2_SALT_LEN,
)

# Verified against when the email is unknown so both login failures cost
# the same amount of time.
_DUMMY_HASH = ph.hash(secrets.token_urlsafe(16))


def is_special_char(char: str) -> bool:
    """Any Unicode punctuation (P*) or symbol (S*) character."""
    return unicodedata.category(char)[0] in ("P", "S")


def validate_password_strength(password: str) -> tuple[bool, list[str]]:
    """
    Validate password meets minimum security requirements.

    Returns:
        Tuple of (is_valid, list_of_issues). Issues are listed in rule order.
    """
    issues = []

    if len(password) < MIN_PASSWORD_LENGTH:
        issues.append(MSG_TOO_SHORT)
    elif len(password) > MAX_PASSWORD_LENGTH:
        issues.append(MSG_TOO_LONG)

    if not any(c.isupper() for c in password):
        issues.append(MSG_NO_UPPER)

    if not any(c.islower() for c in password):
        issues.append(MSG_NO_LOWER)

    if not any(c.isdigit() for c in password):
        issues.append(MSG_NO_DIGIT)

    if not any(is_special_char(c) for c in password):
        issues.append(MSG_NO_SPECIAL)

    return len(issues) == 0, issues


def check_password_strength(password: str) -> None:
    """
    Raise WeakPasswordError carrying the first failing rule.

    Raises:
        WeakPasswordError: If the password is rejected by the policy
    """
    ok, issues = validate_password_strength(password)
    if not ok:
        raise WeakPasswordError(issues[0])


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Returns:
        The encoded hash (algorithm, parameters, salt and digest)

    Raises:
        InternalError: If the hasher fails
    """
    try:
        return ph.hash(password)
    except HashingError as e:
        raise InternalError("Password hashing failed") from e


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its hash.

    Never raises: a malformed or empty hash is simply a mismatch.
    """
    if not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def verify_dummy_password(password: str) -> bool:
    """Spend one verification on a throwaway hash. Always False."""
    verify_password(password, _DUMMY_HASH)
    return False


def needs_rehash(password_hash: str) -> bool:
    """
    Check if a password hash needs to be rehashed.

    Returns:
        True if hash should be regenerated with current parameters
    """
    try:
        return ph.check_needs_rehash(password_hash)
    except InvalidHashError:
        return True


async def hash_password_async(password: str) -> str:
    """Hash on the worker thread pool so the event loop stays responsive."""
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, password_hash)


async def verify_dummy_password_async(password: str) -> bool:
    return await run_in_threadpool(verify_dummy_password, password)


def generate_temp_password(length: int = 16) -> str:
    """
    Generate a random password that satisfies the strength policy.

    Args:
        length: Length of the password (minimum 12)
    """
    if length < 12:
        length = 12

    password = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice("!@#$%^&*"),
    ]

    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    password.extend(secrets.choice(alphabet) for _ in range(length - 4))

    secrets.SystemRandom().shuffle(password)

    return "".join(password)
