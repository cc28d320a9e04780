"""Account id validation."""
import re
from typing import Callable

from .errors import InvalidAccountError

AccountValidator = Callable[[str], None]

MIN_ACCOUNT_ID_LEN = 2
MAX_ACCOUNT_ID_LEN = 64

# NEAR account id syntax: lowercase alphanumeric parts joined by single - _ or .
_ACCOUNT_ID_RE = re.compile(r"^(([a-z\d]+[-_])*[a-z\d]+\.)*([a-z\d]+[-_])*[a-z\d]+$")


def validate_account_id(account_id: str) -> None:
    """Check that ``account_id`` is a well-formed NEAR-style account id.

    Args:
        account_id: Identifier to check

    Raises:
        InvalidAccountError: If the id is not a string or is malformed
    """
    if not isinstance(account_id, str):
        raise InvalidAccountError(f"Account id must be a string, got {type(account_id).__name__}")
    if not MIN_ACCOUNT_ID_LEN <= len(account_id) <= MAX_ACCOUNT_ID_LEN:
        raise InvalidAccountError(
            f"Account id {account_id!r} must be between {MIN_ACCOUNT_ID_LEN} "
            f"and {MAX_ACCOUNT_ID_LEN} characters"
        )
    if not _ACCOUNT_ID_RE.match(account_id):
        raise InvalidAccountError(f"Invalid account id {account_id!r}")


def allow_any_account(account_id: str) -> None:
    """Accept any non-empty string, for hosts with their own identity scheme."""
    if not isinstance(account_id, str) or not account_id:
        raise InvalidAccountError("Account id must be a non-empty string")
