import re
from typing import Any, Callable, Mapping

import pydantic

from bugtracker.errors import ErrorKind, ValidationError, from_pydantic, invalid_value, missing_fields
from bugtracker.schemas import NewUser, Registration

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PASSWORD_LENGTH = 8

# an empty credential counts as not supplied
BLANK_IS_MISSING = {"string_too_short": ErrorKind.MISSING_FIELDS}


def normalize_email(email: str) -> str:
    return email.strip().lower()


def check_email(email: str) -> str:
    """Return the normalised email or raise INVALID_VALUE."""
    normalized = normalize_email(email)
    if not EMAIL_RE.match(normalized):
        raise invalid_value("email", "Invalid email format")
    return normalized


def check_password_strength(password: str, field: str = "password"):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"{field} must be at least {MIN_PASSWORD_LENGTH} characters",
            ErrorKind.WEAK_PASSWORD,
            field=field,
        )


def parse_credentials(raw: Any, hash_password: Callable[[str], str]) -> NewUser:
    """
    Validate a registration body and return the record to persist.

    Username, email and password are required and non-empty. The email is
    trimmed and lower-cased before the format check; the password is hashed
    with the supplied one-way primitive and never kept in clear. A missing or
    non-string role falls back to the default role.
    """
    if not isinstance(raw, Mapping):
        raise missing_fields("username", "email", "password")
    try:
        data = Registration.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise from_pydantic(exc, BLANK_IS_MISSING) from None

    email = check_email(data.email)
    check_password_strength(data.password)
    return NewUser(
        username=data.username,
        email=email,
        password_hash=hash_password(data.password),
        role=data.role,
    )
