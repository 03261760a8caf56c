"""
Error taxonomy for the policy layer.

Every failure raised by validators, the authorization policy, the dependency
guard and the identity service is an ``AppError`` carrying one ``ErrorKind``.
The HTTP layer maps kinds onto status codes through ``STATUS_BY_KIND`` only;
messages are for humans and are never inspected for control flow.
"""
import enum
from typing import Any, Dict, Mapping, Optional

import pydantic
from fastapi import status


class ErrorKind(str, enum.Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELDS = "MISSING_FIELDS"
    INVALID_FIELD_TYPE = "INVALID_FIELD_TYPE"
    INVALID_VALUE = "INVALID_VALUE"
    EMPTY_FIELD = "EMPTY_FIELD"
    NO_FIELDS_PROVIDED = "NO_FIELDS_PROVIDED"
    INVALID_REFERENCE = "INVALID_REFERENCE"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.MISSING_FIELDS: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_FIELD_TYPE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_VALUE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EMPTY_FIELD: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NO_FIELDS_PROVIDED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_REFERENCE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.WEAK_PASSWORD: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppError(Exception):
    default_kind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str, kind: Optional[ErrorKind] = None, **details: Any):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.details = details

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        body = {"kind": self.kind.value, "message": self.message}
        body.update(self.details)
        return body


class ValidationError(AppError):
    default_kind = ErrorKind.VALIDATION_ERROR


class NotFoundError(AppError):
    default_kind = ErrorKind.NOT_FOUND


class ForbiddenError(AppError):
    default_kind = ErrorKind.FORBIDDEN


class UnauthorizedError(AppError):
    default_kind = ErrorKind.UNAUTHORIZED


class ConflictError(AppError):
    default_kind = ErrorKind.CONFLICT


class InternalError(AppError):
    default_kind = ErrorKind.INTERNAL_ERROR


def missing_fields(*fields: str) -> ValidationError:
    return ValidationError(
        f"Missing required fields: {', '.join(fields)}",
        ErrorKind.MISSING_FIELDS,
        fields=list(fields),
    )


def invalid_value(field: str, message: str) -> ValidationError:
    return ValidationError(message, ErrorKind.INVALID_VALUE, field=field)


def invalid_reference(field: str, entity: str) -> ValidationError:
    return ValidationError(
        f"Invalid {field}: {entity} does not exist", ErrorKind.INVALID_REFERENCE, field=field
    )


def no_fields_provided() -> ValidationError:
    return ValidationError("No valid fields to update", ErrorKind.NO_FIELDS_PROVIDED)


# pydantic error ``type`` -> ErrorKind; any other ``*_type`` is a type mismatch
KIND_BY_PYDANTIC_ERROR: Dict[str, ErrorKind] = {
    "missing": ErrorKind.MISSING_FIELDS,
    "string_too_short": ErrorKind.EMPTY_FIELD,
    "literal_error": ErrorKind.INVALID_VALUE,
    "greater_than": ErrorKind.INVALID_VALUE,
    "less_than_equal": ErrorKind.INVALID_VALUE,
    "model_type": ErrorKind.VALIDATION_ERROR,
}


def _kind_for(error: Dict[str, Any], table: Mapping[str, ErrorKind]) -> ErrorKind:
    kind = table.get(error["type"])
    if kind is ErrorKind.INVALID_VALUE and error["type"] == "literal_error" and not isinstance(error.get("input"), str):
        return ErrorKind.INVALID_FIELD_TYPE
    if kind is None:
        kind = ErrorKind.INVALID_FIELD_TYPE if error["type"].endswith("_type") else ErrorKind.INVALID_VALUE
    return kind


def from_pydantic(exc: pydantic.ValidationError, overrides: Optional[Mapping[str, ErrorKind]] = None) -> ValidationError:
    """
    Collapse a pydantic failure into one ``ValidationError``.

    Missing fields are reported together; otherwise the first failing field
    decides the kind. ``overrides`` lets a caller remap individual error types.
    """
    table = dict(KIND_BY_PYDANTIC_ERROR)
    table.update(overrides or {})
    issues = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error["loc"])
        issues.append((field, _kind_for(error, table), error["msg"]))

    missing = [field for field, kind, _ in issues if kind is ErrorKind.MISSING_FIELDS]
    if missing:
        return missing_fields(*missing)

    field, kind, msg = issues[0]
    if not field:
        return ValidationError("Request body must be a JSON object")
    return ValidationError(f"{field}: {msg}", kind, field=field)
