"""
Create/update validation for projects, bugs, comments and user profiles.

Bodies are parsed by the strict pydantic models in ``schemas``; failures are
translated to error kinds by ``errors.from_pydantic``. What pydantic cannot
know is checked here against the store: referenced rows must exist.
Each ``validate_*_update`` returns a model holding only the keys that were
sent; a body without any recognised key fails with NO_FIELDS_PROVIDED.
"""
from typing import Any, Mapping, Optional, Type, TypeVar

import pydantic

from bugtracker.credentials import BLANK_IS_MISSING, check_email
from bugtracker.errors import ErrorKind, from_pydantic, invalid_reference, missing_fields, no_fields_provided
from bugtracker.models import Bug, Project, User
from bugtracker.schemas import (
    BugCreate,
    BugUpdate,
    CommentCreate,
    CommentUpdate,
    LoginRequest,
    PasswordChange,
    ProjectCreate,
    ProjectUpdate,
    UserUpdate,
)
from bugtracker.store import Store

M = TypeVar("M", bound=pydantic.BaseModel)


def parse(model: Type[M], payload: Any, overrides: Optional[Mapping[str, ErrorKind]] = None) -> M:
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise from_pydantic(exc, overrides) from None


def parse_update(model: Type[M], payload: Any) -> M:
    if not isinstance(payload, Mapping):
        raise no_fields_provided()
    data = parse(model, payload)
    if not data.model_fields_set:
        raise no_fields_provided()
    return data


def _check_user(store: Store, field: str, user_id: Optional[int]):
    if user_id is not None and not store.exists(User, user_id):
        raise invalid_reference(field, "User")


# projects


def validate_project_create(payload: Any, store: Store) -> ProjectCreate:
    data = parse(ProjectCreate, payload)
    _check_user(store, "created_by", data.created_by)
    _check_user(store, "assigned_to", data.assigned_to)
    return data


def validate_project_update(payload: Any, store: Store) -> ProjectUpdate:
    data = parse_update(ProjectUpdate, payload)
    _check_user(store, "assigned_to", data.assigned_to)
    return data


# bugs


def validate_bug_create(payload: Any, store: Store) -> BugCreate:
    """
    Title and project_id are required; status and priority default to
    Open / Medium. The project must exist at creation time.
    """
    data = parse(BugCreate, payload)
    if not store.exists(Project, data.project_id):
        raise invalid_reference("project_id", "Project")
    _check_user(store, "reported_by", data.reported_by)
    _check_user(store, "assigned_to", data.assigned_to)
    return data


def validate_bug_update(payload: Any, store: Store) -> BugUpdate:
    data = parse_update(BugUpdate, payload)
    _check_user(store, "assigned_to", data.assigned_to)
    return data


# comments


def validate_comment_create(payload: Any, store: Store, author_id: int) -> CommentCreate:
    data = parse(CommentCreate, payload)
    if not store.exists(Bug, data.bug_id):
        raise invalid_reference("bug_id", "Bug")
    _check_user(store, "user_id", author_id)
    return data


def validate_comment_update(payload: Any) -> CommentUpdate:
    # the bug and author of a comment never change
    return parse_update(CommentUpdate, payload)


# users


def validate_user_update(payload: Any) -> UserUpdate:
    data = parse_update(UserUpdate, payload)
    if "email" in data.model_fields_set:
        data.email = check_email(data.email)
    return data


def validate_login(payload: Any) -> LoginRequest:
    if not isinstance(payload, Mapping):
        raise missing_fields("email", "password")
    return parse(LoginRequest, payload, BLANK_IS_MISSING)


def validate_password_change(payload: Any) -> PasswordChange:
    if not isinstance(payload, Mapping):
        raise missing_fields("current_password", "new_password")
    return parse(PasswordChange, payload, BLANK_IS_MISSING)
