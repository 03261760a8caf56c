"""
Use cases behind the HTTP routes.

Every mutation runs the same pipeline: validate the body, load the target
(404 when missing), ask the policy (403), run the dependency guard for
deletes (409), then hand the change to the store.
"""
import logging
from collections.abc import Mapping
from typing import Any, List, Optional

from bugtracker.auth import PasswordHasher
from bugtracker.credentials import parse_credentials
from bugtracker.dependency_guard import guard_delete
from bugtracker.errors import ConflictError, NotFoundError, invalid_value
from bugtracker.models import BUG_PRIORITIES, BUG_STATUSES, Bug, Comment, Project, User
from bugtracker.permissions import Action, Actor, require
from bugtracker.store import Store
from bugtracker import validators

logger = logging.getLogger(__name__)


def _with_default(raw: Any, field: str, value: Any) -> Any:
    if isinstance(raw, Mapping) and raw.get(field) is None:
        raw = dict(raw)
        raw[field] = value
    return raw


def _get_or_404(store: Store, model, entity_id: int):
    obj = store.get(model, entity_id)
    if obj is None:
        raise NotFoundError(f"{model.__name__} not found")
    return obj


# users


def register_user(store: Store, hasher: PasswordHasher, raw: Any) -> User:
    new_user = parse_credentials(raw, hasher.hash)
    if store.get_user_by_email(new_user.email) is not None:
        raise ConflictError("User with this email already exists")
    user = store.add(User(**new_user.model_dump()))
    logger.info("Registered user %s", user.id)
    return user


def get_user(store: Store, user_id: int) -> User:
    return _get_or_404(store, User, user_id)


def list_users(store: Store) -> List[User]:
    return store.list_users()


def update_profile(store: Store, actor: Actor, raw: Any) -> User:
    fields = validators.validate_user_update(raw).model_dump(exclude_unset=True)
    user = _get_or_404(store, User, actor.id)
    require(actor, Action.UPDATE, user)
    if "email" in fields:
        existing = store.get_user_by_email(fields["email"])
        if existing is not None and existing.id != user.id:
            raise ConflictError("Email is already taken")
    return store.update(user, fields)


def delete_user(store: Store, actor: Actor, user_id: int):
    user = _get_or_404(store, User, user_id)
    require(actor, Action.DELETE, user)
    guard_delete(store, User, user_id)
    store.delete(user)
    logger.info("User %s deleted by %s", user_id, actor.id)


# projects


def create_project(store: Store, actor: Actor, raw: Any) -> Project:
    data = validators.validate_project_create(_with_default(raw, "created_by", actor.id), store)
    require(actor, Action.CREATE, Project)
    return store.add(Project(**data.model_dump()))


def get_project(store: Store, project_id: int) -> Project:
    return _get_or_404(store, Project, project_id)


def list_projects(store: Store, **filters):
    return store.list_projects(**filters)


def projects_by_creator(store: Store, creator_id: int) -> List[Project]:
    return store.projects_by_creator(creator_id)


def update_project(store: Store, actor: Actor, project_id: int, raw: Any) -> Project:
    fields = validators.validate_project_update(raw, store).model_dump(exclude_unset=True)
    project = _get_or_404(store, Project, project_id)
    require(actor, Action.UPDATE, project)
    return store.update(project, fields)


def delete_project(store: Store, actor: Actor, project_id: int, force: bool = False):
    project = _get_or_404(store, Project, project_id)
    require(actor, Action.DELETE, project)
    guard_delete(store, Project, project_id, force=force)
    store.delete(project)


# bugs


def create_bug(store: Store, actor: Actor, raw: Any) -> Bug:
    data = validators.validate_bug_create(_with_default(raw, "reported_by", actor.id), store)
    require(actor, Action.CREATE, Bug)
    return store.add(Bug(**data.model_dump()))


def get_bug(store: Store, bug_id: int) -> Bug:
    return _get_or_404(store, Bug, bug_id)


def list_bugs(store: Store, status: Optional[str] = None, priority: Optional[str] = None, **filters):
    if status is not None and status not in BUG_STATUSES:
        raise invalid_value("status", f"status must be one of: {', '.join(BUG_STATUSES)}")
    if priority is not None and priority not in BUG_PRIORITIES:
        raise invalid_value("priority", f"priority must be one of: {', '.join(BUG_PRIORITIES)}")
    return store.list_bugs(status=status, priority=priority, **filters)


def bugs_by_project(store: Store, project_id: int) -> List[Bug]:
    return store.bugs_where(project_id=project_id)


def bugs_by_assignee(store: Store, user_id: int) -> List[Bug]:
    return store.bugs_where(assigned_to=user_id)


def bugs_by_reporter(store: Store, user_id: int) -> List[Bug]:
    return store.bugs_where(reported_by=user_id)


def bugs_by_status(store: Store, status: str) -> List[Bug]:
    if status not in BUG_STATUSES:
        raise invalid_value("status", f"status must be one of: {', '.join(BUG_STATUSES)}")
    return store.bugs_where(status=status)


def update_bug(store: Store, actor: Actor, bug_id: int, raw: Any) -> Bug:
    fields = validators.validate_bug_update(raw, store).model_dump(exclude_unset=True)
    bug = _get_or_404(store, Bug, bug_id)
    require(actor, Action.UPDATE, bug)
    return store.update(bug, fields)


def delete_bug(store: Store, actor: Actor, bug_id: int, force: bool = False):
    bug = _get_or_404(store, Bug, bug_id)
    require(actor, Action.DELETE, bug)
    guard_delete(store, Bug, bug_id, force=force)
    store.delete(bug)


# comments


def create_comment(store: Store, actor: Actor, raw: Any) -> Comment:
    data = validators.validate_comment_create(raw, store, actor.id)
    require(actor, Action.CREATE, Comment)
    return store.add(Comment(user_id=actor.id, **data.model_dump()))


def get_comment(store: Store, comment_id: int) -> Comment:
    return _get_or_404(store, Comment, comment_id)


def list_comments(store: Store, bug_id: Optional[int] = None, user_id: Optional[int] = None) -> List[Comment]:
    return store.list_comments(bug_id=bug_id, user_id=user_id)


def update_comment(store: Store, actor: Actor, comment_id: int, raw: Any) -> Comment:
    fields = validators.validate_comment_update(raw).model_dump(exclude_unset=True)
    comment = _get_or_404(store, Comment, comment_id)
    require(actor, Action.UPDATE, comment)
    return store.update(comment, fields)


def delete_comment(store: Store, actor: Actor, comment_id: int):
    comment = _get_or_404(store, Comment, comment_id)
    require(actor, Action.DELETE, comment)
    store.delete(comment)


def delete_comments_for_bug(store: Store, actor: Actor, bug_id: int) -> int:
    """Clear a bug's thread; allowed to whoever may delete the bug itself."""
    bug = _get_or_404(store, Bug, bug_id)
    require(actor, Action.DELETE, bug)
    deleted = store.delete_comments_for_bug(bug_id)
    logger.info("Removed %d comments from bug %s", deleted, bug_id)
    return deleted
