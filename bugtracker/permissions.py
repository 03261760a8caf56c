import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union

from bugtracker.errors import ForbiddenError
from bugtracker.models import ADMIN_ROLE, Bug, Comment, Project, User

logger = logging.getLogger(__name__)

"""
Permission matrix:

- Admin: may update/delete anything, and is the only role that creates projects
- project creator: update/delete own project
- bug reporter or assignee: update/delete the bug
- comment author: update/delete own comment
- any authenticated user: create bugs and comments
- a user: update own profile; delete own account (Admin may delete any account)

Existence is resolved by the caller before authorize() runs, so a missing
target is always a 404 whoever asks.
"""


class Action(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Actor:
    id: int
    role: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == ADMIN_ROLE.lower()


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def _deny(reason: str) -> Decision:
    return Decision(False, reason)


Target = Union[Project, Bug, Comment, User, type]


def authorize(actor: Actor, action: Action, target: Target) -> Decision:
    """
    Decide whether ``actor`` may perform ``action`` on ``target``.

    ``target`` is an entity instance for update/delete and the entity class
    for create. Pure: the same inputs always give the same decision.
    """
    entity = target if isinstance(target, type) else type(target)

    if entity is User:
        if action is Action.UPDATE:
            if actor.id == target.id:
                return ALLOW
            return _deny("Users may only update their own profile")
        if action is Action.DELETE:
            if actor.is_admin or actor.id == target.id:
                return ALLOW
            return _deny("Only an admin or the account owner may delete a user")
        return _deny("Users are created through registration")

    if actor.is_admin:
        return ALLOW

    if entity is Project:
        if action is Action.CREATE:
            return _deny("Only admins may create projects")
        if actor.id == target.created_by:
            return ALLOW
        return _deny("Only the project creator or an admin may modify this project")

    if entity is Bug:
        if action is Action.CREATE:
            return ALLOW
        if actor.id in (target.reported_by, target.assigned_to):
            return ALLOW
        return _deny("Only the reporter, the assignee or an admin may modify this bug")

    if entity is Comment:
        if action is Action.CREATE:
            return ALLOW
        if actor.id == target.user_id:
            return ALLOW
        return _deny("Only the comment author or an admin may modify this comment")

    return _deny(f"No rule for {entity.__name__}")


def require(actor: Actor, action: Action, target: Target):
    decision = authorize(actor, action, target)
    if not decision:
        name = target.__name__ if isinstance(target, type) else type(target).__name__
        logger.info("Denied %s on %s for user %s: %s", action.value, name, actor.id, decision.reason)
        raise ForbiddenError(decision.reason)
