import logging
from dataclasses import dataclass, field
from typing import Dict

from bugtracker.errors import ConflictError
from bugtracker.models import Bug, Project, User
from bugtracker.store import Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dependents:
    kind: str
    count: int
    breakdown: Dict[str, int] = field(default_factory=dict)


def check_dependents(store: Store, entity_type: type, entity_id: int) -> Dependents:
    """Count the rows that would be affected by deleting the given entity."""
    if entity_type is Project:
        return Dependents("bugs", store.count_bugs_for_project(entity_id))
    if entity_type is Bug:
        return Dependents("comments", store.count_comments_for_bug(entity_id))
    if entity_type is User:
        breakdown = {
            "projects": store.count_projects_created_by(entity_id),
            "assigned_bugs": store.count_bugs_assigned_to(entity_id),
            "comments": store.count_comments_by_user(entity_id),
        }
        return Dependents("user_dependents", sum(breakdown.values()), breakdown)
    raise TypeError(f"No dependents defined for {entity_type.__name__}")


def guard_delete(store: Store, entity_type: type, entity_id: int, force: bool = False) -> Dependents:
    """
    Refuse a delete that would silently take dependent rows with it.

    Projects and bugs cascade to their children once the caller confirms with
    ``force``; users never cascade and must be cleaned up first.
    """
    dependents = check_dependents(store, entity_type, entity_id)
    if dependents.count == 0:
        return dependents

    name = entity_type.__name__
    if entity_type is User:
        logger.info("Refused delete of user %s with dependents %s", entity_id, dependents.breakdown)
        raise ConflictError(
            "User still owns projects, assigned bugs or comments; reassign or remove them first",
            **dependents.breakdown,
        )
    if not force:
        logger.info("Delete of %s %s needs confirmation: %d %s", name, entity_id, dependents.count, dependents.kind)
        count_key = "bug_count" if entity_type is Project else "comment_count"
        raise ConflictError(
            f"{name} has {dependents.count} dependent {dependents.kind}; pass force=true to delete them too",
            **{count_key: dependents.count},
        )
    logger.info("Cascading delete of %s %s removes %d %s", name, entity_id, dependents.count, dependents.kind)
    return dependents
