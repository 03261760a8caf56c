import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import asc, desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from fastapi import Depends

from bugtracker.db import get_session
from bugtracker.errors import ConflictError, InternalError
from bugtracker.models import Base, Bug, Comment, Project, User

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100


def _paginate(q, model, page: int, per_page: int, sort_by: str, sort_order: str, allowed_sort_fields):
    # sanitize pagination args
    page = max(1, page)
    per_page = max(1, min(MAX_PER_PAGE, per_page))

    total = q.count()

    if sort_by not in allowed_sort_fields:
        sort_by = "created_at"
    sort_col = getattr(model, sort_by)
    # id breaks ties between rows created within the same clock tick
    if sort_order.lower() == "desc":
        q = q.order_by(desc(sort_col), desc(model.id))
    else:
        q = q.order_by(asc(sort_col), asc(model.id))

    items = q.offset((page - 1) * per_page).limit(per_page).all()
    return items, total, page, per_page


class Store:
    """
    Thin CRUD façade over one SQLAlchemy session.

    Every mutation is a single statement committed immediately; cascades and
    SET NULL actions are left to the database's foreign keys.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self):
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Integrity violation: %s", exc.orig)
            raise ConflictError("The change conflicts with existing data") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Store operation failed")
            raise InternalError("An unexpected error occurred") from exc

    # generic

    def get(self, model: Type[Base], entity_id: int):
        return self.db.get(model, entity_id)

    def exists(self, model: Type[Base], entity_id: int) -> bool:
        return self.db.query(model.id).filter(model.id == entity_id).first() is not None

    def add(self, obj):
        self.db.add(obj)
        self._commit()
        self.db.refresh(obj)
        return obj

    def update(self, obj, fields: Dict[str, Any]):
        for name, value in fields.items():
            setattr(obj, name, value)
        self.db.add(obj)
        self._commit()
        self.db.refresh(obj)
        return obj

    def delete(self, obj):
        self.db.delete(obj)
        self._commit()
        # children removed by ON DELETE CASCADE may still sit in the identity map
        self.db.expire_all()

    # users

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(asc(User.id)).all()

    # projects

    def list_projects(
        self,
        page: int = 1,
        per_page: int = 20,
        search: Optional[str] = None,
        created_by: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Project], int, int, int]:
        q = self.db.query(Project)
        if search:
            term = f"%{search}%"
            q = q.filter((Project.name.ilike(term)) | (Project.description.ilike(term)))
        if created_by is not None:
            q = q.filter(Project.created_by == created_by)
        return _paginate(q, Project, page, per_page, sort_by, sort_order, {"name", "created_at", "id"})

    def projects_by_creator(self, creator_id: int) -> List[Project]:
        return (
            self.db.query(Project)
            .filter(Project.created_by == creator_id)
            .order_by(desc(Project.created_at), desc(Project.id))
            .all()
        )

    # bugs

    def list_bugs(
        self,
        page: int = 1,
        per_page: int = 20,
        search: Optional[str] = None,
        project_id: Optional[int] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[int] = None,
        reported_by: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Bug], int, int, int]:
        q = self.db.query(Bug)
        if search:
            term = f"%{search}%"
            q = q.filter((Bug.title.ilike(term)) | (Bug.description.ilike(term)))
        if project_id is not None:
            q = q.filter(Bug.project_id == project_id)
        if status is not None:
            q = q.filter(Bug.status == status)
        if priority is not None:
            q = q.filter(Bug.priority == priority)
        if assigned_to is not None:
            q = q.filter(Bug.assigned_to == assigned_to)
        if reported_by is not None:
            q = q.filter(Bug.reported_by == reported_by)
        return _paginate(q, Bug, page, per_page, sort_by, sort_order, {"created_at", "priority", "status", "id"})

    def bugs_where(self, **criteria) -> List[Bug]:
        return self.db.query(Bug).filter_by(**criteria).order_by(desc(Bug.created_at), desc(Bug.id)).all()

    # comments

    def list_comments(self, bug_id: Optional[int] = None, user_id: Optional[int] = None) -> List[Comment]:
        q = self.db.query(Comment)
        if bug_id is not None:
            # a bug's thread reads oldest first
            return q.filter(Comment.bug_id == bug_id).order_by(asc(Comment.created_at), asc(Comment.id)).all()
        if user_id is not None:
            q = q.filter(Comment.user_id == user_id)
        return q.order_by(desc(Comment.created_at), desc(Comment.id)).all()

    def delete_comments_for_bug(self, bug_id: int) -> int:
        deleted = self.db.query(Comment).filter(Comment.bug_id == bug_id).delete(synchronize_session=False)
        self._commit()
        self.db.expire_all()
        return deleted

    # dependents

    def count_bugs_for_project(self, project_id: int) -> int:
        return self.db.query(Bug).filter(Bug.project_id == project_id).count()

    def count_comments_for_bug(self, bug_id: int) -> int:
        return self.db.query(Comment).filter(Comment.bug_id == bug_id).count()

    def count_projects_created_by(self, user_id: int) -> int:
        return self.db.query(Project).filter(Project.created_by == user_id).count()

    def count_bugs_assigned_to(self, user_id: int) -> int:
        return self.db.query(Bug).filter(Bug.assigned_to == user_id).count()

    def count_comments_by_user(self, user_id: int) -> int:
        return self.db.query(Comment).filter(Comment.user_id == user_id).count()


def get_store(db: Session = Depends(get_session)) -> Store:
    return Store(db)
