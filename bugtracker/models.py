from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    Enum,
    DateTime,
    func,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

ADMIN_ROLE = "Admin"
DEFAULT_ROLE = "User"

BUG_STATUSES = ("Open", "In Progress", "Resolved", "Closed")
BUG_PRIORITIES = ("Low", "Medium", "High", "Critical")

DEFAULT_BUG_STATUS = "Open"
DEFAULT_BUG_PRIORITY = "Medium"

# ids are stored in 32-bit INTEGER columns
MAX_ID = 2**31 - 1

# Enums
BugStatus = Enum(*BUG_STATUSES, name="bug_status")
BugPriority = Enum(*BUG_PRIORITIES, name="bug_priority")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String(100), nullable=False)
    # stored lower-cased; uniqueness is therefore case-insensitive
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, server_default=DEFAULT_ROLE)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Project(Base):
    __tablename__ = "projects"
    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    # required on create, nullable only so a user delete can SET NULL
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Bug(Base):
    __tablename__ = "bugs"
    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(BugStatus, nullable=False, server_default=DEFAULT_BUG_STATUS)
    priority = Column(BugPriority, nullable=False, server_default=DEFAULT_BUG_PRIORITY)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    reported_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_bugs_project_id_status", "project_id", "status"),)


class Comment(Base):
    __tablename__ = "comments"
    id = Column(Integer, primary_key=True)
    bug_id = Column(Integer, ForeignKey("bugs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
