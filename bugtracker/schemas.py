from pydantic import AfterValidator, BaseModel, ConfigDict, conint, constr, field_validator
from typing import Annotated, List, Literal, Optional
from datetime import datetime

from bugtracker.models import (
    BUG_PRIORITIES,
    BUG_STATUSES,
    DEFAULT_BUG_PRIORITY,
    DEFAULT_BUG_STATUS,
    DEFAULT_ROLE,
    MAX_ID,
)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    return value or None


Id = conint(strict=True, gt=0, le=MAX_ID)
Text = constr(strict=True, strip_whitespace=True, min_length=1)
OptionalText = Annotated[Optional[constr(strict=True, strip_whitespace=True)], AfterValidator(_blank_to_none)]
Secret = constr(strict=True, min_length=1)
BugStatusValue = Literal[BUG_STATUSES]
BugPriorityValue = Literal[BUG_PRIORITIES]


# Request bodies. Unknown keys are ignored; update models leave unsent
# fields unset, so model_dump(exclude_unset=True) is the partial update.


class Registration(BaseModel):
    username: Text
    email: Text
    password: Secret
    role: str = DEFAULT_ROLE

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, v):
        if not isinstance(v, str) or not v.strip():
            return DEFAULT_ROLE
        return v.strip()


class LoginRequest(BaseModel):
    email: Text
    password: Secret


class PasswordChange(BaseModel):
    current_password: Secret
    new_password: Secret


class UserUpdate(BaseModel):
    username: Text = None
    email: Text = None


class ProjectCreate(BaseModel):
    name: Text
    description: OptionalText = None
    created_by: Id
    assigned_to: Optional[Id] = None


class ProjectUpdate(BaseModel):
    name: Text = None
    description: OptionalText = None
    assigned_to: Optional[Id] = None


class BugCreate(BaseModel):
    title: Text
    description: OptionalText = None
    status: BugStatusValue = DEFAULT_BUG_STATUS
    priority: BugPriorityValue = DEFAULT_BUG_PRIORITY
    project_id: Id
    reported_by: Optional[Id] = None
    assigned_to: Optional[Id] = None


class BugUpdate(BaseModel):
    title: Text = None
    description: OptionalText = None
    status: BugStatusValue = None
    priority: BugPriorityValue = None
    assigned_to: Optional[Id] = None


class CommentCreate(BaseModel):
    # the author is always the authenticated user, never the body
    bug_id: Id
    text: Text


class CommentUpdate(BaseModel):
    text: Text = None


# Record persisted on registration; the clear password never leaves the validator.


class NewUser(BaseModel):
    username: str
    email: str
    password_hash: str
    role: str


# Responses


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str
    created_at: datetime


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    created_by: Optional[int]
    assigned_to: Optional[int]
    created_at: datetime


class BugRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    status: str
    priority: str
    project_id: int
    reported_by: Optional[int]
    assigned_to: Optional[int]
    created_at: datetime


class CommentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bug_id: int
    user_id: int
    text: str
    created_at: datetime


class PaginatedProjects(BaseModel):
    items: List[ProjectRead]
    total: int
    page: int
    per_page: int


class PaginatedBugs(BaseModel):
    items: List[BugRead]
    total: int
    page: int
    per_page: int


class Message(BaseModel):
    detail: str


class BulkDeleteResult(BaseModel):
    detail: str
    deleted: int
