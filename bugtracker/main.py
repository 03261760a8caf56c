import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Path, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bugtracker import schemas, services, validators
from bugtracker.auth import PasswordHasher, TokenService, authenticate, change_password, get_current_actor
from bugtracker.config import Settings
from bugtracker.db import build_engine, build_session_factory, init_db
from bugtracker.errors import AppError, ErrorKind
from bugtracker.models import MAX_ID
from bugtracker.permissions import Actor
from bugtracker.store import Store, get_store

logger = logging.getLogger(__name__)

router = APIRouter()

EntityId = Annotated[int, Path(ge=1, le=MAX_ID)]
IdFilter = Annotated[Optional[int], Query(ge=1, le=MAX_ID)]


def get_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


# Health endpoints for readiness/liveness
@router.get("/health", status_code=200)
def health():
    return {"status": "ok"}


@router.get("/ready", status_code=200)
def ready():
    return {"ready": True}


# users


@router.post("/users/register", response_model=schemas.UserRead, status_code=status.HTTP_201_CREATED)
def register(payload: Any = Body(None), store: Store = Depends(get_store), hasher: PasswordHasher = Depends(get_hasher)):
    return services.register_user(store, hasher, payload)


@router.post("/users/login", response_model=schemas.LoginResponse)
def login(request: Request, payload: Any = Body(None), store: Store = Depends(get_store), hasher: PasswordHasher = Depends(get_hasher)):
    creds = validators.validate_login(payload)
    token, exp, user = authenticate(store, hasher, request.app.state.tokens, creds.email, creds.password)
    return {
        "token": token,
        "expires_in": int((exp - datetime.now(timezone.utc)).total_seconds()),
        "user": schemas.UserRead.model_validate(user),
    }


@router.get("/users", response_model=List[schemas.UserRead])
def list_users(store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.list_users(store)


@router.get("/users/profile", response_model=schemas.UserRead)
def profile(store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.get_user(store, actor.id)


@router.put("/users/profile", response_model=schemas.UserRead)
def update_profile(payload: Any = Body(None), store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.update_profile(store, actor, payload)


@router.put("/users/change-password", response_model=schemas.Message)
def update_password(
    payload: Any = Body(None),
    store: Store = Depends(get_store),
    hasher: PasswordHasher = Depends(get_hasher),
    actor: Actor = Depends(get_current_actor),
):
    data = validators.validate_password_change(payload)
    change_password(store, hasher, actor.id, data.current_password, data.new_password)
    return {"detail": "Password changed successfully"}


@router.delete("/users/{user_id}", response_model=schemas.Message)
def delete_user(user_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    services.delete_user(store, actor, user_id)
    return {"detail": "User deleted"}


# projects


@router.get("/projects", response_model=schemas.PaginatedProjects)
def list_projects(
    page: int = 1,
    per_page: int = 20,
    search: Optional[str] = None,
    created_by: IdFilter = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    store: Store = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    items, total, page, per_page = services.list_projects(
        store, page=page, per_page=per_page, search=search, created_by=created_by, sort_by=sort_by, sort_order=sort_order
    )
    return {"items": items, "total": total, "page": page, "per_page": per_page}


@router.get("/projects/creator/{creator_id}", response_model=List[schemas.ProjectRead])
def projects_by_creator(creator_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.projects_by_creator(store, creator_id)


@router.get("/projects/{project_id}", response_model=schemas.ProjectRead)
def get_project(project_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.get_project(store, project_id)


@router.post("/projects", response_model=schemas.ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(payload: Any = Body(None), store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.create_project(store, actor, payload)


@router.put("/projects/{project_id}", response_model=schemas.ProjectRead)
def update_project(project_id: EntityId, payload: Any = Body(None), store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.update_project(store, actor, project_id, payload)


@router.delete("/projects/{project_id}", response_model=schemas.Message)
def delete_project(project_id: EntityId, force: bool = False, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    services.delete_project(store, actor, project_id, force=force)
    return {"detail": "Project deleted"}


# bugs


@router.get("/bugs", response_model=schemas.PaginatedBugs)
def list_bugs(
    page: int = 1,
    per_page: int = 20,
    search: Optional[str] = None,
    project_id: IdFilter = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assigned_to: IdFilter = None,
    reported_by: IdFilter = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    store: Store = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    items, total, page, per_page = services.list_bugs(
        store,
        page=page,
        per_page=per_page,
        search=search,
        project_id=project_id,
        status=status,
        priority=priority,
        assigned_to=assigned_to,
        reported_by=reported_by,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, "total": total, "page": page, "per_page": per_page}


@router.get("/bugs/project/{project_id}", response_model=List[schemas.BugRead])
def bugs_by_project(project_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.bugs_by_project(store, project_id)


@router.get("/bugs/assignee/{user_id}", response_model=List[schemas.BugRead])
def bugs_by_assignee(user_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.bugs_by_assignee(store, user_id)


@router.get("/bugs/reporter/{user_id}", response_model=List[schemas.BugRead])
def bugs_by_reporter(user_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.bugs_by_reporter(store, user_id)


@router.get("/bugs/status/{bug_status}", response_model=List[schemas.BugRead])
def bugs_by_status(bug_status: str, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.bugs_by_status(store, bug_status)


@router.get("/bugs/{bug_id}", response_model=schemas.BugRead)
def get_bug(bug_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.get_bug(store, bug_id)


@router.post("/bugs", response_model=schemas.BugRead, status_code=status.HTTP_201_CREATED)
def create_bug(payload: Any = Body(None), store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.create_bug(store, actor, payload)


@router.put("/bugs/{bug_id}", response_model=schemas.BugRead)
def update_bug(bug_id: EntityId, payload: Any = Body(None), store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.update_bug(store, actor, bug_id, payload)


@router.delete("/bugs/{bug_id}", response_model=schemas.Message)
def delete_bug(bug_id: EntityId, force: bool = False, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    services.delete_bug(store, actor, bug_id, force=force)
    return {"detail": "Bug deleted"}


# comments


@router.get("/comments", response_model=List[schemas.CommentRead])
def list_comments(store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.list_comments(store)


@router.get("/comments/bug/{bug_id}", response_model=List[schemas.CommentRead])
def comments_by_bug(bug_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.list_comments(store, bug_id=bug_id)


@router.get("/comments/user/{user_id}", response_model=List[schemas.CommentRead])
def comments_by_user(user_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.list_comments(store, user_id=user_id)


@router.get("/comments/{comment_id}", response_model=schemas.CommentRead)
def get_comment(comment_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.get_comment(store, comment_id)


@router.post("/comments", response_model=schemas.CommentRead, status_code=status.HTTP_201_CREATED)
def create_comment(payload: Any = Body(None), store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.create_comment(store, actor, payload)


@router.put("/comments/{comment_id}", response_model=schemas.CommentRead)
def update_comment(comment_id: EntityId, payload: Any = Body(None), store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    return services.update_comment(store, actor, comment_id, payload)


@router.delete("/comments/bug/{bug_id}", response_model=schemas.BulkDeleteResult)
def delete_comments_for_bug(bug_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    deleted = services.delete_comments_for_bug(store, actor, bug_id)
    return {"detail": f"{deleted} comments deleted", "deleted": deleted}


@router.delete("/comments/{comment_id}", response_model=schemas.Message)
def delete_comment(comment_id: EntityId, store: Store = Depends(get_store), actor: Actor = Depends(get_current_actor)):
    services.delete_comment(store, actor, comment_id)
    return {"detail": "Comment deleted"}


# error mapping


def _error_response(status_code: int, body: dict, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def app_error_handler(request: Request, exc: AppError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return _error_response(exc.status_code, exc.to_dict(), headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
    body = AppError("Malformed request", ErrorKind.VALIDATION_ERROR, fields=fields).to_dict()
    return _error_response(status.HTTP_400_BAD_REQUEST, body)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = AppError("An unexpected error occurred", ErrorKind.INTERNAL_ERROR).to_dict()
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, body)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application with its engine, password hasher and token service.
    All of them live on ``app.state`` and are created exactly once here.
    """
    settings = settings or Settings.from_env()
    engine = build_engine(settings.database_url)
    if settings.create_tables:
        init_db(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        engine.dispose()

    app = FastAPI(title="Bug Tracker API", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.hasher = PasswordHasher(settings.bcrypt_rounds)
    app.state.tokens = TokenService.from_settings(settings)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app
