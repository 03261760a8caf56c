import pytest
from fastapi.testclient import TestClient

from bugtracker.auth import load_keys
from bugtracker.config import Settings
from bugtracker.main import create_app
from bugtracker.models import Bug, Comment, Project, User
from bugtracker.store import Store


@pytest.fixture(scope="session")
def rsa_keys(tmp_path_factory):
    missing = tmp_path_factory.mktemp("keys")
    return load_keys(
        Settings(private_key_path=str(missing / "private.pem"), public_key_path=str(missing / "public.pem"))
    )


@pytest.fixture
def settings(tmp_path, rsa_keys):
    private_key, public_key = rsa_keys
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        private_key=private_key,
        public_key=public_key,
        bcrypt_rounds=4,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def hasher(app):
    return app.state.hasher


@pytest.fixture
def tokens(app):
    return app.state.tokens


@pytest.fixture
def store(app):
    db = app.state.session_factory()
    try:
        yield Store(db)
    finally:
        db.close()


@pytest.fixture
def make_user(store, hasher):
    counter = {"n": 0}

    def _make(username=None, role="User", password="password123", email=None):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        email = email or f"{username}@example.com"
        return store.add(User(username=username, email=email, password_hash=hasher.hash(password), role=role))

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", role="Admin")


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def auth_headers(tokens):
    def _headers(user):
        token, _ = tokens.issue(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_project(store):
    def _make(owner, name="Project", **fields):
        return store.add(Project(name=name, created_by=owner.id, **fields))

    return _make


@pytest.fixture
def make_bug(store):
    def _make(project, reporter=None, title="Bug", **fields):
        return store.add(
            Bug(title=title, project_id=project.id, reported_by=reporter.id if reporter else None, **fields)
        )

    return _make


@pytest.fixture
def make_comment(store):
    def _make(bug, author, text="comment"):
        return store.add(Comment(bug_id=bug.id, user_id=author.id, text=text))

    return _make
