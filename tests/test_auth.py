from datetime import datetime, timedelta, timezone

import pytest

from bugtracker.auth import TokenService, authenticate, change_password
from bugtracker.credentials import parse_credentials
from bugtracker.errors import ErrorKind, NotFoundError, UnauthorizedError, ValidationError
from bugtracker.models import User


def test_issued_token_carries_identity(tokens, alice):
    token, exp = tokens.issue(alice)
    claims = tokens.verify(token)

    assert claims.user_id == alice.id
    assert claims.email == alice.email
    assert claims.role == "User"
    assert exp - datetime.now(timezone.utc) > timedelta(hours=23)


def test_expired_token(tokens, alice):
    token, _ = tokens.issue(alice, now=datetime.now(timezone.utc) - timedelta(hours=25))
    with pytest.raises(UnauthorizedError) as exc:
        tokens.verify(token)
    assert exc.value.kind is ErrorKind.TOKEN_EXPIRED


def test_token_signed_with_other_key_is_invalid(tokens, alice):
    foreign = TokenService(b"another-secret", b"another-secret", algorithm="HS256")
    token, _ = foreign.issue(alice)
    with pytest.raises(UnauthorizedError) as exc:
        tokens.verify(token)
    assert exc.value.kind is ErrorKind.INVALID_TOKEN

    with pytest.raises(UnauthorizedError):
        tokens.verify("not.a.token")


def test_register_then_authenticate_round_trip(store, hasher, tokens):
    new_user = parse_credentials(
        {"username": "carol", "email": "Carol@Example.com", "password": "s3cretpass"}, hasher.hash
    )
    store.add(User(**new_user.model_dump()))

    token, _, user = authenticate(store, hasher, tokens, "  CAROL@example.com", "s3cretpass")
    assert user.email == "carol@example.com"
    assert tokens.verify(token).user_id == user.id

    with pytest.raises(UnauthorizedError) as exc:
        authenticate(store, hasher, tokens, "carol@example.com", "wrongpass")
    assert exc.value.kind is ErrorKind.INVALID_CREDENTIALS


def test_unknown_email_and_wrong_password_look_the_same(store, hasher, tokens, alice):
    with pytest.raises(UnauthorizedError) as unknown:
        authenticate(store, hasher, tokens, "nobody@example.com", "password123")
    with pytest.raises(UnauthorizedError) as wrong:
        authenticate(store, hasher, tokens, alice.email, "password999")

    assert unknown.value.kind is wrong.value.kind is ErrorKind.INVALID_CREDENTIALS
    assert unknown.value.message == wrong.value.message


def test_authenticate_requires_both_fields(store, hasher, tokens):
    with pytest.raises(ValidationError) as exc:
        authenticate(store, hasher, tokens, "a@example.com", "")
    assert exc.value.kind is ErrorKind.MISSING_FIELDS


def test_change_password(store, hasher, tokens, alice):
    change_password(store, hasher, alice.id, "password123", "newpassword")

    authenticate(store, hasher, tokens, alice.email, "newpassword")
    with pytest.raises(UnauthorizedError):
        authenticate(store, hasher, tokens, alice.email, "password123")


def test_change_password_failures(store, hasher, alice):
    with pytest.raises(UnauthorizedError):
        change_password(store, hasher, alice.id, "wrong-current", "newpassword")

    with pytest.raises(ValidationError) as exc:
        change_password(store, hasher, alice.id, "password123", "short")
    assert exc.value.kind is ErrorKind.WEAK_PASSWORD

    with pytest.raises(NotFoundError):
        change_password(store, hasher, 999, "password123", "newpassword")


def test_old_token_survives_password_change(store, hasher, tokens, alice):
    token, _ = tokens.issue(alice)
    change_password(store, hasher, alice.id, "password123", "newpassword")
    assert tokens.verify(token).user_id == alice.id
