import pytest

from bugtracker import schemas, validators
from bugtracker.errors import ErrorKind, ValidationError


def _kind(fn, *args):
    with pytest.raises(ValidationError) as exc:
        fn(*args)
    return exc.value.kind


# projects


def test_project_create_trims_and_keeps_optional_fields(store, alice, bob):
    data = validators.validate_project_create(
        {"name": "  Tracker  ", "description": "  desc ", "created_by": alice.id, "assigned_to": bob.id}, store
    )
    assert data.name == "Tracker"
    assert data.description == "desc"
    assert data.created_by == alice.id
    assert data.assigned_to == bob.id


def test_project_create_errors(store, alice):
    assert _kind(validators.validate_project_create, {"description": "x"}, store) is ErrorKind.MISSING_FIELDS
    assert _kind(validators.validate_project_create, {"name": 3, "created_by": alice.id}, store) is ErrorKind.INVALID_FIELD_TYPE
    assert _kind(validators.validate_project_create, {"name": "P", "created_by": "1"}, store) is ErrorKind.INVALID_FIELD_TYPE
    assert _kind(validators.validate_project_create, {"name": "P", "created_by": True}, store) is ErrorKind.INVALID_FIELD_TYPE
    assert _kind(validators.validate_project_create, {"name": "   ", "created_by": alice.id}, store) is ErrorKind.EMPTY_FIELD
    assert _kind(validators.validate_project_create, {"name": "P", "created_by": 999}, store) is ErrorKind.INVALID_REFERENCE
    assert _kind(validators.validate_project_create, ["not", "an", "object"], store) is ErrorKind.VALIDATION_ERROR


def test_project_update_returns_only_present_fields(store):
    data = validators.validate_project_update({"description": None, "unknown": 1}, store)
    assert data.model_dump(exclude_unset=True) == {"description": None}


# bugs


def test_bug_create_applies_defaults(store, alice, make_project):
    project = make_project(alice)
    data = validators.validate_bug_create({"title": " Crash ", "project_id": project.id}, store)

    assert data.title == "Crash"
    assert data.status == "Open"
    assert data.priority == "Medium"
    assert data.reported_by is None
    assert data.assigned_to is None


def test_bug_create_rejects_values_outside_closed_sets(store, alice, make_project):
    project = make_project(alice)
    base = {"title": "T", "project_id": project.id}
    assert _kind(validators.validate_bug_create, dict(base, status="Done"), store) is ErrorKind.INVALID_VALUE
    assert _kind(validators.validate_bug_create, dict(base, priority="urgent"), store) is ErrorKind.INVALID_VALUE
    assert _kind(validators.validate_bug_create, dict(base, status=1), store) is ErrorKind.INVALID_FIELD_TYPE


def test_bug_create_checks_references(store, alice, make_project):
    project = make_project(alice)
    assert _kind(validators.validate_bug_create, {"title": "T", "project_id": 999}, store) is ErrorKind.INVALID_REFERENCE
    assert (
        _kind(validators.validate_bug_create, {"title": "T", "project_id": project.id, "assigned_to": 999}, store)
        is ErrorKind.INVALID_REFERENCE
    )
    assert _kind(validators.validate_bug_create, {"title": "T"}, store) is ErrorKind.MISSING_FIELDS
    assert _kind(validators.validate_bug_create, {"title": "T", "project_id": 0}, store) is ErrorKind.INVALID_VALUE


def test_bug_update_partial(store, bob):
    data = validators.validate_bug_update({"status": "Resolved", "assigned_to": bob.id, "project_id": 5}, store)
    assert data.model_dump(exclude_unset=True) == {"status": "Resolved", "assigned_to": bob.id}

    data = validators.validate_bug_update({"assigned_to": None}, store)
    assert data.model_dump(exclude_unset=True) == {"assigned_to": None}


def test_bug_update_validates_each_present_field(store):
    assert _kind(validators.validate_bug_update, {"priority": "Huge"}, store) is ErrorKind.INVALID_VALUE
    assert _kind(validators.validate_bug_update, {"title": ""}, store) is ErrorKind.EMPTY_FIELD
    assert _kind(validators.validate_bug_update, {"title": None}, store) is ErrorKind.INVALID_FIELD_TYPE
    assert _kind(validators.validate_bug_update, {"assigned_to": 999}, store) is ErrorKind.INVALID_REFERENCE


# comments


def test_comment_create(store, alice, make_project, make_bug):
    bug = make_bug(make_project(alice), alice)
    data = validators.validate_comment_create({"bug_id": bug.id, "text": "  looks bad  "}, store, alice.id)
    assert data.text == "looks bad"

    create = validators.validate_comment_create
    assert _kind(create, {"bug_id": bug.id, "text": "   "}, store, alice.id) is ErrorKind.EMPTY_FIELD
    assert _kind(create, {"bug_id": 999, "text": "x"}, store, alice.id) is ErrorKind.INVALID_REFERENCE
    assert _kind(create, {"bug_id": bug.id, "text": "x"}, store, 999) is ErrorKind.INVALID_REFERENCE
    assert _kind(create, {"bug_id": bug.id}, store, alice.id) is ErrorKind.MISSING_FIELDS


def test_comment_author_is_not_taken_from_the_body(store, alice, bob, make_project, make_bug):
    bug = make_bug(make_project(alice), alice)
    data = validators.validate_comment_create({"bug_id": bug.id, "user_id": alice.id, "text": "x"}, store, bob.id)
    assert "user_id" not in data.model_dump()


def test_comment_update_only_touches_text():
    data = validators.validate_comment_update({"text": " edited ", "bug_id": 3, "user_id": 4})
    assert data.model_dump(exclude_unset=True) == {"text": "edited"}


# users


def test_user_update_normalises_email():
    data = validators.validate_user_update({"email": " Bob@Example.COM "})
    assert data.model_dump(exclude_unset=True) == {"email": "bob@example.com"}
    assert _kind(validators.validate_user_update, {"email": "nope"}) is ErrorKind.INVALID_VALUE
    assert _kind(validators.validate_user_update, {"username": "  "}) is ErrorKind.EMPTY_FIELD


# shared update contract


@pytest.mark.parametrize("payload", [None, {}, {"unknown": 1}, {"created_by": 2, "bug_id": 3}, []])
@pytest.mark.parametrize("entity", ["project", "bug", "comment", "user"])
def test_update_without_recognised_fields(store, entity, payload):
    fn = {
        "project": lambda p: validators.validate_project_update(p, store),
        "bug": lambda p: validators.validate_bug_update(p, store),
        "comment": validators.validate_comment_update,
        "user": validators.validate_user_update,
    }[entity]
    assert _kind(fn, payload) is ErrorKind.NO_FIELDS_PROVIDED


# ids and error translation


@pytest.mark.parametrize("project_id", [2**31, 10**20])
def test_ids_beyond_column_range_are_invalid(store, project_id):
    assert _kind(validators.validate_bug_create, {"title": "T", "project_id": project_id}, store) is ErrorKind.INVALID_VALUE
    assert _kind(validators.validate_bug_update, {"assigned_to": project_id}, store) is ErrorKind.INVALID_VALUE


def test_largest_id_reaches_the_reference_check(store):
    assert _kind(validators.validate_bug_create, {"title": "T", "project_id": 2**31 - 1}, store) is ErrorKind.INVALID_REFERENCE


def test_missing_fields_are_reported_together(store):
    with pytest.raises(ValidationError) as exc:
        validators.validate_bug_create({"description": "x"}, store)
    assert exc.value.kind is ErrorKind.MISSING_FIELDS
    assert sorted(exc.value.details["fields"]) == ["project_id", "title"]


def test_status_of_wrong_type_on_update(store):
    assert _kind(validators.validate_bug_update, {"status": None}, store) is ErrorKind.INVALID_FIELD_TYPE
    assert _kind(validators.validate_bug_update, {"status": 3}, store) is ErrorKind.INVALID_FIELD_TYPE


def test_login_and_password_change_bodies():
    creds = validators.validate_login({"email": " a@example.com ", "password": "pw"})
    assert creds.email == "a@example.com"
    assert _kind(validators.validate_login, {"email": "", "password": "pw"}) is ErrorKind.MISSING_FIELDS
    assert _kind(validators.validate_login, None) is ErrorKind.MISSING_FIELDS
    assert _kind(validators.validate_login, {"email": 5, "password": "pw"}) is ErrorKind.INVALID_FIELD_TYPE

    data = validators.validate_password_change({"current_password": "old", "new_password": "newpassword"})
    assert data.new_password == "newpassword"
    assert _kind(validators.validate_password_change, {"current_password": "old"}) is ErrorKind.MISSING_FIELDS


def test_read_models_load_from_rows(alice):
    assert schemas.UserRead.model_config["from_attributes"] is True
    assert schemas.UserRead.model_validate(alice).email == alice.email
