import pytest

from bugtracker.dependency_guard import check_dependents, guard_delete
from bugtracker.errors import ConflictError
from bugtracker.models import Bug, Comment, Project, User


def test_project_dependents_are_its_bugs(store, alice, make_project, make_bug):
    project = make_project(alice)
    for i in range(3):
        make_bug(project, alice, title=f"bug {i}")

    dependents = check_dependents(store, Project, project.id)
    assert (dependents.kind, dependents.count) == ("bugs", 3)


def test_project_delete_needs_force_when_bugs_exist(store, alice, make_project, make_bug):
    project = make_project(alice)
    make_bug(project, alice)

    with pytest.raises(ConflictError) as exc:
        guard_delete(store, Project, project.id)
    assert exc.value.details == {"bug_count": 1}

    assert guard_delete(store, Project, project.id, force=True).count == 1


def test_empty_project_deletes_without_force(store, alice, make_project):
    project = make_project(alice)
    assert guard_delete(store, Project, project.id).count == 0


def test_bug_delete_needs_force_when_comments_exist(store, alice, make_project, make_bug, make_comment):
    bug = make_bug(make_project(alice), alice)
    make_comment(bug, alice)
    make_comment(bug, alice)

    with pytest.raises(ConflictError) as exc:
        guard_delete(store, Bug, bug.id)
    assert exc.value.details == {"comment_count": 2}
    assert guard_delete(store, Bug, bug.id, force=True).count == 2


def test_user_with_dependents_is_refused_even_with_force(store, alice, bob, make_project, make_bug, make_comment):
    project = make_project(alice)
    bug = make_bug(project, bob, assigned_to=alice.id)
    make_comment(bug, alice)

    dependents = check_dependents(store, User, alice.id)
    assert dependents.breakdown == {"projects": 1, "assigned_bugs": 1, "comments": 1}

    with pytest.raises(ConflictError):
        guard_delete(store, User, alice.id, force=True)


def test_reported_bugs_do_not_block_user_delete(store, alice, bob, make_project, make_bug):
    make_bug(make_project(alice), bob)
    assert guard_delete(store, User, bob.id).count == 0


def test_unknown_entity_type():
    with pytest.raises(TypeError):
        check_dependents(None, Comment, 1)
