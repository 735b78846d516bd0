import pytest
from django.core.cache import cache

from users.models import ADMIN, STUDENT, TEACHER, Role
from users.roles import get_roles, role_cache_key

from conftest import make_user


@pytest.mark.django_db
def test_roles_are_cached():
    user = make_user("cached@school.test", TEACHER)

    assert get_roles(user) == frozenset({TEACHER})
    assert cache.get(role_cache_key(user.pk)) == frozenset({TEACHER})


@pytest.mark.django_db
def test_adding_and_removing_roles_invalidates_cache():
    user = make_user("mutable@school.test", TEACHER)
    assert user.has_role(TEACHER)

    admin_role, _ = Role.objects.get_or_create(name=ADMIN)
    user.roles.add(admin_role)
    assert user.role_names == frozenset({TEACHER, ADMIN})

    user.roles.remove(admin_role)
    assert not user.has_role(ADMIN)

    user.roles.clear()
    assert user.role_names == frozenset()


@pytest.mark.django_db
def test_changing_membership_from_the_role_side_invalidates_cache():
    user = make_user("reverse@school.test")
    assert get_roles(user) == frozenset()

    student_role, _ = Role.objects.get_or_create(name=STUDENT)
    student_role.users.add(user)
    assert user.has_role(STUDENT)

    student_role.users.clear()
    assert not user.has_role(STUDENT)


@pytest.mark.django_db
def test_has_role_accepts_enum_members():
    user = make_user("enum@school.test", ADMIN)

    assert user.has_role(Role.Name.ADMIN)
    assert not user.has_role(Role.Name.SUPER_ADMIN, Role.Name.TEACHER)
