import pytest

from cores.exceptions import Forbidden
from cores.policy import ResourceScope, can_access, require_access
from school.models import Staff
from users.models import TEACHER

from conftest import make_user


@pytest.mark.django_db
def test_super_admin_reaches_everything(super_admin, other_branch):
    assert can_access(super_admin, ResourceScope(branch_id=other_branch.pk, class_id=999))


@pytest.mark.django_db
def test_admin_is_bound_to_branch(admin_user, school_class, branch, other_branch):
    assert can_access(admin_user, ResourceScope.for_class(school_class))
    assert can_access(admin_user, ResourceScope(branch_id=branch.pk))
    assert not can_access(admin_user, ResourceScope(branch_id=other_branch.pk))


@pytest.mark.django_db
def test_teacher_scope(teacher, school_class, other_class, maths, english):
    user = teacher.user

    # form teacher of school_class, teaches maths
    assert can_access(user, ResourceScope.for_class(school_class))
    assert can_access(user, ResourceScope(branch_id=school_class.branch_id, subject_id=maths.pk))
    assert not can_access(user, ResourceScope(branch_id=school_class.branch_id, subject_id=english.pk))
    assert not can_access(user, ResourceScope.for_class(other_class))
    assert can_access(user, ResourceScope(branch_id=school_class.branch_id))


@pytest.mark.django_db
def test_teacher_of_other_branch_is_refused(school_class, other_branch):
    user = make_user("visitor@school.test", TEACHER)
    Staff.objects.create(user=user, name="Visitor", branch=other_branch)

    assert not can_access(user, ResourceScope(branch_id=school_class.branch_id))


@pytest.mark.django_db
def test_student_sees_only_self_and_own_class(student_user, make_student, school_class, other_class):
    classmate = make_student()

    assert can_access(student_user, ResourceScope(class_id=school_class.pk))
    assert can_access(student_user, ResourceScope(class_id=school_class.pk, student_id=student_user.pk))
    assert not can_access(student_user, ResourceScope(class_id=school_class.pk, student_id=classmate.pk))
    assert not can_access(student_user, ResourceScope(class_id=other_class.pk))
    assert not can_access(student_user, ResourceScope(branch_id=school_class.branch_id))


@pytest.mark.django_db
def test_require_access_raises_forbidden(student_user, other_class):
    with pytest.raises(Forbidden) as excinfo:
        require_access(student_user, ResourceScope(class_id=other_class.pk), "Not your class.")

    assert str(excinfo.value.detail) == "Not your class."
    assert excinfo.value.status_code == 403


@pytest.mark.django_db
def test_user_without_roles_is_refused(branch):
    nobody = make_user("nobody@school.test")

    assert not can_access(nobody, ResourceScope(branch_id=branch.pk))
