# cores/policy.py
"""
Single access policy for branch / class / subject / student scoped resources.

Views build a ``ResourceScope`` for the object they are about to read or
mutate and call ``require_access`` once, instead of repeating branch and
ownership checks inline.
"""
from dataclasses import dataclass
from typing import Optional

from users.models import ADMIN, NEW_STUDENT, STUDENT, SUPER_ADMIN, TEACHER

from .exceptions import Forbidden


@dataclass(frozen=True)
class ResourceScope:
    branch_id: Optional[int] = None
    class_id: Optional[int] = None
    subject_id: Optional[int] = None
    student_id: Optional[int] = None  # user id of the student the resource belongs to

    @classmethod
    def for_exam(cls, exam):
        return cls(branch_id=exam.branch_id, class_id=exam.school_class_id)

    @classmethod
    def for_class(cls, school_class):
        return cls(branch_id=school_class.branch_id, class_id=school_class.pk)


def staff_of(user):
    return getattr(user, 'staff_profile', None)


def student_of(user):
    return getattr(user, 'student_profile', None)


def _staff_can_access(actor, roles, scope):
    staff = staff_of(actor)
    if staff is None:
        return False
    if scope.branch_id is not None and staff.branch_id != scope.branch_id:
        return False

    if ADMIN in roles:
        return True

    if TEACHER in roles:
        if scope.subject_id is not None and staff.subjects.filter(pk=scope.subject_id).exists():
            return True
        if scope.class_id is not None and staff.classes.filter(pk=scope.class_id).exists():
            return True
        return scope.subject_id is None and scope.class_id is None and scope.student_id is None

    return False


def _student_can_access(actor, scope):
    if scope.student_id is not None and scope.student_id != actor.pk:
        return False

    if scope.class_id is not None:
        profile = student_of(actor)
        if profile is None or profile.school_class_id != scope.class_id:
            return False

    return scope.student_id is not None or scope.class_id is not None


def can_access(actor, scope):
    if actor is None or not actor.is_authenticated:
        return False

    roles = actor.role_names
    if SUPER_ADMIN in roles:
        return True

    if roles & {ADMIN, TEACHER} and _staff_can_access(actor, roles, scope):
        return True

    if roles & {STUDENT, NEW_STUDENT}:
        return _student_can_access(actor, scope)

    return False


def require_access(actor, scope, message=None):
    if not can_access(actor, scope):
        raise Forbidden(message)
