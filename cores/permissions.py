from rest_framework import permissions

from users.models import ADMIN, NEW_STUDENT, STUDENT, SUPER_ADMIN, TEACHER


class HasSchoolRole(permissions.BasePermission):
    """
    Allows access to authenticated users holding any of ``allowed_roles``.
    Subclasses only declare the role list.
    """
    allowed_roles = ()
    message = "Access denied. Insufficient permissions."

    def has_permission(self, request, view):
        # 1. User must be logged in
        if not request.user or not request.user.is_authenticated:
            return False

        # 2. Check Role
        return request.user.has_role(*self.allowed_roles)


class IsSchoolAdmin(HasSchoolRole):
    allowed_roles = (ADMIN, SUPER_ADMIN)


class IsStaffMember(HasSchoolRole):
    allowed_roles = (TEACHER, ADMIN, SUPER_ADMIN)


class IsTeacher(HasSchoolRole):
    allowed_roles = (TEACHER,)


class IsExamCandidate(HasSchoolRole):
    """Students and applicants sitting an exam."""
    allowed_roles = (STUDENT, NEW_STUDENT)


class IsEnrolledStudent(HasSchoolRole):
    allowed_roles = (STUDENT,)


class IsStaffOrStudent(HasSchoolRole):
    allowed_roles = (TEACHER, ADMIN, SUPER_ADMIN, STUDENT)
