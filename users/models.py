# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class Role(models.Model):
    class Name(models.TextChoices):
        SUPER_ADMIN = "SuperAdmin", "Super Admin"
        ADMIN = "Admin", "Admin"
        TEACHER = "Teacher", "Teacher"
        STUDENT = "Student", "Student"
        NEW_STUDENT = "NewStudent", "New Student"  # applicant sitting an entrance exam

    name = models.CharField(max_length=20, choices=Name.choices, unique=True)

    def __str__(self):
        return self.name


class User(AbstractUser):
    # Enforce unique email for authentication
    email = models.EmailField(unique=True)

    roles = models.ManyToManyField(Role, related_name="users", blank=True)
    phone_number = models.CharField(max_length=15, blank=True)

    # Set email as the main field for authentication
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username', 'first_name', 'last_name']

    def __str__(self):
        return self.email

    @property
    def role_names(self):
        from .roles import get_roles
        return get_roles(self)

    def has_role(self, *names):
        return any(str(name) in self.role_names for name in names)


SUPER_ADMIN = Role.Name.SUPER_ADMIN.value
ADMIN = Role.Name.ADMIN.value
TEACHER = Role.Name.TEACHER.value
STUDENT = Role.Name.STUDENT.value
NEW_STUDENT = Role.Name.NEW_STUDENT.value
STAFF_ROLES = frozenset({SUPER_ADMIN, ADMIN, TEACHER})
