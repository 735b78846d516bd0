# school/models.py
from django.conf import settings
from django.db import models
from django.db.models import F


class Branch(models.Model):
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class Staff(models.Model):
    """A staff member and the branch that scopes what they may touch."""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='staff_profile')
    name = models.CharField(max_length=255)
    branch = models.ForeignKey(Branch, on_delete=models.PROTECT, related_name='staff')

    def __str__(self):
        return self.name


class SchoolClass(models.Model):
    name = models.CharField(max_length=100)
    arm = models.CharField(max_length=20, blank=True)
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='classes')
    # Form teacher
    teacher = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='classes')

    class Meta:
        verbose_name_plural = 'school classes'

    def __str__(self):
        return f"{self.name} {self.arm}".strip()


class ClassSubject(models.Model):
    """A subject taught to one class; the identity gradebook scores hang off."""
    name = models.CharField(max_length=100)
    school_class = models.ForeignKey(SchoolClass, on_delete=models.CASCADE, related_name='subjects')
    teacher = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='subjects')

    class Meta:
        unique_together = ('school_class', 'name')

    def __str__(self):
        return f"{self.name} ({self.school_class})"


class Student(models.Model):
    class Status(models.TextChoices):
        ENROLLED = "enrolled", "Enrolled"
        APPLICANT = "applicant", "Applicant"  # sits External (entrance) exams only

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='student_profile')
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    school_class = models.ForeignKey(SchoolClass, on_delete=models.PROTECT, related_name='students')
    branch = models.ForeignKey(Branch, on_delete=models.PROTECT, related_name='students')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ENROLLED)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def __str__(self):
        return self.full_name


class TermQuerySet(models.QuerySet):
    def active_for_branch(self, branch_id):
        """Active term for a branch, preferring a branch term over a global one."""
        return (
            self.filter(is_active=True)
            .filter(models.Q(branch_id=branch_id) | models.Q(branch__isnull=True))
            .order_by(F('branch_id').desc(nulls_last=True))
            .first()
        )


class Term(models.Model):
    name = models.CharField(max_length=50)          # e.g. "First Term"
    session = models.CharField(max_length=20)       # e.g. "2024/2025"
    # Null branch = term shared by every branch
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, null=True, blank=True, related_name='terms')
    start_date = models.DateField()
    end_date = models.DateField()
    next_term_begins = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=False)

    objects = TermQuerySet.as_manager()

    def __str__(self):
        return f"{self.name} {self.session}"
