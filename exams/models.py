# exams/models.py
from datetime import timedelta

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from school.models import Branch, ClassSubject, SchoolClass


class Exam(models.Model):
    class Kind(models.TextChoices):
        INTERNAL = "Internal", "Internal"  # enrolled students
        EXTERNAL = "External", "External"  # entrance / placement

    class AssessmentType(models.TextChoices):
        CA1 = "ca1", "First CA"
        CA2 = "ca2", "Second CA"
        CA3 = "ca3", "Third CA"
        EXAM = "exam", "Examination"

    class SubjectMode(models.TextChoices):
        SINGLE = "Single-Subject", "Single Subject"
        MULTI = "Multi-Subject", "Multi Subject"

    title = models.CharField(max_length=255)
    kind = models.CharField(max_length=10, choices=Kind.choices)
    # Only Internal exams feed the gradebook
    assessment_type = models.CharField(max_length=10, choices=AssessmentType.choices, null=True, blank=True)
    subject_mode = models.CharField(max_length=20, choices=SubjectMode.choices)
    class_subject = models.ForeignKey(
        ClassSubject, on_delete=models.SET_NULL, null=True, blank=True, related_name='single_subject_exams'
    )

    school_class = models.ForeignKey(SchoolClass, on_delete=models.CASCADE, related_name='exams')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='exams')

    start_time = models.DateTimeField(db_index=True)
    duration_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='exams_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_time']
        indexes = [models.Index(fields=['school_class', 'start_time'])]

    def __str__(self):
        return self.title

    @property
    def end_time(self):
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def window_opens_at(self):
        return self.start_time - timedelta(minutes=settings.CBT_EXAM_PREWINDOW_MINUTES)

    def has_results(self):
        return self.results.exists()


class ExamSubject(models.Model):
    """A subject section of one exam paper."""
    exam = models.ForeignKey(Exam, related_name='subjects', on_delete=models.CASCADE)
    class_subject = models.ForeignKey(ClassSubject, related_name='exam_sections', on_delete=models.PROTECT)
    title = models.CharField(max_length=100)

    class Meta:
        unique_together = ('exam', 'class_subject')
        ordering = ['title']

    def __str__(self):
        return f"{self.exam.title} / {self.title}"


class Question(models.Model):
    subject = models.ForeignKey(ExamSubject, related_name='questions', on_delete=models.CASCADE)
    text = models.TextField()
    options = models.JSONField(default=list)
    # Zero-based index into options
    correct_option_index = models.PositiveSmallIntegerField()

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.text[:50]}..."
