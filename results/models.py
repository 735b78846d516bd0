# results/models.py
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from exams.models import Exam
from school.models import Branch, ClassSubject, SchoolClass, Staff, Student, Term


class ExamResult(models.Model):
    """One CBT submission: written once per (exam, student), then only published."""
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='results')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='exam_results')
    term = models.ForeignKey(Term, on_delete=models.SET_NULL, null=True, blank=True, related_name='exam_results')

    # Percentage 0-100
    score = models.DecimalField(max_digits=5, decimal_places=2)
    subject_scores = models.JSONField(default=dict, blank=True)
    total_questions = models.PositiveIntegerField()
    answered_questions = models.PositiveIntegerField()
    answers = models.JSONField(default=list)
    submitted_at = models.DateTimeField()

    published = models.BooleanField(default=False)
    published_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    published_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ('exam', 'student')
        ordering = ['-submitted_at']

    def __str__(self):
        return f"{self.student} - {self.exam.title} ({self.score})"


class SubjectScore(models.Model):
    """Gradebook row: one score per student, subject, term and assessment type."""
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='scores')
    school_class = models.ForeignKey(SchoolClass, on_delete=models.CASCADE, related_name='scores')
    class_subject = models.ForeignKey(ClassSubject, on_delete=models.CASCADE, related_name='scores')
    term = models.ForeignKey(Term, on_delete=models.CASCADE, related_name='scores')
    assessment_type = models.CharField(max_length=10, choices=Exam.AssessmentType.choices)
    score = models.DecimalField(
        max_digits=5, decimal_places=2, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )

    teacher = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='scores')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='scores')
    exam = models.ForeignKey(Exam, on_delete=models.SET_NULL, null=True, blank=True, related_name='gradebook_scores')

    published = models.BooleanField(default=False)
    published_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    published_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('student', 'class_subject', 'term', 'assessment_type')
        ordering = ['class_subject__name', 'assessment_type']

    def __str__(self):
        return f"{self.student} - {self.class_subject.name} {self.assessment_type}: {self.score}"
