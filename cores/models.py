from django.db import models
from django.conf import settings


class AuditLog(models.Model):
    ACTION_CHOICES = [
        ('CREATE', 'Create'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('SUBMIT', 'Answers Submitted'),
        ('PUBLISH', 'Results Published'),
        ('GRADE', 'Gradebook Scores Saved'),
    ]

    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    target_model = models.CharField(max_length=50, help_text="e.g., Exam, Question, ExamResult")
    target_object_id = models.CharField(max_length=100, blank=True, null=True)
    branch_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    details = models.TextField(blank=True, help_text="Description of changes")
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.actor} - {self.action} - {self.timestamp}"

    @classmethod
    def record(cls, actor, action, target, details='', branch_id=None):
        """Write one audit row for ``target`` (a model instance)."""
        return cls.objects.create(
            actor=actor if actor is not None and actor.is_authenticated else None,
            action=action,
            target_model=target.__class__.__name__,
            target_object_id=str(target.pk),
            branch_id=branch_id if branch_id is not None else getattr(target, 'branch_id', None),
            details=details,
        )
