from django.contrib import admin

from .models import ExamResult, SubjectScore


@admin.register(ExamResult)
class ExamResultAdmin(admin.ModelAdmin):
    list_display = ('student', 'exam', 'score', 'term', 'submitted_at', 'published')
    list_filter = ('published', 'term')
    readonly_fields = ('answers', 'subject_scores')


@admin.register(SubjectScore)
class SubjectScoreAdmin(admin.ModelAdmin):
    list_display = ('student', 'class_subject', 'assessment_type', 'score', 'term', 'published')
    list_filter = ('assessment_type', 'published', 'term', 'branch')
