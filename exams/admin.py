from django.contrib import admin

# Register your models here.
from .models import Exam, ExamSubject, Question


class QuestionInline(admin.TabularInline):
    model = Question
    extra = 0


@admin.register(ExamSubject)
class ExamSubjectAdmin(admin.ModelAdmin):
    list_display = ('title', 'exam')
    inlines = [QuestionInline]


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ('title', 'kind', 'assessment_type', 'school_class', 'start_time', 'duration_minutes')
    list_filter = ('kind', 'branch')
