from django.urls import path

from .views import (
    ClassSubjectResultsView, GradebookSaveView, MyReportCardView, PublishAllResultsView, ReportCardView,
    ResultDetailView, ResultListView, StudentResultsView,
)

urlpatterns = [
    path('', ResultListView.as_view(), name='results-list'),
    path('publish-all/', PublishAllResultsView.as_view(), name='results-publish-all'),
    path('save/', GradebookSaveView.as_view(), name='results-save'),
    path(
        'class/<int:class_id>/subject/<int:subject_id>/',
        ClassSubjectResultsView.as_view(),
        name='results-class-subject',
    ),
    path('student/<int:student_id>/', StudentResultsView.as_view(), name='student-results'),
    path('student/<int:student_id>/report-card/', ReportCardView.as_view(), name='student-report-card'),
    path('me/report-card/', MyReportCardView.as_view(), name='my-report-card'),
    path('<int:result_id>/', ResultDetailView.as_view(), name='results-detail'),
]
