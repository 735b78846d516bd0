from django.contrib import admin
from django.urls import path, include

# Import Views
from results.views import ExamResultsView, MyExamResultsView, PublishExamResultsView, SubmitAnswersView

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Authentication & Profile ---
    path('api/', include('users.urls')),

    # --- CBT Submission & Exam Results ---
    # Listed before the router so they are not taken for exam detail routes
    path('api/exams/answers/', SubmitAnswersView.as_view(), name='submit-answers'),
    path('api/exams/results/publish/', PublishExamResultsView.as_view(), name='publish-exam-results'),
    path('api/exams/results/me/', MyExamResultsView.as_view(), name='my-exam-results'),
    path('api/exams/<int:exam_id>/results/', ExamResultsView.as_view(), name='exam-results'),

    # --- Gradebook & Report Cards ---
    path('api/results/', include('results.urls')),

    # --- Audit Trail ---
    path('api/', include('cores.urls')),

    # --- Standard API Routes ---
    path('api/', include('exams.urls')),
]
