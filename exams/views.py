from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from cores.exceptions import Forbidden, NoQuestions
from cores.permissions import IsExamCandidate, IsSchoolAdmin, IsTeacher
from cores.policy import ResourceScope, require_access, staff_of
from users.models import SUPER_ADMIN

from .models import Exam, ExamSubject, Question
from .serializers import (
    CandidateQuestionSerializer, ExamCreateSerializer, ExamListSerializer,
    ExamPaperSerializer, ExamSerializer, ExamUpdateSerializer, QuestionSerializer,
)
from .services import catalog
from .services.access import candidate_profile, ensure_questions_available, find_current_exam


def branch_scoped(queryset, user):
    """Restrict a queryset with a ``branch`` field to the staff member's branch."""
    if user.has_role(SUPER_ADMIN):
        return queryset
    staff = staff_of(user)
    if staff is None:
        return queryset.none()
    return queryset.filter(branch_id=staff.branch_id)


class ExamViewSet(viewsets.ModelViewSet):
    queryset = (
        Exam.objects.select_related('school_class', 'branch')
        .prefetch_related('subjects')
        .order_by('-start_time')
    )

    # Enable search on title and class name
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'school_class__name']

    def get_serializer_class(self):
        if self.action == 'create':
            return ExamCreateSerializer
        if self.action in ['update', 'partial_update']:
            return ExamUpdateSerializer
        if self.action in ['upcoming', 'pending']:
            return ExamListSerializer
        return ExamSerializer

    def get_permissions(self):
        if self.action == 'upcoming':
            return [permissions.AllowAny()]
        if self.action == 'taught':
            return [IsTeacher()]
        if self.action in ['pending', 'current', 'subject_questions']:
            return [IsExamCandidate()]
        return [IsSchoolAdmin()]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action in ['list', 'retrieve', 'update', 'partial_update', 'destroy']:
            queryset = branch_scoped(queryset, self.request.user)

        class_id = self.request.query_params.get('class_id')
        if class_id:
            queryset = queryset.filter(school_class_id=class_id)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        exam = catalog.create_exam(request.user, serializer.validated_data)
        return Response(ExamSerializer(exam).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        exam = self.get_object()
        serializer = self.get_serializer(data=request.data, partial=kwargs.get('partial', False))
        serializer.is_valid(raise_exception=True)
        exam = catalog.update_exam(request.user, exam.pk, serializer.validated_data)
        return Response(ExamSerializer(exam).data)

    def destroy(self, request, *args, **kwargs):
        exam = self.get_object()
        catalog.delete_exam(request.user, exam)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        """Public timetable of exams that have not started yet."""
        queryset = self.get_queryset().filter(start_time__gt=timezone.now()).order_by('start_time')
        branch_id = request.query_params.get('branch_id')
        if branch_id:
            queryset = queryset.filter(branch_id=branch_id)
        return Response(ExamListSerializer(queryset, many=True).data)

    @action(detail=False, methods=['get'])
    def taught(self, request):
        """Exams of the classes the teacher is form teacher of or teaches a subject in."""
        staff = staff_of(request.user)
        if staff is None:
            return Response([])
        queryset = self.get_queryset().filter(
            Q(school_class__teacher=staff) | Q(subjects__class_subject__teacher=staff)
        ).distinct()
        return Response(ExamSerializer(queryset, many=True).data)

    @action(detail=False, methods=['get'])
    def pending(self, request):
        """Exams of the candidate's class not yet submitted, missed ones first."""
        profile, kind = candidate_profile(request.user)
        exams = catalog.pending_exams_for(request.user, profile.school_class_id, kind)
        return Response(ExamListSerializer(exams.prefetch_related('subjects'), many=True).data)

    @action(detail=False, methods=['get'])
    def current(self, request):
        """The paper of the exam whose access window is open right now."""
        profile, kind = candidate_profile(request.user)
        exam = find_current_exam(profile.school_class_id, kind, timezone.now())
        if exam is None:
            raise NotFound("No current exam available for you at this time.")

        if not Question.objects.filter(subject__exam=exam).exists():
            raise NoQuestions()

        exam = Exam.objects.prefetch_related('subjects__questions').get(pk=exam.pk)
        return Response(ExamPaperSerializer(exam).data)

    @action(detail=True, methods=['get'], url_path=r'subjects/(?P<subject_id>[^/.]+)/questions')
    def subject_questions(self, request, pk=None, subject_id=None):
        exam = get_object_or_404(Exam, pk=pk)
        _, kind = candidate_profile(request.user)
        require_access(request.user, ResourceScope.for_exam(exam), "This exam is not for your class.")
        if exam.kind != kind:
            raise Forbidden("This exam is not for your class.")
        ensure_questions_available(exam, timezone.now())

        questions = catalog.questions_for_subject(exam, subject_id)
        if not questions.exists():
            raise NoQuestions("No questions found for this subject.")
        return Response(CandidateQuestionSerializer(questions, many=True).data)


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.select_related('subject__exam').order_by('-id')
    serializer_class = QuestionSerializer
    permission_classes = [IsSchoolAdmin]

    # Enable Search and Filtering for the Question Bank
    filter_backends = [filters.SearchFilter]
    search_fields = ['text', 'subject__title']

    # Add parsers to handle file uploads
    parser_classes = (JSONParser, MultiPartParser, FormParser)

    def get_queryset(self):
        queryset = super().get_queryset()
        queryset = self._scope(queryset)
        # Filter by Exam if provided ?exam_id=1
        exam_id = self.request.query_params.get('exam_id')
        if exam_id:
            queryset = queryset.filter(subject__exam_id=exam_id)
        return queryset

    def _scope(self, queryset):
        user = self.request.user
        if user.has_role(SUPER_ADMIN):
            return queryset
        staff = staff_of(user)
        if staff is None:
            return queryset.none()
        return queryset.filter(subject__exam__branch_id=staff.branch_id)

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = catalog.add_question(
            self.request.user, data['subject'], data['text'], data['options'], data['correct_option_index']
        )

    def perform_update(self, serializer):
        data = dict(serializer.validated_data)
        if 'subject' in data and data.pop('subject') != serializer.instance.subject:
            raise ValidationError({"subject": "A question cannot be moved to another exam subject."})
        serializer.instance = catalog.update_question(self.request.user, serializer.instance, **data)

    def perform_destroy(self, instance):
        catalog.delete_question(self.request.user, instance)

    @action(detail=False, methods=['post'], url_path='bulk-upload')
    def bulk_upload(self, request):
        """
        Upload questions via CSV into one exam subject.
        Form fields: ``subject_id`` and ``file`` (question_text, options, correct_answer).
        """
        file_obj = request.FILES.get('file')
        if not file_obj:
            raise ValidationError({"file": "No file uploaded"})

        subject_id = request.data.get('subject_id')
        if not subject_id:
            raise ValidationError({"subject_id": "This field is required."})
        exam_subject = get_object_or_404(ExamSubject.objects.select_related('exam'), pk=subject_id)

        created_count = catalog.bulk_upload_questions(request.user, exam_subject, file_obj)
        return Response(
            {"status": f"Successfully uploaded {created_count} questions", "created": created_count},
            status=status.HTTP_201_CREATED,
        )
