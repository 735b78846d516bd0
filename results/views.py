from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status, views
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response

from cores.exceptions import Forbidden
from cores.permissions import IsEnrolledStudent, IsExamCandidate, IsSchoolAdmin, IsStaffMember, IsStaffOrStudent
from cores.policy import ResourceScope, require_access, staff_of, student_of
from exams.models import Exam
from school.models import ClassSubject, SchoolClass, Student, Term
from users.models import ADMIN, STAFF_ROLES, SUPER_ADMIN

from .models import ExamResult, SubjectScore
from .serializers import (
    ExamResultSerializer, GradebookSaveSerializer, MyExamResultSerializer, PublishAllSerializer,
    PublishExamResultsSerializer, StudentScoreSerializer, SubjectScoreSerializer, SubmitAnswersSerializer,
)
from .services.ledger import (
    GRADEBOOK_FILTERS, delete_gradebook_score, list_gradebook_scores, publish_bulk, publish_exam_results,
    save_gradebook_scores, student_term_scores,
)
from .services.ranking import build_report_card, exam_position, ordinal
from .services.scoring import submit_answers


# --- CBT ---

class SubmitAnswersView(views.APIView):
    """Candidate hands in the answers for an exam. Score is stored unpublished."""
    permission_classes = [IsExamCandidate]

    def post(self, request):
        serializer = SubmitAnswersSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = submit_answers(
            serializer.validated_data['exam_id'],
            request.user,
            serializer.validated_data['answers'],
            timezone.now(),
        )
        return Response({"status": "Exam submitted successfully.", "result_id": result.pk})


class ExamResultsView(views.APIView):
    """All submissions to one exam; teachers only see students of their own classes."""
    permission_classes = [IsStaffMember]

    def get(self, request, exam_id):
        exam = get_object_or_404(Exam, pk=exam_id)
        results = ExamResult.objects.filter(exam=exam).select_related('student__student_profile')

        if request.user.has_role(ADMIN, SUPER_ADMIN):
            require_access(
                request.user, ResourceScope(branch_id=exam.branch_id),
                "You are not authorized to view results for this exam.",
            )
        else:
            staff = staff_of(request.user)
            if staff is None:
                raise Forbidden("You are not registered as a staff member.")
            class_ids = list(staff.classes.values_list('pk', flat=True))
            if not class_ids:
                raise Forbidden("You are not assigned to any class.")
            results = results.filter(student__student_profile__school_class_id__in=class_ids)

        return Response(ExamResultSerializer(results, many=True).data)


class PublishExamResultsView(views.APIView):
    permission_classes = [IsStaffMember]

    def put(self, request):
        serializer = PublishExamResultsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        count = publish_exam_results(
            serializer.validated_data['exam_id'],
            serializer.validated_data['class_id'],
            request.user,
            timezone.now(),
        )
        return Response({"message": "Results published successfully.", "published_count": count})


class MyExamResultsView(views.APIView):
    """The student's published CBT results for the active term, with class position."""
    permission_classes = [IsEnrolledStudent]

    def get(self, request):
        profile = student_of(request.user)
        if profile is None:
            raise NotFound("Student not found.")
        term = Term.objects.active_for_branch(profile.branch_id)
        if term is None:
            raise NotFound("No active term found for your branch.")

        results = (
            ExamResult.objects.filter(student=request.user, published=True, term=term)
            .select_related('exam', 'student__student_profile')
            .order_by('-exam__start_time')
        )
        positions = {result.pk: ordinal(exam_position(result)) for result in results}
        return Response(MyExamResultSerializer(results, many=True, context={'positions': positions}).data)


# --- Gradebook ---

class PublishAllResultsView(views.APIView):
    permission_classes = [IsSchoolAdmin]

    def post(self, request):
        serializer = PublishAllSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        count = publish_bulk(
            data['session'], data['term'], data['class_name'], data.get('arm'), request.user, timezone.now()
        )
        return Response({
            "message": "Results published successfully.",
            "published_count": count,
            "session": data['session'],
            "term": data['term'],
            "class_name": data['class_name'],
            "arm": data.get('arm') or None,
        })


class GradebookSaveView(views.APIView):
    permission_classes = [IsStaffMember]

    def post(self, request):
        serializer = GradebookSaveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        counts = save_gradebook_scores(
            request.user,
            data['class_id'],
            data['subject_id'],
            data['assessment_type'],
            data['scores'],
            data.get('exam_id'),
        )
        return Response({"message": "Results saved successfully.", **counts}, status=status.HTTP_200_OK)


class ResultListView(views.APIView):
    """Filtered gradebook listing, e.g. ?session=2029/2030&term=First Term&class_name=JSS1&arm=A"""
    permission_classes = [IsStaffMember]

    def get(self, request):
        filters = {key: request.query_params.get(key) or None for key in GRADEBOOK_FILTERS}
        filters['published_only'] = request.query_params.get('published_only') == 'true'

        scores = list_gradebook_scores(request.user, filters)
        data = SubjectScoreSerializer(scores, many=True).data
        return Response({"count": len(data), "filters": filters, "data": data})


class StudentResultsView(views.APIView):
    """All gradebook scores of one student for the active term."""
    permission_classes = [IsStaffOrStudent]

    def get(self, request, student_id):
        student = get_object_or_404(Student, pk=student_id)
        term, scores = student_term_scores(request.user, student)
        data = StudentScoreSerializer(scores, many=True).data
        return Response({"count": len(data), "term_id": term.pk if term else None, "data": data})


class ResultDetailView(views.APIView):
    permission_classes = [IsStaffMember]

    def delete(self, request, result_id):
        delete_gradebook_score(request.user, result_id)
        return Response({"message": "Result deleted successfully."})


class ClassSubjectResultsView(views.APIView):
    """Score sheet of one subject: every student of the class, with or without a score."""
    permission_classes = [IsStaffMember]

    def get(self, request, class_id, subject_id):
        assessment_type = request.query_params.get('assessment_type')
        if assessment_type not in Exam.AssessmentType.values:
            raise ValidationError({"assessment_type": "Must be one of: ca1, ca2, ca3, exam"})

        school_class = get_object_or_404(SchoolClass, pk=class_id)
        subject = ClassSubject.objects.filter(pk=subject_id, school_class=school_class).first()
        if subject is None:
            raise NotFound("Subject not found for this class.")
        require_access(
            request.user, ResourceScope(branch_id=school_class.branch_id, subject_id=subject.pk),
            "You can only view results for subjects you teach.",
        )

        term = Term.objects.active_for_branch(school_class.branch_id)
        if term is None:
            raise NotFound("No active term found for this branch.")

        scores = {
            row.student_id: row
            for row in SubjectScore.objects.filter(class_subject=subject, term=term, assessment_type=assessment_type)
        }
        rows = []
        for student in school_class.students.order_by('last_name', 'first_name'):
            score = scores.get(student.pk)
            rows.append({
                "student_id": student.pk,
                "first_name": student.first_name,
                "last_name": student.last_name,
                "score": score.score if score else None,
                "result_id": score.pk if score else None,
                "exam_id": score.exam_id if score else None,
                "published": score.published if score else False,
            })
        return Response({"count": len(rows), "term_id": term.pk, "data": rows})


# --- Report cards ---

def _term_from_query(request):
    term_id = request.query_params.get('term_id')
    if not term_id:
        raise ValidationError({"term_id": "The term_id query parameter is required."})
    term = Term.objects.filter(pk=term_id).first()
    if term is None:
        raise NotFound("Term not found.")
    return term


class ReportCardView(views.APIView):
    permission_classes = [IsStaffOrStudent]

    def get(self, request, student_id):
        student = get_object_or_404(Student.objects.select_related('school_class'), pk=student_id)
        require_access(
            request.user,
            ResourceScope(branch_id=student.branch_id, class_id=student.school_class_id, student_id=student.user_id),
            "You can only view results you are responsible for.",
        )
        term = _term_from_query(request)

        # Unpublished scores are visible to staff only
        published_only = not request.user.has_role(*STAFF_ROLES)
        return Response(build_report_card(student, term, published_only=published_only))


class MyReportCardView(views.APIView):
    permission_classes = [IsEnrolledStudent]

    def get(self, request):
        student = student_of(request.user)
        if student is None:
            raise NotFound("Student not found.")
        term = _term_from_query(request)
        return Response(build_report_card(student, term, published_only=True))
