# results/services/ledger.py
"""
Publication and manual upkeep of stored results.

Publishing only ever flips ``published`` from False to True, so repeating a
call changes nothing and reports 0 rows.
"""
import logging

from django.db import transaction
from rest_framework.exceptions import NotFound, ValidationError

from cores.exceptions import Forbidden
from cores.models import AuditLog
from cores.policy import ResourceScope, require_access, staff_of
from exams.models import Exam
from results.models import ExamResult, SubjectScore
from school.models import ClassSubject, SchoolClass, Student, Term
from users.models import ADMIN, SUPER_ADMIN

logger = logging.getLogger(__name__)


def _published_fields(publisher, now):
    return {'published': True, 'published_by': publisher, 'published_at': now}


@transaction.atomic
def publish_exam_results(exam_id, class_id, publisher, now):
    """Publish the unpublished results of one exam for the students of one class."""
    exam = Exam.objects.filter(pk=exam_id).first()
    if exam is None:
        raise NotFound("Exam not found.")
    school_class = SchoolClass.objects.filter(pk=class_id).first()
    if school_class is None:
        raise NotFound("Class not found.")

    require_access(
        publisher, ResourceScope.for_class(school_class),
        "You are not authorized to publish results for this class.",
    )

    count = ExamResult.objects.filter(
        exam=exam,
        published=False,
        student__student_profile__school_class=school_class,
    ).update(**_published_fields(publisher, now))

    if count:
        AuditLog.record(
            publisher, 'PUBLISH', exam, f"Published {count} results of '{exam.title}' for {school_class}"
        )
    logger.info("Published %s results of exam %s for class %s", count, exam.pk, school_class.pk)
    return count


def _resolve_class(class_name, arm, publisher):
    classes = SchoolClass.objects.filter(name=class_name)
    if arm:
        classes = classes.filter(arm=arm)

    staff = staff_of(publisher)
    school_class = None
    if staff is not None:
        school_class = classes.filter(branch_id=staff.branch_id).first()
    if school_class is None:
        school_class = classes.order_by('pk').first()

    if school_class is None:
        arm_msg = f' with arm "{arm}"' if arm else ''
        raise NotFound(f'Class "{class_name}"{arm_msg} not found.')
    return school_class


@transaction.atomic
def publish_bulk(session, term_name, class_name, arm, publisher, now):
    """
    Publish every unpublished gradebook score and exam result of one class in
    one term. Returns the number of rows changed.
    """
    term = Term.objects.filter(name=term_name, session=session).order_by('pk').first()
    if term is None:
        raise NotFound(f'Term "{term_name}" with session "{session}" not found.')

    school_class = _resolve_class(class_name, arm, publisher)
    require_access(
        publisher, ResourceScope(branch_id=school_class.branch_id),
        "Admins can only publish results for their own branch.",
    )

    fields = _published_fields(publisher, now)
    scores = SubjectScore.objects.filter(school_class=school_class, term=term, published=False).update(**fields)
    results = ExamResult.objects.filter(exam__school_class=school_class, term=term, published=False).update(**fields)
    total = scores + results

    if total:
        AuditLog.record(
            publisher, 'PUBLISH', school_class,
            f"Published {scores} scores and {results} exam results for {term}",
        )
    logger.info(
        "Bulk publish for class %s, term %s: %s scores, %s exam results", school_class.pk, term.pk, scores, results
    )
    return total


@transaction.atomic
def save_gradebook_scores(actor, class_id, subject_id, assessment_type, scores, exam_id=None):
    """
    Insert or overwrite gradebook scores for one subject of one class.
    ``scores`` is a list of ``{"student_id", "score"}`` with scores already in 0-100.
    """
    school_class = SchoolClass.objects.select_for_update().filter(pk=class_id).first()
    if school_class is None:
        raise NotFound("Class not found.")
    subject = ClassSubject.objects.filter(pk=subject_id).first()
    if subject is None:
        raise NotFound("Subject not found.")
    if subject.school_class_id != school_class.pk:
        raise ValidationError({"subject_id": "Subject does not belong to the specified class."})

    require_access(
        actor, ResourceScope(branch_id=school_class.branch_id, subject_id=subject.pk),
        "You can only save results for subjects you teach.",
    )

    term = Term.objects.active_for_branch(school_class.branch_id)
    if term is None:
        raise NotFound("No active term found for this branch.")

    student_ids = [entry['student_id'] for entry in scores]
    if len(set(student_ids)) != len(student_ids):
        raise ValidationError({"scores": "A student appears more than once."})
    students = Student.objects.in_bulk(student_ids)
    if len(students) != len(student_ids) or any(s.school_class_id != school_class.pk for s in students.values()):
        raise ValidationError({"scores": "One or more students not found in the specified class."})

    exam = None
    if exam_id is not None:
        exam = Exam.objects.filter(pk=exam_id, school_class=school_class).first()
        if exam is None:
            raise ValidationError({"exam_id": "Exam not found for this class."})

    staff = staff_of(actor)
    inserted = updated = 0
    for entry in scores:
        _, created = SubjectScore.objects.update_or_create(
            student=students[entry['student_id']],
            class_subject=subject,
            term=term,
            assessment_type=assessment_type,
            defaults={
                'score': entry['score'],
                'school_class': school_class,
                'teacher': staff,
                'branch_id': school_class.branch_id,
                'exam': exam,
            },
        )
        if created:
            inserted += 1
        else:
            updated += 1

    AuditLog.record(
        actor, 'GRADE', subject,
        f"Saved {assessment_type} scores for {len(scores)} students", branch_id=school_class.branch_id,
    )
    logger.info(
        "Gradebook %s for subject %s: %s inserted, %s updated", assessment_type, subject.pk, inserted, updated
    )
    return {"inserted": inserted, "updated": updated, "total": len(scores)}


# --- Gradebook reads and removal ---

GRADEBOOK_FILTERS = {
    'session': 'term__session',
    'term': 'term__name',
    'class_name': 'school_class__name',
    'arm': 'school_class__arm',
    'class_id': 'school_class_id',
    'subject_id': 'class_subject_id',
    'assessment_type': 'assessment_type',
}


def list_gradebook_scores(actor, filters):
    """
    Gradebook rows visible to ``actor`` matching ``filters`` (keys of
    ``GRADEBOOK_FILTERS`` plus ``published_only``). Admins see their branch,
    teachers the subjects they teach.
    """
    scores = SubjectScore.objects.select_related(
        'student', 'school_class', 'class_subject', 'term', 'teacher', 'published_by'
    )

    if not actor.has_role(SUPER_ADMIN):
        staff = staff_of(actor)
        if staff is None:
            raise Forbidden("Staff record not found.")
        scores = scores.filter(branch_id=staff.branch_id)
        if not actor.has_role(ADMIN):
            scores = scores.filter(class_subject__teacher=staff)

    for key, lookup in GRADEBOOK_FILTERS.items():
        value = filters.get(key)
        if value not in (None, ''):
            scores = scores.filter(**{lookup: value})
    if filters.get('published_only'):
        scores = scores.filter(published=True)

    return scores.order_by('student__last_name', 'student__first_name', 'class_subject__name', 'assessment_type')


def student_term_scores(actor, student):
    """Every gradebook row of ``student`` in the active term of their branch."""
    require_access(
        actor,
        ResourceScope(branch_id=student.branch_id, class_id=student.school_class_id, student_id=student.user_id),
        "You can only view results you are responsible for.",
    )
    term = Term.objects.active_for_branch(student.branch_id)
    if term is None:
        return None, SubjectScore.objects.none()

    scores = (
        SubjectScore.objects.filter(student=student, term=term)
        .select_related('class_subject', 'teacher')
        .order_by('class_subject__name', 'assessment_type')
    )
    return term, scores


@transaction.atomic
def delete_gradebook_score(actor, score_id):
    """
    Remove one gradebook row. Admins may delete within their branch; teachers
    only rows they entered for a subject they teach.
    """
    score = SubjectScore.objects.select_for_update().select_related('class_subject').filter(pk=score_id).first()
    if score is None:
        raise NotFound("Result not found.")

    staff = staff_of(actor)
    if staff is None and not actor.has_role(SUPER_ADMIN):
        raise Forbidden("Staff record not found.")

    if actor.has_role(ADMIN, SUPER_ADMIN):
        require_access(
            actor, ResourceScope(branch_id=score.branch_id),
            "Admins can only delete results for their own branch.",
        )
    else:
        require_access(
            actor, ResourceScope(branch_id=score.branch_id, subject_id=score.class_subject_id),
            "You can only delete results you created for subjects you teach.",
        )
        if score.teacher_id != staff.pk:
            raise Forbidden("You can only delete results you created for subjects you teach.")

    AuditLog.record(
        actor, 'DELETE', score,
        f"Deleted {score.assessment_type} score of student {score.student_id} in {score.class_subject.name}",
    )
    score.delete()
    logger.info("Gradebook row %s deleted by user %s", score_id, actor.pk)
