# exams/services/catalog.py
"""
Exam catalog: creating, editing and reading exams and their question sets.

All writes run in one transaction and hold a row lock on the class being
scheduled, so the overlap check and the insert cannot interleave with another
writer for the same class.
"""
import csv
import io
import logging

from django.db import transaction
from rest_framework.exceptions import NotFound, ValidationError

from cores.exceptions import ExamLocked
from cores.models import AuditLog
from cores.policy import ResourceScope, require_access
from exams.models import Exam, ExamSubject, Question
from school.models import ClassSubject, SchoolClass

from .scheduling import ensure_no_conflict

logger = logging.getLogger(__name__)


# --- Validation helpers ---

def clean_question(text, options, correct_option_index):
    if not text or not str(text).strip():
        raise ValidationError({"text": "Question text is required."})
    if not isinstance(options, list) or len(options) < 2:
        raise ValidationError({"options": "A question needs at least two options."})
    if any(not isinstance(opt, str) or not opt.strip() for opt in options):
        raise ValidationError({"options": "Options must be non-empty strings."})
    if (
        isinstance(correct_option_index, bool)
        or not isinstance(correct_option_index, int)
        or not 0 <= correct_option_index < len(options)
    ):
        raise ValidationError({
            "correct_option_index": f"Must be an index between 0 and {len(options) - 1}."
        })


def ensure_questions_mutable(exam):
    # Same row lock the submission path takes before scoring
    Exam.objects.select_for_update().get(pk=exam.pk)
    if exam.has_results():
        raise ExamLocked()


def _lock_class(class_id):
    school_class = SchoolClass.objects.select_for_update().filter(pk=class_id).first()
    if school_class is None:
        raise NotFound("Class not found.")
    return school_class


def resolve_class_subject(school_class, class_subject_id):
    """
    Map an incoming subject id onto the subject of ``school_class``.
    A subject picked from another class is swapped for the same-named subject
    of the target class.
    """
    subject = ClassSubject.objects.filter(pk=class_subject_id).first()
    if subject is None:
        raise ValidationError({"subjects": f"Invalid class_subject_id: {class_subject_id}"})

    if subject.school_class_id == school_class.pk:
        return subject

    match = ClassSubject.objects.filter(school_class=school_class, name=subject.name).first()
    if match is None:
        raise ValidationError({
            "subjects": (
                f"Subject '{subject.name}' exists in the source class but was not found "
                f"in the target class (ID: {school_class.pk}). Please ensure subjects are synced."
            )
        })
    return match


# --- Writes ---

@transaction.atomic
def create_exam(actor, data):
    """
    ``data`` is the validated payload of ``ExamCreateSerializer``:
    title, kind, assessment_type, subject_mode, class_id, start_time,
    duration_minutes and ``subjects`` = [{class_subject_id, questions}].
    """
    school_class = _lock_class(data['class_id'])
    require_access(actor, ResourceScope.for_class(school_class), "You cannot create exams for this class.")

    sections = []
    seen = set()
    for section in data['subjects']:
        class_subject = resolve_class_subject(school_class, section['class_subject_id'])
        if class_subject.pk in seen:
            raise ValidationError({"subjects": f"Subject '{class_subject.name}' is listed more than once."})
        seen.add(class_subject.pk)
        sections.append((class_subject, section['questions']))

    subject_mode = data['subject_mode']
    if subject_mode == Exam.SubjectMode.SINGLE and len(sections) != 1:
        raise ValidationError({"subjects": "A Single-Subject exam must have exactly one subject."})

    ensure_no_conflict(school_class.pk, data['start_time'], data['duration_minutes'])

    kind = data['kind']
    exam = Exam.objects.create(
        title=data['title'],
        kind=kind,
        assessment_type=data.get('assessment_type') if kind == Exam.Kind.INTERNAL else None,
        subject_mode=subject_mode,
        class_subject=sections[0][0] if subject_mode == Exam.SubjectMode.SINGLE else None,
        school_class=school_class,
        branch_id=school_class.branch_id,
        start_time=data['start_time'],
        duration_minutes=data['duration_minutes'],
        created_by=actor,
    )

    question_count = 0
    for class_subject, questions in sections:
        exam_subject = ExamSubject.objects.create(exam=exam, class_subject=class_subject, title=class_subject.name)
        Question.objects.bulk_create([
            Question(
                subject=exam_subject,
                text=q['text'],
                options=q['options'],
                correct_option_index=q['correct_option_index'],
            )
            for q in questions
        ])
        question_count += len(questions)

    AuditLog.record(actor, 'CREATE', exam, f"Created exam '{exam.title}' with {question_count} questions")
    logger.info("Exam %s created for class %s by user %s", exam.pk, school_class.pk, actor.pk)
    return exam


@transaction.atomic
def update_exam(actor, exam_id, data):
    """Edit title / start time / duration, re-checking the schedule without the exam itself."""
    exam = Exam.objects.filter(pk=exam_id).first()
    if exam is None:
        raise NotFound("Exam not found.")
    require_access(actor, ResourceScope.for_exam(exam), "You are not authorized to update this exam.")

    _lock_class(exam.school_class_id)
    exam = Exam.objects.select_for_update().get(pk=exam_id)

    start_time = data.get('start_time', exam.start_time)
    duration = data.get('duration_minutes', exam.duration_minutes)
    if start_time != exam.start_time or duration != exam.duration_minutes:
        ensure_no_conflict(exam.school_class_id, start_time, duration, exclude_exam_id=exam.pk)

    exam.title = data.get('title', exam.title)
    exam.start_time = start_time
    exam.duration_minutes = duration
    exam.save(update_fields=['title', 'start_time', 'duration_minutes', 'updated_at'])

    AuditLog.record(actor, 'UPDATE', exam, f"Updated exam '{exam.title}'")
    logger.info("Exam %s updated by user %s", exam.pk, actor.pk)
    return exam


@transaction.atomic
def delete_exam(actor, exam):
    require_access(actor, ResourceScope.for_exam(exam), "You are not authorized to delete this exam.")
    ensure_questions_mutable(exam)

    AuditLog.record(actor, 'DELETE', exam, f"Deleted exam '{exam.title}'")
    logger.info("Exam %s deleted by user %s", exam.pk, actor.pk)
    exam.delete()


@transaction.atomic
def add_question(actor, exam_subject, text, options, correct_option_index):
    exam = exam_subject.exam
    require_access(actor, ResourceScope.for_exam(exam))
    ensure_questions_mutable(exam)
    clean_question(text, options, correct_option_index)

    question = Question.objects.create(
        subject=exam_subject, text=text, options=options, correct_option_index=correct_option_index
    )
    AuditLog.record(actor, 'CREATE', question, f"Added question to '{exam.title}'", branch_id=exam.branch_id)
    return question


@transaction.atomic
def update_question(actor, question, **changes):
    exam = question.subject.exam
    require_access(actor, ResourceScope.for_exam(exam))
    ensure_questions_mutable(exam)

    for field in ('text', 'options', 'correct_option_index'):
        if field in changes:
            setattr(question, field, changes[field])
    clean_question(question.text, question.options, question.correct_option_index)
    question.save()

    AuditLog.record(actor, 'UPDATE', question, f"Edited question in '{exam.title}'", branch_id=exam.branch_id)
    return question


@transaction.atomic
def delete_question(actor, question):
    exam = question.subject.exam
    require_access(actor, ResourceScope.for_exam(exam))
    ensure_questions_mutable(exam)

    AuditLog.record(actor, 'DELETE', question, f"Removed question from '{exam.title}'", branch_id=exam.branch_id)
    question.delete()


@transaction.atomic
def bulk_upload_questions(actor, exam_subject, file_obj):
    """
    Upload questions via CSV.
    Expected CSV Header: question_text, options, correct_answer
    ``options`` is pipe separated; ``correct_answer`` is the text of the right option.
    """
    exam = exam_subject.exam
    require_access(actor, ResourceScope.for_exam(exam))
    ensure_questions_mutable(exam)

    try:
        decoded_file = file_obj.read().decode('utf-8')
    except UnicodeDecodeError:
        raise ValidationError({"file": "The file must be UTF-8 encoded CSV."})
    reader = csv.DictReader(io.StringIO(decoded_file))

    questions = []
    for line_no, row in enumerate(reader, start=2):
        options = [opt.strip() for opt in (row.get('options') or '').split('|') if opt.strip()]
        correct_ans_text = (row.get('correct_answer') or '').strip().lower()
        matches = [i for i, opt in enumerate(options) if opt.lower() == correct_ans_text]
        if not matches:
            raise ValidationError({"file": f"Row {line_no}: correct_answer does not match any option."})

        text = (row.get('question_text') or '').strip()
        try:
            clean_question(text, options, matches[0])
        except ValidationError as exc:
            messages = "; ".join(str(m) for msgs in exc.detail.values() for m in msgs)
            raise ValidationError({"file": f"Row {line_no}: {messages}"})
        questions.append(Question(subject=exam_subject, text=text, options=options, correct_option_index=matches[0]))

    if not questions:
        raise ValidationError({"file": "The file contains no questions."})

    Question.objects.bulk_create(questions)
    AuditLog.record(
        actor, 'CREATE', exam, f"Uploaded {len(questions)} questions to '{exam_subject.title}'"
    )
    logger.info("Uploaded %s questions to exam subject %s", len(questions), exam_subject.pk)
    return len(questions)


# --- Reads ---

def questions_for_subject(exam, subject_id):
    exam_subject = exam.subjects.filter(pk=subject_id).first()
    if exam_subject is None:
        raise NotFound("Subject not found for this exam.")
    return exam_subject.questions.all()


def answer_key(exam):
    """``{question_id: (correct_option_index, exam_subject_id)}`` for every question of the exam."""
    rows = Question.objects.filter(subject__exam=exam).values_list('id', 'correct_option_index', 'subject_id')
    return {qid: (correct, subject_id) for qid, correct, subject_id in rows}


def pending_exams_for(user, class_id, kind):
    """Exams of the class the user has not yet submitted, oldest first."""
    return (
        Exam.objects.filter(school_class_id=class_id, kind=kind)
        .exclude(results__student=user)
        .select_related('school_class', 'branch')
        .order_by('start_time')
    )
