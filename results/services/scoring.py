# results/services/scoring.py
"""
Scoring of CBT submissions.

``score_answers`` is a pure function of the answer key and the submitted
answers. ``submit_answers`` wraps it with the window, duplicate and
question-count checks and persists the result in one transaction.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction
from rest_framework.exceptions import NotFound

from cores.exceptions import AlreadySubmitted, Forbidden, NoQuestions
from cores.models import AuditLog
from cores.policy import ResourceScope, require_access
from exams.models import Exam
from exams.services.access import candidate_profile, ensure_submission_allowed
from exams.services.catalog import answer_key
from results.models import ExamResult, SubjectScore
from school.models import Student, Term

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


def percentage(correct, total):
    if not total:
        return Decimal('0.00')
    return (Decimal(correct) * 100 / Decimal(total)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class SubjectTally:
    question_count: int = 0
    answered: int = 0
    correct: int = 0

    @property
    def score(self):
        return percentage(self.correct, self.question_count)


@dataclass
class ScoreSheet:
    total_questions: int
    answered_questions: int
    correct: int
    score: Decimal
    subjects: dict = field(default_factory=dict)  # exam subject id -> SubjectTally

    def subject_scores_json(self):
        return {
            str(subject_id): {
                "score": str(tally.score),
                "correct": tally.correct,
                "answered": tally.answered,
                "total": tally.question_count,
            }
            for subject_id, tally in self.subjects.items()
        }


def score_answers(key, answers):
    """
    ``key`` maps question id to ``(correct_option_index, exam_subject_id)``;
    ``answers`` is a list of ``{"question_id", "selected_option_index"}``.
    Answers to questions outside the key are ignored. The aggregate divides by
    every question of the exam, so unanswered questions count as wrong.
    """
    per_subject = Counter(subject_id for _, subject_id in key.values())
    subjects = {subject_id: SubjectTally(question_count=count) for subject_id, count in per_subject.items()}

    correct = 0
    for answer in answers:
        entry = key.get(answer['question_id'])
        if entry is None:
            continue
        correct_index, subject_id = entry
        tally = subjects[subject_id]
        tally.answered += 1
        if answer['selected_option_index'] == correct_index:
            tally.correct += 1
            correct += 1

    return ScoreSheet(
        total_questions=len(key),
        answered_questions=len(answers),
        correct=correct,
        score=percentage(correct, len(key)),
        subjects=subjects,
    )


def _already_submitted(exam, student):
    return ExamResult.objects.filter(exam=exam, student=student).exists()


def _sync_gradebook(exam, profile, sheet, term):
    """Upsert one gradebook row per subject the candidate actually answered."""
    if exam.kind != Exam.Kind.INTERNAL or not exam.assessment_type:
        return 0
    if profile.status != Student.Status.ENROLLED:
        return 0
    if term is None:
        logger.warning("No active term for branch %s; exam %s not synced to gradebook", exam.branch_id, exam.pk)
        return 0

    sections = {s.pk: s.class_subject for s in exam.subjects.select_related('class_subject')}
    synced = 0
    for subject_id, tally in sheet.subjects.items():
        if not tally.answered:
            continue
        class_subject = sections[subject_id]
        SubjectScore.objects.update_or_create(
            student=profile,
            class_subject=class_subject,
            term=term,
            assessment_type=exam.assessment_type,
            defaults={
                'score': tally.score,
                'school_class_id': exam.school_class_id,
                'teacher_id': class_subject.teacher_id,
                'branch_id': exam.branch_id,
                'exam': exam,
            },
        )
        synced += 1
    return synced


@transaction.atomic
def submit_answers(exam_id, student, answers, now):
    """
    Score and store ``student``'s answers for ``exam_id``.

    Checks, in order: the access window, an existing result, questions present.
    The exam row stays locked for the rest of the transaction, and the unique
    (exam, student) constraint backs up the duplicate check.
    """
    exam = Exam.objects.select_for_update().filter(pk=exam_id).first()
    if exam is None:
        raise NotFound("Exam not found.")

    profile, kind = candidate_profile(student)
    require_access(student, ResourceScope(class_id=exam.school_class_id, student_id=student.pk),
                   "This exam is not for your class.")
    if exam.kind != kind:
        raise Forbidden("This exam is not for your class.")

    ensure_submission_allowed(exam, now)
    if _already_submitted(exam, student):
        raise AlreadySubmitted()

    key = answer_key(exam)
    if not key:
        raise NoQuestions()

    sheet = score_answers(key, answers)
    term = Term.objects.active_for_branch(exam.branch_id)

    try:
        with transaction.atomic():
            result = ExamResult.objects.create(
                exam=exam,
                student=student,
                term=term,
                score=sheet.score,
                subject_scores=sheet.subject_scores_json(),
                total_questions=sheet.total_questions,
                answered_questions=sheet.answered_questions,
                answers=list(answers),
                submitted_at=now,
            )
    except IntegrityError:
        logger.warning("Duplicate submission for exam %s by user %s rejected by constraint", exam.pk, student.pk)
        raise AlreadySubmitted()

    synced = _sync_gradebook(exam, profile, sheet, term)

    AuditLog.record(student, 'SUBMIT', result, f"Submitted '{exam.title}': {sheet.score}%", branch_id=exam.branch_id)
    logger.info(
        "Exam %s submitted by user %s: %s/%s correct (%s%%), %s gradebook rows",
        exam.pk, student.pk, sheet.correct, sheet.total_questions, sheet.score, synced,
    )
    return result
