# exams/services/access.py
"""
Time window gate for taking an exam.

    NOT_YET_OPEN   now <  start - 30min
    OPEN           start - 30min <= now <= start + duration
    CLOSED         now >  start + duration

The state is recomputed from the clock on every request and never stored.
"""
import enum
from datetime import timedelta

from django.conf import settings
from rest_framework.exceptions import NotFound

from cores.exceptions import WindowClosed, WindowNotOpen
from exams.models import Exam
from school.models import Student
from users.models import NEW_STUDENT, STUDENT


class WindowState(enum.Enum):
    NOT_YET_OPEN = "not_yet_open"
    OPEN = "open"
    CLOSED = "closed"


def window_state(exam, now):
    if now < exam.window_opens_at:
        return WindowState.NOT_YET_OPEN
    if now <= exam.end_time:
        return WindowState.OPEN
    return WindowState.CLOSED


def ensure_questions_available(exam, now):
    state = window_state(exam, now)
    if state is WindowState.NOT_YET_OPEN:
        raise WindowNotOpen()
    if state is WindowState.CLOSED:
        raise WindowClosed()


def ensure_submission_allowed(exam, now):
    state = window_state(exam, now)
    if state is WindowState.NOT_YET_OPEN:
        raise WindowNotOpen("The exam has not started. Submission is not yet accepted.")
    if state is WindowState.CLOSED:
        raise WindowClosed("The time for this exam has passed. Submission is no longer accepted.")


def find_current_exam(class_id, kind, now):
    """
    The exam of ``class_id`` and ``kind`` whose window contains ``now``.
    Earliest start wins if several match.
    """
    prewindow = timedelta(minutes=settings.CBT_EXAM_PREWINDOW_MINUTES)
    longest = timedelta(minutes=settings.CBT_MAX_EXAM_DURATION_MINUTES)

    candidates = Exam.objects.filter(
        school_class_id=class_id,
        kind=kind,
        start_time__lte=now + prewindow,
        start_time__gte=now - longest,
    ).order_by('start_time', 'pk')

    for exam in candidates:
        if window_state(exam, now) is WindowState.OPEN:
            return exam
    return None


def candidate_profile(user):
    """
    The student profile of a candidate and the kind of exam they sit:
    applicants take External papers, enrolled students Internal ones.
    """
    profile = getattr(user, 'student_profile', None)
    if profile is None or profile.school_class_id is None:
        raise NotFound("Student class not found.")

    if profile.status == Student.Status.APPLICANT or (user.has_role(NEW_STUDENT) and not user.has_role(STUDENT)):
        return profile, Exam.Kind.EXTERNAL
    return profile, Exam.Kind.INTERNAL
