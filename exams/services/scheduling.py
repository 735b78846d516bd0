# exams/services/scheduling.py
"""
Double-booking guard for a class timetable.

Two exams of one class may not overlap on their half-open ``[start, end)``
intervals; one ending exactly when the next starts is fine.
"""
import logging
from datetime import timedelta

from django.conf import settings

from cores.exceptions import ScheduleConflict
from exams.models import Exam

logger = logging.getLogger(__name__)


def intervals_overlap(start_a, end_a, start_b, end_b):
    return start_a < end_b and end_a > start_b


def check_conflict(class_id, proposed_start, duration_minutes, exclude_exam_id=None):
    """
    Return the first existing exam of ``class_id`` overlapping the proposed
    slot, or ``None``. Only exams starting within the search window around the
    slot are considered; exam durations are bounded well below it.
    """
    proposed_end = proposed_start + timedelta(minutes=duration_minutes)
    margin = timedelta(hours=settings.CBT_CONFLICT_SEARCH_WINDOW_HOURS)

    candidates = Exam.objects.filter(
        school_class_id=class_id,
        start_time__gte=proposed_start - margin,
        start_time__lte=proposed_end + margin,
    ).order_by('start_time', 'pk')
    if exclude_exam_id is not None:
        candidates = candidates.exclude(pk=exclude_exam_id)

    for existing in candidates:
        if intervals_overlap(proposed_start, proposed_end, existing.start_time, existing.end_time):
            return existing
    return None


def ensure_no_conflict(class_id, proposed_start, duration_minutes, exclude_exam_id=None):
    conflicting = check_conflict(class_id, proposed_start, duration_minutes, exclude_exam_id)
    if conflicting is not None:
        logger.warning(
            "Schedule conflict for class %s at %s (%s min) with exam %s",
            class_id, proposed_start.isoformat(), duration_minutes, conflicting.pk,
        )
        raise ScheduleConflict(conflicting)
