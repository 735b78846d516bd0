# cores/exceptions.py
"""
Error taxonomy of the exam engine and the DRF handler that renders it.

Every error the engine raises on purpose is an ``APIException`` so views can
let it propagate; the handler turns it into ``{"error": ..., "code": ...}``.
Anything else is logged and answered with a generic 500.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException, PermissionDenied
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)


class Forbidden(PermissionDenied):
    default_detail = "You are not allowed to access this resource."
    default_code = "forbidden"


class ScheduleConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_code = "schedule_conflict"

    def __init__(self, conflicting_exam):
        self.conflicting_exam = conflicting_exam
        super().__init__(
            f"Schedule conflict: the exam time overlaps with '{conflicting_exam.title}' "
            f"({conflicting_exam.start_time.isoformat()} - {conflicting_exam.end_time.isoformat()})."
        )

    def get_extra(self):
        exam = self.conflicting_exam
        return {
            "conflicting_exam": {
                "id": exam.pk,
                "title": exam.title,
                "start_time": exam.start_time.isoformat(),
                "end_time": exam.end_time.isoformat(),
            }
        }


class WindowNotOpen(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "It is not yet time for the exam."
    default_code = "window_not_open"


class WindowClosed(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "The time for this exam has passed."
    default_code = "window_closed"


class AlreadySubmitted(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "You have already submitted answers for this exam."
    default_code = "already_submitted"


class NoQuestions(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "No questions found for this exam."
    default_code = "no_questions"


class ExamLocked(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This exam already has results and can no longer be changed."
    default_code = "exam_locked"


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception("Unhandled error in %s", view.__class__.__name__ if view else "view")
        set_rollback()
        return Response(
            {"error": "An internal error occurred.", "code": "internal_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    data = response.data
    if isinstance(data, dict) and set(data) == {'detail'}:
        detail = data['detail']
        payload = {"error": str(detail), "code": getattr(detail, 'code', None) or 'error'}
    else:
        # Field errors from serializers
        payload = {"error": data, "code": getattr(exc, 'default_code', 'invalid')}

    if hasattr(exc, 'get_extra'):
        payload.update(exc.get_extra())
    response.data = payload
    return response
