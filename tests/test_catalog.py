import io

import pytest
from rest_framework.exceptions import ValidationError

from cores.exceptions import ExamLocked, Forbidden, ScheduleConflict
from cores.models import AuditLog
from exams.models import Exam, Question
from exams.serializers import ExamCreateSerializer
from exams.services import catalog
from results.services.scoring import submit_answers
from school.models import ClassSubject

from conftest import answers_for, at


def _validated(payload):
    serializer = ExamCreateSerializer(data=payload)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


@pytest.mark.django_db
def test_create_exam_with_questions(exam_payload, admin_user, school_class, maths):
    exam = catalog.create_exam(admin_user, _validated(exam_payload(at(10))))

    assert exam.school_class == school_class
    assert exam.branch_id == school_class.branch_id
    assert exam.class_subject == maths
    assert Question.objects.filter(subject__exam=exam).count() == 2
    assert AuditLog.objects.filter(action="CREATE", target_model="Exam", target_object_id=str(exam.pk)).exists()


@pytest.mark.django_db
def test_create_exam_rejects_overlap(exam_payload, admin_user):
    catalog.create_exam(admin_user, _validated(exam_payload(at(10))))

    with pytest.raises(ScheduleConflict):
        catalog.create_exam(admin_user, _validated(exam_payload(at(10, 30))))
    catalog.create_exam(admin_user, _validated(exam_payload(at(11))))

    assert Exam.objects.count() == 2


@pytest.mark.django_db
def test_subject_from_another_class_is_mapped_by_name(exam_payload, admin_user, other_class, maths):
    foreign_maths = ClassSubject.objects.create(name="Mathematics", school_class=other_class)
    payload = exam_payload(at(10))
    payload["subjects"][0]["class_subject_id"] = foreign_maths.pk

    exam = catalog.create_exam(admin_user, _validated(payload))

    assert exam.subjects.get().class_subject == maths


@pytest.mark.django_db
def test_single_subject_exam_needs_exactly_one_subject(exam_payload, admin_user, maths, english):
    payload = exam_payload(at(10))
    payload["subjects"].append({
        "class_subject_id": english.pk,
        "questions": [{"text": "Spell cat", "options": ["cat", "kat"], "correct_option_index": 0}],
    })

    with pytest.raises(ValidationError):
        catalog.create_exam(admin_user, _validated(payload))

    payload["subject_mode"] = Exam.SubjectMode.MULTI
    exam = catalog.create_exam(admin_user, _validated(payload))
    assert exam.subjects.count() == 2
    assert exam.class_subject is None


@pytest.mark.django_db
def test_invalid_question_payloads(exam_payload):
    payload = exam_payload(at(10))
    payload["subjects"][0]["questions"][0]["correct_option_index"] = 3
    assert not ExamCreateSerializer(data=payload).is_valid()

    payload = exam_payload(at(10), assessment_type=None)
    serializer = ExamCreateSerializer(data=payload)
    assert not serializer.is_valid()
    assert "assessment_type" in serializer.errors

    assert not ExamCreateSerializer(data=exam_payload(at(10), duration=0)).is_valid()
    assert not ExamCreateSerializer(data=exam_payload(at(10), subjects=[])).is_valid()


@pytest.mark.django_db
def test_admin_of_other_branch_cannot_create(exam_payload, foreign_admin):
    with pytest.raises(Forbidden):
        catalog.create_exam(foreign_admin, _validated(exam_payload(at(10))))


@pytest.mark.django_db
def test_update_exam_rechecks_schedule_without_itself(make_exam, maths, admin_user):
    first = make_exam(at(8), [(maths, 1)], duration=60)
    second = make_exam(at(10), [(maths, 1)], duration=60)

    catalog.update_exam(admin_user, second.pk, {"start_time": at(10, 15)})
    second.refresh_from_db()
    assert second.start_time == at(10, 15)

    with pytest.raises(ScheduleConflict):
        catalog.update_exam(admin_user, second.pk, {"start_time": at(8, 30)})

    catalog.update_exam(admin_user, first.pk, {"title": "Renamed"})
    first.refresh_from_db()
    assert first.title == "Renamed"


@pytest.mark.django_db
def test_questions_lock_once_results_exist(make_exam, maths, admin_user, student_user, term):
    exam = make_exam(at(10), [(maths, 2)], duration=60)
    section = exam.subjects.get()
    question = section.questions.first()

    added = catalog.add_question(admin_user, section, "New?", ["a", "b"], 0)
    catalog.update_question(admin_user, added, text="Edited?")
    catalog.delete_question(admin_user, added)

    submit_answers(exam.pk, student_user, answers_for(exam, correct=1), at(10))

    with pytest.raises(ExamLocked):
        catalog.add_question(admin_user, section, "Late?", ["a", "b"], 0)
    with pytest.raises(ExamLocked):
        catalog.update_question(admin_user, question, correct_option_index=0)
    with pytest.raises(ExamLocked):
        catalog.delete_question(admin_user, question)
    with pytest.raises(ExamLocked):
        catalog.delete_exam(admin_user, exam)

    question.refresh_from_db()
    assert question.correct_option_index == 1


@pytest.mark.django_db
def test_bulk_upload_questions(make_exam, maths, admin_user):
    exam = make_exam(at(10), [(maths, 0)], duration=60)
    section = exam.subjects.get()
    csv_file = io.BytesIO(
        b"question_text,options,correct_answer\n"
        b"Capital of Nigeria?,Lagos|Abuja|Kano,abuja\n"
        b"2 + 5?,6|7,7\n"
    )

    assert catalog.bulk_upload_questions(admin_user, section, csv_file) == 2

    questions = list(section.questions.order_by("id"))
    assert questions[0].options == ["Lagos", "Abuja", "Kano"]
    assert questions[0].correct_option_index == 1
    assert questions[1].correct_option_index == 1


@pytest.mark.django_db
def test_bulk_upload_reports_the_bad_row(make_exam, maths, admin_user):
    exam = make_exam(at(10), [(maths, 0)], duration=60)
    csv_file = io.BytesIO(
        b"question_text,options,correct_answer\n"
        b"Fine?,yes|no,yes\n"
        b"Broken?,yes|no,maybe\n"
    )

    with pytest.raises(ValidationError) as excinfo:
        catalog.bulk_upload_questions(admin_user, exam.subjects.get(), csv_file)

    assert "Row 3" in str(excinfo.value.detail)
    assert not Question.objects.exists()
