from datetime import date, datetime, timedelta, timezone

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from exams.models import Exam, ExamSubject, Question
from school.models import Branch, ClassSubject, SchoolClass, Staff, Student, Term
from users.models import ADMIN, NEW_STUDENT, STUDENT, SUPER_ADMIN, TEACHER, Role, User

LAGOS = timezone(timedelta(hours=1))  # West Africa Time
OPTIONS = ["Option A", "Option B", "Option C", "Option D"]
CORRECT = 1


def at(hour, minute=0, day=1):
    """A fixed wall-clock instant on 2030-03-<day>."""
    return datetime(2030, 3, day, hour, minute, tzinfo=LAGOS)


def make_user(email, *roles, first_name="Test", last_name="User"):
    user = User.objects.create_user(
        username=email.split("@")[0], email=email, password="pass12345",
        first_name=first_name, last_name=last_name,
    )
    user.roles.add(*[Role.objects.get_or_create(name=name)[0] for name in roles])
    return user


@pytest.fixture(autouse=True)
def _clear_role_cache():
    # Rolled back test data reuses primary keys
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(api_client):
    def _client(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _client


# --- School structure ---

@pytest.fixture
def branch(db):
    return Branch.objects.create(name="Main Campus")


@pytest.fixture
def other_branch(db):
    return Branch.objects.create(name="Annex")


@pytest.fixture
def teacher(branch):
    user = make_user("teacher@school.test", TEACHER)
    return Staff.objects.create(user=user, name="Mr Teacher", branch=branch)


@pytest.fixture
def school_class(branch, teacher):
    return SchoolClass.objects.create(name="JSS1", arm="A", branch=branch, teacher=teacher)


@pytest.fixture
def other_class(branch):
    return SchoolClass.objects.create(name="JSS2", arm="A", branch=branch)


@pytest.fixture
def maths(school_class, teacher):
    return ClassSubject.objects.create(name="Mathematics", school_class=school_class, teacher=teacher)


@pytest.fixture
def english(school_class):
    return ClassSubject.objects.create(name="English", school_class=school_class)


@pytest.fixture
def term(branch):
    return Term.objects.create(
        name="First Term", session="2029/2030", branch=branch,
        start_date=date(2030, 1, 6), end_date=date(2030, 4, 4),
        next_term_begins=date(2030, 4, 28), is_active=True,
    )


# --- Users ---

@pytest.fixture
def admin_user(branch):
    user = make_user("admin@school.test", ADMIN)
    Staff.objects.create(user=user, name="Branch Admin", branch=branch)
    return user


@pytest.fixture
def foreign_admin(other_branch):
    user = make_user("annex-admin@school.test", ADMIN)
    Staff.objects.create(user=user, name="Annex Admin", branch=other_branch)
    return user


@pytest.fixture
def super_admin(db):
    return make_user("owner@school.test", SUPER_ADMIN)


@pytest.fixture
def make_student(school_class):
    counter = {"n": 0}

    def _make(first_name="Ada", last_name=None, klass=None, status=Student.Status.ENROLLED, role=STUDENT):
        counter["n"] += 1
        n = counter["n"]
        last_name = last_name or f"Pupil{n}"
        klass = klass or school_class
        user = make_user(f"student{n}@school.test", role, first_name=first_name, last_name=last_name)
        Student.objects.create(
            user=user, first_name=first_name, last_name=last_name,
            school_class=klass, branch_id=klass.branch_id, status=status,
        )
        return user
    return _make


@pytest.fixture
def student_user(make_student):
    return make_student(first_name="Ada")


@pytest.fixture
def applicant_user(make_student):
    return make_student(first_name="Bayo", status=Student.Status.APPLICANT, role=NEW_STUDENT)


# --- Exams ---

@pytest.fixture
def make_exam(school_class, admin_user):
    """
    Create an exam straight through the ORM. ``sections`` is a list of
    ``(class_subject, number_of_questions)``; every question's answer is ``CORRECT``.
    """
    def _make(start, sections, duration=60, kind=Exam.Kind.INTERNAL, assessment_type="ca1",
              klass=None, title="Test Exam"):
        klass = klass or school_class
        exam = Exam.objects.create(
            title=title,
            kind=kind,
            assessment_type=assessment_type if kind == Exam.Kind.INTERNAL else None,
            subject_mode=Exam.SubjectMode.SINGLE if len(sections) == 1 else Exam.SubjectMode.MULTI,
            class_subject=sections[0][0] if len(sections) == 1 else None,
            school_class=klass,
            branch_id=klass.branch_id,
            start_time=start,
            duration_minutes=duration,
            created_by=admin_user,
        )
        for class_subject, count in sections:
            section = ExamSubject.objects.create(exam=exam, class_subject=class_subject, title=class_subject.name)
            Question.objects.bulk_create([
                Question(subject=section, text=f"{class_subject.name} Q{i + 1}", options=OPTIONS,
                         correct_option_index=CORRECT)
                for i in range(count)
            ])
        return exam
    return _make


def answers_for(exam, correct=0, wrong=0):
    """``correct`` right answers followed by ``wrong`` wrong ones, in question order."""
    question_ids = list(Question.objects.filter(subject__exam=exam).order_by("id").values_list("id", flat=True))
    answers = [{"question_id": qid, "selected_option_index": CORRECT} for qid in question_ids[:correct]]
    answers += [
        {"question_id": qid, "selected_option_index": CORRECT + 1}
        for qid in question_ids[correct:correct + wrong]
    ]
    return answers


@pytest.fixture
def exam_payload(school_class, maths):
    def _payload(start, duration=60, **overrides):
        payload = {
            "title": "Mathematics CA 1",
            "kind": Exam.Kind.INTERNAL,
            "assessment_type": "ca1",
            "subject_mode": Exam.SubjectMode.SINGLE,
            "class_id": school_class.pk,
            "start_time": start.isoformat(),
            "duration_minutes": duration,
            "subjects": [{
                "class_subject_id": maths.pk,
                "questions": [
                    {"text": "2 + 2 = ?", "options": ["3", "4", "5"], "correct_option_index": 1},
                    {"text": "3 x 3 = ?", "options": ["6", "9"], "correct_option_index": 1},
                ],
            }],
        }
        payload.update(overrides)
        return payload
    return _payload
