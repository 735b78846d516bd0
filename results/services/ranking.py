# results/services/ranking.py
"""
Class positions and report cards.

Ties share a position and the next distinct score skips ahead
(90, 90, 80 -> 1st, 1st, 3rd).
"""
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal

from exams.models import Exam
from results.models import ExamResult, SubjectScore

TWO_PLACES = Decimal('0.01')

GRADE_BOUNDARIES = (
    (75, 'A'),
    (65, 'B'),
    (50, 'C'),
    (45, 'D'),
    (40, 'E'),
)


def competition_rank(score, peer_scores):
    return 1 + sum(1 for peer in peer_scores if peer > score)


def ordinal(n):
    if n is None:
        return ''
    if 11 <= n % 100 <= 13:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th')
    return f"{n}{suffix}"


def grade_for(total):
    for boundary, grade in GRADE_BOUNDARIES:
        if total >= boundary:
            return grade
    return 'F'


def exam_position(result):
    """Position of ``result`` among the published results of its exam in the student's class."""
    profile = getattr(result.student, 'student_profile', None)
    if profile is None:
        return None
    peers = ExamResult.objects.filter(
        exam_id=result.exam_id,
        published=True,
        student__student_profile__school_class_id=profile.school_class_id,
    ).values_list('score', flat=True)
    return competition_rank(result.score, peers)


def _class_sheet(school_class_id, term, published_only):
    """``{student_id: {class_subject_id: {assessment_type: score}}}`` plus subject names."""
    rows = SubjectScore.objects.filter(school_class_id=school_class_id, term=term).select_related('class_subject')
    if published_only:
        rows = rows.filter(published=True)

    sheet = defaultdict(lambda: defaultdict(dict))
    subject_names = {}
    for row in rows:
        sheet[row.student_id][row.class_subject_id][row.assessment_type] = row.score
        subject_names[row.class_subject_id] = row.class_subject.name
    return sheet, subject_names


def build_report_card(student, term, published_only=True):
    """
    Report card of ``student`` (a ``school.Student``) for ``term``, ranked
    against the other students of the same class. Subject total is the sum of
    every recorded assessment.
    """
    sheet, subject_names = _class_sheet(student.school_class_id, term, published_only)
    school_class = student.school_class

    card = {
        "student": {"id": student.pk, "name": student.full_name, "class": str(school_class)},
        "term": {
            "id": term.pk,
            "name": term.name,
            "session": term.session,
            "next_term_begins": term.next_term_begins,
        },
        "position": None,
        "total": None,
        "total_students": len(sheet),
        "results": [],
    }
    own = sheet.get(student.pk)
    if not own:
        return card

    totals = {
        student_id: {subject_id: sum(scores.values(), Decimal('0')) for subject_id, scores in subjects.items()}
        for student_id, subjects in sheet.items()
    }

    for subject_id in sorted(own, key=lambda pk: subject_names[pk]):
        subject_totals = [t[subject_id] for t in totals.values() if subject_id in t]
        mine = totals[student.pk][subject_id]
        average = (sum(subject_totals, Decimal('0')) / len(subject_totals)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

        entry = {"subject": subject_names[subject_id]}
        for assessment in Exam.AssessmentType.values:
            entry[assessment] = own[subject_id].get(assessment, Decimal('0'))
        entry.update({
            "total": mine,
            "grade": grade_for(mine),
            "position": ordinal(competition_rank(mine, subject_totals)),
            "highest": max(subject_totals),
            "lowest": min(subject_totals),
            "average": average,
        })
        card["results"].append(entry)

    overall = {student_id: sum(t.values(), Decimal('0')) for student_id, t in totals.items()}
    card["position"] = ordinal(competition_rank(overall[student.pk], overall.values()))
    card["total"] = overall[student.pk]
    return card
