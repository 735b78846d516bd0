from rest_framework import serializers

from exams.models import Exam

from .models import ExamResult, SubjectScore


class AnswerSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    selected_option_index = serializers.IntegerField(min_value=0)


class SubmitAnswersSerializer(serializers.Serializer):
    exam_id = serializers.IntegerField()
    answers = AnswerSerializer(many=True, allow_empty=True)

    def validate_answers(self, value):
        seen = set()
        for answer in value:
            if answer['question_id'] in seen:
                raise serializers.ValidationError(f"Question {answer['question_id']} is answered more than once.")
            seen.add(answer['question_id'])
        return value


class PublishExamResultsSerializer(serializers.Serializer):
    exam_id = serializers.IntegerField()
    class_id = serializers.IntegerField()


class PublishAllSerializer(serializers.Serializer):
    session = serializers.CharField(max_length=20)
    term = serializers.CharField(max_length=50)
    class_name = serializers.CharField(max_length=100)
    arm = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)


class ScoreEntrySerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    score = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100)


class GradebookSaveSerializer(serializers.Serializer):
    class_id = serializers.IntegerField()
    subject_id = serializers.IntegerField()
    assessment_type = serializers.ChoiceField(choices=Exam.AssessmentType.choices)
    exam_id = serializers.IntegerField(required=False, allow_null=True)
    scores = ScoreEntrySerializer(many=True, allow_empty=False)


class ExamResultSerializer(serializers.ModelSerializer):
    """Staff listing of the submissions to one exam."""
    student_name = serializers.SerializerMethodField()

    class Meta:
        model = ExamResult
        fields = [
            'id', 'student', 'student_name', 'score', 'subject_scores', 'total_questions',
            'answered_questions', 'submitted_at', 'published', 'published_at',
        ]

    def get_student_name(self, obj):
        profile = getattr(obj.student, 'student_profile', None)
        return profile.full_name if profile else obj.student.get_full_name()


class MyExamResultSerializer(serializers.ModelSerializer):
    exam_title = serializers.CharField(source='exam.title', read_only=True)
    position = serializers.SerializerMethodField()

    class Meta:
        model = ExamResult
        fields = ['id', 'exam', 'exam_title', 'score', 'submitted_at', 'position']

    def get_position(self, obj):
        return self.context.get('positions', {}).get(obj.pk, '')


class SubjectScoreSerializer(serializers.ModelSerializer):
    """Gradebook row as listed to staff."""
    student_id = serializers.IntegerField(read_only=True)
    first_name = serializers.CharField(source='student.first_name', read_only=True)
    last_name = serializers.CharField(source='student.last_name', read_only=True)
    class_name = serializers.CharField(source='school_class.name', read_only=True)
    class_arm = serializers.CharField(source='school_class.arm', read_only=True)
    subject_name = serializers.CharField(source='class_subject.name', read_only=True)
    term_name = serializers.CharField(source='term.name', read_only=True)
    session = serializers.CharField(source='term.session', read_only=True)
    teacher_name = serializers.CharField(source='teacher.name', read_only=True, default=None)
    published_by_email = serializers.EmailField(source='published_by.email', read_only=True, default=None)

    class Meta:
        model = SubjectScore
        fields = [
            'id', 'student_id', 'first_name', 'last_name', 'class_name', 'class_arm', 'subject_name',
            'term_name', 'session', 'assessment_type', 'score', 'published', 'published_at',
            'created_at', 'updated_at', 'teacher_name', 'published_by_email',
        ]


class StudentScoreSerializer(serializers.ModelSerializer):
    exam_id = serializers.IntegerField(read_only=True)
    subject_name = serializers.CharField(source='class_subject.name', read_only=True)
    teacher_name = serializers.CharField(source='teacher.name', read_only=True, default=None)

    class Meta:
        model = SubjectScore
        fields = [
            'id', 'exam_id', 'assessment_type', 'score', 'subject_name', 'created_at', 'updated_at', 'teacher_name',
        ]
