# exams/serializers.py
from django.conf import settings
from rest_framework import serializers

from .models import Exam, ExamSubject, Question
from .services.catalog import clean_question

# --- Input Serializers ---


class QuestionInputSerializer(serializers.Serializer):
    text = serializers.CharField()
    options = serializers.ListField(child=serializers.CharField(), min_length=2)
    correct_option_index = serializers.IntegerField(min_value=0)

    def validate(self, attrs):
        clean_question(attrs['text'], attrs['options'], attrs['correct_option_index'])
        return attrs


class ExamSubjectInputSerializer(serializers.Serializer):
    class_subject_id = serializers.IntegerField()
    questions = QuestionInputSerializer(many=True, allow_empty=False)


class ExamCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    kind = serializers.ChoiceField(choices=Exam.Kind.choices)
    assessment_type = serializers.ChoiceField(choices=Exam.AssessmentType.choices, required=False, allow_null=True)
    subject_mode = serializers.ChoiceField(choices=Exam.SubjectMode.choices)
    class_id = serializers.IntegerField()
    start_time = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=1, max_value=settings.CBT_MAX_EXAM_DURATION_MINUTES)
    subjects = ExamSubjectInputSerializer(many=True, allow_empty=False)

    def validate(self, attrs):
        # Validate assessment type only for Internal exams
        if attrs['kind'] == Exam.Kind.INTERNAL and not attrs.get('assessment_type'):
            raise serializers.ValidationError({"assessment_type": "Assessment type is required for Internal exams."})
        return attrs


class ExamUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    start_time = serializers.DateTimeField(required=False)
    duration_minutes = serializers.IntegerField(
        min_value=1, max_value=settings.CBT_MAX_EXAM_DURATION_MINUTES, required=False
    )


# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    """Staff view of a question, answer key included."""
    exam_id = serializers.IntegerField(source='subject.exam_id', read_only=True)
    subject_title = serializers.CharField(source='subject.title', read_only=True)

    class Meta:
        model = Question
        fields = ['id', 'subject', 'subject_title', 'exam_id', 'text', 'options', 'correct_option_index']

    def validate(self, attrs):
        text = attrs.get('text', getattr(self.instance, 'text', None))
        options = attrs.get('options', getattr(self.instance, 'options', None))
        correct = attrs.get('correct_option_index', getattr(self.instance, 'correct_option_index', None))
        clean_question(text, options, correct)
        return attrs


class CandidateQuestionSerializer(serializers.ModelSerializer):
    """What a candidate sees: never the correct index."""
    class Meta:
        model = Question
        fields = ['id', 'text', 'options']


class ExamSubjectPaperSerializer(serializers.ModelSerializer):
    questions = CandidateQuestionSerializer(many=True, read_only=True)

    class Meta:
        model = ExamSubject
        fields = ['id', 'title', 'questions']


# --- Exam Serializers ---

class ExamSerializer(serializers.ModelSerializer):
    class_id = serializers.IntegerField(source='school_class_id', read_only=True)
    class_name = serializers.CharField(source='school_class.__str__', read_only=True)
    end_time = serializers.DateTimeField(read_only=True)
    subjects = serializers.SerializerMethodField()
    total_questions = serializers.SerializerMethodField()

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'kind', 'assessment_type', 'subject_mode', 'class_subject',
            'class_id', 'class_name', 'branch', 'start_time', 'end_time', 'duration_minutes',
            'subjects', 'total_questions', 'created_by', 'created_at',
        ]
        read_only_fields = fields

    def get_subjects(self, obj):
        return [s.title for s in obj.subjects.all()]

    def get_total_questions(self, obj):
        return Question.objects.filter(subject__exam=obj).count()


class ExamListSerializer(serializers.ModelSerializer):
    """Lightweight listing for candidates and the public timetable."""
    class_name = serializers.CharField(source='school_class.__str__', read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True)
    subjects = serializers.SerializerMethodField()

    class Meta:
        model = Exam
        fields = ['id', 'title', 'kind', 'start_time', 'duration_minutes', 'class_name', 'branch_name', 'subjects']

    def get_subjects(self, obj):
        return [s.title for s in obj.subjects.all()]


class ExamPaperSerializer(serializers.ModelSerializer):
    """The paper handed to a candidate during the access window."""
    exam_id = serializers.IntegerField(source='id', read_only=True)
    end_time = serializers.DateTimeField(read_only=True)
    subjects = ExamSubjectPaperSerializer(many=True, read_only=True)

    class Meta:
        model = Exam
        fields = ['exam_id', 'title', 'duration_minutes', 'start_time', 'end_time', 'subjects']
