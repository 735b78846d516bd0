from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    roles = serializers.SerializerMethodField()
    branch_id = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'phone_number', 'roles', 'branch_id']
        read_only_fields = ['email', 'roles', 'branch_id']

    def get_roles(self, obj):
        return sorted(obj.role_names)

    def get_branch_id(self, obj):
        staff = getattr(obj, 'staff_profile', None)
        if staff is not None:
            return staff.branch_id
        student = getattr(obj, 'student_profile', None)
        return student.branch_id if student is not None else None


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['roles'] = sorted(user.role_names)
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data
