from rest_framework import generics

from users.models import SUPER_ADMIN

from .models import AuditLog
from .permissions import IsSchoolAdmin
from .policy import staff_of
from .serializers import AuditLogSerializer


class AuditLogListView(generics.ListAPIView):
    # Select related avoids N+1 queries when fetching users
    queryset = AuditLog.objects.select_related('actor').all().order_by('-timestamp')
    serializer_class = AuditLogSerializer
    permission_classes = [IsSchoolAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        user = self.request.user
        if not user.has_role(SUPER_ADMIN):
            staff = staff_of(user)
            if staff is None:
                return queryset.none()
            queryset = queryset.filter(branch_id=staff.branch_id)

        action = self.request.query_params.get('action')
        if action:
            queryset = queryset.filter(action=action)
        return queryset
