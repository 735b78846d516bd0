# users/backends.py
import logging

from django.contrib.auth.backends import ModelBackend
from django.contrib.auth import get_user_model
from django.db.models import Q

User = get_user_model()
logger = logging.getLogger(__name__)


class EmailBackend(ModelBackend):
    """Log in with either the e-mail address or the username, case-insensitively."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        if username is None:
            username = kwargs.get(User.USERNAME_FIELD)
        if not username or not password:
            return None

        user = (
            User.objects.filter(Q(email__iexact=username) | Q(username__iexact=username))
            .order_by('id')
            .first()
        )
        if user is None:
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user

        logger.warning("Failed login for user %s", user.pk)
        return None
