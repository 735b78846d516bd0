# users/roles.py
"""
Role lookups for the identity layer.

Role names are read through the Django cache with a fixed TTL and evicted
whenever a user's role set changes, so the exam engine never keeps its own
copy of who is allowed to do what.
"""
from django.conf import settings
from django.core.cache import cache
from django.db.models.signals import m2m_changed
from django.dispatch import receiver

from .models import User


def role_cache_key(user_id):
    return f"user-roles:{user_id}"


def get_roles(user):
    """Return the frozenset of role names held by ``user``."""
    if user is None or not getattr(user, 'pk', None):
        return frozenset()

    key = role_cache_key(user.pk)
    roles = cache.get(key)
    if roles is None:
        roles = frozenset(user.roles.values_list('name', flat=True))
        cache.set(key, roles, settings.ROLE_CACHE_TTL)
    return roles


def invalidate_roles(user_id):
    cache.delete(role_cache_key(user_id))


@receiver(m2m_changed, sender=User.roles.through)
def _roles_changed(sender, instance, action, reverse, pk_set, **kwargs):
    if action not in ('post_add', 'post_remove', 'post_clear', 'pre_clear'):
        return

    if not reverse:
        invalidate_roles(instance.pk)
        return

    # role.users.add(...) / role.users.clear()
    user_ids = pk_set or instance.users.values_list('pk', flat=True)
    for user_id in user_ids:
        invalidate_roles(user_id)
