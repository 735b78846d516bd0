from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from rest_framework.exceptions import APIException

from results.services.ledger import publish_bulk

User = get_user_model()


class Command(BaseCommand):
    help = 'Publishes every unpublished result of a class for one term'

    def add_arguments(self, parser):
        parser.add_argument('session', type=str, help='Academic session, e.g. 2024/2025')
        parser.add_argument('term', type=str, help='Term name, e.g. "First Term"')
        parser.add_argument('class_name', type=str, help='Class name, e.g. JSS1')
        parser.add_argument('--arm', type=str, default=None, help='Class arm, e.g. A')
        parser.add_argument('--publisher', type=str, required=True, help='Email of the publishing admin')

    def handle(self, *args, **options):
        publisher = User.objects.filter(email__iexact=options['publisher']).first()
        if publisher is None:
            raise CommandError(f"User {options['publisher']} not found!")

        try:
            count = publish_bulk(
                options['session'], options['term'], options['class_name'], options['arm'],
                publisher, timezone.now(),
            )
        except APIException as e:
            raise CommandError(f"Publish failed: {e.detail}")

        self.stdout.write(self.style.SUCCESS(f"Successfully published {count} results"))
