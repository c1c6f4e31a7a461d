"""
Management command to load reservations into the hotel document.
"""
import json

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from checkin import reservations


class Command(BaseCommand):
    help = 'Load reservations from a JSON file into the configured reservation store'

    def add_arguments(self, parser):
        parser.add_argument(
            'path',
            help='JSON file with a list of reservations (or {"reservation": [...]})'
        )
        parser.add_argument(
            '--today',
            action='store_true',
            help='Move every check-in to today so the reservations can be looked up'
        )

    def handle(self, *args, **options):
        try:
            with open(options['path'], encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CommandError(f"Could not read {options['path']}: {e}")

        items = data.get('reservation', []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise CommandError('Expected a list of reservations')

        if options['today']:
            today = timezone.localdate().isoformat()
            for item in items:
                time_part = str(item.get('checkIn') or '').partition('T')[2]
                item['checkIn'] = f"{today}T{time_part}" if time_part else today

        store = reservations.get_store()
        store.save_reservations(settings.HOTEL_ACCOUNT, settings.HOTEL_DOCUMENT, items)

        self.stdout.write(self.style.SUCCESS(
            f'Loaded {len(items)} reservations into {settings.HOTEL_ACCOUNT}/{settings.HOTEL_DOCUMENT}'
        ))
