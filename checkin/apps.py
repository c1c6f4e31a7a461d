from django.apps import AppConfig
from django.conf import settings


class CheckinConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'checkin'
    verbose_name = 'Guest Self Check-In'

    def ready(self):
        # Seed the in-memory store when running without DynamoDB
        fixture = getattr(settings, 'RESERVATIONS_FIXTURE', '')
        if fixture and not getattr(settings, 'RESERVATIONS_TABLE', ''):
            from . import emulator
            emulator.load_fixture(fixture)
