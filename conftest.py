"""
Pytest configuration and fixtures for Check-In tests.
"""
import os

import cv2
import numpy as np
import pytest
from django.test import Client

# Set up Django settings before importing models
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'checkin_project.settings')
os.environ.setdefault('SECRET_KEY', 'test-secret-key')


@pytest.fixture(autouse=True)
def checkin_settings(settings, tmp_path):
    """Isolate every test: in-memory store, temp staging and media roots."""
    from checkin import emulator

    settings.RESERVATIONS_TABLE = ''
    settings.CHECKIN_STORAGE_BUCKET = ''
    settings.CHECKIN_PUBLIC_URL = ''
    settings.HOTEL_ACCOUNT = 'test@example.com'
    settings.HOTEL_DOCUMENT = 'hotel'
    settings.CHECKIN_STAGING_ROOT = str(tmp_path / 'staging')
    settings.MEDIA_ROOT = str(tmp_path / 'media')
    emulator.reset()
    yield settings
    emulator.reset()


@pytest.fixture
def client():
    """Django test client."""
    return Client()


def make_image(width, height, fmt='.jpg'):
    """Encoded test image with a gradient so it is not trivially compressible."""
    x = np.linspace(0, 255, width, dtype=np.uint8)
    y = np.linspace(0, 255, height, dtype=np.uint8)
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :, 0] = x[np.newaxis, :]
    image[:, :, 1] = y[:, np.newaxis]
    image[:, :, 2] = 128
    ok, encoded = cv2.imencode(fmt, image)
    assert ok
    return encoded.tobytes()


@pytest.fixture
def jpeg_bytes():
    """A 640x400 JPEG."""
    return make_image(640, 400)


@pytest.fixture
def today_checkin():
    from django.utils import timezone
    return f"{timezone.localdate().isoformat()}T15:00:00.000Z"


@pytest.fixture
def reservation_data(today_checkin):
    """Today's two-guest reservation, as stored in the hotel document."""
    return {
        'name': 'Maria Lopez',
        'phone': '+15550102000',
        'email': 'maria.lopez@example.com',
        'checkIn': today_checkin,
        'checkOut': '2099-01-01T11:00:00.000Z',
        'numberOfGuests': '2',
        'roomCategory': 'Deluxe',
        'paymentMode': 'card',
        'bookingId': 'BK-001',
        'guests': [
            {'id': 'g1', 'name': 'Maria Lopez'},
            {'id': 'g2', 'name': 'Daniel  Lopez', 'age': 34},
        ],
        'nights': 3,
        'createdAt': '2026-09-30T10:12:00.000Z',
        'source': 'website',
    }


@pytest.fixture
def sample_reservation(checkin_settings, reservation_data):
    """Seed the emulator with one reservation for today and one for tomorrow."""
    from checkin import emulator

    later = dict(reservation_data, bookingId='BK-002', phone='5550147788', checkIn='2099-06-01T14:00:00.000Z')
    emulator.seed(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT, [reservation_data, later])
    return reservation_data


@pytest.fixture
def staging(checkin_settings):
    from checkin.staging import CaptureStaging
    return CaptureStaging(checkin_settings.CHECKIN_STAGING_ROOT)


@pytest.fixture
def session_client(client, sample_reservation):
    """Client that has already found its reservation by phone."""
    response = client.post('/', {'phone_number': sample_reservation['phone']})
    assert response.status_code == 303
    return client
