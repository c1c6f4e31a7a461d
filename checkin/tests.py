"""
Tests for the self check-in flow.
"""
import base64
import json
import os
from decimal import Decimal
from unittest import mock

import cv2
import numpy as np
import pytest
from botocore.exceptions import ClientError
from django.core.files.storage import FileSystemStorage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.urls import reverse, NoReverseMatch

from conftest import make_image


def data_url(data, mime='image/jpeg'):
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode(data):
    return cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)


class FakeStorage:
    """Records uploads instead of sending them anywhere."""

    def __init__(self, fail_keys=()):
        self.uploads = {}
        self.fail_keys = set(fail_keys)

    def upload(self, key, data, content_type):
        from checkin.errors import StorageError
        if any(part in key for part in self.fail_keys):
            raise StorageError(f"refused {key}")
        self.uploads[key] = (data, content_type)
        return f"https://files.example.com/{key}"


class TestCheckInURLs:
    """Test check-in URL resolution."""

    def test_lookup_url_resolves(self):
        try:
            assert reverse('checkin:lookup') == '/'
        except NoReverseMatch:
            pytest.fail("URL checkin:lookup not found")

    def test_wizard_urls_resolve(self):
        assert reverse('checkin:checkin_form') == '/checkin/'
        assert reverse('checkin:upload_options', args=['g1', 'front']) == '/checkin/guest/g1/front/'
        assert reverse('checkin:capture_api', args=['g1', 'back']) == '/api/guest/g1/back/capture/'
        assert reverse('checkin:submit') == '/checkin/submit/'


class TestPhoneNumber:
    """Test phone number normalisation."""

    @pytest.mark.parametrize('raw, expected', [
        ('+1 (555) 010-2000', '+15550102000'),
        ('555 014 7788', '5550147788'),
        ('555+0102', '5550102'),
        ('++44 20', '++4420'),
        ('', ''),
    ])
    def test_format_phone_number(self, raw, expected):
        from checkin.forms import format_phone_number
        assert format_phone_number(raw) == expected

    def test_form_cleans_phone(self):
        from checkin.forms import PhoneLookupForm
        form = PhoneLookupForm({'phone_number': '(555) 014-7788'})
        assert form.is_valid()
        assert form.cleaned_data['phone_number'] == '5550147788'

    def test_form_rejects_number_without_digits(self):
        from checkin.forms import PhoneLookupForm
        form = PhoneLookupForm({'phone_number': 'call me'})
        assert not form.is_valid()
        assert 'phone_number' in form.errors


class TestCropGeometry:
    """Test mapping of the on-screen guide frame to video pixels."""

    def test_wide_viewport_uses_max_frame_width(self):
        from checkin.capture import compute_crop_rect
        # 448px frame (capped), 280px tall, video shown at half size
        rect = compute_crop_rect(1920, 1080, 960, 540, 1000)
        assert rect.x == pytest.approx(512)
        assert rect.y == pytest.approx(260)
        assert rect.width == pytest.approx(896)
        assert rect.height == pytest.approx(560)

    def test_narrow_viewport_uses_85_percent(self):
        from checkin.capture import compute_crop_rect
        rect = compute_crop_rect(1080, 1920, 400, 711.1111, 400)
        frame_width = 400 * 0.85
        scale_x = 1080 / 400
        assert rect.width == pytest.approx(frame_width * scale_x)
        assert rect.height == pytest.approx(frame_width / 1.6 * (1920 / 711.1111))
        assert rect.x == pytest.approx((400 - frame_width) / 2 * scale_x)

    def test_non_uniform_scaling(self):
        from checkin.capture import compute_crop_rect
        # Video stretched to fill a 1000x1000 element
        rect = compute_crop_rect(2000, 1000, 1000, 1000, 1000)
        assert rect.width == pytest.approx(448 * 2)
        assert rect.height == pytest.approx(280 * 1)

    @pytest.mark.parametrize('dims', [
        (0, 1080, 960, 540, 1000),
        (1920, 1080, 0, 540, 1000),
        (1920, 1080, 960, -1, 1000),
        (1920, 1080, 960, 540, 0),
        (1920, 1080, float('nan'), 540, 1000),
        (1920, 1080, 960, float('inf'), 1000),
        (1920, 1080, 960, 540, float('-inf')),
    ])
    def test_invalid_dimensions(self, dims):
        from checkin.capture import compute_crop_rect
        from checkin.errors import CaptureError
        with pytest.raises(CaptureError):
            compute_crop_rect(*dims)

    def test_to_pixels_clamps_to_frame(self):
        from checkin.capture import CropRect
        rect = CropRect(x=-10.4, y=-5, width=100, height=60)
        assert rect.to_pixels(50, 40) == (0, 0, 50, 40)

    def test_to_pixels_outside_frame(self):
        from checkin.capture import CropRect
        from checkin.errors import CaptureError
        with pytest.raises(CaptureError):
            CropRect(x=200, y=0, width=10, height=10).to_pixels(100, 100)

    def test_capture_id_image_crops_frame(self):
        from checkin.capture import capture_id_image
        frame = make_image(1920, 1080)
        cropped = decode(capture_id_image(frame, 960, 540, 1000))
        assert cropped.shape[:2] == (560, 896)

    def test_capture_rejects_garbage(self):
        from checkin.capture import capture_id_image
        from checkin.errors import InvalidImageError
        with pytest.raises(InvalidImageError):
            capture_id_image(b'not an image', 960, 540, 1000)


class TestDataURL:
    """Test base64 image decoding."""

    def test_data_url(self, jpeg_bytes):
        from checkin.capture import decode_data_url
        assert decode_data_url(data_url(jpeg_bytes)) == jpeg_bytes

    def test_bare_base64(self, jpeg_bytes):
        from checkin.capture import decode_data_url
        assert decode_data_url(base64.b64encode(jpeg_bytes).decode()) == jpeg_bytes

    @pytest.mark.parametrize('value', [None, '', 'data:image/png;base64,@@@', 'data:text/plain;base64,aGVsbG8='])
    def test_invalid(self, value):
        from checkin.capture import decode_data_url
        from checkin.errors import InvalidImageError
        with pytest.raises(InvalidImageError):
            decode_data_url(value)


class TestImageConversion:
    """Test resize and WebP re-encoding."""

    @pytest.mark.parametrize('size, expected', [
        ((640, 400), (640, 400)),
        ((1600, 1000), (800, 500)),
        ((1000, 2000), (400, 800)),
        ((1200, 1200), (800, 800)),
    ])
    def test_fit_within(self, size, expected):
        from checkin.image_upload import fit_within
        assert fit_within(*size) == expected

    @pytest.mark.parametrize('name, expected', [
        ('Maria_id_front.jpg', 'Maria_id_front.webp'),
        ('scan.png', 'scan.webp'),
        ('image', 'image'),
    ])
    def test_webp_file_name(self, name, expected):
        from checkin.image_upload import webp_file_name
        assert webp_file_name(name) == expected

    def test_convert_large_image(self):
        from checkin.image_upload import convert_to_webp
        data, name = convert_to_webp(make_image(1600, 1000), 'front.jpg')
        assert name == 'front.webp'
        assert data[:4] == b'RIFF' and data[8:12] == b'WEBP'
        assert decode(data).shape[:2] == (500, 800)

    def test_convert_small_image_keeps_size(self):
        from checkin.image_upload import convert_to_webp
        data, _ = convert_to_webp(make_image(300, 200, '.png'))
        assert decode(data).shape[:2] == (200, 300)

    def test_convert_invalid_image(self):
        from checkin.errors import ImageConversionError
        from checkin.image_upload import convert_to_webp
        with pytest.raises(ImageConversionError) as exc:
            convert_to_webp(b'\x00\x01\x02')
        assert exc.value.message == "Failed to load image for conversion"


class TestImageUpload:
    """Test upload to object storage."""

    def test_upload_uses_path_and_webp_name(self, jpeg_bytes):
        from checkin.image_upload import upload_image
        storage = FakeStorage()
        url = upload_image(jpeg_bytes, 'checkin/BK-001/g1', 'Maria_Lopez_id_front.jpg', storage=storage)
        assert url == 'https://files.example.com/checkin/BK-001/g1_Maria_Lopez_id_front.webp'
        data, content_type = storage.uploads['checkin/BK-001/g1_Maria_Lopez_id_front.webp']
        assert content_type == 'image/webp'

    def test_upload_returns_false_on_storage_error(self, jpeg_bytes):
        from checkin.image_upload import upload_image
        assert upload_image(jpeg_bytes, 'checkin/BK/g1', storage=FakeStorage(fail_keys=['g1'])) is False

    def test_upload_returns_false_on_bad_image(self):
        from checkin.image_upload import upload_image
        assert upload_image(b'nope', 'checkin/BK/g1', storage=FakeStorage()) is False

    def test_s3_storage_presigned_url(self):
        from checkin.storage import S3Storage
        client = mock.MagicMock()
        client.generate_presigned_url.return_value = 'https://signed.example.com/x'
        storage = S3Storage('bucket', url_expiry=60, client=client)

        assert storage.upload('checkin/a.webp', b'data', 'image/webp') == 'https://signed.example.com/x'
        client.put_object.assert_called_once_with(
            Bucket='bucket', Key='checkin/a.webp', Body=b'data', ContentType='image/webp'
        )
        client.generate_presigned_url.assert_called_once_with(
            'get_object', Params={'Bucket': 'bucket', 'Key': 'checkin/a.webp'}, ExpiresIn=60
        )

    def test_s3_storage_public_url(self):
        from checkin.storage import S3Storage
        storage = S3Storage('bucket', public_base_url='https://cdn.example.com/', client=mock.MagicMock())
        assert storage.upload('checkin/a.webp', b'data', 'image/webp') == 'https://cdn.example.com/checkin/a.webp'

    def test_s3_storage_error(self):
        from checkin.errors import StorageError
        from checkin.storage import S3Storage
        client = mock.MagicMock()
        client.put_object.side_effect = ClientError({'Error': {'Code': 'AccessDenied', 'Message': 'no'}}, 'PutObject')
        with pytest.raises(StorageError):
            S3Storage('bucket', client=client).upload('k', b'd', 'image/webp')

    def test_media_storage(self, tmp_path):
        from checkin.storage import MediaStorage
        fs = FileSystemStorage(location=str(tmp_path), base_url='/media/')
        storage = MediaStorage(storage=fs, public_url='https://checkin.example.com/')

        url = storage.upload('checkin/BK/g1_front.webp', b'one', 'image/webp')
        assert url == 'https://checkin.example.com/media/checkin/BK/g1_front.webp'
        # Re-uploading replaces the file instead of renaming it
        storage.upload('checkin/BK/g1_front.webp', b'two', 'image/webp')
        assert (tmp_path / 'checkin' / 'BK' / 'g1_front.webp').read_bytes() == b'two'

    def test_get_storage_picks_backend(self, settings):
        from checkin.storage import MediaStorage, S3Storage, get_storage
        assert isinstance(get_storage(), MediaStorage)
        settings.CHECKIN_STORAGE_BUCKET = 'ids'
        with mock.patch('checkin.storage.boto3.client'):
            assert isinstance(get_storage(), S3Storage)


class TestStaging:
    """Test the captured image staging area."""

    def test_save_and_load(self, staging, jpeg_bytes):
        staging.save('BK-001', 'g1', 'front', jpeg_bytes)
        assert staging.load('BK-001', 'g1', 'front') == jpeg_bytes
        assert staging.has('BK-001', 'g1', 'front')
        assert not staging.has_all('BK-001', 'g1')

        staging.save('BK-001', 'g1', 'back', jpeg_bytes)
        assert staging.has_all('BK-001', 'g1')

    def test_load_missing(self, staging):
        assert staging.load('BK-001', 'g1', 'back') is None

    def test_clear(self, staging, jpeg_bytes):
        staging.save('BK-001', 'g1', 'front', jpeg_bytes)
        staging.clear('BK-001')
        assert not staging.has('BK-001', 'g1', 'front')
        staging.clear('BK-001')

    def test_invalid_side(self, staging):
        from checkin.errors import InvalidSideError
        with pytest.raises(InvalidSideError):
            staging.save('BK-001', 'g1', 'left', b'x')

    @pytest.mark.parametrize('booking_id, guest_id', [
        ('../../etc', 'g1'),
        ('BK-001', '../g1'),
        ('BK-001', 'a/b'),
        ('BK-001', '.hidden'),
        ('BK-001', 'g1\n'),
        ('', 'g1'),
    ])
    def test_unsafe_ids_are_rejected(self, staging, booking_id, guest_id):
        from checkin.errors import InvalidIdentifierError
        with pytest.raises(InvalidIdentifierError):
            staging.path(booking_id, guest_id, 'front')

    def test_similar_ids_do_not_share_files(self, staging):
        path = staging.path('BK-001', 'a_b', 'front')
        assert os.path.dirname(os.path.dirname(path)) == staging.root
        assert os.path.basename(path) == 'a_b_front.jpg'
        assert staging.path('BK-001', 'a-b', 'front') != path


class TestReservations:
    """Test reservation lookup and update."""

    def test_find_by_phone_today(self, sample_reservation):
        from checkin.reservations import find_reservation_by_phone
        reservation = find_reservation_by_phone('+15550102000')
        assert reservation.booking_id == 'BK-001'
        assert reservation.room_category == 'Deluxe'
        assert [g.name for g in reservation.guests] == ['Maria Lopez', 'Daniel  Lopez']

    def test_not_today(self, sample_reservation):
        from checkin.reservations import find_reservation_by_phone
        assert find_reservation_by_phone('5550147788') is None

    def test_phone_must_match_exactly(self, sample_reservation):
        from checkin.reservations import find_reservation_by_phone
        assert find_reservation_by_phone('15550102000') is None

    def test_missing_document(self):
        from checkin.reservations import find_reservation_by_phone
        assert find_reservation_by_phone('+15550102000') is None

    def test_store_failure_raises_lookup_error(self, sample_reservation):
        from checkin.errors import ReservationLookupError
        from checkin.reservations import find_reservation_by_phone
        with mock.patch('checkin.emulator.load_hotel_document', side_effect=RuntimeError('down')):
            with pytest.raises(ReservationLookupError):
                find_reservation_by_phone('+15550102000')

    def test_round_trip_keeps_unknown_keys(self, reservation_data):
        from checkin.reservations import Reservation
        reservation = Reservation.from_dict(reservation_data)
        assert reservation.to_dict() == dict(reservation_data)

    def test_record_guest_documents(self, sample_reservation, checkin_settings):
        from checkin import emulator
        from checkin.reservations import record_guest_documents
        urls = {
            'g1': {'front': 'https://f/g1f', 'back': 'https://f/g1b'},
            'g2': {'front': 'https://f/g2f', 'back': 'https://f/g2b'},
        }
        updated = record_guest_documents('BK-001', urls)
        assert updated.check_in_completed_at

        doc = emulator.load_hotel_document(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT)
        stored = doc['reservation'][0]
        assert stored['guests'][0]['idFrontUrl'] == 'https://f/g1f'
        assert stored['guests'][1]['idBackUrl'] == 'https://f/g2b'
        assert stored['guests'][1]['age'] == 34
        assert stored['source'] == 'website'
        # The other reservation is untouched
        assert doc['reservation'][1]['bookingId'] == 'BK-002'
        assert 'checkInCompletedAt' not in doc['reservation'][1]

    def test_record_unknown_booking(self, sample_reservation):
        from checkin.errors import ReservationNotFoundError
        from checkin.reservations import record_guest_documents
        with pytest.raises(ReservationNotFoundError):
            record_guest_documents('BK-404', {})

    def test_dynamodb_backend_selected(self, settings):
        from checkin import dynamo_db, emulator
        from checkin.reservations import get_store
        assert get_store() is emulator
        settings.RESERVATIONS_TABLE = 'reservations'
        assert get_store() is dynamo_db


class TestDynamoDB:
    """Test the DynamoDB adapter with a mocked table."""

    def test_load_converts_decimals(self):
        from checkin import dynamo_db
        table = mock.MagicMock()
        table.get_item.return_value = {'Item': {
            'account': 'a', 'document': 'hotel',
            'reservation': [{'bookingId': 'BK', 'nights': Decimal('2'), 'rate': Decimal('99.5')}],
        }}
        with mock.patch.object(dynamo_db, 'get_table', return_value=table):
            doc = dynamo_db.load_hotel_document('a', 'hotel')
        table.get_item.assert_called_once_with(Key={'account': 'a', 'document': 'hotel'})
        assert doc['reservation'][0]['nights'] == 2
        assert doc['reservation'][0]['rate'] == 99.5

    def test_load_missing_item(self):
        from checkin import dynamo_db
        table = mock.MagicMock()
        table.get_item.return_value = {}
        with mock.patch.object(dynamo_db, 'get_table', return_value=table):
            assert dynamo_db.load_hotel_document('a', 'hotel') is None

    def test_client_error_is_wrapped(self):
        from checkin import dynamo_db
        from checkin.errors import ReservationStoreError
        table = mock.MagicMock()
        table.get_item.side_effect = ClientError({'Error': {'Code': 'ResourceNotFoundException', 'Message': 'x'}}, 'GetItem')
        with mock.patch.object(dynamo_db, 'get_table', return_value=table):
            with pytest.raises(ReservationStoreError):
                dynamo_db.load_hotel_document('a', 'hotel')

    def test_save_reservations(self):
        from checkin import dynamo_db
        table = mock.MagicMock()
        with mock.patch.object(dynamo_db, 'get_table', return_value=table):
            dynamo_db.save_reservations('a', 'hotel', [{'bookingId': 'BK', 'rate': 99.5}])
        kwargs = table.update_item.call_args.kwargs
        assert kwargs['Key'] == {'account': 'a', 'document': 'hotel'}
        assert kwargs['ExpressionAttributeValues'][':r'] == [{'bookingId': 'BK', 'rate': Decimal('99.5')}]

    def test_lookup_through_dynamodb(self, settings, reservation_data):
        from checkin import dynamo_db
        from checkin.reservations import find_reservation_by_phone
        settings.RESERVATIONS_TABLE = 'reservations'
        table = mock.MagicMock()
        table.get_item.return_value = {'Item': {'reservation': [reservation_data]}}
        with mock.patch.object(dynamo_db, 'get_table', return_value=table):
            assert find_reservation_by_phone('+15550102000').booking_id == 'BK-001'


class TestSubmission:
    """Test check-in submission."""

    def _stage_all(self, staging, reservation, data):
        for guest in reservation.guests:
            for side in ('front', 'back'):
                staging.save(reservation.booking_id, guest.id, side, data)

    def test_guest_file_stem(self):
        from checkin.reservations import Guest
        from checkin.submission import guest_file_stem
        assert guest_file_stem(Guest(id='g2', name='Daniel  Lopez')) == 'Daniel_Lopez'
        assert guest_file_stem(Guest(id='g3', name='')) == 'guest'

    def test_incomplete_raises(self, sample_reservation, staging, jpeg_bytes):
        from checkin.errors import IncompleteCheckInError
        from checkin.reservations import get_reservation
        from checkin.submission import submit_check_in
        reservation = get_reservation('BK-001')
        staging.save('BK-001', 'g1', 'front', jpeg_bytes)
        with pytest.raises(IncompleteCheckInError) as exc:
            submit_check_in(reservation, staging, storage=FakeStorage())
        assert exc.value.details['missing_guests'] == ['g1', 'g2']

    def test_success_records_urls(self, sample_reservation, staging, jpeg_bytes):
        from checkin.reservations import get_reservation
        from checkin.submission import submit_check_in
        reservation = get_reservation('BK-001')
        self._stage_all(staging, reservation, jpeg_bytes)
        storage = FakeStorage()

        result = submit_check_in(reservation, staging, storage=storage)

        assert result.success
        assert sorted(storage.uploads) == [
            'checkin/BK-001/g1_Maria_Lopez_id_back.webp',
            'checkin/BK-001/g1_Maria_Lopez_id_front.webp',
            'checkin/BK-001/g2_Daniel_Lopez_id_back.webp',
            'checkin/BK-001/g2_Daniel_Lopez_id_front.webp',
        ]
        stored = get_reservation('BK-001')
        assert stored.get_guest('g2').id_front_url == 'https://files.example.com/checkin/BK-001/g2_Daniel_Lopez_id_front.webp'
        assert stored.get_guest('g2').extra == {'age': 34}
        assert stored.check_in_completed_at
        assert not staging.has('BK-001', 'g1', 'front')

    def test_failure_keeps_staging_and_record(self, sample_reservation, staging, jpeg_bytes):
        from checkin.reservations import get_reservation
        from checkin.submission import STATUS_DONE, STATUS_ERROR, submit_check_in
        reservation = get_reservation('BK-001')
        self._stage_all(staging, reservation, jpeg_bytes)

        result = submit_check_in(reservation, staging, storage=FakeStorage(fail_keys=['g2_']))

        assert not result.success
        statuses = {s.guest_id: s for s in result.statuses}
        assert statuses['g1'].status == STATUS_DONE
        assert statuses['g2'].status == STATUS_ERROR
        assert statuses['g2'].error == "Upload failed. Please try again."
        assert result.failed_guest_ids == ['g2']
        assert staging.has_all('BK-001', 'g2')
        assert get_reservation('BK-001').check_in_completed_at is None

    def test_zero_guests_completes_immediately(self, checkin_settings, reservation_data, staging):
        from checkin import emulator
        from checkin.reservations import get_reservation
        from checkin.submission import submit_check_in
        emulator.seed(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT,
                      [dict(reservation_data, guests=[])])
        storage = FakeStorage()

        result = submit_check_in(get_reservation('BK-001'), staging, storage=storage)

        assert result.success
        assert result.statuses == []
        assert storage.uploads == {}
        assert get_reservation('BK-001').check_in_completed_at


class TestEmulator:
    """Test the in-memory hotel document store."""

    def test_load_fixture_document_shape(self, tmp_path, reservation_data, checkin_settings):
        from checkin import emulator
        path = tmp_path / 'hotel.json'
        path.write_text(json.dumps({'reservation': [reservation_data]}))

        assert emulator.load_fixture(str(path)) == 1
        doc = emulator.load_hotel_document(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT)
        assert doc['reservation'][0]['bookingId'] == 'BK-001'

    def test_load_fixture_list_shape(self, tmp_path, reservation_data):
        from checkin import emulator
        path = tmp_path / 'reservations.json'
        path.write_text(json.dumps([reservation_data, dict(reservation_data, bookingId='BK-002')]))

        assert emulator.load_fixture(str(path), account='other@example.com', document='hotel') == 2
        assert len(emulator.load_hotel_document('other@example.com', 'hotel')['reservation']) == 2

    def test_load_fixture_unreadable(self, tmp_path, checkin_settings):
        from checkin import emulator
        broken = tmp_path / 'broken.json'
        broken.write_text('{not json')

        assert emulator.load_fixture(str(tmp_path / 'missing.json')) == 0
        assert emulator.load_fixture(str(broken)) == 0
        assert emulator.load_hotel_document(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT) is None

    def test_loaded_documents_are_copies(self, sample_reservation, checkin_settings):
        from checkin import emulator
        doc = emulator.load_hotel_document(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT)
        doc['reservation'].clear()
        again = emulator.load_hotel_document(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT)
        assert len(again['reservation']) == 2

    def test_app_ready_seeds_fixture(self, tmp_path, reservation_data, checkin_settings):
        from django.apps import apps
        from checkin.reservations import find_reservation_by_phone
        path = tmp_path / 'reservations.json'
        path.write_text(json.dumps([reservation_data]))
        checkin_settings.RESERVATIONS_FIXTURE = str(path)

        apps.get_app_config('checkin').ready()

        assert find_reservation_by_phone('+15550102000').booking_id == 'BK-001'

    def test_app_ready_skips_fixture_with_table(self, tmp_path, reservation_data, checkin_settings):
        from django.apps import apps
        from checkin import emulator
        path = tmp_path / 'reservations.json'
        path.write_text(json.dumps([reservation_data]))
        checkin_settings.RESERVATIONS_FIXTURE = str(path)
        checkin_settings.RESERVATIONS_TABLE = 'reservations'

        apps.get_app_config('checkin').ready()

        assert emulator.documents == {}


class TestLookupViews:
    """Test the phone lookup page."""

    def test_lookup_page(self, client):
        response = client.get(reverse('checkin:lookup'))
        assert response.status_code == 200
        assert b'The Hotel' in response.content

    def test_lookup_finds_reservation(self, client, sample_reservation):
        response = client.post(reverse('checkin:lookup'), {'phone_number': '+1 (555) 010-2000'})
        assert response.status_code == 303
        assert response.url == reverse('checkin:checkin_form')

    def test_lookup_not_found(self, client, sample_reservation):
        response = client.post(reverse('checkin:lookup'), {'phone_number': '5550147788'})
        assert response.status_code == 200
        assert b'Reservation not found. Please check your phone number and try again.' in response.content

    def test_lookup_store_error(self, client, sample_reservation):
        with mock.patch('checkin.emulator.load_hotel_document', side_effect=RuntimeError('down')):
            response = client.post(reverse('checkin:lookup'), {'phone_number': '+15550102000'})
        assert response.status_code == 200
        assert b'An error occurred. Please try again.' in response.content

    def test_session_holds_only_booking_id(self, client, checkin_settings, reservation_data):
        from checkin import emulator
        long_url = 'https://ids.s3.amazonaws.com/checkin/BK-001/id.webp?' + 'X-Amz-Signature=' + 'a' * 1200
        guests = [
            {'id': f'g{n}', 'name': f'Guest {n}', 'idFrontUrl': long_url, 'idBackUrl': long_url}
            for n in range(1, 4)
        ]
        emulator.seed(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT,
                      [dict(reservation_data, guests=guests)])

        response = client.post(reverse('checkin:lookup'), {'phone_number': '+15550102000'})

        assert response.status_code == 303
        assert len(client.cookies['checkin_session'].value) < 1024
        assert client.session['booking_id'] == 'BK-001'
        response = client.get(reverse('checkin:checkin_form'))
        assert response.status_code == 200
        assert response.context['total_count'] == 3

    def test_session_for_removed_reservation(self, session_client):
        from checkin import emulator
        emulator.reset()
        response = session_client.get(reverse('checkin:checkin_form'))
        assert response.status_code == 303
        assert response.url == reverse('checkin:lookup')

    def test_session_reservation_store_error(self, session_client):
        with mock.patch('checkin.emulator.load_hotel_document', side_effect=RuntimeError('down')):
            response = session_client.get(reverse('checkin:checkin_form'))
        assert response.status_code == 503
        assert b'An error occurred. Please try again.' in response.content

    def test_error_page(self, client):
        response = client.get(reverse('checkin:error'), {'message': 'Card reader offline', 'code': 'X1'})
        assert response.status_code == 200
        assert b'Card reader offline' in response.content


class TestWizardViews:
    """Test the guest image capture wizard."""

    def test_form_requires_session(self, client):
        response = client.get(reverse('checkin:checkin_form'))
        assert response.status_code == 303
        assert response.url == reverse('checkin:lookup')

    def test_form_lists_guests(self, session_client):
        response = session_client.get(reverse('checkin:checkin_form'))
        assert response.status_code == 200
        assert b'BK-001' in response.content
        assert b'Daniel  Lopez' in response.content
        assert response.context['completed_count'] == 0
        assert response.context['total_count'] == 2
        assert not response.context['all_complete']
        assert response.context['remaining_count'] == 2
        assert b'Complete 2 more guests' in response.content

    def test_upload_options(self, session_client):
        response = session_client.get(reverse('checkin:upload_options', args=['g1', 'back']))
        assert response.status_code == 200
        assert b'Upload Back of ID' in response.content
        assert b'Maria Lopez' in response.content

    def test_unknown_guest_or_side(self, session_client):
        assert session_client.get(reverse('checkin:upload_options', args=['g9', 'front'])).status_code == 404
        assert session_client.get(reverse('checkin:upload_options', args=['g1', 'top'])).status_code == 404

    def test_camera_page(self, session_client):
        response = session_client.get(reverse('checkin:camera_capture', args=['g1', 'front']))
        assert response.status_code == 200
        assert b'Camera Permission Required' in response.content
        assert b'Scan Front of ID' in response.content
        assert b"Position the front of your driver's license or state ID in the frame." in response.content

    def test_gallery_upload(self, session_client, staging):
        upload = SimpleUploadedFile('id.png', make_image(500, 300, '.png'), content_type='image/png')
        response = session_client.post(reverse('checkin:gallery_upload', args=['g1', 'front']), {'image': upload})
        assert response.status_code == 303
        assert decode(staging.load('BK-001', 'g1', 'front')).shape[:2] == (300, 500)

    def test_gallery_upload_rejects_non_image(self, session_client, staging):
        upload = SimpleUploadedFile('id.txt', b'hello', content_type='text/plain')
        response = session_client.post(reverse('checkin:gallery_upload', args=['g1', 'front']), {'image': upload})
        assert response.status_code == 400
        assert not staging.has('BK-001', 'g1', 'front')

    def test_capture_api(self, session_client, staging):
        payload = {
            'image': data_url(make_image(1920, 1080)),
            'display_width': 960,
            'display_height': 540,
            'viewport_width': 1000,
        }
        response = session_client.post(
            reverse('checkin:capture_api', args=['g2', 'back']),
            data=json.dumps(payload),
            content_type='application/json',
        )
        assert response.status_code == 200
        assert response.json() == {'success': True, 'redirect': reverse('checkin:checkin_form')}
        assert decode(staging.load('BK-001', 'g2', 'back')).shape[:2] == (560, 896)

    def test_capture_api_bad_image(self, session_client):
        response = session_client.post(
            reverse('checkin:capture_api', args=['g1', 'front']),
            data=json.dumps({'image': 'data:image/jpeg;base64,AAAA', 'display_width': 10,
                             'display_height': 10, 'viewport_width': 10}),
            content_type='application/json',
        )
        assert response.status_code == 400
        assert response.json()['error_code'] == 'INVALID_IMAGE'

    def test_capture_api_requires_session(self, client):
        response = client.post(
            reverse('checkin:capture_api', args=['g1', 'front']),
            data='{}',
            content_type='application/json',
        )
        assert response.status_code == 400
        assert response.json()['error_code'] == 'SESSION_EXPIRED'

    @pytest.mark.parametrize('body', ['[]', '"frame"', '42', 'null', '{broken'])
    def test_capture_api_rejects_non_object_body(self, session_client, body):
        response = session_client.post(
            reverse('checkin:capture_api', args=['g1', 'front']),
            data=body,
            content_type='application/json',
        )
        assert response.status_code == 400
        assert response.json()['error_code'] == 'INVALID_JSON'

    @pytest.mark.parametrize('bad', ['nan', 'inf', '-inf'])
    def test_capture_api_rejects_non_finite_geometry(self, session_client, staging, bad):
        payload = {
            'image': data_url(make_image(1920, 1080)),
            'display_width': bad,
            'display_height': 540,
            'viewport_width': 1000,
        }
        response = session_client.post(
            reverse('checkin:capture_api', args=['g1', 'front']),
            data=json.dumps(payload),
            content_type='application/json',
        )
        assert response.status_code == 400
        assert response.json()['error_code'] == 'CAPTURE_FAILED'
        assert not staging.has('BK-001', 'g1', 'front')

    def test_camera_page_back_side(self, session_client):
        response = session_client.get(reverse('checkin:camera_capture', args=['g2', 'back']))
        assert b'Scan Back of ID' in response.content

    def test_preview(self, session_client, staging, jpeg_bytes):
        url = reverse('checkin:preview', args=['g1', 'front'])
        assert session_client.get(url).status_code == 404
        staging.save('BK-001', 'g1', 'front', jpeg_bytes)
        response = session_client.get(url)
        assert response.status_code == 200
        assert response['Content-Type'] == 'image/jpeg'
        assert response.content == jpeg_bytes

    def test_progress_counts_complete_guests(self, session_client, staging, jpeg_bytes):
        staging.save('BK-001', 'g1', 'front', jpeg_bytes)
        staging.save('BK-001', 'g1', 'back', jpeg_bytes)
        response = session_client.get(reverse('checkin:checkin_form'))
        assert response.context['completed_count'] == 1
        assert response.context['progress'] == 50
        assert b'1 of 2 guests' in response.content
        assert b'Complete 1 more guest' in response.content
        assert b'Complete 1 more guests' not in response.content

    def test_back_clears_everything(self, session_client, staging, jpeg_bytes):
        staging.save('BK-001', 'g1', 'front', jpeg_bytes)
        response = session_client.post(reverse('checkin:back'))
        assert response.status_code == 303
        assert not staging.has('BK-001', 'g1', 'front')
        assert session_client.get(reverse('checkin:checkin_form')).status_code == 303


class TestSubmitView:
    """Test the final submission."""

    def test_submit_incomplete(self, session_client, staging, jpeg_bytes):
        staging.save('BK-001', 'g1', 'front', jpeg_bytes)
        response = session_client.post(reverse('checkin:submit'))
        assert response.status_code == 400
        assert b'Please add the front and back of the ID for every guest.' in response.content

    def test_submit_success(self, session_client, staging, jpeg_bytes, checkin_settings):
        from checkin.reservations import get_reservation
        for guest_id in ('g1', 'g2'):
            for side in ('front', 'back'):
                staging.save('BK-001', guest_id, side, jpeg_bytes)

        response = session_client.post(reverse('checkin:submit'))

        assert response.status_code == 200
        assert b'Check-In Complete' in response.content
        assert b'Deluxe Room' in response.content
        assert b'3 nights' in response.content
        stored = get_reservation('BK-001')
        assert stored.get_guest('g1').id_front_url == '/media/checkin/BK-001/g1_Maria_Lopez_id_front.webp'
        # Session is gone: the wizard sends the next visitor to the lookup
        assert session_client.get(reverse('checkin:checkin_form')).status_code == 303

    def test_submit_without_guests(self, client, checkin_settings, reservation_data):
        from checkin import emulator
        emulator.seed(checkin_settings.HOTEL_ACCOUNT, checkin_settings.HOTEL_DOCUMENT,
                      [dict(reservation_data, guests=[], nights=1)])
        client.post(reverse('checkin:lookup'), {'phone_number': '+15550102000'})

        form = client.get(reverse('checkin:checkin_form'))
        assert form.context['progress'] == 100
        assert form.context['all_complete']

        response = client.post(reverse('checkin:submit'))
        assert response.status_code == 200
        assert b'Check-In Complete' in response.content
        assert b'1 night<' in response.content
        assert b'1 nights' not in response.content

    def test_submit_upload_failure(self, session_client, staging, jpeg_bytes):
        for guest_id in ('g1', 'g2'):
            for side in ('front', 'back'):
                staging.save('BK-001', guest_id, side, jpeg_bytes)

        with mock.patch('checkin.submission.get_storage', return_value=FakeStorage(fail_keys=['g1_'])):
            response = session_client.post(reverse('checkin:submit'))

        assert response.status_code == 502
        assert b'Upload failed. Please try again.' in response.content
        assert staging.has_all('BK-001', 'g1')


class TestSeedCommand:
    """Test the seed_reservations management command."""

    def test_seed_with_today(self, tmp_path, reservation_data, checkin_settings):
        from checkin.reservations import find_reservation_by_phone
        path = tmp_path / 'reservations.json'
        path.write_text(json.dumps([dict(reservation_data, checkIn='2020-01-01T09:30:00.000Z')]))

        call_command('seed_reservations', str(path), '--today')

        reservation = find_reservation_by_phone('+15550102000')
        assert reservation is not None
        assert reservation.check_in.endswith('T09:30:00.000Z')
