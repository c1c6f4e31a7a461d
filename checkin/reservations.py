"""
Reservation lookup and update.

Reservations are read from the hotel document in the configured store:
1. DynamoDB table (production, RESERVATIONS_TABLE set)
2. In-memory emulator (development/tests)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.conf import settings
from django.utils import timezone

from . import emulator
from .errors import CheckInError, ReservationLookupError, ReservationNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class Guest:
    """One person on a reservation who must show an ID."""
    id: str
    name: str
    id_front_url: Optional[str] = None
    id_back_url: Optional[str] = None
    extra: Dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Guest':
        known = {'id', 'name', 'idFrontUrl', 'idBackUrl'}
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name') or '',
            id_front_url=data.get('idFrontUrl'),
            id_back_url=data.get('idBackUrl'),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict:
        data = dict(self.extra)
        data.update({'id': self.id, 'name': self.name})
        if self.id_front_url:
            data['idFrontUrl'] = self.id_front_url
        if self.id_back_url:
            data['idBackUrl'] = self.id_back_url
        return data


@dataclass
class Reservation:
    """A booking as stored in the hotel document."""
    booking_id: str
    name: str
    phone: str
    check_in: str
    check_out: str
    email: str = ''
    number_of_guests: str = ''
    room_category: str = ''
    payment_mode: str = ''
    nights: int = 0
    created_at: str = ''
    check_in_completed_at: Optional[str] = None
    guests: List[Guest] = field(default_factory=list)
    extra: Dict = field(default_factory=dict)

    FIELD_MAP = {
        'bookingId': 'booking_id',
        'name': 'name',
        'phone': 'phone',
        'checkIn': 'check_in',
        'checkOut': 'check_out',
        'email': 'email',
        'numberOfGuests': 'number_of_guests',
        'roomCategory': 'room_category',
        'paymentMode': 'payment_mode',
        'nights': 'nights',
        'createdAt': 'created_at',
        'checkInCompletedAt': 'check_in_completed_at',
    }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Reservation':
        kwargs = {}
        for key, attr in cls.FIELD_MAP.items():
            if data.get(key) is not None:
                kwargs[attr] = data[key]
        for attr in ('booking_id', 'name', 'phone', 'check_in', 'check_out'):
            kwargs[attr] = str(kwargs.get(attr, ''))
        try:
            kwargs['nights'] = int(kwargs.get('nights') or 0)
        except (TypeError, ValueError):
            kwargs['nights'] = 0
        return cls(
            guests=[Guest.from_dict(g) for g in data.get('guests') or []],
            extra={k: v for k, v in data.items() if k not in cls.FIELD_MAP and k != 'guests'},
            **kwargs,
        )

    def to_dict(self) -> Dict:
        data = dict(self.extra)
        for key, attr in self.FIELD_MAP.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        data['guests'] = [g.to_dict() for g in self.guests]
        return data

    @property
    def check_in_date(self) -> str:
        """Date part (YYYY-MM-DD) of the check-in timestamp."""
        return self.check_in.split('T')[0] if self.check_in else ''

    def get_guest(self, guest_id) -> Optional[Guest]:
        for guest in self.guests:
            if guest.id == str(guest_id):
                return guest
        return None


def get_store():
    """Pick the backing store module."""
    if getattr(settings, 'RESERVATIONS_TABLE', ''):
        from . import dynamo_db
        return dynamo_db
    return emulator


def _today() -> str:
    return timezone.localdate().isoformat()


def _load_reservations() -> Optional[List[Dict]]:
    doc = get_store().load_hotel_document(settings.HOTEL_ACCOUNT, settings.HOTEL_DOCUMENT)
    if doc is None:
        return None
    return list(doc.get('reservation') or [])


def find_reservation_by_phone(phone_number) -> Optional[Reservation]:
    """
    Find today's reservation for a phone number.

    The phone must match exactly and the check-in date must be today.
    Returns None when nothing matches or the hotel document is missing.
    Raises ReservationLookupError when the store cannot be read.
    """
    try:
        reservations = _load_reservations()
    except CheckInError as e:
        raise ReservationLookupError(e.message) from e
    except Exception as e:
        logger.exception(f"Error looking up reservation for {phone_number}: {e}")
        raise ReservationLookupError(e) from e

    if reservations is None:
        return None

    today = _today()
    for data in reservations:
        checkin_date = str(data.get('checkIn') or '').split('T')[0]
        if data.get('phone') == phone_number and checkin_date == today:
            logger.info(f"Found reservation {data.get('bookingId')} for phone lookup")
            return Reservation.from_dict(data)

    logger.info(f"No reservation for today ({today}) matching phone lookup")
    return None


def get_reservation(booking_id) -> Optional[Reservation]:
    """Get a reservation by booking id, regardless of date."""
    reservations = _load_reservations() or []
    for data in reservations:
        if str(data.get('bookingId')) == str(booking_id):
            return Reservation.from_dict(data)
    return None


def record_guest_documents(booking_id, urls_by_guest) -> Reservation:
    """
    Store uploaded ID image URLs on the reservation's guests.

    Args:
        booking_id: Reservation booking id
        urls_by_guest: {guest_id: {'front': url, 'back': url}}

    Returns:
        The updated Reservation. The whole reservation list is rewritten
        (last write wins).
    """
    store = get_store()
    account, document = settings.HOTEL_ACCOUNT, settings.HOTEL_DOCUMENT

    reservations = _load_reservations() or []
    for index, data in enumerate(reservations):
        if str(data.get('bookingId')) != str(booking_id):
            continue

        reservation = Reservation.from_dict(data)
        for guest in reservation.guests:
            urls = urls_by_guest.get(guest.id)
            if not urls:
                continue
            guest.id_front_url = urls.get('front') or guest.id_front_url
            guest.id_back_url = urls.get('back') or guest.id_back_url
        reservation.check_in_completed_at = timezone.now().isoformat()

        reservations[index] = reservation.to_dict()
        store.save_reservations(account, document, reservations)
        logger.info(f"Recorded ID documents for {len(urls_by_guest)} guests on {booking_id}")
        return reservation

    raise ReservationNotFoundError(booking_id)
