"""
Check-in submission.

Uploads every guest's staged ID images concurrently and, once all of them
are stored, writes the URLs back onto the reservation.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List

from . import reservations
from .errors import IncompleteCheckInError
from .image_upload import upload_image
from .storage import get_storage

logger = logging.getLogger(__name__)

STATUS_UPLOADING = 'uploading'
STATUS_DONE = 'done'
STATUS_ERROR = 'error'

UPLOAD_FAILED_MESSAGE = "Upload failed. Please try again."

MAX_UPLOAD_WORKERS = 8


@dataclass
class GuestUploadStatus:
    guest_id: str
    status: str = STATUS_UPLOADING
    front_url: str = ''
    back_url: str = ''
    error: str = ''


@dataclass
class SubmissionResult:
    statuses: List[GuestUploadStatus] = field(default_factory=list)
    reservation: object = None

    @property
    def success(self) -> bool:
        return all(s.status == STATUS_DONE for s in self.statuses)

    @property
    def failed_guest_ids(self) -> List[str]:
        return [s.guest_id for s in self.statuses if s.status == STATUS_ERROR]


def guest_file_stem(guest) -> str:
    """Guest name with whitespace runs replaced by underscores."""
    return re.sub(r'\s+', '_', guest.name or '') or 'guest'


def storage_path(booking_id, guest_id) -> str:
    return f"checkin/{booking_id}/{guest_id}"


def missing_guests(reservation, staging) -> List[str]:
    return [g.id for g in reservation.guests if not staging.has_all(reservation.booking_id, g.id)]


def _upload_side(reservation, guest, side, staging, storage):
    data = staging.load(reservation.booking_id, guest.id, side)
    if not data:
        return False
    path = storage_path(reservation.booking_id, guest.id)
    return upload_image(data, path, f"{guest_file_stem(guest)}_id_{side}.jpg", storage=storage)


def _guest_status(reservation, guest, front_url, back_url) -> GuestUploadStatus:
    status = GuestUploadStatus(guest_id=guest.id)
    if front_url and back_url:
        status.status = STATUS_DONE
        status.front_url, status.back_url = front_url, back_url
        logger.info(f"Images uploaded successfully for guest {guest.id}")
    else:
        status.status = STATUS_ERROR
        status.error = UPLOAD_FAILED_MESSAGE
        logger.error(f"Image upload failed for guest {guest.id} on {reservation.booking_id}")
    return status


def submit_check_in(reservation, staging, storage=None) -> SubmissionResult:
    """
    Upload every guest's ID images and record the URLs.

    Raises IncompleteCheckInError unless every guest has both sides staged.
    When any guest fails, nothing is written to the reservation and the
    staged images are kept for a retry.
    """
    missing = missing_guests(reservation, staging)
    if missing:
        raise IncompleteCheckInError(missing)

    storage = storage or get_storage()
    workers = max(1, min(MAX_UPLOAD_WORKERS, 2 * len(reservation.guests)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            (guest, pool.submit(_upload_side, reservation, guest, 'front', staging, storage),
             pool.submit(_upload_side, reservation, guest, 'back', staging, storage))
            for guest in reservation.guests
        ]
        result = SubmissionResult(statuses=[
            _guest_status(reservation, guest, front.result(), back.result())
            for guest, front, back in futures
        ])

    if not result.success:
        logger.warning(f"Check-in {reservation.booking_id} incomplete, failed guests: {result.failed_guest_ids}")
        return result

    urls_by_guest = {
        s.guest_id: {'front': s.front_url, 'back': s.back_url}
        for s in result.statuses
    }
    result.reservation = reservations.record_guest_documents(reservation.booking_id, urls_by_guest)
    staging.clear(reservation.booking_id)
    logger.info(f"Check-in completed for {reservation.booking_id}, {len(result.statuses)} guests")
    return result
