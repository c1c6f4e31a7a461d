"""
Staging area for captured ID images.

Captured and uploaded images wait on disk until the guest submits the whole
check-in:

    <root>/<booking_id>/<guest_id>_<side>.jpg
"""

import logging
import os
import re
import shutil

from django.conf import settings

from .errors import InvalidIdentifierError, InvalidSideError

logger = logging.getLogger(__name__)

SIDES = ('front', 'back')

_SAFE_ID_RE = re.compile(r'[A-Za-z0-9_-][A-Za-z0-9_.-]*')


def _safe(component) -> str:
    """Ids are used as path components as-is; anything else is rejected."""
    value = str(component)
    if not _SAFE_ID_RE.fullmatch(value):
        raise InvalidIdentifierError(value)
    return value


class CaptureStaging:
    """Filesystem store of not-yet-submitted ID images."""

    def __init__(self, root=None):
        self.root = str(root or settings.CHECKIN_STAGING_ROOT)

    def _dir(self, booking_id):
        return os.path.join(self.root, _safe(booking_id))

    def path(self, booking_id, guest_id, side):
        if side not in SIDES:
            raise InvalidSideError(side)
        return os.path.join(self._dir(booking_id), f"{_safe(guest_id)}_{side}.jpg")

    def save(self, booking_id, guest_id, side, data):
        path = self.path(booking_id, guest_id, side)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, 'wb') as f:
            f.write(data)
        os.replace(tmp_path, path)
        logger.info(f"Staged {side} ID image for guest {guest_id} ({len(data)} bytes)")
        return path

    def load(self, booking_id, guest_id, side):
        path = self.path(booking_id, guest_id, side)
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return None

    def has(self, booking_id, guest_id, side):
        return os.path.isfile(self.path(booking_id, guest_id, side))

    def has_all(self, booking_id, guest_id):
        return all(self.has(booking_id, guest_id, side) for side in SIDES)

    def clear(self, booking_id):
        directory = self._dir(booking_id)
        if os.path.isdir(directory):
            shutil.rmtree(directory)
            logger.info(f"Cleared staged images for {booking_id}")
