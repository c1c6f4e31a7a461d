"""
Error Handling System
Provides consistent error responses across the check-in flow
"""
import logging

logger = logging.getLogger(__name__)


class CheckInError(Exception):
    """Base exception for check-in errors"""
    status_code = 400

    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to JSON-serializable dict"""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


# Reservation store errors
class ReservationStoreError(CheckInError):
    """The hosted document store could not be read or written"""
    status_code = 503

    def __init__(self, operation, reason):
        super().__init__(
            message=f"Reservation store {operation} failed",
            error_code="RESERVATION_STORE_ERROR",
            details={
                "operation": operation,
                "reason": str(reason),
            }
        )


class ReservationLookupError(CheckInError):
    """Lookup failed for a reason other than 'no match'"""
    status_code = 503

    def __init__(self, reason):
        super().__init__(
            message="An error occurred. Please try again.",
            error_code="RESERVATION_LOOKUP_FAILED",
            details={"reason": str(reason)}
        )


class ReservationNotFoundError(CheckInError):
    """Reservation does not exist in the hotel document"""
    status_code = 404

    def __init__(self, booking_id):
        super().__init__(
            message=f"Reservation {booking_id} was not found",
            error_code="RESERVATION_NOT_FOUND",
            details={"booking_id": booking_id}
        )


class SessionExpiredError(CheckInError):
    """No reservation in the guest's session"""

    def __init__(self):
        super().__init__(
            message="Your session has expired. Please start over or contact the front desk for assistance.",
            error_code="SESSION_EXPIRED",
        )


# Capture and image errors
class CaptureError(CheckInError):
    """Camera frame could not be mapped or cropped"""

    def __init__(self, reason, details=None):
        super().__init__(
            message=f"Could not capture the ID image: {reason}",
            error_code="CAPTURE_FAILED",
            details={
                "reason": reason,
                "suggestion": "Hold the ID inside the frame and try again",
                **(details or {})
            }
        )


class InvalidImageError(CheckInError):
    """Uploaded data is not a readable image"""

    def __init__(self, reason="The file is not a readable image"):
        super().__init__(
            message=reason,
            error_code="INVALID_IMAGE",
            details={
                "suggestion": "Please upload a clear photo of the ID"
            }
        )


class ImageConversionError(CheckInError):
    """Image could not be re-encoded for upload"""

    def __init__(self, message):
        super().__init__(
            message=message,
            error_code="IMAGE_CONVERSION_FAILED",
        )


class StorageError(CheckInError):
    """Object storage rejected an upload"""
    status_code = 502

    def __init__(self, reason):
        super().__init__(
            message=reason,
            error_code="STORAGE_UPLOAD_FAILED",
        )


# Staging errors
class InvalidSideError(CheckInError):
    """ID side other than front/back"""

    def __init__(self, side):
        super().__init__(
            message=f"Unknown ID side: {side}",
            error_code="INVALID_SIDE",
            details={"side": side, "allowed": ["front", "back"]}
        )


class InvalidIdentifierError(CheckInError):
    """Booking or guest id that cannot be used as a file name"""

    def __init__(self, value):
        super().__init__(
            message=f"Invalid identifier: {value!r}",
            error_code="INVALID_IDENTIFIER",
            details={"value": str(value)}
        )


# Submission errors
class IncompleteCheckInError(CheckInError):
    """Not every guest has both ID images"""

    def __init__(self, missing_guest_ids):
        super().__init__(
            message="Please add the front and back of the ID for every guest.",
            error_code="CHECKIN_INCOMPLETE",
            details={"missing_guests": list(missing_guest_ids)}
        )


# Error response helpers
def handle_error(error):
    """
    Handle error consistently across the application

    Returns:
        dict: Error response for JSON serialization
    """
    if isinstance(error, CheckInError):
        logger.error(f"{error.error_code}: {error.message}")
        if error.details:
            logger.debug(f"Error details: {error.details}")
        return error.to_dict()

    logger.exception(f"Unexpected error: {error}")
    return {
        "success": False,
        "error": "An unexpected error occurred",
        "error_code": "UNEXPECTED_ERROR",
        "details": {
            "error_type": type(error).__name__,
        }
    }
