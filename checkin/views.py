import json
import logging
from functools import wraps

from django.conf import settings
from django.http import Http404, HttpResponse, HttpResponseRedirect, JsonResponse
from django.shortcuts import render
from django.urls import reverse
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from . import reservations as db
from .capture import capture_id_image, decode_data_url, decode_image, encode_jpeg
from .errors import (
    CheckInError,
    IncompleteCheckInError,
    ReservationLookupError,
    SessionExpiredError,
    handle_error,
)
from .forms import IDImageUploadForm, PhoneLookupForm
from .staging import SIDES, CaptureStaging
from .submission import submit_check_in

logger = logging.getLogger(__name__)

SESSION_KEY = "booking_id"

NOT_FOUND_MESSAGE = "Reservation not found. Please check your phone number and try again."
LOOKUP_FAILED_MESSAGE = "An error occurred. Please try again."


# ============================================================================
# ERROR HANDLING UTILITIES
# ============================================================================


def redirect_see_other(to, *args, **kwargs):
    """
    Redirect with HTTP 303 (See Other) status.
    This ensures the browser uses GET for the redirect target,
    even when the original request was POST.
    """
    url = reverse(to, args=args, kwargs=kwargs) if (args or kwargs) else reverse(to)
    response = HttpResponseRedirect(url)
    response.status_code = 303
    return response


def render_error(request, message, error_code=None, status=400):
    """Render the error page with Call Front Desk option."""
    return render(
        request,
        "checkin/error.html",
        {
            "error_message": message,
            "error_code": error_code,
            "front_desk_phone": settings.FRONT_DESK_PHONE,
        },
        status=status,
    )


def handle_checkin_errors(view_func):
    """
    Decorator to catch check-in errors in page views.
    Displays error page with Call Front Desk option instead of crashing.
    """

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except CheckInError as e:
            logger.error(f"Check-in error in {view_func.__name__}: {e.message}")
            return render_error(request, e.message, e.error_code, status=e.status_code)
        except Http404:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in {view_func.__name__}: {e}")
            return render_error(
                request,
                "An unexpected error occurred. Please contact the front desk for assistance.",
                error_code="UNEXPECTED_ERROR",
                status=500,
            )

    return wrapper


def json_error(error):
    status = error.status_code if isinstance(error, CheckInError) else 500
    return JsonResponse(handle_error(error), status=status)


# ============================================================================
# SESSION HELPERS
# ============================================================================


def get_session_reservation(request):
    """Load the reservation whose booking id is held in the session."""
    booking_id = request.session.get(SESSION_KEY)
    if not booking_id:
        return None
    return db.get_reservation(booking_id)


def require_reservation(view_func):
    """Send the visitor back to the phone lookup when no reservation is active."""

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        wants_json = request.content_type == "application/json"
        try:
            reservation = get_session_reservation(request)
        except Exception as e:
            error = e if isinstance(e, CheckInError) else ReservationLookupError(e)
            logger.error(f"Could not load session reservation: {e}")
            if wants_json:
                return json_error(error)
            return render_error(request, error.message, error.error_code, status=error.status_code)

        if reservation is None:
            if wants_json:
                return json_error(SessionExpiredError())
            return redirect_see_other("checkin:lookup")
        return view_func(request, reservation, *args, **kwargs)

    return wrapper


def get_guest_or_404(reservation, guest_id, side):
    if side not in SIDES:
        raise Http404("Unknown ID side")
    guest = reservation.get_guest(guest_id)
    if guest is None:
        raise Http404("Guest not found on this reservation")
    return guest


def get_staging():
    return CaptureStaging()


def build_guest_cards(reservation, staging, statuses=None):
    """Per-guest view model for the check-in form."""
    statuses = statuses or {}
    cards = []
    for index, guest in enumerate(reservation.guests, start=1):
        has_front = staging.has(reservation.booking_id, guest.id, "front")
        has_back = staging.has(reservation.booking_id, guest.id, "back")
        status = statuses.get(guest.id)
        cards.append({
            "number": index,
            "guest": guest,
            "has_front": has_front,
            "has_back": has_back,
            "complete": has_front and has_back,
            "error": status.error if status else "",
        })
    return cards


def render_checkin_form(request, reservation, staging, statuses=None, form_error="", status=200):
    cards = build_guest_cards(reservation, staging, statuses)
    completed = sum(1 for card in cards if card["complete"])
    total = len(cards)
    return render(
        request,
        "checkin/checkin_form.html",
        {
            "reservation": reservation,
            "cards": cards,
            "completed_count": completed,
            "total_count": total,
            "progress": round(completed / total * 100) if total else 100,
            "remaining_count": total - completed,
            "all_complete": completed == total,
            "form_error": form_error,
        },
        status=status,
    )


# ============================================================================
# PHONE LOOKUP
# ============================================================================


@require_http_methods(["GET", "POST"])
def lookup(request):
    """Welcome screen: find today's reservation by phone number."""
    error = ""
    if request.method == "POST":
        form = PhoneLookupForm(request.POST)
        if form.is_valid():
            phone = form.cleaned_data["phone_number"]
            try:
                reservation = db.find_reservation_by_phone(phone)
            except CheckInError as e:
                logger.error(f"Reservation lookup failed: {e.details}")
                reservation, error = None, LOOKUP_FAILED_MESSAGE
            else:
                if reservation is None:
                    error = NOT_FOUND_MESSAGE

            if reservation is not None:
                request.session[SESSION_KEY] = reservation.booking_id
                return redirect_see_other("checkin:checkin_form")
    else:
        form = PhoneLookupForm()

    return render(request, "checkin/lookup.html", {"form": form, "error": error})


@require_POST
def back(request):
    """Abandon the check-in and return to the phone lookup."""
    booking_id = request.session.get(SESSION_KEY)
    if booking_id:
        get_staging().clear(booking_id)
    request.session.flush()
    return redirect_see_other("checkin:lookup")


def error_page(request):
    """
    Generic error page with Call Front Desk option.
    Can be accessed directly or via redirect with query params.
    """
    message = request.GET.get("message", "Something went wrong while processing your request.")
    return render_error(request, message, request.GET.get("code"), status=200)


# ============================================================================
# GUEST IMAGE WIZARD
# ============================================================================


@require_GET
@require_reservation
@handle_checkin_errors
def checkin_form(request, reservation):
    return render_checkin_form(request, reservation, get_staging())


@require_GET
@require_reservation
@handle_checkin_errors
def upload_options(request, reservation, guest_id, side):
    """Choose between the camera and the device gallery."""
    guest = get_guest_or_404(reservation, guest_id, side)
    return render(request, "checkin/upload_options.html", {
        "guest": guest,
        "side": side,
        "form": IDImageUploadForm(),
    })


@require_POST
@require_reservation
@handle_checkin_errors
def gallery_upload(request, reservation, guest_id, side):
    guest = get_guest_or_404(reservation, guest_id, side)
    form = IDImageUploadForm(request.POST, request.FILES)
    if not form.is_valid():
        return render(request, "checkin/upload_options.html", {
            "guest": guest,
            "side": side,
            "form": form,
        }, status=400)

    # Normalise to JPEG so staged files are always the same format
    data = encode_jpeg(decode_image(form.image_bytes))
    get_staging().save(reservation.booking_id, guest.id, side, data)
    logger.info(f"{side} image uploaded from gallery for guest {guest.id}")
    return redirect_see_other("checkin:checkin_form")


@require_GET
@require_reservation
@handle_checkin_errors
def camera_capture(request, reservation, guest_id, side):
    """Live camera page with the ID guide frame."""
    guest = get_guest_or_404(reservation, guest_id, side)
    return render(request, "checkin/camera_capture.html", {
        "guest": guest,
        "side": side,
    })


@require_POST
@require_reservation
def capture_api(request, reservation, guest_id, side):
    """
    Receive a full video frame plus the on-screen geometry and stage the
    cropped ID image.

    Request (JSON):
        image: data URL of the full-resolution video frame
        display_width, display_height: rendered size of the video element
        viewport_width: browser viewport width
    """
    guest = get_guest_or_404(reservation, guest_id, side)
    try:
        payload = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if not isinstance(payload, dict):
        return JsonResponse({"success": False, "error": "Invalid JSON", "error_code": "INVALID_JSON"}, status=400)

    try:
        geometry = {
            key: float(payload.get(key) or 0)
            for key in ("display_width", "display_height", "viewport_width")
        }
    except (TypeError, ValueError):
        return JsonResponse({"success": False, "error": "Invalid geometry", "error_code": "INVALID_GEOMETRY"}, status=400)

    try:
        frame = decode_data_url(payload.get("image"))
        data = capture_id_image(frame, **geometry)
        get_staging().save(reservation.booking_id, guest.id, side, data)
    except Exception as e:
        return json_error(e)

    logger.info(f"{side} image captured for guest {guest.id}")
    return JsonResponse({"success": True, "redirect": reverse("checkin:checkin_form")})


@require_GET
@require_reservation
@handle_checkin_errors
def preview(request, reservation, guest_id, side):
    """Serve a staged image for the preview thumbnails."""
    guest = get_guest_or_404(reservation, guest_id, side)
    data = get_staging().load(reservation.booking_id, guest.id, side)
    if data is None:
        raise Http404("No image captured yet")
    response = HttpResponse(data, content_type="image/jpeg")
    response["Cache-Control"] = "no-store"
    return response


# ============================================================================
# SUBMISSION
# ============================================================================


@require_POST
@require_reservation
@handle_checkin_errors
def submit(request, reservation):
    """Upload every guest's ID images and complete the check-in."""
    staging = get_staging()
    try:
        result = submit_check_in(reservation, staging)
    except IncompleteCheckInError as e:
        return render_checkin_form(request, reservation, staging, form_error=e.message, status=400)

    if not result.success:
        statuses = {s.guest_id: s for s in result.statuses}
        return render_checkin_form(request, reservation, staging, statuses, status=502)

    request.session.flush()
    return render(request, "checkin/success.html", {
        "reservation": result.reservation or reservation,
        "redirect_seconds": 3,
    })
