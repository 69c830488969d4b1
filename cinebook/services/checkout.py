import logging
from enum import Enum
from typing import List, Optional

from cinebook.config import settings
from cinebook.errors import CinebookError, UserInputError
from cinebook.metrics import CHECKOUT_SUBMISSIONS
from cinebook.schemas.booking import Booking, BookingDraft, CreateBookingRequest
from cinebook.schemas.showtime import Showtime
from cinebook.services.cinema_api import CinemaApiClient, CinemaApiError, SeatConflictError
from cinebook.services.draft_store import DraftStore, DraftTicket

logger = logging.getLogger(__name__)


def seat_page_path(showtime_id: str) -> str:
    return f"/showtimes/{showtime_id}/seats"


def confirmation_path(booking_id: str) -> str:
    return f"/booking-confirmation/{booking_id}"


class CheckoutState(str, Enum):
    LOADING = "loading"
    LOAD_ERROR = "load_error"
    READY = "ready"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class DraftNotFound(CinebookError):
    status_code = 404
    code = "DRAFT_NOT_FOUND"


class CheckoutUnavailable(CinebookError):
    """Checkout could not be prepared (showtime fetch failed); nothing was submitted."""

    status_code = 502
    code = "CHECKOUT_UNAVAILABLE"


class CheckoutNotReady(CinebookError):
    status_code = 409
    code = "CHECKOUT_NOT_READY"


class SubmissionInProgress(CinebookError):
    status_code = 409
    code = "SUBMISSION_IN_PROGRESS"


class CheckoutOrchestrator:
    """Drives checkout for one session: LOADING -> READY -> SUBMITTING -> SUCCEEDED | FAILED.

    A missing draft or a failed showtime fetch ends in LOAD_ERROR instead; READY is
    never reached and nothing is submitted. The draft is cleared only after the
    booking was created, so a failed submission can be retried as is.
    """

    def __init__(self, store: DraftStore, api: CinemaApiClient, session_id: str,
                 payment_methods: Optional[List[str]] = None):
        self.store = store
        self.api = api
        self.session_id = session_id
        self.payment_methods = payment_methods or list(settings.PAYMENT_METHODS)
        self.state = CheckoutState.LOADING
        self.error: Optional[CinebookError] = None
        self.showtime: Optional[Showtime] = None
        self.booking: Optional[Booking] = None
        self.payment_method: Optional[str] = None
        self.terms_accepted = False
        self._ticket: Optional[DraftTicket] = None

    @property
    def draft(self) -> Optional[BookingDraft]:
        return self._ticket.draft if self._ticket else None

    def _fail_load(self, error: CinebookError) -> CinebookError:
        self.state = CheckoutState.LOAD_ERROR
        self.error = error
        return error

    async def load(self, fetch_showtime: bool = True) -> BookingDraft:
        """Read the draft and, unless told otherwise, fetch its showtime for display."""
        self.state = CheckoutState.LOADING
        ticket = await self.store.take(self.session_id)
        if ticket is None:
            logger.info("checkout opened without a booking draft")
            raise self._fail_load(DraftNotFound(
                "Booking information was not found or has expired. Please select your seats again.",
                redirect_to=settings.CATALOG_PATH,
            ))
        self._ticket = ticket
        if not fetch_showtime:
            self.state = CheckoutState.READY
            return ticket.draft
        try:
            self.showtime = await self.api.get_showtime(ticket.draft.showtime_id)
        except CinemaApiError as exc:
            logger.warning("checkout could not load showtime %s: %s", ticket.draft.showtime_id, exc.message)
            raise self._fail_load(CheckoutUnavailable(
                "Could not load the showtime. Please return to seat selection.",
                redirect_to=seat_page_path(ticket.draft.showtime_id),
            )) from exc
        self.state = CheckoutState.READY
        return ticket.draft

    def select_payment_method(self, method: str):
        if method not in self.payment_methods:
            raise UserInputError(f"Unsupported payment method: {method}")
        self.payment_method = method

    def accept_terms(self, accepted: bool = True):
        self.terms_accepted = bool(accepted)

    @property
    def can_submit(self) -> bool:
        return (
            self.state in (CheckoutState.READY, CheckoutState.FAILED)
            and bool(self.payment_method)
            and self.terms_accepted
        )

    def _check_submittable(self):
        if self.state == CheckoutState.SUBMITTING:
            raise SubmissionInProgress("Your booking is already being submitted")
        if self.state == CheckoutState.SUCCEEDED or (self._ticket and self._ticket.consumed):
            raise CheckoutNotReady("This booking was already submitted", redirect_to=settings.CATALOG_PATH)
        if self.state not in (CheckoutState.READY, CheckoutState.FAILED):
            raise CheckoutNotReady("Checkout is not ready", redirect_to=settings.CATALOG_PATH)
        if not self.payment_method:
            raise UserInputError("Please choose a payment method")
        if not self.terms_accepted:
            raise UserInputError("Please accept the terms and conditions")

    async def submit(self) -> Booking:
        self._check_submittable()
        lock = await self.store.acquire_submit_lock(self.session_id, settings.SUBMIT_LOCK_TTL_SECONDS)
        if not lock:
            raise SubmissionInProgress("Your booking is already being submitted")
        # held until the draft is cleared, so a second orchestrator sees it gone
        try:
            return await self._submit_locked()
        finally:
            await self.store.release_submit_lock(self.session_id, lock)

    async def _ensure_draft_current(self, draft: BookingDraft):
        stored = await self.store.load(self.session_id)
        if stored is None:
            CHECKOUT_SUBMISSIONS.labels(result="stale").inc()
            logger.info("booking draft vanished before submission")
            raise self._fail_load(DraftNotFound(
                "This booking was already submitted or has expired.",
                redirect_to=settings.CATALOG_PATH,
            ))
        if stored != draft:
            CHECKOUT_SUBMISSIONS.labels(result="stale").inc()
            logger.info("booking draft replaced before submission")
            raise self._fail_load(CheckoutNotReady(
                "Your booking details changed. Please review them again.",
                redirect_to="/checkout",
            ))

    async def _submit_locked(self) -> Booking:
        draft = self._ticket.draft
        await self._ensure_draft_current(draft)

        self.state = CheckoutState.SUBMITTING
        self.error = None
        req = CreateBookingRequest(
            showtime_id=draft.showtime_id,
            seats=list(draft.seats),
            promotion_code=draft.promo_code,
            promotion_id=draft.promotion_id,
            payment_method=self.payment_method,
        )
        try:
            booking = await self.api.create_booking(req)
        except SeatConflictError as exc:
            CHECKOUT_SUBMISSIONS.labels(result="conflict").inc()
            logger.info("seats %s taken before submission", draft.seats)
            exc.redirect_to = seat_page_path(draft.showtime_id)
            self.state = CheckoutState.FAILED
            self.error = exc
            raise
        except CinemaApiError as exc:
            CHECKOUT_SUBMISSIONS.labels(result="failed").inc()
            logger.warning("booking submission failed: %s", exc.message)
            self.state = CheckoutState.FAILED
            self.error = exc
            raise

        try:
            await self._ticket.consume()
        except Exception:
            # booking exists server-side; report success regardless
            logger.exception("could not clear booking draft after booking %s", booking.id)
        self.booking = booking
        self.state = CheckoutState.SUCCEEDED
        CHECKOUT_SUBMISSIONS.labels(result="succeeded").inc()
        logger.info("booking %s created", booking.id)
        return booking

    @property
    def redirect_to(self) -> Optional[str]:
        if self.booking is None:
            return None
        return confirmation_path(self.booking.id)
