import logging
from typing import Iterable, List, Optional

from cinebook.errors import CinebookError, UserInputError
from cinebook.schemas.booking import BookingDraft
from cinebook.schemas.promotion import PromotionOutcome
from cinebook.schemas.showtime import Showtime
from cinebook.services import pricing
from cinebook.services.cinema_api import CinemaApiClient
from cinebook.services.draft_store import DraftStore
from cinebook.services.promotion import PromotionValidator
from cinebook.services.seat_selection import SeatAvailabilityView, SeatSelection

logger = logging.getLogger(__name__)


class ShowtimeClosed(CinebookError):
    status_code = 409
    code = "SHOWTIME_CLOSED"


class SeatFlow:
    """State of the seat page for one showtime: selection, applied coupon and price.

    A promotion is only honoured while the live subtotal equals the subtotal it was
    validated against; any change of the selection discards it and the user has to
    apply the coupon again.
    """

    def __init__(self, showtime: Showtime, validator: PromotionValidator):
        self.showtime = showtime
        self.validator = validator
        self.selection = SeatSelection(showtime)
        self._promotion: Optional[PromotionOutcome] = None
        self.promo_error: Optional[CinebookError] = None

    @property
    def promotion(self) -> Optional[PromotionOutcome]:
        if self._promotion is not None and not self._promotion.applies_to(self.subtotal):
            logger.info("discarding promotion %s: subtotal changed", self._promotion.coupon_code)
            self._promotion = None
        return self._promotion

    @property
    def subtotal(self) -> float:
        return pricing.subtotal(self.showtime.unit_price, len(self.selection))

    @property
    def discount(self) -> float:
        promo = self.promotion
        return promo.discount_amount if promo else 0

    @property
    def total(self) -> float:
        return pricing.total(self.subtotal, self.discount)

    def toggle(self, seat_id: str) -> bool:
        if not self.showtime.is_open:
            return False
        changed = self.selection.toggle(seat_id)
        if changed and self._promotion is not None:
            logger.info("seat selection changed, coupon %s must be applied again", self._promotion.coupon_code)
            self._promotion = None
        return changed

    def select(self, seat_ids: Iterable[str]) -> List[str]:
        """Select each seat not already selected; returns the ids that could not be selected."""
        rejected = []
        for seat_id in seat_ids:
            if seat_id in self.selection:
                continue
            if not self.toggle(seat_id):
                rejected.append(seat_id)
        return rejected

    def change_showtime(self, showtime: Showtime):
        self.showtime = showtime
        self.selection = SeatSelection(showtime)
        self.remove_coupon()

    async def apply_coupon(self, coupon_code: str) -> PromotionOutcome:
        self._promotion = None
        self.promo_error = None
        subtotal = self.subtotal
        try:
            if not len(self.selection):
                raise UserInputError("Select at least one seat before applying a coupon")
            outcome = await self.validator.validate(
                coupon_code, subtotal, self.showtime.movie_id, self.showtime.cinema_id
            )
        except CinebookError as exc:
            self.promo_error = exc
            raise
        self._promotion = outcome
        return outcome

    def remove_coupon(self):
        self._promotion = None
        self.promo_error = None

    async def refresh_availability(self, api: CinemaApiClient) -> List[str]:
        availability = await api.get_showtime_seats(self.showtime.id)
        self.showtime = self.showtime.with_availability(availability)
        dropped = self.selection.update_availability(availability)
        if dropped:
            logger.info("seats %s are no longer available", dropped)
            self._promotion = None
        return dropped

    def view(self) -> SeatAvailabilityView:
        hall = self.showtime.hall
        layout = hall.seating_arrangement if hall else None
        if layout:
            return SeatAvailabilityView(self.selection, rows=layout.rows, seats_per_row=layout.seats_per_row)
        known = list(self.showtime.available_seats) + list(self.showtime.booked_seats)
        return SeatAvailabilityView(self.selection, known_seats=known)

    def build_draft(self) -> BookingDraft:
        if not self.showtime.is_open:
            raise ShowtimeClosed("This showtime is no longer open for booking")
        if not len(self.selection):
            raise UserInputError("Please select at least one seat")
        promo = self.promotion
        subtotal = self.subtotal
        discount = promo.discount_amount if promo else 0
        return BookingDraft(
            showtime_id=self.showtime.id,
            seats=self.selection.seats,
            promo_code=promo.coupon_code if promo else None,
            promotion_id=promo.promotion_id if promo else None,
            subtotal=subtotal,
            discount=discount,
            total=pricing.total(subtotal, discount),
        )

    async def proceed(self, store: DraftStore, session_id: str) -> BookingDraft:
        draft = self.build_draft()
        await store.save(session_id, draft)
        logger.info("booking draft saved for showtime %s (%d seats)", draft.showtime_id, len(draft.seats))
        return draft
