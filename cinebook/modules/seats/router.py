from typing import List, Tuple

from fastapi import APIRouter, Depends

from cinebook.auth.deps import get_cinema_api, get_session_id, require_token
from cinebook.errors import UserInputError
from cinebook.schemas.seats import AppliedPromotion, ProceedResponse, QuoteRequest, QuoteResponse, SeatMapResponse
from cinebook.services.cinema_api import CinemaApiClient
from cinebook.services.draft_store import DraftStore, get_draft_store
from cinebook.services.promotion import PromotionRejected, PromotionUnavailable, PromotionValidator
from cinebook.services.seat_flow import SeatFlow

router = APIRouter(tags=["seats"])


def _check_request(req: QuoteRequest, require_seats: bool):
    # refused before the showtime is fetched
    if require_seats and not req.seats:
        raise UserInputError("Please select at least one seat")
    if req.coupon_code is not None:
        if not req.seats:
            raise UserInputError("Select at least one seat before applying a coupon")
        if not req.coupon_code.strip():
            raise UserInputError("Please enter a coupon code")


async def _build_flow(showtime_id: str, req: QuoteRequest, api: CinemaApiClient) -> Tuple[SeatFlow, List[str]]:
    showtime = await api.get_showtime(showtime_id)
    flow = SeatFlow(showtime, PromotionValidator(api))
    rejected = flow.select(req.seats)
    return flow, rejected


def _quote(flow: SeatFlow, rejected: List[str]) -> QuoteResponse:
    promo = flow.promotion
    return QuoteResponse(
        showtime_id=flow.showtime.id,
        seats=flow.selection.seats,
        rejected_seats=rejected,
        unit_price=flow.showtime.unit_price,
        subtotal=flow.subtotal,
        discount=flow.discount,
        total=flow.total,
        promotion=AppliedPromotion(
            coupon_code=promo.coupon_code,
            promotion_id=promo.promotion_id,
            name=promo.name,
            discount_amount=promo.discount_amount,
        ) if promo else None,
        promo_error=flow.promo_error.to_dict() if flow.promo_error else None,
    )


@router.get("/{showtime_id}/seats", response_model=SeatMapResponse)
async def seat_map(showtime_id: str, api: CinemaApiClient = Depends(get_cinema_api)):
    """Seat grid for a showtime with each seat's status."""
    showtime = await api.get_showtime(showtime_id)
    flow = SeatFlow(showtime, PromotionValidator(api))
    return SeatMapResponse(
        showtime_id=showtime.id,
        status=showtime.status,
        unit_price=showtime.unit_price,
        rows=flow.view().grid(),
    )


@router.post("/{showtime_id}/seats/quote", response_model=QuoteResponse)
async def quote(showtime_id: str, req: QuoteRequest, api: CinemaApiClient = Depends(get_cinema_api)):
    """Price a seat choice and, when a coupon is given, validate it against that price.

    Coupon problems are reported in ``promo_error``; the seat choice is returned either way.
    """
    _check_request(req, require_seats=False)
    flow, rejected = await _build_flow(showtime_id, req, api)
    if req.coupon_code is not None:
        try:
            await flow.apply_coupon(req.coupon_code)
        except (UserInputError, PromotionRejected, PromotionUnavailable):
            pass  # kept on flow.promo_error and returned below
    return _quote(flow, rejected)


@router.post("/{showtime_id}/seats/proceed", response_model=ProceedResponse, status_code=201)
async def proceed(
    showtime_id: str,
    req: QuoteRequest,
    token: str = Depends(require_token),
    session_id: str = Depends(get_session_id),
    api: CinemaApiClient = Depends(get_cinema_api),
    store: DraftStore = Depends(get_draft_store),
):
    """Save the booking draft for this session and send the user to checkout."""
    _check_request(req, require_seats=True)
    flow, rejected = await _build_flow(showtime_id, req, api)
    if rejected:
        raise UserInputError(f"Seats no longer available: {', '.join(rejected)}")
    if req.coupon_code is not None:
        await flow.apply_coupon(req.coupon_code)
    draft = await flow.proceed(store, session_id)
    return ProceedResponse(draft=draft)
