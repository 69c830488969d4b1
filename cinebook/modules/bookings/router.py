from fastapi import APIRouter, Depends

from cinebook.auth.deps import get_cinema_api
from cinebook.services.cinema_api import CinemaApiClient
from cinebook.services.confirmation import BookingConfirmationView

router = APIRouter(tags=["bookings"])


@router.get("/{booking_id}/confirmation")
async def booking_confirmation(booking_id: str, locale: str = "en", api: CinemaApiClient = Depends(get_cinema_api)):
    view = await BookingConfirmationView.fetch(api, booking_id)
    ctx = view.context()
    return {
        "booking": view.booking.model_dump(mode="json"),
        "booking_code": ctx["booking_code"],
        "summary": view.render(locale=locale),
    }
