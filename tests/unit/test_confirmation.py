from datetime import datetime

import pytest

from cinebook.schemas.booking import Booking
from cinebook.services.cinema_api import CinemaApiRejection
from cinebook.services.confirmation import BookingConfirmationView, format_amount, format_datetime
from cinema_stub import make_booking


def test_format_amount():
    assert format_amount(250000) == "250.000"
    assert format_amount(1234567.4) == "1.234.567"
    assert format_amount(0) == "0"


def test_format_datetime():
    assert format_datetime(datetime(2025, 10, 15, 19, 0)) == "Wednesday, 15/10/2025 - 19:00"
    assert format_datetime(None) == ""


def test_booking_code_falls_back_to_id():
    booking = Booking.model_validate(make_booking(booking_id="65f0c1d2e3a4b5c6d7e8f9ab"))
    assert booking.display_code == "BK-D7E8F9AB"

    booking = Booking.model_validate({**make_booking(), "bookingCode": "CB-2025-0001"})
    assert booking.display_code == "CB-2025-0001"


def test_render_english_summary():
    booking = Booking.model_validate(make_booking(seats=["C7", "C8", "C9"], total=270000, discount=20000))
    text = BookingConfirmationView(booking).render()

    assert "Interstellar at CGV Vincom" in text
    assert "Seats: C7, C8, C9" in text
    assert "Subtotal: 270.000 đ" in text
    assert "Discount: -20.000 đ" in text
    assert "Total: 250.000 đ" in text
    assert "Wednesday, 15/10/2025 - 19:00" in text


def test_render_vietnamese_summary():
    booking = Booking.model_validate(make_booking(payment_method="MoMo"))
    text = BookingConfirmationView(booking).render(locale="vi")

    assert "Ghế: A1, A2" in text
    assert "Thanh toán: MoMo" in text
    assert "Giảm giá" not in text


def test_unknown_locale_uses_english():
    booking = Booking.model_validate(make_booking())
    assert BookingConfirmationView(booking).render(locale="fr").startswith("Booking BK-")


def test_unpopulated_references_render_placeholders():
    booking = Booking.model_validate({**make_booking(), "movieId": "m1", "cinemaId": "c1"})
    ctx = BookingConfirmationView(booking).context()
    assert ctx["movie_title"] == "Unknown Movie"
    assert ctx["cinema_name"] == "Unknown Cinema"


async def test_fetch_reads_booking_from_server(api_client, cinema_api):
    cinema_api.bookings["bk1"] = make_booking(booking_id="bk1")
    view = await BookingConfirmationView.fetch(api_client, "bk1")
    assert view.booking.seats == ["A1", "A2"]

    with pytest.raises(CinemaApiRejection):
        await BookingConfirmationView.fetch(api_client, "missing")
