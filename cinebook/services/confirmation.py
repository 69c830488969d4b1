from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from cinebook.schemas.booking import Booking
from cinebook.services.cinema_api import CinemaApiClient

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"
TEMPLATE_NAME = "booking_confirmation.txt"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
    keep_trailing_newline=True,
)


def format_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%A, %d/%m/%Y - %H:%M")


def format_amount(value: float) -> str:
    return f"{value:,.0f}".replace(",", ".")


class BookingConfirmationView:
    """Read-only summary of a booking returned by the server."""

    def __init__(self, booking: Booking):
        self.booking = booking

    @classmethod
    async def fetch(cls, api: CinemaApiClient, booking_id: str) -> "BookingConfirmationView":
        return cls(await api.get_booking(booking_id))

    def context(self) -> Dict:
        b = self.booking
        return {
            "booking_id": b.id,
            "booking_code": b.display_code,
            "movie_title": b.movie.title if b.movie and b.movie.title else "Unknown Movie",
            "cinema_name": b.cinema.name if b.cinema and b.cinema.name else "Unknown Cinema",
            "showtime": format_datetime(b.start_time),
            "seats": list(b.seats),
            "total_amount": b.total_amount,
            "discount_amount": b.discount_amount,
            "final_amount": b.final_amount,
            "payment_method": b.payment_method,
            "status": b.status,
        }

    def render(self, locale: str = "en") -> str:
        ctx = self.context()
        for tpl in (f"{locale}/{TEMPLATE_NAME}", f"en/{TEMPLATE_NAME}"):
            try:
                template = _env.get_template(tpl)
            except TemplateNotFound:
                continue
            return template.render(format_amount=format_amount, **ctx)
        raise RuntimeError("Template not found: %s" % TEMPLATE_NAME)
