from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from cinebook.schemas.booking import BookingDraft


class CheckoutShowtime(BaseModel):
    id: str
    movie_title: Optional[str] = None
    cinema_name: Optional[str] = None
    format: Optional[str] = None
    start_time: datetime


class CheckoutView(BaseModel):
    state: str
    draft: BookingDraft
    showtime: CheckoutShowtime
    payment_methods: List[str]


class CheckoutSubmitRequest(BaseModel):
    payment_method: Optional[str] = None
    accept_terms: bool = False


class CheckoutSubmitResponse(BaseModel):
    state: str
    booking_id: str
    redirect_to: str
