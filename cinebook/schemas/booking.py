from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime

from cinebook.schemas.showtime import CinemaRef, MovieRef

# tolerance for comparing money amounts carried as floats
AMOUNT_TOLERANCE = 1e-6


class BookingDraft(BaseModel):
    """Seat and pricing choices handed from the seat page to checkout."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    showtime_id: str = Field(..., alias="showtimeId", min_length=1)
    seats: List[str] = Field(..., min_length=1)
    promo_code: Optional[str] = Field(None, alias="promoCode")
    promotion_id: Optional[str] = Field(None, alias="promotionId")
    subtotal: float = Field(..., ge=0)
    discount: float = Field(0, ge=0)
    total: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_amounts(self):
        if len(set(self.seats)) != len(self.seats):
            raise ValueError("seats must not contain duplicates")
        if self.discount > self.subtotal + AMOUNT_TOLERANCE:
            raise ValueError("discount exceeds subtotal")
        if abs(self.total - (self.subtotal - self.discount)) > AMOUNT_TOLERANCE:
            raise ValueError("total does not equal subtotal minus discount")
        return self


class CreateBookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    showtime_id: str = Field(..., alias="showtimeId")
    seats: List[str]
    promotion_code: Optional[str] = Field(None, alias="promotionCode")
    promotion_id: Optional[str] = Field(None, alias="promotionId")
    payment_method: str = Field(..., alias="paymentMethod")


class Booking(BaseModel):
    """Persisted booking record owned by the remote server."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    booking_code: Optional[str] = Field(None, alias="bookingCode")
    showtime_id: Optional[str] = Field(None, alias="showtimeId")
    movie: Optional[MovieRef] = Field(None, alias="movieId")
    cinema: Optional[CinemaRef] = Field(None, alias="cinemaId")
    hall_id: Optional[str] = Field(None, alias="hallId")
    start_time: Optional[datetime] = Field(None, alias="startTime")
    seats: List[str] = []
    total_amount: float = Field(0, alias="totalAmount")
    discount_amount: float = Field(0, alias="discountAmount")
    final_amount: float = Field(0, alias="finalAmount")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    status: str = "pending"
    booking_time: Optional[datetime] = Field(None, alias="bookingTime")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        discount = data.pop("discount", None)
        if isinstance(discount, dict):
            data.setdefault("discountAmount", discount.get("amount") or 0)
        showtime = data.get("showtimeId")
        if isinstance(showtime, dict):
            # populated showtime document
            data["showtimeId"] = showtime.get("_id")
            data.setdefault("startTime", showtime.get("startTime"))
        return data

    @field_validator("movie", "cinema", mode="before")
    @classmethod
    def _populate_ref(cls, value):
        if isinstance(value, str):
            return {"_id": value}
        return value

    @property
    def display_code(self) -> str:
        return self.booking_code or f"BK-{self.id[-8:].upper()}"
