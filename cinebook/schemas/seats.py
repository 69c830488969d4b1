from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from cinebook.schemas.booking import BookingDraft


class SeatCell(BaseModel):
    seat_id: str
    number: int
    status: str


class SeatRow(BaseModel):
    row: str
    seats: List[SeatCell]


class SeatMapResponse(BaseModel):
    showtime_id: str
    status: str
    unit_price: float
    rows: List[SeatRow]


class QuoteRequest(BaseModel):
    seats: List[str] = Field(default_factory=list, description="Seat ids in the order they were picked")
    coupon_code: Optional[str] = Field(None, description="Coupon to validate against the resulting subtotal")


class AppliedPromotion(BaseModel):
    coupon_code: str
    promotion_id: Optional[str] = None
    name: Optional[str] = None
    discount_amount: float


class QuoteResponse(BaseModel):
    showtime_id: str
    seats: List[str]
    rejected_seats: List[str] = []
    unit_price: float
    subtotal: float
    discount: float
    total: float
    promotion: Optional[AppliedPromotion] = None
    promo_error: Optional[Dict] = None


class ProceedResponse(BaseModel):
    draft: BookingDraft
    redirect_to: str = "/checkout"
