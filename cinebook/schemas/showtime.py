from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_ref(value):
    # the API returns either a bare id or the populated document
    if isinstance(value, str):
        return {"_id": value}
    return value


class MovieRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    title: Optional[str] = None
    poster_url: Optional[str] = Field(None, alias="posterUrl")


class SeatingArrangement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rows: int = Field(..., ge=0)
    seats_per_row: int = Field(..., alias="seatsPerRow", ge=0)


class Hall(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hall_id: str = Field(..., alias="hallId")
    name: Optional[str] = None
    seating_arrangement: Optional[SeatingArrangement] = Field(None, alias="seatingArrangement")


class CinemaRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: Optional[str] = None
    halls: List[Hall] = []


class TicketPrice(BaseModel):
    regular: float = Field(..., ge=0)
    vip: Optional[float] = None
    student: Optional[float] = None


class SeatAvailability(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    available_seats: List[str] = Field(default_factory=list, alias="availableSeats")
    booked_seats: List[str] = Field(default_factory=list, alias="bookedSeats")


class Showtime(SeatAvailability):
    """A scheduled screening as returned by GET /showtimes/{id}."""

    id: str = Field(..., alias="_id")
    movie: MovieRef = Field(..., alias="movieId")
    cinema: CinemaRef = Field(..., alias="cinemaId")
    hall_id: str = Field(..., alias="hallId")
    start_time: datetime = Field(..., alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    format: Optional[str] = None
    price: TicketPrice
    status: str = "open"

    @field_validator("movie", "cinema", mode="before")
    @classmethod
    def _populate_ref(cls, value):
        return _as_ref(value)

    @property
    def movie_id(self) -> str:
        return self.movie.id

    @property
    def cinema_id(self) -> str:
        return self.cinema.id

    @property
    def unit_price(self) -> float:
        return self.price.regular

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    @property
    def hall(self) -> Optional[Hall]:
        for hall in self.cinema.halls:
            if hall.hall_id == self.hall_id:
                return hall
        return None

    def with_availability(self, availability: SeatAvailability) -> "Showtime":
        return self.model_copy(
            update={
                "available_seats": list(availability.available_seats),
                "booked_seats": list(availability.booked_seats),
            }
        )
