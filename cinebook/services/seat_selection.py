import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

from cinebook.schemas.showtime import SeatAvailability

SEAT_ID_RE = re.compile(r"^([A-Z])([1-9][0-9]*)$")

AVAILABLE = "available"
SELECTED = "selected"
BOOKED = "booked"


def parse_seat_id(seat_id: str) -> Optional[Tuple[str, int]]:
    """Split "C7" into ("C", 7); None when the id is not row letter + column."""
    m = SEAT_ID_RE.match(seat_id or "")
    if not m:
        return None
    return m.group(1), int(m.group(2))


def row_labels(rows: int) -> List[str]:
    return [chr(ord("A") + i) for i in range(rows)]


class SeatSelection:
    """Seats the user has tentatively picked for one showtime.

    Membership is bounded by availability at the time of selection: a seat can only
    be added while it is listed as available and not listed as booked.
    """

    def __init__(self, availability: SeatAvailability):
        self._available: Set[str] = set(availability.available_seats)
        self._booked: Set[str] = set(availability.booked_seats)
        self._seats: Dict[str, None] = {}

    def is_available(self, seat_id: str) -> bool:
        return seat_id in self._available and seat_id not in self._booked

    def is_selected(self, seat_id: str) -> bool:
        return seat_id in self._seats

    def toggle(self, seat_id: str) -> bool:
        """Deselect a selected seat or select an available one.

        Returns True when the selection changed; unavailable seats are ignored.
        """
        if seat_id in self._seats:
            del self._seats[seat_id]
            return True
        if not self.is_available(seat_id):
            return False
        self._seats[seat_id] = None
        return True

    def clear(self):
        self._seats.clear()

    def update_availability(self, availability: SeatAvailability) -> List[str]:
        """Adopt a refetched availability; returns the selected seats that were dropped."""
        self._available = set(availability.available_seats)
        self._booked = set(availability.booked_seats)
        dropped = [s for s in self._seats if not self.is_available(s)]
        for seat_id in dropped:
            del self._seats[seat_id]
        return dropped

    @property
    def seats(self) -> List[str]:
        # insertion order, as the user picked them
        return list(self._seats)

    def __len__(self) -> int:
        return len(self._seats)

    def __contains__(self, seat_id: str) -> bool:
        return seat_id in self._seats

    def __iter__(self):
        return iter(self.seats)


class SeatAvailabilityView:
    """Seat grid for a hall: one row per letter, one cell per column."""

    def __init__(self, selection: SeatSelection, rows: Optional[int] = None, seats_per_row: Optional[int] = None,
                 known_seats: Iterable[str] = ()):
        self.selection = selection
        if rows is None or seats_per_row is None:
            rows, seats_per_row = self._infer_dimensions(known_seats)
        self.rows = rows
        self.seats_per_row = seats_per_row

    @staticmethod
    def _infer_dimensions(seat_ids: Iterable[str]) -> Tuple[int, int]:
        max_row, max_col = 0, 0
        for seat_id in seat_ids:
            parsed = parse_seat_id(seat_id)
            if not parsed:
                continue
            row, col = parsed
            max_row = max(max_row, ord(row) - ord("A") + 1)
            max_col = max(max_col, col)
        return max_row, max_col

    def status(self, seat_id: str) -> str:
        if self.selection.is_selected(seat_id):
            return SELECTED
        if self.selection.is_available(seat_id):
            return AVAILABLE
        return BOOKED

    def grid(self) -> List[Dict]:
        out = []
        for label in row_labels(self.rows):
            cells = []
            for number in range(1, self.seats_per_row + 1):
                seat_id = f"{label}{number}"
                cells.append({"seat_id": seat_id, "number": number, "status": self.status(seat_id)})
            out.append({"row": label, "seats": cells})
        return out
