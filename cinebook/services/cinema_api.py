import logging
import time
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from cinebook.config import settings
from cinebook.errors import CinebookError
from cinebook.metrics import CINEMA_API_ERRORS, CINEMA_API_LATENCY
from cinebook.schemas.booking import Booking, CreateBookingRequest
from cinebook.schemas.promotion import CouponCheckRequest, CouponCheckResult
from cinebook.schemas.showtime import SeatAvailability, Showtime

logger = logging.getLogger(__name__)

# body code the booking endpoint uses for seats taken by someone else
SEAT_CONFLICT_CODE = "SEATS_UNAVAILABLE"


class CinemaApiError(CinebookError):
    status_code = 502
    code = "CINEMA_API_ERROR"


class CinemaApiRejection(CinemaApiError):
    """The remote API refused the request (4xx); the user can correct it."""

    status_code = 422
    code = "REJECTED"

    def __init__(self, message: str, upstream_status: int = 400, redirect_to: Optional[str] = None):
        super().__init__(message, redirect_to=redirect_to)
        self.upstream_status = upstream_status


class CinemaApiUnavailable(CinemaApiError):
    """Network failure, timeout, 5xx or an unreadable body; safe to retry."""

    status_code = 503
    code = "UPSTREAM_UNAVAILABLE"
    retryable = True


class SeatConflictError(CinemaApiRejection):
    """Seats were taken between selection and submission."""

    status_code = 409
    code = SEAT_CONFLICT_CODE


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or response.reason_phrase
    return response.reason_phrase


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("code")
    return None


class CinemaApiClient:
    """Async client for the remote cinema API.

    Responses use the envelope ``{"status": "success", "data": ...}``; errors carry
    ``{"message": ...}`` with a 4xx/5xx status.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.CINEMA_API_BASE_URL,
            headers=headers,
            timeout=timeout or settings.CINEMA_API_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "CinemaApiClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, operation: str, method: str, path: str, json: Optional[Dict] = None) -> Any:
        start = time.perf_counter()
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            CINEMA_API_ERRORS.labels(operation=operation, kind="network").inc()
            logger.warning("cinema api %s failed: %s", operation, exc)
            raise CinemaApiUnavailable("Cinema service is unreachable, please try again") from exc
        finally:
            CINEMA_API_LATENCY.labels(operation=operation).observe(time.perf_counter() - start)

        if response.status_code >= 500:
            CINEMA_API_ERRORS.labels(operation=operation, kind="server").inc()
            logger.warning("cinema api %s returned %s", operation, response.status_code)
            raise CinemaApiUnavailable(_error_message(response))
        if response.status_code >= 400:
            CINEMA_API_ERRORS.labels(operation=operation, kind="rejected").inc()
            raise self._rejection(operation, response)

        try:
            body = response.json()
        except ValueError as exc:
            CINEMA_API_ERRORS.labels(operation=operation, kind="malformed").inc()
            raise CinemaApiUnavailable("Cinema service returned an unreadable response") from exc
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def _rejection(self, operation: str, response: httpx.Response) -> CinemaApiRejection:
        message = _error_message(response)
        if operation == "create_booking" and (
            response.status_code == 409 or _error_code(response) == SEAT_CONFLICT_CODE
        ):
            return SeatConflictError(message, upstream_status=response.status_code)
        return CinemaApiRejection(message, upstream_status=response.status_code)

    @staticmethod
    def _parse(model, data, operation: str):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            CINEMA_API_ERRORS.labels(operation=operation, kind="malformed").inc()
            logger.error("cinema api %s returned an unexpected payload: %s", operation, exc)
            raise CinemaApiUnavailable("Cinema service returned an unexpected response") from exc

    async def get_showtime(self, showtime_id: str) -> Showtime:
        data = await self._request("get_showtime", "GET", f"/showtimes/{showtime_id}")
        return self._parse(Showtime, data, "get_showtime")

    async def get_showtime_seats(self, showtime_id: str) -> SeatAvailability:
        data = await self._request("get_showtime_seats", "GET", f"/showtimes/{showtime_id}/seats")
        return self._parse(SeatAvailability, data, "get_showtime_seats")

    async def check_coupon(self, req: CouponCheckRequest) -> CouponCheckResult:
        data = await self._request(
            "check_coupon", "POST", "/promotions/check-coupon", json=req.model_dump(by_alias=True)
        )
        if not data or (isinstance(data, dict) and data.get("valid") is False):
            message = data.get("message") if isinstance(data, dict) else None
            raise CinemaApiRejection(message or "Coupon code is not valid", upstream_status=200)
        return self._parse(CouponCheckResult, data, "check_coupon")

    async def create_booking(self, req: CreateBookingRequest) -> Booking:
        data = await self._request(
            "create_booking", "POST", "/bookings", json=req.model_dump(by_alias=True, exclude_none=True)
        )
        return self._parse(Booking, data, "create_booking")

    async def get_booking(self, booking_id: str) -> Booking:
        data = await self._request("get_booking", "GET", f"/bookings/{booking_id}")
        return self._parse(Booking, data, "get_booking")
