import json

import pytest

from cinebook.errors import UserInputError
from cinebook.schemas.booking import BookingDraft
from cinebook.services.checkout import (
    CheckoutNotReady,
    CheckoutOrchestrator,
    CheckoutState,
    CheckoutUnavailable,
    DraftNotFound,
    SubmissionInProgress,
)
from cinebook.services.cinema_api import CinemaApiRejection, CinemaApiUnavailable, SeatConflictError
from cinema_stub import SHOWTIME_ID, _fail

SESSION = "sess-1"


@pytest.fixture
def draft():
    return BookingDraft(showtime_id=SHOWTIME_ID, seats=["A1", "A2"], subtotal=180000, discount=0, total=180000)


@pytest.fixture
async def checkout(draft_store, api_client, draft):
    await draft_store.save(SESSION, draft)
    return CheckoutOrchestrator(draft_store, api_client, SESSION)


async def _ready(checkout, method="Cash"):
    await checkout.load()
    checkout.select_payment_method(method)
    checkout.accept_terms()
    return checkout


async def test_missing_draft_never_reaches_ready(draft_store, api_client, cinema_api):
    checkout = CheckoutOrchestrator(draft_store, api_client, SESSION)

    with pytest.raises(DraftNotFound) as exc:
        await checkout.load()

    assert checkout.state == CheckoutState.LOAD_ERROR
    assert exc.value.redirect_to == "/movies"
    with pytest.raises(CheckoutNotReady):
        await checkout.submit()
    assert cinema_api.calls("POST", "/bookings") == []


async def test_showtime_fetch_failure_is_load_error(checkout, cinema_api, draft_store):
    del cinema_api.showtimes[SHOWTIME_ID]

    with pytest.raises(CheckoutUnavailable) as exc:
        await checkout.load()

    assert checkout.state == CheckoutState.LOAD_ERROR
    assert exc.value.redirect_to == f"/showtimes/{SHOWTIME_ID}/seats"
    assert await draft_store.load(SESSION) is not None


async def test_load_shows_draft_and_showtime(checkout, draft):
    assert await checkout.load() == draft
    assert checkout.state == CheckoutState.READY
    assert checkout.showtime.movie.title == "Interstellar"
    assert not checkout.can_submit


@pytest.mark.parametrize("method, terms", [(None, True), ("Cash", False), (None, False)])
async def test_local_checks_block_submission(checkout, cinema_api, method, terms):
    await checkout.load()
    if method:
        checkout.select_payment_method(method)
    checkout.accept_terms(terms)

    with pytest.raises(UserInputError):
        await checkout.submit()

    assert cinema_api.calls("POST", "/bookings") == []
    assert checkout.state == CheckoutState.READY


async def test_unknown_payment_method(checkout):
    await checkout.load()
    with pytest.raises(UserInputError):
        checkout.select_payment_method("Bitcoin")
    assert checkout.payment_method is None


async def test_successful_submission(checkout, cinema_api, draft_store, api_client):
    await _ready(checkout, "MoMo")

    booking = await checkout.submit()

    assert checkout.state == CheckoutState.SUCCEEDED
    assert checkout.redirect_to == f"/booking-confirmation/{booking.id}"
    assert booking.seats == ["A1", "A2"]
    assert booking.payment_method == "MoMo"
    assert await draft_store.load(SESSION) is None

    with pytest.raises(CheckoutNotReady):
        await checkout.submit()
    with pytest.raises(DraftNotFound):
        await CheckoutOrchestrator(draft_store, api_client, SESSION).load()
    assert len(cinema_api.calls("POST", "/bookings")) == 1


async def test_submission_carries_promotion(draft_store, api_client, cinema_api):
    await draft_store.save(SESSION, BookingDraft(
        showtime_id=SHOWTIME_ID, seats=["B1"], promo_code="WEEKEND", promotion_id="p1",
        subtotal=90000, discount=20000, total=70000,
    ))
    checkout = await _ready(CheckoutOrchestrator(draft_store, api_client, SESSION))

    await checkout.submit()

    body = json.loads(cinema_api.calls("POST", "/bookings")[0].content)
    assert body == {
        "showtimeId": SHOWTIME_ID,
        "seats": ["B1"],
        "promotionCode": "WEEKEND",
        "promotionId": "p1",
        "paymentMethod": "Cash",
    }


async def test_failed_submission_keeps_draft_for_retry(checkout, cinema_api, draft_store, draft):
    await _ready(checkout)
    cinema_api.booking_responses.append(_fail(503, "Service unavailable"))

    with pytest.raises(CinemaApiUnavailable):
        await checkout.submit()

    assert checkout.state == CheckoutState.FAILED
    assert checkout.error.retryable
    assert await draft_store.load(SESSION) == draft

    await checkout.submit()
    assert checkout.state == CheckoutState.SUCCEEDED
    assert await draft_store.load(SESSION) is None


async def test_rejected_submission_reports_server_message(checkout, cinema_api):
    await _ready(checkout)
    cinema_api.booking_responses.append(_fail(400, "Showtime has already started"))

    with pytest.raises(CinemaApiRejection) as exc:
        await checkout.submit()

    assert exc.value.message == "Showtime has already started"
    assert checkout.state == CheckoutState.FAILED


@pytest.mark.parametrize("response", [
    _fail(409, "Seats already booked"),
    _fail(400, "Seats already booked", code="SEATS_UNAVAILABLE"),
])
async def test_seat_conflict_sends_user_back_to_seats(checkout, cinema_api, draft_store, response):
    await _ready(checkout)
    cinema_api.booking_responses.append(response)

    with pytest.raises(SeatConflictError) as exc:
        await checkout.submit()

    assert exc.value.redirect_to == f"/showtimes/{SHOWTIME_ID}/seats"
    assert checkout.state == CheckoutState.FAILED
    assert await draft_store.load(SESSION) is not None


async def test_concurrent_submission_is_refused(checkout, cinema_api, draft_store):
    await _ready(checkout)
    token = await draft_store.acquire_submit_lock(SESSION, ttl=30)

    with pytest.raises(SubmissionInProgress):
        await checkout.submit()

    assert cinema_api.calls("POST", "/bookings") == []
    await draft_store.release_submit_lock(SESSION, token)
    await checkout.submit()
    assert checkout.state == CheckoutState.SUCCEEDED


async def test_submit_lock_released_after_failure(checkout, cinema_api, draft_store):
    await _ready(checkout)
    cinema_api.booking_responses.append(_fail(500, "boom"))

    with pytest.raises(CinemaApiUnavailable):
        await checkout.submit()

    assert await draft_store.acquire_submit_lock(SESSION, ttl=30)


async def test_second_checkout_on_same_draft_is_refused(checkout, draft_store, api_client, cinema_api):
    other = CheckoutOrchestrator(draft_store, api_client, SESSION)
    await _ready(checkout)
    await _ready(other)

    await checkout.submit()
    with pytest.raises(DraftNotFound):
        await other.submit()

    assert other.state == CheckoutState.LOAD_ERROR
    assert len(cinema_api.calls("POST", "/bookings")) == 1


async def test_replaced_draft_must_be_reviewed(checkout, draft_store, cinema_api):
    await _ready(checkout)
    await draft_store.save(SESSION, BookingDraft(
        showtime_id=SHOWTIME_ID, seats=["B4"], subtotal=90000, discount=0, total=90000,
    ))

    with pytest.raises(CheckoutNotReady):
        await checkout.submit()

    assert cinema_api.calls("POST", "/bookings") == []
    assert (await draft_store.load(SESSION)).seats == ["B4"]
    assert await draft_store.acquire_submit_lock(SESSION, ttl=30)
