from fastapi import APIRouter, Depends, Response, status

from cinebook.auth.deps import get_cinema_api, get_session_id, require_token
from cinebook.schemas.checkout import CheckoutShowtime, CheckoutSubmitRequest, CheckoutSubmitResponse, CheckoutView
from cinebook.services.checkout import CheckoutOrchestrator
from cinebook.services.cinema_api import CinemaApiClient
from cinebook.services.draft_store import DraftStore, get_draft_store

router = APIRouter(tags=["checkout"])


@router.get("", response_model=CheckoutView)
async def checkout_view(
    session_id: str = Depends(get_session_id),
    api: CinemaApiClient = Depends(get_cinema_api),
    store: DraftStore = Depends(get_draft_store),
):
    """Rehydrate the booking draft and the showtime it refers to."""
    orchestrator = CheckoutOrchestrator(store, api, session_id)
    draft = await orchestrator.load()
    showtime = orchestrator.showtime
    return CheckoutView(
        state=orchestrator.state.value,
        draft=draft,
        showtime=CheckoutShowtime(
            id=showtime.id,
            movie_title=showtime.movie.title,
            cinema_name=showtime.cinema.name,
            format=showtime.format,
            start_time=showtime.start_time,
        ),
        payment_methods=orchestrator.payment_methods,
    )


@router.post("", response_model=CheckoutSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_checkout(
    req: CheckoutSubmitRequest,
    token: str = Depends(require_token),
    session_id: str = Depends(get_session_id),
    api: CinemaApiClient = Depends(get_cinema_api),
    store: DraftStore = Depends(get_draft_store),
):
    """Create the booking from the session's draft; the draft is cleared only on success."""
    orchestrator = CheckoutOrchestrator(store, api, session_id)
    if req.payment_method:
        orchestrator.select_payment_method(req.payment_method)
    orchestrator.accept_terms(req.accept_terms)
    await orchestrator.load(fetch_showtime=False)
    booking = await orchestrator.submit()
    return CheckoutSubmitResponse(
        state=orchestrator.state.value,
        booking_id=booking.id,
        redirect_to=orchestrator.redirect_to,
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_checkout(
    session_id: str = Depends(get_session_id),
    store: DraftStore = Depends(get_draft_store),
):
    await store.clear(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
