from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from cinebook.config import settings
from cinebook.logging_setup import SESSION_ID_CTX
from cinebook.services.cinema_api import CinemaApiClient

# tokens are issued and verified by the cinema API; we only forward them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.CINEMA_API_BASE_URL}/auth/login", auto_error=False)


async def get_optional_token(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[str]:
    return token


async def require_token(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please log in to continue booking",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def get_session_id(request: Request) -> str:
    session_id = getattr(request.state, "session_id", None) or SESSION_ID_CTX.get(None)
    if not session_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing booking session")
    return session_id


async def get_cinema_api(token: Optional[str] = Depends(get_optional_token)) -> AsyncIterator[CinemaApiClient]:
    async with CinemaApiClient(token=token) as api:
        yield api
