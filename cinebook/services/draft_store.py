import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
from uuid import uuid4

from pydantic import ValidationError

from cinebook.config import settings
from cinebook.errors import CinebookError
from cinebook.metrics import DRAFT_OPERATIONS
from cinebook.schemas.booking import BookingDraft

logger = logging.getLogger(__name__)

DRAFT_KEY_TPL = "booking_draft:{session_id}"
SUBMIT_LOCK_KEY_TPL = "checkout_lock:{session_id}"


class DraftAlreadyConsumed(CinebookError):
    status_code = 409
    code = "DRAFT_ALREADY_CONSUMED"


def encode_draft(draft: BookingDraft) -> str:
    return draft.model_dump_json(by_alias=True)


def decode_draft(raw: Optional[str]) -> Optional[BookingDraft]:
    """Parse a stored draft; absent, malformed or inconsistent content is "no draft"."""
    if raw is None:
        return None
    try:
        return BookingDraft.model_validate_json(raw)
    except ValidationError as exc:
        DRAFT_OPERATIONS.labels(operation="load", result="invalid").inc()
        logger.warning("discarding invalid booking draft: %s", exc.errors()[0].get("msg") if exc.errors() else exc)
        return None


class DraftTicket:
    """A loaded draft that can be consumed exactly once."""

    def __init__(self, store: "DraftStore", session_id: str, draft: BookingDraft):
        self._store = store
        self._session_id = session_id
        self.draft = draft
        self.consumed = False

    async def consume(self) -> BookingDraft:
        if self.consumed:
            raise DraftAlreadyConsumed("Booking draft was already used")
        self.consumed = True
        await self._store.clear(self._session_id)
        return self.draft


class DraftStore(ABC):
    """Session-scoped storage for the booking draft handed from seat selection to checkout."""

    @abstractmethod
    async def save(self, session_id: str, draft: BookingDraft):
        raise NotImplementedError()

    @abstractmethod
    async def load(self, session_id: str) -> Optional[BookingDraft]:
        raise NotImplementedError()

    @abstractmethod
    async def clear(self, session_id: str):
        raise NotImplementedError()

    @abstractmethod
    async def acquire_submit_lock(self, session_id: str, ttl: int) -> Optional[str]:
        """Return a lock token, or None when a submission is already in flight."""
        raise NotImplementedError()

    @abstractmethod
    async def release_submit_lock(self, session_id: str, token: str) -> bool:
        raise NotImplementedError()

    async def take(self, session_id: str) -> Optional[DraftTicket]:
        draft = await self.load(session_id)
        if draft is None:
            return None
        return DraftTicket(self, session_id, draft)


_CAS_DEL_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
  return redis.call('del', KEYS[1])
else
  return 0
end
"""


class RedisDraftStore(DraftStore):
    def __init__(self, redis=None, ttl: Optional[int] = None):
        if redis is None:
            from cinebook.redis_client import redis_client as redis
        self.redis = redis
        self.ttl = ttl or settings.DRAFT_TTL_SECONDS

    async def save(self, session_id: str, draft: BookingDraft):
        key = DRAFT_KEY_TPL.format(session_id=session_id)
        await self.redis.set(key, encode_draft(draft), ex=self.ttl)
        DRAFT_OPERATIONS.labels(operation="save", result="ok").inc()

    async def load(self, session_id: str) -> Optional[BookingDraft]:
        key = DRAFT_KEY_TPL.format(session_id=session_id)
        raw = await self.redis.get(key)
        if raw is None:
            DRAFT_OPERATIONS.labels(operation="load", result="missing").inc()
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        draft = decode_draft(raw)
        if draft is not None:
            DRAFT_OPERATIONS.labels(operation="load", result="ok").inc()
        return draft

    async def clear(self, session_id: str):
        key = DRAFT_KEY_TPL.format(session_id=session_id)
        await self.redis.delete(key)
        DRAFT_OPERATIONS.labels(operation="clear", result="ok").inc()

    async def acquire_submit_lock(self, session_id: str, ttl: int) -> Optional[str]:
        key = SUBMIT_LOCK_KEY_TPL.format(session_id=session_id)
        token = str(uuid4())
        ok = await self.redis.set(key, token, ex=ttl, nx=True)
        if not ok:
            return None
        return token

    async def release_submit_lock(self, session_id: str, token: str) -> bool:
        key = SUBMIT_LOCK_KEY_TPL.format(session_id=session_id)
        res = await self.redis.eval(_CAS_DEL_SCRIPT, 1, key, token)
        return bool(res)


class InMemoryDraftStore(DraftStore):
    """Process-local store for single-worker deployments and tests."""

    def __init__(self, ttl: Optional[int] = None, clock=time.monotonic):
        self.ttl = ttl or settings.DRAFT_TTL_SECONDS
        self._clock = clock
        self._drafts: Dict[str, Tuple[str, float]] = {}
        self._locks: Dict[str, Tuple[str, float]] = {}

    def _get_live(self, table: Dict[str, Tuple[str, float]], session_id: str) -> Optional[str]:
        entry = table.get(session_id)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del table[session_id]
            return None
        return value

    def _sweep(self, table: Dict[str, Tuple[str, float]]):
        # abandoned sessions are never read again
        now = self._clock()
        for session_id in [k for k, (_, expires_at) in table.items() if expires_at <= now]:
            del table[session_id]

    async def save(self, session_id: str, draft: BookingDraft):
        self._sweep(self._drafts)
        self._drafts[session_id] = (encode_draft(draft), self._clock() + self.ttl)
        DRAFT_OPERATIONS.labels(operation="save", result="ok").inc()

    async def load(self, session_id: str) -> Optional[BookingDraft]:
        raw = self._get_live(self._drafts, session_id)
        if raw is None:
            DRAFT_OPERATIONS.labels(operation="load", result="missing").inc()
            return None
        draft = decode_draft(raw)
        if draft is not None:
            DRAFT_OPERATIONS.labels(operation="load", result="ok").inc()
        return draft

    async def clear(self, session_id: str):
        self._drafts.pop(session_id, None)
        DRAFT_OPERATIONS.labels(operation="clear", result="ok").inc()

    async def acquire_submit_lock(self, session_id: str, ttl: int) -> Optional[str]:
        self._sweep(self._locks)
        if self._get_live(self._locks, session_id) is not None:
            return None
        token = str(uuid4())
        self._locks[session_id] = (token, self._clock() + ttl)
        return token

    async def release_submit_lock(self, session_id: str, token: str) -> bool:
        if self._get_live(self._locks, session_id) != token:
            return False
        del self._locks[session_id]
        return True


_default_store: Optional[DraftStore] = None


def get_draft_store() -> DraftStore:
    global _default_store
    if _default_store is None:
        if settings.DRAFT_STORE_BACKEND == "memory":
            _default_store = InMemoryDraftStore()
        else:
            _default_store = RedisDraftStore()
    return _default_store
