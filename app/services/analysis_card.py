"""
Analysis card lifecycle.

A card is one analysis UI instance. It moves through

    IDLE -> ANALYZING -> RESULT | ERROR
    RESULT -> SAVING -> SAVED | ERROR

with at most one ANALYZING or SAVING step in flight. A second analyze() or
save() while busy is rejected with CardBusyError instead of being queued.
State checks and transitions happen without an intervening await, so two
coroutines on the same event loop cannot both pass the busy check.
"""

import asyncio
import enum
import logging
import threading
from typing import Awaitable, Callable, Dict, Optional, Tuple, TypeVar
from uuid import UUID

from app.services.analysis_errors import AnalysisError, CardBusyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CardState(str, enum.Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    RESULT = "result"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


BUSY_STATES = {CardState.ANALYZING, CardState.SAVING}


class AnalysisCard:
    """Single-writer lifecycle state for one analysis card."""

    def __init__(self, key: str):
        self.key = key
        self.state = CardState.IDLE
        self.result = None
        self.error: Optional[AnalysisError] = None
        self.cancel_event = asyncio.Event()

    @property
    def busy(self) -> bool:
        return self.state in BUSY_STATES

    async def analyze(self, run: Callable[[asyncio.Event], Awaitable[T]]) -> T:
        """
        Run an analysis step. `run` receives the card's cancel event.

        Raises:
            CardBusyError: An analyze or save is already in flight
        """
        self._begin(CardState.ANALYZING)
        try:
            result = await run(self.cancel_event)
        except AnalysisError as e:
            self._fail(e)
            raise
        except BaseException:
            self.state = CardState.ERROR
            raise
        self.result = result
        self.state = CardState.RESULT
        return result

    async def save(self, run: Callable[[], Awaitable[T]]) -> T:
        """
        Run a save step. Any non-busy state may save, so a failed save can be
        retried and a result from an earlier request can be saved explicitly.

        Raises:
            CardBusyError: An analyze or save is already in flight
        """
        self._begin(CardState.SAVING)
        try:
            saved = await run()
        except AnalysisError as e:
            self._fail(e)
            raise
        except BaseException:
            self.state = CardState.ERROR
            raise
        self.state = CardState.SAVED
        return saved

    def cancel(self) -> bool:
        """Signal the in-flight model call to stop. Returns False when nothing is running."""
        if self.state != CardState.ANALYZING:
            return False
        self.cancel_event.set()
        logger.info("Cancel requested for card %s", self.key)
        return True

    def _begin(self, state: CardState) -> None:
        if self.busy:
            raise CardBusyError()
        self.state = state
        self.error = None
        if state == CardState.ANALYZING:
            self.cancel_event = asyncio.Event()

    def _fail(self, error: AnalysisError) -> None:
        self.state = CardState.ERROR
        self.error = error
        logger.info("Card %s failed: %s", self.key, type(error).__name__)


class CardRegistry:
    """One card per (user, card key). Shared across requests in this process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._cards: Dict[Tuple[UUID, str], AnalysisCard] = {}

    def get(self, user_id: UUID, key: str) -> AnalysisCard:
        with self._lock:
            card = self._cards.get((user_id, key))
            if card is None:
                card = AnalysisCard(key)
                self._cards[(user_id, key)] = card
            return card

    def find(self, user_id: UUID, key: str) -> Optional[AnalysisCard]:
        with self._lock:
            return self._cards.get((user_id, key))

    def release(self, user_id: UUID, key: str) -> None:
        """Forget an idle or finished card."""
        with self._lock:
            card = self._cards.get((user_id, key))
            if card is not None and not card.busy:
                del self._cards[(user_id, key)]


card_registry = CardRegistry()


def card_key(journal_entry_id: Optional[str], image_ref: Optional[str]) -> Optional[str]:
    """Cards are keyed by the explicit entry id, else the image reference."""
    return journal_entry_id or image_ref or None
