"""Review session engine.

A session owns a shuffled queue of cards, the known/unknown tally and the
flip state of the card at the head of the queue. It ends either when the
queue is drained (completed) or when the user aborts, and it hands exactly
one SessionResult to its host.
"""
import logging
import random
import threading
from collections import Counter
from typing import Callable, List, NamedTuple, Optional, Sequence

from .models import Card, SessionResult, SessionState

FRONT = "front"
BACK = "back"


class DuplicateCardError(ValueError):
    """Raised when a deck snapshot contains the same card id twice."""


class PendingJudgment(NamedTuple):
    card: Card
    known: bool


def shuffle_cards(cards: Sequence[Card], rng=None) -> List[Card]:
    """Returns a Fisher-Yates shuffled copy of ``cards``."""
    rng = rng or random
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class ReviewSession:
    def __init__(
        self,
        deck_id: str,
        cards: Sequence[Card],
        rng=None,
        on_finish: Optional[Callable[[SessionResult], None]] = None,
    ):
        ids = [card.id for card in cards]
        dupes = sorted(card_id for card_id, n in Counter(ids).items() if n > 1)
        if dupes:
            raise DuplicateCardError(f"Deck {deck_id} has duplicate card ids: {dupes}")

        self.deck_id = deck_id
        self.total = len(ids)
        self.queue: List[Card] = shuffle_cards(cards, rng)
        self.side = FRONT

        self.known_count = 0
        self.unknown_count = 0
        self.known_card_ids: List[str] = []
        self.unknown_card_ids: List[str] = []
        self.judgments = 0

        self._pending: Optional[PendingJudgment] = None
        self._result: Optional[SessionResult] = None
        self._on_finish = on_finish
        # hosts may apply deferred judgments from a timer thread
        self._lock = threading.RLock()

        logging.info(f"Review session started for deck {deck_id} with {self.total} cards")

        if self.total == 0:
            self._finish(completed=True)

    # --- State ---

    @property
    def current_card(self) -> Optional[Card]:
        if self._result is not None or not self.queue:
            return None
        return self.queue[0]

    @property
    def is_revealed(self) -> bool:
        return self.side == BACK

    @property
    def is_finished(self) -> bool:
        return self._result is not None

    @property
    def has_pending_judgment(self) -> bool:
        return self._pending is not None

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    def snapshot(self) -> SessionState:
        """Read-only view of the session for hosts and the API."""
        with self._lock:
            card = self.current_card
            return SessionState(
                deck_id=self.deck_id,
                card_id=card.id if card else None,
                front=card.front if card else None,
                back=card.back if card and self.is_revealed else None,
                side=self.side,
                known=self.known_count,
                unknown=self.unknown_count,
                pending=len(self.queue),
                total=self.total,
                finished=self.is_finished,
                result=self._result,
            )

    # --- Transitions ---

    def reveal(self) -> bool:
        """Shows the back of the current card. Never touches the queue."""
        with self._lock:
            if self.current_card is None or self._pending is not None:
                return False
            self.side = BACK
            return True

    def record_judgment(self, known: bool) -> Optional[PendingJudgment]:
        """First phase of a judgment: capture the outcome for the head card.

        The card flips back to its front right away; tally and queue are left
        alone until ``apply_judgment`` runs, so a host can delay the mutation
        while a flip animation plays. Returns None when there is nothing to
        judge (no card, session over, back not revealed, or a judgment is
        already waiting to be applied).
        """
        with self._lock:
            card = self.current_card
            if card is None or not self.is_revealed or self._pending is not None:
                logging.debug(f"Ignoring judgment for deck {self.deck_id}: nothing to judge")
                return None

            self.side = FRONT
            self._pending = PendingJudgment(card, known)
            return self._pending

    def apply_judgment(self, pending: PendingJudgment) -> bool:
        """Second phase: update the tally and queue for a recorded judgment."""
        with self._lock:
            if self._result is not None:
                # aborted (or otherwise finished) while the mutation was deferred
                self._pending = None
                return False
            if pending is not self._pending:
                return False

            card = self.queue.pop(0)
            if pending.known:
                self.known_count += 1
                self.known_card_ids.append(card.id)
            else:
                self.unknown_count += 1
                if card.id not in self.unknown_card_ids:
                    self.unknown_card_ids.append(card.id)
                self.queue.append(card)

            self.judgments += 1
            self._pending = None
            self.side = FRONT
            logging.debug(
                f"Card {card.id} judged {'known' if pending.known else 'unknown'}; "
                f"{len(self.queue)} pending"
            )

            if not self.queue and self.judgments > 0:
                self._finish(completed=True)
            return True

    def judge(self, known: bool) -> bool:
        """Records and applies a judgment in one step."""
        pending = self.record_judgment(known)
        if pending is None:
            return False
        return self.apply_judgment(pending)

    def abort(self) -> bool:
        """Ends the session early. Returns False if it had already ended."""
        return self._finish(completed=False)

    def _finish(self, completed: bool) -> bool:
        with self._lock:
            if self._result is not None:
                return False

            self._result = SessionResult(
                known=self.known_count,
                unknown=self.unknown_count,
                completed=completed,
                known_card_ids=list(self.known_card_ids),
                unknown_card_ids=list(self.unknown_card_ids),
            )
            self._pending = None
            if not completed:
                self.queue = []
            self.side = FRONT

            logging.info(
                f"Review session for deck {self.deck_id} "
                f"{'completed' if completed else 'aborted'}: "
                f"{self.known_count} known, {self.unknown_count} unknown"
            )
            if self._on_finish is not None:
                self._on_finish(self._result)
            return True
