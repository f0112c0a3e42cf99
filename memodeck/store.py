import os
import re
import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError

from .models import Deck, SessionResult, StudySession

DECK_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def is_valid_deck_id(deck_id) -> bool:
    """Deck ids double as file names, so only plain names are allowed."""
    return isinstance(deck_id, str) and bool(DECK_ID_PATTERN.fullmatch(deck_id))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DeckStore:
    """One JSON document per deck, named after the deck id."""

    def __init__(self, directory: str = "decks"):
        self.directory = directory
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, deck_id: str) -> str:
        if not is_valid_deck_id(deck_id):
            raise ValueError(f"Invalid deck id: {deck_id!r}")
        root = os.path.realpath(self.directory)
        path = os.path.realpath(os.path.join(root, f"{deck_id}.json"))
        if os.path.dirname(path) != root:
            raise ValueError(f"Deck id {deck_id!r} resolves outside {self.directory}")
        return path

    def _read(self, path: str) -> Optional[Deck]:
        try:
            with open(path, encoding="utf-8") as f:
                return Deck.model_validate_json(f.read())
        except (OSError, ValidationError) as e:
            logging.error(f"Error reading deck file {path}: {e}")
            return None

    def load_all(self) -> List[Deck]:
        """Every readable deck, oldest first."""
        decks = []
        for name in os.listdir(self.directory):
            if not name.endswith(".json"):
                continue
            deck = self._read(os.path.join(self.directory, name))
            if deck is not None:
                decks.append(deck)
        # decks from older exports have no created_at and sort first
        return sorted(decks, key=lambda d: (d.created_at or "", d.title))

    def get(self, deck_id: str) -> Optional[Deck]:
        if not is_valid_deck_id(deck_id):
            return None
        path = self._path(deck_id)
        if not os.path.exists(path):
            return None
        return self._read(path)

    def exists(self, deck_id: str) -> bool:
        return is_valid_deck_id(deck_id) and os.path.exists(self._path(deck_id))

    def save(self, deck: Deck) -> Deck:
        if deck.created_at is None:
            deck.created_at = now_iso()
        with open(self._path(deck.id), "w", encoding="utf-8") as f:
            f.write(deck.model_dump_json(by_alias=True, indent=2))
        logging.info(f"Saved deck {deck.id} ({deck.title})")
        return deck

    def delete(self, deck_id: str) -> bool:
        if not self.exists(deck_id):
            return False
        os.remove(self._path(deck_id))
        logging.info(f"Deleted deck {deck_id}")
        return True

    def append_session(self, deck_id: str, result: SessionResult) -> Optional[StudySession]:
        """Stamps a finished session and puts it at the top of the deck's history."""
        deck = self.get(deck_id)
        if deck is None:
            logging.warning(f"Dropping session result for missing deck {deck_id}")
            return None

        session = StudySession(
            **result.model_dump(exclude={"accuracy"}),
            date=now_iso(),
        )
        deck.study_history.insert(0, session)
        deck.last_played = session.date
        self.save(deck)
        return session
