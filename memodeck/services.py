import pandas as pd
import uuid
import re
import logging
import os
import json
from typing import List, Optional, Dict, Tuple

from .config import get_decks_dir, get_log_level
from .engine import ReviewSession
from .models import Card, Deck, SessionResult, SessionState, StudySession
from .store import DeckStore, is_valid_deck_id

# Configure logging
logging.basicConfig(level=get_log_level(), format='%(asctime)s - %(levelname)s - %(message)s')


class DeckService:
    def __init__(self, store: Optional[DeckStore] = None):
        self.store = store or DeckStore(get_decks_dir())
        self.session: Optional[ReviewSession] = None
        self.last_result: Optional[SessionResult] = None

    # --- Decks ---

    def list_decks(self) -> List[Deck]:
        return self.store.load_all()

    def get_deck(self, deck_id: str) -> Optional[Deck]:
        return self.store.get(deck_id)

    def create_deck(self, title: str, description: str = "") -> Deck:
        deck = Deck(id=str(uuid.uuid4()), title=title, description=description)
        return self.store.save(deck)

    def update_deck(self, deck_id: str, title: str, description: str) -> bool:
        deck = self.store.get(deck_id)
        if deck is None:
            return False
        deck.title = title
        deck.description = description
        self.store.save(deck)
        return True

    def delete_deck(self, deck_id: str) -> bool:
        return self.store.delete(deck_id)

    def get_history(self, deck_id: str) -> Optional[List[StudySession]]:
        deck = self.store.get(deck_id)
        if deck is None:
            return None
        return deck.study_history

    # --- Cards ---

    def add_card(self, deck_id: str, front: str, back: str) -> Optional[Card]:
        deck = self.store.get(deck_id)
        if deck is None:
            return None
        card = Card(id=str(uuid.uuid4()), front=front, back=back)
        deck.cards.append(card)
        self.store.save(deck)
        return card

    def update_card(self, deck_id: str, card_id: str, front: str, back: str) -> bool:
        deck = self.store.get(deck_id)
        if deck is None:
            return False
        for card in deck.cards:
            if card.id == card_id:
                card.front = front
                card.back = back
                self.store.save(deck)
                return True
        return False

    def delete_card(self, deck_id: str, card_id: str) -> bool:
        deck = self.store.get(deck_id)
        if deck is None:
            return False
        remaining = [card for card in deck.cards if card.id != card_id]
        if len(remaining) == len(deck.cards):
            return False
        deck.cards = remaining
        self.store.save(deck)
        return True

    # --- Import / Export ---

    @staticmethod
    def export_filename(deck: Deck) -> str:
        return re.sub(r'\s', '_', deck.title) + ".json"

    def export_deck(self, deck_id: str) -> Optional[Dict]:
        deck = self.store.get(deck_id)
        if deck is None:
            return None
        return deck.model_dump(by_alias=True)

    def import_deck(self, data: Dict) -> Tuple[bool, str]:
        """Adds an exported deck document. Existing deck ids are never overwritten."""
        if not isinstance(data, dict) or not data.get("id") or not data.get("title") \
                or not isinstance(data.get("cards"), list):
            return False, "Invalid deck format"
        if not is_valid_deck_id(data["id"]):
            logging.warning(f"Rejecting deck import with unsafe id {data['id']!r}")
            return False, "Invalid deck format"

        try:
            deck = Deck.model_validate(data)
        except ValueError as e:
            logging.error(f"Failed to import deck: {e}")
            return False, "Invalid deck format"

        card_ids = [card.id for card in deck.cards]
        if len(set(card_ids)) != len(card_ids):
            return False, f"Deck {deck.id} contains duplicate card ids"

        if self.store.exists(deck.id):
            logging.warning(f"Skipping import of deck {deck.id} ({deck.title}): id already exists")
            return False, f"A deck with ID {deck.id} ({deck.title}) already exists. Skipping import."

        deck.created_at = None  # listed after existing decks
        self.store.save(deck)
        logging.info(f"Imported deck {deck.id} with {len(deck.cards)} cards")
        return True, f"Imported {deck.title}"

    def export_deck_file(self, deck_id: str, file_path: str) -> Tuple[bool, str]:
        document = self.export_deck(deck_id)
        if document is None:
            return False, "Deck not found"
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logging.error(f"Error exporting deck {deck_id}: {e}")
            return False, str(e)
        logging.info(f"Exported deck {deck_id} to {file_path}")
        return True, f"Exported to {file_path}"

    def import_deck_file(self, file_path: str) -> Tuple[bool, str]:
        name = os.path.basename(file_path)
        try:
            with open(file_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logging.error(f"Failed to import file {file_path}: {e}")
            return False, f'Failed to import file "{name}". Please ensure it\'s a valid MemoDeck JSON file.'
        return self.import_deck(data)

    @staticmethod
    def card_fronts(deck: Deck, card_ids: List[str]) -> List[str]:
        """Front texts for a session's card ids, for the history detail view."""
        fronts = {card.id: card.front for card in deck.cards}
        return [fronts.get(card_id, "(deleted card)") for card_id in card_ids]

    def import_cards_csv(self, deck_id: str, file_path: str) -> Tuple[bool, str]:
        """Appends the rows of a front/back CSV file to a deck as new cards."""
        deck = self.store.get(deck_id)
        if deck is None:
            return False, "Deck not found"

        file_path = file_path.strip().strip('"').strip("'")
        if not os.path.exists(file_path):
            logging.error(f"File not found: {file_path}")
            return False, "File not found"

        try:
            df = pd.read_csv(file_path, encoding='utf-8-sig')
        except (OSError, ValueError) as e:
            logging.error(f"Error loading CSV: {e}")
            return False, str(e)

        df = self._normalize_columns(df)
        if df is None:
            return False, "CSV needs front/back (or question/answer) columns"

        df = df[(df['front'] != '') & (df['back'] != '')]
        new_cards = [
            Card(id=str(uuid.uuid4()), front=row.front, back=row.back)
            for row in df.itertuples(index=False)
        ]
        deck.cards.extend(new_cards)
        self.store.save(deck)

        logging.info(f"Imported {len(new_cards)} cards from {file_path} into deck {deck_id}")
        return True, f"Imported {len(new_cards)} cards"

    def _normalize_columns(self, df: pd.DataFrame) -> Optional[pd.DataFrame]:
        # Handle legacy column names if any
        column_mappings = {'domanda': 'front', 'risposta': 'back', 'question': 'front', 'answer': 'back'}
        df = df.rename(columns=lambda c: str(c).strip().lower())
        for old, new in column_mappings.items():
            if old in df.columns and new not in df.columns:
                df[new] = df[old]

        if 'front' not in df.columns or 'back' not in df.columns:
            return None

        df = df[['front', 'back']].fillna("")  # Fill NaNs before stringifying
        return df.astype(str).apply(lambda col: col.str.strip())

    # --- Study ---

    def start_session(self, deck_id: str, rng=None) -> Optional[ReviewSession]:
        """Starts reviewing a snapshot of the deck's cards.

        Only one session runs at a time; a session still in progress is
        aborted (and recorded) first. Raises DuplicateCardError for decks
        that break the unique-id contract.
        """
        deck = self.store.get(deck_id)
        if deck is None:
            return None

        if self.session is not None and not self.session.is_finished:
            logging.info(f"Aborting unfinished session for deck {self.session.deck_id}")
            self.session.abort()

        self.last_result = None
        self.session = ReviewSession(
            deck.id,
            list(deck.cards),
            rng=rng,
            on_finish=lambda result: self._record_result(deck.id, result),
        )
        return self.session

    def _record_result(self, deck_id: str, result: SessionResult):
        self.last_result = result
        self.store.append_session(deck_id, result)

    def get_session_state(self) -> Optional[SessionState]:
        if self.session is None:
            return None
        return self.session.snapshot()

    def reveal(self) -> bool:
        if self.session is None:
            return False
        return self.session.reveal()

    def judge(self, known: bool) -> bool:
        if self.session is None:
            return False
        return self.session.judge(known)

    def abort(self) -> Optional[SessionResult]:
        if self.session is None:
            return None
        self.session.abort()
        return self.session.result

    # --- Stats ---

    def get_stats(self) -> Dict[str, int]:
        decks = self.store.load_all()
        history = [session for deck in decks for session in deck.study_history]
        return {
            "decks": len(decks),
            "cards": sum(len(deck.cards) for deck in decks),
            "sessions": len(history),
            "completed_sessions": sum(1 for session in history if session.completed),
        }
