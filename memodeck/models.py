from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel
from typing import Optional, List


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case in Python; both accepted on input
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Card(CamelModel):
    id: str
    front: str
    back: str


class SessionResult(CamelModel):
    known: int = 0
    unknown: int = 0
    completed: bool
    known_card_ids: List[str] = Field(default_factory=list)
    unknown_card_ids: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def accuracy(self) -> int:
        """Percentage of judgments that were 'known', 0 when nothing was judged."""
        attempted = self.known + self.unknown
        if attempted == 0:
            return 0
        return round(self.known / attempted * 100)


class StudySession(SessionResult):
    date: str


class Deck(CamelModel):
    id: str
    title: str
    description: str = ""
    cards: List[Card] = Field(default_factory=list)
    study_history: List[StudySession] = Field(default_factory=list)
    last_played: Optional[str] = None
    created_at: Optional[str] = None


class SessionState(CamelModel):
    deck_id: str
    card_id: Optional[str] = None
    front: Optional[str] = None
    back: Optional[str] = None  # only set once revealed
    side: str = "front"
    known: int = 0
    unknown: int = 0
    pending: int = 0
    total: int = 0
    finished: bool = False
    result: Optional[SessionResult] = None


class DeckCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""


class CardCreate(BaseModel):
    front: str
    back: str


class StudyRequest(BaseModel):
    deck_id: str


class JudgeRequest(BaseModel):
    known: bool


class CsvImportRequest(BaseModel):
    file_path: str


class SessionStats(BaseModel):
    decks: int
    cards: int
    sessions: int
    completed_sessions: int
