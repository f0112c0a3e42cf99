from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from .config import get_cors_origins
from .engine import DuplicateCardError
from .services import DeckService
from .models import (
    Card, Deck, DeckCreate, CardCreate, StudyRequest, JudgeRequest,
    CsvImportRequest, SessionResult, SessionState, SessionStats, StudySession,
)
from typing import List, Dict
import logging

app = FastAPI(title="MemoDeck API")

# CORS Setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Singleton Service
service = DeckService()


@app.on_event("startup")
def startup_event():
    decks = service.list_decks()
    logging.info(f"Loaded {len(decks)} decks from {service.store.directory}")


@app.get("/stats", response_model=SessionStats)
def get_stats():
    return service.get_stats()


# --- Decks ---

@app.get("/decks", response_model=List[Deck])
def list_decks():
    return service.list_decks()


@app.post("/decks", response_model=Deck, status_code=201)
def create_deck(request: DeckCreate):
    return service.create_deck(request.title, request.description)


@app.get("/decks/{deck_id}", response_model=Deck)
def get_deck(deck_id: str):
    deck = service.get_deck(deck_id)
    if deck is None:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


@app.put("/decks/{deck_id}")
def update_deck(deck_id: str, request: DeckCreate):
    success = service.update_deck(deck_id, request.title, request.description)
    if not success:
        raise HTTPException(status_code=404, detail="Deck not found")
    return {"success": True}


@app.delete("/decks/{deck_id}")
def delete_deck(deck_id: str):
    success = service.delete_deck(deck_id)
    if not success:
        raise HTTPException(status_code=404, detail="Deck not found")
    return {"success": True}


@app.get("/decks/{deck_id}/history", response_model=List[StudySession])
def get_history(deck_id: str):
    history = service.get_history(deck_id)
    if history is None:
        raise HTTPException(status_code=404, detail="Deck not found")
    return history


# --- Cards ---

@app.post("/decks/{deck_id}/cards", response_model=Card, status_code=201)
def add_card(deck_id: str, request: CardCreate):
    card = service.add_card(deck_id, request.front, request.back)
    if card is None:
        raise HTTPException(status_code=404, detail="Deck not found")
    return card


@app.put("/decks/{deck_id}/cards/{card_id}")
def update_card(deck_id: str, card_id: str, request: CardCreate):
    success = service.update_card(deck_id, card_id, request.front, request.back)
    if not success:
        raise HTTPException(status_code=404, detail="Card not found")
    return {"success": True}


@app.delete("/decks/{deck_id}/cards/{card_id}")
def delete_card(deck_id: str, card_id: str):
    success = service.delete_card(deck_id, card_id)
    if not success:
        raise HTTPException(status_code=404, detail="Card not found")
    return {"success": True}


# --- Import / Export ---

@app.get("/decks/{deck_id}/export")
def export_deck(deck_id: str):
    deck = service.get_deck(deck_id)
    if deck is None:
        raise HTTPException(status_code=404, detail="Deck not found")
    return {
        "filename": service.export_filename(deck),
        "deck": service.export_deck(deck_id),
    }


@app.post("/decks/import", status_code=201)
def import_deck(document: Dict):
    success, message = service.import_deck(document)
    if not success:
        status = 409 if "already exists" in message else 400
        raise HTTPException(status_code=status, detail=message)
    return {"success": True, "message": message}


@app.post("/decks/{deck_id}/import-csv")
def import_cards_csv(deck_id: str, request: CsvImportRequest):
    if service.get_deck(deck_id) is None:
        raise HTTPException(status_code=404, detail="Deck not found")
    success, message = service.import_cards_csv(deck_id, request.file_path)
    if not success:
        raise HTTPException(status_code=400, detail=message)
    return {"success": True, "message": message}


# --- Study ---

def _current_state() -> SessionState:
    state = service.get_session_state()
    if state is None:
        raise HTTPException(status_code=404, detail="No active study session")
    return state


@app.post("/study/start", response_model=SessionState)
def start_study(request: StudyRequest):
    try:
        session = service.start_session(request.deck_id)
    except DuplicateCardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if session is None:
        raise HTTPException(status_code=404, detail="Deck not found")
    return session.snapshot()


@app.get("/study/state", response_model=SessionState)
def get_study_state():
    return _current_state()


@app.post("/study/reveal", response_model=SessionState)
def reveal_card():
    _current_state()
    service.reveal()
    return _current_state()


@app.post("/study/judge")
def judge_card(request: JudgeRequest):
    _current_state()
    applied = service.judge(request.known)
    state = _current_state()
    return {"applied": applied, "state": state.model_dump(by_alias=True)}


@app.post("/study/abort", response_model=SessionResult)
def abort_study():
    _current_state()
    return service.abort()
