import random

import pandas as pd
import pytest

from memodeck.engine import DuplicateCardError
from memodeck.services import DeckService
from memodeck.store import DeckStore


@pytest.fixture
def service(tmp_path):
    return DeckService(DeckStore(str(tmp_path / "decks")))


def make_deck(service, n=3):
    deck = service.create_deck("Capitals", "European capitals")
    for i in range(n):
        service.add_card(deck.id, f"Q{i}", f"A{i}")
    return service.get_deck(deck.id)


def test_deck_and_card_crud(service):
    deck = service.create_deck("Capitals")
    assert deck.last_played is None
    card = service.add_card(deck.id, "France", "Paris")

    assert service.update_card(deck.id, card.id, "Italy", "Rome")
    assert service.get_deck(deck.id).cards[0].back == "Rome"
    assert service.update_deck(deck.id, "World Capitals", "all of them")
    assert service.get_deck(deck.id).title == "World Capitals"

    assert service.delete_card(deck.id, card.id)
    assert not service.delete_card(deck.id, card.id)
    assert service.add_card("missing", "a", "b") is None

    assert service.delete_deck(deck.id)
    assert service.list_decks() == []


def test_completed_session_is_appended_to_history(service):
    deck = make_deck(service)
    session = service.start_session(deck.id, rng=random.Random(1))

    while not session.is_finished:
        service.reveal()
        service.judge(True)

    history = service.get_history(deck.id)
    assert len(history) == 1
    assert history[0].completed is True
    assert history[0].known == 3
    assert service.get_deck(deck.id).last_played == history[0].date
    assert service.last_result.completed is True


def test_abort_records_partial_result_once(service):
    deck = make_deck(service, n=5)
    service.start_session(deck.id, rng=random.Random(2))
    for _ in range(2):
        service.reveal()
        service.judge(True)

    result = service.abort()
    assert result.completed is False
    assert result.known == 2
    # second abort is a no-op
    service.abort()
    assert len(service.get_history(deck.id)) == 1


def test_empty_deck_session(service):
    deck = service.create_deck("Empty")
    session = service.start_session(deck.id)

    assert session.is_finished
    history = service.get_history(deck.id)
    assert len(history) == 1
    assert history[0].completed is True
    assert history[0].known == 0 and history[0].unknown == 0


def test_starting_new_session_aborts_running_one(service):
    deck = make_deck(service)
    first = service.start_session(deck.id)
    service.start_session(deck.id)

    assert first.is_finished
    assert first.result.completed is False
    assert len(service.get_history(deck.id)) == 1


def test_session_uses_snapshot_of_cards(service):
    deck = make_deck(service, n=2)
    session = service.start_session(deck.id)
    service.add_card(deck.id, "late", "card")

    assert session.total == 2


def test_start_session_missing_deck(service):
    assert service.start_session("missing") is None
    assert service.judge(True) is False


def test_export_and_import(service, tmp_path):
    deck = make_deck(service)
    document = service.export_deck(deck.id)
    assert "studyHistory" in document
    assert service.export_filename(deck) == "Capitals.json"

    other = DeckService(DeckStore(str(tmp_path / "other")))
    success, _ = other.import_deck(document)
    assert success
    assert other.get_deck(deck.id).cards == deck.cards

    success, message = other.import_deck(document)
    assert not success
    assert "already exists" in message


def test_import_rejects_invalid_documents(service):
    assert service.import_deck({"title": "no id", "cards": []})[0] is False
    assert service.import_deck({"id": "x", "title": "t", "cards": "nope"})[0] is False

    dupes = {"id": "x", "title": "t", "cards": [
        {"id": "c", "front": "a", "back": "b"},
        {"id": "c", "front": "c", "back": "d"},
    ]}
    success, message = service.import_deck(dupes)
    assert not success
    assert "duplicate" in message


def test_duplicate_ids_fail_fast_on_start(service):
    deck = make_deck(service)
    deck.cards.append(deck.cards[0])
    service.store.save(deck)

    with pytest.raises(DuplicateCardError):
        service.start_session(deck.id)
    assert service.get_history(deck.id) == []


def test_import_cards_csv_with_legacy_headers(service, tmp_path):
    deck = service.create_deck("Vocabulary")
    csv_path = tmp_path / "cards.csv"
    pd.DataFrame({
        "domanda": ["cane", "gatto", ""],
        "risposta": ["dog", "cat", "empty"],
    }).to_csv(csv_path, index=False, encoding="utf-8-sig")

    success, message = service.import_cards_csv(deck.id, str(csv_path))
    assert success, message
    cards = service.get_deck(deck.id).cards
    assert [(c.front, c.back) for c in cards] == [("cane", "dog"), ("gatto", "cat")]
    assert len({c.id for c in cards}) == 2


def test_import_cards_csv_errors(service, tmp_path):
    deck = service.create_deck("Vocabulary")
    assert service.import_cards_csv(deck.id, str(tmp_path / "missing.csv")) == (False, "File not found")

    csv_path = tmp_path / "bad.csv"
    pd.DataFrame({"word": ["x"]}).to_csv(csv_path, index=False)
    success, _ = service.import_cards_csv(deck.id, str(csv_path))
    assert not success


def test_stats(service):
    deck = make_deck(service, n=1)
    service.start_session(deck.id)
    service.reveal()
    service.judge(True)
    service.create_deck("Empty")

    stats = service.get_stats()
    assert stats == {"decks": 2, "cards": 1, "sessions": 1, "completed_sessions": 1}


def test_import_rejects_ids_that_are_not_file_names(service, tmp_path):
    for bad_id in ("../escaped", "a/b", "..", "x.json\x00"):
        success, message = service.import_deck({"id": bad_id, "title": "t", "cards": []})
        assert not success
        assert message == "Invalid deck format"
    assert not (tmp_path / "escaped.json").exists()
    assert service.list_decks() == []


def test_export_and_import_files(service, tmp_path):
    deck = make_deck(service, n=2)
    path = tmp_path / service.export_filename(deck)

    success, _ = service.export_deck_file(deck.id, str(path))
    assert success
    assert path.exists()

    other = DeckService(DeckStore(str(tmp_path / "other")))
    success, _ = other.import_deck_file(str(path))
    assert success
    assert other.get_deck(deck.id).cards == deck.cards

    broken = tmp_path / "broken.json"
    broken.write_text("{nope", encoding="utf-8")
    success, message = other.import_deck_file(str(broken))
    assert not success
    assert "broken.json" in message


def test_imported_deck_is_listed_last(service, tmp_path):
    first = make_deck(service, n=1)
    document = service.export_deck(first.id)
    document["id"] = "imported"
    document["title"] = "Imported"
    service.create_deck("Second")

    assert service.import_deck(document)[0]
    assert [d.title for d in service.list_decks()] == ["Capitals", "Second", "Imported"]


def test_card_fronts_for_history(service):
    deck = make_deck(service, n=2)
    service.start_session(deck.id, rng=random.Random(3))
    while not service.session.is_finished:
        service.reveal()
        service.judge(True)
    service.delete_card(deck.id, deck.cards[0].id)

    session = service.get_history(deck.id)[0]
    fronts = service.card_fronts(service.get_deck(deck.id), session.known_card_ids)
    assert sorted(fronts) == sorted(["(deleted card)", deck.cards[1].front])
