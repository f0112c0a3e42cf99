from fastapi.testclient import TestClient
import pytest

import memodeck.main as backend
from memodeck.services import DeckService
from memodeck.store import DeckStore

client = TestClient(backend.app)


@pytest.fixture(autouse=True)
def isolated_service(tmp_path, monkeypatch):
    service = DeckService(DeckStore(str(tmp_path / "decks")))
    monkeypatch.setattr(backend, "service", service)
    return service


def create_deck_with_cards(n):
    response = client.post("/decks", json={"title": "Capitals", "description": "Europe"})
    assert response.status_code == 201
    deck_id = response.json()["id"]
    for i in range(n):
        response = client.post(f"/decks/{deck_id}/cards", json={"front": f"Q{i}", "back": f"A{i}"})
        assert response.status_code == 201
    return deck_id


def test_api_flow():
    deck_id = create_deck_with_cards(2)

    response = client.get("/decks")
    assert response.status_code == 200
    assert [d["id"] for d in response.json()] == [deck_id]

    # Start study
    response = client.post("/study/start", json={"deck_id": deck_id})
    assert response.status_code == 200
    state = response.json()
    assert state["total"] == 2
    assert state["back"] is None

    # Judging before reveal is ignored
    response = client.post("/study/judge", json={"known": True})
    assert response.status_code == 200
    assert response.json()["applied"] is False

    # Miss the first card, then know both
    for known in (False, True, True):
        response = client.post("/study/reveal")
        assert response.json()["back"] is not None
        response = client.post("/study/judge", json={"known": known})
        assert response.json()["applied"] is True

    state = client.get("/study/state").json()
    assert state["finished"] is True
    assert state["result"]["completed"] is True
    assert state["result"]["known"] == 2
    assert state["result"]["unknown"] == 1
    assert len(state["result"]["unknownCardIds"]) == 1

    response = client.get(f"/decks/{deck_id}/history")
    assert response.status_code == 200
    history = response.json()
    assert len(history) == 1
    assert history[0]["date"]
    assert client.get(f"/decks/{deck_id}").json()["lastPlayed"] == history[0]["date"]

    # Abort after completion does not append again
    response = client.post("/study/abort")
    assert response.json()["completed"] is True
    assert len(client.get(f"/decks/{deck_id}/history").json()) == 1

    stats = client.get("/stats").json()
    assert stats["sessions"] == 1


def test_abort_session():
    deck_id = create_deck_with_cards(3)
    client.post("/study/start", json={"deck_id": deck_id})
    client.post("/study/reveal")
    client.post("/study/judge", json={"known": True})

    response = client.post("/study/abort")
    assert response.status_code == 200
    result = response.json()
    assert result["completed"] is False
    assert result["known"] == 1
    assert result["accuracy"] == 100


def test_study_without_session():
    assert client.get("/study/state").status_code == 404
    assert client.post("/study/judge", json={"known": True}).status_code == 404
    assert client.post("/study/start", json={"deck_id": "missing"}).status_code == 404


def test_deck_and_card_endpoints():
    deck_id = create_deck_with_cards(1)
    card_id = client.get(f"/decks/{deck_id}").json()["cards"][0]["id"]

    response = client.put(f"/decks/{deck_id}/cards/{card_id}", json={"front": "France", "back": "Paris"})
    assert response.status_code == 200
    response = client.put(f"/decks/{deck_id}", json={"title": "Renamed", "description": ""})
    assert response.status_code == 200
    assert client.get(f"/decks/{deck_id}").json()["title"] == "Renamed"

    assert client.delete(f"/decks/{deck_id}/cards/{card_id}").status_code == 200
    assert client.delete(f"/decks/{deck_id}/cards/{card_id}").status_code == 404
    assert client.delete(f"/decks/{deck_id}").status_code == 200
    assert client.get(f"/decks/{deck_id}").status_code == 404


def test_export_import(isolated_service):
    deck_id = create_deck_with_cards(2)
    exported = client.get(f"/decks/{deck_id}/export").json()
    assert exported["filename"] == "Capitals.json"

    # id collision is skipped
    response = client.post("/decks/import", json=exported["deck"])
    assert response.status_code == 409

    isolated_service.delete_deck(deck_id)
    response = client.post("/decks/import", json=exported["deck"])
    assert response.status_code == 201
    assert len(client.get(f"/decks/{deck_id}").json()["cards"]) == 2

    response = client.post("/decks/import", json={"title": "broken"})
    assert response.status_code == 400


def test_import_csv(tmp_path):
    deck_id = create_deck_with_cards(0)
    csv_path = tmp_path / "cards.csv"
    csv_path.write_text("question,answer\nFrance,Paris\nItaly,Rome\n", encoding="utf-8")

    response = client.post(f"/decks/{deck_id}/import-csv", json={"file_path": str(csv_path)})
    assert response.status_code == 200
    assert len(client.get(f"/decks/{deck_id}").json()["cards"]) == 2

    response = client.post(f"/decks/{deck_id}/import-csv", json={"file_path": str(tmp_path / "nope.csv")})
    assert response.status_code == 400


def test_empty_deck_study():
    deck_id = create_deck_with_cards(0)
    state = client.post("/study/start", json={"deck_id": deck_id}).json()
    assert state["finished"] is True
    assert state["result"] == {
        "known": 0, "unknown": 0, "completed": True,
        "knownCardIds": [], "unknownCardIds": [], "accuracy": 0,
    }


def test_import_with_unsafe_id_is_rejected(tmp_path):
    for bad_id in ("../escaped", "nested/deck"):
        response = client.post("/decks/import", json={"id": bad_id, "title": "t", "cards": []})
        assert response.status_code == 400
    assert not (tmp_path / "escaped.json").exists()


def test_corrupt_deck_file_is_not_found(isolated_service):
    with open(f"{isolated_service.store.directory}/broken.json", "w", encoding="utf-8") as f:
        f.write("{not json")

    assert client.get("/decks/broken").status_code == 404
    assert client.get("/decks").json() == []
