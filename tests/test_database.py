from __future__ import annotations

import json

import pytest

from build_card_index import build_card_index, build_indexes, slim_card
from database import LocalCardIndex, get_set_id, load_database
from models import CardHint, CardLanguage, SearchStrategy
from search import search

BASE_SET = {"id": "base1", "name": "Base", "ptcgoCode": "BS", "printedTotal": 102}
JUNGLE = {"id": "base2", "name": "Jungle", "ptcgoCode": "JU", "printedTotal": 64}


def _raw(card_id: str, name: str, number: str, **extra) -> dict:
    card = {"id": card_id, "name": name, "number": number, "rarity": "Rare Holo",
            "hp": "60", "flavorText": "dropped", "attacks": []}
    card.update(extra)
    return card


def _index() -> dict:
    return build_card_index(
        {"base1": BASE_SET, "base2": JUNGLE},
        {
            "base1": [_raw("base1-4", "Charizard", "4", hp="120"),
                      _raw("base1-58", "Pikachu", "58")],
            "base2": [_raw("base2-60", "Pikachu", "60"),
                      _raw("base2-4", "Clefable", "4")],
        },
    )


def test_slim_card_keeps_only_known_fields() -> None:
    record = slim_card(_raw("base1-4", "Charizard", "4"), BASE_SET)

    assert "flavorText" not in record
    assert "attacks" not in record
    assert record["set"]["ptcgoCode"] == "BS"


def test_build_indexes() -> None:
    built = _index()
    index = built["index"]

    assert built["meta"]["card_count"] == 4
    assert index["by_set_number"]["base1/4"] == "base1-4"
    assert index["by_name"]["pikachu"] == ["base1-58", "base2-60"]
    assert build_indexes([])["by_id"] == {}


def test_set_and_number_by_printed_code() -> None:
    index = LocalCardIndex(_index()["index"])

    matches = index.execute(SearchStrategy.set_and_number("BS", "004"))

    assert [m.id for m in matches] == ["base1-4"]
    assert matches[0].card.display_number == "4/102"
    assert index.execute(SearchStrategy.set_and_number("XX", "4")) == []


def test_name_lookup_exact_then_substring() -> None:
    index = LocalCardIndex(_index()["index"])

    exact = index.lookup_by_name("PIKACHU")
    partial = index.lookup_by_name("chariz")

    assert [c["id"] for c in exact] == ["base1-58", "base2-60"]
    assert [c["id"] for c in partial] == ["base1-4"]
    assert index.lookup_by_name("") == []


def test_number_lookup_across_sets() -> None:
    index = LocalCardIndex(_index()["index"])

    matches = index.execute(SearchStrategy.number_lookup("004"))

    assert sorted(m.id for m in matches) == ["base1-4", "base2-4"]


def test_search_ranks_local_rows() -> None:
    index = LocalCardIndex(_index()["index"])
    hint = CardHint(name_guess="Pikachu", number_guess="060", language=CardLanguage.EN)

    outcome = search(hint, index)

    assert outcome.matches[0].id == "base2-60"
    assert outcome.matches[0].confidence == 0.8
    assert outcome.attempted_queries == ("name:Pikachu lang:en",)


def test_load_database_round_trip(tmp_path) -> None:
    path = tmp_path / "card_index.json"
    path.write_text(json.dumps(_index()), encoding="utf-8")

    index = LocalCardIndex.from_file(path)

    assert len(index) == 4
    assert index.get_card("base2-4").name == "Clefable"
    assert index.get_card("nope") is None


def test_missing_database_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_database(tmp_path / "missing.json")


def test_get_set_id() -> None:
    assert get_set_id({"id": "sv3pt5-25", "set": {"id": "sv3pt5"}}) == "sv3pt5"
    assert get_set_id("swsh12pt5-160") == "swsh12pt5"
    assert get_set_id("nodash") == ""
