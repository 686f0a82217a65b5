from __future__ import annotations

from models import CardHint, CardLanguage, StrategyKind
from strategies import build_strategies, normalize_number


def test_english_name_only_gives_single_lookup() -> None:
    strategies = build_strategies(CardHint(name_guess="Pikachu", language=CardLanguage.EN))

    assert [s.label for s in strategies] == ["name:Pikachu lang:en"]
    assert strategies[0].kind is StrategyKind.NAME_LOOKUP


def test_foreign_name_adds_english_retry() -> None:
    strategies = build_strategies(CardHint(name_guess="Pikachu", language=CardLanguage.ES))

    assert [s.label for s in strategies] == ["name:Pikachu lang:es", "name:Pikachu lang:en"]


def test_full_hint_orders_most_specific_first() -> None:
    hint = CardHint(name_guess="Pikachu", number_guess="045", set_code_guess="SVI",
                    language=CardLanguage.JP)

    strategies = build_strategies(hint)

    assert [s.kind for s in strategies] == [
        StrategyKind.SET_AND_NUMBER,
        StrategyKind.NAME_LOOKUP,
        StrategyKind.NAME_LOOKUP,
        StrategyKind.NUMBER_LOOKUP,
    ]
    assert strategies[0].label == "set:SVI number:045"
    assert strategies[1].language is CardLanguage.JP
    assert strategies[-1].label == "number:045"


def test_set_code_without_number_is_skipped() -> None:
    strategies = build_strategies(CardHint(name_guess="Pikachu", set_code_guess="SVI"))

    assert [s.kind for s in strategies] == [StrategyKind.NAME_LOOKUP]


def test_missing_language_defaults_to_english() -> None:
    strategies = build_strategies(CardHint(name_guess="Pikachu"))

    assert [s.label for s in strategies] == ["name:Pikachu lang:en"]


def test_fallback_name_used_when_no_guess() -> None:
    strategies = build_strategies(CardHint(name_fallbacks=("Eevee", "Pikachu")))

    assert [s.label for s in strategies] == ["name:Eevee lang:en"]


def test_empty_hint_has_no_strategies() -> None:
    assert build_strategies(CardHint()) == []


def test_normalize_number() -> None:
    assert normalize_number("004") == "4"
    assert normalize_number("120") == "120"
    assert normalize_number("000") == "0"
    assert normalize_number("SWSH020") == "SWSH020"
    assert normalize_number("SV045") == "SV045"
