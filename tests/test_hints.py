from __future__ import annotations

from fakes import frags
from hints import detect_language, extract_hint, fix_leetspeak, manual_hint, normalize_name
from models import BoundingBox, CardHint, CardLanguage, CardRarity, RecognizedFragment


def _at(text: str, top: float) -> RecognizedFragment:
    return RecognizedFragment(text=text, confidence=0.9,
                              bounding_box=BoundingBox(x=0.1, y=top, width=0.3, height=0.04))


def test_charizard_base_set_lines() -> None:
    hint = extract_hint(frags("CHARIZARD", "120 HP", "4/102"))

    assert hint.number_guess == "004"
    assert hint.set_total_guess == "102"
    assert hint.hp == "120"
    assert hint.name_guess == "Charizard"
    assert hint.rarity_guess is None
    assert hint.set_code_guess is None
    assert hint.has_strong_hint
    assert hint.raw_lines == ("CHARIZARD", "120 HP", "4/102")


def test_number_above_total_is_secret_rare() -> None:
    hint = extract_hint(frags("150/100"))

    assert hint.rarity_guess is CardRarity.SECRET_RARE
    assert hint.number_guess == "150"
    assert hint.set_total_guess == "100"
    assert hint.name_guess is None


def test_empty_fragments_give_empty_hint() -> None:
    hint = extract_hint([])

    assert hint == CardHint()
    assert not hint.has_strong_hint
    assert hint.is_empty


def test_unmatched_text_leaves_fields_absent_but_keeps_lines() -> None:
    hint = extract_hint(frags("~~", "..."))

    assert hint.name_guess is None
    assert hint.number_guess is None
    assert hint.set_total_guess is None
    assert hint.set_code_guess is None
    assert hint.rarity_guess is None
    assert hint.hp is None
    assert hint.types is None
    assert hint.name_fallbacks == ()
    assert hint.raw_lines == ("~~", "...")
    assert not hint.has_strong_hint


def test_extraction_is_idempotent() -> None:
    fragments = frags("Pikachu", "60 HP", "Lightning", "SVI EN 045/198")

    assert extract_hint(fragments) == extract_hint(fragments)


def test_set_prefixed_number_wins_over_generic() -> None:
    hint = extract_hint(frags("Pikachu", "SV045/SV094"))

    assert hint.number_guess == "SV045"
    assert hint.set_total_guess is None


def test_promo_code_number() -> None:
    hint = extract_hint(frags("Pikachu", "SWSH020"))

    assert hint.number_guess == "SWSH020"


def test_set_code_next_to_number() -> None:
    hint = extract_hint(frags("Pikachu", "SVI EN 045/198"))

    assert hint.set_code_guess == "SVI"
    assert hint.number_guess == "045"


def test_set_code_ambiguous_digit_read_as_letter() -> None:
    hint = extract_hint(frags("Pikachu", "SV1 EN 045/198"))

    assert hint.set_code_guess == "SVI"


def test_promo_shaped_token_beside_fraction_is_a_set_code() -> None:
    hint = extract_hint(frags("Pikachu", "SM1 EN 045/198"))

    assert hint.number_guess == "045"
    assert hint.set_total_guess == "198"
    assert hint.set_code_guess == "SMI"


def test_number_split_across_fragments() -> None:
    hint = extract_hint(frags("CHARIZARD", "120 HP", "4 /", "102"))

    assert hint.number_guess == "004"
    assert hint.set_total_guess == "102"
    assert hint.name_guess == "Charizard"
    assert hint.hp == "120"


def test_split_fraction_still_flags_secret_rare() -> None:
    assert extract_hint(frags("Umbreon", "215", "/203")).rarity_guess is CardRarity.SECRET_RARE


def test_rarity_keyword_and_abbreviation() -> None:
    assert extract_hint(frags("Umbreon", "215/203", "Secret Rare")).rarity_guess is CardRarity.SECRET_RARE
    assert extract_hint(frags("Charizard ex", "199/165 SAR")).rarity_guess is CardRarity.SPECIAL_ART_RARE


def test_types_collects_every_hit() -> None:
    hint = extract_hint(frags("Charizard", "Fire", "Water"))

    assert hint.types == frozenset({"Fire", "Water"})


def test_language_detection() -> None:
    assert detect_language("ピカチュウ HP 60") is CardLanguage.JP
    assert detect_language("피카츄") is CardLanguage.KR
    assert detect_language("皮卡丘") is CardLanguage.CN
    assert detect_language("PIKACHU EVOLUCIONA DE PICHU") is CardLanguage.ES
    assert detect_language("PIKACHU") is CardLanguage.EN


def test_kana_text_is_never_chinese() -> None:
    assert detect_language("炎 リザードン") is CardLanguage.JP


def test_name_prefers_top_of_card() -> None:
    hint = extract_hint([_at("Pikachu", 0.8), _at("Raichu", 0.05)])

    assert hint.name_guess == "Raichu"


def test_line_after_ability_header_is_not_the_name() -> None:
    hint = extract_hint(frags("Pikachu", "Basic", "Ability", "Overgrow"))

    assert hint.name_guess == "Pikachu"


def test_line_next_to_damage_value_is_penalized() -> None:
    hint = extract_hint(frags("Flamethrow", "90", "Stage 1", "Charmeleon"))

    assert hint.name_guess == "Charmeleon"


def test_line_next_to_multiplied_damage_is_penalized() -> None:
    hint = extract_hint(frags("Flamethrow", "30x", "Stage 1", "Charmeleon"))

    assert hint.name_guess == "Charmeleon"


def test_ties_resolve_to_first_line() -> None:
    hint = extract_hint(frags("Pikachu", "Psyduck", "Snorlax"))

    assert hint.name_guess == "Pikachu"


def test_name_with_digits_or_colon_rejected() -> None:
    hint = extract_hint(frags("Pikachu: Gnaw", "Pikachu 25"))

    assert hint.name_guess is None


def test_leetspeak_only_between_letters() -> None:
    assert fix_leetspeak("P1KACHU") == "PIKACHU"
    assert fix_leetspeak("M3W") == "MEW"
    assert fix_leetspeak("4/102") == "4/102"
    assert fix_leetspeak("120 HP") == "120 HP"


def test_normalize_name_keeps_suffix_upper() -> None:
    assert normalize_name("charizard ex") == "Charizard EX"
    assert normalize_name("  CH4RIZARD. ") == "Charizard"


def test_name_fallbacks_from_roster() -> None:
    hint = extract_hint(frags("P1KACHU and EEVEE 10 damage", "4/102"))

    assert hint.name_guess is None
    assert hint.name_fallbacks == ("Pikachu", "Eevee")
    assert hint.best_name == "Pikachu"


def test_manual_hint_splits_name_and_number() -> None:
    hint = manual_hint("Charizard 4/102")

    assert hint.name_guess == "Charizard"
    assert hint.number_guess == "004"


def test_manual_hint_plain_name() -> None:
    assert manual_hint("pikachu").name_guess == "Pikachu"
    assert manual_hint("   ") == CardHint()


def test_manual_hint_reads_multiline_text_as_one_fragment() -> None:
    hint = manual_hint("Charizard\n4/102")

    assert hint.name_guess == "Charizard"
    assert hint.number_guess == "004"
    assert hint.set_total_guess == "102"
    assert hint.raw_lines == ("Charizard\n4/102",)


def test_describe() -> None:
    hint = extract_hint(frags("CHARIZARD", "120 HP", "4/102"))

    assert hint.describe() == "Name: Charizard | Number: 004/102 | HP: 120"
    assert CardHint().describe() == "No hints detected"
