"""
strategies.py — Ordered lookup queries for a hint, most specific first.
"""

from models import CardHint, FALLBACK_LANGUAGE, SearchStrategy


def normalize_number(number: str) -> str:
    """'004' -> '4'. Non-numeric codes (SWSH123, SV045) pass through."""
    if number.isdigit():
        return number.lstrip("0") or "0"
    return number


def build_strategies(hint: CardHint) -> list:
    """
    Strategies for one hint, in the order they should be tried:

      1. set code + number
      2. name in the detected language
      3. name in English, when the detected language is something else
      4. number alone

    The name fallbacks stand in for the name only when the scorer found none.
    """
    strategies = []
    name = hint.best_name
    language = hint.language or FALLBACK_LANGUAGE

    if hint.set_code_guess and hint.number_guess:
        strategies.append(SearchStrategy.set_and_number(hint.set_code_guess, hint.number_guess))

    if name:
        strategies.append(SearchStrategy.name_lookup(name, language))
        if language is not FALLBACK_LANGUAGE:
            strategies.append(SearchStrategy.name_lookup(name, FALLBACK_LANGUAGE))

    if hint.number_guess:
        strategies.append(SearchStrategy.number_lookup(hint.number_guess))

    return strategies
