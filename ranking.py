"""
ranking.py — Score candidate cards against a hint.

Used for collaborators that return loosely matched rows with no confidence
of their own (the local index, name listings). Each signal that agrees adds
a fixed weight; rows at or below the floor are dropped.
"""

import logging

from models import CardHint, CardMatch

logger = logging.getLogger("ranking")

# Signal weights, summing to 1.0 for a perfect match
_SIGNAL_WEIGHTS = {
    "number": 0.5,
    "name": 0.3,
    "name_fuzzy": 0.15,
    "rarity": 0.1,
    "hp": 0.1,
}
SCORE_FLOOR = 0.2
FUZZY_NAME_THRESHOLD = 0.6


def character_similarity(a: str, b: str) -> float:
    """Shared distinct characters over the larger character set."""
    chars_a, chars_b = set(a.lower()), set(b.lower())
    if not chars_a or not chars_b:
        return 0.0
    return len(chars_a & chars_b) / max(len(chars_a), len(chars_b))


def score_candidate(hint: CardHint, card):
    """Returns (score, matched_fields) for one card."""
    score = 0.0
    matched = set()

    hint_number = (hint.number_guess or "").lower()
    card_number = (card.number or "").lower()
    if hint_number and card_number and (hint_number in card_number or card_number in hint_number):
        score += _SIGNAL_WEIGHTS["number"]
        matched.add("number")

    hint_name = (hint.best_name or "").lower()
    card_name = (card.name or "").lower()
    if hint_name and card_name:
        if hint_name in card_name or card_name in hint_name:
            score += _SIGNAL_WEIGHTS["name"]
            matched.add("name")
        elif character_similarity(hint_name, card_name) > FUZZY_NAME_THRESHOLD:
            score += _SIGNAL_WEIGHTS["name_fuzzy"]
            matched.add("name_fuzzy")

    if hint.rarity_guess is not None and hint.rarity_guess == card.rarity:
        score += _SIGNAL_WEIGHTS["rarity"]
        matched.add("rarity")

    if hint.hp and card.hp and hint.hp == str(card.hp):
        score += _SIGNAL_WEIGHTS["hp"]
        matched.add("hp")

    return round(score, 4), frozenset(matched)


def rank(hint: CardHint, candidates) -> list:
    """
    Score, filter and sort candidates, best first.

    The sort is stable, so equally scored cards keep the order the
    collaborator returned them in.
    """
    candidates = list(candidates)
    scored = []
    for card in candidates:
        score, matched = score_candidate(hint, card)
        if score <= SCORE_FLOOR:
            continue
        scored.append(CardMatch(
            id=card.id,
            card=card,
            confidence=min(score, 1.0),
            matched_fields=matched,
        ))

    scored.sort(key=lambda m: m.confidence, reverse=True)

    if scored:
        logger.debug(
            "Ranked %d/%d candidates, top: %s (%.2f)",
            len(scored), len(candidates),
            scored[0].id, scored[0].confidence,
        )
    return scored
