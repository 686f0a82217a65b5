"""
hints.py — Turn one frame's recognized text into a structured card hint.

extract_hint() is pure and total: it never raises, and a signal it cannot
find is simply left as None on the returned CardHint.

Signals, in the order they are extracted:
  - number       set-prefixed (SV045/SV094), promo code (SWSH123), or the
                 generic 4/102 pattern, zero-padded to 3 digits
  - set total    denominator of the generic pattern
  - set code     short alphanumeric token on or next to the number line
  - HP           "120 HP"
  - rarity       keyword table, else secret rare when number > total
  - types        every energy type keyword present
  - language     script detection, then per-language keywords
  - name         best-scoring name-shaped line, plus a roster fallback
"""

import dataclasses
import logging
import re
from typing import Optional

from config import (
    PROMO_PREFIXES, SET_CODE_STOP_TOKENS, SET_CODE_ALPHA_RATIO,
    NAME_STOP_WORDS, NAME_FILTER_WORDS, NAME_HARD_STOPS, ABILITY_HEADERS,
    ATTACK_FLAVOR_WORDS, NAME_SUFFIX_TOKENS,
    NAME_MIN_LENGTH, NAME_MAX_LENGTH, NAME_MAX_WORDS, NAME_MIN_LETTER_RATIO,
    NAME_IDEAL_LENGTH, NAME_LENGTH_WINDOW, NAME_FALLBACK_LIMIT,
    NAME_SINGLE_WORD_BONUS, NAME_TWO_WORD_BONUS, NAME_DAMAGE_NEIGHBOR_PENALTY,
    NAME_ATTACK_WORD_PENALTY, NAME_TOP_BAND_BONUS, NAME_TOP_BAND,
    NAME_BODY_BAND_PENALTY, NAME_BODY_BAND,
    LEET_MAP, KNOWN_CARD_NAMES, RARITY_KEYWORDS, TYPE_KEYWORDS,
    LANGUAGE_KEYWORDS,
)
from models import CardHint, CardLanguage, CardRarity, RecognizedFragment

logger = logging.getLogger("hints")

# ─────────────────────────────────────────────────────────────
# PATTERNS
# ─────────────────────────────────────────────────────────────

_SET_PREFIXED_RE = re.compile(r"\b([A-Z]{1,5}\d{1,3})\s*/\s*([A-Z]{1,5}\d{1,3})\b")
_PROMO_RE = re.compile(r"\b(" + "|".join(PROMO_PREFIXES) + r")(\d{1,3})\b")
_GENERIC_NUMBER_RE = re.compile(r"(?<!\d)(\d{1,3})\s*/\s*(\d{1,3})(?!\d)")
_HP_RE = re.compile(r"(?<!\d)(\d{2,3})\s*HP")
_SET_CODE_RE = re.compile(r"^[A-Z]{2,5}[0-9]{0,3}[A-Z]?$")
_TOKEN_SPLIT_RE = re.compile(r"[^A-Z0-9]+")
_DAMAGE_LINE_RE = re.compile(r"^[+\-]?\d{1,3}[+\-×X]?$")
_ROSTER_TOKEN_RE = re.compile(r"[A-Z][A-Z'\-]*")

_STRAY_PUNCTUATION = " \t|_~\"'`!?•·.-=/\\"
_NAME_EXTRA_CHARS = " -'."
_FORBIDDEN_NAME_CHARS = (":", ",", "*")

# Longest keyword first so "SECRET RARE" wins over "RARE"
_RARITY_TABLE = sorted(RARITY_KEYWORDS, key=lambda kv: len(kv[0]), reverse=True)


# ─────────────────────────────────────────────────────────────
# NUMBER / SET
# ─────────────────────────────────────────────────────────────

def _line_spans(upper_lines):
    """(start, end) of each line inside the space-joined text."""
    spans = []
    pos = 0
    for line in upper_lines:
        spans.append((pos, pos + len(line)))
        pos += len(line) + 1
    return spans


def _lines_touched(spans, match):
    start, end = match.span()
    return {i for i, (lo, hi) in enumerate(spans) if lo < end and start < hi}


def _find_number(combined, spans):
    """
    Try the number patterns in priority order over the joined text, so a
    fraction OCR split across fragments ("4 /", "102") is still found.

    Returns (number, line_indices, tokens) for the first pattern that
    matches, or (None, [], set()). A promo-shaped token on a line that also
    carries an N/M fraction is a misread set code, not a promo number.
    """
    fraction_lines = set()
    for m in _GENERIC_NUMBER_RE.finditer(combined):
        fraction_lines |= _lines_touched(spans, m)

    for kind, pattern in (("set", _SET_PREFIXED_RE),
                          ("promo", _PROMO_RE),
                          ("generic", _GENERIC_NUMBER_RE)):
        matches = list(pattern.finditer(combined))
        if kind == "promo":
            matches = [m for m in matches if not _lines_touched(spans, m) & fraction_lines]
        if not matches:
            continue

        line_indices = set()
        tokens = set()
        for m in matches:
            line_indices |= _lines_touched(spans, m)
            tokens.update(m.group(1, 2))

        first = matches[0]
        if kind == "set":
            number = first.group(1)
        elif kind == "promo":
            number = first.group(1) + first.group(2)
            tokens.add(number)
        else:
            number = first.group(1).zfill(3)
        return number, sorted(line_indices), tokens
    return None, [], set()


def _find_fraction(combined):
    """First generic N/M match as (numerator, denominator) strings."""
    m = _GENERIC_NUMBER_RE.search(combined)
    return (m.group(1), m.group(2)) if m else None


def _normalize_set_token(token):
    letters = sum(1 for c in token if c.isalpha())
    if token and letters / len(token) >= SET_CODE_ALPHA_RATIO:
        return token.replace("0", "O").replace("1", "I")
    return token


def _find_set_code(upper_lines, number_lines, number_tokens):
    candidates = []
    for i in number_lines:
        for j in (i, i - 1, i + 1):
            if 0 <= j < len(upper_lines) and j not in candidates:
                candidates.append(j)
    candidates.sort()

    for j in candidates:
        for token in _TOKEN_SPLIT_RE.split(upper_lines[j]):
            if not token or token in number_tokens:
                continue
            token = _normalize_set_token(token)
            if token in number_tokens or token in SET_CODE_STOP_TOKENS:
                continue
            if _SET_CODE_RE.match(token):
                return token
    return None


# ─────────────────────────────────────────────────────────────
# RARITY / TYPES / HP / LANGUAGE
# ─────────────────────────────────────────────────────────────

def _find_rarity(combined, fraction) -> Optional[CardRarity]:
    tokens = set(re.split(r"[^\w]+", combined))
    for keyword, value in _RARITY_TABLE:
        if len(keyword) <= 3 and keyword.isascii():
            hit = keyword in tokens
        else:
            hit = keyword in combined
        if hit:
            return CardRarity(value)

    if fraction:
        numerator, denominator = (int(x) for x in fraction)
        if denominator and numerator > denominator:
            return CardRarity.SECRET_RARE
    return None


def _find_types(combined):
    found = {value for keyword, value in TYPE_KEYWORDS.items() if keyword in combined}
    return frozenset(found) if found else None


def _find_hp(combined):
    m = _HP_RE.search(combined)
    return m.group(1) if m else None


def _has_kana(text):
    # Hiragana + Katakana, half-width Katakana
    return any("぀" <= c <= "ヿ" or "ｦ" <= c <= "ﾟ" for c in text)


def _has_hangul(text):
    return any("가" <= c <= "힯" or "ᄀ" <= c <= "ᇿ"
               or "㄰" <= c <= "㆏" for c in text)


def _has_han(text):
    return any("一" <= c <= "鿿" or "㐀" <= c <= "䶿" for c in text)


def detect_language(combined) -> Optional[CardLanguage]:
    """Kana → Japanese, Hangul → Korean, Han without kana → Chinese, then keywords."""
    if _has_kana(combined):
        return CardLanguage.JP
    if _has_hangul(combined):
        return CardLanguage.KR
    if _has_han(combined):
        return CardLanguage.CN
    for code, keywords in LANGUAGE_KEYWORDS:
        if any(keyword in combined for keyword in keywords):
            return CardLanguage(code)
    if combined.strip():
        return CardLanguage.EN
    return None


# ─────────────────────────────────────────────────────────────
# NAME
# ─────────────────────────────────────────────────────────────

def fix_leetspeak(text):
    """Swap OCR digit-for-letter confusions, only where a digit sits between two letters."""
    chars = list(text)
    for i in range(1, len(text) - 1):
        c = text[i]
        if c in LEET_MAP and text[i - 1].isalpha() and text[i + 1].isalpha():
            chars[i] = LEET_MAP[c]
    return "".join(chars)


def _title_word(word):
    if word.upper() in NAME_SUFFIX_TOKENS:
        return word.upper()
    return "-".join(part.capitalize() for part in word.split("-"))


def normalize_name(text):
    cleaned = " ".join(text.split()).strip(_STRAY_PUNCTUATION)
    cleaned = fix_leetspeak(cleaned.upper())
    return " ".join(_title_word(w) for w in cleaned.split())


def _is_name_shaped(candidate):
    if not (NAME_MIN_LENGTH <= len(candidate) <= NAME_MAX_LENGTH):
        return False

    words = candidate.split()
    max_words = NAME_MAX_WORDS
    if any(w.upper() in NAME_SUFFIX_TOKENS for w in words):
        max_words += 1
    if len(words) > max_words:
        return False

    letters = sum(1 for c in candidate if c.isalpha() or c in _NAME_EXTRA_CHARS)
    if letters / len(candidate) < NAME_MIN_LETTER_RATIO:
        return False

    upper = candidate.upper()
    if any(c.isdigit() for c in candidate) or "HP" in upper:
        return False
    return not any(c in candidate for c in _FORBIDDEN_NAME_CHARS)


def _is_hard_stop(candidate, upper_line):
    if candidate.upper() in NAME_HARD_STOPS:
        return True
    return any(stop in upper_line for stop in NAME_HARD_STOPS)


def _length_score(candidate):
    return max(0.0, 1.0 - abs(len(candidate) - NAME_IDEAL_LENGTH) / NAME_LENGTH_WINDOW)


def _score_name(index, candidate, fragment, upper_lines, ability_lines):
    if _is_hard_stop(candidate, upper_lines[index]):
        return None
    if not _is_name_shaped(candidate):
        return None
    if (index - 1) in ability_lines or (index + 1) in ability_lines:
        return None

    score = _length_score(candidate)

    word_count = len(candidate.split())
    if word_count == 1:
        score += NAME_SINGLE_WORD_BONUS
    elif word_count == 2:
        score += NAME_TWO_WORD_BONUS

    for j in (index - 1, index + 1):
        if 0 <= j < len(upper_lines) and _DAMAGE_LINE_RE.match(upper_lines[j].strip()):
            score -= NAME_DAMAGE_NEIGHBOR_PENALTY
            break

    upper = candidate.upper()
    if any(word in upper for word in ATTACK_FLAVOR_WORDS):
        score -= NAME_ATTACK_WORD_PENALTY

    box = fragment.bounding_box
    if box is not None:
        if box.top < NAME_TOP_BAND:
            score += NAME_TOP_BAND_BONUS
        elif NAME_BODY_BAND[0] <= box.top <= NAME_BODY_BAND[1]:
            score -= NAME_BODY_BAND_PENALTY

    return score


def _find_name(fragments, upper_lines):
    ability_lines = {
        i for i, line in enumerate(upper_lines)
        if any(header in line for header in ABILITY_HEADERS)
    }

    best_name = None
    best_score = None
    for i, fragment in enumerate(fragments):
        upper = upper_lines[i].strip()
        if not upper or upper in NAME_FILTER_WORDS:
            continue
        if any(stop in upper for stop in NAME_STOP_WORDS):
            continue

        candidate = normalize_name(fragment.text)
        if not candidate or candidate.upper() in NAME_FILTER_WORDS:
            continue

        score = _score_name(i, candidate, fragment, upper_lines, ability_lines)
        if score is None:
            continue
        logger.debug("Name candidate %r scored %.2f", candidate, score)
        # Strictly greater keeps the earliest line on ties
        if best_score is None or score > best_score:
            best_name, best_score = candidate, score

    return best_name


def _find_name_fallbacks(upper_lines):
    hits = []
    for line in upper_lines:
        for token in _ROSTER_TOKEN_RE.findall(fix_leetspeak(line)):
            if token in KNOWN_CARD_NAMES:
                name = _title_word(token)
                if name not in hits:
                    hits.append(name)
                if len(hits) >= NAME_FALLBACK_LIMIT:
                    return tuple(hits)
    return tuple(hits)


# ─────────────────────────────────────────────────────────────
# PUBLIC API
# ─────────────────────────────────────────────────────────────

def extract_hint(fragments) -> CardHint:
    """
    Build a CardHint from recognized fragments, in reading order.

    An empty list gives an empty hint. raw_lines always carries the
    verbatim text so a failed search can offer it back to the user.
    """
    fragments = list(fragments)
    if not fragments:
        return CardHint()

    raw_lines = tuple(f.text for f in fragments)
    upper_lines = [line.upper() for line in raw_lines]
    combined = " ".join(upper_lines)

    number, number_lines, number_tokens = _find_number(combined, _line_spans(upper_lines))
    fraction = _find_fraction(combined)
    set_code = _find_set_code(upper_lines, number_lines, number_tokens) if number else None

    hint = CardHint(
        name_guess=_find_name(fragments, upper_lines),
        name_fallbacks=_find_name_fallbacks(upper_lines),
        number_guess=number,
        set_total_guess=fraction[1] if fraction else None,
        set_code_guess=set_code,
        rarity_guess=_find_rarity(combined, fraction),
        language=detect_language(combined),
        hp=_find_hp(combined),
        types=_find_types(combined),
        raw_lines=raw_lines,
    )
    logger.debug("Extracted hint: %s", hint.describe())
    return hint


def manual_hint(text: str) -> CardHint:
    """
    Hint for user-typed search text.

    The whole text goes through the extractor as a single fragment. If no
    name comes out (typed queries often mix the name with a number), the
    text minus any number pattern is used as the name.
    """
    if not text.strip():
        return CardHint()
    hint = extract_hint([RecognizedFragment(text=text.strip(), confidence=1.0)])
    if hint.name_guess:
        return hint

    cleaned = text.upper()
    for pattern in (_SET_PREFIXED_RE, _PROMO_RE, _GENERIC_NUMBER_RE):
        cleaned = pattern.sub(" ", cleaned)
    cleaned = normalize_name(re.sub(r"[^\w\s'\-.]", " ", cleaned))
    if not cleaned or cleaned.upper() in NAME_FILTER_WORDS:
        return hint
    return dataclasses.replace(hint, name_guess=cleaned)
