"""
models.py — Data types shared across the identification pipeline.

Everything here is immutable once built: a frame's fragments, the hint
extracted from them, the strategies derived from the hint and the search
outcome are each created once and handed downstream.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol


# ─────────────────────────────────────────────────────────────
# RECOGNIZED TEXT
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BoundingBox:
    """Normalized 0..1 box, origin top-left, y grows downward."""
    x: float
    y: float
    width: float
    height: float

    @property
    def top(self) -> float:
        return self.y


@dataclass(frozen=True)
class RecognizedFragment:
    text: str
    confidence: float
    bounding_box: Optional[BoundingBox] = None

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= 0.7


# ─────────────────────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────────────────────

class CardRarity(Enum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    RARE_HOLO = "Rare Holo"
    ULTRA_RARE = "Ultra Rare"
    SECRET_RARE = "Secret Rare"
    SPECIAL_ART_RARE = "Special Art Rare"
    ILLUSTRATION_RARE = "Illustration Rare"
    UNKNOWN = "Unknown"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "CardRarity":
        """
        Map an API rarity string or printed abbreviation onto the enum.

        pokemontcg.io and TCGdex both use free-form strings ("Rare Holo VMAX",
        "Double rare", "Hyper rare"), so exact aliases are tried first and
        then a containment pass picks the closest bucket.
        """
        if not label:
            return cls.UNKNOWN
        text = " ".join(label.strip().upper().split())

        for member in cls:
            if member.value.upper() == text:
                return member
        if text in _RARITY_ALIASES:
            return _RARITY_ALIASES[text]

        for needle, member in _RARITY_CONTAINS:
            if needle in text:
                return member
        return cls.UNKNOWN


_RARITY_ALIASES = {
    "C": CardRarity.COMMON,
    "U": CardRarity.UNCOMMON,
    "R": CardRarity.RARE,
    "PROMO": CardRarity.RARE,
    "RH": CardRarity.RARE_HOLO,
    "HOLO": CardRarity.RARE_HOLO,
    "HOLO RARE": CardRarity.RARE_HOLO,
    "RR": CardRarity.ULTRA_RARE,
    "DOUBLE RARE": CardRarity.ULTRA_RARE,
    "RARE ULTRA": CardRarity.ULTRA_RARE,
    "UR": CardRarity.SECRET_RARE,
    "SR": CardRarity.SECRET_RARE,
    "HR": CardRarity.SECRET_RARE,
    "HYPER RARE": CardRarity.SECRET_RARE,
    "RARE SECRET": CardRarity.SECRET_RARE,
    "RARE RAINBOW": CardRarity.SECRET_RARE,
    "SAR": CardRarity.SPECIAL_ART_RARE,
    "SIR": CardRarity.SPECIAL_ART_RARE,
    "SPECIAL ILLUSTRATION RARE": CardRarity.SPECIAL_ART_RARE,
    "IR": CardRarity.ILLUSTRATION_RARE,
    "AR": CardRarity.ILLUSTRATION_RARE,
    "TRAINER GALLERY": CardRarity.ILLUSTRATION_RARE,
    "RARE HOLO GALARIAN GALLERY": CardRarity.ILLUSTRATION_RARE,
}

# Order matters: "SPECIAL" before "ILLUSTRATION", "UNCOMMON" before "COMMON"
_RARITY_CONTAINS = (
    ("SPECIAL", CardRarity.SPECIAL_ART_RARE),
    ("ILLUSTRATION", CardRarity.ILLUSTRATION_RARE),
    ("GALLERY", CardRarity.ILLUSTRATION_RARE),
    ("SECRET", CardRarity.SECRET_RARE),
    ("HYPER", CardRarity.SECRET_RARE),
    ("RAINBOW", CardRarity.SECRET_RARE),
    ("ULTRA", CardRarity.ULTRA_RARE),
    ("DOUBLE", CardRarity.ULTRA_RARE),
    ("VMAX", CardRarity.ULTRA_RARE),
    ("VSTAR", CardRarity.ULTRA_RARE),
    ("HOLO", CardRarity.RARE_HOLO),
    ("UNCOMMON", CardRarity.UNCOMMON),
    ("COMMON", CardRarity.COMMON),
    ("RARE", CardRarity.RARE),
)


class CardLanguage(Enum):
    EN = "EN"
    ES = "ES"
    JP = "JP"
    KR = "KR"
    FR = "FR"
    DE = "DE"
    IT = "IT"
    PT = "PT"
    CN = "CN"

    @property
    def api_code(self) -> str:
        return _LANGUAGE_API_CODES[self]

    @property
    def display_name(self) -> str:
        return _LANGUAGE_NAMES[self]


_LANGUAGE_API_CODES = {
    CardLanguage.EN: "en", CardLanguage.ES: "es", CardLanguage.JP: "ja",
    CardLanguage.KR: "ko", CardLanguage.FR: "fr", CardLanguage.DE: "de",
    CardLanguage.IT: "it", CardLanguage.PT: "pt", CardLanguage.CN: "zh-tw",
}

_LANGUAGE_NAMES = {
    CardLanguage.EN: "English", CardLanguage.ES: "Spanish",
    CardLanguage.JP: "Japanese", CardLanguage.KR: "Korean",
    CardLanguage.FR: "French", CardLanguage.DE: "German",
    CardLanguage.IT: "Italian", CardLanguage.PT: "Portuguese",
    CardLanguage.CN: "Chinese",
}

FALLBACK_LANGUAGE = CardLanguage.EN


# ─────────────────────────────────────────────────────────────
# HINT
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CardHint:
    """Best-guess identity pulled out of one frame's recognized text."""
    name_guess: Optional[str] = None
    name_fallbacks: tuple = ()
    number_guess: Optional[str] = None
    set_total_guess: Optional[str] = None
    set_code_guess: Optional[str] = None
    rarity_guess: Optional[CardRarity] = None
    language: Optional[CardLanguage] = None
    hp: Optional[str] = None
    types: Optional[frozenset] = None
    raw_lines: tuple = ()

    @property
    def has_strong_hint(self) -> bool:
        if self.number_guess:
            return True
        return bool(self.name_guess) and len(self.name_guess) >= 3

    @property
    def is_empty(self) -> bool:
        return not (self.name_guess or self.number_guess or self.rarity_guess)

    @property
    def best_name(self) -> Optional[str]:
        if self.name_guess:
            return self.name_guess
        return self.name_fallbacks[0] if self.name_fallbacks else None

    def describe(self) -> str:
        parts = []
        if self.name_guess:
            parts.append(f"Name: {self.name_guess}")
        if self.number_guess:
            number = self.number_guess
            if self.set_total_guess:
                number = f"{number}/{self.set_total_guess}"
            parts.append(f"Number: {number}")
        if self.set_code_guess:
            parts.append(f"Set: {self.set_code_guess}")
        if self.rarity_guess:
            parts.append(f"Rarity: {self.rarity_guess.value}")
        if self.hp:
            parts.append(f"HP: {self.hp}")
        if self.language and self.language is not FALLBACK_LANGUAGE:
            parts.append(f"Language: {self.language.display_name}")
        return " | ".join(parts) if parts else "No hints detected"

    def to_dict(self) -> dict:
        return {
            "name": self.name_guess,
            "name_fallbacks": list(self.name_fallbacks),
            "number": self.number_guess,
            "set_total": self.set_total_guess,
            "set_code": self.set_code_guess,
            "rarity": self.rarity_guess.value if self.rarity_guess else None,
            "language": self.language.value if self.language else None,
            "hp": self.hp,
            "types": sorted(self.types) if self.types else [],
            "raw_lines": list(self.raw_lines),
            "strong": self.has_strong_hint,
            "summary": self.describe(),
        }


# ─────────────────────────────────────────────────────────────
# STRATEGIES
# ─────────────────────────────────────────────────────────────

class StrategyKind(Enum):
    SET_AND_NUMBER = "setAndNumber"
    NAME_LOOKUP = "nameLookup"
    NUMBER_LOOKUP = "numberLookup"


@dataclass(frozen=True)
class SearchStrategy:
    label: str
    kind: StrategyKind
    set_code: Optional[str] = None
    number: Optional[str] = None
    name: Optional[str] = None
    language: Optional[CardLanguage] = None

    @classmethod
    def set_and_number(cls, set_code: str, number: str) -> "SearchStrategy":
        return cls(
            label=f"set:{set_code} number:{number}",
            kind=StrategyKind.SET_AND_NUMBER,
            set_code=set_code,
            number=number,
        )

    @classmethod
    def name_lookup(cls, name: str, language: CardLanguage) -> "SearchStrategy":
        return cls(
            label=f"name:{name} lang:{language.api_code}",
            kind=StrategyKind.NAME_LOOKUP,
            name=name,
            language=language,
        )

    @classmethod
    def number_lookup(cls, number: str) -> "SearchStrategy":
        return cls(
            label=f"number:{number}",
            kind=StrategyKind.NUMBER_LOOKUP,
            number=number,
        )


# ─────────────────────────────────────────────────────────────
# CARDS AND MATCHES
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CardIdentity:
    id: str
    name: str
    set_id: str = ""
    set_name: str = ""
    number: str = ""
    rarity: CardRarity = CardRarity.UNKNOWN
    image_url: Optional[str] = None
    image_url_large: Optional[str] = None
    market_price: Optional[float] = None
    low_price: Optional[float] = None
    high_price: Optional[float] = None
    hp: Optional[str] = None
    types: tuple = ()
    supertype: Optional[str] = None
    artist: Optional[str] = None
    set_total: Optional[int] = None

    @property
    def display_number(self) -> str:
        if self.set_total:
            return f"{self.number}/{self.set_total}"
        return self.number

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "set_id": self.set_id,
            "set_name": self.set_name,
            "number": self.number,
            "display_number": self.display_number,
            "rarity": self.rarity.value,
            "image_url": self.image_url,
            "image_url_large": self.image_url_large,
            "market_price": self.market_price,
            "low_price": self.low_price,
            "high_price": self.high_price,
            "hp": self.hp,
            "types": list(self.types),
            "supertype": self.supertype,
            "artist": self.artist,
        }


@dataclass(frozen=True, eq=False)
class CardMatch:
    """A candidate card plus how confident we are in it. Identity is the card id."""
    id: str
    card: CardIdentity
    confidence: float
    matched_fields: frozenset = frozenset()

    def __eq__(self, other):
        if not isinstance(other, CardMatch):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    @property
    def confidence_percentage(self) -> int:
        return int(round(self.confidence * 100))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "confidence": round(self.confidence, 3),
            "confidence_pct": self.confidence_percentage,
            "matched_fields": sorted(self.matched_fields),
            "card": self.card.to_dict(),
        }


@dataclass(frozen=True)
class SearchOutcome:
    matches: tuple = ()
    attempted_queries: tuple = ()
    warning: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.matches)


class LookupCollaborator(Protocol):
    """
    Anything that can execute a single strategy.

    Raises errors.NotFoundError / BadRequestError for recoverable misses and
    errors.ServerError / TransportError when the backend is unusable.
    """
    warning: Optional[str]
    ranks_results: bool

    def execute(self, strategy: SearchStrategy) -> list:
        ...


# ─────────────────────────────────────────────────────────────
# SCAN STATE
# ─────────────────────────────────────────────────────────────

class ScanPhase(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING = "processing"
    CARD_DETECTED = "card_detected"
    SHOWING_RESULTS = "showing_results"
    NO_RESULTS = "no_results"
    ERROR = "error"


_STATUS_TEXT = {
    ScanPhase.IDLE: "Ready to scan",
    ScanPhase.SCANNING: "Scanning...",
    ScanPhase.PROCESSING: "Processing...",
    ScanPhase.CARD_DETECTED: "Card detected",
    ScanPhase.SHOWING_RESULTS: "Showing results",
    ScanPhase.NO_RESULTS: "No results",
    ScanPhase.ERROR: "Error",
}

BUSY_PHASES = frozenset({ScanPhase.PROCESSING, ScanPhase.CARD_DETECTED})
FRAME_ACCEPTING_PHASES = frozenset({ScanPhase.SCANNING, ScanPhase.IDLE})
RESULT_PHASES = frozenset({ScanPhase.SHOWING_RESULTS, ScanPhase.NO_RESULTS})


@dataclass(frozen=True)
class ScanState:
    phase: ScanPhase
    hint: Optional[CardHint] = None
    message: Optional[str] = None

    @classmethod
    def idle(cls):
        return cls(ScanPhase.IDLE)

    @classmethod
    def scanning(cls):
        return cls(ScanPhase.SCANNING)

    @classmethod
    def processing(cls):
        return cls(ScanPhase.PROCESSING)

    @classmethod
    def card_detected(cls, hint: CardHint):
        return cls(ScanPhase.CARD_DETECTED, hint=hint)

    @classmethod
    def showing_results(cls):
        return cls(ScanPhase.SHOWING_RESULTS)

    @classmethod
    def no_results(cls):
        return cls(ScanPhase.NO_RESULTS)

    @classmethod
    def error(cls, message: str):
        return cls(ScanPhase.ERROR, message=message)

    @property
    def is_busy(self) -> bool:
        return self.phase in BUSY_PHASES

    @property
    def status_text(self) -> str:
        if self.phase is ScanPhase.ERROR and self.message:
            return self.message
        return _STATUS_TEXT[self.phase]


@dataclass(frozen=True)
class ScanResult:
    """Diagnostics for the last frame that made it through recognition."""
    recognized: tuple
    hint: CardHint
    processing_ms: float
    timestamp: float = field(default_factory=time.time)

    @property
    def lines(self) -> list:
        return [fragment.text for fragment in self.recognized]


@dataclass(frozen=True)
class SessionSnapshot:
    state: ScanState
    hint: Optional[CardHint] = None
    matches: tuple = ()
    selected: Optional[CardMatch] = None
    attempted_queries: tuple = ()
    warning: Optional[str] = None
    recognized_lines: tuple = ()
    notice: Optional[str] = None
    auto_confirm: bool = False
    last_processing_ms: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "state": self.state.phase.value,
            "status": self.state.status_text,
            "detected": self.state.hint.to_dict() if self.state.hint else None,
            "hint": self.hint.to_dict() if self.hint else None,
            "matches": [m.to_dict() for m in self.matches],
            "selected": self.selected.to_dict() if self.selected else None,
            "attempted_queries": list(self.attempted_queries),
            "warning": self.warning,
            "recognized_lines": list(self.recognized_lines),
            "notice": self.notice,
            "auto_confirm": self.auto_confirm,
            "last_processing_ms": self.last_processing_ms,
        }
