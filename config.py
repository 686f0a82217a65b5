"""
config.py
Central configuration for the card identification pipeline.
API keys and overrides loaded from .env file (not committed to git).
"""

import os
from pathlib import Path

# ============================================
# Paths
# ============================================
BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
DATABASE_FILE = DATA_DIR / "card_index.json"

# ============================================
# .env loader (no external dependency)
# ============================================
_env_path = BASE_DIR / ".env"
if _env_path.exists():
    with open(_env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                os.environ.setdefault(key.strip(), value.strip())


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ============================================
# Lookup backends
# ============================================
# tcgdex | pokemontcg | local
LOOKUP_BACKEND = os.environ.get("LOOKUP_BACKEND", "tcgdex").strip().lower()

TCGDEX_BASE = os.environ.get("TCGDEX_BASE", "https://api.tcgdex.net/v2")
TCGDEX_HYDRATE_LIMIT = 10       # Card records fetched per listing query

# pokemontcg.io works without a key, but rate limits are much lower
POKEMONTCG_API_KEY = os.environ.get("POKEMONTCG_API_KEY", "")
POKEMONTCG_BASE = os.environ.get("POKEMONTCG_BASE", "https://api.pokemontcg.io/v2")

HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "12"))
HTTP_USER_AGENT = "card-scanner/1.0"
LOOKUP_PAGE_SIZE = 20

# Strategy results are cached by label; 0 disables the cache
LOOKUP_CACHE_TTL = int(os.environ.get("LOOKUP_CACHE_TTL", str(30 * 60)))

# ============================================
# Scan session
# ============================================
FRAME_INTERVAL_SECONDS = float(os.environ.get("SCAN_FRAME_INTERVAL", "0.75"))
AUTO_CONFIRM_SINGLE_MATCH = _env_flag("AUTO_CONFIRM_SINGLE_MATCH", False)

# ============================================
# Camera
# ============================================
CAMERA_DEVICE = int(os.environ.get("CAMERA_DEVICE", "0"))
CAMERA_WIDTH = 1280
CAMERA_HEIGHT = 720
MOCK_EXTENSIONS = ("*.png", "*.jpg", "*.jpeg")

# ============================================
# OCR Configuration
# ============================================
OCR_LANGUAGES = ["en"]
OCR_GPU = _env_flag("OCR_GPU", False)
OCR_MIN_CONFIDENCE = 0.3        # Fragments below this are dropped
OCR_HIGH_CONFIDENCE = 0.7

# ============================================
# Number / set code extraction
# ============================================
# Checked in this order when a bare promo code is the only number on the card
PROMO_PREFIXES = ("SWSH", "HGSS", "SVP", "SM", "XY", "BW", "DP")

# Tokens near the number line that look like set codes but never are
SET_CODE_STOP_TOKENS = frozenset({
    "HP", "ILLUS", "ILLUSTR", "EX", "GX", "V", "VMAX", "VSTAR", "LV",
    "EN", "ES", "JP", "JA", "DE", "FR", "IT", "PT", "KR", "KO", "CN",
    "ENG", "ESP", "NINTENDO", "CREATURES", "GAME", "FREAK", "POKEMON",
    "TRAINER", "BASIC", "STAGE",
})

# Fraction of alphabetic characters above which 0/1 in a token are read as O/I
SET_CODE_ALPHA_RATIO = 0.6

# ============================================
# Name extraction
# ============================================
# A line containing any of these is never the card name
NAME_STOP_WORDS = (
    # English card furniture
    "ABILITY", "POKÉ-POWER", "POKÉ-BODY", "POKEPOWER", "POKEBODY",
    "TRAINER", "SUPPORTER", "STADIUM", "ENERGY", "EVOLVES", "STAGE",
    "WEAKNESS", "RESISTANCE", "RETREAT", "ILLUS", "NINTENDO", "CREATURES",
    "GAME FREAK", "DAMAGE", "ATTACH", "COIN", "FLIP", "SHUFFLE", "DISCARD",
    "HP",
    # Spanish
    "HABILIDAD", "ENTRENADOR", "PARTIDARIO", "ENERGÍA", "ENERGIA",
    "EVOLUCIONA", "DEBILIDAD", "RESISTENCIA", "RETIRADA",
    # German / French
    "FÄHIGKEIT", "ENTWICKELT", "SCHWÄCHE", "TALENT", "DRESSEUR", "ÉVOLUE",
    "FAIBLESSE",
    # Japanese
    "特性", "トレーナー", "サポート", "エネルギー", "進化", "弱点", "抵抗力", "にげる",
)

# Common words that are never a name on their own
NAME_FILTER_WORDS = frozenset({
    "THE", "AND", "OF", "A", "AN", "TO", "HP", "EX", "GX", "V", "VMAX",
    "VSTAR", "BASIC", "STAGE", "EVOLVES", "FROM", "TRAINER", "ITEM",
    "SUPPORTER", "WEAKNESS", "RESISTANCE", "RETREAT", "COST", "ABILITY",
    "ATTACK", "©", "POKEMON", "POKÉMON", "NINTENDO", "CREATURES",
    "GAME FREAK", "EL", "LA", "LOS", "LAS", "DE", "Y", "BÁSICO", "BASICO",
    "FASE", "ENTRENADOR", "DEBILIDAD", "RESISTENCIA", "RETIRADA",
    "ポケモン", "たね", "進化",
})

# Rejected outright: exact candidate, or substring of the raw line
NAME_HARD_STOPS = (
    "BASIC", "STAGE 1", "STAGE 2", "BÁSICO", "BASICO", "FASE 1", "FASE 2",
    "POKÉMON", "POKEMON", "ITEM", "TOOL", "RULE", "PRIZE",
)

# Lines that open an ability block; the line after is the ability name
ABILITY_HEADERS = ("ABILITY", "HABILIDAD", "FÄHIGKEIT", "TALENT", "特性",
                   "POKÉ-POWER", "POKÉ-BODY", "POKEPOWER", "POKEBODY")

# Attack-name fragments that show up next to damage values
ATTACK_FLAVOR_WORDS = (
    "SLASH", "BEAM", "CLAW", "PUNCH", "KICK", "BLAST", "STRIKE", "BITE",
    "TACKLE", "FANG", "STORM", "BURN", "SPIN", "WAVE", "CRUSH", "SHOT",
    "RUSH", "BOLT", "CANNON", "DANCE", "SLAM", "SMASH", "FLARE", "DRAIN",
)

# Suffix tokens kept upper case after title-casing
NAME_SUFFIX_TOKENS = frozenset({"EX", "GX", "V", "VMAX", "VSTAR", "LV.X", "BREAK"})

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 20
NAME_MAX_WORDS = 3
NAME_MIN_LETTER_RATIO = 0.7
NAME_IDEAL_LENGTH = 8
NAME_LENGTH_WINDOW = 20.0
NAME_FALLBACK_LIMIT = 3

# Scoring adjustments for name candidates
NAME_SINGLE_WORD_BONUS = 0.6
NAME_TWO_WORD_BONUS = 0.3
NAME_DAMAGE_NEIGHBOR_PENALTY = 0.8
NAME_ATTACK_WORD_PENALTY = 0.2
NAME_TOP_BAND_BONUS = 0.5
NAME_TOP_BAND = 0.30
NAME_BODY_BAND_PENALTY = 0.3
NAME_BODY_BAND = (0.45, 0.85)

# OCR digit-for-letter confusions, applied between two letters only
LEET_MAP = {
    "0": "O", "1": "I", "3": "E", "4": "A",
    "5": "S", "6": "G", "7": "T", "8": "B",
}

# Exact-token roster used when the scorer finds nothing
KNOWN_CARD_NAMES = frozenset({
    "PIKACHU", "RAICHU", "CHARIZARD", "CHARMANDER", "CHARMELEON",
    "BULBASAUR", "IVYSAUR", "VENUSAUR", "SQUIRTLE", "WARTORTLE", "BLASTOISE",
    "MEWTWO", "MEW", "EEVEE", "VAPOREON", "JOLTEON", "FLAREON", "ESPEON",
    "UMBREON", "LEAFEON", "GLACEON", "SYLVEON", "GENGAR", "GASTLY",
    "HAUNTER", "ALAKAZAM", "MACHAMP", "GYARADOS", "MAGIKARP", "DRAGONITE",
    "SNORLAX", "LAPRAS", "LUGIA", "HO-OH", "CELEBI", "RAYQUAZA", "KYOGRE",
    "GROUDON", "LUCARIO", "GARCHOMP", "GARDEVOIR", "GRENINJA", "ARCEUS",
    "DIALGA", "PALKIA", "GIRATINA", "ZEKROM", "RESHIRAM", "KYUREM",
    "XERNEAS", "YVELTAL", "SOLGALEO", "LUNALA", "ZACIAN", "ZAMAZENTA",
    "ETERNATUS", "KORAIDON", "MIRAIDON", "PSYDUCK", "JIGGLYPUFF", "MEOWTH",
    "TOGEPI", "TYRANITAR", "SCIZOR", "METAGROSS", "ABSOL", "ZOROARK",
    "MIMIKYU", "DRAGAPULT", "TINKATON", "PALAFIN", "GHOLDENGO", "SPRIGATITO",
    "FUECOCO", "QUAXLY", "PAWMI", "LECHONK",
})

# ============================================
# Rarity / type / language keywords
# ============================================
# (keyword, CardRarity value). Matched longest-first; keywords of 3 or fewer
# ASCII characters must stand alone as a token.
RARITY_KEYWORDS = (
    ("SPECIAL ART RARE", "Special Art Rare"),
    ("ILLUSTRATION RARE", "Illustration Rare"),
    ("SECRET RARE", "Secret Rare"),
    ("HYPER RARE", "Secret Rare"),
    ("ULTRA RARE", "Ultra Rare"),
    ("DOUBLE RARE", "Ultra Rare"),
    ("HOLO RARE", "Rare Holo"),
    ("RARE HOLO", "Rare Holo"),
    ("UNCOMMON", "Uncommon"),
    ("COMMON", "Common"),
    ("RARE", "Rare"),
    ("SAR", "Special Art Rare"),
    ("SIR", "Special Art Rare"),
    ("IR", "Illustration Rare"),
    ("AR", "Illustration Rare"),
    ("SR", "Secret Rare"),
    ("UR", "Secret Rare"),
    ("HR", "Secret Rare"),
    ("RR", "Ultra Rare"),
    ("RH", "Rare Holo"),
    # Spanish
    ("ULTRA RARA", "Ultra Rare"),
    ("RARA HOLO", "Rare Holo"),
    ("SECRETA", "Secret Rare"),
    ("RARA", "Rare"),
    # Japanese
    ("シークレット", "Secret Rare"),
    ("スペシャル", "Special Art Rare"),
    ("ウルトラ", "Ultra Rare"),
)

# Substring match; every hit is collected
TYPE_KEYWORDS = {
    "GRASS": "Grass", "FIRE": "Fire", "WATER": "Water",
    "LIGHTNING": "Lightning", "PSYCHIC": "Psychic", "FIGHTING": "Fighting",
    "DARKNESS": "Darkness", "METAL": "Metal", "FAIRY": "Fairy",
    "DRAGON": "Dragon", "COLORLESS": "Colorless", "NORMAL": "Colorless",
    # Spanish
    "PLANTA": "Grass", "FUEGO": "Fire", "AGUA": "Water", "RAYO": "Lightning",
    "PSÍQUICO": "Psychic", "LUCHA": "Fighting", "OSCURIDAD": "Darkness",
    "HADA": "Fairy", "DRAGÓN": "Dragon", "INCOLORO": "Colorless",
    # Japanese
    "草": "Grass", "炎": "Fire", "水": "Water", "雷": "Lightning",
    "超": "Psychic", "闘": "Fighting", "悪": "Darkness", "鋼": "Metal",
    "フェアリー": "Fairy", "ドラゴン": "Dragon", "無": "Colorless",
}

# Checked in order after the script-based checks
LANGUAGE_KEYWORDS = (
    ("ES", ("EVOLUCIONA", "DESDE", "BÁSICO", "ENTRENADOR", "ENERGÍA", "RETIRADA",
            "DEBILIDAD", "HABILIDAD")),
    ("DE", ("ENTWICKELT", "BASIS", "ENERGIE", "SCHWÄCHE", "FÄHIGKEIT")),
    ("FR", ("ÉVOLUE", "ÉNERGIE", "DRESSEUR", "FAIBLESSE")),
)
