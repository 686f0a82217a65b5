"""
database.py — Offline card lookups over the bundled card_index.json.

The index is built by build_card_index.py from the public pokemon-tcg-data
dump and needs no network at scan time. LocalCardIndex answers the same
strategies as the remote clients, so the scanner can run fully offline
(LOOKUP_BACKEND=local).

Rows are returned in dataset order with no confidence of their own;
the search orchestrator ranks them against the hint.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from config import DATABASE_FILE, LOOKUP_PAGE_SIZE
from models import CardIdentity, CardMatch, CardRarity, SearchStrategy, StrategyKind
from strategies import normalize_number

logger = logging.getLogger("database")

# Fuzzy name matches can hit hundreds of cards ("Pikachu"); keep the head
MAX_NAME_RESULTS = 50


def load_database(path=DATABASE_FILE):
    """
    Load the card database and return (index_dict, card_count).

    The index_dict contains:
      - by_id: card_id -> card dict
      - by_name: lowercase name -> [card_id, ...]
      - by_set_number: "set_id/number" -> card_id

    Raises:
        FileNotFoundError: the index has not been built yet.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Database not found at {path}. Run 'python3 build_card_index.py' first."
        )

    with open(path, "r", encoding="utf-8") as f:
        database = json.load(f)

    index = database.get("index", {})
    card_count = database.get("meta", {}).get("card_count", len(index.get("by_id", {})))
    return index, card_count


def get_set_id(card):
    """Extract set ID from a card dict or card ID string."""
    if isinstance(card, dict):
        set_obj = card.get("set", {})
        if isinstance(set_obj, dict) and set_obj.get("id"):
            return set_obj["id"]
        card_id = card.get("id", "")
    else:
        card_id = str(card)

    parts = card_id.rsplit("-", 1)
    return parts[0] if len(parts) == 2 else ""


def card_from_record(card: dict) -> CardIdentity:
    """Convert a card_index.json record to a CardIdentity."""
    set_obj = card.get("set") or {}
    images = card.get("images") or {}
    return CardIdentity(
        id=card["id"],
        name=card.get("name", ""),
        set_id=get_set_id(card),
        set_name=set_obj.get("name", ""),
        number=str(card.get("number") or ""),
        rarity=CardRarity.from_label(card.get("rarity")),
        image_url=images.get("small"),
        image_url_large=images.get("large"),
        hp=card.get("hp"),
        types=tuple(card.get("types") or ()),
        supertype=card.get("supertype"),
        artist=card.get("artist"),
        set_total=set_obj.get("printedTotal") or set_obj.get("total"),
    )


class LocalCardIndex:
    """Lookup collaborator backed by the offline card index."""

    warning: Optional[str] = None
    ranks_results = False

    def __init__(self, index: dict):
        self.by_id = index.get("by_id", {})
        self.by_name = index.get("by_name", {})
        self.by_set_number = index.get("by_set_number", {})

        # Printed set codes (ptcgoCode) and set ids both resolve to a set id
        self.set_codes = {}
        self.by_number = {}
        for card_id, card in self.by_id.items():
            set_id = get_set_id(card)
            set_obj = card.get("set") or {}
            code = set_obj.get("ptcgoCode")
            if code:
                self.set_codes.setdefault(code.upper(), set_id)
            if set_id:
                self.set_codes.setdefault(set_id.upper(), set_id)
            number = normalize_number(str(card.get("number") or ""))
            self.by_number.setdefault(number.upper(), []).append(card_id)

    @classmethod
    def from_file(cls, path=DATABASE_FILE) -> "LocalCardIndex":
        index, card_count = load_database(path)
        logger.info("Loaded card index: %d cards", card_count)
        return cls(index)

    def __len__(self):
        return len(self.by_id)

    def __repr__(self):
        return f"LocalCardIndex(cards={len(self.by_id)}, sets={len(set(self.set_codes.values()))})"

    def _resolve_ids(self, card_ids):
        return [self.by_id[cid] for cid in card_ids if cid in self.by_id]

    @staticmethod
    def _rows(cards):
        rows = []
        for card in cards:
            identity = card_from_record(card)
            rows.append(CardMatch(id=identity.id, card=identity, confidence=1.0))
        return rows

    def execute(self, strategy: SearchStrategy) -> list:
        if strategy.kind is StrategyKind.SET_AND_NUMBER:
            cards = self.lookup_by_set_number(strategy.set_code, strategy.number)
        elif strategy.kind is StrategyKind.NAME_LOOKUP:
            cards = self.lookup_by_name(strategy.name)
        else:
            cards = self.lookup_by_number(strategy.number)
        logger.debug("Local %s → %d card(s)", strategy.label, len(cards))
        return self._rows(cards)

    def lookup_by_set_number(self, set_code: str, number: str) -> list:
        set_id = self.set_codes.get(set_code.upper())
        if not set_id:
            return []
        card_id = self.by_set_number.get(f"{set_id}/{normalize_number(number)}")
        if card_id is None:
            card_id = self.by_set_number.get(f"{set_id}/{number}")
        return self._resolve_ids([card_id]) if card_id else []

    def lookup_by_name(self, card_name: str) -> list:
        """
        Exact (case-insensitive) name first, then substring either way.
        """
        if not card_name:
            return []
        search_name = card_name.lower().strip()

        matches = self._resolve_ids(self.by_name.get(search_name, []))
        if not matches:
            for name_key, card_ids in self.by_name.items():
                if search_name in name_key or name_key in search_name:
                    matches.extend(self._resolve_ids(card_ids))
                    if len(matches) >= MAX_NAME_RESULTS:
                        break
        return matches[:MAX_NAME_RESULTS]

    def lookup_by_number(self, number: str) -> list:
        card_ids = self.by_number.get(normalize_number(number).upper(), [])
        return self._resolve_ids(card_ids[:LOOKUP_PAGE_SIZE])

    def get_card(self, card_id: str) -> Optional[CardIdentity]:
        card = self.by_id.get(card_id)
        return card_from_record(card) if card else None
