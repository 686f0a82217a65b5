"""
lookup_pokemontcg.py — Card lookups against the pokemontcg.io v2 API.

Uses the Lucene-style `q=` search on /cards:
  set.ptcgoCode:SVI number:"4"     set code + number
  name:"Pikachu*"                  name prefix
  number:"4"                       number alone

An API key (POKEMONTCG_API_KEY) raises the rate limit but is optional.
Without one the client still works and reports a warning that ends up on
every SearchOutcome it produces.

pokemontcg.io only carries English card data, so non-English name lookups
are answered with BadRequestError and the orchestrator moves on.
"""

import logging
from typing import Optional

import requests

from config import (
    POKEMONTCG_BASE, POKEMONTCG_API_KEY, HTTP_TIMEOUT_SECONDS,
    HTTP_USER_AGENT, LOOKUP_PAGE_SIZE,
)
from errors import BadRequestError, TransportError
from lookup_tcgdex import raise_for_status
from models import (
    CardIdentity, CardLanguage, CardMatch, CardRarity, SearchStrategy, StrategyKind,
)
from strategies import normalize_number

logger = logging.getLogger("pokemontcg")

NO_KEY_WARNING = ("No pokemontcg.io API key configured; "
                  "operating in reduced-capability mode (public rate limits)")

# Flat confidence per strategy; rows keep the API's newest-first order
_STRATEGY_CONFIDENCE = {
    StrategyKind.SET_AND_NUMBER: 0.95,
    StrategyKind.NAME_LOOKUP: 0.6,
    StrategyKind.NUMBER_LOOKUP: 0.5,
}

# tcgplayer price variants, most common first
_PRICE_VARIANTS = ("holofoil", "normal", "reverseHolofoil", "1stEditionHolofoil",
                   "1stEditionNormal", "unlimitedHolofoil")


def _escape(value: str) -> str:
    return value.replace('"', '\\"')


def _price_band(data: dict):
    prices = (data.get("tcgplayer") or {}).get("prices") or {}
    for variant in _PRICE_VARIANTS:
        band = prices.get(variant)
        if band:
            return band.get("market"), band.get("low"), band.get("high")
    return None, None, None


def card_from_pokemontcg(data: dict) -> CardIdentity:
    """Convert a pokemontcg.io card record to a CardIdentity."""
    set_obj = data.get("set") or {}
    images = data.get("images") or {}
    market, low, high = _price_band(data)
    return CardIdentity(
        id=data["id"],
        name=data.get("name", ""),
        set_id=set_obj.get("id", ""),
        set_name=set_obj.get("name", ""),
        number=str(data.get("number") or ""),
        rarity=CardRarity.from_label(data.get("rarity")),
        image_url=images.get("small"),
        image_url_large=images.get("large"),
        market_price=market,
        low_price=low,
        high_price=high,
        hp=data.get("hp"),
        types=tuple(data.get("types") or ()),
        supertype=data.get("supertype"),
        artist=data.get("artist"),
        set_total=set_obj.get("printedTotal") or set_obj.get("total"),
    )


class PokemonTCGClient:
    """Lookup collaborator for pokemontcg.io."""

    ranks_results = True

    def __init__(self, api_key: Optional[str] = None, session=None,
                 base_url: str = POKEMONTCG_BASE,
                 timeout: float = HTTP_TIMEOUT_SECONDS):
        self.api_key = POKEMONTCG_API_KEY if api_key is None else api_key
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        if self.api_key:
            logger.info("pokemontcg.io API key configured")
            self.warning = None
        else:
            logger.warning("No pokemontcg.io API key, using public access")
            self.warning = NO_KEY_WARNING

    def __repr__(self):
        return f"PokemonTCGClient(base_url={self.base_url!r}, keyed={bool(self.api_key)})"

    def _headers(self) -> dict:
        headers = {"Accept": "application/json", "User-Agent": HTTP_USER_AGENT}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        logger.debug("GET %s %s", url, params or "")
        try:
            response = self.session.get(
                url, params=params, headers=self._headers(), timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        raise_for_status(response, url)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}") from e

    @staticmethod
    def build_query(strategy: SearchStrategy) -> str:
        if strategy.kind is StrategyKind.SET_AND_NUMBER:
            return (f'set.ptcgoCode:{_escape(strategy.set_code)} '
                    f'number:"{normalize_number(strategy.number)}"')
        if strategy.kind is StrategyKind.NAME_LOOKUP:
            return f'name:"{_escape(strategy.name)}*"'
        return f'number:"{normalize_number(strategy.number)}"'

    def execute(self, strategy: SearchStrategy) -> list:
        if (strategy.kind is StrategyKind.NAME_LOOKUP
                and strategy.language not in (None, CardLanguage.EN)):
            raise BadRequestError(f"pokemontcg.io has no {strategy.language.display_name} cards")

        payload = self._get("/cards", {
            "q": self.build_query(strategy),
            "pageSize": LOOKUP_PAGE_SIZE,
            "orderBy": "-set.releaseDate",
        })
        rows = payload.get("data") or []
        confidence = _STRATEGY_CONFIDENCE[strategy.kind]
        fields = {
            StrategyKind.SET_AND_NUMBER: frozenset({"set", "number"}),
            StrategyKind.NAME_LOOKUP: frozenset({"name"}),
            StrategyKind.NUMBER_LOOKUP: frozenset({"number"}),
        }[strategy.kind]

        matches = []
        for row in rows:
            card = card_from_pokemontcg(row)
            matches.append(CardMatch(id=card.id, card=card, confidence=confidence,
                                     matched_fields=fields))
        logger.info("pokemontcg.io %s → %d card(s)", strategy.label, len(matches))
        return matches

    def get_card(self, card_id: str) -> Optional[CardIdentity]:
        payload = self._get(f"/cards/{card_id}")
        data = payload.get("data")
        return card_from_pokemontcg(data) if data else None
