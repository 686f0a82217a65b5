"""
lookup_tcgdex.py — Card lookups against the TCGdex v2 REST API.

No API key needed. Endpoints used:
  GET /{lang}/sets?tcgOnline=SVI          → resolve a printed set code to a set id
  GET /{lang}/sets/{set_id}/{number}      → single card by set + number
  GET /{lang}/cards?name=Pikachu          → brief listing by name
  GET /{lang}/cards?localId=4             → brief listing by collector number
  GET /{lang}/cards/{card_id}             → full card record

Listings only return id/name/image, so each listed id is fetched in full
("hydrated") on a small thread pool before being handed back.

Docs: https://tcgdex.dev/rest
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests

from config import (
    TCGDEX_BASE, TCGDEX_HYDRATE_LIMIT, HTTP_TIMEOUT_SECONDS,
    HTTP_USER_AGENT, LOOKUP_PAGE_SIZE,
)
from errors import (
    BadRequestError, LookupFailure, NotFoundError, ServerError, TransportError,
)
from models import CardIdentity, CardMatch, CardRarity, SearchStrategy, StrategyKind
from strategies import normalize_number

logger = logging.getLogger("tcgdex")


def raise_for_status(response, url):
    """Map an HTTP status onto the lookup error types."""
    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 404:
        raise NotFoundError(f"404 for {url}")
    if status in (400, 422):
        raise BadRequestError(f"HTTP {status} for {url}")
    raise ServerError(status, f"HTTP {status} for {url}")


def _set_total(card_count):
    # cardCount is {"total": 198, "official": 198} on full records
    if isinstance(card_count, dict):
        return card_count.get("official") or card_count.get("total")
    return card_count


def card_from_tcgdex(data: dict) -> CardIdentity:
    """Convert a full TCGdex card record to a CardIdentity."""
    set_obj = data.get("set") or {}
    image = data.get("image")
    hp = data.get("hp")
    return CardIdentity(
        id=data["id"],
        name=data.get("name", ""),
        set_id=set_obj.get("id", ""),
        set_name=set_obj.get("name", ""),
        number=str(data.get("localId") or ""),
        rarity=CardRarity.from_label(data.get("rarity")),
        image_url=f"{image}/low.png" if image else None,
        image_url_large=f"{image}/high.png" if image else None,
        hp=str(hp) if hp is not None else None,
        types=tuple(data.get("types") or ()),
        supertype=data.get("category"),
        artist=data.get("illustrator"),
        set_total=_set_total(set_obj.get("cardCount")),
    )


class TCGDexClient:
    """
    Lookup collaborator for TCGdex.

    Rows come back with a flat confidence, so ranks_results is False and the
    search orchestrator scores them against the hint.
    """

    warning: Optional[str] = None
    ranks_results = False

    def __init__(self, session=None, base_url: str = TCGDEX_BASE,
                 timeout: float = HTTP_TIMEOUT_SECONDS,
                 hydrate_limit: int = TCGDEX_HYDRATE_LIMIT):
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.hydrate_limit = hydrate_limit

    def __repr__(self):
        return f"TCGDexClient(base_url={self.base_url!r})"

    # ─────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────

    def _get(self, path: str, params: Optional[dict] = None):
        url = f"{self.base_url}{path}"
        logger.debug("GET %s %s", url, params or "")
        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Accept": "application/json", "User-Agent": HTTP_USER_AGENT},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        raise_for_status(response, url)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}") from e

    def _get_list(self, path: str, params: Optional[dict] = None) -> list:
        """Listing endpoints answer 404 for an empty result."""
        try:
            data = self._get(path, params)
        except NotFoundError:
            return []
        return data if isinstance(data, list) else []

    # ─────────────────────────────────────────────────────────
    # STRATEGIES
    # ─────────────────────────────────────────────────────────

    def execute(self, strategy: SearchStrategy) -> list:
        if strategy.kind is StrategyKind.SET_AND_NUMBER:
            return self._search_set_and_number(strategy.set_code, strategy.number)
        if strategy.kind is StrategyKind.NAME_LOOKUP:
            return self._search_name(strategy.name, strategy.language.api_code)
        return self._search_number(strategy.number)

    def _search_set_and_number(self, set_code: str, number: str, lang: str = "en") -> list:
        set_id = self.resolve_set_id(set_code, lang)
        if set_id is None:
            logger.info("No TCGdex set for code %s", set_code)
            return []

        data = self._get(f"/{lang}/sets/{set_id}/{normalize_number(number)}")
        if not data:
            return []
        card = card_from_tcgdex(data)
        return [CardMatch(id=card.id, card=card, confidence=1.0,
                          matched_fields=frozenset({"set", "number"}))]

    def _search_name(self, name: str, lang: str) -> list:
        briefs = self._get_list(
            f"/{lang}/cards",
            {"name": name, "pagination:itemsPerPage": LOOKUP_PAGE_SIZE},
        )
        return self._hydrate([b["id"] for b in briefs if b.get("id")], lang)

    def _search_number(self, number: str, lang: str = "en") -> list:
        briefs = self._get_list(
            f"/{lang}/cards",
            {"localId": normalize_number(number), "pagination:itemsPerPage": LOOKUP_PAGE_SIZE},
        )
        return self._hydrate([b["id"] for b in briefs if b.get("id")], lang)

    # ─────────────────────────────────────────────────────────
    # HELPERS
    # ─────────────────────────────────────────────────────────

    def resolve_set_id(self, set_code: str, lang: str = "en") -> Optional[str]:
        sets = self._get_list(
            f"/{lang}/sets",
            {"tcgOnline": set_code.upper(), "pagination:itemsPerPage": 5},
        )
        return sets[0].get("id") if sets else None

    def _fetch_card(self, card_id: str, lang: str):
        """Returns (card, fatal_error); a card that is simply missing gives (None, None)."""
        try:
            data = self._get(f"/{lang}/cards/{card_id}")
        except LookupFailure as e:
            if not e.recoverable:
                return None, e
            logger.warning("Could not load card %s: %s", card_id, e)
            return None, None
        return (card_from_tcgdex(data) if data else None), None

    def _hydrate(self, card_ids: list, lang: str) -> list:
        """
        Fetch full records for the first few ids, keeping listing order.

        If every fetch fails with a server or transport error the first such
        error is raised, so an outage is not mistaken for an empty result.
        """
        card_ids = card_ids[:self.hydrate_limit]
        if not card_ids:
            return []

        with ThreadPoolExecutor(max_workers=len(card_ids)) as pool:
            results = list(pool.map(lambda cid: self._fetch_card(cid, lang), card_ids))

        cards = [card for card, _ in results]
        failures = [error for _, error in results if error is not None]
        if failures:
            if len(failures) == len(card_ids):
                raise failures[0]
            logger.warning("%d of %d TCGdex card fetches failed: %s",
                           len(failures), len(card_ids), failures[0])

        return [
            CardMatch(id=card.id, card=card, confidence=1.0, matched_fields=frozenset({"name"}))
            for card in cards if card is not None
        ]

    def get_card(self, card_id: str, lang: str = "en") -> Optional[CardIdentity]:
        data = self._get(f"/{lang}/cards/{card_id}")
        return card_from_tcgdex(data) if data else None
