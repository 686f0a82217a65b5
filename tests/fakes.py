from __future__ import annotations

import json
from typing import Callable, Optional

from models import CardIdentity, CardMatch, CardRarity, RecognizedFragment


def frags(*lines: str) -> list[RecognizedFragment]:
    return [RecognizedFragment(text=line, confidence=0.9) for line in lines]


def card(card_id: str, name: str, number: str = "1", rarity: CardRarity = CardRarity.COMMON,
         hp: Optional[str] = None, set_id: str = "base1") -> CardIdentity:
    return CardIdentity(id=card_id, name=name, number=number, rarity=rarity, hp=hp,
                        set_id=set_id, set_name="Base")


def match(card_id: str, name: str = "Pikachu", number: str = "1", confidence: float = 1.0) -> CardMatch:
    return CardMatch(id=card_id, card=card(card_id, name, number), confidence=confidence)


class FakeRecognizer:
    """Returns canned fragments (or raises), optionally calling a hook mid-recognition."""

    def __init__(self, fragments=None, error: Optional[Exception] = None,
                 during: Optional[Callable[[], None]] = None) -> None:
        self.fragments = list(fragments or [])
        self.error = error
        self.during = during
        self.calls = 0

    def recognize(self, image):
        self.calls += 1
        if self.during is not None:
            self.during()
        if self.error is not None:
            raise self.error
        return list(self.fragments)


class ScriptedLookup:
    """
    Answers strategies by label. A value can be a list of matches or an
    exception instance to raise. Unknown labels answer [].
    """

    def __init__(self, responses=None, default=None, warning: Optional[str] = None,
                 ranks_results: bool = True) -> None:
        self.responses = dict(responses or {})
        self.default = default
        self.warning = warning
        self.ranks_results = ranks_results
        self.executed: list[str] = []
        self.cards: dict[str, CardIdentity] = {}

    def execute(self, strategy):
        self.executed.append(strategy.label)
        response = self.responses.get(strategy.label, self.default)
        if isinstance(response, Exception):
            raise response
        return list(response or [])

    def get_card(self, card_id: str):
        return self.cards.get(card_id)


class FakeCamera:
    def __init__(self, start_ok: bool = True) -> None:
        self.start_ok = start_ok
        self.on_frame = None
        self.paused = False
        self.events: list[str] = []

    def start(self, on_frame=None) -> bool:
        self.events.append("start")
        self.on_frame = on_frame
        self.paused = False
        return self.start_ok

    def stop(self) -> None:
        self.events.append("stop")

    def pause(self) -> None:
        self.events.append("pause")
        self.paused = True

    def resume(self) -> None:
        self.events.append("resume")
        self.paused = False


INVALID_JSON = object()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None) -> None:
        self.status_code = status_code
        self.payload = payload
        if payload is INVALID_JSON:
            self.content = b"<html>"
        elif payload is None:
            self.content = b""
        else:
            self.content = json.dumps(payload).encode("utf-8")

    def json(self):
        if self.payload is INVALID_JSON or self.payload is None:
            raise ValueError("not json")
        return self.payload


class FakeHTTPSession:
    """Routes GETs by full URL (query string excluded)."""

    def __init__(self, routes=None, error: Optional[Exception] = None) -> None:
        self.routes = dict(routes or {})
        self.error = error
        self.calls: list[tuple[str, dict, dict]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, dict(params or {}), dict(headers or {})))
        if self.error is not None:
            raise self.error
        return self.routes.get(url, FakeResponse(404, {"error": "not found"}))
