from __future__ import annotations

import pytest

from errors import BadRequestError, NotFoundError, SearchUnavailableError, ServerError, TransportError
from fakes import ScriptedLookup, card, match
from models import CardHint, CardLanguage, CardMatch
from search import PARTIAL_FAILURE_NOTE, search

HINT = CardHint(name_guess="Pikachu", number_guess="004", set_code_guess="SVI",
                language=CardLanguage.EN)

SET_LABEL = "set:SVI number:004"
NAME_LABEL = "name:Pikachu lang:en"
NUMBER_LABEL = "number:004"


def test_first_strategy_miss_then_matches() -> None:
    lookup = ScriptedLookup({
        SET_LABEL: NotFoundError("no such set"),
        NAME_LABEL: [match("a"), match("b"), match("c")],
    })

    outcome = search(HINT, lookup)

    assert [m.id for m in outcome.matches] == ["a", "b", "c"]
    assert outcome.attempted_queries == (SET_LABEL, NAME_LABEL)
    assert outcome.warning is None
    assert outcome.found
    assert lookup.executed == [SET_LABEL, NAME_LABEL]


def test_every_strategy_unreachable_raises() -> None:
    lookup = ScriptedLookup(default=TransportError("connection refused"))

    with pytest.raises(SearchUnavailableError) as excinfo:
        search(HINT, lookup)

    assert excinfo.value.attempted_queries == (SET_LABEL, NAME_LABEL, NUMBER_LABEL)
    assert isinstance(excinfo.value.__cause__, TransportError)


def test_all_misses_is_an_empty_outcome() -> None:
    lookup = ScriptedLookup({SET_LABEL: BadRequestError("bad"), NAME_LABEL: []})

    outcome = search(HINT, lookup)

    assert outcome.matches == ()
    assert outcome.attempted_queries == (SET_LABEL, NAME_LABEL, NUMBER_LABEL)
    assert outcome.warning is None
    assert not outcome.found


def test_partial_server_failure_adds_warning() -> None:
    lookup = ScriptedLookup({
        SET_LABEL: ServerError(503),
        NAME_LABEL: [match("a")],
    })

    outcome = search(HINT, lookup)

    assert [m.id for m in outcome.matches] == ["a"]
    assert outcome.warning == PARTIAL_FAILURE_NOTE


def test_partial_failure_without_matches_still_returns() -> None:
    lookup = ScriptedLookup({SET_LABEL: ServerError(500), NAME_LABEL: NotFoundError("none")})

    outcome = search(HINT, lookup)

    assert outcome.matches == ()
    assert outcome.warning == PARTIAL_FAILURE_NOTE


def test_lookup_warning_is_passed_through() -> None:
    lookup = ScriptedLookup(default=[match("a")], warning="No API key configured")

    outcome = search(HINT, lookup)

    assert outcome.warning == "No API key configured"


def test_unranked_rows_are_scored_against_hint() -> None:
    rows = [
        CardMatch(id="raichu", card=card("raichu", "Raichu", number="50"), confidence=1.0),
        CardMatch(id="pikachu", card=card("pikachu", "Pikachu", number="4"), confidence=1.0),
    ]
    lookup = ScriptedLookup({NAME_LABEL: rows}, ranks_results=False)

    outcome = search(HINT, lookup)

    assert [m.id for m in outcome.matches] == ["pikachu"]
    assert outcome.matches[0].confidence == 0.8


def test_rows_below_floor_fall_through_to_next_strategy() -> None:
    lookup = ScriptedLookup({
        NAME_LABEL: [CardMatch(id="x", card=card("x", "Zubat", number="41"), confidence=1.0)],
        NUMBER_LABEL: [CardMatch(id="y", card=card("y", "Pikachu", number="4"), confidence=1.0)],
    }, ranks_results=False)

    outcome = search(HINT, lookup)

    assert [m.id for m in outcome.matches] == ["y"]
    assert outcome.attempted_queries == (SET_LABEL, NAME_LABEL, NUMBER_LABEL)


def test_empty_hint_runs_nothing() -> None:
    lookup = ScriptedLookup(default=TransportError("down"))

    outcome = search(CardHint(), lookup)

    assert outcome.matches == ()
    assert outcome.attempted_queries == ()
    assert lookup.executed == []
