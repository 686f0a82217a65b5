"""
search.py — Run a hint's strategies against a lookup collaborator.

Strategies run one at a time, in order, and the first one that produces
matches wins. "Nothing found" is never an error: the caller gets an empty
SearchOutcome listing every query that was tried. Only when every strategy
failed because the backend itself was unusable (HTTP 5xx/401/429, network
down) does search() raise SearchUnavailableError.
"""

import logging
import time

from errors import LookupFailure, SearchUnavailableError
from models import CardHint, SearchOutcome
from ranking import rank
from strategies import build_strategies

logger = logging.getLogger("search")

PARTIAL_FAILURE_NOTE = "Some lookups failed; results may be incomplete"


def _combine_warnings(*warnings):
    parts = [w for w in warnings if w]
    return "; ".join(parts) if parts else None


def search(hint: CardHint, lookup) -> SearchOutcome:
    """
    Try each strategy for `hint` against `lookup` until one returns matches.

    Raises:
        SearchUnavailableError: every strategy hit a server or transport error.
    """
    strategies = build_strategies(hint)
    reranks = not getattr(lookup, "ranks_results", True)

    attempted = []
    fatal_failures = 0
    last_error = None
    t0 = time.time()

    for strategy in strategies:
        attempted.append(strategy.label)
        try:
            matches = lookup.execute(strategy)
        except LookupFailure as e:
            if e.recoverable:
                logger.info("  [%s] no match (%s)", strategy.label, e)
                continue
            fatal_failures += 1
            last_error = e
            logger.warning("  [%s] lookup failed: %s", strategy.label, e)
            continue

        if reranks and matches:
            matches = rank(hint, [m.card for m in matches])

        if matches:
            logger.info(
                "  [%s] %d match(es), top: %s (%.2f) in %.2fs",
                strategy.label, len(matches), matches[0].id,
                matches[0].confidence, time.time() - t0,
            )
            partial = PARTIAL_FAILURE_NOTE if fatal_failures else None
            return SearchOutcome(
                matches=tuple(matches),
                attempted_queries=tuple(attempted),
                warning=_combine_warnings(getattr(lookup, "warning", None), partial),
            )
        logger.info("  [%s] no match", strategy.label)

    if strategies and fatal_failures == len(strategies):
        raise SearchUnavailableError(
            f"Card lookup unavailable: {last_error}",
            attempted_queries=attempted,
        ) from last_error

    partial = PARTIAL_FAILURE_NOTE if fatal_failures else None
    return SearchOutcome(
        matches=(),
        attempted_queries=tuple(attempted),
        warning=_combine_warnings(getattr(lookup, "warning", None), partial),
    )
