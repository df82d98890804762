"""Stock security policies, written as ordinary Warden expressions."""
from __future__ import annotations

from typing import Iterable

from ..constants import SYMBOLS
from .syntax import CharLit, IntLit, ListLit, Policy, TransitionLit


def transition(source: int, symbol: str, target: int) -> TransitionLit:
    return TransitionLit(IntLit(source), CharLit(symbol), IntLit(target))


def transitions_list(triples: Iterable[tuple[int, str, int]]) -> ListLit:
    return ListLit(tuple(transition(*triple) for triple in triples))


def policy(start: int, triples: Iterable[tuple[int, str, int]], accepting: Iterable[int]) -> Policy:
    """Build a :class:`Policy` expression from plain Python data."""

    return Policy(
        IntLit(start),
        transitions_list(triples),
        ListLit(tuple(IntLit(state) for state in accepting)),
    )


def no_read_after_write() -> Policy:
    """Once anything has been written, reads are refused (Chinese wall)."""

    r, w = SYMBOLS["read"], SYMBOLS["write"]
    return policy(
        0,
        [
            (0, r, 0),
            (0, w, 1),
            (1, w, 1),
            (1, r, 2),
            (2, r, 2),
            (2, w, 2),
        ],
        [0, 1],
    )


def no_write_after_read() -> Policy:
    r, w = SYMBOLS["read"], SYMBOLS["write"]
    return policy(
        0,
        [
            (0, w, 0),
            (0, r, 1),
            (1, r, 1),
            (1, w, 2),
            (2, w, 2),
            (2, r, 2),
        ],
        [0, 1],
    )


def at_most(operation: str, limit: int) -> Policy:
    """Allow ``operation`` at most ``limit`` times; other operations are free."""

    if limit < 0:
        raise ValueError("limit must be non-negative")
    counted = SYMBOLS[operation]
    others = [symbol for symbol in SYMBOLS.values() if symbol != counted]
    sink = limit + 1
    triples = []
    for state in range(sink + 1):
        triples.append((state, counted, min(state + 1, sink)))
        triples.extend((state, symbol, state) for symbol in others)
    return policy(0, triples, range(sink))


STOCK_POLICIES = {
    "noRaW": no_read_after_write,
    "noWaR": no_write_after_read,
}

__all__ = [
    "STOCK_POLICIES",
    "at_most",
    "no_read_after_write",
    "no_write_after_read",
    "policy",
    "transition",
    "transitions_list",
]
