"""Trace-automaton monitor: security automata over the operation alphabet."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .core import CharValue, IntValue, ListValue, MonitorState, TransitionValue, Value, describe
from .errors import EvaluationTypeError, PolicyRestricted, TransitionNotFound


@dataclass(frozen=True)
class Automaton(Value):
    """Compiled deterministic automaton.

    ``transitions`` keeps declaration order: when several triples share a
    (state, symbol) pair the first one wins.
    """

    start: int
    transitions: tuple
    accepting: frozenset

    def __post_init__(self):
        object.__setattr__(self, "transitions", tuple(tuple(t) for t in self.transitions))
        object.__setattr__(self, "accepting", frozenset(self.accepting))

    @property
    def states(self) -> frozenset:
        found = {self.start} | set(self.accepting)
        for source, _, target in self.transitions:
            found.add(source)
            found.add(target)
        return frozenset(found)

    @property
    def alphabet(self) -> frozenset:
        return frozenset(symbol for _, symbol, _ in self.transitions)

    def step(self, state: int, symbol: str) -> int:
        for source, label, target in self.transitions:
            if source == state and label == symbol:
                return target
        raise TransitionNotFound(state, symbol)

    def final_state(self, string: Iterable[str]) -> int:
        state = self.start
        for symbol in string:
            state = self.step(state, symbol)
        return state

    def accepts(self, string: Iterable[str]) -> bool:
        return self.final_state(string) in self.accepting

    def __str__(self) -> str:
        arcs = ", ".join(f"{s}-{c}->{t}" for s, c, t in self.transitions)
        accepting = ", ".join(str(s) for s in sorted(self.accepting))
        return f"start={self.start} [{arcs}] accepting={{{accepting}}}"


def accepts(string: Iterable[str], automaton: Automaton) -> bool:
    """Fold ``string`` through ``automaton`` and test the final state."""

    if not isinstance(automaton, Automaton):
        raise EvaluationTypeError(f"Invalid automaton: {describe(automaton)}", automaton)
    return automaton.accepts(string)


def all_accept(string: str, monitors: Iterable[Automaton]) -> bool:
    return all(accepts(string, automaton) for automaton in monitors)


def admit(operation: str, resource: str, symbol: str, state: MonitorState) -> MonitorState:
    """Extend the event string with ``symbol`` if every monitor still accepts.

    The extended trace is committed only when all installed automata accept
    it. Otherwise :class:`PolicyRestricted` is raised, or
    :class:`TransitionNotFound` when an automaton has no move for the trace,
    and the trace is left as it was.
    """

    extended = state.trace + symbol
    try:
        admitted = all_accept(extended, state.monitors)
    except TransitionNotFound as error:
        error.monitor_state = state.record(f"{operation}:{resource}:deny:transition")
        raise
    if not admitted:
        error = PolicyRestricted(operation, resource, extended)
        error.monitor_state = state.record(f"{operation}:{resource}:deny:policy")
        raise error
    return state.with_trace(extended)


# --- decomposition of evaluated policy values -------------------------------


def decompose_int(value) -> int:
    if isinstance(value, IntValue):
        return value.value
    raise EvaluationTypeError(f"Expected input with type Int, got {describe(value)}", value)


def decompose_char(value) -> str:
    if isinstance(value, CharValue):
        return value.value
    raise EvaluationTypeError(f"Expected input with type Char, got {describe(value)}", value)


def decompose_transition(value) -> tuple[int, str, int]:
    if isinstance(value, TransitionValue):
        return value.as_tuple()
    raise EvaluationTypeError(
        f"Expected input with type Transition, got {describe(value)}", value
    )


def _decompose_list(value, item_decomposer, kind):
    if not isinstance(value, ListValue):
        raise EvaluationTypeError(
            f"Expected input with type {kind} list, got {describe(value)}", value
        )
    return [item_decomposer(item) for item in value.items]


def decompose_int_list(value) -> list[int]:
    return _decompose_list(value, decompose_int, "Int")


def decompose_transition_list(value) -> list[tuple[int, str, int]]:
    return _decompose_list(value, decompose_transition, "Transition")


def compile_policy(start, transitions, accepting) -> Automaton:
    """Turn evaluated policy components into an :class:`Automaton`."""

    return Automaton(
        start=decompose_int(start),
        transitions=tuple(decompose_transition_list(transitions)),
        accepting=frozenset(decompose_int_list(accepting)),
    )


__all__ = [
    "Automaton",
    "accepts",
    "admit",
    "all_accept",
    "compile_policy",
    "decompose_char",
    "decompose_int",
    "decompose_int_list",
    "decompose_transition",
    "decompose_transition_list",
]
