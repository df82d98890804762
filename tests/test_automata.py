"""Tests for automaton acceptance and policy decomposition."""

import pytest

from warden.runtime.automata import (
    Automaton,
    accepts,
    admit,
    all_accept,
    compile_policy,
    decompose_char,
    decompose_int_list,
)
from warden.runtime.core import CharValue, IntValue, ListValue, MonitorState, TransitionValue
from warden.runtime.errors import EvaluationTypeError, PolicyRestricted, TransitionNotFound


def test_accepts_follows_transitions_to_an_accepting_state(no_raw):
    assert accepts("rrw", no_raw)
    assert accepts("ww", no_raw)
    assert not accepts("wr", no_raw)


def test_empty_string_is_judged_by_the_start_state():
    assert accepts("", Automaton(0, [], {0}))
    assert not accepts("", Automaton(0, [], {1}))


def test_first_matching_transition_wins():
    automaton = Automaton(0, [(0, "r", 1), (0, "r", 2)], {1})

    assert automaton.step(0, "r") == 1
    assert accepts("r", automaton)


def test_missing_transition_is_fatal(no_raw):
    with pytest.raises(TransitionNotFound, match=r"\(0, 'o'\)") as info:
        accepts("o", no_raw)

    assert info.value.state == 0
    assert info.value.symbol == "o"


def test_accepts_rejects_non_automata():
    with pytest.raises(EvaluationTypeError, match="Invalid automaton"):
        accepts("r", IntValue(0))


def test_all_accept_requires_every_monitor(no_raw, no_war):
    assert all_accept("rr", [no_raw, no_war])
    assert not all_accept("rw", [no_raw, no_war])
    assert all_accept("rw", [])


def test_admit_commits_extended_trace_only_when_accepted(no_raw):
    state = MonitorState(trace="w", monitors=(no_raw,))

    assert admit("write", "f", "w", state).trace == "ww"

    with pytest.raises(PolicyRestricted, match="READ f denied: policy restricted") as info:
        admit("read", "f", "r", state)

    assert info.value.trace == "wr"
    assert info.value.monitor_state.trace == "w"
    assert info.value.monitor_state.log == ("read:f:deny:policy",)
    assert state.trace == "w"


def test_compile_policy_decomposes_values():
    automaton = compile_policy(
        IntValue(0),
        ListValue((TransitionValue(0, "r", 0), TransitionValue(0, "w", 1))),
        ListValue((IntValue(0),)),
    )

    assert automaton == Automaton(0, ((0, "r", 0), (0, "w", 1)), frozenset({0}))
    assert automaton.states == frozenset({0, 1})
    assert automaton.alphabet == frozenset({"r", "w"})


def test_compile_policy_rejects_wrong_shapes():
    with pytest.raises(EvaluationTypeError, match="Transition list"):
        compile_policy(IntValue(0), IntValue(1), ListValue(()))
    with pytest.raises(EvaluationTypeError, match="type Transition"):
        compile_policy(IntValue(0), ListValue((IntValue(1),)), ListValue(()))
    with pytest.raises(EvaluationTypeError, match="type Int"):
        compile_policy(CharValue("a"), ListValue(()), ListValue(()))
    with pytest.raises(EvaluationTypeError, match="type Int"):
        decompose_int_list(ListValue((CharValue("x"),)))
    with pytest.raises(EvaluationTypeError, match="type Char"):
        decompose_char(IntValue(1))
