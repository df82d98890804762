"""Big-step evaluator for Warden programs.

The environment and the monitor state are passed into every sub-evaluation
and handed back in an :class:`~warden.runtime.core.Outcome`. Nothing is kept
in module or object state, so evaluations of independent trees never
interfere.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import sys
from typing import Any, Optional

from ..constants import FALSE, RECURSION_LIMIT, TRUE
from . import syntax
from .automata import Automaton, admit, compile_policy, decompose_char, decompose_int
from .core import (
    EMPTY_ENV,
    CharValue,
    Closure,
    Environment,
    IntValue,
    ListValue,
    MonitorState,
    Outcome,
    RecClosure,
    TransitionValue,
    describe,
)
from .errors import EvaluationDepthExceeded, EvaluationTypeError, WardenError
from .permissions import inspect_stack


def evaluate(expr: syntax.Expr, env: Environment, state: MonitorState) -> Outcome:
    handler = _HANDLERS.get(type(expr))
    if handler is None:
        raise EvaluationTypeError(f"Unknown expression: {expr!r}", expr)
    return handler(expr, env, state)


def _eval_int(expr, env, state):
    return Outcome(IntValue(expr.value), env, state)


def _eval_char(expr, env, state):
    return Outcome(CharValue(expr.value), env, state)


def _eval_bool(expr, env, state):
    return Outcome(IntValue(TRUE if expr.value else FALSE), env, state)


def _eval_var(expr, env, state):
    return Outcome(env.lookup(expr.name), env, state)


def _eval_let(expr, env, state):
    bound = evaluate(expr.bound, env, state)
    return Outcome(bound.value, env.bind(expr.name, bound.value), bound.state)


def _eval_let_in(expr, env, state):
    bound = evaluate(expr.bound, env, state)
    body = evaluate(expr.body, env.bind(expr.name, bound.value), bound.state)
    return Outcome(body.value, env, body.state)


def _eval_let_rec(expr, env, state):
    closure = RecClosure(expr.name, expr.param, expr.fn_body, env)
    body = evaluate(expr.body, env.bind(expr.name, closure), state)
    return Outcome(body.value, env, body.state)


def apply_primitive(op: str, left, right) -> IntValue:
    if not (isinstance(left, IntValue) and isinstance(right, IntValue)):
        raise EvaluationTypeError(
            f"Unexpected primitive: {describe(left)} {op} {describe(right)}",
            (left, right),
        )
    a, b = left.value, right.value
    if op == "+":
        return IntValue(a + b)
    if op == "-":
        return IntValue(a - b)
    if op == "*":
        return IntValue(a * b)
    if op == "=":
        return IntValue(TRUE if a == b else FALSE)
    if op == "<":
        return IntValue(TRUE if a < b else FALSE)
    if op == ">":
        return IntValue(TRUE if a > b else FALSE)
    raise EvaluationTypeError(f"Unexpected primitive: {op}", op)


def _eval_prim(expr, env, state):
    left = evaluate(expr.left, env, state)
    right = evaluate(expr.right, env, left.state)
    return Outcome(apply_primitive(expr.op, left.value, right.value), env, right.state)


def _eval_if(expr, env, state):
    cond = evaluate(expr.cond, env, state)
    guard = cond.value
    if guard == IntValue(TRUE):
        return evaluate(expr.then, env, cond.state)
    if guard == IntValue(FALSE):
        return evaluate(expr.otherwise, env, cond.state)
    raise EvaluationTypeError(f"Unexpected condition: {describe(guard)}", guard)


def _eval_fun(expr, env, state):
    return Outcome(Closure(expr.param, expr.body, env, expr.permissions), env, state)


def _eval_fun_rec(expr, env, state):
    return Outcome(RecClosure(expr.name, expr.param, expr.body, env), env, state)


def _eval_call(expr, env, state):
    fn = evaluate(expr.fn, env, state)
    closure = fn.value
    if not isinstance(closure, (Closure, RecClosure)):
        raise EvaluationTypeError(f"Function unknown: {describe(closure)}", closure)

    # The callee's frame is live while its argument and body are evaluated.
    frame_state = fn.state.push_frame(closure.permissions)
    arg = evaluate(expr.arg, env, frame_state)
    call_env = closure.env.bind(closure.param, arg.value)
    if isinstance(closure, RecClosure):
        call_env = call_env.bind(closure.name, closure)
    result = evaluate(closure.body, call_env, arg.state)
    return Outcome(result.value, env, result.state.leave(fn.state))


def _eval_seq(expr, env, state):
    # Right-nested chains are walked in place; only the operands recurse.
    while isinstance(expr, syntax.Seq):
        first = evaluate(expr.first, env, state)
        env, state = first.env, first.state
        expr = expr.second
    return evaluate(expr, env, state)


def _eval_privileged(expr, env, state):
    checked = inspect_stack(expr.operation, expr.resource, state)
    admitted = admit(expr.operation, expr.resource, expr.symbol, checked)
    entry = f"{expr.operation}:{expr.resource}:permit"
    return Outcome(CharValue(expr.symbol), env, admitted.record(entry))


def _eval_transition(expr, env, state):
    source = evaluate(expr.source, env, state)
    symbol = evaluate(expr.symbol, env, source.state)
    target = evaluate(expr.target, env, symbol.state)
    value = TransitionValue(
        decompose_int(source.value),
        decompose_char(symbol.value),
        decompose_int(target.value),
    )
    return Outcome(value, env, target.state)


def _eval_list(expr, env, state):
    items = []
    for item in expr.items:
        outcome = evaluate(item, env, state)
        items.append(outcome.value)
        state = outcome.state
    return Outcome(ListValue(tuple(items)), env, state)


def _eval_policy(expr, env, state):
    start = evaluate(expr.start, env, state)
    transitions = evaluate(expr.transitions, env, start.state)
    accepting = evaluate(expr.accepting, env, transitions.state)
    automaton = compile_policy(start.value, transitions.value, accepting.value)
    return Outcome(automaton, env, accepting.state)


def _eval_narrow(expr, env, state):
    policy = evaluate(expr.policy, env, state)
    automaton = policy.value
    if not isinstance(automaton, Automaton):
        raise EvaluationTypeError(f"Invalid DFA: {describe(automaton)}", automaton)
    body = evaluate(expr.body, env, policy.state.install(automaton))
    return Outcome(body.value, body.env, body.state.leave(policy.state))


_HANDLERS = {
    syntax.IntLit: _eval_int,
    syntax.CharLit: _eval_char,
    syntax.BoolLit: _eval_bool,
    syntax.Var: _eval_var,
    syntax.Let: _eval_let,
    syntax.LetIn: _eval_let_in,
    syntax.LetRec: _eval_let_rec,
    syntax.Prim: _eval_prim,
    syntax.If: _eval_if,
    syntax.Fun: _eval_fun,
    syntax.FunRec: _eval_fun_rec,
    syntax.Call: _eval_call,
    syntax.Seq: _eval_seq,
    syntax.Read: _eval_privileged,
    syntax.Write: _eval_privileged,
    syntax.Open: _eval_privileged,
    syntax.TransitionLit: _eval_transition,
    syntax.ListLit: _eval_list,
    syntax.Policy: _eval_policy,
    syntax.Narrow: _eval_narrow,
}


@dataclass(frozen=True)
class RunResult:
    """Final value or fatal error of one program run.

    ``trace`` and ``log`` hold the event string and audit trail as they stood
    when evaluation finished, or at the monitor decision that aborted it.
    """

    value: Any = None
    error: Optional[WardenError] = None
    trace: str = ""
    log: tuple = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def tag(self) -> Optional[str]:
        return None if self.error is None else self.error.tag

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "value": None if self.value is None else describe(self.value),
            "error": None if self.error is None else self.error.to_dict(),
            "trace": self.trace,
            "log": list(self.log),
        }


@contextmanager
def _recursion_limit(limit: int):
    previous = sys.getrecursionlimit()
    sys.setrecursionlimit(max(previous, limit))
    try:
        yield
    finally:
        sys.setrecursionlimit(previous)


def evaluate_program(
    program: syntax.Expr,
    env: Environment | None = None,
    state: MonitorState | None = None,
) -> Outcome:
    """Evaluate ``program`` from a fresh environment and monitor state.

    Calls and nested operands each take interpreter stack, so evaluation
    runs under a raised recursion limit. A program that nests past it raises
    :class:`EvaluationDepthExceeded`.
    """

    with _recursion_limit(RECURSION_LIMIT):
        try:
            return evaluate(
                program,
                EMPTY_ENV if env is None else env,
                MonitorState() if state is None else state,
            )
        except RecursionError as exc:
            if isinstance(exc, WardenError):
                raise
            raise EvaluationDepthExceeded(sys.getrecursionlimit()) from exc


def run(
    program: syntax.Expr,
    env: Environment | None = None,
    state: MonitorState | None = None,
) -> RunResult:
    """Evaluate ``program`` and report its value or the fatal error."""

    initial = MonitorState() if state is None else state
    try:
        outcome = evaluate_program(program, env, initial)
    except WardenError as exc:
        failed = exc.monitor_state or initial
        return RunResult(error=exc, trace=failed.trace, log=failed.log)
    return RunResult(value=outcome.value, trace=outcome.state.trace, log=outcome.state.log)


__all__ = [
    "RunResult",
    "apply_primitive",
    "evaluate",
    "evaluate_program",
    "run",
]
