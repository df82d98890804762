"""Abstract syntax of the Warden expression language.

Programs arrive already built; there is no concrete syntax. Every node is a
frozen dataclass, so a tree can be shared between evaluations freely.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Optional

from ..constants import OPERATIONS, PERMISSIONS, PRIMITIVES


class Expr:
    """Marker base for expression nodes."""

    __slots__ = ()


@dataclass(frozen=True)
class IntLit(Expr):
    value: int


@dataclass(frozen=True)
class CharLit(Expr):
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or len(self.value) != 1:
            raise ValueError(f"Character literal must be a single character: {self.value!r}")


@dataclass(frozen=True)
class BoolLit(Expr):
    value: bool


@dataclass(frozen=True)
class Var(Expr):
    name: str


@dataclass(frozen=True)
class Let(Expr):
    """Top-level binding; the extended environment flows to the caller."""

    name: str
    bound: Expr


@dataclass(frozen=True)
class LetIn(Expr):
    name: str
    bound: Expr
    body: Expr


@dataclass(frozen=True)
class LetRec(Expr):
    name: str
    param: str
    fn_body: Expr
    body: Expr


@dataclass(frozen=True)
class Prim(Expr):
    op: str
    left: Expr
    right: Expr

    def __post_init__(self):
        if self.op not in PRIMITIVES:
            raise ValueError(f"Unknown primitive: {self.op!r}")


@dataclass(frozen=True)
class If(Expr):
    cond: Expr
    then: Expr
    otherwise: Expr


@dataclass(frozen=True)
class Fun(Expr):
    """Function abstraction, optionally declaring the permissions it holds."""

    param: str
    body: Expr
    permissions: Optional[frozenset] = None

    def __post_init__(self):
        if self.permissions is None:
            return
        perms = frozenset(self.permissions)
        unknown = perms - PERMISSIONS
        if unknown:
            raise ValueError(f"Unknown permissions: {sorted(unknown)}")
        object.__setattr__(self, "permissions", perms)


@dataclass(frozen=True)
class FunRec(Expr):
    name: str
    param: str
    body: Expr


@dataclass(frozen=True)
class Call(Expr):
    fn: Expr
    arg: Expr


@dataclass(frozen=True)
class Seq(Expr):
    first: Expr
    second: Expr


@dataclass(frozen=True)
class Privileged(Expr):
    """A privileged operation on a named resource."""

    operation: ClassVar[str] = ""
    resource: str

    @property
    def symbol(self) -> str:
        return OPERATIONS[self.operation]["symbol"]

    @property
    def requires(self) -> frozenset:
        return OPERATIONS[self.operation]["requires"]


@dataclass(frozen=True)
class Read(Privileged):
    operation: ClassVar[str] = "read"


@dataclass(frozen=True)
class Write(Privileged):
    operation: ClassVar[str] = "write"


@dataclass(frozen=True)
class Open(Privileged):
    operation: ClassVar[str] = "open"


@dataclass(frozen=True)
class TransitionLit(Expr):
    source: Expr
    symbol: Expr
    target: Expr


@dataclass(frozen=True)
class ListLit(Expr):
    items: tuple = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class Policy(Expr):
    """Builds an automaton from start state, transitions and accepting states."""

    start: Expr
    transitions: Expr
    accepting: Expr


@dataclass(frozen=True)
class Narrow(Expr):
    """Evaluate ``body`` with ``policy`` added to the active monitors."""

    policy: Expr
    body: Expr


EXPR_TYPES = (
    IntLit,
    CharLit,
    BoolLit,
    Var,
    Let,
    LetIn,
    LetRec,
    Prim,
    If,
    Fun,
    FunRec,
    Call,
    Seq,
    Read,
    Write,
    Open,
    TransitionLit,
    ListLit,
    Policy,
    Narrow,
)


def seq(*exprs: Expr) -> Expr:
    """Right-nest a run of expressions into :class:`Seq` nodes."""

    if not exprs:
        raise ValueError("seq() requires at least one expression")
    result = exprs[-1]
    for expr in reversed(exprs[:-1]):
        result = Seq(expr, result)
    return result


def list_of(items: Iterable[Expr]) -> ListLit:
    return ListLit(tuple(items))


__all__ = [
    "BoolLit",
    "Call",
    "CharLit",
    "EXPR_TYPES",
    "Expr",
    "Fun",
    "FunRec",
    "If",
    "IntLit",
    "Let",
    "LetIn",
    "LetRec",
    "ListLit",
    "Narrow",
    "Open",
    "Policy",
    "Prim",
    "Privileged",
    "Read",
    "Seq",
    "TransitionLit",
    "Var",
    "Write",
    "list_of",
    "seq",
]
