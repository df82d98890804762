"""Core runtime data structures for Warden."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Iterator, Optional

from .errors import UnboundVariable


class Environment:
    """Persistent association list from names to values.

    ``bind`` returns a new environment sharing this one as its tail, so a
    caller's environment is never affected by bindings made further down.
    """

    __slots__ = ("_name", "_value", "_parent", "_size")

    def __init__(self, name=None, value=None, parent: "Environment | None" = None):
        self._name = name
        self._value = value
        self._parent = parent
        self._size = 0 if parent is None else parent._size + 1

    @classmethod
    def empty(cls) -> "Environment":
        return EMPTY_ENV

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, Any]]) -> "Environment":
        """Build an environment; later pairs shadow earlier ones."""

        env = EMPTY_ENV
        for name, value in pairs:
            env = env.bind(name, value)
        return env

    def bind(self, name: str, value: Any) -> "Environment":
        return Environment(name, value, self)

    def lookup(self, name: str) -> Any:
        env = self
        while env._parent is not None:
            if env._name == name:
                return env._value
            env = env._parent
        raise UnboundVariable(name)

    def __contains__(self, name: str) -> bool:
        return any(bound == name for bound, _ in self)

    def __iter__(self) -> Iterator[tuple[str, Any]]:
        env = self
        while env._parent is not None:
            yield env._name, env._value
            env = env._parent

    def __len__(self) -> int:
        return self._size

    def names(self) -> list[str]:
        return [name for name, _ in self]

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"Environment({', '.join(self.names())})"


EMPTY_ENV = Environment()


class AuditLog:
    """Persistent append-only list of audit entries.

    ``append`` shares this log as the tail of the new one, so recording a
    decision costs the same however long the log already is.
    """

    __slots__ = ("_entry", "_parent", "_size")

    def __init__(self, entry=None, parent: "AuditLog | None" = None):
        self._entry = entry
        self._parent = parent
        self._size = 0 if parent is None else parent._size + 1

    def append(self, entry: str) -> "AuditLog":
        return AuditLog(entry, self)

    def entries(self) -> tuple:
        """Entries in the order they were recorded."""

        newest_first = []
        log = self
        while log._parent is not None:
            newest_first.append(log._entry)
            log = log._parent
        return tuple(reversed(newest_first))

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries())

    def __len__(self) -> int:
        return self._size

    def __eq__(self, other) -> bool:
        if not isinstance(other, AuditLog):
            return NotImplemented
        return self._size == other._size and self.entries() == other.entries()

    def __hash__(self) -> int:
        return hash(self.entries())

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"AuditLog({len(self)} entries)"


EMPTY_LOG = AuditLog()


# --- values -----------------------------------------------------------------


class Value:
    """Marker base for runtime values."""

    __slots__ = ()


@dataclass(frozen=True)
class IntValue(Value):
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CharValue(Value):
    value: str

    def __str__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class TransitionValue(Value):
    source: int
    symbol: str
    target: int

    def as_tuple(self) -> tuple[int, str, int]:
        return (self.source, self.symbol, self.target)

    def __str__(self) -> str:
        return f"({self.source} -{self.symbol}-> {self.target})"


@dataclass(frozen=True)
class ListValue(Value):
    items: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def __str__(self) -> str:
        return "[" + "; ".join(str(item) for item in self.items) + "]"


@dataclass(frozen=True, eq=False)
class Closure(Value):
    param: str
    body: Any
    env: Environment
    permissions: Optional[frozenset] = None

    def __str__(self) -> str:
        return f"<fun {self.param}>"


@dataclass(frozen=True, eq=False)
class RecClosure(Value):
    name: str
    param: str
    body: Any
    env: Environment

    @property
    def permissions(self) -> None:
        return None

    def __str__(self) -> str:
        return f"<fun rec {self.name} {self.param}>"


def describe(value: Any) -> str:
    """Short human-readable form used in error messages and audit entries."""

    if isinstance(value, Value):
        return f"{type(value).__name__}({value})"
    return repr(value)


# --- monitor state ----------------------------------------------------------


@dataclass(frozen=True)
class MonitorState:
    """Reference-monitor state threaded through evaluation.

    ``stack`` holds the permission sets of the live call chain, most recent
    first. ``trace`` is the event string of admitted operations. ``monitors``
    holds the installed automata, innermost first. ``audit`` is the trail of
    monitor decisions; ``log`` reads it back as a tuple, oldest first.
    """

    stack: tuple = ()
    trace: str = ""
    monitors: tuple = ()
    audit: AuditLog = EMPTY_LOG

    @property
    def log(self) -> tuple:
        return self.audit.entries()

    def push_frame(self, permissions: Optional[frozenset]) -> "MonitorState":
        if permissions is None:
            return self
        return replace(self, stack=(frozenset(permissions),) + self.stack)

    def install(self, automaton) -> "MonitorState":
        return replace(self, monitors=(automaton,) + self.monitors)

    def with_trace(self, trace: str) -> "MonitorState":
        return replace(self, trace=trace)

    def record(self, entry: str) -> "MonitorState":
        return replace(self, audit=self.audit.append(entry))

    def leave(self, outer: "MonitorState") -> "MonitorState":
        """Drop scoped state on return to ``outer``, keeping the history."""

        return replace(self, stack=outer.stack, monitors=outer.monitors)


@dataclass(frozen=True)
class Outcome:
    value: Any
    env: Environment
    state: MonitorState = field(default_factory=MonitorState)


__all__ = [
    "AuditLog",
    "CharValue",
    "Closure",
    "EMPTY_ENV",
    "EMPTY_LOG",
    "Environment",
    "IntValue",
    "ListValue",
    "MonitorState",
    "Outcome",
    "RecClosure",
    "TransitionValue",
    "Value",
    "describe",
]
