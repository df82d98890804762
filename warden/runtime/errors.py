"""Fatal conditions raised while evaluating Warden programs.

Every error aborts the whole evaluation. Nothing in the evaluator catches
them; :func:`warden.runtime.evaluator.run` is the only place that turns them
into a result value.
"""

from __future__ import annotations


class WardenError(Exception):
    """Base class for the fatal evaluation conditions."""

    tag = "WardenError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        # Monitor state at the point of failure, when a monitor raised it.
        self.monitor_state = None

    def to_dict(self) -> dict[str, str]:
        return {"tag": self.tag, "message": self.message}


class UnboundVariable(WardenError, LookupError):
    tag = "LookupError"

    def __init__(self, name: str):
        super().__init__(f"{name} not found")
        self.name = name


class EvaluationTypeError(WardenError, TypeError):
    tag = "TypeError"

    def __init__(self, message: str, value=None):
        super().__init__(message)
        self.value = value


class PermissionDenied(WardenError):
    """The stack walk found a frame that does not grant the request."""

    tag = "PermissionDenied"

    def __init__(self, operation: str, resource: str, missing):
        self.operation = operation
        self.resource = resource
        self.missing = frozenset(missing)
        names = ", ".join(sorted(self.missing))
        super().__init__(
            f"{operation.upper()} {resource} denied: lack of permissions ({names})"
        )


class PolicyRestricted(WardenError, RuntimeError):
    """At least one installed automaton rejects the extended trace."""

    tag = "PolicyRestricted"

    def __init__(self, operation: str, resource: str, trace: str):
        self.operation = operation
        self.resource = resource
        self.trace = trace
        super().__init__(
            f"{operation.upper()} {resource} denied: policy restricted (trace {trace!r})"
        )


class TransitionNotFound(WardenError, RuntimeError):
    tag = "TransitionNotFound"

    def __init__(self, state: int, symbol: str):
        self.state = state
        self.symbol = symbol
        super().__init__(f"State transition not found for ({state}, {symbol!r})")


class EvaluationDepthExceeded(WardenError, RecursionError):
    """The program nested deeper than the evaluator can follow."""

    tag = "RecursionError"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Evaluation nested too deeply (recursion limit {limit})")


ERROR_TAGS = {
    cls.tag: cls
    for cls in (
        UnboundVariable,
        EvaluationTypeError,
        PermissionDenied,
        PolicyRestricted,
        TransitionNotFound,
        EvaluationDepthExceeded,
    )
}

__all__ = [
    "ERROR_TAGS",
    "EvaluationDepthExceeded",
    "EvaluationTypeError",
    "PermissionDenied",
    "PolicyRestricted",
    "TransitionNotFound",
    "UnboundVariable",
    "WardenError",
]
