"""End-to-end stack inspection: permissions declared on nested functions."""

import pytest

from warden import (
    Call,
    CharValue,
    Fun,
    FunRec,
    IntLit,
    LetIn,
    Open,
    PermissionDenied,
    Read,
    Var,
    Write,
    run,
    seq,
)

R = frozenset({"read"})
W = frozenset({"write"})
RW = frozenset({"read", "write"})


def two_nested_functions(outer, inner, body=None):
    """let f = fun x -> (let g = fun y -> write in g 0) in f 0"""

    body = body or Write("prova")
    return LetIn(
        "f",
        Fun(
            "x",
            LetIn("g", Fun("y", body, inner), Call(Var("g"), IntLit(0))),
            outer,
        ),
        Call(Var("f"), IntLit(0)),
    )


@pytest.mark.parametrize(
    "outer, inner, missing",
    [
        (R, R, W),
        (W, R, W),
        (R, W, W),
        (R, RW, W),
    ],
)
def test_write_denied_when_any_frame_lacks_write(outer, inner, missing):
    result = run(two_nested_functions(outer, inner))

    assert result.tag == "PermissionDenied"
    assert isinstance(result.error, PermissionDenied)
    assert result.error.missing == missing
    assert "WRITE prova denied: lack of permissions (write)" in str(result.error)
    assert result.log == ("write:prova:deny:stack",)


@pytest.mark.parametrize("outer, inner", [(W, W), (RW, RW), (RW, W)])
def test_write_permitted_when_every_frame_grants_it(outer, inner):
    result = run(two_nested_functions(outer, inner))

    assert result.ok
    assert result.value == CharValue("w")
    assert result.trace == "w"


@pytest.mark.parametrize("op", [Read("a"), Write("a"), Open("a")])
def test_empty_stack_permits_every_operation(op):
    assert run(op).ok


def test_open_needs_read_and_write_in_every_frame():
    denied = run(two_nested_functions(RW, R, Open("f")))
    assert denied.tag == "PermissionDenied"
    assert denied.error.missing == W

    allowed = run(two_nested_functions(RW, RW, Open("f")))
    assert allowed.value == CharValue("o")


def test_frame_is_popped_when_the_call_returns():
    program = seq(
        Call(Fun("x", IntLit(0), frozenset()), IntLit(0)),
        Read("a"),
    )

    assert run(program).ok


def test_empty_permission_set_denies_every_request():
    result = run(Call(Fun("x", Read("a"), frozenset()), IntLit(0)))

    assert result.tag == "PermissionDenied"
    assert result.error.missing == R


def test_functions_without_declared_permissions_push_no_frame():
    untagged = Call(Fun("x", Read("a")), IntLit(0))
    assert run(untagged).ok

    inside_reader = Call(Fun("z", untagged, R), IntLit(0))
    assert run(inside_reader).ok

    inside_writer = Call(Fun("z", untagged, W), IntLit(0))
    assert run(inside_writer).tag == "PermissionDenied"


def test_recursive_functions_push_no_frame():
    recursive = Call(FunRec("f", "x", Write("a")), IntLit(0))
    assert run(recursive).ok

    inside_writer = Call(Fun("z", recursive, W), IntLit(0))
    assert run(inside_writer).ok

    inside_reader = Call(Fun("z", recursive, R), IntLit(0))
    result = run(inside_reader)
    assert result.tag == "PermissionDenied"
    assert result.error.missing == W


def test_argument_is_evaluated_under_the_callee_frame():
    result = run(Call(Fun("x", Var("x"), W), Read("a")))

    assert result.tag == "PermissionDenied"
    assert result.error.operation == "read"


def test_permissions_follow_the_call_chain_not_the_definition_site():
    # g is defined inside a write-only function but called from a read-only one.
    program = LetIn(
        "g",
        Call(Fun("x", Fun("y", Read("a"), R), W), IntLit(0)),
        Call(Fun("z", Call(Var("g"), IntLit(0)), R), IntLit(0)),
    )

    assert run(program).ok
